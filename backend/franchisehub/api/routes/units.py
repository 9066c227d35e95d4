"""Unit routes, including unit inventory, staff and reviews."""

import logging
from datetime import date
from typing import Optional

from fastapi import APIRouter, HTTPException, Query, Request, status
from sqlalchemy import func

from franchisehub.core.periods import month_bounds, percentage_change, previous_month
from franchisehub.core.rate_limit import limiter
from franchisehub.core.rbac import RequireAdmin, RequireFranchisorOrAdmin, RequireManagement
from franchisehub.core.responses import paginated_response, serialize, serialize_many, success_response
from franchisehub.core.tenancy import Tenant, TenantScope
from franchisehub.db.session import DbSession
from franchisehub.models import (
    Franchise, Product, Review, ReviewStatus, Sentiment, Staff, StaffStatus, Unit, UnitInventory,
    UnitStatus, UnitType, User, UserRole,
)
from franchisehub.schemas.franchise import IdList
from franchisehub.schemas.pagination import (
    ListParams, apply_filters, apply_search, apply_sort, paginate_query,
)
from franchisehub.schemas.unit import (
    InventoryResponse, InventoryUpsert, ReviewCreate, ReviewResponse, StaffCreate, StaffResponse,
    StaffUpdate, UnitCreate, UnitResponse, UnitUpdate,
)
from franchisehub.services.numbering import generate_unit_code
from franchisehub.services.report_service import ReportService, Scope
from franchisehub.services.review_service import ReviewService

logger = logging.getLogger(__name__)

router = APIRouter()

SORTABLE = ("unit_name", "unit_code", "city", "status", "unit_type", "opening_date", "employee_count", "created_at")
STAFF_SORTABLE = ("name", "job_title", "department", "hire_date", "status", "created_at")
REVIEW_SORTABLE = ("rating", "review_date", "customer_name", "status", "created_at")


def _validate_franchisee(db, franchisee_id: Optional[int]) -> None:
    if franchisee_id is None:
        return
    user = db.query(User).filter(User.id == franchisee_id).first()
    if user is None or user.role != UserRole.FRANCHISEE:
        raise HTTPException(status_code=422, detail="franchisee_id must reference a franchisee user")


def _refresh_counts(db, unit: Unit) -> None:
    franchise = db.query(Franchise).filter(Franchise.id == unit.franchise_id).first()
    if franchise is not None:
        db.flush()
        db.refresh(franchise)
        franchise.update_unit_counts()


def _set_status(db, units, new_status: UnitStatus) -> int:
    for unit in units:
        unit.status = new_status
    db.flush()
    for franchise_id in {u.franchise_id for u in units}:
        franchise = db.query(Franchise).filter(Franchise.id == franchise_id).first()
        db.refresh(franchise)
        franchise.update_unit_counts()
    db.commit()
    return len(units)


# ---------- units ----------

@router.get("/")
@limiter.limit("60/minute")
def list_units(
    request: Request,
    scope: Tenant,
    params: ListParams,
    db: DbSession,
    unit_status: Optional[UnitStatus] = Query(None, alias="status"),
    unit_type: Optional[UnitType] = Query(None),
    city: Optional[str] = Query(None),
    franchise_id: Optional[int] = Query(None),
):
    query = scope.apply(db.query(Unit), Unit)
    query = apply_filters(query, Unit, {
        "status": unit_status, "unit_type": unit_type, "city": city, "franchise_id": franchise_id,
    })
    query = apply_search(query, params.search, [Unit.unit_name, Unit.unit_code, Unit.city, Unit.address])
    query = apply_sort(query, Unit, params.sort_by, params.sort_order, SORTABLE)
    items, total = paginate_query(query, params.page, params.per_page)
    return paginated_response(serialize_many(UnitResponse, items), total, params.page, params.per_page)


@router.get("/statistics")
@limiter.limit("60/minute")
def unit_statistics(request: Request, scope: Tenant, db: DbSession):
    query = scope.apply(db.query(Unit), Unit)
    by_status = {s.value: 0 for s in UnitStatus}
    for unit_status, count in query.with_entities(Unit.status, func.count(Unit.id)).group_by(Unit.status).all():
        by_status[unit_status.value] = count
    by_type = {t.value: 0 for t in UnitType}
    for unit_type, count in query.with_entities(Unit.unit_type, func.count(Unit.id)).group_by(Unit.unit_type).all():
        by_type[unit_type.value] = count
    employees = query.with_entities(func.coalesce(func.sum(Unit.employee_count), 0)).scalar()

    today = date.today()
    ledger = Scope.for_tenant(scope)
    current_sales = ReportService.totals(db, ledger, month_bounds(today.year, today.month))["sales"]
    previous_sales = ReportService.totals(db, ledger, month_bounds(*previous_month(today)))["sales"]
    total = sum(by_status.values())
    return success_response({
        "total": total,
        "active": by_status[UnitStatus.ACTIVE.value],
        "byStatus": by_status,
        "byType": by_type,
        "totalEmployees": int(employees),
        "currentMonthRevenue": current_sales,
        "previousMonthRevenue": previous_sales,
        "revenueChange": percentage_change(current_sales, previous_sales),
        "averageRevenuePerUnit": round(current_sales / total, 2) if total else 0.0,
    })


@router.post("/", status_code=status.HTTP_201_CREATED)
@limiter.limit("30/minute")
def create_unit(
    request: Request,
    data: UnitCreate,
    scope: Tenant,
    db: DbSession,
    current_user: RequireFranchisorOrAdmin,
):
    if scope.is_franchisor:
        franchise = scope.require_franchise()
    else:
        if data.franchise_id is None:
            raise HTTPException(status_code=422, detail="franchise_id is required")
        franchise = scope.get_or_404(Franchise, data.franchise_id, "Franchise")
    _validate_franchisee(db, data.franchisee_id)
    if data.unit_code and db.query(Unit.id).filter(Unit.unit_code == data.unit_code).first():
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Unit code already in use")

    try:
        payload = data.model_dump(exclude={"franchise_id", "unit_code"})
        unit = Unit(
            **payload,
            franchise_id=franchise.id,
            unit_code=data.unit_code or generate_unit_code(db, franchise.business_name, data.unit_name),
        )
        db.add(unit)
        _refresh_counts(db, unit)
        db.commit()
        db.refresh(unit)
        logger.info(f"Unit {unit.unit_code} created in franchise {franchise.id}")
        return success_response(serialize(UnitResponse, unit), "Unit created successfully")
    except HTTPException:
        raise
    except Exception as e:
        db.rollback()
        logger.error(f"Failed to create unit: {e}")
        raise HTTPException(status_code=500, detail="Failed to create unit")


@router.post("/bulk-activate")
@limiter.limit("30/minute")
def bulk_activate(request: Request, data: IdList, db: DbSession, current_user: RequireAdmin):
    units = db.query(Unit).filter(Unit.id.in_(data.ids)).all()
    count = _set_status(db, units, UnitStatus.ACTIVE)
    return success_response({"updated": count}, f"{count} units activated")


@router.post("/bulk-deactivate")
@limiter.limit("30/minute")
def bulk_deactivate(request: Request, data: IdList, db: DbSession, current_user: RequireAdmin):
    units = db.query(Unit).filter(Unit.id.in_(data.ids)).all()
    count = _set_status(db, units, UnitStatus.TEMPORARILY_CLOSED)
    return success_response({"updated": count}, f"{count} units deactivated")


@router.get("/{unit_id}")
@limiter.limit("60/minute")
def get_unit(request: Request, unit_id: int, scope: Tenant):
    return success_response(serialize(UnitResponse, scope.get_or_404(Unit, unit_id, "Unit")))


@router.put("/{unit_id}")
@limiter.limit("30/minute")
def update_unit(
    request: Request,
    unit_id: int,
    data: UnitUpdate,
    scope: Tenant,
    db: DbSession,
    current_user: RequireManagement,
):
    unit = scope.get_or_404(Unit, unit_id, "Unit")
    changes = data.model_dump(exclude_unset=True)
    if scope.is_franchisee and ({"status", "franchisee_id"} & changes.keys()):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Only the franchisor can change unit status or franchisee",
        )
    if "franchisee_id" in changes:
        _validate_franchisee(db, changes["franchisee_id"])
    try:
        for field, value in changes.items():
            setattr(unit, field, value)
        if "status" in changes:
            _refresh_counts(db, unit)
        db.commit()
        db.refresh(unit)
        return success_response(serialize(UnitResponse, unit), "Unit updated successfully")
    except HTTPException:
        raise
    except Exception as e:
        db.rollback()
        logger.error(f"Failed to update unit {unit_id}: {e}")
        raise HTTPException(status_code=500, detail="Failed to update unit")


@router.delete("/{unit_id}")
@limiter.limit("30/minute")
def delete_unit(request: Request, unit_id: int, scope: Tenant, db: DbSession, current_user: RequireFranchisorOrAdmin):
    unit = scope.get_or_404(Unit, unit_id, "Unit")
    franchise_id = unit.franchise_id
    try:
        db.delete(unit)
        db.flush()
        franchise = db.query(Franchise).filter(Franchise.id == franchise_id).first()
        db.refresh(franchise)
        franchise.update_unit_counts()
        db.commit()
        logger.info(f"Unit {unit_id} deleted by user {current_user.id}")
        return success_response(message="Unit deleted successfully")
    except Exception as e:
        db.rollback()
        logger.error(f"Failed to delete unit {unit_id}: {e}")
        raise HTTPException(status_code=500, detail="Failed to delete unit")


def _transition(scope: TenantScope, db, unit_id: int, new_status: UnitStatus, message: str):
    unit = scope.get_or_404(Unit, unit_id, "Unit")
    _set_status(db, [unit], new_status)
    db.refresh(unit)
    logger.info(f"Unit {unit_id} status -> {new_status.value}")
    return success_response(serialize(UnitResponse, unit), message)


@router.patch("/{unit_id}/activate")
@limiter.limit("30/minute")
def activate_unit(request: Request, unit_id: int, scope: Tenant, db: DbSession, current_user: RequireFranchisorOrAdmin):
    return _transition(scope, db, unit_id, UnitStatus.ACTIVE, "Unit activated")


@router.patch("/{unit_id}/deactivate")
@limiter.limit("30/minute")
def deactivate_unit(request: Request, unit_id: int, scope: Tenant, db: DbSession, current_user: RequireFranchisorOrAdmin):
    return _transition(scope, db, unit_id, UnitStatus.TEMPORARILY_CLOSED, "Unit deactivated")


@router.patch("/{unit_id}/close")
@limiter.limit("30/minute")
def close_unit(request: Request, unit_id: int, scope: Tenant, db: DbSession, current_user: RequireFranchisorOrAdmin):
    return _transition(scope, db, unit_id, UnitStatus.PERMANENTLY_CLOSED, "Unit closed")


# ---------- inventory ----------

def _inventory_row(item: UnitInventory) -> dict:
    product = item.product
    return InventoryResponse(
        id=item.id,
        unit_id=item.unit_id,
        product_id=item.product_id,
        product_name=product.name if product else None,
        sku=product.sku if product else None,
        quantity=item.quantity,
        reorder_level=item.reorder_level,
        needs_reorder=item.quantity <= item.reorder_level,
        updated_at=item.updated_at,
    ).model_dump()


def _get_inventory(db, unit: Unit, product_id: int) -> UnitInventory:
    item = (
        db.query(UnitInventory)
        .filter(UnitInventory.unit_id == unit.id, UnitInventory.product_id == product_id)
        .first()
    )
    if item is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Inventory item not found")
    return item


@router.get("/{unit_id}/inventory")
@limiter.limit("60/minute")
def list_inventory(request: Request, unit_id: int, scope: Tenant, db: DbSession):
    unit = scope.get_or_404(Unit, unit_id, "Unit")
    items = (
        db.query(UnitInventory)
        .filter(UnitInventory.unit_id == unit.id)
        .order_by(UnitInventory.id)
        .all()
    )
    return success_response([_inventory_row(i) for i in items])


@router.post("/{unit_id}/inventory/{product_id}", status_code=status.HTTP_201_CREATED)
@limiter.limit("30/minute")
def add_inventory(
    request: Request,
    unit_id: int,
    product_id: int,
    data: InventoryUpsert,
    scope: Tenant,
    db: DbSession,
    current_user: RequireManagement,
):
    unit = scope.get_or_404(Unit, unit_id, "Unit")
    product = db.query(Product).filter(Product.id == product_id).first()
    if product is None or product.franchise_id != unit.franchise_id:
        raise HTTPException(status_code=422, detail="Product does not belong to this unit's franchise")
    exists = (
        db.query(UnitInventory.id)
        .filter(UnitInventory.unit_id == unit.id, UnitInventory.product_id == product_id)
        .first()
    )
    if exists:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Product already in unit inventory")
    item = UnitInventory(unit_id=unit.id, product_id=product_id, **data.model_dump())
    db.add(item)
    db.commit()
    db.refresh(item)
    return success_response(_inventory_row(item), "Inventory item added")


@router.put("/{unit_id}/inventory/{product_id}")
@limiter.limit("30/minute")
def update_inventory(
    request: Request,
    unit_id: int,
    product_id: int,
    data: InventoryUpsert,
    scope: Tenant,
    db: DbSession,
    current_user: RequireManagement,
):
    unit = scope.get_or_404(Unit, unit_id, "Unit")
    item = _get_inventory(db, unit, product_id)
    item.quantity = data.quantity
    item.reorder_level = data.reorder_level
    db.commit()
    db.refresh(item)
    return success_response(_inventory_row(item), "Inventory item updated")


@router.delete("/{unit_id}/inventory/{product_id}")
@limiter.limit("30/minute")
def remove_inventory(
    request: Request,
    unit_id: int,
    product_id: int,
    scope: Tenant,
    db: DbSession,
    current_user: RequireManagement,
):
    unit = scope.get_or_404(Unit, unit_id, "Unit")
    db.delete(_get_inventory(db, unit, product_id))
    db.commit()
    return success_response(message="Inventory item removed")


# ---------- staff ----------

def _sync_employee_count(db, unit: Unit) -> None:
    db.flush()
    unit.employee_count = (
        db.query(Staff)
        .filter(Staff.unit_id == unit.id, Staff.status != StaffStatus.TERMINATED)
        .count()
    )


def _get_staff(db, unit: Unit, staff_id: int) -> Staff:
    member = db.query(Staff).filter(Staff.id == staff_id, Staff.unit_id == unit.id).first()
    if member is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Staff member not found")
    return member


@router.get("/{unit_id}/staff")
@limiter.limit("60/minute")
def list_staff(
    request: Request,
    unit_id: int,
    scope: Tenant,
    params: ListParams,
    db: DbSession,
    staff_status: Optional[StaffStatus] = Query(None, alias="status"),
    department: Optional[str] = Query(None),
):
    unit = scope.get_or_404(Unit, unit_id, "Unit")
    query = db.query(Staff).filter(Staff.unit_id == unit.id)
    query = apply_filters(query, Staff, {"status": staff_status, "department": department})
    query = apply_search(query, params.search, [Staff.name, Staff.email, Staff.job_title])
    query = apply_sort(query, Staff, params.sort_by, params.sort_order, STAFF_SORTABLE)
    items, total = paginate_query(query, params.page, params.per_page)
    return paginated_response(serialize_many(StaffResponse, items), total, params.page, params.per_page)


@router.post("/{unit_id}/staff", status_code=status.HTTP_201_CREATED)
@limiter.limit("30/minute")
def create_staff(
    request: Request,
    unit_id: int,
    data: StaffCreate,
    scope: Tenant,
    db: DbSession,
    current_user: RequireManagement,
):
    unit = scope.get_or_404(Unit, unit_id, "Unit")
    try:
        member = Staff(**data.model_dump(), unit_id=unit.id)
        db.add(member)
        _sync_employee_count(db, unit)
        db.commit()
        db.refresh(member)
        return success_response(serialize(StaffResponse, member), "Staff member added")
    except Exception as e:
        db.rollback()
        logger.error(f"Failed to add staff to unit {unit_id}: {e}")
        raise HTTPException(status_code=500, detail="Failed to add staff member")


@router.put("/{unit_id}/staff/{staff_id}")
@limiter.limit("30/minute")
def update_staff(
    request: Request,
    unit_id: int,
    staff_id: int,
    data: StaffUpdate,
    scope: Tenant,
    db: DbSession,
    current_user: RequireManagement,
):
    unit = scope.get_or_404(Unit, unit_id, "Unit")
    member = _get_staff(db, unit, staff_id)
    changes = data.model_dump(exclude_unset=True)
    shift_start = changes.get("shift_start", member.shift_start)
    shift_end = changes.get("shift_end", member.shift_end)
    if shift_start and shift_end and shift_end <= shift_start:
        raise HTTPException(status_code=422, detail="shift_end must be after shift_start")
    for field, value in changes.items():
        setattr(member, field, value)
    _sync_employee_count(db, unit)
    db.commit()
    db.refresh(member)
    return success_response(serialize(StaffResponse, member), "Staff member updated")


@router.delete("/{unit_id}/staff/{staff_id}")
@limiter.limit("30/minute")
def delete_staff(
    request: Request,
    unit_id: int,
    staff_id: int,
    scope: Tenant,
    db: DbSession,
    current_user: RequireManagement,
):
    unit = scope.get_or_404(Unit, unit_id, "Unit")
    db.delete(_get_staff(db, unit, staff_id))
    _sync_employee_count(db, unit)
    db.commit()
    return success_response(message="Staff member removed")


# ---------- reviews ----------

@router.get("/{unit_id}/reviews")
@limiter.limit("60/minute")
def list_unit_reviews(
    request: Request,
    unit_id: int,
    scope: Tenant,
    params: ListParams,
    db: DbSession,
    review_status: Optional[ReviewStatus] = Query(None, alias="status"),
    rating: Optional[int] = Query(None, ge=1, le=5),
    sentiment: Optional[Sentiment] = Query(None),
):
    unit = scope.get_or_404(Unit, unit_id, "Unit")
    query = db.query(Review).filter(Review.unit_id == unit.id)
    query = apply_filters(query, Review, {"status": review_status, "rating": rating, "sentiment": sentiment})
    query = apply_search(query, params.search, [Review.customer_name, Review.comment])
    query = apply_sort(query, Review, params.sort_by, params.sort_order, REVIEW_SORTABLE)
    items, total = paginate_query(query, params.page, params.per_page)
    return paginated_response(serialize_many(ReviewResponse, items), total, params.page, params.per_page)


@router.get("/{unit_id}/reviews/statistics")
@limiter.limit("60/minute")
def unit_review_statistics(request: Request, unit_id: int, scope: Tenant, db: DbSession):
    unit = scope.get_or_404(Unit, unit_id, "Unit")
    return success_response(ReviewService.statistics(db.query(Review).filter(Review.unit_id == unit.id)))


@router.post("/{unit_id}/reviews", status_code=status.HTTP_201_CREATED)
@limiter.limit("30/minute")
def create_unit_review(
    request: Request,
    unit_id: int,
    data: ReviewCreate,
    scope: Tenant,
    db: DbSession,
    current_user: RequireManagement,
):
    unit = scope.get_or_404(Unit, unit_id, "Unit")
    try:
        review = ReviewService.create(db, unit, data.model_dump())
        db.commit()
        db.refresh(review)
        return success_response(serialize(ReviewResponse, review), "Review created successfully")
    except Exception as e:
        db.rollback()
        logger.error(f"Failed to create review for unit {unit_id}: {e}")
        raise HTTPException(status_code=500, detail="Failed to create review")
