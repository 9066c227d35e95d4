"""Franchise routes: admin sees every franchise, a franchisor sees their own."""

import logging
from typing import Optional

from fastapi import APIRouter, HTTPException, Query, Request, status
from sqlalchemy import func

from franchisehub.core.rate_limit import limiter
from franchisehub.core.rbac import RequireAdmin, RequireFranchisorOrAdmin
from franchisehub.core.responses import paginated_response, serialize, serialize_many, success_response
from franchisehub.core.tenancy import Tenant
from franchisehub.db.session import DbSession
from franchisehub.models import BusinessType, Franchise, FranchiseStatus, User, UserRole
from franchisehub.schemas.franchise import FranchiseCreate, FranchiseResponse, FranchiseUpdate, IdList
from franchisehub.schemas.pagination import (
    ListParams, apply_filters, apply_search, apply_sort, paginate_query,
)
from franchisehub.services.numbering import generate_registration_number

logger = logging.getLogger(__name__)

router = APIRouter()

SORTABLE = ("business_name", "brand_name", "industry", "status", "total_units", "created_at")


@router.get("/")
@limiter.limit("60/minute")
def list_franchises(
    request: Request,
    scope: Tenant,
    params: ListParams,
    db: DbSession,
    franchise_status: Optional[FranchiseStatus] = Query(None, alias="status"),
    industry: Optional[str] = Query(None),
    business_type: Optional[BusinessType] = Query(None),
):
    query = scope.apply(db.query(Franchise), Franchise)
    query = apply_filters(query, Franchise, {
        "status": franchise_status, "industry": industry, "business_type": business_type,
    })
    query = apply_search(query, params.search, [
        Franchise.business_name, Franchise.brand_name, Franchise.contact_email,
    ])
    query = apply_sort(query, Franchise, params.sort_by, params.sort_order, SORTABLE)
    items, total = paginate_query(query, params.page, params.per_page)
    return paginated_response(serialize_many(FranchiseResponse, items), total, params.page, params.per_page)


@router.get("/statistics")
@limiter.limit("60/minute")
def franchise_statistics(request: Request, scope: Tenant, db: DbSession):
    query = scope.apply(db.query(Franchise), Franchise)
    by_status = {s.value: 0 for s in FranchiseStatus}
    for franchise_status, count in (
        query.with_entities(Franchise.status, func.count(Franchise.id)).group_by(Franchise.status).all()
    ):
        by_status[franchise_status.value] = count
    total_units, active_units = query.with_entities(
        func.coalesce(func.sum(Franchise.total_units), 0),
        func.coalesce(func.sum(Franchise.active_units), 0),
    ).one()
    return success_response({
        "total": sum(by_status.values()),
        "byStatus": by_status,
        "totalUnits": int(total_units),
        "activeUnits": int(active_units),
    })


@router.post("/", status_code=status.HTTP_201_CREATED)
@limiter.limit("30/minute")
def create_franchise(request: Request, data: FranchiseCreate, db: DbSession, current_user: RequireAdmin):
    franchisor = db.query(User).filter(User.id == data.franchisor_id).first()
    if franchisor is None or franchisor.role != UserRole.FRANCHISOR:
        raise HTTPException(status_code=422, detail="franchisor_id must reference a franchisor user")
    if db.query(Franchise.id).filter(Franchise.franchisor_id == franchisor.id).first():
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="This franchisor already has a franchise")
    brn = data.business_registration_number
    if brn and db.query(Franchise.id).filter(Franchise.business_registration_number == brn).first():
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Business registration number already in use")
    try:
        payload = data.model_dump(exclude={"business_registration_number"})
        franchise = Franchise(**payload, business_registration_number=brn or generate_registration_number(db))
        db.add(franchise)
        db.commit()
        db.refresh(franchise)
        logger.info(f"Franchise {franchise.id} created for franchisor {franchisor.id}")
        return success_response(serialize(FranchiseResponse, franchise), "Franchise created successfully")
    except HTTPException:
        raise
    except Exception as e:
        db.rollback()
        logger.error(f"Failed to create franchise: {e}")
        raise HTTPException(status_code=500, detail="Failed to create franchise")


def _set_status(db, franchises, new_status: FranchiseStatus) -> int:
    for franchise in franchises:
        franchise.status = new_status
    db.commit()
    return len(franchises)


@router.post("/bulk-activate")
@limiter.limit("30/minute")
def bulk_activate(request: Request, data: IdList, db: DbSession, current_user: RequireAdmin):
    franchises = db.query(Franchise).filter(Franchise.id.in_(data.ids)).all()
    count = _set_status(db, franchises, FranchiseStatus.ACTIVE)
    return success_response({"updated": count}, f"{count} franchises activated")


@router.post("/bulk-deactivate")
@limiter.limit("30/minute")
def bulk_deactivate(request: Request, data: IdList, db: DbSession, current_user: RequireAdmin):
    franchises = db.query(Franchise).filter(Franchise.id.in_(data.ids)).all()
    count = _set_status(db, franchises, FranchiseStatus.INACTIVE)
    return success_response({"updated": count}, f"{count} franchises deactivated")


@router.get("/{franchise_id}")
@limiter.limit("60/minute")
def get_franchise(request: Request, franchise_id: int, scope: Tenant):
    franchise = scope.get_or_404(Franchise, franchise_id, "Franchise")
    return success_response(serialize(FranchiseResponse, franchise))


@router.put("/{franchise_id}")
@limiter.limit("30/minute")
def update_franchise(
    request: Request,
    franchise_id: int,
    data: FranchiseUpdate,
    scope: Tenant,
    db: DbSession,
    current_user: RequireFranchisorOrAdmin,
):
    franchise = scope.get_or_404(Franchise, franchise_id, "Franchise")
    changes = data.model_dump(exclude_unset=True)
    if "status" in changes and not scope.is_admin:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Only admins can change franchise status")
    try:
        for field, value in changes.items():
            setattr(franchise, field, value)
        db.commit()
        db.refresh(franchise)
        return success_response(serialize(FranchiseResponse, franchise), "Franchise updated successfully")
    except HTTPException:
        raise
    except Exception as e:
        db.rollback()
        logger.error(f"Failed to update franchise {franchise_id}: {e}")
        raise HTTPException(status_code=500, detail="Failed to update franchise")


@router.delete("/{franchise_id}")
@limiter.limit("30/minute")
def delete_franchise(request: Request, franchise_id: int, scope: Tenant, db: DbSession, current_user: RequireAdmin):
    franchise = scope.get_or_404(Franchise, franchise_id, "Franchise")
    try:
        db.delete(franchise)
        db.commit()
        logger.info(f"Franchise {franchise_id} deleted by admin {current_user.id}")
        return success_response(message="Franchise deleted successfully")
    except Exception as e:
        db.rollback()
        logger.error(f"Failed to delete franchise {franchise_id}: {e}")
        raise HTTPException(status_code=500, detail="Failed to delete franchise")


@router.patch("/{franchise_id}/activate")
@limiter.limit("30/minute")
def activate_franchise(request: Request, franchise_id: int, scope: Tenant, db: DbSession, current_user: RequireAdmin):
    franchise = scope.get_or_404(Franchise, franchise_id, "Franchise")
    _set_status(db, [franchise], FranchiseStatus.ACTIVE)
    db.refresh(franchise)
    return success_response(serialize(FranchiseResponse, franchise), "Franchise activated")


@router.patch("/{franchise_id}/deactivate")
@limiter.limit("30/minute")
def deactivate_franchise(request: Request, franchise_id: int, scope: Tenant, db: DbSession, current_user: RequireAdmin):
    franchise = scope.get_or_404(Franchise, franchise_id, "Franchise")
    _set_status(db, [franchise], FranchiseStatus.INACTIVE)
    db.refresh(franchise)
    return success_response(serialize(FranchiseResponse, franchise), "Franchise deactivated")
