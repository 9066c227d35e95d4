"""Revenue routes."""

import logging
from datetime import date
from typing import List, Optional

from fastapi import APIRouter, File, HTTPException, Query, Request, UploadFile, status
from sqlalchemy import func

from franchisehub.core.file_utils import save_uploads
from franchisehub.core.periods import (
    PeriodType, bucket_totals, month_bounds, percentage_change, period_range, previous_month,
)
from franchisehub.core.rate_limit import limiter
from franchisehub.core.rbac import RequireFranchisorOrAdmin, RequireManagement
from franchisehub.core.responses import paginated_response, serialize, serialize_many, success_response
from franchisehub.core.tenancy import Tenant
from franchisehub.db.session import DbSession
from franchisehub.models import (
    PaymentStatus, Revenue, RevenueCategory, RevenueStatus, RevenueType, Unit,
)
from franchisehub.schemas.finance import (
    LineItemsAdd, RefundRequest, RevenueCreate, RevenueDispute, RevenueResponse, RevenueUpdate,
)
from franchisehub.schemas.franchise import IdList
from franchisehub.schemas.pagination import (
    ListParams, apply_filters, apply_search, apply_sort, paginate_query,
)
from franchisehub.services.finance_service import RevenueService
from franchisehub.api.routes.transactions import resolve_ledger_owner

logger = logging.getLogger(__name__)

router = APIRouter()

SORTABLE = (
    "revenue_number", "type", "category", "amount", "net_amount", "status", "payment_status",
    "revenue_date", "created_at",
)
AMOUNT_FIELDS = ("amount", "discount_amount", "tax_amount", "revenue_date")


def _verified(query):
    return query.filter(Revenue.status == RevenueStatus.VERIFIED)


def _net_total(query) -> float:
    return round(float(query.with_entities(func.coalesce(func.sum(Revenue.net_amount), 0)).scalar() or 0), 2)


@router.get("/")
@limiter.limit("60/minute")
def list_revenues(
    request: Request,
    scope: Tenant,
    params: ListParams,
    db: DbSession,
    current_user: RequireManagement,
    type: Optional[RevenueType] = Query(None),
    category: Optional[RevenueCategory] = Query(None),
    revenue_status: Optional[RevenueStatus] = Query(None, alias="status"),
    payment_status: Optional[PaymentStatus] = Query(None),
    unit_id: Optional[int] = Query(None),
    period_year: Optional[int] = Query(None),
    period_month: Optional[int] = Query(None, ge=1, le=12),
    date_from: Optional[date] = Query(None),
    date_to: Optional[date] = Query(None),
):
    query = scope.apply(db.query(Revenue), Revenue)
    query = apply_filters(query, Revenue, {
        "type": type, "category": category, "status": revenue_status,
        "payment_status": payment_status, "unit_id": unit_id,
        "period_year": period_year, "period_month": period_month,
    })
    if date_from:
        query = query.filter(Revenue.revenue_date >= date_from)
    if date_to:
        query = query.filter(Revenue.revenue_date <= date_to)
    query = apply_search(query, params.search, [
        Revenue.revenue_number, Revenue.description, Revenue.customer_name, Revenue.source,
    ])
    query = apply_sort(query, Revenue, params.sort_by, params.sort_order, SORTABLE)
    items, total = paginate_query(query, params.page, params.per_page)
    return paginated_response(serialize_many(RevenueResponse, items), total, params.page, params.per_page)


@router.get("/statistics")
@limiter.limit("60/minute")
def revenue_statistics(request: Request, scope: Tenant, db: DbSession, current_user: RequireManagement):
    query = scope.apply(db.query(Revenue), Revenue)
    verified = _verified(query)

    today = date.today()
    current = month_bounds(today.year, today.month)
    previous = month_bounds(*previous_month(today))
    current_total = _net_total(verified.filter(Revenue.revenue_date.between(current.start, current.end)))
    previous_total = _net_total(verified.filter(Revenue.revenue_date.between(previous.start, previous.end)))

    by_status = {s.value: 0 for s in RevenueStatus}
    for revenue_status, count in query.with_entities(Revenue.status, func.count(Revenue.id)).group_by(Revenue.status).all():
        by_status[revenue_status.value] = count

    total_count = sum(by_status.values())
    total_net = _net_total(verified)
    return success_response({
        "total": total_count,
        "byStatus": by_status,
        "totalRevenue": total_net,
        "averageRevenue": round(total_net / by_status[RevenueStatus.VERIFIED.value], 2)
        if by_status[RevenueStatus.VERIFIED.value] else 0.0,
        "currentMonthRevenue": current_total,
        "previousMonthRevenue": previous_total,
        "revenueChange": percentage_change(current_total, previous_total),
    })


@router.get("/breakdown")
@limiter.limit("60/minute")
def revenue_breakdown(
    request: Request,
    scope: Tenant,
    db: DbSession,
    current_user: RequireManagement,
    date_from: Optional[date] = Query(None),
    date_to: Optional[date] = Query(None),
):
    """Verified net revenue grouped by type, category and unit."""
    query = _verified(scope.apply(db.query(Revenue), Revenue))
    if date_from:
        query = query.filter(Revenue.revenue_date >= date_from)
    if date_to:
        query = query.filter(Revenue.revenue_date <= date_to)

    def grouped(column):
        return query.with_entities(column, func.count(Revenue.id), func.sum(Revenue.net_amount)).group_by(column).all()

    by_type = [
        {"type": t.value, "count": c, "amount": round(float(a or 0), 2)} for t, c, a in grouped(Revenue.type)
    ]
    by_category = [
        {"category": cat.value, "count": c, "amount": round(float(a or 0), 2)} for cat, c, a in grouped(Revenue.category)
    ]
    unit_names = dict(db.query(Unit.id, Unit.unit_name).all())
    by_unit = [
        {"unit_id": u, "unit_name": unit_names.get(u), "count": c, "amount": round(float(a or 0), 2)}
        for u, c, a in grouped(Revenue.unit_id)
    ]
    for rows in (by_type, by_category, by_unit):
        rows.sort(key=lambda r: r["amount"], reverse=True)
    return success_response({"byType": by_type, "byCategory": by_category, "byUnit": by_unit})


@router.get("/total-by-period")
@limiter.limit("60/minute")
def total_by_period(
    request: Request,
    scope: Tenant,
    db: DbSession,
    current_user: RequireManagement,
    period: PeriodType = Query(PeriodType.MONTHLY),
    year: Optional[int] = Query(None, ge=2000, le=2100),
    month: Optional[int] = Query(None, ge=1, le=12),
    unit_id: Optional[int] = Query(None),
):
    today = date.today()
    date_range = period_range(period, year or today.year, month or today.month)
    query = _verified(scope.apply(db.query(Revenue), Revenue))
    if unit_id is not None:
        query = query.filter(Revenue.unit_id == unit_id)
    rows = (
        query.filter(Revenue.revenue_date.between(date_range.start, date_range.end))
        .with_entities(Revenue.revenue_date, Revenue.net_amount)
        .all()
    )
    totals = bucket_totals(rows, period, date_range)
    return success_response({
        "period": period.value,
        "start": date_range.start.isoformat(),
        "end": date_range.end.isoformat(),
        "totals": [{"period": key, "amount": amount} for key, amount in totals.items()],
        "grandTotal": round(sum(totals.values()), 2),
    })


@router.post("/bulk-verify")
@limiter.limit("30/minute")
def bulk_verify(request: Request, data: IdList, scope: Tenant, db: DbSession, current_user: RequireFranchisorOrAdmin):
    revenues = scope.apply(db.query(Revenue), Revenue).filter(Revenue.id.in_(data.ids)).all()
    verified = 0
    for revenue in revenues:
        if revenue.status == RevenueStatus.VERIFIED:
            continue
        RevenueService.verify(revenue, current_user)
        verified += 1
    db.commit()
    return success_response({"updated": verified}, f"{verified} revenues verified")


@router.post("/", status_code=status.HTTP_201_CREATED)
@limiter.limit("30/minute")
def create_revenue(
    request: Request,
    data: RevenueCreate,
    scope: Tenant,
    db: DbSession,
    current_user: RequireManagement,
):
    franchise_id, unit_id = resolve_ledger_owner(scope, data.unit_id, data.franchise_id)
    payload = data.model_dump(exclude={"unit_id", "franchise_id"})
    if scope.is_franchisee and data.status == RevenueStatus.VERIFIED:
        payload["status"] = RevenueStatus.PENDING
    try:
        revenue = RevenueService.create(db, current_user, franchise_id, {**payload, "unit_id": unit_id})
        db.commit()
        db.refresh(revenue)
        logger.info(f"Revenue {revenue.revenue_number} created by user {current_user.id}")
        return success_response(serialize(RevenueResponse, revenue), "Revenue created successfully")
    except Exception as e:
        db.rollback()
        logger.error(f"Failed to create revenue: {e}")
        raise HTTPException(status_code=500, detail="Failed to create revenue")


@router.get("/{revenue_id}")
@limiter.limit("60/minute")
def get_revenue(request: Request, revenue_id: int, scope: Tenant, current_user: RequireManagement):
    return success_response(serialize(RevenueResponse, scope.get_or_404(Revenue, revenue_id, "Revenue")))


@router.put("/{revenue_id}")
@limiter.limit("30/minute")
def update_revenue(
    request: Request,
    revenue_id: int,
    data: RevenueUpdate,
    scope: Tenant,
    db: DbSession,
    current_user: RequireManagement,
):
    revenue = scope.get_or_404(Revenue, revenue_id, "Revenue")
    changes = data.model_dump(exclude_unset=True)
    if changes.get("unit_id") is not None:
        unit = scope.get_or_404(Unit, changes["unit_id"], "Unit")
        if unit.franchise_id != revenue.franchise_id:
            raise HTTPException(status_code=422, detail="Unit does not belong to this franchise")
    try:
        for field, value in changes.items():
            setattr(revenue, field, value)
        if set(changes) & set(AMOUNT_FIELDS):
            RevenueService.apply_amounts(revenue)
        db.commit()
        db.refresh(revenue)
        return success_response(serialize(RevenueResponse, revenue), "Revenue updated successfully")
    except Exception as e:
        db.rollback()
        logger.error(f"Failed to update revenue {revenue_id}: {e}")
        raise HTTPException(status_code=500, detail="Failed to update revenue")


@router.delete("/{revenue_id}")
@limiter.limit("30/minute")
def delete_revenue(request: Request, revenue_id: int, scope: Tenant, db: DbSession, current_user: RequireFranchisorOrAdmin):
    revenue = scope.get_or_404(Revenue, revenue_id, "Revenue")
    db.delete(revenue)
    db.commit()
    return success_response(message="Revenue deleted successfully")


@router.patch("/{revenue_id}/verify")
@limiter.limit("30/minute")
def verify_revenue(
    request: Request,
    revenue_id: int,
    scope: Tenant,
    db: DbSession,
    current_user: RequireFranchisorOrAdmin,
):
    revenue = scope.get_or_404(Revenue, revenue_id, "Revenue")
    try:
        RevenueService.verify(revenue, current_user)
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e))
    db.commit()
    db.refresh(revenue)
    return success_response(serialize(RevenueResponse, revenue), "Revenue verified")


@router.post("/{revenue_id}/dispute")
@limiter.limit("30/minute")
def dispute_revenue(
    request: Request,
    revenue_id: int,
    data: RevenueDispute,
    scope: Tenant,
    db: DbSession,
    current_user: RequireManagement,
):
    revenue = scope.get_or_404(Revenue, revenue_id, "Revenue")
    RevenueService.dispute(revenue, data.reason)
    db.commit()
    db.refresh(revenue)
    return success_response(serialize(RevenueResponse, revenue), "Revenue disputed")


@router.post("/{revenue_id}/refund")
@limiter.limit("30/minute")
def refund_revenue(
    request: Request,
    revenue_id: int,
    data: RefundRequest,
    scope: Tenant,
    db: DbSession,
    current_user: RequireFranchisorOrAdmin,
):
    revenue = scope.get_or_404(Revenue, revenue_id, "Revenue")
    try:
        refund = RevenueService.refund(db, revenue, current_user, data.amount, data.reason)
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e))
    db.commit()
    db.refresh(revenue)
    db.refresh(refund)
    return success_response(
        {"revenue": serialize(RevenueResponse, revenue), "refund": serialize(RevenueResponse, refund)},
        "Revenue refunded",
    )


@router.post("/{revenue_id}/line-items")
@limiter.limit("30/minute")
def add_line_items(
    request: Request,
    revenue_id: int,
    data: LineItemsAdd,
    scope: Tenant,
    db: DbSession,
    current_user: RequireManagement,
):
    revenue = scope.get_or_404(Revenue, revenue_id, "Revenue")
    RevenueService.add_line_items(
        revenue, [item.model_dump() for item in data.line_items], data.recalculate_amount
    )
    db.commit()
    db.refresh(revenue)
    return success_response(serialize(RevenueResponse, revenue), "Line items added")


@router.post("/{revenue_id}/attachments")
@limiter.limit("30/minute")
def upload_revenue_attachments(
    request: Request,
    revenue_id: int,
    scope: Tenant,
    db: DbSession,
    current_user: RequireManagement,
    files: List[UploadFile] = File(...),
):
    revenue = scope.get_or_404(Revenue, revenue_id, "Revenue")
    try:
        stored = save_uploads(files, f"revenues/{revenue.id}")
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e))
    revenue.attachments = list(revenue.attachments or []) + stored
    db.commit()
    db.refresh(revenue)
    return success_response(serialize(RevenueResponse, revenue), f"{len(stored)} attachments uploaded")
