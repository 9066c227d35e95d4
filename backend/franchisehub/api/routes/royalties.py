"""Royalty billing routes."""

import logging
from datetime import date
from typing import List, Literal, Optional

from fastapi import APIRouter, File, HTTPException, Query, Request, UploadFile, status
from sqlalchemy import func

from franchisehub.core.file_utils import save_uploads
from franchisehub.core.periods import ratio_percentage
from franchisehub.core.rate_limit import limiter
from franchisehub.core.rbac import RequireFranchisorOrAdmin, RequireManagement
from franchisehub.core.responses import paginated_response, serialize, serialize_many, success_response
from franchisehub.core.tenancy import Tenant
from franchisehub.db.session import DbSession
from franchisehub.models import Franchise, Royalty, RoyaltyStatus, RoyaltyType
from franchisehub.schemas.finance import (
    BulkMarkPaid, GenerateMonthly, MarkPaid, RoyaltyAdjustment, RoyaltyCreate, RoyaltyResponse,
    RoyaltyUpdate,
)
from franchisehub.schemas.pagination import (
    ListParams, apply_filters, apply_search, apply_sort, paginate_query,
)
from franchisehub.services.royalty_service import RoyaltyService
from franchisehub.services.tabular import (
    XLSX_MEDIA_TYPE, create_csv_export, create_excel_export, download_response,
)
from franchisehub.api.routes.transactions import resolve_ledger_owner

logger = logging.getLogger(__name__)

router = APIRouter()

SORTABLE = (
    "royalty_number", "period_year", "period_month", "total_amount", "due_date", "paid_date",
    "status", "created_at",
)
EXPORT_HEADER = [
    "Royalty Number", "Unit", "Period", "Gross Revenue", "Royalty", "Marketing Fee",
    "Technology Fee", "Adjustments", "Late Fee", "Total", "Due Date", "Paid Date", "Status",
]
AMOUNT_FIELDS = ("gross_revenue", "royalty_percentage", "marketing_fee_percentage", "technology_fee_amount", "other_fees")


@router.get("/")
@limiter.limit("60/minute")
def list_royalties(
    request: Request,
    scope: Tenant,
    params: ListParams,
    db: DbSession,
    current_user: RequireManagement,
    royalty_status: Optional[RoyaltyStatus] = Query(None, alias="status"),
    type: Optional[RoyaltyType] = Query(None),
    unit_id: Optional[int] = Query(None),
    period_year: Optional[int] = Query(None),
    period_month: Optional[int] = Query(None, ge=1, le=12),
):
    query = scope.apply(db.query(Royalty), Royalty)
    query = apply_filters(query, Royalty, {
        "status": royalty_status, "type": type, "unit_id": unit_id,
        "period_year": period_year, "period_month": period_month,
    })
    query = apply_search(query, params.search, [Royalty.royalty_number, Royalty.notes])
    query = apply_sort(query, Royalty, params.sort_by, params.sort_order, SORTABLE)
    items, total = paginate_query(query, params.page, params.per_page)
    return paginated_response(serialize_many(RoyaltyResponse, items), total, params.page, params.per_page)


@router.get("/statistics")
@limiter.limit("60/minute")
def royalty_statistics(request: Request, scope: Tenant, db: DbSession, current_user: RequireManagement):
    query = scope.apply(db.query(Royalty), Royalty)
    by_status = {s.value: {"count": 0, "amount": 0.0} for s in RoyaltyStatus}
    for royalty_status, count, amount in (
        query.with_entities(Royalty.status, func.count(Royalty.id), func.sum(Royalty.total_amount))
        .group_by(Royalty.status)
        .all()
    ):
        by_status[royalty_status.value] = {"count": count, "amount": round(float(amount or 0), 2)}
    billed = sum(v["amount"] for k, v in by_status.items() if k != RoyaltyStatus.CANCELLED.value)
    collected = by_status[RoyaltyStatus.PAID.value]["amount"]
    overdue_amount = (
        query.filter(
            (Royalty.status == RoyaltyStatus.OVERDUE)
            | ((Royalty.status == RoyaltyStatus.PENDING) & (Royalty.due_date < date.today()))
        )
        .with_entities(func.coalesce(func.sum(Royalty.total_amount), 0))
        .scalar()
    )
    return success_response({
        "total": sum(v["count"] for v in by_status.values()),
        "byStatus": by_status,
        "totalBilled": round(billed, 2),
        "totalCollected": collected,
        "totalOutstanding": round(
            by_status[RoyaltyStatus.PENDING.value]["amount"] + by_status[RoyaltyStatus.OVERDUE.value]["amount"], 2
        ),
        "overdueAmount": round(float(overdue_amount), 2),
        "collectionRate": ratio_percentage(collected, billed),
    })


@router.get("/pending")
@limiter.limit("60/minute")
def pending_royalties(request: Request, scope: Tenant, params: ListParams, db: DbSession, current_user: RequireManagement):
    query = scope.apply(db.query(Royalty), Royalty).filter(Royalty.status == RoyaltyStatus.PENDING)
    query = query.order_by(Royalty.due_date.asc(), Royalty.id)
    items, total = paginate_query(query, params.page, params.per_page)
    return paginated_response(serialize_many(RoyaltyResponse, items), total, params.page, params.per_page)


@router.get("/overdue")
@limiter.limit("60/minute")
def overdue_royalties(request: Request, scope: Tenant, params: ListParams, db: DbSession, current_user: RequireManagement):
    base = scope.apply(db.query(Royalty), Royalty)
    if RoyaltyService.refresh_overdue(db, base):
        db.commit()
    query = base.filter(Royalty.status == RoyaltyStatus.OVERDUE).order_by(Royalty.due_date.asc(), Royalty.id)
    items, total = paginate_query(query, params.page, params.per_page)
    return paginated_response(serialize_many(RoyaltyResponse, items), total, params.page, params.per_page)


@router.get("/export")
@limiter.limit("10/minute")
def export_royalties(
    request: Request,
    scope: Tenant,
    db: DbSession,
    current_user: RequireManagement,
    format: Literal["csv", "xlsx"] = Query("csv"),
    royalty_status: Optional[RoyaltyStatus] = Query(None, alias="status"),
    period_year: Optional[int] = Query(None),
):
    query = scope.apply(db.query(Royalty), Royalty)
    query = apply_filters(query, Royalty, {"status": royalty_status, "period_year": period_year})
    royalties = query.order_by(Royalty.period_year.desc(), Royalty.period_month.desc(), Royalty.id).all()
    rows = [
        [
            r.royalty_number,
            r.unit.unit_name if r.unit else "",
            f"{r.period_year}-{r.period_month:02d}",
            float(r.gross_revenue),
            float(r.royalty_amount),
            float(r.marketing_fee_amount),
            float(r.technology_fee_amount),
            float(r.adjustments),
            float(r.late_fee),
            float(r.total_amount),
            r.due_date,
            r.paid_date,
            r.status.value,
        ]
        for r in royalties
    ]
    stamp = date.today().strftime("%Y%m%d")
    if format == "xlsx":
        return download_response(
            create_excel_export(rows, EXPORT_HEADER, "Royalties"), f"royalties_{stamp}.xlsx", XLSX_MEDIA_TYPE
        )
    return download_response(create_csv_export(rows, EXPORT_HEADER), f"royalties_{stamp}.csv")


@router.post("/generate-monthly")
@limiter.limit("10/minute")
def generate_monthly(
    request: Request,
    data: GenerateMonthly,
    scope: Tenant,
    db: DbSession,
    current_user: RequireFranchisorOrAdmin,
):
    """Bill every active unit without a royalty for the period."""
    if scope.is_admin:
        query = db.query(Franchise)
        if data.franchise_id is not None:
            query = query.filter(Franchise.id == data.franchise_id)
        franchises = query.all()
    else:
        franchises = [scope.require_franchise()]
    try:
        created = RoyaltyService.generate_monthly(db, franchises, data.year, data.month)
        db.commit()
    except Exception as e:
        db.rollback()
        logger.error(f"Monthly royalty generation failed for {data.year}-{data.month:02d}: {e}")
        raise HTTPException(status_code=500, detail="Failed to generate royalties")
    for royalty in created:
        db.refresh(royalty)
    return success_response(
        {"generated": len(created), "royalties": serialize_many(RoyaltyResponse, created)},
        f"{len(created)} royalties generated",
    )


@router.post("/bulk-mark-paid")
@limiter.limit("30/minute")
def bulk_mark_paid(
    request: Request,
    data: BulkMarkPaid,
    scope: Tenant,
    db: DbSession,
    current_user: RequireFranchisorOrAdmin,
):
    royalties = scope.apply(db.query(Royalty), Royalty).filter(Royalty.id.in_(data.royalty_ids)).all()
    paid = 0
    for royalty in royalties:
        if royalty.status in (RoyaltyStatus.PAID, RoyaltyStatus.CANCELLED):
            continue
        RoyaltyService.mark_paid(royalty, data.payment_method, data.payment_reference)
        paid += 1
    db.commit()
    return success_response({"updated": paid}, f"{paid} royalties marked as paid")


@router.post("/", status_code=status.HTTP_201_CREATED)
@limiter.limit("30/minute")
def create_royalty(
    request: Request,
    data: RoyaltyCreate,
    scope: Tenant,
    db: DbSession,
    current_user: RequireFranchisorOrAdmin,
):
    franchise_id, unit_id = resolve_ledger_owner(scope, data.unit_id, data.franchise_id)
    franchise = scope.get_or_404(Franchise, franchise_id, "Franchise")
    unit = next((u for u in franchise.units if u.id == unit_id), None)
    try:
        royalty = RoyaltyService.build(
            db,
            franchise,
            data.period_year,
            data.period_month,
            data.gross_revenue,
            unit=unit,
            royalty_type=data.type,
            royalty_percentage=data.royalty_percentage,
            marketing_fee_percentage=data.marketing_fee_percentage,
            technology_fee_amount=data.technology_fee_amount,
            other_fees=data.other_fees,
            due_date=data.due_date,
            status=data.status,
            notes=data.notes,
        )
        db.commit()
        db.refresh(royalty)
        logger.info(f"Royalty {royalty.royalty_number} created for franchise {franchise.id}")
        return success_response(serialize(RoyaltyResponse, royalty), "Royalty created successfully")
    except Exception as e:
        db.rollback()
        logger.error(f"Failed to create royalty: {e}")
        raise HTTPException(status_code=500, detail="Failed to create royalty")


@router.get("/{royalty_id}")
@limiter.limit("60/minute")
def get_royalty(request: Request, royalty_id: int, scope: Tenant, current_user: RequireManagement):
    return success_response(serialize(RoyaltyResponse, scope.get_or_404(Royalty, royalty_id, "Royalty")))


@router.put("/{royalty_id}")
@limiter.limit("30/minute")
def update_royalty(
    request: Request,
    royalty_id: int,
    data: RoyaltyUpdate,
    scope: Tenant,
    db: DbSession,
    current_user: RequireFranchisorOrAdmin,
):
    royalty = scope.get_or_404(Royalty, royalty_id, "Royalty")
    changes = data.model_dump(exclude_unset=True)
    if royalty.status == RoyaltyStatus.PAID and set(changes) & set(AMOUNT_FIELDS):
        raise HTTPException(status_code=422, detail="Amounts of a paid royalty cannot be changed")
    try:
        for field, value in changes.items():
            setattr(royalty, field, value)
        if set(changes) & set(AMOUNT_FIELDS):
            RoyaltyService.calculate_amounts(royalty)
        db.commit()
        db.refresh(royalty)
        return success_response(serialize(RoyaltyResponse, royalty), "Royalty updated successfully")
    except Exception as e:
        db.rollback()
        logger.error(f"Failed to update royalty {royalty_id}: {e}")
        raise HTTPException(status_code=500, detail="Failed to update royalty")


@router.delete("/{royalty_id}")
@limiter.limit("30/minute")
def delete_royalty(request: Request, royalty_id: int, scope: Tenant, db: DbSession, current_user: RequireFranchisorOrAdmin):
    royalty = scope.get_or_404(Royalty, royalty_id, "Royalty")
    if royalty.status == RoyaltyStatus.PAID:
        raise HTTPException(status_code=422, detail="Paid royalties cannot be deleted")
    db.delete(royalty)
    db.commit()
    return success_response(message="Royalty deleted successfully")


@router.patch("/{royalty_id}/mark-paid")
@limiter.limit("30/minute")
def mark_paid(
    request: Request,
    royalty_id: int,
    data: MarkPaid,
    scope: Tenant,
    db: DbSession,
    current_user: RequireManagement,
):
    royalty = scope.get_or_404(Royalty, royalty_id, "Royalty")
    try:
        RoyaltyService.mark_paid(royalty, data.payment_method, data.payment_reference, data.paid_date)
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e))
    db.commit()
    db.refresh(royalty)
    logger.info(f"Royalty {royalty.royalty_number} marked paid by user {current_user.id}")
    return success_response(serialize(RoyaltyResponse, royalty), "Royalty marked as paid")


@router.post("/{royalty_id}/late-fee")
@limiter.limit("30/minute")
def apply_late_fee(
    request: Request,
    royalty_id: int,
    scope: Tenant,
    db: DbSession,
    current_user: RequireFranchisorOrAdmin,
):
    royalty = scope.get_or_404(Royalty, royalty_id, "Royalty")
    try:
        RoyaltyService.apply_late_fee(royalty)
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e))
    db.commit()
    db.refresh(royalty)
    return success_response(serialize(RoyaltyResponse, royalty), "Late fee applied")


@router.post("/{royalty_id}/adjustments")
@limiter.limit("30/minute")
def apply_adjustment(
    request: Request,
    royalty_id: int,
    data: RoyaltyAdjustment,
    scope: Tenant,
    db: DbSession,
    current_user: RequireFranchisorOrAdmin,
):
    royalty = scope.get_or_404(Royalty, royalty_id, "Royalty")
    try:
        RoyaltyService.apply_adjustment(royalty, data.amount, data.reason)
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e))
    db.commit()
    db.refresh(royalty)
    return success_response(serialize(RoyaltyResponse, royalty), "Adjustment applied")


@router.post("/{royalty_id}/attachments")
@limiter.limit("30/minute")
def upload_royalty_attachments(
    request: Request,
    royalty_id: int,
    scope: Tenant,
    db: DbSession,
    current_user: RequireManagement,
    files: List[UploadFile] = File(...),
):
    royalty = scope.get_or_404(Royalty, royalty_id, "Royalty")
    try:
        stored = save_uploads(files, f"royalties/{royalty.id}")
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e))
    royalty.attachments = list(royalty.attachments or []) + stored
    db.commit()
    db.refresh(royalty)
    return success_response(serialize(RoyaltyResponse, royalty), f"{len(stored)} attachments uploaded")
