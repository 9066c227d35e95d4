"""Lead routes: franchisors work their franchise's leads, brokers their assigned ones."""

import logging
from datetime import date
from typing import Annotated, Optional

from fastapi import APIRouter, Depends, File, HTTPException, Query, Request, UploadFile, status
from sqlalchemy import func

from franchisehub.core.config import settings
from franchisehub.core.file_utils import ALLOWED_IMPORT_EXTENSIONS, read_limited, validate_file_extension
from franchisehub.core.periods import month_bounds, percentage_change, previous_month, ratio_percentage
from franchisehub.core.rate_limit import limiter
from franchisehub.core.rbac import SALES_ROLES, require_roles
from franchisehub.core.responses import paginated_response, serialize, serialize_many, success_response
from franchisehub.core.tenancy import Tenant
from franchisehub.db.session import DbSession
from franchisehub.models import Lead, LeadSource, LeadStatus, Priority, User, UserRole
from franchisehub.schemas.franchise import IdList
from franchisehub.schemas.lead import (
    LeadAssign, LeadBulkAssign, LeadCommunication, LeadCreate, LeadLost, LeadResponse, LeadUpdate,
    NoteResponse,
)
from franchisehub.schemas.pagination import (
    ListParams, apply_filters, apply_search, apply_sort, paginate_query,
)
from franchisehub.services.lead_service import EXPORT_COLUMNS, IMPORT_COLUMNS, LeadService
from franchisehub.services.tabular import create_csv_export, download_response, read_table, require_columns

logger = logging.getLogger(__name__)

router = APIRouter()

RequireLeadAccess = Annotated[
    User, Depends(require_roles(UserRole.ADMIN, UserRole.FRANCHISOR, *SALES_ROLES))
]

SORTABLE = (
    "first_name", "last_name", "email", "company_name", "status", "priority", "lead_source",
    "next_follow_up_date", "created_at",
)


def _email_taken(db, email: str, exclude_id: Optional[int] = None) -> bool:
    query = db.query(Lead.id).filter(Lead.email == email.lower())
    if exclude_id is not None:
        query = query.filter(Lead.id != exclude_id)
    return query.first() is not None


def _duplicate_email():
    return HTTPException(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        detail={
            "message": "Validation failed",
            "errors": {"email": ["A lead with this email already exists."]},
        },
    )


@router.get("/")
@limiter.limit("60/minute")
def list_leads(
    request: Request,
    scope: Tenant,
    params: ListParams,
    db: DbSession,
    current_user: RequireLeadAccess,
    lead_status: Optional[LeadStatus] = Query(None, alias="status"),
    lead_source: Optional[LeadSource] = Query(None),
    priority: Optional[Priority] = Query(None),
    assigned_to: Optional[int] = Query(None),
):
    query = scope.apply(db.query(Lead), Lead)
    query = apply_filters(query, Lead, {
        "status": lead_status, "lead_source": lead_source, "priority": priority, "assigned_to": assigned_to,
    })
    query = apply_search(query, params.search, [
        Lead.first_name, Lead.last_name, Lead.email, Lead.phone, Lead.company_name,
    ])
    query = apply_sort(query, Lead, params.sort_by, params.sort_order, SORTABLE)
    items, total = paginate_query(query, params.page, params.per_page)
    return paginated_response(serialize_many(LeadResponse, items), total, params.page, params.per_page)


@router.get("/statistics")
@limiter.limit("60/minute")
def lead_statistics(request: Request, scope: Tenant, db: DbSession, current_user: RequireLeadAccess):
    query = scope.apply(db.query(Lead), Lead)
    by_status = {s.value: 0 for s in LeadStatus}
    for lead_status, count in query.with_entities(Lead.status, func.count(Lead.id)).group_by(Lead.status).all():
        by_status[lead_status.value] = count
    total = sum(by_status.values())

    today = date.today()
    current = month_bounds(today.year, today.month)
    previous = month_bounds(*previous_month(today))
    this_month = query.filter(Lead.created_at.between(current.start_datetime, current.end_datetime)).count()
    last_month = query.filter(Lead.created_at.between(previous.start_datetime, previous.end_datetime)).count()
    return success_response({
        "total": total,
        "byStatus": by_status,
        "conversionRate": ratio_percentage(by_status[LeadStatus.CLOSED_WON.value], total),
        "thisMonth": this_month,
        "lastMonth": last_month,
        "change": percentage_change(this_month, last_month),
    })


@router.get("/export")
@limiter.limit("10/minute")
def export_leads(request: Request, scope: Tenant, db: DbSession, current_user: RequireLeadAccess):
    leads = scope.apply(db.query(Lead), Lead).order_by(Lead.created_at.desc(), Lead.id.desc()).all()
    output = create_csv_export(LeadService.export_rows(leads), EXPORT_COLUMNS)
    return download_response(output, f"leads_{date.today().strftime('%Y%m%d')}.csv")


@router.post("/import")
@limiter.limit("10/minute")
def import_leads(
    request: Request,
    scope: Tenant,
    db: DbSession,
    current_user: RequireLeadAccess,
    file: UploadFile = File(...),
):
    """Import leads from a CSV or XLSX file with a header row.

    Expected columns: first_name, last_name, email, phone, city, lead_source.
    Rows that fail validation are reported and skipped.
    """
    try:
        extension = validate_file_extension(file.filename or "", ALLOWED_IMPORT_EXTENSIONS)
        header, rows = read_table(read_limited(file.file, settings.max_upload_size_bytes), extension)
        require_columns(header, IMPORT_COLUMNS)
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e))

    try:
        result = LeadService.import_rows(db, rows, scope.resolve_franchise_id())
        db.commit()
    except Exception as e:
        db.rollback()
        logger.error(f"Lead import failed: {e}")
        raise HTTPException(status_code=500, detail="Failed to import leads")
    return success_response(result, f"Successfully imported {result['imported']} leads")


@router.post("/bulk-assign")
@limiter.limit("30/minute")
def bulk_assign(request: Request, data: LeadBulkAssign, scope: Tenant, db: DbSession, current_user: RequireLeadAccess):
    leads = scope.apply(db.query(Lead), Lead).filter(Lead.id.in_(data.lead_ids)).all()
    try:
        for lead in leads:
            assignee = LeadService.resolve_assignee(db, lead.franchise_id, data.assigned_to)
            LeadService.assign(db, lead, assignee)
    except ValueError as e:
        db.rollback()
        raise HTTPException(status_code=422, detail=str(e))
    db.commit()
    return success_response({"updated": len(leads)}, f"{len(leads)} leads assigned")


@router.post("/bulk-convert")
@limiter.limit("30/minute")
def bulk_convert(request: Request, data: IdList, scope: Tenant, db: DbSession, current_user: RequireLeadAccess):
    leads = scope.apply(db.query(Lead), Lead).filter(Lead.id.in_(data.ids)).all()
    converted = 0
    for lead in leads:
        if lead.status != LeadStatus.CLOSED_WON:
            LeadService.convert(lead)
            converted += 1
    db.commit()
    return success_response({"updated": converted}, f"{converted} leads converted")


@router.post("/", status_code=status.HTTP_201_CREATED)
@limiter.limit("30/minute")
def create_lead(request: Request, data: LeadCreate, scope: Tenant, db: DbSession, current_user: RequireLeadAccess):
    if _email_taken(db, data.email):
        raise _duplicate_email()
    franchise_id = scope.resolve_franchise_id(data.franchise_id)
    try:
        assignee = None
        if scope.is_sales:
            assignee = current_user
        elif data.assigned_to is not None:
            assignee = LeadService.resolve_assignee(db, franchise_id, data.assigned_to)
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e))

    try:
        payload = data.model_dump(exclude={"franchise_id", "assigned_to", "email"})
        lead = Lead(**payload, email=data.email.lower(), franchise_id=franchise_id)
        db.add(lead)
        db.flush()
        if assignee is not None:
            LeadService.assign(db, lead, assignee)
        db.commit()
        db.refresh(lead)
        logger.info(f"Lead {lead.id} created by user {current_user.id}")
        return success_response(serialize(LeadResponse, lead), "Lead created successfully")
    except HTTPException:
        raise
    except Exception as e:
        db.rollback()
        logger.error(f"Failed to create lead: {e}")
        raise HTTPException(status_code=500, detail="Failed to create lead")


@router.get("/{lead_id}")
@limiter.limit("60/minute")
def get_lead(request: Request, lead_id: int, scope: Tenant, current_user: RequireLeadAccess):
    return success_response(serialize(LeadResponse, scope.get_or_404(Lead, lead_id, "Lead")))


@router.put("/{lead_id}")
@limiter.limit("30/minute")
def update_lead(
    request: Request,
    lead_id: int,
    data: LeadUpdate,
    scope: Tenant,
    db: DbSession,
    current_user: RequireLeadAccess,
):
    lead = scope.get_or_404(Lead, lead_id, "Lead")
    changes = data.model_dump(exclude_unset=True)
    if changes.get("email"):
        changes["email"] = changes["email"].lower()
        if _email_taken(db, changes["email"], exclude_id=lead.id):
            raise _duplicate_email()
    try:
        for field, value in changes.items():
            setattr(lead, field, value)
        db.commit()
        db.refresh(lead)
        return success_response(serialize(LeadResponse, lead), "Lead updated successfully")
    except Exception as e:
        db.rollback()
        logger.error(f"Failed to update lead {lead_id}: {e}")
        raise HTTPException(status_code=500, detail="Failed to update lead")


@router.delete("/{lead_id}")
@limiter.limit("30/minute")
def delete_lead(request: Request, lead_id: int, scope: Tenant, db: DbSession, current_user: RequireLeadAccess):
    lead = scope.get_or_404(Lead, lead_id, "Lead")
    if scope.is_sales:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Sales associates cannot delete leads")
    db.delete(lead)
    db.commit()
    logger.info(f"Lead {lead_id} deleted by user {current_user.id}")
    return success_response(message="Lead deleted successfully")


@router.patch("/{lead_id}/convert")
@limiter.limit("30/minute")
def convert_lead(request: Request, lead_id: int, scope: Tenant, db: DbSession, current_user: RequireLeadAccess):
    lead = scope.get_or_404(Lead, lead_id, "Lead")
    try:
        LeadService.convert(lead)
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e))
    db.commit()
    db.refresh(lead)
    logger.info(f"Lead {lead_id} converted by user {current_user.id}")
    return success_response(serialize(LeadResponse, lead), "Lead converted successfully")


@router.patch("/{lead_id}/mark-lost")
@limiter.limit("30/minute")
def mark_lead_lost(
    request: Request,
    lead_id: int,
    data: LeadLost,
    scope: Tenant,
    db: DbSession,
    current_user: RequireLeadAccess,
):
    lead = scope.get_or_404(Lead, lead_id, "Lead")
    LeadService.mark_lost(lead, data.reason)
    db.commit()
    db.refresh(lead)
    return success_response(serialize(LeadResponse, lead), "Lead marked as lost")


@router.patch("/{lead_id}/assign")
@limiter.limit("30/minute")
def assign_lead(
    request: Request,
    lead_id: int,
    data: LeadAssign,
    scope: Tenant,
    db: DbSession,
    current_user: RequireLeadAccess,
):
    lead = scope.get_or_404(Lead, lead_id, "Lead")
    try:
        assignee = LeadService.resolve_assignee(db, lead.franchise_id, data.assigned_to)
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e))
    LeadService.assign(db, lead, assignee)
    db.commit()
    db.refresh(lead)
    return success_response(serialize(LeadResponse, lead), "Lead assigned successfully")


@router.post("/{lead_id}/notes", status_code=status.HTTP_201_CREATED)
@limiter.limit("30/minute")
def add_lead_note(
    request: Request,
    lead_id: int,
    data: LeadCommunication,
    scope: Tenant,
    db: DbSession,
    current_user: RequireLeadAccess,
):
    lead = scope.get_or_404(Lead, lead_id, "Lead")
    note = LeadService.log_communication(db, lead, current_user, data.note, data.type)
    db.commit()
    db.refresh(lead)
    db.refresh(note)
    return success_response(
        {"lead": serialize(LeadResponse, lead), "note": serialize(NoteResponse, note)},
        "Note added successfully",
    )
