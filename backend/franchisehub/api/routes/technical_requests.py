"""Technical support request routes."""

import logging
from typing import List, Optional

from fastapi import APIRouter, File, HTTPException, Query, Request, UploadFile, status
from sqlalchemy import func

from franchisehub.core.file_utils import save_uploads
from franchisehub.core.rate_limit import limiter
from franchisehub.core.rbac import CurrentUser, RequireAdmin, RequireFranchisorOrAdmin
from franchisehub.core.responses import paginated_response, serialize, serialize_many, success_response
from franchisehub.core.tenancy import Tenant, TenantScope, belongs_to_franchise
from franchisehub.db.session import DbSession
from franchisehub.models import (
    Priority, RequestCategory, RequestStatus, TechnicalRequest, Unit, User, UserStatus,
)
from franchisehub.schemas.franchise import IdList
from franchisehub.schemas.pagination import (
    ListParams, apply_filters, apply_search, apply_sort, paginate_query,
)
from franchisehub.schemas.technical_request import (
    RequestAssign, RequestBulkAssign, RequestBulkResolve, RequestClose, RequestEscalate,
    RequestResolve, RequestRespond, TechnicalRequestCreate, TechnicalRequestResponse,
    TechnicalRequestUpdate,
)
from franchisehub.services.technical_request_service import FINISHED, TechnicalRequestService

logger = logging.getLogger(__name__)

router = APIRouter()

SORTABLE = ("ticket_number", "title", "priority", "status", "category", "resolved_at", "created_at")


def _assignee(db, user_id: int, franchise_id: Optional[int]) -> User:
    user = db.query(User).filter(User.id == user_id).first()
    if user is None or user.status != UserStatus.ACTIVE:
        raise HTTPException(status_code=422, detail="Assignee must be an active user")
    if not belongs_to_franchise(db, user, franchise_id):
        raise HTTPException(status_code=422, detail="Assignee does not belong to this franchise")
    return user


def _check_owner_or_manager(scope: TenantScope, req: TechnicalRequest) -> None:
    if scope.is_admin or scope.is_franchisor or req.requester_id == scope.user.id:
        return
    raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="You cannot modify this request")


def _respond(req: TechnicalRequest, message: str):
    return success_response(serialize(TechnicalRequestResponse, req), message)


@router.get("/")
@limiter.limit("60/minute")
def list_requests(
    request: Request,
    scope: Tenant,
    params: ListParams,
    db: DbSession,
    request_status: Optional[RequestStatus] = Query(None, alias="status"),
    priority: Optional[Priority] = Query(None),
    category: Optional[RequestCategory] = Query(None),
    assigned_to: Optional[int] = Query(None),
    escalated: Optional[bool] = Query(None),
):
    query = scope.apply(db.query(TechnicalRequest), TechnicalRequest)
    query = apply_filters(query, TechnicalRequest, {
        "status": request_status, "priority": priority, "category": category,
        "assigned_to": assigned_to, "is_escalated": escalated,
    })
    query = apply_search(query, params.search, [
        TechnicalRequest.ticket_number, TechnicalRequest.title, TechnicalRequest.description,
    ])
    query = apply_sort(query, TechnicalRequest, params.sort_by, params.sort_order, SORTABLE)
    items, total = paginate_query(query, params.page, params.per_page)
    return paginated_response(
        serialize_many(TechnicalRequestResponse, items), total, params.page, params.per_page
    )


@router.get("/statistics")
@limiter.limit("60/minute")
def request_statistics(request: Request, scope: Tenant, db: DbSession):
    query = scope.apply(db.query(TechnicalRequest), TechnicalRequest)
    by_status = {s.value: 0 for s in RequestStatus}
    for req_status, count in (
        query.with_entities(TechnicalRequest.status, func.count(TechnicalRequest.id))
        .group_by(TechnicalRequest.status).all()
    ):
        by_status[req_status.value] = count
    by_priority = {p.value: 0 for p in Priority}
    for priority, count in (
        query.with_entities(TechnicalRequest.priority, func.count(TechnicalRequest.id))
        .group_by(TechnicalRequest.priority).all()
    ):
        by_priority[priority.value] = count
    avg_response, avg_resolution, avg_rating = query.with_entities(
        func.avg(TechnicalRequest.response_time_hours),
        func.avg(TechnicalRequest.resolution_time_hours),
        func.avg(TechnicalRequest.satisfaction_rating),
    ).one()
    return success_response({
        "total": sum(by_status.values()),
        "byStatus": by_status,
        "byPriority": by_priority,
        "escalated": query.filter(TechnicalRequest.is_escalated.is_(True)).count(),
        "open": sum(by_status[s.value] for s in RequestStatus if s not in FINISHED),
        "averageResponseHours": round(float(avg_response), 2) if avg_response is not None else None,
        "averageResolutionHours": round(float(avg_resolution), 2) if avg_resolution is not None else None,
        "averageSatisfaction": round(float(avg_rating), 2) if avg_rating is not None else None,
    })


@router.post("/bulk-delete")
@limiter.limit("30/minute")
def bulk_delete(request: Request, data: IdList, db: DbSession, current_user: RequireAdmin):
    requests = db.query(TechnicalRequest).filter(TechnicalRequest.id.in_(data.ids)).all()
    for req in requests:
        db.delete(req)
    db.commit()
    logger.info(f"Admin {current_user.id} deleted {len(requests)} technical requests")
    return success_response({"deleted": len(requests)}, f"{len(requests)} requests deleted")


@router.post("/bulk-assign")
@limiter.limit("30/minute")
def bulk_assign(
    request: Request,
    data: RequestBulkAssign,
    scope: Tenant,
    db: DbSession,
    current_user: RequireFranchisorOrAdmin,
):
    requests = (
        scope.apply(db.query(TechnicalRequest), TechnicalRequest)
        .filter(TechnicalRequest.id.in_(data.request_ids))
        .all()
    )
    for req in requests:
        TechnicalRequestService.assign(db, req, _assignee(db, data.assigned_to, req.franchise_id))
    db.commit()
    return success_response({"updated": len(requests)}, f"{len(requests)} requests assigned")


@router.post("/bulk-resolve")
@limiter.limit("30/minute")
def bulk_resolve(
    request: Request,
    data: RequestBulkResolve,
    scope: Tenant,
    db: DbSession,
    current_user: RequireFranchisorOrAdmin,
):
    requests = (
        scope.apply(db.query(TechnicalRequest), TechnicalRequest)
        .filter(TechnicalRequest.id.in_(data.request_ids))
        .all()
    )
    resolved = 0
    for req in requests:
        if req.status in FINISHED:
            continue
        TechnicalRequestService.resolve(db, req, data.resolution_notes)
        resolved += 1
    db.commit()
    return success_response({"updated": resolved}, f"{resolved} requests resolved")


@router.post("/", status_code=status.HTTP_201_CREATED)
@limiter.limit("30/minute")
def create_request(
    request: Request,
    data: TechnicalRequestCreate,
    scope: Tenant,
    db: DbSession,
    current_user: CurrentUser,
):
    franchise_id = scope.franchise_id
    unit_id = data.unit_id
    if unit_id is not None:
        unit = scope.get_or_404(Unit, unit_id, "Unit")
        franchise_id = unit.franchise_id
    elif scope.is_franchisee and scope.unit_ids:
        unit_id = scope.unit_ids[0]
    try:
        payload = data.model_dump(exclude={"unit_id"})
        payload["unit_id"] = unit_id
        req = TechnicalRequestService.create(db, current_user, payload, franchise_id)
        db.commit()
        db.refresh(req)
        logger.info(f"Technical request {req.ticket_number} opened by user {current_user.id}")
        return success_response(serialize(TechnicalRequestResponse, req), "Request submitted successfully")
    except Exception as e:
        db.rollback()
        logger.error(f"Failed to create technical request: {e}")
        raise HTTPException(status_code=500, detail="Failed to create technical request")


@router.get("/{request_id}")
@limiter.limit("60/minute")
def get_request(request: Request, request_id: int, scope: Tenant):
    req = scope.get_or_404(TechnicalRequest, request_id, "Technical request")
    return success_response(serialize(TechnicalRequestResponse, req))


@router.put("/{request_id}")
@limiter.limit("30/minute")
def update_request(
    request: Request,
    request_id: int,
    data: TechnicalRequestUpdate,
    scope: Tenant,
    db: DbSession,
):
    req = scope.get_or_404(TechnicalRequest, request_id, "Technical request")
    _check_owner_or_manager(scope, req)
    changes = data.model_dump(exclude_unset=True)
    new_status = changes.pop("status", None)
    try:
        for field, value in changes.items():
            setattr(req, field, value)
        if new_status is not None and new_status != req.status:
            TechnicalRequestService.set_status(db, req, new_status)
        db.commit()
        db.refresh(req)
        return _respond(req, "Request updated successfully")
    except Exception as e:
        db.rollback()
        logger.error(f"Failed to update technical request {request_id}: {e}")
        raise HTTPException(status_code=500, detail="Failed to update technical request")


@router.delete("/{request_id}")
@limiter.limit("30/minute")
def delete_request(request: Request, request_id: int, scope: Tenant, db: DbSession):
    req = scope.get_or_404(TechnicalRequest, request_id, "Technical request")
    _check_owner_or_manager(scope, req)
    db.delete(req)
    db.commit()
    return success_response(message="Request deleted successfully")


@router.patch("/{request_id}/assign")
@limiter.limit("30/minute")
def assign_request(
    request: Request,
    request_id: int,
    data: RequestAssign,
    scope: Tenant,
    db: DbSession,
    current_user: RequireFranchisorOrAdmin,
):
    req = scope.get_or_404(TechnicalRequest, request_id, "Technical request")
    TechnicalRequestService.assign(db, req, _assignee(db, data.assigned_to, req.franchise_id))
    db.commit()
    db.refresh(req)
    return _respond(req, "Request assigned successfully")


@router.post("/{request_id}/respond")
@limiter.limit("30/minute")
def respond_to_request(
    request: Request,
    request_id: int,
    data: RequestRespond,
    scope: Tenant,
    db: DbSession,
    current_user: CurrentUser,
):
    req = scope.get_or_404(TechnicalRequest, request_id, "Technical request")
    try:
        TechnicalRequestService.respond(db, req, current_user, data.message)
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e))
    db.commit()
    db.refresh(req)
    return _respond(req, "Response recorded")


@router.patch("/{request_id}/resolve")
@limiter.limit("30/minute")
def resolve_request(request: Request, request_id: int, data: RequestResolve, scope: Tenant, db: DbSession):
    req = scope.get_or_404(TechnicalRequest, request_id, "Technical request")
    try:
        TechnicalRequestService.resolve(db, req, data.resolution_notes)
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e))
    db.commit()
    db.refresh(req)
    return _respond(req, "Request resolved")


@router.patch("/{request_id}/close")
@limiter.limit("30/minute")
def close_request(
    request: Request,
    request_id: int,
    scope: Tenant,
    db: DbSession,
    data: Optional[RequestClose] = None,
):
    req = scope.get_or_404(TechnicalRequest, request_id, "Technical request")
    data = data or RequestClose()
    try:
        TechnicalRequestService.close(db, req, data.satisfaction_rating, data.satisfaction_feedback)
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e))
    db.commit()
    db.refresh(req)
    return _respond(req, "Request closed")


@router.patch("/{request_id}/escalate")
@limiter.limit("30/minute")
def escalate_request(
    request: Request,
    request_id: int,
    scope: Tenant,
    db: DbSession,
    data: Optional[RequestEscalate] = None,
):
    req = scope.get_or_404(TechnicalRequest, request_id, "Technical request")
    try:
        TechnicalRequestService.escalate(req, data.reason if data else None)
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e))
    db.commit()
    db.refresh(req)
    return _respond(req, "Request escalated")


@router.post("/{request_id}/attachments")
@limiter.limit("30/minute")
def upload_request_attachments(
    request: Request,
    request_id: int,
    scope: Tenant,
    db: DbSession,
    files: List[UploadFile] = File(...),
):
    req = scope.get_or_404(TechnicalRequest, request_id, "Technical request")
    try:
        stored = save_uploads(files, f"technical-requests/{req.id}")
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e))
    req.attachments = list(req.attachments or []) + stored
    db.commit()
    db.refresh(req)
    return _respond(req, f"{len(stored)} attachments uploaded")
