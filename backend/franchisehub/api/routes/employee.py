"""Broker and sales associate views: only what is assigned to the caller."""

import logging
from typing import Optional

from fastapi import APIRouter, Query, Request

from franchisehub.core.rate_limit import limiter
from franchisehub.core.rbac import RequireSales
from franchisehub.core.responses import paginated_response, serialize_many
from franchisehub.db.session import DbSession
from franchisehub.models import Lead, LeadStatus, Priority, RequestStatus, Task, TaskStatus, TechnicalRequest
from franchisehub.schemas.lead import LeadResponse
from franchisehub.schemas.pagination import (
    ListParams, apply_filters, apply_search, apply_sort, paginate_query,
)
from franchisehub.schemas.task import TaskResponse
from franchisehub.schemas.technical_request import TechnicalRequestResponse

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/tasks")
@limiter.limit("60/minute")
def assigned_tasks(
    request: Request,
    params: ListParams,
    db: DbSession,
    current_user: RequireSales,
    task_status: Optional[TaskStatus] = Query(None, alias="status"),
    priority: Optional[Priority] = Query(None),
):
    query = db.query(Task).filter(Task.assigned_to == current_user.id)
    query = apply_filters(query, Task, {"status": task_status, "priority": priority})
    query = apply_search(query, params.search, [Task.title, Task.description])
    query = apply_sort(query, Task, params.sort_by, params.sort_order, ("title", "priority", "status", "due_date", "created_at"))
    items, total = paginate_query(query, params.page, params.per_page)
    return paginated_response(serialize_many(TaskResponse, items), total, params.page, params.per_page)


@router.get("/technical-requests")
@limiter.limit("60/minute")
def assigned_requests(
    request: Request,
    params: ListParams,
    db: DbSession,
    current_user: RequireSales,
    request_status: Optional[RequestStatus] = Query(None, alias="status"),
):
    query = db.query(TechnicalRequest).filter(TechnicalRequest.assigned_to == current_user.id)
    query = apply_filters(query, TechnicalRequest, {"status": request_status})
    query = apply_search(query, params.search, [
        TechnicalRequest.ticket_number, TechnicalRequest.title, TechnicalRequest.description,
    ])
    query = apply_sort(
        query, TechnicalRequest, params.sort_by, params.sort_order, ("priority", "status", "created_at")
    )
    items, total = paginate_query(query, params.page, params.per_page)
    return paginated_response(serialize_many(TechnicalRequestResponse, items), total, params.page, params.per_page)


@router.get("/leads")
@limiter.limit("60/minute")
def assigned_leads(
    request: Request,
    params: ListParams,
    db: DbSession,
    current_user: RequireSales,
    lead_status: Optional[LeadStatus] = Query(None, alias="status"),
    priority: Optional[Priority] = Query(None),
):
    query = db.query(Lead).filter(Lead.assigned_to == current_user.id)
    query = apply_filters(query, Lead, {"status": lead_status, "priority": priority})
    query = apply_search(query, params.search, [Lead.first_name, Lead.last_name, Lead.email, Lead.phone])
    query = apply_sort(query, Lead, params.sort_by, params.sort_order, ("first_name", "status", "priority", "created_at"))
    items, total = paginate_query(query, params.page, params.per_page)
    return paginated_response(serialize_many(LeadResponse, items), total, params.page, params.per_page)
