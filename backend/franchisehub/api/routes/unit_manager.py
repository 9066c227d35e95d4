"""Unit manager (franchisee) workspace."""

import logging
from typing import Optional

from fastapi import APIRouter, HTTPException, Query, Request
from sqlalchemy import func, or_

from franchisehub.core.rate_limit import limiter
from franchisehub.core.rbac import RequireFranchisee
from franchisehub.core.responses import paginated_response, serialize, serialize_many, success_response
from franchisehub.core.tenancy import Tenant
from franchisehub.db.session import DbSession
from franchisehub.models import (
    RequestStatus, Review, Staff, StaffStatus, Task, TaskStatus, TechnicalRequest, UnitInventory,
)
from franchisehub.schemas.pagination import (
    ListParams, apply_filters, apply_search, apply_sort, paginate_query,
)
from franchisehub.schemas.task import TaskResponse, TaskStatusUpdate
from franchisehub.schemas.unit import UnitResponse
from franchisehub.services.dashboard_service import DashboardService
from franchisehub.services.task_service import TaskService

logger = logging.getLogger(__name__)

router = APIRouter()

OPEN_REQUESTS = (RequestStatus.OPEN, RequestStatus.IN_PROGRESS, RequestStatus.PENDING_INFO)


@router.get("/unit")
@limiter.limit("60/minute")
def my_unit(request: Request, scope: Tenant, current_user: RequireFranchisee):
    unit = scope.require_unit()
    payload = serialize(UnitResponse, unit)
    payload["franchise_name"] = unit.franchise.business_name if unit.franchise else None
    return success_response(payload)


@router.get("/statistics")
@limiter.limit("60/minute")
def my_unit_statistics(request: Request, scope: Tenant, db: DbSession, current_user: RequireFranchisee):
    unit = scope.require_unit()
    staff = db.query(Staff).filter(Staff.unit_id == unit.id)
    tasks = db.query(Task).filter(or_(Task.unit_id == unit.id, Task.assigned_to == current_user.id))
    average_rating = (
        db.query(func.avg(Review.rating)).filter(Review.unit_id == unit.id).scalar()
    )
    low_stock = (
        db.query(UnitInventory)
        .filter(UnitInventory.unit_id == unit.id, UnitInventory.quantity <= UnitInventory.reorder_level)
        .count()
    )
    return success_response({
        "totalStaff": staff.filter(Staff.status != StaffStatus.TERMINATED).count(),
        "staffOnLeave": staff.filter(Staff.status == StaffStatus.LEAVE).count(),
        "tasks": DashboardService.task_counts(tasks),
        "openTechnicalRequests": (
            db.query(TechnicalRequest)
            .filter(TechnicalRequest.unit_id == unit.id, TechnicalRequest.status.in_(OPEN_REQUESTS))
            .count()
        ),
        "reviews": db.query(Review).filter(Review.unit_id == unit.id).count(),
        "averageRating": round(float(average_rating), 2) if average_rating is not None else 0.0,
        "lowStockItems": low_stock,
        "sales": DashboardService.unit_sales_statistics(db, unit),
    })


@router.get("/dashboard/sales-statistics")
@limiter.limit("60/minute")
def sales_statistics(request: Request, scope: Tenant, db: DbSession, current_user: RequireFranchisee):
    return success_response(DashboardService.unit_sales_statistics(db, scope.require_unit()))


@router.get("/dashboard/product-sales")
@limiter.limit("60/minute")
def product_sales(
    request: Request,
    scope: Tenant,
    db: DbSession,
    current_user: RequireFranchisee,
    limit: int = Query(5, ge=1, le=20),
):
    return success_response(DashboardService.product_sales(db, scope.require_unit(), limit=limit))


@router.get("/dashboard/finance-statistics")
@limiter.limit("60/minute")
def finance_statistics(request: Request, scope: Tenant, db: DbSession, current_user: RequireFranchisee):
    return success_response(DashboardService.unit_finance_statistics(db, scope.require_unit()))


@router.get("/dashboard/financial-summary")
@limiter.limit("60/minute")
def financial_summary(request: Request, scope: Tenant, db: DbSession, current_user: RequireFranchisee):
    return success_response(DashboardService.unit_financial_summary(db, scope.require_unit()))


def _my_tasks(scope, db, current_user):
    clauses = [Task.assigned_to == current_user.id]
    if scope.unit_ids:
        clauses.append(Task.unit_id.in_(scope.unit_ids))
    return db.query(Task).filter(or_(*clauses))


@router.get("/my-tasks")
@limiter.limit("60/minute")
def my_tasks(
    request: Request,
    scope: Tenant,
    params: ListParams,
    db: DbSession,
    current_user: RequireFranchisee,
    task_status: Optional[TaskStatus] = Query(None, alias="status"),
):
    query = apply_filters(_my_tasks(scope, db, current_user), Task, {"status": task_status})
    query = apply_search(query, params.search, [Task.title, Task.description])
    query = apply_sort(query, Task, params.sort_by, params.sort_order, ("title", "priority", "status", "due_date", "created_at"))
    items, total = paginate_query(query, params.page, params.per_page)
    return paginated_response(serialize_many(TaskResponse, items), total, params.page, params.per_page)


@router.patch("/my-tasks/{task_id}/status")
@limiter.limit("30/minute")
def update_my_task_status(
    request: Request,
    task_id: int,
    data: TaskStatusUpdate,
    scope: Tenant,
    db: DbSession,
    current_user: RequireFranchisee,
):
    task = scope.get_or_404(Task, task_id, "Task")
    if task.status == data.status:
        raise HTTPException(status_code=422, detail=f"Task is already {task.status.value}")
    payload = None
    if data.status == TaskStatus.COMPLETED:
        try:
            successor = TaskService.complete(db, task)
        except ValueError as e:
            raise HTTPException(status_code=422, detail=str(e))
        db.commit()
        if successor is not None:
            db.refresh(successor)
            payload = serialize(TaskResponse, successor)
    else:
        TaskService.update_progress(task, status=data.status)
        db.commit()
    db.refresh(task)
    result = serialize(TaskResponse, task)
    if payload is not None:
        result["next_task"] = payload
    return success_response(result, "Task status updated")
