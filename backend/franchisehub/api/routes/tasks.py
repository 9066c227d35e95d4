"""Task routes."""

import logging
from datetime import date
from typing import Optional

from fastapi import APIRouter, HTTPException, Query, Request, status
from sqlalchemy import and_, not_

from franchisehub.core.rate_limit import limiter
from franchisehub.core.rbac import CurrentUser
from franchisehub.core.responses import paginated_response, serialize, serialize_many, success_response
from franchisehub.core.tenancy import Tenant, TenantScope
from franchisehub.db.session import DbSession
from franchisehub.models import Lead, Priority, Task, TaskStatus, TaskType, Unit
from franchisehub.schemas.franchise import IdList
from franchisehub.schemas.pagination import (
    ListParams, apply_filters, apply_search, apply_sort, paginate_query,
)
from franchisehub.schemas.task import (
    TaskAssign, TaskBulkAssign, TaskComplete, TaskCreate, TaskProgress, TaskResponse, TaskUpdate,
)
from franchisehub.services.dashboard_service import DashboardService
from franchisehub.services.task_service import CLOSED, TaskService

logger = logging.getLogger(__name__)

router = APIRouter()

SORTABLE = ("title", "priority", "status", "type", "due_date", "completed_at", "created_at")


def overdue_clause(today: Optional[date] = None):
    today = today or date.today()
    return and_(Task.due_date.isnot(None), Task.due_date < today, Task.status.notin_(CLOSED))


def _check_can_delete(scope: TenantScope, task: Task) -> None:
    if scope.is_admin or scope.is_franchisor or task.created_by == scope.user.id:
        return
    raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Only the task creator can delete this task")


def _assign_or_422(db, task: Task, user_id: int) -> None:
    try:
        assignee = TaskService.resolve_assignee(db, task.franchise_id, user_id)
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e))
    TaskService.assign(db, task, assignee)


@router.get("/")
@limiter.limit("60/minute")
def list_tasks(
    request: Request,
    scope: Tenant,
    params: ListParams,
    db: DbSession,
    task_status: Optional[TaskStatus] = Query(None, alias="status"),
    priority: Optional[Priority] = Query(None),
    type: Optional[TaskType] = Query(None),
    assigned_to: Optional[int] = Query(None),
    unit_id: Optional[int] = Query(None),
    overdue: Optional[bool] = Query(None),
):
    query = scope.apply(db.query(Task), Task)
    query = apply_filters(query, Task, {
        "status": task_status, "priority": priority, "type": type,
        "assigned_to": assigned_to, "unit_id": unit_id,
    })
    if overdue is True:
        query = query.filter(overdue_clause())
    elif overdue is False:
        query = query.filter(not_(overdue_clause()))
    query = apply_search(query, params.search, [Task.title, Task.description])
    query = apply_sort(query, Task, params.sort_by, params.sort_order, SORTABLE)
    items, total = paginate_query(query, params.page, params.per_page)
    return paginated_response(serialize_many(TaskResponse, items), total, params.page, params.per_page)


@router.get("/statistics")
@limiter.limit("60/minute")
def task_statistics(request: Request, scope: Tenant, db: DbSession):
    query = scope.apply(db.query(Task), Task)
    stats = DashboardService.task_counts(query)
    stats["overdue"] = query.filter(overdue_clause()).count()
    return success_response(stats)


@router.post("/bulk-assign")
@limiter.limit("30/minute")
def bulk_assign(request: Request, data: TaskBulkAssign, scope: Tenant, db: DbSession, current_user: CurrentUser):
    tasks = scope.apply(db.query(Task), Task).filter(Task.id.in_(data.task_ids)).all()
    for task in tasks:
        _assign_or_422(db, task, data.assigned_to)
    db.commit()
    return success_response({"updated": len(tasks)}, f"{len(tasks)} tasks assigned")


@router.post("/bulk-complete")
@limiter.limit("30/minute")
def bulk_complete(request: Request, data: IdList, scope: Tenant, db: DbSession, current_user: CurrentUser):
    tasks = scope.apply(db.query(Task), Task).filter(Task.id.in_(data.ids)).all()
    completed = 0
    for task in tasks:
        if task.status in CLOSED:
            continue
        TaskService.complete(db, task)
        completed += 1
    db.commit()
    return success_response({"updated": completed}, f"{completed} tasks completed")


@router.post("/", status_code=status.HTTP_201_CREATED)
@limiter.limit("30/minute")
def create_task(request: Request, data: TaskCreate, scope: Tenant, db: DbSession, current_user: CurrentUser):
    franchise_id = scope.resolve_franchise_id(data.franchise_id)
    unit_id = data.unit_id
    if unit_id is not None:
        unit = scope.get_or_404(Unit, unit_id, "Unit")
        franchise_id = franchise_id or unit.franchise_id
    elif scope.is_franchisee and scope.unit_ids:
        unit_id = scope.unit_ids[0]
    if data.lead_id is not None:
        scope.get_or_404(Lead, data.lead_id, "Lead")

    try:
        payload = data.model_dump(exclude={"franchise_id", "unit_id", "assigned_to"})
        task = Task(**payload, franchise_id=franchise_id, unit_id=unit_id, created_by=current_user.id)
        db.add(task)
        db.flush()
        if data.assigned_to is not None:
            _assign_or_422(db, task, data.assigned_to)
        db.commit()
        db.refresh(task)
        logger.info(f"Task {task.id} created by user {current_user.id}")
        return success_response(serialize(TaskResponse, task), "Task created successfully")
    except HTTPException:
        db.rollback()
        raise
    except Exception as e:
        db.rollback()
        logger.error(f"Failed to create task: {e}")
        raise HTTPException(status_code=500, detail="Failed to create task")


@router.get("/{task_id}")
@limiter.limit("60/minute")
def get_task(request: Request, task_id: int, scope: Tenant):
    return success_response(serialize(TaskResponse, scope.get_or_404(Task, task_id, "Task")))


@router.put("/{task_id}")
@limiter.limit("30/minute")
def update_task(request: Request, task_id: int, data: TaskUpdate, scope: Tenant, db: DbSession):
    task = scope.get_or_404(Task, task_id, "Task")
    changes = data.model_dump(exclude_unset=True)
    if changes.get("unit_id") is not None:
        scope.get_or_404(Unit, changes["unit_id"], "Unit")
    assigned_to = changes.pop("assigned_to", None)
    try:
        for field, value in changes.items():
            setattr(task, field, value)
        if assigned_to is not None and assigned_to != task.assigned_to:
            _assign_or_422(db, task, assigned_to)
        db.commit()
        db.refresh(task)
        return success_response(serialize(TaskResponse, task), "Task updated successfully")
    except HTTPException:
        db.rollback()
        raise
    except Exception as e:
        db.rollback()
        logger.error(f"Failed to update task {task_id}: {e}")
        raise HTTPException(status_code=500, detail="Failed to update task")


@router.delete("/{task_id}")
@limiter.limit("30/minute")
def delete_task(request: Request, task_id: int, scope: Tenant, db: DbSession):
    task = scope.get_or_404(Task, task_id, "Task")
    _check_can_delete(scope, task)
    db.delete(task)
    db.commit()
    return success_response(message="Task deleted successfully")


@router.patch("/{task_id}/start")
@limiter.limit("30/minute")
def start_task(request: Request, task_id: int, scope: Tenant, db: DbSession):
    task = scope.get_or_404(Task, task_id, "Task")
    try:
        TaskService.start(task)
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e))
    db.commit()
    db.refresh(task)
    return success_response(serialize(TaskResponse, task), "Task started")


@router.patch("/{task_id}/complete")
@limiter.limit("30/minute")
def complete_task(request: Request, task_id: int, scope: Tenant, db: DbSession, data: Optional[TaskComplete] = None):
    task = scope.get_or_404(Task, task_id, "Task")
    data = data or TaskComplete()
    try:
        successor = TaskService.complete(db, task, data.completion_notes, data.actual_hours)
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e))
    db.commit()
    db.refresh(task)
    payload = serialize(TaskResponse, task)
    if successor is not None:
        db.refresh(successor)
        payload["next_task"] = serialize(TaskResponse, successor)
    return success_response(payload, "Task completed")


@router.patch("/{task_id}/assign")
@limiter.limit("30/minute")
def assign_task(request: Request, task_id: int, data: TaskAssign, scope: Tenant, db: DbSession):
    task = scope.get_or_404(Task, task_id, "Task")
    _assign_or_422(db, task, data.assigned_to)
    db.commit()
    db.refresh(task)
    return success_response(serialize(TaskResponse, task), "Task assigned successfully")


@router.patch("/{task_id}/progress")
@limiter.limit("30/minute")
def update_progress(request: Request, task_id: int, data: TaskProgress, scope: Tenant, db: DbSession):
    task = scope.get_or_404(Task, task_id, "Task")
    checklist = [item.model_dump() for item in data.checklist] if data.checklist is not None else None
    TaskService.update_progress(task, checklist, data.status)
    db.commit()
    db.refresh(task)
    return success_response(serialize(TaskResponse, task), "Task progress updated")
