"""Task workflow: start, complete, progress and assignment."""

import logging
from datetime import date, datetime, timezone
from typing import List, Optional

from sqlalchemy.orm import Session

from franchisehub.core.periods import next_occurrence
from franchisehub.core.tenancy import belongs_to_franchise
from franchisehub.models import Task, TaskStatus, User, UserStatus
from franchisehub.services.notification_service import NotificationService

logger = logging.getLogger(__name__)

STARTABLE = (TaskStatus.PENDING, TaskStatus.ON_HOLD)
CLOSED = (TaskStatus.COMPLETED, TaskStatus.CANCELLED)


class TaskService:
    """Service for task state transitions. Callers own the commit."""

    @staticmethod
    def start(task: Task) -> Task:
        if task.status not in STARTABLE:
            raise ValueError(f"Task cannot be started from status '{task.status.value}'")
        task.status = TaskStatus.IN_PROGRESS
        task.started_at = datetime.now(timezone.utc)
        return task

    @staticmethod
    def complete(
        db: Session,
        task: Task,
        completion_notes: Optional[str] = None,
        actual_hours=None,
    ) -> Optional[Task]:
        """Complete ``task`` and spawn the next occurrence of a recurring task.

        Returns the spawned task, if any.
        """
        if task.status in CLOSED:
            raise ValueError(f"Task is already {task.status.value}")
        task.status = TaskStatus.COMPLETED
        task.completed_at = datetime.now(timezone.utc)
        if task.started_at is None:
            task.started_at = task.completed_at
        if completion_notes is not None:
            task.completion_notes = completion_notes
        if actual_hours is not None:
            task.actual_hours = actual_hours
        logger.info(f"Task {task.id} completed")
        return TaskService._spawn_next(db, task)

    @staticmethod
    def _spawn_next(db: Session, task: Task) -> Optional[Task]:
        if not task.is_recurring or task.recurrence_type is None:
            return None
        next_due = next_occurrence(
            task.due_date or date.today(), task.recurrence_type, task.recurrence_interval
        )
        if task.recurrence_end_date and next_due > task.recurrence_end_date:
            return None
        checklist = [
            {"item": item.get("item"), "completed": False}
            for item in (task.checklist or [])
            if isinstance(item, dict)
        ]
        successor = Task(
            title=task.title,
            description=task.description,
            type=task.type,
            priority=task.priority,
            status=TaskStatus.PENDING,
            assigned_to=task.assigned_to,
            created_by=task.created_by,
            franchise_id=task.franchise_id,
            unit_id=task.unit_id,
            lead_id=task.lead_id,
            due_date=next_due,
            estimated_hours=task.estimated_hours,
            checklist=checklist or None,
            is_recurring=True,
            recurrence_type=task.recurrence_type,
            recurrence_interval=task.recurrence_interval,
            recurrence_end_date=task.recurrence_end_date,
            parent_task_id=task.id,
        )
        db.add(successor)
        logger.info(f"Spawned next occurrence of task {task.id} due {next_due}")
        return successor

    @staticmethod
    def update_progress(task: Task, checklist: Optional[List[dict]] = None, status: Optional[TaskStatus] = None) -> Task:
        if checklist is not None:
            task.checklist = checklist
            if task.status == TaskStatus.PENDING and any(i.get("completed") for i in checklist):
                task.status = TaskStatus.IN_PROGRESS
                task.started_at = task.started_at or datetime.now(timezone.utc)
        if status is not None:
            task.status = status
            if status == TaskStatus.IN_PROGRESS and task.started_at is None:
                task.started_at = datetime.now(timezone.utc)
            if status == TaskStatus.COMPLETED and task.completed_at is None:
                task.completed_at = datetime.now(timezone.utc)
        return task

    @staticmethod
    def resolve_assignee(db: Session, franchise_id: Optional[int], user_id: int) -> User:
        """The assignee must be an active user working inside the task's franchise."""
        assignee = db.query(User).filter(User.id == user_id).first()
        if assignee is None or assignee.status != UserStatus.ACTIVE:
            raise ValueError("Assignee must be an active user")
        if not belongs_to_franchise(db, assignee, franchise_id):
            raise ValueError("Assignee does not belong to this franchise")
        return assignee

    @staticmethod
    def assign(db: Session, task: Task, assignee: User) -> Task:
        task.assigned_to = assignee.id
        NotificationService.notify(
            db,
            assignee.id,
            type="task_assigned",
            title="New task assigned",
            subtitle=task.title,
            icon="tabler-checklist",
            color="info",
            url=f"/tasks/{task.id}",
        )
        return task
