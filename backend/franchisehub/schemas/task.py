"""Task schemas."""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, Field, model_validator

from franchisehub.core.periods import RecurrenceType
from franchisehub.models.lead import Priority
from franchisehub.models.task import TaskStatus, TaskType


class ChecklistItem(BaseModel):
    item: str = Field(..., min_length=1, max_length=500)
    completed: bool = False


class TaskBase(BaseModel):
    """Base task schema."""

    title: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None
    type: TaskType = TaskType.OTHER
    priority: Priority = Priority.MEDIUM
    due_date: Optional[date] = None
    estimated_hours: Optional[Decimal] = Field(default=None, ge=0)
    checklist: Optional[List[ChecklistItem]] = None
    is_recurring: bool = False
    recurrence_type: Optional[RecurrenceType] = None
    recurrence_interval: int = Field(default=1, ge=1, le=365)
    recurrence_end_date: Optional[date] = None


class TaskCreate(TaskBase):
    """Task creation schema."""

    assigned_to: Optional[int] = None
    unit_id: Optional[int] = None
    lead_id: Optional[int] = None
    franchise_id: Optional[int] = None
    status: TaskStatus = TaskStatus.PENDING

    @model_validator(mode="after")
    def recurrence_needs_type(self) -> "TaskCreate":
        if self.is_recurring and self.recurrence_type is None:
            raise ValueError("recurrence_type is required for recurring tasks")
        return self


class TaskUpdate(BaseModel):
    """Task update schema."""

    title: Optional[str] = Field(default=None, min_length=1, max_length=255)
    description: Optional[str] = None
    type: Optional[TaskType] = None
    priority: Optional[Priority] = None
    status: Optional[TaskStatus] = None
    due_date: Optional[date] = None
    estimated_hours: Optional[Decimal] = Field(default=None, ge=0)
    actual_hours: Optional[Decimal] = Field(default=None, ge=0)
    checklist: Optional[List[ChecklistItem]] = None
    assigned_to: Optional[int] = None
    unit_id: Optional[int] = None
    is_recurring: Optional[bool] = None
    recurrence_type: Optional[RecurrenceType] = None
    recurrence_interval: Optional[int] = Field(default=None, ge=1, le=365)
    recurrence_end_date: Optional[date] = None


class TaskResponse(TaskBase):
    """Task response schema."""

    id: int
    status: TaskStatus
    assigned_to: Optional[int] = None
    created_by: Optional[int] = None
    franchise_id: Optional[int] = None
    unit_id: Optional[int] = None
    lead_id: Optional[int] = None
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    actual_hours: Optional[Decimal] = None
    checklist: Optional[list] = None
    attachments: Optional[list] = None
    completion_notes: Optional[str] = None
    parent_task_id: Optional[int] = None
    is_overdue: bool
    progress: float
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class TaskComplete(BaseModel):
    completion_notes: Optional[str] = Field(default=None, max_length=5000)
    actual_hours: Optional[Decimal] = Field(default=None, ge=0)


class TaskAssign(BaseModel):
    assigned_to: int


class TaskProgress(BaseModel):
    checklist: Optional[List[ChecklistItem]] = None
    status: Optional[TaskStatus] = None

    @model_validator(mode="after")
    def needs_something(self) -> "TaskProgress":
        if self.checklist is None and self.status is None:
            raise ValueError("Provide a checklist or a status")
        return self


class TaskBulkAssign(BaseModel):
    task_ids: List[int] = Field(..., min_length=1, max_length=500)
    assigned_to: int


class TaskStatusUpdate(BaseModel):
    status: TaskStatus
