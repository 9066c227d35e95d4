"""Technical request schemas."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, Field

from franchisehub.models.lead import Priority
from franchisehub.models.technical_request import RequestCategory, RequestStatus


class TechnicalRequestBase(BaseModel):
    """Base technical request schema."""

    title: str = Field(..., min_length=1, max_length=255)
    description: str = Field(..., min_length=1)
    category: RequestCategory = RequestCategory.OTHER
    priority: Priority = Priority.MEDIUM
    affected_system: Optional[str] = Field(default=None, max_length=255)
    steps_to_reproduce: Optional[str] = None
    expected_behavior: Optional[str] = None
    actual_behavior: Optional[str] = None
    browser_version: Optional[str] = Field(default=None, max_length=100)
    operating_system: Optional[str] = Field(default=None, max_length=100)
    device_type: Optional[str] = Field(default=None, max_length=100)


class TechnicalRequestCreate(TechnicalRequestBase):
    unit_id: Optional[int] = None


class TechnicalRequestUpdate(BaseModel):
    title: Optional[str] = Field(default=None, min_length=1, max_length=255)
    description: Optional[str] = Field(default=None, min_length=1)
    category: Optional[RequestCategory] = None
    priority: Optional[Priority] = None
    status: Optional[RequestStatus] = None
    affected_system: Optional[str] = None
    steps_to_reproduce: Optional[str] = None
    expected_behavior: Optional[str] = None
    actual_behavior: Optional[str] = None
    internal_notes: Optional[str] = None


class TechnicalRequestResponse(TechnicalRequestBase):
    id: int
    ticket_number: str
    status: RequestStatus
    requester_id: int
    assigned_to: Optional[int] = None
    franchise_id: Optional[int] = None
    unit_id: Optional[int] = None
    attachments: Optional[list] = None
    internal_notes: Optional[str] = None
    resolution_notes: Optional[str] = None
    first_response_at: Optional[datetime] = None
    resolved_at: Optional[datetime] = None
    closed_at: Optional[datetime] = None
    response_time_hours: Optional[Decimal] = None
    resolution_time_hours: Optional[Decimal] = None
    satisfaction_rating: Optional[int] = None
    satisfaction_feedback: Optional[str] = None
    is_escalated: bool
    escalated_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class RequestAssign(BaseModel):
    assigned_to: int


class RequestRespond(BaseModel):
    message: str = Field(..., min_length=1, max_length=5000)


class RequestResolve(BaseModel):
    resolution_notes: str = Field(..., min_length=1, max_length=5000)


class RequestClose(BaseModel):
    satisfaction_rating: Optional[int] = Field(default=None, ge=1, le=5)
    satisfaction_feedback: Optional[str] = Field(default=None, max_length=2000)


class RequestEscalate(BaseModel):
    reason: Optional[str] = Field(default=None, max_length=2000)


class RequestBulkAssign(BaseModel):
    request_ids: List[int] = Field(..., min_length=1, max_length=500)
    assigned_to: int


class RequestBulkResolve(BaseModel):
    request_ids: List[int] = Field(..., min_length=1, max_length=500)
    resolution_notes: str = Field(..., min_length=1, max_length=5000)


class RequestStatusUpdate(BaseModel):
    status: RequestStatus
