"""Lead and note schemas."""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, EmailStr, Field

from franchisehub.models.lead import LeadSource, LeadStatus, Priority


class LeadBase(BaseModel):
    """Base lead schema."""

    first_name: str = Field(..., min_length=1, max_length=100)
    last_name: str = Field(..., min_length=1, max_length=100)
    email: EmailStr
    phone: Optional[str] = Field(default=None, max_length=50)
    company_name: Optional[str] = Field(default=None, max_length=255)
    job_title: Optional[str] = Field(default=None, max_length=100)
    country: Optional[str] = None
    state: Optional[str] = None
    city: Optional[str] = None
    address: Optional[str] = None
    lead_source: LeadSource = LeadSource.WEBSITE
    priority: Priority = Priority.MEDIUM
    estimated_investment: Optional[Decimal] = Field(default=None, ge=0)
    franchise_fee_quoted: Optional[Decimal] = Field(default=None, ge=0)
    expected_decision_date: Optional[date] = None
    next_follow_up_date: Optional[date] = None
    notes: Optional[str] = None


class LeadCreate(LeadBase):
    """Lead creation schema."""

    status: LeadStatus = LeadStatus.NEW
    assigned_to: Optional[int] = None
    franchise_id: Optional[int] = None


class LeadUpdate(BaseModel):
    """Lead update schema."""

    first_name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    last_name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    email: Optional[EmailStr] = None
    phone: Optional[str] = None
    company_name: Optional[str] = None
    job_title: Optional[str] = None
    country: Optional[str] = None
    state: Optional[str] = None
    city: Optional[str] = None
    address: Optional[str] = None
    lead_source: Optional[LeadSource] = None
    status: Optional[LeadStatus] = None
    priority: Optional[Priority] = None
    estimated_investment: Optional[Decimal] = Field(default=None, ge=0)
    franchise_fee_quoted: Optional[Decimal] = Field(default=None, ge=0)
    expected_decision_date: Optional[date] = None
    last_contact_date: Optional[date] = None
    next_follow_up_date: Optional[date] = None
    notes: Optional[str] = None


class LeadResponse(LeadBase):
    """Lead response schema."""

    id: int
    franchise_id: Optional[int] = None
    assigned_to: Optional[int] = None
    email: str
    status: LeadStatus
    last_contact_date: Optional[date] = None
    contact_attempts: int
    lost_reason: Optional[str] = None
    communication_log: Optional[list] = None
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class LeadAssign(BaseModel):
    assigned_to: int


class LeadBulkAssign(BaseModel):
    lead_ids: List[int] = Field(..., min_length=1, max_length=500)
    assigned_to: int


class LeadLost(BaseModel):
    reason: str = Field(..., min_length=1, max_length=2000)


class LeadCommunication(BaseModel):
    """Entry appended to a lead's communication log."""

    note: str = Field(..., min_length=1, max_length=5000)
    type: str = Field(default="note", max_length=50)  # note, call, email, meeting


class NoteUpdate(BaseModel):
    title: Optional[str] = Field(default=None, min_length=1, max_length=255)
    description: Optional[str] = None


class NoteAttachmentRemove(BaseModel):
    file_path: str = Field(..., min_length=1)


class NoteResponse(BaseModel):
    id: int
    lead_id: int
    user_id: int
    title: str
    description: Optional[str] = None
    attachments: Optional[list] = None
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}
