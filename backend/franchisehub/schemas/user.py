"""User schemas."""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, EmailStr, Field, field_validator, model_validator

from franchisehub.models.user import UserRole, UserStatus
from franchisehub.schemas.auth import validate_password_strength


class UserBase(BaseModel):
    """Base user schema."""

    name: str = Field(..., min_length=1, max_length=255)
    email: EmailStr
    phone: Optional[str] = Field(default=None, max_length=50)
    nationality: Optional[str] = None
    state: Optional[str] = None
    city: Optional[str] = None
    address: Optional[str] = None


class UserCreate(UserBase):
    """Admin user creation schema."""

    password: str
    role: UserRole
    status: UserStatus = UserStatus.ACTIVE
    franchise_id: Optional[int] = None

    @field_validator("password")
    @classmethod
    def check_password(cls, v: str) -> str:
        return validate_password_strength(v)


class UserUpdate(BaseModel):
    """User update schema."""

    name: Optional[str] = Field(default=None, min_length=1, max_length=255)
    email: Optional[EmailStr] = None
    phone: Optional[str] = None
    nationality: Optional[str] = None
    state: Optional[str] = None
    city: Optional[str] = None
    address: Optional[str] = None
    role: Optional[UserRole] = None
    status: Optional[UserStatus] = None
    franchise_id: Optional[int] = None


class UserResponse(UserBase):
    """User response schema."""

    id: int
    email: str
    role: UserRole
    status: UserStatus
    avatar: Optional[str] = None
    franchise_id: Optional[int] = None
    profile_completed: bool
    last_login_at: Optional[datetime] = None
    created_at: datetime

    model_config = {"from_attributes": True}


class SalesAssociateCreate(BaseModel):
    """Broker created by a franchisor."""

    name: str = Field(..., min_length=1, max_length=255)
    email: EmailStr
    phone: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    password: str

    @field_validator("password")
    @classmethod
    def check_password(cls, v: str) -> str:
        return validate_password_strength(v)


class SalesAssociateUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=255)
    phone: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    status: Optional[UserStatus] = None


class PasswordReset(BaseModel):
    password: str

    @field_validator("password")
    @classmethod
    def check_password(cls, v: str) -> str:
        return validate_password_strength(v)


class ProfileUpdate(BaseModel):
    """Fields a user may change on their own account; email is fixed."""

    name: Optional[str] = Field(default=None, min_length=1, max_length=255)
    phone: Optional[str] = Field(default=None, max_length=50)
    nationality: Optional[str] = Field(default=None, max_length=100)
    state: Optional[str] = Field(default=None, max_length=100)
    city: Optional[str] = Field(default=None, max_length=100)
    address: Optional[str] = Field(default=None, max_length=500)


class PasswordChange(BaseModel):
    current_password: str = Field(..., min_length=1)
    password: str
    password_confirmation: str

    @field_validator("password")
    @classmethod
    def check_password(cls, v: str) -> str:
        return validate_password_strength(v)

    @model_validator(mode="after")
    def passwords_match(self) -> "PasswordChange":
        if self.password != self.password_confirmation:
            raise ValueError("Password confirmation does not match")
        return self
