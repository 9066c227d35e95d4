"""Authentication schemas."""

from __future__ import annotations

import re
from typing import Literal, Optional

from pydantic import BaseModel, EmailStr, Field, field_validator, model_validator

PASSWORD_RULE = re.compile(r"^(?=.*[a-z])(?=.*[A-Z])(?=.*\d)(?=.*[@$!%*#?&]).{8,}$")


def validate_password_strength(value: str) -> str:
    if not PASSWORD_RULE.match(value):
        raise ValueError(
            "Password must be at least 8 characters and contain an uppercase letter, "
            "a lowercase letter, a number and a special character (@$!%*#?&)"
        )
    return value


class LoginRequest(BaseModel):
    """Login request schema."""

    email: EmailStr
    password: str = Field(..., min_length=1)
    remember: bool = False


class RegisterRequest(BaseModel):
    """Self-service registration for franchisors and brokers."""

    name: str = Field(..., min_length=1, max_length=255)
    email: EmailStr
    password: str
    password_confirmation: str
    role: Literal["franchisor", "broker"] = "franchisor"
    phone: Optional[str] = Field(default=None, max_length=50)

    @field_validator("password")
    @classmethod
    def check_password(cls, v: str) -> str:
        return validate_password_strength(v)

    @model_validator(mode="after")
    def passwords_match(self) -> "RegisterRequest":
        if self.password != self.password_confirmation:
            raise ValueError("Password confirmation does not match")
        return self


class OnboardingRequest(BaseModel):
    """Profile fields a franchisee completes on first login."""

    phone: str = Field(..., min_length=1, max_length=50)
    nationality: str = Field(..., min_length=1, max_length=100)
    state: str = Field(..., min_length=1, max_length=100)
    city: str = Field(..., min_length=1, max_length=100)
    address: str = Field(..., min_length=1)
