"""User model."""

from __future__ import annotations

import enum
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import Boolean, DateTime, Enum as SQLEnum, ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from franchisehub.db.base import Base, TimestampMixin, enum_values


class UserRole(str, enum.Enum):
    """User roles for RBAC."""

    ADMIN = "admin"
    FRANCHISOR = "franchisor"
    FRANCHISEE = "franchisee"
    BROKER = "broker"
    SALES = "sales"  # legacy name for broker


class UserStatus(str, enum.Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"
    PENDING = "pending"
    SUSPENDED = "suspended"


class User(Base, TimestampMixin):
    """User account for authentication, RBAC and tenant resolution."""

    __tablename__ = "users"

    id: Mapped[int] = mapped_column(primary_key=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    email: Mapped[str] = mapped_column(String(255), unique=True, index=True, nullable=False)
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)
    role: Mapped[UserRole] = mapped_column(
        SQLEnum(UserRole, values_callable=enum_values, native_enum=False, length=20),
        default=UserRole.FRANCHISEE,
        nullable=False,
        index=True,
    )
    status: Mapped[UserStatus] = mapped_column(
        SQLEnum(UserStatus, values_callable=enum_values, native_enum=False, length=20),
        default=UserStatus.ACTIVE,
        nullable=False,
    )
    phone: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    nationality: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    state: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    city: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    address: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    avatar: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    # Franchise a broker/sales associate works for
    franchise_id: Mapped[Optional[int]] = mapped_column(
        Integer, ForeignKey("franchises.id", ondelete="SET NULL", use_alter=True), nullable=True, index=True
    )
    profile_completed: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    failed_login_attempts: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    locked_until: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    last_login_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    # Relationships
    employer: Mapped[Optional["Franchise"]] = relationship(
        "Franchise", foreign_keys=[franchise_id]
    )
    owned_franchise: Mapped[Optional["Franchise"]] = relationship(
        "Franchise", back_populates="franchisor", foreign_keys="Franchise.franchisor_id", uselist=False
    )
    managed_units: Mapped[list["Unit"]] = relationship(
        "Unit", back_populates="franchisee", foreign_keys="Unit.franchisee_id"
    )

    def is_locked(self) -> bool:
        if self.locked_until is None:
            return False
        locked_until = self.locked_until
        if locked_until.tzinfo is None:
            locked_until = locked_until.replace(tzinfo=timezone.utc)
        return locked_until > datetime.now(timezone.utc)

