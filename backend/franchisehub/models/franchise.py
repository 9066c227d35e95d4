"""Franchise, franchise documents and catalogue products."""

from __future__ import annotations

import enum
from datetime import date, datetime
from decimal import Decimal
from typing import Optional

from sqlalchemy import (
    Boolean, Date, DateTime, Enum as SQLEnum, ForeignKey, Integer, Numeric, String, Text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from franchisehub.db.base import Base, TimestampMixin, enum_values


class FranchiseStatus(str, enum.Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"
    PENDING_APPROVAL = "pending_approval"
    SUSPENDED = "suspended"


class BusinessType(str, enum.Enum):
    CORPORATION = "corporation"
    LLC = "llc"
    PARTNERSHIP = "partnership"
    SOLE_PROPRIETORSHIP = "sole_proprietorship"


class DocumentStatus(str, enum.Enum):
    ACTIVE = "active"
    APPROVED = "approved"
    REJECTED = "rejected"


class ProductStatus(str, enum.Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"
    DISCONTINUED = "discontinued"


class Franchise(Base, TimestampMixin):
    """A franchise brand owned by one franchisor."""

    __tablename__ = "franchises"

    id: Mapped[int] = mapped_column(primary_key=True)
    franchisor_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    business_name: Mapped[str] = mapped_column(String(255), nullable=False)
    brand_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    industry: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    website: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    logo: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    business_registration_number: Mapped[str] = mapped_column(String(100), unique=True, nullable=False)
    tax_id: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    business_type: Mapped[BusinessType] = mapped_column(
        SQLEnum(BusinessType, values_callable=enum_values, native_enum=False, length=30),
        default=BusinessType.CORPORATION,
        nullable=False,
    )
    established_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    headquarters_country: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    headquarters_city: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    headquarters_address: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    contact_phone: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    contact_email: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    franchise_fee: Mapped[Optional[Decimal]] = mapped_column(Numeric(12, 2), nullable=True)
    royalty_percentage: Mapped[Optional[Decimal]] = mapped_column(Numeric(5, 2), nullable=True)
    marketing_fee_percentage: Mapped[Optional[Decimal]] = mapped_column(Numeric(5, 2), nullable=True)
    total_units: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    active_units: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    status: Mapped[FranchiseStatus] = mapped_column(
        SQLEnum(FranchiseStatus, values_callable=enum_values, native_enum=False, length=30),
        default=FranchiseStatus.ACTIVE,
        nullable=False,
        index=True,
    )
    plan: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    is_marketplace_listed: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    # Relationships
    franchisor: Mapped["User"] = relationship(
        "User", back_populates="owned_franchise", foreign_keys=[franchisor_id]
    )
    units: Mapped[list["Unit"]] = relationship(
        "Unit", back_populates="franchise", cascade="all, delete-orphan"
    )
    documents: Mapped[list["Document"]] = relationship(
        "Document", back_populates="franchise", cascade="all, delete-orphan"
    )
    products: Mapped[list["Product"]] = relationship(
        "Product", back_populates="franchise", cascade="all, delete-orphan"
    )

    def update_unit_counts(self) -> None:
        """Recompute the denormalized unit counters."""
        from franchisehub.models.unit import UnitStatus

        self.total_units = len(self.units)
        self.active_units = sum(1 for u in self.units if u.status == UnitStatus.ACTIVE)


class Document(Base, TimestampMixin):
    """File stored against a franchise (optionally a specific unit)."""

    __tablename__ = "documents"

    id: Mapped[int] = mapped_column(primary_key=True)
    franchise_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("franchises.id", ondelete="CASCADE"), nullable=False, index=True
    )
    unit_id: Mapped[Optional[int]] = mapped_column(
        Integer, ForeignKey("units.id", ondelete="SET NULL"), nullable=True
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    type: Mapped[str] = mapped_column(String(100), nullable=False)  # contract, license, manual, ...
    file_path: Mapped[str] = mapped_column(String(500), nullable=False)
    file_name: Mapped[str] = mapped_column(String(255), nullable=False)
    file_extension: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    file_size: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    mime_type: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    expiry_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    is_confidential: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    status: Mapped[DocumentStatus] = mapped_column(
        SQLEnum(DocumentStatus, values_callable=enum_values, native_enum=False, length=20),
        default=DocumentStatus.ACTIVE,
        nullable=False,
    )
    rejection_reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    reviewed_by: Mapped[Optional[int]] = mapped_column(
        Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    reviewed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    franchise: Mapped["Franchise"] = relationship("Franchise", back_populates="documents")


class Product(Base, TimestampMixin):
    """Catalogue product a franchise supplies to its units."""

    __tablename__ = "products"

    id: Mapped[int] = mapped_column(primary_key=True)
    franchise_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("franchises.id", ondelete="CASCADE"), nullable=False, index=True
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    category: Mapped[Optional[str]] = mapped_column(String(100), nullable=True, index=True)
    unit_price: Mapped[Decimal] = mapped_column(Numeric(12, 2), default=Decimal("0"), nullable=False)
    cost_price: Mapped[Optional[Decimal]] = mapped_column(Numeric(12, 2), nullable=True)
    stock: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    minimum_stock: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    sku: Mapped[Optional[str]] = mapped_column(String(100), unique=True, nullable=True)
    image: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    status: Mapped[ProductStatus] = mapped_column(
        SQLEnum(ProductStatus, values_callable=enum_values, native_enum=False, length=20),
        default=ProductStatus.ACTIVE,
        nullable=False,
    )

    franchise: Mapped["Franchise"] = relationship("Franchise", back_populates="products")

    @property
    def is_low_stock(self) -> bool:
        return self.stock <= self.minimum_stock
