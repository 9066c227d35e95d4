"""Royalty calculation, lifecycle and monthly generation."""

import logging
from datetime import date, timedelta
from decimal import ROUND_HALF_UP, Decimal
from typing import List, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from franchisehub.core.config import settings
from franchisehub.core.periods import month_bounds
from franchisehub.models import (
    Franchise, FranchiseStatus, Revenue, RevenueStatus, RevenueType, Royalty, RoyaltyStatus,
    RoyaltyType, Unit, UnitStatus,
)
from franchisehub.services.notification_service import NotificationService
from franchisehub.services.numbering import next_number

logger = logging.getLogger(__name__)

CENTS = Decimal("0.01")


def _money(value) -> Decimal:
    return Decimal(str(value or 0)).quantize(CENTS, rounding=ROUND_HALF_UP)


class RoyaltyService:
    """Service for royalty amounts, fees and monthly billing runs."""

    @staticmethod
    def calculate_amounts(royalty: Royalty) -> Royalty:
        """Derive fee amounts and total from gross revenue and percentages."""
        gross = _money(royalty.gross_revenue)
        royalty.royalty_amount = _money(gross * _money(royalty.royalty_percentage) / 100)
        royalty.marketing_fee_amount = _money(gross * _money(royalty.marketing_fee_percentage) / 100)
        royalty.total_amount = _money(
            royalty.royalty_amount
            + royalty.marketing_fee_amount
            + _money(royalty.technology_fee_amount)
            + _money(royalty.other_fees)
            + _money(royalty.adjustments)
            + _money(royalty.late_fee)
        )
        return royalty

    @staticmethod
    def build(
        db: Session,
        franchise: Franchise,
        year: int,
        month: int,
        gross_revenue,
        unit: Optional[Unit] = None,
        royalty_type: RoyaltyType = RoyaltyType.ROYALTY,
        royalty_percentage=None,
        marketing_fee_percentage=None,
        technology_fee_amount=None,
        other_fees=None,
        due_date: Optional[date] = None,
        status: RoyaltyStatus = RoyaltyStatus.PENDING,
        notes: Optional[str] = None,
    ) -> Royalty:
        """Create (and add to the session) a royalty for one billing month."""
        period = month_bounds(year, month)
        royalty = Royalty(
            royalty_number=next_number(db, "ROY"),
            franchise_id=franchise.id,
            unit_id=unit.id if unit else None,
            franchisee_id=unit.franchisee_id if unit else None,
            type=royalty_type,
            period_year=year,
            period_month=month,
            period_start_date=period.start,
            period_end_date=period.end,
            gross_revenue=_money(gross_revenue),
            royalty_percentage=_money(
                royalty_percentage if royalty_percentage is not None else franchise.royalty_percentage
            ),
            marketing_fee_percentage=_money(
                marketing_fee_percentage if marketing_fee_percentage is not None
                else franchise.marketing_fee_percentage
            ),
            technology_fee_amount=_money(
                technology_fee_amount if technology_fee_amount is not None
                else settings.technology_fee_amount
            ),
            other_fees=_money(other_fees),
            adjustments=Decimal("0.00"),
            late_fee=Decimal("0.00"),
            due_date=due_date or period.end + timedelta(days=settings.royalty_due_days),
            status=status,
            notes=notes,
        )
        RoyaltyService.calculate_amounts(royalty)
        db.add(royalty)
        return royalty

    @staticmethod
    def refresh_overdue(db: Session, query) -> int:
        """Flag pending royalties past their due date as overdue."""
        overdue = query.filter(
            Royalty.status == RoyaltyStatus.PENDING,
            Royalty.due_date < date.today(),
        ).all()
        for royalty in overdue:
            royalty.status = RoyaltyStatus.OVERDUE
        if overdue:
            logger.info(f"Marked {len(overdue)} royalties overdue")
        return len(overdue)

    @staticmethod
    def apply_late_fee(royalty: Royalty) -> Royalty:
        """Add the late fee once to an overdue royalty.

        Raises:
            ValueError: when the royalty is not overdue or already carries a late fee.
        """
        if not royalty.is_overdue and royalty.status != RoyaltyStatus.OVERDUE:
            raise ValueError("Late fee can only be applied to overdue royalties")
        if _money(royalty.late_fee) > 0:
            raise ValueError("Late fee has already been applied")
        fee = _money(_money(royalty.total_amount) * settings.late_fee_percentage / 100)
        royalty.late_fee = fee
        royalty.total_amount = _money(_money(royalty.total_amount) + fee)
        royalty.status = RoyaltyStatus.OVERDUE
        return royalty

    @staticmethod
    def apply_adjustment(royalty: Royalty, amount, reason: str) -> Royalty:
        """Replace the current adjustment with ``amount``."""
        amount = _money(amount)
        new_total = _money(royalty.total_amount) - _money(royalty.adjustments) + amount
        if new_total < 0:
            raise ValueError("Adjustment would make the total negative")
        royalty.total_amount = new_total
        royalty.adjustments = amount
        entry = f"[{date.today().isoformat()}] {amount}: {reason}"
        royalty.adjustment_notes = f"{royalty.adjustment_notes}\n{entry}" if royalty.adjustment_notes else entry
        return royalty

    @staticmethod
    def mark_paid(royalty: Royalty, payment_method, payment_reference=None, paid_date=None) -> Royalty:
        if royalty.status == RoyaltyStatus.PAID:
            raise ValueError("Royalty is already paid")
        if royalty.status == RoyaltyStatus.CANCELLED:
            raise ValueError("Cancelled royalties cannot be paid")
        royalty.status = RoyaltyStatus.PAID
        royalty.payment_method = payment_method
        royalty.payment_reference = payment_reference
        royalty.paid_date = paid_date or date.today()
        return royalty

    @staticmethod
    def unit_sales_for_month(db: Session, unit_id: int, year: int, month: int) -> Decimal:
        total = (
            db.query(func.coalesce(func.sum(Revenue.net_amount), 0))
            .filter(
                Revenue.unit_id == unit_id,
                Revenue.type == RevenueType.SALES,
                Revenue.status == RevenueStatus.VERIFIED,
                Revenue.period_year == year,
                Revenue.period_month == month,
            )
            .scalar()
        )
        return _money(total)

    @staticmethod
    def generate_monthly(db: Session, franchises: List[Franchise], year: int, month: int) -> List[Royalty]:
        """Bill every active unit of every active franchise once for ``year-month``."""
        created: List[Royalty] = []
        for franchise in franchises:
            if franchise.status != FranchiseStatus.ACTIVE:
                continue
            units = (
                db.query(Unit)
                .filter(Unit.franchise_id == franchise.id, Unit.status == UnitStatus.ACTIVE)
                .all()
            )
            for unit in units:
                exists = (
                    db.query(Royalty.id)
                    .filter(
                        Royalty.unit_id == unit.id,
                        Royalty.period_year == year,
                        Royalty.period_month == month,
                        Royalty.type == RoyaltyType.ROYALTY,
                    )
                    .first()
                )
                if exists:
                    continue
                gross = RoyaltyService.unit_sales_for_month(db, unit.id, year, month)
                if gross == 0:
                    gross = _money(unit.monthly_revenue)
                royalty = RoyaltyService.build(db, franchise, year, month, gross, unit=unit)
                created.append(royalty)
                NotificationService.notify(
                    db,
                    unit.franchisee_id,
                    type="royalty_generated",
                    title="New royalty invoice",
                    subtitle=f"{royalty.royalty_number} for {year}-{month:02d}: {royalty.total_amount} {settings.default_currency}",
                    icon="tabler-receipt",
                    color="warning",
                    url=f"/royalties/{royalty.royalty_number}",
                )
            logger.info(
                f"Generated royalties for franchise {franchise.id} period {year}-{month:02d}"
            )
        return created
