"""Transaction and revenue lifecycle."""

import logging
from datetime import date, datetime, timezone
from decimal import ROUND_HALF_UP, Decimal
from typing import List, Optional

from sqlalchemy import and_, or_, select
from sqlalchemy.orm import Session, aliased

from franchisehub.core.periods import next_occurrence
from franchisehub.models import (
    PaymentStatus, Revenue, RevenueStatus, Transaction, TransactionStatus, TransactionType, User,
)
from franchisehub.services.numbering import next_number

logger = logging.getLogger(__name__)

CENTS = Decimal("0.01")

INCOME_TYPES = (TransactionType.REVENUE, TransactionType.FRANCHISE_FEE)
EXPENSE_TYPES = (TransactionType.EXPENSE, TransactionType.ROYALTY, TransactionType.MARKETING_FEE)

SETTLED_STATUSES = (TransactionStatus.COMPLETED, TransactionStatus.REFUNDED)


def settled_in(types):
    """Condition for transactions that count towards ``types`` totals.

    A refunded parent keeps counting at its full amount; its completed
    negative ``refund`` children are netted into the parent's bucket.
    """
    parent = aliased(Transaction)
    refunded_parents = select(parent.id).where(parent.type.in_(types))
    return or_(
        and_(Transaction.type.in_(types), Transaction.status.in_(SETTLED_STATUSES)),
        and_(
            Transaction.type == TransactionType.REFUND,
            Transaction.status == TransactionStatus.COMPLETED,
            Transaction.parent_transaction_id.in_(refunded_parents),
        ),
    )


def money(value) -> Decimal:
    return Decimal(str(value or 0)).quantize(CENTS, rounding=ROUND_HALF_UP)


class TransactionService:
    """Service for recording and settling transactions."""

    @staticmethod
    def create(db: Session, user: User, franchise_id: Optional[int], data: dict) -> Transaction:
        txn_date = data.get("transaction_date") or date.today()
        transaction = Transaction(
            **data,
            transaction_number=next_number(db, "TXN", txn_date),
            franchise_id=franchise_id,
            user_id=user.id,
        )
        db.add(transaction)
        return transaction

    @staticmethod
    def complete(db: Session, transaction: Transaction) -> Optional[Transaction]:
        """Mark a pending transaction completed.

        Returns the next occurrence when the transaction is recurring and the
        series has not ended yet.
        """
        if transaction.status != TransactionStatus.PENDING:
            raise ValueError("Only pending transactions can be completed")
        transaction.status = TransactionStatus.COMPLETED
        logger.info(f"Transaction {transaction.transaction_number} completed")

        if not transaction.is_recurring or transaction.recurrence_type is None:
            return None
        next_date = next_occurrence(
            transaction.transaction_date, transaction.recurrence_type, transaction.recurrence_interval
        )
        if transaction.recurrence_end_date and next_date > transaction.recurrence_end_date:
            return None
        successor = Transaction(
            transaction_number=next_number(db, "TXN", next_date),
            type=transaction.type,
            category=transaction.category,
            amount=transaction.amount,
            currency=transaction.currency,
            description=transaction.description,
            franchise_id=transaction.franchise_id,
            unit_id=transaction.unit_id,
            user_id=transaction.user_id,
            transaction_date=next_date,
            status=TransactionStatus.PENDING,
            payment_method=transaction.payment_method,
            vendor_customer=transaction.vendor_customer,
            is_recurring=True,
            recurrence_type=transaction.recurrence_type,
            recurrence_interval=transaction.recurrence_interval,
            recurrence_end_date=transaction.recurrence_end_date,
            parent_transaction_id=transaction.id,
        )
        db.add(successor)
        return successor

    @staticmethod
    def cancel(transaction: Transaction) -> Transaction:
        if transaction.status != TransactionStatus.PENDING:
            raise ValueError("Only pending transactions can be cancelled")
        transaction.status = TransactionStatus.CANCELLED
        return transaction

    @staticmethod
    def refund(db: Session, transaction: Transaction, user: User, amount=None, reason: str = "") -> Transaction:
        """Record a negative refund child and flag the original as refunded."""
        if transaction.status != TransactionStatus.COMPLETED:
            raise ValueError("Only completed transactions can be refunded")
        refund_amount = money(amount if amount is not None else transaction.amount)
        if refund_amount > money(transaction.amount):
            raise ValueError("Refund amount cannot exceed the original amount")

        refund = Transaction(
            transaction_number=next_number(db, "TXN"),
            type=TransactionType.REFUND,
            category=transaction.category,
            amount=-refund_amount,
            currency=transaction.currency,
            description=f"Refund for {transaction.transaction_number}: {reason}",
            franchise_id=transaction.franchise_id,
            unit_id=transaction.unit_id,
            user_id=user.id,
            transaction_date=date.today(),
            status=TransactionStatus.COMPLETED,
            payment_method=transaction.payment_method,
            parent_transaction_id=transaction.id,
        )
        db.add(refund)
        transaction.status = TransactionStatus.REFUNDED
        logger.info(f"Transaction {transaction.transaction_number} refunded {refund_amount}")
        return refund


class RevenueService:
    """Service for revenue records."""

    @staticmethod
    def apply_amounts(revenue: Revenue) -> Revenue:
        revenue.net_amount = money(
            money(revenue.amount) - money(revenue.discount_amount) + money(revenue.tax_amount)
        )
        revenue.period_year = revenue.revenue_date.year
        revenue.period_month = revenue.revenue_date.month
        return revenue

    @staticmethod
    def line_item_rows(items: List[dict]) -> List[dict]:
        rows = []
        for item in items:
            quantity = int(item["quantity"])
            unit_price = money(item["unit_price"])
            rows.append({
                "product_name": item["product_name"],
                "quantity": quantity,
                "unit_price": float(unit_price),
                "total": float(money(unit_price * quantity)),
            })
        return rows

    @staticmethod
    def create(db: Session, user: User, franchise_id: Optional[int], data: dict) -> Revenue:
        line_items = data.pop("line_items", None)
        revenue = Revenue(
            **data,
            revenue_number=next_number(db, "REV", data["revenue_date"]),
            franchise_id=franchise_id,
            user_id=user.id,
        )
        if line_items:
            revenue.line_items = RevenueService.line_item_rows(line_items)
        if revenue.status == RevenueStatus.VERIFIED:
            revenue.verified_by = user.id
            revenue.verified_at = datetime.now(timezone.utc)
        RevenueService.apply_amounts(revenue)
        db.add(revenue)
        return revenue

    @staticmethod
    def verify(revenue: Revenue, user: User) -> Revenue:
        if revenue.status == RevenueStatus.VERIFIED:
            raise ValueError("Revenue is already verified")
        revenue.status = RevenueStatus.VERIFIED
        revenue.verified_by = user.id
        revenue.verified_at = datetime.now(timezone.utc)
        return revenue

    @staticmethod
    def dispute(revenue: Revenue, reason: str) -> Revenue:
        revenue.status = RevenueStatus.DISPUTED
        entry = f"Disputed: {reason}"
        revenue.notes = f"{revenue.notes}\n{entry}" if revenue.notes else entry
        return revenue

    @staticmethod
    def refund(db: Session, revenue: Revenue, user: User, amount=None, reason: str = "") -> Revenue:
        if revenue.payment_status == PaymentStatus.REFUNDED:
            raise ValueError("Revenue has already been refunded")
        refund_amount = money(amount if amount is not None else revenue.net_amount)
        if refund_amount > money(revenue.net_amount):
            raise ValueError("Refund amount cannot exceed the net amount")

        refund = Revenue(
            revenue_number=next_number(db, "REV"),
            franchise_id=revenue.franchise_id,
            unit_id=revenue.unit_id,
            user_id=user.id,
            type=revenue.type,
            category=revenue.category,
            amount=-refund_amount,
            currency=revenue.currency,
            description=f"Refund for {revenue.revenue_number}: {reason}",
            revenue_date=date.today(),
            payment_method=revenue.payment_method,
            payment_status=PaymentStatus.REFUNDED,
            discount_amount=Decimal("0.00"),
            tax_amount=Decimal("0.00"),
            status=RevenueStatus.VERIFIED,
            verified_by=user.id,
            verified_at=datetime.now(timezone.utc),
            parent_revenue_id=revenue.id,
        )
        RevenueService.apply_amounts(refund)
        db.add(refund)
        revenue.payment_status = PaymentStatus.REFUNDED
        logger.info(f"Revenue {revenue.revenue_number} refunded {refund_amount}")
        return refund

    @staticmethod
    def add_line_items(revenue: Revenue, items: List[dict], recalculate_amount: bool = False) -> Revenue:
        rows = list(revenue.line_items or []) + RevenueService.line_item_rows(items)
        revenue.line_items = rows
        if recalculate_amount:
            revenue.amount = money(sum(Decimal(str(r["total"])) for r in rows))
            RevenueService.apply_amounts(revenue)
        return revenue
