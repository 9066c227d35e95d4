"""Financial aggregation: sales, expenses, royalties and profit.

Sales are verified ``sales`` revenues summed on ``net_amount`` by
``revenue_date``; expenses are settled ``expense`` transactions net of their
refunds by ``transaction_date``; royalties are paid royalties summed on ``total_amount``
by ``period_start_date``. Profit is sales minus expenses minus royalties.
"""

import logging
from datetime import date
from decimal import Decimal, InvalidOperation
from typing import Dict, Iterable, List, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from franchisehub.core.periods import (
    DateRange, PeriodType, bucket_totals, percentage_change, period_label, period_range,
    period_starts, previous_period_range, ratio_percentage,
)
from franchisehub.models import (
    Revenue, RevenueStatus, RevenueType, Royalty, RoyaltyStatus, Transaction,
    TransactionCategory, TransactionStatus, TransactionType, Unit, User,
)
from franchisehub.services.finance_service import RevenueService, TransactionService, settled_in

logger = logging.getLogger(__name__)

SALES_EXPORT_HEADER = ["Date", "Product", "Amount", "Unit", "Revenue Number"]
EXPENSES_EXPORT_HEADER = ["Date", "Category", "Amount", "Description", "Unit", "Transaction Number"]
PROFIT_EXPORT_HEADER = ["Date", "Sales", "Expenses", "Royalties", "Profit"]

SALES_IMPORT_COLUMNS = ("date", "product", "amount")
EXPENSES_IMPORT_COLUMNS = ("date", "category", "amount", "description")


class Scope:
    """Franchise and optional unit filter for ledger queries."""

    def __init__(self, franchise_id: Optional[int] = None, unit_ids: Optional[Iterable[int]] = None):
        self.franchise_id = franchise_id
        self.unit_ids = list(unit_ids) if unit_ids is not None else None

    @classmethod
    def for_tenant(cls, tenant) -> "Scope":
        """Ledger scope matching a request's TenantScope."""
        if tenant.is_admin:
            return cls()
        if tenant.franchise_id is None:
            return cls(unit_ids=[])
        if tenant.is_franchisee:
            return cls(tenant.franchise_id, tenant.unit_ids)
        return cls(tenant.franchise_id)

    def apply(self, query, model):
        if self.franchise_id is not None:
            query = query.filter(model.franchise_id == self.franchise_id)
        if self.unit_ids is not None:
            query = query.filter(model.unit_id.in_(self.unit_ids))
        return query


class ReportService:
    """Service for financial reports and the CSV/XLSX round trip."""

    # ---------- base queries ----------

    @staticmethod
    def sales_query(db: Session, scope: Scope, date_range: Optional[DateRange] = None):
        query = db.query(Revenue).filter(
            Revenue.type == RevenueType.SALES,
            Revenue.status == RevenueStatus.VERIFIED,
        )
        query = scope.apply(query, Revenue)
        if date_range is not None:
            query = query.filter(Revenue.revenue_date.between(date_range.start, date_range.end))
        return query

    @staticmethod
    def expenses_query(db: Session, scope: Scope, date_range: Optional[DateRange] = None):
        query = db.query(Transaction).filter(settled_in((TransactionType.EXPENSE,)))
        query = scope.apply(query, Transaction)
        if date_range is not None:
            query = query.filter(Transaction.transaction_date.between(date_range.start, date_range.end))
        return query

    @staticmethod
    def royalties_query(db: Session, scope: Scope, date_range: Optional[DateRange] = None):
        query = db.query(Royalty).filter(Royalty.status == RoyaltyStatus.PAID)
        query = scope.apply(query, Royalty)
        if date_range is not None:
            query = query.filter(Royalty.period_start_date.between(date_range.start, date_range.end))
        return query

    @staticmethod
    def _rows(query, date_column, amount_column):
        return query.with_entities(date_column, amount_column).all()

    @staticmethod
    def series(db: Session, scope: Scope, period: PeriodType, date_range: DateRange) -> Dict[str, Dict[str, float]]:
        """Bucketed sales, expenses, royalties and profit over ``date_range``."""
        sales = bucket_totals(
            ReportService._rows(ReportService.sales_query(db, scope, date_range), Revenue.revenue_date, Revenue.net_amount),
            period, date_range,
        )
        expenses = bucket_totals(
            ReportService._rows(
                ReportService.expenses_query(db, scope, date_range), Transaction.transaction_date, Transaction.amount
            ),
            period, date_range,
        )
        royalties = bucket_totals(
            ReportService._rows(
                ReportService.royalties_query(db, scope, date_range), Royalty.period_start_date, Royalty.total_amount
            ),
            period, date_range,
        )
        profit = {k: round(sales[k] - expenses[k] - royalties[k], 2) for k in sales}
        return {"sales": sales, "expenses": expenses, "royalties": royalties, "profit": profit}

    @staticmethod
    def _sum(query, column) -> float:
        return float(query.with_entities(func.coalesce(func.sum(column), 0)).scalar() or 0)

    @staticmethod
    def totals(db: Session, scope: Scope, date_range: DateRange) -> Dict[str, float]:
        sales = ReportService._sum(ReportService.sales_query(db, scope, date_range), Revenue.net_amount)
        expenses = ReportService._sum(ReportService.expenses_query(db, scope, date_range), Transaction.amount)
        royalties = ReportService._sum(ReportService.royalties_query(db, scope, date_range), Royalty.total_amount)
        return {
            "sales": round(sales, 2),
            "expenses": round(expenses, 2),
            "royalties": round(royalties, 2),
            "profit": round(sales - expenses - royalties, 2),
        }

    # ---------- reports ----------

    @staticmethod
    def charts(db: Session, scope: Scope, period: PeriodType, year: int, month: int) -> dict:
        date_range = period_range(period, year, month)
        data = ReportService.series(db, scope, period, date_range)
        categories = [period_label(d, period) for d in period_starts(period, date_range.start, date_range.end)]
        return {
            "categories": categories,
            "series": [
                {"name": "Sales", "data": list(data["sales"].values())},
                {"name": "Expenses", "data": list(data["expenses"].values())},
                {"name": "Royalties", "data": list(data["royalties"].values())},
                {"name": "Profit", "data": list(data["profit"].values())},
            ],
        }

    @staticmethod
    def statistics(db: Session, scope: Scope, period: PeriodType, year: int, month: int) -> dict:
        current_range = period_range(period, year, month)
        previous_range = previous_period_range(period, year, month)
        current = ReportService.totals(db, scope, current_range)
        previous = ReportService.totals(db, scope, previous_range)
        stats = {
            key: {
                "total": current[key],
                "previous": previous[key],
                "change": percentage_change(current[key], previous[key]),
            }
            for key in ("sales", "expenses", "royalties", "profit")
        }
        stats["profit_margin"] = ratio_percentage(current["profit"], current["sales"])
        stats["period"] = {
            "type": PeriodType(period).value,
            "start": current_range.start.isoformat(),
            "end": current_range.end.isoformat(),
        }
        return stats

    @staticmethod
    def profit_rows(db: Session, scope: Scope, period: PeriodType, year: int, month: int) -> List[dict]:
        """Per-day rows over the selected range, newest first."""
        date_range = period_range(period, year, month)
        data = ReportService.series(db, scope, PeriodType.DAILY, date_range)
        rows = [
            {
                "date": key,
                "sales": data["sales"][key],
                "expenses": data["expenses"][key],
                "royalties": data["royalties"][key],
                "profit": data["profit"][key],
            }
            for key in data["sales"]
        ]
        rows.sort(key=lambda r: r["date"], reverse=True)
        return rows

    @staticmethod
    def unit_performance(db: Session, franchise_id: int, period: PeriodType, year: int, month: int,
                         unit_id: Optional[int] = None) -> List[dict]:
        date_range = period_range(period, year, month)
        units_query = db.query(Unit).filter(Unit.franchise_id == franchise_id)
        if unit_id is not None:
            units_query = units_query.filter(Unit.id == unit_id)
        rows = []
        for unit in units_query.all():
            t = ReportService.totals(db, Scope(franchise_id, [unit.id]), date_range)
            net_sales = round(t["sales"] - t["royalties"], 2)
            rows.append({
                "unit_id": unit.id,
                "unit_name": unit.unit_name,
                "unit_code": unit.unit_code,
                "location": unit.location,
                "sales": t["sales"],
                "expenses": t["expenses"],
                "royalties": t["royalties"],
                "net_sales": net_sales,
                "profit": t["profit"],
                "profit_margin": ratio_percentage(t["profit"], t["sales"]),
            })
        rows.sort(key=lambda r: r["profit"], reverse=True)
        return rows

    # ---------- import / export ----------

    @staticmethod
    def _parse_amount(raw: str) -> Decimal:
        try:
            amount = Decimal(str(raw).replace(",", ""))
        except (InvalidOperation, ValueError):
            raise ValueError(f"Invalid amount '{raw}'")
        if amount <= 0:
            raise ValueError("Amount must be greater than 0")
        return amount

    @staticmethod
    def _parse_date(raw: str) -> date:
        try:
            return date.fromisoformat(str(raw)[:10])
        except ValueError:
            raise ValueError(f"Invalid date '{raw}', expected YYYY-MM-DD")

    @staticmethod
    def import_sales(db: Session, user: User, franchise_id: int, rows: List[dict], unit_id: Optional[int] = None) -> dict:
        imported, errors = 0, []
        for row_num, row in enumerate(rows, start=2):
            try:
                product = (row.get("product") or "").strip()
                if not product:
                    raise ValueError("Product is required")
                amount = ReportService._parse_amount(row.get("amount"))
                revenue_date = ReportService._parse_date(row.get("date"))
            except ValueError as e:
                errors.append({"row": row_num, "error": str(e)})
                continue
            RevenueService.create(db, user, franchise_id, {
                "type": RevenueType.SALES,
                "amount": amount,
                "revenue_date": revenue_date,
                "description": product,
                "unit_id": unit_id,
                "status": RevenueStatus.VERIFIED,
                "line_items": [{"product_name": product, "quantity": 1, "unit_price": amount}],
            })
            imported += 1
        logger.info(f"Imported {imported} sales rows for franchise {franchise_id}")
        return {"imported": imported, "errors": errors}

    @staticmethod
    def import_expenses(db: Session, user: User, franchise_id: int, rows: List[dict], unit_id: Optional[int] = None) -> dict:
        imported, errors = 0, []
        for row_num, row in enumerate(rows, start=2):
            try:
                raw_category = (row.get("category") or "other").strip().lower().replace(" ", "_")
                try:
                    category = TransactionCategory(raw_category)
                except ValueError:
                    raise ValueError(f"Unknown category '{row.get('category')}'")
                amount = ReportService._parse_amount(row.get("amount"))
                txn_date = ReportService._parse_date(row.get("date"))
            except ValueError as e:
                errors.append({"row": row_num, "error": str(e)})
                continue
            TransactionService.create(db, user, franchise_id, {
                "type": TransactionType.EXPENSE,
                "category": category,
                "amount": amount,
                "transaction_date": txn_date,
                "description": row.get("description") or None,
                "unit_id": unit_id,
                "status": TransactionStatus.COMPLETED,
            })
            imported += 1
        logger.info(f"Imported {imported} expense rows for franchise {franchise_id}")
        return {"imported": imported, "errors": errors}

    @staticmethod
    def sale_product(revenue: Revenue) -> str:
        items = revenue.line_items or []
        if items and isinstance(items[0], dict) and items[0].get("product_name"):
            return items[0]["product_name"]
        return revenue.description or ""

    @staticmethod
    def export_rows(db: Session, scope: Scope, category: str, period: PeriodType, year: int, month: int):
        """Return (header, rows) for ``category`` in sales, expenses or profit."""
        date_range = period_range(period, year, month)
        if category == "sales":
            sales = ReportService.sales_query(db, scope, date_range).order_by(Revenue.revenue_date.desc()).all()
            return SALES_EXPORT_HEADER, [
                [r.revenue_date, ReportService.sale_product(r), float(r.net_amount),
                 r.unit.unit_name if r.unit else "", r.revenue_number]
                for r in sales
            ]
        if category == "expenses":
            expenses = (
                ReportService.expenses_query(db, scope, date_range)
                .order_by(Transaction.transaction_date.desc())
                .all()
            )
            return EXPENSES_EXPORT_HEADER, [
                [t.transaction_date, t.category.value, float(t.amount), t.description or "",
                 t.unit.unit_name if t.unit else "", t.transaction_number]
                for t in expenses
            ]
        rows = ReportService.profit_rows(db, scope, period, year, month)
        return PROFIT_EXPORT_HEADER, [
            [r["date"], r["sales"], r["expenses"], r["royalties"], r["profit"]] for r in rows
        ]
