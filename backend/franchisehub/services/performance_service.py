"""Unit performance analytics and stored snapshots."""

import logging
from datetime import date
from decimal import Decimal
from typing import List, Optional

from dateutil.relativedelta import relativedelta
from sqlalchemy import func
from sqlalchemy.orm import Session

from franchisehub.core.periods import (
    DateRange, PeriodType, month_bounds, percentage_change, period_label, period_range,
    period_starts, previous_month, previous_period_range, trailing_window_start,
)
from franchisehub.models import Review, ReviewStatus, Transaction, Unit, UnitPerformance
from franchisehub.services.report_service import ReportService, Scope

logger = logging.getLogger(__name__)

PERFORMANCE_EXPORT_HEADER = [
    "Unit", "Period Type", "Period Date", "Revenue", "Expenses", "Royalties", "Profit",
    "Transactions", "Customer Rating", "Reviews", "Growth Rate",
]
STATS_EXPORT_HEADER = ["Unit", "Revenue", "Expenses", "Royalties", "Profit", "Average Rating", "Reviews"]


def bucket_range(period_type: PeriodType, d: date) -> DateRange:
    """The single day, month or year containing ``d``."""
    period_type = PeriodType(period_type)
    if period_type == PeriodType.DAILY:
        return DateRange(d, d)
    if period_type == PeriodType.MONTHLY:
        return month_bounds(d.year, d.month)
    return DateRange(date(d.year, 1, 1), date(d.year, 12, 31))


def _previous_bucket(period_type: PeriodType, d: date) -> date:
    if period_type == PeriodType.DAILY:
        return d - relativedelta(days=1)
    if period_type == PeriodType.MONTHLY:
        return d.replace(day=1) - relativedelta(months=1)
    return date(d.year - 1, 1, 1)


class PerformanceService:
    """Service for performance charts, rankings and snapshots."""

    @staticmethod
    def units(db: Session, franchise_id: int, unit_id: Optional[int] = None) -> List[Unit]:
        query = db.query(Unit).filter(Unit.franchise_id == franchise_id)
        if unit_id is not None:
            query = query.filter(Unit.id == unit_id)
        return query.order_by(Unit.unit_name).all()

    @staticmethod
    def window(period_type: PeriodType, today: Optional[date] = None) -> DateRange:
        today = today or date.today()
        return DateRange(trailing_window_start(period_type, today), today)

    @staticmethod
    def stored(db: Session, franchise_id: int, period_type: PeriodType, unit_id: Optional[int] = None):
        window = PerformanceService.window(period_type)
        query = db.query(UnitPerformance).filter(
            UnitPerformance.franchise_id == franchise_id,
            UnitPerformance.period_type == PeriodType(period_type).value,
            UnitPerformance.period_date >= window.start,
        )
        if unit_id is not None:
            query = query.filter(UnitPerformance.unit_id == unit_id)
        return query.order_by(UnitPerformance.period_date.desc(), UnitPerformance.unit_id).all()

    @staticmethod
    def _dataset(db: Session, scope: Scope, period_type: PeriodType, window: DateRange) -> dict:
        data = ReportService.series(db, scope, period_type, window)
        return {
            "revenue": list(data["sales"].values()),
            "expenses": list(data["expenses"].values()),
            "royalties": list(data["royalties"].values()),
            "profit": list(data["profit"].values()),
        }

    @staticmethod
    def chart_data(db: Session, franchise_id: int, period_type: PeriodType, unit_id: Optional[int] = None) -> dict:
        window = PerformanceService.window(period_type)
        labels = [period_label(d, period_type) for d in period_starts(period_type, window.start, window.end)]
        units = PerformanceService.units(db, franchise_id, unit_id)
        all_scope = Scope(franchise_id, [unit_id] if unit_id is not None else None)
        datasets = {"all": PerformanceService._dataset(db, all_scope, period_type, window)}
        for unit in units:
            dataset = PerformanceService._dataset(db, Scope(franchise_id, [unit.id]), period_type, window)
            dataset["unit_name"] = unit.unit_name
            datasets[str(unit.id)] = dataset
        return {"labels": labels, "datasets": datasets}

    @staticmethod
    def top_performers(db: Session, franchise_id: int, limit: int = 3, today: Optional[date] = None) -> List[dict]:
        today = today or date.today()
        current_range = month_bounds(today.year, today.month)
        previous_range = month_bounds(*previous_month(today))
        rows = []
        for unit in PerformanceService.units(db, franchise_id):
            scope = Scope(franchise_id, [unit.id])
            current = ReportService.totals(db, scope, current_range)["sales"]
            previous = ReportService.totals(db, scope, previous_range)["sales"]
            growth = percentage_change(current, previous)
            rows.append({
                "unit_id": unit.id,
                "unit_name": unit.unit_name,
                "location": unit.location,
                "current_revenue": current,
                "previous_revenue": previous,
                "growth_rate": growth,
                "growth": f"{'+' if growth >= 0 else ''}{growth}%",
            })
        rows.sort(key=lambda r: r["current_revenue"], reverse=True)
        return rows[:limit]

    @staticmethod
    def _rating_query(db: Session, franchise_id: int, unit_id: Optional[int] = None):
        query = (
            db.query(Review)
            .join(Unit, Unit.id == Review.unit_id)
            .filter(Unit.franchise_id == franchise_id, Review.status != ReviewStatus.ARCHIVED)
        )
        if unit_id is not None:
            query = query.filter(Review.unit_id == unit_id)
        return query

    @staticmethod
    def _average_rating(query, date_range: DateRange):
        avg, count = (
            query.filter(Review.review_date.between(date_range.start, date_range.end))
            .with_entities(func.avg(Review.rating), func.count(Review.id))
            .one()
        )
        return (round(float(avg), 2) if avg is not None else 0.0), count

    @staticmethod
    def customer_satisfaction(db: Session, franchise_id: int, period_type: PeriodType,
                              unit_id: Optional[int] = None, today: Optional[date] = None) -> dict:
        today = today or date.today()
        query = PerformanceService._rating_query(db, franchise_id, unit_id)
        current, current_count = PerformanceService._average_rating(
            query, period_range(period_type, today.year, today.month)
        )
        previous, _ = PerformanceService._average_rating(
            query, previous_period_range(period_type, today.year, today.month)
        )
        change = percentage_change(current, previous)
        trend = "up" if change > 0 else "down" if change < 0 else "stable"
        return {
            "current_score": current,
            "previous_score": previous,
            "change": change,
            "trend": trend,
            "total_reviews": current_count,
        }

    @staticmethod
    def ratings(db: Session, franchise_id: int) -> dict:
        rows = (
            PerformanceService._rating_query(db, franchise_id)
            .with_entities(Unit.id, Unit.unit_name, func.avg(Review.rating), func.count(Review.id))
            .group_by(Unit.id, Unit.unit_name)
            .all()
        )
        ranked = sorted(
            (
                {"unit_id": uid, "unit_name": name, "average_rating": round(float(avg), 2), "reviews_count": count}
                for uid, name, avg, count in rows
                if avg is not None
            ),
            key=lambda r: r["average_rating"],
            reverse=True,
        )
        return {
            "top_rated": ranked[0] if ranked else None,
            "lowest_rated": ranked[-1] if ranked else None,
        }

    @staticmethod
    def snapshot(db: Session, franchise_id: int, period_type: PeriodType, period_date: date) -> List[UnitPerformance]:
        """Compute and upsert one UnitPerformance row per unit for the bucket holding ``period_date``."""
        period_type = PeriodType(period_type)
        current_range = bucket_range(period_type, period_date)
        previous_range = bucket_range(period_type, _previous_bucket(period_type, current_range.start))
        saved = []
        for unit in PerformanceService.units(db, franchise_id):
            scope = Scope(franchise_id, [unit.id])
            totals = ReportService.totals(db, scope, current_range)
            previous = ReportService.totals(db, scope, previous_range)
            transactions = (
                db.query(func.count(Transaction.id))
                .filter(
                    Transaction.unit_id == unit.id,
                    Transaction.transaction_date.between(current_range.start, current_range.end),
                )
                .scalar()
            )
            avg, reviews = PerformanceService._average_rating(
                PerformanceService._rating_query(db, franchise_id, unit.id), current_range
            )
            row = (
                db.query(UnitPerformance)
                .filter(
                    UnitPerformance.unit_id == unit.id,
                    UnitPerformance.period_type == period_type.value,
                    UnitPerformance.period_date == current_range.start,
                )
                .first()
            )
            if row is None:
                row = UnitPerformance(
                    franchise_id=franchise_id,
                    unit_id=unit.id,
                    period_type=period_type.value,
                    period_date=current_range.start,
                )
                db.add(row)
            row.revenue = Decimal(str(totals["sales"]))
            row.expenses = Decimal(str(totals["expenses"]))
            row.royalties = Decimal(str(totals["royalties"]))
            row.profit = Decimal(str(totals["profit"]))
            row.total_transactions = transactions or 0
            row.customer_rating = Decimal(str(avg)) if reviews else None
            row.customer_reviews_count = reviews
            row.growth_rate = Decimal(str(percentage_change(totals["sales"], previous["sales"])))
            saved.append(row)
        logger.info(
            f"Stored {len(saved)} {period_type.value} performance rows for franchise {franchise_id} "
            f"at {current_range.start}"
        )
        return saved

    @staticmethod
    def export_rows(db: Session, franchise_id: int, period_type: PeriodType, export_type: str,
                    unit_id: Optional[int] = None):
        """Return (header, rows) for ``export_type`` in performance, stats or all."""
        rows: List[list] = []
        header: List[str] = []
        if export_type in ("performance", "all"):
            header = PERFORMANCE_EXPORT_HEADER
            for p in PerformanceService.stored(db, franchise_id, period_type, unit_id):
                rows.append([
                    p.unit.unit_name if p.unit else p.unit_id, p.period_type, p.period_date,
                    float(p.revenue), float(p.expenses), float(p.royalties), float(p.profit),
                    p.total_transactions,
                    float(p.customer_rating) if p.customer_rating is not None else "",
                    p.customer_reviews_count,
                    float(p.growth_rate) if p.growth_rate is not None else "",
                ])
        if export_type in ("stats", "all"):
            window = PerformanceService.window(period_type)
            stats_rows = []
            for unit in PerformanceService.units(db, franchise_id, unit_id):
                t = ReportService.totals(db, Scope(franchise_id, [unit.id]), window)
                avg, count = PerformanceService._average_rating(
                    PerformanceService._rating_query(db, franchise_id, unit.id), window
                )
                stats_rows.append([unit.unit_name, t["sales"], t["expenses"], t["royalties"], t["profit"], avg, count])
            if export_type == "stats":
                return STATS_EXPORT_HEADER, stats_rows
            rows.append([])
            rows.append(STATS_EXPORT_HEADER)
            rows.extend(stats_rows)
        return header, rows

    @staticmethod
    def unit_options(db: Session, franchise_id: int) -> List[dict]:
        options = [{"id": None, "name": "All Units"}]
        options.extend(
            {"id": u.id, "name": u.unit_name, "unit_code": u.unit_code}
            for u in PerformanceService.units(db, franchise_id)
        )
        return options
