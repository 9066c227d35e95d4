"""Dashboard cards for franchisors, unit managers and admins.

All figures are aggregated from stored revenues, transactions, royalties,
leads and tasks.
"""

import logging
from datetime import date, datetime, timedelta, timezone
from typing import Dict, List, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from franchisehub.core.periods import (
    DateRange, last_n_months, month_bounds, percentage_change, previous_month, ratio_percentage,
)
from franchisehub.models import (
    Franchise, Lead, LeadStatus, RequestStatus, Revenue, Royalty, RoyaltyStatus, Task, TaskStatus,
    TechnicalRequest, Unit, UnitStatus, User, UserRole,
)
from franchisehub.services.report_service import ReportService, Scope

logger = logging.getLogger(__name__)

REQUIRED_FRANCHISE_FIELDS = (
    "business_name", "brand_name", "industry", "description", "website", "logo",
    "business_registration_number", "tax_id", "business_type", "established_date",
    "headquarters_country", "headquarters_city", "headquarters_address", "contact_phone",
    "contact_email", "royalty_percentage",
)


def _month_ranges(today: date):
    current = month_bounds(today.year, today.month)
    previous = month_bounds(*previous_month(today))
    return current, previous


def _created_between(column, date_range: DateRange):
    return column.between(date_range.start_datetime, date_range.end_datetime)


class DashboardService:
    """Service for the role dashboards."""

    # ---------- franchisor ----------

    @staticmethod
    def franchisor_stats(db: Session, franchise: Franchise, today: Optional[date] = None) -> dict:
        today = today or date.today()
        current, previous = _month_ranges(today)
        scope = Scope(franchise.id)
        current_sales = ReportService.totals(db, scope, current)["sales"]
        previous_sales = ReportService.totals(db, scope, previous)["sales"]
        pending_royalties = (
            db.query(func.coalesce(func.sum(Royalty.total_amount), 0))
            .filter(
                Royalty.franchise_id == franchise.id,
                Royalty.status.in_([RoyaltyStatus.PENDING, RoyaltyStatus.OVERDUE]),
            )
            .scalar()
        )
        return {
            "totalFranchisees": (
                db.query(func.count(func.distinct(Unit.franchisee_id)))
                .filter(Unit.franchise_id == franchise.id, Unit.franchisee_id.isnot(None))
                .scalar()
            ),
            "totalUnits": db.query(Unit).filter(Unit.franchise_id == franchise.id).count(),
            "totalLeads": db.query(Lead).filter(Lead.franchise_id == franchise.id).count(),
            "activeTasks": (
                db.query(Task)
                .filter(
                    Task.franchise_id == franchise.id,
                    Task.status.in_([TaskStatus.PENDING, TaskStatus.IN_PROGRESS]),
                )
                .count()
            ),
            "currentMonthRevenue": current_sales,
            "revenueChange": percentage_change(current_sales, previous_sales),
            "pendingRoyalties": round(float(pending_royalties or 0), 2),
        }

    @staticmethod
    def _top_units(db: Session, franchise_id: int, date_range: DateRange, key: str, limit: int = 5) -> List[dict]:
        rows = []
        for unit in db.query(Unit).filter(Unit.franchise_id == franchise_id).all():
            totals = ReportService.totals(db, Scope(franchise_id, [unit.id]), date_range)
            rows.append({
                "unit_id": unit.id,
                "unit_name": unit.unit_name,
                "location": unit.location,
                "amount": totals[key],
            })
        rows.sort(key=lambda r: r["amount"], reverse=True)
        return rows[:limit]

    @staticmethod
    def franchisor_finance(db: Session, franchise: Franchise, today: Optional[date] = None) -> dict:
        today = today or date.today()
        scope = Scope(franchise.id)
        months = last_n_months(12, today)
        chart = {"months": [], "sales": [], "expenses": [], "profit": [], "royalties": []}
        for month in months:
            totals = ReportService.totals(db, scope, month)
            chart["months"].append(month.start.strftime("%b %Y"))
            chart["sales"].append(totals["sales"])
            chart["expenses"].append(totals["expenses"])
            chart["profit"].append(totals["profit"])
            chart["royalties"].append(totals["royalties"])

        current_range, previous_range = _month_ranges(today)
        current = ReportService.totals(db, scope, current_range)
        previous = ReportService.totals(db, scope, previous_range)
        margin = ratio_percentage(current["profit"], current["sales"])
        previous_margin = ratio_percentage(previous["profit"], previous["sales"])
        stats = {
            "sales": current["sales"],
            "expenses": current["expenses"],
            "profit": current["profit"],
            "royalties": current["royalties"],
            "salesChange": percentage_change(current["sales"], previous["sales"]),
            "expensesChange": percentage_change(current["expenses"], previous["expenses"]),
            "profitChange": percentage_change(current["profit"], previous["profit"]),
            "profitMargin": margin,
            "profitMarginChange": round(margin - previous_margin, 2),
        }
        year_range = DateRange(months[0].start, months[-1].end)
        return {
            "chart": chart,
            "stats": stats,
            "topSalesUnits": DashboardService._top_units(db, franchise.id, year_range, "sales"),
            "topRoyaltyUnits": DashboardService._top_units(db, franchise.id, year_range, "royalties"),
        }

    @staticmethod
    def lead_counts(db: Session, franchise_id: int, today: Optional[date] = None) -> dict:
        today = today or date.today()
        current, previous = _month_ranges(today)
        base = db.query(Lead).filter(Lead.franchise_id == franchise_id)
        pending_statuses = [
            LeadStatus.NEW, LeadStatus.CONTACTED, LeadStatus.QUALIFIED,
            LeadStatus.PROPOSAL_SENT, LeadStatus.NEGOTIATING,
        ]
        buckets = {
            "total": None,
            "pending": Lead.status.in_(pending_statuses),
            "won": Lead.status == LeadStatus.CLOSED_WON,
            "lost": Lead.status == LeadStatus.CLOSED_LOST,
        }
        result = {}
        for name, clause in buckets.items():
            query = base if clause is None else base.filter(clause)
            this_month = query.filter(_created_between(Lead.created_at, current)).count()
            last_month = query.filter(_created_between(Lead.created_at, previous)).count()
            result[name] = {
                "count": query.count(),
                "thisMonth": this_month,
                "change": percentage_change(this_month, last_month),
            }
        return result

    @staticmethod
    def task_counts(query) -> dict:
        by_status = {s.value: 0 for s in TaskStatus}
        for status, count in query.with_entities(Task.status, func.count(Task.id)).group_by(Task.status).all():
            by_status[status.value] = count
        by_priority: Dict[str, int] = {}
        for priority, count in query.with_entities(Task.priority, func.count(Task.id)).group_by(Task.priority).all():
            by_priority[priority.value] = count
        total = sum(by_status.values())
        return {
            "total": total,
            "byStatus": by_status,
            "byPriority": by_priority,
            "completionRate": ratio_percentage(by_status[TaskStatus.COMPLETED.value], total),
        }

    @staticmethod
    def timeline(db: Session, franchise_id: int, limit: int = 20) -> List[dict]:
        since = datetime.now(timezone.utc) - timedelta(days=30)
        events = []
        for lead in (
            db.query(Lead).filter(Lead.franchise_id == franchise_id, Lead.created_at >= since)
            .order_by(Lead.created_at.desc()).limit(limit).all()
        ):
            events.append({
                "type": "lead", "id": lead.id, "title": f"New lead: {lead.full_name}",
                "status": lead.status.value, "created_at": lead.created_at,
            })
        for task in (
            db.query(Task).filter(Task.franchise_id == franchise_id, Task.created_at >= since)
            .order_by(Task.created_at.desc()).limit(limit).all()
        ):
            events.append({
                "type": "task", "id": task.id, "title": task.title,
                "status": task.status.value, "created_at": task.created_at,
            })
        for req in (
            db.query(TechnicalRequest)
            .filter(TechnicalRequest.franchise_id == franchise_id, TechnicalRequest.created_at >= since)
            .order_by(TechnicalRequest.created_at.desc()).limit(limit).all()
        ):
            events.append({
                "type": "technical_request", "id": req.id, "title": f"{req.ticket_number}: {req.title}",
                "status": req.status.value, "created_at": req.created_at,
            })
        events.sort(key=lambda e: e["created_at"].replace(tzinfo=None), reverse=True)
        return events[:limit]

    @staticmethod
    def profile_completion(franchise: Optional[Franchise]) -> dict:
        if franchise is None:
            return {
                "has_franchise": False,
                "completion_percentage": 0.0,
                "missing_fields": list(REQUIRED_FRANCHISE_FIELDS),
                "is_complete": False,
            }
        missing = [f for f in REQUIRED_FRANCHISE_FIELDS if getattr(franchise, f) in (None, "")]
        filled = len(REQUIRED_FRANCHISE_FIELDS) - len(missing)
        return {
            "has_franchise": True,
            "completion_percentage": ratio_percentage(filled, len(REQUIRED_FRANCHISE_FIELDS)),
            "missing_fields": missing,
            "is_complete": not missing,
        }

    @staticmethod
    def units_statistics(db: Session, franchise_id: int, today: Optional[date] = None) -> dict:
        today = today or date.today()
        current, previous = _month_ranges(today)
        units = db.query(Unit).filter(Unit.franchise_id == franchise_id).all()
        scope = Scope(franchise_id)
        current_sales = ReportService.totals(db, scope, current)["sales"]
        previous_sales = ReportService.totals(db, scope, previous)["sales"]
        by_status = {s.value: 0 for s in UnitStatus}
        for unit in units:
            by_status[unit.status.value] += 1
        total = len(units)
        return {
            "totalUnits": total,
            "activeUnits": by_status[UnitStatus.ACTIVE.value],
            "byStatus": by_status,
            "totalRevenue": current_sales,
            "averageRevenuePerUnit": round(current_sales / total, 2) if total else 0.0,
            "revenueChange": percentage_change(current_sales, previous_sales),
        }

    # ---------- unit manager ----------

    @staticmethod
    def unit_sales_statistics(db: Session, unit: Unit, today: Optional[date] = None) -> dict:
        today = today or date.today()
        current_range, previous_range = _month_ranges(today)
        scope = Scope(unit.franchise_id, [unit.id])
        current = ReportService.sales_query(db, scope, current_range)
        previous = ReportService.sales_query(db, scope, previous_range)
        current_gross = ReportService._sum(current, Revenue.amount)
        previous_gross = ReportService._sum(previous, Revenue.amount)
        current_net = ReportService._sum(current, Revenue.net_amount)
        previous_net = ReportService._sum(previous, Revenue.net_amount)
        return {
            "currentMonthSales": round(current_gross, 2),
            "previousMonthSales": round(previous_gross, 2),
            "salesChange": percentage_change(current_gross, previous_gross),
            "currentMonthNet": round(current_net, 2),
            "previousMonthNet": round(previous_net, 2),
            "netChange": percentage_change(current_net, previous_net),
            "transactions": current.count(),
        }

    @staticmethod
    def product_sales(db: Session, unit: Unit, today: Optional[date] = None, limit: int = 5) -> dict:
        today = today or date.today()
        current_range, _ = _month_ranges(today)
        totals: Dict[str, Dict[str, float]] = {}
        for revenue in ReportService.sales_query(db, Scope(unit.franchise_id, [unit.id]), current_range).all():
            for item in revenue.line_items or []:
                if not isinstance(item, dict) or not item.get("product_name"):
                    continue
                entry = totals.setdefault(item["product_name"], {"quantity": 0, "revenue": 0.0})
                entry["quantity"] += int(item.get("quantity") or 0)
                entry["revenue"] = round(entry["revenue"] + float(item.get("total") or 0), 2)
        ranked = sorted(
            ({"product_name": name, **values} for name, values in totals.items()),
            key=lambda r: (r["quantity"], r["revenue"]),
            reverse=True,
        )
        return {
            "mostSelling": ranked[:limit],
            "leastSelling": list(reversed(ranked[-limit:])) if ranked else [],
        }

    @staticmethod
    def unit_finance_statistics(db: Session, unit: Unit, today: Optional[date] = None) -> dict:
        today = today or date.today()
        current_range, previous_range = _month_ranges(today)
        scope = Scope(unit.franchise_id, [unit.id])
        current = ReportService.totals(db, scope, current_range)
        previous = ReportService.totals(db, scope, previous_range)
        return {
            "sales": current["sales"],
            "expenses": current["expenses"],
            "royalties": current["royalties"],
            "profit": current["profit"],
            "salesChange": percentage_change(current["sales"], previous["sales"]),
            "expensesChange": percentage_change(current["expenses"], previous["expenses"]),
            "royaltiesChange": percentage_change(current["royalties"], previous["royalties"]),
            "profitChange": percentage_change(current["profit"], previous["profit"]),
            "profitMargin": ratio_percentage(current["profit"], current["sales"]),
        }

    @staticmethod
    def unit_financial_summary(db: Session, unit: Unit, today: Optional[date] = None) -> List[dict]:
        today = today or date.today()
        scope = Scope(unit.franchise_id, [unit.id])
        summary = []
        for month in last_n_months(6, today):
            totals = ReportService.totals(db, scope, month)
            summary.append({"month": month.start.strftime("%b %Y"), **totals})
        return summary

    # ---------- admin ----------

    @staticmethod
    def admin_stats(db: Session, today: Optional[date] = None) -> dict:
        today = today or date.today()
        current, previous = _month_ranges(today)
        users_by_role = {r.value: 0 for r in UserRole}
        for role, count in db.query(User.role, func.count(User.id)).group_by(User.role).all():
            users_by_role[role.value] = count
        scope = Scope()
        current_sales = ReportService.totals(db, scope, current)["sales"]
        previous_sales = ReportService.totals(db, scope, previous)["sales"]
        open_requests = (
            db.query(TechnicalRequest)
            .filter(TechnicalRequest.status.in_(
                [RequestStatus.OPEN, RequestStatus.IN_PROGRESS, RequestStatus.PENDING_INFO]
            ))
            .count()
        )
        return {
            "totalUsers": sum(users_by_role.values()),
            "usersByRole": users_by_role,
            "totalFranchises": db.query(Franchise).count(),
            "totalUnits": db.query(Unit).count(),
            "openTechnicalRequests": open_requests,
            "currentMonthRevenue": current_sales,
            "revenueChange": percentage_change(current_sales, previous_sales),
        }

    @staticmethod
    def admin_chart(db: Session, today: Optional[date] = None) -> dict:
        today = today or date.today()
        chart = {"months": [], "registrations": [], "revenue": []}
        for month in last_n_months(12, today):
            chart["months"].append(month.start.strftime("%b %Y"))
            chart["registrations"].append(
                db.query(User).filter(_created_between(User.created_at, month)).count()
            )
            chart["revenue"].append(ReportService.totals(db, Scope(), month)["sales"])
        return chart

    @staticmethod
    def user_stats(db: Session, role: Optional[UserRole] = None) -> dict:
        query = db.query(User)
        if role is not None:
            query = query.filter(User.role == role)
        by_status = {}
        for status, count in query.with_entities(User.status, func.count(User.id)).group_by(User.status).all():
            by_status[status.value] = count
        return {"total": sum(by_status.values()), "byStatus": by_status}
