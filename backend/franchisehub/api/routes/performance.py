"""Unit performance analytics for franchisors."""

import logging
from datetime import date
from typing import Literal, Optional

from fastapi import APIRouter, HTTPException, Query, Request

from franchisehub.core.periods import PeriodType
from franchisehub.core.rate_limit import limiter
from franchisehub.core.rbac import RequireFranchisor
from franchisehub.core.responses import serialize_many, success_response
from franchisehub.core.tenancy import Tenant, TenantScope
from franchisehub.db.session import DbSession
from franchisehub.models import Unit
from franchisehub.schemas.report import SnapshotRequest, UnitPerformanceResponse
from franchisehub.services.performance_service import PerformanceService
from franchisehub.services.tabular import create_csv_export, download_response

logger = logging.getLogger(__name__)

router = APIRouter()


def _unit_filter(scope: TenantScope, unit_id: Optional[int]) -> Optional[int]:
    if unit_id is None:
        return None
    return scope.get_or_404(Unit, unit_id, "Unit").id


@router.get("/")
@limiter.limit("60/minute")
def performance_rows(
    request: Request,
    scope: Tenant,
    db: DbSession,
    current_user: RequireFranchisor,
    period_type: PeriodType = Query(PeriodType.MONTHLY),
    unit_id: Optional[int] = Query(None),
):
    franchise = scope.require_franchise()
    rows = PerformanceService.stored(db, franchise.id, period_type, _unit_filter(scope, unit_id))
    return success_response(serialize_many(UnitPerformanceResponse, rows))


@router.get("/chart-data")
@limiter.limit("60/minute")
def chart_data(
    request: Request,
    scope: Tenant,
    db: DbSession,
    current_user: RequireFranchisor,
    period_type: PeriodType = Query(PeriodType.MONTHLY),
    unit_id: Optional[int] = Query(None),
):
    franchise = scope.require_franchise()
    return success_response(
        PerformanceService.chart_data(db, franchise.id, period_type, _unit_filter(scope, unit_id))
    )


@router.get("/top-performers")
@limiter.limit("60/minute")
def top_performers(
    request: Request,
    scope: Tenant,
    db: DbSession,
    current_user: RequireFranchisor,
    limit: int = Query(3, ge=1, le=20),
):
    franchise = scope.require_franchise()
    return success_response(PerformanceService.top_performers(db, franchise.id, limit))


@router.get("/customer-satisfaction")
@limiter.limit("60/minute")
def customer_satisfaction(
    request: Request,
    scope: Tenant,
    db: DbSession,
    current_user: RequireFranchisor,
    period_type: PeriodType = Query(PeriodType.MONTHLY),
    unit_id: Optional[int] = Query(None),
):
    franchise = scope.require_franchise()
    return success_response(
        PerformanceService.customer_satisfaction(db, franchise.id, period_type, _unit_filter(scope, unit_id))
    )


@router.get("/ratings")
@limiter.limit("60/minute")
def ratings(request: Request, scope: Tenant, db: DbSession, current_user: RequireFranchisor):
    franchise = scope.require_franchise()
    return success_response(PerformanceService.ratings(db, franchise.id))


@router.post("/snapshot")
@limiter.limit("10/minute")
def snapshot(
    request: Request,
    data: SnapshotRequest,
    scope: Tenant,
    db: DbSession,
    current_user: RequireFranchisor,
):
    franchise = scope.require_franchise()
    try:
        rows = PerformanceService.snapshot(db, franchise.id, data.period_type, data.period_date or date.today())
        db.commit()
    except Exception as e:
        db.rollback()
        logger.error(f"Performance snapshot failed for franchise {franchise.id}: {e}")
        raise HTTPException(status_code=500, detail="Failed to store performance snapshot")
    for row in rows:
        db.refresh(row)
    return success_response(serialize_many(UnitPerformanceResponse, rows), f"{len(rows)} performance rows stored")


@router.get("/export")
@limiter.limit("10/minute")
def export_performance(
    request: Request,
    scope: Tenant,
    db: DbSession,
    current_user: RequireFranchisor,
    export_type: Literal["performance", "stats", "all"] = Query("all"),
    period_type: PeriodType = Query(PeriodType.MONTHLY),
    unit_id: Optional[int] = Query(None),
):
    franchise = scope.require_franchise()
    header, rows = PerformanceService.export_rows(
        db, franchise.id, period_type, export_type, _unit_filter(scope, unit_id)
    )
    filename = f"performance_{export_type}_{period_type.value}_{date.today().strftime('%Y%m%d')}.csv"
    return download_response(create_csv_export(rows, header), filename)


@router.get("/units")
@limiter.limit("60/minute")
def unit_options(request: Request, scope: Tenant, db: DbSession, current_user: RequireFranchisor):
    franchise = scope.require_franchise()
    return success_response(PerformanceService.unit_options(db, franchise.id))
