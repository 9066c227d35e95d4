"""Franchisor financial reports: charts, sales and expense ledgers, profit and the CSV round trip."""

import logging
from typing import Literal, Optional

from fastapi import APIRouter, File, Form, HTTPException, Query, Request, UploadFile, status

from franchisehub.core.config import settings
from franchisehub.core.file_utils import ALLOWED_IMPORT_EXTENSIONS, read_limited, validate_file_extension
from franchisehub.core.periods import period_range
from franchisehub.core.rate_limit import limiter
from franchisehub.core.rbac import RequireFranchisor
from franchisehub.core.responses import paginated_response, success_response
from franchisehub.core.tenancy import Tenant, TenantScope
from franchisehub.db.session import DbSession
from franchisehub.models import (
    Revenue, RevenueStatus, RevenueType, Transaction, TransactionStatus, TransactionType, Unit,
)
from franchisehub.schemas.pagination import ListParams, apply_search, paginate_query
from franchisehub.schemas.report import (
    ExpenseCreate, ExpenseUpdate, ReportFilters, ReportParams, SaleCreate, SaleUpdate,
)
from franchisehub.services.finance_service import RevenueService, TransactionService
from franchisehub.services.report_service import (
    EXPENSES_IMPORT_COLUMNS, SALES_IMPORT_COLUMNS, ReportService, Scope,
)
from franchisehub.services.tabular import create_csv_export, download_response, read_table, require_columns

logger = logging.getLogger(__name__)

router = APIRouter()


def _report_scope(scope: TenantScope, filters: ReportFilters) -> Scope:
    franchise = scope.require_franchise()
    if filters.unit_id is None:
        return Scope(franchise.id)
    unit = scope.get_or_404(Unit, filters.unit_id, "Unit")
    return Scope(franchise.id, [unit.id])


def _sale_row(revenue: Revenue) -> dict:
    return {
        "id": revenue.id,
        "revenue_number": revenue.revenue_number,
        "date": revenue.revenue_date.isoformat(),
        "product": ReportService.sale_product(revenue),
        "amount": float(revenue.net_amount),
        "description": revenue.description,
        "unit_id": revenue.unit_id,
        "unit_name": revenue.unit.unit_name if revenue.unit else None,
    }


def _expense_row(transaction: Transaction) -> dict:
    return {
        "id": transaction.id,
        "transaction_number": transaction.transaction_number,
        "date": transaction.transaction_date.isoformat(),
        "category": transaction.category.value,
        "amount": float(transaction.amount),
        "description": transaction.description,
        "unit_id": transaction.unit_id,
        "unit_name": transaction.unit.unit_name if transaction.unit else None,
    }


def _get_sale(scope: TenantScope, db, sale_id: int) -> Revenue:
    franchise = scope.require_franchise()
    sale = (
        db.query(Revenue)
        .filter(Revenue.id == sale_id, Revenue.type == RevenueType.SALES, Revenue.franchise_id == franchise.id)
        .first()
    )
    if sale is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Sale not found")
    return sale


def _get_expense(scope: TenantScope, db, expense_id: int) -> Transaction:
    franchise = scope.require_franchise()
    expense = (
        db.query(Transaction)
        .filter(
            Transaction.id == expense_id,
            Transaction.type == TransactionType.EXPENSE,
            Transaction.franchise_id == franchise.id,
        )
        .first()
    )
    if expense is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Expense not found")
    return expense


def _paginate_rows(rows: list, params) -> dict:
    if params.search:
        needle = params.search.lower()
        rows = [r for r in rows if any(needle in str(v).lower() for v in r.values() if v is not None)]
    start = (params.page - 1) * params.per_page
    page = rows[start:start + params.per_page]
    return paginated_response(page, len(rows), params.page, params.per_page)


# ---------- reports ----------

@router.get("/charts")
@limiter.limit("60/minute")
def charts(request: Request, filters: ReportParams, scope: Tenant, db: DbSession, current_user: RequireFranchisor):
    ledger = _report_scope(scope, filters)
    return success_response(ReportService.charts(db, ledger, filters.period, filters.year, filters.month))


@router.get("/statistics")
@limiter.limit("60/minute")
def statistics(request: Request, filters: ReportParams, scope: Tenant, db: DbSession, current_user: RequireFranchisor):
    ledger = _report_scope(scope, filters)
    return success_response(ReportService.statistics(db, ledger, filters.period, filters.year, filters.month))


@router.get("/profit")
@limiter.limit("60/minute")
def profit(
    request: Request,
    filters: ReportParams,
    params: ListParams,
    scope: Tenant,
    db: DbSession,
    current_user: RequireFranchisor,
):
    ledger = _report_scope(scope, filters)
    rows = ReportService.profit_rows(db, ledger, filters.period, filters.year, filters.month)
    return _paginate_rows(rows, params)


@router.get("/unit-performance")
@limiter.limit("60/minute")
def unit_performance(
    request: Request,
    filters: ReportParams,
    params: ListParams,
    scope: Tenant,
    db: DbSession,
    current_user: RequireFranchisor,
):
    ledger = _report_scope(scope, filters)
    unit_id = ledger.unit_ids[0] if ledger.unit_ids else None
    rows = ReportService.unit_performance(
        db, ledger.franchise_id, filters.period, filters.year, filters.month, unit_id
    )
    return _paginate_rows(rows, params)


# ---------- sales ----------

@router.get("/sales")
@limiter.limit("60/minute")
def list_sales(
    request: Request,
    filters: ReportParams,
    params: ListParams,
    scope: Tenant,
    db: DbSession,
    current_user: RequireFranchisor,
):
    ledger = _report_scope(scope, filters)
    date_range = period_range(filters.period, filters.year, filters.month)
    query = ReportService.sales_query(db, ledger, date_range)
    query = apply_search(query, params.search, [Revenue.description, Revenue.revenue_number])
    query = query.order_by(Revenue.revenue_date.desc(), Revenue.id.desc())
    items, total = paginate_query(query, params.page, params.per_page)
    return paginated_response([_sale_row(r) for r in items], total, params.page, params.per_page)


@router.post("/sales", status_code=status.HTTP_201_CREATED)
@limiter.limit("30/minute")
def create_sale(request: Request, data: SaleCreate, scope: Tenant, db: DbSession, current_user: RequireFranchisor):
    franchise = scope.require_franchise()
    if data.unit_id is not None:
        scope.get_or_404(Unit, data.unit_id, "Unit")
    try:
        sale = RevenueService.create(db, current_user, franchise.id, {
            "type": RevenueType.SALES,
            "amount": data.amount,
            "revenue_date": data.date,
            "description": data.description or data.product,
            "unit_id": data.unit_id,
            "status": RevenueStatus.VERIFIED,
            "line_items": [{"product_name": data.product, "quantity": 1, "unit_price": data.amount}],
        })
        db.commit()
        db.refresh(sale)
        return success_response(_sale_row(sale), "Sale recorded successfully")
    except Exception as e:
        db.rollback()
        logger.error(f"Failed to record sale for franchise {franchise.id}: {e}")
        raise HTTPException(status_code=500, detail="Failed to record sale")


@router.put("/sales/{sale_id}")
@limiter.limit("30/minute")
def update_sale(
    request: Request,
    sale_id: int,
    data: SaleUpdate,
    scope: Tenant,
    db: DbSession,
    current_user: RequireFranchisor,
):
    sale = _get_sale(scope, db, sale_id)
    changes = data.model_dump(exclude_unset=True)
    if changes.get("amount") is not None:
        sale.amount = changes["amount"]
    if changes.get("date") is not None:
        sale.revenue_date = changes["date"]
    if "description" in changes:
        sale.description = changes["description"]
    if changes.get("product") is not None or changes.get("amount") is not None:
        product = changes.get("product") or ReportService.sale_product(sale)
        sale.line_items = RevenueService.line_item_rows(
            [{"product_name": product, "quantity": 1, "unit_price": sale.amount}]
        )
    RevenueService.apply_amounts(sale)
    db.commit()
    db.refresh(sale)
    return success_response(_sale_row(sale), "Sale updated successfully")


@router.delete("/sales/{sale_id}")
@limiter.limit("30/minute")
def delete_sale(request: Request, sale_id: int, scope: Tenant, db: DbSession, current_user: RequireFranchisor):
    sale = _get_sale(scope, db, sale_id)
    db.delete(sale)
    db.commit()
    return success_response(message="Sale deleted successfully")


# ---------- expenses ----------

@router.get("/expenses")
@limiter.limit("60/minute")
def list_expenses(
    request: Request,
    filters: ReportParams,
    params: ListParams,
    scope: Tenant,
    db: DbSession,
    current_user: RequireFranchisor,
):
    ledger = _report_scope(scope, filters)
    date_range = period_range(filters.period, filters.year, filters.month)
    query = ReportService.expenses_query(db, ledger, date_range)
    query = apply_search(query, params.search, [Transaction.description, Transaction.transaction_number])
    query = query.order_by(Transaction.transaction_date.desc(), Transaction.id.desc())
    items, total = paginate_query(query, params.page, params.per_page)
    return paginated_response([_expense_row(t) for t in items], total, params.page, params.per_page)


@router.post("/expenses", status_code=status.HTTP_201_CREATED)
@limiter.limit("30/minute")
def create_expense(request: Request, data: ExpenseCreate, scope: Tenant, db: DbSession, current_user: RequireFranchisor):
    franchise = scope.require_franchise()
    if data.unit_id is not None:
        scope.get_or_404(Unit, data.unit_id, "Unit")
    try:
        expense = TransactionService.create(db, current_user, franchise.id, {
            "type": TransactionType.EXPENSE,
            "category": data.category,
            "amount": data.amount,
            "transaction_date": data.date,
            "description": data.description,
            "unit_id": data.unit_id,
            "status": TransactionStatus.COMPLETED,
        })
        db.commit()
        db.refresh(expense)
        return success_response(_expense_row(expense), "Expense recorded successfully")
    except Exception as e:
        db.rollback()
        logger.error(f"Failed to record expense for franchise {franchise.id}: {e}")
        raise HTTPException(status_code=500, detail="Failed to record expense")


@router.put("/expenses/{expense_id}")
@limiter.limit("30/minute")
def update_expense(
    request: Request,
    expense_id: int,
    data: ExpenseUpdate,
    scope: Tenant,
    db: DbSession,
    current_user: RequireFranchisor,
):
    expense = _get_expense(scope, db, expense_id)
    changes = data.model_dump(exclude_unset=True)
    if "date" in changes:
        date_value = changes.pop("date")
        if date_value is not None:
            expense.transaction_date = date_value
    for field, value in changes.items():
        if value is not None or field == "description":
            setattr(expense, field, value)
    db.commit()
    db.refresh(expense)
    return success_response(_expense_row(expense), "Expense updated successfully")


@router.delete("/expenses/{expense_id}")
@limiter.limit("30/minute")
def delete_expense(request: Request, expense_id: int, scope: Tenant, db: DbSession, current_user: RequireFranchisor):
    expense = _get_expense(scope, db, expense_id)
    db.delete(expense)
    db.commit()
    return success_response(message="Expense deleted successfully")


# ---------- import / export ----------

@router.post("/import")
@limiter.limit("10/minute")
def import_data(
    request: Request,
    scope: Tenant,
    db: DbSession,
    current_user: RequireFranchisor,
    category: Literal["sales", "expenses"] = Form(...),
    unit_id: Optional[int] = Form(None),
    file: UploadFile = File(...),
):
    """Import sales (date,product,amount) or expenses (date,category,amount,description)."""
    franchise = scope.require_franchise()
    if unit_id is not None:
        scope.get_or_404(Unit, unit_id, "Unit")
    required = SALES_IMPORT_COLUMNS if category == "sales" else EXPENSES_IMPORT_COLUMNS
    try:
        extension = validate_file_extension(file.filename or "", ALLOWED_IMPORT_EXTENSIONS)
        header, rows = read_table(read_limited(file.file, settings.max_upload_size_bytes), extension)
        require_columns(header, required)
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e))

    try:
        if category == "sales":
            result = ReportService.import_sales(db, current_user, franchise.id, rows, unit_id)
        else:
            result = ReportService.import_expenses(db, current_user, franchise.id, rows, unit_id)
        db.commit()
    except Exception as e:
        db.rollback()
        logger.error(f"Financial import ({category}) failed for franchise {franchise.id}: {e}")
        raise HTTPException(status_code=500, detail="Failed to import data")
    return success_response(result, f"Successfully imported {result['imported']} {category} records")


@router.get("/export")
@limiter.limit("10/minute")
def export_data(
    request: Request,
    filters: ReportParams,
    scope: Tenant,
    db: DbSession,
    current_user: RequireFranchisor,
    category: Literal["sales", "expenses", "profit"] = Query(...),
):
    ledger = _report_scope(scope, filters)
    header, rows = ReportService.export_rows(db, ledger, category, filters.period, filters.year, filters.month)
    filename = f"{category}_{filters.period.value}_{filters.year}.csv"
    return download_response(create_csv_export(rows, header), filename)
