"""Transaction ledger routes."""

import logging
from datetime import date
from typing import List, Optional

from fastapi import APIRouter, File, HTTPException, Query, Request, UploadFile, status
from sqlalchemy import func

from franchisehub.core.file_utils import save_uploads
from franchisehub.core.periods import month_bounds, percentage_change, previous_month
from franchisehub.core.rate_limit import limiter
from franchisehub.core.rbac import RequireManagement
from franchisehub.core.responses import paginated_response, serialize, serialize_many, success_response
from franchisehub.core.tenancy import Tenant, TenantScope
from franchisehub.db.session import DbSession
from franchisehub.models import (
    PaymentMethod, Transaction, TransactionCategory, TransactionStatus, TransactionType, Unit,
)
from franchisehub.schemas.finance import (
    RefundRequest, TransactionCreate, TransactionResponse, TransactionUpdate,
)
from franchisehub.schemas.franchise import IdList
from franchisehub.schemas.pagination import (
    ListParams, PaginationParams, apply_filters, apply_search, apply_sort, paginate_query,
)
from franchisehub.services.finance_service import (
    EXPENSE_TYPES, INCOME_TYPES, SETTLED_STATUSES, TransactionService, settled_in,
)

logger = logging.getLogger(__name__)

router = APIRouter()

SORTABLE = ("transaction_number", "type", "category", "amount", "status", "transaction_date", "created_at")


def resolve_ledger_owner(scope: TenantScope, unit_id: Optional[int], franchise_id: Optional[int]):
    """(franchise_id, unit_id) for a new ledger record created by this tenant."""
    if unit_id is not None:
        unit = scope.get_or_404(Unit, unit_id, "Unit")
        return unit.franchise_id, unit.id
    if scope.is_franchisee:
        scope.require_unit()
        return scope.franchise_id, scope.unit_ids[0]
    owner = scope.resolve_franchise_id(franchise_id)
    if owner is None:
        if scope.is_admin:
            raise HTTPException(status_code=422, detail="franchise_id or unit_id is required")
        scope.require_franchise()
    return owner, None


def _list(
    scope: TenantScope,
    db,
    params: PaginationParams,
    filters: dict,
    types=None,
    date_from: Optional[date] = None,
    date_to: Optional[date] = None,
):
    query = scope.apply(db.query(Transaction), Transaction)
    if types is not None:
        query = query.filter(Transaction.type.in_(types))
    query = apply_filters(query, Transaction, filters)
    if date_from:
        query = query.filter(Transaction.transaction_date >= date_from)
    if date_to:
        query = query.filter(Transaction.transaction_date <= date_to)
    query = apply_search(query, params.search, [
        Transaction.transaction_number, Transaction.description, Transaction.vendor_customer,
        Transaction.reference_number,
    ])
    query = apply_sort(query, Transaction, params.sort_by, params.sort_order, SORTABLE)
    items, total = paginate_query(query, params.page, params.per_page)
    return paginated_response(serialize_many(TransactionResponse, items), total, params.page, params.per_page)


@router.get("/")
@limiter.limit("60/minute")
def list_transactions(
    request: Request,
    scope: Tenant,
    params: ListParams,
    db: DbSession,
    current_user: RequireManagement,
    type: Optional[TransactionType] = Query(None),
    category: Optional[TransactionCategory] = Query(None),
    txn_status: Optional[TransactionStatus] = Query(None, alias="status"),
    unit_id: Optional[int] = Query(None),
    payment_method: Optional[PaymentMethod] = Query(None),
    date_from: Optional[date] = Query(None),
    date_to: Optional[date] = Query(None),
):
    filters = {
        "type": type, "category": category, "status": txn_status,
        "unit_id": unit_id, "payment_method": payment_method,
    }
    return _list(scope, db, params, filters, date_from=date_from, date_to=date_to)


@router.get("/revenue")
@limiter.limit("60/minute")
def list_income(
    request: Request,
    scope: Tenant,
    params: ListParams,
    db: DbSession,
    current_user: RequireManagement,
    txn_status: Optional[TransactionStatus] = Query(None, alias="status"),
    unit_id: Optional[int] = Query(None),
    date_from: Optional[date] = Query(None),
    date_to: Optional[date] = Query(None),
):
    return _list(scope, db, params, {"status": txn_status, "unit_id": unit_id}, INCOME_TYPES, date_from, date_to)


@router.get("/expenses")
@limiter.limit("60/minute")
def list_expenses(
    request: Request,
    scope: Tenant,
    params: ListParams,
    db: DbSession,
    current_user: RequireManagement,
    txn_status: Optional[TransactionStatus] = Query(None, alias="status"),
    category: Optional[TransactionCategory] = Query(None),
    unit_id: Optional[int] = Query(None),
    date_from: Optional[date] = Query(None),
    date_to: Optional[date] = Query(None),
):
    filters = {"status": txn_status, "category": category, "unit_id": unit_id}
    return _list(scope, db, params, filters, EXPENSE_TYPES, date_from, date_to)


@router.get("/statistics")
@limiter.limit("60/minute")
def transaction_statistics(request: Request, scope: Tenant, db: DbSession, current_user: RequireManagement):
    """Settled income and expense totals, net of refunds, with month-over-month change."""
    ledger = scope.apply(db.query(Transaction), Transaction)
    completed = ledger.filter(Transaction.status.in_(SETTLED_STATUSES))

    def total(query, types) -> float:
        value = (
            query.filter(settled_in(types))
            .with_entities(func.coalesce(func.sum(Transaction.amount), 0))
            .scalar()
        )
        return round(float(value), 2)

    def in_range(date_range):
        return ledger.filter(Transaction.transaction_date.between(date_range.start, date_range.end))

    by_type = {t.value: 0.0 for t in TransactionType}
    for txn_type, amount in (
        completed.with_entities(Transaction.type, func.sum(Transaction.amount)).group_by(Transaction.type).all()
    ):
        by_type[txn_type.value] = round(float(amount or 0), 2)

    today = date.today()
    current = month_bounds(today.year, today.month)
    previous = month_bounds(*previous_month(today))
    income = total(ledger, INCOME_TYPES)
    expenses = total(ledger, EXPENSE_TYPES)
    current_income = total(in_range(current), INCOME_TYPES)
    previous_income = total(in_range(previous), INCOME_TYPES)
    current_expenses = total(in_range(current), EXPENSE_TYPES)
    previous_expenses = total(in_range(previous), EXPENSE_TYPES)
    status_counts = {s.value: 0 for s in TransactionStatus}
    for txn_status, count in (
        scope.apply(db.query(Transaction), Transaction)
        .with_entities(Transaction.status, func.count(Transaction.id))
        .group_by(Transaction.status)
        .all()
    ):
        status_counts[txn_status.value] = count
    return success_response({
        "totalIncome": income,
        "totalExpenses": expenses,
        "netAmount": round(income - expenses, 2),
        "byType": by_type,
        "byStatus": status_counts,
        "currentMonthIncome": current_income,
        "currentMonthExpenses": current_expenses,
        "incomeChange": percentage_change(current_income, previous_income),
        "expensesChange": percentage_change(current_expenses, previous_expenses),
    })


@router.post("/bulk-complete")
@limiter.limit("30/minute")
def bulk_complete(request: Request, data: IdList, scope: Tenant, db: DbSession, current_user: RequireManagement):
    transactions = scope.apply(db.query(Transaction), Transaction).filter(Transaction.id.in_(data.ids)).all()
    completed = 0
    for txn in transactions:
        if txn.status == TransactionStatus.PENDING:
            TransactionService.complete(db, txn)
            completed += 1
    db.commit()
    return success_response({"updated": completed}, f"{completed} transactions completed")


@router.post("/bulk-cancel")
@limiter.limit("30/minute")
def bulk_cancel(request: Request, data: IdList, scope: Tenant, db: DbSession, current_user: RequireManagement):
    transactions = scope.apply(db.query(Transaction), Transaction).filter(Transaction.id.in_(data.ids)).all()
    cancelled = 0
    for txn in transactions:
        if txn.status == TransactionStatus.PENDING:
            TransactionService.cancel(txn)
            cancelled += 1
    db.commit()
    return success_response({"updated": cancelled}, f"{cancelled} transactions cancelled")


@router.post("/", status_code=status.HTTP_201_CREATED)
@limiter.limit("30/minute")
def create_transaction(
    request: Request,
    data: TransactionCreate,
    scope: Tenant,
    db: DbSession,
    current_user: RequireManagement,
):
    franchise_id, unit_id = resolve_ledger_owner(scope, data.unit_id, data.franchise_id)
    try:
        payload = data.model_dump(exclude={"franchise_id", "unit_id"})
        txn = TransactionService.create(db, current_user, franchise_id, {**payload, "unit_id": unit_id})
        db.commit()
        db.refresh(txn)
        logger.info(f"Transaction {txn.transaction_number} recorded by user {current_user.id}")
        return success_response(serialize(TransactionResponse, txn), "Transaction created successfully")
    except Exception as e:
        db.rollback()
        logger.error(f"Failed to create transaction: {e}")
        raise HTTPException(status_code=500, detail="Failed to create transaction")


@router.get("/{transaction_id}")
@limiter.limit("60/minute")
def get_transaction(request: Request, transaction_id: int, scope: Tenant, current_user: RequireManagement):
    txn = scope.get_or_404(Transaction, transaction_id, "Transaction")
    return success_response(serialize(TransactionResponse, txn))


@router.put("/{transaction_id}")
@limiter.limit("30/minute")
def update_transaction(
    request: Request,
    transaction_id: int,
    data: TransactionUpdate,
    scope: Tenant,
    db: DbSession,
    current_user: RequireManagement,
):
    txn = scope.get_or_404(Transaction, transaction_id, "Transaction")
    changes = data.model_dump(exclude_unset=True)
    if changes.get("unit_id") is not None:
        unit = scope.get_or_404(Unit, changes["unit_id"], "Unit")
        if unit.franchise_id != txn.franchise_id:
            raise HTTPException(status_code=422, detail="unit_id must belong to the transaction's franchise")
    try:
        for field, value in changes.items():
            setattr(txn, field, value)
        db.commit()
        db.refresh(txn)
        return success_response(serialize(TransactionResponse, txn), "Transaction updated successfully")
    except Exception as e:
        db.rollback()
        logger.error(f"Failed to update transaction {transaction_id}: {e}")
        raise HTTPException(status_code=500, detail="Failed to update transaction")


@router.delete("/{transaction_id}")
@limiter.limit("30/minute")
def delete_transaction(request: Request, transaction_id: int, scope: Tenant, db: DbSession, current_user: RequireManagement):
    txn = scope.get_or_404(Transaction, transaction_id, "Transaction")
    db.delete(txn)
    db.commit()
    return success_response(message="Transaction deleted successfully")


@router.patch("/{transaction_id}/complete")
@limiter.limit("30/minute")
def complete_transaction(
    request: Request,
    transaction_id: int,
    scope: Tenant,
    db: DbSession,
    current_user: RequireManagement,
):
    txn = scope.get_or_404(Transaction, transaction_id, "Transaction")
    try:
        successor = TransactionService.complete(db, txn)
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e))
    db.commit()
    db.refresh(txn)
    payload = serialize(TransactionResponse, txn)
    if successor is not None:
        db.refresh(successor)
        payload["next_transaction"] = serialize(TransactionResponse, successor)
    return success_response(payload, "Transaction completed")


@router.patch("/{transaction_id}/cancel")
@limiter.limit("30/minute")
def cancel_transaction(
    request: Request,
    transaction_id: int,
    scope: Tenant,
    db: DbSession,
    current_user: RequireManagement,
):
    txn = scope.get_or_404(Transaction, transaction_id, "Transaction")
    try:
        TransactionService.cancel(txn)
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e))
    db.commit()
    db.refresh(txn)
    return success_response(serialize(TransactionResponse, txn), "Transaction cancelled")


@router.post("/{transaction_id}/refund")
@limiter.limit("30/minute")
def refund_transaction(
    request: Request,
    transaction_id: int,
    data: RefundRequest,
    scope: Tenant,
    db: DbSession,
    current_user: RequireManagement,
):
    txn = scope.get_or_404(Transaction, transaction_id, "Transaction")
    try:
        refund = TransactionService.refund(db, txn, current_user, data.amount, data.reason)
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e))
    db.commit()
    db.refresh(txn)
    db.refresh(refund)
    return success_response(
        {"transaction": serialize(TransactionResponse, txn), "refund": serialize(TransactionResponse, refund)},
        "Refund recorded",
    )


@router.post("/{transaction_id}/attachments")
@limiter.limit("30/minute")
def upload_transaction_attachments(
    request: Request,
    transaction_id: int,
    scope: Tenant,
    db: DbSession,
    current_user: RequireManagement,
    files: List[UploadFile] = File(...),
):
    txn = scope.get_or_404(Transaction, transaction_id, "Transaction")
    try:
        stored = save_uploads(files, f"transactions/{txn.id}")
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e))
    txn.attachments = list(txn.attachments or []) + stored
    db.commit()
    db.refresh(txn)
    return success_response(serialize(TransactionResponse, txn), f"{len(stored)} attachments uploaded")
