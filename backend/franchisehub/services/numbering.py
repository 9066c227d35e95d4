"""Human-readable document numbers and unit codes."""

import re
from datetime import date
from typing import Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from franchisehub.models import Franchise, Revenue, Royalty, TechnicalRequest, Transaction, Unit

# prefix -> (model, number column)
_SEQUENCES = {
    "TR": (TechnicalRequest, "ticket_number"),
    "TXN": (Transaction, "transaction_number"),
    "REV": (Revenue, "revenue_number"),
    "ROY": (Royalty, "royalty_number"),
}


def next_number(db: Session, prefix: str, on_date: Optional[date] = None) -> str:
    """``PREFIX`` + ``YYYYMM`` + 4-digit monthly sequence, e.g. ``TXN2024050007``."""
    model, column_name = _SEQUENCES[prefix]
    # pending rows must be visible to the max() lookup
    db.flush()
    column = getattr(model, column_name)
    stamp = f"{prefix}{(on_date or date.today()).strftime('%Y%m')}"

    # longer suffixes sort first so sequence 10000 beats 9999
    last = (
        db.query(column)
        .filter(column.like(f"{stamp}%"))
        .order_by(func.length(column).desc(), column.desc())
        .first()
    )
    sequence = 1
    if last and last[0][len(stamp):].isdigit():
        sequence = int(last[0][len(stamp):]) + 1
    return f"{stamp}{sequence:04d}"


def _alnum(value: Optional[str], length: int, fallback: str) -> str:
    cleaned = re.sub(r"[^A-Za-z0-9]", "", value or "").upper()[:length]
    return cleaned or fallback


def generate_unit_code(db: Session, franchise_name: Optional[str], unit_name: Optional[str]) -> str:
    """``AAA-BBBBBB`` from franchise and unit names, suffixed until unique."""
    db.flush()
    base = f"{_alnum(franchise_name, 3, 'UNI')}-{_alnum(unit_name, 6, 'UNIT')}"
    code = base
    counter = 1
    while db.query(Unit.id).filter(Unit.unit_code == code).first() is not None:
        code = f"{base}{counter}"
        counter += 1
    return code


def generate_registration_number(db: Session) -> str:
    """Placeholder business registration number, unique across franchises."""
    today = date.today().strftime("%Y%m%d")
    count = db.query(Franchise.id).count() + 1
    candidate = f"BRN-{today}-{count:04d}"
    while db.query(Franchise.id).filter(Franchise.business_registration_number == candidate).first():
        count += 1
        candidate = f"BRN-{today}-{count:04d}"
    return candidate
