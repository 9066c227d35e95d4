"""Tenant scoping.

Every list and detail endpoint resolves a ``TenantScope`` for the caller and
runs its queries through it:

* admin sees everything;
* a franchisor sees the franchise they own;
* a franchisee sees the units they manage (and their franchise's catalogue and
  non-confidential documents);
* brokers and sales associates see what is assigned to them.

A record that exists outside the caller's scope is rejected with 403; a record
that does not exist at all is rejected with 404.
"""

from __future__ import annotations

import logging
from typing import Annotated, List, Optional

from fastapi import Depends, HTTPException, status
from sqlalchemy import and_, false, or_, select
from sqlalchemy.orm import Session

from franchisehub.core.rbac import SALES_ROLES, CurrentUser
from franchisehub.db.session import DbSession
from franchisehub.models import (
    Document, Franchise, Lead, Note, Product, Review, Revenue, Royalty, Staff, Task,
    TechnicalRequest, Transaction, Unit, UnitInventory, UnitPerformance, User, UserRole,
)

logger = logging.getLogger(__name__)

# Models owned through a franchise only
_FRANCHISE_LEVEL = (Product,)
# Ledger-style models owned by a franchise and attributed to a unit
_UNIT_LEDGER = (Transaction, Revenue, Royalty, UnitPerformance)
# Models hanging off a unit without their own franchise_id
_UNIT_CHILDREN = (Staff, Review, UnitInventory)


class TenantScope:
    """The caller together with the franchise and units they may act on."""

    def __init__(self, db: Session, user: User):
        self.db = db
        self.user = user
        self.role = user.role
        self.franchise_id: Optional[int] = None
        self.unit_ids: List[int] = []
        self._resolve()

    def _resolve(self) -> None:
        if self.role == UserRole.FRANCHISOR:
            franchise = self.db.query(Franchise).filter(Franchise.franchisor_id == self.user.id).first()
            self.franchise_id = franchise.id if franchise else None
        elif self.role == UserRole.FRANCHISEE:
            units = self.db.query(Unit).filter(Unit.franchisee_id == self.user.id).all()
            self.unit_ids = [u.id for u in units]
            self.franchise_id = units[0].franchise_id if units else None
        elif self.role in SALES_ROLES:
            self.franchise_id = self.user.franchise_id

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN

    @property
    def is_franchisor(self) -> bool:
        return self.role == UserRole.FRANCHISOR

    @property
    def is_franchisee(self) -> bool:
        return self.role == UserRole.FRANCHISEE

    @property
    def is_sales(self) -> bool:
        return self.role in SALES_ROLES

    def _franchise_match(self, column):
        if self.franchise_id is None:
            return false()
        return column == self.franchise_id

    def _unit_match(self, column):
        if not self.unit_ids:
            return false()
        return column.in_(self.unit_ids)

    def condition(self, model):
        """WHERE clause restricting ``model`` to this tenant, or None for no restriction."""
        if self.is_admin:
            return None
        uid = self.user.id

        if model is Franchise:
            return self._franchise_match(Franchise.id)

        if model is Unit:
            if self.is_franchisee:
                return self._unit_match(Unit.id)
            return self._franchise_match(Unit.franchise_id)

        if model is Lead:
            if self.is_franchisor:
                return self._franchise_match(Lead.franchise_id)
            if self.is_sales:
                return Lead.assigned_to == uid
            return false()

        if model is Note:
            visible_leads = select(Lead.id).where(self.condition(Lead))
            return or_(Note.user_id == uid, Note.lead_id.in_(visible_leads))

        if model is Task:
            if self.is_franchisor:
                return or_(self._franchise_match(Task.franchise_id), Task.created_by == uid)
            if self.is_franchisee:
                return or_(self._unit_match(Task.unit_id), Task.assigned_to == uid)
            return or_(Task.assigned_to == uid, Task.created_by == uid)

        if model is TechnicalRequest:
            if self.is_franchisor:
                return or_(
                    self._franchise_match(TechnicalRequest.franchise_id),
                    TechnicalRequest.requester_id == uid,
                )
            if self.is_franchisee:
                return or_(
                    self._unit_match(TechnicalRequest.unit_id),
                    TechnicalRequest.requester_id == uid,
                )
            return or_(TechnicalRequest.requester_id == uid, TechnicalRequest.assigned_to == uid)

        if model is Document:
            clause = self._franchise_match(Document.franchise_id)
            if self.is_franchisor:
                return clause
            # confidential files stay with the franchisor and the unit they were filed for
            return and_(clause, or_(Document.is_confidential.is_(False), self._unit_match(Document.unit_id)))

        if model in _FRANCHISE_LEVEL:
            return self._franchise_match(model.franchise_id)

        if model in _UNIT_LEDGER:
            if self.is_franchisor:
                return self._franchise_match(model.franchise_id)
            if self.is_franchisee:
                return self._unit_match(model.unit_id)
            return false()

        if model in _UNIT_CHILDREN:
            visible_units = select(Unit.id).where(self.condition(Unit))
            return model.unit_id.in_(visible_units)

        logger.warning(f"No tenant rule for {model.__name__}; denying access")
        return false()

    def apply(self, query, model):
        """Filter a query to the records this tenant may see."""
        clause = self.condition(model)
        if clause is None:
            return query
        return query.filter(clause)

    def can_access(self, record) -> bool:
        model = type(record)
        clause = self.condition(model)
        if clause is None:
            return True
        return self.db.query(model.id).filter(model.id == record.id, clause).first() is not None

    def check(self, record) -> None:
        """Raise 403 when ``record`` lies outside this tenant."""
        if not self.can_access(record):
            logger.warning(
                f"Cross-tenant access denied: user {self.user.id} ({self.role.value}) "
                f"-> {type(record).__name__} {record.id}"
            )
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="You do not have access to this resource",
            )

    def get_or_404(self, model, record_id, label: Optional[str] = None):
        """Load a record by id, 404 when missing and 403 when out of scope."""
        record = self.db.query(model).filter(model.id == record_id).first()
        if record is None:
            name = label or model.__name__
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"{name} not found")
        self.check(record)
        return record

    def require_franchise(self) -> Franchise:
        franchise = None
        if self.franchise_id is not None:
            franchise = self.db.query(Franchise).filter(Franchise.id == self.franchise_id).first()
        if franchise is None:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="No franchise found for this user",
            )
        return franchise

    def require_unit(self) -> Unit:
        if not self.unit_ids:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="No unit found for current user",
            )
        return self.db.query(Unit).filter(Unit.id == self.unit_ids[0]).first()

    def resolve_franchise_id(self, requested: Optional[int] = None) -> Optional[int]:
        """Franchise a new record belongs to: the caller's own, or ``requested`` for admins."""
        if self.is_admin:
            return requested
        return self.franchise_id


def get_tenant_scope(current_user: CurrentUser, db: DbSession) -> TenantScope:
    return TenantScope(db, current_user)


Tenant = Annotated[TenantScope, Depends(get_tenant_scope)]


def belongs_to_franchise(db: Session, user: User, franchise_id: Optional[int]) -> bool:
    """Whether ``user`` works inside ``franchise_id``.

    Admins belong everywhere. Otherwise the user must own the franchise, be one of
    its broker/sales users, or manage one of its units.
    """
    if franchise_id is None or user.role == UserRole.ADMIN:
        return True
    if user.role in SALES_ROLES:
        return user.franchise_id == franchise_id
    if user.role == UserRole.FRANCHISOR:
        owner = db.query(Franchise.franchisor_id).filter(Franchise.id == franchise_id).scalar()
        return owner == user.id
    if user.role == UserRole.FRANCHISEE:
        managed = db.query(Unit.id).filter(
            Unit.franchise_id == franchise_id, Unit.franchisee_id == user.id
        ).first()
        return managed is not None
    return False
