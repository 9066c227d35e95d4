"""Lead assignment, communication log, import and export."""

import logging
from datetime import date, datetime, timezone
from typing import List, Optional

from pydantic import ValidationError
from sqlalchemy.orm import Session

from franchisehub.core.rbac import SALES_ROLES
from franchisehub.models import Franchise, Lead, LeadSource, LeadStatus, Note, User, UserStatus
from franchisehub.schemas.lead import LeadCreate
from franchisehub.services.notification_service import NotificationService

logger = logging.getLogger(__name__)

IMPORT_COLUMNS = ("first_name", "last_name", "email", "phone", "city", "lead_source")
EXPORT_COLUMNS = (
    "id", "first_name", "last_name", "email", "phone", "company_name", "city", "lead_source",
    "status", "priority", "assigned_to", "created_at",
)


class LeadService:
    """Service for lead workflow. Callers own the commit."""

    @staticmethod
    def resolve_assignee(db: Session, franchise_id: Optional[int], user_id: int) -> User:
        """The assignee must be the franchise's broker/sales user or its franchisor."""
        assignee = db.query(User).filter(User.id == user_id).first()
        if assignee is None or assignee.status == UserStatus.SUSPENDED:
            raise ValueError("Assignee not found")
        if franchise_id is None:
            return assignee
        if assignee.role in SALES_ROLES and assignee.franchise_id == franchise_id:
            return assignee
        owner = db.query(Franchise.franchisor_id).filter(Franchise.id == franchise_id).scalar()
        if owner == assignee.id:
            return assignee
        raise ValueError("Leads can only be assigned to the franchisor or its sales associates")

    @staticmethod
    def assign(db: Session, lead: Lead, assignee: User) -> Lead:
        lead.assigned_to = assignee.id
        NotificationService.notify(
            db,
            assignee.id,
            type="lead_assigned",
            title="New lead assigned",
            subtitle=f"{lead.full_name} ({lead.email})",
            icon="tabler-user-plus",
            color="success",
            url=f"/leads/{lead.id}",
        )
        return lead

    @staticmethod
    def mark_lost(lead: Lead, reason: str) -> Lead:
        lead.status = LeadStatus.CLOSED_LOST
        lead.lost_reason = reason
        return lead

    @staticmethod
    def convert(lead: Lead) -> Lead:
        if lead.status == LeadStatus.CLOSED_WON:
            raise ValueError("Lead is already converted")
        lead.status = LeadStatus.CLOSED_WON
        return lead

    @staticmethod
    def log_communication(db: Session, lead: Lead, author: User, note: str, entry_type: str = "note") -> Note:
        """Append to the lead's communication log and record a Note."""
        now = datetime.now(timezone.utc)
        log = list(lead.communication_log or [])
        log.append({
            "type": entry_type,
            "note": note,
            "user_id": author.id,
            "user_name": author.name,
            "created_at": now.isoformat(),
        })
        lead.communication_log = log
        lead.last_contact_date = date.today()
        if entry_type in ("call", "email", "meeting"):
            lead.contact_attempts = (lead.contact_attempts or 0) + 1
            if lead.status == LeadStatus.NEW:
                lead.status = LeadStatus.CONTACTED
        record = Note(
            lead_id=lead.id,
            user_id=author.id,
            title=f"{entry_type.capitalize()} logged",
            description=note,
        )
        db.add(record)
        return record

    @staticmethod
    def import_rows(db: Session, rows: List[dict], franchise_id: Optional[int]) -> dict:
        """Create leads from parsed rows; row numbers in errors count the header as 1."""
        imported = 0
        errors = []
        seen = set()
        for row_num, row in enumerate(rows, start=2):
            email = (row.get("email") or "").strip().lower()
            if email in seen or (email and db.query(Lead.id).filter(Lead.email == email).first()):
                errors.append({"row": row_num, "errors": [f"Lead with email {email} already exists"]})
                continue
            source = (row.get("lead_source") or "").strip().lower() or LeadSource.OTHER.value
            try:
                data = LeadCreate(
                    first_name=row.get("first_name") or "",
                    last_name=row.get("last_name") or "",
                    email=email,
                    phone=row.get("phone") or None,
                    city=row.get("city") or None,
                    lead_source=source,
                )
            except ValidationError as e:
                errors.append({
                    "row": row_num,
                    "errors": [f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in e.errors()],
                })
                continue
            payload = data.model_dump(exclude={"franchise_id", "assigned_to"})
            db.add(Lead(**payload, franchise_id=franchise_id))
            seen.add(email)
            imported += 1
        logger.info(f"Imported {imported} leads ({len(errors)} rows rejected)")
        return {"imported": imported, "errors": errors}

    @staticmethod
    def export_rows(leads: List[Lead]) -> List[list]:
        return [
            [
                lead.id, lead.first_name, lead.last_name, lead.email, lead.phone, lead.company_name,
                lead.city, lead.lead_source.value, lead.status.value, lead.priority.value,
                lead.assigned_to, lead.created_at,
            ]
            for lead in leads
        ]
