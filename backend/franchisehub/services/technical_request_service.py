"""Support ticket workflow."""

import logging
from datetime import datetime, timezone
from decimal import Decimal
from typing import Optional

from sqlalchemy.orm import Session

from franchisehub.models import Priority, RequestStatus, TechnicalRequest, User
from franchisehub.services.notification_service import NotificationService
from franchisehub.services.numbering import next_number

logger = logging.getLogger(__name__)

FINISHED = (RequestStatus.RESOLVED, RequestStatus.CLOSED, RequestStatus.CANCELLED)


def _as_aware(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _hours_since(start: Optional[datetime], end: datetime) -> Decimal:
    if start is None:
        return Decimal("0.00")
    seconds = (end - _as_aware(start)).total_seconds()
    return Decimal(str(round(max(seconds, 0) / 3600, 2)))


class TechnicalRequestService:
    """Service for ticket lifecycle transitions. Callers own the commit."""

    @staticmethod
    def create(
        db: Session,
        requester: User,
        data: dict,
        franchise_id: Optional[int],
    ) -> TechnicalRequest:
        request = TechnicalRequest(
            **data,
            ticket_number=next_number(db, "TR"),
            requester_id=requester.id,
            franchise_id=franchise_id,
            status=RequestStatus.OPEN,
        )
        db.add(request)
        return request

    @staticmethod
    def _notify_status(db: Session, request: TechnicalRequest) -> None:
        NotificationService.notify(
            db,
            request.requester_id,
            type="technical_request_status",
            title=f"Ticket {request.ticket_number} is {request.status.value.replace('_', ' ')}",
            subtitle=request.title,
            icon="tabler-lifebuoy",
            color="info",
            url=f"/technical-requests/{request.id}",
        )

    @staticmethod
    def set_status(db: Session, request: TechnicalRequest, new_status: RequestStatus) -> TechnicalRequest:
        now = datetime.now(timezone.utc)
        request.status = new_status
        if new_status == RequestStatus.RESOLVED and request.resolved_at is None:
            request.resolved_at = now
            request.resolution_time_hours = _hours_since(request.created_at, now)
        if new_status == RequestStatus.CLOSED and request.closed_at is None:
            request.closed_at = now
        TechnicalRequestService._notify_status(db, request)
        return request

    @staticmethod
    def assign(db: Session, request: TechnicalRequest, assignee: User) -> TechnicalRequest:
        request.assigned_to = assignee.id
        NotificationService.notify(
            db,
            assignee.id,
            type="technical_request_assigned",
            title=f"Ticket {request.ticket_number} assigned to you",
            subtitle=request.title,
            icon="tabler-lifebuoy",
            color="warning",
            url=f"/technical-requests/{request.id}",
        )
        return request

    @staticmethod
    def respond(db: Session, request: TechnicalRequest, responder: User, message: str) -> TechnicalRequest:
        if request.status in FINISHED:
            raise ValueError(f"Cannot respond to a {request.status.value} request")
        now = datetime.now(timezone.utc)
        if request.first_response_at is None:
            request.first_response_at = now
            request.response_time_hours = _hours_since(request.created_at, now)
        entry = f"[{now.strftime('%Y-%m-%d %H:%M')}] {responder.name}: {message}"
        request.internal_notes = f"{request.internal_notes}\n{entry}" if request.internal_notes else entry
        if request.status == RequestStatus.OPEN:
            request.status = RequestStatus.IN_PROGRESS
            TechnicalRequestService._notify_status(db, request)
        return request

    @staticmethod
    def resolve(db: Session, request: TechnicalRequest, resolution_notes: str) -> TechnicalRequest:
        if request.status in (RequestStatus.CLOSED, RequestStatus.CANCELLED):
            raise ValueError(f"Cannot resolve a {request.status.value} request")
        request.resolution_notes = resolution_notes
        return TechnicalRequestService.set_status(db, request, RequestStatus.RESOLVED)

    @staticmethod
    def close(
        db: Session,
        request: TechnicalRequest,
        rating: Optional[int] = None,
        feedback: Optional[str] = None,
    ) -> TechnicalRequest:
        if request.status == RequestStatus.CLOSED:
            raise ValueError("Request is already closed")
        if rating is not None:
            request.satisfaction_rating = rating
        if feedback is not None:
            request.satisfaction_feedback = feedback
        return TechnicalRequestService.set_status(db, request, RequestStatus.CLOSED)

    @staticmethod
    def escalate(request: TechnicalRequest, reason: Optional[str] = None) -> TechnicalRequest:
        if request.status in FINISHED:
            raise ValueError(f"Cannot escalate a {request.status.value} request")
        request.is_escalated = True
        request.escalated_at = datetime.now(timezone.utc)
        request.priority = Priority.URGENT
        if reason:
            entry = f"Escalated: {reason}"
            request.internal_notes = f"{request.internal_notes}\n{entry}" if request.internal_notes else entry
        logger.info(f"Technical request {request.ticket_number} escalated")
        return request
