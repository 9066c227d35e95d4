"""Notification routes; every query is restricted to the caller's own rows."""

import logging
from typing import Literal, Optional

from fastapi import APIRouter, HTTPException, Query, Request, status

from franchisehub.core.rate_limit import limiter
from franchisehub.core.rbac import CurrentUser
from franchisehub.core.responses import paginated_response, success_response
from franchisehub.db.session import DbSession
from franchisehub.models import Notification
from franchisehub.schemas.notification import NotificationIds
from franchisehub.schemas.pagination import ListParams, paginate_query
from franchisehub.services.notification_service import NotificationService

logger = logging.getLogger(__name__)

router = APIRouter()


def _own(db, user):
    return db.query(Notification).filter(Notification.user_id == user.id)


def _get_own(db, user, notification_id: str) -> Notification:
    notification = _own(db, user).filter(Notification.id == notification_id).first()
    if notification is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Notification not found")
    return notification


@router.get("/")
@limiter.limit("60/minute")
def list_notifications(
    request: Request,
    db: DbSession,
    current_user: CurrentUser,
    params: ListParams,
    read_status: Optional[Literal["read", "unread"]] = Query(None, alias="status"),
):
    query = _own(db, current_user)
    if read_status == "read":
        query = query.filter(Notification.read_at.isnot(None))
    elif read_status == "unread":
        query = query.filter(Notification.read_at.is_(None))
    query = query.order_by(Notification.created_at.desc(), Notification.id)
    items, total = paginate_query(query, params.page, params.per_page)
    return paginated_response(
        [NotificationService.serialize(n) for n in items], total, params.page, params.per_page
    )


@router.get("/stats")
@limiter.limit("60/minute")
def notification_stats(request: Request, db: DbSession, current_user: CurrentUser):
    total = _own(db, current_user).count()
    unread = _own(db, current_user).filter(Notification.read_at.is_(None)).count()
    return success_response({"total": total, "unread": unread, "read": total - unread})


@router.patch("/mark-all-read")
@limiter.limit("30/minute")
def mark_all_read(request: Request, db: DbSession, current_user: CurrentUser):
    count = NotificationService.set_read(
        _own(db, current_user).filter(Notification.read_at.is_(None)).all(), True
    )
    db.commit()
    return success_response({"updated": count}, "All notifications marked as read")


@router.patch("/mark-multiple-read")
@limiter.limit("30/minute")
def mark_multiple_read(request: Request, data: NotificationIds, db: DbSession, current_user: CurrentUser):
    count = NotificationService.set_read(_own(db, current_user).filter(Notification.id.in_(data.ids)).all(), True)
    db.commit()
    return success_response({"updated": count}, f"{count} notifications marked as read")


@router.patch("/mark-multiple-unread")
@limiter.limit("30/minute")
def mark_multiple_unread(request: Request, data: NotificationIds, db: DbSession, current_user: CurrentUser):
    count = NotificationService.set_read(_own(db, current_user).filter(Notification.id.in_(data.ids)).all(), False)
    db.commit()
    return success_response({"updated": count}, f"{count} notifications marked as unread")


@router.get("/{notification_id}")
@limiter.limit("60/minute")
def get_notification(request: Request, notification_id: str, db: DbSession, current_user: CurrentUser):
    return success_response(NotificationService.serialize(_get_own(db, current_user, notification_id)))


@router.patch("/{notification_id}/read")
@limiter.limit("30/minute")
def mark_read(request: Request, notification_id: str, db: DbSession, current_user: CurrentUser):
    notification = _get_own(db, current_user, notification_id)
    NotificationService.set_read([notification], True)
    db.commit()
    db.refresh(notification)
    return success_response(NotificationService.serialize(notification), "Notification marked as read")


@router.patch("/{notification_id}/unread")
@limiter.limit("30/minute")
def mark_unread(request: Request, notification_id: str, db: DbSession, current_user: CurrentUser):
    notification = _get_own(db, current_user, notification_id)
    NotificationService.set_read([notification], False)
    db.commit()
    db.refresh(notification)
    return success_response(NotificationService.serialize(notification), "Notification marked as unread")


@router.delete("/{notification_id}")
@limiter.limit("30/minute")
def delete_notification(request: Request, notification_id: str, db: DbSession, current_user: CurrentUser):
    notification = _get_own(db, current_user, notification_id)
    db.delete(notification)
    db.commit()
    return success_response(message="Notification deleted")
