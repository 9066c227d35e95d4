"""Stored in-app notifications."""

import logging
from datetime import datetime, timezone
from typing import Iterable, Optional

from sqlalchemy.orm import Session

from franchisehub.models import Notification

logger = logging.getLogger(__name__)


class NotificationService:
    """Creates and updates notifications. Callers own the commit."""

    @staticmethod
    def notify(
        db: Session,
        user_id: Optional[int],
        type: str,
        title: str,
        subtitle: str = "",
        icon: str = "tabler-bell",
        color: str = "primary",
        url: Optional[str] = None,
    ) -> Optional[Notification]:
        if not user_id:
            return None
        notification = Notification(
            user_id=user_id,
            type=type,
            data={
                "title": title,
                "subtitle": subtitle,
                "icon": icon,
                "color": color,
                "url": url,
            },
        )
        db.add(notification)
        logger.debug(f"Queued {type} notification for user {user_id}")
        return notification

    @staticmethod
    def set_read(notifications: Iterable[Notification], read: bool) -> int:
        now = datetime.now(timezone.utc)
        count = 0
        for n in notifications:
            n.read_at = now if read else None
            count += 1
        return count

    @staticmethod
    def serialize(n: Notification) -> dict:
        data = n.data or {}
        return {
            "id": n.id,
            "type": n.type,
            "title": data.get("title"),
            "subtitle": data.get("subtitle"),
            "icon": data.get("icon"),
            "color": data.get("color"),
            "url": data.get("url"),
            "data": data,
            "is_read": n.is_read,
            "read_at": n.read_at,
            "created_at": n.created_at,
        }
