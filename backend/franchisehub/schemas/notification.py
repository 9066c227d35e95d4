"""Notification schemas."""

from typing import List

from pydantic import AliasChoices, BaseModel, Field


class NotificationIds(BaseModel):
    ids: List[str] = Field(
        ...,
        min_length=1,
        max_length=500,
        validation_alias=AliasChoices("notification_ids", "ids"),
    )
