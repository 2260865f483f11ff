from datetime import datetime
from typing import List, Optional
from pydantic import BaseModel, Field
from storefront.schema.full_schema import NotificationPriority, NotificationType


class NotificationCreateIn(BaseModel):
    user_id: str
    title: str = Field(..., min_length=1, max_length=200)
    message: str = Field(..., min_length=1, max_length=1000)
    type: NotificationType = NotificationType.INFO
    priority: NotificationPriority = NotificationPriority.MEDIUM
    action_url: Optional[str] = Field(None, max_length=500)
    expires_at: Optional[datetime] = None

    model_config = {"extra": "forbid"}


class BroadcastIn(BaseModel):
    title: str = Field(..., min_length=1, max_length=200)
    message: str = Field(..., min_length=1, max_length=1000)
    type: NotificationType = NotificationType.INFO
    priority: NotificationPriority = NotificationPriority.MEDIUM
    target_roles: List[str] = Field(default_factory=lambda: ["buyer"], min_length=1)
    action_url: Optional[str] = Field(None, max_length=500)
    expires_at: Optional[datetime] = None
    send_email: bool = False

    model_config = {"extra": "forbid"}
