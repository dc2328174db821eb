from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict

from civicconnect.models.notification import NotificationType


class Notification(BaseModel):
    id: int
    user_id: int
    issue_id: Optional[int] = None
    issue_title: Optional[str] = None
    type: NotificationType
    title: str
    message: str
    is_read: bool
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class UnreadCount(BaseModel):
    count: int
