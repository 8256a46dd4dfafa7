"""
Notification Schemas
"""

from pydantic import BaseModel, ConfigDict
from typing import List, Optional
from datetime import datetime

from cofounder_expenses.models.notification import NotificationType


class NotificationResponse(BaseModel):
    id: int
    type: NotificationType
    title: str
    message: str
    expense_id: Optional[int] = None
    is_read: bool
    created_at: datetime
    read_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class NotificationListResponse(BaseModel):
    success: bool = True
    total: int
    unread_count: int
    notifications: List[NotificationResponse]
