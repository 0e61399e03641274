# app/schemas/notification.py
from pydantic import BaseModel
from typing import Optional, Dict, Any
from datetime import datetime

from models.notification import NotificationType


class NotificationRead(BaseModel):
    id: int
    uuid: str
    user_id: int
    type: NotificationType
    title: str
    message: str
    data: Optional[Dict[str, Any]] = None
    read: bool
    read_at: Optional[datetime] = None
    project_id: Optional[int] = None
    milestone_id: Optional[int] = None
    task_id: Optional[int] = None
    created_at: datetime

    class Config:
        from_attributes = True


class UnreadCount(BaseModel):
    count: int


class MarkAllReadResponse(BaseModel):
    updated: int
