# models/notification.py
import enum
from datetime import datetime

from sqlalchemy import Column, Integer, String, Text, Boolean, DateTime, ForeignKey, Enum, JSON
import uuid
from models.base import Base


class NotificationType(str, enum.Enum):
    """Notification event types"""
    TASK_ASSIGNED = "TASK_ASSIGNED"
    TASK_UNASSIGNED = "TASK_UNASSIGNED"
    TASK_STATUS_CHANGED = "TASK_STATUS_CHANGED"
    TASK_COMMENT = "TASK_COMMENT"
    MILESTONE_READY_FOR_APPROVAL = "MILESTONE_READY_FOR_APPROVAL"
    MILESTONE_APPROVED = "MILESTONE_APPROVED"
    MILESTONE_CHANGES_REQUESTED = "MILESTONE_CHANGES_REQUESTED"
    PROJECT_MEMBER_ADDED = "PROJECT_MEMBER_ADDED"
    SYSTEM = "SYSTEM"


class Notification(Base):
    __tablename__ = "notifications"

    id = Column(Integer, primary_key=True)
    uuid = Column(String(36), unique=True, nullable=False, default=lambda: str(uuid.uuid4()))

    type = Column(Enum(NotificationType, name="notification_type"), nullable=False)

    # recipient
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)

    # content
    title = Column(String(200), nullable=False)
    message = Column(Text, nullable=False)
    data = Column(JSON, default=dict)

    # read state is the only thing the recipient may change
    read = Column(Boolean, default=False, nullable=False)
    read_at = Column(DateTime(timezone=True), nullable=True)

    # links
    project_id = Column(Integer, ForeignKey("projects.id", ondelete="SET NULL"), nullable=True)
    milestone_id = Column(Integer, ForeignKey("milestones.id", ondelete="SET NULL"), nullable=True)
    task_id = Column(Integer, ForeignKey("tasks.id", ondelete="SET NULL"), nullable=True)

    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)
