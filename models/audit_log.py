# app/models/audit_log.py
from datetime import datetime

from sqlalchemy import Column, Integer, String, Text, DateTime, ForeignKey, JSON
import uuid
from models.base import Base


class AuditLog(Base):
    __tablename__ = "audit_logs"

    id = Column(Integer, primary_key=True)
    uuid = Column(String(36), unique=True, nullable=False, default=lambda: str(uuid.uuid4()))

    action = Column(String(100), nullable=False)  # core.constants.AUDIT_ACTIONS
    entity_type = Column(String(50), nullable=False)  # Task, Milestone, Project, User
    entity_id = Column(Integer)

    old_values = Column(JSON)
    new_values = Column(JSON)

    # request context
    ip_address = Column(String(45))
    user_agent = Column(Text)
    endpoint = Column(String(500))
    method = Column(String(10))

    user_id = Column(Integer, ForeignKey("users.id"), nullable=True)

    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)
