# app/models/association_tables.py
from datetime import datetime

from sqlalchemy import Table, Column, ForeignKey, DateTime, String, Integer
from models.base import Base

# project membership (company users in the dashboard)
project_members = Table(
    "project_members",
    Base.metadata,
    Column("project_id", Integer, ForeignKey("projects.id", ondelete="CASCADE"), primary_key=True),
    Column("user_id", Integer, ForeignKey("users.id", ondelete="CASCADE"), primary_key=True),
    Column("member_role", String(50), nullable=True),  # free-form label, not an auth role
    Column("created_at", DateTime(timezone=True), default=datetime.utcnow),
)

task_assignees = Table(
    "task_assignees",
    Base.metadata,
    Column("task_id", Integer, ForeignKey("tasks.id", ondelete="CASCADE"), primary_key=True),
    Column("user_id", Integer, ForeignKey("users.id", ondelete="CASCADE"), primary_key=True),
)
