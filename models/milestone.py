# app/models/milestone.py
import enum
from datetime import datetime

from sqlalchemy import Column, Integer, String, Text, DateTime, ForeignKey, Enum
from sqlalchemy.orm import relationship

from models.base import Base


class MilestoneStatus(str, enum.Enum):
    """Milestone lifecycle"""
    NO_TASKS = "NO_TASKS"
    IN_PROGRESS = "IN_PROGRESS"
    READY_FOR_APPROVAL = "READY_FOR_APPROVAL"
    APPROVED = "APPROVED"
    CHANGES_REQUESTED = "CHANGES_REQUESTED"


class Milestone(Base):
    __tablename__ = "milestones"

    id = Column(Integer, primary_key=True)
    project_id = Column(
        Integer,
        ForeignKey("projects.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    name = Column(String(200), nullable=False)
    description = Column(Text, nullable=True)

    # derived from task statuses, see services.milestone_workflow
    progress = Column(Integer, default=0, nullable=False)
    status = Column(
        Enum(MilestoneStatus, name="milestone_status"),
        default=MilestoneStatus.NO_TASKS,
        nullable=False,
    )

    start_date = Column(DateTime(timezone=True), nullable=True)
    due_date = Column(DateTime(timezone=True), nullable=True)

    approved_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    approved_at = Column(DateTime(timezone=True), nullable=True)
    feedback = Column(Text, nullable=True)

    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=datetime.utcnow, onupdate=datetime.utcnow)

    project = relationship("Project", lazy="selectin")
    tasks = relationship(
        "Task",
        back_populates="milestone",
        lazy="selectin",
        cascade="all, delete-orphan",
    )
