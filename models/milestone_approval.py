# app/models/milestone_approval.py
import enum
from datetime import datetime

from sqlalchemy import Column, Integer, String, Text, DateTime, ForeignKey, Enum

from models.base import Base


class ApprovalAction(str, enum.Enum):
    SUBMITTED = "SUBMITTED"  # all tasks done, milestone entered READY_FOR_APPROVAL
    APPROVED = "APPROVED"
    CHANGES_REQUESTED = "CHANGES_REQUESTED"


class MilestoneApproval(Base):
    """Append-only history of milestone lifecycle decisions."""
    __tablename__ = "milestone_approvals"

    id = Column(Integer, primary_key=True)
    milestone_id = Column(
        Integer,
        ForeignKey("milestones.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    action = Column(Enum(ApprovalAction, name="approval_action"), nullable=False)
    from_status = Column(String(30), nullable=False)
    to_status = Column(String(30), nullable=False)

    actor_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    actor_role = Column(String(32), nullable=True)
    comment = Column(Text, nullable=True)

    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)
