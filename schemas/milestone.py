# app/schemas/milestone.py
from pydantic import BaseModel, Field
from typing import List, Optional
from datetime import datetime

from models.milestone import MilestoneStatus
from models.milestone_approval import ApprovalAction
from schemas.task import TaskRead


class MilestoneCreate(BaseModel):
    project_id: int
    name: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = None
    start_date: Optional[datetime] = None
    due_date: Optional[datetime] = None


class MilestoneUpdate(BaseModel):
    # progress and status are derived, they cannot be set here
    name: Optional[str] = Field(None, min_length=1, max_length=200)
    description: Optional[str] = None
    start_date: Optional[datetime] = None
    due_date: Optional[datetime] = None


class ApprovalDecision(BaseModel):
    comment: Optional[str] = Field(None, max_length=2000)


class MilestoneRead(BaseModel):
    id: int
    project_id: int
    name: str
    description: Optional[str] = None
    progress: int
    status: MilestoneStatus
    start_date: Optional[datetime] = None
    due_date: Optional[datetime] = None
    approved_by: Optional[int] = None
    approved_at: Optional[datetime] = None
    feedback: Optional[str] = None
    created_at: datetime

    class Config:
        from_attributes = True


class MilestoneDetail(MilestoneRead):
    tasks: List[TaskRead] = []


class MilestoneApprovalRead(BaseModel):
    id: int
    milestone_id: int
    action: ApprovalAction
    from_status: str
    to_status: str
    actor_id: Optional[int] = None
    actor_role: Optional[str] = None
    comment: Optional[str] = None
    created_at: datetime

    class Config:
        from_attributes = True
