# app/schemas/task.py
from pydantic import BaseModel, Field
from typing import List, Optional
from datetime import datetime

from models.task import TaskStatus, TaskPriority


class TaskCreate(BaseModel):
    project_id: int
    milestone_id: Optional[int] = None
    name: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = None
    status: TaskStatus = TaskStatus.PENDING
    priority: TaskPriority = TaskPriority.MEDIUM
    order: int = Field(0, ge=0)
    due_date: Optional[datetime] = None
    assignee_ids: List[int] = []


class TaskUpdate(BaseModel):
    """Only the fields sent are applied; ``milestone_id: null`` detaches the task."""
    milestone_id: Optional[int] = None
    name: Optional[str] = Field(None, min_length=1, max_length=200)
    description: Optional[str] = None
    status: Optional[TaskStatus] = None
    priority: Optional[TaskPriority] = None
    order: Optional[int] = Field(None, ge=0)
    due_date: Optional[datetime] = None
    assignee_ids: Optional[List[int]] = None


class TaskRead(BaseModel):
    id: int
    project_id: int
    milestone_id: Optional[int] = None
    name: str
    description: Optional[str] = None
    status: TaskStatus
    priority: TaskPriority
    order: int
    due_date: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    created_by: Optional[int] = None
    assignee_ids: List[int] = []
    created_at: datetime

    class Config:
        from_attributes = True


# ---------- kanban ----------
class TaskOrderItem(BaseModel):
    id: int
    order: int = Field(..., ge=0)
    status: TaskStatus


class TaskOrderUpdate(BaseModel):
    """Positions and columns of every task dragged in one move."""
    tasks: List[TaskOrderItem] = Field(..., min_length=1)

    class Config:
        json_schema_extra = {
            "example": {
                "tasks": [
                    {"id": 12, "order": 0, "status": "COMPLETED"},
                    {"id": 7, "order": 1, "status": "IN_PROGRESS"},
                ]
            }
        }


# ---------- comments ----------
class TaskCommentCreate(BaseModel):
    content: str = Field(..., min_length=1, max_length=5000)


class TaskCommentRead(BaseModel):
    id: int
    task_id: int
    user_id: Optional[int] = None
    content: str
    created_at: datetime

    class Config:
        from_attributes = True
