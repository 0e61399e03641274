# app/schemas/project.py
from pydantic import BaseModel, Field
from typing import List, Optional
from datetime import datetime


class ProjectCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = None
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    member_ids: List[int] = []

    class Config:
        json_schema_extra = {
            "example": {
                "name": "Expo booth 2025",
                "description": "Booth design and build",
                "member_ids": [2, 3]
            }
        }


class ProjectUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=200)
    description: Optional[str] = None
    status: Optional[str] = None
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None


class ProjectMemberAdd(BaseModel):
    user_id: int


class ProjectRead(BaseModel):
    id: int
    name: str
    description: Optional[str] = None
    status: Optional[str] = None
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    created_by: Optional[int] = None
    member_ids: List[int] = []
    created_at: datetime

    class Config:
        from_attributes = True
