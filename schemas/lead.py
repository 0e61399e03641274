# app/schemas/lead.py
from pydantic import BaseModel, EmailStr, Field
from typing import Optional
from datetime import datetime

from models.lead import LeadStatus


class LeadCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    email: EmailStr
    phone: Optional[str] = Field(None, max_length=50)
    company: Optional[str] = Field(None, max_length=200)
    message: Optional[str] = Field(None, max_length=5000)
    source: Optional[str] = Field(None, max_length=100)
    locale: Optional[str] = None

    class Config:
        json_schema_extra = {
            "example": {
                "name": "Jane Doe",
                "email": "jane@example.com",
                "company": "Acme Events",
                "message": "We need a stand for the autumn fair"
            }
        }


class LeadUpdate(BaseModel):
    status: Optional[LeadStatus] = None
    notes: Optional[str] = None


class LeadRead(BaseModel):
    id: int
    name: str
    email: str
    phone: Optional[str] = None
    company: Optional[str] = None
    message: Optional[str] = None
    source: Optional[str] = None
    locale: Optional[str] = None
    status: LeadStatus
    notes: Optional[str] = None
    created_at: datetime

    class Config:
        from_attributes = True
