# app/api/v1/endpoints/leads.py
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from core.database import get_db
from core.permissions import require_resource
from core.policy import ResourceClass, Action
from core.security import Identity
from models.lead import LeadStatus
from schemas.lead import LeadCreate, LeadUpdate, LeadRead
from services.lead_service import LeadService

router = APIRouter()


@router.post("/public", response_model=LeadRead, status_code=status.HTTP_201_CREATED)
async def create_lead(data: LeadCreate, db: AsyncSession = Depends(get_db)):
    """Contact form submission; no session required."""
    return await LeadService(db).create_lead(data)


@router.get("", response_model=List[LeadRead])
async def list_leads(
        lead_status: Optional[LeadStatus] = Query(None, alias="status"),
        _: Identity = Depends(require_resource(ResourceClass.LEAD_MANAGEMENT, Action.VIEW)),
        db: AsyncSession = Depends(get_db),
):
    return await LeadService(db).list_leads(lead_status)


@router.patch("/{lead_id}", response_model=LeadRead)
async def update_lead(
        lead_id: int,
        data: LeadUpdate,
        _: Identity = Depends(require_resource(ResourceClass.LEAD_MANAGEMENT, Action.UPDATE)),
        db: AsyncSession = Depends(get_db),
):
    return await LeadService(db).update_lead(lead_id, data)
