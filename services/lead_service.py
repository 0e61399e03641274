# app/services/lead_service.py
from typing import List, Optional

from fastapi import HTTPException, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
import logging

from models.lead import Lead, LeadStatus
from schemas.lead import LeadCreate, LeadUpdate

logger = logging.getLogger(__name__)


class LeadService:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def create_lead(self, data: LeadCreate) -> Lead:
        lead = Lead(**data.model_dump(exclude_none=True))
        self.db.add(lead)
        await self.db.commit()
        logger.info(f"Lead {lead.id} received from {lead.source}")
        return lead

    async def list_leads(self, lead_status: Optional[LeadStatus] = None) -> List[Lead]:
        query = select(Lead)
        if lead_status is not None:
            query = query.where(Lead.status == lead_status)
        result = await self.db.execute(query.order_by(Lead.created_at.desc(), Lead.id.desc()))
        return result.scalars().all()

    async def update_lead(self, lead_id: int, data: LeadUpdate) -> Lead:
        lead = await self.db.get(Lead, lead_id)
        if not lead:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Lead not found")

        for key, value in data.model_dump(exclude_unset=True).items():
            if key == "status" and value is None:
                continue
            setattr(lead, key, value)

        await self.db.commit()
        return lead
