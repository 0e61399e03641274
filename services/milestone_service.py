# app/services/milestone_service.py
from typing import List, Optional

from fastapi import HTTPException, status
from sqlalchemy import select, delete
from sqlalchemy.ext.asyncio import AsyncSession
import logging

from core.constants import AUDIT_ACTIONS
from models.milestone import Milestone, MilestoneStatus
from models.milestone_approval import MilestoneApproval
from models.user import User
from schemas.milestone import MilestoneCreate, MilestoneUpdate
from services.audit_service import AuditService
from services.project_service import get_accessible_project

logger = logging.getLogger(__name__)


class MilestoneService:
    def __init__(self, db: AsyncSession, audit: Optional[AuditService] = None):
        self.db = db
        self.audit = audit or AuditService(db)

    async def get_milestone(self, milestone_id: int, user_id: int, role: str, with_tasks: bool = False) -> Milestone:
        milestone = await self.db.get(Milestone, milestone_id)
        if not milestone:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Milestone not found")
        await get_accessible_project(self.db, milestone.project_id, user_id, role)

        if with_tasks:
            # tasks may have been moved by plain foreign key updates
            await self.db.refresh(milestone, attribute_names=["tasks"])
        return milestone

    async def list_milestones(self, project_id: int, user_id: int, role: str) -> List[Milestone]:
        await get_accessible_project(self.db, project_id, user_id, role)
        result = await self.db.execute(
            select(Milestone)
            .where(Milestone.project_id == project_id)
            .order_by(Milestone.due_date, Milestone.id)
        )
        return result.scalars().all()

    async def create_milestone(self, data: MilestoneCreate, actor: User, role: str) -> Milestone:
        project = await get_accessible_project(self.db, data.project_id, actor.id, role)

        milestone = Milestone(
            project_id=project.id,
            name=data.name,
            description=data.description,
            start_date=data.start_date,
            due_date=data.due_date,
            progress=0,
            status=MilestoneStatus.NO_TASKS,
        )
        try:
            self.db.add(milestone)
            await self.db.flush()
            self.audit.record(
                AUDIT_ACTIONS["MILESTONE_CREATED"], "Milestone", milestone.id, actor.id,
                new_values={"name": milestone.name, "project_id": project.id},
            )
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise

        logger.info(f"Milestone {milestone.id} created in project {project.id} by user {actor.id}")
        return milestone

    async def update_milestone(self, milestone_id: int, data: MilestoneUpdate, actor: User, role: str) -> Milestone:
        milestone = await self.get_milestone(milestone_id, actor.id, role)
        changes = data.model_dump(exclude_unset=True)
        if "name" in changes and changes["name"] is None:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Milestone name cannot be null")

        old_values = {key: str(getattr(milestone, key)) for key in changes}
        for key, value in changes.items():
            setattr(milestone, key, value)

        if changes:
            try:
                self.audit.record(
                    AUDIT_ACTIONS["MILESTONE_UPDATED"], "Milestone", milestone.id, actor.id,
                    old_values=old_values, new_values={k: str(v) for k, v in changes.items()},
                )
                await self.db.commit()
            except Exception:
                await self.db.rollback()
                raise
        return milestone

    async def delete_milestone(self, milestone_id: int, actor: User, role: str) -> None:
        milestone = await self.get_milestone(milestone_id, actor.id, role, with_tasks=True)

        try:
            await self.db.execute(
                delete(MilestoneApproval).where(MilestoneApproval.milestone_id == milestone.id)
            )
            # tasks go with the milestone
            await self.db.delete(milestone)
            self.audit.record(
                AUDIT_ACTIONS["MILESTONE_DELETED"], "Milestone", milestone_id, actor.id,
                old_values={"name": milestone.name, "project_id": milestone.project_id},
            )
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise

        logger.info(f"Milestone {milestone_id} deleted by user {actor.id}")
