# app/api/v1/endpoints/milestones.py
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from core.database import get_db
from core.permissions import (
    get_current_user, require_authenticated, require_content_access, require_moderator_or_admin,
)
from core.security import Identity
from models.user import User
from schemas.milestone import (
    MilestoneCreate, MilestoneUpdate, MilestoneRead, MilestoneDetail,
    ApprovalDecision, MilestoneApprovalRead,
)
from services.audit_service import AuditService
from services.milestone_service import MilestoneService
from services.milestone_workflow import MilestoneWorkflowService

router = APIRouter()


@router.post("", response_model=MilestoneRead, status_code=status.HTTP_201_CREATED)
async def create_milestone(
        data: MilestoneCreate,
        request: Request,
        identity: Identity = Depends(require_content_access),
        current_user: User = Depends(get_current_user),
        db: AsyncSession = Depends(get_db),
):
    service = MilestoneService(db, AuditService(db, request))
    return await service.create_milestone(data, current_user, identity.role)


@router.get("/pending-approvals", response_model=List[MilestoneRead])
async def pending_approvals(
        project_id: Optional[int] = Query(None),
        identity: Identity = Depends(require_authenticated),
        db: AsyncSession = Depends(get_db),
):
    """Milestones waiting for a decision. ADMIN sees all, others their projects."""
    service = MilestoneWorkflowService(db)
    return await service.pending_approvals(identity.user_id, identity.role, project_id=project_id)


@router.get("/{milestone_id}", response_model=MilestoneDetail)
async def get_milestone(
        milestone_id: int,
        identity: Identity = Depends(require_authenticated),
        db: AsyncSession = Depends(get_db),
):
    service = MilestoneService(db)
    return await service.get_milestone(milestone_id, identity.user_id, identity.role, with_tasks=True)


@router.patch("/{milestone_id}", response_model=MilestoneRead)
async def update_milestone(
        milestone_id: int,
        data: MilestoneUpdate,
        request: Request,
        identity: Identity = Depends(require_content_access),
        current_user: User = Depends(get_current_user),
        db: AsyncSession = Depends(get_db),
):
    service = MilestoneService(db, AuditService(db, request))
    return await service.update_milestone(milestone_id, data, current_user, identity.role)


@router.delete("/{milestone_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_milestone(
        milestone_id: int,
        request: Request,
        identity: Identity = Depends(require_moderator_or_admin),
        current_user: User = Depends(get_current_user),
        db: AsyncSession = Depends(get_db),
):
    service = MilestoneService(db, AuditService(db, request))
    await service.delete_milestone(milestone_id, current_user, identity.role)


# ---------- approval ----------
@router.post("/{milestone_id}/approve", response_model=MilestoneRead)
async def approve_milestone(
        milestone_id: int,
        request: Request,
        decision: Optional[ApprovalDecision] = None,
        identity: Identity = Depends(require_authenticated),
        current_user: User = Depends(get_current_user),
        db: AsyncSession = Depends(get_db),
):
    """
    Approve a milestone that is READY_FOR_APPROVAL.

    **Allowed**: ADMIN, MODERATOR, or a CLIENT member of the project.
    Any other state answers 409.
    """
    service = MilestoneWorkflowService(db, audit=AuditService(db, request))
    return await service.approve(
        milestone_id, current_user, identity.role, comment=decision.comment if decision else None
    )


@router.post("/{milestone_id}/request-changes", response_model=MilestoneRead)
async def request_changes(
        milestone_id: int,
        request: Request,
        decision: Optional[ApprovalDecision] = None,
        identity: Identity = Depends(require_authenticated),
        current_user: User = Depends(get_current_user),
        db: AsyncSession = Depends(get_db),
):
    """
    Send a READY_FOR_APPROVAL milestone back; every task returns to IN_PROGRESS.
    """
    service = MilestoneWorkflowService(db, audit=AuditService(db, request))
    return await service.request_changes(
        milestone_id, current_user, identity.role, comment=decision.comment if decision else None
    )


@router.get("/{milestone_id}/approvals", response_model=List[MilestoneApprovalRead])
async def approval_history(
        milestone_id: int,
        identity: Identity = Depends(require_authenticated),
        db: AsyncSession = Depends(get_db),
):
    await MilestoneService(db).get_milestone(milestone_id, identity.user_id, identity.role)
    return await MilestoneWorkflowService(db).history(milestone_id)
