# app/api/v1/endpoints/projects.py
from typing import List

from fastapi import APIRouter, Depends, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from core.database import get_db
from core.permissions import get_current_user, require_authenticated, require_moderator_or_admin
from core.security import Identity
from models.user import User
from schemas.milestone import MilestoneRead
from schemas.project import ProjectCreate, ProjectUpdate, ProjectRead, ProjectMemberAdd
from schemas.task import TaskRead
from services.audit_service import AuditService
from services.milestone_service import MilestoneService
from services.project_service import ProjectService, get_accessible_project
from services.task_service import TaskService

router = APIRouter()


@router.post("", response_model=ProjectRead, status_code=status.HTTP_201_CREATED)
async def create_project(
        data: ProjectCreate,
        request: Request,
        _: Identity = Depends(require_moderator_or_admin),
        current_user: User = Depends(get_current_user),
        db: AsyncSession = Depends(get_db),
):
    service = ProjectService(db, AuditService(db, request))
    return await service.create_project(data, current_user)


@router.get("", response_model=List[ProjectRead])
async def list_projects(
        identity: Identity = Depends(require_authenticated),
        db: AsyncSession = Depends(get_db),
):
    """ADMIN sees every project, everyone else the projects they belong to."""
    return await ProjectService(db).list_projects(identity.user_id, identity.role)


@router.get("/{project_id}", response_model=ProjectRead)
async def get_project(
        project_id: int,
        identity: Identity = Depends(require_authenticated),
        db: AsyncSession = Depends(get_db),
):
    return await get_accessible_project(db, project_id, identity.user_id, identity.role)


@router.patch("/{project_id}", response_model=ProjectRead)
async def update_project(
        project_id: int,
        data: ProjectUpdate,
        request: Request,
        identity: Identity = Depends(require_moderator_or_admin),
        current_user: User = Depends(get_current_user),
        db: AsyncSession = Depends(get_db),
):
    project = await get_accessible_project(db, project_id, identity.user_id, identity.role)
    service = ProjectService(db, AuditService(db, request))
    return await service.update_project(project, data, current_user)


# ---------- members ----------
@router.post("/{project_id}/members", response_model=ProjectRead)
async def add_member(
        project_id: int,
        data: ProjectMemberAdd,
        request: Request,
        identity: Identity = Depends(require_moderator_or_admin),
        current_user: User = Depends(get_current_user),
        db: AsyncSession = Depends(get_db),
):
    project = await get_accessible_project(db, project_id, identity.user_id, identity.role)
    service = ProjectService(db, AuditService(db, request))
    return await service.add_member(project, data.user_id, current_user)


@router.delete("/{project_id}/members/{user_id}", response_model=ProjectRead)
async def remove_member(
        project_id: int,
        user_id: int,
        request: Request,
        identity: Identity = Depends(require_moderator_or_admin),
        current_user: User = Depends(get_current_user),
        db: AsyncSession = Depends(get_db),
):
    project = await get_accessible_project(db, project_id, identity.user_id, identity.role)
    service = ProjectService(db, AuditService(db, request))
    return await service.remove_member(project, user_id, current_user)


# ---------- nested listings ----------
@router.get("/{project_id}/milestones", response_model=List[MilestoneRead])
async def list_project_milestones(
        project_id: int,
        identity: Identity = Depends(require_authenticated),
        db: AsyncSession = Depends(get_db),
):
    return await MilestoneService(db).list_milestones(project_id, identity.user_id, identity.role)


@router.get("/{project_id}/tasks", response_model=List[TaskRead])
async def list_project_tasks(
        project_id: int,
        identity: Identity = Depends(require_authenticated),
        db: AsyncSession = Depends(get_db),
):
    return await TaskService(db).list_tasks(project_id, identity.user_id, identity.role)
