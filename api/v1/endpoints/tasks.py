# app/api/v1/endpoints/tasks.py
from typing import List

from fastapi import APIRouter, Depends, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from core.database import get_db
from core.permissions import get_current_user, require_authenticated, require_content_access
from core.security import Identity
from models.user import User
from schemas.task import TaskCreate, TaskUpdate, TaskRead, TaskOrderUpdate, TaskCommentCreate, TaskCommentRead
from services.audit_service import AuditService
from services.task_service import TaskService

router = APIRouter()


@router.post("", response_model=TaskRead, status_code=status.HTTP_201_CREATED)
async def create_task(
        data: TaskCreate,
        request: Request,
        identity: Identity = Depends(require_content_access),
        current_user: User = Depends(get_current_user),
        db: AsyncSession = Depends(get_db),
):
    service = TaskService(db, audit=AuditService(db, request))
    return await service.create_task(data, current_user, identity.role)


# ---------- kanban ----------
@router.patch("/order", response_model=List[TaskRead])
async def update_task_order(
        data: TaskOrderUpdate,
        request: Request,
        identity: Identity = Depends(require_content_access),
        current_user: User = Depends(get_current_user),
        db: AsyncSession = Depends(get_db),
):
    """Drag and drop: new column and position for every task in the move."""
    service = TaskService(db, audit=AuditService(db, request))
    return await service.update_order(data, current_user, identity.role)


@router.get("/{task_id}", response_model=TaskRead)
async def get_task(
        task_id: int,
        identity: Identity = Depends(require_authenticated),
        db: AsyncSession = Depends(get_db),
):
    return await TaskService(db).get_task(task_id, identity.user_id, identity.role)


@router.patch("/{task_id}", response_model=TaskRead)
async def update_task(
        task_id: int,
        data: TaskUpdate,
        request: Request,
        identity: Identity = Depends(require_content_access),
        current_user: User = Depends(get_current_user),
        db: AsyncSession = Depends(get_db),
):
    """Status changes recompute the milestone's progress in the same transaction."""
    service = TaskService(db, audit=AuditService(db, request))
    return await service.update_task(task_id, data, current_user, identity.role)


@router.delete("/{task_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_task(
        task_id: int,
        request: Request,
        identity: Identity = Depends(require_content_access),
        current_user: User = Depends(get_current_user),
        db: AsyncSession = Depends(get_db),
):
    service = TaskService(db, audit=AuditService(db, request))
    await service.delete_task(task_id, current_user, identity.role)


# ---------- comments ----------
@router.get("/{task_id}/comments", response_model=List[TaskCommentRead])
async def list_task_comments(
        task_id: int,
        identity: Identity = Depends(require_authenticated),
        db: AsyncSession = Depends(get_db),
):
    return await TaskService(db).list_comments(task_id, identity.user_id, identity.role)


@router.post("/{task_id}/comments", response_model=TaskCommentRead, status_code=status.HTTP_201_CREATED)
async def add_task_comment(
        task_id: int,
        data: TaskCommentCreate,
        request: Request,
        identity: Identity = Depends(require_authenticated),
        current_user: User = Depends(get_current_user),
        db: AsyncSession = Depends(get_db),
):
    service = TaskService(db, audit=AuditService(db, request))
    return await service.add_comment(task_id, data, current_user, identity.role)
