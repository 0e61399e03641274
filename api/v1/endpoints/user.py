# app/api/v1/endpoints/user.py
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from core.database import get_db
from core.permissions import (
    get_current_user, require_resource, require_moderator_or_admin,
)
from core.policy import ResourceClass, Action
from core.security import Identity
from models.user import User, UserRole
from schemas.user import UserCreate, UserRead, ProfileUpdate, RoleUpdate
from services.audit_service import AuditService
from services.user_service import UserService

router = APIRouter()


# ---------- own profile ----------
@router.get("/me", response_model=UserRead)
async def read_profile(
        _: Identity = Depends(require_resource(ResourceClass.PROFILE, Action.VIEW)),
        current_user: User = Depends(get_current_user),
):
    return current_user


@router.patch("/me", response_model=UserRead)
async def update_profile(
        data: ProfileUpdate,
        request: Request,
        _: Identity = Depends(require_resource(ResourceClass.PROFILE, Action.UPDATE)),
        current_user: User = Depends(get_current_user),
        db: AsyncSession = Depends(get_db),
):
    service = UserService(db, AuditService(db, request))
    return await service.update_profile(current_user, data)


# ---------- user management ----------
@router.get("", response_model=List[UserRead])
async def list_users(
        role: Optional[UserRole] = Query(None),
        search: Optional[str] = Query(None, max_length=100),
        _: Identity = Depends(require_resource(ResourceClass.USER_MANAGEMENT, Action.VIEW)),
        db: AsyncSession = Depends(get_db),
):
    return await UserService(db).list_users(role=role, search=search)


@router.post("", response_model=UserRead, status_code=status.HTTP_201_CREATED)
async def create_user(
        data: UserCreate,
        request: Request,
        identity: Identity = Depends(require_resource(ResourceClass.USER_MANAGEMENT, Action.CREATE)),
        db: AsyncSession = Depends(get_db),
):
    service = UserService(db, AuditService(db, request))
    return await service.create_user(data, actor_id=identity.user_id)


@router.get("/{user_id}", response_model=UserRead)
async def get_user(
        user_id: int,
        _: Identity = Depends(require_resource(ResourceClass.USER_MANAGEMENT, Action.VIEW)),
        db: AsyncSession = Depends(get_db),
):
    return await UserService(db).get_user(user_id)


@router.patch("/{user_id}/role", response_model=UserRead)
async def change_role(
        user_id: int,
        data: RoleUpdate,
        request: Request,
        identity: Identity = Depends(require_moderator_or_admin),
        db: AsyncSession = Depends(get_db),
):
    """
    Change a user's role.

    ADMIN manages everyone, MODERATOR everyone except administrators (and
    cannot hand out the ADMIN role).
    """
    service = UserService(db, AuditService(db, request))
    return await service.change_role(user_id, data.role, actor_id=identity.user_id, actor_role=identity.role)
