# app/services/user_service.py
from typing import List, Optional

from fastapi import HTTPException, status
from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession
import logging

from core.constants import AUDIT_ACTIONS
from core.policy import can_manage_user
from core.security import hash_password
from models.user import User, UserRole
from schemas.user import UserCreate, ProfileUpdate
from services.audit_service import AuditService

logger = logging.getLogger(__name__)


class UserService:
    def __init__(self, db: AsyncSession, audit: Optional[AuditService] = None):
        self.db = db
        self.audit = audit or AuditService(db)

    async def get_user(self, user_id: int) -> User:
        user = await self.db.get(User, user_id)
        if not user:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
        return user

    async def create_user(self, data: UserCreate, actor_id: int) -> User:
        exists = await self.db.scalar(
            select(func.count(User.id)).where(func.lower(User.email) == data.email.lower())
        )
        if exists:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="User already exists")

        user = User(
            email=data.email.lower(),
            name=data.name,
            hashed_password=hash_password(data.password),
            role=data.role.value,
            language=data.language,
        )
        self.db.add(user)
        await self.db.flush()

        self.audit.record(
            AUDIT_ACTIONS["USER_CREATED"], "User", user.id, actor_id,
            new_values={"email": user.email, "role": user.role},
        )
        await self.db.commit()
        logger.info(f"User {user.id} created with role {user.role} by {actor_id}")
        return user

    async def list_users(self, role: Optional[UserRole] = None, search: Optional[str] = None) -> List[User]:
        query = select(User)
        if role is not None:
            query = query.where(User.role == role.value)
        if search:
            pattern = f"%{search.lower()}%"
            query = query.where(
                func.lower(User.email).like(pattern) | func.lower(func.coalesce(User.name, "")).like(pattern)
            )
        result = await self.db.execute(query.order_by(User.created_at.desc(), User.id.desc()))
        return result.scalars().all()

    async def change_role(self, user_id: int, new_role: UserRole, actor_id: int, actor_role: str) -> User:
        user = await self.get_user(user_id)

        # both the current and the requested role have to be within the actor's reach
        if not can_manage_user(actor_role, user.role) or not can_manage_user(actor_role, new_role):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="You do not have permission to manage this user",
            )

        old_role = user.role
        if old_role != new_role.value:
            user.role = new_role.value
            self.audit.record(
                AUDIT_ACTIONS["ROLE_CHANGED"], "User", user.id, actor_id,
                old_values={"role": old_role}, new_values={"role": new_role.value},
            )
            await self.db.commit()
            logger.info(f"User {user.id} role {old_role} -> {new_role.value} by {actor_id}")

        return user

    async def update_profile(self, user: User, data: ProfileUpdate) -> User:
        changes = data.model_dump(exclude_unset=True)
        for key, value in changes.items():
            setattr(user, key, value)

        if changes:
            self.audit.record(
                AUDIT_ACTIONS["USER_UPDATED"], "User", user.id, user.id, new_values=changes,
            )
            await self.db.commit()
        return user
