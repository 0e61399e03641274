import asyncio
import random
from datetime import datetime

from fastapi import HTTPException, status
from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession
import logging

from core.config import settings
from core.security import verify_password, create_access_token
from models.user import User

logger = logging.getLogger(__name__)


class AuthService:
    def __init__(self, db: AsyncSession):
        self.db = db

    # ------------------------------------------------
    # LOGIN
    # ------------------------------------------------
    async def authenticate_user(self, email: str, password: str) -> User:
        result = await self.db.execute(
            select(User).where(func.lower(User.email) == email.lower())
        )
        user = result.scalar_one_or_none()

        if not user or not verify_password(password, user.hashed_password):
            await self._fake_delay()
            logger.info(f"Failed login for {email}")
            raise HTTPException(status.HTTP_401_UNAUTHORIZED, "Invalid credentials")

        if not user.is_active:
            raise HTTPException(status.HTTP_403_FORBIDDEN, "Account disabled")

        user.last_login_at = datetime.utcnow()
        await self.db.commit()

        return user

    # ------------------------------------------------
    # TOKEN
    # ------------------------------------------------
    def create_token(self, user: User) -> str:
        # the role travels in the session; guards never re-read it from the row
        return create_access_token(user.id, user.role)

    @staticmethod
    def expires_in() -> int:
        return settings.ACCESS_TOKEN_EXPIRE_MINUTES * 60

    # ------------------------------------------------
    # HELPERS
    # ------------------------------------------------
    async def _fake_delay(self):
        await asyncio.sleep(random.uniform(0.05, 0.2))
