# app/api/v1/endpoints/auth.py
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request, Response
from sqlalchemy.ext.asyncio import AsyncSession

from core.config import settings
from core.database import get_db
from core.gate import RequestGate
from core.security import resolve_identity
from models.user import User
from schemas.user import UserLogin, UserRead, TokenResponse, SessionRead, MessageResponse
from services.auth_service import AuthService

router = APIRouter()

gate = RequestGate.from_settings()


@router.post("/login", response_model=TokenResponse)
async def login(
        data: UserLogin,
        response: Response,
        locale: Optional[str] = Query(None),
        db: AsyncSession = Depends(get_db),
):
    """
    Email + password login.

    The token is returned in the body and also set as the session cookie the
    page gate reads. ``redirect_to`` is the landing page for the user's role.
    """
    service = AuthService(db)
    user = await service.authenticate_user(email=data.email, password=data.password)
    token = service.create_token(user)

    response.set_cookie(
        key=settings.SESSION_COOKIE_NAME,
        value=token,
        max_age=service.expires_in(),
        httponly=True,
        secure=settings.SESSION_COOKIE_SECURE,
        samesite="lax",
        path="/",
    )

    if locale not in settings.SUPPORTED_LOCALES:
        locale = user.language if user.language in settings.SUPPORTED_LOCALES else settings.DEFAULT_LOCALE

    return TokenResponse(
        access_token=token,
        expires_in=service.expires_in(),
        user=UserRead.model_validate(user),
        redirect_to=gate.landing_page(user.role, locale),
    )


@router.post("/logout", response_model=MessageResponse)
async def logout(response: Response):
    response.delete_cookie(settings.SESSION_COOKIE_NAME, path="/")
    return {"detail": "Logged out"}


@router.get("/session", response_model=SessionRead)
async def get_session(request: Request, db: AsyncSession = Depends(get_db)):
    identity = resolve_identity(request)
    if identity is None:
        return SessionRead(authenticated=False)

    user = await db.get(User, identity.user_id)
    if not user or not user.is_active:
        return SessionRead(authenticated=False)

    return SessionRead(authenticated=True, user=UserRead.model_validate(user))
