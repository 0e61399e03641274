# api/v1/endpoints/notification.py
from fastapi import APIRouter, Depends, Query
from fastapi import status as http_status
from sqlalchemy.ext.asyncio import AsyncSession

from core.database import get_db
from core.permissions import require_authenticated
from core.security import Identity
from schemas.notification import NotificationRead, UnreadCount, MarkAllReadResponse
from services.notification_service import NotificationService
from utils.pagination import PaginatedResponse

router = APIRouter()


# ---------- recipient inbox ----------
@router.get("", response_model=PaginatedResponse[NotificationRead])
async def list_notifications(
        page: int = Query(1, ge=1),
        limit: int = Query(20, ge=1, le=100),
        unread_only: bool = Query(False),
        identity: Identity = Depends(require_authenticated),
        db: AsyncSession = Depends(get_db),
):
    """Notifications of the caller, newest first"""
    service = NotificationService(db)
    return await service.list_notifications(identity.user_id, page=page, limit=limit, unread_only=unread_only)


@router.get("/unread-count", response_model=UnreadCount)
async def unread_count(
        identity: Identity = Depends(require_authenticated),
        db: AsyncSession = Depends(get_db),
):
    return {"count": await NotificationService(db).get_unread_count(identity.user_id)}


@router.post("/read-all", response_model=MarkAllReadResponse)
async def mark_all_read(
        identity: Identity = Depends(require_authenticated),
        db: AsyncSession = Depends(get_db),
):
    return {"updated": await NotificationService(db).mark_all_as_read(identity.user_id)}


@router.post("/{notification_id}/read", response_model=NotificationRead)
async def mark_read(
        notification_id: int,
        identity: Identity = Depends(require_authenticated),
        db: AsyncSession = Depends(get_db),
):
    return await NotificationService(db).mark_as_read(notification_id, identity.user_id)


@router.delete("/{notification_id}", status_code=http_status.HTTP_204_NO_CONTENT)
async def delete_notification(
        notification_id: int,
        identity: Identity = Depends(require_authenticated),
        db: AsyncSession = Depends(get_db),
):
    await NotificationService(db).delete_notification(notification_id, identity.user_id)
