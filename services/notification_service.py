# services/notification_service.py
import math
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional, List, Dict, Any, Iterable, Protocol

from fastapi import HTTPException, status
from sqlalchemy import select, func, update, desc
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import sessionmaker
import logging

from models.notification import Notification, NotificationType

logger = logging.getLogger(__name__)


@dataclass
class NotificationEvent:
    """Payload handed to a dispatcher; one notification row per recipient."""
    type: NotificationType
    title: str
    message: str
    data: Dict[str, Any] = field(default_factory=dict)
    project_id: Optional[int] = None
    milestone_id: Optional[int] = None
    task_id: Optional[int] = None


class NotificationDispatcher(Protocol):
    async def dispatch_best_effort(
            self,
            recipient_ids: Iterable[int],
            event: NotificationEvent,
    ) -> None:
        ...


class NotificationService:
    def __init__(self, db: AsyncSession):
        self.db = db
        # dispatch writes never share a transaction with the caller's session
        self.session_factory = sessionmaker(bind=db.bind, class_=AsyncSession, expire_on_commit=False)

    # ---------- dispatch ----------
    def build_notifications(self, recipients: List[int], event: NotificationEvent) -> List[Notification]:
        return [
            Notification(
                user_id=user_id,
                type=event.type,
                title=event.title,
                message=event.message,
                data=event.data,
                project_id=event.project_id,
                milestone_id=event.milestone_id,
                task_id=event.task_id,
            )
            for user_id in recipients
        ]

    async def dispatch(
            self,
            recipient_ids: Iterable[int],
            event: NotificationEvent,
    ) -> List[Notification]:
        """Persist one in-app notification per distinct recipient.

        Rows are written through a session of their own, so a failed write
        rolls back only the notifications and leaves every object the caller
        has loaded intact.
        """

        recipients = list(dict.fromkeys(r for r in recipient_ids if r is not None))
        if not recipients:
            return []

        notifications = self.build_notifications(recipients, event)

        async with self.session_factory() as session:
            try:
                session.add_all(notifications)
                await session.commit()
            except Exception:
                await session.rollback()
                raise

        logger.info(f"Dispatched {event.type.value} to {len(notifications)} recipient(s)")
        return notifications

    async def dispatch_best_effort(
            self,
            recipient_ids: Iterable[int],
            event: NotificationEvent,
    ) -> None:
        """Dispatch without letting a failure reach the caller; the caller's
        own change is already committed."""
        try:
            await self.dispatch(recipient_ids, event)
        except Exception:
            logger.exception(f"Failed to dispatch {event.type.value} notification")

    # ---------- recipient operations ----------
    async def list_notifications(
            self,
            user_id: int,
            page: int = 1,
            limit: int = 20,
            unread_only: bool = False,
    ) -> Dict[str, Any]:
        """Notifications of one recipient, newest first"""

        query = select(Notification).where(Notification.user_id == user_id)
        if unread_only:
            query = query.where(Notification.read.is_(False))

        total = await self.db.scalar(
            select(func.count()).select_from(query.subquery())
        )

        result = await self.db.execute(
            query.order_by(desc(Notification.created_at), desc(Notification.id))
            .offset((page - 1) * limit)
            .limit(limit)
        )

        return {
            "items": result.scalars().all(),
            "total": total or 0,
            "page": page,
            "limit": limit,
            "total_pages": math.ceil((total or 0) / limit) if limit else 0,
        }

    async def get_unread_count(self, user_id: int) -> int:
        count = await self.db.scalar(
            select(func.count(Notification.id)).where(
                Notification.user_id == user_id,
                Notification.read.is_(False),
            )
        )
        return count or 0

    async def _get_own(self, notification_id: int, user_id: int) -> Notification:
        notification = await self.db.get(Notification, notification_id)
        # someone else's notification looks exactly like a missing one
        if not notification or notification.user_id != user_id:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Notification not found")
        return notification

    async def mark_as_read(self, notification_id: int, user_id: int) -> Notification:
        notification = await self._get_own(notification_id, user_id)

        if not notification.read:
            notification.read = True
            notification.read_at = datetime.utcnow()
            await self.db.commit()

        return notification

    async def mark_all_as_read(self, user_id: int) -> int:
        result = await self.db.execute(
            update(Notification)
            .where(Notification.user_id == user_id, Notification.read.is_(False))
            .values(read=True, read_at=datetime.utcnow())
        )
        await self.db.commit()
        return result.rowcount or 0

    async def delete_notification(self, notification_id: int, user_id: int) -> None:
        notification = await self._get_own(notification_id, user_id)
        await self.db.delete(notification)
        await self.db.commit()
