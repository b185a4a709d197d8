"""
Notification Service.

Fan-out of domain events to role inboxes (today only the admin inbox).
``emit`` is fire-and-forget for producers: it writes in its own session and
logs instead of raising, so a failed notification never rolls back the
operation that produced it.
"""

import logging
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy import select, update, desc
from typing import Optional, List

from parcelflow.app.models.notification import Notification
from parcelflow.app.models.enums import UserRole
from parcelflow.app.schemas.notification import NotificationEvent
from parcelflow.app.core.timeutils import utcnow

logger = logging.getLogger(__name__)


class NotificationService:

    def __init__(self, session_factory: async_sessionmaker):
        self._sessions = session_factory

    async def emit(self, event: NotificationEvent) -> Optional[Notification]:
        """Persist ``{...event, is_read: False, created_at: now}``."""
        try:
            async with self._sessions() as db:
                notif = Notification(
                    type=event.type,
                    title=event.title,
                    message=event.message,
                    for_role=event.for_role,
                    related_id=event.related_id,
                    tracking_id=event.tracking_id,
                    metadata_payload=event.metadata,
                    is_read=False,
                    created_at=utcnow(),
                )
                db.add(notif)
                await db.commit()
                return notif
        except Exception:
            logger.exception("Notification '%s' was not stored", event.type.value)
            return None

    @staticmethod
    async def list_for_role(
        db: AsyncSession,
        role: UserRole,
        unread_only: bool = False,
        limit: int = 50
    ) -> List[Notification]:
        """Newest-first inbox for a role."""
        query = select(Notification).where(Notification.for_role == role)
        if unread_only:
            query = query.where(Notification.is_read == False)
        query = query.order_by(desc(Notification.created_at), desc(Notification.id)).limit(limit)

        result = await db.execute(query)
        return list(result.scalars().all())

    @staticmethod
    async def mark_read(db: AsyncSession, notification_id: int, role: UserRole) -> bool:
        """Mark a notification as read."""
        stmt = update(Notification).where(
            Notification.id == notification_id,
            Notification.for_role == role
        ).values(
            is_read=True,
            read_at=utcnow()
        )
        result = await db.execute(stmt)
        return result.rowcount > 0

    @staticmethod
    async def mark_all_read(db: AsyncSession, role: UserRole) -> int:
        """Mark every unread notification in a role's inbox as read."""
        stmt = update(Notification).where(
            Notification.for_role == role,
            Notification.is_read == False
        ).values(
            is_read=True,
            read_at=utcnow()
        )
        result = await db.execute(stmt)
        return result.rowcount
