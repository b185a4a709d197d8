"""
Notification API Endpoints.

The admin inbox: new orders, payments and rider applications.
"""

from typing import List

from fastapi import APIRouter, Depends, Path, Query
from sqlalchemy.ext.asyncio import AsyncSession

from parcelflow.app.core.exceptions import NotFoundError
from parcelflow.app.core.guards import require_admin
from parcelflow.app.core.identity import CallerContext
from parcelflow.app.db.session import get_db
from parcelflow.app.models.enums import UserRole
from parcelflow.app.schemas.notification import NotificationResponse
from parcelflow.app.services.notification_service import NotificationService

router = APIRouter(prefix="/notifications", tags=["Notifications"])


@router.get("", response_model=List[NotificationResponse])
async def list_notifications(
    unread_only: bool = Query(False),
    limit: int = Query(50, ge=1, le=200),
    admin: CallerContext = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    """List the admin inbox, newest first."""
    return await NotificationService.list_for_role(db, UserRole.ADMIN, unread_only, limit)


@router.patch("/read-all")
async def mark_all_notifications_read(
    admin: CallerContext = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    """Mark all admin notifications as read."""
    count = await NotificationService.mark_all_read(db, UserRole.ADMIN)
    await db.commit()
    return {"status": "success", "count": count}


@router.patch("/{notification_id}/read")
async def mark_notification_read(
    notification_id: int = Path(...),
    admin: CallerContext = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    """Mark a specific notification as read."""
    success = await NotificationService.mark_read(db, notification_id, UserRole.ADMIN)
    if not success:
        raise NotFoundError("Notification", notification_id)

    await db.commit()
    return {"status": "success"}
