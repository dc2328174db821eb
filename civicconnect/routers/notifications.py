from typing import Any, List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from civicconnect.api.deps import get_current_active_user
from civicconnect.core.config import settings
from civicconnect.core.exceptions import NotFoundError
from civicconnect.crud.notification import (
    count_unread,
    get_user_notifications,
    mark_all_notifications_as_read,
    mark_notification_as_read,
)
from civicconnect.db.session import get_db
from civicconnect.models import User
from civicconnect.schemas import Notification, UnreadCount

router = APIRouter()


@router.get("/notifications", response_model=List[Notification])
async def read_notifications(
    limit: Optional[int] = Query(None, ge=1, le=200),
    unread_only: bool = False,
    current_user: User = Depends(get_current_active_user),
    db: AsyncSession = Depends(get_db),
) -> Any:
    """
    Most recent notifications of the current user, newest first.
    """
    return await get_user_notifications(
        db,
        user_id=current_user.id,
        limit=limit or settings.NOTIFICATIONS_DEFAULT_LIMIT,
        unread_only=unread_only,
    )


@router.get("/notifications/unread-count", response_model=UnreadCount)
async def read_unread_count(
    current_user: User = Depends(get_current_active_user),
    db: AsyncSession = Depends(get_db),
) -> Any:
    return {"count": await count_unread(db, user_id=current_user.id)}


@router.put("/notifications/read-all")
async def mark_all_as_read(
    current_user: User = Depends(get_current_active_user),
    db: AsyncSession = Depends(get_db),
) -> Any:
    updated = await mark_all_notifications_as_read(db, user_id=current_user.id)
    return {"message": "All notifications marked as read", "updated": updated}


@router.put("/notifications/{notification_id}/read", response_model=Notification)
async def mark_as_read(
    notification_id: int,
    current_user: User = Depends(get_current_active_user),
    db: AsyncSession = Depends(get_db),
) -> Any:
    """
    Mark one of the current user's notifications as read.
    Notifications of other users are reported as not found.
    """
    notification = await mark_notification_as_read(
        db, notification_id=notification_id, user_id=current_user.id
    )
    if not notification:
        raise NotFoundError("Notification not found")
    return notification
