from typing import List, Optional

from sqlalchemy import and_, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from civicconnect.models import Notification, NotificationType


async def create_notification(
    db: AsyncSession,
    user_id: int,
    type: NotificationType,
    title: str,
    message: str,
    issue_id: Optional[int] = None,
) -> Notification:
    """
    Store a notification for a user.
    """
    db_obj = Notification(
        user_id=user_id,
        issue_id=issue_id,
        type=type,
        title=title,
        message=message,
        is_read=False,
    )
    db.add(db_obj)
    await db.commit()
    await db.refresh(db_obj)
    return db_obj


async def get_user_notifications(
    db: AsyncSession, user_id: int, limit: int = 50, unread_only: bool = False
) -> List[Notification]:
    """
    Get the most recent notifications of a user.
    """
    query = select(Notification).filter(Notification.user_id == user_id)
    if unread_only:
        query = query.filter(Notification.is_read == False)
    result = await db.execute(
        query.order_by(Notification.created_at.desc(), Notification.id.desc()).limit(limit)
    )
    return result.scalars().unique().all()


async def count_unread(db: AsyncSession, user_id: int) -> int:
    """
    Count a user's unread notifications.
    """
    result = await db.execute(
        select(func.count(Notification.id)).filter(
            Notification.user_id == user_id, Notification.is_read == False
        )
    )
    return result.scalar_one()


async def mark_notification_as_read(
    db: AsyncSession, notification_id: int, user_id: int
) -> Optional[Notification]:
    """
    Mark one notification as read. Returns None unless it belongs to user_id.
    """
    result = await db.execute(
        select(Notification).filter(
            Notification.id == notification_id, Notification.user_id == user_id
        )
    )
    notification = result.scalars().first()
    if not notification:
        return None

    notification.is_read = True
    db.add(notification)
    await db.commit()
    await db.refresh(notification)
    return notification


async def mark_all_notifications_as_read(db: AsyncSession, user_id: int) -> int:
    """
    Mark all unread notifications of a user as read.
    """
    stmt = (
        update(Notification)
        .where(
            and_(
                Notification.user_id == user_id,
                Notification.is_read == False,
            )
        )
        .values(is_read=True)
    )
    result = await db.execute(stmt)
    await db.commit()
    return result.rowcount
