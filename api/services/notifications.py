"""
Notification service functions.

A notification is always committed before it is pushed. Pushes are best
effort: failures are logged and never reach the caller, and nothing is
retried.
"""

import asyncio
import logging
from typing import Any, Dict, Iterable, List, Optional

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from api.services.common import page_offset, paginated
from core.config import settings
from core.errors import NotFoundError, ValidationError
from core.realtime import manager, schedule_push
from core.utils.datetime import isoformat, now
from database.engine import AsyncSessionLocal
from database.models.notifications import Notification, NotificationType

logger = logging.getLogger(__name__)

NOTIFICATION_EVENT = "notification"


def serialize_notification(notification: Notification) -> Dict[str, Any]:
    return {
        "id": notification.id,
        "user_id": notification.user_id,
        "type": notification.type.value,
        "related_id": notification.related_id,
        "message": notification.message,
        "is_read": notification.is_read,
        "created_at": isoformat(notification.created_at),
    }


def stage_notification(
    session: AsyncSession,
    user_id: int,
    type: NotificationType,
    message: str,
    related_id: Optional[Any] = None,
) -> Notification:
    """Add a notification to ``session``; the caller commits and then publishes it."""
    if not message or not message.strip():
        raise ValidationError("Notification message is required")
    notification = Notification(
        user_id=user_id,
        type=type,
        related_id=str(related_id) if related_id is not None else None,
        message=message[:1000],
        is_read=False,
    )
    session.add(notification)
    return notification


def publish(notifications: Iterable[Notification]) -> None:
    """Schedule live pushes for committed notifications."""
    for notification in notifications:
        schedule_push(
            notification.user_id,
            NOTIFICATION_EVENT,
            serialize_notification(notification),
        )


async def _push_quietly(notification: Notification) -> bool:
    try:
        await manager.push(
            notification.user_id,
            NOTIFICATION_EVENT,
            serialize_notification(notification),
        )
        return True
    except Exception as e:
        logger.error(
            f"Push failed for notification {notification.id} "
            f"(user {notification.user_id}): {type(e).__name__}: {e}"
        )
        return False


async def send_notification(
    user_id: int,
    type: NotificationType,
    message: str,
    related_id: Optional[Any] = None,
) -> Dict[str, Any]:
    """
    Record a notification for one user, then push it.

    Returns:
        The stored notification
    """
    async with AsyncSessionLocal() as session:
        notification = stage_notification(session, user_id, type, message, related_id)
        await session.commit()

    publish([notification])
    return serialize_notification(notification)


async def send_notifications_to_users(
    user_ids: Iterable[int],
    type: NotificationType,
    message: str,
    related_id: Optional[Any] = None,
    batch_size: Optional[int] = None,
) -> int:
    """
    Fan a notification out to many users.

    Recipients are processed in batches: each batch is committed in one
    transaction, then its pushes run concurrently. Batches run one after
    the other.

    Returns:
        Number of notifications stored
    """
    batch_size = batch_size or settings.notification_batch_size
    recipients = list(dict.fromkeys(user_ids))
    stored = 0

    for start in range(0, len(recipients), batch_size):
        batch = recipients[start:start + batch_size]
        async with AsyncSessionLocal() as session:
            notifications = [
                Notification(
                    user_id=user_id,
                    type=type,
                    related_id=str(related_id) if related_id is not None else None,
                    message=message[:1000],
                    is_read=False,
                )
                for user_id in batch
            ]
            session.add_all(notifications)
            await session.commit()

        stored += len(notifications)
        await asyncio.gather(*(_push_quietly(n) for n in notifications))

    logger.info(f"Sent {type.value} notification to {stored} users")
    return stored


async def list_notifications(
    user_id: int,
    page: int = 1,
    page_size: int = 20,
    unread_only: bool = False,
) -> Dict[str, Any]:
    """List a user's notifications, newest first, with the unread count."""
    async with AsyncSessionLocal() as session:
        conditions = [Notification.user_id == user_id]
        if unread_only:
            conditions.append(Notification.is_read.is_(False))

        total = await session.scalar(
            select(func.count(Notification.id)).where(*conditions)
        ) or 0
        unread = await session.scalar(
            select(func.count(Notification.id)).where(
                Notification.user_id == user_id, Notification.is_read.is_(False)
            )
        ) or 0

        result = await session.execute(
            select(Notification)
            .where(*conditions)
            .order_by(Notification.created_at.desc(), Notification.id.desc())
            .limit(page_size)
            .offset(page_offset(page, page_size))
        )
        items = [serialize_notification(n) for n in result.scalars().all()]

    response = paginated(items, total, page, page_size)
    response["unread_count"] = unread
    return response


async def _load_own_notification(
    session: AsyncSession, user_id: int, notification_id: int
) -> Notification:
    notification = await session.scalar(
        select(Notification).where(
            Notification.id == notification_id, Notification.user_id == user_id
        )
    )
    if not notification:
        raise NotFoundError("Notification not found")
    return notification


async def mark_notification_read(user_id: int, notification_id: int) -> Dict[str, Any]:
    async with AsyncSessionLocal() as session:
        notification = await _load_own_notification(session, user_id, notification_id)
        notification.is_read = True
        await session.commit()
        return serialize_notification(notification)


async def mark_all_notifications_read(user_id: int) -> Dict[str, Any]:
    async with AsyncSessionLocal() as session:
        result = await session.execute(
            update(Notification)
            .where(
                Notification.user_id == user_id,
                Notification.is_read.is_(False),
                Notification.is_deleted.is_(False),
            )
            .values(is_read=True, updated_at=now())
            .execution_options(synchronize_session=False)
        )
        await session.commit()
        return {"updated": result.rowcount or 0}


async def delete_notification(user_id: int, notification_id: int) -> Dict[str, Any]:
    async with AsyncSessionLocal() as session:
        notification = await _load_own_notification(session, user_id, notification_id)
        notification.soft_delete()
        await session.commit()
    return {"message": "Notification deleted successfully", "id": notification_id}
