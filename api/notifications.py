from typing import Any, Optional

from fastapi import APIRouter, Depends
from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from api.common import envelope, get_current_user_id
from database import get_db
from exceptions import NotFound
from models import Notification

router = APIRouter(prefix="/api/notifications", tags=["notifications"])


def _notification_to_response(n: Notification) -> dict[str, Any]:
    return {
        "id": n.id,
        "loanId": n.loan_id,
        "type": n.type,
        "title": n.title,
        "message": n.message,
        "dueDate": n.due_date.isoformat() if n.due_date else None,
        "reminderDate": n.reminder_date.isoformat() if n.reminder_date else None,
        "isRead": n.is_read,
        "createdAt": n.created_at.isoformat() if n.created_at else None,
    }


@router.get("")
async def list_notifications(
    unread: Optional[bool] = None,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    query = select(Notification).where(Notification.user_id == user_id)
    if unread is not None:
        query = query.where(Notification.is_read == (not unread))
    result = await db.execute(query.order_by(Notification.created_at.desc()))
    notifications = result.scalars().all()
    return envelope(
        {
            "notifications": [_notification_to_response(n) for n in notifications],
            "unreadCount": sum(1 for n in notifications if not n.is_read),
        }
    )


@router.put("/read-all")
async def mark_all_as_read(user_id: str = Depends(get_current_user_id), db: AsyncSession = Depends(get_db)):
    result = await db.execute(
        update(Notification)
        .where(Notification.user_id == user_id, Notification.is_read == False)  # noqa: E712
        .values(is_read=True)
        .execution_options(synchronize_session=False)
    )
    return envelope({"updated": result.rowcount}, "All notifications marked as read")


@router.put("/{notification_id}/read")
async def mark_as_read(
    notification_id: str,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    result = await db.execute(
        select(Notification).where(Notification.id == notification_id, Notification.user_id == user_id)
    )
    notification = result.scalar_one_or_none()
    if not notification:
        raise NotFound("Notification", notification_id)
    notification.is_read = True
    await db.flush()
    return envelope(_notification_to_response(notification))
