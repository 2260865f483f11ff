from typing import Optional
from fastapi import HTTPException, status
from sqlalchemy import case, func, select
from storefront.common.utils import parse_uuid
from storefront.schema.full_schema import (Notification, NotificationAudience, NotificationRead, NotificationStatus,
                                           NotificationTarget, NotificationType)


async def get_notification_by_pid(session, notification_pid, active_only: bool = True) -> Notification:
    stmt = select(Notification).where(Notification.public_id == parse_uuid(notification_pid, "Notification"))
    if active_only:
        stmt = stmt.where(Notification.is_active.is_(True))
    notification = (await session.execute(stmt)).scalar_one_or_none()
    if not notification:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Notification not found")
    return notification


def admin_notifications_stmt(notification_type: Optional[NotificationType] = None,
                             target_type: Optional[NotificationTarget] = None,
                             is_broadcast: Optional[bool] = None,
                             notification_status: Optional[NotificationStatus] = None):
    stmt = select(Notification).where(Notification.is_active.is_(True))
    if notification_type is not None:
        stmt = stmt.where(Notification.type == notification_type)
    if target_type is not None:
        stmt = stmt.where(Notification.target_type == target_type)
    if is_broadcast is not None:
        stmt = stmt.where(Notification.is_broadcast.is_(is_broadcast))
    if notification_status is not None:
        stmt = stmt.where(Notification.status == notification_status)
    return stmt.order_by(Notification.created_at.desc(), Notification.id.desc())


async def audience_roles(session, notification_id: int):
    stmt = select(NotificationAudience.role_name).where(NotificationAudience.notification_id == notification_id)
    return sorted((await session.execute(stmt)).scalars().all())


async def broadcast_read_count(session, notification_id: int) -> int:
    stmt = select(func.count(NotificationRead.id)).where(NotificationRead.notification_id == notification_id)
    return (await session.execute(stmt)).scalar_one()


async def notification_analytics(session):
    active = Notification.is_active.is_(True)
    by_type = (await session.execute(
        select(Notification.type, func.count(Notification.id)).where(active).group_by(Notification.type))).all()
    read_flag = case((Notification.is_read.is_(True), 1), else_=0)
    direct_total, direct_read = (await session.execute(
        select(func.count(Notification.id), func.coalesce(func.sum(read_flag), 0))
        .where(active, Notification.is_broadcast.is_(False)))).one()
    broadcasts = (await session.execute(
        select(func.count(Notification.id)).where(active, Notification.is_broadcast.is_(True)))).scalar_one()
    broadcast_reads = (await session.execute(
        select(func.count(NotificationRead.id))
        .join(Notification, Notification.id == NotificationRead.notification_id).where(active))).scalar_one()
    return {
        "total": direct_total + broadcasts,
        "by_type": {t.value: c for t, c in by_type},
        "direct": {"total": direct_total, "read": int(direct_read),
                   "read_rate": round(int(direct_read) / direct_total * 100, 2) if direct_total else 0.0},
        "broadcasts": {"total": broadcasts, "reads": broadcast_reads},
    }
