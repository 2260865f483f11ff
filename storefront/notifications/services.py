from typing import List, Optional
from sqlalchemy import and_, func, or_, select
from storefront.common.utils import as_utc, now
from storefront.messaging.email import send_email
from storefront.schema.full_schema import (ActorType, Notification, NotificationAudience, NotificationPriority,
                                           NotificationRead, NotificationStatus, NotificationTarget,
                                           NotificationType, Role, UserRole, Users)
from storefront.notifications.constants import ADMIN_ROLE_NAMES, logger


def create_notification(session, user_id: int, title: str, message: str,
                        notification_type: NotificationType = NotificationType.INFO,
                        priority: NotificationPriority = NotificationPriority.MEDIUM,
                        related_entity_type: Optional[str] = None, related_entity_id: Optional[str] = None,
                        action_url: Optional[str] = None, sender_type: ActorType = ActorType.SYSTEM,
                        expires_at=None) -> Notification:
    """Queue a direct in-app notification on the caller's transaction."""
    notification = Notification(
        title=title[:200], message=message[:1000], type=notification_type, priority=priority,
        target_type=NotificationTarget.USER, recipient_user_id=user_id,
        related_entity_type=related_entity_type,
        related_entity_id=str(related_entity_id) if related_entity_id is not None else None,
        action_url=action_url, sender_type=sender_type, expires_at=as_utc(expires_at),
    )
    session.add(notification)
    return notification


def target_for_roles(roles: List[str]) -> NotificationTarget:
    roles = set(roles)
    if roles <= ADMIN_ROLE_NAMES:
        return NotificationTarget.ADMIN
    if roles & ADMIN_ROLE_NAMES:
        return NotificationTarget.BOTH
    return NotificationTarget.USER


async def create_broadcast(session, payload, sender_type: ActorType = ActorType.ADMIN) -> Notification:
    roles = sorted(set(payload.target_roles))
    notification = Notification(
        title=payload.title, message=payload.message, type=payload.type, priority=payload.priority,
        target_type=target_for_roles(roles), is_broadcast=True, action_url=payload.action_url,
        sender_type=sender_type, expires_at=as_utc(payload.expires_at),
    )
    session.add(notification)
    await session.flush()
    for role_name in roles:
        session.add(NotificationAudience(notification_id=notification.id, role_name=role_name))
    await session.flush()
    return notification


async def broadcast_recipient_emails(session, roles: List[str]) -> List[str]:
    stmt = (select(Users.email).distinct()
            .join(UserRole, UserRole.user_id == Users.id)
            .join(Role, Role.id == UserRole.role_id)
            .where(Role.name.in_(roles), Users.is_active.is_(True)))
    return list((await session.execute(stmt)).scalars().all())


async def send_broadcast_emails(emails: List[str], title: str, message: str) -> None:
    sent = 0
    for email in emails:
        if await send_email(email, title, message):
            sent += 1
    logger.info("notification.broadcast.emails", extra={"recipients": len(emails), "sent": sent})


def _visible_to(user_id: int, role_names: List[str]):
    at = now()
    audience = select(NotificationAudience.notification_id).where(NotificationAudience.role_name.in_(role_names))
    direct = and_(Notification.is_broadcast.is_(False), Notification.recipient_user_id == user_id)
    broadcast = and_(Notification.is_broadcast.is_(True), Notification.id.in_(audience))
    return and_(Notification.is_active.is_(True),
                or_(Notification.expires_at.is_(None), Notification.expires_at > at),
                or_(direct, broadcast))


def _unread_clause():
    return or_(and_(Notification.is_broadcast.is_(False), Notification.is_read.is_(False)),
               and_(Notification.is_broadcast.is_(True), NotificationRead.id.is_(None)))


def feed_stmt(user_id: int, role_names: List[str], unread_only: bool = False,
              notification_type: Optional[NotificationType] = None):
    """Direct notifications plus broadcasts aimed at the user's roles, with the broadcast read receipt."""
    stmt = (select(Notification, NotificationRead.read_at)
            .outerjoin(NotificationRead, and_(NotificationRead.notification_id == Notification.id,
                                              NotificationRead.user_id == user_id))
            .where(_visible_to(user_id, role_names)))
    if unread_only:
        stmt = stmt.where(_unread_clause())
    if notification_type is not None:
        stmt = stmt.where(Notification.type == notification_type)
    return stmt.order_by(Notification.created_at.desc(), Notification.id.desc())


async def unread_count(session, user_id: int, role_names: List[str]) -> int:
    sub = feed_stmt(user_id, role_names, unread_only=True).order_by(None).subquery()
    return (await session.execute(select(func.count()).select_from(sub))).scalar_one()


async def mark_read(session, notification: Notification, user_id: int) -> None:
    if not notification.is_broadcast:
        if not notification.is_read:
            notification.is_read = True
            notification.read_at = now()
            notification.status = NotificationStatus.READ
        return
    exists = (await session.execute(
        select(NotificationRead.id).where(NotificationRead.notification_id == notification.id,
                                          NotificationRead.user_id == user_id))).scalar_one_or_none()
    if exists is None:
        session.add(NotificationRead(notification_id=notification.id, user_id=user_id))


def notification_out(notification: Notification, broadcast_read_at=None) -> dict:
    if notification.is_broadcast:
        is_read, read_at = broadcast_read_at is not None, broadcast_read_at
    else:
        is_read, read_at = notification.is_read, notification.read_at
    return {
        "id": notification.public_id,
        "title": notification.title,
        "message": notification.message,
        "type": notification.type,
        "priority": notification.priority,
        "is_broadcast": notification.is_broadcast,
        "is_read": is_read,
        "read_at": as_utc(read_at),
        "action_url": notification.action_url,
        "related_entity_type": notification.related_entity_type,
        "related_entity_id": notification.related_entity_id,
        "sender_type": notification.sender_type,
        "expires_at": as_utc(notification.expires_at),
        "created_at": as_utc(notification.created_at),
    }
