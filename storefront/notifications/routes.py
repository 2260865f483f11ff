from typing import Optional
from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession
from storefront.audit.loggers import log_admin_action
from storefront.auth.dependencies import require_permissions
from storefront.auth.repository import get_user_role_names
from storefront.common.background import fire_and_forget
from storefront.common.pagination import PageParams, page_params, page_payload, paginate
from storefront.common.utils import now, parse_uuid, success_response
from storefront.db.dependencies import get_session
from storefront.notifications.models import BroadcastIn, NotificationCreateIn
from storefront.notifications.repository import (admin_notifications_stmt, audience_roles, broadcast_read_count,
                                                 get_notification_by_pid, notification_analytics)
from storefront.notifications.services import (broadcast_recipient_emails, create_broadcast, create_notification,
                                               feed_stmt, mark_read, notification_out, send_broadcast_emails,
                                               unread_count)
from storefront.schema.full_schema import (ActorType, Notification, NotificationRead, NotificationStatus,
                                           NotificationTarget, NotificationType, Users)
from storefront.user.dependencies import current_user_id
from storefront.user.repository import get_user_by_pid
from storefront.notifications.constants import logger

notifications_router = APIRouter()
notifications_admin_router = APIRouter(dependencies=[require_permissions("notification:manage")])


async def _visible_notification(session, user_id: int, notification_pid: str):
    role_names = await get_user_role_names(session, user_id)
    stmt = feed_stmt(user_id, role_names).where(
        Notification.public_id == parse_uuid(notification_pid, "Notification"))
    row = (await session.execute(stmt)).first()
    if row is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Notification not found")
    return row


@notifications_router.get("")
async def get_my_notifications(request: Request, unread_only: bool = Query(False),
                               notification_type: Optional[NotificationType] = Query(None, alias="type"),
                               params: PageParams = Depends(page_params),
                               session: AsyncSession = Depends(get_session)):
    user_id = current_user_id(request)
    role_names = await get_user_role_names(session, user_id)
    rows, meta = await paginate(session, feed_stmt(user_id, role_names, unread_only, notification_type), params)
    payload = page_payload([notification_out(r[0], r[1]) for r in rows], meta)
    payload["unread_count"] = await unread_count(session, user_id, role_names)
    return success_response(payload)


@notifications_router.get("/unread-count")
async def get_unread_count(request: Request, session: AsyncSession = Depends(get_session)):
    user_id = current_user_id(request)
    role_names = await get_user_role_names(session, user_id)
    return success_response({"unread_count": await unread_count(session, user_id, role_names)})


@notifications_router.patch("/read-all")
async def mark_all_read(request: Request, session: AsyncSession = Depends(get_session)):
    user_id = current_user_id(request)
    role_names = await get_user_role_names(session, user_id)

    at = now()
    res = await session.execute(
        update(Notification)
        .where(Notification.recipient_user_id == user_id, Notification.is_broadcast.is_(False),
               Notification.is_active.is_(True), Notification.is_read.is_(False))
        .values(is_read=True, read_at=at, status=NotificationStatus.READ))
    marked = res.rowcount or 0

    unread_broadcasts = (await session.execute(
        feed_stmt(user_id, role_names, unread_only=True).where(Notification.is_broadcast.is_(True)))).all()
    for notification, _ in unread_broadcasts:
        session.add(NotificationRead(notification_id=notification.id, user_id=user_id, read_at=at))
        marked += 1
    await session.commit()

    logger.info("notification.read_all", extra={"user_id": user_id, "marked": marked})
    return success_response({"marked": marked})


@notifications_router.patch("/{notification_id}/read")
async def mark_notification_read(request: Request, notification_id: str, session: AsyncSession = Depends(get_session)):
    user_id = current_user_id(request)
    notification, _ = await _visible_notification(session, user_id, notification_id)
    await mark_read(session, notification, user_id)
    await session.commit()

    _, read_at = await _visible_notification(session, user_id, notification_id)
    return success_response({"notification": notification_out(notification, read_at)})


@notifications_router.delete("/{notification_id}")
async def delete_my_notification(request: Request, notification_id: str, session: AsyncSession = Depends(get_session)):
    user_id = current_user_id(request)
    notification, _ = await _visible_notification(session, user_id, notification_id)
    if notification.is_broadcast:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Broadcast notifications cannot be deleted")

    notification.is_active = False
    await session.commit()
    return success_response({"message": "Notification deleted"})


@notifications_admin_router.post("", status_code=status.HTTP_201_CREATED)
async def send_notification(request: Request, payload: NotificationCreateIn,
                            session: AsyncSession = Depends(get_session)):
    user = await get_user_by_pid(session, payload.user_id)
    notification = create_notification(session, user.id, payload.title, payload.message,
                                       notification_type=payload.type, priority=payload.priority,
                                       action_url=payload.action_url, sender_type=ActorType.ADMIN,
                                       expires_at=payload.expires_at)
    await session.commit()

    log_admin_action(request, "NOTIFICATION_SEND", "notification", notification.public_id,
                     {"recipient": str(user.public_id), "type": payload.type.value})
    return success_response({"notification": notification_out(notification)}, status.HTTP_201_CREATED)


@notifications_admin_router.post("/broadcast", status_code=status.HTTP_201_CREATED)
async def send_broadcast(request: Request, payload: BroadcastIn, session: AsyncSession = Depends(get_session)):
    notification = await create_broadcast(session, payload)
    emails = await broadcast_recipient_emails(session, payload.target_roles) if payload.send_email else []
    await session.commit()

    if emails:
        fire_and_forget(send_broadcast_emails(emails, payload.title, payload.message), name="broadcast-emails")

    log_admin_action(request, "NOTIFICATION_BROADCAST", "notification", notification.public_id,
                     {"target_roles": payload.target_roles, "send_email": payload.send_email})
    data = notification_out(notification)
    data["target_roles"] = sorted(set(payload.target_roles))
    data["email_recipients"] = len(emails)
    return success_response({"notification": data}, status.HTTP_201_CREATED)


@notifications_admin_router.get("")
async def list_notifications(notification_type: Optional[NotificationType] = Query(None, alias="type"),
                             target_type: Optional[NotificationTarget] = Query(None),
                             is_broadcast: Optional[bool] = Query(None),
                             notification_status: Optional[NotificationStatus] = Query(None, alias="status"),
                             params: PageParams = Depends(page_params), session: AsyncSession = Depends(get_session)):
    stmt = admin_notifications_stmt(notification_type, target_type, is_broadcast, notification_status)
    rows, meta = await paginate(session, stmt, params)
    items = []
    for r in rows:
        data = notification_out(r[0])
        data["target_type"] = r[0].target_type
        data["status"] = r[0].status
        items.append(data)
    return success_response(page_payload(items, meta))


@notifications_admin_router.get("/analytics")
async def get_notification_analytics(session: AsyncSession = Depends(get_session)):
    return success_response({"analytics": await notification_analytics(session)})


@notifications_admin_router.get("/{notification_id}")
async def get_notification(notification_id: str, session: AsyncSession = Depends(get_session)):
    notification = await get_notification_by_pid(session, notification_id)
    data = notification_out(notification)
    data["target_type"] = notification.target_type
    data["status"] = notification.status

    if notification.is_broadcast:
        data["target_roles"] = await audience_roles(session, notification.id)
        data["read_count"] = await broadcast_read_count(session, notification.id)
    else:
        data["recipient_id"] = (await session.execute(
            select(Users.public_id).where(Users.id == notification.recipient_user_id))).scalar_one_or_none()
        data["read_count"] = 1 if notification.is_read else 0
    return success_response({"notification": data})


@notifications_admin_router.delete("/{notification_id}")
async def delete_notification(request: Request, notification_id: str, session: AsyncSession = Depends(get_session)):
    notification = await get_notification_by_pid(session, notification_id)
    notification.is_active = False
    await session.commit()

    log_admin_action(request, "NOTIFICATION_DELETE", "notification", notification.public_id)
    return success_response({"message": "Notification deleted"})
