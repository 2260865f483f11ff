from datetime import datetime, timedelta
from typing import Optional
from fastapi import HTTPException, status
from sqlalchemy import func, select
from storefront.common.utils import as_utc, now
from storefront.notifications.services import create_notification
from storefront.schema.full_schema import (ActorType, NotificationType, SupportTicket, TicketMessage,
                                           TicketMessageType, TicketPriority, TicketStatus)
from storefront.support.constants import (ALLOWED_TRANSITIONS, DEFAULT_RESOLUTION_HOURS, DEFAULT_RESPONSE_HOURS,
                                          REOPENING_STATUSES, SLA_RESOLUTION_HOURS, SLA_RESPONSE_HOURS,
                                          TICKET_PREFIX, logger)


async def generate_ticket_number(session, at: Optional[datetime] = None) -> str:
    """TKT-YYYY-NNNNNN, numbered per calendar year."""
    at = at or now()
    prefix = f"{TICKET_PREFIX}-{at.year}-"
    last = (await session.execute(
        select(func.max(SupportTicket.ticket_number)).where(SupportTicket.ticket_number.like(f"{prefix}%"))
    )).scalar_one_or_none()
    seq = int(last[len(prefix):]) + 1 if last else 1
    return f"{prefix}{seq:06d}"


def sla_deadlines(priority: TicketPriority, created_at: datetime):
    response = SLA_RESPONSE_HOURS.get(priority, DEFAULT_RESPONSE_HOURS)
    resolution = SLA_RESOLUTION_HOURS.get(priority, DEFAULT_RESOLUTION_HOURS)
    return created_at + timedelta(hours=response), created_at + timedelta(hours=resolution)


def _minutes_since_open(ticket: SupportTicket, at: datetime) -> int:
    return int((at - as_utc(ticket.created_at)).total_seconds() // 60)


def stamp_first_response(ticket: SupportTicket, at: datetime) -> None:
    if ticket.first_response_at is None:
        ticket.first_response_at = at
        ticket.response_time_minutes = _minutes_since_open(ticket, at)


def is_overdue(ticket: SupportTicket, at: Optional[datetime] = None) -> bool:
    at = at or now()
    if ticket.first_response_at is None and as_utc(ticket.sla_response_due) < at:
        return True
    return ticket.resolved_at is None and as_utc(ticket.sla_resolution_due) < at


def change_status(ticket: SupportTicket, new_status: TicketStatus, resolution_note: Optional[str] = None,
                  resolution_type=None) -> TicketStatus:
    previous = ticket.status
    if new_status not in ALLOWED_TRANSITIONS.get(previous, set()):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST,
                            detail=f"Cannot change ticket status from {previous.value} to {new_status.value}")

    at = now()
    ticket.status = new_status
    if new_status == TicketStatus.IN_PROGRESS:
        stamp_first_response(ticket, at)
    if new_status in (TicketStatus.RESOLVED, TicketStatus.CLOSED):
        if ticket.resolved_at is None:
            ticket.resolved_at = at
            ticket.resolution_time_minutes = _minutes_since_open(ticket, at)
        if resolution_note is not None:
            ticket.resolution_note = resolution_note
        if resolution_type is not None:
            ticket.resolution_type = resolution_type
    if new_status == TicketStatus.CLOSED:
        ticket.closed_at = at
    if new_status == TicketStatus.IN_PROGRESS and previous == TicketStatus.RESOLVED:
        ticket.resolved_at = None
        ticket.resolution_time_minutes = None
    if is_overdue(ticket, at):
        ticket.is_sla_breached = True

    ticket.last_activity_at = at
    ticket.updated_at = at
    logger.info("support.ticket.status", extra={"ticket_number": ticket.ticket_number,
                                                "from": previous.value, "to": new_status.value})
    return previous


def add_message(session, ticket: SupportTicket, sender_id: int, sender_role: str, message: str,
                message_type: TicketMessageType = TicketMessageType.MESSAGE,
                is_internal: bool = False) -> TicketMessage:
    msg = TicketMessage(ticket_id=ticket.id, sender_id=sender_id, sender_role=sender_role, message=message,
                        message_type=message_type,
                        is_internal=is_internal or message_type == TicketMessageType.INTERNAL_NOTE)
    session.add(msg)
    ticket.last_activity_at = now()
    return msg


def user_reply(session, ticket: SupportTicket, user_id: int, message: str) -> TicketMessage:
    if ticket.status in (TicketStatus.CLOSED, TicketStatus.CANCELLED):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST,
                            detail=f"Cannot reply to a {ticket.status.value.lower()} ticket")

    msg = add_message(session, ticket, user_id, "user", message)
    if ticket.status in REOPENING_STATUSES:
        previous = ticket.status
        ticket.status = TicketStatus.OPEN
        ticket.reopened_count += 1
        ticket.resolved_at = None
        ticket.resolution_time_minutes = None
        logger.info("support.ticket.reopened", extra={"ticket_number": ticket.ticket_number,
                                                      "from": previous.value, "reopened_count": ticket.reopened_count})
    return msg


def admin_reply(session, ticket: SupportTicket, admin_id: int, message: str, is_internal: bool) -> TicketMessage:
    if ticket.status in (TicketStatus.CLOSED, TicketStatus.CANCELLED):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST,
                            detail=f"Cannot reply to a {ticket.status.value.lower()} ticket")

    message_type = TicketMessageType.INTERNAL_NOTE if is_internal else TicketMessageType.MESSAGE
    msg = add_message(session, ticket, admin_id, "admin", message, message_type, is_internal)
    if not is_internal:
        if ticket.status == TicketStatus.OPEN:
            change_status(ticket, TicketStatus.IN_PROGRESS)
        else:
            stamp_first_response(ticket, now())
        create_notification(session, ticket.user_id, f"New reply on {ticket.ticket_number}",
                            f"Support replied to your ticket: {ticket.subject}",
                            notification_type=NotificationType.INFO, related_entity_type="ticket",
                            related_entity_id=ticket.ticket_number, sender_type=ActorType.ADMIN)
    return msg
