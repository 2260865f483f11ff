from typing import Optional
from fastapi import HTTPException, status
from sqlalchemy import and_, func, or_, select
from storefront.common.utils import now, parse_uuid
from storefront.schema.full_schema import (SupportTicket, TicketCategory, TicketMessage, TicketPriority,
                                           TicketStatus, Users)
from storefront.support.constants import ACTIVE_STATUSES


async def get_user_ticket(session, user_id: int, ticket_number: str) -> SupportTicket:
    stmt = select(SupportTicket).where(SupportTicket.user_id == user_id,
                                       SupportTicket.ticket_number == ticket_number)
    ticket = (await session.execute(stmt)).scalar_one_or_none()
    if not ticket:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Ticket not found")
    return ticket


async def get_ticket_by_pid(session, ticket_pid) -> SupportTicket:
    stmt = select(SupportTicket).where(SupportTicket.public_id == parse_uuid(ticket_pid, "Ticket"))
    ticket = (await session.execute(stmt)).scalar_one_or_none()
    if not ticket:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Ticket not found")
    return ticket


async def ticket_messages(session, ticket_id: int, include_internal: bool = False):
    stmt = (select(TicketMessage, Users.public_id)
            .join(Users, Users.id == TicketMessage.sender_id)
            .where(TicketMessage.ticket_id == ticket_id))
    if not include_internal:
        stmt = stmt.where(TicketMessage.is_internal.is_(False))
    return (await session.execute(stmt.order_by(TicketMessage.created_at, TicketMessage.id))).all()


def overdue_clause(at=None):
    at = at or now()
    return and_(SupportTicket.status.in_(ACTIVE_STATUSES),
                or_(and_(SupportTicket.first_response_at.is_(None), SupportTicket.sla_response_due < at),
                    and_(SupportTicket.resolved_at.is_(None), SupportTicket.sla_resolution_due < at)))


def user_tickets_stmt(user_id: int, ticket_status: Optional[TicketStatus] = None,
                      category: Optional[TicketCategory] = None):
    stmt = select(SupportTicket).where(SupportTicket.user_id == user_id)
    if ticket_status is not None:
        stmt = stmt.where(SupportTicket.status == ticket_status)
    if category is not None:
        stmt = stmt.where(SupportTicket.category == category)
    return stmt.order_by(SupportTicket.created_at.desc(), SupportTicket.id.desc())


def admin_tickets_stmt(ticket_status: Optional[TicketStatus] = None, priority: Optional[TicketPriority] = None,
                       category: Optional[TicketCategory] = None, assigned: Optional[bool] = None,
                       assigned_to_id: Optional[int] = None, overdue: bool = False):
    stmt = select(SupportTicket)
    if ticket_status is not None:
        stmt = stmt.where(SupportTicket.status == ticket_status)
    if priority is not None:
        stmt = stmt.where(SupportTicket.priority == priority)
    if category is not None:
        stmt = stmt.where(SupportTicket.category == category)
    if assigned is True:
        stmt = stmt.where(SupportTicket.assigned_to_id.is_not(None))
    elif assigned is False:
        stmt = stmt.where(SupportTicket.assigned_to_id.is_(None))
    if assigned_to_id is not None:
        stmt = stmt.where(SupportTicket.assigned_to_id == assigned_to_id)
    if overdue:
        stmt = stmt.where(overdue_clause())
    return stmt.order_by(SupportTicket.created_at.desc(), SupportTicket.id.desc())


async def status_counts(session, user_id: Optional[int] = None):
    stmt = select(SupportTicket.status, func.count(SupportTicket.id)).group_by(SupportTicket.status)
    if user_id is not None:
        stmt = stmt.where(SupportTicket.user_id == user_id)
    rows = (await session.execute(stmt)).all()
    counts = {s.value: 0 for s in TicketStatus}
    counts.update({s.value: c for s, c in rows})
    return counts


async def ticket_analytics(session):
    by_priority = (await session.execute(
        select(SupportTicket.priority, func.count(SupportTicket.id)).group_by(SupportTicket.priority))).all()
    avg_response, avg_resolution, avg_rating = (await session.execute(
        select(func.avg(SupportTicket.response_time_minutes), func.avg(SupportTicket.resolution_time_minutes),
               func.avg(SupportTicket.satisfaction_rating)))).one()
    breached = (await session.execute(
        select(func.count(SupportTicket.id)).where(SupportTicket.is_sla_breached.is_(True)))).scalar_one()
    by_status = await status_counts(session)
    return {
        "total": sum(by_status.values()),
        "by_status": by_status,
        "by_priority": {p.value: c for p, c in by_priority},
        "avg_response_time_minutes": round(float(avg_response), 1) if avg_response is not None else None,
        "avg_resolution_time_minutes": round(float(avg_resolution), 1) if avg_resolution is not None else None,
        "avg_satisfaction_rating": round(float(avg_rating), 2) if avg_rating is not None else None,
        "sla_breached": breached,
    }
