from typing import Optional
from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from storefront.audit.loggers import log_admin_action, log_user_activity
from storefront.auth.dependencies import require_permissions
from storefront.auth.repository import get_user_role_names
from storefront.common.pagination import PageParams, page_params, page_payload, paginate
from storefront.common.utils import now, success_response
from storefront.db.dependencies import get_session
from storefront.notifications.constants import ADMIN_ROLE_NAMES
from storefront.notifications.services import create_notification
from storefront.schema.full_schema import (ActorType, NotificationType, SupportTicket, TicketCategory,
                                           TicketMessageType, TicketPriority, TicketStatus, Users)
from storefront.support.models import (AdminTicketMessageIn, TicketAssignIn, TicketCreateIn, TicketMessageIn,
                                       TicketRatingIn, TicketStatusIn)
from storefront.support.repository import (admin_tickets_stmt, get_ticket_by_pid, get_user_ticket, overdue_clause,
                                           status_counts, ticket_analytics, ticket_messages, user_tickets_stmt)
from storefront.support.services import (add_message, admin_reply, change_status, generate_ticket_number,
                                         sla_deadlines, user_reply)
from storefront.support.utils import message_out, ticket_out
from storefront.user.dependencies import current_user_id
from storefront.user.repository import get_user, get_user_by_pid
from storefront.support.constants import RATEABLE_STATUSES, logger

support_router = APIRouter()
support_admin_router = APIRouter(dependencies=[require_permissions("ticket:manage")])


async def _user_ticket_detail(session, ticket: SupportTicket):
    data = ticket_out(ticket)
    data["messages"] = [message_out(m) for m, _ in await ticket_messages(session, ticket.id)]
    return data


async def _admin_ticket_detail(session, ticket: SupportTicket):
    assignee = None
    if ticket.assigned_to_id is not None:
        assignee = (await session.execute(
            select(Users.public_id).where(Users.id == ticket.assigned_to_id))).scalar_one_or_none()
    data = ticket_out(ticket, admin_view=True, assigned_to_public_id=assignee)
    messages = await ticket_messages(session, ticket.id, include_internal=True)
    data["messages"] = [message_out(m, sender_pid, admin_view=True) for m, sender_pid in messages]
    return data


@support_router.post("/tickets", status_code=status.HTTP_201_CREATED)
async def create_ticket(request: Request, payload: TicketCreateIn, session: AsyncSession = Depends(get_session)):
    user = await get_user(session, current_user_id(request))
    created_at = now()
    response_due, resolution_due = sla_deadlines(payload.priority, created_at)

    ticket = SupportTicket(
        ticket_number=await generate_ticket_number(session, created_at),
        user_id=user.id, user_name=user.name, user_email=user.email,
        subject=payload.subject, description=payload.description, category=payload.category,
        priority=payload.priority, related_order_number=payload.related_order_number,
        sla_response_due=response_due, sla_resolution_due=resolution_due,
        last_activity_at=created_at, created_at=created_at, updated_at=created_at,
    )
    session.add(ticket)
    await session.commit()

    logger.info("support.ticket.created", extra={"ticket_number": ticket.ticket_number,
                                                 "priority": ticket.priority.value, "category": ticket.category.value})
    log_user_activity(user.id, "TICKET_CREATED", {"ticket_number": ticket.ticket_number})
    return success_response({"ticket": await _user_ticket_detail(session, ticket)}, status.HTTP_201_CREATED)


@support_router.get("/tickets")
async def get_my_tickets(request: Request, ticket_status: Optional[TicketStatus] = Query(None, alias="status"),
                         category: Optional[TicketCategory] = Query(None),
                         params: PageParams = Depends(page_params), session: AsyncSession = Depends(get_session)):
    stmt = user_tickets_stmt(current_user_id(request), ticket_status, category)
    rows, meta = await paginate(session, stmt, params)
    return success_response(page_payload([ticket_out(r[0]) for r in rows], meta))


@support_router.get("/tickets/stats")
async def get_my_ticket_stats(request: Request, session: AsyncSession = Depends(get_session)):
    counts = await status_counts(session, current_user_id(request))
    open_count = sum(counts[s.value] for s in (TicketStatus.OPEN, TicketStatus.IN_PROGRESS, TicketStatus.PENDING_USER))
    return success_response({"total": sum(counts.values()), "open": open_count, "by_status": counts})


@support_router.get("/tickets/{ticket_number}")
async def get_my_ticket(request: Request, ticket_number: str, session: AsyncSession = Depends(get_session)):
    ticket = await get_user_ticket(session, current_user_id(request), ticket_number)
    return success_response({"ticket": await _user_ticket_detail(session, ticket)})


@support_router.post("/tickets/{ticket_number}/messages", status_code=status.HTTP_201_CREATED)
async def reply_to_ticket(request: Request, ticket_number: str, payload: TicketMessageIn,
                          session: AsyncSession = Depends(get_session)):
    user_id = current_user_id(request)
    ticket = await get_user_ticket(session, user_id, ticket_number)
    user_reply(session, ticket, user_id, payload.message)
    await session.commit()
    return success_response({"ticket": await _user_ticket_detail(session, ticket)}, status.HTTP_201_CREATED)


@support_router.post("/tickets/{ticket_number}/close")
async def close_my_ticket(request: Request, ticket_number: str, session: AsyncSession = Depends(get_session)):
    user_id = current_user_id(request)
    ticket = await get_user_ticket(session, user_id, ticket_number)
    change_status(ticket, TicketStatus.CLOSED)
    add_message(session, ticket, user_id, "user", "Ticket closed by user", TicketMessageType.STATUS_UPDATE)
    await session.commit()

    log_user_activity(user_id, "TICKET_CLOSED", {"ticket_number": ticket.ticket_number})
    return success_response({"ticket": await _user_ticket_detail(session, ticket)})


@support_router.post("/tickets/{ticket_number}/rating")
async def rate_ticket(request: Request, ticket_number: str, payload: TicketRatingIn,
                      session: AsyncSession = Depends(get_session)):
    ticket = await get_user_ticket(session, current_user_id(request), ticket_number)
    if ticket.status not in RATEABLE_STATUSES:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST,
                            detail="Only resolved or closed tickets can be rated")

    ticket.satisfaction_rating = payload.rating
    ticket.satisfaction_feedback = payload.feedback
    await session.commit()
    return success_response({"ticket": ticket_out(ticket)})


@support_admin_router.get("/tickets")
async def admin_list_tickets(ticket_status: Optional[TicketStatus] = Query(None, alias="status"),
                             priority: Optional[TicketPriority] = Query(None),
                             category: Optional[TicketCategory] = Query(None),
                             assigned: Optional[bool] = Query(None), assigned_to: Optional[str] = Query(None),
                             overdue: bool = Query(False),
                             params: PageParams = Depends(page_params), session: AsyncSession = Depends(get_session)):
    assignee_id = (await get_user_by_pid(session, assigned_to)).id if assigned_to else None
    stmt = admin_tickets_stmt(ticket_status, priority, category, assigned, assignee_id, overdue)
    rows, meta = await paginate(session, stmt, params)
    return success_response(page_payload([ticket_out(r[0], admin_view=True) for r in rows], meta))


@support_admin_router.get("/tickets/overdue")
async def admin_overdue_tickets(session: AsyncSession = Depends(get_session)):
    tickets = (await session.execute(
        select(SupportTicket).where(overdue_clause()).order_by(SupportTicket.sla_resolution_due))).scalars().all()

    newly_breached = 0
    for ticket in tickets:
        if not ticket.is_sla_breached:
            ticket.is_sla_breached = True
            newly_breached += 1
    await session.commit()

    if newly_breached:
        logger.warning("support.sla.breached", extra={"tickets": newly_breached})
    return success_response({"items": [ticket_out(t, admin_view=True) for t in tickets],
                             "count": len(tickets), "newly_breached": newly_breached})


@support_admin_router.get("/tickets/{ticket_id}")
async def admin_get_ticket(ticket_id: str, session: AsyncSession = Depends(get_session)):
    ticket = await get_ticket_by_pid(session, ticket_id)
    return success_response({"ticket": await _admin_ticket_detail(session, ticket)})


@support_admin_router.patch("/tickets/{ticket_id}/assign")
async def admin_assign_ticket(request: Request, ticket_id: str, payload: TicketAssignIn,
                              session: AsyncSession = Depends(get_session)):
    ticket = await get_ticket_by_pid(session, ticket_id)
    assignee = await get_user_by_pid(session, payload.admin_id)
    if not set(await get_user_role_names(session, assignee.id)) & ADMIN_ROLE_NAMES:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Tickets can only be assigned to admins")

    previous = ticket.assigned_to_id
    ticket.assigned_to_id = assignee.id
    add_message(session, ticket, request.state.user_identifier, "admin",
                f"Ticket assigned to {assignee.name or assignee.email}", TicketMessageType.ASSIGNMENT,
                is_internal=True)
    await session.commit()

    log_admin_action(request, "TICKET_ASSIGN", "ticket", ticket.public_id,
                     {"assigned_to": {"old": previous, "new": assignee.id}})
    return success_response({"ticket": await _admin_ticket_detail(session, ticket)})


@support_admin_router.patch("/tickets/{ticket_id}/status")
async def admin_change_ticket_status(request: Request, ticket_id: str, payload: TicketStatusIn,
                                     session: AsyncSession = Depends(get_session)):
    ticket = await get_ticket_by_pid(session, ticket_id)
    previous = change_status(ticket, payload.status, payload.resolution_note, payload.resolution_type)

    message_type = (TicketMessageType.RESOLUTION if payload.status == TicketStatus.RESOLVED
                    else TicketMessageType.STATUS_UPDATE)
    note = f"Status changed from {previous.value} to {payload.status.value}"
    if payload.resolution_note:
        note = f"{note}: {payload.resolution_note}"
    add_message(session, ticket, request.state.user_identifier, "admin", note, message_type)
    create_notification(session, ticket.user_id, f"Ticket {ticket.ticket_number} updated",
                        f"Your ticket is now {payload.status.value.replace('_', ' ').lower()}",
                        notification_type=NotificationType.INFO, related_entity_type="ticket",
                        related_entity_id=ticket.ticket_number, sender_type=ActorType.ADMIN)
    await session.commit()

    log_admin_action(request, "TICKET_STATUS", "ticket", ticket.public_id,
                     {"status": {"old": previous.value, "new": payload.status.value}})
    return success_response({"ticket": await _admin_ticket_detail(session, ticket)})


@support_admin_router.post("/tickets/{ticket_id}/messages", status_code=status.HTTP_201_CREATED)
async def admin_reply_to_ticket(request: Request, ticket_id: str, payload: AdminTicketMessageIn,
                                session: AsyncSession = Depends(get_session)):
    ticket = await get_ticket_by_pid(session, ticket_id)
    admin_reply(session, ticket, request.state.user_identifier, payload.message, payload.is_internal)
    await session.commit()

    log_admin_action(request, "TICKET_REPLY", "ticket", ticket.public_id, {"is_internal": payload.is_internal})
    return success_response({"ticket": await _admin_ticket_detail(session, ticket)}, status.HTTP_201_CREATED)


@support_admin_router.get("/analytics")
async def admin_ticket_analytics(session: AsyncSession = Depends(get_session)):
    return success_response({"analytics": await ticket_analytics(session)})
