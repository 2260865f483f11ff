from storefront.common.logging_setup import get_logger
from storefront.schema.full_schema import TicketPriority, TicketStatus

logger = get_logger("storefront.support")

TICKET_PREFIX = "TKT"

# hours after creation
SLA_RESPONSE_HOURS = {TicketPriority.URGENT: 1, TicketPriority.HIGH: 4}
SLA_RESOLUTION_HOURS = {TicketPriority.URGENT: 4, TicketPriority.HIGH: 24}
DEFAULT_RESPONSE_HOURS = 24
DEFAULT_RESOLUTION_HOURS = 72

ALLOWED_TRANSITIONS = {
    TicketStatus.OPEN: {TicketStatus.IN_PROGRESS, TicketStatus.CANCELLED, TicketStatus.CLOSED},
    TicketStatus.IN_PROGRESS: {TicketStatus.RESOLVED, TicketStatus.PENDING_USER, TicketStatus.CLOSED},
    TicketStatus.PENDING_USER: {TicketStatus.IN_PROGRESS, TicketStatus.RESOLVED, TicketStatus.CLOSED},
    TicketStatus.RESOLVED: {TicketStatus.CLOSED, TicketStatus.IN_PROGRESS},
}

ACTIVE_STATUSES = (TicketStatus.OPEN, TicketStatus.IN_PROGRESS, TicketStatus.PENDING_USER)
REOPENING_STATUSES = (TicketStatus.RESOLVED, TicketStatus.PENDING_USER)
RATEABLE_STATUSES = (TicketStatus.RESOLVED, TicketStatus.CLOSED)
