from typing import Optional
from pydantic import BaseModel, Field
from storefront.schema.full_schema import ResolutionType, TicketCategory, TicketPriority, TicketStatus


class TicketCreateIn(BaseModel):
    subject: str = Field(..., min_length=3, max_length=200)
    description: str = Field(..., min_length=10, max_length=5000)
    category: TicketCategory = TicketCategory.OTHER
    priority: TicketPriority = TicketPriority.MEDIUM
    related_order_number: Optional[str] = Field(None, max_length=32)

    model_config = {"extra": "forbid"}


class TicketMessageIn(BaseModel):
    message: str = Field(..., min_length=1, max_length=5000)

    model_config = {"extra": "forbid"}


class AdminTicketMessageIn(TicketMessageIn):
    is_internal: bool = False


class TicketAssignIn(BaseModel):
    admin_id: str

    model_config = {"extra": "forbid"}


class TicketStatusIn(BaseModel):
    status: TicketStatus
    resolution_note: Optional[str] = Field(None, max_length=2000)
    resolution_type: Optional[ResolutionType] = None

    model_config = {"extra": "forbid"}


class TicketRatingIn(BaseModel):
    rating: int = Field(..., ge=1, le=5)
    feedback: Optional[str] = Field(None, max_length=1000)

    model_config = {"extra": "forbid"}
