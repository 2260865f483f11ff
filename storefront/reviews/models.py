from typing import List, Optional
from pydantic import BaseModel, Field
from storefront.reviews.constants import MAX_REVIEW_IMAGES
from storefront.schema.full_schema import ReviewStatus


class ReviewCreateIn(BaseModel):
    product_variant_id: str
    rating: int = Field(..., ge=1, le=5)
    title: Optional[str] = Field(None, max_length=100)
    review_text: Optional[str] = Field(None, max_length=2000)
    image_urls: List[str] = Field(default_factory=list, max_length=MAX_REVIEW_IMAGES)

    model_config = {"extra": "forbid"}


class ReviewUpdateIn(BaseModel):
    rating: Optional[int] = Field(None, ge=1, le=5)
    title: Optional[str] = Field(None, max_length=100)
    review_text: Optional[str] = Field(None, max_length=2000)
    image_urls: Optional[List[str]] = Field(None, max_length=MAX_REVIEW_IMAGES)

    model_config = {"extra": "forbid"}


class ReviewVoteIn(BaseModel):
    helpful: bool

    model_config = {"extra": "forbid"}


class ReviewReportIn(BaseModel):
    reason: Optional[str] = Field(None, max_length=255)

    model_config = {"extra": "forbid"}


class ReviewModerationIn(BaseModel):
    status: ReviewStatus
    moderation_note: Optional[str] = Field(None, max_length=500)

    model_config = {"extra": "forbid"}
