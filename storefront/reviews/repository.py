from typing import Optional
from fastapi import HTTPException, status
from sqlalchemy import select
from storefront.common.utils import parse_uuid
from storefront.schema.full_schema import Product, ProductReview, ProductVariant, ReviewStatus


async def get_review_by_pid(session, review_pid) -> ProductReview:
    stmt = select(ProductReview).where(ProductReview.public_id == parse_uuid(review_pid, "Review"))
    review = (await session.execute(stmt)).scalar_one_or_none()
    if not review:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Review not found")
    return review


async def existing_review(session, user_id: int, variant_id: int) -> Optional[int]:
    stmt = select(ProductReview.id).where(ProductReview.user_id == user_id, ProductReview.variant_id == variant_id)
    return (await session.execute(stmt)).scalar_one_or_none()


def _with_variant(stmt):
    return (stmt.add_columns(ProductVariant.public_id, ProductVariant.sku_code, Product.name)
            .join(ProductVariant, ProductVariant.id == ProductReview.variant_id)
            .join(Product, Product.id == ProductVariant.product_id))


def variant_reviews_stmt(variant_id: int, sort: str = "newest"):
    stmt = select(ProductReview).where(ProductReview.variant_id == variant_id,
                                       ProductReview.status == ReviewStatus.APPROVED)
    if sort == "rating":
        stmt = stmt.order_by(ProductReview.rating.desc(), ProductReview.created_at.desc())
    elif sort == "helpful":
        stmt = stmt.order_by(ProductReview.helpful_votes.desc(), ProductReview.created_at.desc())
    else:
        stmt = stmt.order_by(ProductReview.created_at.desc(), ProductReview.id.desc())
    return stmt


def my_reviews_stmt(user_id: int):
    stmt = select(ProductReview).where(ProductReview.user_id == user_id)
    return _with_variant(stmt).order_by(ProductReview.created_at.desc(), ProductReview.id.desc())


def admin_reviews_stmt(review_status: Optional[ReviewStatus] = None, variant_id: Optional[int] = None,
                       rating: Optional[int] = None):
    stmt = select(ProductReview)
    if review_status is not None:
        stmt = stmt.where(ProductReview.status == review_status)
    if variant_id is not None:
        stmt = stmt.where(ProductReview.variant_id == variant_id)
    if rating is not None:
        stmt = stmt.where(ProductReview.rating == rating)
    return _with_variant(stmt).order_by(ProductReview.created_at.desc(), ProductReview.id.desc())
