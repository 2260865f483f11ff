from typing import Optional
from fastapi import HTTPException, status
from sqlalchemy import func, select
from storefront.common.utils import now
from storefront.schema.full_schema import (OrderItem, OrderStatus, Orders, Product, ProductReview, ProductVariant,
                                           ReviewStatus)
from storefront.reviews.constants import CAPS_MIN_LETTERS, CAPS_RATIO_LIMIT, SUSPICIOUS_WORDS, logger


def needs_moderation(*texts: Optional[str]) -> bool:
    """Suspicious phrases or mostly upper case text."""
    content = " ".join(t for t in texts if t)
    if not content:
        return False
    lowered = content.lower()
    if any(word in lowered for word in SUSPICIOUS_WORDS):
        return True
    letters = [c for c in content if c.isalpha()]
    if len(letters) >= CAPS_MIN_LETTERS:
        upper = sum(1 for c in letters if c.isupper())
        if upper / len(letters) > CAPS_RATIO_LIMIT:
            return True
    return False


async def is_verified_buyer(session, user_id: int, variant_id: int) -> bool:
    stmt = (select(OrderItem.id)
            .join(Orders, Orders.id == OrderItem.order_id)
            .where(Orders.user_id == user_id, Orders.order_status == OrderStatus.DELIVERED,
                   OrderItem.variant_id == variant_id)
            .limit(1))
    return (await session.execute(stmt)).scalar_one_or_none() is not None


async def recalculate_ratings(session, variant_id: int) -> None:
    """Refresh variant and product aggregates from approved reviews."""
    await session.flush()
    rows = (await session.execute(
        select(ProductReview.rating, func.count(ProductReview.id))
        .where(ProductReview.variant_id == variant_id, ProductReview.status == ReviewStatus.APPROVED)
        .group_by(ProductReview.rating))).all()

    distribution = {str(star): 0 for star in range(1, 6)}
    total = points = 0
    for rating, count in rows:
        distribution[str(rating)] = count
        total += count
        points += rating * count

    variant = (await session.execute(select(ProductVariant).where(ProductVariant.id == variant_id))).scalar_one()
    variant.rating_distribution = distribution
    variant.reviews_count = total
    variant.average_rating = round(points / total, 1) if total else 0.0

    product_row = (await session.execute(
        select(func.count(ProductReview.id), func.coalesce(func.sum(ProductReview.rating), 0))
        .join(ProductVariant, ProductVariant.id == ProductReview.variant_id)
        .where(ProductVariant.product_id == variant.product_id, ProductVariant.is_active.is_(True),
               ProductReview.status == ReviewStatus.APPROVED))).first()
    product = (await session.execute(select(Product).where(Product.id == variant.product_id))).scalar_one()
    product.reviews_count = product_row[0]
    product.average_rating = round(int(product_row[1]) / product_row[0], 1) if product_row[0] else 0.0

    logger.info("reviews.ratings.recalculated", extra={"variant_id": variant_id, "reviews": total})


def ensure_owner(review: ProductReview, user_id: int) -> None:
    if review.user_id != user_id:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Not your review")


def set_status(review: ProductReview, new_status: ReviewStatus, note: Optional[str] = None) -> bool:
    """Returns True when the change moves the review in or out of APPROVED."""
    was_approved = review.status == ReviewStatus.APPROVED
    review.status = new_status
    if note is not None:
        review.moderation_note = note
    review.moderated_at = now()
    review.updated_at = now()
    return was_approved != (new_status == ReviewStatus.APPROVED)
