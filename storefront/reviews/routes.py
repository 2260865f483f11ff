from typing import Optional
from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from storefront.audit.loggers import log_admin_action, log_user_activity
from storefront.auth.dependencies import require_permissions
from storefront.common.pagination import PageParams, page_params, page_payload, paginate
from storefront.common.utils import success_response
from storefront.db.dependencies import get_session
from storefront.products.repository import get_variant_by_pid
from storefront.reviews.models import ReviewCreateIn, ReviewModerationIn, ReviewReportIn, ReviewUpdateIn, ReviewVoteIn
from storefront.reviews.repository import (admin_reviews_stmt, existing_review, get_review_by_pid, my_reviews_stmt,
                                           variant_reviews_stmt)
from storefront.reviews.services import (ensure_owner, is_verified_buyer, needs_moderation, recalculate_ratings,
                                         set_status)
from storefront.reviews.utils import review_out
from storefront.schema.full_schema import ProductReview, ReviewReport, ReviewStatus, ReviewVote
from storefront.user.dependencies import current_user_id
from storefront.user.repository import get_user
from storefront.reviews.constants import REPORTS_TO_FLAG, REVIEW_SORTS, logger

reviews_router = APIRouter()
variant_reviews_router = APIRouter()
reviews_admin_router = APIRouter(dependencies=[require_permissions("review:moderate")])


@reviews_router.post("", status_code=status.HTTP_201_CREATED)
async def create_review(request: Request, payload: ReviewCreateIn, session: AsyncSession = Depends(get_session)):
    user = await get_user(session, current_user_id(request))
    variant = await get_variant_by_pid(session, payload.product_variant_id, active_only=True)

    if await existing_review(session, user.id, variant.id):
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="You have already reviewed this product")

    flagged = needs_moderation(payload.title, payload.review_text)
    review = ProductReview(
        user_id=user.id, variant_id=variant.id, rating=payload.rating, title=payload.title,
        review_text=payload.review_text, image_urls=payload.image_urls,
        is_verified_buyer=await is_verified_buyer(session, user.id, variant.id),
        status=ReviewStatus.FLAGGED if flagged else ReviewStatus.PENDING_APPROVAL,
        reviewer_display_name=user.name or user.email.split("@")[0],
    )
    session.add(review)
    try:
        await session.commit()
    except IntegrityError:
        await session.rollback()
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="You have already reviewed this product")

    logger.info("review.create.success", extra={"review_public_id": str(review.public_id),
                                                "status": review.status.value, "flagged": flagged})
    log_user_activity(user.id, "REVIEW_CREATED", {"review_public_id": str(review.public_id)})
    return success_response({"review": review_out(review, variant.public_id, variant.sku_code)},
                            status.HTTP_201_CREATED)


@reviews_router.get("/me")
async def get_my_reviews(request: Request, params: PageParams = Depends(page_params),
                         session: AsyncSession = Depends(get_session)):
    rows, meta = await paginate(session, my_reviews_stmt(current_user_id(request)), params)
    return success_response(page_payload([review_out(*r) for r in rows], meta))


@reviews_router.patch("/{review_id}")
async def update_review(request: Request, review_id: str, payload: ReviewUpdateIn,
                        session: AsyncSession = Depends(get_session)):
    user_id = current_user_id(request)
    review = await get_review_by_pid(session, review_id)
    ensure_owner(review, user_id)

    updates = payload.model_dump(exclude_unset=True, exclude_none=True)
    if not updates:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="No fields to update")

    for key, value in updates.items():
        setattr(review, key, value)

    was_approved = review.status == ReviewStatus.APPROVED
    flagged = needs_moderation(review.title, review.review_text)
    set_status(review, ReviewStatus.FLAGGED if flagged else ReviewStatus.PENDING_APPROVAL)
    review.moderated_at = None
    if was_approved:
        await recalculate_ratings(session, review.variant_id)
    await session.commit()

    logger.info("review.update.success", extra={"review_public_id": str(review.public_id)})
    return success_response({"review": review_out(review)})


async def _remove_review(session, review: ProductReview) -> None:
    was_approved = review.status == ReviewStatus.APPROVED
    variant_id = review.variant_id
    await session.execute(delete(ReviewVote).where(ReviewVote.review_id == review.id))
    await session.execute(delete(ReviewReport).where(ReviewReport.review_id == review.id))
    await session.delete(review)
    if was_approved:
        await recalculate_ratings(session, variant_id)


@reviews_router.delete("/{review_id}")
async def delete_review(request: Request, review_id: str, session: AsyncSession = Depends(get_session)):
    user_id = current_user_id(request)
    review = await get_review_by_pid(session, review_id)
    ensure_owner(review, user_id)

    await _remove_review(session, review)
    await session.commit()

    log_user_activity(user_id, "REVIEW_DELETED", {"review_public_id": review_id})
    return success_response({"message": "Review deleted"})


@reviews_router.post("/{review_id}/vote")
async def vote_review(request: Request, review_id: str, payload: ReviewVoteIn,
                      session: AsyncSession = Depends(get_session)):
    user_id = current_user_id(request)
    review = await get_review_by_pid(session, review_id)
    if review.status != ReviewStatus.APPROVED:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Review not found")
    if review.user_id == user_id:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="You cannot vote on your own review")

    vote = (await session.execute(
        select(ReviewVote).where(ReviewVote.review_id == review.id, ReviewVote.user_id == user_id))).scalar_one_or_none()
    if vote is not None and vote.is_helpful == payload.helpful:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="You have already voted on this review")

    if vote is None:
        session.add(ReviewVote(review_id=review.id, user_id=user_id, is_helpful=payload.helpful))
    else:
        # switching sides
        vote.is_helpful = payload.helpful
        if payload.helpful:
            review.unhelpful_votes = max(0, review.unhelpful_votes - 1)
        else:
            review.helpful_votes = max(0, review.helpful_votes - 1)

    if payload.helpful:
        review.helpful_votes += 1
    else:
        review.unhelpful_votes += 1
    await session.commit()

    return success_response({"helpful_votes": review.helpful_votes, "unhelpful_votes": review.unhelpful_votes})


@reviews_router.post("/{review_id}/report")
async def report_review(request: Request, review_id: str, payload: ReviewReportIn,
                        session: AsyncSession = Depends(get_session)):
    user_id = current_user_id(request)
    review = await get_review_by_pid(session, review_id)
    if review.user_id == user_id:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="You cannot report your own review")

    already = (await session.execute(
        select(ReviewReport.id).where(ReviewReport.review_id == review.id,
                                      ReviewReport.user_id == user_id))).scalar_one_or_none()
    if already is not None:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="You have already reported this review")

    session.add(ReviewReport(review_id=review.id, user_id=user_id, reason=payload.reason))
    review.reported_count += 1

    if review.reported_count >= REPORTS_TO_FLAG and review.status != ReviewStatus.FLAGGED:
        if set_status(review, ReviewStatus.FLAGGED, "Flagged after user reports"):
            await recalculate_ratings(session, review.variant_id)
        logger.warning("review.flagged.reports", extra={"review_public_id": str(review.public_id),
                                                        "reported_count": review.reported_count})
    await session.commit()

    return success_response({"message": "Review reported", "reported_count": review.reported_count})


@variant_reviews_router.get("/{variant_id}/reviews")
async def get_variant_reviews(variant_id: str, sort: str = Query("newest"),
                              params: PageParams = Depends(page_params), session: AsyncSession = Depends(get_session)):
    if sort not in REVIEW_SORTS:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST,
                            detail=f"sort must be one of {', '.join(REVIEW_SORTS)}")
    variant = await get_variant_by_pid(session, variant_id, active_only=True)
    rows, meta = await paginate(session, variant_reviews_stmt(variant.id, sort), params)
    return success_response(page_payload([review_out(r[0], public=True) for r in rows], meta))


@variant_reviews_router.get("/{variant_id}/rating-summary")
async def get_rating_summary(variant_id: str, session: AsyncSession = Depends(get_session)):
    variant = await get_variant_by_pid(session, variant_id, active_only=True)
    distribution = {str(star): 0 for star in range(1, 6)}
    distribution.update(variant.rating_distribution or {})
    return success_response({
        "product_variant_id": variant.public_id,
        "average_rating": variant.average_rating,
        "reviews_count": variant.reviews_count,
        "rating_distribution": distribution,
    })


@reviews_admin_router.get("")
async def admin_list_reviews(review_status: Optional[ReviewStatus] = Query(None, alias="status"),
                             variant_id: Optional[str] = Query(None), rating: Optional[int] = Query(None, ge=1, le=5),
                             params: PageParams = Depends(page_params), session: AsyncSession = Depends(get_session)):
    variant_pk = None
    if variant_id:
        variant_pk = (await get_variant_by_pid(session, variant_id, active_only=False)).id
    rows, meta = await paginate(session, admin_reviews_stmt(review_status, variant_pk, rating), params)
    return success_response(page_payload([review_out(*r) for r in rows], meta))


@reviews_admin_router.patch("/{review_id}/status")
async def moderate_review(request: Request, review_id: str, payload: ReviewModerationIn,
                          session: AsyncSession = Depends(get_session)):
    review = await get_review_by_pid(session, review_id)
    previous = review.status

    if set_status(review, payload.status, payload.moderation_note):
        await recalculate_ratings(session, review.variant_id)
    await session.commit()

    log_admin_action(request, "REVIEW_MODERATE", "review", review.public_id,
                     {"status": {"old": previous.value, "new": payload.status.value}})
    return success_response({"review": review_out(review)})


@reviews_admin_router.delete("/{review_id}")
async def admin_delete_review(request: Request, review_id: str, session: AsyncSession = Depends(get_session)):
    review = await get_review_by_pid(session, review_id)
    await _remove_review(session, review)
    await session.commit()

    log_admin_action(request, "REVIEW_DELETE", "review", review_id)
    return success_response({"message": "Review deleted"})
