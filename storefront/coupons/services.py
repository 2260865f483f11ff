import secrets
from datetime import datetime, timedelta
from typing import Iterable, List, Optional, Tuple
from fastapi import HTTPException, status
from sqlalchemy import func, or_, select, update
from storefront.common.utils import as_utc, now
from storefront.schema.full_schema import (CouponCampaign, DiscountType, OrderStatus, Orders, UserCoupon, Users)
from storefront.coupons.constants import CODE_GENERATION_ATTEMPTS, NEW_USER_MAX_AGE_DAYS, logger


def campaign_is_valid(campaign: CouponCampaign, at: Optional[datetime] = None) -> bool:
    at = at or now()
    if not campaign.is_active:
        return False
    if not as_utc(campaign.valid_from) <= at <= as_utc(campaign.valid_until):
        return False
    if campaign.max_global_usage is not None and campaign.current_global_usage >= campaign.max_global_usage:
        return False
    return True


def calculate_discount(campaign: CouponCampaign, subtotal: int, shipping: int = 0) -> int:
    """Discount in paise for a cart or order subtotal."""
    if subtotal < campaign.min_purchase_amount:
        return 0

    if campaign.discount_type == DiscountType.PERCENTAGE:
        discount = subtotal * campaign.discount_value // 100
        if campaign.max_coupon_discount is not None:
            discount = min(discount, campaign.max_coupon_discount)
    elif campaign.discount_type == DiscountType.AMOUNT:
        discount = min(campaign.discount_value, subtotal)
    else:
        discount = shipping
    return max(0, discount)


def usage_cap(campaign: CouponCampaign) -> int:
    """Uses one user gets out of a coupon. Unique-per-user campaigns allow a single use."""
    return 1 if campaign.is_unique_per_user else campaign.max_usage_per_user


def coupon_can_be_used(user_coupon: UserCoupon, campaign: CouponCampaign,
                       at: Optional[datetime] = None) -> Tuple[bool, Optional[str]]:
    at = at or now()
    if not user_coupon.is_active:
        return False, "Coupon is not active"
    if user_coupon.is_redeemed:
        return False, "Coupon has already been redeemed"
    if as_utc(user_coupon.expires_at) < at:
        return False, "Coupon has expired"
    if not campaign_is_valid(campaign, at):
        return False, "Coupon campaign is not valid"
    if user_coupon.current_usage_count >= usage_cap(campaign):
        return False, "Coupon usage limit reached"
    return True, None


def check_applicability(campaign: CouponCampaign, lines: Iterable[dict]) -> bool:
    """lines carry variant_id and category_id of each cart or order line."""
    variant_ids = set(campaign.applicable_variant_ids or [])
    category_ids = set(campaign.applicable_category_ids or [])
    if not variant_ids and not category_ids:
        return True
    for line in lines:
        if line["variant_id"] in variant_ids or line.get("category_id") in category_ids:
            return True
    return False


async def check_eligibility(session, campaign: CouponCampaign, user: Users) -> Tuple[bool, Optional[str]]:
    for criterion in campaign.eligibility_criteria or ["NONE"]:
        if criterion in ("NONE", "ALL_USERS"):
            continue
        if criterion == "NEW_USER":
            if now() - as_utc(user.created_at) > timedelta(days=NEW_USER_MAX_AGE_DAYS):
                return False, "Coupon is only for new users"
        elif criterion == "FIRST_ORDER":
            stmt = (select(func.count(Orders.id))
                    .where(Orders.user_id == user.id, Orders.order_status != OrderStatus.CANCELLED))
            if (await session.execute(stmt)).scalar_one() > 0:
                return False, "Coupon is only valid on a first order"
    return True, None


async def get_user_coupon(session, user_id: int, code: str):
    stmt = (select(UserCoupon, CouponCampaign)
            .join(CouponCampaign, CouponCampaign.id == UserCoupon.campaign_id)
            .where(UserCoupon.coupon_code == code.strip().upper(), UserCoupon.user_id == user_id))
    row = (await session.execute(stmt)).first()
    if not row:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Coupon not found")
    return row[0], row[1]


async def validate_coupon_for_lines(session, user: Users, code: str, lines: List[dict],
                                    subtotal: int, shipping: int = 0):
    """Full check of a user's coupon against cart lines. Returns (coupon, campaign, discount)."""
    try:
        user_coupon, campaign = await get_user_coupon(session, user.id, code)
    except HTTPException:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid coupon code")

    usable, reason = coupon_can_be_used(user_coupon, campaign)
    if not usable:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=reason)

    eligible, reason = await check_eligibility(session, campaign, user)
    if not eligible:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=reason)

    if not check_applicability(campaign, lines):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Coupon does not apply to these items")

    if subtotal < campaign.min_purchase_amount:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST,
                            detail=f"Minimum purchase of {campaign.min_purchase_amount} required")

    return user_coupon, campaign, calculate_discount(campaign, subtotal, shipping)


async def redeem_coupon(session, user_coupon: UserCoupon, campaign: CouponCampaign) -> None:
    stmt = (update(CouponCampaign)
            .where(CouponCampaign.id == campaign.id,
                   or_(CouponCampaign.max_global_usage.is_(None),
                       CouponCampaign.current_global_usage < CouponCampaign.max_global_usage))
            .values(current_global_usage=CouponCampaign.current_global_usage + 1))
    res = await session.execute(stmt)
    if res.rowcount == 0:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Coupon usage limit reached")

    user_coupon.current_usage_count += 1
    if user_coupon.current_usage_count >= usage_cap(campaign):
        user_coupon.is_redeemed = True
        user_coupon.redeemed_at = now()
    user_coupon.updated_at = now()
    logger.info("coupon.redeemed", extra={"coupon_id": user_coupon.id, "campaign_id": campaign.id})


async def reverse_coupon(session, user_id: int, code: str) -> bool:
    row = (await session.execute(
        select(UserCoupon).where(UserCoupon.coupon_code == code, UserCoupon.user_id == user_id))).scalar_one_or_none()
    if row is None:
        logger.warning("coupon.reverse.missing", extra={"user_id": user_id})
        return False

    row.current_usage_count = max(0, row.current_usage_count - 1)
    row.is_redeemed = False
    row.redeemed_at = None
    row.updated_at = now()

    await session.execute(update(CouponCampaign)
                          .where(CouponCampaign.id == row.campaign_id, CouponCampaign.current_global_usage > 0)
                          .values(current_global_usage=CouponCampaign.current_global_usage - 1))
    logger.info("coupon.reversed", extra={"coupon_id": row.id})
    return True


async def generate_coupon_code(session, prefix: str) -> str:
    for _ in range(CODE_GENERATION_ATTEMPTS):
        code = f"{prefix}-{secrets.token_hex(4).upper()}"
        taken = (await session.execute(select(UserCoupon.id).where(UserCoupon.coupon_code == code))).scalar_one_or_none()
        if taken is None:
            return code
    raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Could not generate a unique coupon code")


async def assign_coupons(session, campaign: CouponCampaign, users: List[Users],
                         expires_at: Optional[datetime] = None):
    """Issue one coupon per user. Returns (created, skipped_user_ids)."""
    expires_at = expires_at or as_utc(campaign.valid_until)
    holders = set()
    if campaign.is_unique_per_user:
        holders = set((await session.execute(
            select(UserCoupon.user_id).where(UserCoupon.campaign_id == campaign.id,
                                             UserCoupon.user_id.in_([u.id for u in users])))).scalars().all())

    created, skipped = [], []
    for user in users:
        if user.id in holders:
            skipped.append(user.public_id)
            continue
        coupon = UserCoupon(campaign_id=campaign.id, user_id=user.id,
                            coupon_code=await generate_coupon_code(session, campaign.code_prefix),
                            expires_at=expires_at)
        session.add(coupon)
        # flush so the next code check sees this one
        await session.flush()
        if campaign.is_unique_per_user:
            holders.add(user.id)
        created.append((coupon, user.public_id))
    return created, skipped
