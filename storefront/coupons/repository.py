from typing import Optional
from fastapi import HTTPException, status
from sqlalchemy import func, select
from storefront.catalog.repository import public_ids_by_ids
from storefront.common.utils import now, parse_uuid
from storefront.schema.full_schema import Category, CouponCampaign, ProductVariant, UserCoupon, Users


async def get_campaign_by_pid(session, campaign_pid) -> CouponCampaign:
    pid = parse_uuid(campaign_pid, "Coupon campaign")
    campaign = (await session.execute(
        select(CouponCampaign).where(CouponCampaign.public_id == pid))).scalar_one_or_none()
    if not campaign:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Coupon campaign not found")
    return campaign


async def ids_for_public_ids(session, model, pids, label: str):
    if not pids:
        return []
    parsed = [parse_uuid(p, label) for p in pids]
    rows = (await session.execute(select(model.id, model.public_id).where(model.public_id.in_(parsed)))).all()
    if len(rows) != len(set(parsed)):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=f"Unknown {label} ids")
    return sorted(r[0] for r in rows)


async def campaign_refs_to_ids(session, updates: dict) -> dict:
    if updates.get("applicable_category_ids") is not None:
        updates["applicable_category_ids"] = await ids_for_public_ids(
            session, Category, updates["applicable_category_ids"], "category")
    if updates.get("applicable_variant_ids") is not None:
        updates["applicable_variant_ids"] = await ids_for_public_ids(
            session, ProductVariant, updates["applicable_variant_ids"], "product variant")
    return updates


async def campaign_refs_to_pids(session, campaign: CouponCampaign) -> dict:
    cats = await public_ids_by_ids(session, Category, campaign.applicable_category_ids or [])
    variants = await public_ids_by_ids(session, ProductVariant, campaign.applicable_variant_ids or [])
    return {
        "applicable_category_ids": [cats[i] for i in campaign.applicable_category_ids or [] if i in cats],
        "applicable_variant_ids": [variants[i] for i in campaign.applicable_variant_ids or [] if i in variants],
    }


def campaign_list_stmt(include_inactive: bool, search: Optional[str] = None):
    stmt = select(CouponCampaign)
    if not include_inactive:
        stmt = stmt.where(CouponCampaign.is_active.is_(True))
    if search:
        stmt = stmt.where(CouponCampaign.name.ilike(f"%{search.strip()}%"))
    return stmt.order_by(CouponCampaign.created_at.desc(), CouponCampaign.id.desc())


def my_coupons_stmt(user_id: int):
    at = now()
    return (select(UserCoupon, CouponCampaign)
            .join(CouponCampaign, CouponCampaign.id == UserCoupon.campaign_id)
            .where(UserCoupon.user_id == user_id,
                   UserCoupon.is_active.is_(True),
                   UserCoupon.is_redeemed.is_(False),
                   UserCoupon.expires_at >= at,
                   CouponCampaign.is_active.is_(True),
                   CouponCampaign.valid_from <= at,
                   CouponCampaign.valid_until >= at)
            .order_by(UserCoupon.expires_at.asc(), UserCoupon.id.asc()))


def user_coupons_stmt(campaign_id: Optional[int] = None, user_id: Optional[int] = None,
                      is_redeemed: Optional[bool] = None):
    stmt = (select(UserCoupon, CouponCampaign.public_id, CouponCampaign.name, Users.public_id, Users.email)
            .join(CouponCampaign, CouponCampaign.id == UserCoupon.campaign_id)
            .join(Users, Users.id == UserCoupon.user_id))
    if campaign_id is not None:
        stmt = stmt.where(UserCoupon.campaign_id == campaign_id)
    if user_id is not None:
        stmt = stmt.where(UserCoupon.user_id == user_id)
    if is_redeemed is not None:
        stmt = stmt.where(UserCoupon.is_redeemed.is_(is_redeemed))
    return stmt.order_by(UserCoupon.created_at.desc(), UserCoupon.id.desc())


async def campaign_stats(session, campaign: CouponCampaign) -> dict:
    row = (await session.execute(
        select(func.count(UserCoupon.id),
               func.coalesce(func.sum(UserCoupon.current_usage_count), 0))
        .where(UserCoupon.campaign_id == campaign.id))).first()
    redeemed = (await session.execute(
        select(func.count(UserCoupon.id))
        .where(UserCoupon.campaign_id == campaign.id, UserCoupon.is_redeemed.is_(True)))).scalar_one()
    assigned = row[0]
    return {
        "assigned": assigned,
        "redeemed": redeemed,
        "total_uses": int(row[1]),
        "current_global_usage": campaign.current_global_usage,
        "remaining_global_usage": (None if campaign.max_global_usage is None
                                   else max(0, campaign.max_global_usage - campaign.current_global_usage)),
        "redemption_rate": round(redeemed / assigned * 100, 2) if assigned else 0.0,
    }
