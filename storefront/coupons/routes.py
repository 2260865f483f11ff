from typing import Optional
from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from sqlalchemy.ext.asyncio import AsyncSession
from storefront.audit.loggers import log_admin_action
from storefront.auth.dependencies import require_permissions
from storefront.cart.repository import get_or_create_cart, load_cart_lines
from storefront.cart.services import cart_quantity, cart_subtotal, ensure_not_empty
from storefront.catalog.repository import ensure_name_free, unique_slug
from storefront.common.pagination import PageParams, page_params, page_payload, paginate
from storefront.common.utils import as_utc, now, success_response
from storefront.coupons.models import AssignCouponsIn, CampaignCreateIn, CampaignUpdateIn, CouponCodeIn
from storefront.coupons.repository import (campaign_list_stmt, campaign_refs_to_ids, campaign_refs_to_pids,
                                           campaign_stats, get_campaign_by_pid, my_coupons_stmt, user_coupons_stmt)
from storefront.coupons.services import (assign_coupons, coupon_can_be_used, get_user_coupon,
                                         validate_coupon_for_lines)
from storefront.coupons.utils import campaign_out, user_coupon_out
from storefront.db.dependencies import get_session
from storefront.orders.utils import compute_shipping
from storefront.schema.full_schema import CouponCampaign, DiscountType
from storefront.user.dependencies import current_user_id
from storefront.user.repository import get_user, get_user_by_pid
from storefront.coupons.constants import logger

coupons_router = APIRouter()
campaigns_admin_router = APIRouter(dependencies=[require_permissions("coupon:manage")])
user_coupons_admin_router = APIRouter(dependencies=[require_permissions("coupon:manage")])


@coupons_router.get("")
async def get_my_coupons(request: Request, params: PageParams = Depends(page_params),
                         session: AsyncSession = Depends(get_session)):
    rows, meta = await paginate(session, my_coupons_stmt(current_user_id(request)), params)
    return success_response(page_payload([user_coupon_out(c, camp) for c, camp in rows], meta))


@coupons_router.post("/validate")
async def validate_coupon(request: Request, payload: CouponCodeIn, session: AsyncSession = Depends(get_session)):
    user_id = current_user_id(request)
    cart = await get_or_create_cart(session, user_id)
    lines = await load_cart_lines(session, cart.id)
    ensure_not_empty(lines)

    subtotal = cart_subtotal(lines)
    _, campaign, discount = await validate_coupon_for_lines(
        session, await get_user(session, user_id), payload.coupon_code, lines,
        subtotal, compute_shipping(cart_quantity(lines)))
    await session.commit()

    return success_response({"valid": True, "coupon_code": payload.coupon_code,
                             "discount_type": campaign.discount_type, "discount": discount,
                             "subtotal": subtotal, "total_after_discount": max(0, subtotal - discount)})


@coupons_router.get("/{code}")
async def get_my_coupon(request: Request, code: str, session: AsyncSession = Depends(get_session)):
    coupon, campaign = await get_user_coupon(session, current_user_id(request), code)
    usable, reason = coupon_can_be_used(coupon, campaign)
    data = user_coupon_out(coupon, campaign)
    data["is_usable"] = usable
    data["unusable_reason"] = reason
    return success_response({"coupon": data})


# ---------------------------------------------------------------- admin campaigns

@campaigns_admin_router.post("", status_code=status.HTTP_201_CREATED)
async def create_campaign(request: Request, payload: CampaignCreateIn, session: AsyncSession = Depends(get_session)):
    await ensure_name_free(session, CouponCampaign, payload.name)

    data = await campaign_refs_to_ids(session, payload.model_dump())
    data["valid_from"] = as_utc(data["valid_from"])
    data["valid_until"] = as_utc(data["valid_until"])
    campaign = CouponCampaign(slug=await unique_slug(session, CouponCampaign, payload.name), **data)
    session.add(campaign)
    await session.commit()

    logger.info("campaign.created", extra={"public_id": str(campaign.public_id)})
    log_admin_action(request, "COUPON_CAMPAIGN_CREATED", "coupon_campaign", campaign.public_id,
                     {"name": campaign.name, "discount_type": campaign.discount_type})
    return success_response({"campaign": campaign_out(campaign, await campaign_refs_to_pids(session, campaign))},
                            status.HTTP_201_CREATED)


@campaigns_admin_router.get("")
async def list_campaigns(include_inactive: bool = Query(False), search: Optional[str] = Query(None),
                         params: PageParams = Depends(page_params), session: AsyncSession = Depends(get_session)):
    rows, meta = await paginate(session, campaign_list_stmt(include_inactive, search), params)
    items = [campaign_out(r[0], await campaign_refs_to_pids(session, r[0])) for r in rows]
    return success_response(page_payload(items, meta))


@campaigns_admin_router.get("/{campaign_id}")
async def get_campaign(campaign_id: str, session: AsyncSession = Depends(get_session)):
    campaign = await get_campaign_by_pid(session, campaign_id)
    return success_response({"campaign": campaign_out(campaign, await campaign_refs_to_pids(session, campaign))})


@campaigns_admin_router.patch("/{campaign_id}")
async def update_campaign(request: Request, campaign_id: str, payload: CampaignUpdateIn,
                          session: AsyncSession = Depends(get_session)):
    campaign = await get_campaign_by_pid(session, campaign_id)
    updates = await campaign_refs_to_ids(session, payload.model_dump(exclude_unset=True))
    for key in ("valid_from", "valid_until"):
        if updates.get(key) is not None:
            updates[key] = as_utc(updates[key])

    valid_from = updates.get("valid_from") or as_utc(campaign.valid_from)
    valid_until = updates.get("valid_until") or as_utc(campaign.valid_until)
    if valid_from >= valid_until:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="valid_from must be before valid_until")
    if "discount_value" in updates and campaign.discount_type == DiscountType.PERCENTAGE \
            and not 0 < updates["discount_value"] <= 100:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Percentage discount must be in (0, 100]")

    for field, value in updates.items():
        setattr(campaign, field, value)
    campaign.updated_at = now()
    await session.commit()

    log_admin_action(request, "COUPON_CAMPAIGN_UPDATED", "coupon_campaign", campaign.public_id,
                     {"fields": sorted(updates)})
    return success_response({"campaign": campaign_out(campaign, await campaign_refs_to_pids(session, campaign))})


@campaigns_admin_router.delete("/{campaign_id}")
async def delete_campaign(request: Request, campaign_id: str, session: AsyncSession = Depends(get_session)):
    campaign = await get_campaign_by_pid(session, campaign_id)
    campaign.is_active = False
    campaign.updated_at = now()
    await session.commit()

    log_admin_action(request, "COUPON_CAMPAIGN_DELETED", "coupon_campaign", campaign.public_id)
    return success_response({"message": "Coupon campaign deleted"})


@campaigns_admin_router.post("/{campaign_id}/assign", status_code=status.HTTP_201_CREATED)
async def assign_campaign(request: Request, campaign_id: str, payload: AssignCouponsIn,
                          session: AsyncSession = Depends(get_session)):
    campaign = await get_campaign_by_pid(session, campaign_id)
    if not campaign.is_active:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Campaign is not active")

    users = [await get_user_by_pid(session, pid) for pid in dict.fromkeys(payload.user_ids)]
    expires_at = as_utc(payload.expires_at) if payload.expires_at else None
    if expires_at is not None and expires_at <= now():
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="expires_at must be in the future")

    created, skipped = await assign_coupons(session, campaign, users, expires_at)
    await session.commit()

    log_admin_action(request, "COUPONS_ASSIGNED", "coupon_campaign", campaign.public_id,
                     {"assigned": len(created), "skipped": len(skipped)})
    return success_response({
        "assigned": [{"user_id": user_pid, "coupon_code": c.coupon_code, "expires_at": as_utc(c.expires_at)}
                     for c, user_pid in created],
        "skipped_user_ids": skipped,
    }, status.HTTP_201_CREATED)


@campaigns_admin_router.get("/{campaign_id}/stats")
async def get_campaign_stats(campaign_id: str, session: AsyncSession = Depends(get_session)):
    campaign = await get_campaign_by_pid(session, campaign_id)
    return success_response({"campaign_id": campaign.public_id, **await campaign_stats(session, campaign)})


# ---------------------------------------------------------------- admin user coupons

@user_coupons_admin_router.get("")
async def list_user_coupons(campaign_id: Optional[str] = Query(None), user_id: Optional[str] = Query(None),
                            is_redeemed: Optional[bool] = Query(None), params: PageParams = Depends(page_params),
                            session: AsyncSession = Depends(get_session)):
    campaign_pk = (await get_campaign_by_pid(session, campaign_id)).id if campaign_id else None
    user_pk = (await get_user_by_pid(session, user_id)).id if user_id else None

    rows, meta = await paginate(session, user_coupons_stmt(campaign_pk, user_pk, is_redeemed), params)
    items = []
    for coupon, camp_pid, camp_name, user_pid, email in rows:
        data = user_coupon_out(coupon)
        data.update({"campaign_id": camp_pid, "campaign_name": camp_name, "user_id": user_pid, "email": email})
        items.append(data)
    return success_response(page_payload(items, meta))
