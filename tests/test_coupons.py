from datetime import datetime, timedelta, timezone
import pytest
from conftest import url_prefix


async def _fill_cart(ac_client, headers, variant_id, quantity=1):
    res = await ac_client.post(f"{url_prefix}/cart/items", headers=headers,
                               json={"product_variant_id": variant_id, "quantity": quantity})
    assert res.status_code == 200


@pytest.mark.asyncio
async def test_campaign_validation(ac_client, admin_headers):
    start = datetime.now(timezone.utc)
    body = {"name": "Broken", "code_prefix": "BRK", "discount_type": "PERCENTAGE", "discount_value": 150,
            "valid_from": start.isoformat(), "valid_until": (start + timedelta(days=1)).isoformat()}
    res = await ac_client.post(f"{url_prefix}/admin/coupon-campaigns", headers=admin_headers, json=body)
    assert res.status_code == 422

    body.update(discount_value=10, valid_until=(start - timedelta(days=1)).isoformat())
    res = await ac_client.post(f"{url_prefix}/admin/coupon-campaigns", headers=admin_headers, json=body)
    assert res.status_code == 422

    body.update(valid_until=(start + timedelta(days=1)).isoformat(), eligibility_criteria=["VIP"])
    res = await ac_client.post(f"{url_prefix}/admin/coupon-campaigns", headers=admin_headers, json=body)
    assert res.status_code == 422


@pytest.mark.asyncio
async def test_assign_skips_existing_holders(ac_client, admin_headers, make_user, make_coupon):
    _, user_id, _ = await make_user()
    campaign, code = await make_coupon(user_id)
    assert code.startswith("SAVE-")

    res = await ac_client.post(f"{url_prefix}/admin/coupon-campaigns/{campaign['id']}/assign",
                               headers=admin_headers, json={"user_ids": [user_id]})
    assert res.status_code == 201
    assert res.json()["data"]["assigned"] == []
    assert res.json()["data"]["skipped_user_ids"] == [user_id]


@pytest.mark.asyncio
async def test_my_coupons_and_validate(ac_client, make_user, make_variant, make_coupon):
    headers, user_id, _ = await make_user()
    _, code = await make_coupon(user_id, "PERCENTAGE", 20, max_coupon_discount=5000)
    _, variant = await make_variant(price=40000)

    items = (await ac_client.get(f"{url_prefix}/coupons", headers=headers)).json()["data"]["items"]
    assert [c["coupon_code"] for c in items] == [code]

    await _fill_cart(ac_client, headers, variant["id"])
    res = await ac_client.post(f"{url_prefix}/coupons/validate", headers=headers,
                               json={"coupon_code": code.lower()})
    assert res.status_code == 200
    data = res.json()["data"]
    # 20% of 40000 is capped at 5000
    assert data["discount"] == 5000
    assert data["total_after_discount"] == 35000


@pytest.mark.asyncio
async def test_coupon_belongs_to_its_holder(ac_client, make_user, make_variant, make_coupon):
    _, owner_id, _ = await make_user()
    other_headers, _, _ = await make_user()
    _, code = await make_coupon(owner_id)
    _, variant = await make_variant()

    await _fill_cart(ac_client, other_headers, variant["id"])
    res = await ac_client.post(f"{url_prefix}/cart/coupon", headers=other_headers, json={"coupon_code": code})
    assert res.status_code == 400
    assert res.json()["error"]["details"]["message"] == "Invalid coupon code"


@pytest.mark.asyncio
async def test_minimum_purchase_enforced(ac_client, make_user, make_variant, make_coupon):
    headers, user_id, _ = await make_user()
    _, code = await make_coupon(user_id, min_purchase_amount=100000)
    _, variant = await make_variant(price=20000)

    await _fill_cart(ac_client, headers, variant["id"])
    res = await ac_client.post(f"{url_prefix}/cart/coupon", headers=headers, json={"coupon_code": code})
    assert res.status_code == 400


@pytest.mark.asyncio
async def test_coupon_dropped_when_cart_falls_below_minimum(ac_client, make_user, make_variant, make_coupon):
    headers, user_id, _ = await make_user()
    _, code = await make_coupon(user_id, min_purchase_amount=50000)
    _, variant = await make_variant(price=30000)

    await _fill_cart(ac_client, headers, variant["id"], 2)
    res = await ac_client.post(f"{url_prefix}/cart/coupon", headers=headers, json={"coupon_code": code})
    assert res.json()["data"]["cart"]["discount"] == 10000

    res = await ac_client.patch(f"{url_prefix}/cart/items/{variant['id']}", headers=headers, json={"quantity": 1})
    cart = res.json()["data"]["cart"]
    assert cart["applied_coupon_code"] is None
    assert cart["discount"] == 0
    assert cart["coupon_removed_reason"]


@pytest.mark.asyncio
async def test_variant_restricted_campaign(ac_client, make_user, make_variant, make_coupon):
    headers, user_id, _ = await make_user()
    _, eligible = await make_variant()
    _, other = await make_variant()
    _, code = await make_coupon(user_id, applicable_variant_ids=[eligible["id"]])

    await _fill_cart(ac_client, headers, other["id"])
    res = await ac_client.post(f"{url_prefix}/cart/coupon", headers=headers, json={"coupon_code": code})
    assert res.status_code == 400

    await _fill_cart(ac_client, headers, eligible["id"])
    res = await ac_client.post(f"{url_prefix}/cart/coupon", headers=headers, json={"coupon_code": code})
    assert res.status_code == 200


@pytest.mark.asyncio
async def test_free_shipping_discount_equals_shipping(ac_client, make_user, make_variant, make_coupon):
    headers, user_id, _ = await make_user()
    _, code = await make_coupon(user_id, "FREE_SHIPPING", 0)
    _, variant = await make_variant(price=10000)

    await _fill_cart(ac_client, headers, variant["id"])
    res = await ac_client.post(f"{url_prefix}/cart/coupon", headers=headers, json={"coupon_code": code})
    assert res.json()["data"]["cart"]["discount"] == 5000


@pytest.mark.asyncio
async def test_deactivated_campaign_stops_coupons(ac_client, admin_headers, make_user, make_variant, make_coupon):
    headers, user_id, _ = await make_user()
    campaign, code = await make_coupon(user_id)
    _, variant = await make_variant()

    res = await ac_client.delete(f"{url_prefix}/admin/coupon-campaigns/{campaign['id']}", headers=admin_headers)
    assert res.status_code == 200

    res = await ac_client.get(f"{url_prefix}/coupons/{code}", headers=headers)
    assert res.json()["data"]["coupon"]["is_usable"] is False

    await _fill_cart(ac_client, headers, variant["id"])
    res = await ac_client.post(f"{url_prefix}/cart/coupon", headers=headers, json={"coupon_code": code})
    assert res.status_code == 400

    res = await ac_client.post(f"{url_prefix}/admin/coupon-campaigns/{campaign['id']}/assign",
                               headers=admin_headers, json={"user_ids": [user_id]})
    assert res.status_code == 400


@pytest.mark.asyncio
async def test_campaign_stats_and_user_coupon_listing(ac_client, admin_headers, make_user, make_coupon):
    _, user_id, _ = await make_user()
    campaign, code = await make_coupon(user_id)

    res = await ac_client.get(f"{url_prefix}/admin/coupon-campaigns/{campaign['id']}/stats", headers=admin_headers)
    assert res.status_code == 200
    assert res.json()["data"]["campaign_id"] == campaign["id"]

    res = await ac_client.get(f"{url_prefix}/admin/user-coupons", headers=admin_headers,
                              params={"campaign_id": campaign["id"]})
    assert [c["coupon_code"] for c in res.json()["data"]["items"]] == [code]


@pytest.mark.asyncio
async def test_unique_per_user_coupon_redeems_once(ac_client, make_user, make_variant, make_coupon, place_order):
    headers, user_id, _ = await make_user()
    _, code = await make_coupon(user_id, is_unique_per_user=True, max_usage_per_user=2)
    _, variant = await make_variant(price=20000)

    order = await place_order(headers, variant["id"], coupon_code=code)
    assert order["discount_amount"] == 10000

    coupon = (await ac_client.get(f"{url_prefix}/coupons/{code}", headers=headers)).json()["data"]["coupon"]
    assert coupon["is_redeemed"] is True
    assert coupon["is_usable"] is False

    await _fill_cart(ac_client, headers, variant["id"])
    res = await ac_client.post(f"{url_prefix}/cart/coupon", headers=headers, json={"coupon_code": code})
    assert res.status_code == 400


@pytest.mark.asyncio
async def test_multi_use_coupon_allows_its_usage_count(ac_client, make_user, make_variant, make_coupon, place_order):
    headers, user_id, _ = await make_user()
    _, code = await make_coupon(user_id, is_unique_per_user=False, max_usage_per_user=2)
    _, variant = await make_variant(price=20000)

    for _ in range(2):
        order = await place_order(headers, variant["id"], coupon_code=code)
        assert order["discount_amount"] == 10000

    await _fill_cart(ac_client, headers, variant["id"])
    res = await ac_client.post(f"{url_prefix}/cart/coupon", headers=headers, json={"coupon_code": code})
    assert res.status_code == 400
