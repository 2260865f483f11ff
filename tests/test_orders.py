import pytest
from conftest import SHIPPING_ADDRESS, url_prefix


async def _stock(ac_client, admin_headers, variant_id):
    res = await ac_client.get(f"{url_prefix}/admin/inventory/{variant_id}", headers=admin_headers)
    return res.json()["data"]["inventory"]["stock_quantity"]


async def _set_status(ac_client, admin_headers, order_id, order_status, **extra):
    return await ac_client.patch(f"{url_prefix}/admin/orders/{order_id}/status", headers=admin_headers,
                                 json={"order_status": order_status, **extra})


@pytest.mark.asyncio
async def test_order_totals_with_coupon(ac_client, admin_headers, make_user, make_variant, make_coupon,
                                        place_order):
    headers, user_id, _ = await make_user()
    _, variant = await make_variant(price=50000, stock=10)
    _, code = await make_coupon(user_id, "AMOUNT", 10000)

    order = await place_order(headers, variant["id"], quantity=1, coupon_code=code)

    assert order["subtotal"] == 50000
    assert order["shipping_cost"] == 5000
    assert order["tax_amount"] == 9000
    assert order["discount_amount"] == 10000
    assert order["grand_total"] == 54000
    assert order["applied_coupon_code"] == code
    assert order["order_status"] == "PENDING"
    assert order["payment_status"] == "PENDING"
    assert [i["sku_code"] for i in order["items"]] == [variant["sku_code"]]
    assert order["items"][0]["product_variant_id"] == variant["id"]

    assert await _stock(ac_client, admin_headers, variant["id"]) == 9
    cart = (await ac_client.get(f"{url_prefix}/cart", headers=headers)).json()["data"]["cart"]
    assert cart["items"] == [] and cart["applied_coupon_code"] is None

    coupon = (await ac_client.get(f"{url_prefix}/coupons/{code}", headers=headers)).json()["data"]["coupon"]
    assert coupon["is_redeemed"] is True


@pytest.mark.asyncio
async def test_free_shipping_from_five_units(ac_client, make_user, make_variant, place_order):
    headers, _, _ = await make_user()
    _, variant = await make_variant(price=1000, stock=10)

    order = await place_order(headers, variant["id"], quantity=5)
    assert order["shipping_cost"] == 0
    assert order["tax_amount"] == 900
    assert order["grand_total"] == 5900


@pytest.mark.asyncio
async def test_empty_cart_cannot_checkout(ac_client, make_user):
    headers, _, _ = await make_user()
    res = await ac_client.post(f"{url_prefix}/orders", headers=headers,
                               json={"shipping_address": SHIPPING_ADDRESS, "payment_gateway": "COD"})
    assert res.status_code == 400


@pytest.mark.asyncio
async def test_checkout_fails_when_stock_ran_out(ac_client, admin_headers, make_user, make_variant):
    headers, _, _ = await make_user()
    _, variant = await make_variant(stock=3)
    await ac_client.post(f"{url_prefix}/cart/items", headers=headers,
                         json={"product_variant_id": variant["id"], "quantity": 3})
    await ac_client.patch(f"{url_prefix}/admin/inventory/{variant['id']}", headers=admin_headers,
                          json={"stock_quantity": 1})

    res = await ac_client.post(f"{url_prefix}/orders", headers=headers,
                               json={"shipping_address": SHIPPING_ADDRESS, "payment_gateway": "COD"})
    assert res.status_code == 412
    assert await _stock(ac_client, admin_headers, variant["id"]) == 1


@pytest.mark.asyncio
async def test_cancel_restores_stock_and_coupon(ac_client, admin_headers, make_user, make_variant, make_coupon,
                                                place_order):
    headers, user_id, _ = await make_user()
    _, variant = await make_variant(price=50000, stock=5)
    campaign, code = await make_coupon(user_id)

    order = await place_order(headers, variant["id"], quantity=2, coupon_code=code)
    assert await _stock(ac_client, admin_headers, variant["id"]) == 3

    res = await ac_client.post(f"{url_prefix}/orders/{order['order_number']}/cancel", headers=headers,
                               json={"reason": "changed my mind"})
    assert res.status_code == 200
    cancelled = res.json()["data"]["order"]
    assert cancelled["order_status"] == "CANCELLED"
    assert cancelled["cancelled_at"] is not None

    assert await _stock(ac_client, admin_headers, variant["id"]) == 5
    coupon = (await ac_client.get(f"{url_prefix}/coupons/{code}", headers=headers)).json()["data"]["coupon"]
    assert coupon["is_redeemed"] is False and coupon["is_usable"] is True

    stats = (await ac_client.get(f"{url_prefix}/admin/coupon-campaigns/{campaign['id']}",
                                 headers=admin_headers)).json()["data"]["campaign"]
    assert stats["current_global_usage"] == 0

    res = await ac_client.post(f"{url_prefix}/orders/{order['order_number']}/cancel", headers=headers,
                               json={"reason": "again"})
    assert res.status_code == 400


@pytest.mark.asyncio
async def test_wallet_checkout_and_cancel_refund(ac_client, admin_headers, make_user, make_variant, place_order):
    headers, user_id, _ = await make_user()
    _, variant = await make_variant(price=10000, stock=5)
    await ac_client.post(f"{url_prefix}/admin/wallets/users/{user_id}/adjust", headers=admin_headers,
                         json={"amount": 50000, "type": "CREDIT", "description": "goodwill"})

    order = await place_order(headers, variant["id"], gateway="WALLET")
    assert order["payment_status"] == "PAID"
    assert order["order_status"] == "PROCESSING"
    # 10000 + 5000 shipping + 1800 tax
    wallet = (await ac_client.get(f"{url_prefix}/wallet", headers=headers)).json()["data"]["wallet"]
    assert wallet["balance"] == 50000 - 16800

    res = await ac_client.post(f"{url_prefix}/orders/{order['order_number']}/cancel", headers=headers,
                               json={"reason": "too slow"})
    cancelled = res.json()["data"]["order"]
    assert cancelled["payment_status"] == "REFUNDED"
    assert cancelled["refunded_amount"] == 16800
    wallet = (await ac_client.get(f"{url_prefix}/wallet", headers=headers)).json()["data"]["wallet"]
    assert wallet["balance"] == 50000


@pytest.mark.asyncio
async def test_wallet_checkout_needs_balance(ac_client, make_user, make_variant):
    headers, _, _ = await make_user()
    _, variant = await make_variant(price=10000, stock=5)
    await ac_client.post(f"{url_prefix}/cart/items", headers=headers,
                         json={"product_variant_id": variant["id"], "quantity": 1})

    res = await ac_client.post(f"{url_prefix}/orders", headers=headers,
                               json={"shipping_address": SHIPPING_ADDRESS, "payment_gateway": "WALLET"})
    assert res.status_code == 412

    cart = (await ac_client.get(f"{url_prefix}/cart", headers=headers)).json()["data"]["cart"]
    assert cart["total_quantity"] == 1


@pytest.mark.asyncio
async def test_admin_status_flow_for_cod(ac_client, admin_headers, make_user, make_variant, place_order):
    headers, _, _ = await make_user()
    _, variant = await make_variant()
    order = await place_order(headers, variant["id"])

    res = await _set_status(ac_client, admin_headers, order["id"], "DELIVERED")
    assert res.status_code == 400

    assert (await _set_status(ac_client, admin_headers, order["id"], "PROCESSING")).status_code == 200
    res = await _set_status(ac_client, admin_headers, order["id"], "SHIPPED", tracking_number="TRK123",
                            shipping_carrier="Delhivery")
    assert res.json()["data"]["order"]["tracking_number"] == "TRK123"

    res = await _set_status(ac_client, admin_headers, order["id"], "DELIVERED")
    delivered = res.json()["data"]["order"]
    assert delivered["payment_status"] == "PAID"
    assert delivered["delivered_at"] is not None

    res = await ac_client.post(f"{url_prefix}/orders/{order['order_number']}/cancel", headers=headers,
                               json={"reason": "too late"})
    assert res.status_code == 400

    res = await ac_client.post(f"{url_prefix}/orders/{order['order_number']}/return-request", headers=headers,
                               json={"reason": "damaged"})
    assert res.json()["data"]["order"]["order_status"] == "RETURN_REQUESTED"


@pytest.mark.asyncio
async def test_unpaid_online_order_cannot_ship(ac_client, admin_headers, make_user, make_variant, place_order):
    headers, _, _ = await make_user()
    _, variant = await make_variant()
    order = await place_order(headers, variant["id"], gateway="RAZORPAY")

    await _set_status(ac_client, admin_headers, order["id"], "PROCESSING")
    res = await _set_status(ac_client, admin_headers, order["id"], "SHIPPED")
    assert res.status_code == 400


@pytest.mark.asyncio
async def test_partial_then_full_refund(ac_client, admin_headers, make_user, make_variant, place_order):
    headers, user_id, _ = await make_user()
    _, variant = await make_variant(price=10000)
    await ac_client.post(f"{url_prefix}/admin/wallets/users/{user_id}/adjust", headers=admin_headers,
                         json={"amount": 20000, "type": "CREDIT", "description": "seed balance"})
    order = await place_order(headers, variant["id"], gateway="WALLET")

    url = f"{url_prefix}/admin/orders/{order['id']}/refund"
    res = await ac_client.post(url, headers=admin_headers, json={"amount": 99999, "reason": "too much"})
    assert res.status_code == 400

    res = await ac_client.post(url, headers=admin_headers, json={"amount": 6800, "reason": "late delivery"})
    assert res.json()["data"]["order"]["payment_status"] == "PARTIALLY_REFUNDED"

    res = await ac_client.post(url, headers=admin_headers, json={"amount": 10000, "reason": "returned"})
    refunded = res.json()["data"]["order"]
    assert refunded["payment_status"] == "REFUNDED"
    assert refunded["refunded_amount"] == refunded["grand_total"]

    wallet = (await ac_client.get(f"{url_prefix}/wallet", headers=headers)).json()["data"]["wallet"]
    assert wallet["balance"] == 20000


@pytest.mark.asyncio
async def test_admin_edit_recomputes_total(ac_client, admin_headers, make_user, make_variant, place_order):
    headers, _, _ = await make_user()
    _, variant = await make_variant(price=10000)
    order = await place_order(headers, variant["id"])

    res = await ac_client.patch(f"{url_prefix}/admin/orders/{order['id']}", headers=admin_headers,
                                json={"shipping_cost": 0, "notes": "waived shipping"})
    assert res.status_code == 200
    assert res.json()["data"]["order"]["grand_total"] == order["grand_total"] - 5000

    res = await ac_client.patch(f"{url_prefix}/admin/orders/{order['id']}", headers=admin_headers,
                                json={"discount_amount": 999999})
    assert res.status_code == 400


@pytest.mark.asyncio
async def test_admin_edit_ignores_null_amounts(ac_client, admin_headers, make_user, make_variant, place_order):
    headers, _, _ = await make_user()
    _, variant = await make_variant(price=10000)
    order = await place_order(headers, variant["id"])

    res = await ac_client.patch(f"{url_prefix}/admin/orders/{order['id']}", headers=admin_headers,
                                json={"shipping_cost": None, "tax_amount": None, "notes": "checked"})
    assert res.status_code == 200
    edited = res.json()["data"]["order"]
    assert edited["shipping_cost"] == order["shipping_cost"]
    assert edited["tax_amount"] == order["tax_amount"]
    assert edited["grand_total"] == order["grand_total"]
    assert edited["notes"] == "checked"


@pytest.mark.asyncio
async def test_orders_are_private(ac_client, admin_headers, make_user, make_variant, place_order):
    headers, user_id, _ = await make_user()
    other_headers, _, _ = await make_user()
    _, variant = await make_variant()
    order = await place_order(headers, variant["id"])

    res = await ac_client.get(f"{url_prefix}/orders/{order['order_number']}", headers=other_headers)
    assert res.status_code == 404

    mine = (await ac_client.get(f"{url_prefix}/orders", headers=headers)).json()["data"]["items"]
    assert [o["order_number"] for o in mine] == [order["order_number"]]

    res = await ac_client.get(f"{url_prefix}/admin/orders", headers=admin_headers, params={"user_id": user_id})
    assert [o["order_number"] for o in res.json()["data"]["items"]] == [order["order_number"]]

    stats = (await ac_client.get(f"{url_prefix}/admin/orders/stats", headers=admin_headers)).json()["data"]
    assert stats["total_orders"] == 1
