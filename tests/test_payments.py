import httpx
import pytest
from fastapi import HTTPException
from conftest import url_prefix
from storefront.payments.services import retry_payments, sign_payment


async def _online_order(make_user, make_variant, place_order, price=20000):
    headers, _, _ = await make_user()
    _, variant = await make_variant(price=price)
    order = await place_order(headers, variant["id"], gateway="RAZORPAY")
    return headers, order


@pytest.mark.asyncio
async def test_create_payment_order_is_reused(ac_client, make_user, make_variant, place_order, fake_psp):
    headers, order = await _online_order(make_user, make_variant, place_order)

    res = await ac_client.post(f"{url_prefix}/payments/razorpay/orders", headers=headers,
                               json={"order_number": order["order_number"]})
    assert res.status_code == 200
    data = res.json()["data"]
    assert data["razorpay_order_id"] == "order_TEST1"
    assert data["amount"] == order["grand_total"]
    assert data["currency"] == "INR"
    assert fake_psp[0]["receipt"] == order["order_number"]

    res = await ac_client.post(f"{url_prefix}/payments/razorpay/orders", headers=headers,
                               json={"order_number": order["order_number"]})
    assert res.json()["data"]["razorpay_order_id"] == "order_TEST1"
    assert len(fake_psp) == 1


@pytest.mark.asyncio
async def test_cod_order_is_not_payable_online(ac_client, make_user, make_variant, place_order, fake_psp):
    headers, _, _ = await make_user()
    _, variant = await make_variant()
    order = await place_order(headers, variant["id"], gateway="COD")

    res = await ac_client.post(f"{url_prefix}/payments/razorpay/orders", headers=headers,
                               json={"order_number": order["order_number"]})
    assert res.status_code == 400
    assert fake_psp == []


@pytest.mark.asyncio
async def test_verify_payment(ac_client, make_user, make_variant, place_order, fake_psp):
    headers, order = await _online_order(make_user, make_variant, place_order)
    res = await ac_client.post(f"{url_prefix}/payments/razorpay/orders", headers=headers,
                               json={"order_number": order["order_number"]})
    provider_order_id = res.json()["data"]["razorpay_order_id"]

    body = {"razorpay_order_id": provider_order_id, "razorpay_payment_id": "pay_OK1",
            "razorpay_signature": sign_payment(provider_order_id, "pay_OK1")}
    res = await ac_client.post(f"{url_prefix}/payments/razorpay/verify", headers=headers, json=body)
    assert res.status_code == 200
    data = res.json()["data"]
    assert data["payment_status"] == "PAID"
    assert data["order_status"] == "PROCESSING"
    assert data["already_verified"] is False

    res = await ac_client.post(f"{url_prefix}/payments/razorpay/verify", headers=headers, json=body)
    assert res.json()["data"]["already_verified"] is True

    detail = (await ac_client.get(f"{url_prefix}/orders/{order['order_number']}", headers=headers)).json()
    assert detail["data"]["order"]["razorpay_payment_id"] == "pay_OK1"


@pytest.mark.asyncio
async def test_bad_signature_marks_payment_failed(ac_client, make_user, make_variant, place_order, fake_psp):
    headers, order = await _online_order(make_user, make_variant, place_order)
    res = await ac_client.post(f"{url_prefix}/payments/razorpay/orders", headers=headers,
                               json={"order_number": order["order_number"]})
    provider_order_id = res.json()["data"]["razorpay_order_id"]

    res = await ac_client.post(f"{url_prefix}/payments/razorpay/verify", headers=headers,
                               json={"razorpay_order_id": provider_order_id, "razorpay_payment_id": "pay_BAD",
                                     "razorpay_signature": "not-a-signature"})
    assert res.status_code == 400

    detail = (await ac_client.get(f"{url_prefix}/orders/{order['order_number']}", headers=headers)).json()
    assert detail["data"]["order"]["payment_status"] == "FAILED"

    # a failed payment can be retried
    res = await ac_client.post(f"{url_prefix}/payments/razorpay/orders", headers=headers,
                               json={"order_number": order["order_number"]})
    assert res.status_code == 200


@pytest.mark.asyncio
async def test_verify_other_users_order(ac_client, make_user, make_variant, place_order, fake_psp):
    headers, order = await _online_order(make_user, make_variant, place_order)
    other_headers, _, _ = await make_user()
    res = await ac_client.post(f"{url_prefix}/payments/razorpay/orders", headers=headers,
                               json={"order_number": order["order_number"]})
    provider_order_id = res.json()["data"]["razorpay_order_id"]

    res = await ac_client.post(f"{url_prefix}/payments/razorpay/verify", headers=other_headers,
                               json={"razorpay_order_id": provider_order_id, "razorpay_payment_id": "pay_X",
                                     "razorpay_signature": sign_payment(provider_order_id, "pay_X")})
    assert res.status_code == 404


def _status_error(code):
    request = httpx.Request("POST", "https://psp.example.com/orders")
    return httpx.HTTPStatusError("psp error", request=request, response=httpx.Response(code, request=request))


@pytest.mark.asyncio
async def test_capture_after_cancel_is_refunded_to_wallet(ac_client, make_user, make_variant, place_order, fake_psp):
    headers, order = await _online_order(make_user, make_variant, place_order)
    res = await ac_client.post(f"{url_prefix}/payments/razorpay/orders", headers=headers,
                               json={"order_number": order["order_number"]})
    provider_order_id = res.json()["data"]["razorpay_order_id"]

    res = await ac_client.post(f"{url_prefix}/orders/{order['order_number']}/cancel", headers=headers,
                               json={"reason": "changed my mind"})
    assert res.status_code == 200

    body = {"razorpay_order_id": provider_order_id, "razorpay_payment_id": "pay_LATE",
            "razorpay_signature": sign_payment(provider_order_id, "pay_LATE")}
    res = await ac_client.post(f"{url_prefix}/payments/razorpay/verify", headers=headers, json=body)
    assert res.status_code == 200
    data = res.json()["data"]
    assert data["order_status"] == "CANCELLED"
    assert data["payment_status"] == "REFUNDED"

    wallet = (await ac_client.get(f"{url_prefix}/wallet", headers=headers)).json()["data"]["wallet"]
    assert wallet["balance"] == order["grand_total"]

    # a second verify does not credit again
    res = await ac_client.post(f"{url_prefix}/payments/razorpay/verify", headers=headers, json=body)
    assert res.json()["data"]["already_verified"] is True
    wallet = (await ac_client.get(f"{url_prefix}/wallet", headers=headers)).json()["data"]["wallet"]
    assert wallet["balance"] == order["grand_total"]

@pytest.mark.asyncio
async def test_retry_recovers_from_transient_errors():
    attempts = []

    async def flaky():
        attempts.append(1)
        if len(attempts) < 3:
            raise httpx.ConnectError("connection refused")
        return {"id": "order_OK"}

    result = await retry_payments(flaky, max_retries=3, backoff_base=0)()
    assert result == {"id": "order_OK"}
    assert len(attempts) == 3


@pytest.mark.asyncio
async def test_retry_surfaces_client_errors_at_once():
    attempts = []

    async def rejected():
        attempts.append(1)
        raise _status_error(401)

    with pytest.raises(HTTPException) as exc_info:
        await retry_payments(rejected, max_retries=3, backoff_base=0)()
    assert exc_info.value.status_code == 400
    assert len(attempts) == 1


@pytest.mark.asyncio
async def test_retry_gives_up_after_server_errors():
    attempts = []

    async def down():
        attempts.append(1)
        raise _status_error(503)

    with pytest.raises(HTTPException) as exc_info:
        await retry_payments(down, max_retries=2, backoff_base=0)()
    assert exc_info.value.status_code == 502
    assert len(attempts) == 2
