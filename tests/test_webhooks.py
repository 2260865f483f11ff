import json
import pytest
from conftest import url_prefix
from storefront.payments.services import sign_webhook

webhook_url = f"{url_prefix}/webhooks/razorpay"


def _event(event, provider_order_id, payment_id="pay_WH1", error=None):
    entity = {"id": payment_id, "order_id": provider_order_id}
    if error:
        entity["error_description"] = error
    return {"event": event, "payload": {"payment": {"entity": entity}}}


async def _deliver(ac_client, payload, event_id=None, signature=None):
    body = json.dumps(payload).encode()
    headers = {"Content-Type": "application/json",
               "X-Razorpay-Signature": signature if signature is not None else sign_webhook(body)}
    if event_id:
        headers["X-Razorpay-Event-Id"] = event_id
    return await ac_client.post(webhook_url, content=body, headers=headers)


async def _payable_order(ac_client, make_user, make_variant, place_order):
    headers, _, _ = await make_user()
    _, variant = await make_variant(price=15000)
    order = await place_order(headers, variant["id"], gateway="RAZORPAY")
    res = await ac_client.post(f"{url_prefix}/payments/razorpay/orders", headers=headers,
                               json={"order_number": order["order_number"]})
    return headers, order, res.json()["data"]["razorpay_order_id"]


async def _order_state(ac_client, headers, order_number):
    res = await ac_client.get(f"{url_prefix}/orders/{order_number}", headers=headers)
    return res.json()["data"]["order"]


@pytest.mark.asyncio
async def test_invalid_signature_rejected(ac_client):
    res = await _deliver(ac_client, _event("payment.captured", "order_NONE"), signature="forged")
    assert res.status_code == 400

    res = await ac_client.post(webhook_url, content=b"{}")
    assert res.status_code == 400


@pytest.mark.asyncio
async def test_captured_payment_marks_order_paid(ac_client, make_user, make_variant, place_order, fake_psp):
    headers, order, provider_order_id = await _payable_order(ac_client, make_user, make_variant, place_order)

    res = await _deliver(ac_client, _event("payment.captured", provider_order_id), event_id="evt_1")
    assert res.status_code == 200
    assert res.json()["data"] == {"status": "ok", "outcome": "order"}

    state = await _order_state(ac_client, headers, order["order_number"])
    assert state["payment_status"] == "PAID"
    assert state["order_status"] == "PROCESSING"
    assert state["razorpay_payment_id"] == "pay_WH1"

    res = await _deliver(ac_client, _event("payment.captured", provider_order_id), event_id="evt_1")
    assert res.json()["data"] == {"status": "duplicate"}


@pytest.mark.asyncio
async def test_late_capture_leaves_refunded_order_alone(ac_client, make_user, make_variant, place_order, fake_psp):
    headers, order, provider_order_id = await _payable_order(ac_client, make_user, make_variant, place_order)
    await _deliver(ac_client, _event("payment.captured", provider_order_id), event_id="evt_paid")

    res = await ac_client.post(f"{url_prefix}/orders/{order['order_number']}/cancel", headers=headers,
                               json={"reason": "ordered twice"})
    assert res.status_code == 200

    res = await _deliver(ac_client, _event("order.paid", provider_order_id), event_id="evt_late")
    assert res.status_code == 200

    state = await _order_state(ac_client, headers, order["order_number"])
    assert state["order_status"] == "CANCELLED"
    assert state["payment_status"] == "REFUNDED"
    wallet = (await ac_client.get(f"{url_prefix}/wallet", headers=headers)).json()["data"]["wallet"]
    assert wallet["balance"] == order["grand_total"]

@pytest.mark.asyncio
async def test_failed_payment_marks_order_failed(ac_client, make_user, make_variant, place_order, fake_psp):
    headers, order, provider_order_id = await _payable_order(ac_client, make_user, make_variant, place_order)

    res = await _deliver(ac_client, _event("payment.failed", provider_order_id, error="Card declined"))
    assert res.json()["data"]["outcome"] == "order"

    state = await _order_state(ac_client, headers, order["order_number"])
    assert state["payment_status"] == "FAILED"
    assert state["order_status"] == "PENDING"

    notifications = (await ac_client.get(f"{url_prefix}/notifications", headers=headers)).json()["data"]["items"]
    assert any(n["type"] == "PAYMENT_FAILED" for n in notifications)


@pytest.mark.asyncio
async def test_captured_payment_completes_topup(ac_client, make_user, fake_psp):
    headers, _, _ = await make_user()
    res = await ac_client.post(f"{url_prefix}/wallet/topup", headers=headers, json={"amount": 40000})
    provider_order_id = res.json()["data"]["razorpay_order_id"]

    res = await _deliver(ac_client, _event("order.paid", provider_order_id), event_id="evt_topup")
    assert res.json()["data"]["outcome"] == "wallet"

    wallet = (await ac_client.get(f"{url_prefix}/wallet", headers=headers)).json()["data"]["wallet"]
    assert wallet["balance"] == 40000

    # a second delivery under another id settles nothing more
    res = await _deliver(ac_client, _event("payment.captured", provider_order_id, payment_id="pay_WH2"))
    assert res.json()["data"]["outcome"] == "wallet"
    wallet = (await ac_client.get(f"{url_prefix}/wallet", headers=headers)).json()["data"]["wallet"]
    assert wallet["balance"] == 40000


@pytest.mark.asyncio
async def test_unrelated_events(ac_client):
    res = await _deliver(ac_client, _event("payment.captured", "order_UNKNOWN"))
    assert res.json()["data"]["outcome"] == "unknown"

    res = await _deliver(ac_client, _event("refund.processed", "order_UNKNOWN"))
    assert res.json()["data"]["outcome"] == "ignored"

    res = await _deliver(ac_client, {"event": "payment.captured", "payload": {}})
    assert res.json()["data"]["outcome"] == "ignored"
