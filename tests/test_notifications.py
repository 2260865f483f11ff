import pytest
from conftest import url_prefix


async def _feed(ac_client, headers, **params):
    return (await ac_client.get(f"{url_prefix}/notifications", headers=headers, params=params)).json()["data"]


@pytest.mark.asyncio
async def test_direct_notification_lifecycle(ac_client, admin_headers, make_user):
    headers, user_id, _ = await make_user()

    res = await ac_client.post(f"{url_prefix}/admin/notifications", headers=admin_headers,
                               json={"user_id": user_id, "title": "Hello", "message": "Welcome aboard",
                                     "priority": "HIGH"})
    assert res.status_code == 201
    notification_id = res.json()["data"]["notification"]["id"]

    feed = await _feed(ac_client, headers)
    assert [n["id"] for n in feed["items"]] == [notification_id]
    assert feed["unread_count"] == 1

    res = await ac_client.patch(f"{url_prefix}/notifications/{notification_id}/read", headers=headers)
    assert res.json()["data"]["notification"]["is_read"] is True
    count = (await ac_client.get(f"{url_prefix}/notifications/unread-count", headers=headers)).json()["data"]
    assert count["unread_count"] == 0

    admin_view = (await ac_client.get(f"{url_prefix}/admin/notifications/{notification_id}",
                                      headers=admin_headers)).json()["data"]["notification"]
    assert admin_view["recipient_id"] == user_id
    assert admin_view["read_count"] == 1
    assert admin_view["status"] == "READ"

    res = await ac_client.delete(f"{url_prefix}/notifications/{notification_id}", headers=headers)
    assert res.status_code == 200
    assert (await _feed(ac_client, headers))["items"] == []


@pytest.mark.asyncio
async def test_notifications_are_private(ac_client, admin_headers, make_user):
    _, user_id, _ = await make_user()
    other_headers, _, _ = await make_user()
    res = await ac_client.post(f"{url_prefix}/admin/notifications", headers=admin_headers,
                               json={"user_id": user_id, "title": "Private", "message": "Only for you"})
    notification_id = res.json()["data"]["notification"]["id"]

    res = await ac_client.patch(f"{url_prefix}/notifications/{notification_id}/read", headers=other_headers)
    assert res.status_code == 404


@pytest.mark.asyncio
async def test_broadcast_reaches_target_roles(ac_client, admin_headers, make_user):
    headers, _, _ = await make_user()
    second_headers, _, _ = await make_user()

    res = await ac_client.post(f"{url_prefix}/admin/notifications/broadcast", headers=admin_headers,
                               json={"title": "Sale", "message": "Everything 10% off", "target_roles": ["buyer"],
                                     "type": "PROMOTION"})
    assert res.status_code == 201
    broadcast = res.json()["data"]["notification"]
    assert broadcast["is_broadcast"] is True
    assert broadcast["target_roles"] == ["buyer"]
    assert broadcast["email_recipients"] == 0

    feed = await _feed(ac_client, headers)
    assert [n["id"] for n in feed["items"]] == [broadcast["id"]]
    assert (await _feed(ac_client, admin_headers))["items"] == []

    res = await ac_client.patch(f"{url_prefix}/notifications/read-all", headers=headers)
    assert res.json()["data"]["marked"] == 1
    assert (await _feed(ac_client, headers))["unread_count"] == 0
    # read receipts are per user
    assert (await _feed(ac_client, second_headers))["unread_count"] == 1

    res = await ac_client.delete(f"{url_prefix}/notifications/{broadcast['id']}", headers=headers)
    assert res.status_code == 400

    detail = (await ac_client.get(f"{url_prefix}/admin/notifications/{broadcast['id']}",
                                  headers=admin_headers)).json()["data"]["notification"]
    assert detail["read_count"] == 1
    assert detail["target_type"] == "USER"


@pytest.mark.asyncio
async def test_order_events_notify_buyer(ac_client, make_user, make_variant, place_order):
    headers, _, _ = await make_user()
    _, variant = await make_variant()
    await place_order(headers, variant["id"])

    feed = await _feed(ac_client, headers, type="ORDER_UPDATE")
    assert [n["title"] for n in feed["items"]] == ["Order placed"]


@pytest.mark.asyncio
async def test_admin_analytics(ac_client, admin_headers, make_user):
    _, user_id, _ = await make_user()
    await ac_client.post(f"{url_prefix}/admin/notifications", headers=admin_headers,
                         json={"user_id": user_id, "title": "Ping", "message": "Just checking"})

    res = await ac_client.get(f"{url_prefix}/admin/notifications/analytics", headers=admin_headers)
    assert res.status_code == 200
    assert "analytics" in res.json()["data"]

    res = await ac_client.get(f"{url_prefix}/admin/notifications", headers=admin_headers,
                              params={"is_broadcast": False})
    assert res.json()["data"]["pagination"]["total_count"] == 1
