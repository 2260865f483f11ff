import re
from datetime import datetime
import pytest
from conftest import url_prefix


async def _open_ticket(ac_client, headers, **fields):
    body = {"subject": "Parcel missing", "description": "The courier marked it delivered but nothing came.",
            "category": "SHIPPING_DELIVERY", **fields}
    res = await ac_client.post(f"{url_prefix}/support/tickets", headers=headers, json=body)
    assert res.status_code == 201
    return res.json()["data"]["ticket"]


async def _set_status(ac_client, admin_headers, ticket_id, new_status, **extra):
    return await ac_client.patch(f"{url_prefix}/admin/support/tickets/{ticket_id}/status", headers=admin_headers,
                                 json={"status": new_status, **extra})


@pytest.mark.asyncio
async def test_ticket_numbers_and_sla(ac_client, make_user):
    headers, _, _ = await make_user()
    first = await _open_ticket(ac_client, headers, priority="URGENT")
    second = await _open_ticket(ac_client, headers)

    assert re.fullmatch(r"TKT-\d{4}-000001", first["ticket_number"])
    assert second["ticket_number"].endswith("-000002")
    assert first["status"] == "OPEN"
    assert "is_sla_breached" not in first
    assert datetime.fromisoformat(first["sla_response_due"]) < datetime.fromisoformat(second["sla_response_due"])

    stats = (await ac_client.get(f"{url_prefix}/support/tickets/stats", headers=headers)).json()["data"]
    assert stats["total"] == 2 and stats["open"] == 2


@pytest.mark.asyncio
async def test_admin_reply_moves_ticket_in_progress(ac_client, admin_headers, make_user):
    headers, _, _ = await make_user()
    ticket = await _open_ticket(ac_client, headers)

    res = await ac_client.post(f"{url_prefix}/admin/support/tickets/{ticket['id']}/messages", headers=admin_headers,
                               json={"message": "Checking with the courier", "is_internal": True})
    assert res.json()["data"]["ticket"]["status"] == "OPEN"

    res = await ac_client.post(f"{url_prefix}/admin/support/tickets/{ticket['id']}/messages", headers=admin_headers,
                               json={"message": "We have raised a claim."})
    admin_view = res.json()["data"]["ticket"]
    assert admin_view["status"] == "IN_PROGRESS"
    assert admin_view["first_response_at"] is not None
    assert [m["is_internal"] for m in admin_view["messages"]] == [True, False]

    mine = (await ac_client.get(f"{url_prefix}/support/tickets/{ticket['ticket_number']}",
                                headers=headers)).json()["data"]["ticket"]
    assert [m["message"] for m in mine["messages"]] == ["We have raised a claim."]


@pytest.mark.asyncio
async def test_user_reply_reopens_resolved_ticket(ac_client, admin_headers, make_user):
    headers, _, _ = await make_user()
    ticket = await _open_ticket(ac_client, headers)
    await _set_status(ac_client, admin_headers, ticket["id"], "IN_PROGRESS")
    res = await _set_status(ac_client, admin_headers, ticket["id"], "RESOLVED",
                            resolution_note="Refund issued", resolution_type="SOLVED")
    assert res.json()["data"]["ticket"]["resolved_at"] is not None

    res = await ac_client.post(f"{url_prefix}/support/tickets/{ticket['ticket_number']}/messages", headers=headers,
                               json={"message": "Refund never arrived"})
    reopened = res.json()["data"]["ticket"]
    assert reopened["status"] == "OPEN"
    assert reopened["reopened_count"] == 1
    assert reopened["resolved_at"] is None


@pytest.mark.asyncio
async def test_status_transitions_enforced(ac_client, admin_headers, make_user):
    headers, _, _ = await make_user()
    ticket = await _open_ticket(ac_client, headers)

    assert (await _set_status(ac_client, admin_headers, ticket["id"], "RESOLVED")).status_code == 400

    res = await ac_client.post(f"{url_prefix}/support/tickets/{ticket['ticket_number']}/close", headers=headers)
    assert res.json()["data"]["ticket"]["status"] == "CLOSED"

    res = await ac_client.post(f"{url_prefix}/support/tickets/{ticket['ticket_number']}/messages", headers=headers,
                               json={"message": "one more thing"})
    assert res.status_code == 400


@pytest.mark.asyncio
async def test_rating_only_after_resolution(ac_client, make_user):
    headers, _, _ = await make_user()
    ticket = await _open_ticket(ac_client, headers)
    url = f"{url_prefix}/support/tickets/{ticket['ticket_number']}/rating"

    assert (await ac_client.post(url, headers=headers, json={"rating": 5})).status_code == 400

    await ac_client.post(f"{url_prefix}/support/tickets/{ticket['ticket_number']}/close", headers=headers)
    res = await ac_client.post(url, headers=headers, json={"rating": 4, "feedback": "quick"})
    assert res.json()["data"]["ticket"]["satisfaction_rating"] == 4


@pytest.mark.asyncio
async def test_assign_only_to_admins(ac_client, admin_headers, make_user):
    headers, buyer_id, _ = await make_user()
    ticket = await _open_ticket(ac_client, headers)
    url = f"{url_prefix}/admin/support/tickets/{ticket['id']}/assign"

    assert (await ac_client.patch(url, headers=admin_headers, json={"admin_id": buyer_id})).status_code == 400

    admin = (await ac_client.get(f"{url_prefix}/users/me", headers=admin_headers)).json()["data"]["user"]
    res = await ac_client.patch(url, headers=admin_headers, json={"admin_id": admin["id"]})
    data = res.json()["data"]["ticket"]
    assert data["assigned_to"] == admin["id"]
    assert data["messages"][-1]["message_type"] == "ASSIGNMENT"
    assert data["messages"][-1]["is_internal"] is True

    res = await ac_client.get(f"{url_prefix}/admin/support/tickets", headers=admin_headers,
                              params={"assigned": False})
    assert res.json()["data"]["items"] == []


@pytest.mark.asyncio
async def test_tickets_are_private(ac_client, make_user):
    headers, _, _ = await make_user()
    other_headers, _, _ = await make_user()
    ticket = await _open_ticket(ac_client, headers)

    res = await ac_client.get(f"{url_prefix}/support/tickets/{ticket['ticket_number']}", headers=other_headers)
    assert res.status_code == 404


@pytest.mark.asyncio
async def test_admin_analytics(ac_client, admin_headers, make_user):
    headers, _, _ = await make_user()
    await _open_ticket(ac_client, headers, priority="HIGH")
    await _open_ticket(ac_client, headers, priority="LOW")

    analytics = (await ac_client.get(f"{url_prefix}/admin/support/analytics",
                                     headers=admin_headers)).json()["data"]["analytics"]
    assert analytics["total"] == 2
    assert analytics["by_priority"] == {"HIGH": 1, "LOW": 1}
    assert analytics["by_status"]["OPEN"] == 2

    overdue = (await ac_client.get(f"{url_prefix}/admin/support/tickets/overdue",
                                   headers=admin_headers)).json()["data"]
    assert overdue["count"] == 0
