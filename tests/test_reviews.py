import pytest
from conftest import url_prefix


async def _review(ac_client, headers, variant_id, rating=5, **fields):
    return await ac_client.post(f"{url_prefix}/reviews", headers=headers,
                                json={"product_variant_id": variant_id, "rating": rating, **fields})


async def _moderate(ac_client, admin_headers, review_id, new_status, note=None):
    return await ac_client.patch(f"{url_prefix}/admin/reviews/{review_id}/status", headers=admin_headers,
                                 json={"status": new_status, "moderation_note": note})


@pytest.mark.asyncio
async def test_review_waits_for_approval(ac_client, admin_headers, make_user, make_variant):
    headers, _, _ = await make_user()
    _, variant = await make_variant()

    res = await _review(ac_client, headers, variant["id"], 4, title="Solid", review_text="Does what it says.")
    assert res.status_code == 201
    review = res.json()["data"]["review"]
    assert review["status"] == "PENDING_APPROVAL"
    assert review["is_verified_buyer"] is False

    public = await ac_client.get(f"{url_prefix}/product-variants/{variant['id']}/reviews")
    assert public.json()["data"]["items"] == []

    await _moderate(ac_client, admin_headers, review["id"], "APPROVED")
    public = await ac_client.get(f"{url_prefix}/product-variants/{variant['id']}/reviews")
    items = public.json()["data"]["items"]
    assert [r["id"] for r in items] == [review["id"]]
    assert "moderation_note" not in items[0]

    res = await _review(ac_client, headers, variant["id"], 1)
    assert res.status_code == 409


@pytest.mark.asyncio
async def test_suspicious_text_is_flagged(ac_client, make_user, make_variant):
    headers, _, _ = await make_user()
    _, variant = await make_variant()

    res = await _review(ac_client, headers, variant["id"], review_text="Click here for free money")
    assert res.json()["data"]["review"]["status"] == "FLAGGED"

    other_headers, _, _ = await make_user()
    res = await _review(ac_client, other_headers, variant["id"], review_text="THIS IS THE BEST THING EVER")
    assert res.json()["data"]["review"]["status"] == "FLAGGED"


@pytest.mark.asyncio
async def test_rating_summary_tracks_approved_reviews(ac_client, admin_headers, make_user, make_variant):
    _, variant = await make_variant()
    ids = []
    for rating in (5, 4, 2):
        headers, _, _ = await make_user()
        res = await _review(ac_client, headers, variant["id"], rating)
        ids.append(res.json()["data"]["review"]["id"])
        await _moderate(ac_client, admin_headers, ids[-1], "APPROVED")

    summary = (await ac_client.get(f"{url_prefix}/product-variants/{variant['id']}/rating-summary")).json()["data"]
    assert summary["reviews_count"] == 3
    assert summary["average_rating"] == 3.7
    assert summary["rating_distribution"] == {"1": 0, "2": 1, "3": 0, "4": 1, "5": 1}

    await _moderate(ac_client, admin_headers, ids[2], "REJECTED", "off topic")
    summary = (await ac_client.get(f"{url_prefix}/product-variants/{variant['id']}/rating-summary")).json()["data"]
    assert summary["reviews_count"] == 2
    assert summary["average_rating"] == 4.5


@pytest.mark.asyncio
async def test_verified_buyer_after_delivery(ac_client, admin_headers, make_user, make_variant, place_order):
    headers, _, _ = await make_user()
    _, variant = await make_variant()
    order = await place_order(headers, variant["id"])
    for target in ("PROCESSING", "SHIPPED", "DELIVERED"):
        await ac_client.patch(f"{url_prefix}/admin/orders/{order['id']}/status", headers=admin_headers,
                              json={"order_status": target})

    res = await _review(ac_client, headers, variant["id"], 5)
    assert res.json()["data"]["review"]["is_verified_buyer"] is True


@pytest.mark.asyncio
async def test_votes(ac_client, admin_headers, make_user, make_variant):
    author_headers, _, _ = await make_user()
    voter_headers, _, _ = await make_user()
    _, variant = await make_variant()
    review = (await _review(ac_client, author_headers, variant["id"])).json()["data"]["review"]
    url = f"{url_prefix}/reviews/{review['id']}/vote"

    # only approved reviews take votes
    assert (await ac_client.post(url, headers=voter_headers, json={"helpful": True})).status_code == 404
    await _moderate(ac_client, admin_headers, review["id"], "APPROVED")

    assert (await ac_client.post(url, headers=author_headers, json={"helpful": True})).status_code == 400

    res = await ac_client.post(url, headers=voter_headers, json={"helpful": True})
    assert res.json()["data"] == {"helpful_votes": 1, "unhelpful_votes": 0}
    assert (await ac_client.post(url, headers=voter_headers, json={"helpful": True})).status_code == 409

    res = await ac_client.post(url, headers=voter_headers, json={"helpful": False})
    assert res.json()["data"] == {"helpful_votes": 0, "unhelpful_votes": 1}


@pytest.mark.asyncio
async def test_reports_flag_review(ac_client, admin_headers, make_user, make_variant):
    author_headers, _, _ = await make_user()
    _, variant = await make_variant()
    review = (await _review(ac_client, author_headers, variant["id"], 5)).json()["data"]["review"]
    await _moderate(ac_client, admin_headers, review["id"], "APPROVED")
    url = f"{url_prefix}/reviews/{review['id']}/report"

    assert (await ac_client.post(url, headers=author_headers, json={"reason": "mine"})).status_code == 400

    for n in range(3):
        headers, _, _ = await make_user()
        res = await ac_client.post(url, headers=headers, json={"reason": "misleading"})
        assert res.json()["data"]["reported_count"] == n + 1
    assert (await ac_client.post(url, headers=headers, json={})).status_code == 409

    flagged = (await ac_client.get(f"{url_prefix}/admin/reviews", headers=admin_headers,
                                   params={"status": "FLAGGED"})).json()["data"]["items"]
    assert [r["id"] for r in flagged] == [review["id"]]

    summary = (await ac_client.get(f"{url_prefix}/product-variants/{variant['id']}/rating-summary")).json()["data"]
    assert summary["reviews_count"] == 0


@pytest.mark.asyncio
async def test_edit_and_delete_own_review(ac_client, admin_headers, make_user, make_variant):
    headers, _, _ = await make_user()
    other_headers, _, _ = await make_user()
    _, variant = await make_variant()
    review = (await _review(ac_client, headers, variant["id"], 5)).json()["data"]["review"]
    await _moderate(ac_client, admin_headers, review["id"], "APPROVED")

    res = await ac_client.patch(f"{url_prefix}/reviews/{review['id']}", headers=other_headers, json={"rating": 1})
    assert res.status_code == 403

    res = await ac_client.patch(f"{url_prefix}/reviews/{review['id']}", headers=headers, json={"rating": 3})
    assert res.json()["data"]["review"]["status"] == "PENDING_APPROVAL"
    summary = (await ac_client.get(f"{url_prefix}/product-variants/{variant['id']}/rating-summary")).json()["data"]
    assert summary["reviews_count"] == 0

    mine = (await ac_client.get(f"{url_prefix}/reviews/me", headers=headers)).json()["data"]["items"]
    assert mine[0]["sku_code"] == variant["sku_code"]

    res = await ac_client.delete(f"{url_prefix}/reviews/{review['id']}", headers=headers)
    assert res.status_code == 200
    assert (await ac_client.get(f"{url_prefix}/reviews/me", headers=headers)).json()["data"]["items"] == []


@pytest.mark.asyncio
async def test_unknown_sort_rejected(ac_client, make_variant):
    _, variant = await make_variant()
    res = await ac_client.get(f"{url_prefix}/product-variants/{variant['id']}/reviews", params={"sort": "oldest"})
    assert res.status_code == 400
