import pytest
from conftest import url_prefix


@pytest.mark.asyncio
async def test_overview_counts_net_revenue(ac_client, admin_headers, make_user, make_variant, place_order):
    headers, user_id, _ = await make_user()
    _, variant = await make_variant(price=10000, stock=3, min_stock_level=5)
    await ac_client.post(f"{url_prefix}/admin/wallets/users/{user_id}/adjust", headers=admin_headers,
                         json={"amount": 50000, "type": "CREDIT", "description": "seed balance"})

    paid = await place_order(headers, variant["id"], gateway="WALLET")
    await place_order(headers, variant["id"], gateway="COD")
    await ac_client.post(f"{url_prefix}/admin/orders/{paid['id']}/refund", headers=admin_headers,
                         json={"amount": 1800, "reason": "tax waived"})

    dashboard = (await ac_client.get(f"{url_prefix}/admin/dashboard",
                                     headers=admin_headers)).json()["data"]["dashboard"]
    assert dashboard["totals"]["orders"] == 2
    # only the paid order counts, net of its refund
    assert dashboard["totals"]["revenue"] == 16800 - 1800
    assert dashboard["today"] == {"orders": 2, "revenue": 15000}
    assert dashboard["orders_by_status"]["PROCESSING"] == 1
    assert dashboard["orders_by_status"]["PENDING"] == 1
    assert dashboard["low_stock_count"] == 1
    assert len(dashboard["recent_orders"]) == 2


@pytest.mark.asyncio
async def test_sales_series_and_top_products(ac_client, admin_headers, make_user, make_variant, place_order):
    headers, _, _ = await make_user()
    _, popular = await make_variant(price=1000)
    _, niche = await make_variant(price=1000)
    await place_order(headers, popular["id"], quantity=3)
    await place_order(headers, niche["id"], quantity=1)

    res = await ac_client.get(f"{url_prefix}/admin/dashboard/sales", headers=admin_headers, params={"days": 7})
    series = res.json()["data"]["series"]
    assert len(series) == 7
    assert series[-1]["orders"] == 2
    assert series[-1]["revenue"] == 0

    items = (await ac_client.get(f"{url_prefix}/admin/dashboard/top-products",
                                 headers=admin_headers)).json()["data"]["items"]
    assert [i["sku_code"] for i in items] == [popular["sku_code"], niche["sku_code"]]
    assert items[0]["units_sold"] == 3


@pytest.mark.asyncio
async def test_dashboard_requires_permission(ac_client, make_user):
    headers, _, _ = await make_user()
    res = await ac_client.get(f"{url_prefix}/admin/dashboard", headers=headers)
    assert res.status_code == 403
