import pytest
from conftest import url_prefix


@pytest.mark.asyncio
async def test_adjust_and_set_stock(ac_client, admin_headers, make_variant):
    _, variant = await make_variant(stock=10)

    res = await ac_client.patch(f"{url_prefix}/admin/inventory/{variant['id']}", headers=admin_headers,
                                json={"adjustment": -4, "reason": "damaged"})
    assert res.status_code == 200
    inventory = res.json()["data"]["inventory"]
    assert inventory["stock_quantity"] == 6
    assert inventory["last_restocked_date"] is None

    res = await ac_client.patch(f"{url_prefix}/admin/inventory/{variant['id']}", headers=admin_headers,
                                json={"stock_quantity": 40})
    inventory = res.json()["data"]["inventory"]
    assert inventory["stock_quantity"] == 40
    assert inventory["last_restocked_date"] is not None


@pytest.mark.asyncio
async def test_stock_never_goes_negative(ac_client, admin_headers, make_variant):
    _, variant = await make_variant(stock=3)
    res = await ac_client.patch(f"{url_prefix}/admin/inventory/{variant['id']}", headers=admin_headers,
                                json={"adjustment": -5})
    assert res.status_code == 400


@pytest.mark.asyncio
async def test_update_payload_must_pick_one_mode(ac_client, admin_headers, make_variant):
    _, variant = await make_variant()
    res = await ac_client.patch(f"{url_prefix}/admin/inventory/{variant['id']}", headers=admin_headers,
                                json={"adjustment": 1, "stock_quantity": 3})
    assert res.status_code == 422

    res = await ac_client.patch(f"{url_prefix}/admin/inventory/{variant['id']}", headers=admin_headers, json={})
    assert res.status_code == 422


@pytest.mark.asyncio
async def test_low_stock_listing(ac_client, admin_headers, make_variant):
    _, low = await make_variant(stock=2, min_stock_level=5)
    await make_variant(stock=50, min_stock_level=5)

    res = await ac_client.get(f"{url_prefix}/admin/inventory/low-stock", headers=admin_headers)
    assert res.status_code == 200
    items = res.json()["data"]["items"]
    assert [i["variant_id"] for i in items] == [low["id"]]
    assert items[0]["is_low_stock"] is True

    res = await ac_client.get(f"{url_prefix}/admin/inventory", headers=admin_headers)
    assert res.json()["data"]["pagination"]["total_count"] == 2


@pytest.mark.asyncio
async def test_pack_has_no_inventory_row(ac_client, admin_headers, make_variant):
    product, base = await make_variant(stock=12)
    res = await ac_client.post(f"{url_prefix}/admin/products/{product['id']}/variants", headers=admin_headers,
                               json={"sku_code": "DOZEN", "price": 100, "base_unit_variant_id": base["id"],
                                     "pack_multiplier": 12})
    pack = res.json()["data"]["variant"]

    res = await ac_client.get(f"{url_prefix}/admin/inventory/{pack['id']}", headers=admin_headers)
    assert res.status_code == 404
    res = await ac_client.get(f"{url_prefix}/admin/inventory/{base['id']}", headers=admin_headers)
    assert res.json()["data"]["inventory"]["stock_quantity"] == 12
