import pytest
from conftest import url_prefix


@pytest.mark.asyncio
async def test_add_list_remove_favorite(ac_client, make_user, make_variant):
    headers, _, _ = await make_user()
    product, variant = await make_variant(price=12000, stock=0, name="Linen Throw")

    res = await ac_client.post(f"{url_prefix}/favorites", headers=headers, json={"product_variant_id": variant["id"]})
    assert res.status_code == 201
    res = await ac_client.post(f"{url_prefix}/favorites", headers=headers, json={"product_variant_id": variant["id"]})
    assert res.status_code == 409

    items = (await ac_client.get(f"{url_prefix}/favorites", headers=headers)).json()["data"]["items"]
    assert len(items) == 1
    assert items[0]["product_slug"] == product["slug"]
    assert items[0]["price"] == 12000
    assert items[0]["is_available"] is True
    assert items[0]["in_stock"] is False

    res = await ac_client.delete(f"{url_prefix}/favorites/{variant['id']}", headers=headers)
    assert res.status_code == 200
    res = await ac_client.delete(f"{url_prefix}/favorites/{variant['id']}", headers=headers)
    assert res.status_code == 404


@pytest.mark.asyncio
async def test_favorite_survives_deactivation(ac_client, admin_headers, make_user, make_variant):
    headers, _, _ = await make_user()
    product, variant = await make_variant()
    await ac_client.post(f"{url_prefix}/favorites", headers=headers, json={"product_variant_id": variant["id"]})

    await ac_client.delete(f"{url_prefix}/admin/products/{product['id']}", headers=admin_headers)

    items = (await ac_client.get(f"{url_prefix}/favorites", headers=headers)).json()["data"]["items"]
    assert items[0]["is_available"] is False

    other_headers, _, _ = await make_user()
    res = await ac_client.post(f"{url_prefix}/favorites", headers=other_headers,
                               json={"product_variant_id": variant["id"]})
    assert res.status_code == 404
