import pytest
from conftest import url_prefix


@pytest.mark.asyncio
async def test_category_tree_and_public_listing(ac_client, admin_headers):
    res = await ac_client.post(f"{url_prefix}/admin/categories", headers=admin_headers,
                               json={"name": "Home Decor", "image_url": "https://img.example.com/decor.jpg"})
    assert res.status_code == 201
    parent = res.json()["data"]["category"]
    assert parent["slug"] == "home-decor"

    res = await ac_client.post(f"{url_prefix}/admin/categories", headers=admin_headers,
                               json={"name": "Wall Art", "parent_id": parent["id"],
                                     "image_url": "https://img.example.com/wall.jpg"})
    assert res.status_code == 201
    assert res.json()["data"]["category"]["parent_id"] == parent["id"]

    res = await ac_client.get(f"{url_prefix}/categories")
    assert res.status_code == 200
    assert {c["slug"] for c in res.json()["data"]["items"]} == {"home-decor", "wall-art"}

    res = await ac_client.get(f"{url_prefix}/categories/wall-art")
    assert res.status_code == 200


@pytest.mark.asyncio
async def test_duplicate_category_name_conflicts(ac_client, admin_headers):
    body = {"name": "Lighting", "image_url": "https://img.example.com/l.jpg"}
    assert (await ac_client.post(f"{url_prefix}/admin/categories", headers=admin_headers, json=body)).status_code == 201

    res = await ac_client.post(f"{url_prefix}/admin/categories", headers=admin_headers,
                               json={**body, "name": "lighting"})
    assert res.status_code == 409


@pytest.mark.asyncio
async def test_category_cannot_be_its_own_parent(ac_client, admin_headers):
    res = await ac_client.post(f"{url_prefix}/admin/categories", headers=admin_headers,
                               json={"name": "Rugs", "image_url": "https://img.example.com/r.jpg"})
    category_id = res.json()["data"]["category"]["id"]

    res = await ac_client.patch(f"{url_prefix}/admin/categories/{category_id}", headers=admin_headers,
                                json={"parent_id": category_id})
    assert res.status_code == 400


@pytest.mark.asyncio
async def test_brand_delete_soft_and_hard(ac_client, admin_headers):
    res = await ac_client.post(f"{url_prefix}/admin/brands", headers=admin_headers, json={"name": "Acme"})
    assert res.status_code == 201
    brand_id = res.json()["data"]["brand"]["id"]

    res = await ac_client.delete(f"{url_prefix}/admin/brands/{brand_id}", headers=admin_headers)
    assert res.status_code == 200
    assert res.json()["data"]["hard"] is False
    brands = (await ac_client.get(f"{url_prefix}/brands")).json()["data"]["items"]
    assert brands == []

    res = await ac_client.delete(f"{url_prefix}/admin/brands/{brand_id}?hard=true", headers=admin_headers)
    assert res.status_code == 400

    res = await ac_client.delete(f"{url_prefix}/admin/brands/{brand_id}?hard=true&confirm=true",
                                 headers=admin_headers)
    assert res.status_code == 200
    res = await ac_client.get(f"{url_prefix}/admin/brands/{brand_id}", headers=admin_headers)
    assert res.status_code == 404


@pytest.mark.asyncio
async def test_referenced_brand_cannot_be_hard_deleted(ac_client, admin_headers):
    brand = (await ac_client.post(f"{url_prefix}/admin/brands", headers=admin_headers,
                                  json={"name": "Lumen"})).json()["data"]["brand"]
    res = await ac_client.post(f"{url_prefix}/admin/products", headers=admin_headers,
                               json={"name": "Desk Lamp", "brand_id": brand["id"]})
    assert res.status_code == 201

    res = await ac_client.delete(f"{url_prefix}/admin/brands/{brand['id']}?hard=true&confirm=true",
                                 headers=admin_headers)
    assert res.status_code == 409


@pytest.mark.asyncio
async def test_suppliers_are_admin_only(ac_client, admin_headers, make_user):
    res = await ac_client.post(f"{url_prefix}/admin/suppliers", headers=admin_headers,
                               json={"name": "Jaipur Crafts", "phone": "+919812345678"})
    assert res.status_code == 201

    items = (await ac_client.get(f"{url_prefix}/admin/suppliers", headers=admin_headers)).json()["data"]["items"]
    assert [s["name"] for s in items] == ["Jaipur Crafts"]

    headers, _, _ = await make_user()
    res = await ac_client.get(f"{url_prefix}/admin/suppliers", headers=headers)
    assert res.status_code == 403


@pytest.mark.asyncio
async def test_malformed_public_id_is_not_found(ac_client, admin_headers):
    res = await ac_client.get(f"{url_prefix}/admin/brands/not-a-uuid", headers=admin_headers)
    assert res.status_code == 404
