import os

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("ENV", "test")
os.environ.setdefault("RATE_LIMIT_ENABLED", "false")
os.environ.setdefault("PASS_HASH_SCHEME", "pbkdf2_sha256")

import itertools
from datetime import datetime, timedelta, timezone
import pytest
from asgi_lifespan import LifespanManager
from httpx import ASGITransport, AsyncClient
from sqlmodel import SQLModel
from storefront.db.connection import async_engine, async_session
from storefront.main import app
from storefront.seed_scripts.seed_admin import ensure_admin
import storefront.schema.full_schema  # noqa: F401  registers tables on the metadata

url_prefix = "/api/v1"
PASSWORD = "Str0ng!Pass"
ADMIN_EMAIL = "admin@storefront.example.com"

_counter = itertools.count(1)


@pytest.fixture
async def setup_db():
    async with async_engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)
    yield
    # the in-memory database goes away with its only connection
    await async_engine.dispose()


@pytest.fixture
async def ac_client(setup_db):
    async with LifespanManager(app):
        async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
            yield client


@pytest.fixture
async def db_session(setup_db):
    async with async_session() as session:
        yield session


async def login(client, email, password=PASSWORD):
    res = await client.post(f"{url_prefix}/auth/login", json={"email": email, "password": password})
    assert res.status_code == 200, res.text
    return res.json()["data"]


def bearer(access_token):
    return {"Authorization": f"Bearer {access_token}"}


@pytest.fixture
def make_user(ac_client):
    """Sign up a fresh buyer and return (headers, user public id, email)."""
    async def _make(name="Test Buyer"):
        email = f"buyer{next(_counter)}@example.com"
        res = await ac_client.post(f"{url_prefix}/auth/signup",
                                   json={"email": email, "password": PASSWORD, "name": name})
        assert res.status_code == 201, res.text
        tokens = await login(ac_client, email)
        return bearer(tokens["access_token"]), res.json()["data"]["user_id"], email
    return _make


@pytest.fixture
async def admin_headers(ac_client):
    async with async_session() as session:
        await ensure_admin(session, ADMIN_EMAIL, PASSWORD)
    tokens = await login(ac_client, ADMIN_EMAIL)
    return bearer(tokens["access_token"])


@pytest.fixture
def make_variant(ac_client, admin_headers):
    """Create an active product with one base variant, returns (product, variant) payloads."""
    async def _make(price=50000, stock=20, name=None, **variant_fields):
        n = next(_counter)
        res = await ac_client.post(f"{url_prefix}/admin/products", headers=admin_headers,
                                   json={"name": name or f"Test Product {n}", "description": "test product"})
        assert res.status_code == 201, res.text
        product = res.json()["data"]["product"]

        body = {"sku_code": f"SKU-{n}", "price": price, "initial_stock": stock, **variant_fields}
        res = await ac_client.post(f"{url_prefix}/admin/products/{product['id']}/variants",
                                   headers=admin_headers, json=body)
        assert res.status_code == 201, res.text
        return product, res.json()["data"]["variant"]
    return _make


SHIPPING_ADDRESS = {
    "full_name": "Test Buyer",
    "address_line1": "12 MG Road",
    "city": "Bengaluru",
    "state": "Karnataka",
    "pincode": "560001",
    "phone_number": "+919876543210",
}


@pytest.fixture
def place_order(ac_client):
    """Add a variant to the buyer's cart and check out."""
    async def _place(headers, variant_id, quantity=1, gateway="COD", coupon_code=None):
        res = await ac_client.post(f"{url_prefix}/cart/items", headers=headers,
                                   json={"product_variant_id": variant_id, "quantity": quantity})
        assert res.status_code == 200, res.text
        if coupon_code:
            res = await ac_client.post(f"{url_prefix}/cart/coupon", headers=headers, json={"coupon_code": coupon_code})
            assert res.status_code == 200, res.text
        res = await ac_client.post(f"{url_prefix}/orders", headers=headers,
                                   json={"shipping_address": SHIPPING_ADDRESS, "payment_gateway": gateway})
        assert res.status_code == 201, res.text
        return res.json()["data"]["order"]
    return _place


@pytest.fixture
def make_coupon(ac_client, admin_headers):
    """Create a live campaign and assign one coupon to user_id, returns (campaign, coupon code)."""
    async def _make(user_id, discount_type="AMOUNT", discount_value=10000, **campaign_fields):
        start = datetime.now(timezone.utc) - timedelta(days=1)
        body = {"name": f"Campaign {next(_counter)}", "code_prefix": "SAVE", "discount_type": discount_type,
                "discount_value": discount_value, "valid_from": start.isoformat(),
                "valid_until": (start + timedelta(days=30)).isoformat(), **campaign_fields}
        res = await ac_client.post(f"{url_prefix}/admin/coupon-campaigns", headers=admin_headers, json=body)
        assert res.status_code == 201, res.text
        campaign = res.json()["data"]["campaign"]

        res = await ac_client.post(f"{url_prefix}/admin/coupon-campaigns/{campaign['id']}/assign",
                                   headers=admin_headers, json={"user_ids": [user_id]})
        assert res.status_code == 201, res.text
        return campaign, res.json()["data"]["assigned"][0]["coupon_code"]
    return _make


@pytest.fixture
def fake_psp(monkeypatch):
    """Stand in for the Razorpay orders API, recording every call."""
    calls = []
    ids = itertools.count(1)

    async def _create(amount_paise, currency, receipt, notes=None, **kwargs):
        calls.append({"amount": amount_paise, "currency": currency, "receipt": receipt, "notes": notes})
        return {"id": f"order_TEST{next(ids)}", "amount": amount_paise, "currency": currency}

    monkeypatch.setattr("storefront.payments.services.create_psp_order", _create)
    return calls
