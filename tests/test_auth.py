import pytest
from conftest import PASSWORD, bearer, login, url_prefix


@pytest.mark.asyncio
async def test_signup_and_login(ac_client):
    payload = {"email": "New.User@Example.com", "password": PASSWORD, "name": "New User"}
    res = await ac_client.post(f"{url_prefix}/auth/signup", json=payload)
    assert res.status_code == 201
    body = res.json()
    assert body["status"] == "ok"
    assert body["data"]["user_id"]

    tokens = await login(ac_client, "new.user@example.com")
    assert tokens["token_type"] == "bearer"
    assert tokens["access_token"] and tokens["refresh_token"]


@pytest.mark.asyncio
async def test_signup_duplicate_email(ac_client):
    payload = {"email": "dup@example.com", "password": PASSWORD}
    assert (await ac_client.post(f"{url_prefix}/auth/signup", json=payload)).status_code == 201

    res = await ac_client.post(f"{url_prefix}/auth/signup", json=payload)
    assert res.status_code == 400
    assert res.json()["error"]["code"] == "HTTP_400"


@pytest.mark.asyncio
@pytest.mark.parametrize("password", ["short1!", "alllower1!", "ALLUPPER1!", "NoDigits!!", "NoSpecial12"])
async def test_signup_rejects_weak_passwords(ac_client, password):
    res = await ac_client.post(f"{url_prefix}/auth/signup", json={"email": "weak@example.com", "password": password})
    assert res.status_code == 400


@pytest.mark.asyncio
async def test_signup_rejects_unknown_fields(ac_client):
    res = await ac_client.post(f"{url_prefix}/auth/signup",
                               json={"email": "extra@example.com", "password": PASSWORD, "is_admin": True})
    assert res.status_code == 422
    assert res.json()["error"]["code"] == "UNPROCESSABLE_ENTITY"


@pytest.mark.asyncio
async def test_login_wrong_password(ac_client, make_user):
    _, _, email = await make_user()
    res = await ac_client.post(f"{url_prefix}/auth/login", json={"email": email, "password": "Wr0ng!Pass"})
    assert res.status_code == 401


@pytest.mark.asyncio
async def test_refresh_rotates_and_detects_reuse(ac_client, make_user):
    _, _, email = await make_user()
    tokens = await login(ac_client, email)

    res = await ac_client.post(f"{url_prefix}/auth/refresh", json={"refresh_token": tokens["refresh_token"]})
    assert res.status_code == 200
    rotated = res.json()["data"]
    assert rotated["refresh_token"] != tokens["refresh_token"]

    # replaying the old token revokes the whole family
    res = await ac_client.post(f"{url_prefix}/auth/refresh", json={"refresh_token": tokens["refresh_token"]})
    assert res.status_code == 401
    res = await ac_client.post(f"{url_prefix}/auth/refresh", json={"refresh_token": rotated["refresh_token"]})
    assert res.status_code == 401


@pytest.mark.asyncio
async def test_logout_revokes_refresh_token(ac_client, make_user):
    _, _, email = await make_user()
    tokens = await login(ac_client, email)

    res = await ac_client.post(f"{url_prefix}/auth/logout", json={"refresh_token": tokens["refresh_token"]})
    assert res.status_code == 200

    res = await ac_client.post(f"{url_prefix}/auth/refresh", json={"refresh_token": tokens["refresh_token"]})
    assert res.status_code == 401


@pytest.mark.asyncio
async def test_protected_route_needs_token(ac_client):
    res = await ac_client.get(f"{url_prefix}/users/me")
    assert res.status_code == 401
    assert res.json()["error"]["code"] == "INVALID_AUTH"

    res = await ac_client.get(f"{url_prefix}/users/me", headers=bearer("not-a-jwt"))
    assert res.status_code == 401


@pytest.mark.asyncio
async def test_email_verification_flow(ac_client, make_user, monkeypatch):
    monkeypatch.setattr("storefront.auth.services.generate_otp", lambda: "123456")
    headers, _, _ = await make_user()

    res = await ac_client.post(f"{url_prefix}/auth/verify/request", headers=headers, json={"channel": "email"})
    assert res.status_code == 200

    res = await ac_client.post(f"{url_prefix}/auth/verify/confirm", headers=headers,
                               json={"channel": "email", "code": "654321"})
    assert res.status_code == 400

    res = await ac_client.post(f"{url_prefix}/auth/verify/confirm", headers=headers,
                               json={"channel": "email", "code": "123456"})
    assert res.status_code == 200

    me = (await ac_client.get(f"{url_prefix}/users/me", headers=headers)).json()["data"]["user"]
    assert me["email_verified_at"] is not None


@pytest.mark.asyncio
async def test_sms_verification_needs_phone(ac_client, make_user):
    headers, _, _ = await make_user()
    res = await ac_client.post(f"{url_prefix}/auth/verify/request", headers=headers, json={"channel": "sms"})
    assert res.status_code == 400
