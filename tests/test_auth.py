# tests/test_auth.py
import pytest

from resumedesk.core import errors
from resumedesk.core.config import settings
from resumedesk.core.security import create_access_token, decode_access_token
from resumedesk.db.models import User

JWT_SECRET = "test-jwt-secret"


@pytest.fixture
def jwt_secret(monkeypatch):
    monkeypatch.setattr(settings, "SUPABASE_JWT_SECRET", JWT_SECRET)
    return JWT_SECRET


def test_decode_reads_profile_claims(jwt_secret):
    token = create_access_token(
        "sub-1",
        jwt_secret,
        email="jane@example.com",
        user_metadata={"full_name": "Jane van Dyke", "avatar_url": "https://cdn/jane.png"},
    )
    claims = decode_access_token(token)
    assert claims.sub == "sub-1"
    assert claims.email == "jane@example.com"
    assert claims.first_name == "Jane"
    assert claims.last_name == "van Dyke"
    assert claims.avatar_url == "https://cdn/jane.png"


def test_decode_rejects_wrong_secret(jwt_secret):
    token = create_access_token("sub-1", "someone-elses-secret")
    with pytest.raises(errors.Unauthenticated):
        decode_access_token(token)


def test_decode_rejects_expired_token(jwt_secret):
    token = create_access_token("sub-1", jwt_secret, expires_in=-60)
    with pytest.raises(errors.Unauthenticated):
        decode_access_token(token)


def test_decode_without_configured_secret(monkeypatch):
    monkeypatch.setattr(settings, "SUPABASE_JWT_SECRET", None)
    with pytest.raises(errors.ServiceUnavailable):
        decode_access_token("anything")


@pytest.mark.asyncio
async def test_authenticated_request_upserts_user(api, db_session, jwt_secret):
    api.logout()
    token = create_access_token("sub-new", jwt_secret, email="new@example.com",
                                user_metadata={"name": "New Person"})
    async with api.client() as ac:
        r = await ac.get("/api/v1/auth/user", headers={"Authorization": f"Bearer {token}"})
        assert r.status_code == 200, r.text
        body = r.json()
        assert body["id"] == "sub-new"
        assert body["email"] == "new@example.com"
        assert body["firstName"] == "New"

        token = create_access_token("sub-new", jwt_secret, email="renamed@example.com")
        r = await ac.get("/api/v1/auth/user", headers={"Authorization": f"Bearer {token}"})
        assert r.json()["email"] == "renamed@example.com"

    assert db_session.query(User).filter_by(id="sub-new").count() == 1


@pytest.mark.asyncio
async def test_missing_or_bad_token_is_401(api, jwt_secret):
    api.logout()
    async with api.client() as ac:
        r = await ac.get("/api/v1/orders")
        assert r.status_code == 401
        assert r.json()["code"] == "unauthenticated"

        r = await ac.get("/api/v1/orders", headers={"Authorization": "Bearer not-a-jwt"})
        assert r.status_code == 401


@pytest.mark.asyncio
async def test_auth_health(api):
    async with api.client() as ac:
        r = await ac.get("/api/v1/auth/health")
        assert r.status_code == 200
        assert r.json()["status"] == "ok"
