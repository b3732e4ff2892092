"""Tests for the current user's profile and account."""

import pytest
import requests

import auth
from extensions import db
from models import User

# captured before the fixtures replace them
real_fetch_identity = auth.fetch_identity
real_send_invitation_email = auth.send_invitation_email


class TestIdentity:
    """Tests for resolving bearer tokens to local users."""

    def test_me_creates_user(self, app, client):
        resp = client.get("/auth/me", headers={"Authorization": "Bearer token-dana"})
        assert resp.status_code == 200
        assert resp.get_json()["email"] == "dana@example.com"
        assert resp.get_json()["full_name"] == "Dana"
        with app.app_context():
            assert User.query.count() == 1

    def test_repeat_requests_reuse_user(self, app, login):
        login("dana").get("/auth/me")
        login("dana").get("/auth/me")
        with app.app_context():
            assert User.query.count() == 1

    def test_concurrent_first_sight_reuses_row(self, app, monkeypatch):
        identity = {"id": "user-erin", "email": "erin@example.com"}
        with app.app_context():
            auth.ensure_user(identity)

        real_get = db.session.get
        misses = []

        def stale_get(model, key):
            # the first lookup runs before the other request committed
            if not misses:
                misses.append(key)
                return None
            return real_get(model, key)

        with app.app_context():
            monkeypatch.setattr(db.session, "get", stale_get)
            user = auth.ensure_user(identity)
            assert user.id == "user-erin"
            assert misses == ["user-erin"]
            assert User.query.count() == 1

    @pytest.mark.parametrize("header", ["", "Basic abc", "Bearer ", "Bearer bogus"])
    def test_bad_headers(self, client, header):
        assert client.get("/auth/me", headers={"Authorization": header}).status_code == 401

    def test_provider_outage_is_401(self, client, monkeypatch):
        def down(token):
            raise auth.IdentityProviderError("down")
        monkeypatch.setattr(auth, "fetch_identity", down)
        assert client.get("/auth/me", headers={"Authorization": "Bearer token-dana"}).status_code == 401

    def test_health_is_public(self, client):
        assert client.get("/health").get_json() == {"status": "ok"}


class FakeResponse:
    def __init__(self, status_code, payload=None):
        self.status_code = status_code
        self._payload = {} if payload is None else payload

    def json(self):
        if isinstance(self._payload, Exception):
            raise self._payload
        return self._payload


class TestIdentityProviderCalls:
    """Tests for the HTTP calls made to the identity provider."""

    def test_fetch_identity(self, app, monkeypatch):
        seen = {}

        def fake_get(url, headers, timeout):
            seen.update(url=url, headers=headers)
            return FakeResponse(200, {"id": "abc", "email": "x@example.com"})

        monkeypatch.setattr(requests, "get", fake_get)
        app.config["IDENTITY_PROVIDER_ANON_KEY"] = "anon"
        with app.app_context():
            identity = real_fetch_identity("tok")
        assert identity["id"] == "abc"
        assert seen["url"] == "http://identity.test/auth/v1/user"
        assert seen["headers"] == {"Authorization": "Bearer tok", "apikey": "anon"}

    def test_rejected_token(self, app, monkeypatch):
        monkeypatch.setattr(requests, "get", lambda *a, **kw: FakeResponse(401))
        with app.app_context():
            assert real_fetch_identity("tok") is None

    def test_provider_error(self, app, monkeypatch):
        monkeypatch.setattr(requests, "get", lambda *a, **kw: FakeResponse(500))
        with app.app_context():
            with pytest.raises(auth.IdentityProviderError):
                real_fetch_identity("tok")

    @pytest.mark.parametrize("payload", [ValueError("Expecting value"), ["abc"], "abc"])
    def test_unreadable_identity_body(self, app, monkeypatch, payload):
        monkeypatch.setattr(requests, "get", lambda *a, **kw: FakeResponse(200, payload))
        with app.app_context():
            with pytest.raises(auth.IdentityProviderError):
                real_fetch_identity("tok")

    def test_unreadable_identity_body_is_401(self, client, monkeypatch):
        monkeypatch.setattr(auth, "fetch_identity", real_fetch_identity)
        monkeypatch.setattr(requests, "get", lambda *a, **kw: FakeResponse(200, ValueError("Expecting value")))
        assert client.get("/auth/me", headers={"Authorization": "Bearer tok"}).status_code == 401

    def test_invitation_mail_needs_service_key(self, app, monkeypatch):
        calls = []
        monkeypatch.setattr(requests, "post", lambda *a, **kw: calls.append(kw) or FakeResponse(200))
        with app.app_context():
            assert real_send_invitation_email("b@example.com", "http://app.test/invite/1", {}) is False
            app.config["IDENTITY_PROVIDER_SERVICE_KEY"] = "service"
            assert real_send_invitation_email("b@example.com", "http://app.test/invite/1", {}) is True
        assert len(calls) == 1
        assert calls[0]["params"] == {"redirect_to": "http://app.test/invite/1"}
        assert calls[0]["json"] == {"email": "b@example.com", "data": {}}

    def test_invitation_mail_failure_is_swallowed(self, app, monkeypatch):
        def boom(*a, **kw):
            raise requests.ConnectionError("refused")
        monkeypatch.setattr(requests, "post", boom)
        app.config["IDENTITY_PROVIDER_SERVICE_KEY"] = "service"
        with app.app_context():
            assert real_send_invitation_email("b@example.com", "x", {}) is False


class TestProfile:
    """Tests for /users endpoints."""

    def test_get_profile(self, owner):
        assert owner.get("/users/profile").get_json()["id"] == owner.id

    def test_update_profile(self, owner):
        resp = owner.patch("/users/profile", json={"full_name": "Alice A.", "preferences": {"theme": "dark"}})
        assert resp.status_code == 200
        assert resp.get_json()["full_name"] == "Alice A."
        assert owner.get("/users/profile").get_json()["preferences"] == {"theme": "dark"}

    def test_households_with_role(self, owner, household, add_member):
        member = add_member("bob", "viewer")
        rows = member.get("/users/households").get_json()
        assert [(h["id"], h["role"]) for h in rows] == [(household["id"], "viewer")]
        assert "members" not in rows[0]

    def test_owner_cannot_delete_account(self, owner, household):
        assert owner.delete("/users/account").status_code == 403

    def test_delete_account(self, app, household, add_member):
        member = add_member("bob")
        assert member.delete("/users/account").status_code == 204
        with app.app_context():
            assert User.query.filter_by(id=member.id).count() == 0

    def test_deleted_author_leaves_transactions(self, owner, household, add_member):
        member = add_member("bob")
        txn = member.post(f"/households/{household['id']}/transactions",
                          json={"amount": 5, "date": "2024-03-01"}).get_json()
        assert member.delete("/users/account").status_code == 204
        kept = owner.get(f"/transactions/{txn['id']}").get_json()
        assert kept["created_by_id"] is None
        assert kept["created_by_name"] is None
