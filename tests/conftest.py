"""
Shared fixtures.

The identity provider is never called: ``auth.fetch_identity`` is replaced so
that a bearer token ``token-<name>`` belongs to user ``user-<name>`` with the
e-mail ``<name>@example.com``. Invitation mails are captured in ``mailbox``.
"""

import pytest

import auth
from app import create_app
from extensions import db


def fake_identity(token):
    if not token.startswith("token-"):
        return None
    name = token[len("token-"):]
    return {
        "id": f"user-{name}",
        "email": f"{name}@example.com",
        "user_metadata": {"full_name": name.title()},
    }


class UserClient:
    """Test client that sends one user's bearer token with every request."""

    def __init__(self, client, name):
        self.client = client
        self.name = name
        self.id = f"user-{name}"
        self.email = f"{name}@example.com"
        self.headers = {"Authorization": f"Bearer token-{name}"}

    def _send(self, method, url, **kwargs):
        headers = dict(self.headers)
        headers.update(kwargs.pop("headers", {}))
        return getattr(self.client, method)(url, headers=headers, **kwargs)

    def get(self, url, **kwargs):
        return self._send("get", url, **kwargs)

    def post(self, url, **kwargs):
        return self._send("post", url, **kwargs)

    def put(self, url, **kwargs):
        return self._send("put", url, **kwargs)

    def patch(self, url, **kwargs):
        return self._send("patch", url, **kwargs)

    def delete(self, url, **kwargs):
        return self._send("delete", url, **kwargs)


@pytest.fixture
def mailbox(monkeypatch):
    sent = []

    def fake_send(email, redirect_to, data):
        sent.append({"email": email, "redirect_to": redirect_to, "data": data})
        return True

    monkeypatch.setattr(auth, "send_invitation_email", fake_send)
    return sent


@pytest.fixture
def app(monkeypatch, mailbox):
    monkeypatch.setattr(auth, "fetch_identity", fake_identity)
    app = create_app({
        "TESTING": True,
        "SQLALCHEMY_DATABASE_URI": "sqlite://",
        "IDENTITY_PROVIDER_URL": "http://identity.test",
        "FRONTEND_URL": "http://app.test",
        "LOG_LEVEL": "WARNING",
    })
    yield app
    with app.app_context():
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def login(client):
    """``login("alice")`` -> a client acting as alice; the user row is created on first call."""
    def _login(name):
        user = UserClient(client, name)
        assert user.get("/auth/me").status_code == 200
        return user
    return _login


@pytest.fixture
def owner(login):
    return login("alice")


@pytest.fixture
def household(owner):
    resp = owner.post("/households", json={"name": "Home", "description": "Our flat"})
    assert resp.status_code == 201
    return resp.get_json()


@pytest.fixture
def add_member(owner, household, login):
    """``add_member("bob", "member")`` joins bob to the household and returns his client."""
    def _add(name, role="member"):
        user = login(name)
        resp = owner.post(
            f"/households/{household['id']}/members",
            json={"user_id": user.id, "role": role},
        )
        assert resp.status_code == 201, resp.get_json()
        return user
    return _add


@pytest.fixture
def category(owner, household):
    resp = owner.post(
        f"/households/{household['id']}/categories",
        json={"name": "Pets", "color": "#123ABC", "monthly_budget": 300},
    )
    assert resp.status_code == 201
    return resp.get_json()
