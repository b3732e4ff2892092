import logging

import requests
from flask import Blueprint, current_app, jsonify, request
from flask_login import current_user, login_required
from sqlalchemy.exc import IntegrityError
from werkzeug.exceptions import Unauthorized

from extensions import db, login_manager
from models import User

logger = logging.getLogger(__name__)

auth_bp = Blueprint("auth", __name__)

IDENTITY_TIMEOUT = 10


class IdentityProviderError(RuntimeError):
    """The identity provider could not be reached or answered with garbage."""


def _provider_url(path):
    base = current_app.config.get("IDENTITY_PROVIDER_URL")
    if not base:
        raise IdentityProviderError("IDENTITY_PROVIDER_URL is not configured")
    return base.rstrip("/") + path


def fetch_identity(token):
    """
    Ask the identity provider who owns ``token``.

    Returns the provider's user document (``id``, ``email``,
    ``user_metadata``) or None when the token is rejected.
    """
    headers = {"Authorization": f"Bearer {token}"}
    anon_key = current_app.config.get("IDENTITY_PROVIDER_ANON_KEY")
    if anon_key:
        headers["apikey"] = anon_key
    try:
        resp = requests.get(_provider_url("/auth/v1/user"), headers=headers, timeout=IDENTITY_TIMEOUT)
    except requests.RequestException as e:
        raise IdentityProviderError(f"identity provider unreachable: {e}") from e
    if resp.status_code in (401, 403):
        return None
    if resp.status_code != 200:
        raise IdentityProviderError(f"identity provider answered {resp.status_code}")
    try:
        data = resp.json()
    except ValueError as e:
        raise IdentityProviderError("identity provider sent a non-JSON body") from e
    if not isinstance(data, dict):
        raise IdentityProviderError("identity provider sent an unexpected body")
    if not data.get("id"):
        return None
    return data


def send_invitation_email(email, redirect_to, data):
    """
    Have the identity provider mail an invitation link.

    Returns True when the provider accepted the request. Without a service key
    nothing is sent.
    """
    service_key = current_app.config.get("IDENTITY_PROVIDER_SERVICE_KEY")
    if not service_key:
        logger.info("No identity service key configured; not mailing invitation to %s", email)
        return False
    headers = {"Authorization": f"Bearer {service_key}", "apikey": service_key}
    payload = {"email": email, "data": data}
    try:
        resp = requests.post(
            _provider_url("/auth/v1/invite"),
            params={"redirect_to": redirect_to},
            json=payload,
            headers=headers,
            timeout=IDENTITY_TIMEOUT,
        )
    except (requests.RequestException, IdentityProviderError) as e:
        logger.warning("Invitation mail to %s failed: %s", email, e)
        return False
    if resp.status_code >= 400:
        logger.warning("Identity provider refused invitation mail to %s: %s", email, resp.status_code)
        return False
    return True


def ensure_user(identity):
    """Local user row for a provider identity, created on first sight."""
    user = db.session.get(User, identity["id"])
    email = (identity.get("email") or "").strip().lower()
    if user is None:
        meta = identity.get("user_metadata") or {}
        user = User(
            id=identity["id"],
            email=email,
            full_name=meta.get("full_name") or email.split("@")[0],
            avatar_url=meta.get("avatar_url"),
            preferences={},
        )
        db.session.add(user)
        try:
            db.session.commit()
        except IntegrityError:
            # another request created it first
            db.session.rollback()
            return db.session.get(User, identity["id"])
        logger.info("Created local user %s (%s)", user.id, user.email)
    elif email and user.email != email:
        user.email = email
        db.session.commit()
    return user


def bearer_token(req):
    header = req.headers.get("Authorization", "")
    scheme, _, token = header.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()


@login_manager.request_loader
def load_user_from_request(req):
    token = bearer_token(req)
    if not token:
        return None
    try:
        identity = fetch_identity(token)
    except IdentityProviderError:
        logger.exception("Token verification failed")
        return None
    if identity is None:
        return None
    return ensure_user(identity)


@login_manager.user_loader
def load_user(uid):
    return db.session.get(User, uid)


@login_manager.unauthorized_handler
def unauthorized():
    raise Unauthorized("Authentication required")


@auth_bp.route("/me", methods=["GET"])
@login_required
def me():
    return jsonify(current_user.to_dict())
