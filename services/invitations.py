"""E-mail invitations into a household."""
import logging
from datetime import timedelta

from flask import current_app
from werkzeug.exceptions import BadRequest, Forbidden, NotFound

import auth
from extensions import db
from models import HouseholdMember, Invitation, User, utcnow
from permissions import MANAGER_ROLES, Permission, check_user_permission, get_membership
from services.households import add_membership, find_household

logger = logging.getLogger(__name__)


def find_invitation(invitation_id):
    invitation = db.session.get(Invitation, invitation_id)
    if invitation is None:
        raise NotFound("Invitation not found")
    return invitation


def _pending(household_id, email, now):
    return Invitation.query.filter(
        Invitation.household_id == household_id,
        Invitation.email == email,
        Invitation.is_accepted.is_(False),
        Invitation.expires_at > now,
    ).first()


def invite_member(household_id, data, user_id):
    """
    Record an invitation for ``data.email`` and ask the identity provider to
    mail it. A failed mail is logged; the invitation is kept.
    """
    hh = find_household(household_id)
    check_user_permission(household_id, user_id, Permission.INVITE_MEMBERS)
    email = data.email.lower()
    already_member = (
        HouseholdMember.query.join(User, User.id == HouseholdMember.user_id)
        .filter(
            HouseholdMember.household_id == household_id,
            HouseholdMember.is_active.is_(True),
            User.email == email,
        )
        .first()
    )
    if already_member:
        raise BadRequest("User is already a member of this household")
    now = utcnow()
    if _pending(household_id, email, now):
        raise BadRequest("An invitation has already been sent to this email")

    ttl = int(current_app.config.get("INVITATION_TTL_DAYS", 7))
    invitation = Invitation(
        household_id=household_id,
        email=email,
        role=data.role,
        invited_by=user_id,
        invited_at=now,
        expires_at=now + timedelta(days=ttl),
    )
    db.session.add(invitation)
    db.session.commit()

    frontend = current_app.config.get("FRONTEND_URL", "").rstrip("/")
    sent = auth.send_invitation_email(
        email,
        f"{frontend}/invite/{invitation.id}",
        {"household_id": household_id, "household_name": hh.name, "invitation_id": invitation.id},
    )
    logger.info("User %s invited %s to household %s (mailed=%s)", user_id, email, household_id, sent)
    return invitation


def accept_invitation(invitation_id, user):
    invitation = find_invitation(invitation_id)
    if invitation.is_accepted:
        raise BadRequest("Invitation has already been accepted")
    if invitation.is_expired():
        raise BadRequest("Invitation has expired")
    if (user.email or "").lower() != invitation.email:
        raise Forbidden("This invitation was sent to a different email address")
    membership = add_membership(invitation.household_id, user.id, invitation.role)
    membership.invited_at = invitation.invited_at
    invitation.is_accepted = True
    invitation.accepted_at = utcnow()
    db.session.commit()
    logger.info("User %s joined household %s", user.id, invitation.household_id)
    return membership


def list_household_invitations(household_id, user_id):
    find_household(household_id)
    check_user_permission(household_id, user_id, allowed_roles=MANAGER_ROLES)
    return (
        Invitation.query.filter_by(household_id=household_id)
        .order_by(Invitation.invited_at.desc())
        .all()
    )


def list_pending_for_email(email):
    return (
        Invitation.query.filter(
            Invitation.email == (email or "").lower(),
            Invitation.is_accepted.is_(False),
            Invitation.expires_at > utcnow(),
        )
        .order_by(Invitation.invited_at.desc())
        .all()
    )


def cancel_invitation(invitation_id, user_id):
    invitation = find_invitation(invitation_id)
    if invitation.invited_by != user_id:
        membership = get_membership(invitation.household_id, user_id)
        if membership is None or membership.role not in MANAGER_ROLES:
            raise Forbidden("Only the inviter or a household admin can cancel this invitation")
    if invitation.is_accepted:
        raise BadRequest("Invitation has already been accepted")
    db.session.delete(invitation)
    db.session.commit()
