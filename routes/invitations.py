from flask import Blueprint, jsonify
from flask_login import current_user, login_required

from routes import json_body
from schemas import InviteMember
from services import invitations as svc

invitations_bp = Blueprint("invitations", __name__)


@invitations_bp.route("", methods=["GET"])
@login_required
def my_invitations():
    return jsonify([i.to_dict() for i in svc.list_pending_for_email(current_user.email)])


@invitations_bp.route("/household/<household_id>/invite", methods=["POST"])
@login_required
def invite_member(household_id):
    invitation = svc.invite_member(household_id, json_body(InviteMember), current_user.id)
    return jsonify(invitation.to_dict()), 201


@invitations_bp.route("/household/<household_id>", methods=["GET"])
@login_required
def household_invitations(household_id):
    rows = svc.list_household_invitations(household_id, current_user.id)
    return jsonify([i.to_dict() for i in rows])


@invitations_bp.route("/<invitation_id>/accept", methods=["POST"])
@login_required
def accept_invitation(invitation_id):
    membership = svc.accept_invitation(invitation_id, current_user)
    return jsonify({
        "message": "Invitation accepted",
        "membership": membership.to_dict(),
        "household": membership.household.to_dict(),
    })


@invitations_bp.route("/<invitation_id>", methods=["DELETE"])
@login_required
def cancel_invitation(invitation_id):
    svc.cancel_invitation(invitation_id, current_user.id)
    return "", 204
