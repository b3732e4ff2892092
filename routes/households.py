from flask import Blueprint, jsonify
from flask_login import current_user, login_required

from routes import json_body
from schemas import HouseholdCreate, HouseholdUpdate, MemberAdd, MemberRoleUpdate
from services import households as svc

households_bp = Blueprint("households", __name__)


@households_bp.route("", methods=["POST"])
@login_required
def create_household():
    hh = svc.create_household(json_body(HouseholdCreate), current_user.id)
    return jsonify(hh.to_dict()), 201


@households_bp.route("", methods=["GET"])
@login_required
def list_households():
    return jsonify([hh.to_dict() for hh in svc.list_user_households(current_user.id)])


@households_bp.route("/<household_id>", methods=["GET"])
@login_required
def get_household(household_id):
    return jsonify(svc.get_household(household_id, current_user.id).to_dict())


@households_bp.route("/<household_id>", methods=["PATCH"])
@login_required
def update_household(household_id):
    hh = svc.update_household(household_id, json_body(HouseholdUpdate), current_user.id)
    return jsonify(hh.to_dict())


@households_bp.route("/<household_id>", methods=["DELETE"])
@login_required
def delete_household(household_id):
    svc.delete_household(household_id, current_user.id)
    return "", 204


# ---------- members ----------
@households_bp.route("/<household_id>/members", methods=["POST"])
@login_required
def add_member(household_id):
    data = json_body(MemberAdd)
    membership = svc.add_member(household_id, data.user_id, data.role, current_user.id)
    return jsonify(membership.to_dict()), 201


@households_bp.route("/<household_id>/members/<user_id>", methods=["DELETE"])
@login_required
def remove_member(household_id, user_id):
    svc.remove_member(household_id, user_id, current_user.id)
    return "", 204


@households_bp.route("/<household_id>/members/<user_id>/role", methods=["PATCH"])
@login_required
def update_member_role(household_id, user_id):
    data = json_body(MemberRoleUpdate)
    membership = svc.update_member_role(household_id, user_id, data.role, current_user.id)
    return jsonify(membership.to_dict())


@households_bp.route("/<household_id>/leave", methods=["POST"])
@login_required
def leave_household(household_id):
    svc.leave_household(household_id, current_user.id)
    return jsonify({"message": "Left household"})
