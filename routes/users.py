from flask import Blueprint, jsonify
from flask_login import current_user, login_required, logout_user

from routes import json_body
from schemas import ProfileUpdate
from services import users as svc

users_bp = Blueprint("users", __name__)


@users_bp.route("/profile", methods=["GET"])
@login_required
def get_profile():
    return jsonify(current_user.to_dict())


@users_bp.route("/profile", methods=["PATCH"])
@login_required
def update_profile():
    user = svc.update_profile(current_user._get_current_object(), json_body(ProfileUpdate))
    return jsonify(user.to_dict())


@users_bp.route("/households", methods=["GET"])
@login_required
def my_households():
    return jsonify(svc.households_with_role(current_user.id))


@users_bp.route("/account", methods=["DELETE"])
@login_required
def delete_account():
    user = current_user._get_current_object()
    svc.delete_account(user)
    logout_user()
    return "", 204
