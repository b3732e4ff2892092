from flask import Blueprint, jsonify
from flask_login import current_user, login_required

from routes import flag, json_body, query_args
from schemas import CategoryBudget, CategoryCreate, CategoryUpdate, MonthQuery
from services import categories as svc

categories_bp = Blueprint("categories", __name__)


@categories_bp.route("/households/<household_id>/categories", methods=["POST"])
@login_required
def create_category(household_id):
    category = svc.create_category(household_id, json_body(CategoryCreate), current_user.id)
    return jsonify(category.to_dict()), 201


@categories_bp.route("/households/<household_id>/categories", methods=["GET"])
@login_required
def list_categories(household_id):
    rows = svc.list_categories(household_id, current_user.id, include_inactive=flag("include_inactive"))
    return jsonify([c.to_dict() for c in rows])


@categories_bp.route("/households/<household_id>/categories/budget-overview", methods=["GET"])
@login_required
def budget_overview(household_id):
    q = query_args(MonthQuery)
    return jsonify(svc.budget_overview(household_id, q.month, q.year, current_user.id))


@categories_bp.route("/categories/<category_id>", methods=["GET"])
@login_required
def get_category(category_id):
    return jsonify(svc.get_category(category_id, current_user.id).to_dict())


@categories_bp.route("/categories/<category_id>", methods=["PATCH"])
@login_required
def update_category(category_id):
    category = svc.update_category(category_id, json_body(CategoryUpdate), current_user.id)
    return jsonify(category.to_dict())


@categories_bp.route("/categories/<category_id>", methods=["DELETE"])
@login_required
def delete_category(category_id):
    svc.delete_category(category_id, current_user.id)
    return "", 204


@categories_bp.route("/categories/<category_id>/budget", methods=["PATCH"])
@login_required
def set_category_budget(category_id):
    data = json_body(CategoryBudget)
    category = svc.set_category_budget(category_id, data.monthly_budget, current_user.id)
    return jsonify(category.to_dict())
