from flask import Blueprint, jsonify
from flask_login import current_user, login_required

from routes import json_body, query_args, requested_household_ids
from schemas import BudgetCreate, BudgetFilters, BudgetUpdate, HouseholdQuery
from services import budgets as svc

budgets_bp = Blueprint("budgets", __name__)


@budgets_bp.route("", methods=["POST"])
@login_required
def create_budget():
    budget = svc.create_budget(json_body(BudgetCreate), current_user.id)
    return jsonify(budget.to_dict()), 201


@budgets_bp.route("", methods=["GET"])
@login_required
def list_budgets():
    filters = query_args(BudgetFilters)
    rows = svc.list_budgets(requested_household_ids(), filters, current_user.id)
    return jsonify([b.to_dict() for b in rows])


@budgets_bp.route("/overview", methods=["GET"])
@login_required
def budget_overview():
    household_id = query_args(HouseholdQuery).household_id
    filters = query_args(BudgetFilters)
    return jsonify(svc.budget_overview(household_id, filters, current_user.id))


@budgets_bp.route("/suggestions", methods=["GET"])
@login_required
def budget_suggestions():
    household_id = query_args(HouseholdQuery).household_id
    return jsonify(svc.suggest_budgets(household_id, current_user.id))


@budgets_bp.route("/<budget_id>", methods=["GET"])
@login_required
def get_budget(budget_id):
    return jsonify(svc.get_budget(budget_id, current_user.id).to_dict())


@budgets_bp.route("/<budget_id>", methods=["PUT"])
@login_required
def update_budget(budget_id):
    budget = svc.update_budget(budget_id, json_body(BudgetUpdate), current_user.id)
    return jsonify(budget.to_dict())


@budgets_bp.route("/<budget_id>", methods=["DELETE"])
@login_required
def delete_budget(budget_id):
    svc.delete_budget(budget_id, current_user.id)
    return "", 204
