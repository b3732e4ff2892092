from flask import Blueprint, jsonify
from flask_login import current_user, login_required

from routes import json_body, query_args, transaction_page
from schemas import Pagination, TransactionCreate, TransactionFilters, TransactionUpdate
from services import transactions as svc

transactions_bp = Blueprint("transactions", __name__)


@transactions_bp.route("/households/<household_id>/transactions", methods=["POST"])
@login_required
def create_transaction(household_id):
    txn = svc.create_transaction(household_id, json_body(TransactionCreate), current_user.id)
    return jsonify(txn.to_dict()), 201


@transactions_bp.route("/households/<household_id>/transactions", methods=["GET"])
@login_required
def list_transactions(household_id):
    filters = query_args(TransactionFilters, lists=("category_ids",))
    page = query_args(Pagination)
    result = svc.list_for_household(household_id, current_user.id, filters, page.page, page.limit)
    return jsonify(transaction_page(result, key="transactions"))


@transactions_bp.route("/households/<household_id>/transactions/stats", methods=["GET"])
@login_required
def transaction_stats(household_id):
    return jsonify(svc.transaction_stats(household_id, current_user.id))


@transactions_bp.route("/transactions/<transaction_id>", methods=["GET"])
@login_required
def get_transaction(transaction_id):
    return jsonify(svc.get_transaction(transaction_id, current_user.id).to_dict())


@transactions_bp.route("/transactions/<transaction_id>", methods=["PATCH"])
@login_required
def update_transaction(transaction_id):
    txn = svc.update_transaction(transaction_id, json_body(TransactionUpdate), current_user.id)
    return jsonify(txn.to_dict())


@transactions_bp.route("/transactions/<transaction_id>", methods=["DELETE"])
@login_required
def delete_transaction(transaction_id):
    svc.delete_transaction(transaction_id, current_user.id)
    return "", 204
