"""Receipt endpoints: expense transactions addressed by receipt id."""
from flask import Blueprint, jsonify, send_file
from flask_login import current_user, login_required

from permissions import validate_and_get_household_ids
from reports import build_workbook, export_filename
from routes import json_body, query_args, requested_household_ids, transaction_page
from schemas import (
    DateRange,
    ExportQuery,
    MonthQuery,
    Pagination,
    PhotoUpdate,
    ReceiptCreate,
    TransactionFilters,
    TransactionUpdate,
)
from services import transactions as svc

receipts_bp = Blueprint("receipts", __name__)

XLSX_MIMETYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


@receipts_bp.route("", methods=["POST"])
@login_required
def create_receipt():
    data = json_body(ReceiptCreate)
    txn = svc.create_transaction(data.household_id, data, current_user.id)
    return jsonify(txn.to_dict()), 201


@receipts_bp.route("", methods=["GET"])
@login_required
def list_receipts():
    filters = query_args(TransactionFilters, lists=("category_ids",))
    page = query_args(Pagination)
    household_ids = validate_and_get_household_ids(requested_household_ids(), current_user.id)
    result = svc.list_for_households(household_ids, filters, page.page, page.limit)
    return jsonify(transaction_page(result))


@receipts_bp.route("/household/<household_id>", methods=["GET"])
@login_required
def household_receipts(household_id):
    filters = query_args(TransactionFilters, lists=("category_ids",))
    page = query_args(Pagination)
    result = svc.list_for_household(household_id, current_user.id, filters, page.page, page.limit)
    return jsonify(transaction_page(result))


@receipts_bp.route("/household/<household_id>/monthly-report", methods=["GET"])
@login_required
def monthly_report(household_id):
    q = query_args(MonthQuery)
    return jsonify(svc.monthly_report(household_id, q.month, q.year, current_user.id))


@receipts_bp.route("/household/<household_id>/category/<category_id>", methods=["GET"])
@login_required
def receipts_by_category(household_id, category_id):
    limit = query_args(Pagination).limit
    rows = svc.receipts_by_category(household_id, category_id, current_user.id, limit=limit)
    return jsonify([t.to_dict() for t in rows])


@receipts_bp.route("/household/<household_id>/expenses-by-date", methods=["GET"])
@login_required
def expenses_by_date(household_id):
    rng = query_args(DateRange)
    return jsonify(svc.expenses_by_date(household_id, rng.start_date, rng.end_date, current_user.id))


@receipts_bp.route("/household/<household_id>/export", methods=["GET"])
@login_required
def export_receipts(household_id):
    period = query_args(ExportQuery).period
    hh, rows = svc.export_transactions(household_id, period, current_user.id)
    return send_file(
        build_workbook(hh, rows),
        mimetype=XLSX_MIMETYPE,
        as_attachment=True,
        download_name=export_filename(period),
    )


@receipts_bp.route("/<receipt_id>", methods=["GET"])
@login_required
def get_receipt(receipt_id):
    return jsonify(svc.get_transaction(receipt_id, current_user.id).to_dict())


@receipts_bp.route("/<receipt_id>", methods=["PATCH"])
@login_required
def update_receipt(receipt_id):
    txn = svc.update_transaction(receipt_id, json_body(TransactionUpdate), current_user.id)
    return jsonify(txn.to_dict())


@receipts_bp.route("/<receipt_id>", methods=["DELETE"])
@login_required
def delete_receipt(receipt_id):
    svc.delete_transaction(receipt_id, current_user.id)
    return "", 204


@receipts_bp.route("/<receipt_id>/photo", methods=["PUT"])
@login_required
def set_photo(receipt_id):
    data = json_body(PhotoUpdate)
    return jsonify(svc.set_photo(receipt_id, data.photo_url, current_user.id).to_dict())


@receipts_bp.route("/<receipt_id>/photo", methods=["DELETE"])
@login_required
def clear_photo(receipt_id):
    svc.clear_photo(receipt_id, current_user.id)
    return "", 204
