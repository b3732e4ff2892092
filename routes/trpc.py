"""
RPC mirror of the household, category and transaction endpoints.

``GET /trpc/<router>.<procedure>?input=<json>`` runs a query,
``POST /trpc/<router>.<procedure>`` with a JSON body runs a mutation.
Inputs use camelCase keys. Responses are wrapped as ``{"result": {"data": ...}}``
and failures as ``{"error": {"message", "code", "data": {...}}}``.
"""
import json

from flask import Blueprint, jsonify, request
from flask_login import current_user, login_required
from pydantic import Field, ValidationError
from pydantic.alias_generators import to_snake
from werkzeug.exceptions import BadRequest, HTTPException, MethodNotAllowed, NotFound

from schemas import (
    BaseSchema,
    CategoryCreate,
    CategoryUpdate,
    HouseholdCreate,
    HouseholdUpdate,
    InviteMember,
    TransactionCreate,
    TransactionFilters,
    TransactionUpdate,
)
from services import categories, households, invitations, transactions
from services.categories import category_in_household

trpc_bp = Blueprint("trpc", __name__)

QUERY = "query"
MUTATION = "mutation"

ERROR_CODES = {
    400: "BAD_REQUEST",
    401: "UNAUTHORIZED",
    403: "FORBIDDEN",
    404: "NOT_FOUND",
    405: "METHOD_NOT_SUPPORTED",
}

# name -> (kind, handler(input_dict, user_id))
PROCEDURES = {}


def procedure(name, kind):
    def register(fn):
        PROCEDURES[name] = (kind, fn)
        return fn
    return register


class IdInput(BaseSchema):
    id: str = Field(..., min_length=1)


class HouseholdInput(BaseSchema):
    household_id: str = Field(..., min_length=1)


class ScopedIdInput(HouseholdInput):
    id: str = Field(..., min_length=1)


class MemberInput(IdInput):
    member_id: str = Field(..., min_length=1)


def _snake(data):
    out = {to_snake(k): v for k, v in data.items()}
    if "receipt_url" in out:
        out["photo_url"] = out.pop("receipt_url")
    # ISO datetimes are accepted where a date is expected
    for key in ("date", "start_date", "end_date"):
        if isinstance(out.get(key), str) and len(out[key]) > 10:
            out[key] = out[key][:10]
    return out


def _without(data, *keys):
    return {k: v for k, v in data.items() if k not in keys}


def _transaction_in_household(transaction_id, household_id):
    txn = transactions.find_transaction(transaction_id)
    if txn.household_id != household_id:
        raise NotFound(f"Transaction with ID {transaction_id} not found")
    return txn


# ---------- households ----------
@procedure("households.create", MUTATION)
def households_create(inp, user_id):
    return households.create_household(HouseholdCreate.model_validate(inp), user_id).to_dict()


@procedure("households.getAll", QUERY)
def households_get_all(inp, user_id):
    return [hh.to_dict() for hh in households.list_user_households(user_id)]


@procedure("households.get", QUERY)
def households_get(inp, user_id):
    return households.get_household(IdInput.model_validate(inp).id, user_id).to_dict()


@procedure("households.update", MUTATION)
def households_update(inp, user_id):
    household_id = IdInput.model_validate(inp).id
    data = HouseholdUpdate.model_validate(_without(inp, "id"))
    return households.update_household(household_id, data, user_id).to_dict()


@procedure("households.inviteMember", MUTATION)
def households_invite_member(inp, user_id):
    household_id = IdInput.model_validate(inp).id
    data = InviteMember.model_validate(_without(inp, "id"))
    return invitations.invite_member(household_id, data, user_id).to_dict()


@procedure("households.removeMember", MUTATION)
def households_remove_member(inp, user_id):
    data = MemberInput.model_validate(inp)
    households.remove_member(data.id, data.member_id, user_id)
    return {"success": True}


@procedure("households.leave", MUTATION)
def households_leave(inp, user_id):
    households.leave_household(IdInput.model_validate(inp).id, user_id)
    return {"success": True}


# ---------- categories ----------
@procedure("categories.create", MUTATION)
def categories_create(inp, user_id):
    household_id = HouseholdInput.model_validate(inp).household_id
    data = CategoryCreate.model_validate(_without(inp, "household_id"))
    return categories.create_category(household_id, data, user_id).to_dict()


@procedure("categories.getAll", QUERY)
def categories_get_all(inp, user_id):
    household_id = HouseholdInput.model_validate(inp).household_id
    return [c.to_dict() for c in categories.list_categories(household_id, user_id)]


@procedure("categories.update", MUTATION)
def categories_update(inp, user_id):
    ids = ScopedIdInput.model_validate(inp)
    category_in_household(ids.id, ids.household_id)
    data = CategoryUpdate.model_validate(_without(inp, "household_id", "id"))
    return categories.update_category(ids.id, data, user_id).to_dict()


@procedure("categories.delete", MUTATION)
def categories_delete(inp, user_id):
    ids = ScopedIdInput.model_validate(inp)
    category_in_household(ids.id, ids.household_id)
    categories.delete_category(ids.id, user_id)
    return {"success": True}


# ---------- transactions ----------
@procedure("transactions.create", MUTATION)
def transactions_create(inp, user_id):
    household_id = HouseholdInput.model_validate(inp).household_id
    data = TransactionCreate.model_validate(inp)
    return transactions.create_transaction(household_id, data, user_id).to_dict()


@procedure("transactions.getAll", QUERY)
def transactions_get_all(inp, user_id):
    household_id = HouseholdInput.model_validate(inp).household_id
    args = _without(inp, "household_id", "category_id")
    if inp.get("category_id"):
        args["category_ids"] = [inp["category_id"]]
    filters = TransactionFilters.model_validate(args)
    return [t.to_dict() for t in transactions.list_all(household_id, user_id, filters)]


@procedure("transactions.getStats", QUERY)
def transactions_get_stats(inp, user_id):
    household_id = HouseholdInput.model_validate(inp).household_id
    return transactions.transaction_stats(household_id, user_id)


@procedure("transactions.update", MUTATION)
def transactions_update(inp, user_id):
    ids = ScopedIdInput.model_validate(inp)
    _transaction_in_household(ids.id, ids.household_id)
    data = TransactionUpdate.model_validate(_without(inp, "household_id", "id"))
    return transactions.update_transaction(ids.id, data, user_id).to_dict()


@procedure("transactions.delete", MUTATION)
def transactions_delete(inp, user_id):
    ids = ScopedIdInput.model_validate(inp)
    _transaction_in_household(ids.id, ids.household_id)
    transactions.delete_transaction(ids.id, user_id)
    return {"success": True}


# ---------- dispatch ----------
def _read_input():
    if request.method == "GET":
        raw = request.args.get("input")
        if not raw:
            return {}
        try:
            data = json.loads(raw)
        except ValueError:
            raise BadRequest("input is not valid JSON")
    else:
        data = request.get_json(force=True, silent=True)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise BadRequest("input must be a JSON object")
    return _snake(data)


@trpc_bp.route("/<path:name>", methods=["GET", "POST"])
@login_required
def call(name):
    if name not in PROCEDURES:
        raise NotFound(f'No procedure found on path "{name}"')
    kind, handler = PROCEDURES[name]
    expected = "GET" if kind == QUERY else "POST"
    if request.method != expected:
        raise MethodNotAllowed(valid_methods=[expected], description=f"Unsupported {request.method} on {kind} {name}")
    data = handler(_read_input(), current_user.id)
    return jsonify({"result": {"data": data}})


def _error(message, status):
    code = ERROR_CODES.get(status, "INTERNAL_SERVER_ERROR")
    body = {"error": {"message": message, "code": code, "data": {"code": code, "httpStatus": status}}}
    return jsonify(body), status


@trpc_bp.errorhandler(HTTPException)
def handle_http_error(e):
    return _error(e.description, e.code)


@trpc_bp.errorhandler(ValidationError)
def handle_validation_error(e):
    message = "; ".join(
        f"{'.'.join(str(p) for p in err['loc']) or 'input'}: {err['msg']}"
        for err in e.errors(include_url=False)
    )
    return _error(message, 400)
