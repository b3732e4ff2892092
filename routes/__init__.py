from flask import request

from permissions import parse_household_header


def json_body(schema):
    """Validate the JSON request body against ``schema``."""
    data = request.get_json(force=True, silent=True)
    return schema.model_validate(data if isinstance(data, dict) else {})


def query_args(schema, lists=()):
    """
    Validate the query string against ``schema``.

    Names in ``lists`` may be repeated (``?category_ids=a&category_ids=b``) or
    comma separated.
    """
    args = request.args.to_dict()
    for name in lists:
        values = []
        for raw in request.args.getlist(name):
            values.extend(v.strip() for v in raw.split(",") if v.strip())
        args[name] = values
    return schema.model_validate(args)


def flag(name, default=False):
    raw = request.args.get(name)
    if raw is None:
        return default
    return raw.strip().lower() in ("1", "true", "yes")


def requested_household_ids():
    return parse_household_header(request.headers.get("x-household-ids"))


def transaction_page(result, key="receipts"):
    out = dict(result)
    out[key] = [t.to_dict() for t in out.pop("receipts")]
    return out
