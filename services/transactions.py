"""
Transactions and receipts.

A receipt is an expense transaction with a title and, optionally, a photo
URL. Both REST surfaces (``/households/<id>/transactions`` and ``/receipts``)
and the RPC mirror share these functions.

Owners and admins may change any transaction in their household; a plain
member may only change the ones they created.
"""
import datetime
import logging

from sqlalchemy import func, or_
from werkzeug.exceptions import Forbidden, NotFound

from extensions import db
from models import Category, HouseholdRole, Transaction, TransactionType
from permissions import Permission, check_user_permission
from schemas import TransactionFilters
from services.categories import category_in_household, month_bounds
from services.households import find_household

logger = logging.getLogger(__name__)


def find_transaction(transaction_id):
    txn = db.session.get(Transaction, transaction_id)
    if txn is None:
        raise NotFound(f"Transaction with ID {transaction_id} not found")
    return txn


def _check_can_modify(txn, user_id, permission, verb):
    membership = check_user_permission(txn.household_id, user_id, permission)
    if membership.role is HouseholdRole.MEMBER and txn.created_by_id != user_id:
        raise Forbidden(f"You can only {verb} your own transactions")
    return membership


def create_transaction(household_id, data, user_id):
    find_household(household_id)
    check_user_permission(household_id, user_id, Permission.CREATE_RECEIPTS)
    if data.category_id:
        category_in_household(data.category_id, household_id)
    txn = Transaction(
        household_id=household_id,
        created_by_id=user_id,
        category_id=data.category_id,
        type=data.type,
        amount=data.amount,
        date=data.date,
        title=data.title,
        description=data.description,
        photo_url=data.photo_url,
        meta=data.metadata,
    )
    db.session.add(txn)
    db.session.commit()
    return txn


def get_transaction(transaction_id, user_id):
    txn = find_transaction(transaction_id)
    check_user_permission(txn.household_id, user_id, Permission.VIEW_RECEIPTS)
    return txn


def update_transaction(transaction_id, data, user_id):
    txn = find_transaction(transaction_id)
    _check_can_modify(txn, user_id, Permission.UPDATE_RECEIPTS, "update")
    changes = data.changes()
    if changes.get("category_id"):
        category_in_household(changes["category_id"], txn.household_id)
    for key, value in changes.items():
        if key in ("type", "amount", "date") and value is None:
            continue
        setattr(txn, "meta" if key == "metadata" else key, value)
    db.session.commit()
    return txn


def delete_transaction(transaction_id, user_id):
    txn = find_transaction(transaction_id)
    _check_can_modify(txn, user_id, Permission.DELETE_RECEIPTS, "delete")
    db.session.delete(txn)
    db.session.commit()


def set_photo(transaction_id, photo_url, user_id):
    txn = find_transaction(transaction_id)
    _check_can_modify(txn, user_id, Permission.UPDATE_RECEIPTS, "update")
    txn.photo_url = photo_url
    db.session.commit()
    return txn


def clear_photo(transaction_id, user_id):
    txn = find_transaction(transaction_id)
    _check_can_modify(txn, user_id, Permission.UPDATE_RECEIPTS, "update")
    if not txn.photo_url:
        raise NotFound("Receipt does not have a photo")
    txn.photo_url = None
    db.session.commit()
    return txn


# ---------- queries ----------

def _filtered(household_ids, filters):
    q = Transaction.query.filter(Transaction.household_id.in_(household_ids))
    if filters is None:
        return q
    if filters.start_date:
        q = q.filter(Transaction.date >= filters.start_date)
    if filters.end_date:
        q = q.filter(Transaction.date <= filters.end_date)
    if filters.category_ids:
        q = q.filter(Transaction.category_id.in_(filters.category_ids))
    if filters.type:
        q = q.filter(Transaction.type == filters.type)
    if filters.min_amount is not None:
        q = q.filter(Transaction.amount >= filters.min_amount)
    if filters.max_amount is not None:
        q = q.filter(Transaction.amount <= filters.max_amount)
    if filters.search:
        pattern = f"%{filters.search}%"
        q = q.filter(or_(Transaction.title.ilike(pattern), Transaction.description.ilike(pattern)))
    return q


def summarize(household_ids, filters=None):
    """Count, total, average and per-category breakdown of the matching rows."""
    q = _filtered(household_ids, filters)
    count, total, average = q.with_entities(
        func.count(Transaction.id), func.sum(Transaction.amount), func.avg(Transaction.amount)
    ).one()
    total = float(total or 0)
    rows = (
        q.outerjoin(Category, Category.id == Transaction.category_id)
        .with_entities(Transaction.category_id, Category.name,
                       func.count(Transaction.id), func.sum(Transaction.amount))
        .group_by(Transaction.category_id, Category.name)
        .order_by(func.sum(Transaction.amount).desc())
        .all()
    )
    by_category = []
    for category_id, name, cat_count, cat_total in rows:
        cat_total = float(cat_total or 0)
        by_category.append({
            "category_id": category_id,
            "category_name": name or "Uncategorized",
            "count": cat_count,
            "total": cat_total,
            "percentage": round(cat_total / total * 100, 2) if total else 0,
        })
    return {
        "total_receipts": count or 0,
        "total_amount": total,
        "average_amount": float(average or 0),
        "by_category": by_category,
    }


def list_for_households(household_ids, filters=None, page=1, limit=20):
    """One page of transactions across ``household_ids``, newest first."""
    if not household_ids:
        return {"receipts": [], "total": 0, "page": page, "limit": limit,
                "summary": summarize([], filters)}
    q = _filtered(household_ids, filters)
    total = q.count()
    items = (
        q.order_by(Transaction.date.desc(), Transaction.created_at.desc())
        .offset((page - 1) * limit).limit(limit).all()
    )
    return {
        "receipts": items,
        "total": total,
        "page": page,
        "limit": limit,
        "summary": summarize(household_ids, filters),
    }


def list_for_household(household_id, user_id, filters=None, page=1, limit=20):
    find_household(household_id)
    check_user_permission(household_id, user_id, Permission.VIEW_RECEIPTS)
    return list_for_households([household_id], filters, page, limit)


def list_all(household_id, user_id, filters=None):
    """Every matching transaction of one household, newest first."""
    find_household(household_id)
    check_user_permission(household_id, user_id, Permission.VIEW_RECEIPTS)
    return (
        _filtered([household_id], filters)
        .order_by(Transaction.date.desc(), Transaction.created_at.desc())
        .all()
    )


def monthly_report(household_id, month, year, user_id):
    find_household(household_id)
    check_user_permission(household_id, user_id, Permission.VIEW_REPORTS)
    start, end = month_bounds(year, month)
    expenses = TransactionFilters(start_date=start, end_date=end, type=TransactionType.EXPENSE)
    return {"month": month, "year": year, **summarize([household_id], expenses)}


def receipts_by_category(household_id, category_id, user_id, limit=20):
    find_household(household_id)
    check_user_permission(household_id, user_id, Permission.VIEW_RECEIPTS)
    category_in_household(category_id, household_id)
    return (
        Transaction.query.filter_by(household_id=household_id, category_id=category_id)
        .order_by(Transaction.date.desc())
        .limit(limit).all()
    )


def expenses_by_date(household_id, start, end, user_id):
    """Per-day expense totals in [start, end]."""
    find_household(household_id)
    check_user_permission(household_id, user_id, Permission.VIEW_REPORTS)
    rows = (
        db.session.query(Transaction.date, func.sum(Transaction.amount), func.count(Transaction.id))
        .filter(
            Transaction.household_id == household_id,
            Transaction.type == TransactionType.EXPENSE,
            Transaction.date >= start,
            Transaction.date <= end,
        )
        .group_by(Transaction.date)
        .order_by(Transaction.date.asc())
        .all()
    )
    return [{"date": d.isoformat(), "total": float(total or 0), "count": count} for d, total, count in rows]


def transaction_stats(household_id, user_id):
    """Income vs. expense totals, balance and per-category totals."""
    txns = list_all(household_id, user_id)
    total_income = 0.0
    total_expenses = 0.0
    by_category = {}
    for txn in txns:
        amount = float(txn.amount)
        key = txn.category_id or "uncategorized"
        entry = by_category.setdefault(key, {
            "category_id": txn.category_id,
            "category_name": txn.category.name if txn.category else "Uncategorized",
            "income": 0.0,
            "expenses": 0.0,
            "total": 0.0,
        })
        entry["total"] += amount
        if txn.type is TransactionType.INCOME:
            total_income += amount
            entry["income"] += amount
        else:
            total_expenses += amount
            entry["expenses"] += amount
    return {
        "total_income": total_income,
        "total_expenses": total_expenses,
        "balance": total_income - total_expenses,
        "by_category": list(by_category.values()),
    }


def period_start(period, today=None):
    """First day covered by an export period; None means everything."""
    today = today or datetime.date.today()
    if period == "daily":
        return today
    if period == "monthly":
        return today.replace(day=1)
    if period == "yearly":
        return datetime.date(today.year, 1, 1)
    return None


def export_transactions(household_id, period, user_id, today=None):
    """Household and its transactions from the start of ``period``, oldest first."""
    hh = find_household(household_id)
    check_user_permission(household_id, user_id, Permission.EXPORT_DATA)
    q = Transaction.query.filter_by(household_id=household_id)
    start = period_start(period, today)
    if start is not None:
        q = q.filter(Transaction.date >= start)
    return hh, q.order_by(Transaction.date.asc(), Transaction.created_at.asc()).all()
