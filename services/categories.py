"""Household categories and their monthly budgets."""
import calendar
import datetime

from sqlalchemy import func
from werkzeug.exceptions import Forbidden, NotFound

from extensions import db
from models import Budget, Category, Transaction, TransactionType
from permissions import Permission, check_user_permission
from services.households import find_household


def find_category(category_id):
    category = db.session.get(Category, category_id)
    if category is None:
        raise NotFound(f"Category with ID {category_id} not found")
    return category


def category_in_household(category_id, household_id):
    """The category, if it belongs to the household; 404 otherwise."""
    category = Category.query.filter_by(id=category_id, household_id=household_id).first()
    if category is None:
        raise NotFound("Category not found or does not belong to this household")
    return category


def create_category(household_id, data, user_id):
    find_household(household_id)
    check_user_permission(household_id, user_id, Permission.CREATE_CATEGORIES)
    category = Category(household_id=household_id, **data.model_dump())
    db.session.add(category)
    db.session.commit()
    return category


def list_categories(household_id, user_id, include_inactive=False):
    find_household(household_id)
    check_user_permission(household_id, user_id, Permission.VIEW_CATEGORIES)
    q = Category.query.filter_by(household_id=household_id)
    if not include_inactive:
        q = q.filter(Category.is_active.is_(True))
    return q.order_by(Category.name.asc()).all()


def get_category(category_id, user_id):
    category = find_category(category_id)
    check_user_permission(category.household_id, user_id, Permission.VIEW_CATEGORIES)
    return category


def update_category(category_id, data, user_id):
    category = find_category(category_id)
    check_user_permission(category.household_id, user_id, Permission.UPDATE_CATEGORIES)
    changes = data.changes()
    if category.is_system and (changes.get("name") or changes.get("is_active") is False):
        raise Forbidden("Cannot modify or deactivate system categories")
    for key, value in changes.items():
        if key in ("name", "is_active") and value is None:
            continue
        setattr(category, key, value)
    db.session.commit()
    return category


def delete_category(category_id, user_id):
    category = find_category(category_id)
    check_user_permission(category.household_id, user_id, Permission.DELETE_CATEGORIES)
    if category.is_system:
        raise Forbidden("Cannot delete system categories")
    if Transaction.query.filter_by(category_id=category.id).count():
        raise Forbidden("Cannot delete category that has receipts. Archive it instead.")
    # budgets scoped to this category become household-wide
    Budget.query.filter_by(category_id=category.id).update({"category_id": None})
    db.session.delete(category)
    db.session.commit()


def set_category_budget(category_id, monthly_budget, user_id):
    category = find_category(category_id)
    check_user_permission(category.household_id, user_id, Permission.SET_BUDGETS)
    category.monthly_budget = monthly_budget
    db.session.commit()
    return category


def month_bounds(year, month):
    last = calendar.monthrange(year, month)[1]
    return datetime.date(year, month, 1), datetime.date(year, month, last)


def spending_by_category(household_id, start, end):
    """{category_id: total expense amount} over [start, end]."""
    rows = (
        db.session.query(Transaction.category_id, func.sum(Transaction.amount))
        .filter(
            Transaction.household_id == household_id,
            Transaction.type == TransactionType.EXPENSE,
            Transaction.date >= start,
            Transaction.date <= end,
        )
        .group_by(Transaction.category_id)
        .all()
    )
    return {cid: float(total or 0) for cid, total in rows}


def budget_overview(household_id, month, year, user_id):
    """Budget vs. spending for each active category in one calendar month."""
    find_household(household_id)
    check_user_permission(household_id, user_id, Permission.VIEW_REPORTS)
    start, end = month_bounds(year, month)
    spent_by_cat = spending_by_category(household_id, start, end)
    categories = (
        Category.query.filter_by(household_id=household_id, is_active=True)
        .order_by(Category.name.asc()).all()
    )
    items = []
    for category in categories:
        budget = float(category.monthly_budget or 0)
        spent = spent_by_cat.get(category.id, 0.0)
        items.append({
            "category": category.to_dict(),
            "budget": budget,
            "spent": spent,
            "remaining": budget - spent,
            "percentage": (spent / budget * 100) if budget else 0,
        })
    total_budget = sum(i["budget"] for i in items)
    total_spent = sum(i["spent"] for i in items)
    return {
        "month": month,
        "year": year,
        "categories": items,
        "summary": {
            "total_budget": total_budget,
            "total_spent": total_spent,
            "total_remaining": total_budget - total_spent,
            "overall_percentage": (total_spent / total_budget * 100) if total_budget else 0,
        },
    }
