"""Budgets: spending limits over a date range, optionally per category."""
import datetime
import logging
import math

from sqlalchemy import func, or_
from werkzeug.exceptions import BadRequest, NotFound

from extensions import db
from models import Budget, Category, Transaction, TransactionType
from permissions import Permission, check_user_permission, validate_and_get_household_ids
from services.categories import category_in_household
from services.households import find_household

logger = logging.getLogger(__name__)

SUGGESTION_MONTHS = 3
SUGGESTION_BUFFER = 1.1


def find_budget(budget_id):
    budget = db.session.get(Budget, budget_id)
    if budget is None:
        raise NotFound("Budget not found")
    return budget


def calculate_spending(household_id, start, end, category_id=None):
    """Total expenses in [start, end], optionally for one category."""
    q = db.session.query(func.sum(Transaction.amount)).filter(
        Transaction.household_id == household_id,
        Transaction.type == TransactionType.EXPENSE,
        Transaction.date >= start,
        Transaction.date <= end,
    )
    if category_id:
        q = q.filter(Transaction.category_id == category_id)
    return float(q.scalar() or 0)


def find_overlapping(household_id, start, end, category_id=None, exclude_id=None):
    """Active budgets of the same category scope whose range meets [start, end]."""
    q = Budget.query.filter(
        Budget.household_id == household_id,
        Budget.is_active.is_(True),
        or_(
            Budget.start_date.between(start, end),
            Budget.end_date.between(start, end),
            (Budget.start_date <= start) & (Budget.end_date >= start),
        ),
    )
    if category_id:
        q = q.filter(Budget.category_id == category_id)
    else:
        q = q.filter(Budget.category_id.is_(None))
    if exclude_id:
        q = q.filter(Budget.id != exclude_id)
    return q.all()


def create_budget(data, user_id):
    find_household(data.household_id)
    check_user_permission(data.household_id, user_id, Permission.SET_BUDGETS)
    if data.category_id:
        category_in_household(data.category_id, data.household_id)
    if find_overlapping(data.household_id, data.start_date, data.end_date, data.category_id):
        raise BadRequest("A budget already exists for this category in the specified date range")
    budget = Budget(
        household_id=data.household_id,
        name=data.name,
        description=data.description,
        amount=data.amount,
        period=data.period,
        start_date=data.start_date,
        end_date=data.end_date,
        category_id=data.category_id,
        is_recurring=data.is_recurring,
        meta=data.metadata,
    )
    db.session.add(budget)
    db.session.commit()
    logger.info("User %s created budget %s in household %s", user_id, budget.id, budget.household_id)
    return budget


def _budget_query(household_ids, filters):
    q = Budget.query.filter(Budget.household_id.in_(household_ids))
    if filters.period:
        q = q.filter(Budget.period == filters.period)
    if filters.category_id:
        q = q.filter(Budget.category_id == filters.category_id)
    if filters.start_date:
        q = q.filter(Budget.end_date >= filters.start_date)
    if filters.end_date:
        q = q.filter(Budget.start_date <= filters.end_date)
    if filters.is_active is not None:
        q = q.filter(Budget.is_active.is_(filters.is_active))
    elif not filters.include_inactive:
        q = q.filter(Budget.is_active.is_(True))
    return q.order_by(Budget.start_date.desc())


def list_budgets(requested_ids, filters, user_id):
    """Budgets of every requested household the user can read."""
    household_ids = validate_and_get_household_ids(requested_ids, user_id)
    if not household_ids:
        return []
    return _budget_query(household_ids, filters).all()


def get_budget(budget_id, user_id):
    budget = find_budget(budget_id)
    check_user_permission(budget.household_id, user_id, Permission.VIEW_CATEGORIES)
    return budget


def update_budget(budget_id, data, user_id):
    budget = find_budget(budget_id)
    check_user_permission(budget.household_id, user_id, Permission.SET_BUDGETS)
    changes = data.changes()
    start = changes.get("start_date") or budget.start_date
    end = changes.get("end_date") or budget.end_date
    if end <= start:
        raise BadRequest("End date must be after start date")
    if changes.get("category_id"):
        category_in_household(changes["category_id"], budget.household_id)
    for key, value in changes.items():
        if key in ("name", "amount", "period", "start_date", "end_date", "is_active", "is_recurring") and value is None:
            continue
        setattr(budget, "meta" if key == "metadata" else key, value)
    db.session.commit()
    return budget


def delete_budget(budget_id, user_id):
    budget = find_budget(budget_id)
    check_user_permission(budget.household_id, user_id, Permission.SET_BUDGETS)
    db.session.delete(budget)
    db.session.commit()


def overview_item(budget, spending, today):
    total_days = (budget.end_date - budget.start_date).days
    days_elapsed = max(0, (today - budget.start_date).days)
    days_remaining = max(0, (budget.end_date - today).days)
    amount = float(budget.amount)
    average_daily = spending / days_elapsed if days_elapsed > 0 else 0.0
    projected = average_daily * total_days
    return {
        "budget": budget.to_dict(),
        "current_spending": spending,
        "remaining": amount - spending,
        "percentage_used": (spending / amount * 100) if amount else 0,
        "is_over_budget": spending > amount,
        "days_remaining": days_remaining,
        "days_elapsed": days_elapsed,
        "average_daily_spending": average_daily,
        "projected_spending": projected,
        "on_track": projected <= amount,
    }


def budget_overview(household_id, filters, user_id, today=None):
    find_household(household_id)
    check_user_permission(household_id, user_id, Permission.VIEW_REPORTS)
    today = today or datetime.date.today()
    budgets = _budget_query([household_id], filters).all()
    items = [
        overview_item(b, calculate_spending(household_id, b.start_date, b.end_date, b.category_id), today)
        for b in budgets
    ]
    total_amount = sum(float(b.amount) for b in budgets)
    total_spent = sum(i["current_spending"] for i in items)
    return {
        "total_budgets": len(budgets),
        "total_budget_amount": total_amount,
        "total_spent": total_spent,
        "total_remaining": total_amount - total_spent,
        "overall_percentage": (total_spent / total_amount * 100) if total_amount > 0 else 0,
        "over_budget_count": sum(1 for i in items if i["is_over_budget"]),
        "budgets": items,
    }


def _months_back(today, months):
    month_index = today.year * 12 + (today.month - 1) - months
    return datetime.date(month_index // 12, month_index % 12 + 1, 1)


def suggest_budgets(household_id, user_id, today=None):
    """
    Monthly and yearly budget suggestions per active category.

    Based on the expenses since the first day of the month three months ago,
    averaged per month with a 10% buffer and rounded up. Categories without
    spending get no suggestion. Highest spenders come first.
    """
    find_household(household_id)
    check_user_permission(household_id, user_id, Permission.VIEW_REPORTS)
    today = today or datetime.date.today()
    since = _months_back(today, SUGGESTION_MONTHS)
    categories = Category.query.filter_by(household_id=household_id, is_active=True).all()
    suggestions = []
    for category in categories:
        spent = calculate_spending(household_id, since, today, category.id)
        if spent <= 0:
            continue
        average = spent / SUGGESTION_MONTHS
        # round to cents first so 70 * 1.1 is 77, not 78
        monthly = math.ceil(round(average * SUGGESTION_BUFFER, 2))
        suggestions.append({
            "category": category.to_dict(),
            "historical_spending": {
                "last_3_months": spent,
                "average_monthly": average,
            },
            "suggestions": {
                "monthly": monthly,
                "yearly": monthly * 12,
            },
        })
    suggestions.sort(key=lambda s: s["historical_spending"]["average_monthly"], reverse=True)
    return suggestions
