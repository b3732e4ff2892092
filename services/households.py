"""Households and their memberships."""
import logging

from sqlalchemy.exc import SQLAlchemyError
from werkzeug.exceptions import BadRequest, Forbidden, NotFound

from extensions import db
from models import Category, Household, HouseholdMember, HouseholdRole, User, utcnow
from permissions import Permission, check_user_permission, get_membership

logger = logging.getLogger(__name__)

# (name, description, color, icon) seeded into every new household
DEFAULT_CATEGORIES = [
    ("Food & Groceries", "Food, groceries, and dining expenses", "#4CAF50", "utensils"),
    ("Utilities", "Electricity, water, gas, internet, phone", "#2196F3", "zap"),
    ("Rent & Housing", "Rent, mortgage, property taxes, insurance", "#FF9800", "home"),
    ("Transportation", "Gas, public transport, car maintenance", "#9C27B0", "car"),
    ("Healthcare", "Medical expenses, insurance, pharmacy", "#F44336", "heart"),
    ("Childcare", "Daycare, babysitting, child-related expenses", "#FFEB3B", "baby"),
    ("Entertainment", "Movies, games, subscriptions, hobbies", "#E91E63", "play"),
    ("Shopping", "Clothing, household items, personal care", "#607D8B", "shopping-bag"),
    ("Other", "Miscellaneous expenses", "#9E9E9E", "more-horizontal"),
]


def find_household(household_id):
    hh = db.session.get(Household, household_id)
    if hh is None:
        raise NotFound(f"Household with ID {household_id} not found")
    return hh


def create_household(data, owner_id):
    """
    Create a household owned by ``owner_id``.

    The household, the owner's membership and the default categories are
    committed together; if any insert fails nothing is kept.
    """
    now = utcnow()
    hh = Household(
        name=data.name,
        description=data.description,
        currency=data.currency,
        settings=data.settings,
    )
    try:
        db.session.add(hh)
        db.session.flush()
        db.session.add(HouseholdMember(
            user_id=owner_id,
            household_id=hh.id,
            role=HouseholdRole.OWNER,
            is_active=True,
            joined_at=now,
        ))
        for name, description, color, icon in DEFAULT_CATEGORIES:
            db.session.add(Category(
                household_id=hh.id, name=name, description=description,
                color=color, icon=icon, is_system=True,
            ))
        db.session.commit()
    except SQLAlchemyError:
        db.session.rollback()
        logger.exception("Household creation for user %s rolled back", owner_id)
        raise
    logger.info("User %s created household %s", owner_id, hh.id)
    return hh


def list_user_households(user_id):
    return (
        Household.query
        .join(HouseholdMember, HouseholdMember.household_id == Household.id)
        .filter(HouseholdMember.user_id == user_id, HouseholdMember.is_active.is_(True))
        .order_by(Household.created_at.asc())
        .all()
    )


def get_household(household_id, user_id):
    hh = find_household(household_id)
    check_user_permission(household_id, user_id, Permission.VIEW_HOUSEHOLD)
    return hh


def update_household(household_id, data, user_id):
    hh = find_household(household_id)
    changes = data.changes()
    # settings and currency are owner-only, name/description owner or admin
    if "settings" in changes or "currency" in changes:
        check_user_permission(household_id, user_id, Permission.MANAGE_HOUSEHOLD)
    else:
        check_user_permission(household_id, user_id, Permission.UPDATE_HOUSEHOLD)
    for key, value in changes.items():
        if key == "settings" and value is None:
            value = {}
        if key in ("name", "currency") and value is None:
            continue
        setattr(hh, key, value)
    db.session.commit()
    return hh


def delete_household(household_id, user_id):
    hh = find_household(household_id)
    check_user_permission(household_id, user_id, Permission.DELETE_HOUSEHOLD)
    db.session.delete(hh)
    db.session.commit()
    logger.info("User %s deleted household %s", user_id, household_id)


def add_membership(household_id, user_id, role):
    """
    Make ``user_id`` an active member with ``role``.

    An inactive membership is reactivated; an active one is an error.
    Authorization is the caller's job.
    """
    existing = HouseholdMember.query.filter_by(household_id=household_id, user_id=user_id).first()
    now = utcnow()
    if existing is not None:
        if existing.is_active:
            raise BadRequest("User is already a member of this household")
        existing.is_active = True
        existing.role = role
        existing.joined_at = now
        db.session.commit()
        return existing
    membership = HouseholdMember(
        household_id=household_id, user_id=user_id, role=role,
        is_active=True, joined_at=now,
    )
    db.session.add(membership)
    db.session.commit()
    return membership


def add_member(household_id, member_user_id, role, requesting_user_id):
    find_household(household_id)
    check_user_permission(household_id, requesting_user_id, Permission.INVITE_MEMBERS)
    if db.session.get(User, member_user_id) is None:
        raise NotFound(f"User with ID {member_user_id} not found")
    return add_membership(household_id, member_user_id, role)


def _active_membership_or_404(household_id, user_id):
    membership = get_membership(household_id, user_id)
    if membership is None:
        raise NotFound("User is not a member of this household")
    return membership


def remove_member(household_id, member_user_id, requesting_user_id):
    find_household(household_id)
    check_user_permission(household_id, requesting_user_id, Permission.REMOVE_MEMBERS)
    membership = _active_membership_or_404(household_id, member_user_id)
    if membership.role is HouseholdRole.OWNER:
        raise Forbidden("Cannot remove the household owner")
    db.session.delete(membership)
    db.session.commit()
    logger.info("User %s removed %s from household %s", requesting_user_id, member_user_id, household_id)


def update_member_role(household_id, member_user_id, role, requesting_user_id):
    find_household(household_id)
    check_user_permission(household_id, requesting_user_id, Permission.UPDATE_MEMBER_ROLES)
    membership = _active_membership_or_404(household_id, member_user_id)
    if membership.role is HouseholdRole.OWNER:
        raise Forbidden("The owner's role cannot be changed")
    membership.role = role
    db.session.commit()
    return membership


def leave_household(household_id, user_id):
    find_household(household_id)
    membership = check_user_permission(household_id, user_id, Permission.VIEW_HOUSEHOLD)
    if membership.role is HouseholdRole.OWNER:
        raise Forbidden("The household owner cannot leave the household")
    db.session.delete(membership)
    db.session.commit()
