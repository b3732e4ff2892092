"""
Household access control.

Every household-scoped operation goes through ``check_user_permission``: the
requester's active membership is looked up and its role is compared against
the static ``ROLE_PERMISSIONS`` table (or an explicit list of roles). A missing
membership and an insufficient role fail the same way so callers cannot tell
the two apart.
"""
from enum import Enum

from werkzeug.exceptions import Forbidden

from models import HouseholdMember, HouseholdRole


class Permission(str, Enum):
    # User management
    MANAGE_USERS = "manage_users"
    VIEW_USERS = "view_users"

    # Household management
    MANAGE_HOUSEHOLD = "manage_household"
    UPDATE_HOUSEHOLD = "update_household"
    DELETE_HOUSEHOLD = "delete_household"
    VIEW_HOUSEHOLD = "view_household"

    # Member management
    INVITE_MEMBERS = "invite_members"
    REMOVE_MEMBERS = "remove_members"
    UPDATE_MEMBER_ROLES = "update_member_roles"

    # Category management
    CREATE_CATEGORIES = "create_categories"
    UPDATE_CATEGORIES = "update_categories"
    DELETE_CATEGORIES = "delete_categories"
    SET_BUDGETS = "set_budgets"
    VIEW_CATEGORIES = "view_categories"

    # Receipt management
    CREATE_RECEIPTS = "create_receipts"
    UPDATE_RECEIPTS = "update_receipts"
    DELETE_RECEIPTS = "delete_receipts"
    VIEW_RECEIPTS = "view_receipts"

    # Reporting
    VIEW_REPORTS = "view_reports"
    EXPORT_DATA = "export_data"


ROLE_PERMISSIONS = {
    HouseholdRole.OWNER: frozenset(Permission),
    HouseholdRole.ADMIN: frozenset({
        Permission.VIEW_USERS,
        Permission.UPDATE_HOUSEHOLD,
        Permission.VIEW_HOUSEHOLD,
        Permission.INVITE_MEMBERS,
        Permission.REMOVE_MEMBERS,
        Permission.CREATE_CATEGORIES,
        Permission.UPDATE_CATEGORIES,
        Permission.DELETE_CATEGORIES,
        Permission.SET_BUDGETS,
        Permission.VIEW_CATEGORIES,
        Permission.CREATE_RECEIPTS,
        Permission.UPDATE_RECEIPTS,
        Permission.DELETE_RECEIPTS,
        Permission.VIEW_RECEIPTS,
        Permission.VIEW_REPORTS,
        Permission.EXPORT_DATA,
    }),
    HouseholdRole.MEMBER: frozenset({
        Permission.VIEW_USERS,
        Permission.VIEW_HOUSEHOLD,
        Permission.CREATE_CATEGORIES,
        Permission.UPDATE_CATEGORIES,
        Permission.SET_BUDGETS,
        Permission.VIEW_CATEGORIES,
        Permission.CREATE_RECEIPTS,
        Permission.UPDATE_RECEIPTS,
        Permission.DELETE_RECEIPTS,
        Permission.VIEW_RECEIPTS,
        Permission.VIEW_REPORTS,
        Permission.EXPORT_DATA,
    }),
    HouseholdRole.VIEWER: frozenset({
        Permission.VIEW_USERS,
        Permission.VIEW_HOUSEHOLD,
        Permission.VIEW_CATEGORIES,
        Permission.VIEW_RECEIPTS,
        Permission.VIEW_REPORTS,
    }),
}

ALL_ROLES = tuple(HouseholdRole)
CONTRIBUTOR_ROLES = (HouseholdRole.OWNER, HouseholdRole.ADMIN, HouseholdRole.MEMBER)
MANAGER_ROLES = (HouseholdRole.OWNER, HouseholdRole.ADMIN)

FORBIDDEN_MESSAGE = "Insufficient permissions for this operation"


def has_permission(role, permission):
    return Permission(permission) in ROLE_PERMISSIONS[HouseholdRole(role)]


def get_membership(household_id, user_id):
    """Active membership row of ``user_id`` in ``household_id``, or None."""
    return HouseholdMember.query.filter_by(
        household_id=household_id, user_id=user_id, is_active=True
    ).first()


def get_user_role(household_id, user_id):
    membership = get_membership(household_id, user_id)
    return membership.role if membership else None


def is_household_member(household_id, user_id):
    return get_membership(household_id, user_id) is not None


def check_user_permission(household_id, user_id, permission=None, allowed_roles=None):
    """
    Return the requester's membership or raise 403.

    Exactly one of ``permission`` (checked against ROLE_PERMISSIONS) or
    ``allowed_roles`` (an explicit role list) should be given.
    """
    if (permission is None) == (allowed_roles is None):
        raise ValueError("pass either permission or allowed_roles")

    membership = get_membership(household_id, user_id)
    if membership is None:
        raise Forbidden(FORBIDDEN_MESSAGE)
    if permission is not None:
        allowed = has_permission(membership.role, permission)
    else:
        allowed = membership.role in allowed_roles
    if not allowed:
        raise Forbidden(FORBIDDEN_MESSAGE)
    return membership


def filter_accessible_households(household_ids, user_id, allowed_roles):
    if not household_ids:
        return []
    memberships = HouseholdMember.query.filter(
        HouseholdMember.user_id == user_id,
        HouseholdMember.household_id.in_(household_ids),
        HouseholdMember.is_active.is_(True),
    ).all()
    return [m.household_id for m in memberships if m.role in allowed_roles]


def get_user_accessible_households(user_id, household_ids=(), allowed_roles=CONTRIBUTOR_ROLES):
    q = HouseholdMember.query.filter(
        HouseholdMember.user_id == user_id,
        HouseholdMember.is_active.is_(True),
    )
    if household_ids:
        q = q.filter(HouseholdMember.household_id.in_(household_ids))
    return [m.household_id for m in q.all() if m.role in allowed_roles]


def validate_and_get_household_ids(household_ids, user_id):
    """Households a read may cover: all of mine, or the requested ones I belong to."""
    if not household_ids:
        return get_user_accessible_households(user_id, allowed_roles=ALL_ROLES)
    return filter_accessible_households(household_ids, user_id, ALL_ROLES)


def parse_household_header(raw):
    """Split an ``x-household-ids`` header value into ids."""
    if not raw:
        return []
    return [part.strip() for part in raw.split(",") if part.strip()]
