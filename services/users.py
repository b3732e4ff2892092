import logging

from werkzeug.exceptions import Forbidden

from extensions import db
from models import Household, HouseholdMember, HouseholdRole, Invitation, Transaction

logger = logging.getLogger(__name__)


def update_profile(user, data):
    for key, value in data.changes().items():
        if key == "preferences" and value is None:
            value = {}
        setattr(user, key, value)
    db.session.commit()
    return user


def households_with_role(user_id):
    """Active households of ``user_id`` with the user's role and join date."""
    rows = (
        db.session.query(Household, HouseholdMember)
        .join(HouseholdMember, HouseholdMember.household_id == Household.id)
        .filter(HouseholdMember.user_id == user_id, HouseholdMember.is_active.is_(True))
        .order_by(HouseholdMember.joined_at.asc())
        .all()
    )
    out = []
    for hh, membership in rows:
        item = hh.to_dict(include_members=False)
        item["role"] = membership.role.value
        item["joined_at"] = membership.joined_at.isoformat() if membership.joined_at else None
        out.append(item)
    return out


def delete_account(user):
    owned = HouseholdMember.query.filter_by(
        user_id=user.id, role=HouseholdRole.OWNER, is_active=True
    ).count()
    if owned:
        raise Forbidden("Delete the households you own before deleting your account")
    # history stays with the household, unattributed
    Transaction.query.filter_by(created_by_id=user.id).update({"created_by_id": None})
    Invitation.query.filter_by(invited_by=user.id).update({"invited_by": None})
    db.session.delete(user)
    db.session.commit()
    logger.info("Deleted user %s", user.id)
