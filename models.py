# models.py
from extensions import db
from flask_login import UserMixin
from datetime import datetime, timezone
from enum import Enum
import uuid


def gen_uuid():
    return str(uuid.uuid4())


def utcnow():
    # naive UTC; SQLite drops tzinfo on the way back anyway
    return datetime.now(timezone.utc).replace(tzinfo=None)


def _iso(value):
    return value.isoformat() if value else None


class HouseholdRole(str, Enum):
    OWNER = "owner"
    ADMIN = "admin"
    MEMBER = "member"
    VIEWER = "viewer"


class TransactionType(str, Enum):
    INCOME = "income"
    EXPENSE = "expense"


class BudgetPeriod(str, Enum):
    MONTHLY = "monthly"
    YEARLY = "yearly"
    CUSTOM = "custom"


def _enum_column(enum_cls, **kwargs):
    return db.Column(
        db.Enum(enum_cls, values_callable=lambda e: [m.value for m in e],
                native_enum=False, validate_strings=True, length=20),
        **kwargs,
    )


class TimestampMixin:
    created_at = db.Column(db.DateTime, default=utcnow, nullable=False)
    updated_at = db.Column(db.DateTime, default=utcnow, onupdate=utcnow, nullable=False)


class User(UserMixin, TimestampMixin, db.Model):
    __tablename__ = "users"

    # subject id issued by the identity provider
    id = db.Column(db.String(64), primary_key=True)
    email = db.Column(db.String(255), nullable=False, index=True)
    full_name = db.Column(db.String(255))
    avatar_url = db.Column(db.String(500))
    preferences = db.Column(db.JSON, default=dict)

    memberships = db.relationship("HouseholdMember", back_populates="user",
                                  cascade="all, delete-orphan")

    def to_dict(self):
        return {
            "id": self.id,
            "email": self.email,
            "full_name": self.full_name,
            "avatar_url": self.avatar_url,
            "preferences": self.preferences or {},
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at),
        }


class Household(TimestampMixin, db.Model):
    __tablename__ = "households"

    id = db.Column(db.String(36), primary_key=True, default=gen_uuid)
    name = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text)
    currency = db.Column(db.String(10), nullable=False, default="ILS")
    settings = db.Column(db.JSON, default=dict)

    members = db.relationship("HouseholdMember", back_populates="household",
                              cascade="all, delete-orphan")
    categories = db.relationship("Category", back_populates="household",
                                 cascade="all, delete-orphan")
    transactions = db.relationship("Transaction", back_populates="household",
                                   cascade="all, delete-orphan")
    budgets = db.relationship("Budget", back_populates="household",
                              cascade="all, delete-orphan")
    invitations = db.relationship("Invitation", back_populates="household",
                                  cascade="all, delete-orphan")

    @property
    def active_members(self):
        return [m for m in self.members if m.is_active]

    def to_dict(self, include_members=True):
        out = {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "currency": self.currency,
            "settings": self.settings or {},
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at),
        }
        if include_members:
            out["members"] = [m.to_dict() for m in self.active_members]
        return out


class HouseholdMember(TimestampMixin, db.Model):
    __tablename__ = "household_members"
    __table_args__ = (db.UniqueConstraint("user_id", "household_id"),)

    id = db.Column(db.String(36), primary_key=True, default=gen_uuid)
    user_id = db.Column(db.String(64), db.ForeignKey("users.id"), nullable=False, index=True)
    household_id = db.Column(db.String(36), db.ForeignKey("households.id"), nullable=False, index=True)
    role = _enum_column(HouseholdRole, nullable=False, default=HouseholdRole.MEMBER)
    is_active = db.Column(db.Boolean, nullable=False, default=True)
    invited_at = db.Column(db.DateTime)
    joined_at = db.Column(db.DateTime)

    user = db.relationship("User", back_populates="memberships")
    household = db.relationship("Household", back_populates="members")

    def to_dict(self):
        return {
            "id": self.id,
            "user_id": self.user_id,
            "household_id": self.household_id,
            "role": self.role.value,
            "is_active": self.is_active,
            "joined_at": _iso(self.joined_at),
            "email": self.user.email if self.user else None,
            "full_name": self.user.full_name if self.user else None,
        }


class Category(TimestampMixin, db.Model):
    __tablename__ = "categories"

    id = db.Column(db.String(36), primary_key=True, default=gen_uuid)
    household_id = db.Column(db.String(36), db.ForeignKey("households.id"), nullable=False, index=True)
    name = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text)
    color = db.Column(db.String(50))
    icon = db.Column(db.String(50))
    monthly_budget = db.Column(db.Numeric(10, 2, asdecimal=False))
    is_active = db.Column(db.Boolean, nullable=False, default=True)
    is_system = db.Column(db.Boolean, nullable=False, default=False)  # seeded defaults, cannot be deleted

    household = db.relationship("Household", back_populates="categories")
    transactions = db.relationship("Transaction", back_populates="category")

    def to_dict(self):
        return {
            "id": self.id,
            "household_id": self.household_id,
            "name": self.name,
            "description": self.description,
            "color": self.color,
            "icon": self.icon,
            "monthly_budget": self.monthly_budget,
            "is_active": self.is_active,
            "is_system": self.is_system,
        }


class Transaction(TimestampMixin, db.Model):
    """An income or expense entry; receipts are expense transactions."""
    __tablename__ = "transactions"

    id = db.Column(db.String(36), primary_key=True, default=gen_uuid)
    household_id = db.Column(db.String(36), db.ForeignKey("households.id"), nullable=False, index=True)
    created_by_id = db.Column(db.String(64), db.ForeignKey("users.id", ondelete="SET NULL"), index=True)
    category_id = db.Column(db.String(36), db.ForeignKey("categories.id"), nullable=True, index=True)
    type = _enum_column(TransactionType, nullable=False, default=TransactionType.EXPENSE)
    amount = db.Column(db.Numeric(10, 2, asdecimal=False), nullable=False)
    date = db.Column(db.Date, nullable=False, index=True)
    title = db.Column(db.String(255))
    description = db.Column(db.Text)
    photo_url = db.Column(db.String(500))
    meta = db.Column("metadata", db.JSON)

    household = db.relationship("Household", back_populates="transactions")
    category = db.relationship("Category", back_populates="transactions")
    created_by = db.relationship("User")

    def to_dict(self):
        return {
            "id": self.id,
            "household_id": self.household_id,
            "created_by_id": self.created_by_id,
            "created_by_name": self.created_by.full_name if self.created_by else None,
            "category_id": self.category_id,
            "category_name": self.category.name if self.category else None,
            "type": self.type.value,
            "amount": self.amount,
            "date": self.date.isoformat(),
            "title": self.title,
            "description": self.description,
            "photo_url": self.photo_url,
            "metadata": self.meta,
            "created_at": _iso(self.created_at),
        }


class Budget(TimestampMixin, db.Model):
    __tablename__ = "budgets"
    __table_args__ = (
        db.Index("ix_budgets_household_period_start", "household_id", "period", "start_date"),
        db.Index("ix_budgets_household_category_period", "household_id", "category_id", "period"),
    )

    id = db.Column(db.String(36), primary_key=True, default=gen_uuid)
    household_id = db.Column(db.String(36), db.ForeignKey("households.id"), nullable=False)
    name = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text)
    amount = db.Column(db.Numeric(10, 2, asdecimal=False), nullable=False)
    period = _enum_column(BudgetPeriod, nullable=False, default=BudgetPeriod.MONTHLY)
    start_date = db.Column(db.Date, nullable=False)
    end_date = db.Column(db.Date, nullable=False)
    category_id = db.Column(db.String(36), db.ForeignKey("categories.id", ondelete="SET NULL"), nullable=True)
    is_active = db.Column(db.Boolean, nullable=False, default=True)
    is_recurring = db.Column(db.Boolean, nullable=False, default=False)
    meta = db.Column("metadata", db.JSON)

    household = db.relationship("Household", back_populates="budgets")
    category = db.relationship("Category")

    def to_dict(self):
        return {
            "id": self.id,
            "household_id": self.household_id,
            "name": self.name,
            "description": self.description,
            "amount": self.amount,
            "period": self.period.value,
            "start_date": self.start_date.isoformat(),
            "end_date": self.end_date.isoformat(),
            "category_id": self.category_id,
            "category_name": self.category.name if self.category else None,
            "is_active": self.is_active,
            "is_recurring": self.is_recurring,
            "metadata": self.meta,
        }


class Invitation(TimestampMixin, db.Model):
    __tablename__ = "invitations"

    id = db.Column(db.String(36), primary_key=True, default=gen_uuid)
    email = db.Column(db.String(255), nullable=False, index=True)
    household_id = db.Column(db.String(36), db.ForeignKey("households.id"), nullable=False)
    role = _enum_column(HouseholdRole, nullable=False, default=HouseholdRole.MEMBER)
    invited_by = db.Column(db.String(64), db.ForeignKey("users.id", ondelete="SET NULL"))
    invited_at = db.Column(db.DateTime, nullable=False, default=utcnow)
    expires_at = db.Column(db.DateTime, nullable=False)
    is_accepted = db.Column(db.Boolean, nullable=False, default=False)
    accepted_at = db.Column(db.DateTime)

    household = db.relationship("Household", back_populates="invitations")
    invited_by_user = db.relationship("User")

    def is_expired(self, now=None):
        return self.expires_at <= (now or utcnow())

    def to_dict(self):
        return {
            "id": self.id,
            "email": self.email,
            "household_id": self.household_id,
            "household_name": self.household.name if self.household else None,
            "role": self.role.value,
            "invited_by": self.invited_by,
            "invited_at": _iso(self.invited_at),
            "expires_at": _iso(self.expires_at),
            "is_accepted": self.is_accepted,
            "accepted_at": _iso(self.accepted_at),
        }
