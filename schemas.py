"""
Request schemas.

Every JSON body and query string is parsed into one of these models before a
service is called; a ``pydantic.ValidationError`` becomes a 400 response.
"""
import datetime
from typing import Any, Optional

from pydantic import (
    BaseModel,
    ConfigDict,
    EmailStr,
    Field,
    field_validator,
    model_validator,
)

from models import BudgetPeriod, HouseholdRole, TransactionType

HEX_COLOR = r"^#[0-9A-Fa-f]{6}$"


class BaseSchema(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True, extra="ignore")

    def changes(self):
        """Fields the client actually sent."""
        return self.model_dump(exclude_unset=True)


def _empty_to_none(v):
    if v == "" or v is None:
        return None
    return v


def _assignable_role(v):
    if HouseholdRole(v) is HouseholdRole.OWNER:
        raise ValueError("the owner role cannot be assigned")
    return v


# ---------- households ----------

class HouseholdCreate(BaseSchema):
    name: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None
    currency: str = Field(default="ILS", min_length=3, max_length=10)
    settings: dict[str, Any] = Field(default_factory=dict)


class HouseholdUpdate(BaseSchema):
    name: Optional[str] = Field(default=None, min_length=1, max_length=255)
    description: Optional[str] = None
    currency: Optional[str] = Field(default=None, min_length=3, max_length=10)
    settings: Optional[dict[str, Any]] = None


class MemberAdd(BaseSchema):
    user_id: str = Field(..., min_length=1)
    role: HouseholdRole = HouseholdRole.MEMBER

    check_role = field_validator("role")(_assignable_role)


class MemberRoleUpdate(BaseSchema):
    role: HouseholdRole

    check_role = field_validator("role")(_assignable_role)


# ---------- categories ----------

class CategoryCreate(BaseSchema):
    name: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None
    color: Optional[str] = Field(default=None, pattern=HEX_COLOR)
    icon: Optional[str] = Field(default=None, max_length=50)
    monthly_budget: Optional[float] = Field(default=None, ge=0)


class CategoryUpdate(BaseSchema):
    name: Optional[str] = Field(default=None, min_length=1, max_length=255)
    description: Optional[str] = None
    color: Optional[str] = Field(default=None, pattern=HEX_COLOR)
    icon: Optional[str] = Field(default=None, max_length=50)
    monthly_budget: Optional[float] = Field(default=None, ge=0)
    is_active: Optional[bool] = None


class CategoryBudget(BaseSchema):
    monthly_budget: float = Field(..., ge=0)


class MonthQuery(BaseSchema):
    month: int = Field(default_factory=lambda: datetime.date.today().month, ge=1, le=12)
    year: int = Field(default_factory=lambda: datetime.date.today().year, ge=1900, le=9999)


# ---------- transactions / receipts ----------

class TransactionCreate(BaseSchema):
    household_id: Optional[str] = None
    type: TransactionType = TransactionType.EXPENSE
    amount: float = Field(..., gt=0, le=99999999.99)
    date: datetime.date
    category_id: Optional[str] = None
    title: Optional[str] = Field(default=None, max_length=255)
    description: Optional[str] = None
    photo_url: Optional[str] = Field(default=None, max_length=500)
    metadata: Optional[dict[str, Any]] = None

    blank_category = field_validator("category_id", mode="before")(_empty_to_none)


class ReceiptCreate(TransactionCreate):
    household_id: str = Field(..., min_length=1)
    title: str = Field(..., min_length=1, max_length=255)
    category_id: str = Field(..., min_length=1)


class TransactionUpdate(BaseSchema):
    type: Optional[TransactionType] = None
    amount: Optional[float] = Field(default=None, gt=0, le=99999999.99)
    date: Optional[datetime.date] = None
    category_id: Optional[str] = None
    title: Optional[str] = Field(default=None, max_length=255)
    description: Optional[str] = None
    photo_url: Optional[str] = Field(default=None, max_length=500)
    metadata: Optional[dict[str, Any]] = None

    blank_category = field_validator("category_id", mode="before")(_empty_to_none)


class PhotoUpdate(BaseSchema):
    photo_url: str = Field(..., min_length=1, max_length=500)


class TransactionFilters(BaseSchema):
    start_date: Optional[datetime.date] = None
    end_date: Optional[datetime.date] = None
    category_ids: list[str] = Field(default_factory=list)
    type: Optional[TransactionType] = None
    min_amount: Optional[float] = None
    max_amount: Optional[float] = None
    search: Optional[str] = None

    @model_validator(mode="after")
    def _check_range(self):
        if self.start_date and self.end_date and self.end_date < self.start_date:
            raise ValueError("end_date must not be before start_date")
        return self


class Pagination(BaseSchema):
    page: int = Field(default=1, ge=1)
    limit: int = Field(default=20, ge=1, le=200)


class DateRange(BaseSchema):
    start_date: datetime.date
    end_date: datetime.date

    @model_validator(mode="after")
    def _check_range(self):
        if self.end_date < self.start_date:
            raise ValueError("end_date must not be before start_date")
        return self


class ExportQuery(BaseSchema):
    period: str = Field(default="monthly", pattern=r"^(daily|monthly|yearly|full)$")


# ---------- budgets ----------

class BudgetCreate(BaseSchema):
    household_id: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None
    amount: float = Field(..., ge=0)
    period: BudgetPeriod = BudgetPeriod.MONTHLY
    start_date: datetime.date
    end_date: datetime.date
    category_id: Optional[str] = None
    is_recurring: bool = False
    metadata: Optional[dict[str, Any]] = None

    blank_to_none = field_validator("category_id", "description", mode="before")(_empty_to_none)

    @model_validator(mode="after")
    def _check_dates(self):
        if self.end_date <= self.start_date:
            raise ValueError("End date must be after start date")
        return self


class BudgetUpdate(BaseSchema):
    name: Optional[str] = Field(default=None, min_length=1, max_length=255)
    description: Optional[str] = None
    amount: Optional[float] = Field(default=None, ge=0)
    period: Optional[BudgetPeriod] = None
    start_date: Optional[datetime.date] = None
    end_date: Optional[datetime.date] = None
    category_id: Optional[str] = None
    is_active: Optional[bool] = None
    is_recurring: Optional[bool] = None
    metadata: Optional[dict[str, Any]] = None

    blank_to_none = field_validator("category_id", "description", mode="before")(_empty_to_none)


class BudgetFilters(BaseSchema):
    period: Optional[BudgetPeriod] = None
    category_id: Optional[str] = None
    start_date: Optional[datetime.date] = None
    end_date: Optional[datetime.date] = None
    is_active: Optional[bool] = None
    include_inactive: bool = False


class HouseholdQuery(BaseSchema):
    household_id: str = Field(..., min_length=1)


# ---------- invitations / users ----------

class InviteMember(BaseSchema):
    email: EmailStr
    role: HouseholdRole = HouseholdRole.MEMBER

    check_role = field_validator("role")(_assignable_role)

    @field_validator("email")
    @classmethod
    def _lower(cls, v):
        return v.lower()


class ProfileUpdate(BaseSchema):
    full_name: Optional[str] = Field(default=None, max_length=255)
    avatar_url: Optional[str] = Field(default=None, max_length=500)
    preferences: Optional[dict[str, Any]] = None
