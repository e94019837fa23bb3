from datetime import date, datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from models import (
    AccountType,
    CategorySource,
    PeriodStatus,
    PeriodType,
    RuleMatchType,
    SnapshotSource,
)


class AccountIn(BaseModel):
    name: str = Field(..., min_length=1, max_length=120)
    institution: str = Field(..., min_length=1, max_length=120)
    type: AccountType = AccountType.checking


class CategoryIn(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    parent_id: Optional[str] = None
    is_income: bool = False
    sort_order: int = 0


class CategoryAssignmentIn(BaseModel):
    category_id: Optional[str]
    source: CategorySource = CategorySource.manual
    confidence: Optional[float] = Field(default=None, ge=0, le=1)


class MerchantIn(BaseModel):
    normalized_merchant: Optional[str] = Field(default=None, max_length=200)


class RuleIn(BaseModel):
    pattern: str = Field(..., min_length=1, max_length=200)
    match_type: RuleMatchType
    category_id: str
    priority: int = Field(default=0, ge=0, le=10_000)
    is_active: bool = True


class BudgetIn(BaseModel):
    name: str = Field(..., min_length=1, max_length=120)
    period_type: PeriodType
    start_date: date


class BudgetDefaultsIn(BaseModel):
    name: str = Field(..., min_length=1, max_length=120)
    period_type: PeriodType = PeriodType.monthly


class BudgetUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=120)
    period_type: Optional[PeriodType] = None
    start_date: Optional[date] = None


class AllocationIn(BaseModel):
    amount_cents: int = Field(..., ge=0)
    rollover: bool = False


class BalanceSnapshotIn(BaseModel):
    date: date
    balance_cents: int
    source: SnapshotSource = SnapshotSource.manual


class HeadersIn(BaseModel):
    headers: list[str]


class RuleToggleIn(BaseModel):
    is_active: bool


class AccountOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    institution: str
    type: AccountType


class CategoryOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    parent_id: Optional[str]
    is_income: bool
    is_system: bool
    sort_order: int


class TransactionOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    account_id: str
    date: date
    description: str
    normalized_merchant: Optional[str]
    amount_cents: int
    category_id: Optional[str]
    category_source: Optional[CategorySource]
    category_confidence: Optional[float]
    notes: Optional[str]
    import_hash: str


class RuleOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    pattern: str
    match_type: RuleMatchType
    category_id: str
    priority: int
    is_active: bool


class ImportOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    filename: str
    bank_profile: Optional[str]
    account_id: Optional[str]
    row_count: int
    imported_count: int
    skipped_count: int
    created_at: datetime


class BudgetOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    period_type: PeriodType
    start_date: date
    created_at: datetime


class AllocationOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    budget_id: str
    category_id: str
    amount_cents: int
    rollover: bool


class PeriodOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    budget_id: str
    start_date: date
    end_date: date
    status: PeriodStatus


class BalanceSnapshotOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    account_id: str
    date: date
    balance_cents: int
    source: SnapshotSource
