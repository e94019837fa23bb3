from datetime import date, datetime
from enum import Enum
from typing import Optional
from uuid import uuid4

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Date,
    DateTime,
    Enum as SAEnum,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from database import Base


def new_id() -> str:
    return uuid4().hex


class AccountType(str, Enum):
    checking = "checking"
    savings = "savings"
    credit = "credit"
    brokerage = "brokerage"


class CategorySource(str, Enum):
    rule = "rule"
    ai = "ai"
    manual = "manual"


class RuleMatchType(str, Enum):
    contains = "contains"
    regex = "regex"
    exact = "exact"


class PeriodType(str, Enum):
    monthly = "monthly"
    weekly = "weekly"
    yearly = "yearly"


class PeriodStatus(str, Enum):
    open = "open"
    closed = "closed"


class SnapshotSource(str, Enum):
    import_ = "import"
    manual = "manual"
    calculated = "calculated"


def _enum_values(enum_cls) -> list[str]:
    return [member.value for member in enum_cls]


class TimestampMixin:
    created_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False
    )


class Account(Base, TimestampMixin):
    __tablename__ = "accounts"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    name: Mapped[str] = mapped_column(String(120), nullable=False)
    institution: Mapped[str] = mapped_column(String(120), nullable=False)
    type: Mapped[AccountType] = mapped_column(SAEnum(AccountType), nullable=False)

    transactions: Mapped[list["Transaction"]] = relationship(
        "Transaction", back_populates="account"
    )


class Category(Base, TimestampMixin):
    __tablename__ = "categories"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    parent_id: Mapped[Optional[str]] = mapped_column(ForeignKey("categories.id"))
    is_income: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    is_system: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    sort_order: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    parent: Mapped[Optional["Category"]] = relationship(
        "Category", remote_side="Category.id"
    )

    __table_args__ = (Index("ix_categories_parent", "parent_id"),)


class Transaction(Base, TimestampMixin):
    __tablename__ = "transactions"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    account_id: Mapped[str] = mapped_column(ForeignKey("accounts.id"), nullable=False)
    date: Mapped[date] = mapped_column(Date, nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    normalized_merchant: Mapped[Optional[str]] = mapped_column(String(200))
    amount_cents: Mapped[int] = mapped_column(Integer, nullable=False)
    category_id: Mapped[Optional[str]] = mapped_column(ForeignKey("categories.id"))
    category_source: Mapped[Optional[CategorySource]] = mapped_column(
        SAEnum(CategorySource)
    )
    category_confidence: Mapped[Optional[float]] = mapped_column(Float)
    is_recurring: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    recurring_id: Mapped[Optional[str]] = mapped_column(String(36))
    notes: Mapped[Optional[str]] = mapped_column(Text)
    raw_csv_row: Mapped[Optional[str]] = mapped_column(Text)
    import_hash: Mapped[str] = mapped_column(String(16), nullable=False, unique=True)

    account: Mapped["Account"] = relationship("Account", back_populates="transactions")
    category: Mapped[Optional["Category"]] = relationship("Category")

    __table_args__ = (
        Index("ix_transactions_date", "date"),
        Index("ix_transactions_category_date", "category_id", "date"),
        Index("ix_transactions_account_hash", "account_id", "import_hash"),
        Index("ix_transactions_merchant", "normalized_merchant"),
    )


class CategorizationRule(Base, TimestampMixin):
    __tablename__ = "categorization_rules"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    pattern: Mapped[str] = mapped_column(String(200), nullable=False)
    match_type: Mapped[RuleMatchType] = mapped_column(
        SAEnum(RuleMatchType), nullable=False
    )
    category_id: Mapped[str] = mapped_column(
        ForeignKey("categories.id"), nullable=False
    )
    priority: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    category: Mapped["Category"] = relationship("Category")

    __table_args__ = (
        Index("ix_rules_active_priority", "is_active", "priority"),
    )


class Import(Base):
    __tablename__ = "imports"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    filename: Mapped[str] = mapped_column(String(255), nullable=False)
    bank_profile: Mapped[Optional[str]] = mapped_column(String(60))
    account_id: Mapped[Optional[str]] = mapped_column(ForeignKey("accounts.id"))
    row_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    imported_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    skipped_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    created_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, nullable=False
    )


class Budget(Base):
    __tablename__ = "budgets"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    name: Mapped[str] = mapped_column(String(120), nullable=False)
    period_type: Mapped[PeriodType] = mapped_column(SAEnum(PeriodType), nullable=False)
    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, nullable=False
    )

    allocations: Mapped[list["BudgetAllocation"]] = relationship(
        "BudgetAllocation",
        back_populates="budget",
        cascade="all, delete-orphan",
    )
    periods: Mapped[list["BudgetPeriod"]] = relationship(
        "BudgetPeriod",
        back_populates="budget",
        cascade="all, delete-orphan",
    )


class BudgetAllocation(Base, TimestampMixin):
    __tablename__ = "budget_allocations"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    budget_id: Mapped[str] = mapped_column(
        ForeignKey("budgets.id", ondelete="CASCADE"), nullable=False
    )
    category_id: Mapped[str] = mapped_column(
        ForeignKey("categories.id"), nullable=False
    )
    amount_cents: Mapped[int] = mapped_column(Integer, nullable=False)
    rollover: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    budget: Mapped["Budget"] = relationship("Budget", back_populates="allocations")
    category: Mapped["Category"] = relationship("Category")

    __table_args__ = (
        UniqueConstraint("budget_id", "category_id", name="uq_allocation_budget_category"),
        CheckConstraint("amount_cents >= 0", name="ck_allocation_amount_positive"),
        Index("ix_allocations_budget", "budget_id"),
    )


class BudgetPeriod(Base):
    __tablename__ = "budget_periods"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    budget_id: Mapped[str] = mapped_column(
        ForeignKey("budgets.id", ondelete="CASCADE"), nullable=False
    )
    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    end_date: Mapped[date] = mapped_column(Date, nullable=False)
    status: Mapped[PeriodStatus] = mapped_column(
        SAEnum(PeriodStatus), default=PeriodStatus.open, nullable=False
    )

    budget: Mapped["Budget"] = relationship("Budget", back_populates="periods")

    __table_args__ = (
        UniqueConstraint("budget_id", "start_date", name="uq_period_budget_start"),
        CheckConstraint("end_date >= start_date", name="ck_period_dates_ordered"),
    )


class BalanceSnapshot(Base):
    __tablename__ = "balance_snapshots"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    account_id: Mapped[str] = mapped_column(ForeignKey("accounts.id"), nullable=False)
    date: Mapped[date] = mapped_column(Date, nullable=False)
    balance_cents: Mapped[int] = mapped_column(Integer, nullable=False)
    source: Mapped[SnapshotSource] = mapped_column(
        SAEnum(
            SnapshotSource,
            name="snapshotsource",
            values_callable=_enum_values,
        ),
        nullable=False,
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, nullable=False
    )

    __table_args__ = (
        UniqueConstraint("account_id", "date", name="uq_snapshot_account_date"),
    )
