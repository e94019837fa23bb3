from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from datetime import date, timedelta
from decimal import ROUND_HALF_UP, Decimal
from enum import Enum
from typing import Optional, Sequence

from dateutil.relativedelta import relativedelta
from sqlalchemy import func, or_, select
from sqlalchemy.orm import Session, joinedload

from config import Settings, get_settings
from csv_utils import ParsedTransaction, import_hash, parse_csv
from models import (
    Account,
    AccountType,
    BalanceSnapshot,
    Budget,
    BudgetAllocation,
    BudgetPeriod,
    CategorizationRule,
    Category,
    Import,
    PeriodStatus,
    PeriodType,
    Transaction,
)
from periods import (
    Period,
    current_period_dates,
    default_start_date,
    local_today,
    month_start,
    previous_period_dates,
)
from schemas import (
    AccountIn,
    AllocationIn,
    BalanceSnapshotIn,
    BudgetIn,
    BudgetUpdate,
    CategoryAssignmentIn,
    CategoryIn,
    MerchantIn,
    RuleIn,
)

logger = logging.getLogger(__name__)


class NotFoundError(ValueError):
    pass


class AccountNotFound(NotFoundError):
    pass


class CategoryNotFound(NotFoundError):
    pass


class TransactionNotFound(NotFoundError):
    pass


class RuleNotFound(NotFoundError):
    pass


class BudgetNotFound(NotFoundError):
    pass


class AllocationNotFound(NotFoundError):
    pass


class PeriodNotFound(NotFoundError):
    pass


def _round_cents(value: Decimal) -> int:
    return int(value.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


# (id, name, parent_id, is_income, sort_order)
DEFAULT_CATEGORIES: tuple[tuple[str, str, Optional[str], bool, int], ...] = (
    ("income", "Income", None, True, 0),
    ("salary", "Salary", "income", True, 1),
    ("freelance", "Freelance/Contract", "income", True, 2),
    ("investments", "Investment Income", "income", True, 3),
    ("refunds", "Refunds & Rebates", "income", True, 4),
    ("other-income", "Other Income", "income", True, 5),
    ("housing", "Housing", None, False, 10),
    ("rent-mortgage", "Rent/Mortgage", "housing", False, 11),
    ("utilities", "Utilities", "housing", False, 12),
    ("internet", "Internet/Phone", "housing", False, 13),
    ("insurance-home", "Home/Renters Insurance", "housing", False, 14),
    ("property-tax", "Property Tax", "housing", False, 15),
    ("maintenance", "Home Maintenance", "housing", False, 16),
    ("transportation", "Transportation", None, False, 20),
    ("gas", "Gas/Fuel", "transportation", False, 21),
    ("car-payment", "Car Payment", "transportation", False, 22),
    ("car-insurance", "Car Insurance", "transportation", False, 23),
    ("parking", "Parking", "transportation", False, 24),
    ("public-transit", "Public Transit", "transportation", False, 25),
    ("rideshare", "Rideshare", "transportation", False, 26),
    ("car-maintenance", "Car Maintenance", "transportation", False, 27),
    ("food", "Food & Dining", None, False, 30),
    ("groceries", "Groceries", "food", False, 31),
    ("restaurants", "Restaurants", "food", False, 32),
    ("coffee", "Coffee Shops", "food", False, 33),
    ("food-delivery", "Food Delivery", "food", False, 34),
    ("alcohol-bars", "Alcohol & Bars", "food", False, 35),
    ("subscriptions", "Subscriptions", None, False, 40),
    ("streaming", "Streaming Services", "subscriptions", False, 41),
    ("software", "Software/Apps", "subscriptions", False, 42),
    ("news-media", "News & Media", "subscriptions", False, 43),
    ("memberships", "Memberships", "subscriptions", False, 44),
    ("shopping", "Shopping", None, False, 50),
    ("clothing", "Clothing", "shopping", False, 51),
    ("electronics", "Electronics", "shopping", False, 52),
    ("home-goods", "Home Goods", "shopping", False, 53),
    ("general-shopping", "General Shopping", "shopping", False, 54),
    ("health", "Health & Fitness", None, False, 60),
    ("medical", "Medical", "health", False, 61),
    ("pharmacy", "Pharmacy", "health", False, 62),
    ("health-insurance", "Health Insurance", "health", False, 63),
    ("gym", "Gym/Fitness", "health", False, 64),
    ("personal-care", "Personal Care", "health", False, 65),
    ("entertainment", "Entertainment", None, False, 70),
    ("events", "Events/Concerts", "entertainment", False, 71),
    ("movies", "Movies/Theater", "entertainment", False, 72),
    ("games", "Games", "entertainment", False, 73),
    ("hobbies", "Hobbies", "entertainment", False, 74),
    ("books", "Books", "entertainment", False, 75),
    ("travel", "Travel", None, False, 80),
    ("flights", "Flights", "travel", False, 81),
    ("hotels", "Hotels/Lodging", "travel", False, 82),
    ("rental-cars", "Rental Cars", "travel", False, 83),
    ("travel-other", "Other Travel", "travel", False, 84),
    ("personal", "Personal", None, False, 90),
    ("education", "Education", "personal", False, 91),
    ("gifts", "Gifts", "personal", False, 92),
    ("donations", "Donations/Charity", "personal", False, 93),
    ("pets", "Pets", "personal", False, 94),
    ("kids", "Kids/Family", "personal", False, 95),
    ("financial", "Financial", None, False, 100),
    ("transfers", "Transfers", "financial", False, 101),
    ("fees", "Bank Fees", "financial", False, 102),
    ("interest", "Interest Charges", "financial", False, 103),
    ("taxes", "Taxes", "financial", False, 104),
    ("investments-out", "Investment Contributions", "financial", False, 105),
    ("savings", "Savings", "financial", False, 106),
    ("uncategorized", "Uncategorized", None, False, 999),
)


class AccountService:
    def __init__(self, session: Session) -> None:
        self.session = session

    def list_all(self) -> list[Account]:
        return self.session.scalars(select(Account).order_by(Account.name)).all()

    def get(self, account_id: str) -> Account:
        account = self.session.get(Account, account_id)
        if not account:
            raise AccountNotFound(f"Account not found: {account_id}")
        return account

    def get_by_name(self, name: str) -> Optional[Account]:
        return self.session.scalar(select(Account).where(Account.name == name))

    def create(self, data: AccountIn) -> Account:
        account = Account(
            name=data.name.strip(),
            institution=data.institution.strip(),
            type=data.type,
        )
        self.session.add(account)
        self.session.commit()
        self.session.refresh(account)
        return account

    def get_or_create(
        self,
        name: str,
        *,
        institution: str = "unknown",
        type: AccountType = AccountType.checking,
    ) -> Account:
        existing = self.get_by_name(name.strip())
        if existing:
            return existing
        return self.create(AccountIn(name=name, institution=institution, type=type))


class CategoryService:
    def __init__(self, session: Session) -> None:
        self.session = session

    def seed_defaults(self) -> int:
        existing = set(self.session.scalars(select(Category.id)).all())
        added = 0
        for cat_id, name, parent_id, is_income, sort_order in DEFAULT_CATEGORIES:
            if cat_id in existing:
                continue
            self.session.add(
                Category(
                    id=cat_id,
                    name=name,
                    parent_id=parent_id,
                    is_income=is_income,
                    is_system=True,
                    sort_order=sort_order,
                )
            )
            added += 1
        if added:
            self.session.commit()
            logger.info(f"categories_seeded: count={added}")
        return added

    def list_all(self, *, include_income: bool = True) -> list[Category]:
        stmt = select(Category).order_by(Category.sort_order, Category.name)
        if not include_income:
            stmt = stmt.where(Category.is_income.is_(False))
        return self.session.scalars(stmt).all()

    def get(self, category_id: str) -> Category:
        category = self.session.get(Category, category_id)
        if not category:
            raise CategoryNotFound(f"Category not found: {category_id}")
        return category

    def create(self, data: CategoryIn) -> Category:
        if data.parent_id is not None:
            parent = self.get(data.parent_id)
            if parent.parent_id is not None:
                raise ValueError("Categories can only be nested one level deep")
            if parent.is_income != data.is_income:
                raise ValueError("Subcategory must match its parent's income flag")
        category = Category(
            name=data.name.strip(),
            parent_id=data.parent_id,
            is_income=data.is_income,
            is_system=False,
            sort_order=data.sort_order,
        )
        self.session.add(category)
        self.session.commit()
        self.session.refresh(category)
        return category


@dataclass
class TransactionFilters:
    account_id: Optional[str] = None
    category_id: Optional[str] = None
    start: Optional[date] = None
    end: Optional[date] = None
    uncategorized: bool = False
    query: Optional[str] = None


class TransactionService:
    def __init__(self, session: Session) -> None:
        self.session = session

    def get(self, transaction_id: str) -> Transaction:
        txn = self.session.get(Transaction, transaction_id)
        if not txn:
            raise TransactionNotFound(f"Transaction not found: {transaction_id}")
        return txn

    def exists(self, account_id: str, txn_hash: str) -> bool:
        stmt = select(Transaction.id).where(
            Transaction.account_id == account_id,
            Transaction.import_hash == txn_hash,
        )
        return self.session.scalar(stmt.limit(1)) is not None

    def list(
        self, filters: Optional[TransactionFilters] = None, *, limit: Optional[int] = None
    ) -> list[Transaction]:
        filters = filters or TransactionFilters()
        stmt = select(Transaction).options(joinedload(Transaction.category))
        if filters.account_id:
            stmt = stmt.where(Transaction.account_id == filters.account_id)
        if filters.category_id:
            stmt = stmt.where(Transaction.category_id == filters.category_id)
        if filters.uncategorized:
            stmt = stmt.where(Transaction.category_id.is_(None))
        if filters.start:
            stmt = stmt.where(Transaction.date >= filters.start)
        if filters.end:
            stmt = stmt.where(Transaction.date <= filters.end)
        if filters.query and filters.query.strip():
            like = f"%{filters.query.strip().lower()}%"
            stmt = stmt.where(
                or_(
                    func.lower(Transaction.description).like(like),
                    func.lower(func.coalesce(Transaction.normalized_merchant, "")).like(
                        like
                    ),
                )
            )
        stmt = stmt.order_by(Transaction.date.desc(), Transaction.created_at.desc())
        if limit:
            stmt = stmt.limit(limit)
        return self.session.scalars(stmt).all()

    def assign_category(
        self, transaction_id: str, data: CategoryAssignmentIn
    ) -> Transaction:
        txn = self.get(transaction_id)
        if data.category_id is None:
            txn.category_id = None
            txn.category_source = None
            txn.category_confidence = None
        else:
            CategoryService(self.session).get(data.category_id)
            txn.category_id = data.category_id
            txn.category_source = data.source
            txn.category_confidence = data.confidence
        self.session.commit()
        self.session.refresh(txn)
        return txn

    def set_merchant(self, transaction_id: str, data: MerchantIn) -> Transaction:
        txn = self.get(transaction_id)
        merchant = (data.normalized_merchant or "").strip()
        txn.normalized_merchant = merchant or None
        self.session.commit()
        self.session.refresh(txn)
        return txn


class RuleService:
    def __init__(self, session: Session) -> None:
        self.session = session

    def list_all(self, *, active_only: bool = False) -> list[CategorizationRule]:
        stmt = select(CategorizationRule).order_by(
            CategorizationRule.priority.desc(), CategorizationRule.created_at
        )
        if active_only:
            stmt = stmt.where(CategorizationRule.is_active.is_(True))
        return self.session.scalars(stmt).all()

    def get(self, rule_id: str) -> CategorizationRule:
        rule = self.session.get(CategorizationRule, rule_id)
        if not rule:
            raise RuleNotFound(f"Rule not found: {rule_id}")
        return rule

    def create(self, data: RuleIn) -> CategorizationRule:
        CategoryService(self.session).get(data.category_id)
        rule = CategorizationRule(
            pattern=data.pattern,
            match_type=data.match_type,
            category_id=data.category_id,
            priority=data.priority,
            is_active=data.is_active,
        )
        self.session.add(rule)
        self.session.commit()
        self.session.refresh(rule)
        return rule

    def set_active(self, rule_id: str, is_active: bool) -> CategorizationRule:
        rule = self.get(rule_id)
        rule.is_active = is_active
        self.session.commit()
        return rule

    def delete(self, rule_id: str) -> None:
        rule = self.get(rule_id)
        self.session.delete(rule)
        self.session.commit()


@dataclass
class ImportSummary:
    imported: int
    skipped: int
    import_id: Optional[str] = None
    bank_profile: Optional[str] = None
    errors: list[str] = field(default_factory=list)


class ImportService:
    """Dedup-then-insert executor for parsed bank transactions.

    Rows are committed one at a time. A crash mid-batch keeps what was
    inserted and a re-run skips it; the `Import` audit row is written only
    after the last row, so a missing audit row means the run may be partial.
    """

    def __init__(self, session: Session, settings: Optional[Settings] = None) -> None:
        self.session = session
        self.settings = settings or get_settings()
        self.transactions = TransactionService(session)

    def execute_import(
        self,
        transactions: Sequence[ParsedTransaction],
        account_id: str,
        filename: str,
        *,
        bank_profile: Optional[str] = None,
        row_count: Optional[int] = None,
    ) -> ImportSummary:
        AccountService(self.session).get(account_id)

        imported = 0
        skipped = 0
        for parsed in transactions:
            # Rows parsed for another account carry that account's fingerprint.
            txn_hash = import_hash(
                parsed.date, parsed.description, parsed.amount_cents, account_id
            )
            if self.transactions.exists(account_id, txn_hash):
                skipped += 1
                continue

            self.session.add(
                Transaction(
                    account_id=account_id,
                    date=parsed.date,
                    description=parsed.description,
                    amount_cents=parsed.amount_cents,
                    raw_csv_row=json.dumps(parsed.raw_row),
                    import_hash=txn_hash,
                )
            )
            self.session.commit()
            imported += 1

        record = Import(
            filename=filename,
            bank_profile=bank_profile,
            account_id=account_id,
            row_count=row_count if row_count is not None else len(transactions),
            imported_count=imported,
            skipped_count=skipped,
        )
        self.session.add(record)
        self.session.commit()
        logger.info(
            f"import_run: account={account_id} filename={filename} "
            f"profile={bank_profile} imported={imported} skipped={skipped}"
        )
        return ImportSummary(
            imported=imported,
            skipped=skipped,
            import_id=record.id,
            bank_profile=bank_profile,
        )

    def import_csv(
        self,
        content: str,
        account_id: str,
        filename: str,
        *,
        profile_id: Optional[str] = None,
    ) -> ImportSummary:
        result = parse_csv(
            content,
            profile_id=profile_id,
            account_id=account_id,
            threshold=self.settings.detection_threshold,
            partial_weight=self.settings.partial_match_weight,
            drop_zero_amounts=self.settings.drop_zero_amount_rows,
        )
        profile_used = result.detected_profile.id if result.detected_profile else None
        if not result.transactions:
            return ImportSummary(
                imported=0,
                skipped=0,
                bank_profile=profile_used,
                errors=result.errors,
            )

        summary = self.execute_import(
            result.transactions,
            account_id,
            filename,
            bank_profile=profile_used,
            row_count=result.total_rows,
        )
        summary.errors = result.errors
        return summary

    def list_imports(self, account_id: Optional[str] = None) -> list[Import]:
        stmt = select(Import).order_by(Import.created_at.desc())
        if account_id:
            stmt = stmt.where(Import.account_id == account_id)
        return self.session.scalars(stmt).all()


class SpendStatus(str, Enum):
    under = "under"
    warning = "warning"
    over = "over"


@dataclass(frozen=True)
class RolloverResult:
    category_id: str
    previous_allocated_cents: int
    previous_spent_cents: int
    rollover_amount_cents: int


@dataclass(frozen=True)
class CategoryActual:
    category_id: str
    category_name: str
    allocated_cents: int
    rollover_cents: int
    spent_cents: int
    remaining_cents: int
    percent_used: float
    status: SpendStatus


@dataclass(frozen=True)
class OverBudgetCategory:
    category_id: str
    category_name: str
    over_by_cents: int


@dataclass(frozen=True)
class WarningCategory:
    category_id: str
    category_name: str
    percent_used: float


@dataclass(frozen=True)
class BudgetStatus:
    budget_id: str
    budget_name: str
    period_type: PeriodType
    current_period: Period
    total_allocated_cents: int
    total_spent_cents: int
    total_remaining_cents: int
    percent_used: float
    over_budget_categories: list[OverBudgetCategory]
    warning_categories: list[WarningCategory]
    days_remaining_in_period: int
    daily_budget_remaining_cents: int


def spent_by_category(
    session: Session,
    start: date,
    end: date,
    *,
    category_ids: Optional[Sequence[str]] = None,
) -> dict[str, int]:
    """Absolute outflow per category within [start, end], all accounts."""
    stmt = (
        select(
            Transaction.category_id,
            func.coalesce(func.sum(func.abs(Transaction.amount_cents)), 0).label(
                "spent"
            ),
        )
        .where(
            Transaction.amount_cents < 0,
            Transaction.category_id.is_not(None),
            Transaction.date.between(start, end),
        )
        .group_by(Transaction.category_id)
    )
    if category_ids is not None:
        stmt = stmt.where(Transaction.category_id.in_(list(category_ids)))
    return {row.category_id: int(row.spent or 0) for row in session.execute(stmt)}


def percent_used(spent_cents: int, allocated_cents: int) -> float:
    if allocated_cents > 0:
        return round(spent_cents / allocated_cents * 100, 2)
    return 100.0 if spent_cents > 0 else 0.0


class BudgetService:
    def __init__(self, session: Session, settings: Optional[Settings] = None) -> None:
        self.session = session
        self.settings = settings or get_settings()

    def _today(self, today: Optional[date]) -> date:
        return today or local_today(self.settings.timezone)

    def list_all(self) -> list[Budget]:
        return self.session.scalars(
            select(Budget).order_by(Budget.created_at.desc())
        ).all()

    def get(self, budget_id: str) -> Budget:
        budget = self.session.get(Budget, budget_id)
        if not budget:
            raise BudgetNotFound(f"Budget not found: {budget_id}")
        return budget

    def create(self, data: BudgetIn) -> Budget:
        budget = Budget(
            name=data.name.strip(),
            period_type=data.period_type,
            start_date=data.start_date,
        )
        self.session.add(budget)
        self.session.commit()
        self.session.refresh(budget)
        return budget

    def create_with_defaults(
        self, name: str, period_type: PeriodType, *, today: Optional[date] = None
    ) -> Budget:
        start = default_start_date(period_type, today=self._today(today))
        return self.create(BudgetIn(name=name, period_type=period_type, start_date=start))

    def update(self, budget_id: str, data: BudgetUpdate) -> Budget:
        budget = self.get(budget_id)
        if data.name is not None:
            budget.name = data.name.strip()
        if data.period_type is not None:
            budget.period_type = data.period_type
        if data.start_date is not None:
            budget.start_date = data.start_date
        self.session.commit()
        self.session.refresh(budget)
        return budget

    def delete(self, budget_id: str) -> None:
        budget = self.get(budget_id)
        self.session.delete(budget)
        self.session.commit()

    # allocations

    def allocations(self, budget_id: str) -> list[BudgetAllocation]:
        self.get(budget_id)
        stmt = (
            select(BudgetAllocation)
            .join(Category, Category.id == BudgetAllocation.category_id)
            .options(joinedload(BudgetAllocation.category))
            .where(BudgetAllocation.budget_id == budget_id)
            .order_by(Category.sort_order, Category.name)
        )
        return self.session.scalars(stmt).all()

    def get_allocation(self, budget_id: str, category_id: str) -> BudgetAllocation:
        self.get(budget_id)
        allocation = self.session.scalar(
            select(BudgetAllocation).where(
                BudgetAllocation.budget_id == budget_id,
                BudgetAllocation.category_id == category_id,
            )
        )
        if not allocation:
            raise AllocationNotFound(
                f"No allocation for category {category_id} in budget {budget_id}"
            )
        return allocation

    def set_allocation(
        self, budget_id: str, category_id: str, data: AllocationIn
    ) -> BudgetAllocation:
        self.get(budget_id)
        category = CategoryService(self.session).get(category_id)
        if category.is_income:
            raise ValueError("Budgets can only be set for expense categories")

        existing = self.session.scalar(
            select(BudgetAllocation).where(
                BudgetAllocation.budget_id == budget_id,
                BudgetAllocation.category_id == category_id,
            )
        )
        if existing:
            existing.amount_cents = data.amount_cents
            existing.rollover = data.rollover
            self.session.commit()
            self.session.refresh(existing)
            return existing

        allocation = BudgetAllocation(
            budget_id=budget_id,
            category_id=category_id,
            amount_cents=data.amount_cents,
            rollover=data.rollover,
        )
        self.session.add(allocation)
        self.session.commit()
        self.session.refresh(allocation)
        return allocation

    def remove_allocation(self, budget_id: str, category_id: str) -> None:
        allocation = self.get_allocation(budget_id, category_id)
        self.session.delete(allocation)
        self.session.commit()

    # periods

    def current_period(self, budget_id: str, *, today: Optional[date] = None) -> Period:
        budget = self.get(budget_id)
        return current_period_dates(
            budget.period_type, budget.start_date, today=self._today(today)
        )

    def get_or_create_period(
        self, budget_id: str, *, today: Optional[date] = None
    ) -> BudgetPeriod:
        dates = self.current_period(budget_id, today=today)
        existing = self.session.scalar(
            select(BudgetPeriod).where(
                BudgetPeriod.budget_id == budget_id,
                BudgetPeriod.start_date == dates.start,
            )
        )
        if existing:
            return existing

        period = BudgetPeriod(
            budget_id=budget_id,
            start_date=dates.start,
            end_date=dates.end,
            status=PeriodStatus.open,
        )
        self.session.add(period)
        self.session.commit()
        self.session.refresh(period)
        logger.info(
            f"period_created: budget={budget_id} start={dates.start} end={dates.end}"
        )
        return period

    def get_period(self, period_id: str) -> BudgetPeriod:
        period = self.session.get(BudgetPeriod, period_id)
        if not period:
            raise PeriodNotFound(f"Budget period not found: {period_id}")
        return period

    def open_period(self, budget_id: str) -> Optional[BudgetPeriod]:
        self.get(budget_id)
        return self.session.scalar(
            select(BudgetPeriod)
            .where(
                BudgetPeriod.budget_id == budget_id,
                BudgetPeriod.status == PeriodStatus.open,
            )
            .order_by(BudgetPeriod.start_date.desc())
            .limit(1)
        )

    def close_period(self, period_id: str) -> BudgetPeriod:
        period = self.get_period(period_id)
        period.status = PeriodStatus.closed
        self.session.commit()
        return period

    # computations

    def calculate_rollover(
        self, budget_id: str, from_start: date, from_end: date
    ) -> list[RolloverResult]:
        self.get(budget_id)
        allocations = self.session.scalars(
            select(BudgetAllocation).where(
                BudgetAllocation.budget_id == budget_id,
                BudgetAllocation.rollover.is_(True),
            )
        ).all()
        if not allocations:
            return []

        spent = spent_by_category(
            self.session,
            from_start,
            from_end,
            category_ids=[a.category_id for a in allocations],
        )
        results: list[RolloverResult] = []
        for alloc in allocations:
            previous_spent = spent.get(alloc.category_id, 0)
            results.append(
                RolloverResult(
                    category_id=alloc.category_id,
                    previous_allocated_cents=alloc.amount_cents,
                    previous_spent_cents=previous_spent,
                    rollover_amount_cents=alloc.amount_cents - previous_spent,
                )
            )
        return results

    def _classify(self, spent_cents: int, allocated_cents: int) -> SpendStatus:
        # Decided on the exact ratio; percent_used is rounded for display only.
        if allocated_cents <= 0:
            return SpendStatus.over if spent_cents > 0 else SpendStatus.under
        if spent_cents > allocated_cents:
            return SpendStatus.over
        if spent_cents * 100 >= self.settings.warning_percent * allocated_cents:
            return SpendStatus.warning
        return SpendStatus.under

    def vs_actual(
        self, budget_id: str, period_start: date, period_end: date
    ) -> list[CategoryActual]:
        allocations = self.allocations(budget_id)
        spent = spent_by_category(self.session, period_start, period_end)

        rollovers: dict[str, int] = {}
        if any(a.rollover for a in allocations):
            previous = previous_period_dates(period_start, period_end)
            rollovers = {
                r.category_id: r.rollover_amount_cents
                for r in self.calculate_rollover(budget_id, previous.start, previous.end)
            }

        items: list[CategoryActual] = []
        for alloc in allocations:
            rollover = rollovers.get(alloc.category_id, 0)
            allocated = alloc.amount_cents + rollover
            spent_cents = spent.get(alloc.category_id, 0)
            items.append(
                CategoryActual(
                    category_id=alloc.category_id,
                    category_name=alloc.category.name,
                    allocated_cents=allocated,
                    rollover_cents=rollover,
                    spent_cents=spent_cents,
                    remaining_cents=allocated - spent_cents,
                    percent_used=percent_used(spent_cents, allocated),
                    status=self._classify(spent_cents, allocated),
                )
            )
        return items

    def status(self, budget_id: str, *, today: Optional[date] = None) -> BudgetStatus:
        budget = self.get(budget_id)
        today = self._today(today)
        period = current_period_dates(budget.period_type, budget.start_date, today=today)
        items = self.vs_actual(budget.id, period.start, period.end)

        total_allocated = sum(i.allocated_cents for i in items)
        total_spent = sum(i.spent_cents for i in items)
        total_remaining = total_allocated - total_spent
        total_pct = (
            round(total_spent / total_allocated * 100, 2) if total_allocated > 0 else 0.0
        )

        days_remaining = max(0, (period.end - today).days + 1)
        daily_remaining = (
            _round_cents(Decimal(total_remaining) / days_remaining)
            if days_remaining > 0
            else 0
        )

        return BudgetStatus(
            budget_id=budget.id,
            budget_name=budget.name,
            period_type=budget.period_type,
            current_period=period,
            total_allocated_cents=total_allocated,
            total_spent_cents=total_spent,
            total_remaining_cents=total_remaining,
            percent_used=total_pct,
            over_budget_categories=[
                OverBudgetCategory(
                    category_id=i.category_id,
                    category_name=i.category_name,
                    over_by_cents=i.spent_cents - i.allocated_cents,
                )
                for i in items
                if i.status == SpendStatus.over
            ],
            warning_categories=[
                WarningCategory(
                    category_id=i.category_id,
                    category_name=i.category_name,
                    percent_used=i.percent_used,
                )
                for i in items
                if i.status == SpendStatus.warning
            ],
            days_remaining_in_period=days_remaining,
            daily_budget_remaining_cents=daily_remaining,
        )


@dataclass(frozen=True)
class AllocationSuggestion:
    category_id: str
    category_name: str
    suggested_amount_cents: int
    based_on: str
    historical_avg_cents: int


class SuggestionService:
    def __init__(self, session: Session, settings: Optional[Settings] = None) -> None:
        self.session = session
        self.settings = settings or get_settings()

    def lookback_window(self, months: int, *, today: Optional[date] = None) -> Period:
        """The `months` complete calendar months before the current one."""
        this_month = month_start(today or local_today(self.settings.timezone))
        return Period(
            this_month - relativedelta(months=months),
            this_month - timedelta(days=1),
        )

    def suggest_allocations(
        self, months: int = 3, *, today: Optional[date] = None
    ) -> list[AllocationSuggestion]:
        if months < 1:
            raise ValueError("Lookback must be at least one month")
        window = self.lookback_window(months, today=today)
        based_on = "last month" if months == 1 else f"{months}-month average"

        stmt = (
            select(
                Transaction.category_id,
                Category.name.label("category_name"),
                func.sum(func.abs(Transaction.amount_cents)).label("total_spent"),
            )
            .join(Category, Category.id == Transaction.category_id)
            .where(
                Transaction.amount_cents < 0,
                Transaction.date.between(window.start, window.end),
                Category.is_income.is_(False),
            )
            .group_by(Transaction.category_id, Category.name)
        )

        floor = Decimal(self.settings.suggestion_floor_cents)
        step = Decimal(self.settings.suggestion_round_to_cents)
        suggestions: list[AllocationSuggestion] = []
        for row in self.session.execute(stmt):
            monthly_avg = Decimal(int(row.total_spent or 0)) / months
            if monthly_avg < floor:
                continue
            suggestions.append(
                AllocationSuggestion(
                    category_id=row.category_id,
                    category_name=row.category_name,
                    suggested_amount_cents=_round_cents(monthly_avg / step) * int(step),
                    based_on=based_on,
                    historical_avg_cents=_round_cents(monthly_avg),
                )
            )
        suggestions.sort(key=lambda s: (-s.historical_avg_cents, s.category_name))
        return suggestions


class BalanceSnapshotService:
    def __init__(self, session: Session) -> None:
        self.session = session

    def upsert(self, account_id: str, data: BalanceSnapshotIn) -> BalanceSnapshot:
        AccountService(self.session).get(account_id)
        existing = self.session.scalar(
            select(BalanceSnapshot).where(
                BalanceSnapshot.account_id == account_id,
                BalanceSnapshot.date == data.date,
            )
        )
        if existing:
            existing.balance_cents = data.balance_cents
            existing.source = data.source
            self.session.commit()
            self.session.refresh(existing)
            return existing

        snapshot = BalanceSnapshot(
            account_id=account_id,
            date=data.date,
            balance_cents=data.balance_cents,
            source=data.source,
        )
        self.session.add(snapshot)
        self.session.commit()
        self.session.refresh(snapshot)
        return snapshot

    def list_for_account(self, account_id: str) -> list[BalanceSnapshot]:
        return self.session.scalars(
            select(BalanceSnapshot)
            .where(BalanceSnapshot.account_id == account_id)
            .order_by(BalanceSnapshot.date)
        ).all()

    def latest(self, account_id: str) -> Optional[BalanceSnapshot]:
        return self.session.scalar(
            select(BalanceSnapshot)
            .where(BalanceSnapshot.account_id == account_id)
            .order_by(BalanceSnapshot.date.desc())
            .limit(1)
        )
