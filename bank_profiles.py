"""Static registry of known bank CSV export layouts.

Adding a bank means adding a `BankProfile` to `ALL_PROFILES`; neither the
detector nor the CSV pipeline needs to change.
"""

from dataclasses import dataclass, field
from typing import Literal, Optional, Union

ColumnRef = Union[str, int]

REGISTRY_VERSION = 1


@dataclass(frozen=True)
class HeaderPattern:
    headers: tuple[str, ...]


@dataclass(frozen=True)
class ColumnMapping:
    date: ColumnRef
    description: ColumnRef
    amount: Optional[ColumnRef] = None
    debit: Optional[ColumnRef] = None
    credit: Optional[ColumnRef] = None
    category: Optional[ColumnRef] = None
    balance: Optional[ColumnRef] = None


@dataclass(frozen=True)
class AmountFormat:
    negative_indicator: Literal["prefix", "suffix", "parentheses"] = "prefix"
    decimal_separator: str = "."
    thousands_separator: str = ","


@dataclass(frozen=True)
class BankProfile:
    id: str
    name: str
    patterns: tuple[HeaderPattern, ...]
    column_mapping: ColumnMapping
    date_format: str
    amount_format: AmountFormat = field(default_factory=AmountFormat)

    @property
    def institution(self) -> str:
        return self.id.split("-")[0]


def _patterns(*header_sets: list[str]) -> tuple[HeaderPattern, ...]:
    return tuple(HeaderPattern(tuple(headers)) for headers in header_sets)


US_DATE = "MM/dd/yyyy"

BOFA = BankProfile(
    id="bofa",
    name="Bank of America",
    patterns=_patterns(
        ["Date", "Description", "Amount", "Running Bal."],
        ["Posted Date", "Reference Number", "Payee", "Address", "Amount"],
        ["Date", "Description", "Amount", "Balance"],
    ),
    column_mapping=ColumnMapping(date="Date", description="Description", amount="Amount"),
    date_format=US_DATE,
)

BOFA_CREDIT = BankProfile(
    id="bofa-credit",
    name="Bank of America Credit Card",
    patterns=_patterns(
        ["Posted Date", "Reference Number", "Payee", "Address", "Amount"],
    ),
    column_mapping=ColumnMapping(
        date="Posted Date", description="Payee", amount="Amount"
    ),
    date_format=US_DATE,
)

CHASE = BankProfile(
    id="chase",
    name="Chase",
    patterns=_patterns(
        ["Transaction Date", "Post Date", "Description", "Category", "Type", "Amount"],
        [
            "Transaction Date",
            "Post Date",
            "Description",
            "Category",
            "Type",
            "Amount",
            "Memo",
        ],
        [
            "Details",
            "Posting Date",
            "Description",
            "Amount",
            "Type",
            "Balance",
            "Check or Slip #",
        ],
    ),
    column_mapping=ColumnMapping(
        date="Transaction Date",
        description="Description",
        amount="Amount",
        category="Category",
    ),
    date_format=US_DATE,
)

CHASE_CHECKING = BankProfile(
    id="chase-checking",
    name="Chase Checking",
    patterns=_patterns(
        [
            "Details",
            "Posting Date",
            "Description",
            "Amount",
            "Type",
            "Balance",
            "Check or Slip #",
        ],
    ),
    column_mapping=ColumnMapping(
        date="Posting Date",
        description="Description",
        amount="Amount",
        balance="Balance",
    ),
    date_format=US_DATE,
)

SCHWAB_CHECKING = BankProfile(
    id="schwab-checking",
    name="Charles Schwab Checking",
    patterns=_patterns(
        ["Date", "Type", "Check #", "Description", "Withdrawal", "Deposit", "Balance"],
        [
            "Date",
            "Type",
            "CheckNumber",
            "Description",
            "Withdrawal",
            "Deposit",
            "RunningBalance",
        ],
    ),
    column_mapping=ColumnMapping(
        date="Date",
        description="Description",
        debit="Withdrawal",
        credit="Deposit",
        balance="Balance",
    ),
    date_format=US_DATE,
)

SCHWAB_BROKERAGE = BankProfile(
    id="schwab-brokerage",
    name="Charles Schwab Brokerage",
    patterns=_patterns(
        [
            "Date",
            "Action",
            "Symbol",
            "Description",
            "Quantity",
            "Price",
            "Fees & Comm",
            "Amount",
        ],
    ),
    column_mapping=ColumnMapping(date="Date", description="Description", amount="Amount"),
    date_format=US_DATE,
)

FIDELITY_CASH = BankProfile(
    id="fidelity-cash",
    name="Fidelity Cash Management",
    patterns=_patterns(
        ["Date", "Transaction", "Name", "Memo", "Amount"],
        ["Date", "Transaction Type", "Name", "Memo", "Amount"],
    ),
    column_mapping=ColumnMapping(date="Date", description="Name", amount="Amount"),
    date_format=US_DATE,
)

FIDELITY_BROKERAGE = BankProfile(
    id="fidelity-brokerage",
    name="Fidelity Brokerage",
    patterns=_patterns(
        [
            "Run Date",
            "Action",
            "Symbol",
            "Description",
            "Type",
            "Quantity",
            "Price",
            "Commission",
            "Fees",
            "Accrued Interest",
            "Amount",
            "Settlement Date",
        ],
        [
            "Run Date",
            "Account",
            "Action",
            "Symbol",
            "Description",
            "Type",
            "Quantity",
            "Price",
            "Commission",
            "Fees",
            "Accrued Interest",
            "Amount",
            "Cash Balance",
            "Settlement Date",
        ],
    ),
    column_mapping=ColumnMapping(
        date="Run Date", description="Description", amount="Amount"
    ),
    date_format=US_DATE,
)

FIDELITY_CREDIT = BankProfile(
    id="fidelity-credit",
    name="Fidelity Credit Card",
    patterns=_patterns(["Date", "Transaction", "Name", "Memo", "Amount"]),
    column_mapping=ColumnMapping(date="Date", description="Name", amount="Amount"),
    date_format=US_DATE,
)

# Order matters: on equal detection scores the earlier profile wins.
ALL_PROFILES: tuple[BankProfile, ...] = (
    BOFA,
    BOFA_CREDIT,
    CHASE,
    CHASE_CHECKING,
    SCHWAB_CHECKING,
    SCHWAB_BROKERAGE,
    FIDELITY_CASH,
    FIDELITY_BROKERAGE,
    FIDELITY_CREDIT,
)


def get_profile_by_id(profile_id: str) -> Optional[BankProfile]:
    for profile in ALL_PROFILES:
        if profile.id == profile_id:
            return profile
    return None


def profiles_for_institution(institution: str) -> list[BankProfile]:
    needle = institution.strip().lower()
    return [
        p
        for p in ALL_PROFILES
        if p.id.startswith(needle) or needle in p.name.lower()
    ]


INSTITUTION_NAMES = {
    "bofa": "Bank of America",
    "chase": "Chase",
    "schwab": "Charles Schwab",
    "fidelity": "Fidelity",
}


def supported_banks() -> list[dict[str, str]]:
    """One entry per institution, keyed by the profile id prefix."""
    seen: set[str] = set()
    banks: list[dict[str, str]] = []
    for profile in ALL_PROFILES:
        if profile.institution in seen:
            continue
        seen.add(profile.institution)
        name = INSTITUTION_NAMES.get(profile.institution, profile.institution.title())
        banks.append({"id": profile.institution, "name": name})
    return banks
