import csv
import hashlib
import logging
import re
from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from io import StringIO
from pathlib import Path
from typing import Optional, Sequence, Union

from dateutil import parser as dateutil_parser

from bank_detector import (
    DEFAULT_CONFIDENCE_THRESHOLD,
    DEFAULT_PARTIAL_MATCH_WEIGHT,
    detect_bank_profile,
)
from bank_profiles import ALL_PROFILES, AmountFormat, BankProfile, ColumnRef, get_profile_by_id

logger = logging.getLogger(__name__)

FALLBACK_DATE_FORMATS = (
    "%m/%d/%Y",
    "%m/%d/%y",
    "%Y-%m-%d",
    "%d/%m/%Y",
)
MIN_PLAUSIBLE_YEAR = 1900

_CURRENCY_SYMBOLS = re.compile(r"[$£€¥]")
_NON_NUMERIC = re.compile(r"[^\d.\-]")
_PARENTHESIZED = re.compile(r"^\(.*\)$")

# date-fns / Unicode style tokens, longest first
_DATE_TOKENS = (
    ("yyyy", "%Y"),
    ("YYYY", "%Y"),
    ("yy", "%y"),
    ("YY", "%y"),
    ("MM", "%m"),
    ("M", "%m"),
    ("dd", "%d"),
    ("DD", "%d"),
    ("d", "%d"),
    ("D", "%d"),
)
_DATE_TOKEN_RE = re.compile("|".join(token for token, _ in _DATE_TOKENS))


@dataclass(frozen=True)
class ParsedTransaction:
    date: date
    description: str
    amount_cents: int
    raw_row: dict[str, str]
    import_hash: Optional[str] = None


@dataclass(frozen=True)
class RowError:
    row_number: int
    message: str

    def __str__(self) -> str:
        return f"Row {self.row_number}: {self.message}"


@dataclass
class ParseResult:
    transactions: list[ParsedTransaction] = field(default_factory=list)
    detected_profile: Optional[BankProfile] = None
    errors: list[str] = field(default_factory=list)
    total_rows: int = 0


RowOutcome = Union[ParsedTransaction, RowError, None]


def to_strptime_format(fmt: str) -> str:
    """Translate `MM/dd/yyyy` style patterns; strptime patterns pass through."""
    if "%" in fmt:
        return fmt
    lookup = dict(_DATE_TOKENS)
    return _DATE_TOKEN_RE.sub(lambda m: lookup[m.group(0)], fmt)


def parse_date(value: str, preferred_format: Optional[str] = None) -> date:
    value = value.strip()
    formats: list[str] = []
    if preferred_format:
        formats.append(to_strptime_format(preferred_format))
    formats.extend(f for f in FALLBACK_DATE_FORMATS if f not in formats)

    for fmt in formats:
        try:
            parsed = datetime.strptime(value, fmt).date()
        except ValueError:
            continue
        # "0024" is a truncated year, not the first century
        if parsed.year >= MIN_PLAUSIBLE_YEAR:
            return parsed

    try:
        return dateutil_parser.parse(value).date()
    except (ValueError, OverflowError) as exc:
        raise ValueError(f"Invalid date: {value}") from exc


def parse_amount(value: str, amount_format: Optional[AmountFormat] = None) -> int:
    """Parse a bank amount string into signed cents."""
    fmt = amount_format or AmountFormat()
    clean = value.strip()

    if fmt.negative_indicator == "parentheses" or _PARENTHESIZED.match(clean):
        if clean.startswith("(") and clean.endswith(")"):
            clean = "-" + clean[1:-1]
    if fmt.negative_indicator == "suffix" and clean.endswith("-"):
        clean = "-" + clean[:-1]

    clean = _CURRENCY_SYMBOLS.sub("", clean)
    if fmt.thousands_separator:
        clean = clean.replace(fmt.thousands_separator, "")
    if fmt.decimal_separator != ".":
        clean = clean.replace(fmt.decimal_separator, ".")
    clean = _NON_NUMERIC.sub("", clean)

    try:
        amount = Decimal(clean)
    except InvalidOperation as exc:
        raise ValueError(f"Invalid amount: {value}") from exc
    return int((amount * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def format_cents(cents: int) -> str:
    return str((Decimal(cents) / 100).quantize(Decimal("0.01")))


def import_hash(
    txn_date: date, description: str, amount_cents: int, account_id: str
) -> str:
    """Dedup fingerprint: 16 hex chars of sha256 over the semantic fields."""
    data = f"{txn_date.isoformat()}|{description}|{format_cents(amount_cents)}|{account_id}"
    return hashlib.sha256(data.encode("utf-8")).hexdigest()[:16]


def _column_value(row: dict[str, str], key: Optional[ColumnRef]) -> Optional[str]:
    if key is None:
        return None
    if isinstance(key, int):
        values = list(row.values())
        if 0 <= key < len(values):
            return values[key] or None
        return None
    if key in row:
        return row[key] or None
    lower_key = key.lower()
    for name, value in row.items():
        if name.lower() == lower_key:
            return value or None
    return None


def _parse_row(
    row: dict[str, str],
    row_number: int,
    profile: BankProfile,
    *,
    account_id: Optional[str],
    drop_zero_amounts: bool,
) -> RowOutcome:
    mapping = profile.column_mapping

    date_raw = _column_value(row, mapping.date)
    if not date_raw:
        return RowError(row_number, "Missing date")
    try:
        txn_date = parse_date(date_raw, profile.date_format)
    except ValueError as exc:
        return RowError(row_number, str(exc))

    description = _column_value(row, mapping.description)
    if not description:
        return RowError(row_number, "Missing description")

    try:
        if mapping.amount is not None:
            amount_raw = _column_value(row, mapping.amount)
            if not amount_raw:
                return RowError(row_number, "Missing amount")
            amount_cents = parse_amount(amount_raw, profile.amount_format)
        elif mapping.debit is not None and mapping.credit is not None:
            debit_raw = _column_value(row, mapping.debit)
            credit_raw = _column_value(row, mapping.credit)
            debit = parse_amount(debit_raw, profile.amount_format) if debit_raw else 0
            credit = parse_amount(credit_raw, profile.amount_format) if credit_raw else 0
            amount_cents = credit - abs(debit)
        else:
            return RowError(row_number, "No amount mapping configured")
    except ValueError as exc:
        return RowError(row_number, str(exc))

    # zero rows are balance markers in most exports, not transactions
    if amount_cents == 0 and drop_zero_amounts:
        return None

    return ParsedTransaction(
        date=txn_date,
        description=description,
        amount_cents=amount_cents,
        raw_row=row,
        import_hash=(
            import_hash(txn_date, description, amount_cents, account_id)
            if account_id
            else None
        ),
    )


def _read_records(content: str) -> tuple[list[str], list[dict[str, str]]]:
    reader = csv.reader(StringIO(content.lstrip("\ufeff")), strict=True)
    headers: Optional[list[str]] = None
    records: list[dict[str, str]] = []
    for values in reader:
        cells = [v.strip() for v in values]
        if not any(cells):
            continue
        if headers is None:
            headers = cells
            continue
        # tolerate ragged rows: pad short ones, drop surplus cells
        cells = (cells + [""] * len(headers))[: len(headers)]
        records.append(dict(zip(headers, cells)))
    return headers or [], records


def parse_csv(
    content: str,
    *,
    profile_id: Optional[str] = None,
    profile: Optional[BankProfile] = None,
    account_id: Optional[str] = None,
    profiles: Sequence[BankProfile] = ALL_PROFILES,
    threshold: float = DEFAULT_CONFIDENCE_THRESHOLD,
    partial_weight: float = DEFAULT_PARTIAL_MATCH_WEIGHT,
    drop_zero_amounts: bool = True,
) -> ParseResult:
    """Parse bank CSV text into normalized transactions.

    File-level problems (malformed CSV, no data rows, unknown or undetectable
    profile) return no transactions and a single explanatory error. Row-level
    problems are collected as ``Row N: ...`` strings and the row is skipped.
    When `account_id` is given each transaction carries its import hash.
    """
    try:
        headers, records = _read_records(content)
    except csv.Error as exc:
        return ParseResult(errors=[f"Failed to parse CSV: {exc}"])

    if not records:
        return ParseResult(errors=["CSV file is empty or has no data rows"])

    if profile is None and profile_id:
        profile = get_profile_by_id(profile_id)
        if profile is None:
            return ParseResult(
                errors=[f"Unknown bank profile: {profile_id}"],
                total_rows=len(records),
            )

    if profile is None:
        detection = detect_bank_profile(
            headers,
            profiles=profiles,
            threshold=threshold,
            partial_weight=partial_weight,
        )
        if detection is None:
            return ParseResult(
                errors=[
                    "Could not detect bank format. Please specify a bank profile."
                ],
                total_rows=len(records),
            )
        profile = detection.profile
        logger.info(
            f"csv_detect: profile={profile.id} confidence={detection.confidence:.2f}"
        )

    outcomes = [
        _parse_row(
            row,
            # 1-indexed, plus the header line
            idx + 2,
            profile,
            account_id=account_id,
            drop_zero_amounts=drop_zero_amounts,
        )
        for idx, row in enumerate(records)
    ]
    transactions = [o for o in outcomes if isinstance(o, ParsedTransaction)]
    errors = [str(o) for o in outcomes if isinstance(o, RowError)]
    if errors:
        logger.info(
            f"csv_parse: profile={profile.id} rows={len(records)} errors={len(errors)}"
        )

    return ParseResult(
        transactions=transactions,
        detected_profile=profile,
        errors=errors,
        total_rows=len(records),
    )


def parse_csv_file(path: Union[str, Path], **options) -> ParseResult:
    content = Path(path).read_text(encoding="utf-8-sig")
    return parse_csv(content, **options)
