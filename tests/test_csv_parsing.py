from datetime import date

import pytest

from bank_profiles import AmountFormat, BankProfile, ColumnMapping, HeaderPattern
from csv_utils import import_hash, parse_amount, parse_csv, parse_csv_file, parse_date

CHASE_CSV = """Transaction Date,Post Date,Description,Category,Type,Amount,Memo
01/15/2024,01/16/2024,Coffee Shop,Food & Drink,Sale,-4.50,
01/16/2024,01/17/2024,Payment Thank You,,Payment,0.00,

garbage,01/17/2024,Broken Row,,Sale,-1.00,
01/18/2024,01/19/2024,,,Sale,-2.00,
01/20/2024,01/21/2024,Refund,,Return,"1,204.10",
"""


def test_parse_amount_variants() -> None:
    assert parse_amount("-4.50") == -450
    assert parse_amount("(1,234.56)") == -123456
    assert parse_amount("$1,000.00") == 100000
    assert parse_amount(" €12 ") == 1200
    assert parse_amount("12.34-", AmountFormat(negative_indicator="suffix")) == -1234
    assert (
        parse_amount(
            "1.234,56", AmountFormat(decimal_separator=",", thousands_separator=".")
        )
        == 123456
    )
    with pytest.raises(ValueError):
        parse_amount("abc")


def test_parse_date_preferred_and_fallback_formats() -> None:
    assert parse_date("01/15/2024", "MM/dd/yyyy") == date(2024, 1, 15)
    assert parse_date("2024-01-15", "MM/dd/yyyy") == date(2024, 1, 15)
    assert parse_date("1/5/24", "MM/dd/yyyy") == date(2024, 1, 5)
    assert parse_date("31/01/2024") == date(2024, 1, 31)
    with pytest.raises(ValueError):
        parse_date("garbage")


def test_parse_csv_detects_profile_and_collects_row_errors() -> None:
    result = parse_csv(CHASE_CSV)

    assert result.detected_profile is not None
    assert result.detected_profile.id == "chase"
    # blank line is not a row
    assert result.total_rows == 5

    amounts = [t.amount_cents for t in result.transactions]
    assert amounts == [-450, 120410]
    assert result.transactions[0].description == "Coffee Shop"
    assert result.transactions[0].date == date(2024, 1, 15)
    assert result.transactions[0].raw_row["Category"] == "Food & Drink"
    assert result.transactions[0].import_hash is None

    assert result.errors == [
        "Row 4: Invalid date: garbage",
        "Row 5: Missing description",
    ]


def test_zero_amount_rows_can_be_kept() -> None:
    result = parse_csv(CHASE_CSV, drop_zero_amounts=False)
    assert [t.amount_cents for t in result.transactions] == [-450, 0, 120410]


def test_explicit_profile_skips_detection() -> None:
    content = "Date,Description,Amount\n01/15/2024,Coffee Shop,-4.50\n"
    result = parse_csv(content, profile_id="bofa")

    assert result.detected_profile.id == "bofa"
    assert len(result.transactions) == 1


def test_debit_credit_columns_are_combined() -> None:
    content = (
        "Date,Type,Check #,Description,Withdrawal,Deposit,Balance\n"
        "01/02/2024,DEBIT,,Grocery Store,$52.10,,1000.00\n"
        '01/03/2024,CREDIT,,Payroll,,"$1,500.00",2500.00\n'
    )
    result = parse_csv(content)

    assert result.detected_profile.id == "schwab-checking"
    assert [t.amount_cents for t in result.transactions] == [-5210, 150000]
    assert result.errors == []


def test_ragged_and_bom_prefixed_input() -> None:
    content = "\ufeffDate,Description,Amount\n01/15/2024,Coffee\n01/16/2024,Tea,-3.00,extra\n"
    result = parse_csv(content, profile_id="bofa")

    assert result.errors == ["Row 2: Missing amount"]
    assert len(result.transactions) == 1
    assert result.transactions[0].amount_cents == -300


def test_column_index_mapping() -> None:
    profile = BankProfile(
        id="positional",
        name="Positional",
        patterns=(HeaderPattern(("When", "What", "How Much")),),
        column_mapping=ColumnMapping(date=0, description=1, amount=2),
        date_format="yyyy-MM-dd",
    )
    result = parse_csv("When,What,How Much\n2024-02-01,Rent,(1500.00)\n", profile=profile)

    assert result.transactions[0].date == date(2024, 2, 1)
    assert result.transactions[0].amount_cents == -150000


def test_hash_attached_when_account_given() -> None:
    content = "Date,Description,Amount\n01/15/2024,Coffee Shop,-4.50\n"
    result = parse_csv(content, profile_id="bofa", account_id="acc1")

    txn = result.transactions[0]
    assert txn.import_hash == import_hash(date(2024, 1, 15), "Coffee Shop", -450, "acc1")


@pytest.mark.parametrize(
    "content, expected",
    [
        ("", "CSV file is empty or has no data rows"),
        ("Date,Description,Amount\n", "CSV file is empty or has no data rows"),
        ("Date,Description,Amount\n\n\n", "CSV file is empty or has no data rows"),
    ],
)
def test_empty_input_is_fatal(content: str, expected: str) -> None:
    result = parse_csv(content, profile_id="bofa")
    assert result.transactions == []
    assert result.errors == [expected]


def test_malformed_csv_is_fatal() -> None:
    content = 'Date,Description,Amount\n01/15/2024,"Coffee"x,-4.50\n'
    result = parse_csv(content)

    assert result.transactions == []
    assert len(result.errors) == 1
    assert result.errors[0].startswith("Failed to parse CSV:")


def test_unknown_profile_is_fatal() -> None:
    result = parse_csv("Date,Description,Amount\n01/15/2024,x,-1\n", profile_id="nope")
    assert result.errors == ["Unknown bank profile: nope"]
    assert result.detected_profile is None


def test_undetectable_headers_are_fatal() -> None:
    result = parse_csv("Foo,Bar\n1,2\n")
    assert result.transactions == []
    assert len(result.errors) == 1
    assert result.errors[0].startswith("Could not detect bank format")


def test_parse_csv_file(tmp_path) -> None:
    path = tmp_path / "export.csv"
    path.write_text("Date,Description,Amount\n01/15/2024,Coffee Shop,-4.50\n", encoding="utf-8")

    result = parse_csv_file(path, profile_id="bofa")
    assert [t.amount_cents for t in result.transactions] == [-450]
