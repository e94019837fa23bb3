import json
from datetime import date

import pytest
from sqlalchemy import func, select

from bank_profiles import BankProfile, ColumnMapping, HeaderPattern
from csv_utils import ParsedTransaction, import_hash, parse_csv
from models import Account, AccountType, Import, Transaction
from services import AccountNotFound, AccountService, ImportService

TEST_PROFILE = BankProfile(
    id="test",
    name="Test Bank",
    patterns=(HeaderPattern(("Date", "Description", "Amount")),),
    column_mapping=ColumnMapping(date="Date", description="Description", amount="Amount"),
    date_format="MM/dd/yyyy",
)

SIMPLE_CSV = "Date,Description,Amount\n01/15/2024,Coffee Shop,-4.50\n"


def _count(session, model) -> int:
    return session.scalar(select(func.count()).select_from(model))


def test_import_hash_is_stable_and_field_sensitive() -> None:
    base = import_hash(date(2024, 1, 15), "Coffee Shop", -450, "acc1")

    assert base == import_hash(date(2024, 1, 15), "Coffee Shop", -450, "acc1")
    assert len(base) == 16
    int(base, 16)

    assert base != import_hash(date(2024, 1, 16), "Coffee Shop", -450, "acc1")
    assert base != import_hash(date(2024, 1, 15), "Coffee Shop.", -450, "acc1")
    assert base != import_hash(date(2024, 1, 15), "Coffee Shop", -451, "acc1")
    assert base != import_hash(date(2024, 1, 15), "Coffee Shop", -450, "acc2")


def test_reimport_skips_everything(session, account, settings) -> None:
    result = parse_csv(SIMPLE_CSV, profile=TEST_PROFILE, account_id="acc1")
    service = ImportService(session, settings)

    first = service.execute_import(result.transactions, "acc1", "test.csv", bank_profile="test")
    assert (first.imported, first.skipped) == (1, 0)

    second = service.execute_import(result.transactions, "acc1", "test.csv", bank_profile="test")
    assert (second.imported, second.skipped) == (0, 1)

    assert _count(session, Transaction) == 1
    audits = service.list_imports("acc1")
    assert len(audits) == 2
    assert {(a.imported_count, a.skipped_count) for a in audits} == {(1, 0), (0, 1)}


def test_stored_row_keeps_raw_csv_and_hash(session, account, settings) -> None:
    result = parse_csv(SIMPLE_CSV, profile=TEST_PROFILE, account_id="acc1")
    ImportService(session, settings).execute_import(result.transactions, "acc1", "test.csv")

    stored = session.scalars(select(Transaction)).one()
    assert stored.amount_cents == -450
    assert stored.date == date(2024, 1, 15)
    assert stored.category_id is None
    assert stored.import_hash == result.transactions[0].import_hash
    assert json.loads(stored.raw_csv_row) == {
        "Date": "01/15/2024",
        "Description": "Coffee Shop",
        "Amount": "-4.50",
    }


def test_missing_hash_is_computed_by_executor(session, account, settings) -> None:
    parsed = ParsedTransaction(
        date=date(2024, 1, 15),
        description="Coffee Shop",
        amount_cents=-450,
        raw_row={},
    )
    service = ImportService(session, settings)
    assert service.execute_import([parsed], "acc1", "manual.csv").imported == 1

    stored = session.scalars(select(Transaction)).one()
    assert stored.import_hash == import_hash(date(2024, 1, 15), "Coffee Shop", -450, "acc1")

    with_hash = parse_csv(SIMPLE_CSV, profile=TEST_PROFILE, account_id="acc1")
    assert service.execute_import(with_hash.transactions, "acc1", "test.csv").skipped == 1


def test_same_rows_in_different_accounts_are_not_duplicates(session, account, settings) -> None:
    session.add(Account(id="acc2", name="Savings", institution="test", type=AccountType.savings))
    session.commit()
    service = ImportService(session, settings)

    for account_id in ("acc1", "acc2"):
        result = parse_csv(SIMPLE_CSV, profile=TEST_PROFILE, account_id=account_id)
        summary = service.execute_import(result.transactions, account_id, "test.csv")
        assert summary.imported == 1

    assert _count(session, Transaction) == 2


def test_rows_parsed_for_one_account_are_hashed_for_the_target(session, account, settings) -> None:
    session.add(Account(id="acc2", name="Savings", institution="test", type=AccountType.savings))
    session.commit()
    service = ImportService(session, settings)
    parsed_for_acc1 = parse_csv(SIMPLE_CSV, profile=TEST_PROFILE, account_id="acc1").transactions

    assert service.execute_import(parsed_for_acc1, "acc1", "test.csv").imported == 1
    summary = service.execute_import(parsed_for_acc1, "acc2", "test.csv")
    assert (summary.imported, summary.skipped) == (1, 0)

    stored = session.scalars(select(Transaction).where(Transaction.account_id == "acc2")).one()
    assert stored.import_hash == import_hash(date(2024, 1, 15), "Coffee Shop", -450, "acc2")
    assert service.execute_import(parsed_for_acc1, "acc2", "test.csv").skipped == 1


def test_unknown_account_is_rejected(session, settings) -> None:
    result = parse_csv(SIMPLE_CSV, profile=TEST_PROFILE)
    with pytest.raises(AccountNotFound):
        ImportService(session, settings).execute_import(result.transactions, "missing", "x.csv")
    assert _count(session, Import) == 0


def test_import_csv_detects_profile_and_reports_row_errors(session, account, settings) -> None:
    content = (
        "Transaction Date,Post Date,Description,Category,Type,Amount,Memo\n"
        "01/15/2024,01/16/2024,Coffee Shop,Food & Drink,Sale,-4.50,\n"
        "bad,01/16/2024,Broken,,Sale,-1.00,\n"
        "01/17/2024,01/18/2024,Salary,,Credit,2500.00,\n"
    )
    summary = ImportService(session, settings).import_csv(content, "acc1", "chase.csv")

    assert summary.bank_profile == "chase"
    assert (summary.imported, summary.skipped) == (2, 0)
    assert summary.errors == ["Row 3: Invalid date: bad"]

    audit = session.get(Import, summary.import_id)
    assert audit.row_count == 3
    assert audit.bank_profile == "chase"


def test_import_csv_with_fatal_error_writes_nothing(session, account, settings) -> None:
    summary = ImportService(session, settings).import_csv(
        "Date,Description,Amount\n", "acc1", "empty.csv"
    )

    assert (summary.imported, summary.skipped) == (0, 0)
    assert summary.import_id is None
    assert summary.errors == ["CSV file is empty or has no data rows"]
    assert _count(session, Import) == 0


def test_get_or_create_account_reuses_existing(session) -> None:
    accounts = AccountService(session)
    first = accounts.get_or_create("Chase Checking", institution="chase")
    second = accounts.get_or_create("Chase Checking", institution="ignored")

    assert first.id == second.id
    assert second.institution == "chase"
    assert len(accounts.list_all()) == 1
