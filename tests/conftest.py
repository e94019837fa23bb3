from datetime import date
from itertools import count

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import Session

from config import Settings
from csv_utils import import_hash
from database import Base
from models import Account, AccountType, Transaction
from services import CategoryService

_sequence = count()


@pytest.fixture
def settings() -> Settings:
    return Settings(database_url="sqlite://")


@pytest.fixture
def session():
    engine = create_engine("sqlite:///:memory:")
    Base.metadata.create_all(engine)
    with Session(engine) as session:
        CategoryService(session).seed_defaults()
        yield session


@pytest.fixture
def account(session: Session) -> Account:
    acct = Account(id="acc1", name="Everyday", institution="test", type=AccountType.checking)
    session.add(acct)
    session.commit()
    return acct


def add_transaction(
    session: Session,
    account_id: str,
    txn_date: date,
    amount_cents: int,
    category_id=None,
    description: str = "Purchase",
) -> Transaction:
    description = f"{description} #{next(_sequence)}"
    txn = Transaction(
        account_id=account_id,
        date=txn_date,
        description=description,
        amount_cents=amount_cents,
        category_id=category_id,
        import_hash=import_hash(txn_date, description, amount_cents, account_id),
    )
    session.add(txn)
    session.commit()
    return txn
