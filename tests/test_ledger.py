from __future__ import annotations

from datetime import date

import pytest
from db.client import session_scope
from db.models.finance import HlTransaction
from sqlalchemy.exc import IntegrityError, OperationalError

from hospitality_ledger import ledger
from hospitality_ledger.errors import PersistenceError, ValidationError
from hospitality_ledger.ledger import add_transaction, run_in_transaction
from hospitality_ledger.models import (
    TransactionCategory,
    TransactionSource,
    TransactionStatus,
    TransactionType,
)
from hospitality_ledger.money import Money

from tests.helpers.db import Catalog, add_bank_row, transactions


def test_transactions_cannot_be_deleted(db_url: str, catalog: Catalog):
    tx_id = add_bank_row(db_url, catalog, on=date(2026, 3, 1), amount_minor=100, description="x")

    with pytest.raises(ValidationError, match="void it instead"):
        with session_scope(database_url=db_url) as session:
            session.delete(session.get(HlTransaction, tx_id))
            session.flush()

    assert len(transactions(db_url)) == 1


@pytest.mark.parametrize(
    ("column", "value"),
    [
        ("amount_minor", 999),
        ("currency", "USD"),
        ("type", "EXPENSE"),
        ("date", date(2026, 4, 1)),
    ],
)
def test_booked_columns_are_immutable(db_url: str, catalog: Catalog, column: str, value):
    tx_id = add_bank_row(db_url, catalog, on=date(2026, 3, 1), amount_minor=100, description="x")

    with pytest.raises(ValidationError, match="immutable"):
        with session_scope(database_url=db_url) as session:
            setattr(session.get(HlTransaction, tx_id), column, value)
            session.flush()

    (row,) = transactions(db_url)
    assert (row.amount_minor, row.currency, row.type) == (100, "ZAR", "INCOME")


def test_status_and_description_may_change(db_url: str, catalog: Catalog):
    tx_id = add_bank_row(db_url, catalog, on=date(2026, 3, 1), amount_minor=100, description="x")

    with session_scope(database_url=db_url) as session:
        row = session.get(HlTransaction, tx_id)
        row.status = "RECONCILED"
        row.description = "Airbnb payout"

    (row,) = transactions(db_url)
    assert (row.status, row.description) == ("RECONCILED", "Airbnb payout")


def test_void_rows_stay_void(db_url: str, catalog: Catalog):
    tx_id = add_bank_row(
        db_url, catalog, on=date(2026, 3, 1), amount_minor=100, description="x", status="VOID"
    )

    with pytest.raises(ValidationError, match="re-activated"):
        with session_scope(database_url=db_url) as session:
            session.get(HlTransaction, tx_id).status = "CLEARED"
            session.flush()


def test_add_transaction_rejects_negative_amounts_and_blank_descriptions(
    db_url: str, catalog: Catalog
):
    common = dict(
        organisation_id=catalog.organisation_id,
        property_id=catalog.property_id,
        type=TransactionType.EXPENSE,
        category=TransactionCategory.OTHER,
        source=TransactionSource.MANUAL,
        status=TransactionStatus.CLEARED,
        on=date(2026, 3, 1),
    )
    with session_scope(database_url=db_url) as session:
        with pytest.raises(ValidationError):
            add_transaction(session, amount=Money(-1), description="refund", **common)
        with pytest.raises(ValidationError):
            add_transaction(session, amount=Money(100), description="  ", **common)

    assert transactions(db_url) == []


# ---- Unit of work ------------------------------------------------------------


def test_run_in_transaction_rolls_back_the_whole_batch(db_url: str, catalog: Catalog):
    def work(session):
        for n in range(3):
            add_transaction(
                session,
                organisation_id=catalog.organisation_id,
                property_id=catalog.property_id,
                type=TransactionType.INCOME,
                category=TransactionCategory.OTHER,
                source=TransactionSource.MANUAL,
                status=TransactionStatus.CLEARED,
                amount=Money(100 + n),
                on=date(2026, 3, 1),
                description=f"row {n}",
            )
        session.flush()
        raise ValidationError("late failure")

    with pytest.raises(ValidationError):
        run_in_transaction(work, operation="batch", database_url=db_url)

    assert transactions(db_url) == []


def test_run_in_transaction_retries_transient_errors(
    db_url: str, monkeypatch: pytest.MonkeyPatch
):
    monkeypatch.setenv("HL_PERSIST_RETRIES", "3")
    monkeypatch.setattr(ledger, "_sleep_backoff", lambda attempt: None)
    calls: list[int] = []

    def work(session):
        calls.append(1)
        if len(calls) < 3:
            raise OperationalError("SELECT 1", {}, Exception("connection reset"))
        return "done"

    assert run_in_transaction(work, operation="flaky", database_url=db_url) == "done"
    assert len(calls) == 3


def test_run_in_transaction_gives_up_after_max_attempts(
    db_url: str, monkeypatch: pytest.MonkeyPatch
):
    monkeypatch.setenv("HL_PERSIST_RETRIES", "2")
    monkeypatch.setattr(ledger, "_sleep_backoff", lambda attempt: None)
    calls: list[int] = []

    def work(session):
        calls.append(1)
        raise OperationalError("SELECT 1", {}, Exception("connection reset"))

    with pytest.raises(PersistenceError) as excinfo:
        run_in_transaction(work, operation="down", database_url=db_url)
    assert excinfo.value.transient
    assert len(calls) == 2


def test_logical_database_errors_are_not_retried(db_url: str, monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setenv("HL_PERSIST_RETRIES", "5")
    calls: list[int] = []

    def work(session):
        calls.append(1)
        raise IntegrityError("INSERT", {}, Exception("unique"))

    with pytest.raises(PersistenceError) as excinfo:
        run_in_transaction(work, operation="dup", database_url=db_url)
    assert not excinfo.value.transient
    assert len(calls) == 1


def test_database_url_falls_back_to_environment(db_url: str, monkeypatch: pytest.MonkeyPatch):
    with pytest.raises(PersistenceError):
        run_in_transaction(lambda s: 1, operation="noop")

    monkeypatch.setenv("DATABASE_URL", db_url)
    assert run_in_transaction(lambda s: 1, operation="noop") == 1
