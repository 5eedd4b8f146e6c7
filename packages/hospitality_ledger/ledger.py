"""Ledger store: atomic units of work over the shared database.

Every financial write in the package goes through :func:`run_in_transaction`,
which opens one ``session_scope`` per attempt so a batch either commits in
full or leaves the ledger untouched. Transient connectivity failures are
retried with a short backoff; everything else is translated to a
:class:`~hospitality_ledger.errors.PersistenceError` and surfaced.

Ledger invariants are also enforced at flush time (see
:func:`_guard_ledger_rows`): transaction rows are never deleted, their
amount, currency, type and date never change after insert, and a VOID row
never becomes active again.
"""

from __future__ import annotations

import functools
import os
import random
import time
from collections.abc import Callable
from datetime import date
from decimal import Decimal

from db.client import session_scope
from db.models.finance import HlBooking, HlInvoice, HlOrganisation, HlProperty, HlTransaction
from sqlalchemy import event, func, inspect, select, update
from sqlalchemy.exc import (
    DBAPIError,
    DisconnectionError,
    InterfaceError,
    OperationalError,
    SQLAlchemyError,
)
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from .errors import LedgerError, NotFound, Outcome, PersistenceError, ValidationError
from .logging_setup import get_logger
from .models import (
    TransactionCategory,
    TransactionSource,
    TransactionStatus,
    TransactionType,
)
from .money import Money

_logger = get_logger("hospitality_ledger.ledger")

_RETRIES_ENV = "HL_PERSIST_RETRIES"
_DEFAULT_ATTEMPTS = 3
_BACKOFF_SCHEDULE_SEC: tuple[float, ...] = (0.1, 0.5, 2.0)
_JITTER_PCT: float = 0.20

# Columns fixed at insert; corrections are new rows.
_IMMUTABLE_TX_COLUMNS = ("amount_minor", "currency", "type", "date")


# ---- Retry helpers -----------------------------------------------------------


def _max_attempts() -> int:
    raw = os.getenv(_RETRIES_ENV)
    try:
        n = int(raw) if raw else _DEFAULT_ATTEMPTS
    except ValueError:
        n = _DEFAULT_ATTEMPTS
    return max(1, n)


def _is_retryable(exc: BaseException) -> bool:
    """True only for lost or unusable connections; logical errors are terminal."""

    if isinstance(exc, (OperationalError, DisconnectionError, InterfaceError)):
        return True
    return isinstance(exc, DBAPIError) and bool(exc.connection_invalidated)


def _sleep_backoff(attempt_no: int) -> None:
    if attempt_no - 1 < len(_BACKOFF_SCHEDULE_SEC):
        base = _BACKOFF_SCHEDULE_SEC[attempt_no - 1]
    else:
        base = _BACKOFF_SCHEDULE_SEC[-1]
    jitter = base * _JITTER_PCT
    time.sleep(max(0.0, base + random.uniform(-jitter, jitter)))


def resolve_database_url(database_url: str | None) -> str:
    url = database_url or os.getenv("DATABASE_URL")
    if not url:
        raise PersistenceError("DATABASE_URL is not set and no database URL was given")
    return url


def run_in_transaction[T](
    work: Callable[[Session], T],
    *,
    operation: str,
    database_url: str | None = None,
) -> T:
    """Run ``work`` inside one database transaction, retrying transient failures.

    ``work`` may be invoked more than once, so it must not have side effects
    outside the session. Domain errors raised by ``work`` roll the transaction
    back and propagate unchanged.
    """

    url = resolve_database_url(database_url)
    attempts = _max_attempts()
    attempt = 1
    while True:
        try:
            with session_scope(database_url=url) as session:
                return work(session)
        except LedgerError:
            raise
        except StaleDataError as e:
            _logger.warning("%s:conflict error=%s", operation, e)
            raise PersistenceError(
                f"{operation}: the record was changed by another operation; retry"
            ) from e
        except SQLAlchemyError as e:
            transient = _is_retryable(e)
            if attempt >= attempts or not transient:
                _logger.error(
                    "%s:failed_terminal attempt=%d error=%s",
                    operation,
                    attempt,
                    e.__class__.__name__,
                )
                raise PersistenceError(
                    f"{operation} failed: {e.__class__.__name__}", transient=transient
                ) from e
            _logger.warning(
                "%s:retry attempt=%d error=%s", operation, attempt, e.__class__.__name__
            )
            _sleep_backoff(attempt)
            attempt += 1


def outcome_boundary[**P, T](
    operation: str,
) -> Callable[[Callable[P, Outcome[T]]], Callable[P, Outcome[T]]]:
    """Turn ``LedgerError`` raised by a public operation into a failed :class:`Outcome`."""

    def decorate(fn: Callable[P, Outcome[T]]) -> Callable[P, Outcome[T]]:
        @functools.wraps(fn)
        def wrapper(*args: P.args, **kwargs: P.kwargs) -> Outcome[T]:
            try:
                return fn(*args, **kwargs)
            except LedgerError as err:
                _logger.warning("%s:rejected code=%s message=%s", operation, err.code, err.message)
                return Outcome.fail(err)

        return wrapper

    return decorate


# ---- Flush-time invariants ---------------------------------------------------


@event.listens_for(Session, "before_flush")
def _guard_ledger_rows(session: Session, _flush_context, _instances) -> None:
    for obj in session.deleted:
        if isinstance(obj, HlTransaction):
            raise ValidationError(
                f"Transaction {obj.id} cannot be deleted; void it instead"
            )
    for obj in session.dirty:
        if not isinstance(obj, HlTransaction):
            continue
        state = inspect(obj)
        for column in _IMMUTABLE_TX_COLUMNS:
            if state.attrs[column].history.deleted:
                raise ValidationError(
                    f"Transaction {obj.id}: {column} is immutable; record a correction instead"
                )
        status_hist = state.attrs["status"].history
        if TransactionStatus.VOID.value in (status_hist.deleted or ()) and (
            obj.status != TransactionStatus.VOID
        ):
            raise ValidationError(f"Transaction {obj.id} is VOID and cannot be re-activated")


# ---- Row access --------------------------------------------------------------


def lock_booking(session: Session, booking_id: str, *, organisation_id: str) -> HlBooking:
    """Load a booking with a row lock; ``NotFound`` outside the organisation."""

    booking = session.execute(
        select(HlBooking)
        .where(HlBooking.id == booking_id, HlBooking.organisation_id == organisation_id)
        .with_for_update()
    ).scalar_one_or_none()
    if booking is None:
        raise NotFound("Booking", booking_id)
    return booking


def get_property(session: Session, property_id: str, *, organisation_id: str) -> HlProperty:
    prop = session.execute(
        select(HlProperty).where(
            HlProperty.id == property_id, HlProperty.organisation_id == organisation_id
        )
    ).scalar_one_or_none()
    if prop is None:
        raise NotFound("Property", property_id)
    return prop


def next_invoice_number(session: Session, organisation_id: str) -> str:
    """Return ``<prefix><count+1:05d>`` for the organisation.

    The organisation row is locked so concurrent confirmations number
    sequentially; the unique constraint catches backends without row locks.
    """

    org = session.execute(
        select(HlOrganisation).where(HlOrganisation.id == organisation_id).with_for_update()
    ).scalar_one_or_none()
    if org is None:
        raise NotFound("Organisation", organisation_id)
    count = session.execute(
        select(func.count())
        .select_from(HlInvoice)
        .where(HlInvoice.organisation_id == organisation_id)
    ).scalar_one()
    return f"{org.invoice_prefix}{count + 1:05d}"


def add_transaction(
    session: Session,
    *,
    organisation_id: str,
    property_id: str,
    type: TransactionType,
    category: TransactionCategory,
    source: TransactionSource,
    status: TransactionStatus,
    amount: Money,
    on: date,
    description: str,
    reference: str | None = None,
    booking_id: str | None = None,
    invoice_id: str | None = None,
    vat_rate: Decimal | None = None,
    vat: Money | None = None,
    fingerprint: str | None = None,
    source_kind: str | None = None,
) -> HlTransaction:
    """Append one ledger row. Amounts are unsigned; ``type`` carries direction."""

    if amount.minor < 0:
        raise ValidationError(f"Transaction amount must not be negative: {amount}")
    if not description.strip():
        raise ValidationError("Transaction description must be non-empty")
    row = HlTransaction(
        organisation_id=organisation_id,
        property_id=property_id,
        booking_id=booking_id,
        invoice_id=invoice_id,
        type=type.value,
        category=category.value,
        source=source.value,
        status=status.value,
        amount_minor=amount.minor,
        currency=amount.currency,
        date=on,
        description=description,
        reference=reference,
        vat_rate=vat_rate,
        vat_minor=vat.minor if vat is not None else None,
        fingerprint=fingerprint,
        source_kind=source_kind,
    )
    session.add(row)
    return row


def void_booking_transactions(session: Session, booking_id: str) -> int:
    """Mark every non-VOID transaction of a booking VOID; returns the count."""

    result = session.execute(
        update(HlTransaction)
        .where(
            HlTransaction.booking_id == booking_id,
            HlTransaction.status != TransactionStatus.VOID.value,
        )
        .values(status=TransactionStatus.VOID.value)
        .execution_options(synchronize_session="fetch")
    )
    return result.rowcount or 0


__all__ = [
    "add_transaction",
    "get_property",
    "lock_booking",
    "next_invoice_number",
    "outcome_boundary",
    "resolve_database_url",
    "run_in_transaction",
    "void_booking_transactions",
]
