"""Booking lifecycle → ledger writes.

State machine::

    CONFIRMED ──► CHECKED_IN ──► CHECKED_OUT
        │
        ├──► CANCELLED
        └──► NO_SHOW

CHECKED_OUT, CANCELLED and NO_SHOW are terminal. Money is only created at
check-out (income plus, for commissioned channels, the commission expense);
confirmation just drafts an invoice. Cancelling or marking a no-show voids
whatever the booking has accumulated and appends a zero-amount VOID audit row;
nothing is ever deleted.

Each operation locks the booking row, re-checks its current status (callers'
claims about state are not trusted) and performs all of its writes in one
transaction. Failures come back as a failed :class:`~hospitality_ledger.errors.Outcome`.
"""

from __future__ import annotations

from collections.abc import Mapping
from datetime import date
from decimal import Decimal
from typing import Any, assert_never

import pydantic
from db.models.finance import HlBooking, HlInvoice, HlRoom
from sqlalchemy import select, update
from sqlalchemy.orm import Session

from .channels import is_commissioned, source_label
from .errors import InvalidTransition, NotFound, Outcome, ValidationError
from .ledger import (
    add_transaction,
    get_property,
    lock_booking,
    next_invoice_number,
    outcome_boundary,
    run_in_transaction,
    void_booking_transactions,
)
from .logging_setup import get_logger
from .models import (
    OPEN_INVOICE_STATUSES,
    TERMINAL_BOOKING_STATUSES,
    BookingCreate,
    BookingSource,
    BookingStatus,
    InvoiceStatus,
    TransactionCategory,
    TransactionSource,
    TransactionStatus,
    TransactionType,
)
from .money import Money, nights, vat_split

_logger = get_logger("hospitality_ledger.booking_finance")

_OPEN_INVOICE_VALUES = tuple(s.value for s in OPEN_INVOICE_STATUSES)


# ---- Helpers -----------------------------------------------------------------


def _validate_input(data: BookingCreate | Mapping[str, Any]) -> BookingCreate:
    if isinstance(data, BookingCreate):
        return data
    try:
        return BookingCreate.model_validate(data)
    except pydantic.ValidationError as e:
        parts = []
        for err in e.errors():
            loc = ".".join(str(p) for p in err.get("loc", ()))
            parts.append(f"{loc}: {err['msg']}" if loc else err["msg"])
        raise ValidationError("; ".join(parts)) from e


def _gross(booking: HlBooking) -> Money:
    return Money(booking.gross_minor, booking.currency)


def _open_invoice(session: Session, booking_id: str) -> HlInvoice | None:
    return (
        session.execute(
            select(HlInvoice)
            .where(HlInvoice.booking_id == booking_id, HlInvoice.status.in_(_OPEN_INVOICE_VALUES))
            .order_by(HlInvoice.created_at)
        )
        .scalars()
        .first()
    )


def _void_everything(session: Session, booking: HlBooking) -> tuple[int, int]:
    """Void the booking's transactions and cancel its unpaid invoices."""

    voided = void_booking_transactions(session, booking.id)
    cancelled = session.execute(
        update(HlInvoice)
        .where(
            HlInvoice.booking_id == booking.id,
            HlInvoice.status.not_in((InvoiceStatus.PAID.value, InvoiceStatus.CANCELLED.value)),
        )
        .values(status=InvoiceStatus.CANCELLED.value)
        .execution_options(synchronize_session="fetch")
    ).rowcount
    return voided, cancelled or 0


def _audit_row(
    session: Session, booking: HlBooking, *, on: date, description: str, reference: str
) -> None:
    add_transaction(
        session,
        organisation_id=booking.organisation_id,
        property_id=booking.property_id,
        booking_id=booking.id,
        type=TransactionType.EXPENSE,
        category=TransactionCategory.OTHER,
        source=TransactionSource.SYSTEM,
        status=TransactionStatus.VOID,
        amount=Money.zero(booking.currency),
        on=on,
        description=description,
        reference=reference,
        vat_rate=Decimal("0"),
        vat=Money.zero(booking.currency),
    )


# ---- Operations --------------------------------------------------------------


@outcome_boundary("create_booking")
def create_booking(
    data: BookingCreate | Mapping[str, Any], *, database_url: str | None = None
) -> Outcome[str]:
    """Validate and store a new CONFIRMED booking; the value is its id."""

    payload = _validate_input(data)

    def work(session: Session) -> str:
        prop = get_property(session, payload.property_id, organisation_id=payload.organisation_id)
        room = session.execute(
            select(HlRoom).where(HlRoom.id == payload.room_id, HlRoom.property_id == prop.id)
        ).scalar_one_or_none()
        if room is None:
            raise NotFound("Room", payload.room_id)
        gross = Money.of(payload.gross_amount, prop.currency)
        if not gross.is_positive:
            raise ValidationError(f"Gross amount rounds to zero in {prop.currency}")
        commission = gross.percent(payload.commission_pct)
        booking = HlBooking(
            organisation_id=payload.organisation_id,
            property_id=prop.id,
            room_id=room.id,
            guest_name=payload.guest_name,
            guest_email=payload.guest_email,
            check_in=payload.check_in,
            check_out=payload.check_out,
            source=payload.source.value,
            external_ref=payload.external_ref,
            currency=prop.currency,
            gross_minor=gross.minor,
            commission_minor=commission.minor,
            net_minor=(gross - commission).minor,
            vat_rate=payload.vat_rate if payload.vat_rate is not None else prop.vat_rate,
            vat_inclusive=(
                payload.vat_inclusive if payload.vat_inclusive is not None else prop.vat_inclusive
            ),
            status=BookingStatus.CONFIRMED.value,
        )
        session.add(booking)
        session.flush()
        return booking.id

    booking_id = run_in_transaction(work, operation="create_booking", database_url=database_url)
    _logger.info(
        "create_booking:done booking_id=%s property_id=%s source=%s",
        booking_id,
        payload.property_id,
        payload.source,
    )
    return Outcome.ok(f"Booking created for {payload.guest_name}", booking_id)


@outcome_boundary("on_confirmed")
def on_confirmed(
    booking_id: str,
    *,
    organisation_id: str,
    database_url: str | None = None,
    today: date | None = None,
) -> Outcome[str]:
    """Draft the booking's invoice once; the value is the invoice number.

    A second call finds the open invoice and returns its number without
    writing anything.
    """

    issue_date = today or date.today()

    def work(session: Session) -> tuple[str, bool]:
        booking = lock_booking(session, booking_id, organisation_id=organisation_id)
        existing = _open_invoice(session, booking.id)
        if existing is not None:
            return existing.invoice_number, False
        if booking.status != BookingStatus.CONFIRMED:
            raise InvalidTransition(booking.id, booking.status, "confirm")
        split = vat_split(_gross(booking), booking.vat_rate, booking.vat_inclusive)
        number = next_invoice_number(session, organisation_id)
        session.add(
            HlInvoice(
                organisation_id=organisation_id,
                booking_id=booking.id,
                invoice_number=number,
                issue_date=issue_date,
                due_date=booking.check_in,
                currency=booking.currency,
                subtotal_minor=split.excl.minor,
                tax_minor=split.vat.minor,
                total_minor=split.incl.minor,
                status=InvoiceStatus.DRAFT.value,
            )
        )
        return number, True

    number, created = run_in_transaction(work, operation="on_confirmed", database_url=database_url)
    if not created:
        return Outcome.ok(f"Invoice {number} already exists", number)
    _logger.info("on_confirmed:invoice_created booking_id=%s invoice=%s", booking_id, number)
    return Outcome.ok(f"Invoice {number} created as DRAFT", number)


@outcome_boundary("on_checked_in")
def on_checked_in(
    booking_id: str, *, organisation_id: str, database_url: str | None = None
) -> Outcome[None]:
    def work(session: Session) -> None:
        booking = lock_booking(session, booking_id, organisation_id=organisation_id)
        if booking.status != BookingStatus.CONFIRMED:
            raise InvalidTransition(booking.id, booking.status, "check in")
        booking.status = BookingStatus.CHECKED_IN.value

    run_in_transaction(work, operation="on_checked_in", database_url=database_url)
    _logger.info("on_checked_in:done booking_id=%s", booking_id)
    return Outcome.ok("Guest checked in")


@outcome_boundary("on_checked_out")
def on_checked_out(
    booking_id: str, *, organisation_id: str, database_url: str | None = None
) -> Outcome[list[str]]:
    """Record the stay's income (and channel commission); the value is the new transaction ids."""

    def work(session: Session) -> list[str]:
        booking = lock_booking(session, booking_id, organisation_id=organisation_id)
        if booking.status != BookingStatus.CHECKED_IN:
            raise InvalidTransition(booking.id, booking.status, "check out")

        n = nights(booking.check_in, booking.check_out)
        room = session.get(HlRoom, booking.room_id)
        room_name = room.name if room is not None else booking.room_id
        gross = _gross(booking)
        split = vat_split(gross, booking.vat_rate, booking.vat_inclusive)
        invoice = _open_invoice(session, booking.id)
        invoice_id = invoice.id if invoice is not None else None

        created = [
            add_transaction(
                session,
                organisation_id=booking.organisation_id,
                property_id=booking.property_id,
                booking_id=booking.id,
                invoice_id=invoice_id,
                type=TransactionType.INCOME,
                category=TransactionCategory.ACCOMMODATION,
                source=TransactionSource.BOOKING,
                status=TransactionStatus.PENDING,
                amount=gross,
                on=booking.check_out,
                description=(
                    f"Accommodation: {booking.guest_name} · {n} night{'s' if n != 1 else ''}"
                    f" ({room_name})"
                ),
                reference=booking.id,
                vat_rate=booking.vat_rate,
                vat=split.vat,
            )
        ]

        source = BookingSource(booking.source)
        commission = Money(booking.commission_minor, booking.currency)
        if is_commissioned(source) and commission.is_positive:
            created.append(
                add_transaction(
                    session,
                    organisation_id=booking.organisation_id,
                    property_id=booking.property_id,
                    booking_id=booking.id,
                    invoice_id=invoice_id,
                    type=TransactionType.EXPENSE,
                    category=TransactionCategory.OTA_COMMISSION,
                    source=TransactionSource.BOOKING,
                    status=TransactionStatus.PENDING,
                    amount=commission,
                    on=booking.check_out,
                    description=f"{source_label(source)} commission: {booking.guest_name}",
                    reference=booking.id,
                    vat_rate=Decimal("0"),
                    vat=Money.zero(booking.currency),
                )
            )

        if invoice is not None:
            invoice.status = InvoiceStatus.SENT.value
        booking.status = BookingStatus.CHECKED_OUT.value
        session.flush()
        return [row.id for row in created]

    ids = run_in_transaction(work, operation="on_checked_out", database_url=database_url)
    _logger.info("on_checked_out:done booking_id=%s transactions=%d", booking_id, len(ids))
    message = "Checked out. Income transaction created."
    if len(ids) > 1:
        message += " OTA commission recorded."
    return Outcome.ok(message, ids)


@outcome_boundary("on_cancelled")
def on_cancelled(
    booking_id: str,
    reason: str,
    *,
    organisation_id: str,
    database_url: str | None = None,
    today: date | None = None,
) -> Outcome[None]:
    """Void the booking's ledger rows and cancel its open invoices.

    Cancelling twice is an upstream logic error and fails loudly.
    """

    reason = (reason or "").strip()
    if not reason:
        raise ValidationError("A cancellation reason is required")
    on = today or date.today()

    def work(session: Session) -> tuple[int, int]:
        booking = lock_booking(session, booking_id, organisation_id=organisation_id)
        if booking.status in TERMINAL_BOOKING_STATUSES:
            raise InvalidTransition(booking.id, booking.status, "cancel")
        counts = _void_everything(session, booking)
        _audit_row(
            session,
            booking,
            on=on,
            description=f"CANCELLED: {booking.guest_name}. Reason: {reason}",
            reference=f"CANCEL-{booking.id[:8]}",
        )
        booking.status = BookingStatus.CANCELLED.value
        booking.notes = reason
        return counts

    voided, cancelled = run_in_transaction(
        work, operation="on_cancelled", database_url=database_url
    )
    _logger.info(
        "on_cancelled:done booking_id=%s voided=%d invoices_cancelled=%d",
        booking_id,
        voided,
        cancelled,
    )
    return Outcome.ok("Booking cancelled. All related transactions voided.")


@outcome_boundary("on_no_show")
def on_no_show(
    booking_id: str,
    *,
    organisation_id: str,
    database_url: str | None = None,
    today: date | None = None,
) -> Outcome[None]:
    on = today or date.today()

    def work(session: Session) -> str:
        booking = lock_booking(session, booking_id, organisation_id=organisation_id)
        if booking.status != BookingStatus.CONFIRMED:
            raise InvalidTransition(booking.id, booking.status, "mark no-show for")
        lost = _gross(booking).format()
        _void_everything(session, booking)
        _audit_row(
            session,
            booking,
            on=on,
            description=f"NO-SHOW: {booking.guest_name}. Lost revenue: {lost}",
            reference=f"NOSHOW-{booking.id[:8]}",
        )
        booking.status = BookingStatus.NO_SHOW.value
        booking.notes = f"No-show logged on {on.isoformat()}. Lost gross revenue: {lost}"
        return lost

    lost = run_in_transaction(work, operation="on_no_show", database_url=database_url)
    _logger.info("on_no_show:done booking_id=%s lost=%s", booking_id, lost)
    return Outcome.ok(f"No-show recorded. Related transactions voided. Lost revenue: {lost}")


@outcome_boundary("apply_transition")
def apply_transition(
    booking_id: str,
    target_status: BookingStatus | str,
    reason: str | None = None,
    *,
    organisation_id: str,
    database_url: str | None = None,
    today: date | None = None,
) -> Outcome[Any]:
    """Route a ``(booking, target status, reason)`` request to its operation."""

    try:
        target = BookingStatus(target_status)
    except ValueError:
        raise ValidationError(f"Unknown booking status: {target_status!r}") from None

    match target:
        case BookingStatus.CONFIRMED:
            return on_confirmed(
                booking_id, organisation_id=organisation_id, database_url=database_url, today=today
            )
        case BookingStatus.CHECKED_IN:
            return on_checked_in(
                booking_id, organisation_id=organisation_id, database_url=database_url
            )
        case BookingStatus.CHECKED_OUT:
            return on_checked_out(
                booking_id, organisation_id=organisation_id, database_url=database_url
            )
        case BookingStatus.CANCELLED:
            return on_cancelled(
                booking_id,
                reason or "",
                organisation_id=organisation_id,
                database_url=database_url,
                today=today,
            )
        case BookingStatus.NO_SHOW:
            return on_no_show(
                booking_id, organisation_id=organisation_id, database_url=database_url, today=today
            )
        case _:
            assert_never(target)


__all__ = [
    "apply_transition",
    "create_booking",
    "on_cancelled",
    "on_checked_in",
    "on_checked_out",
    "on_confirmed",
    "on_no_show",
]
