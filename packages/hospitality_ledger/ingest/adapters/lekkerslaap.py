"""Adapter for LekkeSlaap statement exports.

Columns: ``Date (YYYY-MM-DD), Booking reference, Description, Amount, Balance``.
The header is searched within the first five lines.

Each booking settles over three rows sharing a booking reference:

- ``Guest payment`` (positive, gross);
- ``Commission`` (negative);
- ``Payment handling fee`` (negative).

The record completes once all three parts have been seen, in any order; net
is their sum. ``Payout`` rows carry no booking reference and represent the
money sent to the bank: each one is attributed greedily over the completed,
still-unpaid bookings seen so far (see :mod:`..attribution`). Bookings left
unpaid at the end are reported as pending settlement. ``Opening Balance`` and
``Closing Balance`` rows are skipped; the closing balance becomes
``pending_balance``. Partial bookings still open at end of file are dropped
and their rows counted as skipped.
"""

from __future__ import annotations

import csv
from dataclasses import dataclass, field
from decimal import Decimal

from ...models import OTAPlatform, ParsedPayout, ParsedPayoutItem, PayoutParseResult
from ...money import Money, parse_amount, to_minor
from ..attribution import attribute_greedy
from ..fingerprint import payout_fingerprint
from ..utils import ISO_DATE, clean_text, parse_date, read_table

REQUIRED_COLUMNS = ("Booking reference", "Description", "Amount")
HEADER_LINES = 5

GUEST_PAYMENT = "guest payment"
COMMISSION = "commission"
HANDLING_FEE = "payment handling fee"
_PARTS = (GUEST_PAYMENT, COMMISSION, HANDLING_FEE)


@dataclass(slots=True)
class _Pending:
    parts: dict[str, Decimal] = field(default_factory=dict)
    rows: int = 0


def _complete(ref: str, acc: _Pending, currency: str) -> ParsedPayoutItem:
    gross = acc.parts[GUEST_PAYMENT]
    deductions = abs(acc.parts[COMMISSION]) + abs(acc.parts[HANDLING_FEE])
    gross_minor = to_minor(gross, currency)
    net_minor = to_minor(gross - deductions, currency)
    return ParsedPayoutItem(
        booking_ref=ref,
        guest_name=None,
        check_in=None,
        check_out=None,
        gross=Money(gross_minor, currency),
        commission=Money(gross_minor - net_minor, currency),
        net=Money(net_minor, currency),
    )


def parse_lekkerslaap(text: str, *, currency: str = "ZAR") -> PayoutParseResult:
    platform = OTAPlatform.LEKKERSLAAP
    try:
        table = list(read_table(text, REQUIRED_COLUMNS, max_lines=HEADER_LINES))
    except csv.Error as exc:
        return PayoutParseResult(platform=platform, errors=[f"{platform}: {exc}"])

    open_bookings: dict[str, _Pending] = {}
    unpaid: list[ParsedPayoutItem] = []
    payouts: list[ParsedPayout] = []
    errors: list[str] = []
    skipped = 0
    pending_balance: Money | None = None

    for row in table:
        description = clean_text(row.get("Description"))
        label = description.casefold()
        ref = clean_text(row.get("Booking reference"))

        if label in ("opening balance", "closing balance"):
            if label == "closing balance":
                raw_balance = row.get("Balance") or row.get("Amount")
                try:
                    pending_balance = Money(to_minor(parse_amount(raw_balance), currency), currency)
                except ValueError as exc:
                    errors.append(f"line {row.line_no}: closing balance {exc}")
            skipped += 1
            continue

        try:
            when = parse_date(row.get("Date"), ISO_DATE)
            amount = parse_amount(row.get("Amount"))
            amount_minor = to_minor(abs(amount), currency)
        except ValueError as exc:
            errors.append(f"line {row.line_no}: {exc}")
            continue

        if not ref and label == "payout":
            payout_minor = amount_minor
            if payout_minor == 0:
                skipped += 1
                continue
            result = attribute_greedy(payout_minor, unpaid)
            unpaid = result.unattributed
            payouts.append(
                ParsedPayout(
                    platform=platform,
                    payout_date=when,
                    net=Money(payout_minor, currency),
                    items=tuple(result.attributed),
                    fingerprint=payout_fingerprint(
                        platform=platform.value, payout_date=when, net_minor=payout_minor
                    ),
                )
            )
            continue

        if ref and label in _PARTS:
            acc = open_bookings.setdefault(ref, _Pending())
            acc.parts[label] = amount
            acc.rows += 1
            if all(p in acc.parts for p in _PARTS):
                unpaid.append(_complete(ref, open_bookings.pop(ref), currency))
            continue

        skipped += 1

    # Orphaned partial bookings are never finalized.
    skipped += sum(acc.rows for acc in open_bookings.values())

    return PayoutParseResult(
        platform=platform,
        payouts=payouts,
        pending=unpaid,
        skipped=skipped,
        errors=errors,
        pending_balance=pending_balance,
    )


__all__ = ["REQUIRED_COLUMNS", "parse_lekkerslaap"]
