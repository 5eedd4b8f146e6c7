"""Adapter for Booking.com payout statements (Finance > Statements export).

The header must name ``Statement Descriptor`` and ``Reference number``;
other columns used: ``Type/Transaction type``, ``Check-in date``,
``Check-out date``, ``Gross amount``, ``Transaction amount``,
``Payout amount``, ``Payout currency``, ``Payout date`` (ISO dates).

``(Payout)`` rows are the bank deposits, one per statement descriptor.
``Reservation`` rows belong to the payout with the same descriptor, in either
order. The descriptor appears verbatim in the depositing bank line, so it
becomes each item's bank hint. Reservations whose descriptor never gets a
payout row are pending settlement. Rows without a descriptor, payout rows of
zero, and any other row type are skipped.
"""

from __future__ import annotations

import csv
from dataclasses import dataclass, field
from datetime import date

from ...models import OTAPlatform, ParsedPayout, ParsedPayoutItem, PayoutParseResult
from ...money import CURRENCY_DIGITS, Money, parse_amount, to_minor
from ..fingerprint import payout_fingerprint
from ..utils import ISO_DATE, TableRow, clean_text, parse_date, read_table

REQUIRED_COLUMNS = ("Statement Descriptor", "Reference number")
HEADER_LINES = 5

PAYOUT_TYPE = "(payout)"
RESERVATION_TYPE = "reservation"


@dataclass(slots=True)
class _Batch:
    payout_date: date | None = None
    payout_minor: int = 0
    currency: str | None = None
    items: list[ParsedPayoutItem] = field(default_factory=list)


def _row_type(row: TableRow) -> str:
    return clean_text(row.get("Type/Transaction type") or row.get("Type")).casefold()


def _optional_date(raw: str) -> date | None:
    return parse_date(raw, ISO_DATE) if raw.strip() else None


def _reservation(row: TableRow, descriptor: str, currency: str) -> ParsedPayoutItem:
    gross = abs(parse_amount(row.get("Gross amount") or "0"))
    net_raw = row.get("Transaction amount") or row.get("Payable amount")
    net = abs(parse_amount(net_raw)) if net_raw else gross
    gross_minor = to_minor(gross, currency)
    net_minor = to_minor(net, currency)
    return ParsedPayoutItem(
        booking_ref=clean_text(row.get("Reference number")) or None,
        guest_name=None,
        check_in=_optional_date(row.get("Check-in date")),
        check_out=_optional_date(row.get("Check-out date")),
        gross=Money(gross_minor, currency),
        commission=Money(max(gross_minor - net_minor, 0), currency),
        net=Money(net_minor, currency),
        bank_hint=descriptor,
    )


def parse_booking_com(text: str, *, currency: str = "ZAR") -> PayoutParseResult:
    platform = OTAPlatform.BOOKING_COM
    try:
        table = list(read_table(text, REQUIRED_COLUMNS, max_lines=HEADER_LINES))
    except csv.Error as exc:
        return PayoutParseResult(platform=platform, errors=[f"{platform}: {exc}"])

    batches: dict[str, _Batch] = {}
    errors: list[str] = []
    skipped = 0

    for row in table:
        descriptor = clean_text(row.get("Statement Descriptor"))
        if not descriptor:
            skipped += 1
            continue
        kind = _row_type(row)
        try:
            if kind == PAYOUT_TYPE:
                payout_currency = clean_text(row.get("Payout currency")).upper() or currency
                if payout_currency not in CURRENCY_DIGITS:
                    raise ValueError(f"unsupported payout currency {payout_currency!r}")
                payout_raw = row.get("Payout amount") or "0"
                payout_minor = to_minor(abs(parse_amount(payout_raw)), payout_currency)
                if payout_minor == 0:
                    skipped += 1
                    continue
                batch = batches.setdefault(descriptor, _Batch())
                batch.payout_date = parse_date(row.get("Payout date"), ISO_DATE)
                batch.payout_minor = payout_minor
                batch.currency = payout_currency
            elif kind == RESERVATION_TYPE:
                item = _reservation(row, descriptor, currency)
                batches.setdefault(descriptor, _Batch()).items.append(item)
            else:
                skipped += 1
        except ValueError as exc:
            errors.append(f"line {row.line_no}: {exc}")

    payouts: list[ParsedPayout] = []
    pending: list[ParsedPayoutItem] = []
    for descriptor, batch in batches.items():
        if batch.payout_date is None or batch.currency is None:
            pending.extend(batch.items)
            continue
        payouts.append(
            ParsedPayout(
                platform=platform,
                payout_date=batch.payout_date,
                net=Money(batch.payout_minor, batch.currency),
                items=tuple(batch.items),
                fingerprint=payout_fingerprint(
                    platform=platform.value,
                    payout_date=batch.payout_date,
                    net_minor=batch.payout_minor,
                    external_ref=descriptor,
                ),
                external_ref=descriptor,
            )
        )

    return PayoutParseResult(
        platform=platform,
        payouts=payouts,
        pending=pending,
        skipped=skipped,
        errors=errors,
    )


__all__ = ["REQUIRED_COLUMNS", "parse_booking_com"]
