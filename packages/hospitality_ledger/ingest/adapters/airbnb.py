"""Adapter for Airbnb earnings exports (Earnings > Download CSV).

Header must name ``Confirmation Code``, ``Amount`` and ``Guest``. Dates are
``MM/DD/YYYY``. Amounts are positive; the ``Type`` column says what they are:

- ``Reservation``: one booking; ``Amount`` is the net that reaches the bank,
  ``Service fee`` is Airbnb's cut and ``Gross earnings`` what the guest paid.
- ``Payout``: an aggregate transfer (``Paid out``, else ``Amount``). When a
  file has these rows, reservations are attributed to them greedily in file
  order. Without them every reservation is its own payout, keyed by its
  confirmation code.

Other types (adjustments, resolutions, cancellation fees) and zero amounts
are skipped.
"""

from __future__ import annotations

import csv
from dataclasses import dataclass
from datetime import date

from ...models import OTAPlatform, ParsedPayout, ParsedPayoutItem, PayoutParseResult
from ...money import CURRENCY_DIGITS, Money, parse_amount, to_minor
from ..attribution import attribute_greedy
from ..fingerprint import payout_fingerprint
from ..utils import TableRow, clean_text, parse_date, read_table

REQUIRED_COLUMNS = ("Confirmation Code", "Amount", "Guest")
HEADER_LINES = 5
_DATE_FORMATS = ("%m/%d/%Y",)


@dataclass(frozen=True, slots=True)
class _PayoutRow:
    when: date
    minor: int
    currency: str


def _currency(row: TableRow, default: str) -> str:
    code = clean_text(row.get("Currency")).upper() or default
    if code not in CURRENCY_DIGITS:
        raise ValueError(f"unsupported currency {code!r}")
    return code


def _optional_date(raw: str) -> date | None:
    return parse_date(raw, _DATE_FORMATS) if raw.strip() else None


def parse_airbnb(text: str, *, currency: str = "ZAR") -> PayoutParseResult:
    platform = OTAPlatform.AIRBNB
    try:
        table = list(read_table(text, REQUIRED_COLUMNS, max_lines=HEADER_LINES))
    except csv.Error as exc:
        return PayoutParseResult(platform=platform, errors=[f"{platform}: {exc}"])

    reservations: list[tuple[date, ParsedPayoutItem]] = []
    payout_rows: list[_PayoutRow] = []
    errors: list[str] = []
    skipped = 0

    for row in table:
        kind = clean_text(row.get("Type")).casefold()
        if kind not in ("reservation", "payout"):
            skipped += 1
            continue
        try:
            when = parse_date(row.get("Date"), _DATE_FORMATS)
            cur = _currency(row, currency)
            if kind == "payout":
                minor = to_minor(abs(parse_amount(row.get("Paid out") or row.get("Amount"))), cur)
                if minor == 0:
                    skipped += 1
                    continue
                payout_rows.append(_PayoutRow(when, minor, cur))
                continue

            net_minor = to_minor(abs(parse_amount(row.get("Amount"))), cur)
            if net_minor == 0:
                skipped += 1
                continue
            fee_raw = row.get("Service fee")
            fee_minor = to_minor(abs(parse_amount(fee_raw)), cur) if fee_raw else 0
            gross_raw = row.get("Gross earnings")
            gross_minor = (
                to_minor(abs(parse_amount(gross_raw)), cur) if gross_raw else net_minor + fee_minor
            )
            item = ParsedPayoutItem(
                booking_ref=clean_text(row.get("Confirmation Code")) or None,
                guest_name=clean_text(row.get("Guest")) or None,
                check_in=_optional_date(row.get("Start date")),
                check_out=_optional_date(row.get("End date")),
                gross=Money(gross_minor, cur),
                commission=Money(max(gross_minor - net_minor, 0), cur),
                net=Money(net_minor, cur),
            )
        except ValueError as exc:
            errors.append(f"line {row.line_no}: {exc}")
            continue
        reservations.append((when, item))

    payouts: list[ParsedPayout] = []
    pending: list[ParsedPayoutItem] = []
    if payout_rows:
        unpaid = [item for _, item in reservations]
        for p in payout_rows:
            result = attribute_greedy(p.minor, unpaid)
            unpaid = result.unattributed
            payouts.append(
                ParsedPayout(
                    platform=platform,
                    payout_date=p.when,
                    net=Money(p.minor, p.currency),
                    items=tuple(result.attributed),
                    fingerprint=payout_fingerprint(
                        platform=platform.value, payout_date=p.when, net_minor=p.minor
                    ),
                )
            )
        pending = unpaid
    else:
        for when, item in reservations:
            payouts.append(
                ParsedPayout(
                    platform=platform,
                    payout_date=when,
                    net=item.net,
                    items=(item,),
                    fingerprint=payout_fingerprint(
                        platform=platform.value,
                        payout_date=when,
                        net_minor=item.net.minor,
                        external_ref=item.booking_ref,
                    ),
                    external_ref=item.booking_ref,
                )
            )

    return PayoutParseResult(
        platform=platform,
        payouts=payouts,
        pending=pending,
        skipped=skipped,
        errors=errors,
    )


__all__ = ["REQUIRED_COLUMNS", "parse_airbnb"]
