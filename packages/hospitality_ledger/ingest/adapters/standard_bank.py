"""Adapter for Standard Bank record-tagged statement exports.

The export has no column header. Every line starts with a record tag:

- ``ACC-NO``: account details, non-transactional;
- ``OPEN`` / ``CLOSE``: opening and closing balances, non-transactional;
- ``HIST``: ``HIST, YYYYMMDD, <seq>, <signed amount>, <description>,
  <reference>``, one transaction.

A reference that is not purely numeric is appended to the description as
``"<description> | <reference>"``. The first recognised tag must appear within
the first few lines, otherwise the file is rejected as not a Standard Bank
export. Preamble lines above it count as skipped.
"""

from __future__ import annotations

import csv
import io

from ...models import RawStatementRow, SourceKind, StatementParseResult, TransactionType
from ...money import Money, parse_amount, to_minor
from ..fingerprint import Fingerprinter
from ..utils import HEADER_SCAN_LINES, clean_text, parse_date

TRANSACTION_TAG = "HIST"
INFO_TAGS = frozenset({"ACC-NO", "OPEN", "CLOSE"})
_DATE_FORMATS = ("%Y%m%d",)


def _tag(cells: list[str]) -> str:
    return cells[0].strip().upper() if cells else ""


def parse_standard_bank(text: str, *, currency: str = "ZAR") -> StatementParseResult:
    records = list(csv.reader(io.StringIO(text)))
    known = INFO_TAGS | {TRANSACTION_TAG}
    first = next(
        (i for i, cells in enumerate(records[:HEADER_SCAN_LINES]) if _tag(cells) in known), None
    )
    if first is None:
        return StatementParseResult(
            errors=[
                "STANDARD_BANK: could not locate record tags "
                "(expected HIST/ACC-NO/OPEN/CLOSE lines)"
            ]
        )

    fingerprint = Fingerprinter(SourceKind.STANDARD_BANK.value)
    rows: list[RawStatementRow] = []
    errors: list[str] = []
    # Preamble lines before the first record tag are not transactions.
    skipped = sum(1 for cells in records[:first] if any(c.strip() for c in cells))

    for line_no, cells in enumerate(records[first:], start=first + 1):
        if not any(c.strip() for c in cells):
            continue
        tag = _tag(cells)
        if tag in INFO_TAGS:
            skipped += 1
            continue
        if tag != TRANSACTION_TAG:
            errors.append(f"line {line_no}: unrecognised record tag {cells[0]!r}")
            continue

        padded = list(cells) + [""] * (6 - len(cells))
        try:
            when = parse_date(padded[1], _DATE_FORMATS)
            signed = parse_amount(padded[3])
            minor = to_minor(abs(signed), currency)
        except ValueError as exc:
            errors.append(f"line {line_no}: {exc}")
            continue

        description = clean_text(padded[4])
        ref = clean_text(padded[5])
        if ref and not ref.isdigit():
            description = f"{description} | {ref}" if description else ref
        if not description:
            errors.append(f"line {line_no}: missing description")
            continue

        if minor == 0:
            skipped += 1
            continue
        direction = TransactionType.INCOME if signed > 0 else TransactionType.EXPENSE
        rows.append(
            RawStatementRow(
                line_no=line_no,
                date=when,
                description=description,
                amount=Money(minor, currency),
                direction=direction,
                fingerprint=fingerprint(when, minor, direction.value, description),
            )
        )

    return StatementParseResult(rows=rows, skipped=skipped, errors=errors)


__all__ = ["INFO_TAGS", "TRANSACTION_TAG", "parse_standard_bank"]
