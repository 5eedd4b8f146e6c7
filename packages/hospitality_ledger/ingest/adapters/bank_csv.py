"""Adapter for header-based bank statement CSV exports.

Supported dialects (required columns, date formats, amount layout):

- FNB: ``Date, Description, Amount[, Balance]``; ``DD MMM YYYY`` (also
  ``DD/MM/YYYY``); single signed amount.
- ABSA: ``Date, Description, Debit, Credit[, Balance]``; ``DD/MM/YYYY``.
- NEDBANK: ``Date, Description, Debit, Credit[, Balance]``; ``YYYY/MM/DD``.
- CAPITEC: ``[Account,] Date, Description, [Reference,] Amount[, Fees,
  Balance]``; ``DD/MM/YYYY`` (also ``YYYY-MM-DD``); signed amount, and a
  non-zero ``Fees`` cell becomes a separate expense row.

Row classification:

- balance lines (opening/closing/brought forward) and zero-amount lines are
  *skipped*;
- lines with neither a parseable date nor any amount are section headers and
  are *skipped*;
- a line with an amount but an unreadable date or amount is an *error*
  (reported with its line number, never guessed).
"""

from __future__ import annotations

import csv
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from enum import Enum

from ...models import RawStatementRow, SourceKind, StatementParseResult, TransactionType
from ...money import Money, parse_amount, to_minor
from ..fingerprint import Fingerprinter
from ..utils import TableRow, clean_text, is_balance_line, parse_date, read_table


class AmountLayout(Enum):
    SIGNED = "signed"
    DEBIT_CREDIT = "debit_credit"


@dataclass(frozen=True, slots=True)
class BankDialect:
    kind: SourceKind
    required: tuple[str, ...]
    date_formats: tuple[str, ...]
    layout: AmountLayout
    fee_column: str | None = None
    reference_column: str | None = None


DIALECTS: dict[SourceKind, BankDialect] = {
    SourceKind.FNB: BankDialect(
        SourceKind.FNB,
        ("Date", "Description", "Amount"),
        ("%d %b %Y", "%d/%m/%Y", "%Y/%m/%d"),
        AmountLayout.SIGNED,
    ),
    SourceKind.ABSA: BankDialect(
        SourceKind.ABSA,
        ("Date", "Description", "Debit", "Credit"),
        ("%d/%m/%Y",),
        AmountLayout.DEBIT_CREDIT,
    ),
    SourceKind.NEDBANK: BankDialect(
        SourceKind.NEDBANK,
        ("Date", "Description", "Debit", "Credit"),
        ("%Y/%m/%d",),
        AmountLayout.DEBIT_CREDIT,
    ),
    SourceKind.CAPITEC: BankDialect(
        SourceKind.CAPITEC,
        ("Date", "Description", "Amount"),
        ("%d/%m/%Y", "%Y-%m-%d"),
        AmountLayout.SIGNED,
        fee_column="Fees",
        reference_column="Reference",
    ),
}


class _Skip(Exception):
    """Row is non-transactional."""


def _signed_amount(row: TableRow, dialect: BankDialect) -> Decimal:
    if dialect.layout is AmountLayout.SIGNED:
        raw = row.get("Amount")
        if not raw:
            raise _Skip
        return parse_amount(raw)
    debit_raw, credit_raw = row.get("Debit"), row.get("Credit")
    if not debit_raw and not credit_raw:
        raise _Skip
    debit = abs(parse_amount(debit_raw)) if debit_raw else Decimal("0")
    credit = abs(parse_amount(credit_raw)) if credit_raw else Decimal("0")
    return credit - debit


def _has_any_amount(row: TableRow, dialect: BankDialect) -> bool:
    cols = ("Amount",) if dialect.layout is AmountLayout.SIGNED else ("Debit", "Credit")
    return any(row.get(c) for c in cols)


def parse_bank_csv(text: str, kind: SourceKind, *, currency: str = "ZAR") -> StatementParseResult:
    """Parse ``text`` in the ``kind`` bank dialect into normalized rows."""

    dialect = DIALECTS[kind]
    fingerprint = Fingerprinter(kind.value)
    rows: list[RawStatementRow] = []
    errors: list[str] = []
    skipped = 0

    def emit(line_no: int, when: date, description: str, signed: Decimal) -> None:
        minor = to_minor(abs(signed), currency)
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

    try:
        table = list(read_table(text, dialect.required))
    except csv.Error as exc:
        return StatementParseResult(errors=[f"{kind}: {exc}"])

    for row in table:
        description = clean_text(row.get("Description"))
        if is_balance_line(description):
            skipped += 1
            continue

        try:
            when = parse_date(row.get("Date"), dialect.date_formats)
        except ValueError as exc:
            if not _has_any_amount(row, dialect):
                skipped += 1
            else:
                errors.append(f"line {row.line_no}: {exc}")
            continue

        try:
            signed = _signed_amount(row, dialect)
            signed_minor = to_minor(signed, currency)
        except _Skip:
            skipped += 1
            continue
        except ValueError as exc:
            errors.append(f"line {row.line_no}: {exc}")
            continue

        if dialect.reference_column:
            ref = clean_text(row.get(dialect.reference_column))
            if ref and not ref.isdigit() and ref.casefold() not in description.casefold():
                description = f"{description} | {ref}" if description else ref
        if not description:
            errors.append(f"line {row.line_no}: missing description")
            continue

        if signed_minor == 0:
            skipped += 1
        else:
            emit(row.line_no, when, description, signed)

        if dialect.fee_column and row.get(dialect.fee_column):
            try:
                fee = abs(parse_amount(row.get(dialect.fee_column)))
                fee_minor = to_minor(fee, currency)
            except ValueError as exc:
                errors.append(f"line {row.line_no}: fee {exc}")
                continue
            if fee_minor != 0:
                emit(row.line_no, when, f"Fee: {description}", -fee)

    return StatementParseResult(rows=rows, skipped=skipped, errors=errors)


__all__ = [
    "DIALECTS",
    "AmountLayout",
    "BankDialect",
    "parse_bank_csv",
]
