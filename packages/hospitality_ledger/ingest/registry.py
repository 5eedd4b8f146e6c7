"""Dispatch a statement file to the adapter for its declared source kind.

Adapters never raise for file-level problems; they return a result whose
``errors`` describe what went wrong. What escapes here is
:class:`~hospitality_ledger.errors.ParseError` for bytes that are not text and
:class:`~hospitality_ledger.errors.ValidationError` when a bank entry point is
handed a payout format or the other way round.
"""

from __future__ import annotations

from ..errors import ValidationError
from ..models import ParseResult, PayoutParseResult, SourceKind, StatementParseResult
from ..money import DEFAULT_CURRENCY
from .adapters.airbnb import parse_airbnb
from .adapters.bank_csv import parse_bank_csv
from .adapters.booking_com import parse_booking_com
from .adapters.lekkerslaap import parse_lekkerslaap
from .adapters.standard_bank import parse_standard_bank
from .utils import decode_content


def parse_bank_statement(
    content: bytes | str,
    source_kind: SourceKind,
    *,
    currency: str = DEFAULT_CURRENCY,
) -> StatementParseResult:
    text = decode_content(content)
    match source_kind:
        case SourceKind.FNB | SourceKind.ABSA | SourceKind.NEDBANK | SourceKind.CAPITEC:
            return parse_bank_csv(text, source_kind, currency=currency)
        case SourceKind.STANDARD_BANK:
            return parse_standard_bank(text, currency=currency)
        case _:
            raise ValidationError(f"{source_kind} is not a bank statement format")


def parse_payout_statement(
    content: bytes | str,
    source_kind: SourceKind,
    *,
    currency: str = DEFAULT_CURRENCY,
) -> PayoutParseResult:
    text = decode_content(content)
    match source_kind:
        case SourceKind.BOOKING_COM:
            return parse_booking_com(text, currency=currency)
        case SourceKind.AIRBNB:
            return parse_airbnb(text, currency=currency)
        case SourceKind.LEKKERSLAAP:
            return parse_lekkerslaap(text, currency=currency)
        case _:
            raise ValidationError(f"{source_kind} is not an OTA payout format")


def parse_statement(
    content: bytes | str,
    source_kind: SourceKind,
    *,
    currency: str = DEFAULT_CURRENCY,
) -> ParseResult:
    """Parse ``content`` as ``source_kind``.

    Bank kinds return a ``StatementParseResult``; OTA kinds return a
    ``PayoutParseResult``.
    """

    if source_kind.is_bank:
        return parse_bank_statement(content, source_kind, currency=currency)
    return parse_payout_statement(content, source_kind, currency=currency)


__all__ = ["parse_bank_statement", "parse_payout_statement", "parse_statement"]
