from __future__ import annotations

from datetime import date

import pytest

from hospitality_ledger.errors import ParseError, ValidationError
from hospitality_ledger.ingest import parse_bank_statement, parse_statement
from hospitality_ledger.models import SourceKind, StatementParseResult, TransactionType
from hospitality_ledger.money import Money

FNB_CSV = """\
Account,62000000000
Statement,2026-03
Date,Description,Amount,Balance
01 Mar 2026,Opening Balance,,10000.00
02 Mar 2026,WOOLWORTHS FOOD,-350.00,9650.00
03 Mar 2026,BOOKING.COM BV PAYOUT 12345,"2,500.00",12150.00
03 Mar 2026,WOOLWORTHS FOOD,-350.00,11800.00
04 Mar 2026,Zero adjustment,0.00,11800.00
,Card transactions,,
31 Mar 2026,Closing Balance,,11800.00
"""

ABSA_CSV = """\
Date,Description,Debit,Credit,Balance
,Debit orders,,,
05/03/2026,ESKOM PREPAID,1200.00,,5000.00
06/03/2026,AIRBNB PAYMENTS,,3100.50,8100.50
07/03/2026,Balance brought forward,,,8100.50
08/03/2026,Reversal,0.00,,8100.50
"""

NEDBANK_CSV = """\
Date,Description,Debit,Credit,Balance
2026/03/01,Opening Balance,,,4820.00
,Electronic transfers,,,
2026/03/10,MUNICIPAL WATER,820.00,,4000.00
2026/03/11,EFT GUEST DEPOSIT,,1500.00,5500.00
2026/03/12,Reversal,,0.00,5500.00
2026/03/31,Closing Balance,,,5500.00
"""

CAPITEC_CSV = """\
Account,Date,Description,Reference,Amount,Fees,Balance
1234,01/03/2026,Opening Balance,,,,7500.00
,,Pending transactions,,,,
1234,05/03/2026,Transfer from guest,INV-00012,1500.00,,9000.00
1234,06/03/2026,Cash withdrawal,000123,-500.00,-10.00,8490.00
1234,07/03/2026,Interest adjustment,,0.00,,8490.00
1234,31/03/2026,Closing Balance,,,,8490.00
"""

STANDARD_BANK_TXT = """\
ACC-NO,123456789,CURRENT ACCOUNT
OPEN,20260301,10000.00
HIST,20260302,1,-250.00,CLEANPRO,CP-889
HIST,20260303,2,4200.00,LEKKESLAAP PAYOUT,1234567
CLOSE,20260331,13950.00
"""


def _parse(text: str, kind: SourceKind) -> StatementParseResult:
    return parse_bank_statement(text, kind)


def test_fnb_rows_skips_and_signed_amounts():
    result = _parse(FNB_CSV, SourceKind.FNB)

    assert (len(result.rows), result.skipped, result.errors) == (3, 4, [])
    first, payout, repeat = result.rows
    assert first.date == date(2026, 3, 2)
    assert (first.amount, first.direction) == (Money.of("350.00"), TransactionType.EXPENSE)
    assert (payout.amount, payout.direction) == (Money.of("2500.00"), TransactionType.INCOME)
    # Identical lines inside one file stay distinct.
    assert first.fingerprint != repeat.fingerprint


def test_fnb_fingerprints_are_stable_across_parses():
    a = [r.fingerprint for r in _parse(FNB_CSV, SourceKind.FNB).rows]
    b = [r.fingerprint for r in _parse(FNB_CSV.encode("utf-8-sig"), SourceKind.FNB).rows]
    assert a == b


def test_fnb_unreadable_date_with_amount_is_an_error_not_a_guess():
    text = FNB_CSV + "3x Mar 2026,MYSTERY,-10.00,0\n"
    result = _parse(text, SourceKind.FNB)
    assert len(result.rows) == 3
    assert len(result.errors) == 1
    assert result.errors[0].startswith("line ")


def test_absa_debit_credit_columns():
    result = _parse(ABSA_CSV, SourceKind.ABSA)

    assert (len(result.rows), result.skipped, result.errors) == (2, 3, [])
    eskom, airbnb = result.rows
    assert (eskom.amount, eskom.direction) == (Money.of("1200.00"), TransactionType.EXPENSE)
    assert (airbnb.amount, airbnb.direction) == (Money.of("3100.50"), TransactionType.INCOME)
    assert airbnb.date == date(2026, 3, 6)


def test_nedbank_year_first_dates():
    result = _parse(NEDBANK_CSV, SourceKind.NEDBANK)

    assert (len(result.rows), result.skipped, result.errors) == (2, 4, [])
    assert [r.date for r in result.rows] == [date(2026, 3, 10), date(2026, 3, 11)]


def test_capitec_reference_and_fee_rows():
    result = _parse(CAPITEC_CSV, SourceKind.CAPITEC)

    assert (len(result.rows), result.skipped, result.errors) == (3, 4, [])
    transfer, withdrawal, fee = result.rows
    assert transfer.description == "Transfer from guest | INV-00012"
    # Numeric references are not appended.
    assert withdrawal.description == "Cash withdrawal"
    assert (fee.description, fee.amount, fee.direction) == (
        "Fee: Cash withdrawal",
        Money.of("10.00"),
        TransactionType.EXPENSE,
    )


def test_standard_bank_record_tags():
    result = _parse(STANDARD_BANK_TXT, SourceKind.STANDARD_BANK)

    assert (len(result.rows), result.skipped, result.errors) == (2, 3, [])
    clean, payout = result.rows
    assert clean.description == "CLEANPRO | CP-889"
    assert clean.direction is TransactionType.EXPENSE
    assert payout.description == "LEKKESLAAP PAYOUT"
    assert payout.amount == Money.of("4200.00")


def test_standard_bank_preamble_lines_are_skipped():
    text = "Standard Bank statement export\nGenerated 2026-04-01\n" + STANDARD_BANK_TXT

    result = _parse(text, SourceKind.STANDARD_BANK)

    assert (len(result.rows), result.skipped, result.errors) == (2, 5, [])
    assert [r.line_no for r in result.rows] == [5, 6]


@pytest.mark.parametrize(
    ("kind", "text"),
    [
        (SourceKind.FNB, FNB_CSV + "05 Mar 2026,WIRE,99999999999999999999999999999.00,0\n"),
        (SourceKind.ABSA, ABSA_CSV + "09/03/2026,WIRE,,1e40,0\n"),
        (SourceKind.CAPITEC, CAPITEC_CSV + "1234,09/03/2026,WIRE,,-5.00,1e40,0\n"),
        (
            SourceKind.STANDARD_BANK,
            STANDARD_BANK_TXT + "HIST,20260304,3,99999999999999999999999999999.00,WIRE,\n",
        ),
    ],
)
def test_out_of_range_amounts_are_line_errors(kind: SourceKind, text: str):
    result = _parse(text, kind)

    assert len(result.errors) == 1
    assert result.errors[0].startswith("line ")
    assert "out of range" in result.errors[0]
    assert all(r.amount.minor < 10**17 for r in result.rows)


@pytest.mark.parametrize(
    ("kind", "text"),
    [
        (SourceKind.FNB, "Something,Else\n1,2\n"),
        (SourceKind.ABSA, FNB_CSV),
        (SourceKind.STANDARD_BANK, ABSA_CSV),
    ],
)
def test_wrong_format_yields_zero_rows_and_one_error(kind: SourceKind, text: str):
    result = _parse(text, kind)
    assert result.rows == []
    assert len(result.errors) == 1


def test_undecodable_bytes_raise_parse_error():
    with pytest.raises(ParseError):
        parse_statement(b"\x81\x8d\x8f\x90", SourceKind.FNB)


def test_bank_entry_point_refuses_payout_formats():
    with pytest.raises(ValidationError):
        parse_bank_statement(FNB_CSV, SourceKind.LEKKERSLAAP)

    result = parse_statement(FNB_CSV, SourceKind.FNB)
    assert isinstance(result, StatementParseResult)
