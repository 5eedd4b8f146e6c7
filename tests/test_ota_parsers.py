from __future__ import annotations

from datetime import date

from hospitality_ledger.ingest import parse_payout_statement
from hospitality_ledger.ingest.attribution import attribute_greedy
from hospitality_ledger.models import (
    OTAPlatform,
    ParsedPayoutItem,
    PayoutParseResult,
    SourceKind,
)
from hospitality_ledger.money import Money

LEKKERSLAAP_CSV = """\
LekkeSlaap statement
Property: Karoo Rest
Date,Booking reference,Description,Amount,Balance
2026-03-01,,Opening Balance,0.00,0.00
2026-03-02,LS-1001,Guest payment,1000.00,1000.00
2026-03-02,LS-1001,Commission,-150.00,850.00
2026-03-02,LS-1001,Payment handling fee,-30.00,820.00
2026-03-03,LS-1002,Commission,-300.00,520.00
2026-03-03,LS-1002,Guest payment,2000.00,2520.00
2026-03-03,LS-1002,Payment handling fee,-60.00,2460.00
2026-03-04,LS-1003,Guest payment,500.00,2960.00
2026-03-05,,Payout,-2460.00,500.00
2026-03-31,,Closing Balance,500.00,500.00
"""

BOOKING_COM_CSV = """\
Type/Transaction type,Statement Descriptor,Reference number,Check-in date,Check-out date,\
Gross amount,Transaction amount,Payout amount,Payout currency,Payout date
Reservation,BDC-ABC123,4001,2026-03-01,2026-03-03,2000.00,1700.00,,,
Reservation,BDC-ABC123,4002,2026-03-02,2026-03-04,1000.00,850.00,,,
(Payout),BDC-ABC123,,,,,,2550.00,ZAR,2026-03-08
Reservation,BDC-XYZ999,4003,2026-03-10,2026-03-12,1200.00,1020.00,,,
Commission adjustment,BDC-ABC123,4001,,,,-10.00,,,
Reservation,,4004,2026-03-10,2026-03-12,1200.00,1020.00,,,
"""

AIRBNB_CSV = """\
Date,Type,Confirmation Code,Start date,Nights,Guest,Listing,Currency,Amount,Paid out,\
Service fee,Gross earnings
03/05/2026,Payout,,,,,,ZAR,,2910.00,,
03/04/2026,Reservation,HMABC1,03/01/2026,3,Jane Doe,Garden Suite,ZAR,1940.00,,60.00,2000.00
03/04/2026,Reservation,HMABC2,03/02/2026,2,John Roe,Garden Suite,ZAR,970.00,,30.00,1000.00
03/04/2026,Resolution Adjustment,HMABC1,,,Jane Doe,Garden Suite,ZAR,50.00,,,
03/06/2026,Reservation,HMABC3,03/06/2026,1,Ann Lee,Garden Suite,ZAR,485.00,,15.00,500.00
"""

AIRBNB_NO_PAYOUTS_CSV = """\
Date,Type,Confirmation Code,Start date,Guest,Currency,Amount,Service fee
03/04/2026,Reservation,HMZZ1,03/01/2026,Jane Doe,ZAR,1940.00,60.00
03/07/2026,Reservation,HMZZ2,03/05/2026,John Roe,ZAR,0.00,0.00
03/08/2026,Reservation,HMZZ3,03/06/2026,Ann Lee,ZAR,970.00,30.00
"""


def _parse(text: str, kind: SourceKind) -> PayoutParseResult:
    return parse_payout_statement(text, kind)


def _item(net: str, ref: str = "R") -> ParsedPayoutItem:
    m = Money.of(net)
    return ParsedPayoutItem(ref, None, None, None, m, Money.zero(), m)


# ---- LekkeSlaap --------------------------------------------------------------


def test_lekkerslaap_composite_records_and_orphan():
    result = _parse(LEKKERSLAAP_CSV, SourceKind.LEKKERSLAAP)

    assert result.errors == []
    # Two complete bookings; LS-1003 only ever got its guest payment.
    assert result.record_count == 2
    assert len(result.payouts) == 1
    payout = result.payouts[0]
    assert payout.payout_date == date(2026, 3, 5)
    assert payout.net == Money.of("2460.00")
    assert [i.booking_ref for i in payout.items] == ["LS-1001", "LS-1002"]

    first, second = payout.items
    assert (first.gross, first.commission, first.net) == (
        Money.of("1000.00"),
        Money.of("180.00"),
        Money.of("820.00"),
    )
    assert second.net == Money.of("1640.00")
    assert result.pending == []
    # Opening and closing balance rows plus the orphan's single row.
    assert result.skipped == 3
    assert result.pending_balance == Money.of("500.00")


def test_lekkerslaap_bookings_after_last_payout_are_pending():
    text = LEKKERSLAAP_CSV.replace(
        "2026-03-31,,Closing Balance,500.00,500.00\n",
        "2026-03-06,LS-1003,Commission,-75.00,425.00\n"
        "2026-03-06,LS-1003,Payment handling fee,-15.00,410.00\n"
        "2026-03-31,,Closing Balance,410.00,410.00\n",
    )
    result = _parse(text, SourceKind.LEKKERSLAAP)

    assert [i.booking_ref for i in result.pending] == ["LS-1003"]
    assert result.pending[0].net == Money.of("410.00")
    assert result.record_count == 3


def test_lekkerslaap_missing_header_is_rejected():
    result = _parse("Date,Amount\n2026-03-01,10\n", SourceKind.LEKKERSLAAP)
    assert result.payouts == [] and result.pending == []
    assert len(result.errors) == 1


def test_lekkerslaap_out_of_range_payout_is_a_line_error():
    text = LEKKERSLAAP_CSV + "2026-04-01,,Payout,-99999999999999999999999999999.00,0.00\n"

    result = _parse(text, SourceKind.LEKKERSLAAP)

    assert len(result.payouts) == 1
    (error,) = result.errors
    assert error.startswith("line 14:") and "out of range" in error


# ---- Booking.com -------------------------------------------------------------


def test_booking_com_groups_reservations_by_descriptor():
    result = _parse(BOOKING_COM_CSV, SourceKind.BOOKING_COM)

    assert result.errors == []
    assert len(result.payouts) == 1
    payout = result.payouts[0]
    assert payout.platform is OTAPlatform.BOOKING_COM
    assert (payout.external_ref, payout.payout_date, payout.net) == (
        "BDC-ABC123",
        date(2026, 3, 8),
        Money.of("2550.00"),
    )
    assert [i.booking_ref for i in payout.items] == ["4001", "4002"]
    assert {i.bank_hint for i in payout.items} == {"BDC-ABC123"}
    assert payout.items[0].commission == Money.of("300.00")
    assert payout.gross == Money.of("3000.00")

    # No payout row for BDC-XYZ999 yet.
    assert [i.booking_ref for i in result.pending] == ["4003"]
    # The adjustment row and the row without a descriptor.
    assert result.skipped == 2


def test_booking_com_payout_fingerprint_is_keyed_by_descriptor():
    a = _parse(BOOKING_COM_CSV, SourceKind.BOOKING_COM).payouts[0].fingerprint
    shifted = BOOKING_COM_CSV.replace("2026-03-08", "2026-03-09")
    b = _parse(shifted, SourceKind.BOOKING_COM).payouts[0].fingerprint
    assert a == b


# ---- Airbnb ------------------------------------------------------------------


def test_airbnb_payout_rows_attribute_reservations():
    result = _parse(AIRBNB_CSV, SourceKind.AIRBNB)

    assert result.errors == []
    assert len(result.payouts) == 1
    payout = result.payouts[0]
    assert payout.net == Money.of("2910.00")
    assert [i.booking_ref for i in payout.items] == ["HMABC1", "HMABC2"]
    jane = payout.items[0]
    assert jane.guest_name == "Jane Doe"
    assert jane.check_in == date(2026, 3, 1)
    assert (jane.gross, jane.commission, jane.net) == (
        Money.of("2000.00"),
        Money.of("60.00"),
        Money.of("1940.00"),
    )
    assert [i.booking_ref for i in result.pending] == ["HMABC3"]
    assert result.skipped == 1


def test_airbnb_without_payout_rows_each_reservation_is_a_payout():
    result = _parse(AIRBNB_NO_PAYOUTS_CSV, SourceKind.AIRBNB)

    assert result.errors == []
    assert [p.external_ref for p in result.payouts] == ["HMZZ1", "HMZZ3"]
    assert result.payouts[0].payout_date == date(2026, 3, 4)
    # Gross falls back to net plus service fee.
    assert result.payouts[0].gross == Money.of("2000.00")
    assert result.skipped == 1
    assert result.pending == []


# ---- Greedy attribution ------------------------------------------------------


def test_attribution_skips_records_that_overshoot():
    items = [_item("400", "a"), _item("700", "b"), _item("600", "c")]
    result = attribute_greedy(100000, items)

    assert [i.booking_ref for i in result.attributed] == ["a", "c"]
    assert [i.booking_ref for i in result.unattributed] == ["b"]
    assert result.remaining_minor == 0


def test_attribution_closes_within_five_cents():
    result = attribute_greedy(100000, [_item("999.96")])
    assert len(result.attributed) == 1
    assert result.remaining_minor == 0

    result = attribute_greedy(100000, [_item("999.90")])
    assert len(result.attributed) == 1
    assert result.remaining_minor == 10
