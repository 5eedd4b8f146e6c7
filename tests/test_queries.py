from __future__ import annotations

from datetime import date

from hospitality_ledger.booking_finance import (
    create_booking,
    on_checked_in,
    on_checked_out,
    on_confirmed,
)
from hospitality_ledger.errors import ErrorKind
from hospitality_ledger.money import Money
from hospitality_ledger.queries import (
    cash_position,
    overdue_invoices,
    overdue_payouts,
    unmatched_items_count,
)

from tests.helpers.db import Catalog, add_bank_row, add_payout


def _checked_out_booking(db_url: str, catalog: Catalog, check_in: str, check_out: str) -> str:
    org = {"organisation_id": catalog.organisation_id}
    booking_id = create_booking(
        {
            **org,
            "property_id": catalog.property_id,
            "room_id": catalog.room_id,
            "guest_name": "Jane Doe",
            "check_in": check_in,
            "check_out": check_out,
            "gross_amount": "1150.00",
        },
        database_url=db_url,
    ).value
    assert on_confirmed(booking_id, database_url=db_url, **org).success
    assert on_checked_in(booking_id, database_url=db_url, **org).success
    assert on_checked_out(booking_id, database_url=db_url, **org).success
    return booking_id


def test_unmatched_items_count_is_scoped(db_url: str, catalog: Catalog):
    add_payout(
        db_url,
        catalog,
        platform="AIRBNB",
        payout_date=date(2026, 3, 5),
        items=[("HM1", 100, None), ("HM2", 200, None)],
    )

    assert unmatched_items_count(catalog.organisation_id, database_url=db_url).value == 2
    assert (
        unmatched_items_count(
            catalog.organisation_id, catalog.property_id, database_url=db_url
        ).value
        == 2
    )
    assert unmatched_items_count(catalog.other_organisation_id, database_url=db_url).value == 0


def test_cash_position_counts_settled_rows_only(db_url: str, catalog: Catalog):
    add_bank_row(db_url, catalog, on=date(2026, 3, 1), amount_minor=500000, description="EFT")
    add_bank_row(
        db_url, catalog, on=date(2026, 3, 2), amount_minor=120000, description="ESKOM",
        type="EXPENSE",
    )
    add_bank_row(
        db_url, catalog, on=date(2026, 3, 3), amount_minor=99900, description="EFT",
        status="RECONCILED",
    )
    add_bank_row(
        db_url, catalog, on=date(2026, 3, 4), amount_minor=777700, description="EFT",
        status="VOID",
    )
    # Check-out income is PENDING until it shows up in the bank.
    _checked_out_booking(db_url, catalog, "2026-03-01", "2026-03-02")

    out = cash_position(
        catalog.property_id, organisation_id=catalog.organisation_id, database_url=db_url
    )

    assert out.success
    position = out.value
    assert position.income == Money(599900, "ZAR")
    assert position.expense == Money(120000, "ZAR")
    assert position.balance == Money(479900, "ZAR")
    assert out.message == "Cash position 4799.00 ZAR"


def test_cash_position_of_foreign_property_is_not_found(db_url: str, catalog: Catalog):
    out = cash_position(
        catalog.other_property_id, organisation_id=catalog.organisation_id, database_url=db_url
    )
    assert out.error is ErrorKind.NOT_FOUND


def test_overdue_invoices_are_sent_and_past_due(db_url: str, catalog: Catalog):
    old = _checked_out_booking(db_url, catalog, "2026-02-01", "2026-02-03")
    _checked_out_booking(db_url, catalog, "2026-03-20", "2026-03-22")
    # Draft invoices are not overdue.
    draft = create_booking(
        {
            "organisation_id": catalog.organisation_id,
            "property_id": catalog.property_id,
            "room_id": catalog.room_id,
            "guest_name": "John Roe",
            "check_in": "2026-01-01",
            "check_out": "2026-01-02",
            "gross_amount": "500",
        },
        database_url=db_url,
    ).value
    assert on_confirmed(draft, organisation_id=catalog.organisation_id, database_url=db_url).success

    out = overdue_invoices(catalog.organisation_id, date(2026, 3, 1), database_url=db_url)

    assert out.success
    result = out.value
    assert result.count == 1
    (row,) = result.rows
    assert row.booking_id == old
    assert row.days_overdue == 28
    assert result.totals == {"ZAR": Money(115000, "ZAR")}


def test_overdue_payouts_respect_the_cutoff(db_url: str, catalog: Catalog):
    old_id, _ = add_payout(
        db_url, catalog, platform="AIRBNB", payout_date=date(2026, 1, 10), items=[("a", 100, None)]
    )
    add_payout(
        db_url, catalog, platform="AIRBNB", payout_date=date(2026, 2, 20), items=[("b", 200, None)]
    )
    add_payout(
        db_url,
        catalog,
        platform="AIRBNB",
        payout_date=date(2026, 1, 5),
        items=[("c", 300, None)],
        status="RECONCILED",
    )
    today = date(2026, 3, 1)

    out = overdue_payouts(catalog.organisation_id, today, database_url=db_url)

    assert [(p.payout_id, p.age_days) for p in out.value] == [(old_id, 50)]
    assert len(overdue_payouts(catalog.organisation_id, today, 0, database_url=db_url).value) == 2
    assert overdue_payouts(catalog.organisation_id, today, -1, database_url=db_url).error is (
        ErrorKind.VALIDATION
    )


def test_queries_without_a_database_url_fail_cleanly():
    out = unmatched_items_count("org")
    assert not out.success
    assert out.error is ErrorKind.PERSISTENCE
    assert "DATABASE_URL" in out.message
