"""DB helpers for tests: bootstrap a temporary SQLite DB and seed the property catalog."""

from __future__ import annotations

import os
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from pathlib import Path

from db import Base
from db.client import get_engine, session_scope
from db.models.finance import (
    HlBooking,
    HlInvoice,
    HlOrganisation,
    HlOtaPayout,
    HlOtaPayoutItem,
    HlProperty,
    HlRoom,
    HlTransaction,
)
from sqlalchemy import event, select


def bootstrap_sqlite_db(db_file: Path, *, set_default_env: bool = False) -> str:
    """Create a SQLite database file, initialize schema, and return the URL.

    Using a file-backed SQLite DB ensures multiple SQLAlchemy connections share
    the same state (in-memory DBs are per-connection by default).
    """

    url = f"sqlite+pysqlite:///{db_file}"
    db_file.parent.mkdir(parents=True, exist_ok=True)
    engine = get_engine(database_url=url)

    # Enforce FKs and provide a `now()` shim so server_default=now() works
    @event.listens_for(engine, "connect")
    def _on_connect(dbapi_conn, _):  # pragma: no cover - tiny bridge
        from datetime import UTC, datetime

        dbapi_conn.execute("PRAGMA foreign_keys = ON")
        dbapi_conn.create_function(
            "now", 0, lambda: datetime.now(UTC).strftime("%Y-%m-%d %H:%M:%S")
        )

    Base.metadata.create_all(bind=engine)

    if set_default_env:
        os.environ.setdefault("DATABASE_URL", url)
    return url


@dataclass(frozen=True)
class Catalog:
    organisation_id: str
    property_id: str
    room_id: str
    # A second organisation, for tenant-scoping checks.
    other_organisation_id: str
    other_property_id: str


def seed_catalog(*, database_url: str) -> Catalog:
    """One guesthouse (ZAR, 15% VAT inclusive) with one room, plus a foreign tenant."""

    with session_scope(database_url=database_url) as session:
        org = HlOrganisation(name="Karoo Rest Guesthouse")
        other = HlOrganisation(name="Elsewhere Lodge", invoice_prefix="EL-")
        session.add_all([org, other])
        session.flush()
        prop = HlProperty(
            organisation_id=org.id,
            name="Karoo Rest",
            currency="ZAR",
            vat_rate=Decimal("0.15"),
            vat_inclusive=True,
        )
        other_prop = HlProperty(organisation_id=other.id, name="Elsewhere")
        session.add_all([prop, other_prop])
        session.flush()
        room = HlRoom(property_id=prop.id, name="Garden Suite")
        session.add(room)
        session.flush()
        return Catalog(
            organisation_id=org.id,
            property_id=prop.id,
            room_id=room.id,
            other_organisation_id=other.id,
            other_property_id=other_prop.id,
        )


# ---- Read-back helpers -------------------------------------------------------


def transactions(database_url: str, **filters) -> list[HlTransaction]:
    with session_scope(database_url=database_url) as session:
        stmt = select(HlTransaction).order_by(HlTransaction.date, HlTransaction.created_at)
        for name, value in filters.items():
            stmt = stmt.where(getattr(HlTransaction, name) == value)
        return list(session.execute(stmt).scalars())


def booking(database_url: str, booking_id: str) -> HlBooking:
    with session_scope(database_url=database_url) as session:
        return session.get(HlBooking, booking_id)


def invoices(database_url: str, booking_id: str | None = None) -> list[HlInvoice]:
    with session_scope(database_url=database_url) as session:
        stmt = select(HlInvoice).order_by(HlInvoice.invoice_number)
        if booking_id is not None:
            stmt = stmt.where(HlInvoice.booking_id == booking_id)
        return list(session.execute(stmt).scalars())


def payouts(database_url: str) -> list[HlOtaPayout]:
    with session_scope(database_url=database_url) as session:
        stmt = select(HlOtaPayout).order_by(HlOtaPayout.payout_date)
        return list(session.execute(stmt).scalars())


def payout_items(database_url: str) -> list[HlOtaPayoutItem]:
    with session_scope(database_url=database_url) as session:
        return list(session.execute(select(HlOtaPayoutItem)).scalars())


def add_bank_row(
    database_url: str,
    catalog: Catalog,
    *,
    on: date,
    amount_minor: int,
    description: str,
    type: str = "INCOME",
    status: str = "CLEARED",
) -> str:
    """Insert one bank-imported ledger row directly and return its id."""

    with session_scope(database_url=database_url) as session:
        row = HlTransaction(
            organisation_id=catalog.organisation_id,
            property_id=catalog.property_id,
            type=type,
            category="OTHER",
            source="CSV_IMPORT",
            status=status,
            amount_minor=amount_minor,
            currency="ZAR",
            date=on,
            description=description,
        )
        session.add(row)
        session.flush()
        return row.id


def add_payout(
    database_url: str,
    catalog: Catalog,
    *,
    platform: str,
    payout_date: date,
    items: list[tuple[str, int, str | None]],
    status: str = "IMPORTED",
) -> tuple[str, list[str]]:
    """Insert a payout with ``(booking_ref, net_minor, bank_hint)`` items; returns ids."""

    with session_scope(database_url=database_url) as session:
        total = sum(net for _, net, _ in items)
        payout = HlOtaPayout(
            organisation_id=catalog.organisation_id,
            property_id=catalog.property_id,
            platform=platform,
            fingerprint=f"{platform}-{payout_date.isoformat()}-{total}".ljust(64, "0")[:64],
            payout_date=payout_date,
            currency="ZAR",
            gross_minor=total,
            commission_minor=0,
            net_minor=total,
            status=status,
        )
        session.add(payout)
        session.flush()
        rows = [
            HlOtaPayoutItem(
                payout_id=payout.id,
                booking_ref=ref,
                gross_minor=net,
                commission_minor=0,
                net_minor=net,
                bank_hint=hint,
            )
            for ref, net, hint in items
        ]
        session.add_all(rows)
        session.flush()
        return payout.id, [r.id for r in rows]
