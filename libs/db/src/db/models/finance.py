from __future__ import annotations

import uuid
from datetime import UTC, date, datetime
from decimal import Decimal

from sqlalchemy import (
    CHAR,
    BigInteger,
    Boolean,
    CheckConstraint,
    Date,
    DateTime,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
    text,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    pass


def _new_id() -> str:
    return str(uuid.uuid4())


def _utcnow() -> datetime:
    return datetime.now(UTC)


# ---------------------------
# Reference catalog (read-only for the ledger)
# ---------------------------


class HlOrganisation(Base):
    __tablename__ = "hl_organisations"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    name: Mapped[str] = mapped_column(String, nullable=False)
    invoice_prefix: Mapped[str] = mapped_column(
        String, nullable=False, server_default=text("'INV-'"), default="INV-"
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=text("now()"), default=_utcnow
    )


class HlProperty(Base):
    __tablename__ = "hl_properties"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    organisation_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("hl_organisations.id"), nullable=False, index=True
    )
    name: Mapped[str] = mapped_column(String, nullable=False)
    currency: Mapped[str] = mapped_column(
        CHAR(3), nullable=False, server_default=text("'ZAR'"), default="ZAR"
    )
    # VAT defaults applied to new bookings at this property.
    vat_rate: Mapped[Decimal] = mapped_column(
        Numeric(5, 4), nullable=False, server_default=text("0.15"), default=Decimal("0.15")
    )
    vat_inclusive: Mapped[bool] = mapped_column(
        Boolean, nullable=False, server_default=text("true"), default=True
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=text("now()"), default=_utcnow
    )


class HlRoom(Base):
    __tablename__ = "hl_rooms"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    property_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("hl_properties.id"), nullable=False, index=True
    )
    name: Mapped[str] = mapped_column(String, nullable=False)


# ---------------------------
# Bookings
# ---------------------------


class HlBooking(Base):
    __tablename__ = "hl_bookings"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    organisation_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("hl_organisations.id"), nullable=False, index=True
    )
    property_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("hl_properties.id"), nullable=False, index=True
    )
    room_id: Mapped[str] = mapped_column(String(36), ForeignKey("hl_rooms.id"), nullable=False)
    guest_name: Mapped[str] = mapped_column(String, nullable=False)
    guest_email: Mapped[str | None] = mapped_column(String, nullable=True)
    # Stay window is [check_in, check_out); nights are always derived.
    check_in: Mapped[date] = mapped_column(Date, nullable=False)
    check_out: Mapped[date] = mapped_column(Date, nullable=False)
    source: Mapped[str] = mapped_column(String, nullable=False)
    external_ref: Mapped[str | None] = mapped_column(String, nullable=True)
    currency: Mapped[str] = mapped_column(CHAR(3), nullable=False)
    # Money columns hold integer minor units (cents).
    gross_minor: Mapped[int] = mapped_column(BigInteger, nullable=False)
    commission_minor: Mapped[int] = mapped_column(
        BigInteger, nullable=False, server_default=text("0"), default=0
    )
    net_minor: Mapped[int] = mapped_column(BigInteger, nullable=False)
    vat_rate: Mapped[Decimal] = mapped_column(Numeric(5, 4), nullable=False)
    vat_inclusive: Mapped[bool] = mapped_column(Boolean, nullable=False)
    status: Mapped[str] = mapped_column(String, nullable=False)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    # UI-only soft delete; never consulted by ledger logic.
    deleted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    version: Mapped[int] = mapped_column(Integer, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=text("now()"), default=_utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=text("now()"),
        default=_utcnow,
        onupdate=_utcnow,
    )

    __mapper_args__ = {"version_id_col": version}

    __table_args__ = (
        CheckConstraint("check_out > check_in", name="ck_hl_bookings_stay_window"),
        CheckConstraint(
            "gross_minor >= 0 AND commission_minor >= 0", name="ck_hl_bookings_amounts"
        ),
        CheckConstraint(
            "status in ('CONFIRMED','CHECKED_IN','CHECKED_OUT','CANCELLED','NO_SHOW')",
            name="ck_hl_bookings_status",
        ),
    )


# ---------------------------
# Invoices
# ---------------------------


class HlInvoice(Base):
    __tablename__ = "hl_invoices"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    organisation_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("hl_organisations.id"), nullable=False
    )
    booking_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("hl_bookings.id"), nullable=False, index=True
    )
    invoice_number: Mapped[str] = mapped_column(String, nullable=False)
    issue_date: Mapped[date] = mapped_column(Date, nullable=False)
    due_date: Mapped[date] = mapped_column(Date, nullable=False)
    currency: Mapped[str] = mapped_column(CHAR(3), nullable=False)
    # Frozen at creation from the booking's amounts.
    subtotal_minor: Mapped[int] = mapped_column(BigInteger, nullable=False)
    tax_minor: Mapped[int] = mapped_column(BigInteger, nullable=False)
    total_minor: Mapped[int] = mapped_column(BigInteger, nullable=False)
    status: Mapped[str] = mapped_column(String, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=text("now()"), default=_utcnow
    )

    __table_args__ = (
        UniqueConstraint("organisation_id", "invoice_number", name="uq_hl_invoices_number"),
        CheckConstraint(
            "status in ('DRAFT','SENT','PAID','OVERDUE','CANCELLED')",
            name="ck_hl_invoices_status",
        ),
    )


# ---------------------------
# Ledger: hl_transactions
# ---------------------------


class HlTransaction(Base):
    __tablename__ = "hl_transactions"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    organisation_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("hl_organisations.id"), nullable=False
    )
    property_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("hl_properties.id"), nullable=False, index=True
    )
    booking_id: Mapped[str | None] = mapped_column(
        String(36), ForeignKey("hl_bookings.id"), nullable=True, index=True
    )
    invoice_id: Mapped[str | None] = mapped_column(
        String(36), ForeignKey("hl_invoices.id"), nullable=True
    )
    type: Mapped[str] = mapped_column(String, nullable=False)
    category: Mapped[str] = mapped_column(String, nullable=False)
    source: Mapped[str] = mapped_column(String, nullable=False)
    status: Mapped[str] = mapped_column(String, nullable=False)
    amount_minor: Mapped[int] = mapped_column(BigInteger, nullable=False)
    currency: Mapped[str] = mapped_column(CHAR(3), nullable=False)
    date: Mapped[date] = mapped_column(Date, nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    reference: Mapped[str | None] = mapped_column(String, nullable=True)
    vat_rate: Mapped[Decimal | None] = mapped_column(Numeric(5, 4), nullable=True)
    vat_minor: Mapped[int | None] = mapped_column(BigInteger, nullable=True)
    # Import provenance; NULL for rows written by the booking state machine.
    fingerprint: Mapped[str | None] = mapped_column(CHAR(64), nullable=True, index=True)
    source_kind: Mapped[str | None] = mapped_column(String, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=text("now()"), default=_utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=text("now()"),
        default=_utcnow,
        onupdate=_utcnow,
    )

    __table_args__ = (
        CheckConstraint("amount_minor >= 0", name="ck_hl_tx_amount_unsigned"),
        CheckConstraint("type in ('INCOME','EXPENSE')", name="ck_hl_tx_type"),
        CheckConstraint(
            "status in ('PENDING','CLEARED','RECONCILED','VOID')", name="ck_hl_tx_status"
        ),
    )


# ---------------------------
# OTA payouts
# ---------------------------


class HlOtaPayout(Base):
    __tablename__ = "hl_ota_payouts"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    organisation_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("hl_organisations.id"), nullable=False
    )
    property_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("hl_properties.id"), nullable=False, index=True
    )
    platform: Mapped[str] = mapped_column(String, nullable=False)
    # Statement descriptor / batch reference when the export supplies one.
    external_ref: Mapped[str | None] = mapped_column(String, nullable=True)
    fingerprint: Mapped[str] = mapped_column(CHAR(64), nullable=False, index=True)
    payout_date: Mapped[date] = mapped_column(Date, nullable=False)
    currency: Mapped[str] = mapped_column(CHAR(3), nullable=False)
    gross_minor: Mapped[int] = mapped_column(BigInteger, nullable=False)
    commission_minor: Mapped[int] = mapped_column(BigInteger, nullable=False)
    net_minor: Mapped[int] = mapped_column(BigInteger, nullable=False)
    status: Mapped[str] = mapped_column(String, nullable=False)
    import_filename: Mapped[str | None] = mapped_column(String, nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    # One deposit settling a payout that carries several bookings links here, not on the items.
    bank_transaction_id: Mapped[str | None] = mapped_column(
        String(36), ForeignKey("hl_transactions.id"), nullable=True, unique=True
    )
    matched_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=text("now()"), default=_utcnow
    )

    __table_args__ = (
        CheckConstraint(
            "status in ('IMPORTED','RECONCILED','DISPUTED')", name="ck_hl_payouts_status"
        ),
    )


class HlOtaPayoutItem(Base):
    __tablename__ = "hl_ota_payout_items"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    payout_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("hl_ota_payouts.id", ondelete="CASCADE"), nullable=False, index=True
    )
    booking_ref: Mapped[str | None] = mapped_column(String, nullable=True)
    guest_name: Mapped[str | None] = mapped_column(String, nullable=True)
    check_in: Mapped[date | None] = mapped_column(Date, nullable=True)
    check_out: Mapped[date | None] = mapped_column(Date, nullable=True)
    gross_minor: Mapped[int] = mapped_column(BigInteger, nullable=False)
    commission_minor: Mapped[int] = mapped_column(BigInteger, nullable=False)
    net_minor: Mapped[int] = mapped_column(BigInteger, nullable=False)
    # Text expected in the depositing bank transaction's description.
    bank_hint: Mapped[str | None] = mapped_column(String, nullable=True)
    is_matched: Mapped[bool] = mapped_column(
        Boolean, nullable=False, server_default=text("false"), default=False
    )
    # A bank transaction backs at most one payout item. Items of a batched payout are
    # matched through the payout's own link and leave this empty.
    bank_transaction_id: Mapped[str | None] = mapped_column(
        String(36), ForeignKey("hl_transactions.id"), nullable=True, unique=True
    )
    matched_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    version: Mapped[int] = mapped_column(Integer, nullable=False)

    __mapper_args__ = {"version_id_col": version}

    __table_args__ = (
        CheckConstraint(
            "bank_transaction_id IS NULL OR is_matched",
            name="ck_hl_items_match_link",
        ),
    )


__all__ = [
    "Base",
    "HlBooking",
    "HlInvoice",
    "HlOrganisation",
    "HlOtaPayout",
    "HlOtaPayoutItem",
    "HlProperty",
    "HlRoom",
    "HlTransaction",
]
