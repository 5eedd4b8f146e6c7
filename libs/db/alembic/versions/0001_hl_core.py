# ruff: noqa: I001
"""Hospitality ledger core tables.

Revision ID: 0001_hl_core
Revises: None
Create Date: 2026-10-17
"""

from __future__ import annotations  # ruff: noqa: I001

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op


# revision identifiers, used by Alembic.
revision: str = "0001_hl_core"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def _created_at() -> sa.Column:
    return sa.Column(
        "created_at",
        sa.DateTime(timezone=True),
        nullable=False,
        server_default=sa.text("now()"),
    )


def _updated_at() -> sa.Column:
    return sa.Column(
        "updated_at",
        sa.DateTime(timezone=True),
        nullable=False,
        server_default=sa.text("now()"),
    )


def upgrade() -> None:
    # Reference catalog
    op.create_table(
        "hl_organisations",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("invoice_prefix", sa.String(), nullable=False, server_default=sa.text("'INV-'")),
        _created_at(),
    )
    op.create_table(
        "hl_properties",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("organisation_id", sa.String(36), nullable=False),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("currency", sa.CHAR(3), nullable=False, server_default=sa.text("'ZAR'")),
        sa.Column("vat_rate", sa.Numeric(5, 4), nullable=False, server_default=sa.text("0.15")),
        sa.Column("vat_inclusive", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        _created_at(),
        sa.ForeignKeyConstraint(["organisation_id"], ["hl_organisations.id"]),
    )
    op.create_index("ix_hl_properties_organisation_id", "hl_properties", ["organisation_id"])
    op.create_table(
        "hl_rooms",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("property_id", sa.String(36), nullable=False),
        sa.Column("name", sa.String(), nullable=False),
        sa.ForeignKeyConstraint(["property_id"], ["hl_properties.id"]),
    )
    op.create_index("ix_hl_rooms_property_id", "hl_rooms", ["property_id"])

    # Bookings
    op.create_table(
        "hl_bookings",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("organisation_id", sa.String(36), nullable=False),
        sa.Column("property_id", sa.String(36), nullable=False),
        sa.Column("room_id", sa.String(36), nullable=False),
        sa.Column("guest_name", sa.String(), nullable=False),
        sa.Column("guest_email", sa.String(), nullable=True),
        sa.Column("check_in", sa.Date(), nullable=False),
        sa.Column("check_out", sa.Date(), nullable=False),
        sa.Column("source", sa.String(), nullable=False),
        sa.Column("external_ref", sa.String(), nullable=True),
        sa.Column("currency", sa.CHAR(3), nullable=False),
        sa.Column("gross_minor", sa.BigInteger(), nullable=False),
        sa.Column("commission_minor", sa.BigInteger(), nullable=False, server_default=sa.text("0")),
        sa.Column("net_minor", sa.BigInteger(), nullable=False),
        sa.Column("vat_rate", sa.Numeric(5, 4), nullable=False),
        sa.Column("vat_inclusive", sa.Boolean(), nullable=False),
        sa.Column("status", sa.String(), nullable=False),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("deleted_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("version", sa.Integer(), nullable=False),
        _created_at(),
        _updated_at(),
        sa.ForeignKeyConstraint(["organisation_id"], ["hl_organisations.id"]),
        sa.ForeignKeyConstraint(["property_id"], ["hl_properties.id"]),
        sa.ForeignKeyConstraint(["room_id"], ["hl_rooms.id"]),
        sa.CheckConstraint("check_out > check_in", name="ck_hl_bookings_stay_window"),
        sa.CheckConstraint(
            "gross_minor >= 0 AND commission_minor >= 0", name="ck_hl_bookings_amounts"
        ),
        sa.CheckConstraint(
            "status in ('CONFIRMED','CHECKED_IN','CHECKED_OUT','CANCELLED','NO_SHOW')",
            name="ck_hl_bookings_status",
        ),
    )
    op.create_index("ix_hl_bookings_organisation_id", "hl_bookings", ["organisation_id"])
    op.create_index("ix_hl_bookings_property_id", "hl_bookings", ["property_id"])

    # Invoices
    op.create_table(
        "hl_invoices",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("organisation_id", sa.String(36), nullable=False),
        sa.Column("booking_id", sa.String(36), nullable=False),
        sa.Column("invoice_number", sa.String(), nullable=False),
        sa.Column("issue_date", sa.Date(), nullable=False),
        sa.Column("due_date", sa.Date(), nullable=False),
        sa.Column("currency", sa.CHAR(3), nullable=False),
        sa.Column("subtotal_minor", sa.BigInteger(), nullable=False),
        sa.Column("tax_minor", sa.BigInteger(), nullable=False),
        sa.Column("total_minor", sa.BigInteger(), nullable=False),
        sa.Column("status", sa.String(), nullable=False),
        _created_at(),
        sa.ForeignKeyConstraint(["organisation_id"], ["hl_organisations.id"]),
        sa.ForeignKeyConstraint(["booking_id"], ["hl_bookings.id"]),
        sa.UniqueConstraint("organisation_id", "invoice_number", name="uq_hl_invoices_number"),
        sa.CheckConstraint(
            "status in ('DRAFT','SENT','PAID','OVERDUE','CANCELLED')",
            name="ck_hl_invoices_status",
        ),
    )
    op.create_index("ix_hl_invoices_booking_id", "hl_invoices", ["booking_id"])

    # Ledger
    op.create_table(
        "hl_transactions",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("organisation_id", sa.String(36), nullable=False),
        sa.Column("property_id", sa.String(36), nullable=False),
        sa.Column("booking_id", sa.String(36), nullable=True),
        sa.Column("invoice_id", sa.String(36), nullable=True),
        sa.Column("type", sa.String(), nullable=False),
        sa.Column("category", sa.String(), nullable=False),
        sa.Column("source", sa.String(), nullable=False),
        sa.Column("status", sa.String(), nullable=False),
        sa.Column("amount_minor", sa.BigInteger(), nullable=False),
        sa.Column("currency", sa.CHAR(3), nullable=False),
        sa.Column("date", sa.Date(), nullable=False),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column("reference", sa.String(), nullable=True),
        sa.Column("vat_rate", sa.Numeric(5, 4), nullable=True),
        sa.Column("vat_minor", sa.BigInteger(), nullable=True),
        sa.Column("fingerprint", sa.CHAR(64), nullable=True),
        sa.Column("source_kind", sa.String(), nullable=True),
        _created_at(),
        _updated_at(),
        sa.ForeignKeyConstraint(["organisation_id"], ["hl_organisations.id"]),
        sa.ForeignKeyConstraint(["property_id"], ["hl_properties.id"]),
        sa.ForeignKeyConstraint(["booking_id"], ["hl_bookings.id"]),
        sa.ForeignKeyConstraint(["invoice_id"], ["hl_invoices.id"]),
        sa.CheckConstraint("amount_minor >= 0", name="ck_hl_tx_amount_unsigned"),
        sa.CheckConstraint("type in ('INCOME','EXPENSE')", name="ck_hl_tx_type"),
        sa.CheckConstraint(
            "status in ('PENDING','CLEARED','RECONCILED','VOID')", name="ck_hl_tx_status"
        ),
    )
    op.create_index("ix_hl_transactions_property_id", "hl_transactions", ["property_id"])
    op.create_index("ix_hl_transactions_booking_id", "hl_transactions", ["booking_id"])
    op.create_index("ix_hl_transactions_fingerprint", "hl_transactions", ["fingerprint"])

    # OTA payouts
    op.create_table(
        "hl_ota_payouts",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("organisation_id", sa.String(36), nullable=False),
        sa.Column("property_id", sa.String(36), nullable=False),
        sa.Column("platform", sa.String(), nullable=False),
        sa.Column("external_ref", sa.String(), nullable=True),
        sa.Column("fingerprint", sa.CHAR(64), nullable=False),
        sa.Column("payout_date", sa.Date(), nullable=False),
        sa.Column("currency", sa.CHAR(3), nullable=False),
        sa.Column("gross_minor", sa.BigInteger(), nullable=False),
        sa.Column("commission_minor", sa.BigInteger(), nullable=False),
        sa.Column("net_minor", sa.BigInteger(), nullable=False),
        sa.Column("status", sa.String(), nullable=False),
        sa.Column("import_filename", sa.String(), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("bank_transaction_id", sa.String(36), nullable=True),
        sa.Column("matched_at", sa.DateTime(timezone=True), nullable=True),
        _created_at(),
        sa.ForeignKeyConstraint(["organisation_id"], ["hl_organisations.id"]),
        sa.ForeignKeyConstraint(["property_id"], ["hl_properties.id"]),
        sa.ForeignKeyConstraint(["bank_transaction_id"], ["hl_transactions.id"]),
        sa.UniqueConstraint("bank_transaction_id", name="uq_hl_payouts_bank_transaction"),
        sa.CheckConstraint(
            "status in ('IMPORTED','RECONCILED','DISPUTED')", name="ck_hl_payouts_status"
        ),
    )
    op.create_index("ix_hl_ota_payouts_property_id", "hl_ota_payouts", ["property_id"])
    op.create_index("ix_hl_ota_payouts_fingerprint", "hl_ota_payouts", ["fingerprint"])

    op.create_table(
        "hl_ota_payout_items",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("payout_id", sa.String(36), nullable=False),
        sa.Column("booking_ref", sa.String(), nullable=True),
        sa.Column("guest_name", sa.String(), nullable=True),
        sa.Column("check_in", sa.Date(), nullable=True),
        sa.Column("check_out", sa.Date(), nullable=True),
        sa.Column("gross_minor", sa.BigInteger(), nullable=False),
        sa.Column("commission_minor", sa.BigInteger(), nullable=False),
        sa.Column("net_minor", sa.BigInteger(), nullable=False),
        sa.Column("bank_hint", sa.String(), nullable=True),
        sa.Column("is_matched", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("bank_transaction_id", sa.String(36), nullable=True),
        sa.Column("matched_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("version", sa.Integer(), nullable=False),
        sa.ForeignKeyConstraint(["payout_id"], ["hl_ota_payouts.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["bank_transaction_id"], ["hl_transactions.id"]),
        sa.UniqueConstraint("bank_transaction_id", name="uq_hl_items_bank_transaction"),
        sa.CheckConstraint(
            "bank_transaction_id IS NULL OR is_matched",
            name="ck_hl_items_match_link",
        ),
    )
    op.create_index("ix_hl_ota_payout_items_payout_id", "hl_ota_payout_items", ["payout_id"])


def downgrade() -> None:
    op.drop_index("ix_hl_ota_payout_items_payout_id", table_name="hl_ota_payout_items")
    op.drop_table("hl_ota_payout_items")
    op.drop_index("ix_hl_ota_payouts_fingerprint", table_name="hl_ota_payouts")
    op.drop_index("ix_hl_ota_payouts_property_id", table_name="hl_ota_payouts")
    op.drop_table("hl_ota_payouts")
    op.drop_index("ix_hl_transactions_fingerprint", table_name="hl_transactions")
    op.drop_index("ix_hl_transactions_booking_id", table_name="hl_transactions")
    op.drop_index("ix_hl_transactions_property_id", table_name="hl_transactions")
    op.drop_table("hl_transactions")
    op.drop_index("ix_hl_invoices_booking_id", table_name="hl_invoices")
    op.drop_table("hl_invoices")
    op.drop_index("ix_hl_bookings_property_id", table_name="hl_bookings")
    op.drop_index("ix_hl_bookings_organisation_id", table_name="hl_bookings")
    op.drop_table("hl_bookings")
    op.drop_index("ix_hl_rooms_property_id", table_name="hl_rooms")
    op.drop_table("hl_rooms")
    op.drop_index("ix_hl_properties_organisation_id", table_name="hl_properties")
    op.drop_table("hl_properties")
    op.drop_table("hl_organisations")
