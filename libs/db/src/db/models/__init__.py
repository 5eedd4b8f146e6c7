"""Shared SQLAlchemy models registry for the workspace database.

Holds the ledger, booking, invoice and payout tables used by
``hospitality_ledger`` plus the read-only property catalog.
"""

from .finance import (
    Base,
    HlBooking,
    HlInvoice,
    HlOrganisation,
    HlOtaPayout,
    HlOtaPayoutItem,
    HlProperty,
    HlRoom,
    HlTransaction,
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
