"""Public interface for the ``hospitality_ledger`` package.

Re-exports the core operations and the types they accept and return. Every
operation returns an :class:`Outcome`; none raises on expected failures.
"""

from .booking_finance import (
    apply_transition,
    create_booking,
    on_cancelled,
    on_checked_in,
    on_checked_out,
    on_confirmed,
    on_no_show,
)
from .categorize import categorize
from .errors import (
    ErrorKind,
    InvalidTransition,
    LedgerError,
    NotFound,
    Outcome,
    ParseError,
    PersistenceError,
    ValidationError,
)
from .imports import (
    confirm_bank_import,
    confirm_ota_import,
    preview_bank_import,
    preview_ota_import,
)
from .ingest import parse_statement
from .models import (
    BookingCreate,
    BookingSource,
    BookingStatus,
    MatchConfidence,
    OTAPlatform,
    SourceKind,
    TransactionCategory,
    TransactionStatus,
    TransactionType,
)
from .money import Money, Period, nights, parse_amount, vat_split
from .queries import cash_position, overdue_invoices, overdue_payouts, unmatched_items_count
from .reconcile import confirm_reconciliation, preview_reconciliation, propose_matches

__all__ = [
    # Booking finance
    "apply_transition",
    "create_booking",
    "on_cancelled",
    "on_checked_in",
    "on_checked_out",
    "on_confirmed",
    "on_no_show",
    # Imports
    "categorize",
    "confirm_bank_import",
    "confirm_ota_import",
    "parse_statement",
    "preview_bank_import",
    "preview_ota_import",
    # Reconciliation and digest
    "cash_position",
    "confirm_reconciliation",
    "overdue_invoices",
    "overdue_payouts",
    "preview_reconciliation",
    "propose_matches",
    "unmatched_items_count",
    # Types
    "BookingCreate",
    "BookingSource",
    "BookingStatus",
    "ErrorKind",
    "InvalidTransition",
    "LedgerError",
    "MatchConfidence",
    "Money",
    "NotFound",
    "OTAPlatform",
    "Outcome",
    "ParseError",
    "Period",
    "PersistenceError",
    "SourceKind",
    "TransactionCategory",
    "TransactionStatus",
    "TransactionType",
    "ValidationError",
    "nights",
    "parse_amount",
    "vat_split",
]
