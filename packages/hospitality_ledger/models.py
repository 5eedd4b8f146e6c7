"""Enumerations, value records and validated inputs for ``hospitality_ledger``.

Enum values are the exact strings stored in the database (``StrEnum``), so
ORM rows and domain code compare directly without a mapping layer.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from enum import StrEnum

from pydantic import BaseModel, ConfigDict, field_validator, model_validator

from .money import Money

# ---------------------------------------------------------------------------
# Enumerations
# ---------------------------------------------------------------------------


class BookingSource(StrEnum):
    DIRECT = "DIRECT"
    BOOKING_COM = "BOOKING_COM"
    AIRBNB = "AIRBNB"
    EXPEDIA = "EXPEDIA"
    LEKKERSLAAP = "LEKKERSLAAP"
    WALKIN = "WALKIN"
    OTHER = "OTHER"


class BookingStatus(StrEnum):
    CONFIRMED = "CONFIRMED"
    CHECKED_IN = "CHECKED_IN"
    CHECKED_OUT = "CHECKED_OUT"
    CANCELLED = "CANCELLED"
    NO_SHOW = "NO_SHOW"


TERMINAL_BOOKING_STATUSES = frozenset(
    {BookingStatus.CHECKED_OUT, BookingStatus.CANCELLED, BookingStatus.NO_SHOW}
)


class TransactionType(StrEnum):
    INCOME = "INCOME"
    EXPENSE = "EXPENSE"


class TransactionSource(StrEnum):
    BOOKING = "BOOKING"
    MANUAL = "MANUAL"
    OTA_IMPORT = "OTA_IMPORT"
    CSV_IMPORT = "CSV_IMPORT"
    SYSTEM = "SYSTEM"


class TransactionCategory(StrEnum):
    ACCOMMODATION = "ACCOMMODATION"
    FB = "FB"
    LAUNDRY = "LAUNDRY"
    CLEANING = "CLEANING"
    MAINTENANCE = "MAINTENANCE"
    UTILITIES = "UTILITIES"
    SALARIES = "SALARIES"
    MARKETING = "MARKETING"
    SUPPLIES = "SUPPLIES"
    OTA_COMMISSION = "OTA_COMMISSION"
    VAT_OUTPUT = "VAT_OUTPUT"
    VAT_INPUT = "VAT_INPUT"
    OTHER = "OTHER"


class TransactionStatus(StrEnum):
    PENDING = "PENDING"
    CLEARED = "CLEARED"
    RECONCILED = "RECONCILED"
    VOID = "VOID"


class InvoiceStatus(StrEnum):
    DRAFT = "DRAFT"
    SENT = "SENT"
    PAID = "PAID"
    OVERDUE = "OVERDUE"
    CANCELLED = "CANCELLED"


OPEN_INVOICE_STATUSES = frozenset({InvoiceStatus.DRAFT, InvoiceStatus.SENT})


class OTAPlatform(StrEnum):
    BOOKING_COM = "BOOKING_COM"
    AIRBNB = "AIRBNB"
    LEKKERSLAAP = "LEKKERSLAAP"
    EXPEDIA = "EXPEDIA"
    OTHER = "OTHER"


class OTAPayoutStatus(StrEnum):
    IMPORTED = "IMPORTED"
    RECONCILED = "RECONCILED"
    DISPUTED = "DISPUTED"


class Confidence(StrEnum):
    """Categorizer certainty."""

    HIGH = "HIGH"
    MEDIUM = "MEDIUM"
    LOW = "LOW"


class MatchConfidence(StrEnum):
    """Reconciliation certainty; there is deliberately no middle tier."""

    HIGH = "HIGH"
    NONE = "NONE"


class SourceKind(StrEnum):
    """Statement formats accepted by the importers."""

    FNB = "FNB"
    ABSA = "ABSA"
    NEDBANK = "NEDBANK"
    STANDARD_BANK = "STANDARD_BANK"
    CAPITEC = "CAPITEC"
    BOOKING_COM = "BOOKING_COM"
    AIRBNB = "AIRBNB"
    LEKKERSLAAP = "LEKKERSLAAP"

    @property
    def is_bank(self) -> bool:
        return self in _BANK_KINDS

    @property
    def platform(self) -> OTAPlatform:
        """OTA platform for payout formats; bank formats raise ``ValueError``."""
        if self.is_bank:
            raise ValueError(f"{self} is a bank statement format")
        return OTAPlatform(self.value)


_BANK_KINDS = frozenset(
    {
        SourceKind.FNB,
        SourceKind.ABSA,
        SourceKind.NEDBANK,
        SourceKind.STANDARD_BANK,
        SourceKind.CAPITEC,
    }
)

# ---------------------------------------------------------------------------
# Parser output
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class RawStatementRow:
    """One normalized bank statement line; never persisted as-is.

    ``amount`` is unsigned; ``direction`` carries the sign.
    """

    line_no: int
    date: date
    description: str
    amount: Money
    direction: TransactionType
    fingerprint: str
    provider_ref: str | None = None


@dataclass(frozen=True, slots=True)
class StatementParseResult:
    rows: list[RawStatementRow] = field(default_factory=list)
    skipped: int = 0
    errors: list[str] = field(default_factory=list)


@dataclass(frozen=True, slots=True)
class ParsedPayoutItem:
    """One reservation's contribution to a payout (amounts unsigned)."""

    booking_ref: str | None
    guest_name: str | None
    check_in: date | None
    check_out: date | None
    gross: Money
    commission: Money
    net: Money
    bank_hint: str | None = None


@dataclass(frozen=True, slots=True)
class ParsedPayout:
    platform: OTAPlatform
    payout_date: date
    net: Money
    items: tuple[ParsedPayoutItem, ...]
    fingerprint: str
    external_ref: str | None = None

    @property
    def gross(self) -> Money:
        total = Money.zero(self.net.currency)
        for item in self.items:
            total = total + item.gross
        return total

    @property
    def commission(self) -> Money:
        total = Money.zero(self.net.currency)
        for item in self.items:
            total = total + item.commission
        return total


@dataclass(frozen=True, slots=True)
class PayoutParseResult:
    platform: OTAPlatform
    payouts: list[ParsedPayout] = field(default_factory=list)
    # Completed reservation records not yet covered by any payout.
    pending: list[ParsedPayoutItem] = field(default_factory=list)
    skipped: int = 0
    errors: list[str] = field(default_factory=list)
    pending_balance: Money | None = None

    @property
    def record_count(self) -> int:
        """Completed reservation records, attributed or pending."""
        return sum(len(p.items) for p in self.payouts) + len(self.pending)


type ParseResult = StatementParseResult | PayoutParseResult

# ---------------------------------------------------------------------------
# Import previews
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class PreviewRow:
    index: int
    date: date
    description: str
    amount: Money
    direction: TransactionType
    category: TransactionCategory
    confidence: Confidence
    fingerprint: str
    is_potential_duplicate: bool


@dataclass(frozen=True, slots=True)
class ImportPreview:
    source_kind: SourceKind
    parsed_count: int
    duplicate_count: int
    unrecognized_count: int
    skipped_count: int
    rows: list[PreviewRow]
    errors: list[str] = field(default_factory=list)


@dataclass(frozen=True, slots=True)
class PayoutPreviewRow:
    index: int
    payout: ParsedPayout
    is_potential_duplicate: bool


@dataclass(frozen=True, slots=True)
class PayoutImportPreview:
    platform: OTAPlatform
    parsed_count: int
    duplicate_count: int
    unrecognized_count: int
    skipped_count: int
    rows: list[PayoutPreviewRow]
    pending: list[ParsedPayoutItem] = field(default_factory=list)
    pending_balance: Money | None = None
    errors: list[str] = field(default_factory=list)


# ---------------------------------------------------------------------------
# Reconciliation
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class PayoutItemCandidate:
    """An unmatched payout item as seen by the matcher."""

    item_id: str
    payout_id: str
    platform: OTAPlatform
    payout_date: date
    amount: Money
    booking_ref: str | None = None
    guest_name: str | None = None
    bank_hint: str | None = None
    # Net of the whole payout when it carries several items; one deposit settles them all.
    payout_net: Money | None = None

    @property
    def batched(self) -> bool:
        return self.payout_net is not None

    @property
    def expected_deposit(self) -> Money:
        return self.payout_net if self.payout_net is not None else self.amount


@dataclass(frozen=True, slots=True)
class BankTransactionSnapshot:
    transaction_id: str
    date: date
    amount: Money
    description: str


@dataclass(frozen=True, slots=True)
class MatchProposal:
    item: PayoutItemCandidate
    confidence: MatchConfidence
    window_start: date
    window_end: date
    transaction: BankTransactionSnapshot | None = None
    # Other bank transactions that satisfied every criterion but lost the tie-break.
    competing: int = 0


# ---------------------------------------------------------------------------
# Validated inputs
# ---------------------------------------------------------------------------


class BookingCreate(BaseModel):
    """Input for creating a booking; validated before anything is written."""

    model_config = ConfigDict(extra="forbid", str_strip_whitespace=True)

    organisation_id: str
    property_id: str
    room_id: str
    guest_name: str
    guest_email: str | None = None
    check_in: date
    check_out: date
    source: BookingSource = BookingSource.DIRECT
    external_ref: str | None = None
    gross_amount: Decimal
    commission_pct: Decimal = Decimal("0")
    # When omitted, the property's VAT settings apply.
    vat_rate: Decimal | None = None
    vat_inclusive: bool | None = None

    @field_validator("guest_name")
    @classmethod
    def _guest_name_non_empty(cls, v: str) -> str:
        if not v:
            raise ValueError("guest name must be non-empty")
        return v

    @field_validator("gross_amount")
    @classmethod
    def _gross_positive(cls, v: Decimal) -> Decimal:
        if v <= 0:
            raise ValueError("gross amount must be positive")
        return v

    @field_validator("commission_pct")
    @classmethod
    def _pct_in_range(cls, v: Decimal) -> Decimal:
        if not Decimal("0") <= v < Decimal("1"):
            raise ValueError("commission percent must be within [0, 1)")
        return v

    @field_validator("vat_rate")
    @classmethod
    def _vat_rate_range(cls, v: Decimal | None) -> Decimal | None:
        if v is not None and not Decimal("0") <= v < Decimal("1"):
            raise ValueError("VAT rate must be within [0, 1)")
        return v

    @model_validator(mode="after")
    def _stay_window(self) -> BookingCreate:
        if self.check_out <= self.check_in:
            raise ValueError("check-out must be after check-in")
        return self


__all__ = [
    "BankTransactionSnapshot",
    "BookingCreate",
    "BookingSource",
    "BookingStatus",
    "Confidence",
    "ImportPreview",
    "InvoiceStatus",
    "MatchConfidence",
    "MatchProposal",
    "OPEN_INVOICE_STATUSES",
    "OTAPayoutStatus",
    "OTAPlatform",
    "ParseResult",
    "ParsedPayout",
    "ParsedPayoutItem",
    "PayoutImportPreview",
    "PayoutItemCandidate",
    "PayoutParseResult",
    "PayoutPreviewRow",
    "PreviewRow",
    "RawStatementRow",
    "SourceKind",
    "StatementParseResult",
    "TERMINAL_BOOKING_STATUSES",
    "TransactionCategory",
    "TransactionSource",
    "TransactionStatus",
    "TransactionType",
]
