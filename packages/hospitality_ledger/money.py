"""Money, VAT, night-count and accounting-period helpers.

Money is held as an integer number of minor units (cents) tagged with an ISO
4217 currency code. Conversion from text or ``Decimal`` happens only at the
edges (statement parsing, user input, display); everything in between adds
and compares integers. Rounding to the minor unit uses banker's rounding
(``ROUND_HALF_EVEN``).
"""

from __future__ import annotations

import calendar
import re
from dataclasses import dataclass
from datetime import date, timedelta
from decimal import ROUND_HALF_EVEN, Decimal, InvalidOperation

from .errors import ValidationError

DEFAULT_CURRENCY = "ZAR"

# ISO 4217 minor-unit exponents for the currencies properties settle in.
CURRENCY_DIGITS: dict[str, int] = {
    "ZAR": 2,
    "USD": 2,
    "EUR": 2,
    "GBP": 2,
    "NAD": 2,
    "BWP": 2,
    "MUR": 2,
    "KES": 2,
    "JPY": 0,
}


def minor_digits(currency: str) -> int:
    try:
        return CURRENCY_DIGITS[currency]
    except KeyError:
        raise ValidationError(f"Unsupported currency: {currency!r}") from None


def _quantum(currency: str) -> Decimal:
    return Decimal(1).scaleb(-minor_digits(currency))


def to_minor(amount: Decimal, currency: str) -> int:
    """Round ``amount`` to the currency's minor unit and return it as an integer."""

    digits = minor_digits(currency)
    try:
        q = amount.quantize(_quantum(currency), rounding=ROUND_HALF_EVEN)
    except InvalidOperation as exc:
        raise ValueError(f"amount out of range: {amount}") from exc
    return int(q.scaleb(digits))


@dataclass(frozen=True, slots=True)
class Money:
    minor: int
    currency: str = DEFAULT_CURRENCY

    def __post_init__(self) -> None:
        if not isinstance(self.minor, int) or isinstance(self.minor, bool):
            raise TypeError(f"Money.minor must be int, got {type(self.minor).__name__}")
        minor_digits(self.currency)

    @classmethod
    def of(cls, amount: Decimal | str | int, currency: str = DEFAULT_CURRENCY) -> Money:
        """Build Money from a decimal amount; floats are refused."""

        if isinstance(amount, float):
            raise TypeError("Money.of() does not accept float; pass a Decimal or string")
        try:
            value = amount if isinstance(amount, Decimal) else Decimal(str(amount))
        except InvalidOperation as exc:
            raise ValidationError(f"Invalid amount: {amount!r}") from exc
        try:
            return cls(to_minor(value, currency), currency)
        except ValueError as exc:
            raise ValidationError(f"Invalid amount: {amount!r}") from exc

    @classmethod
    def zero(cls, currency: str = DEFAULT_CURRENCY) -> Money:
        return cls(0, currency)

    @property
    def amount(self) -> Decimal:
        return Decimal(self.minor).scaleb(-minor_digits(self.currency))

    @property
    def is_zero(self) -> bool:
        return self.minor == 0

    @property
    def is_positive(self) -> bool:
        return self.minor > 0

    def _same(self, other: Money) -> None:
        if self.currency != other.currency:
            raise ValidationError(
                f"Currency mismatch: {self.currency} and {other.currency}"
            )

    def __add__(self, other: Money) -> Money:
        if not isinstance(other, Money):
            return NotImplemented
        self._same(other)
        return Money(self.minor + other.minor, self.currency)

    def __sub__(self, other: Money) -> Money:
        if not isinstance(other, Money):
            return NotImplemented
        self._same(other)
        return Money(self.minor - other.minor, self.currency)

    def __neg__(self) -> Money:
        return Money(-self.minor, self.currency)

    def __abs__(self) -> Money:
        return Money(abs(self.minor), self.currency)

    def __lt__(self, other: Money) -> bool:
        self._same(other)
        return self.minor < other.minor

    def __le__(self, other: Money) -> bool:
        self._same(other)
        return self.minor <= other.minor

    def __gt__(self, other: Money) -> bool:
        self._same(other)
        return self.minor > other.minor

    def __ge__(self, other: Money) -> bool:
        self._same(other)
        return self.minor >= other.minor

    def percent(self, rate: Decimal) -> Money:
        """Return ``self * rate`` rounded to the minor unit (0.15 means 15%)."""

        return Money(to_minor(self.amount * rate, self.currency), self.currency)

    def format(self) -> str:
        return f"{self.amount:.{minor_digits(self.currency)}f} {self.currency}"

    __str__ = format


@dataclass(frozen=True, slots=True)
class VatSplit:
    excl: Money
    vat: Money
    incl: Money


def vat_split(gross: Money, rate: Decimal, inclusive: bool) -> VatSplit:
    """Split ``gross`` into VAT-exclusive amount, VAT and VAT-inclusive total.

    Inclusive prices already contain VAT (``excl = gross / (1 + rate)``);
    exclusive prices get VAT added on top (``vat = gross * rate``).
    """

    if rate < 0:
        raise ValidationError(f"VAT rate must not be negative: {rate}")
    if inclusive:
        excl = Money(to_minor(gross.amount / (1 + rate), gross.currency), gross.currency)
        return VatSplit(excl=excl, vat=gross - excl, incl=gross)
    vat = gross.percent(rate)
    return VatSplit(excl=gross, vat=vat, incl=gross + vat)


def nights(check_in: date, check_out: date) -> int:
    """Number of nights in the stay window ``[check_in, check_out)``."""

    n = (check_out - check_in).days
    if n <= 0:
        raise ValidationError(
            f"Check-out ({check_out.isoformat()}) must be after check-in ({check_in.isoformat()})"
        )
    return n


# ---------------------------------------------------------------------------
# Periods
# ---------------------------------------------------------------------------

_PERIOD_RE = re.compile(r"^(\d{4})-(\d{2})$")


@dataclass(frozen=True, slots=True, order=True)
class Period:
    """A calendar month, written ``YYYY-MM``."""

    year: int
    month: int

    def __post_init__(self) -> None:
        if not 1 <= self.month <= 12:
            raise ValidationError(f"Invalid period month: {self.month}")

    @classmethod
    def parse(cls, text: str) -> Period:
        m = _PERIOD_RE.match(text.strip())
        if not m:
            raise ValidationError(f"Invalid period {text!r}; expected YYYY-MM")
        return cls(int(m.group(1)), int(m.group(2)))

    @classmethod
    def containing(cls, d: date) -> Period:
        return cls(d.year, d.month)

    @property
    def start(self) -> date:
        return date(self.year, self.month, 1)

    @property
    def end(self) -> date:
        """Last day of the month (inclusive)."""
        return date(self.year, self.month, calendar.monthrange(self.year, self.month)[1])

    def contains(self, d: date) -> bool:
        return self.start <= d <= self.end

    def next(self) -> Period:
        return Period.containing(self.end + timedelta(days=1))

    def previous(self) -> Period:
        return Period.containing(self.start - timedelta(days=1))

    def __str__(self) -> str:
        return f"{self.year:04d}-{self.month:02d}"


# ---------------------------------------------------------------------------
# Text → Decimal
# ---------------------------------------------------------------------------

_CURRENCY_MARKERS = ("ZAR", "R", "$", "€", "£")

# Keeps every parsed amount within a BIGINT column once scaled to minor units.
MAX_STATEMENT_AMOUNT = Decimal(10) ** 15


def parse_amount(raw: str | None) -> Decimal:
    """Parse a statement amount such as ``"R 1,234.50"`` or ``"(350.00)"`` into ``Decimal``.

    Accepts leading ``+``/``-``, surrounding parentheses, a leading currency
    marker, a trailing minus, ``CR``/``DR`` suffixes, and comma or space
    thousands separators. Raises ``ValueError`` when nothing numeric remains
    or the magnitude reaches ``MAX_STATEMENT_AMOUNT``.
    """

    if raw is None:
        raise ValueError("amount is required")
    s = raw.strip()
    if not s:
        raise ValueError("amount is empty")
    negative = False

    upper = s.upper()
    if upper.endswith("DR"):
        negative = True
        s = s[:-2].strip()
    elif upper.endswith("CR"):
        s = s[:-2].strip()
    if s.endswith("-"):
        negative = True
        s = s[:-1].strip()

    # Sign, currency marker and parentheses may come in any order.
    while True:
        changed = False
        if s.startswith("+"):
            s = s[1:].lstrip()
            changed = True
        elif s.startswith("-"):
            negative = True
            s = s[1:].lstrip()
            changed = True
        for marker in _CURRENCY_MARKERS:
            if s.upper().startswith(marker) and len(s) > len(marker):
                s = s[len(marker):].lstrip()
                changed = True
                break
        if s.startswith("(") and s.endswith(")") and len(s) >= 2:
            negative = True
            s = s[1:-1].strip()
            changed = True
        if not changed:
            break

    s = s.replace(",", "").replace(" ", "").replace("\u00a0", "")
    try:
        d = Decimal(s)
    except InvalidOperation as exc:
        raise ValueError(f"invalid amount: {raw!r}") from exc
    if not d.is_finite():
        raise ValueError(f"invalid amount: {raw!r}")
    if abs(d) >= MAX_STATEMENT_AMOUNT:
        raise ValueError(f"amount out of range: {raw!r}")
    return -abs(d) if negative else d


__all__ = [
    "CURRENCY_DIGITS",
    "DEFAULT_CURRENCY",
    "MAX_STATEMENT_AMOUNT",
    "Money",
    "Period",
    "VatSplit",
    "minor_digits",
    "nights",
    "parse_amount",
    "to_minor",
    "vat_split",
]
