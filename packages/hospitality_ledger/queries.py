"""Read-only queries behind the daily digest and alerts.

None of these write; VOID rows never count, and PENDING income (recognised
at check-out but not yet seen in the bank) is left out of the cash position.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, timedelta

from db.models.finance import HlInvoice, HlOtaPayout, HlOtaPayoutItem, HlTransaction
from sqlalchemy import func, select
from sqlalchemy.orm import Session

from .errors import Outcome, ValidationError
from .ledger import get_property, outcome_boundary, run_in_transaction
from .models import InvoiceStatus, OTAPayoutStatus, OTAPlatform, TransactionStatus, TransactionType
from .money import Money

DEFAULT_PAYOUT_OVERDUE_DAYS = 35

_SETTLED = (TransactionStatus.CLEARED.value, TransactionStatus.RECONCILED.value)


@dataclass(frozen=True, slots=True)
class CashPosition:
    income: Money
    expense: Money

    @property
    def balance(self) -> Money:
        return self.income - self.expense


@dataclass(frozen=True, slots=True)
class OverdueInvoice:
    invoice_id: str
    invoice_number: str
    booking_id: str
    due_date: date
    total: Money
    days_overdue: int


@dataclass(frozen=True, slots=True)
class OverdueInvoices:
    count: int
    # Keyed by currency; invoices are never converted.
    totals: dict[str, Money] = field(default_factory=dict)
    rows: list[OverdueInvoice] = field(default_factory=list)


@dataclass(frozen=True, slots=True)
class OverduePayout:
    payout_id: str
    property_id: str
    platform: OTAPlatform
    payout_date: date
    net: Money
    age_days: int


@outcome_boundary("unmatched_items_count")
def unmatched_items_count(
    organisation_id: str,
    property_id: str | None = None,
    *,
    database_url: str | None = None,
) -> Outcome[int]:
    def load(session: Session) -> int:
        stmt = (
            select(func.count())
            .select_from(HlOtaPayoutItem)
            .join(HlOtaPayout, HlOtaPayoutItem.payout_id == HlOtaPayout.id)
            .where(
                HlOtaPayout.organisation_id == organisation_id,
                HlOtaPayoutItem.is_matched.is_(False),
            )
        )
        if property_id is not None:
            stmt = stmt.where(HlOtaPayout.property_id == property_id)
        return session.execute(stmt).scalar_one()

    n = run_in_transaction(load, operation="unmatched_items_count", database_url=database_url)
    return Outcome.ok(f"{n} unmatched payout items", n)


@outcome_boundary("cash_position")
def cash_position(
    property_id: str,
    *,
    organisation_id: str,
    database_url: str | None = None,
) -> Outcome[CashPosition]:
    """Cleared and reconciled income minus cleared and reconciled expense."""

    def load(session: Session) -> CashPosition:
        prop = get_property(session, property_id, organisation_id=organisation_id)
        rows = session.execute(
            select(HlTransaction.type, HlTransaction.currency, func.sum(HlTransaction.amount_minor))
            .where(
                HlTransaction.property_id == prop.id,
                HlTransaction.status.in_(_SETTLED),
            )
            .group_by(HlTransaction.type, HlTransaction.currency)
        ).all()
        totals = {TransactionType.INCOME.value: 0, TransactionType.EXPENSE.value: 0}
        for tx_type, currency, total in rows:
            if currency != prop.currency:
                raise ValidationError(
                    f"Property {prop.id} has {currency} transactions; "
                    f"cash position is {prop.currency} only"
                )
            totals[tx_type] += int(total or 0)
        return CashPosition(
            income=Money(totals[TransactionType.INCOME.value], prop.currency),
            expense=Money(totals[TransactionType.EXPENSE.value], prop.currency),
        )

    position = run_in_transaction(load, operation="cash_position", database_url=database_url)
    return Outcome.ok(f"Cash position {position.balance.format()}", position)


@outcome_boundary("overdue_invoices")
def overdue_invoices(
    organisation_id: str,
    today: date,
    *,
    database_url: str | None = None,
) -> Outcome[OverdueInvoices]:
    """SENT invoices whose due date is before ``today``, oldest first."""

    def load(session: Session) -> OverdueInvoices:
        invoices = session.execute(
            select(HlInvoice)
            .where(
                HlInvoice.organisation_id == organisation_id,
                HlInvoice.status == InvoiceStatus.SENT.value,
                HlInvoice.due_date < today,
            )
            .order_by(HlInvoice.due_date, HlInvoice.invoice_number)
        ).scalars()
        rows: list[OverdueInvoice] = []
        totals: dict[str, Money] = {}
        for inv in invoices:
            total = Money(inv.total_minor, inv.currency)
            totals[inv.currency] = totals.get(inv.currency, Money.zero(inv.currency)) + total
            rows.append(
                OverdueInvoice(
                    invoice_id=inv.id,
                    invoice_number=inv.invoice_number,
                    booking_id=inv.booking_id,
                    due_date=inv.due_date,
                    total=total,
                    days_overdue=(today - inv.due_date).days,
                )
            )
        return OverdueInvoices(count=len(rows), totals=totals, rows=rows)

    result = run_in_transaction(load, operation="overdue_invoices", database_url=database_url)
    return Outcome.ok(f"{result.count} overdue invoices", result)


@outcome_boundary("overdue_payouts")
def overdue_payouts(
    organisation_id: str,
    today: date,
    days: int = DEFAULT_PAYOUT_OVERDUE_DAYS,
    *,
    database_url: str | None = None,
) -> Outcome[list[OverduePayout]]:
    """IMPORTED payouts dated more than ``days`` before ``today``."""

    if days < 0:
        raise ValidationError("days must not be negative")
    cutoff = today - timedelta(days=days)

    def load(session: Session) -> list[OverduePayout]:
        payouts = session.execute(
            select(HlOtaPayout)
            .where(
                HlOtaPayout.organisation_id == organisation_id,
                HlOtaPayout.status == OTAPayoutStatus.IMPORTED.value,
                HlOtaPayout.payout_date < cutoff,
            )
            .order_by(HlOtaPayout.payout_date, HlOtaPayout.id)
        ).scalars()
        return [
            OverduePayout(
                payout_id=p.id,
                property_id=p.property_id,
                platform=OTAPlatform(p.platform),
                payout_date=p.payout_date,
                net=Money(p.net_minor, p.currency),
                age_days=(today - p.payout_date).days,
            )
            for p in payouts
        ]

    result = run_in_transaction(load, operation="overdue_payouts", database_url=database_url)
    return Outcome.ok(f"{len(result)} payouts awaiting reconciliation past {days} days", result)


__all__ = [
    "CashPosition",
    "DEFAULT_PAYOUT_OVERDUE_DAYS",
    "OverdueInvoice",
    "OverdueInvoices",
    "OverduePayout",
    "cash_position",
    "overdue_invoices",
    "overdue_payouts",
    "unmatched_items_count",
]
