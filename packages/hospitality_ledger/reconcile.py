"""Match OTA payout items to the bank deposits that settled them.

A proposal is HIGH only when a bank transaction satisfies all three checks:

- amount within ``MATCH_TOLERANCE_MINOR`` of the expected deposit;
- posted within the channel's settlement delay either side of the payout date;
- description containing a channel keyword or the item's own bank hint.

Anything less is NONE ("awaiting posting"). There is no middle tier. When
several transactions pass every check the earliest-dated one is proposed and
the others are left for manual review. A transaction is proposed for at most
one payout per run, and items are visited in payout-date order.

A payout carrying a single item is matched item by item: the expected deposit
is the item's net and the link is stored on the item. A payout carrying
several items was paid as one deposit of its total, so the expected deposit is
the payout's net, every item of it gets the same proposal, and confirming any
one of them links the transaction once on the payout and settles all its items.

:func:`propose_matches` is pure; :func:`preview_reconciliation` feeds it from
the database, and :func:`confirm_reconciliation` writes the operator's choice
under row locks in one transaction.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence
from dataclasses import replace
from datetime import UTC, datetime, timedelta

from db.models.finance import HlOtaPayout, HlOtaPayoutItem, HlTransaction
from sqlalchemy import and_, func, select
from sqlalchemy.orm import Session

from .channels import bank_keywords, settlement_delay_days
from .errors import NotFound, Outcome, ValidationError
from .ledger import get_property, outcome_boundary, run_in_transaction
from .logging_setup import get_logger
from .models import (
    BankTransactionSnapshot,
    MatchConfidence,
    MatchProposal,
    OTAPayoutStatus,
    OTAPlatform,
    PayoutItemCandidate,
    TransactionStatus,
    TransactionType,
)
from .money import Money

_logger = get_logger("hospitality_ledger.reconcile")

# Bank amounts within ten cents of the payout line count as equal.
MATCH_TOLERANCE_MINOR = 10

_CLOSED_TX_STATUSES = (TransactionStatus.RECONCILED.value, TransactionStatus.VOID.value)


def _hints(item: PayoutItemCandidate) -> tuple[str, ...]:
    hints = [k.upper() for k in bank_keywords(item.platform)]
    if item.bank_hint and item.bank_hint.strip():
        hints.append(item.bank_hint.strip().upper())
    return tuple(hints)


def _amount_matches(item: PayoutItemCandidate, tx: BankTransactionSnapshot, tolerance: int) -> bool:
    expected = item.expected_deposit
    return (
        expected.currency == tx.amount.currency
        and abs(expected.minor - tx.amount.minor) < tolerance
    )


def propose_matches(
    items: Iterable[PayoutItemCandidate],
    bank_transactions: Sequence[BankTransactionSnapshot],
    *,
    tolerance_minor: int = MATCH_TOLERANCE_MINOR,
) -> list[MatchProposal]:
    """Return one proposal per item, in payout-date order."""

    claimed: set[str] = set()
    by_payout: dict[str, MatchProposal] = {}
    proposals: list[MatchProposal] = []
    for item in sorted(items, key=lambda i: (i.payout_date, i.payout_id, i.item_id)):
        if item.batched and item.payout_id in by_payout:
            proposals.append(replace(by_payout[item.payout_id], item=item))
            continue
        delay = timedelta(days=settlement_delay_days(item.platform))
        start, end = item.payout_date - delay, item.payout_date + delay
        hints = _hints(item)
        candidates = sorted(
            (
                tx
                for tx in bank_transactions
                if tx.transaction_id not in claimed
                and _amount_matches(item, tx, tolerance_minor)
                and start <= tx.date <= end
                and any(h in tx.description.upper() for h in hints)
            ),
            key=lambda tx: (tx.date, tx.transaction_id),
        )
        if not candidates:
            proposal = MatchProposal(item, MatchConfidence.NONE, start, end)
        else:
            best = candidates[0]
            claimed.add(best.transaction_id)
            proposal = MatchProposal(
                item,
                MatchConfidence.HIGH,
                start,
                end,
                transaction=best,
                competing=len(candidates) - 1,
            )
        if item.batched:
            by_payout[item.payout_id] = proposal
        proposals.append(proposal)
    return proposals


# ---- Loading -----------------------------------------------------------------


def load_unmatched_items(
    session: Session, *, organisation_id: str, property_id: str, platform: OTAPlatform
) -> list[PayoutItemCandidate]:
    item_counts = (
        select(HlOtaPayoutItem.payout_id, func.count().label("n"))
        .group_by(HlOtaPayoutItem.payout_id)
        .subquery()
    )
    stmt = (
        select(HlOtaPayoutItem, HlOtaPayout, item_counts.c.n)
        .join(HlOtaPayout, HlOtaPayoutItem.payout_id == HlOtaPayout.id)
        .join(item_counts, item_counts.c.payout_id == HlOtaPayout.id)
        .where(
            HlOtaPayout.organisation_id == organisation_id,
            HlOtaPayout.property_id == property_id,
            HlOtaPayout.platform == platform.value,
            HlOtaPayout.status != OTAPayoutStatus.DISPUTED.value,
            HlOtaPayoutItem.is_matched.is_(False),
        )
        .order_by(HlOtaPayout.payout_date, HlOtaPayoutItem.id)
    )
    return [
        PayoutItemCandidate(
            item_id=item.id,
            payout_id=payout.id,
            platform=OTAPlatform(payout.platform),
            payout_date=payout.payout_date,
            amount=Money(item.net_minor, payout.currency),
            booking_ref=item.booking_ref,
            guest_name=item.guest_name,
            bank_hint=item.bank_hint,
            payout_net=Money(payout.net_minor, payout.currency) if n > 1 else None,
        )
        for item, payout, n in session.execute(stmt).all()
    ]


def _unlinked(column):
    """Condition excluding transactions already linked to a payout or payout item."""

    return and_(
        column.not_in(
            select(HlOtaPayoutItem.bank_transaction_id).where(
                HlOtaPayoutItem.bank_transaction_id.is_not(None)
            )
        ),
        column.not_in(
            select(HlOtaPayout.bank_transaction_id).where(
                HlOtaPayout.bank_transaction_id.is_not(None)
            )
        ),
    )


def load_bank_candidates(
    session: Session, *, organisation_id: str, property_id: str
) -> list[BankTransactionSnapshot]:
    """Income rows of the property that are still open and not backing any payout item."""

    stmt = (
        select(HlTransaction)
        .where(
            HlTransaction.organisation_id == organisation_id,
            HlTransaction.property_id == property_id,
            HlTransaction.type == TransactionType.INCOME.value,
            HlTransaction.status.not_in(_CLOSED_TX_STATUSES),
            _unlinked(HlTransaction.id),
        )
        .order_by(HlTransaction.date, HlTransaction.id)
    )
    return [
        BankTransactionSnapshot(
            transaction_id=tx.id,
            date=tx.date,
            amount=Money(tx.amount_minor, tx.currency),
            description=tx.description,
        )
        for tx in session.execute(stmt).scalars()
    ]


@outcome_boundary("preview_reconciliation")
def preview_reconciliation(
    property_id: str,
    platform: OTAPlatform,
    *,
    organisation_id: str,
    database_url: str | None = None,
) -> Outcome[list[MatchProposal]]:
    def load(session: Session) -> list[MatchProposal]:
        prop = get_property(session, property_id, organisation_id=organisation_id)
        items = load_unmatched_items(
            session, organisation_id=organisation_id, property_id=prop.id, platform=platform
        )
        txs = load_bank_candidates(session, organisation_id=organisation_id, property_id=prop.id)
        return propose_matches(items, txs)

    proposals = run_in_transaction(
        load, operation="preview_reconciliation", database_url=database_url
    )
    high = sum(1 for p in proposals if p.confidence is MatchConfidence.HIGH)
    _logger.info(
        "preview_reconciliation:done property_id=%s platform=%s items=%d high=%d",
        property_id,
        platform,
        len(proposals),
        high,
    )
    return Outcome.ok(f"{high} of {len(proposals)} payout items matched", proposals)


# ---- Confirmation ------------------------------------------------------------


@outcome_boundary("confirm_reconciliation")
def confirm_reconciliation(
    property_id: str,
    platform: OTAPlatform,
    selected_item_ids: Sequence[str],
    match_map: Mapping[str, str],
    *,
    organisation_id: str,
    database_url: str | None = None,
) -> Outcome[int]:
    """Link each selected item to its chosen bank transaction; the value is the matched item count.

    Selected items without an entry in ``match_map`` are left untouched.
    Selecting any item of a batched payout settles every item of that payout
    through one link on the payout. The whole batch commits or nothing does.
    """

    pairs = {
        item_id: match_map[item_id]
        for item_id in dict.fromkeys(selected_item_ids)
        if match_map.get(item_id)
    }
    if not pairs:
        return Outcome.ok("Nothing to reconcile", 0)
    tx_ids = list(dict.fromkeys(pairs.values()))

    def work(session: Session) -> int:
        get_property(session, property_id, organisation_id=organisation_id)
        items = {
            item.id: (item, payout)
            for item, payout in session.execute(
                select(HlOtaPayoutItem, HlOtaPayout)
                .join(HlOtaPayout, HlOtaPayoutItem.payout_id == HlOtaPayout.id)
                .where(
                    HlOtaPayoutItem.id.in_(list(pairs)),
                    HlOtaPayout.organisation_id == organisation_id,
                    HlOtaPayout.property_id == property_id,
                    HlOtaPayout.platform == platform.value,
                )
                .with_for_update()
            ).all()
        }
        txs = {
            tx.id: tx
            for tx in session.execute(
                select(HlTransaction)
                .where(
                    HlTransaction.id.in_(tx_ids),
                    HlTransaction.organisation_id == organisation_id,
                    HlTransaction.property_id == property_id,
                )
                .with_for_update()
            ).scalars()
        }
        siblings: dict[str, list[HlOtaPayoutItem]] = {}
        for sibling in session.execute(
            select(HlOtaPayoutItem)
            .where(HlOtaPayoutItem.payout_id.in_(list({p.id for _, p in items.values()})))
            .order_by(HlOtaPayoutItem.id)
            .with_for_update()
        ).scalars():
            siblings.setdefault(sibling.payout_id, []).append(sibling)
        already_linked = set(
            session.execute(
                select(HlOtaPayoutItem.bank_transaction_id).where(
                    HlOtaPayoutItem.bank_transaction_id.in_(tx_ids)
                )
            ).scalars()
        ) | set(
            session.execute(
                select(HlOtaPayout.bank_transaction_id).where(
                    HlOtaPayout.bank_transaction_id.in_(tx_ids)
                )
            ).scalars()
        )

        # One settlement per single-item payout item or per batched payout.
        settlements: dict[str, tuple[str, HlOtaPayoutItem, HlOtaPayout]] = {}
        for item_id, tx_id in pairs.items():
            if item_id not in items:
                raise NotFound("Payout item", item_id)
            if tx_id not in txs:
                raise NotFound("Transaction", tx_id)
            item, payout = items[item_id]
            if item.is_matched:
                raise ValidationError(f"Payout item {item_id} is already matched")
            key = payout.id if len(siblings[payout.id]) > 1 else item.id
            if key in settlements and settlements[key][0] != tx_id:
                raise ValidationError(f"Payout {payout.id} is settled by one bank transaction")
            settlements.setdefault(key, (tx_id, item, payout))
        used = [tx_id for tx_id, _, _ in settlements.values()]
        if len(set(used)) != len(used):
            raise ValidationError("A bank transaction can settle only one payout")

        matched_at = datetime.now(UTC)
        saved = 0
        for tx_id, item, payout in settlements.values():
            tx = txs[tx_id]
            if tx_id in already_linked:
                raise ValidationError(f"Transaction {tx_id} already settles another payout")
            if tx.type != TransactionType.INCOME or tx.status in _CLOSED_TX_STATUSES:
                raise ValidationError(
                    f"Transaction {tx_id} is not an open income row (status {tx.status})"
                )
            if tx.currency != payout.currency:
                raise ValidationError(
                    f"Transaction {tx_id} is in {tx.currency}, payout is in {payout.currency}"
                )
            if len(siblings[payout.id]) > 1:
                payout.bank_transaction_id = tx.id
                payout.matched_at = matched_at
                settled = [s for s in siblings[payout.id] if not s.is_matched]
            else:
                item.bank_transaction_id = tx.id
                settled = [item]
            for row in settled:
                row.is_matched = True
                row.matched_at = matched_at
            saved += len(settled)
            tx.status = TransactionStatus.RECONCILED.value
        session.flush()

        for payout_id in {payout.id for _, _, payout in settlements.values()}:
            remaining = session.execute(
                select(func.count())
                .select_from(HlOtaPayoutItem)
                .where(
                    HlOtaPayoutItem.payout_id == payout_id,
                    HlOtaPayoutItem.is_matched.is_(False),
                )
            ).scalar_one()
            if remaining == 0:
                payout = session.get(HlOtaPayout, payout_id)
                if payout is not None:
                    payout.status = OTAPayoutStatus.RECONCILED.value
        return saved

    saved = run_in_transaction(work, operation="confirm_reconciliation", database_url=database_url)
    _logger.info(
        "confirm_reconciliation:done property_id=%s platform=%s saved=%d",
        property_id,
        platform,
        saved,
    )
    return Outcome.ok(f"Reconciled {saved} payout items", saved)


__all__ = [
    "MATCH_TOLERANCE_MINOR",
    "confirm_reconciliation",
    "load_bank_candidates",
    "load_unmatched_items",
    "preview_reconciliation",
    "propose_matches",
]
