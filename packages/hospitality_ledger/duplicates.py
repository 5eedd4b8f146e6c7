"""Import guard: flag statement rows and payouts that were already imported.

A parsed row is a *potential duplicate* when its fingerprint is already on
file for the same property and source within the lookback window: the
statement periods the file touches, widened by a few days of slack for late
postings (``HL_IMPORT_SLACK_DAYS``, default 5). Flagged rows are shown to the
operator, who decides to include or exclude each one; the guard itself never
drops or imports anything.
"""

from __future__ import annotations

import os
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass
from datetime import date, timedelta

from db.models.finance import HlOtaPayout, HlTransaction
from sqlalchemy import select
from sqlalchemy.orm import Session

from .errors import ValidationError
from .models import OTAPlatform, SourceKind
from .money import Period

_SLACK_ENV = "HL_IMPORT_SLACK_DAYS"
DEFAULT_SLACK_DAYS = 5


def slack_days() -> int:
    raw = os.getenv(_SLACK_ENV)
    try:
        n = int(raw) if raw else DEFAULT_SLACK_DAYS
    except ValueError:
        n = DEFAULT_SLACK_DAYS
    return max(0, n)


@dataclass(frozen=True, slots=True)
class LookbackWindow:
    start: date
    end: date

    def contains(self, d: date) -> bool:
        return self.start <= d <= self.end


def lookback_window(dates: Iterable[date], *, slack: int | None = None) -> LookbackWindow | None:
    """Window from the first period's start to the last period's end, plus slack.

    Returns ``None`` when ``dates`` is empty.
    """

    ds = list(dates)
    if not ds:
        return None
    pad = timedelta(days=slack_days() if slack is None else slack)
    first = Period.containing(min(ds))
    last = Period.containing(max(ds))
    return LookbackWindow(first.start - pad, last.end + pad)


def existing_row_fingerprints(
    session: Session, *, property_id: str, source_kind: SourceKind, window: LookbackWindow
) -> set[str]:
    stmt = select(HlTransaction.fingerprint).where(
        HlTransaction.property_id == property_id,
        HlTransaction.source_kind == source_kind.value,
        HlTransaction.fingerprint.is_not(None),
        HlTransaction.date.between(window.start, window.end),
    )
    return {fp for fp in session.execute(stmt).scalars() if fp}


def existing_payout_fingerprints(
    session: Session, *, property_id: str, platform: OTAPlatform, window: LookbackWindow
) -> set[str]:
    stmt = select(HlOtaPayout.fingerprint).where(
        HlOtaPayout.property_id == property_id,
        HlOtaPayout.platform == platform.value,
        HlOtaPayout.payout_date.between(window.start, window.end),
    )
    return set(session.execute(stmt).scalars())


def flag_duplicates(fingerprints: Sequence[str], existing: set[str]) -> list[bool]:
    return [fp in existing for fp in fingerprints]


def resolve_decisions(
    flagged: Mapping[int, bool], decisions: Mapping[int, bool] | None
) -> set[int]:
    """Return the indices to import.

    ``flagged`` maps every preview index to its duplicate flag. Unflagged rows
    are imported unless explicitly excluded; every flagged row must carry an
    explicit decision or ``ValidationError`` is raised.
    """

    decisions = decisions or {}
    undecided = sorted(i for i, dup in flagged.items() if dup and i not in decisions)
    if undecided:
        shown = ", ".join(str(i) for i in undecided[:10])
        more = f" (+{len(undecided) - 10} more)" if len(undecided) > 10 else ""
        raise ValidationError(
            f"{len(undecided)} potential duplicate(s) need an include/exclude decision: "
            f"rows {shown}{more}"
        )
    unknown = sorted(set(decisions) - set(flagged))
    if unknown:
        raise ValidationError(f"Decisions refer to unknown rows: {unknown[:10]}")
    return {i for i in flagged if decisions.get(i, True)}


__all__ = [
    "DEFAULT_SLACK_DAYS",
    "LookbackWindow",
    "existing_payout_fingerprints",
    "existing_row_fingerprints",
    "flag_duplicates",
    "lookback_window",
    "resolve_decisions",
    "slack_days",
]
