"""Greedy attribution of completed reservation records to aggregate payouts.

Policy (kept deliberately simple, and imperfect when several records share
near-identical net amounts): walk the unattributed records in file order. A
record whose net is within ``ATTRIBUTION_EPSILON_MINOR`` of the payout's
remaining amount closes the payout; a record whose net fits inside the
remaining amount is attributed and the remainder shrinks; anything else stays
unattributed for a later payout. Records never attributed are reported as
pending settlement by the adapters.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass

from ..models import ParsedPayoutItem

# Five cents, matching the rounding slack payout exports show between the
# per-booking lines and the aggregate payout.
ATTRIBUTION_EPSILON_MINOR = 5


@dataclass(frozen=True, slots=True)
class Attribution:
    attributed: list[ParsedPayoutItem]
    unattributed: list[ParsedPayoutItem]
    # Minor units of the payout not explained by any record.
    remaining_minor: int


def attribute_greedy(
    payout_minor: int,
    unpaid: Sequence[ParsedPayoutItem],
    *,
    epsilon_minor: int = ATTRIBUTION_EPSILON_MINOR,
) -> Attribution:
    remaining = payout_minor
    attributed: list[ParsedPayoutItem] = []
    still_unpaid: list[ParsedPayoutItem] = []
    for record in unpaid:
        net = record.net.minor
        if remaining > 0 and abs(net - remaining) <= epsilon_minor:
            attributed.append(record)
            remaining = 0
        elif remaining > 0 and net <= remaining + epsilon_minor:
            attributed.append(record)
            remaining -= net
        else:
            still_unpaid.append(record)
    return Attribution(attributed, still_unpaid, remaining)


__all__ = ["ATTRIBUTION_EPSILON_MINOR", "Attribution", "attribute_greedy"]
