"""Stable fingerprints for statement rows and payouts.

A fingerprint is the SHA-256 of a canonical JSON payload. Bank rows hash
date, amount, direction and normalized description together with the source
format and an occurrence ordinal: the n-th identical line inside one file gets
ordinal n, so two genuine same-day purchases stay distinct while re-importing
the file reproduces the same set of fingerprints.
"""

from __future__ import annotations

import hashlib
import json
import unicodedata
from datetime import date


def normalize_description(text: str) -> str:
    s = unicodedata.normalize("NFKC", text)
    return " ".join(s.split()).casefold()


def _sha256(payload: dict[str, object]) -> str:
    data = json.dumps(payload, sort_keys=True, separators=(",", ":"), ensure_ascii=False)
    return hashlib.sha256(data.encode("utf-8")).hexdigest()


def compute_fingerprint(
    *,
    source_kind: str,
    txn_date: date,
    amount_minor: int,
    direction: str,
    description: str,
    provider_ref: str | None = None,
    occurrence: int = 0,
) -> str:
    """Fingerprint one statement row; a provider-unique reference wins when given."""

    if provider_ref:
        return _sha256({"source": source_kind, "ref": provider_ref})
    return _sha256(
        {
            "source": source_kind,
            "date": txn_date.isoformat(),
            "amount": amount_minor,
            "direction": direction,
            "description": normalize_description(description),
            "n": occurrence,
        }
    )


def payout_fingerprint(
    *, platform: str, payout_date: date, net_minor: int, external_ref: str | None = None
) -> str:
    if external_ref:
        return _sha256({"platform": platform, "ref": external_ref})
    return _sha256({"platform": platform, "date": payout_date.isoformat(), "amount": net_minor})


class Fingerprinter:
    """Per-file fingerprint factory that tracks occurrence ordinals."""

    __slots__ = ("_seen", "source_kind")

    def __init__(self, source_kind: str) -> None:
        self.source_kind = source_kind
        self._seen: dict[tuple[str, int, str, str], int] = {}

    def __call__(
        self,
        txn_date: date,
        amount_minor: int,
        direction: str,
        description: str,
        provider_ref: str | None = None,
    ) -> str:
        key = (txn_date.isoformat(), amount_minor, direction, normalize_description(description))
        occurrence = self._seen.get(key, 0)
        self._seen[key] = occurrence + 1
        return compute_fingerprint(
            source_kind=self.source_kind,
            txn_date=txn_date,
            amount_minor=amount_minor,
            direction=direction,
            description=description,
            provider_ref=provider_ref,
            occurrence=occurrence,
        )


__all__ = [
    "Fingerprinter",
    "compute_fingerprint",
    "normalize_description",
    "payout_fingerprint",
]
