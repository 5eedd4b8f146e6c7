"""Keyword categorization of bank statement descriptions.

Public API:
    - :func:`categorize`
    - :data:`RULES`

Rules are evaluated top to bottom and the first keyword found (case-insensitive
substring) wins. Order is priority, not specificity: a description containing
both "laundry" and "woolworths" is CLEANING because that rule comes first.

Priority (highest first):

1. CLEANING: cleanpro, cleaning, laundry, cleaner
2. UTILITIES: city power, eskom, electricity, water, municipal, utilities
3. FB: food, groceries, woolworths, pick n pay, checkers, breakfast, restaurant
4. SALARIES: salary, wages, payroll, staff
5. MAINTENANCE: repair, maintenance, plumber, electrician, handyman, fixit
6. SUPPLIES: linen, towels, bedding
7. OTA_COMMISSION: booking.com, airbnb, lekkeslaap, lekkerslaap, commission, ota
8. MARKETING: marketing, advertising, google ads, facebook ads
9. ACCOMMODATION (MEDIUM): accommodation, room, booking

Anything else is OTHER at LOW confidence.
"""

from __future__ import annotations

import re
import unicodedata
from dataclasses import dataclass

from .models import Confidence, TransactionCategory


@dataclass(frozen=True, slots=True)
class CategoryRule:
    category: TransactionCategory
    keywords: tuple[str, ...]
    confidence: Confidence = Confidence.HIGH


@dataclass(frozen=True, slots=True)
class Categorization:
    category: TransactionCategory
    confidence: Confidence
    # "keyword:<kw>" for a rule hit, "default" otherwise.
    rule: str


RULES: tuple[CategoryRule, ...] = (
    CategoryRule(TransactionCategory.CLEANING, ("cleanpro", "cleaning", "laundry", "cleaner")),
    CategoryRule(
        TransactionCategory.UTILITIES,
        ("city power", "eskom", "electricity", "water", "municipal", "utilities"),
    ),
    CategoryRule(
        TransactionCategory.FB,
        (
            "food",
            "groceries",
            "woolworths",
            "pick n pay",
            "checkers",
            "breakfast",
            "restaurant",
        ),
    ),
    CategoryRule(TransactionCategory.SALARIES, ("salary", "wages", "payroll", "staff")),
    CategoryRule(
        TransactionCategory.MAINTENANCE,
        ("repair", "maintenance", "plumber", "electrician", "handyman", "fixit"),
    ),
    CategoryRule(TransactionCategory.SUPPLIES, ("linen", "towels", "bedding")),
    CategoryRule(
        TransactionCategory.OTA_COMMISSION,
        ("booking.com", "airbnb", "lekkeslaap", "lekkerslaap", "commission", "ota"),
    ),
    CategoryRule(
        TransactionCategory.MARKETING,
        ("marketing", "advertising", "google ads", "facebook ads"),
    ),
    CategoryRule(
        TransactionCategory.ACCOMMODATION,
        ("accommodation", "room", "booking"),
        Confidence.MEDIUM,
    ),
)

_DEFAULT = Categorization(TransactionCategory.OTHER, Confidence.LOW, "default")


def _normalize(text: str) -> str:
    s = unicodedata.normalize("NFKC", text)
    return " ".join(s.split()).casefold()


def _contains_keyword(haystack: str, keyword: str) -> bool:
    # Short keywords ("ota") must stand alone, otherwise "rotary" would match.
    if len(keyword) <= 3:
        return re.search(rf"\b{re.escape(keyword)}\b", haystack) is not None
    return keyword in haystack


def categorize(description: str, rules: tuple[CategoryRule, ...] = RULES) -> Categorization:
    """Return the category of the first rule whose keyword appears in ``description``."""

    text = _normalize(description or "")
    if not text:
        return _DEFAULT
    for rule in rules:
        for kw in rule.keywords:
            if _contains_keyword(text, kw):
                return Categorization(rule.category, rule.confidence, f"keyword:{kw}")
    return _DEFAULT


__all__ = ["RULES", "Categorization", "CategoryRule", "categorize"]
