"""Per-channel settings: commission applicability, bank keywords, settlement delay.

Every lookup is an exhaustive ``match`` ending in ``assert_never`` so that a
new ``BookingSource`` or ``OTAPlatform`` member fails type checking until each
switch site handles it.
"""

from __future__ import annotations

from typing import assert_never

from .models import BookingSource, OTAPlatform


def is_commissioned(source: BookingSource) -> bool:
    """Whether bookings from ``source`` owe a channel commission."""

    match source:
        case BookingSource.DIRECT | BookingSource.WALKIN:
            return False
        case (
            BookingSource.BOOKING_COM
            | BookingSource.AIRBNB
            | BookingSource.EXPEDIA
            | BookingSource.LEKKERSLAAP
            | BookingSource.OTHER
        ):
            return True
        case _:
            assert_never(source)


def source_label(source: BookingSource) -> str:
    match source:
        case BookingSource.DIRECT:
            return "Direct"
        case BookingSource.WALKIN:
            return "Walk-in"
        case BookingSource.BOOKING_COM:
            return "Booking.com"
        case BookingSource.AIRBNB:
            return "Airbnb"
        case BookingSource.EXPEDIA:
            return "Expedia"
        case BookingSource.LEKKERSLAAP:
            return "LekkeSlaap"
        case BookingSource.OTHER:
            return "OTA"
        case _:
            assert_never(source)


def bank_keywords(platform: OTAPlatform) -> tuple[str, ...]:
    """Upper-case substrings expected in the depositing bank line."""

    match platform:
        case OTAPlatform.BOOKING_COM:
            return ("BOOKING.COM",)
        case OTAPlatform.AIRBNB:
            return ("AIRBNB",)
        case OTAPlatform.LEKKERSLAAP:
            # Bank references truncate the brand; both spellings appear.
            return ("LEKKESLAAP", "LEKKERSLAAP")
        case OTAPlatform.EXPEDIA:
            return ("EXPEDIA",)
        case OTAPlatform.OTHER:
            return ()
        case _:
            assert_never(platform)


def settlement_delay_days(platform: OTAPlatform) -> int:
    """Days either side of the payout date within which the deposit may post."""

    match platform:
        case OTAPlatform.BOOKING_COM:
            return 5
        case OTAPlatform.AIRBNB:
            return 3
        case OTAPlatform.LEKKERSLAAP:
            return 4
        case OTAPlatform.EXPEDIA:
            return 7
        case OTAPlatform.OTHER:
            return 5
        case _:
            assert_never(platform)


__all__ = [
    "bank_keywords",
    "is_commissioned",
    "settlement_delay_days",
    "source_label",
]
