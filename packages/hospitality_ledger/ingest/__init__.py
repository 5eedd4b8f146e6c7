"""Statement ingestion: per-format adapters producing normalized rows and payouts."""

from .registry import parse_bank_statement, parse_payout_statement, parse_statement

__all__ = ["parse_bank_statement", "parse_payout_statement", "parse_statement"]
