"""Preview-then-confirm import of bank statements and OTA payout exports.

``preview_*`` parses and categorizes the file and flags potential duplicates
without writing anything. ``confirm_*`` takes that preview plus the
operator's include/exclude decisions and writes the chosen rows in one
transaction, re-checking fingerprints first so a file imported by someone
else since the preview is not slipped in unflagged.
"""

from __future__ import annotations

from collections.abc import Mapping
from datetime import date

from db.models.finance import HlOtaPayout, HlOtaPayoutItem
from sqlalchemy.orm import Session

from .categorize import categorize
from .duplicates import (
    existing_payout_fingerprints,
    existing_row_fingerprints,
    flag_duplicates,
    lookback_window,
    resolve_decisions,
)
from .errors import Outcome, ParseError, ValidationError
from .ingest import parse_bank_statement, parse_payout_statement
from .ledger import add_transaction, get_property, outcome_boundary, run_in_transaction
from .logging_setup import get_logger
from .models import (
    ImportPreview,
    OTAPayoutStatus,
    ParsedPayout,
    PayoutImportPreview,
    PayoutPreviewRow,
    PreviewRow,
    SourceKind,
    TransactionSource,
    TransactionStatus,
)

_logger = get_logger("hospitality_ledger.imports")


def _require_bank(source_kind: SourceKind) -> None:
    if not source_kind.is_bank:
        raise ValidationError(f"{source_kind} is not a bank statement format")


def _require_ota(source_kind: SourceKind) -> None:
    if source_kind.is_bank:
        raise ValidationError(f"{source_kind} is not an OTA payout format")


def _rejected(source_kind: SourceKind, errors: list[str]) -> ParseError:
    detail = "; ".join(errors[:3])
    return ParseError(f"{source_kind} file rejected: {detail}")


# ---- Bank statements ---------------------------------------------------------


@outcome_boundary("preview_bank_import")
def preview_bank_import(
    property_id: str,
    source_kind: SourceKind,
    content: bytes | str,
    *,
    organisation_id: str,
    database_url: str | None = None,
) -> Outcome[ImportPreview]:
    _require_bank(source_kind)

    def load(session: Session) -> ImportPreview:
        prop = get_property(session, property_id, organisation_id=organisation_id)
        parsed = parse_bank_statement(content, source_kind, currency=prop.currency)
        if not parsed.rows and parsed.errors:
            raise _rejected(source_kind, parsed.errors)

        window = lookback_window(r.date for r in parsed.rows)
        existing = (
            existing_row_fingerprints(
                session, property_id=prop.id, source_kind=source_kind, window=window
            )
            if window is not None
            else set()
        )
        flags = flag_duplicates([r.fingerprint for r in parsed.rows], existing)
        rows = []
        for index, (raw, dup) in enumerate(zip(parsed.rows, flags, strict=True)):
            cat = categorize(raw.description)
            rows.append(
                PreviewRow(
                    index=index,
                    date=raw.date,
                    description=raw.description,
                    amount=raw.amount,
                    direction=raw.direction,
                    category=cat.category,
                    confidence=cat.confidence,
                    fingerprint=raw.fingerprint,
                    is_potential_duplicate=dup,
                )
            )
        return ImportPreview(
            source_kind=source_kind,
            parsed_count=len(rows),
            duplicate_count=sum(flags),
            unrecognized_count=len(parsed.errors),
            skipped_count=parsed.skipped,
            rows=rows,
            errors=list(parsed.errors),
        )

    preview = run_in_transaction(load, operation="preview_bank_import", database_url=database_url)
    _logger.info(
        "preview_bank_import:done property_id=%s source=%s parsed=%d duplicates=%d unrecognized=%d",
        property_id,
        source_kind,
        preview.parsed_count,
        preview.duplicate_count,
        preview.unrecognized_count,
    )
    return Outcome.ok(
        f"{preview.parsed_count} rows parsed, {preview.duplicate_count} potential duplicates",
        preview,
    )


@outcome_boundary("confirm_bank_import")
def confirm_bank_import(
    property_id: str,
    source_kind: SourceKind,
    preview: ImportPreview,
    decisions: Mapping[int, bool] | None = None,
    *,
    organisation_id: str,
    database_url: str | None = None,
    today: date | None = None,
) -> Outcome[int]:
    """Write the chosen preview rows as CLEARED transactions; the value is the saved count."""

    _require_bank(source_kind)
    if preview.source_kind != source_kind:
        raise ValidationError(
            f"Preview was built for {preview.source_kind}, not {source_kind}"
        )
    chosen = resolve_decisions({r.index: r.is_potential_duplicate for r in preview.rows}, decisions)
    explicit = set(decisions or {})
    reference = f"{source_kind}-IMPORT-{(today or date.today()).isoformat()}"

    def work(session: Session) -> int:
        prop = get_property(session, property_id, organisation_id=organisation_id)
        selected = [r for r in preview.rows if r.index in chosen]
        window = lookback_window(r.date for r in selected)
        if window is None:
            return 0
        existing = existing_row_fingerprints(
            session, property_id=prop.id, source_kind=source_kind, window=window
        )
        late = [r.index for r in selected if r.fingerprint in existing and r.index not in explicit]
        if late:
            raise ValidationError(
                f"{len(late)} row(s) were imported since the preview was built; preview again"
            )
        for r in selected:
            add_transaction(
                session,
                organisation_id=organisation_id,
                property_id=prop.id,
                type=r.direction,
                category=r.category,
                source=TransactionSource.CSV_IMPORT,
                status=TransactionStatus.CLEARED,
                amount=r.amount,
                on=r.date,
                description=r.description,
                reference=reference,
                fingerprint=r.fingerprint,
                source_kind=source_kind.value,
            )
        return len(selected)

    saved = run_in_transaction(work, operation="confirm_bank_import", database_url=database_url)
    _logger.info(
        "confirm_bank_import:done property_id=%s source=%s saved=%d excluded=%d",
        property_id,
        source_kind,
        saved,
        len(preview.rows) - saved,
    )
    return Outcome.ok(f"Imported {saved} transactions", saved)


# ---- OTA payouts -------------------------------------------------------------


@outcome_boundary("preview_ota_import")
def preview_ota_import(
    property_id: str,
    source_kind: SourceKind,
    content: bytes | str,
    *,
    organisation_id: str,
    database_url: str | None = None,
) -> Outcome[PayoutImportPreview]:
    _require_ota(source_kind)
    platform = source_kind.platform

    def load(session: Session) -> PayoutImportPreview:
        prop = get_property(session, property_id, organisation_id=organisation_id)
        parsed = parse_payout_statement(content, source_kind, currency=prop.currency)
        if not parsed.payouts and not parsed.pending and parsed.errors:
            raise _rejected(source_kind, parsed.errors)

        window = lookback_window(p.payout_date for p in parsed.payouts)
        existing = (
            existing_payout_fingerprints(
                session, property_id=prop.id, platform=platform, window=window
            )
            if window is not None
            else set()
        )
        flags = flag_duplicates([p.fingerprint for p in parsed.payouts], existing)
        rows = [
            PayoutPreviewRow(index=i, payout=p, is_potential_duplicate=dup)
            for i, (p, dup) in enumerate(zip(parsed.payouts, flags, strict=True))
        ]
        return PayoutImportPreview(
            platform=platform,
            parsed_count=len(rows),
            duplicate_count=sum(flags),
            unrecognized_count=len(parsed.errors),
            skipped_count=parsed.skipped,
            rows=rows,
            pending=list(parsed.pending),
            pending_balance=parsed.pending_balance,
            errors=list(parsed.errors),
        )

    preview = run_in_transaction(load, operation="preview_ota_import", database_url=database_url)
    _logger.info(
        "preview_ota_import:done property_id=%s platform=%s payouts=%d duplicates=%d pending=%d",
        property_id,
        platform,
        preview.parsed_count,
        preview.duplicate_count,
        len(preview.pending),
    )
    return Outcome.ok(
        f"{preview.parsed_count} payouts parsed, {preview.duplicate_count} potential duplicates",
        preview,
    )


def _payout_items(payout: ParsedPayout) -> list[HlOtaPayoutItem]:
    if not payout.items:
        # Nothing attributed: the whole deposit becomes one matchable item.
        return [
            HlOtaPayoutItem(
                booking_ref=payout.external_ref,
                gross_minor=payout.net.minor,
                commission_minor=0,
                net_minor=payout.net.minor,
                bank_hint=payout.external_ref,
            )
        ]
    return [
        HlOtaPayoutItem(
            booking_ref=item.booking_ref,
            guest_name=item.guest_name,
            check_in=item.check_in,
            check_out=item.check_out,
            gross_minor=item.gross.minor,
            commission_minor=item.commission.minor,
            net_minor=item.net.minor,
            bank_hint=item.bank_hint,
        )
        for item in payout.items
    ]


@outcome_boundary("confirm_ota_import")
def confirm_ota_import(
    property_id: str,
    source_kind: SourceKind,
    preview: PayoutImportPreview,
    decisions: Mapping[int, bool] | None = None,
    *,
    organisation_id: str,
    database_url: str | None = None,
    filename: str | None = None,
) -> Outcome[int]:
    """Store the chosen payouts (status IMPORTED, items unmatched); the value is the saved count."""

    _require_ota(source_kind)
    platform = source_kind.platform
    if preview.platform != platform:
        raise ValidationError(f"Preview was built for {preview.platform}, not {platform}")
    chosen = resolve_decisions({r.index: r.is_potential_duplicate for r in preview.rows}, decisions)
    explicit = set(decisions or {})

    def work(session: Session) -> int:
        prop = get_property(session, property_id, organisation_id=organisation_id)
        selected = [r for r in preview.rows if r.index in chosen]
        window = lookback_window(r.payout.payout_date for r in selected)
        if window is None:
            return 0
        existing = existing_payout_fingerprints(
            session, property_id=prop.id, platform=platform, window=window
        )
        late = [
            r.index
            for r in selected
            if r.payout.fingerprint in existing and r.index not in explicit
        ]
        if late:
            raise ValidationError(
                f"{len(late)} payout(s) were imported since the preview was built; preview again"
            )
        for r in selected:
            p = r.payout
            items = _payout_items(p)
            payout = HlOtaPayout(
                organisation_id=organisation_id,
                property_id=prop.id,
                platform=platform.value,
                external_ref=p.external_ref,
                fingerprint=p.fingerprint,
                payout_date=p.payout_date,
                currency=p.net.currency,
                gross_minor=sum(i.gross_minor for i in items),
                commission_minor=sum(i.commission_minor for i in items),
                net_minor=p.net.minor,
                status=OTAPayoutStatus.IMPORTED.value,
                import_filename=filename,
            )
            session.add(payout)
            session.flush()
            for item in items:
                item.payout_id = payout.id
            session.add_all(items)
        return len(selected)

    saved = run_in_transaction(work, operation="confirm_ota_import", database_url=database_url)
    _logger.info(
        "confirm_ota_import:done property_id=%s platform=%s saved=%d", property_id, platform, saved
    )
    return Outcome.ok(f"Imported {saved} payouts", saved)


__all__ = [
    "confirm_bank_import",
    "confirm_ota_import",
    "preview_bank_import",
    "preview_ota_import",
]
