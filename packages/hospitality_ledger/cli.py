# ruff: noqa: I001
"""CLI for the ``hospitality_ledger`` package.

Command handlers (``cmd_*``) hold the flow and return a process exit code;
the Typer commands below are thin wrappers around them. Environment variables
(notably ``DATABASE_URL``) are loaded from a local ``.env`` using
``python-dotenv`` in the root callback. Ledger logic lives in the operation
modules; nothing here writes to the database directly.
"""

from __future__ import annotations

import sys
from collections.abc import Sequence
from dataclasses import replace
from datetime import date
from pathlib import Path

import typer
from dotenv import load_dotenv
from prompt_toolkit import PromptSession
from typer.models import ArgumentInfo, OptionInfo

from .errors import Outcome, ParseError
from .logging_setup import configure_logging
from .models import (
    BookingSource,
    BookingStatus,
    Confidence,
    MatchConfidence,
    OTAPlatform,
    SourceKind,
    TransactionCategory,
)


# ---- Small module-level helpers used by CLI commands -------------------------


def _fail(outcome: Outcome, prefix: str = "Error") -> int:
    print(f"{prefix}: {outcome.message}", file=sys.stderr)
    return 1


def _parse_day(raw: str | None) -> date:
    if not raw:
        return date.today()
    try:
        return date.fromisoformat(raw)
    except ValueError:
        raise typer.BadParameter(f"expected YYYY-MM-DD, got {raw!r}") from None


def _read_and_preview(path: Path, preview_fn, **kwargs) -> tuple[Path, Outcome]:
    try:
        content = path.read_bytes()
    except OSError as e:
        return path, Outcome.fail(ParseError(f"Cannot read {path}: {e.strerror or e}"))
    return path, preview_fn(content=content, **kwargs)


def _preview_files(paths: Sequence[Path], preview_fn, **kwargs) -> list[tuple[Path, Outcome]]:
    """Preview every file, several at a time; results keep the argument order."""

    from .pmap import p_map

    return p_map(paths, lambda p: _read_and_preview(p, preview_fn, **kwargs))


# ---- Command handlers --------------------------------------------------------


def cmd_import_bank(
    paths: Sequence[Path],
    *,
    source_kind: SourceKind,
    property_id: str,
    organisation_id: str,
    database_url: str | None = None,
    assume_yes: bool = False,
    review_low: bool = False,
    session: PromptSession | None = None,
) -> int:
    """Preview bank statements, settle duplicate decisions, then import.

    With ``assume_yes`` every potential duplicate is excluded and everything
    else is imported without prompting. ``review_low`` asks for a category on
    rows the keyword rules could only guess at.
    """

    from .imports import confirm_bank_import, preview_bank_import
    from .term_ui import prompt_duplicate_decision, select_category

    if not source_kind.is_bank:
        print(f"Error: {source_kind} is not a bank statement format", file=sys.stderr)
        return 2

    rc = 0
    previews = _preview_files(
        paths,
        preview_bank_import,
        property_id=property_id,
        source_kind=source_kind,
        organisation_id=organisation_id,
        database_url=database_url,
    )
    for path, outcome in previews:
        if not outcome.success:
            rc = _fail(outcome, f"Error: {path.name}")
            continue
        preview = outcome.value
        print(
            f"{path.name}: {preview.parsed_count} rows, "
            f"{preview.duplicate_count} potential duplicates, "
            f"{preview.unrecognized_count} unrecognized, {preview.skipped_count} skipped"
        )
        for err in preview.errors:
            print(f"  ! {err}", file=sys.stderr)

        decisions: dict[int, bool] = {}
        rows = list(preview.rows)
        cancelled = False
        for pos, row in enumerate(rows):
            label = f"{row.date} {row.description} {row.amount.format()} ({row.direction})"
            if row.is_potential_duplicate:
                if assume_yes:
                    decisions[row.index] = False
                    continue
                choice = prompt_duplicate_decision(label, session=session)
                if choice is None:
                    cancelled = True
                    break
                decisions[row.index] = choice
                if not choice:
                    continue
            if review_low and not assume_yes and row.confidence is Confidence.LOW:
                picked = select_category(
                    [c.value for c in TransactionCategory],
                    default=row.category.value,
                    message=f"{label}\n  Category: ",
                    session=session,
                )
                if picked is None:
                    cancelled = True
                    break
                rows[pos] = replace(row, category=TransactionCategory(picked))
        if cancelled:
            print(f"{path.name}: import cancelled, nothing written")
            rc = 1
            continue

        result = confirm_bank_import(
            property_id,
            source_kind,
            replace(preview, rows=rows),
            decisions,
            organisation_id=organisation_id,
            database_url=database_url,
        )
        if not result.success:
            rc = _fail(result, f"Error: {path.name}")
            continue
        print(f"{path.name}: {result.message}")
    return rc


def cmd_import_ota(
    paths: Sequence[Path],
    *,
    source_kind: SourceKind,
    property_id: str,
    organisation_id: str,
    database_url: str | None = None,
    assume_yes: bool = False,
    session: PromptSession | None = None,
) -> int:
    """Preview OTA payout exports, settle duplicate decisions, then store the payouts."""

    from .imports import confirm_ota_import, preview_ota_import
    from .term_ui import prompt_duplicate_decision

    if source_kind.is_bank:
        print(f"Error: {source_kind} is not an OTA payout format", file=sys.stderr)
        return 2

    rc = 0
    previews = _preview_files(
        paths,
        preview_ota_import,
        property_id=property_id,
        source_kind=source_kind,
        organisation_id=organisation_id,
        database_url=database_url,
    )
    for path, outcome in previews:
        if not outcome.success:
            rc = _fail(outcome, f"Error: {path.name}")
            continue
        preview = outcome.value
        print(
            f"{path.name}: {preview.parsed_count} payouts, "
            f"{preview.duplicate_count} potential duplicates, "
            f"{len(preview.pending)} reservations pending settlement"
        )
        if preview.pending_balance is not None:
            print(f"  pending balance: {preview.pending_balance.format()}")
        for err in preview.errors:
            print(f"  ! {err}", file=sys.stderr)

        decisions: dict[int, bool] = {}
        cancelled = False
        for row in preview.rows:
            if not row.is_potential_duplicate:
                continue
            if assume_yes:
                decisions[row.index] = False
                continue
            p = row.payout
            label = f"{p.payout_date} {p.external_ref or '-'} {p.net.format()}"
            choice = prompt_duplicate_decision(label, session=session)
            if choice is None:
                cancelled = True
                break
            decisions[row.index] = choice
        if cancelled:
            print(f"{path.name}: import cancelled, nothing written")
            rc = 1
            continue

        result = confirm_ota_import(
            property_id,
            source_kind,
            preview,
            decisions,
            organisation_id=organisation_id,
            database_url=database_url,
            filename=path.name,
        )
        if not result.success:
            rc = _fail(result, f"Error: {path.name}")
            continue
        print(f"{path.name}: {result.message}")
    return rc


def cmd_reconcile(
    *,
    property_id: str,
    platform: OTAPlatform,
    organisation_id: str,
    database_url: str | None = None,
    assume_yes: bool = False,
    session: PromptSession | None = None,
) -> int:
    """Propose payout-to-deposit matches and save the ones the operator accepts."""

    from .reconcile import confirm_reconciliation, preview_reconciliation
    from .term_ui import prompt_confirm_match

    outcome = preview_reconciliation(
        property_id, platform, organisation_id=organisation_id, database_url=database_url
    )
    if not outcome.success:
        return _fail(outcome)
    print(outcome.message)

    selected: list[str] = []
    match_map: dict[str, str] = {}
    offered: set[str] = set()
    for proposal in outcome.value:
        item = proposal.item
        label = f"{item.booking_ref or item.item_id} {item.guest_name or ''} {item.amount.format()}"
        tx = proposal.transaction
        if proposal.confidence is MatchConfidence.NONE or tx is None:
            print(
                f"  {label.strip()}: awaiting posting "
                f"({proposal.window_start} .. {proposal.window_end})"
            )
            continue
        if item.batched:
            # Every item of a batched payout carries the same proposal; ask once.
            if item.payout_id in offered:
                continue
            offered.add(item.payout_id)
            label = f"payout {item.payout_date} of {item.expected_deposit.format()}"
        pair = f"{label.strip()} -> {tx.date} {tx.description} {tx.amount.format()}"
        if proposal.competing:
            pair += f" [{proposal.competing} other candidate(s) left for review]"
        if assume_yes:
            accepted = True
            print(f"  {pair}")
        else:
            accepted = prompt_confirm_match(pair, session=session)
            if accepted is None:
                print("Reconciliation cancelled, nothing written")
                return 1
        if accepted:
            selected.append(item.item_id)
            match_map[item.item_id] = tx.transaction_id

    result = confirm_reconciliation(
        property_id,
        platform,
        selected,
        match_map,
        organisation_id=organisation_id,
        database_url=database_url,
    )
    if not result.success:
        return _fail(result)
    print(result.message)
    return 0


def cmd_booking_create(
    *,
    organisation_id: str,
    property_id: str,
    room_id: str,
    guest_name: str,
    check_in: date,
    check_out: date,
    gross_amount: str,
    source: BookingSource = BookingSource.DIRECT,
    commission_pct: str = "0",
    external_ref: str | None = None,
    guest_email: str | None = None,
    database_url: str | None = None,
) -> int:
    from .booking_finance import create_booking

    outcome = create_booking(
        {
            "organisation_id": organisation_id,
            "property_id": property_id,
            "room_id": room_id,
            "guest_name": guest_name,
            "guest_email": guest_email,
            "check_in": check_in,
            "check_out": check_out,
            "source": source,
            "external_ref": external_ref,
            "gross_amount": gross_amount,
            "commission_pct": commission_pct,
        },
        database_url=database_url,
    )
    if not outcome.success:
        return _fail(outcome)
    print(f"{outcome.message}\t{outcome.value}")
    return 0


def cmd_booking_transition(
    booking_id: str,
    status: BookingStatus,
    *,
    organisation_id: str,
    reason: str | None = None,
    database_url: str | None = None,
    today: date | None = None,
) -> int:
    from .booking_finance import apply_transition

    outcome = apply_transition(
        booking_id,
        status,
        reason,
        organisation_id=organisation_id,
        database_url=database_url,
        today=today,
    )
    if not outcome.success:
        return _fail(outcome)
    print(outcome.message)
    return 0


def cmd_digest(
    *,
    organisation_id: str,
    today: date,
    property_id: str | None = None,
    payout_days: int | None = None,
    database_url: str | None = None,
) -> int:
    """Print the read-only digest: open items, cash, and what is overdue."""

    from .queries import (
        DEFAULT_PAYOUT_OVERDUE_DAYS,
        cash_position,
        overdue_invoices,
        overdue_payouts,
        unmatched_items_count,
    )

    days = DEFAULT_PAYOUT_OVERDUE_DAYS if payout_days is None else payout_days
    rc = 0

    unmatched = unmatched_items_count(organisation_id, property_id, database_url=database_url)
    if unmatched.success:
        print(f"Unmatched payout items: {unmatched.value}")
    else:
        rc = _fail(unmatched)

    if property_id is not None:
        cash = cash_position(
            property_id, organisation_id=organisation_id, database_url=database_url
        )
        if cash.success:
            pos = cash.value
            print(
                f"Cash position: {pos.balance.format()} "
                f"(income {pos.income.format()}, expense {pos.expense.format()})"
            )
        else:
            rc = _fail(cash)

    invoices = overdue_invoices(organisation_id, today, database_url=database_url)
    if invoices.success:
        res = invoices.value
        totals = ", ".join(m.format() for m in res.totals.values()) or "0"
        print(f"Overdue invoices: {res.count} ({totals})")
        for inv in res.rows:
            print(
                f"  {inv.invoice_number}\tdue {inv.due_date}\t{inv.total.format()}"
                f"\t{inv.days_overdue} day(s) late"
            )
    else:
        rc = _fail(invoices)

    payouts = overdue_payouts(organisation_id, today, days, database_url=database_url)
    if payouts.success:
        print(f"Payouts awaiting reconciliation over {days} days: {len(payouts.value)}")
        for p in payouts.value:
            print(f"  {p.platform}\t{p.payout_date}\t{p.net.format()}\t{p.age_days} days")
    else:
        rc = _fail(payouts)
    return rc


# ---- Typer-based console interface -------------------------------------------


# Module-level option objects keep calls out of parameter defaults (ruff B008).
FILES_ARGUMENT: ArgumentInfo = typer.Argument(
    ...,
    help="Statement or payout export files",
    dir_okay=False,
    file_okay=True,
    exists=False,  # unreadable files are reported per file
)
ORGANISATION_OPTION: OptionInfo = typer.Option(
    ..., "--organisation-id", envvar="HL_ORGANISATION_ID", help="Organisation id"
)
PROPERTY_OPTION: OptionInfo = typer.Option(..., "--property-id", help="Property id")
OPTIONAL_PROPERTY_OPTION: OptionInfo = typer.Option(
    None, "--property-id", help="Limit to one property"
)
DATABASE_URL_OPTION: OptionInfo = typer.Option(
    None, "--database-url", help="Override DATABASE_URL (falls back to env var)."
)
YES_OPTION: OptionInfo = typer.Option(
    False,
    "--yes",
    "-y",
    help="Do not prompt: exclude potential duplicates, accept HIGH matches.",
)
SOURCE_OPTION: OptionInfo = typer.Option(
    ..., "--source", case_sensitive=False, help="Statement format"
)
PLATFORM_OPTION: OptionInfo = typer.Option(
    ..., "--platform", case_sensitive=False, help="OTA platform"
)
TODAY_OPTION: OptionInfo = typer.Option(
    None, "--today", help="Business date as YYYY-MM-DD (defaults to today)"
)


app = typer.Typer(
    no_args_is_help=True,
    add_completion=False,
    help=(
        "Hospitality back-office ledger: import bank and OTA statements, reconcile "
        "payouts, and drive booking finances. Loads DATABASE_URL from a local .env."
    ),
)
booking_app = typer.Typer(no_args_is_help=True, help="Create bookings and move them along.")
app.add_typer(booking_app, name="booking")


@app.command("import-bank")
def import_bank_cmd(
    files: list[Path] = FILES_ARGUMENT,
    *,
    source: SourceKind = SOURCE_OPTION,
    property_id: str = PROPERTY_OPTION,
    organisation_id: str = ORGANISATION_OPTION,
    database_url: str | None = DATABASE_URL_OPTION,
    yes: bool = YES_OPTION,
    review_low: bool = typer.Option(
        False, help="Ask for a category on rows categorized with LOW confidence."
    ),
) -> None:
    """Import bank statement CSV files into the ledger."""

    raise typer.Exit(
        cmd_import_bank(
            files,
            source_kind=source,
            property_id=property_id,
            organisation_id=organisation_id,
            database_url=database_url,
            assume_yes=yes,
            review_low=review_low,
        )
    )


@app.command("import-ota")
def import_ota_cmd(
    files: list[Path] = FILES_ARGUMENT,
    *,
    source: SourceKind = SOURCE_OPTION,
    property_id: str = PROPERTY_OPTION,
    organisation_id: str = ORGANISATION_OPTION,
    database_url: str | None = DATABASE_URL_OPTION,
    yes: bool = YES_OPTION,
) -> None:
    """Import OTA payout exports (Booking.com, Airbnb, Lekkerslaap)."""

    raise typer.Exit(
        cmd_import_ota(
            files,
            source_kind=source,
            property_id=property_id,
            organisation_id=organisation_id,
            database_url=database_url,
            assume_yes=yes,
        )
    )


@app.command("reconcile")
def reconcile_cmd(
    *,
    platform: OTAPlatform = PLATFORM_OPTION,
    property_id: str = PROPERTY_OPTION,
    organisation_id: str = ORGANISATION_OPTION,
    database_url: str | None = DATABASE_URL_OPTION,
    yes: bool = YES_OPTION,
) -> None:
    """Match unmatched payout items to bank deposits."""

    raise typer.Exit(
        cmd_reconcile(
            property_id=property_id,
            platform=platform,
            organisation_id=organisation_id,
            database_url=database_url,
            assume_yes=yes,
        )
    )


@booking_app.command("create")
def booking_create_cmd(
    *,
    property_id: str = PROPERTY_OPTION,
    organisation_id: str = ORGANISATION_OPTION,
    room_id: str = typer.Option(..., "--room-id"),
    guest: str = typer.Option(..., "--guest", help="Guest name"),
    check_in: str = typer.Option(..., "--check-in", help="YYYY-MM-DD"),
    check_out: str = typer.Option(..., "--check-out", help="YYYY-MM-DD"),
    gross: str = typer.Option(..., "--gross", help="Gross amount, e.g. 2500.00"),
    source: BookingSource = typer.Option(BookingSource.DIRECT, case_sensitive=False),
    commission_pct: str = typer.Option("0", help="Commission as a fraction, e.g. 0.15"),
    external_ref: str | None = typer.Option(None, help="Channel booking reference"),
    email: str | None = typer.Option(None, help="Guest email"),
    database_url: str | None = DATABASE_URL_OPTION,
) -> None:
    """Create a CONFIRMED booking."""

    raise typer.Exit(
        cmd_booking_create(
            organisation_id=organisation_id,
            property_id=property_id,
            room_id=room_id,
            guest_name=guest,
            check_in=_parse_day(check_in),
            check_out=_parse_day(check_out),
            gross_amount=gross,
            source=source,
            commission_pct=commission_pct,
            external_ref=external_ref,
            guest_email=email,
            database_url=database_url,
        )
    )


@booking_app.command("transition")
def booking_transition_cmd(
    booking_id: str = typer.Argument(..., help="Booking id"),
    status: BookingStatus = typer.Argument(..., case_sensitive=False, help="Target status"),
    *,
    organisation_id: str = ORGANISATION_OPTION,
    reason: str | None = typer.Option(None, help="Required when cancelling"),
    today: str | None = TODAY_OPTION,
    database_url: str | None = DATABASE_URL_OPTION,
) -> None:
    """Move a booking to CONFIRMED, CHECKED_IN, CHECKED_OUT, CANCELLED or NO_SHOW."""

    raise typer.Exit(
        cmd_booking_transition(
            booking_id,
            status,
            organisation_id=organisation_id,
            reason=reason,
            database_url=database_url,
            today=_parse_day(today),
        )
    )


@app.command("digest")
def digest_cmd(
    *,
    organisation_id: str = ORGANISATION_OPTION,
    property_id: str | None = OPTIONAL_PROPERTY_OPTION,
    today: str | None = TODAY_OPTION,
    payout_days: int | None = typer.Option(
        None, help="Age in days after which an unreconciled payout is overdue"
    ),
    database_url: str | None = DATABASE_URL_OPTION,
) -> None:
    """Print unmatched items, cash position and overdue invoices/payouts."""

    raise typer.Exit(
        cmd_digest(
            organisation_id=organisation_id,
            property_id=property_id,
            today=_parse_day(today),
            payout_days=payout_days,
            database_url=database_url,
        )
    )


@app.callback(invoke_without_command=True)
def _root(
    ctx: typer.Context,
    *,
    log_level: str | None = typer.Option(
        None, help="Log level (overrides HOSPITALITY_LEDGER_LOG_LEVEL)."
    ),
) -> None:
    """Root command.

    Loads ``.env`` from the current working directory (without overriding any
    already-set environment variables) and configures package logging.
    """

    load_dotenv(dotenv_path=Path.cwd() / ".env", override=False)
    configure_logging(log_level)

    if ctx.invoked_subcommand is None:
        typer.echo("No subcommand provided. Use --help to see available commands.")
        raise typer.Exit(1)


if __name__ == "__main__":  # pragma: no cover - exercised via console script
    app()
