from __future__ import annotations

import contextlib
from datetime import date
from pathlib import Path

import pytest
from prompt_toolkit import PromptSession
from prompt_toolkit.input import create_pipe_input
from prompt_toolkit.output import DummyOutput
from typer.testing import CliRunner

from hospitality_ledger.cli import app, cmd_import_bank, cmd_reconcile
from hospitality_ledger.models import OTAPlatform, SourceKind

from tests.helpers.db import Catalog, add_bank_row, add_payout, invoices, transactions

FNB_ONE_ROW = """\
Date,Description,Amount,Balance
02 Mar 2026,WOOLWORTHS FOOD,-350.00,9650.00
"""


@contextlib.contextmanager
def pipe_session():
    with create_pipe_input() as pipe:
        sess = PromptSession(input=pipe, output=DummyOutput())
        yield pipe, sess


@pytest.fixture
def statement(tmp_path: Path) -> Path:
    path = tmp_path / "fnb-march.csv"
    path.write_text(FNB_ONE_ROW, encoding="utf-8")
    return path


def _import(db_url: str, catalog: Catalog, paths, **kwargs) -> int:
    return cmd_import_bank(
        paths,
        source_kind=SourceKind.FNB,
        property_id=catalog.property_id,
        organisation_id=catalog.organisation_id,
        database_url=db_url,
        **kwargs,
    )


# ---- Handlers ----------------------------------------------------------------


def test_import_bank_prints_summary_and_imports(
    db_url: str, catalog: Catalog, statement: Path, capsys: pytest.CaptureFixture[str]
):
    assert _import(db_url, catalog, [statement], assume_yes=True) == 0

    out = capsys.readouterr().out
    assert "fnb-march.csv: 1 rows, 0 potential duplicates, 0 unrecognized, 0 skipped" in out
    assert "fnb-march.csv: Imported 1 transactions" in out
    assert len(transactions(db_url)) == 1


def test_import_bank_asks_about_duplicates(db_url: str, catalog: Catalog, statement: Path):
    assert _import(db_url, catalog, [statement], assume_yes=True) == 0

    with pipe_session() as (pipe, sess):
        pipe.send_text("y\r")
        assert _import(db_url, catalog, [statement], session=sess) == 0

    assert len(transactions(db_url)) == 2


def test_assume_yes_excludes_duplicates(db_url: str, catalog: Catalog, statement: Path):
    assert _import(db_url, catalog, [statement], assume_yes=True) == 0
    assert _import(db_url, catalog, [statement], assume_yes=True) == 0
    assert len(transactions(db_url)) == 1


def test_cancelled_prompt_writes_nothing(
    db_url: str, catalog: Catalog, statement: Path, capsys: pytest.CaptureFixture[str]
):
    assert _import(db_url, catalog, [statement], assume_yes=True) == 0

    with pipe_session() as (pipe, sess):
        pipe.send_text("\x03")
        assert _import(db_url, catalog, [statement], session=sess) == 1

    assert "import cancelled, nothing written" in capsys.readouterr().out
    assert len(transactions(db_url)) == 1


def test_review_low_lets_the_operator_pick_a_category(
    db_url: str, catalog: Catalog, tmp_path: Path
):
    path = tmp_path / "mystery.csv"
    path.write_text("Date,Description,Amount\n02 Mar 2026,XYZ PTY LTD,-99.00\n", encoding="utf-8")

    with pipe_session() as (pipe, sess):
        pipe.send_text("\x01\x0bMAI\t\r")
        assert _import(db_url, catalog, [path], review_low=True, session=sess) == 0

    (row,) = transactions(db_url)
    assert row.category == "MAINTENANCE"


def test_unreadable_and_wrong_format_files_fail_per_file(
    db_url: str, catalog: Catalog, statement: Path, capsys: pytest.CaptureFixture[str]
):
    missing = statement.parent / "missing.csv"

    assert _import(db_url, catalog, [missing, statement], assume_yes=True) == 1

    captured = capsys.readouterr()
    assert "missing.csv" in captured.err
    assert "Cannot read" in captured.err
    # The readable file is still imported.
    assert len(transactions(db_url)) == 1


def test_bank_import_refuses_ota_sources(db_url: str, catalog: Catalog, statement: Path):
    rc = cmd_import_bank(
        [statement],
        source_kind=SourceKind.AIRBNB,
        property_id=catalog.property_id,
        organisation_id=catalog.organisation_id,
        database_url=db_url,
    )
    assert rc == 2


def test_reconcile_declined_match_saves_nothing(
    db_url: str, catalog: Catalog, capsys: pytest.CaptureFixture[str]
):
    add_payout(
        db_url, catalog, platform="AIRBNB", payout_date=date(2026, 3, 5), items=[("HM1", 500, None)]
    )
    add_payout(
        db_url, catalog, platform="AIRBNB", payout_date=date(2026, 3, 6), items=[("HM2", 900, None)]
    )
    add_bank_row(db_url, catalog, on=date(2026, 3, 6), amount_minor=500, description="AIRBNB")

    with pipe_session() as (pipe, sess):
        pipe.send_text("n\r")
        rc = cmd_reconcile(
            property_id=catalog.property_id,
            platform=OTAPlatform.AIRBNB,
            organisation_id=catalog.organisation_id,
            database_url=db_url,
            session=sess,
        )

    assert rc == 0
    out = capsys.readouterr().out
    assert "1 of 2 payout items matched" in out
    assert "HM2" in out and "awaiting posting (2026-03-03 .. 2026-03-09)" in out
    assert "Nothing to reconcile" in out
    assert transactions(db_url)[0].status == "CLEARED"


# ---- Typer app ---------------------------------------------------------------


@pytest.fixture
def runner(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> CliRunner:
    # Keep a developer's .env out of the run.
    monkeypatch.chdir(tmp_path)
    return CliRunner()


def test_booking_commands_round_trip(runner: CliRunner, db_url: str, catalog: Catalog):
    env = {"DATABASE_URL": db_url, "HL_ORGANISATION_ID": catalog.organisation_id}
    created = runner.invoke(
        app,
        [
            "booking",
            "create",
            "--property-id",
            catalog.property_id,
            "--room-id",
            catalog.room_id,
            "--guest",
            "Jane Doe",
            "--check-in",
            "2026-03-10",
            "--check-out",
            "2026-03-12",
            "--gross",
            "1150.00",
            "--source",
            "airbnb",
            "--commission-pct",
            "0.03",
        ],
        env=env,
    )
    assert created.exit_code == 0, created.output
    booking_id = created.stdout.strip().split("\t")[-1]

    confirmed = runner.invoke(app, ["booking", "transition", booking_id, "CONFIRMED"], env=env)
    assert confirmed.exit_code == 0, confirmed.output
    assert "Invoice INV-00001 created as DRAFT" in confirmed.stdout

    no_reason = runner.invoke(app, ["booking", "transition", booking_id, "cancelled"], env=env)
    assert no_reason.exit_code == 1

    cancelled = runner.invoke(
        app,
        ["booking", "transition", booking_id, "CANCELLED", "--reason", "Flight cancelled"],
        env=env,
    )
    assert cancelled.exit_code == 0, cancelled.output
    assert [i.status for i in invoices(db_url)] == ["CANCELLED"]


def test_bad_date_is_a_usage_error(runner: CliRunner, db_url: str, catalog: Catalog):
    result = runner.invoke(
        app,
        ["digest", "--organisation-id", catalog.organisation_id, "--today", "31/03/2026"],
        env={"DATABASE_URL": db_url},
    )
    assert result.exit_code == 2


def test_missing_database_url_is_reported(runner: CliRunner, catalog: Catalog):
    result = runner.invoke(app, ["digest", "--organisation-id", catalog.organisation_id])
    assert result.exit_code == 1
