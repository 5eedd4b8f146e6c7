"""Pytest configuration for test isolation.

Core operations fall back to ``DATABASE_URL`` and cache one engine per URL.
A developer's shell or ``.env`` must never point tests at a real database,
and engines from one test must not leak into the next, so every test starts
with the variable cleared and ends with the engine cache disposed.
"""

from __future__ import annotations

from collections.abc import Iterator
from pathlib import Path

import pytest
from db.client import dispose_engines

from tests.helpers.db import Catalog, bootstrap_sqlite_db, seed_catalog


@pytest.fixture(autouse=True)
def _isolate_database(monkeypatch: pytest.MonkeyPatch) -> Iterator[None]:
    monkeypatch.delenv("DATABASE_URL", raising=False)
    monkeypatch.delenv("HL_ORGANISATION_ID", raising=False)
    monkeypatch.setenv("HL_PERSIST_RETRIES", "1")
    yield
    dispose_engines()


@pytest.fixture
def db_url(tmp_path: Path) -> str:
    return bootstrap_sqlite_db(tmp_path / "ledger.db")


@pytest.fixture
def catalog(db_url: str) -> Catalog:
    return seed_catalog(database_url=db_url)
