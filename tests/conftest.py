"""Shared fixtures for trso tests."""

from collections.abc import Callable
from pathlib import Path

import pytest

from trso.config import ENV_OVERRIDES
from trso.constants import ENV_CONFIG


@pytest.fixture(autouse=True)
def isolated_env(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    """Run every test in its own working directory without TRSO_* variables."""
    for var in [ENV_CONFIG, *ENV_OVERRIDES]:
        monkeypatch.delenv(var, raising=False)
    monkeypatch.chdir(tmp_path)


@pytest.fixture
def migrations_dir(tmp_path: Path) -> Path:
    path = tmp_path / "migrations"
    path.mkdir()
    return path


@pytest.fixture
def write_migration(migrations_dir: Path) -> Callable[[str, str], Path]:
    """Return a helper that writes a migration file into the migrations directory."""

    def _write(name: str, sql: str) -> Path:
        path = migrations_dir / name
        path.write_text(sql, encoding="utf-8")
        return path

    return _write


@pytest.fixture
def db_path(tmp_path: Path) -> Path:
    return tmp_path / "app.db"
