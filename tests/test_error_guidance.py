"""Tests for error guidance."""

import pytest

from trso.error_guidance import GuidanceProvider
from trso.errors import (
    DirectoryNotFoundError,
    DirectoryReadError,
    DuplicateRecordError,
    ExecutionError,
    InconsistentStateError,
    StorageError,
    TrsoError,
)


@pytest.mark.parametrize(
    ("error", "expected_title"),
    [
        (DirectoryNotFoundError("missing"), "Migrations directory not found"),
        (DirectoryReadError("unreadable"), "Migration files could not be read"),
        (StorageError("no access"), "Migration ledger is not accessible"),
        (DuplicateRecordError("dup", migration="001_a.sql"), "'001_a.sql' is already recorded in the ledger"),
        (ExecutionError("syntax", migration="002_b.sql"), "SQL in '002_b.sql' failed"),
        (
            InconsistentStateError("unrecorded", migration="003_c.sql"),
            "'003_c.sql' was applied but is NOT recorded in the ledger",
        ),
    ],
)
def test_guidance_for_each_error_kind(error: TrsoError, expected_title: str) -> None:
    """Test that every error kind gets matching guidance."""
    guidance = GuidanceProvider.for_error(error, "/srv/app/migrations", "migrations")

    assert guidance is not None
    assert guidance.title == expected_title


def test_inconsistent_state_guidance_uses_ledger_table() -> None:
    """Test that the manual fix points at the configured ledger table."""
    guidance = GuidanceProvider.for_error(
        InconsistentStateError("unrecorded", migration="001_a.sql"), "migrations", "schema_history"
    )

    assert guidance is not None
    assert guidance.examples is not None
    assert "INSERT INTO schema_history" in guidance.examples[0]
    assert "'001_a.sql'" in guidance.examples[0]


def test_no_guidance_for_base_error() -> None:
    """Test that unknown error kinds have no guidance."""
    assert GuidanceProvider.for_error(TrsoError("generic"), "migrations", "migrations") is None
