"""Base class for database connections."""

from abc import ABC, abstractmethod
from collections.abc import Sequence
from types import TracebackType
from typing import Any

Row = tuple[Any, ...]


class DatabaseConnection(ABC):
    """
    A single open connection to a SQLite-compatible database.

    Migrations are applied through this interface only, so local files and
    remote servers are handled the same way by the engine. Every operation
    raises ExecutionError when the database rejects the statement or cannot
    be reached.
    """

    @property
    @abstractmethod
    def description(self) -> str:
        """Human-readable target of this connection (never includes credentials)."""
        pass

    @abstractmethod
    def execute(self, sql: str, params: Sequence[Any] = ()) -> int:
        """
        Execute a single statement.

        Args:
            sql: SQL statement with ``?`` placeholders
            params: Positional parameters

        Returns:
            Number of rows affected
        """
        pass

    @abstractmethod
    def query(self, sql: str, params: Sequence[Any] = ()) -> list[Row]:
        """
        Execute a single statement and return its rows.

        Args:
            sql: SQL statement with ``?`` placeholders
            params: Positional parameters

        Returns:
            Result rows as tuples
        """
        pass

    @abstractmethod
    def execute_script(self, sql: str) -> None:
        """
        Execute one or more statements as a single atomic unit.

        The statements run inside one transaction. If any of them fails the
        transaction is rolled back before the error is raised.

        Args:
            sql: SQL text containing one or more statements
        """
        pass

    @abstractmethod
    def close(self) -> None:
        """Release the connection."""
        pass

    def __enter__(self) -> "DatabaseConnection":
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.close()
