"""Database connections for trso."""

from pathlib import Path

from ..config import Config
from ..constants import MEMORY_DATABASE
from ..utils import expand_path
from .base import DatabaseConnection, Row
from .local import LocalConnection
from .remote import RemoteConnection


def open_connection(config: Config) -> DatabaseConnection:
    """
    Open the connection selected by the configuration.

    Args:
        config: Resolved configuration

    Returns:
        LocalConnection when ``config.local`` is set, RemoteConnection otherwise

    Raises:
        StorageError: If a local database file cannot be opened
    """
    if config.local:
        if config.url_or_path == MEMORY_DATABASE:
            return LocalConnection(Path(MEMORY_DATABASE))
        return LocalConnection(expand_path(config.url_or_path))
    return RemoteConnection(config.url_or_path, config.token, timeout=config.timeout)


__all__ = [
    "DatabaseConnection",
    "LocalConnection",
    "RemoteConnection",
    "Row",
    "open_connection",
]
