"""Constants used throughout trso."""

from enum import Enum


class MigrationState(str, Enum):
    """Status of a migration file relative to the ledger.

    Attributes:
        APPLIED: Recorded in the ledger with a matching checksum
        PENDING: Present on disk but not yet recorded
        MODIFIED: Recorded, but the file content changed since it was applied
        MISSING: Recorded in the ledger but the file no longer exists
    """

    APPLIED = "applied"
    PENDING = "pending"
    MODIFIED = "modified"
    MISSING = "missing"


# Environment variables
ENV_CONFIG = "TRSO_CONFIG"
ENV_LOCAL = "TRSO_LOCAL"
ENV_PATH_URL = "TRSO_PATH_URL"
ENV_TOKEN = "TRSO_TOKEN"
ENV_MIGRATIONS_PATH = "TRSO_MIGRATIONS_PATH"
ENV_TABLE = "TRSO_TABLE"

# Config file looked up in the working directory when no other is given
DEFAULT_CONFIG_FILENAME = "trso.toml"

# Migration discovery
DEFAULT_MIGRATIONS_DIR = "migrations"
MIGRATION_FILE_EXTENSION = ".sql"
MIGRATION_FILE_ENCODING = "utf-8"

# SQLite in-memory database name
MEMORY_DATABASE = ":memory:"

# Ledger table
DEFAULT_LEDGER_TABLE = "migrations"

# Checksums are truncated SHA256 hex digests
CHECKSUM_LENGTH = 16

# Remote (Hrana over HTTP) protocol
HRANA_PIPELINE_PATH = "/v2/pipeline"
REMOTE_REQUEST_TIMEOUT = 30.0  # seconds
HTTP_ERROR_CODE = "HTTP_ERROR"

# Exit codes
EXIT_FAILURE = 1
EXIT_INCONSISTENT_STATE = 3

# Logging configuration
LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
