"""Remote libSQL connection over the Hrana HTTP pipeline protocol."""

import base64
import logging
from collections.abc import Sequence
from typing import Any

import requests

from ..constants import HRANA_PIPELINE_PATH, HTTP_ERROR_CODE, REMOTE_REQUEST_TIMEOUT
from ..errors import ExecutionError
from .base import DatabaseConnection, Row

logger = logging.getLogger(__name__)

_SCHEME_MAP = {
    "libsql://": "https://",
    "wss://": "https://",
    "ws://": "http://",
}


def normalize_url(url: str) -> str:
    """
    Convert a libSQL database URL to the HTTP base URL of its server.

    Examples:
        libsql://db-org.turso.io -> https://db-org.turso.io
        ws://localhost:8080 -> http://localhost:8080

    Args:
        url: Database URL as given by the user

    Returns:
        HTTP(S) base URL without trailing slash
    """
    for prefix, replacement in _SCHEME_MAP.items():
        if url.startswith(prefix):
            url = replacement + url[len(prefix) :]
            break
    return url.rstrip("/")


def encode_value(value: Any) -> dict[str, Any]:
    """Encode a Python value as a Hrana value object."""
    if value is None:
        return {"type": "null"}
    if isinstance(value, bool):
        return {"type": "integer", "value": str(int(value))}
    if isinstance(value, int):
        # Integers travel as strings to keep 64-bit precision
        return {"type": "integer", "value": str(value)}
    if isinstance(value, float):
        return {"type": "float", "value": value}
    if isinstance(value, (bytes, bytearray)):
        return {"type": "blob", "base64": base64.b64encode(bytes(value)).decode("ascii")}
    return {"type": "text", "value": str(value)}


def decode_value(value: dict[str, Any]) -> Any:
    """Decode a Hrana value object into a Python value."""
    value_type = value.get("type")
    if value_type == "integer":
        return int(value["value"])
    if value_type == "float":
        return float(value["value"])
    if value_type == "text":
        return value["value"]
    if value_type == "blob":
        encoded = value["base64"]
        # Servers may omit base64 padding
        return base64.b64decode(encoded + "=" * (-len(encoded) % 4))
    return None


def _statement(sql: str, params: Sequence[Any] = (), want_rows: bool = True) -> dict[str, Any]:
    return {
        "type": "execute",
        "stmt": {
            "sql": sql,
            "args": [encode_value(p) for p in params],
            "want_rows": want_rows,
        },
    }


class RemoteConnection(DatabaseConnection):
    """
    Connection to a libSQL server (e.g. Turso) over HTTP.

    Requests are sent to the server's ``/v2/pipeline`` endpoint. The server
    returns a baton with every response; sending it back keeps the same
    server-side stream, which is what lets a transaction span several
    HTTP requests.
    """

    def __init__(
        self,
        url: str,
        token: str,
        timeout: float = REMOTE_REQUEST_TIMEOUT,
        session: requests.Session | None = None,
    ) -> None:
        """
        Initialize remote connection.

        Args:
            url: Database URL (libsql://, https://, http://, wss:// or ws://)
            token: Authentication token sent as a bearer token
            timeout: HTTP request timeout in seconds
            session: HTTP session to use (default: a new requests.Session)
        """
        self.url = url
        self.base_url = normalize_url(url)
        self.timeout = timeout
        self.session = session or requests.Session()
        if token:
            self.session.headers["Authorization"] = f"Bearer {token}"
        self._baton: str | None = None

    @property
    def description(self) -> str:
        return self.url

    def execute(self, sql: str, params: Sequence[Any] = ()) -> int:
        result = self._execute_one(sql, params, want_rows=False)
        return int(result.get("affected_row_count", 0))

    def query(self, sql: str, params: Sequence[Any] = ()) -> list[Row]:
        result = self._execute_one(sql, params, want_rows=True)
        return [tuple(decode_value(v) for v in row) for row in result.get("rows", [])]

    def execute_script(self, sql: str) -> None:
        # The script must never reach the server outside a transaction
        self._execute_one("BEGIN", want_rows=False)

        (result,) = self._pipeline([{"type": "sequence", "sql": sql}])
        if result.get("type") == "error":
            self._rollback()
            raise self._result_error(result)

        self._execute_one("COMMIT", want_rows=False)

    def close(self) -> None:
        try:
            if self._baton is not None:
                self._pipeline([{"type": "close"}])
        except ExecutionError as e:
            logger.warning(f"Failed to close remote stream: {e}")
        finally:
            self._baton = None
            self.session.close()
            logger.debug(f"Closed remote connection to {self.url}")

    def _rollback(self) -> None:
        try:
            self._execute_one("ROLLBACK", want_rows=False)
        except ExecutionError as e:
            logger.debug(f"Rollback after failed script: {e}")

    def _execute_one(self, sql: str, params: Sequence[Any] = (), want_rows: bool = True) -> dict[str, Any]:
        (result,) = self._pipeline([_statement(sql, params, want_rows)])
        if result.get("type") == "error":
            raise self._result_error(result)
        return result["response"]["result"]

    def _pipeline(self, requests_: list[dict[str, Any]]) -> list[dict[str, Any]]:
        """
        Send a batch of stream requests and return their results.

        Raises:
            ExecutionError: On transport failure, HTTP error status or malformed response
        """
        body = {"baton": self._baton, "requests": requests_}
        endpoint = f"{self.base_url}{HRANA_PIPELINE_PATH}"
        logger.debug(f"POST {endpoint} ({len(requests_)} request(s))")

        try:
            response = self.session.post(endpoint, json=body, timeout=self.timeout)
            response.raise_for_status()
            payload = response.json()
        except requests.RequestException as e:
            self._baton = None
            raise ExecutionError(f"Request to {self.url} failed: {e}", code=HTTP_ERROR_CODE) from e
        except ValueError as e:
            self._baton = None
            raise ExecutionError(f"Invalid response from {self.url}: {e}", code=HTTP_ERROR_CODE) from e

        self._baton = payload.get("baton")
        if payload.get("base_url"):
            self.base_url = normalize_url(payload["base_url"])

        results = payload.get("results")
        if not isinstance(results, list) or len(results) != len(requests_):
            raise ExecutionError(f"Invalid response from {self.url}: unexpected results", code=HTTP_ERROR_CODE)
        return results

    @staticmethod
    def _result_error(result: dict[str, Any]) -> ExecutionError:
        error = result.get("error") or {}
        return ExecutionError(error.get("message", "Unknown error"), code=error.get("code"))
