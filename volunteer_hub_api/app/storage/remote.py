"""
Remote backend speaking PostgREST.

Each table is reached at ``{url}/rest/v1/{table}`` with the project key
sent both as ``apikey`` and as a bearer token.  Filters are expressed
as ``column=eq.value`` query parameters and every write asks for the
stored representation back, so callers always see what the database
actually holds.

PostgREST and PostgreSQL error codes are translated into the data
layer's taxonomy; the decoded error body is kept on ``error.native``.
Transport failures and 5xx answers are reported as
``BackendUnavailableError``.  Requests are not retried.
"""

import logging
from typing import Any, Dict, List, Optional, Tuple

import requests

from ..core.errors import (
    BackendUnavailableError,
    ConflictError,
    DataAccessError,
    NotFoundError,
    ReferentialError,
    ValidationError,
)
from .base import Record, StorageBackend

logger = logging.getLogger(__name__)

# PostgreSQL / PostgREST error code -> error class
ERROR_CODES = {
    "23505": ConflictError,  # unique_violation
    "23503": ReferentialError,  # foreign_key_violation
    "PGRST116": NotFoundError,  # no (or more than one) row for a single-object request
    "23514": ValidationError,  # check_violation
    "22P02": ValidationError,  # invalid_text_representation
    "23502": ValidationError,  # not_null_violation
}


def _eq(value: Any) -> str:
    if isinstance(value, bool):
        return f"eq.{str(value).lower()}"
    if value is None:
        return "is.null"
    return f"eq.{value}"


class RemoteBackend(StorageBackend):
    """Table store backed by a hosted PostgREST endpoint.

    Parameters
    ----------
    url : str
        Project URL, e.g. ``https://xyz.supabase.co``.
    key : str
        Anonymous project key.
    timeout : float
        Seconds to wait for each request.
    session : Optional[requests.Session]
        Session to send requests with.  Tests pass a stub here.
    """

    name = "remote"

    def __init__(
        self,
        url: str,
        key: str,
        *,
        timeout: float = 15,
        session: Optional[requests.Session] = None,
    ) -> None:
        self.base_url = f"{url.rstrip('/')}/rest/v1"
        self.timeout = timeout
        self.session = session or requests.Session()
        self.session.headers.update(
            {
                "apikey": key,
                "Authorization": f"Bearer {key}",
                "Content-Type": "application/json",
            }
        )

    # ------------------------------------------------------------------
    # Low level HTTP helpers
    # ------------------------------------------------------------------
    def _request(
        self,
        method: str,
        table: str,
        *,
        params: Optional[Dict[str, str]] = None,
        json_body: Any = None,
        prefer: Optional[str] = None,
    ) -> Any:
        """Send one request and return the decoded JSON body.

        Raises
        ------
        DataAccessError
            The translated failure.  The original ``requests`` exception
            is chained.
        """
        url = f"{self.base_url}/{table}"
        headers: Dict[str, str] = {}
        if prefer:
            headers["Prefer"] = prefer
        try:
            logger.debug("Sending %s request to %s", method, url)
            response = self.session.request(
                method=method,
                url=url,
                params=params,
                json=json_body,
                headers=headers,
                timeout=self.timeout,
            )
            response.raise_for_status()
        except requests.HTTPError as exc:
            raise self._translate(method, table, exc) from exc
        except requests.RequestException as exc:
            logger.error("Remote request failed (%s %s): %s", method, table, exc)
            raise BackendUnavailableError(f"Remote backend unreachable: {exc}", native=str(exc)) from exc
        if not response.content:
            return None
        try:
            return response.json()
        except ValueError as exc:
            raise BackendUnavailableError("Remote backend returned invalid JSON", native=response.text) from exc

    def _translate(self, method: str, table: str, exc: requests.HTTPError) -> DataAccessError:
        response = exc.response
        status, body = self._error_body(response)
        code = body.get("code") if isinstance(body, dict) else None
        message = ""
        if isinstance(body, dict):
            message = body.get("message") or body.get("details") or ""
        if not message:
            message = str(exc)
        logger.error("Remote request failed (%s %s, %s %s): %s", method, table, status, code, message)
        error_class = ERROR_CODES.get(code)
        if error_class is None:
            if status is not None and status >= 500:
                error_class = BackendUnavailableError
            elif status == 404:
                error_class = NotFoundError
            elif status == 409:
                error_class = ConflictError
            elif status is not None and 400 <= status < 500:
                error_class = ValidationError
            else:
                error_class = BackendUnavailableError
        return error_class(message, native=body)

    @staticmethod
    def _error_body(response: Optional[requests.Response]) -> Tuple[Optional[int], Any]:
        if response is None:
            return None, {}
        try:
            return response.status_code, response.json()
        except ValueError:
            return response.status_code, {"message": response.text}

    @staticmethod
    def _filters(filters: Optional[Dict[str, Any]]) -> Dict[str, str]:
        return {column: _eq(value) for column, value in (filters or {}).items()}

    # ------------------------------------------------------------------
    # StorageBackend
    # ------------------------------------------------------------------
    async def list(self, table: str, filters: Optional[Dict[str, Any]] = None) -> List[Record]:
        params = {"select": "*"}
        params.update(self._filters(filters))
        return self._request("GET", table, params=params) or []

    async def get(self, table: str, record_id: str) -> Record:
        rows = self._request("GET", table, params={"select": "*", "id": _eq(record_id)}) or []
        if not rows:
            raise NotFoundError(f"{table} {record_id} not found")
        return rows[0]

    async def insert(self, table: str, record: Record) -> Record:
        rows = self._request("POST", table, json_body=record, prefer="return=representation")
        logger.info("Inserted %s %s", table, record.get("id"))
        return rows[0] if rows else record

    async def insert_many(self, table: str, records: List[Record]) -> List[Record]:
        if not records:
            return []
        # PostgREST inserts a JSON array in a single statement.
        rows = self._request("POST", table, json_body=records, prefer="return=representation")
        logger.info("Inserted %d %s", len(records), table)
        return rows or records

    async def upsert(self, table: str, records: List[Record]) -> List[Record]:
        if not records:
            return []
        rows = self._request(
            "POST",
            table,
            json_body=records,
            prefer="resolution=merge-duplicates,return=representation",
        )
        logger.info("Upserted %d %s", len(records), table)
        return rows or records

    async def update(
        self,
        table: str,
        record_id: str,
        patch: Record,
        expected_version: Optional[int] = None,
    ) -> Record:
        params = {"id": _eq(record_id)}
        if expected_version is not None:
            params["version"] = _eq(expected_version)
        rows = self._request("PATCH", table, params=params, json_body=patch, prefer="return=representation")
        if rows:
            logger.info("Updated %s %s", table, record_id)
            return rows[0]
        if expected_version is not None:
            # Nothing matched: either the row is gone or its version moved.
            await self.get(table, record_id)
            raise ConflictError(f"{table} {record_id} changed since version {expected_version}")
        raise NotFoundError(f"{table} {record_id} not found")

    async def delete(self, table: str, record_id: str) -> None:
        rows = self._request("DELETE", table, params={"id": _eq(record_id)}, prefer="return=representation")
        if not rows:
            raise NotFoundError(f"{table} {record_id} not found")
        logger.info("Deleted %s %s", table, record_id)
