"""Metadata transport over the engine's HTTP gateway (shim)."""

from __future__ import annotations

import csv
import io
import logging
import threading
from typing import Any, Dict, List, Optional

import requests

from ..errors import BackendError
from ..md.decoder import MetadataRecord
from ..types import TransportType
from .base import RECORD_COLUMNS, MetadataTransport, register_transport

logger = logging.getLogger(__name__)


def parse_csv_records(text: str) -> List[MetadataRecord]:
    """
    Parse the CSV output of a metadata query.

    Values are quoted with single quotes; the first line is a header. Rows
    with fewer than six values are skipped.
    """
    reader = csv.reader(io.StringIO(text), quotechar="'", escapechar="\\")
    next(reader, None)

    records: List[MetadataRecord] = []
    for row in reader:
        if not row:
            continue
        if len(row) < len(RECORD_COLUMNS):
            logger.warning("Cannot parse CSV output row %r, it will be ignored", row)
            continue
        records.append(MetadataRecord(**dict(zip(RECORD_COLUMNS, row))))
    return records


@register_transport(TransportType.SHIM)
class ShimTransport(MetadataTransport):
    """
    Client for the engine's session-based HTTP query API.

    Each query runs login (once, token cached) → new_session → execute_query →
    read_lines → release_session. The session is released even when the
    query fails.
    """

    ENDPOINT_LOGIN = "/login"
    ENDPOINT_NEW_SESSION = "/new_session"
    ENDPOINT_RELEASE_SESSION = "/release_session"
    ENDPOINT_EXECUTE_QUERY = "/execute_query"
    ENDPOINT_READ_LINES = "/read_lines"

    def __init__(
        self,
        base_url: str,
        *,
        user: Optional[str] = None,
        password: Optional[str] = None,
        session: Optional[requests.Session] = None,
        connect_timeout: float = 5.0,
        read_timeout: float = 10.0,
        verify: bool = True,
        **config: Any,
    ) -> None:
        super().__init__(base_url=base_url, **config)
        self.base_url = base_url.rstrip("/?")
        self.user = user
        self.password = password
        self.session = session or requests.Session()
        self.session.verify = verify
        self.timeout = (connect_timeout, read_timeout)
        self._token: Optional[str] = None
        self._token_lock = threading.Lock()

    @property
    def auth(self) -> bool:
        return self.user is not None and self.password is not None

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------
    def query_records(self, query: str) -> List[MetadataRecord]:
        return parse_csv_records(self.query_csv(query))

    def query_csv(self, query: str) -> str:
        """Run a read query and return its CSV output."""
        try:
            token = self.login()
            session_id = self._get(self.ENDPOINT_NEW_SESSION, self._with_auth(token)).strip()
        except BackendError:
            self._forget_token()
            raise

        try:
            self._get(
                self.ENDPOINT_EXECUTE_QUERY,
                self._with_auth(token, id=session_id, query=query, release="0", save="csv", stream="1"),
            )
            return self._get(self.ENDPOINT_READ_LINES, self._with_auth(token, id=session_id, n="0"))
        except BackendError:
            self._forget_token()
            raise
        finally:
            self._release(session_id, token)

    def login(self) -> Optional[str]:
        """Return the cached auth token, logging in first if needed."""
        if not self.auth:
            return None
        with self._token_lock:
            if self._token is None:
                self._token = self._get(
                    self.ENDPOINT_LOGIN,
                    {"username": self.user, "password": self.password},
                ).strip()
            return self._token

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------
    def _forget_token(self) -> None:
        with self._token_lock:
            self._token = None

    def _with_auth(self, token: Optional[str], **params: str) -> Dict[str, str]:
        if token is not None:
            params["auth"] = token
        return params

    def _release(self, session_id: str, token: Optional[str]) -> None:
        try:
            self._get(self.ENDPOINT_RELEASE_SESSION, self._with_auth(token, id=session_id))
        except BackendError as exc:
            logger.warning("Shim release_session failed for session %s: %s", session_id, exc)

    def _get(self, endpoint: str, params: Dict[str, Any]) -> str:
        url = self.base_url + endpoint
        logger.debug("Performing HTTP GET: %s", url)
        try:
            response = self.session.get(url, params=params, timeout=self.timeout)
            response.raise_for_status()
        except requests.RequestException as exc:
            logger.error("Error during HTTP GET request to shim %s: %s", endpoint, exc)
            raise BackendError(f"Shim request {endpoint} failed: {exc}", exc) from exc
        return response.text
