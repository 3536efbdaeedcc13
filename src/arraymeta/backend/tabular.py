"""Metadata transport over a direct tabular query channel (PEP 249 connection)."""

from __future__ import annotations

import logging
import threading
from typing import Any, Callable, List, Optional, Sequence

from ..errors import BackendError
from ..md.decoder import MetadataRecord
from ..types import TransportType
from .base import RECORD_COLUMNS, MetadataTransport, register_transport

logger = logging.getLogger(__name__)


@register_transport(TransportType.TABULAR)
class TabularTransport(MetadataTransport):
    """
    Runs metadata queries through a DB-API connection.

    `connect` is a zero-argument factory returning a connection; it owns the
    driver's connect/read timeouts. The connection is reused and recreated
    after a failure.
    """

    def __init__(self, connect: Callable[[], Any], **config: object) -> None:
        super().__init__(**config)
        self._connect = connect
        self._conn: Optional[Any] = None
        self._lock = threading.Lock()

    def _connection(self) -> Any:
        if self._conn is None:
            logger.debug("Opening tabular backend connection")
            self._conn = self._connect()
        return self._conn

    def query_records(self, query: str) -> List[MetadataRecord]:
        with self._lock:
            try:
                cursor = self._connection().cursor()
                try:
                    cursor.execute(query)
                    columns = [str(desc[0]).lower() for desc in cursor.description or ()]
                    rows = cursor.fetchall()
                finally:
                    cursor.close()
            except Exception as exc:  # driver-specific error types
                logger.error("Error while executing metadata query '%s': %s", query, exc)
                self._conn = None
                raise BackendError(f"Metadata query failed: {exc}", exc) from exc
        return self._to_records(columns, rows)

    @staticmethod
    def _to_records(columns: Sequence[str], rows: Sequence[Sequence[Any]]) -> List[MetadataRecord]:
        missing = [column for column in RECORD_COLUMNS if column not in columns]
        if missing:
            raise BackendError(f"Metadata result lacks columns: {', '.join(missing)}")

        records: List[MetadataRecord] = []
        for row in rows:
            values = dict(zip(columns, row))
            records.append(
                MetadataRecord(**{
                    column: "" if values[column] is None else str(values[column])
                    for column in RECORD_COLUMNS
                })
            )
        return records
