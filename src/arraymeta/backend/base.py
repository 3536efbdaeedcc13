"""Transport registry and base abstractions for backend metadata retrieval."""

from __future__ import annotations

import logging
import re
from abc import ABC, abstractmethod
from typing import Dict, List, Optional, Sequence, Type

from ..errors import ValidationError
from ..md.decoder import MetadataRecord
from ..types import TransportType

__all__ = [
    "MetadataTransport",
    "build_metadata_query",
    "register_transport",
    "get_transport",
    "RECORD_COLUMNS",
]

logger = logging.getLogger(__name__)

# Column order of eo_all() results
RECORD_COLUMNS = ("name", "dimensions", "attributes", "srs", "trs", "extent")

_ARRAY_NAME = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


def build_metadata_query(names: Optional[Sequence[str]] = None) -> str:
    """
    Build the AFL query returning metadata rows for `names` (or all arrays).

    Raises:
        ValidationError: If a name is not a plain array identifier
    """
    names = list(names or [])
    for name in names:
        if not _ARRAY_NAME.match(name):
            raise ValidationError(f"Invalid array name: {name!r}")
    return f"eo_all({','.join(names)})"


class MetadataTransport(ABC):
    """
    Abstract source of raw metadata records.

    Implementations run blocking calls on the calling thread and must bound
    them with their own timeouts.
    """

    transport_type: TransportType

    def __init__(self, **config: object) -> None:
        self.config = config

    def fetch(self, names: Optional[Sequence[str]] = None) -> List[MetadataRecord]:
        """
        Fetch metadata records for `names`; empty means every array.

        Raises:
            BackendError: If the backend cannot be reached or answers badly
        """
        query = build_metadata_query(names)
        logger.debug("Performing AFL query: %s", query)
        return self.query_records(query)

    @abstractmethod
    def query_records(self, query: str) -> List[MetadataRecord]:
        """Run a metadata query and return one record per result row."""


# ----------------------------------------------------------------------
# Transport registry utilities
# ----------------------------------------------------------------------

_TRANSPORT_REGISTRY: Dict[TransportType, Type[MetadataTransport]] = {}


def register_transport(transport_type: TransportType):
    """Decorator for registering transport implementations."""

    def decorator(cls: Type[MetadataTransport]) -> Type[MetadataTransport]:
        _TRANSPORT_REGISTRY[transport_type] = cls
        cls.transport_type = transport_type
        return cls

    return decorator


def get_transport(transport_type: TransportType, **config: object) -> MetadataTransport:
    """Instantiate the transport registered for `transport_type`."""

    try:
        transport_cls = _TRANSPORT_REGISTRY[TransportType(transport_type)]
    except (KeyError, ValueError) as exc:
        raise ValueError(f"No transport registered for type {transport_type}") from exc

    return transport_cls(**config)
