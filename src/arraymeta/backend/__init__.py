"""Backend transports delivering raw array metadata records."""

from .base import MetadataTransport, build_metadata_query, get_transport, register_transport
from .shim import ShimTransport, parse_csv_records
from .tabular import TabularTransport

__all__ = [
    "MetadataTransport",
    "build_metadata_query",
    "get_transport",
    "register_transport",
    "ShimTransport",
    "parse_csv_records",
    "TabularTransport",
]
