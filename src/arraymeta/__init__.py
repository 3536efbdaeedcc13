"""arraymeta - metadata core for serving engine arrays as geospatial coverages."""

from ._version import __version__

from .backend import MetadataTransport, ShimTransport, TabularTransport, get_transport, register_transport
from .config import BackendConfig, CacheConfig, Settings, TranslateConfig
from .core import reproject_extent, resolve_crs
from .errors import (
    ArrayMetaError,
    BackendError,
    CoverageNotDefinedError,
    IllConditionedTransformError,
    MetadataUnavailableError,
    TemporalIndexError,
    WireFormatError,
)
from .md import (
    AffineTransform,
    ArrayDescriptor,
    Attribute,
    Dimension,
    Extent,
    MetadataCache,
    MetadataRecord,
    Period,
    SpatialReference,
    TemporalReference,
)
from .translate import CoverageRequest, build_translate_command
from .types import Format, Interpolation, TransportType

__all__ = [
    "__version__",
    "MetadataTransport",
    "ShimTransport",
    "TabularTransport",
    "get_transport",
    "register_transport",
    "BackendConfig",
    "CacheConfig",
    "Settings",
    "TranslateConfig",
    "reproject_extent",
    "resolve_crs",
    "ArrayMetaError",
    "BackendError",
    "CoverageNotDefinedError",
    "IllConditionedTransformError",
    "MetadataUnavailableError",
    "TemporalIndexError",
    "WireFormatError",
    "AffineTransform",
    "ArrayDescriptor",
    "Attribute",
    "Dimension",
    "Extent",
    "MetadataCache",
    "MetadataRecord",
    "Period",
    "SpatialReference",
    "TemporalReference",
    "CoverageRequest",
    "build_translate_command",
    "Format",
    "Interpolation",
    "TransportType",
]
