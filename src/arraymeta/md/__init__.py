"""Array metadata model, wire decoder and descriptor cache."""

from .affine import AffineTransform
from .cache import MetadataCache
from .decoder import MetadataRecord, decode_record, decode_records
from .descriptors import UNBOUNDED, ArrayDescriptor, Attribute, Dimension, Extent, SpatialReference
from .temporal import MAX_TEMPORAL_INDEX, Period, TemporalReference, to_instant

__all__ = [
    "AffineTransform",
    "MetadataCache",
    "MetadataRecord",
    "decode_record",
    "decode_records",
    "UNBOUNDED",
    "ArrayDescriptor",
    "Attribute",
    "Dimension",
    "Extent",
    "SpatialReference",
    "MAX_TEMPORAL_INDEX",
    "Period",
    "TemporalReference",
    "to_instant",
]
