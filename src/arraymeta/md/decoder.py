"""
Decoder for the backend's delimited metadata wire format.

Each array arrives as one record of five text fields. Fields are split on
``;;;``; dimensions and attributes are further grouped with ``[...]`` and
``<...>``::

    dimensions  [x;;;0;;;1000;;;256;;;0;;;0;;;999][y;;;...]
    attributes  <band1;;;int16;;;true><band2;;;double>
    srs         xdim;;;ydim;;;EPSG;;;4326;;;x0=.. y0=..;;;<wkt>;;;<proj4>
    trs         t;;;2001-01-01T00:00:00;;;P1D
    extent      xmin;;;xmax;;;ymin;;;ymax;;;tmin;;;tmax
"""

import logging
from typing import Iterable, List, Optional

from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from ..errors import ArityError, MalformedGroupError, ScalarError, WireFormatError
from .affine import AffineTransform
from .descriptors import ArrayDescriptor, Attribute, Dimension, Extent, SpatialReference
from .temporal import TemporalReference

logger = logging.getLogger(__name__)

FIELD_SEPARATOR = ";;;"

DIMENSION_FIELDS = 7
SRS_FIELDS = 7
TRS_FIELDS = 3
EXTENT_FIELDS = 6


class MetadataRecord(BaseModel):
    """Raw metadata of one array as delivered by a backend transport."""

    name: str
    dimensions: str = ""
    attributes: str = ""
    srs: str = ""
    trs: str = ""
    extent: str = ""


# ----------------------------------------------------------------------
# Tokenizing
# ----------------------------------------------------------------------
def split_fields(text: str, arity: Optional[int] = None, what: str = "fragment") -> List[str]:
    """
    Split `text` on the field separator, keeping trailing empty fields.

    Raises:
        ArityError: If `arity` is given and the field count differs
    """
    fields = text.split(FIELD_SEPARATOR)
    if arity is not None and len(fields) != arity:
        raise ArityError(f"Expected {arity} fields in {what}, got {len(fields)}", text)
    return fields


def split_groups(text: str, open_char: str, close_char: str) -> List[str]:
    """
    Return the contents of consecutive ``open_char ... close_char`` groups.

    Characters between groups are ignored. Nested or unterminated groups
    raise :class:`MalformedGroupError`.
    """
    groups: List[str] = []
    start: Optional[int] = None
    for pos, char in enumerate(text):
        if char == open_char:
            if start is not None:
                raise MalformedGroupError(f"Nested '{open_char}' at position {pos}", text)
            start = pos + 1
        elif char == close_char:
            if start is None:
                raise MalformedGroupError(f"Unmatched '{close_char}' at position {pos}", text)
            groups.append(text[start:pos])
            start = None
    if start is not None:
        raise MalformedGroupError(f"Unterminated '{open_char}' group", text)
    return groups


def _to_int(value: str, field: str, fragment: str) -> int:
    try:
        return int(value.strip())
    except ValueError as exc:
        raise ScalarError(f"Invalid integer for {field}: {value!r}", fragment) from exc


def _to_float(value: str, field: str, fragment: str) -> float:
    try:
        return float(value.strip())
    except ValueError as exc:
        raise ScalarError(f"Invalid number for {field}: {value!r}", fragment) from exc


# ----------------------------------------------------------------------
# Field decoders
# ----------------------------------------------------------------------
def decode_dimension(group: str) -> Dimension:
    name, start, length, chunk, overlap, cur_min, cur_max = split_fields(group, DIMENSION_FIELDS, "dimension")
    lo = _to_int(start, "start", group)
    return Dimension(
        name=name,
        min=lo,
        max=lo + _to_int(length, "length", group) - 1,
        chunk_size=_to_int(chunk, "chunk size", group),
        overlap=_to_int(overlap, "overlap", group),
        cur_min=_to_int(cur_min, "current min", group),
        cur_max=_to_int(cur_max, "current max", group),
    )


def decode_dimensions(text: str) -> List[Dimension]:
    return [decode_dimension(group) for group in split_groups(text, "[", "]")]


def decode_attribute(group: str) -> Attribute:
    fields = split_fields(group, what="attribute")
    if len(fields) not in (2, 3):
        raise ArityError(f"Expected 2 or 3 fields in attribute, got {len(fields)}", group)
    nullable = len(fields) == 3 and fields[2].strip().lower() == "true"
    return Attribute(name=fields[0], type_id=fields[1], nullable=nullable)


def decode_attributes(text: str) -> List[Attribute]:
    return [decode_attribute(group) for group in split_groups(text, "<", ">")]


def decode_spatial_reference(text: str) -> Optional[SpatialReference]:
    if not text:
        return None
    # proj4 comes last, after the WKT
    xdim, ydim, auth_name, auth_id, affine, wkt, proj4 = split_fields(text, SRS_FIELDS, "spatial reference")
    return SpatialReference(
        transform=AffineTransform.parse(affine),
        xdim=xdim,
        ydim=ydim,
        auth_name=auth_name,
        auth_id=_to_int(auth_id, "authority id", text),
        wkt=wkt,
        proj4=proj4,
    )


def decode_temporal_reference(text: str) -> Optional[TemporalReference]:
    if not text:
        return None
    tdim, t0, period = split_fields(text, TRS_FIELDS, "temporal reference")
    return TemporalReference(tdim, t0, period)


def decode_extent(text: str, spatial: bool, temporal: bool) -> Optional[Extent]:
    """
    Decode the extent field.

    Only the components matching the array's references are read: spatial
    arrays use the first four fields, temporal arrays the last two.
    """
    if not text:
        return None
    values = split_fields(text, what="extent")
    if len(values) < EXTENT_FIELDS or not (spatial or temporal):
        return None

    box = {}
    if spatial:
        box = {
            key: _to_float(value, key, text)
            for key, value in zip(("xmin", "xmax", "ymin", "ymax"), values[:4])
        }
    times = {}
    if temporal:
        times = {"tmin": values[4] or None, "tmax": values[5] or None}
    return Extent(**box, **times)


# ----------------------------------------------------------------------
# Records
# ----------------------------------------------------------------------
def decode_record(record: MetadataRecord) -> ArrayDescriptor:
    """
    Decode one record into a descriptor.

    Raises:
        WireFormatError: If any field is malformed; ``error.array`` is set
            to the record's name
    """
    logger.debug("Processing metadata of array '%s'", record.name)
    logger.debug("Got dimension string '%s'", record.dimensions)
    logger.debug("Got attribute string '%s'", record.attributes)
    logger.debug("Got SRS string '%s'", record.srs)
    logger.debug("Got TRS string '%s'", record.trs)
    logger.debug("Got extent string '%s'", record.extent)
    try:
        srs = decode_spatial_reference(record.srs)
        trs = decode_temporal_reference(record.trs)
        return ArrayDescriptor(
            name=record.name,
            dimensions=tuple(decode_dimensions(record.dimensions)),
            attributes=tuple(decode_attributes(record.attributes)),
            srs=srs,
            trs=trs,
            extent=decode_extent(record.extent, srs is not None, trs is not None),
        )
    except WireFormatError as exc:
        exc.array = record.name
        raise
    except PydanticValidationError as exc:
        raise WireFormatError(f"Invalid metadata for array '{record.name}': {exc}", array=record.name) from exc


def decode_records(records: Iterable[MetadataRecord]) -> List[ArrayDescriptor]:
    """
    Decode a batch of records.

    A record that fails to decode is skipped with a warning; the remaining
    records are still decoded.
    """
    descriptors: List[ArrayDescriptor] = []
    for record in records:
        try:
            descriptors.append(decode_record(record))
        except WireFormatError as exc:
            logger.warning(
                "Cannot extract metadata of array '%s', will be ignored: %s (%s)",
                record.name,
                exc,
                type(exc).__name__,
            )
            logger.debug("Offending fragment: %r", exc.fragment)
    return descriptors
