"""Descriptor models for arrays held by the backend engine."""

from __future__ import annotations

import logging
from typing import Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, PrivateAttr

from ..errors import ReprojectionError, TemporalIndexError, ValidationError
from ..typing import BBoxTuple, Reprojector
from .affine import AffineTransform
from .temporal import InstantLike, TemporalReference

logger = logging.getLogger(__name__)

# The engine reports this magnitude for unbounded current dimension limits
UNBOUNDED = 4611686018427387903


class Dimension(BaseModel):
    """Array dimension with declared and populated index bounds."""

    model_config = ConfigDict(frozen=True)

    name: str
    min: int
    max: int
    cur_min: int
    cur_max: int
    chunk_size: int
    overlap: int = 0

    @property
    def true_min(self) -> int:
        return self.min if abs(self.cur_min) == UNBOUNDED else self.cur_min

    @property
    def true_max(self) -> int:
        return self.max if abs(self.cur_max) == UNBOUNDED else self.cur_max

    @property
    def true_length(self) -> int:
        return self.true_max - self.true_min + 1

    def contains(self, index: int) -> bool:
        return self.true_min <= index <= self.true_max


class Attribute(BaseModel):
    """Array attribute (a measured value per cell)."""

    model_config = ConfigDict(frozen=True)

    name: str
    type_id: str
    nullable: bool = False
    tag: str = ""


class SpatialReference(BaseModel):
    """Mapping of two array dimensions to a coordinate reference system."""

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    transform: AffineTransform = Field(default_factory=AffineTransform)
    xdim: str
    ydim: str
    auth_name: str
    auth_id: int
    wkt: str = ""
    proj4: str = ""

    @property
    def crs_code(self) -> str:
        return f"{self.auth_name}:{self.auth_id}"


class Extent(BaseModel):
    """Spatial and/or temporal bounds of an array's populated data."""

    model_config = ConfigDict(frozen=True)

    xmin: Optional[float] = None
    xmax: Optional[float] = None
    ymin: Optional[float] = None
    ymax: Optional[float] = None
    tmin: Optional[str] = Field(None, description="ISO-8601 start instant")
    tmax: Optional[str] = Field(None, description="ISO-8601 end instant")

    @classmethod
    def degenerate(cls) -> "Extent":
        """Zero box used when a spatial extent cannot be derived."""
        return cls(xmin=0.0, xmax=0.0, ymin=0.0, ymax=0.0)

    @property
    def has_spatial(self) -> bool:
        return None not in (self.xmin, self.xmax, self.ymin, self.ymax)

    @property
    def has_temporal(self) -> bool:
        return self.tmin is not None or self.tmax is not None

    @property
    def is_degenerate(self) -> bool:
        return self.has_spatial and self.xmin == self.xmax and self.ymin == self.ymax

    def as_bbox(self) -> BBoxTuple:
        """Return ``(min_x, min_y, max_x, max_y)``."""
        if not self.has_spatial:
            raise ValueError("Extent has no spatial component")
        return (self.xmin, self.ymin, self.xmax, self.ymax)


class ArrayDescriptor(BaseModel):
    """
    Complete metadata of one array.

    Descriptors are built whole by the wire decoder and shared through the
    metadata cache, so they are frozen. Dimension lookups and the WGS84 extent
    are computed lazily and memoized.
    """

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    name: str
    dimensions: Tuple[Dimension, ...] = ()
    attributes: Tuple[Attribute, ...] = ()
    srs: Optional[SpatialReference] = None
    trs: Optional[TemporalReference] = None
    extent: Optional[Extent] = None

    _lookup: dict = PrivateAttr(default_factory=dict)
    _extent_wgs84: Optional[Extent] = PrivateAttr(default=None)

    @property
    def is_spatial(self) -> bool:
        return self.srs is not None

    @property
    def is_temporal(self) -> bool:
        return self.trs is not None

    def dimension(self, name: str) -> Optional[Dimension]:
        for dim in self.dimensions:
            if dim.name == name:
                return dim
        return None

    def _cached_dimension(self, key: str, name: Optional[str]) -> Optional[Dimension]:
        if name is None:
            return None
        if key not in self._lookup:
            self._lookup[key] = self.dimension(name)
        return self._lookup[key]

    @property
    def x_dimension(self) -> Optional[Dimension]:
        """Easting / longitude dimension."""
        return self._cached_dimension("x", self.srs.xdim if self.srs else None)

    @property
    def y_dimension(self) -> Optional[Dimension]:
        """Northing / latitude dimension."""
        return self._cached_dimension("y", self.srs.ydim if self.srs else None)

    @property
    def t_dimension(self) -> Optional[Dimension]:
        return self._cached_dimension("t", self.trs.tdim if self.trs else None)

    # ------------------------------------------------------------------
    # Spatial helpers
    # ------------------------------------------------------------------
    def native_extent(self) -> Optional[Extent]:
        """
        World bounding box in the array's native CRS.

        Uses the backend-reported extent when it has a spatial component,
        otherwise maps the populated index bounds of the x/y dimensions
        through the affine transform.
        """
        if self.srs is None:
            return None
        if self.extent is not None and self.extent.has_spatial:
            return Extent(xmin=self.extent.xmin, xmax=self.extent.xmax, ymin=self.extent.ymin, ymax=self.extent.ymax)
        xdim, ydim = self.x_dimension, self.y_dimension
        if xdim is None or ydim is None:
            return None

        from ..core import index_box_to_world

        return index_box_to_world(
            self.srs.transform,
            (xdim.true_min, xdim.true_max + 1),
            (ydim.true_min, ydim.true_max + 1),
        )

    def spatial_extent_wgs84(self, reproject: Optional[Reprojector] = None) -> Extent:
        """
        Spatial extent reprojected to WGS84.

        Successful results are memoized; failures yield the degenerate zero
        box and are retried on the next call. `reproject` replaces the default
        pyproj-backed point reprojection.
        """
        if self._extent_wgs84 is not None:
            return self._extent_wgs84

        from ..core import reproject_extent, resolve_crs

        native = self.native_extent()
        if native is None:
            logger.info("Array '%s' has no spatial extent, using (0,0,0,0)", self.name)
            return Extent.degenerate()
        try:
            crs = resolve_crs(self.srs)
        except ReprojectionError as exc:
            logger.info("Cannot resolve CRS of array '%s', using (0,0,0,0): %s", self.name, exc)
            return Extent.degenerate()

        result = reproject_extent(native, crs, reproject=reproject)
        if not result.is_degenerate:
            self._extent_wgs84 = result
        return result

    # ------------------------------------------------------------------
    # Temporal helpers
    # ------------------------------------------------------------------
    def temporal_index(self, t: InstantLike) -> int:
        """
        Resolve an instant to an index of the time dimension.

        Raises:
            ValidationError: If the array has no temporal reference
            TemporalIndexError: If the index lies outside the populated range
        """
        if self.trs is None:
            raise ValidationError(f"Array '{self.name}' has no temporal reference")
        index = self.trs.index_at_instant(t)
        tdim = self.t_dimension
        if tdim is not None and not tdim.contains(index):
            raise TemporalIndexError(
                f"Requested time is out of the range of array '{self.name}' "
                f"(index {index} not in [{tdim.true_min}, {tdim.true_max}])"
            )
        return index

    def schema(self) -> str:
        """Engine schema string, e.g. ``a<v:double null>[x=0:99,10,0]``."""
        attrs = ",".join(
            f"{att.name}:{att.type_id}" + (" null" if att.nullable else "") for att in self.attributes
        )
        dims = ",".join(f"{d.name}={d.min}:{d.max},{d.chunk_size},{d.overlap}" for d in self.dimensions)
        return f"{self.name}<{attrs}>[{dims}]"
