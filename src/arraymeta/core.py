"""
Core coordinate functionality: CRS resolution and extent reprojection.
"""

import logging
from typing import Optional, Tuple, Union

import numpy as np
from pyproj import CRS
from pyproj.exceptions import CRSError, ProjError
from pyproj.transformer import Transformer

from .errors import ReprojectionError
from .md.affine import AffineTransform
from .md.descriptors import Extent, SpatialReference
from .typing import Reprojector

logger = logging.getLogger(__name__)

CRSLike = Union[str, CRS]

# Reference CRS for published lon/lat envelopes
TARGET_CRS = "EPSG:4326"


# CRS handling


def resolve_crs(srs: SpatialReference) -> CRS:
    """
    Resolve the CRS of a spatial reference.

    Tries the authority code first, then the WKT and PROJ string forms.

    Args:
        srs: Spatial reference of an array

    Returns:
        pyproj CRS

    Raises:
        ReprojectionError: If none of the forms can be resolved
    """
    failures = []
    for label, text in (("authority", srs.crs_code), ("WKT", srs.wkt), ("PROJ", srs.proj4)):
        if not text:
            continue
        try:
            return CRS.from_user_input(text)
        except CRSError as exc:
            logger.debug("Cannot resolve %s form of %s: %s", label, srs.crs_code, exc)
            failures.append(label)
    raise ReprojectionError(f"Cannot resolve CRS {srs.crs_code} (tried {', '.join(failures) or 'nothing'})")


def axis_order(crs: CRSLike) -> str:
    """
    Axis order of a CRS as declared by its authority.

    Returns:
        ``"NE"`` if the first axis points north/south (lat/lon style),
        ``"EN"`` otherwise
    """
    axes = CRS.from_user_input(crs).axis_info
    if len(axes) < 2:
        raise ReprojectionError(f"CRS {crs} has fewer than two axes")
    return "NE" if axes[0].direction.lower() in ("north", "south") else "EN"


def pyproj_reproject(crs_from: CRSLike, crs_to: CRSLike, points: np.ndarray) -> np.ndarray:
    """Reproject ``(n, 2)`` points, honouring each CRS's authority axis order."""
    transformer = Transformer.from_crs(crs_from, crs_to)
    xs, ys = transformer.transform(points[:, 0], points[:, 1], errcheck=True)
    return np.column_stack([xs, ys])


# Bounding Box Operations


def box_corners(xmin: float, xmax: float, ymin: float, ymax: float) -> np.ndarray:
    """All four corners of a box as a ``(4, 2)`` array."""
    return np.array(
        [[xmin, ymin], [xmin, ymax], [xmax, ymax], [xmax, ymin]],
        dtype=float,
    )


def bounds_of(points: np.ndarray) -> Extent:
    """Axis-aligned bounding box of ``(n, 2)`` points."""
    return Extent(
        xmin=float(points[:, 0].min()),
        xmax=float(points[:, 0].max()),
        ymin=float(points[:, 1].min()),
        ymax=float(points[:, 1].max()),
    )


def index_box_to_world(
    transform: AffineTransform,
    cols: Tuple[float, float],
    rows: Tuple[float, float],
) -> Extent:
    """
    Map an index-space box to a world-space bounding box.

    All four corners are transformed since rotation or shear terms move the
    extreme coordinates away from the two diagonal corners.

    Args:
        transform: Affine transform of the array
        cols: (first, last) column coordinate
        rows: (first, last) row coordinate

    Returns:
        Bounding box in the array's native CRS
    """
    corners = box_corners(cols[0], cols[1], rows[0], rows[1])
    return bounds_of(transform.forward_many(corners))


def reproject_extent(
    extent: Extent,
    crs_from: CRSLike,
    crs_to: CRSLike = TARGET_CRS,
    reproject: Optional[Reprojector] = None,
) -> Extent:
    """
    Reproject the spatial part of an extent to another CRS.

    The four corners are reprojected and the result is their bounding box.
    Extents are always easting first, while the reprojector works in each
    CRS's authority axis order: corners are swapped on the way in when
    `crs_from` is northing first, and back on the way out when `crs_to` is.
    Failures never propagate: they are logged and the degenerate
    zero box is returned.

    Args:
        extent: Extent with a spatial component in `crs_from`
        crs_from: Source CRS
        crs_to: Target CRS (default: WGS84)
        reproject: Point reprojection function, pyproj by default

    Returns:
        Extent in `crs_to`, or ``Extent.degenerate()``
    """
    reproject = reproject or pyproj_reproject
    try:
        if not extent.has_spatial:
            raise ReprojectionError("Extent has no spatial component")
        src = CRS.from_user_input(crs_from)
        dst = CRS.from_user_input(crs_to)
        corners = box_corners(extent.xmin, extent.xmax, extent.ymin, extent.ymax)
        if axis_order(src) == "NE":
            corners = corners[:, ::-1].copy()
        points = np.asarray(reproject(src, dst, corners), dtype=float)
        if points.shape != (4, 2) or not np.all(np.isfinite(points)):
            raise ReprojectionError(f"Reprojection produced invalid corners: {points.tolist()}")

        bounds = bounds_of(points)
        if axis_order(dst) == "NE":
            return Extent(xmin=bounds.ymin, xmax=bounds.ymax, ymin=bounds.xmin, ymax=bounds.xmax)
        return bounds
    except (ProjError, ReprojectionError) as exc:
        logger.info("Cannot derive spatial extent in %s, setting to (0,0,0,0): %s", crs_to, exc)
        return Extent.degenerate()
