"""
Command construction for the external raster-extraction tool.

The metadata core does not read pixels. A coverage request is served by
``gdal_translate`` reading the array through GDAL's SciDB driver; this module
turns a validated request plus the array's descriptor into that tool's
argument list.
"""

import itertools
import logging
from pathlib import PurePosixPath
from typing import List, Optional, Tuple

from pydantic import BaseModel, Field

from .config import BackendConfig, TranslateConfig
from .errors import ValidationError
from .md.descriptors import ArrayDescriptor
from .types import Format, Interpolation

logger = logging.getLogger(__name__)

IMAGE_CRS = "IMAGE"

_REQUEST_IDS = itertools.count()


class CoverageRequest(BaseModel):
    """Parameters of one coverage extraction."""

    coverage: str = Field(..., description="Array name")
    crs: str = Field(default="EPSG:4326", description="CRS of `bbox`, or IMAGE for pixel coordinates")
    bbox: Tuple[float, ...] = Field(..., description="xmin, ymin, xmax, ymax (optionally followed by z bounds)")
    time: Optional[str] = Field(default=None, description="ISO-8601 instant selecting one time slice")
    width: int = Field(default=0, ge=0)
    height: int = Field(default=0, ge=0)
    resx: float = Field(default=0.0, ge=0)
    resy: float = Field(default=0.0, ge=0)
    format: Format = Format.GEOTIFF
    interpolation: Optional[Interpolation] = None
    request_id: int = Field(default_factory=lambda: next(_REQUEST_IDS))

    @property
    def is_image_crs(self) -> bool:
        return self.crs.upper() == IMAGE_CRS

    def check(self) -> None:
        """
        Raises:
            ValidationError: If the request cannot be served
        """
        if len(self.bbox) not in (4, 6):
            raise ValidationError(f"Bounding box needs 4 or 6 values, got {len(self.bbox)}")
        if self.bbox[0] > self.bbox[2] or self.bbox[1] > self.bbox[3]:
            raise ValidationError(f"Bounding box minimum exceeds maximum: {self.bbox}")
        if not self.crs:
            raise ValidationError("Missing CRS")


def _number(value: float) -> str:
    return repr(float(value))


def input_dataset(coverage: str, backend: BackendConfig) -> str:
    """GDAL SciDB driver connection string for `coverage`."""
    scheme = "https" if backend.ssl else "http"
    return (
        f"SCIDB:array={coverage} host={scheme}://{backend.host} port={backend.shim_port} "
        f"user={backend.user} password={backend.password}"
    )


def output_path(request: CoverageRequest, translate: TranslateConfig) -> str:
    return str(PurePosixPath(translate.temp_path) / f"{request.request_id}{request.format.extension}")


def build_translate_command(
    request: CoverageRequest,
    descriptor: ArrayDescriptor,
    backend: BackendConfig,
    translate: TranslateConfig,
) -> List[str]:
    """
    Build the ``gdal_translate`` argument list for a coverage request.

    Args:
        request: Coverage request to serve
        descriptor: Metadata of the requested array
        backend: Engine connection settings, embedded in the input dataset
        translate: Tool location and output directory

    Returns:
        The command, executable first and output path last

    Raises:
        ValidationError: If the request is invalid for this array
        TemporalIndexError: If the requested time lies outside the array
    """
    request.check()
    if request.coverage != descriptor.name:
        raise ValidationError(
            f"Request for coverage '{request.coverage}' does not match array '{descriptor.name}'"
        )

    cmd = [translate.executable]

    if request.resx > 0 and request.resy > 0:
        cmd += ["-tr", _number(request.resx), _number(request.resy)]

    if request.width > 0 and request.height > 0:
        cmd += ["-outsize", str(request.width), str(request.height)]

    xmin, ymin, xmax, ymax = request.bbox[:4]
    if request.is_image_crs:
        cmd += [
            "-srcwin",
            str(round(xmin)),
            str(round(ymin)),
            str(round(xmax - xmin)),
            str(round(ymax - ymin)),
        ]
    else:
        # upper-left then lower-right corner
        cmd += ["-projwin", _number(xmin), _number(ymax), _number(xmax), _number(ymin)]
        cmd += ["-projwin_srs", request.crs]

    if request.time:
        cmd += ["-oo", f"t={descriptor.temporal_index(request.time)}"]

    cmd += ["-of", request.format.driver]
    if request.interpolation is not None:
        cmd += ["-r", request.interpolation.resampling]

    # dataset string is left out of the log, it carries the password
    logger.debug("Generated translate options for request %s: %s", request.request_id, " ".join(cmd[1:]))

    cmd.append(input_dataset(request.coverage, backend))
    cmd.append(output_path(request, translate))
    return cmd
