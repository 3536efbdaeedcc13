"""
Protocol-level enumerations shared by the metadata core and its consumers.
"""

from enum import Enum


class Format(str, Enum):
    """Output formats the raster-extraction step can produce."""
    GEOTIFF = "GeoTIFF"
    JPEG = "JPEG"
    PNG = "PNG"
    GIF = "GIF"
    BMP = "BMP"
    NETCDF = "NetCDF"

    @classmethod
    def from_string(cls, value: str) -> "Format":
        """Create Format from a case-insensitive name."""
        for fmt in cls:
            if fmt.value.upper() == value.strip().upper():
                return fmt
        raise ValueError(f"Unsupported output format: {value}")

    @property
    def mime_type(self) -> str:
        return _MIME_TYPES[self]

    @property
    def driver(self) -> str:
        """GDAL driver short name."""
        return _DRIVERS[self]

    @property
    def extension(self) -> str:
        return _EXTENSIONS[self]


_MIME_TYPES = {
    Format.GEOTIFF: "image/tiff",
    Format.JPEG: "image/jpeg",
    Format.PNG: "image/png",
    Format.GIF: "image/gif",
    Format.BMP: "image/bmp",
    Format.NETCDF: "application/x-netcdf",
}

_DRIVERS = {
    Format.GEOTIFF: "GTiff",
    Format.JPEG: "JPEG",
    Format.PNG: "PNG",
    Format.GIF: "GIF",
    Format.BMP: "BMP",
    Format.NETCDF: "netCDF",
}

_EXTENSIONS = {
    Format.GEOTIFF: ".tif",
    Format.JPEG: ".jpg",
    Format.PNG: ".png",
    Format.GIF: ".gif",
    Format.BMP: ".bmp",
    Format.NETCDF: ".nc",
}


class Interpolation(str, Enum):
    """Supported interpolation methods."""
    NEAREST = "nearest"
    BILINEAR = "bilinear"
    BICUBIC = "bicubic"

    @property
    def resampling(self) -> str:
        """GDAL resampling keyword."""
        return "cubic" if self is Interpolation.BICUBIC else self.value


class TransportType(str, Enum):
    """Backend metadata transports."""
    TABULAR = "tabular"
    SHIM = "shim"
