"""Custom exception hierarchy for arraymeta."""

from typing import Optional


class ArrayMetaError(Exception):
    """Base exception for the arraymeta library."""

    def __init__(self, message: str, cause: Optional[Exception] = None):
        super().__init__(message)
        self.cause = cause


class ServiceError(ArrayMetaError):
    """Errors related to backend interactions."""
    pass


class BackendError(ServiceError):
    """A metadata transport failed (connection, timeout, bad response)."""
    pass


class MetadataUnavailableError(ServiceError):
    """Metadata could not be fetched and no valid cached entry exists."""

    def __init__(self, names, cause: Optional[Exception] = None):
        self.names = list(names)
        listing = ", ".join(self.names) if self.names else "<all arrays>"
        super().__init__(f"Metadata unavailable for: {listing}", cause)


class CoverageNotDefinedError(ArrayMetaError):
    """The requested array is not known to the backend."""

    def __init__(self, name: str):
        super().__init__(f"Array '{name}' is not defined")
        self.name = name


class ValidationError(ArrayMetaError):
    """Client input validation errors."""
    pass


class TemporalIndexError(ValidationError):
    """A temporal index or instant lies outside the axis bounds."""
    pass


class ParseError(ArrayMetaError):
    """Data parsing errors."""
    pass


class WireFormatError(ParseError):
    """A fragment of the backend metadata wire format could not be decoded."""

    def __init__(self, message: str, fragment: str = "", array: Optional[str] = None):
        super().__init__(message)
        self.fragment = fragment
        self.array = array


class ArityError(WireFormatError):
    """A delimited fragment has the wrong number of fields."""
    pass


class ScalarError(WireFormatError):
    """A field holds a value that cannot be converted (number, instant, period)."""
    pass


class MalformedGroupError(WireFormatError):
    """Bracket or angle-bracket groups are not balanced."""
    pass


class TransformError(ArrayMetaError):
    """Affine transform errors."""
    pass


class IllConditionedTransformError(TransformError):
    """The transform's determinant is zero, so it has no inverse."""
    pass


class ReprojectionError(ArrayMetaError):
    """Coordinate reprojection between two CRSs failed."""
    pass


class ConfigurationError(ArrayMetaError):
    """Configuration and setup errors."""
    pass
