"""Type aliases and protocols for arraymeta."""

from typing import TypeAlias, Protocol, Tuple, Callable, List, Optional, Sequence

import numpy as np

# Type aliases for better user experience
Point: TypeAlias = Tuple[float, float]  # (x, y) or (col, row)
BBoxTuple: TypeAlias = Tuple[float, float, float, float]  # (min_x, min_y, max_x, max_y)
Clock: TypeAlias = Callable[[], float]  # monotonic seconds
Reprojector: TypeAlias = Callable[[object, object, np.ndarray], np.ndarray]


# Protocols for backend interfaces
class MetadataSource(Protocol):
    """Protocol for anything that can deliver raw metadata records."""

    def fetch(self, names: Optional[Sequence[str]] = None) -> List["MetadataRecord"]:
        """Fetch records for `names`, or for every array if empty."""
        ...


# Import types that are used in protocols
from typing import TYPE_CHECKING
if TYPE_CHECKING:
    from .md.decoder import MetadataRecord
