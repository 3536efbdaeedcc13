"""
Affine transforms mapping array index coordinates to world coordinates.
"""

import logging
import re
from typing import Dict, Optional, Tuple

import numpy as np

from ..errors import IllConditionedTransformError, ScalarError
from ..typing import Point

logger = logging.getLogger(__name__)

# Canonical serialization order
_KEYS = ("x0", "y0", "a11", "a22", "a12", "a21")
_IDENTITY = {"x0": 0.0, "y0": 0.0, "a11": 1.0, "a22": 1.0, "a12": 0.0, "a21": 0.0}

_PAIR_SPLIT = re.compile(r"[,\s]+")
_KV_SPLIT = re.compile(r"[=:]")

MAX_FRACTION_DIGITS = 16

Coefficients = Tuple[float, float, float, float, float, float]  # x0, y0, a11, a12, a21, a22


def _format_number(value: float) -> str:
    text = f"{value:.{MAX_FRACTION_DIGITS}f}"
    if "." in text:
        text = text.rstrip("0").rstrip(".")
    return "0" if text in ("", "-0") else text


class AffineTransform:
    """
    2D affine map from array coordinates ``(col, row)`` to world coordinates.

    ``x = x0 + a11*col + a12*row`` and ``y = y0 + a21*col + a22*row``.

    Instances are treated as immutable. The inverse coefficients are computed
    on first use and memoized; no reference to another transform is kept.
    """

    def __init__(
        self,
        x0: float = 0.0,
        y0: float = 0.0,
        a11: float = 1.0,
        a12: float = 0.0,
        a21: float = 0.0,
        a22: float = 1.0,
    ) -> None:
        self.x0 = float(x0)
        self.y0 = float(y0)
        self.a11 = float(a11)
        self.a12 = float(a12)
        self.a21 = float(a21)
        self.a22 = float(a22)
        self._inverse: Optional[Coefficients] = None

    @classmethod
    def identity(cls) -> "AffineTransform":
        return cls()

    # ------------------------------------------------------------------
    # Textual form
    # ------------------------------------------------------------------
    @classmethod
    def parse(cls, text: str) -> "AffineTransform":
        """
        Parse the ``key=value`` form produced by :meth:`format`.

        Pairs may come in any order, separated by whitespace or commas, with
        ``=`` or ``:`` between key and value. Parsing stops at the first
        malformed pair or unknown key; keys that were not read keep their
        identity defaults.

        Args:
            text: Serialized transform, e.g. ``"x0=10 y0=50 a11=0.5 a22=-0.5"``

        Returns:
            Parsed transform

        Raises:
            ScalarError: If a known key holds a value that is not a number
        """
        params: Dict[str, float] = dict(_IDENTITY)
        for pair in _PAIR_SPLIT.split(text.strip()):
            if not pair:
                continue
            kv = _KV_SPLIT.split(pair)
            if len(kv) != 2:
                logger.warning("Cannot read affine transformation string '%s'", text)
                break
            key, value = kv
            if key not in params:
                logger.warning("Unknown affine transformation parameter '%s' in '%s'", key, text)
                break
            try:
                params[key] = float(value)
            except ValueError as exc:
                raise ScalarError(f"Invalid value for affine parameter {key}: {value!r}", text) from exc
        return cls(**params)

    def format(self) -> str:
        """Serialize to the canonical ``x0=.. y0=.. a11=.. a22=.. a12=.. a21=..`` form."""
        return " ".join(f"{key}={_format_number(getattr(self, key))}" for key in _KEYS)

    def __str__(self) -> str:
        return self.format()

    def __repr__(self) -> str:
        return f"AffineTransform({self.format()})"

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, AffineTransform):
            return NotImplemented
        return self.coefficients == other.coefficients

    def __hash__(self) -> int:
        return hash(self.coefficients)

    # ------------------------------------------------------------------
    # Properties
    # ------------------------------------------------------------------
    @property
    def coefficients(self) -> Coefficients:
        return (self.x0, self.y0, self.a11, self.a12, self.a21, self.a22)

    def determinant(self) -> float:
        return self.a11 * self.a22 - self.a12 * self.a21

    def is_identity(self) -> bool:
        return self.coefficients == (0.0, 0.0, 1.0, 0.0, 0.0, 1.0)

    def is_invertible(self) -> bool:
        return self.determinant() != 0.0

    def almost_equals(self, other: "AffineTransform", tol: float = 1e-10) -> bool:
        return all(abs(a - b) <= tol for a, b in zip(self.coefficients, other.coefficients))

    # ------------------------------------------------------------------
    # Forward mapping
    # ------------------------------------------------------------------
    def forward(self, p: Point) -> Point:
        col, row = p
        return (
            self.x0 + self.a11 * col + self.a12 * row,
            self.y0 + self.a21 * col + self.a22 * row,
        )

    def forward_into(self, src: np.ndarray, out: np.ndarray) -> np.ndarray:
        """
        Apply the transform to an ``(..., 2)`` array, writing into `out`.

        `out` may be `src` itself.
        """
        xs = self.x0 + self.a11 * src[..., 0] + self.a12 * src[..., 1]
        ys = self.y0 + self.a21 * src[..., 0] + self.a22 * src[..., 1]
        out[..., 0] = xs
        out[..., 1] = ys
        return out

    def forward_many(self, points: np.ndarray) -> np.ndarray:
        src = np.asarray(points, dtype=float)
        return self.forward_into(src, np.empty_like(src))

    # ------------------------------------------------------------------
    # Inverse mapping
    # ------------------------------------------------------------------
    def _inverse_coefficients(self) -> Coefficients:
        if self._inverse is None:
            det = self.determinant()
            if det == 0.0:
                raise IllConditionedTransformError(
                    f"Affine transformation is not invertible (det=0): {self.format()}"
                )
            i11 = self.a22 / det
            i12 = -self.a12 / det
            i21 = -self.a21 / det
            i22 = self.a11 / det
            x0 = -(i11 * self.x0 + i12 * self.y0)
            y0 = -(i21 * self.x0 + i22 * self.y0)
            self._inverse = (x0, y0, i11, i12, i21, i22)
        return self._inverse

    def inverse(self, p: Point) -> Point:
        """
        Map a world coordinate back to array coordinates.

        Raises:
            IllConditionedTransformError: If the transform is singular
        """
        x0, y0, i11, i12, i21, i22 = self._inverse_coefficients()
        x, y = p
        return (x0 + i11 * x + i12 * y, y0 + i21 * x + i22 * y)

    def inverse_transform(self) -> "AffineTransform":
        """Return the inverse as a transform whose own inverse is this one."""
        x0, y0, i11, i12, i21, i22 = self._inverse_coefficients()
        inv = AffineTransform(x0, y0, i11, i12, i21, i22)
        inv._inverse = self.coefficients
        return inv
