"""Color primitives shared by palette extraction, region matching and picking.

Provides:
    - Color: immutable 8-bit RGB triple
    - color_distance: Euclidean RGB distance (one metric for every caller)
    - perceived_brightness: sqrt(0.299·r² + 0.587·g² + 0.114·b²)
    - distance_sq_map: per-pixel squared distance to a color over an array
    - hex / "R,G,B" parsing for CLI and UI boundaries

Invariants:
    - Channels are integers in [0, 255]
    - Distances compare with ``<=``/``>=`` on the true Euclidean value;
      array paths use squared integer distances against ``tol**2``, which
      is equivalent for integer channels and integer tolerances
"""

from __future__ import annotations

import math
from dataclasses import dataclass

import numpy as np


@dataclass(frozen=True, slots=True)
class Color:
    """8-bit RGB color.

    Parameters
    ----------
    r, g, b : int
        Channel values in [0, 255].
    """

    r: int
    g: int
    b: int

    def __post_init__(self) -> None:
        for name in ("r", "g", "b"):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, (int, np.integer)):
                raise TypeError(f"Color.{name} must be an int, got {type(value).__name__}")
            if not 0 <= value <= 255:
                raise ValueError(f"Color.{name} must be in [0, 255], got {value}")
            object.__setattr__(self, name, int(value))

    def as_tuple(self) -> tuple[int, int, int]:
        return (self.r, self.g, self.b)

    def to_hex(self) -> str:
        """Return ``#RRGGBB`` (uppercase)."""
        return f"#{self.r:02X}{self.g:02X}{self.b:02X}"

    @classmethod
    def from_hex(cls, text: str) -> Color:
        raw = text.strip().lstrip('#')
        if len(raw) != 6:
            raise ValueError(f"Expected #RRGGBB, got {text!r}")
        return cls(int(raw[0:2], 16), int(raw[2:4], 16), int(raw[4:6], 16))

    @classmethod
    def parse(cls, text: str) -> Color:
        """Parse ``"R,G,B"`` or ``"#RRGGBB"``."""
        if text.strip().startswith('#'):
            return cls.from_hex(text)
        parts = [p.strip() for p in text.split(',')]
        if len(parts) != 3:
            raise ValueError(f"Expected 'R,G,B', got {text!r}")
        return cls(*(int(p) for p in parts))

    def __str__(self) -> str:
        return f"rgb({self.r}, {self.g}, {self.b})"


def color_distance(c1: Color, c2: Color) -> float:
    """Euclidean distance in RGB space.

    Used uniformly for palette dedup, region matching and
    "already picked" checks.
    """
    dr = c1.r - c2.r
    dg = c1.g - c2.g
    db = c1.b - c2.b
    return math.sqrt(dr * dr + dg * dg + db * db)


def perceived_brightness(c: Color) -> float:
    """Perceptual brightness on a 0-255 scale.

    Notes
    -----
    sqrt(0.299·r² + 0.587·g² + 0.114·b²); white is 255, black is 0.
    """
    return math.sqrt(0.299 * c.r * c.r + 0.587 * c.g * c.g + 0.114 * c.b * c.b)


def distance_sq_map(rgb: np.ndarray, color: Color) -> np.ndarray:
    """Squared RGB distance of every pixel to ``color``.

    Parameters
    ----------
    rgb : np.ndarray
        (..., 3) uint8 pixels

    Returns
    -------
    np.ndarray
        (...) int32 squared distances
    """
    diff = rgb.astype(np.int32) - np.asarray(color.as_tuple(), dtype=np.int32)
    return np.einsum('...c,...c->...', diff, diff)
