"""Pixel → real-world affine calibration from three reference points.

The map is ``real = (a·px + b·py + c, d·px + e·py + f)``.  Both real
components share the coefficient matrix ``[[px_i, py_i, 1]]`` and are
solved independently with Cramer's rule.

Calibration is a *state*: a failed solve leaves the calibrator invalid and
``transform`` returns ``(0.0, 0.0)`` instead of raising.  Callers check
``is_valid`` before trusting the output.

Reference roles (first match in insertion order wins):
    - origin:  real == (0, 0)
    - X axis:  real_y == 0 and real_x != 0
    - Y axis:  real_x == 0 and real_y != 0
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Protocol, Sequence

logger = logging.getLogger(__name__)

DEFAULT_EPSILON = 1e-10

Pair = tuple[float, float]


# ---------------------------------------------------------------------------
# Data containers
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class AffineMatrix:
    """Six affine coefficients, real = (a·x + b·y + c, d·x + e·y + f)."""

    a: float
    b: float
    c: float
    d: float
    e: float
    f: float

    def apply(self, px: float, py: float) -> Pair:
        return (
            self.a * px + self.b * py + self.c,
            self.d * px + self.e * py + self.f,
        )


class ReferencePoint(Protocol):
    """Anything carrying pixel and real coordinates (e.g. LocationPoint)."""

    pixel_x: float
    pixel_y: float
    real_x: float
    real_y: float


@dataclass(frozen=True, slots=True)
class ReferenceSet:
    """The three points chosen for the origin, X-axis and Y-axis roles."""

    origin: ReferencePoint
    x_axis: ReferencePoint
    y_axis: ReferencePoint

    def pixel_triplet(self) -> list[Pair]:
        return [(p.pixel_x, p.pixel_y) for p in (self.origin, self.x_axis, self.y_axis)]

    def real_triplet(self) -> list[Pair]:
        return [(p.real_x, p.real_y) for p in (self.origin, self.x_axis, self.y_axis)]


# ---------------------------------------------------------------------------
# Role detection
# ---------------------------------------------------------------------------


def find_reference_points(points: Sequence[ReferencePoint]) -> ReferenceSet | None:
    """Pick the origin, X-axis and Y-axis references.

    Parameters
    ----------
    points : Sequence[ReferencePoint]
        Location points in insertion order.

    Returns
    -------
    ReferenceSet | None
        ``None`` when fewer than 3 points exist or any role is unfilled.
    """
    if len(points) < 3:
        return None

    origin = next((p for p in points if p.real_x == 0 and p.real_y == 0), None)
    x_axis = next((p for p in points if p.real_x != 0 and p.real_y == 0), None)
    y_axis = next((p for p in points if p.real_x == 0 and p.real_y != 0), None)

    if origin is None or x_axis is None or y_axis is None:
        return None
    return ReferenceSet(origin=origin, x_axis=x_axis, y_axis=y_axis)


# ---------------------------------------------------------------------------
# Solver
# ---------------------------------------------------------------------------


def _solve_component(
    pixels: Sequence[Pair],
    values: Sequence[float],
    epsilon: float,
) -> tuple[float, float, float] | None:
    """Solve ``[[x_i, y_i, 1]] · (p, q, r) = v`` by Cramer's rule."""
    (x1, y1), (x2, y2), (x3, y3) = pixels
    v1, v2, v3 = values

    det = x1 * (y2 - y3) + x2 * (y3 - y1) + x3 * (y1 - y2)
    if abs(det) < epsilon:
        return None

    det_p = v1 * (y2 - y3) + v2 * (y3 - y1) + v3 * (y1 - y2)
    det_q = x1 * (v2 - v3) + x2 * (v3 - v1) + x3 * (v1 - v2)
    det_r = (
        x1 * (y2 * v3 - y3 * v2)
        + x2 * (y3 * v1 - y1 * v3)
        + x3 * (y1 * v2 - y2 * v1)
    )
    return det_p / det, det_q / det, det_r / det


class AffineCalibrator:
    """Holds the current affine matrix and its validity.

    Parameters
    ----------
    epsilon : float
        Determinant magnitude below which the references count as collinear.
    """

    def __init__(self, epsilon: float = DEFAULT_EPSILON) -> None:
        if epsilon <= 0:
            raise ValueError(f"epsilon must be > 0, got {epsilon}")
        self.epsilon = epsilon
        self._matrix: AffineMatrix | None = None

    @property
    def is_valid(self) -> bool:
        return self._matrix is not None

    @property
    def matrix(self) -> AffineMatrix | None:
        return self._matrix

    def invalidate(self) -> None:
        self._matrix = None

    def calibrate(self, pixel_triplet: Sequence[Pair], real_triplet: Sequence[Pair]) -> bool:
        """Solve for the affine map from exactly three pixel↔real pairs.

        Returns
        -------
        bool
            True on success.  On failure (wrong count or collinear pixels)
            the calibrator becomes invalid.
        """
        if len(pixel_triplet) != 3 or len(real_triplet) != 3:
            logger.warning(
                "Calibration needs exactly 3 point pairs, got %d/%d",
                len(pixel_triplet), len(real_triplet),
            )
            self.invalidate()
            return False

        abc = _solve_component(pixel_triplet, [r[0] for r in real_triplet], self.epsilon)
        def_ = _solve_component(pixel_triplet, [r[1] for r in real_triplet], self.epsilon)
        if abc is None or def_ is None:
            logger.warning("Calibration failed: reference pixels are collinear %s", list(pixel_triplet))
            self.invalidate()
            return False

        self._matrix = AffineMatrix(*abc, *def_)
        logger.debug("Calibrated: %s", self._matrix)
        return True

    def calibrate_from_points(self, points: Sequence[ReferencePoint]) -> bool:
        """Find the reference roles in ``points`` and calibrate from them.

        Invalidates when the roles are incomplete.
        """
        refs = find_reference_points(points)
        if refs is None:
            self.invalidate()
            return False
        return self.calibrate(refs.pixel_triplet(), refs.real_triplet())

    def transform(self, px: float, py: float) -> Pair:
        """Map a pixel position to real coordinates; ``(0.0, 0.0)`` when invalid."""
        if self._matrix is None:
            return (0.0, 0.0)
        return self._matrix.apply(px, py)
