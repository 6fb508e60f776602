"""Point-in-shape tests in pixel space.

Provides:
    - point_in_rect: closed (inclusive) axis-aligned rectangle test
    - point_in_polygon: even-odd ray casting against a closed polygon

Degenerate polygons (self-intersecting, zero area) are not special-cased;
the result is whatever ray casting yields.
"""

from __future__ import annotations

from typing import Sequence

Vertex = tuple[float, float]


def point_in_rect(
    x: float,
    y: float,
    min_x: float,
    min_y: float,
    max_x: float,
    max_y: float,
) -> bool:
    """True when (x, y) lies within the rectangle, edges included."""
    return min_x <= x <= max_x and min_y <= y <= max_y


def point_in_polygon(x: float, y: float, polygon: Sequence[Vertex]) -> bool:
    """Even-odd ray casting.

    Parameters
    ----------
    x, y : float
        Query point.
    polygon : Sequence[tuple[float, float]]
        Vertices in order; the closing edge (last → first) is implicit.

    Returns
    -------
    bool
        True if a horizontal ray towards +x crosses the boundary an odd
        number of times.

    Raises
    ------
    ValueError
        If fewer than 3 vertices are given.
    """
    n = len(polygon)
    if n < 3:
        raise ValueError(f"Polygon needs >= 3 vertices, got {n}")

    inside = False
    j = n - 1
    for i in range(n):
        xi, yi = polygon[i]
        xj, yj = polygon[j]
        # yi != yj whenever the first test passes, so the division is safe
        if (yi > y) != (yj > y) and x < (xj - xi) * (y - yi) / (yj - yi) + xi:
            inside = not inside
        j = i
    return inside
