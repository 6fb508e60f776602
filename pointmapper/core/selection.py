"""Selection of recognition points.

GeometricSelector re-evaluates ``selected`` for every point (it replaces
the selection, it does not add to it):
    - select_in_rectangle: closed rectangle, inclusive bounds
    - select_in_polygon: even-odd ray casting, >= 3 vertices

Whole-set helpers cover the remaining selection gestures: select all /
none, select unlabeled, and click selection with an optional multi-select
modifier.
"""

from __future__ import annotations

import logging
from typing import Sequence

from pointmapper.core.points import PointStore, RecognitionPoint
from pointmapper.utils.geometry import Vertex, point_in_polygon, point_in_rect

logger = logging.getLogger(__name__)


class GeometricSelector:
    """Rectangle (marquee) and polygon (lasso) selection."""

    @staticmethod
    def select_in_rectangle(
        points: Sequence[RecognitionPoint],
        min_x: float,
        min_y: float,
        max_x: float,
        max_y: float,
    ) -> int:
        """Select exactly the points inside the rectangle.

        Corners may be given in any order.

        Returns
        -------
        int
            Number of selected points.
        """
        x0, x1 = sorted((min_x, max_x))
        y0, y1 = sorted((min_y, max_y))
        count = 0
        for p in points:
            p.selected = point_in_rect(p.pixel_x, p.pixel_y, x0, y0, x1, y1)
            count += p.selected
        logger.debug("Rectangle (%.1f, %.1f)-(%.1f, %.1f) selected %d", x0, y0, x1, y1, count)
        return count

    @staticmethod
    def select_in_polygon(points: Sequence[RecognitionPoint], polygon: Sequence[Vertex]) -> int:
        """Select exactly the points inside ``polygon``.

        Raises
        ------
        ValueError
            If ``polygon`` has fewer than 3 vertices (nothing is changed).
        """
        if len(polygon) < 3:
            raise ValueError(f"Polygon needs >= 3 vertices, got {len(polygon)}")
        count = 0
        for p in points:
            p.selected = point_in_polygon(p.pixel_x, p.pixel_y, polygon)
            count += p.selected
        logger.debug("Polygon with %d vertices selected %d", len(polygon), count)
        return count


def select_all(points: Sequence[RecognitionPoint], selected: bool = True) -> None:
    for p in points:
        p.selected = selected


def select_unlabeled(points: Sequence[RecognitionPoint]) -> int:
    """Select points without a label, deselect labeled ones."""
    count = 0
    for p in points:
        p.selected = not p.label
        count += p.selected
    return count


def all_selected(points: Sequence[RecognitionPoint]) -> bool:
    """State of a "select all" toggle: False for an empty set."""
    return bool(points) and all(p.selected for p in points)


def click_select(store: PointStore, point_id: int, multi: bool = False) -> RecognitionPoint | None:
    """Apply a click on a recognition point.

    ``multi`` toggles just that point; otherwise it becomes the only
    selected point.  Fires ``point_selected``.  Unknown ids are ignored.
    """
    target = store.get_recognition(point_id)
    if target is None:
        return None
    if multi:
        target.selected = not target.selected
    else:
        for p in store.recognition_points:
            p.selected = False
        target.selected = True
    store.notify_selected(target)
    return target
