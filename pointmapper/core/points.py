"""Point annotation data model.

PointStore owns two ordered collections:
    - location points: calibration references, opaque string ids derived
      from a nanosecond timestamp (unique and increasing in insertion order)
    - recognition points: labeled samples, integer ids from 1 upward that
      are never reused, even after deletion

The store performs no rendering.  It emits notifications to subscribers:
    - "point_added"(kind, point) with kind "location" or "recognition"
    - "point_selected"(point)
    - "changed"() after any other mutation

Mutators replace the underlying lists rather than editing them in place,
so a caller iterating a previously returned snapshot is never disturbed.
Removing an unknown id is a no-op.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Any, Callable, Iterable

from pointmapper.core.calibration import AffineCalibrator

logger = logging.getLogger(__name__)

EVENTS = ("point_added", "point_selected", "changed")


# ---------------------------------------------------------------------------
# Points
# ---------------------------------------------------------------------------


@dataclass(slots=True)
class LocationPoint:
    """Calibration reference: pixel position plus user-entered real coords."""

    id: str
    pixel_x: float
    pixel_y: float
    real_x: float = 0.0
    real_y: float = 0.0


@dataclass(slots=True)
class RecognitionPoint:
    """Sample point; ``real_x``/``real_y`` are derived from calibration."""

    id: int
    pixel_x: float
    pixel_y: float
    real_x: float = 0.0
    real_y: float = 0.0
    selected: bool = False
    label: str = ""


# ---------------------------------------------------------------------------
# Store
# ---------------------------------------------------------------------------


class PointStore:
    """Ordered location and recognition points with selection/label state."""

    def __init__(self) -> None:
        self._location: list[LocationPoint] = []
        self._recognition: list[RecognitionPoint] = []
        self._next_recognition_id = 1
        self._last_location_stamp = 0
        self._listeners: dict[str, list[Callable[..., Any]]] = {name: [] for name in EVENTS}

    # -- Notifications ------------------------------------------------------

    def subscribe(self, event: str, callback: Callable[..., Any]) -> None:
        if event not in self._listeners:
            raise ValueError(f"Unknown event {event!r}; expected one of {EVENTS}")
        self._listeners[event].append(callback)

    def unsubscribe(self, event: str, callback: Callable[..., Any]) -> None:
        if event in self._listeners and callback in self._listeners[event]:
            self._listeners[event].remove(callback)

    def _emit(self, event: str, *args: Any) -> None:
        for callback in list(self._listeners[event]):
            callback(*args)

    def notify_selected(self, point: RecognitionPoint) -> None:
        """Announce a user-driven selection change on ``point``."""
        self._emit("point_selected", point)

    def notify_changed(self) -> None:
        self._emit("changed")

    # -- Read access ----------------------------------------------------------

    @property
    def location_points(self) -> list[LocationPoint]:
        """Snapshot of location points in insertion order."""
        return list(self._location)

    @property
    def recognition_points(self) -> list[RecognitionPoint]:
        """Snapshot of recognition points in insertion order."""
        return list(self._recognition)

    @property
    def selected_points(self) -> list[RecognitionPoint]:
        return [p for p in self._recognition if p.selected]

    def get_location(self, point_id: str) -> LocationPoint | None:
        return next((p for p in self._location if p.id == point_id), None)

    def get_recognition(self, point_id: int) -> RecognitionPoint | None:
        return next((p for p in self._recognition if p.id == point_id), None)

    def find_recognition(self, term: str) -> list[RecognitionPoint]:
        """Recognition points whose id contains ``term``; all points for an empty term."""
        term = term.strip()
        if not term:
            return self.recognition_points
        return [p for p in self._recognition if term in str(p.id)]

    # -- Location points ------------------------------------------------------

    def _new_location_id(self) -> str:
        stamp = max(time.time_ns(), self._last_location_stamp + 1)
        self._last_location_stamp = stamp
        return str(stamp)

    def add_location_point(self, px: float, py: float) -> LocationPoint:
        point = LocationPoint(id=self._new_location_id(), pixel_x=float(px), pixel_y=float(py))
        self._location = [*self._location, point]
        logger.debug("Added location point %s at (%.1f, %.1f)", point.id, px, py)
        self._emit("point_added", "location", point)
        return point

    def update_location_point(self, point_id: str, real_x: float, real_y: float) -> bool:
        """Set the real coordinates of a location point; False if unknown."""
        point = self.get_location(point_id)
        if point is None:
            return False
        point.real_x = float(real_x)
        point.real_y = float(real_y)
        self._emit("changed")
        return True

    def remove_location_point(self, point_id: str) -> bool:
        remaining = [p for p in self._location if p.id != point_id]
        if len(remaining) == len(self._location):
            return False
        self._location = remaining
        self._emit("changed")
        return True

    # -- Recognition points ---------------------------------------------------

    def add_recognition_point(
        self,
        px: float,
        py: float,
        calibrator: AffineCalibrator | None = None,
        label: str = "",
    ) -> RecognitionPoint:
        """Append a recognition point.

        Real coordinates are derived immediately when ``calibrator`` is
        valid, otherwise they stay at (0, 0) until the next
        ``update_recognition_coordinates``.
        """
        point = self._make_recognition(px, py, calibrator, label)
        self._recognition = [*self._recognition, point]
        self._emit("point_added", "recognition", point)
        return point

    def add_recognition_points(
        self,
        coords: Iterable[tuple[float, float]],
        calibrator: AffineCalibrator | None = None,
    ) -> list[RecognitionPoint]:
        """Bulk variant of ``add_recognition_point`` (one list swap)."""
        added = [self._make_recognition(x, y, calibrator, "") for x, y in coords]
        self._recognition = [*self._recognition, *added]
        for point in added:
            self._emit("point_added", "recognition", point)
        logger.debug("Added %d recognition points", len(added))
        return added

    def _make_recognition(
        self,
        px: float,
        py: float,
        calibrator: AffineCalibrator | None,
        label: str,
    ) -> RecognitionPoint:
        point = RecognitionPoint(
            id=self._next_recognition_id,
            pixel_x=float(px),
            pixel_y=float(py),
            label=label,
        )
        self._next_recognition_id += 1
        if calibrator is not None and calibrator.is_valid:
            point.real_x, point.real_y = calibrator.transform(point.pixel_x, point.pixel_y)
        return point

    def remove_recognition_point(self, point_id: int) -> bool:
        remaining = [p for p in self._recognition if p.id != point_id]
        if len(remaining) == len(self._recognition):
            return False
        self._recognition = remaining
        self._emit("changed")
        return True

    def remove_selected(self) -> int:
        """Delete every selected recognition point; returns the count removed."""
        remaining = [p for p in self._recognition if not p.selected]
        removed = len(self._recognition) - len(remaining)
        if removed:
            self._recognition = remaining
            logger.debug("Removed %d selected points", removed)
            self._emit("changed")
        return removed

    def set_label_for_selected(self, label: str) -> int:
        """Overwrite the label of every selected point; selection is kept."""
        count = 0
        for point in self._recognition:
            if point.selected:
                point.label = label
                count += 1
        if count:
            self._emit("changed")
        return count

    def update_recognition_coordinates(self, calibrator: AffineCalibrator) -> None:
        """Re-derive real coordinates of every recognition point."""
        for point in self._recognition:
            point.real_x, point.real_y = calibrator.transform(point.pixel_x, point.pixel_y)
        self._emit("changed")
