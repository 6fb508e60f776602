"""Annotation session: one image, its points, calibration and active tool.

The session is the explicit context every user action runs against (no
module-level state).  It wires the core components together and applies
the interaction rules:

    - Calibration is re-validated after every location-point add, remove
      or real-coordinate edit; on success every recognition point is
      re-derived.
    - Tools form a state machine with mutually exclusive states.  Only
      ``idle`` and ``placing-location`` work without a valid calibration;
      losing calibration drops any other active tool back to ``idle``.
    - Gated actions attempted without calibration are refused (logged,
      return None); they do not raise.
    - Input errors (empty label, nothing selected, no colors, no image,
      bad density or seed) raise InputError before any mutation.
"""

from __future__ import annotations

import logging
from enum import Enum
from pathlib import Path
from typing import Callable, Sequence, Union

from pointmapper.core.calibration import AffineCalibrator
from pointmapper.core.export import CoordinateFormat, Exporter, ExportFormat
from pointmapper.core.palette import PaletteExtractor, PickedColors, unify_colors
from pointmapper.core.points import LocationPoint, PointStore, RecognitionPoint
from pointmapper.core.region import RegionResult, RegionSelector
from pointmapper.core import selection
from pointmapper.imaging import PixelBuffer
from pointmapper.utils import fs
from pointmapper.utils.color import Color
from pointmapper.utils.logging_config import action_context
from pointmapper.utils.validators import (
    LocationPointEntry,
    ProjectV1,
    RecognitionPointEntry,
    SettingsV1,
    load_project,
    project_to_dict,
    validate_density,
)

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------


class SessionError(Exception):
    """Base class for errors raised by session actions."""

    pass


class InputError(SessionError, ValueError):
    """The action's input is unusable; nothing was changed."""

    pass


# ---------------------------------------------------------------------------
# Tool state machine
# ---------------------------------------------------------------------------


class ToolState(Enum):
    IDLE = "idle"
    PLACING_LOCATION = "placing-location"
    PLACING_RECOGNITION = "placing-recognition"
    COLOR_PICK = "color-pick"
    MARQUEE = "marquee"
    LASSO = "lasso"
    PAN = "pan"

    @property
    def needs_calibration(self) -> bool:
        return self not in (ToolState.IDLE, ToolState.PLACING_LOCATION)


# ---------------------------------------------------------------------------
# Session
# ---------------------------------------------------------------------------


class Session:
    """State and actions of one annotation session.

    Parameters
    ----------
    settings : SettingsV1, optional
        Validated settings; built-in defaults when omitted.
    buffer : PixelBuffer, optional
        Decoded image; color tools refuse to run without one.
    """

    def __init__(self, settings: SettingsV1 | None = None, buffer: PixelBuffer | None = None) -> None:
        self.settings = settings or SettingsV1()
        self.store = PointStore()
        self.calibrator = AffineCalibrator(epsilon=self.settings.calibration.epsilon)
        self.buffer = buffer
        self.image: str | None = None
        self.tool = ToolState.IDLE

        pal = self.settings.palette
        self.extractor = PaletteExtractor(pal.distinct_threshold, pal.brightness_threshold)
        self.picked = PickedColors(pal.pick_dedup, extractor=self.extractor)
        scan = self.settings.grid_scan
        grow = self.settings.region_grow
        self.regions = RegionSelector(
            scan_tolerance=scan.tolerance,
            scan_max_points=scan.max_points,
            grow_tolerance=grow.tolerance,
            grow_max_scan=grow.max_scan,
            grow_max_points=grow.max_points,
        )
        exp = self.settings.export
        self.exporter = Exporter(CoordinateFormat(exp.precision, exp.round), exp.unlabeled_name)

    @property
    def calibrated(self) -> bool:
        return self.calibrator.is_valid

    def set_buffer(self, buffer: PixelBuffer | None) -> None:
        self.buffer = buffer

    def _require_buffer(self) -> PixelBuffer:
        if self.buffer is None:
            raise InputError("No image loaded: pixel data and dimensions are unavailable")
        return self.buffer

    def _gate(self, action: str) -> bool:
        if not self.calibrated:
            logger.warning("Refused %s: calibration is not valid", action)
            return False
        return True

    # -- Tools ----------------------------------------------------------------

    def activate_tool(self, tool: ToolState) -> ToolState:
        """Switch tools; activating the active tool again returns to idle.

        A tool that needs calibration is refused while uncalibrated and
        the current state is kept.
        """
        if tool is self.tool:
            self.tool = ToolState.IDLE
        elif tool.needs_calibration and not self.calibrated:
            logger.warning("Tool %s needs a valid calibration", tool.value)
        else:
            self.tool = tool
        return self.tool

    def deactivate_tool(self) -> None:
        self.tool = ToolState.IDLE

    def click(self, px: float, py: float) -> LocationPoint | RecognitionPoint | Color | None:
        """Route an image click (natural pixel coordinates) to the active tool."""
        if self.tool is ToolState.PLACING_LOCATION:
            return self.add_location_point(px, py)
        if self.tool is ToolState.PLACING_RECOGNITION:
            return self.add_recognition_point(px, py)
        if self.tool is ToolState.COLOR_PICK:
            return self.pick_color(px, py)
        return None

    # -- Calibration ----------------------------------------------------------

    def revalidate_calibration(self) -> bool:
        """Recompute calibration from the location points."""
        if self.calibrator.calibrate_from_points(self.store.location_points):
            self.store.update_recognition_coordinates(self.calibrator)
            logger.info("Calibration valid: %s", self.calibrator.matrix)
            return True

        if self.tool.needs_calibration:
            logger.info("Calibration lost, leaving tool %s", self.tool.value)
            self.tool = ToolState.IDLE
        return False

    def add_location_point(self, px: float, py: float) -> LocationPoint:
        point = self.store.add_location_point(px, py)
        self.revalidate_calibration()
        return point

    def set_location_real(self, point_id: str, real_x: float, real_y: float) -> bool:
        changed = self.store.update_location_point(point_id, real_x, real_y)
        if changed:
            self.revalidate_calibration()
        return changed

    def remove_location_point(self, point_id: str) -> bool:
        removed = self.store.remove_location_point(point_id)
        if removed:
            self.revalidate_calibration()
        return removed

    # -- Recognition points ---------------------------------------------------

    def add_recognition_point(self, px: float, py: float) -> RecognitionPoint | None:
        if not self._gate("add recognition point"):
            return None
        return self.store.add_recognition_point(px, py, self.calibrator)

    def remove_recognition_point(self, point_id: int) -> bool:
        return self.store.remove_recognition_point(point_id)

    def delete_selected(self) -> int:
        return self.store.remove_selected()

    def label_selected(self, label: str) -> int:
        """Label every selected point.

        Raises
        ------
        InputError
            If nothing is selected or the label is blank.
        """
        if not self.store.selected_points:
            raise InputError("Select at least one point to label")
        label = label.strip()
        if not label:
            raise InputError("Label must not be empty")
        return self.store.set_label_for_selected(label)

    # -- Selection ------------------------------------------------------------

    def select_rectangle(self, x0: float, y0: float, x1: float, y1: float) -> int:
        count = selection.GeometricSelector.select_in_rectangle(
            self.store.recognition_points, x0, y0, x1, y1
        )
        self.store.notify_changed()
        return count

    def select_polygon(self, vertices: Sequence[tuple[float, float]]) -> int:
        if len(vertices) < 3:
            raise InputError(f"Lasso needs at least 3 vertices, got {len(vertices)}")
        count = selection.GeometricSelector.select_in_polygon(self.store.recognition_points, vertices)
        self.store.notify_changed()
        return count

    def select_all(self, selected: bool = True) -> None:
        selection.select_all(self.store.recognition_points, selected)
        self.store.notify_changed()

    def select_unlabeled(self) -> int:
        count = selection.select_unlabeled(self.store.recognition_points)
        self.store.notify_changed()
        return count

    def click_point(self, point_id: int, multi: bool = False) -> RecognitionPoint | None:
        return selection.click_select(self.store, point_id, multi)

    # -- Color tools ----------------------------------------------------------

    def extract_palette(self, max_colors: int | None = None, sample_stride: int | None = None) -> list[Color]:
        buffer = self._require_buffer()
        pal = self.settings.palette
        return self.extractor.extract(
            buffer.pixels,
            max_colors=pal.max_colors if max_colors is None else max_colors,
            sample_stride=pal.sample_stride if sample_stride is None else sample_stride,
        )

    def color_choices(self) -> list[Color]:
        """Palette merged with eyedropper picks (picks first)."""
        return unify_colors(self.extract_palette(), self.picked.colors, self.settings.palette.merge_threshold)

    def pick_color(self, px: float, py: float) -> Color | None:
        """Sample the pixel under the cursor into the picked colors.

        Returns the sampled color, or None when the pick was refused.
        """
        buffer = self._require_buffer()
        if not self._gate("pick color"):
            return None
        color = buffer.get_pixel(px, py)
        if self.picked.add(color):
            logger.info("Picked %s at (%.0f, %.0f)", color.to_hex(), px, py)
        return color

    def _density(self, density: int | None) -> int:
        if density is None:
            return self.settings.grid_scan.default_density
        try:
            return validate_density(density)
        except ValueError as e:
            raise InputError(str(e)) from e

    def apply_colors(
        self,
        colors: Sequence[Color],
        density: int | None = None,
        should_cancel: Callable[[], bool] | None = None,
    ) -> RegionResult | None:
        """Grid-scan the image for ``colors`` and add a point per match."""
        if not colors:
            raise InputError("Select at least one color")
        density = self._density(density)
        buffer = self._require_buffer()
        if not self._gate("color recognition"):
            return None

        with action_context(action="scan", density=density):
            result = self.regions.scan_matches(buffer.pixels, colors, density, should_cancel)
            self.store.add_recognition_points(result.points, self.calibrator)
            logger.info("Color recognition added %d points", len(result.points))
        return result

    def grow_region(
        self,
        seed: tuple[float, float],
        color: Color | None = None,
        density: int | None = None,
        should_cancel: Callable[[], bool] | None = None,
    ) -> RegionResult | None:
        """Flood-fill from ``seed`` and add a point per emitted pixel.

        ``color`` defaults to the pixel under the seed.
        """
        density = self._density(density)
        buffer = self._require_buffer()
        sx, sy = int(seed[0]), int(seed[1])
        if not (0 <= sx < buffer.width and 0 <= sy < buffer.height):
            raise InputError(f"Seed ({sx}, {sy}) is outside the {buffer.width}x{buffer.height} image")
        if not self._gate("region growth"):
            return None

        target = color if color is not None else buffer.get_pixel(sx, sy)
        with action_context(action="grow", density=density):
            result = self.regions.grow_region(buffer.pixels, (sx, sy), target, density, should_cancel)
            self.store.add_recognition_points(result.points, self.calibrator)
            logger.info("Region growth from (%d, %d) added %d points", sx, sy, len(result.points))
        return result

    # -- Export ---------------------------------------------------------------

    def export(self, fmt: ExportFormat) -> str:
        return self.exporter.export(fmt, self.store.recognition_points)


# ---------------------------------------------------------------------------
# Project files
# ---------------------------------------------------------------------------


def load_session(
    path: Union[str, Path],
    settings: SettingsV1 | None = None,
    load_image: bool = True,
) -> Session:
    """Rebuild a session from a pointmapper_project.v1 file.

    Location points are restored first and calibration is solved once;
    recognition points then receive derived real coordinates.  Recognition
    ids are renumbered from 1 in file order.

    Raises
    ------
    FileNotFoundError
        If the project or its image is missing.
    ValueError
        If the project fails validation.
    """
    project = load_project(path)
    buffer = PixelBuffer.from_file(project.image_path(path)) if load_image else None
    session = Session(settings, buffer=buffer)
    session.image = project.image

    for entry in project.location_points:
        point = session.store.add_location_point(entry.pixel_x, entry.pixel_y)
        session.store.update_location_point(point.id, entry.real_x, entry.real_y)
    session.revalidate_calibration()

    for entry in project.recognition_points:
        session.store.add_recognition_point(
            entry.pixel_x, entry.pixel_y, session.calibrator, label=entry.label
        )

    logger.info(
        "Loaded project %s: %d location, %d recognition points (calibrated=%s)",
        path, len(project.location_points), len(project.recognition_points), session.calibrated,
    )
    return session


def project_from_session(session: Session, image: str) -> ProjectV1:
    return ProjectV1(
        image=image,
        location_points=[
            LocationPointEntry(pixel_x=p.pixel_x, pixel_y=p.pixel_y, real_x=p.real_x, real_y=p.real_y)
            for p in session.store.location_points
        ],
        recognition_points=[
            RecognitionPointEntry(pixel_x=p.pixel_x, pixel_y=p.pixel_y, label=p.label)
            for p in session.store.recognition_points
        ],
    )


def save_session(path: Union[str, Path], session: Session, image: str | None = None) -> None:
    """Write the session's points to a project file atomically.

    ``image`` defaults to the path the session was loaded with.
    """
    image = image or session.image
    if not image:
        raise InputError("Project needs an image path")
    fs.atomic_yaml_dump(project_to_dict(project_from_session(session, image)), path)
    logger.info("Saved project %s", path)
