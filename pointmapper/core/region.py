"""Color-driven point generation over a pixel buffer.

Two strategies, both bounded so a large image cannot hang the caller:

Grid scan (``scan_matches``)
    Visit a regular grid with ``step = max(2, 22 - 2·density)`` in row-major
    order and accept a pixel whose distance to *any* target color is
    <= tolerance (40).  Stops after ``max_points`` (4000) coordinates.

Flood fill (``grow_region``)
    Breadth-first growth from a seed over 4-connected pixels within a
    tighter tolerance (10) of one target color, using an explicit FIFO
    queue and a w·h visited bitmap (no recursion).  A matching pixel is
    emitted only when x and y are both multiples of
    ``step = max(1, 22 - 2·density)``.  Stops when ``max_scan`` (200000)
    pixels were visited or ``max_points`` (4000) were emitted.

Hitting a cap is a silent truncation: the partial result is valid and is
flagged via ``RegionResult.truncated``.  Both loops poll an optional
``should_cancel`` callable between chunks of work.
"""

from __future__ import annotations

import logging
from collections import deque
from dataclasses import dataclass, field
from typing import Callable, Sequence

import numpy as np

from pointmapper.utils.color import Color, distance_sq_map
from pointmapper.utils.validators import validate_density

logger = logging.getLogger(__name__)

SCAN_TOLERANCE = 40.0
GROW_TOLERANCE = 10.0
MAX_POINTS = 4000
MAX_SCAN = 200_000

# Sampled grid rows per vectorized chunk / BFS pops between cancel polls
SCAN_CHUNK_ROWS = 256
CANCEL_POLL_EVERY = 4096

CancelCheck = Callable[[], bool]


@dataclass
class RegionResult:
    """Coordinates produced by a scan or growth.

    Parameters
    ----------
    points : list[tuple[int, int]]
        Pixel coordinates (x, y) in emission order.
    scanned : int
        Pixels examined (grid samples or flood-fill visits).
    truncated : bool
        A point or scan cap stopped the work early.
    cancelled : bool
        ``should_cancel`` returned True before completion.
    """

    points: list[tuple[int, int]] = field(default_factory=list)
    scanned: int = 0
    truncated: bool = False
    cancelled: bool = False

    def __len__(self) -> int:
        return len(self.points)


def scan_step(density: int) -> int:
    """Grid step for a density in [1, 10] (1 → 20 px, 10 → 2 px)."""
    return max(2, 22 - validate_density(density) * 2)


def grow_step(density: int) -> int:
    """Emission step for region growth (1 → 20 px, 10 → 2 px)."""
    return max(1, 22 - validate_density(density) * 2)


def _check_pixels(pixels: np.ndarray) -> tuple[int, int]:
    if pixels.ndim != 3 or pixels.shape[2] != 3:
        raise ValueError(f"Expected (H, W, 3) pixels, got shape {pixels.shape}")
    h, w = pixels.shape[:2]
    return w, h


class RegionSelector:
    """Grid-scan and flood-fill point generators with their caps.

    Parameters
    ----------
    scan_tolerance, scan_max_points
        Grid-scan matching distance and point cap.
    grow_tolerance, grow_max_scan, grow_max_points
        Flood-fill matching distance, visit cap and point cap.
    """

    def __init__(
        self,
        scan_tolerance: float = SCAN_TOLERANCE,
        scan_max_points: int = MAX_POINTS,
        grow_tolerance: float = GROW_TOLERANCE,
        grow_max_scan: int = MAX_SCAN,
        grow_max_points: int = MAX_POINTS,
    ) -> None:
        self.scan_tolerance = scan_tolerance
        self.scan_max_points = scan_max_points
        self.grow_tolerance = grow_tolerance
        self.grow_max_scan = grow_max_scan
        self.grow_max_points = grow_max_points

    # -- Grid scan ------------------------------------------------------------

    def scan_matches(
        self,
        pixels: np.ndarray,
        target_colors: Sequence[Color],
        density: int,
        should_cancel: CancelCheck | None = None,
    ) -> RegionResult:
        """Grid pixels within tolerance of any target color, row-major."""
        w, h = _check_pixels(pixels)
        step = scan_step(density)
        result = RegionResult()
        if not target_colors:
            return result

        tol_sq = self.scan_tolerance * self.scan_tolerance
        grid = pixels[::step, ::step]
        rows = grid.shape[0]

        for start in range(0, rows, SCAN_CHUNK_ROWS):
            if should_cancel is not None and should_cancel():
                result.cancelled = True
                break

            chunk = grid[start:start + SCAN_CHUNK_ROWS]
            mask = np.zeros(chunk.shape[:2], dtype=bool)
            for color in target_colors:
                mask |= distance_sq_map(chunk, color) <= tol_sq
            result.scanned += mask.size

            ys, xs = np.nonzero(mask)
            room = self.scan_max_points - len(result.points)
            # a full cap only truncates once another match turns up
            if len(ys) > room:
                ys, xs = ys[:room], xs[:room]
                result.truncated = True
            result.points.extend(
                (int(x) * step, (start + int(y)) * step) for y, x in zip(ys, xs)
            )
            if result.truncated:
                break

        if result.truncated:
            logger.warning("Grid scan stopped at the %d point cap", self.scan_max_points)
        logger.debug(
            "Grid scan %dx%d step=%d colors=%d → %d points",
            w, h, step, len(target_colors), len(result.points),
        )
        return result

    # -- Flood fill -----------------------------------------------------------

    def grow_region(
        self,
        pixels: np.ndarray,
        seed: tuple[int, int],
        target_color: Color,
        density: int,
        should_cancel: CancelCheck | None = None,
    ) -> RegionResult:
        """Breadth-first region growth from ``seed``.

        Raises
        ------
        ValueError
            If the seed lies outside the image or density is out of range.
        """
        w, h = _check_pixels(pixels)
        step = grow_step(density)
        sx, sy = int(seed[0]), int(seed[1])
        if not (0 <= sx < w and 0 <= sy < h):
            raise ValueError(f"Seed ({sx}, {sy}) outside image {w}x{h}")

        tol_sq = self.grow_tolerance * self.grow_tolerance
        match = (distance_sq_map(pixels, target_color) <= tol_sq).ravel().tobytes()
        visited = bytearray(w * h)
        queue: deque[int] = deque([sy * w + sx])

        result = RegionResult()
        points = result.points
        scanned = 0
        while queue:
            idx = queue.popleft()
            if visited[idx]:
                continue
            if scanned >= self.grow_max_scan:
                result.truncated = True
                break
            visited[idx] = 1
            scanned += 1
            if should_cancel is not None and scanned % CANCEL_POLL_EVERY == 0 and should_cancel():
                result.cancelled = True
                break
            if not match[idx]:
                continue

            y, x = divmod(idx, w)
            if x % step == 0 and y % step == 0:
                points.append((x, y))
                if len(points) >= self.grow_max_points:
                    result.truncated = True
                    break

            if x > 0 and not visited[idx - 1]:
                queue.append(idx - 1)
            if x < w - 1 and not visited[idx + 1]:
                queue.append(idx + 1)
            if y > 0 and not visited[idx - w]:
                queue.append(idx - w)
            if y < h - 1 and not visited[idx + w]:
                queue.append(idx + w)

        result.scanned = scanned
        if result.truncated:
            logger.warning(
                "Region growth truncated after %d visits / %d points (caps %d / %d)",
                scanned, len(points), self.grow_max_scan, self.grow_max_points,
            )
        logger.debug("Region growth from (%d, %d) step=%d → %d points", sx, sy, step, len(points))
        return result
