"""Representative palette extraction and eyedropper color bookkeeping.

Algorithm (PaletteExtractor.extract):
    1. Sample the buffer on a regular grid (``sample_stride`` in x and y)
    2. Quantize each channel to 4 bits (value >> 4; 4096 bins)
    3. Rank bins by descending count; ties keep first-seen (row-major) order
    4. Represent a bin by its midpoint, level * 16 + 8 per channel
    5. Greedily accept bins whose distance to every accepted color is
       >= ``distinct_threshold``, until ``max_colors`` are accepted

An optional brightness threshold drops light colors (paper, background)
before the distinctness test.  It is off unless configured.
"""

from __future__ import annotations

import logging
from typing import Iterable, Sequence

import numpy as np

from pointmapper.utils.color import Color, color_distance, perceived_brightness

logger = logging.getLogger(__name__)

QUANT_SHIFT = 4
DEFAULT_DISTINCT_THRESHOLD = 40.0
DEFAULT_MERGE_THRESHOLD = 12.0
DEFAULT_PICK_DEDUP = 8.0


def _bin_color(key: int) -> Color:
    rq = (key >> 8) & 0xF
    gq = (key >> 4) & 0xF
    bq = key & 0xF
    return Color(rq * 16 + 8, gq * 16 + 8, bq * 16 + 8)


def ranked_bins(pixels: np.ndarray, sample_stride: int) -> list[tuple[int, int]]:
    """Quantized bins of the sampled grid as ``(key, count)``, most frequent first.

    Parameters
    ----------
    pixels : np.ndarray
        (H, W, 3) uint8
    sample_stride : int
        Grid step in both axes, >= 1

    Returns
    -------
    list[tuple[int, int]]
        ``key = (r>>4)<<8 | (g>>4)<<4 | (b>>4)``
    """
    if sample_stride < 1:
        raise ValueError(f"sample_stride must be >= 1, got {sample_stride}")
    if pixels.ndim != 3 or pixels.shape[2] != 3:
        raise ValueError(f"Expected (H, W, 3) pixels, got shape {pixels.shape}")

    sample = pixels[::sample_stride, ::sample_stride].reshape(-1, 3)
    if sample.size == 0:
        return []

    q = sample.astype(np.int32) >> QUANT_SHIFT
    keys = (q[:, 0] << 8) | (q[:, 1] << 4) | q[:, 2]
    uniq, first_idx, counts = np.unique(keys, return_index=True, return_counts=True)
    order = np.lexsort((first_idx, -counts))
    return [(int(uniq[i]), int(counts[i])) for i in order]


class PaletteExtractor:
    """Frequency-ranked, mutually distinct representative colors.

    Parameters
    ----------
    distinct_threshold : float
        Minimum distance between any two palette colors.
    brightness_threshold : float | None
        Drop colors with perceived brightness above this; None keeps all.
    """

    def __init__(
        self,
        distinct_threshold: float = DEFAULT_DISTINCT_THRESHOLD,
        brightness_threshold: float | None = None,
    ) -> None:
        self.distinct_threshold = distinct_threshold
        self.brightness_threshold = brightness_threshold

    def is_too_light(self, color: Color) -> bool:
        return (
            self.brightness_threshold is not None
            and perceived_brightness(color) > self.brightness_threshold
        )

    def extract(self, pixels: np.ndarray, max_colors: int = 10, sample_stride: int = 4) -> list[Color]:
        """Return at most ``max_colors`` distinct colors in frequency order."""
        if max_colors < 1:
            raise ValueError(f"max_colors must be >= 1, got {max_colors}")

        palette: list[Color] = []
        for key, _count in ranked_bins(pixels, sample_stride):
            candidate = _bin_color(key)
            if self.is_too_light(candidate):
                continue
            if all(color_distance(candidate, c) >= self.distinct_threshold for c in palette):
                palette.append(candidate)
                if len(palette) >= max_colors:
                    break

        logger.debug("Extracted %d palette colors (max %d, stride %d)", len(palette), max_colors, sample_stride)
        return palette


def unify_colors(
    palette: Iterable[Color],
    picked: Iterable[Color],
    merge_threshold: float = DEFAULT_MERGE_THRESHOLD,
) -> list[Color]:
    """Picked colors first, then palette colors, skipping near-duplicates."""
    out: list[Color] = []
    for candidate in [*picked, *palette]:
        if all(color_distance(candidate, c) >= merge_threshold for c in out):
            out.append(candidate)
    return out


class PickedColors:
    """Colors collected with the eyedropper, in pick order.

    Parameters
    ----------
    dedup_distance : float
        A pick closer than this to an existing pick is ignored.
    extractor : PaletteExtractor | None
        When given, its brightness filter also rejects light picks.
    """

    def __init__(
        self,
        dedup_distance: float = DEFAULT_PICK_DEDUP,
        extractor: PaletteExtractor | None = None,
    ) -> None:
        self.dedup_distance = dedup_distance
        self._extractor = extractor
        self._colors: list[Color] = []

    @property
    def colors(self) -> list[Color]:
        return list(self._colors)

    def __len__(self) -> int:
        return len(self._colors)

    def contains(self, color: Color) -> bool:
        return any(color_distance(c, color) < self.dedup_distance for c in self._colors)

    def add(self, color: Color) -> bool:
        """Record a pick; False if it was too light or already present."""
        if self._extractor is not None and self._extractor.is_too_light(color):
            logger.warning("Ignored pick %s: too light", color.to_hex())
            return False
        if self.contains(color):
            return False
        self._colors.append(color)
        return True

    def clear(self) -> None:
        self._colors = []

    def preselected(self, choices: Sequence[Color]) -> list[bool]:
        """Which entries of a unified list correspond to a pick (for pre-checking)."""
        return [self.contains(c) for c in choices]
