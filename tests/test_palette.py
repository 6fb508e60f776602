"""Tests for pointmapper.core.palette.

Covers quantized frequency ranking, distinctness, the optional brightness
filter, eyedropper picks and palette/pick unification.

Run:
    pytest tests/test_palette.py -v
"""

from __future__ import annotations

import numpy as np
import pytest

from pointmapper.core.palette import PaletteExtractor, PickedColors, ranked_bins, unify_colors
from pointmapper.utils.color import Color

from conftest import solid


class TestRankedBins:
    def test_counts_sampled_grid(self) -> None:
        bins = ranked_bins(solid(8, 8, (0, 0, 0)), sample_stride=4)
        assert bins == [(0, 4)]

    def test_ties_keep_first_seen_order(self) -> None:
        img = solid(4, 2, (250, 250, 250))
        img[:, :2] = (0, 0, 200)
        keys = [key for key, _ in ranked_bins(img, sample_stride=1)]
        assert keys == [(0 << 8) | (0 << 4) | 12, 0xFFF]

    def test_invalid_stride(self) -> None:
        with pytest.raises(ValueError):
            ranked_bins(solid(4, 4), sample_stride=0)


class TestPaletteExtractor:
    def test_solid_image_gives_bin_midpoint(self) -> None:
        palette = PaletteExtractor().extract(solid(16, 16, (200, 30, 30)))
        assert palette == [Color(200, 24, 24)]

    def test_frequency_order(self) -> None:
        img = solid(40, 40, (200, 30, 30))
        img[:, 30:] = (30, 30, 200)
        palette = PaletteExtractor().extract(img, sample_stride=1)
        assert palette == [Color(200, 24, 24), Color(24, 24, 200)]

    def test_similar_colors_collapse(self) -> None:
        img = solid(20, 20, (10, 10, 10))
        img[:, 15:] = (20, 20, 20)
        palette = PaletteExtractor().extract(img, sample_stride=1)
        assert palette == [Color(8, 8, 8)]

    def test_max_colors_cap(self) -> None:
        img = np.zeros((4, 64, 3), dtype=np.uint8)
        for i in range(16):
            img[:, i * 4:(i + 1) * 4] = (i * 16, 255 - i * 16, (i * 64) % 256)
        palette = PaletteExtractor().extract(img, max_colors=3, sample_stride=1)
        assert len(palette) == 3

    def test_pairwise_distinct(self) -> None:
        rng = np.random.default_rng(0)
        img = rng.integers(0, 256, size=(64, 64, 3), dtype=np.uint8)
        palette = PaletteExtractor().extract(img, max_colors=10, sample_stride=2)
        for i, a in enumerate(palette):
            for b in palette[i + 1:]:
                dist = np.sqrt(sum((x - y) ** 2 for x, y in zip(a.as_tuple(), b.as_tuple())))
                assert dist >= 40

    def test_brightness_filter_off_by_default(self) -> None:
        img = solid(8, 8)
        img[:2] = (0, 0, 0)
        assert Color(248, 248, 248) in PaletteExtractor().extract(img, sample_stride=1)

    def test_brightness_filter_drops_light(self) -> None:
        img = solid(8, 8)
        img[:2] = (0, 0, 0)
        palette = PaletteExtractor(brightness_threshold=220).extract(img, sample_stride=1)
        assert palette == [Color(8, 8, 8)]

    def test_invalid_max_colors(self) -> None:
        with pytest.raises(ValueError):
            PaletteExtractor().extract(solid(4, 4), max_colors=0)


class TestPickedColors:
    def test_dedup(self) -> None:
        picked = PickedColors(dedup_distance=8)
        assert picked.add(Color(100, 100, 100))
        assert not picked.add(Color(104, 100, 100))
        assert picked.add(Color(110, 100, 100))
        assert len(picked) == 2

    def test_brightness_rejection(self) -> None:
        picked = PickedColors(extractor=PaletteExtractor(brightness_threshold=220))
        assert not picked.add(Color(250, 250, 250))
        assert picked.colors == []

    def test_preselected(self) -> None:
        picked = PickedColors()
        picked.add(Color(10, 10, 10))
        assert picked.preselected([Color(12, 10, 10), Color(200, 0, 0)]) == [True, False]

    def test_clear(self) -> None:
        picked = PickedColors()
        picked.add(Color(1, 2, 3))
        picked.clear()
        assert len(picked) == 0


class TestUnifyColors:
    def test_picked_first_then_palette(self) -> None:
        palette = [Color(200, 24, 24), Color(24, 24, 200)]
        picked = [Color(0, 255, 0)]
        assert unify_colors(palette, picked) == [Color(0, 255, 0), *palette]

    def test_near_duplicates_dropped(self) -> None:
        palette = [Color(200, 24, 24), Color(24, 24, 200)]
        picked = [Color(205, 20, 25)]
        unified = unify_colors(palette, picked, merge_threshold=12)
        assert unified == [Color(205, 20, 25), Color(24, 24, 200)]
