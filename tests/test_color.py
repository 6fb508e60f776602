"""Test RGB color value type and distance metrics.

Tests for pointmapper.utils.color:
    - Channel validation (range and type)
    - Hex / "R,G,B" parsing and hex output
    - Euclidean distance and perceived brightness
    - Vectorized squared-distance map agrees with the scalar metric

Run:
    pytest tests/test_color.py -v
"""

import numpy as np
import pytest

from pointmapper.utils.color import Color, color_distance, distance_sq_map, perceived_brightness


class TestColor:
    def test_hex(self):
        assert Color(255, 0, 171).to_hex() == "#FF00AB"
        assert Color.from_hex("#ff00ab") == Color(255, 0, 171)

    def test_parse(self):
        assert Color.parse(" 1, 2 ,3") == Color(1, 2, 3)
        assert Color.parse("#010203") == Color(1, 2, 3)
        with pytest.raises(ValueError):
            Color.parse("1,2")

    @pytest.mark.parametrize("value", [-1, 256])
    def test_range(self, value):
        with pytest.raises(ValueError):
            Color(value, 0, 0)

    @pytest.mark.parametrize("value", [1.5, True, "7"])
    def test_type(self, value):
        with pytest.raises(TypeError):
            Color(0, value, 0)

    def test_numpy_ints_accepted(self):
        c = Color(np.uint8(5), np.int64(6), 7)
        assert c.as_tuple() == (5, 6, 7)
        assert type(c.r) is int

    def test_str(self):
        assert str(Color(1, 2, 3)) == "rgb(1, 2, 3)"


class TestMetrics:
    def test_distance(self):
        assert color_distance(Color(0, 0, 0), Color(3, 4, 0)) == pytest.approx(5.0)

    def test_brightness_bounds(self):
        assert perceived_brightness(Color(0, 0, 0)) == 0.0
        assert perceived_brightness(Color(255, 255, 255)) == pytest.approx(255.0)

    def test_brightness_weights(self):
        assert perceived_brightness(Color(0, 255, 0)) > perceived_brightness(Color(255, 0, 0))
        assert perceived_brightness(Color(255, 0, 0)) > perceived_brightness(Color(0, 0, 255))

    def test_distance_map_matches_scalar(self):
        rng = np.random.default_rng(1)
        pixels = rng.integers(0, 256, size=(5, 6, 3), dtype=np.uint8)
        target = Color(100, 150, 200)
        dmap = distance_sq_map(pixels, target)
        assert dmap.shape == (5, 6)
        y, x = 3, 4
        expected = color_distance(Color(*(int(v) for v in pixels[y, x])), target) ** 2
        assert dmap[y, x] == pytest.approx(expected)
