"""Test atomic filesystem operations and image decoding.

Tests for pointmapper.utils.fs:
    - Atomic writes replace the target and leave no temp file
    - Text writes keep CRLF as-is
    - YAML dump preserves key order; empty YAML loads as {}
    - Image decoding drops alpha and expands grayscale
    - ensure_dir creates parents

Run:
    pytest tests/test_fs.py -v
"""

import numpy as np
import pytest
import yaml
from PIL import Image

from pointmapper.utils import fs


def test_atomic_write_bytes(tmp_path):
    target = tmp_path / "out" / "data.bin"
    fs.atomic_write_bytes(target, b"first")
    fs.atomic_write_bytes(target, b"second")
    assert target.read_bytes() == b"second"
    assert list(target.parent.iterdir()) == [target]


def test_atomic_write_text_keeps_crlf(tmp_path):
    target = tmp_path / "points.csv"
    fs.atomic_write_text(target, 'id,label,x,y\r\n"1","a","0","0"\r\n')
    assert target.read_bytes().count(b"\r\n") == 2


def test_yaml_roundtrip_keeps_order(tmp_path):
    data = {"schema": "pointmapper_project.v1", "image": "a.png", "label": "árbol"}
    path = tmp_path / "p.yaml"
    fs.atomic_yaml_dump(data, path)
    assert list(fs.load_yaml(path)) == ["schema", "image", "label"]
    assert fs.load_yaml(path)["label"] == "árbol"


def test_load_yaml_empty(tmp_path):
    path = tmp_path / "empty.yaml"
    path.write_text("")
    assert fs.load_yaml(path) == {}


def test_load_yaml_missing(tmp_path):
    with pytest.raises(FileNotFoundError):
        fs.load_yaml(tmp_path / "missing.yaml")


def test_load_yaml_invalid(tmp_path):
    path = tmp_path / "bad.yaml"
    path.write_text("a: [1, 2\n")
    with pytest.raises(yaml.YAMLError):
        fs.load_yaml(path)


def test_load_image_rgba(tmp_path):
    rgba = np.zeros((3, 4, 4), dtype=np.uint8)
    rgba[..., 0] = 200
    rgba[..., 3] = 255
    path = tmp_path / "rgba.png"
    Image.fromarray(rgba).save(path)

    pixels = fs.load_image_rgb(path)
    assert pixels.shape == (3, 4, 3)
    assert pixels.dtype == np.uint8
    assert tuple(pixels[0, 0]) == (200, 0, 0)


def test_load_image_grayscale(tmp_path):
    path = tmp_path / "gray.png"
    Image.fromarray(np.full((2, 2), 77, dtype=np.uint8)).save(path)
    assert tuple(fs.load_image_rgb(path)[1, 1]) == (77, 77, 77)


def test_load_image_missing(tmp_path):
    with pytest.raises(FileNotFoundError):
        fs.load_image_rgb(tmp_path / "none.png")


def test_ensure_dir(tmp_path):
    path = fs.ensure_dir(tmp_path / "a" / "b")
    assert path.is_dir()
