"""Shared fixtures: synthetic images, calibrated sessions, project files."""

import logging
from pathlib import Path

import numpy as np
import pytest
from PIL import Image

from pointmapper.imaging import PixelBuffer
from pointmapper.session import Session
from pointmapper.utils import fs

WHITE = (255, 255, 255)
RED = (220, 30, 30)
BLUE = (30, 40, 200)

# Pixel → real is (px / 10, py / 10) for these references
REFERENCES = [
    ((0.0, 0.0), (0.0, 0.0)),
    ((100.0, 0.0), (10.0, 0.0)),
    ((0.0, 100.0), (0.0, 10.0)),
]


def solid(width: int, height: int, rgb=WHITE) -> np.ndarray:
    img = np.empty((height, width, 3), dtype=np.uint8)
    img[:] = rgb
    return img


def write_png(path: Path, pixels: np.ndarray) -> Path:
    Image.fromarray(pixels).save(path)
    return path


def calibrate(session: Session) -> None:
    for (px, py), (rx, ry) in REFERENCES:
        point = session.add_location_point(px, py)
        session.set_location_real(point.id, rx, ry)


@pytest.fixture
def two_blobs() -> np.ndarray:
    """120x100 white image with a red square and a disjoint blue square."""
    img = solid(120, 100)
    img[10:30, 10:30] = RED
    img[60:90, 70:110] = BLUE
    return img


@pytest.fixture
def session(two_blobs) -> Session:
    return Session(buffer=PixelBuffer(two_blobs, source="two_blobs"))


@pytest.fixture
def calibrated_session(session) -> Session:
    calibrate(session)
    assert session.calibrated
    return session


@pytest.fixture
def project_file(tmp_path, two_blobs) -> Path:
    """Calibrated project (image next to it) with one labeled point."""
    write_png(tmp_path / "plot.png", two_blobs)
    project = {
        "schema": "pointmapper_project.v1",
        "image": "plot.png",
        "location_points": [
            {"pixel_x": px, "pixel_y": py, "real_x": rx, "real_y": ry}
            for (px, py), (rx, ry) in REFERENCES
        ],
        "recognition_points": [
            {"pixel_x": 15.0, "pixel_y": 25.0, "label": "tree"},
        ],
    }
    path = tmp_path / "session.yaml"
    fs.atomic_yaml_dump(project, path)
    return path


@pytest.fixture
def restore_root_logging():
    """Undo handlers installed by setup_logging during a test."""
    root = logging.getLogger()
    handlers = list(root.handlers)
    level = root.level
    yield
    for handler in list(root.handlers):
        if handler not in handlers:
            root.removeHandler(handler)
            handler.close()
    for handler in handlers:
        if handler not in root.handlers:
            root.addHandler(handler)
    root.setLevel(level)
