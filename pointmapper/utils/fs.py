"""Atomic file writes, YAML handling and image loading.

Provides:
    - Atomic writes: tmp file → fsync → rename (no half-written exports)
    - YAML load/dump for settings and project files
    - Image decoding into RGB uint8 arrays
    - Directory creation with exist_ok semantics

All paths use pathlib.Path. YAML uses PyYAML safe_load/safe_dump.

Usage:
    from pointmapper.utils import fs
    fs.atomic_write_text(out_dir / "points.csv", csv_text)
    fs.atomic_yaml_dump(project, "session.yaml")
    rgb = fs.load_image_rgb("uploads/plot.png")
"""

import os
from pathlib import Path
from typing import Any, Dict, Union

import numpy as np
import yaml
from PIL import Image


def ensure_dir(p: Union[str, Path]) -> Path:
    """Create directory (and parents) if missing, return it as a Path."""
    p = Path(p)
    p.mkdir(parents=True, exist_ok=True)
    return p


def atomic_write_bytes(
    path: Union[str, Path],
    data: bytes,
    tmp_suffix: str = ".tmp"
) -> None:
    """Write bytes to file atomically (tmp → fsync → rename).

    Parameters
    ----------
    path : Union[str, Path]
        Target file path
    data : bytes
        Data to write
    tmp_suffix : str
        Temporary file suffix, default ".tmp"

    Raises
    ------
    RuntimeError
        If the write or rename fails; the temporary file is removed.
    """
    path = Path(path)
    ensure_dir(path.parent)

    tmp_path = path.with_suffix(path.suffix + tmp_suffix)
    try:
        with open(tmp_path, 'wb') as f:
            f.write(data)
            f.flush()
            os.fsync(f.fileno())
        tmp_path.replace(path)
    except OSError as e:
        if tmp_path.exists():
            tmp_path.unlink()
        raise RuntimeError(f"Failed to write {path} atomically: {e}") from e


def atomic_write_text(
    path: Union[str, Path],
    text: str,
    encoding: str = "utf-8"
) -> None:
    """Write text to file atomically.

    Notes
    -----
    No newline translation: CRLF rows from the CSV exporter survive as-is.
    """
    atomic_write_bytes(path, text.encode(encoding))


def atomic_yaml_dump(obj: Any, path: Union[str, Path]) -> None:
    """Save object as YAML atomically (key order preserved)."""
    yaml_str = yaml.safe_dump(
        obj,
        default_flow_style=False,
        sort_keys=False,
        allow_unicode=True
    )
    atomic_write_bytes(path, yaml_str.encode('utf-8'))


def load_yaml(path: Union[str, Path]) -> Dict[str, Any]:
    """Load YAML file safely.

    Parameters
    ----------
    path : Union[str, Path]
        YAML file path

    Returns
    -------
    Dict[str, Any]
        Parsed YAML content; an empty file yields ``{}``

    Raises
    ------
    FileNotFoundError
        If file doesn't exist
    yaml.YAMLError
        If YAML parsing fails
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"YAML file not found: {path}")

    try:
        with open(path, 'r', encoding='utf-8') as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise yaml.YAMLError(f"Failed to parse YAML file {path}: {e}") from e
    return data if data is not None else {}


def load_image_rgb(path: Union[str, Path]) -> np.ndarray:
    """Decode an image file into an RGB uint8 array.

    Parameters
    ----------
    path : Union[str, Path]
        PNG or JPEG file

    Returns
    -------
    np.ndarray
        (H, W, 3) uint8; alpha is dropped, palette/grayscale images are
        expanded to RGB.

    Raises
    ------
    FileNotFoundError
        If file doesn't exist
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Image not found: {path}")

    with Image.open(path) as img:
        return np.asarray(img.convert('RGB'), dtype=np.uint8).copy()
