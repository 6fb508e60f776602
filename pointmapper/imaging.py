"""Pixel-buffer access and cancelable acquisition.

PixelBuffer wraps a read-only (H, W, 3) uint8 RGB array and offers the
``get_pixel(x, y) -> Color`` / ``(width, height)`` view the core consumes.

BufferLoader decodes images on a single worker thread.  Every request gets
a generation number; a decoded buffer is committed only if no newer
request (or cancel) happened since, so swapping images mid-decode can
never let a stale buffer overwrite the current one.
"""

from __future__ import annotations

import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from pathlib import Path
from typing import Callable

import numpy as np

from pointmapper.utils import fs
from pointmapper.utils.color import Color

logger = logging.getLogger(__name__)


class PixelBuffer:
    """Read-only RGB pixels of one decoded image.

    Parameters
    ----------
    pixels : np.ndarray
        (H, W, 3) or (H, W, 4) uint8; alpha is dropped.  The array is
        copied and frozen.
    source : str
        Where the pixels came from (path or label), for logging.
    """

    def __init__(self, pixels: np.ndarray, source: str = "<memory>") -> None:
        if pixels.ndim != 3 or pixels.shape[2] not in (3, 4):
            raise ValueError(f"Expected (H, W, 3) or (H, W, 4) pixels, got shape {pixels.shape}")
        if pixels.shape[0] == 0 or pixels.shape[1] == 0:
            raise ValueError(f"Image has no pixels: shape {pixels.shape}")
        arr = np.array(pixels[..., :3], dtype=np.uint8, copy=True)
        arr.setflags(write=False)
        self._pixels = arr
        self.source = source

    @classmethod
    def from_file(cls, path: str | Path) -> PixelBuffer:
        return cls(fs.load_image_rgb(path), source=str(path))

    @property
    def pixels(self) -> np.ndarray:
        return self._pixels

    @property
    def width(self) -> int:
        return self._pixels.shape[1]

    @property
    def height(self) -> int:
        return self._pixels.shape[0]

    @property
    def size(self) -> tuple[int, int]:
        return (self.width, self.height)

    def clamp(self, x: float, y: float) -> tuple[int, int]:
        """Floor and clamp a pixel position into the image."""
        xi = min(max(int(np.floor(x)), 0), self.width - 1)
        yi = min(max(int(np.floor(y)), 0), self.height - 1)
        return xi, yi

    def get_pixel(self, x: float, y: float) -> Color:
        """Color at (x, y); positions outside the image are clamped to the edge."""
        xi, yi = self.clamp(x, y)
        r, g, b = self._pixels[yi, xi]
        return Color(int(r), int(g), int(b))


class BufferLoader:
    """Generation-checked background decoding of pixel buffers.

    Parameters
    ----------
    decode : Callable[[str | Path], PixelBuffer]
        Decoder, ``PixelBuffer.from_file`` by default.
    on_ready : Callable[[PixelBuffer], None] | None
        Called (on the worker thread) when a current buffer is committed.
    """

    def __init__(
        self,
        decode: Callable[[str | Path], PixelBuffer] = PixelBuffer.from_file,
        on_ready: Callable[[PixelBuffer], None] | None = None,
    ) -> None:
        self._decode = decode
        self._on_ready = on_ready
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="pixel-buffer")
        self._lock = threading.Lock()
        self._generation = 0
        self._current: PixelBuffer | None = None
        self._pending: Future | None = None

    @property
    def current(self) -> PixelBuffer | None:
        with self._lock:
            return self._current

    @property
    def generation(self) -> int:
        with self._lock:
            return self._generation

    def request(self, path: str | Path) -> Future:
        """Start decoding ``path``; supersedes any earlier request.

        The returned future resolves to the buffer, or to None when the
        request was superseded or cancelled before it finished.
        """
        with self._lock:
            self._generation += 1
            generation = self._generation
            if self._pending is not None:
                self._pending.cancel()
            future = self._executor.submit(self._load, path, generation)
            self._pending = future
        return future

    def _load(self, path: str | Path, generation: int) -> PixelBuffer | None:
        buffer = self._decode(path)
        if not self.commit(generation, buffer):
            logger.debug("Discarded stale buffer for %s (generation %d)", path, generation)
            return None
        logger.info("Loaded %s (%dx%d)", path, buffer.width, buffer.height)
        if self._on_ready is not None:
            self._on_ready(buffer)
        return buffer

    def commit(self, generation: int, buffer: PixelBuffer) -> bool:
        """Install ``buffer`` if ``generation`` is still the newest request."""
        with self._lock:
            if generation != self._generation:
                return False
            self._current = buffer
            return True

    def cancel(self) -> None:
        """Abandon the in-flight request; the current buffer is kept."""
        with self._lock:
            self._generation += 1
            if self._pending is not None:
                self._pending.cancel()
                self._pending = None

    def is_current(self, generation: int) -> bool:
        with self._lock:
            return generation == self._generation

    def shutdown(self) -> None:
        self.cancel()
        self._executor.shutdown(wait=True)
