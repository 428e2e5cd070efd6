"""Frame acquisition.

This module wraps a FrameSource so that callers get a timestamped Frame
or nothing at all:

- FrameCapture: "frame or none" boundary with a small rolling buffer
- ImageFileSource: re-reads one image file on every capture
- DirectoryReplaySource: plays the images of a directory in name order

Images are loaded through Pillow and handed on as BGR numpy arrays, the
layout OpenCV expects.

Example:
    >>> source = DirectoryReplaySource("recordings/session-1")
    >>> capture = FrameCapture(source)
    >>> frame = capture.try_capture()
    >>> if frame is not None:
    ...     print(f"Captured {frame.width}x{frame.height}")
"""

from __future__ import annotations

import logging
import threading
import time
from collections import deque
from pathlib import Path

import cv2
import numpy as np
from PIL import Image, UnidentifiedImageError

from glyph_recorder.interfaces.errors import CaptureError, ConfigurationError
from glyph_recorder.interfaces.vision import Frame, FrameSource

logger = logging.getLogger(__name__)

IMAGE_SUFFIXES = frozenset({".png", ".jpg", ".jpeg", ".bmp", ".webp"})


def load_image(path: str | Path) -> np.ndarray:
    """Load an image file as a BGR array.

    Raises:
        CaptureError: If the file is missing or not an image.
    """
    try:
        with Image.open(path) as pil_image:
            rgb = np.asarray(pil_image.convert("RGB"))
    except (OSError, UnidentifiedImageError) as e:
        raise CaptureError(f"Cannot read image {path}: {e}") from e
    return cv2.cvtColor(rgb, cv2.COLOR_RGB2BGR)


def save_image(path: str | Path, image: np.ndarray) -> None:
    """Write a BGR array to ``path``; the format follows the suffix."""
    Image.fromarray(cv2.cvtColor(image, cv2.COLOR_BGR2RGB)).save(path)


class ImageFileSource(FrameSource):
    """Source that re-reads a single image file on every capture.

    Pointing it at a file another process keeps overwriting turns that
    process into a live screen feed.
    """

    def __init__(self, path: str | Path) -> None:
        self._path = Path(path)

    @property
    def path(self) -> Path:
        return self._path

    def capture(self) -> np.ndarray:
        return load_image(self._path)


class DirectoryReplaySource(FrameSource):
    """Source that replays recorded frames from a directory.

    Files are played in name order. With ``loop`` the replay starts over
    after the last file; without it, further captures raise CaptureError.

    Attributes:
        files: The image files being replayed.
    """

    def __init__(self, directory: str | Path, loop: bool = False) -> None:
        """Initialize the replay source.

        Args:
            directory: Directory holding the recorded images.
            loop: Restart from the first image after the last one.

        Raises:
            ConfigurationError: If the directory has no images.
        """
        directory = Path(directory)
        if not directory.is_dir():
            raise ConfigurationError(f"Replay directory not found: {directory}")

        self.files = sorted(
            p for p in directory.iterdir() if p.suffix.lower() in IMAGE_SUFFIXES
        )
        if not self.files:
            raise ConfigurationError(f"No images in replay directory: {directory}")

        self._loop = loop
        self._position = 0
        self._lock = threading.Lock()
        logger.debug(f"Replaying {len(self.files)} frames from {directory}")

    @property
    def exhausted(self) -> bool:
        """True once every file was played and looping is off."""
        with self._lock:
            return not self._loop and self._position >= len(self.files)

    def capture(self) -> np.ndarray:
        with self._lock:
            if self._position >= len(self.files):
                if not self._loop:
                    raise CaptureError("Replay exhausted")
                self._position = 0
            path = self.files[self._position]
            self._position += 1
        return load_image(path)


class FrameCapture:
    """Turns a FrameSource into "frame or none" captures.

    Keeps a rolling buffer of the most recent frames for debugging.

    Attributes:
        buffer_size: Maximum number of frames kept in the buffer.
    """

    def __init__(self, source: FrameSource, buffer_size: int = 5) -> None:
        """Initialize the capture wrapper.

        Args:
            source: Where images come from.
            buffer_size: Number of recent frames to keep. Defaults to 5.
        """
        self._source = source
        self._buffer_size = buffer_size
        self._buffer: deque[Frame] = deque(maxlen=buffer_size)
        self._lock = threading.Lock()

        logger.debug(f"FrameCapture initialized with buffer_size={buffer_size}")

    @property
    def source(self) -> FrameSource:
        return self._source

    @property
    def buffer_size(self) -> int:
        return self._buffer_size

    def capture(self, timestamp: float | None = None) -> Frame:
        """Capture one frame.

        Args:
            timestamp: Monotonic start time of the capture task. Stamped
                now if omitted.

        Returns:
            The captured frame.

        Raises:
            CaptureError: If the source fails or returns no image.
        """
        if timestamp is None:
            timestamp = time.monotonic()

        try:
            image = self._source.capture()
        except CaptureError:
            raise
        except Exception as e:
            raise CaptureError(f"Unexpected error during capture: {e}") from e

        if image is None or getattr(image, "size", 0) == 0:
            raise CaptureError("Source returned an empty image")

        frame = Frame(image=image, timestamp=timestamp)
        with self._lock:
            self._buffer.append(frame)

        logger.debug(f"Captured frame: {frame.width}x{frame.height} at {timestamp:.3f}")
        return frame

    def try_capture(self, timestamp: float | None = None) -> Frame | None:
        """Capture one frame, or return None when none is available."""
        try:
            return self.capture(timestamp)
        except CaptureError as e:
            logger.debug(f"No frame this tick: {e}")
            return None

    def get_buffer(self, count: int | None = None) -> list[Frame]:
        """Recent frames, most recent first."""
        with self._lock:
            frames = list(reversed(self._buffer))
        return frames if count is None else frames[:count]

    def clear_buffer(self) -> None:
        with self._lock:
            self._buffer.clear()

    def close(self) -> None:
        """Release the underlying source."""
        self.clear_buffer()
        self._source.close()
