"""Vision interfaces: captured frames and the sources that produce them."""

from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import datetime
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    import numpy as np


class Frame:
    """A captured panel image with capture metadata."""

    __slots__ = ("image", "timestamp", "captured_at")

    def __init__(
        self,
        image: np.ndarray,
        timestamp: float,
        captured_at: datetime | None = None,
    ) -> None:
        """Initialize a frame.

        Args:
            image: BGR image array as produced by OpenCV.
            timestamp: Monotonic time at which the capture task started.
                Used to order results that complete out of order.
            captured_at: Wall-clock capture time, for logs.
        """
        self.image = image
        self.timestamp = timestamp
        self.captured_at = captured_at or datetime.now()

    @property
    def width(self) -> int:
        """Image width in pixels."""
        return int(self.image.shape[1])

    @property
    def height(self) -> int:
        """Image height in pixels."""
        return int(self.image.shape[0])


class FrameSource(ABC):
    """Abstract provider of panel images.

    Implementations wrap whatever actually grabs the screen. They raise
    CaptureError when no image is available; callers that need
    "frame or nothing" semantics go through FrameCapture.
    """

    @abstractmethod
    def capture(self) -> np.ndarray:
        """Grab one BGR image.

        Returns:
            BGR image array.

        Raises:
            CaptureError: If no image could be acquired.
        """
        ...

    def close(self) -> None:
        """Release any resources held by the source."""
        return None
