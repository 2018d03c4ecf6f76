"""
Capturer: applies a view state to the display and reads the rendered frame back.
"""

import time
from typing import Optional

import numpy as np

from flythrough import config
from flythrough.core_types import RenderedFrame, ViewState
from flythrough.display import DisplayCapability
from flythrough.exceptions import CaptureError
from flythrough.logging_config import get_logger

logger = get_logger(__name__)


class Capturer:
    """Renders view states through an external display, one frame at a time."""

    def __init__(self, display: DisplayCapability, settle_delay: Optional[float] = None):
        """Initialize capturer.

        Args:
            display: Display capability to drive
            settle_delay: Seconds to wait after a view change before reading
                pixels back, when the display offers no completion signal.
                Defaults to config.SETTLE_DELAY.
        """
        self.display = display
        self.settle_delay = config.SETTLE_DELAY if settle_delay is None else settle_delay
        self.render_timeout = config.RENDER_TIMEOUT
        self.frames_captured = 0

    def capture(self, view_state: ViewState) -> RenderedFrame:
        """Render ``view_state`` and return its pixels.

        Raises:
            CaptureError: if the display fails or returns an unusable buffer
        """
        try:
            self.display.set_view_state(np.asarray(view_state, dtype=np.float64))
        except Exception as e:
            raise CaptureError(f"Display rejected view state: {e}") from e

        self._wait_for_render()
        frame = self._read_back()
        self.frames_captured += 1
        return frame

    def snapshot(self) -> RenderedFrame:
        """Read back whatever the display currently shows."""
        return self._read_back()

    def _wait_for_render(self):
        # Prefer the display's own completion signal, else a fixed bounded wait.
        wait_for_render = getattr(self.display, "wait_for_render", None)
        if callable(wait_for_render):
            timeout = self.render_timeout
            try:
                rendered = wait_for_render(timeout)
            except Exception as e:
                raise CaptureError(f"Waiting for render failed: {e}") from e
            if rendered is False:
                raise CaptureError(f"Display did not finish rendering within {timeout:.2f}s")
            return
        if self.settle_delay > 0:
            time.sleep(self.settle_delay)

    def _read_back(self) -> RenderedFrame:
        try:
            frame = self.display.render_to_image()
        except Exception as e:
            raise CaptureError(f"Render read-back failed: {e}") from e

        if frame is None:
            raise CaptureError("Display returned no image")
        frame = np.asarray(frame)
        if frame.size == 0:
            raise CaptureError("Display returned an empty image")
        if frame.ndim not in (2, 3) or (frame.ndim == 3 and frame.shape[2] not in (1, 3, 4)):
            raise CaptureError(f"Unsupported image shape {frame.shape}")
        return frame


__all__ = ["Capturer"]
