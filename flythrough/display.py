"""
Display capability contract and the exclusive lease a capture run holds on it.
"""

import threading
from typing import Optional, Protocol, runtime_checkable

import numpy as np

from flythrough.exceptions import DisplayBusyError, ValidationError
from flythrough.logging_config import get_logger

logger = get_logger(__name__)


@runtime_checkable
class DisplayCapability(Protocol):
    """An interactive display that renders one view state at a time.

    Implementations may additionally provide:

    - ``is_available() -> bool``: whether rendering can currently happen
    - ``wait_for_render(timeout: float) -> bool``: block until the frame for
      the last view state has been drawn
    - ``get_view_state() -> sequence``: the current view, restored after a run
    """

    def set_view_state(self, view_state: np.ndarray) -> None:
        ...

    def render_to_image(self) -> np.ndarray:
        ...


def check_display(display) -> None:
    """Raise ValidationError if ``display`` cannot be used for capture."""
    if display is None:
        raise ValidationError("Display not found")
    if not callable(getattr(display, "set_view_state", None)) or not callable(
        getattr(display, "render_to_image", None)
    ):
        raise ValidationError(
            f"{type(display).__name__} does not provide set_view_state/render_to_image"
        )
    is_available = getattr(display, "is_available", None)
    if callable(is_available) and not is_available():
        raise ValidationError("Display is not available for capture")


class DisplayLease:
    """Exclusive handle on one display for the duration of a run.

    Only one run may mutate the display's view state at a time; a second
    acquire while the lease is held is rejected rather than queued.
    """

    def __init__(self, display: DisplayCapability):
        self.display = display
        self._lock = threading.Lock()
        self._holder: Optional[str] = None

    @property
    def held(self) -> bool:
        return self._lock.locked()

    @property
    def holder(self) -> Optional[str]:
        return self._holder

    def acquire(self, holder: str = "capture") -> "DisplayLease":
        """Take the lease without blocking.

        Raises:
            DisplayBusyError: if another run holds the display
        """
        if not self._lock.acquire(blocking=False):
            raise DisplayBusyError(
                f"Display is busy with {self._holder or 'another run'}; "
                "wait for it to finish before starting a new capture"
            )
        self._holder = holder
        logger.debug("Display leased to %s", holder)
        return self

    def release(self):
        """Give the lease back."""
        if not self._lock.locked():
            return
        logger.debug("Display released by %s", self._holder)
        self._holder = None
        self._lock.release()

    def __enter__(self) -> DisplayCapability:
        self.acquire()
        return self.display

    def __exit__(self, exc_type, exc, tb):
        self.release()
        return False


__all__ = ["DisplayCapability", "check_display", "DisplayLease"]
