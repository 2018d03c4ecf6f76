"""Core types shared across the capture pipeline.
Provides simple dataclasses so the planner, exporters and orchestrator can interoperate.
"""
import math
import numbers
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import List, Optional, Sequence, Tuple, Union

import numpy as np

from flythrough.exceptions import ValidationError

ViewState = np.ndarray
RenderedFrame = np.ndarray


def as_view_state(values: Union[Sequence[float], np.ndarray]) -> ViewState:
    """Copy values into a read-only 1-D float64 array."""
    state = np.array(values, dtype=np.float64)
    if state.ndim != 1:
        raise ValidationError(f"View state must be one-dimensional, got shape {state.shape}")
    if not np.all(np.isfinite(state)):
        raise ValidationError("View state contains non-finite values")
    state.setflags(write=False)
    return state


@dataclass(frozen=True)
class TimingParams:
    """Timing for a keyframed movie."""
    seconds_per_transition: float
    frames_per_second: int
    use_easing: bool = False

    def validate(self):
        """Raise ValidationError unless the timing yields at least one frame per transition."""
        if isinstance(self.frames_per_second, bool) or not isinstance(self.frames_per_second, numbers.Integral):
            raise ValidationError(f"Frames per second must be an integer, got {self.frames_per_second!r}")
        if self.frames_per_second <= 0:
            raise ValidationError(f"Frames per second must be positive, got {self.frames_per_second}")
        if not self.seconds_per_transition > 0:
            raise ValidationError(
                f"Seconds per transition must be positive, got {self.seconds_per_transition}"
            )
        if self.frames_per_transition < 1:
            raise ValidationError(
                f"{self.frames_per_second} fps x {self.seconds_per_transition} s "
                "gives less than one frame per transition"
            )

    @property
    def frames_per_transition(self) -> int:
        return int(math.floor(self.frames_per_second * self.seconds_per_transition))


@dataclass(frozen=True)
class FramePlanEntry:
    """One output frame: where it sits in the path and the view state to render."""
    index: int
    transition_index: int
    local_step: int
    progress: float
    view_state: ViewState
    is_final: bool = False


class ExportPolicy(Enum):
    """How an export target reacts to a write failure."""
    BEST_EFFORT = "best_effort"        # keep going, report failed files
    ALL_OR_NOTHING = "all_or_nothing"  # abort, leave nothing behind


@dataclass(frozen=True)
class ImageSequenceTarget:
    """Numbered still images: <directory>/<base_name><number><extension>."""
    directory: Path
    base_name: str
    extension: str

    policy = ExportPolicy.BEST_EFFORT

    @classmethod
    def from_path(cls, path: Union[str, Path]) -> "ImageSequenceTarget":
        """Split a user-chosen file path at its last dot.

        The extension keeps its dot and its original case; a path without
        a dot yields an empty extension, which validation rejects.
        """
        path = Path(path)
        name = path.name
        dot = name.rfind(".")
        if dot < 0:
            return cls(directory=path.parent, base_name=name, extension="")
        return cls(directory=path.parent, base_name=name[:dot], extension=name[dot:])


@dataclass(frozen=True)
class MovieTarget:
    """A single movie container written at ``path``."""
    path: Path
    frame_rate: int

    policy = ExportPolicy.ALL_OR_NOTHING


ExportTarget = Union[ImageSequenceTarget, MovieTarget]


class RunState(Enum):
    """Lifecycle of one capture run."""
    IDLE = "idle"
    VALIDATING = "validating"
    CAPTURING = "capturing"
    EXPORTING = "exporting"
    DONE = "done"
    FAILED = "failed"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in (RunState.DONE, RunState.FAILED, RunState.CANCELLED)


@dataclass
class RunResult:
    """Outcome of a capture run."""
    state: RunState = RunState.IDLE
    total_frames: int = 0
    frames_captured: int = 0
    written: List[Path] = field(default_factory=list)
    failures: List[Tuple[Path, str]] = field(default_factory=list)
    error: Optional[str] = None

    @property
    def succeeded(self) -> bool:
        return self.state == RunState.DONE

    @property
    def partial(self) -> bool:
        """True when a finished run could not write every file."""
        return self.state == RunState.DONE and bool(self.failures)


__all__ = [
    "ViewState",
    "RenderedFrame",
    "as_view_state",
    "TimingParams",
    "FramePlanEntry",
    "ExportPolicy",
    "ImageSequenceTarget",
    "MovieTarget",
    "ExportTarget",
    "RunState",
    "RunResult",
]
