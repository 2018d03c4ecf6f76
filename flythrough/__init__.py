"""
flythrough - keyframed fly-through capture.
Interpolates camera/view states between keyframes, renders each through a display
and exports the frames as a numbered image sequence or a single movie.
"""

from flythrough.__version__ import __version__
from flythrough.core_types import (
    ExportPolicy,
    FramePlanEntry,
    ImageSequenceTarget,
    MovieTarget,
    RunResult,
    RunState,
    TimingParams,
)
from flythrough.easing import ease, sine_ease
from flythrough.exceptions import (
    CaptureCancelled,
    CaptureError,
    DimensionMismatchError,
    DisplayBusyError,
    ExportError,
    FlythroughError,
    ValidationError,
)
from flythrough.interpolation import interpolate
from flythrough.keyframes import Keyframe, KeyframeList
from flythrough.orchestrator import CaptureController, CaptureJob
from flythrough.planner import FrameSequencePlanner, plan, total_frame_count
from flythrough.progress import (
    CallbackProgressSink,
    LoggingProgressSink,
    QueueProgressSink,
)

__all__ = [
    "__version__",
    "ExportPolicy",
    "FramePlanEntry",
    "ImageSequenceTarget",
    "MovieTarget",
    "RunResult",
    "RunState",
    "TimingParams",
    "ease",
    "sine_ease",
    "CaptureCancelled",
    "CaptureError",
    "DimensionMismatchError",
    "DisplayBusyError",
    "ExportError",
    "FlythroughError",
    "ValidationError",
    "interpolate",
    "Keyframe",
    "KeyframeList",
    "CaptureController",
    "CaptureJob",
    "FrameSequencePlanner",
    "plan",
    "total_frame_count",
    "CallbackProgressSink",
    "LoggingProgressSink",
    "QueueProgressSink",
]
