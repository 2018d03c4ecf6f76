"""
Frame planning: expands a keyframe list into the ordered view states of every output frame.
"""

from typing import Iterator, List, Optional, Sequence, Union

import numpy as np

from flythrough.core_types import FramePlanEntry, TimingParams, ViewState, as_view_state
from flythrough.exceptions import DimensionMismatchError, ValidationError
from flythrough.interpolation import interpolate, transition_progress

KeyframeInput = Sequence[Union[Sequence[float], np.ndarray]]


def total_frame_count(keyframe_count: int, frames_per_transition: int) -> int:
    """Number of frames in a plan: every transition plus one capping frame."""
    if keyframe_count < 2:
        raise ValidationError(
            f"At least two keyframes are needed to record a movie, got {keyframe_count}"
        )
    if frames_per_transition < 1:
        raise ValidationError(
            f"Frames per transition must be at least 1, got {frames_per_transition}"
        )
    return (keyframe_count - 1) * frames_per_transition + 1


def normalize_keyframes(keyframes: KeyframeInput) -> List[ViewState]:
    """Copy keyframes into read-only arrays and check they share one dimension.

    Raises:
        ValidationError: fewer than two keyframes, or a malformed view state
        DimensionMismatchError: keyframes of differing length
    """
    if keyframes is None or len(keyframes) < 2:
        count = 0 if keyframes is None else len(keyframes)
        raise ValidationError(
            f"At least two keyframes are needed to record a movie, got {count}"
        )

    states = [as_view_state(kf) for kf in keyframes]
    size = states[0].size
    for i, state in enumerate(states[1:], start=1):
        if state.size != size:
            raise DimensionMismatchError(
                f"Keyframe {i} has {state.size} values, keyframe 0 has {size}"
            )
    return states


def iter_plan(
    keyframes: KeyframeInput,
    frames_per_transition: int,
    easing: bool = False,
) -> Iterator[FramePlanEntry]:
    """Lazily yield the frame plan in output order.

    Each consecutive keyframe pair contributes ``frames_per_transition``
    entries (local steps 0..frames_per_transition-1). A final entry holding
    the last keyframe itself closes the plan.
    """
    total_frame_count(len(keyframes), frames_per_transition)

    index = 0
    for t in range(len(keyframes) - 1):
        start = keyframes[t]
        end = keyframes[t + 1]
        for step in range(frames_per_transition):
            yield FramePlanEntry(
                index=index,
                transition_index=t,
                local_step=step,
                progress=transition_progress(step, frames_per_transition, easing),
                view_state=interpolate(start, end, step, frames_per_transition, easing),
            )
            index += 1

    yield FramePlanEntry(
        index=index,
        transition_index=len(keyframes) - 2,
        local_step=frames_per_transition,
        progress=1.0,
        view_state=np.array(keyframes[-1], dtype=np.float64),
        is_final=True,
    )


def plan(
    keyframes: KeyframeInput,
    frames_per_transition: int,
    easing: bool = False,
) -> List[FramePlanEntry]:
    """Materialise the whole frame plan. See :func:`iter_plan`."""
    return list(iter_plan(keyframes, frames_per_transition, easing))


class FrameSequencePlanner:
    """Frame plan for one keyframe list and timing.

    The planner validates its inputs up front, so a constructed planner
    always yields ``total`` entries.
    """

    def __init__(self, keyframes: KeyframeInput, timing: TimingParams):
        timing.validate()
        self.keyframes = normalize_keyframes(keyframes)
        self.timing = timing
        self.frames_per_transition = timing.frames_per_transition
        self.total = total_frame_count(len(self.keyframes), self.frames_per_transition)

    def __len__(self) -> int:
        return self.total

    def __iter__(self) -> Iterator[FramePlanEntry]:
        return iter_plan(self.keyframes, self.frames_per_transition, self.timing.use_easing)

    def entries(self) -> List[FramePlanEntry]:
        return list(self)

    def entry(self, index: int) -> FramePlanEntry:
        """Compute a single plan entry without walking the whole plan."""
        if not 0 <= index < self.total:
            raise IndexError(f"Frame {index} outside plan of {self.total} frames")
        if index == self.total - 1:
            return FramePlanEntry(
                index=index,
                transition_index=len(self.keyframes) - 2,
                local_step=self.frames_per_transition,
                progress=1.0,
                view_state=np.array(self.keyframes[-1], dtype=np.float64),
                is_final=True,
            )
        t, step = divmod(index, self.frames_per_transition)
        easing = self.timing.use_easing
        return FramePlanEntry(
            index=index,
            transition_index=t,
            local_step=step,
            progress=transition_progress(step, self.frames_per_transition, easing),
            view_state=interpolate(
                self.keyframes[t], self.keyframes[t + 1], step, self.frames_per_transition, easing
            ),
        )

    @property
    def duration(self) -> float:
        """Movie length in seconds at the planned frame rate."""
        return self.total / self.timing.frames_per_second


__all__ = [
    "total_frame_count",
    "normalize_keyframes",
    "iter_plan",
    "plan",
    "FrameSequencePlanner",
]
