"""
Linear interpolation between two view states.
"""

from typing import Sequence, Union

import numpy as np

from flythrough.core_types import ViewState
from flythrough.easing import ease
from flythrough.exceptions import DimensionMismatchError, ValidationError


def transition_progress(step: int, frames_per_transition: int, easing: bool = False) -> float:
    """Fraction of the way through a transition at ``step``, optionally eased."""
    if frames_per_transition < 1:
        raise ValidationError(
            f"Frames per transition must be at least 1, got {frames_per_transition}"
        )
    return ease(step / frames_per_transition, easing)


def interpolate(
    start: Union[Sequence[float], np.ndarray],
    end: Union[Sequence[float], np.ndarray],
    step: int,
    frames_per_transition: int,
    easing: bool = False,
) -> ViewState:
    """Interpolate a view state part of the way from ``start`` to ``end``.

    Computes p = step / frames_per_transition (sine-eased when ``easing``)
    and returns p * (end - start) + start for every dimension.

    Args:
        start: View state at the beginning of the transition
        end: View state at the end of the transition
        step: Local step, normally in [0, frames_per_transition)
        frames_per_transition: Number of frames the transition spans
        easing: Whether to apply the sine ramp

    Returns:
        New float64 view state

    Raises:
        DimensionMismatchError: if start and end differ in length
    """
    start = np.asarray(start, dtype=np.float64)
    end = np.asarray(end, dtype=np.float64)
    if start.shape != end.shape:
        raise DimensionMismatchError(
            f"Cannot interpolate between view states of length {start.size} and {end.size}"
        )

    p = transition_progress(step, frames_per_transition, easing)
    return p * (end - start) + start


__all__ = ["transition_progress", "interpolate"]
