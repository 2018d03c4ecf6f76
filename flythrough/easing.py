"""
Easing curves applied to transition progress.
"""

import math
from typing import Union

import numpy as np

Progress = Union[float, np.ndarray]


def sine_ease(x: Progress) -> Progress:
    """Smooth sine ramp on [0, 1].

    Maps [0, 1] -> [-pi/2, pi/2] -> [0, 1], so motion accelerates out of
    each keyframe and decelerates into the next. The input is not clamped.

    Args:
        x: Linear progress, scalar or array

    Returns:
        Eased progress of the same shape
    """
    if isinstance(x, np.ndarray):
        return (np.sin(np.pi * (x - 0.5)) + 1.0) / 2.0
    return (math.sin(math.pi * (x - 0.5)) + 1.0) / 2.0


def ease(x: Progress, enabled: bool = True) -> Progress:
    """Apply the sine ramp when ``enabled``; otherwise return ``x`` unchanged."""
    if not enabled:
        return x
    return sine_ease(x)


__all__ = ["sine_ease", "ease"]
