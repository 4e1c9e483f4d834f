"""
Easing curves used by the reveal timeline.

All curves map progress in [0, 1] to an eased fraction with f(0) == 0 and
f(1) == 1.  ``ease_out_back`` and ``ease_out_elastic`` overshoot in between.
"""

from __future__ import annotations

import math

_BACK_C1 = 1.70158
_BACK_C3 = _BACK_C1 + 1
_ELASTIC_C4 = (2 * math.pi) / 3


def clamp01(x: float) -> float:
    return 0.0 if x < 0 else 1.0 if x > 1 else x


def ease_out_back(x: float) -> float:
    """Lands past the target, then settles back."""
    return 1 + _BACK_C3 * (x - 1) ** 3 + _BACK_C1 * (x - 1) ** 2


def ease_out_elastic(x: float) -> float:
    """Bounce-and-settle."""
    if x <= 0:
        return 0.0
    if x >= 1:
        return 1.0
    return 2 ** (-10 * x) * math.sin((x * 10 - 0.75) * _ELASTIC_C4) + 1


def ease_out_cubic(x: float) -> float:
    return 1 - (1 - x) ** 3


def ease_in_out_cubic(x: float) -> float:
    if x < 0.5:
        return 4 * x * x * x
    return 1 - (-2 * x + 2) ** 3 / 2
