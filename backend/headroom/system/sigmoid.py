# backend/headroom/system/sigmoid.py
from __future__ import annotations

import math

from .models import SigmoidParams


def pressure(x: float, params: SigmoidParams) -> float:
    """
    Logistic curve 1 / (1 + exp(-k * (x - x0))).

    0.5 at the midpoint, rising with x. Zero steepness is a flat 0.5.
    Huge inputs saturate to 0.0 / 1.0 instead of raising.
    """
    if params.steepness == 0:
        return 0.5
    z = -params.steepness * (x - params.midpoint)
    if math.isnan(z):
        return 0.5
    try:
        return 1.0 / (1.0 + math.exp(z))
    except OverflowError:
        return 0.0
