from __future__ import annotations

import logging
from typing import Dict, Mapping, Optional

from .config import DEFAULT_PARAMS, resolve_all_params
from .models import (
    MetricsSnapshot,
    ReserveLevel,
    ReserveResult,
    SigmoidParams,
    SignalKind,
    SignalScore,
)
from .sigmoid import pressure

log = logging.getLogger("headroom.score")

RESERVE_SCALE = 5.0

# No signal at all: report mid-scale rather than fail or claim full headroom
NEUTRAL_PRESSURE = 0.5
NEUTRAL_SCORE = 2.5


def _clamp(x: float, lo: float, hi: float) -> float:
    return max(lo, min(hi, x))


def reserve_score(p: float) -> float:
    """0 = fully saturated, 5 = idle."""
    return _clamp((1.0 - p) * RESERVE_SCALE, 0.0, RESERVE_SCALE)


def compute_reserve(
    snapshot: MetricsSnapshot,
    params: Optional[Mapping[SignalKind, SigmoidParams]] = None,
) -> ReserveResult:
    """
    Returns the reserve on a 0..5 scale where:
      0-1.5 = critical
      1.5-2.5 = low
      2.5-3.5 = medium
      3.5-4.5 = high
      4.5-5 = abundant

    The most stressed signal decides; scores are never averaged. Bottlenecks
    are every signal tied at the maximum pressure, in signal-name order.
    Signals missing from `params` are scored with DEFAULT_PARAMS.
    """
    if params is None:
        params = resolve_all_params()

    signals: Dict[SignalKind, SignalScore] = {}
    for kind, value in snapshot.present().items():
        p = _clamp(pressure(value, params.get(kind, DEFAULT_PARAMS[kind])), 0.0, 1.0)
        signals[kind] = SignalScore(value=value, pressure=p, score=reserve_score(p))

    if not signals:
        log.debug("no signals present; using neutral reserve %.1f", NEUTRAL_SCORE)
        return ReserveResult(
            score=NEUTRAL_SCORE,
            pressure=NEUTRAL_PRESSURE,
            level=ReserveLevel.from_score(NEUTRAL_SCORE),
        )

    worst = max(s.pressure for s in signals.values())
    bottlenecks = sorted((k for k, s in signals.items() if s.pressure == worst), key=lambda k: k.value)
    score = reserve_score(worst)

    log.debug(
        "reserve %.2f (pressure %.3f), bottleneck %s",
        score,
        worst,
        ", ".join(k.value for k in bottlenecks),
    )
    return ReserveResult(
        score=score,
        pressure=worst,
        level=ReserveLevel.from_score(score),
        signals=signals,
        bottlenecks=bottlenecks,
    )
