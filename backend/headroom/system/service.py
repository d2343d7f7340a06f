# backend/headroom/system/service.py
from __future__ import annotations

from typing import Optional

from .config import ReserveConfig, load_config, resolve_all_params
from .models import ReserveResult
from .reserve import compute_reserve
from .sampler import collect_metrics


async def get_reserve(
    config: Optional[ReserveConfig] = None,
    timeout_s: Optional[float] = None,
) -> ReserveResult:
    """Collect from this host and reduce with the environment's sigmoid parameters."""
    snapshot = await collect_metrics(config or load_config(), timeout_s=timeout_s)
    return compute_reserve(snapshot, resolve_all_params())


async def get_reserve_score(
    config: Optional[ReserveConfig] = None,
    timeout_s: Optional[float] = None,
) -> float:
    result = await get_reserve(config, timeout_s=timeout_s)
    return result.score
