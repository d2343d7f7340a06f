# backend/headroom/__init__.py
from __future__ import annotations

from headroom.core.errors import (
    CollectionError,
    CollectionTimeout,
    HeadroomError,
    UnsupportedPlatformError,
)
from headroom.system.config import ReserveConfig, load_config, resolve_all_params, resolve_params
from headroom.system.models import (
    MetricsSnapshot,
    ReserveLevel,
    ReserveResult,
    SigmoidParams,
    SignalKind,
    SignalScore,
)
from headroom.system.platform import (
    Platform,
    check_platform,
    detect_platform,
    is_supported_platform,
    platform_name,
)
from headroom.system.reserve import compute_reserve
from headroom.system.sampler import collect_metrics
from headroom.system.service import get_reserve, get_reserve_score

__version__ = "0.1.0"

__all__ = [
    "CollectionError",
    "CollectionTimeout",
    "HeadroomError",
    "MetricsSnapshot",
    "Platform",
    "ReserveConfig",
    "ReserveLevel",
    "ReserveResult",
    "SigmoidParams",
    "SignalKind",
    "SignalScore",
    "UnsupportedPlatformError",
    "check_platform",
    "collect_metrics",
    "compute_reserve",
    "detect_platform",
    "get_reserve",
    "get_reserve_score",
    "is_supported_platform",
    "load_config",
    "platform_name",
    "resolve_all_params",
    "resolve_params",
]
