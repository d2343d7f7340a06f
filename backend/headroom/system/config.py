# backend/headroom/system/config.py
from __future__ import annotations

import logging
import math
import os
from pathlib import Path
from types import MappingProxyType
from typing import Dict, Mapping, Optional

from pydantic import BaseModel, Field

from .models import SigmoidParams, SignalKind

log = logging.getLogger("headroom.score")


def _env_finite_float(name: str, default: float, env: Optional[Mapping[str, str]] = None) -> float:
    raw = (os.environ if env is None else env).get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        value = float(raw)
    except ValueError:
        log.debug("ignoring %s=%r: not a number", name, raw)
        return default
    if not math.isfinite(value):
        log.debug("ignoring %s=%r: not finite", name, raw)
        return default
    return value


def _env_path(name: str, default: Path) -> Path:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return Path(raw)


# ---- Sigmoid parameters per signal ----

DEFAULT_PARAMS: Mapping[SignalKind, SigmoidParams] = MappingProxyType({
    SignalKind.CPU_USAGE: SigmoidParams(midpoint=0.65, steepness=8.0),
    SignalKind.CPU_IOWAIT: SigmoidParams(midpoint=0.20, steepness=20.0),
    SignalKind.CPU_LOAD: SigmoidParams(midpoint=1.2, steepness=5.0),
    # memory: flat until close to full, then very steep
    SignalKind.MEMORY_USAGE: SigmoidParams(midpoint=0.85, steepness=18.0),
    SignalKind.MEMORY_PRESSURE: SigmoidParams(midpoint=0.30, steepness=12.0),
    SignalKind.DISK_IO: SigmoidParams(midpoint=0.70, steepness=10.0),
    SignalKind.NETWORK_BANDWIDTH: SigmoidParams(midpoint=0.80, steepness=6.0),
    # a few percent of dropped packets is already bad
    SignalKind.NETWORK_DROPPED: SigmoidParams(midpoint=0.02, steepness=100.0),
    SignalKind.FD_USAGE: SigmoidParams(midpoint=0.90, steepness=25.0),
    SignalKind.PROCESS_COUNT: SigmoidParams(midpoint=0.80, steepness=12.0),
})


def env_prefix(kind: SignalKind) -> str:
    return f"HEADROOM_{SignalKind(kind).value.upper()}"


def resolve_params(kind: SignalKind, env: Optional[Mapping[str, str]] = None) -> SigmoidParams:
    """
    Effective (midpoint, steepness) for one signal.

    HEADROOM_<KIND>_MIDPOINT / HEADROOM_<KIND>_STEEPNESS override the defaults
    independently. Anything that is not a finite float is ignored.
    `env` defaults to os.environ.
    """
    kind = SignalKind(kind)
    default = DEFAULT_PARAMS[kind]
    prefix = env_prefix(kind)
    return SigmoidParams(
        midpoint=_env_finite_float(f"{prefix}_MIDPOINT", default.midpoint, env),
        steepness=_env_finite_float(f"{prefix}_STEEPNESS", default.steepness, env),
    )


def resolve_all_params(env: Optional[Mapping[str, str]] = None) -> Dict[SignalKind, SigmoidParams]:
    return {kind: resolve_params(kind, env) for kind in SignalKind}


# ---- Collection settings ----

class ReserveConfig(BaseModel):
    # Delay between the two reads of rate signals
    sampling_interval_s: float = Field(default=0.5, gt=0.0, le=10.0, allow_inf_nan=False)
    # Upper bound for any single external command
    command_timeout_s: float = Field(default=5.0, gt=0.0, le=3600.0, allow_inf_nan=False)

    # Used when an interface does not report its link speed (1 Gbit/s)
    network_capacity_bytes_s: float = Field(default=125_000_000.0, gt=0.0, allow_inf_nan=False)
    # Throughput treated as a saturated disk where only MB/s is available
    disk_throughput_bytes_s: float = Field(default=500_000_000.0, gt=0.0, allow_inf_nan=False)

    proc_root: Path = Path("/proc")
    sys_root: Path = Path("/sys")


def load_config() -> ReserveConfig:
    return ReserveConfig(
        sampling_interval_s=_env_finite_float("HEADROOM_SAMPLING_INTERVAL_S", 0.5),
        command_timeout_s=_env_finite_float("HEADROOM_COMMAND_TIMEOUT_S", 5.0),
        network_capacity_bytes_s=_env_finite_float("HEADROOM_NETWORK_CAPACITY_BYTES_S", 125_000_000.0),
        disk_throughput_bytes_s=_env_finite_float("HEADROOM_DISK_THROUGHPUT_BYTES_S", 500_000_000.0),
        proc_root=_env_path("HEADROOM_PROC_ROOT", Path("/proc")),
        sys_root=_env_path("HEADROOM_SYS_ROOT", Path("/sys")),
    )
