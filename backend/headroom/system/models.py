# backend/headroom/system/models.py
from __future__ import annotations

import math
from enum import Enum
from typing import Dict, List, Mapping, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, model_validator


class SignalKind(str, Enum):
    CPU_USAGE = "cpu_usage"
    CPU_IOWAIT = "cpu_iowait"
    CPU_LOAD = "cpu_load"
    MEMORY_USAGE = "memory_usage"
    MEMORY_PRESSURE = "memory_pressure"
    DISK_IO = "disk_io"
    NETWORK_BANDWIDTH = "network_bandwidth"
    NETWORK_DROPPED = "network_dropped"
    FD_USAGE = "fd_usage"
    PROCESS_COUNT = "process_count"


# Load per core queues past 1.0; anything beyond this is a pathological reading.
CPU_LOAD_CAP = 10.0

SIGNAL_DOMAINS: Dict[SignalKind, Tuple[float, float]] = {
    kind: (0.0, CPU_LOAD_CAP if kind is SignalKind.CPU_LOAD else 1.0)
    for kind in SignalKind
}

SIGNAL_LABELS: Dict[SignalKind, str] = {
    SignalKind.CPU_USAGE: "CPU Usage",
    SignalKind.CPU_IOWAIT: "CPU IO Wait",
    SignalKind.CPU_LOAD: "CPU Load",
    SignalKind.MEMORY_USAGE: "Memory Usage",
    SignalKind.MEMORY_PRESSURE: "Memory Pressure",
    SignalKind.DISK_IO: "Disk IO Utilization",
    SignalKind.NETWORK_BANDWIDTH: "Network Bandwidth",
    SignalKind.NETWORK_DROPPED: "Network Dropped Packets",
    SignalKind.FD_USAGE: "File Descriptors",
    SignalKind.PROCESS_COUNT: "Process Count",
}


def clamp_to_domain(kind: SignalKind, value: Optional[float]) -> Optional[float]:
    if value is None:
        return None
    value = float(value)
    if math.isnan(value):
        return None
    lo, hi = SIGNAL_DOMAINS[kind]
    return max(lo, min(hi, value))


class SigmoidParams(BaseModel):
    model_config = ConfigDict(frozen=True)

    midpoint: float = Field(allow_inf_nan=False)
    steepness: float = Field(allow_inf_nan=False)


class MetricsSnapshot(BaseModel):
    """
    One collection cycle. Every slot is either a normalized ratio or None
    (could not be measured this cycle). None never means "no pressure".
    """

    model_config = ConfigDict(frozen=True)

    cpu_usage: Optional[float] = None
    cpu_iowait: Optional[float] = None
    cpu_load: Optional[float] = None
    memory_usage: Optional[float] = None
    memory_pressure: Optional[float] = None
    disk_io: Optional[float] = None
    network_bandwidth: Optional[float] = None
    network_dropped: Optional[float] = None
    fd_usage: Optional[float] = None
    process_count: Optional[float] = None

    @model_validator(mode="after")
    def _check_domains(self) -> "MetricsSnapshot":
        for kind in SignalKind:
            value = getattr(self, kind.value)
            if value is None:
                continue
            lo, hi = SIGNAL_DOMAINS[kind]
            if not math.isfinite(value) or value < lo or value > hi:
                raise ValueError(f"{kind.value}={value} outside [{lo}, {hi}]")
        return self

    @classmethod
    def from_values(cls, values: Mapping[SignalKind, Optional[float]]) -> "MetricsSnapshot":
        return cls(**{SignalKind(k).value: v for k, v in values.items()})

    def get(self, kind: SignalKind) -> Optional[float]:
        return getattr(self, SignalKind(kind).value)

    def present(self) -> Dict[SignalKind, float]:
        out: Dict[SignalKind, float] = {}
        for kind in SignalKind:
            value = getattr(self, kind.value)
            if value is not None:
                out[kind] = value
        return out

    def absent(self) -> List[SignalKind]:
        return [kind for kind in SignalKind if getattr(self, kind.value) is None]


# ---- Reserve result ----

class ReserveLevel(int, Enum):
    CRITICAL = 1
    LOW = 2
    MEDIUM = 3
    HIGH = 4
    ABUNDANT = 5

    @classmethod
    def from_score(cls, score: float) -> "ReserveLevel":
        if score >= 4.5:
            return cls.ABUNDANT
        if score >= 3.5:
            return cls.HIGH
        if score >= 2.5:
            return cls.MEDIUM
        if score >= 1.5:
            return cls.LOW
        return cls.CRITICAL

    @property
    def description(self) -> str:
        return _LEVEL_DESCRIPTIONS[self]


_LEVEL_DESCRIPTIONS = {
    ReserveLevel.CRITICAL: "Critical - system under heavy load",
    ReserveLevel.LOW: "Low - resource constrained",
    ReserveLevel.MEDIUM: "Medium - adequate performance",
    ReserveLevel.HIGH: "High - ample resources",
    ReserveLevel.ABUNDANT: "Abundant - plenty of headroom",
}


class SignalScore(BaseModel):
    model_config = ConfigDict(frozen=True)

    value: float
    pressure: float = Field(ge=0, le=1)
    score: float = Field(ge=0, le=5)


class ReserveResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    score: float = Field(ge=0, le=5)
    pressure: float = Field(ge=0, le=1)
    level: ReserveLevel
    signals: Dict[SignalKind, SignalScore] = Field(default_factory=dict)
    bottlenecks: List[SignalKind] = Field(default_factory=list)
