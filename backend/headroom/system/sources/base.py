# backend/headroom/system/sources/base.py
from __future__ import annotations

import asyncio
import logging
import subprocess
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Awaitable, Callable, Dict, List, Optional, Sequence, Tuple, TypeVar

import psutil

from headroom.core.errors import CollectionError
from headroom.system.config import ReserveConfig
from headroom.system.models import SignalKind, clamp_to_domain
from headroom.system.platform import Platform

log = logging.getLogger("headroom.collect")

SignalValues = Dict[SignalKind, Optional[float]]
CommandRunner = Callable[[Sequence[str]], Optional[str]]

T = TypeVar("T")


def safe_ratio(num: float, den: float) -> Optional[float]:
    # zero or negative denominators mean "nothing measured", not 0%
    if den <= 0:
        return None
    return num / den


def bounded(kind: SignalKind, value: Optional[float]) -> Optional[float]:
    return clamp_to_domain(kind, value)


def read_text(path: Path) -> Optional[str]:
    try:
        return path.read_text()
    except (OSError, UnicodeDecodeError) as e:
        log.debug("cannot read %s: %s", path, e)
        return None


def run_command(args: Sequence[str], timeout_s: float = 5.0) -> Optional[str]:
    try:
        res = subprocess.run(
            list(args),
            capture_output=True,
            text=True,
            timeout=timeout_s,
            check=True,
        )
    except (OSError, subprocess.SubprocessError) as e:
        log.debug("command %s failed: %s", " ".join(args), e)
        return None
    return res.stdout


@dataclass(frozen=True)
class Sample:
    """One read of a cumulative counter source, stamped with a monotonic clock."""

    taken_at: float
    data: object


@dataclass(frozen=True)
class SourceOperation:
    name: str
    kinds: Tuple[SignalKind, ...]
    run: Callable[[], Awaitable[SignalValues]]


class SignalSource:
    """
    Per-platform set of signal reads.

    Subclasses list their reads in operations(); the sampler runs them all
    concurrently. Each read returns a value (or None) for the kinds it declares.
    """

    platform: Platform

    def __init__(self, config: Optional[ReserveConfig] = None) -> None:
        self.config = config or ReserveConfig()

    def operations(self) -> List[SourceOperation]:
        raise NotImplementedError

    @property
    def sampling_interval_s(self) -> float:
        return self.config.sampling_interval_s

    async def sample_twice(self, read: Callable[[], Awaitable[T]]) -> Tuple[Sample, Sample]:
        """
        Take A, sleep for the sampling interval, take B.
        Rate signals are computed from B - A over the elapsed time between them.
        """
        first = await read()
        t0 = time.monotonic()
        await asyncio.sleep(self.sampling_interval_s)
        second = await read()
        t1 = time.monotonic()
        return Sample(taken_at=t0, data=first), Sample(taken_at=t1, data=second)

    def logical_cpu_count(self) -> Optional[int]:
        try:
            n = psutil.cpu_count(logical=True)
        except (OSError, RuntimeError) as e:
            log.debug("psutil.cpu_count failed: %s", e)
            return None
        return int(n) if n else None

    def fallback_cpu_count(self) -> Optional[int]:
        return None

    def cpu_cores(self) -> int:
        cores = self.logical_cpu_count() or self.fallback_cpu_count()
        if not cores:
            raise CollectionError("cannot determine CPU core count")
        return cores


# ---- network counters, shared by both platforms ----

@dataclass(frozen=True)
class NetCounters:
    rx_bytes: int
    rx_packets: int
    rx_dropped: int
    tx_bytes: int
    tx_packets: int
    tx_dropped: int


def network_ratios(
    a: Dict[str, NetCounters],
    b: Dict[str, NetCounters],
    elapsed_s: float,
    capacity_bytes_s: Callable[[str], float],
) -> Tuple[Optional[float], Optional[float]]:
    """
    (bandwidth, dropped) across interfaces that moved packets in the window.
    Interfaces must already be filtered down to real ones.
    """
    if elapsed_s <= 0:
        return None, None

    bandwidth: Optional[float] = None
    packets = 0
    dropped = 0
    for name, cur in b.items():
        prev = a.get(name)
        if prev is None:
            continue
        d_packets = max(0, cur.rx_packets - prev.rx_packets) + max(0, cur.tx_packets - prev.tx_packets)
        d_dropped = max(0, cur.rx_dropped - prev.rx_dropped) + max(0, cur.tx_dropped - prev.tx_dropped)
        if d_packets + d_dropped == 0:
            continue

        # full duplex: the busier direction is what saturates the link
        d_bytes = max(cur.rx_bytes - prev.rx_bytes, cur.tx_bytes - prev.tx_bytes, 0)
        util = (d_bytes / elapsed_s) / capacity_bytes_s(name)
        bandwidth = util if bandwidth is None else max(bandwidth, util)
        packets += d_packets
        dropped += d_dropped

    return bandwidth, safe_ratio(dropped, packets + dropped)
