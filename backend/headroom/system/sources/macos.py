# backend/headroom/system/sources/macos.py
from __future__ import annotations

import asyncio
import math
from functools import partial
from typing import Dict, List, Optional, Tuple

from headroom.system.config import ReserveConfig
from headroom.system.models import SignalKind
from headroom.system.platform import Platform

from .base import (
    CommandRunner,
    NetCounters,
    SignalSource,
    SignalValues,
    SourceOperation,
    bounded,
    network_ratios,
    run_command,
    safe_ratio,
)

VIRTUAL_IFACE_PREFIXES = ("lo", "gif", "stf", "utun", "awdl", "llw", "bridge", "anpi", "ap")


def _float(raw: str) -> Optional[float]:
    try:
        return float(raw.rstrip("%."))
    except ValueError:
        return None


def parse_top_cpu_usage(text: str) -> Optional[float]:
    """
    Busy share from `top -l 2` output.

    The first sample is since boot, so only the last "CPU usage:" line counts:
    "CPU usage: 5.26% user, 10.52% sys, 84.21% idle"
    """
    line = None
    for candidate in text.splitlines():
        if candidate.startswith("CPU usage:"):
            line = candidate
    if line is None:
        return None
    for part in line.split(":", 1)[1].split(","):
        fields = part.split()
        if len(fields) == 2 and fields[1] == "idle":
            idle = _float(fields[0])
            return None if idle is None else (100.0 - idle) / 100.0
    return None


def parse_sysctl_loadavg(text: str) -> Optional[float]:
    # "{ 1.23 1.45 1.67 }"
    parts = text.replace("{", " ").replace("}", " ").split()
    return _float(parts[0]) if parts else None


def parse_int(text: str) -> Optional[int]:
    try:
        return int(text.strip())
    except ValueError:
        return None


def parse_vm_stat(text: str) -> Dict[str, int]:
    """Page counts keyed by label, e.g. "Pages free" -> 12345."""
    out: Dict[str, int] = {}
    for line in text.splitlines():
        if ":" not in line:
            continue
        label, _, raw = line.partition(":")
        try:
            out[label.strip()] = int(raw.strip().rstrip("."))
        except ValueError:
            continue
    return out


def vm_memory_ratios(pages: Dict[str, int]) -> Tuple[Optional[float], Optional[float]]:
    """(usage, pressure); pressure is the compressor's share of physical pages."""
    active = pages.get("Pages active")
    wired = pages.get("Pages wired down")
    if active is None or wired is None:
        return None, None
    compressed = pages.get("Pages occupied by compressor", 0)
    total = (
        pages.get("Pages free", 0)
        + active
        + pages.get("Pages inactive", 0)
        + pages.get("Pages speculative", 0)
        + wired
        + compressed
    )
    return safe_ratio(active + wired + compressed, total), safe_ratio(compressed, total)


def parse_iostat_mb_s(text: str) -> List[float]:
    """
    Per-disk MB/s from the last sample of `iostat -d -c 2 -w 1`.
    Each disk prints "KB/t tps MB/s", so MB/s is every third column.
    """
    last: Optional[List[float]] = None
    for line in text.splitlines():
        fields = line.split()
        if not fields or len(fields) % 3:
            continue
        try:
            last = [float(f) for f in fields]
        except ValueError:
            continue
    if last is None:
        return []
    return last[2::3]


def parse_netstat_links(text: str) -> Dict[str, NetCounters]:
    """
    Link-level rows of `netstat -ibdn`.

    The Address column is empty for some interfaces, so counters are taken
    from the end of the row: Ipkts Ierrs Ibytes Opkts Oerrs Obytes Coll Drop.
    """
    out: Dict[str, NetCounters] = {}
    for line in text.splitlines():
        fields = line.split()
        if len(fields) < 10 or not fields[2].startswith("<Link#"):
            continue
        name = fields[0].rstrip("*")
        if name in out:
            continue
        try:
            out[name] = NetCounters(
                rx_bytes=int(fields[-6]),
                rx_packets=int(fields[-8]),
                rx_dropped=0,
                tx_bytes=int(fields[-3]),
                tx_packets=int(fields[-5]),
                tx_dropped=int(fields[-1]),
            )
        except ValueError:
            continue
    return out


def is_virtual_interface(name: str) -> bool:
    return name.startswith(VIRTUAL_IFACE_PREFIXES)


class MacOSSignalSource(SignalSource):
    """
    Shells out to the BSD tools shipped with macOS. `run` executes one command
    and returns stdout or None; tests inject canned output through it.
    """

    platform = Platform.MACOS

    def __init__(self, config: Optional[ReserveConfig] = None, run: Optional[CommandRunner] = None) -> None:
        super().__init__(config)
        self.run = run or partial(run_command, timeout_s=self.config.command_timeout_s)

    async def _cmd(self, *args: str) -> Optional[str]:
        return await asyncio.to_thread(self.run, args)

    def operations(self) -> List[SourceOperation]:
        return [
            SourceOperation("cpu", (SignalKind.CPU_USAGE,), self.cpu),
            SourceOperation("cpu_load", (SignalKind.CPU_LOAD,), self.cpu_load),
            SourceOperation("memory", (SignalKind.MEMORY_USAGE, SignalKind.MEMORY_PRESSURE), self.memory),
            SourceOperation("disk", (SignalKind.DISK_IO,), self.disk_io),
            SourceOperation(
                "network",
                (SignalKind.NETWORK_BANDWIDTH, SignalKind.NETWORK_DROPPED),
                self.network,
            ),
            SourceOperation("fd", (SignalKind.FD_USAGE,), self.fd_usage),
            SourceOperation("processes", (SignalKind.PROCESS_COUNT,), self.process_count),
        ]

    def fallback_cpu_count(self) -> Optional[int]:
        out = self.run(("sysctl", "-n", "hw.ncpu"))
        return parse_int(out) if out else None

    @property
    def _tool_interval(self) -> str:
        # top and iostat only take whole seconds
        return str(max(1, math.ceil(self.sampling_interval_s)))

    # ---- rate signals ----

    async def cpu(self) -> SignalValues:
        out = await self._cmd("top", "-l", "2", "-n", "0", "-s", self._tool_interval)
        usage = parse_top_cpu_usage(out) if out else None
        return {SignalKind.CPU_USAGE: bounded(SignalKind.CPU_USAGE, usage)}

    async def disk_io(self) -> SignalValues:
        out = await self._cmd("iostat", "-d", "-c", "2", "-w", self._tool_interval)
        rates = parse_iostat_mb_s(out) if out else []
        if not rates:
            return {SignalKind.DISK_IO: None}
        util = max(rates) * 1_000_000 / self.config.disk_throughput_bytes_s
        return {SignalKind.DISK_IO: bounded(SignalKind.DISK_IO, util)}

    async def _net_counters(self) -> Optional[Dict[str, NetCounters]]:
        out = await self._cmd("netstat", "-ibdn")
        if not out:
            return None
        return {n: c for n, c in parse_netstat_links(out).items() if not is_virtual_interface(n)}

    async def network(self) -> SignalValues:
        a, b = await self.sample_twice(self._net_counters)
        if not a.data or not b.data:
            return {SignalKind.NETWORK_BANDWIDTH: None, SignalKind.NETWORK_DROPPED: None}
        capacity = self.config.network_capacity_bytes_s
        bandwidth, dropped = network_ratios(a.data, b.data, b.taken_at - a.taken_at, lambda _name: capacity)
        return {
            SignalKind.NETWORK_BANDWIDTH: bounded(SignalKind.NETWORK_BANDWIDTH, bandwidth),
            SignalKind.NETWORK_DROPPED: bounded(SignalKind.NETWORK_DROPPED, dropped),
        }

    # ---- instantaneous signals ----

    async def cpu_load(self) -> SignalValues:
        out = await self._cmd("sysctl", "-n", "vm.loadavg")
        load1 = parse_sysctl_loadavg(out) if out else None
        if load1 is None:
            return {SignalKind.CPU_LOAD: None}
        cores = await asyncio.to_thread(self.cpu_cores)
        return {SignalKind.CPU_LOAD: bounded(SignalKind.CPU_LOAD, load1 / cores)}

    async def memory(self) -> SignalValues:
        out = await self._cmd("vm_stat")
        usage, pressure = vm_memory_ratios(parse_vm_stat(out)) if out else (None, None)
        return {
            SignalKind.MEMORY_USAGE: bounded(SignalKind.MEMORY_USAGE, usage),
            SignalKind.MEMORY_PRESSURE: bounded(SignalKind.MEMORY_PRESSURE, pressure),
        }

    async def fd_usage(self) -> SignalValues:
        out = await self._cmd("sysctl", "-n", "kern.num_files", "kern.maxfiles")
        values = _ints(out)
        if len(values) < 2:
            return {SignalKind.FD_USAGE: None}
        return {SignalKind.FD_USAGE: bounded(SignalKind.FD_USAGE, safe_ratio(values[0], values[1]))}

    async def process_count(self) -> SignalValues:
        procs, limit = await asyncio.gather(
            self._cmd("ps", "-A", "-o", "pid="),
            self._cmd("sysctl", "-n", "kern.maxproc"),
        )
        if procs is None or limit is None:
            return {SignalKind.PROCESS_COUNT: None}
        count = sum(1 for line in procs.splitlines() if line.strip())
        maxproc = parse_int(limit)
        if maxproc is None:
            return {SignalKind.PROCESS_COUNT: None}
        return {SignalKind.PROCESS_COUNT: bounded(SignalKind.PROCESS_COUNT, safe_ratio(count, maxproc))}


def _ints(text: Optional[str]) -> List[int]:
    if not text:
        return []
    out: List[int] = []
    for raw in text.split():
        value = parse_int(raw)
        if value is not None:
            out.append(value)
    return out
