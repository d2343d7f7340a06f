# backend/headroom/system/sources/linux.py
from __future__ import annotations

import asyncio
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional, Tuple

from headroom.system.models import SignalKind
from headroom.system.platform import Platform

from .base import (
    NetCounters,
    SignalSource,
    SignalValues,
    SourceOperation,
    bounded,
    log,
    network_ratios,
    read_text,
    safe_ratio,
)


# ---- /proc/stat ----

@dataclass(frozen=True)
class CpuTimes:
    idle: int
    iowait: int
    total: int


def parse_cpu_times(text: str) -> Optional[CpuTimes]:
    # "cpu  user nice system idle iowait irq softirq steal guest guest_nice"
    for line in text.splitlines():
        parts = line.split()
        if not parts or parts[0] != "cpu":
            continue
        try:
            # guest time is already counted in user, so stop at steal
            fields = [int(v) for v in parts[1:9]]
        except ValueError:
            return None
        if len(fields) < 5:
            return None
        return CpuTimes(idle=fields[3], iowait=fields[4], total=sum(fields))
    return None


def cpu_ratios(a: CpuTimes, b: CpuTimes) -> Tuple[Optional[float], Optional[float]]:
    """
    (usage, iowait) over the window between two /proc/stat reads.
    Usage is everything but idle, so time stalled on I/O counts as busy.
    """
    d_total = b.total - a.total
    if d_total <= 0:
        return None, None
    d_idle = max(0, b.idle - a.idle)
    d_iowait = max(0, b.iowait - a.iowait)
    busy = max(0, d_total - d_idle)
    return busy / d_total, d_iowait / d_total


# ---- /proc/loadavg, /proc/cpuinfo ----

def parse_loadavg(text: str) -> Optional[float]:
    parts = text.split()
    if not parts:
        return None
    try:
        return float(parts[0])
    except ValueError:
        return None


def parse_task_count(loadavg_text: str) -> Optional[int]:
    # 4th field is "running/total" scheduling entities
    parts = loadavg_text.split()
    if len(parts) < 4 or "/" not in parts[3]:
        return None
    try:
        return int(parts[3].split("/", 1)[1])
    except ValueError:
        return None


def parse_cpuinfo_cores(text: str) -> Optional[int]:
    n = sum(1 for line in text.splitlines() if line.startswith("processor"))
    return n or None


# ---- /proc/meminfo, /proc/pressure/memory ----

def _parse_meminfo(text: str) -> Dict[str, int]:
    out: Dict[str, int] = {}
    for line in text.splitlines():
        parts = line.split()
        if len(parts) < 2 or not parts[0].endswith(":"):
            continue
        try:
            out[parts[0][:-1]] = int(parts[1])
        except ValueError:
            continue
    return out


def parse_memory_usage(text: str) -> Optional[float]:
    info = _parse_meminfo(text)
    total = info.get("MemTotal", 0)
    if total <= 0:
        return None
    available = info.get("MemAvailable")
    if available is None:
        # kernels before 3.14
        if "MemFree" not in info:
            return None
        available = info["MemFree"] + info.get("Buffers", 0) + info.get("Cached", 0)
    return max(0, total - available) / total


def parse_memory_pressure(text: str) -> Optional[float]:
    # "some avg10=1.23 avg60=0.50 avg300=0.10 total=12345"
    for line in text.splitlines():
        if not line.startswith("some "):
            continue
        for field in line.split()[1:]:
            key, _, raw = field.partition("=")
            if key == "avg10":
                try:
                    return float(raw) / 100.0
                except ValueError:
                    return None
    return None


# ---- /proc/diskstats ----

_WHOLE_DISK_RE = re.compile(r"^(?:(?:sd|hd|vd|xvd)[a-z]+|nvme\d+n\d+|mmcblk\d+|md\d+)$")


def is_whole_disk(name: str) -> bool:
    return bool(_WHOLE_DISK_RE.match(name))


def parse_diskstats(text: str) -> Dict[str, int]:
    """Device name -> milliseconds spent doing I/O, whole physical disks only."""
    out: Dict[str, int] = {}
    for line in text.splitlines():
        parts = line.split()
        if len(parts) < 14:
            continue
        name = parts[2]
        if not is_whole_disk(name):
            continue
        try:
            out[name] = int(parts[12])
        except ValueError:
            continue
    return out


def disk_utilization(a: Dict[str, int], b: Dict[str, int], elapsed_s: float) -> Optional[float]:
    if elapsed_s <= 0:
        return None
    busiest: Optional[float] = None
    for name, ticks in b.items():
        if name not in a:
            continue
        util = max(0, ticks - a[name]) / (elapsed_s * 1000.0)
        busiest = util if busiest is None else max(busiest, util)
    return busiest


# ---- /proc/net/dev ----

VIRTUAL_IFACE_PREFIXES = (
    "lo", "docker", "veth", "br-", "virbr", "vnet", "tun", "tap",
    "cni", "flannel", "cali", "vxlan", "kube", "dummy",
)


def parse_net_dev(text: str) -> Dict[str, NetCounters]:
    out: Dict[str, NetCounters] = {}
    for line in text.splitlines():
        if ":" not in line:
            continue
        name, _, rest = line.partition(":")
        name = name.strip()
        fields = rest.split()
        if not name or len(fields) < 16:
            continue
        try:
            out[name] = NetCounters(
                rx_bytes=int(fields[0]),
                rx_packets=int(fields[1]),
                rx_dropped=int(fields[3]),
                tx_bytes=int(fields[8]),
                tx_packets=int(fields[9]),
                tx_dropped=int(fields[11]),
            )
        except ValueError:
            continue
    return out


# ---- /proc/sys/fs/file-nr ----

def parse_file_nr(text: str) -> Optional[float]:
    # "allocated  free  max"
    parts = text.split()
    if len(parts) < 3:
        return None
    try:
        allocated, free, maximum = (int(p) for p in parts[:3])
    except ValueError:
        return None
    return safe_ratio(max(0, allocated - free), maximum)


class LinuxSignalSource(SignalSource):
    """Reads /proc and /sys. Paths are rooted at config.proc_root / config.sys_root."""

    platform = Platform.LINUX

    @property
    def proc(self) -> Path:
        return self.config.proc_root

    @property
    def sys(self) -> Path:
        return self.config.sys_root

    async def _read(self, path: Path) -> Optional[str]:
        return await asyncio.to_thread(read_text, path)

    def operations(self) -> List[SourceOperation]:
        return [
            SourceOperation("cpu", (SignalKind.CPU_USAGE, SignalKind.CPU_IOWAIT), self.cpu),
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
        text = read_text(self.proc / "cpuinfo")
        return parse_cpuinfo_cores(text) if text else None

    # ---- rate signals ----

    async def _cpu_times(self) -> Optional[CpuTimes]:
        text = await self._read(self.proc / "stat")
        return parse_cpu_times(text) if text else None

    async def cpu(self) -> SignalValues:
        a, b = await self.sample_twice(self._cpu_times)
        if a.data is None or b.data is None:
            return {SignalKind.CPU_USAGE: None, SignalKind.CPU_IOWAIT: None}
        usage, iowait = cpu_ratios(a.data, b.data)
        return {
            SignalKind.CPU_USAGE: bounded(SignalKind.CPU_USAGE, usage),
            SignalKind.CPU_IOWAIT: bounded(SignalKind.CPU_IOWAIT, iowait),
        }

    async def _disk_ticks(self) -> Optional[Dict[str, int]]:
        text = await self._read(self.proc / "diskstats")
        return parse_diskstats(text) if text else None

    async def disk_io(self) -> SignalValues:
        a, b = await self.sample_twice(self._disk_ticks)
        if not a.data or not b.data:
            return {SignalKind.DISK_IO: None}
        util = disk_utilization(a.data, b.data, b.taken_at - a.taken_at)
        return {SignalKind.DISK_IO: bounded(SignalKind.DISK_IO, util)}

    def is_virtual_interface(self, name: str) -> bool:
        if name.startswith(VIRTUAL_IFACE_PREFIXES):
            return True
        return (self.sys / "devices" / "virtual" / "net" / name).exists()

    def link_capacity_bytes_s(self, name: str) -> float:
        # speed is in Mbit/s; -1 or missing for links that do not report it
        text = read_text(self.sys / "class" / "net" / name / "speed")
        try:
            mbit = int(text.strip()) if text else 0
        except ValueError:
            mbit = 0
        if mbit <= 0:
            return self.config.network_capacity_bytes_s
        return mbit * 1_000_000 / 8.0

    async def _net_counters(self) -> Optional[Dict[str, NetCounters]]:
        text = await self._read(self.proc / "net" / "dev")
        if not text:
            return None
        counters = parse_net_dev(text)
        real = await asyncio.to_thread(
            lambda: {n: c for n, c in counters.items() if not self.is_virtual_interface(n)}
        )
        return real

    async def network(self) -> SignalValues:
        a, b = await self.sample_twice(self._net_counters)
        if not a.data or not b.data:
            return {SignalKind.NETWORK_BANDWIDTH: None, SignalKind.NETWORK_DROPPED: None}
        capacities = await asyncio.to_thread(
            lambda: {name: self.link_capacity_bytes_s(name) for name in b.data}
        )
        bandwidth, dropped = network_ratios(
            a.data, b.data, b.taken_at - a.taken_at, capacities.__getitem__
        )
        return {
            SignalKind.NETWORK_BANDWIDTH: bounded(SignalKind.NETWORK_BANDWIDTH, bandwidth),
            SignalKind.NETWORK_DROPPED: bounded(SignalKind.NETWORK_DROPPED, dropped),
        }

    # ---- instantaneous signals ----

    async def cpu_load(self) -> SignalValues:
        text = await self._read(self.proc / "loadavg")
        load1 = parse_loadavg(text) if text else None
        if load1 is None:
            return {SignalKind.CPU_LOAD: None}
        cores = await asyncio.to_thread(self.cpu_cores)
        return {SignalKind.CPU_LOAD: bounded(SignalKind.CPU_LOAD, load1 / cores)}

    async def memory(self) -> SignalValues:
        meminfo, psi = await asyncio.gather(
            self._read(self.proc / "meminfo"),
            self._read(self.proc / "pressure" / "memory"),
        )
        usage = parse_memory_usage(meminfo) if meminfo else None
        pressure = parse_memory_pressure(psi) if psi else None
        if psi is None:
            log.debug("no PSI memory pressure on this kernel")
        return {
            SignalKind.MEMORY_USAGE: bounded(SignalKind.MEMORY_USAGE, usage),
            SignalKind.MEMORY_PRESSURE: bounded(SignalKind.MEMORY_PRESSURE, pressure),
        }

    async def fd_usage(self) -> SignalValues:
        text = await self._read(self.proc / "sys" / "fs" / "file-nr")
        usage = parse_file_nr(text) if text else None
        return {SignalKind.FD_USAGE: bounded(SignalKind.FD_USAGE, usage)}

    async def process_count(self) -> SignalValues:
        loadavg, threads_max = await asyncio.gather(
            self._read(self.proc / "loadavg"),
            self._read(self.proc / "sys" / "kernel" / "threads-max"),
        )
        tasks = parse_task_count(loadavg) if loadavg else None
        try:
            limit = int(threads_max.strip()) if threads_max else 0
        except ValueError:
            limit = 0
        if tasks is None:
            return {SignalKind.PROCESS_COUNT: None}
        return {SignalKind.PROCESS_COUNT: bounded(SignalKind.PROCESS_COUNT, safe_ratio(tasks, limit))}
