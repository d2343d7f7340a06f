# backend/headroom/system/sampler.py
from __future__ import annotations

import asyncio
import logging
from typing import Dict, List, Optional

from headroom.core.errors import CollectionError, CollectionTimeout
from headroom.system.config import ReserveConfig
from headroom.system.models import MetricsSnapshot, SignalKind, clamp_to_domain
from headroom.system.platform import check_platform
from headroom.system.sources import SignalSource, SourceOperation, build_source

log = logging.getLogger("headroom.collect")


def _merge(op: SourceOperation, result: object, into: Dict[SignalKind, Optional[float]]) -> None:
    if isinstance(result, BaseException):
        log.warning(
            "signal source %r failed; %s left absent",
            op.name,
            ", ".join(k.value for k in op.kinds),
            exc_info=(type(result), result, result.__traceback__),
        )
        return
    if not isinstance(result, dict):
        log.warning("signal source %r returned %r; ignored", op.name, type(result).__name__)
        return
    # only the kinds an operation declares may fill slots
    for kind in op.kinds:
        into[kind] = clamp_to_domain(kind, result.get(kind))


async def collect_snapshot(source: SignalSource) -> MetricsSnapshot:
    """
    Run every operation of `source` concurrently and assemble one snapshot.

    A failing operation leaves its own slots as None and never aborts the
    others. Only a failure to schedule the operations at all raises.
    """
    ops: List[SourceOperation] = source.operations()
    values: Dict[SignalKind, Optional[float]] = {kind: None for kind in SignalKind}

    try:
        results = await asyncio.gather(*(op.run() for op in ops), return_exceptions=True)
    except RuntimeError as e:
        raise CollectionError(f"cannot schedule signal collection: {e}") from e

    for op, result in zip(ops, results):
        if isinstance(result, asyncio.CancelledError):
            raise result
        _merge(op, result, values)

    snapshot = MetricsSnapshot.from_values(values)
    log.debug(
        "collected %d/%d signals on %s (absent: %s)",
        len(snapshot.present()),
        len(SignalKind),
        source.platform.value,
        ", ".join(k.value for k in snapshot.absent()) or "none",
    )
    return snapshot


async def collect_metrics(
    config: Optional[ReserveConfig] = None,
    source: Optional[SignalSource] = None,
    timeout_s: Optional[float] = None,
) -> MetricsSnapshot:
    """
    One sampling cycle for this host.

    Raises UnsupportedPlatformError before touching the OS when no source is
    given and the platform is not Linux or macOS. With `timeout_s` the whole
    call is bounded and partial results are discarded on expiry.
    """
    if source is None:
        source = build_source(check_platform(), config)

    if timeout_s is None:
        return await collect_snapshot(source)
    try:
        return await asyncio.wait_for(collect_snapshot(source), timeout=timeout_s)
    except asyncio.TimeoutError as e:
        raise CollectionTimeout(timeout_s) from e
