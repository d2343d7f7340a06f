# backend/headroom/main.py
from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from typing import List, Optional

from pydantic import ValidationError

from headroom.core.errors import CollectionError, UnsupportedPlatformError
from headroom.core.logging import setup_logging
from headroom.system.config import ReserveConfig, load_config, resolve_all_params
from headroom.system.models import SIGNAL_LABELS, MetricsSnapshot, ReserveResult
from headroom.system.platform import check_platform, platform_name
from headroom.system.reserve import compute_reserve
from headroom.system.sampler import collect_metrics

log = logging.getLogger("headroom.cli")


def format_summary(result: ReserveResult) -> str:
    return f"{result.score:.2f} ({result.level.description})"


def format_detailed(snapshot: MetricsSnapshot, result: ReserveResult) -> str:
    lines = [
        f"Power Reserve: {result.score:.2f} / 5.00",
        f"Level: {result.level.name} ({result.level.description})",
        f"Pressure: {result.pressure:.3f}",
        "Bottleneck: " + (", ".join(k.value for k in result.bottlenecks) or "none"),
        "",
        f"{'Signal':<26}{'Value':>8}{'Pressure':>10}{'Reserve':>9}",
    ]
    for kind, s in result.signals.items():
        lines.append(f"{SIGNAL_LABELS[kind]:<26}{s.value:>8.3f}{s.pressure:>10.3f}{s.score:>9.2f}")
    absent = snapshot.absent()
    if absent:
        lines.append("")
        lines.append("Unavailable: " + ", ".join(SIGNAL_LABELS[k] for k in absent))
    return "\n".join(lines)


def render(snapshot: MetricsSnapshot, result: ReserveResult, detailed: Optional[str]) -> str:
    if detailed == "json":
        return result.model_dump_json(indent=2)
    if detailed == "text":
        return format_detailed(snapshot, result)
    return format_summary(result)


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    p = argparse.ArgumentParser(description="Local power reserve (spare capacity) estimator")
    p.add_argument("--once", action="store_true", help="print one reading and exit")
    p.add_argument("--interval", type=float, default=3.0, help="seconds between readings")
    p.add_argument(
        "--detailed",
        nargs="?",
        const="text",
        default=None,
        choices=["text", "json"],
        help="per-signal breakdown (text or json)",
    )
    p.add_argument("--timeout", type=float, default=None, help="deadline for one collection")
    return p.parse_args(argv)


async def _reading(cfg: ReserveConfig, detailed: Optional[str], timeout_s: Optional[float]) -> str:
    snapshot = await collect_metrics(cfg, timeout_s=timeout_s)
    result = compute_reserve(snapshot, resolve_all_params())
    log.info("reserve=%.2f level=%s bottlenecks=%s", result.score, result.level.name,
             [k.value for k in result.bottlenecks])
    return render(snapshot, result, detailed)


async def _amain(args: argparse.Namespace, cfg: ReserveConfig) -> None:
    while True:
        print(await _reading(cfg, args.detailed, args.timeout), flush=True)
        if args.once:
            return
        await asyncio.sleep(args.interval)


def main(argv: Optional[List[str]] = None) -> int:
    args = parse_args(argv)
    setup_logging()

    try:
        check_platform()
    except UnsupportedPlatformError as e:
        log.error("unsupported platform %s", platform_name())
        print(f"Error: {e}", file=sys.stderr)
        return 1

    try:
        cfg = load_config()
    except ValidationError as e:
        log.error("invalid configuration: %s", e)
        print(f"Error: invalid configuration: {e}", file=sys.stderr)
        return 1

    try:
        asyncio.run(_amain(args, cfg))
    except KeyboardInterrupt:
        return 0
    except CollectionError as e:
        log.exception("collection failed")
        print(f"Error: {e}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
