from __future__ import annotations

import logging
import logging.config
import os
from pathlib import Path


def _log_dir() -> Path:
    raw = os.getenv("HEADROOM_LOG_DIR", "").strip()
    return Path(raw) if raw else Path.cwd() / "logs"


def _level_from_env(name: str, default: str = "INFO") -> str:
    val = os.getenv(name, default).upper().strip()
    return val if val in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"} else default


def setup_logging() -> None:
    """
    Configure file loggers:
      logs/collect.log   signal sources + sampler
      logs/score.log     parameter resolution + reserve reduction
      logs/cli.log       command-line runner

    Per-file log levels via env:
      HEADROOM_LOG_COLLECT_LEVEL
      HEADROOM_LOG_SCORE_LEVEL
      HEADROOM_LOG_CLI_LEVEL

    The directory defaults to ./logs and can be moved with HEADROOM_LOG_DIR.

    Collection and scoring records at HEADROOM_LOG_CONSOLE_LEVEL (WARNING by
    default) are also echoed to stderr, so a failing signal source is visible
    without opening the files. The CLI logger stays file-only because main()
    already prints its errors.

    Library code never calls this; only the CLI does.
    """
    logs_dir = _log_dir()
    logs_dir.mkdir(parents=True, exist_ok=True)

    config = {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "standard": {
                "format": "%(asctime)s %(levelname)s [%(name)s] %(message)s",
            },
            "brief": {
                "format": "%(levelname)s %(name)s: %(message)s",
            },
        },
        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "formatter": "brief",
                "stream": "ext://sys.stderr",
                "level": _level_from_env("HEADROOM_LOG_CONSOLE_LEVEL", "WARNING"),
            },
            "collect_file": {
                "class": "logging.FileHandler",
                "formatter": "standard",
                "filename": str(logs_dir / "collect.log"),
                "mode": "a",
            },
            "score_file": {
                "class": "logging.FileHandler",
                "formatter": "standard",
                "filename": str(logs_dir / "score.log"),
                "mode": "a",
            },
            "cli_file": {
                "class": "logging.FileHandler",
                "formatter": "standard",
                "filename": str(logs_dir / "cli.log"),
                "mode": "a",
            },
        },
        "loggers": {
            "headroom.collect": {
                "handlers": ["collect_file", "console"],
                "level": _level_from_env("HEADROOM_LOG_COLLECT_LEVEL", "INFO"),
                "propagate": False,
            },
            "headroom.score": {
                "handlers": ["score_file", "console"],
                "level": _level_from_env("HEADROOM_LOG_SCORE_LEVEL", "INFO"),
                "propagate": False,
            },
            "headroom.cli": {
                "handlers": ["cli_file"],
                "level": _level_from_env("HEADROOM_LOG_CLI_LEVEL", "INFO"),
                "propagate": False,
            },
        },
    }

    logging.config.dictConfig(config)
