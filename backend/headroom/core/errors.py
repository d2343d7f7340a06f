# backend/headroom/core/errors.py
from __future__ import annotations


class HeadroomError(Exception):
    """Base class for every error raised by headroom."""


class UnsupportedPlatformError(HeadroomError):
    def __init__(self, platform: str) -> None:
        self.platform = platform
        super().__init__(
            f"Unsupported platform: {platform}. Only Linux and macOS are supported."
        )


class CollectionError(HeadroomError):
    """
    The collection subsystem itself is unusable.

    Raised to the caller only when the task machinery fails. Inside a single
    signal source it marks conditions like an undeterminable CPU core count;
    the sampler turns those into absent signals.
    """


class CollectionTimeout(CollectionError):
    def __init__(self, timeout_s: float) -> None:
        self.timeout_s = timeout_s
        super().__init__(f"Metrics collection did not finish within {timeout_s:.2f}s")
