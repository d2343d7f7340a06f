# backend/headroom/system/sources/__init__.py
from __future__ import annotations

from typing import Dict, Optional, Type

from headroom.system.config import ReserveConfig
from headroom.system.platform import Platform

from .base import SignalSource, SourceOperation
from .linux import LinuxSignalSource
from .macos import MacOSSignalSource

SOURCES: Dict[Platform, Type[SignalSource]] = {
    Platform.LINUX: LinuxSignalSource,
    Platform.MACOS: MacOSSignalSource,
}


def build_source(platform: Platform, config: Optional[ReserveConfig] = None) -> SignalSource:
    return SOURCES[Platform(platform)](config)


__all__ = [
    "SOURCES",
    "LinuxSignalSource",
    "MacOSSignalSource",
    "SignalSource",
    "SourceOperation",
    "build_source",
]
