# backend/headroom/system/platform.py
from __future__ import annotations

import sys
from enum import Enum
from typing import Optional

from headroom.core.errors import UnsupportedPlatformError


class Platform(str, Enum):
    LINUX = "linux"
    MACOS = "macos"


def platform_name(sys_platform: Optional[str] = None) -> str:
    p = sys_platform if sys_platform is not None else sys.platform
    if p.startswith("linux"):
        return "Linux"
    if p == "darwin":
        return "macOS"
    if p in ("win32", "cygwin"):
        return "Windows"
    if p.startswith("freebsd"):
        return "FreeBSD"
    return "Unknown"


def detect_platform(sys_platform: Optional[str] = None) -> Optional[Platform]:
    p = sys_platform if sys_platform is not None else sys.platform
    if p.startswith("linux"):
        return Platform.LINUX
    if p == "darwin":
        return Platform.MACOS
    return None


def is_supported_platform(sys_platform: Optional[str] = None) -> bool:
    return detect_platform(sys_platform) is not None


def check_platform(sys_platform: Optional[str] = None) -> Platform:
    platform = detect_platform(sys_platform)
    if platform is None:
        raise UnsupportedPlatformError(platform_name(sys_platform))
    return platform
