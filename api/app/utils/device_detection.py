"""
Device detection from User-Agent strings.

Maps a raw User-Agent header to one of nine fixed device categories and
provides the DeviceStats counter record stored on daily/monthly rollups.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, fields
from enum import Enum
from typing import Any


class DeviceCategory(str, Enum):
    """Device category of a view."""
    MOBILE_IOS = "mobile_ios"
    MOBILE_ANDROID = "mobile_android"
    TABLET_IOS = "tablet_ios"
    TABLET_ANDROID = "tablet_android"
    DESKTOP_WINDOWS = "desktop_windows"
    DESKTOP_MAC = "desktop_mac"
    DESKTOP_LINUX = "desktop_linux"
    BOT = "bot"
    OTHER = "other"


# Substrings (lowercase) that identify crawlers. The generic markers already
# cover most named crawlers; the names are kept so the list documents intent.
BOT_MARKERS = (
    "bot",
    "crawler",
    "spider",
    "googlebot",
    "bingbot",
    "slurp",
    "duckduckbot",
    "baiduspider",
    "yandexbot",
    "facebookexternalhit",
    "twitterbot",
    "linkedinbot",
)


def is_bot_user_agent(user_agent: str | None) -> bool:
    """Return True if the User-Agent contains any known crawler marker."""
    if not user_agent:
        return False
    ua = user_agent.lower()
    return any(marker in ua for marker in BOT_MARKERS)


def classify_device(user_agent: str | None) -> DeviceCategory:
    """
    Classify a User-Agent string into a DeviceCategory.

    Matching is case-insensitive and first match wins. Order matters: Android
    agents also contain "linux" (and phones "mobile"), and iPads must be
    caught before the generic iPhone/desktop checks.

    Args:
        user_agent: User-Agent header string (may be empty or None)

    Returns:
        DeviceCategory enum value; never raises
    """
    if not user_agent:
        return DeviceCategory.OTHER

    ua = user_agent.lower()

    if is_bot_user_agent(ua):
        return DeviceCategory.BOT

    if "ipad" in ua:
        return DeviceCategory.TABLET_IOS

    if "iphone" in ua or "ipod" in ua:
        return DeviceCategory.MOBILE_IOS

    if "android" in ua:
        # Android tablets omit the "Mobile" token
        if "mobile" not in ua:
            return DeviceCategory.TABLET_ANDROID
        return DeviceCategory.MOBILE_ANDROID

    if "windows" in ua:
        return DeviceCategory.DESKTOP_WINDOWS

    if "macintosh" in ua or "mac os" in ua:
        return DeviceCategory.DESKTOP_MAC

    if "linux" in ua:
        return DeviceCategory.DESKTOP_LINUX

    return DeviceCategory.OTHER


@dataclass
class DeviceStats:
    """Per-category view counters. Always carries all nine keys."""

    mobile_ios: int = 0
    mobile_android: int = 0
    tablet_ios: int = 0
    tablet_android: int = 0
    desktop_windows: int = 0
    desktop_mac: int = 0
    desktop_linux: int = 0
    bot: int = 0
    other: int = 0

    def increment(self, category: DeviceCategory, amount: int = 1) -> None:
        setattr(self, category.value, getattr(self, category.value) + amount)

    def total(self) -> int:
        return sum(getattr(self, f.name) for f in fields(self))

    def __add__(self, other: DeviceStats) -> DeviceStats:
        if not isinstance(other, DeviceStats):
            return NotImplemented
        return DeviceStats(
            **{f.name: getattr(self, f.name) + getattr(other, f.name) for f in fields(self)}
        )

    def to_dict(self) -> dict[str, int]:
        """Convert to a plain dict for JSON column storage."""
        return asdict(self)

    @classmethod
    def from_json(cls, data: Any) -> DeviceStats:
        """
        Decode a stored device_stats value.

        Missing keys, unknown keys and non-integer values are tolerated:
        anything that isn't a usable count decodes as zero.
        """
        stats = cls()
        if not isinstance(data, dict):
            return stats
        for f in fields(stats):
            value = data.get(f.name)
            # bool is an int subclass, but True is not a count
            if isinstance(value, bool):
                continue
            if isinstance(value, int):
                setattr(stats, f.name, value)
            elif isinstance(value, float) and value.is_integer():
                setattr(stats, f.name, int(value))
        return stats
