"""
Display helpers for comment views: relative timestamps and avatar URLs.
"""
from __future__ import annotations

from datetime import datetime, timezone
from typing import NamedTuple
from urllib.parse import quote

PLACEHOLDER_AVATAR_URL = (
    "https://api.dicebear.com/9.x/glass/svg?seed={seed}"
    "&backgroundType=gradientLinear,solid"
)


class AvatarUrls(NamedTuple):
    avatar_url: str | None
    placeholder_url: str


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _ago(count: int, unit: str) -> str:
    return f"{count} {unit if count == 1 else unit + 's'} ago"


def format_time_ago(when: datetime, now: datetime | None = None) -> str:
    """Render a timestamp relative to now: 'just now', '5 minutes ago', '2 weeks ago'."""
    now = _as_utc(now or datetime.now(timezone.utc))
    seconds = int((now - _as_utc(when)).total_seconds())

    if seconds < 60:
        return "just now"
    minutes = seconds // 60
    if minutes < 60:
        return _ago(minutes, "minute")
    hours = minutes // 60
    if hours < 24:
        return _ago(hours, "hour")
    days = hours // 24
    if days < 7:
        return _ago(days, "day")
    weeks = days // 7
    if weeks < 4:
        return _ago(weeks, "week")
    months = days // 30
    if months < 12:
        return _ago(max(months, 1), "month")
    return _ago(days // 365, "year")


def avatar_urls(image: str | None, name: str | None) -> AvatarUrls:
    """
    Uploaded avatars (absolute URLs or /avatars/ paths) are used as-is;
    every user also gets a deterministic placeholder seeded by name.
    """
    placeholder = PLACEHOLDER_AVATAR_URL.format(seed=quote(name or "defaultUser"))
    avatar = None
    if image and image.startswith(("http://", "https://", "/avatars/")):
        avatar = image
    return AvatarUrls(avatar, placeholder)
