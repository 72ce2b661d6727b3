"""
Presence estimate derived from a last-activity timestamp.

    elapsed < 5 min        -> Online   "Online"
    5 min <= elapsed < 1 h -> Away     "12 min ago"
    elapsed >= 1 h         -> Offline  "3 hours ago", "2 days ago", ...
    missing / unparsable   -> Unknown  "Unknown"

`presence()` is pure and never raises; bad input is reported as Unknown.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from enum import Enum

ONLINE_WINDOW = timedelta(minutes=5)
AWAY_WINDOW = timedelta(minutes=60)

_MINUTE = 60
_HOUR = 60 * _MINUTE
_DAY = 24 * _HOUR
_MONTH = 30 * _DAY
_YEAR = 365 * _DAY


class PresenceStatus(str, Enum):
    ONLINE = "Online"
    AWAY = "Away"
    OFFLINE = "Offline"
    UNKNOWN = "Unknown"


@dataclass(frozen=True)
class Presence:
    status: PresenceStatus
    label: str


UNKNOWN = Presence(PresenceStatus.UNKNOWN, "Unknown")


def parse_timestamp(value) -> datetime | None:
    """
    Coerce a datetime or ISO-8601 string into an aware UTC datetime.

    Naive values are taken to be UTC. Returns None for anything else.
    """
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, str) and value.strip():
        text = value.strip()
        if text.endswith(("Z", "z")):
            text = text[:-1] + "+00:00"
        try:
            parsed = datetime.fromisoformat(text)
        except (ValueError, OverflowError):
            return None
    else:
        return None

    if parsed.tzinfo is None or parsed.utcoffset() is None:
        return parsed.replace(tzinfo=timezone.utc)
    try:
        return parsed.astimezone(timezone.utc)
    except OverflowError:
        # Offset pushes the instant past datetime.min/max
        return None


def _plural(count: int, unit: str) -> str:
    return f"{count} {unit}{'' if count == 1 else 's'} ago"


def relative_label(elapsed: timedelta) -> str:
    """Coarse "N units ago" label for an elapsed time of an hour or more."""
    seconds = int(elapsed.total_seconds())
    if seconds < _DAY:
        return _plural(max(seconds // _HOUR, 1), "hour")
    if seconds < _MONTH:
        return _plural(seconds // _DAY, "day")
    if seconds < _YEAR:
        return _plural(seconds // _MONTH, "month")
    return _plural(seconds // _YEAR, "year")


def presence(last_activity, now: datetime | None = None) -> Presence:
    """
    Classify `last_activity` (datetime, ISO string or None) relative to `now`
    (defaults to the current UTC time).
    """
    last = parse_timestamp(last_activity)
    if last is None:
        return UNKNOWN

    current = parse_timestamp(now) if now is not None else datetime.now(timezone.utc)
    if current is None:
        return UNKNOWN

    try:
        elapsed = current - last
    except OverflowError:
        return UNKNOWN

    # Clock skew can put last activity slightly in the future
    if elapsed < ONLINE_WINDOW:
        return Presence(PresenceStatus.ONLINE, "Online")

    if elapsed < AWAY_WINDOW:
        minutes = int(elapsed.total_seconds() // _MINUTE)
        return Presence(PresenceStatus.AWAY, f"{minutes} min ago")

    return Presence(PresenceStatus.OFFLINE, relative_label(elapsed))
