from __future__ import annotations

from datetime import datetime, timezone
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from ..config import settings
from ..models import Business, ForcedStatus

MINUTES_PER_DAY = 24 * 60


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def epoch_millis(moment: datetime | None = None) -> int:
    return int((moment or utcnow()).timestamp() * 1000)


def parse_hhmm(value: str | None) -> int | None:
    """Minutes since midnight for an ``HH:MM`` string, or None when malformed.

    ``24:00`` is accepted as end of day.
    """
    if not isinstance(value, str):
        return None
    parts = value.strip().split(":")
    if len(parts) != 2:
        return None
    try:
        hour = int(parts[0])
        minute = int(parts[1])
    except ValueError:
        return None
    if hour == 24 and minute == 0:
        return MINUTES_PER_DAY
    if hour < 0 or hour > 23 or minute < 0 or minute > 59:
        return None
    return hour * 60 + minute


def local_now(now_utc: datetime | None = None, timezone_name: str | None = None) -> datetime:
    zone_name = timezone_name or settings.default_timezone
    try:
        local_zone = ZoneInfo(zone_name)
    except (ZoneInfoNotFoundError, ValueError):
        local_zone = ZoneInfo(settings.default_timezone)

    now = now_utc or utcnow()
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    return now.astimezone(local_zone)


def minutes_since_midnight(moment: datetime) -> int:
    return moment.hour * 60 + moment.minute


def evaluate_open(
    forced_status: ForcedStatus | None,
    open_time: str | None,
    close_time: str | None,
    current_minutes: int,
) -> bool:
    if forced_status == ForcedStatus.OPEN:
        return True
    if forced_status == ForcedStatus.CLOSED:
        return False

    open_minutes = parse_hhmm(open_time)
    close_minutes = parse_hhmm(close_time)
    if open_minutes is None or close_minutes is None:
        return False
    # Windows crossing midnight (22:00-02:00) are never open under this model.
    return open_minutes <= current_minutes < close_minutes


def is_open_now(
    business: Business,
    now_utc: datetime | None = None,
    timezone_name: str | None = None,
) -> bool:
    current = minutes_since_midnight(local_now(now_utc, timezone_name))
    return evaluate_open(business.forced_status, business.open_time, business.close_time, current)


def status_label(is_open: bool) -> str:
    return "Aberto 🟢" if is_open else "Fechado 🔴"
