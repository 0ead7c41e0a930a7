"""
Time helpers.

All timestamps are stored as naive UTC datetimes. Calendar boundaries (midnight,
first day of the month, weekday) are computed in the configured local time zone
and converted back to naive UTC so they compare directly with stored values.
"""

from datetime import datetime, time, timedelta, timezone
from zoneinfo import ZoneInfo
from flask import current_app, has_app_context

EPOCH = datetime(1970, 1, 1)


def utcnow():
    return datetime.now(timezone.utc).replace(tzinfo=None)


def to_epoch_ms(value):
    return int((value - EPOCH).total_seconds() * 1000)


def from_epoch_ms(ms):
    return EPOCH + timedelta(milliseconds=ms)


def app_timezone():
    """Time zone used for day boundaries; UTC outside an application context."""
    name = 'UTC'
    if has_app_context():
        name = current_app.config.get('APP_TIMEZONE') or 'UTC'
    return ZoneInfo(name)


def _resolve(tz):
    if tz is None:
        return app_timezone()
    if isinstance(tz, str):
        return ZoneInfo(tz)
    return tz


def to_local(now, tz=None):
    return now.replace(tzinfo=timezone.utc).astimezone(_resolve(tz))


def _local_midnight_utc(day, tz):
    midnight = datetime.combine(day, time(), tzinfo=tz)
    return midnight.astimezone(timezone.utc).replace(tzinfo=None)


def start_of_day(now, tz=None):
    tz = _resolve(tz)
    return _local_midnight_utc(to_local(now, tz).date(), tz)


def start_of_next_day(now, tz=None):
    tz = _resolve(tz)
    return _local_midnight_utc(to_local(now, tz).date() + timedelta(days=1), tz)


def start_of_month(now, tz=None):
    tz = _resolve(tz)
    return _local_midnight_utc(to_local(now, tz).date().replace(day=1), tz)


def start_of_previous_month(now, tz=None):
    tz = _resolve(tz)
    first = to_local(now, tz).date().replace(day=1)
    previous = (first - timedelta(days=1)).replace(day=1)
    return _local_midnight_utc(previous, tz)


def local_weekday(now, tz=None):
    """Monday is 0, Sunday is 6."""
    return to_local(now, tz).weekday()


def breakdown(delta):
    """Split a timedelta into whole hours/minutes/seconds, clamping negatives to zero."""
    total = max(0, int(delta.total_seconds()))
    return {
        'hours': total // 3600,
        'minutes': (total % 3600) // 60,
        'seconds': total % 60,
        'total_seconds': total,
    }


def format_breakdown(parts):
    return f"{parts['hours']}h {parts['minutes']}m {parts['seconds']}s"
