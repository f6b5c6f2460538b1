"""Parsing and formatting of clock times, dates and durations."""

from __future__ import annotations

from datetime import date, datetime, time, timedelta

_DAY = timedelta(days=1)


def parse_clock(text: str) -> time:
    """Parse "9:05", "09:05" or "0905" into a time. Raises ValueError."""
    s = text.strip()
    if ":" in s:
        hour_s, _, minute_s = s.partition(":")
    elif len(s) == 4:
        hour_s, minute_s = s[:2], s[2:]
    else:
        msg = f"not a clock time: {text!r} (use HH:MM or HHMM)"
        raise ValueError(msg)
    if not (hour_s.isdigit() and minute_s.isdigit()):
        msg = f"not a clock time: {text!r}"
        raise ValueError(msg)
    hour, minute = int(hour_s), int(minute_s)
    if hour >= 24 or minute >= 60:
        msg = f"clock time out of range: {text!r}"
        raise ValueError(msg)
    return time(hour, minute)


def parse_date(text: str, *, today: date | None = None) -> date:
    """Parse an ISO date, "today" or "yesterday"."""
    today = today or date.today()
    s = text.strip().lower()
    if s == "today":
        return today
    if s == "yesterday":
        return today - _DAY
    return date.fromisoformat(s)


def span(day: date, start: time, end: time) -> tuple[datetime, timedelta]:
    """Start datetime and duration for a start/end clock pair on day.

    An end before the start means the span crossed midnight, so
    23:00-01:00 is two hours. Equal clocks give a zero duration.
    """
    begin = datetime.combine(day, start)
    finish = datetime.combine(day, end)
    if finish < begin:
        finish += _DAY
    return begin, finish - begin


def format_duration(duration: timedelta) -> str:
    """Compact hours/minutes form: "1h30m", "2h", "45m", "0m"."""
    minutes = int(duration.total_seconds()) // 60
    hours, minutes = divmod(minutes, 60)
    out = ""
    if hours:
        out += f"{hours}h"
    if minutes:
        out += f"{minutes}m"
    return out or "0m"


def format_clock(moment: datetime) -> str:
    return moment.strftime("%H:%M")
