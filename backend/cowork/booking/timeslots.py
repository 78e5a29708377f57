"""Day-of-week and HH:MM helpers shared by the availability policy.

Weekdays come from ``date.weekday()`` and a fixed name table, never from
locale-dependent formatting. Times are zero-padded ``HH:MM`` strings, so plain
string comparison orders them correctly; ``24:00`` denotes end of day.
"""

import re
from collections.abc import Iterator
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from zoneinfo import ZoneInfo

WEEKDAY_NAMES: tuple[str, ...] = (
    "monday",
    "tuesday",
    "wednesday",
    "thursday",
    "friday",
    "saturday",
    "sunday",
)

END_OF_DAY = "24:00"

_HHMM_RE = re.compile(r"^(?:[01]\d|2[0-3]):[0-5]\d$|^24:00$")


@dataclass(frozen=True)
class DayWindow:
    """The part of a booking that falls on one local calendar day."""

    day: date
    start_time: str
    end_time: str


def weekday_name(day: date) -> str:
    return WEEKDAY_NAMES[day.weekday()]


def is_valid_hhmm(value: str) -> bool:
    return bool(_HHMM_RE.match(value))


def normalize_hhmm(value: str) -> str:
    """Zero-pad ``H:MM`` input to ``HH:MM``; raise ``ValueError`` on anything else."""
    value = value.strip()
    if len(value) == 4 and value[1] == ":":
        value = f"0{value}"
    if not is_valid_hhmm(value):
        raise ValueError(f"Invalid time '{value}', expected HH:MM")
    return value


def format_hhmm(moment: time | datetime) -> str:
    return f"{moment.hour:02d}:{moment.minute:02d}"


def format_hhmm_ceil(moment: time | datetime) -> str:
    """Like ``format_hhmm`` but rounds any leftover seconds up to the next minute."""
    if not (moment.second or moment.microsecond):
        return format_hhmm(moment)
    minutes = moment.hour * 60 + moment.minute + 1
    if minutes == 24 * 60:
        return END_OF_DAY
    return f"{minutes // 60:02d}:{minutes % 60:02d}"


def to_local(moment: datetime, tz_name: str) -> datetime:
    return moment.astimezone(ZoneInfo(tz_name))


def split_by_local_day(check_in: datetime, check_out: datetime, tz_name: str) -> Iterator[DayWindow]:
    """Yield one ``DayWindow`` per local calendar day touched by ``[check_in, check_out)``.

    A booking ending exactly at local midnight does not touch the next day.
    Window starts are truncated and window ends rounded up to whole minutes,
    so a window never looks shorter than the booking.
    """
    local_in = to_local(check_in, tz_name)
    local_out = to_local(check_out, tz_name)

    day = local_in.date()
    last_day = local_out.date()
    if local_out.time() == time(0, 0) and last_day > day:
        last_day -= timedelta(days=1)

    while day <= last_day:
        start = format_hhmm(local_in) if day == local_in.date() else "00:00"
        end = format_hhmm_ceil(local_out) if day == local_out.date() else END_OF_DAY
        yield DayWindow(day=day, start_time=start, end_time=end)
        day += timedelta(days=1)
