"""
Fixed-offset timezone handling for provider and customer wall-clock times.

Offsets travel through the system as signed ``"+HH:MM"`` / ``"-HH:MM"``
strings. They are parsed once into a ``TimezoneOffset`` and every conversion
afterwards is plain instant arithmetic on pendulum datetimes.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import date, datetime, time

import pendulum
from pendulum import Date, DateTime

from .exceptions import InputError

OFFSET_PATTERN = re.compile(r"^([+-])(\d{2}):(\d{2})$")
CLOCK_PATTERN = re.compile(r"^(\d{1,2}):(\d{2})$")
DATE_PATTERN = re.compile(r"^\d{4}-\d{2}-\d{2}$")

# Display abbreviations keyed by exact offset string.
TIMEZONE_ABBREVIATIONS = {
    "-12:00": "BIT",
    "-11:00": "SST",
    "-10:00": "HST",
    "-09:30": "MART",
    "-09:00": "AKST",
    "-08:00": "PST",
    "-07:00": "MST",
    "-06:00": "CST",
    "-05:00": "EST",
    "-04:00": "AST",
    "-03:30": "NST",
    "-03:00": "BRT",
    "-02:00": "GST",
    "-01:00": "CVT",
    "+00:00": "UTC",
    "+01:00": "CET",
    "+02:00": "EET",
    "+03:00": "MSK",
    "+03:30": "IRST",
    "+04:00": "GST",
    "+04:30": "AFT",
    "+05:00": "PKT",
    "+05:30": "IST",
    "+05:45": "NPT",
    "+06:00": "BST",
    "+06:30": "MMT",
    "+07:00": "ICT",
    "+08:00": "AWST",
    "+08:45": "ACWST",
    "+09:00": "JST",
    "+09:30": "ACST",
    "+10:00": "AEST",
    "+10:30": "ACDT",
    "+11:00": "AEDT",
    "+12:00": "NZST",
    "+12:45": "CHAST",
    "+13:00": "NZDT",
    "+13:45": "CHADT",
    "+14:00": "LINT",
}


@dataclass(frozen=True)
class TimezoneOffset:
    """
    A signed UTC offset expressed in hours and minutes.

    Local wall-clock time = UTC + offset, UTC = local - offset.
    """
    sign: int
    hours: int
    minutes: int

    def __post_init__(self):
        if self.sign not in (1, -1):
            raise InputError(f"Offset sign must be +1 or -1, got {self.sign}")
        if not 0 <= self.hours <= 14 or not 0 <= self.minutes < 60:
            raise InputError(f"Offset out of range: {self.hours:02d}:{self.minutes:02d}")

    @classmethod
    def parse(cls, value: "str | TimezoneOffset") -> "TimezoneOffset":
        """
        Parse a ``"+HH:MM"`` or ``"-HH:MM"`` string.

        The typographic minus sign used by some timezone tables is accepted.

        Raises:
            InputError: If the value is not a valid offset string
        """
        if isinstance(value, TimezoneOffset):
            return value
        if not isinstance(value, str):
            raise InputError(f"Timezone offset must be a string, got {value!r}")

        normalized = value.strip().replace("−", "-")
        match = OFFSET_PATTERN.match(normalized)
        if not match:
            raise InputError(f"Invalid timezone offset '{value}', expected +HH:MM or -HH:MM")

        sign = -1 if match.group(1) == "-" else 1
        hours = int(match.group(2))
        minutes = int(match.group(3))
        if hours == 0 and minutes == 0:
            sign = 1

        return cls(sign=sign, hours=hours, minutes=minutes)

    @property
    def total_minutes(self) -> int:
        return self.sign * (self.hours * 60 + self.minutes)

    @property
    def tzinfo(self):
        return pendulum.fixed_timezone(self.total_minutes * 60)

    def to_local(self, instant: DateTime) -> DateTime:
        """Express an instant as wall-clock time at this offset."""
        return instant.in_timezone(self.tzinfo)

    def localize(self, day: date, at: time) -> DateTime:
        """Build the instant for a local calendar day and time-of-day."""
        return pendulum.datetime(
            day.year, day.month, day.day, at.hour, at.minute, tz=self.tzinfo
        )

    def start_of_day(self, day: date) -> DateTime:
        return self.localize(day, time(0, 0))

    def local_date(self, instant: DateTime) -> Date:
        return self.to_local(instant).date()

    def abbreviation(self) -> str:
        return timezone_abbreviation(str(self))

    def __str__(self) -> str:
        sign = "-" if self.sign < 0 else "+"
        return f"{sign}{self.hours:02d}:{self.minutes:02d}"


def timezone_abbreviation(offset: str) -> str:
    """
    Look up the display abbreviation for an offset string.

    Unknown offsets fall back to ``UTC+HH:MM``.
    """
    key = offset.strip().replace("−", "-")
    if key in TIMEZONE_ABBREVIATIONS:
        return TIMEZONE_ABBREVIATIONS[key]
    return f"UTC{key}"


def parse_date(value: "str | date") -> Date:
    """
    Parse a calendar date given as ``YYYY-MM-DD``.

    Raises:
        InputError: If the value is not a valid date
    """
    if isinstance(value, datetime):
        raise InputError(f"Expected a calendar date, got a datetime: {value!r}")
    if isinstance(value, date):
        return Date(value.year, value.month, value.day)
    if not isinstance(value, str):
        raise InputError(f"Date must be a YYYY-MM-DD string, got {value!r}")

    text = value.strip()
    if not DATE_PATTERN.match(text):
        raise InputError(f"Invalid date '{value}', expected YYYY-MM-DD")

    try:
        return pendulum.from_format(text, "YYYY-MM-DD").date()
    except ValueError as exc:
        raise InputError(f"Invalid date '{value}', expected YYYY-MM-DD") from exc


def parse_clock_time(value: "str | time") -> time:
    """
    Parse a local time-of-day given as ``HH:MM``.

    Raises:
        InputError: If the value is not a valid time
    """
    if isinstance(value, time):
        return value.replace(second=0, microsecond=0, tzinfo=None)
    if not isinstance(value, str):
        raise InputError(f"Time must be an HH:MM string, got {value!r}")

    match = CLOCK_PATTERN.match(value.strip())
    if not match:
        raise InputError(f"Invalid time '{value}', expected HH:MM")

    hour, minute = int(match.group(1)), int(match.group(2))
    if hour > 23 or minute > 59:
        raise InputError(f"Invalid time '{value}', expected HH:MM")

    return time(hour, minute)
