"""
Domain models for intervals, working plans, services and appointments.
"""

import json
from dataclasses import dataclass, field
from datetime import date, datetime, time
from enum import Enum
from typing import Any, List, Optional

import pendulum
from pendulum import Date, DateTime
from pydantic import BaseModel, Field, field_validator, model_validator

from .timezones import TimezoneOffset

WEEKDAY_NAMES = (
    "monday",
    "tuesday",
    "wednesday",
    "thursday",
    "friday",
    "saturday",
    "sunday",
)

ANY_PROVIDER = "any-provider"


def _coerce_id(value: Any) -> Any:
    if isinstance(value, int) and not isinstance(value, bool):
        return str(value)
    return value


def to_utc_instant(value: datetime) -> DateTime:
    """Convert a datetime to a UTC pendulum instant. Naive values are taken as UTC."""
    return pendulum.instance(value, tz="UTC").in_timezone("UTC")


@dataclass(frozen=True)
class TimeInterval:
    """
    Represents an immutable half-open time interval [start, end).

    Invariant: start must not be after end. Zero-length intervals are allowed
    and serve as boundary markers.
    """
    start: DateTime
    end: DateTime

    def __post_init__(self):
        if self.start > self.end:
            raise ValueError(f"Start time {self.start} must not be after end time {self.end}")

    def duration_minutes(self) -> int:
        """Return the duration in minutes."""
        return int((self.end - self.start).total_seconds() / 60)

    def is_empty(self) -> bool:
        return self.start == self.end

    def overlaps(self, other: "TimeInterval") -> bool:
        """Check if this interval shares any time with another."""
        return self.start < other.end and other.start < self.end

    def contains(self, other: "TimeInterval") -> bool:
        """Check if another interval lies fully inside this one."""
        return self.start <= other.start and self.end >= other.end

    def __str__(self) -> str:
        return f"{self.start.format('YYYY-MM-DD HH:mm')} - {self.end.format('YYYY-MM-DD HH:mm')}"


class BusyOrigin(str, Enum):
    """Why an interval is blocked. Used for diagnostics only."""
    OUTSIDE_HOURS = "outside_hours"
    BREAK = "break"
    APPOINTMENT = "appointment"


@dataclass(frozen=True)
class BusyInterval(TimeInterval):
    """A time interval excluded from booking, tagged with its origin."""
    origin: BusyOrigin = BusyOrigin.APPOINTMENT


class Break(BaseModel):
    """A break inside a working day, in provider-local time."""
    start: time
    end: time

    @model_validator(mode="after")
    def validate_order(self) -> "Break":
        """Ensure the break starts before it ends."""
        if self.end <= self.start:
            raise ValueError(f"Break end {self.end} must be later than start {self.start}")
        return self


class WorkingDay(BaseModel):
    """
    Working window of a single weekday in provider-local time.

    A missing start or end means the provider does not work that day.
    """
    start: Optional[time] = None
    end: Optional[time] = None
    breaks: List[Break] = Field(default_factory=list)

    @field_validator("breaks", mode="before")
    @classmethod
    def default_breaks(cls, value: Any) -> Any:
        return [] if value is None else value

    @model_validator(mode="after")
    def validate_hours_order(self) -> "WorkingDay":
        """Ensure the working window opens before it closes."""
        if self.start is not None and self.end is not None and self.end <= self.start:
            raise ValueError("Working day end must be later than start")
        return self

    def is_working(self) -> bool:
        return self.start is not None and self.end is not None


class WorkingPlan(BaseModel):
    """Weekly working plan keyed by lowercase English weekday names."""
    monday: Optional[WorkingDay] = None
    tuesday: Optional[WorkingDay] = None
    wednesday: Optional[WorkingDay] = None
    thursday: Optional[WorkingDay] = None
    friday: Optional[WorkingDay] = None
    saturday: Optional[WorkingDay] = None
    sunday: Optional[WorkingDay] = None

    def for_date(self, day: date) -> Optional[WorkingDay]:
        """Get the working day that applies to a calendar date."""
        return getattr(self, WEEKDAY_NAMES[day.weekday()])


class AvailabilityType(str, Enum):
    FIXED = "fixed"
    FLEXIBLE = "flexible"


class Service(BaseModel):
    """A bookable service."""
    id: str
    name: str = ""
    duration_minutes: int
    attendants_number: int = 1
    availabilities_type: AvailabilityType = AvailabilityType.FLEXIBLE

    @field_validator("id", mode="before")
    @classmethod
    def coerce_id(cls, value: Any) -> Any:
        return _coerce_id(value)

    @field_validator("duration_minutes", "attendants_number")
    @classmethod
    def validate_positive(cls, value: int) -> int:
        """Ensure duration and capacity are positive."""
        if value <= 0:
            raise ValueError(f"Value must be greater than zero, got {value}")
        return value

    @property
    def is_multi_attendant(self) -> bool:
        return self.attendants_number > 1


class Provider(BaseModel):
    """A provider with a weekly working plan expressed at a fixed UTC offset."""
    id: str
    name: str = ""
    timezone: str = "+00:00"
    services: List[str] = Field(default_factory=list)
    working_plan: WorkingPlan = Field(default_factory=WorkingPlan)

    @field_validator("id", mode="before")
    @classmethod
    def coerce_id(cls, value: Any) -> Any:
        return _coerce_id(value)

    @field_validator("services", mode="before")
    @classmethod
    def coerce_service_ids(cls, value: Any) -> Any:
        if isinstance(value, list):
            return [_coerce_id(item) for item in value]
        return value

    @field_validator("timezone")
    @classmethod
    def validate_timezone(cls, value: str) -> str:
        """Normalise the offset string."""
        return str(TimezoneOffset.parse(value))

    @field_validator("working_plan", mode="before")
    @classmethod
    def decode_working_plan(cls, value: Any) -> Any:
        # Working plans are often stored as a JSON-encoded setting.
        if isinstance(value, str):
            return json.loads(value)
        return value

    @property
    def offset(self) -> TimezoneOffset:
        return TimezoneOffset.parse(self.timezone)

    def offers(self, service_id: str) -> bool:
        return service_id in self.services


class Appointment(BaseModel):
    """
    A booked appointment or a blocked period.

    Start and end are stored as UTC instants. ``is_unavailable`` marks a
    block with no customer or service attached.
    """
    id: Optional[str] = None
    provider_id: str
    service_id: Optional[str] = None
    customer_id: Optional[str] = None
    start_datetime: datetime
    end_datetime: datetime
    is_unavailable: bool = False

    @field_validator("id", "provider_id", "service_id", "customer_id", mode="before")
    @classmethod
    def coerce_ids(cls, value: Any) -> Any:
        return _coerce_id(value)

    @field_validator("start_datetime", "end_datetime")
    @classmethod
    def normalize_instant(cls, value: datetime) -> DateTime:
        return to_utc_instant(value)

    @model_validator(mode="after")
    def validate_order(self) -> "Appointment":
        if self.end_datetime <= self.start_datetime:
            raise ValueError("Appointment end must be later than start")
        return self

    @property
    def interval(self) -> TimeInterval:
        return TimeInterval(start=self.start_datetime, end=self.end_datetime)

    def overlaps(self, start: DateTime, end: DateTime) -> bool:
        """Strict overlap: touching at an edge does not count."""
        return self.start_datetime < end and self.end_datetime > start


@dataclass(frozen=True)
class Slot:
    """
    A bookable start time.

    ``start`` is the UTC instant; ``local_start_time`` and ``display`` are
    expressed in the customer's timezone.
    """
    start: DateTime
    local_start_time: time
    display: str

    @classmethod
    def from_instant(cls, instant: DateTime, offset: TimezoneOffset) -> "Slot":
        local = offset.to_local(instant)
        return cls(
            start=instant.in_timezone("UTC"),
            local_start_time=time(local.hour, local.minute),
            display=local.format("HH:mm"),
        )


@dataclass
class AvailabilityResult:
    """Slots found for one date, together with the provider they belong to."""
    provider_id: Optional[str]
    date: Date
    timezone: str
    slots: List[Slot] = field(default_factory=list)

    @property
    def hours(self) -> List[str]:
        return [slot.display for slot in self.slots]

    def format_display(self) -> str:
        """
        Format the result for display.
        Format: Weekday, YYYY-MM-DD (ABBR) | HH:MM, HH:MM, ...
        """
        weekday = WEEKDAY_NAMES[self.date.weekday()].capitalize()
        abbreviation = TimezoneOffset.parse(self.timezone).abbreviation()
        hours = ", ".join(self.hours) if self.slots else "-"
        return f"{weekday}, {self.date.isoformat()} ({abbreviation}) | {hours}"
