from __future__ import annotations

import datetime as dt

from pydantic import BaseModel, Field, field_validator, model_validator

from timetabling.models.booking import BookingKind, TeachingMode
from timetabling.schemas.common import normalize_day, parse_time_to_minutes, validate_time


class AssignmentRequest(BaseModel):
    lecturer: str = Field(min_length=1, max_length=100)
    duration_hours: int = Field(ge=1, le=8)
    teaching_mode: TeachingMode | None = None
    group_id: str | None = Field(default=None, max_length=36)
    day: str | None = None

    @field_validator("day")
    @classmethod
    def validate_day(cls, value: str | None) -> str | None:
        if value is None:
            return value
        return normalize_day(value)


class AssignmentOut(BaseModel):
    ok: bool
    day: str | None = None
    start_time: str | None = None
    end_time: str | None = None
    duration_hours: int | None = None
    teaching_mode: TeachingMode | None = None
    reason: str | None = None


class VenueRequest(BaseModel):
    headcount: int = Field(ge=1)
    kind: BookingKind = BookingKind.class_session
    day: str | None = None
    date: dt.date | None = None
    start_time: str
    end_time: str
    teaching_mode: TeachingMode | None = None
    exclude_booking_id: str | None = None

    @field_validator("day")
    @classmethod
    def validate_day(cls, value: str | None) -> str | None:
        if value is None:
            return value
        return normalize_day(value)

    @field_validator("start_time", "end_time")
    @classmethod
    def validate_time_format(cls, value: str) -> str:
        return validate_time(value)

    @model_validator(mode="after")
    def validate_window(self) -> "VenueRequest":
        if parse_time_to_minutes(self.end_time) <= parse_time_to_minutes(self.start_time):
            raise ValueError("end_time must be after start_time")
        if self.kind == BookingKind.exam_sitting and self.date is None:
            raise ValueError("Exam sittings require a date")
        if self.kind == BookingKind.class_session and self.day is None:
            raise ValueError("Class sessions require a day")
        return self


class VenueOut(BaseModel):
    ok: bool
    venue: str | None = None
    location: str | None = None
    remaining_capacity: int | None = None
    reason: str | None = None


class ConflictCheckRequest(BaseModel):
    kind: BookingKind = BookingKind.class_session
    day: str | None = None
    date: dt.date | None = None
    start_time: str
    end_time: str
    lecturer: str | None = Field(default=None, max_length=100)
    venue: str | None = Field(default=None, max_length=100)
    teaching_mode: TeachingMode | None = None
    headcount: int = Field(default=1, ge=1)
    group_id: str | None = Field(default=None, max_length=36)
    class_ids: list[str] = Field(default_factory=list, max_length=200)
    exclude_booking_id: str | None = None

    @field_validator("day")
    @classmethod
    def validate_day(cls, value: str | None) -> str | None:
        if value is None:
            return value
        return normalize_day(value)

    @field_validator("start_time", "end_time")
    @classmethod
    def validate_time_format(cls, value: str) -> str:
        return validate_time(value)

    @model_validator(mode="after")
    def validate_window(self) -> "ConflictCheckRequest":
        if parse_time_to_minutes(self.end_time) <= parse_time_to_minutes(self.start_time):
            raise ValueError("end_time must be after start_time")
        if self.kind == BookingKind.exam_sitting and self.date is None:
            raise ValueError("Exam sittings require a date")
        if self.day is None and self.date is None:
            raise ValueError("Either day or date is required")
        return self


class ConflictEntry(BaseModel):
    rule: str
    booking_id: str | None = None
    description: str


class ConflictCheckOut(BaseModel):
    ok: bool
    reasons: list[str]
    conflicts: list[ConflictEntry] = Field(default_factory=list)


class BulkScheduleItem(BaseModel):
    class_id: str = Field(min_length=1, max_length=36)
    unit_id: str = Field(min_length=1, max_length=36)
    start_time: str | None = None
    end_time: str | None = None

    @field_validator("start_time", "end_time")
    @classmethod
    def validate_time_format(cls, value: str | None) -> str | None:
        if value is None:
            return value
        return validate_time(value)

    @model_validator(mode="after")
    def validate_window(self) -> "BulkScheduleItem":
        if (self.start_time is None) != (self.end_time is None):
            raise ValueError("start_time and end_time must be given together")
        if self.start_time and parse_time_to_minutes(self.end_time) <= parse_time_to_minutes(self.start_time):
            raise ValueError("end_time must be after start_time")
        return self


class BulkScheduleConfig(BaseModel):
    semester_id: str = Field(min_length=1, max_length=36)
    program_id: str | None = Field(default=None, max_length=36)
    school_id: str | None = Field(default=None, max_length=36)
    items: list[BulkScheduleItem] = Field(min_length=1, max_length=2000)
    start_date: dt.date
    end_date: dt.date
    exam_duration_hours: int = Field(default=2, ge=1, le=6)
    start_time: str = "08:00"
    break_minutes: int = Field(default=30, ge=0, le=240)
    gap_days: int = Field(default=0, ge=0, le=30)
    excluded_days: list[str] = Field(default_factory=lambda: ["Saturday", "Sunday"])
    max_sessions_per_day: int | None = Field(default=None, ge=1)
    room_names: list[str] | None = None

    @field_validator("start_time")
    @classmethod
    def validate_start_time(cls, value: str) -> str:
        return validate_time(value)

    @field_validator("excluded_days")
    @classmethod
    def validate_excluded_days(cls, value: list[str]) -> list[str]:
        return [normalize_day(day) for day in value]

    @model_validator(mode="after")
    def validate_range(self) -> "BulkScheduleConfig":
        if self.end_date < self.start_date:
            raise ValueError("end_date must not be before start_date")
        return self


class ScheduledSitting(BaseModel):
    booking_id: str
    unit_id: str
    unit_code: str
    class_ids: list[str]
    date: dt.date
    day: str
    start_time: str
    end_time: str
    venue: str
    location: str | None
    lecturer: str | None
    headcount: int
    remaining_capacity: int | None = None


class BulkConflict(BaseModel):
    unit_id: str
    unit_code: str
    class_ids: list[str]
    headcount: int
    category: str
    reason: str
    attempted_dates: list[dt.date] = Field(default_factory=list)


class BulkWarning(BaseModel):
    unit_id: str
    unit_code: str
    class_ids: list[str]
    message: str


class BulkScheduleResult(BaseModel):
    batch_id: str
    scheduled: list[ScheduledSitting] = Field(default_factory=list)
    conflicts: list[BulkConflict] = Field(default_factory=list)
    warnings: list[BulkWarning] = Field(default_factory=list)
