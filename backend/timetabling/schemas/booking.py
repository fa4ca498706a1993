from __future__ import annotations

import datetime as dt

from pydantic import BaseModel, Field, field_validator, model_validator

from timetabling.models.booking import BookingKind, TeachingMode
from timetabling.schemas.common import normalize_day, parse_time_to_minutes, validate_time


class BookingWindow(BaseModel):
    day: str | None = None
    date: dt.date | None = None
    start_time: str
    end_time: str

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
    def validate_order(self) -> "BookingWindow":
        if parse_time_to_minutes(self.end_time) <= parse_time_to_minutes(self.start_time):
            raise ValueError("end_time must be after start_time")
        if self.day is None and self.date is None:
            raise ValueError("Either day or date is required")
        return self


class BookingCreate(BookingWindow):
    kind: BookingKind = BookingKind.class_session
    unit_id: str = Field(min_length=1, max_length=36)
    class_id: str | None = Field(default=None, max_length=36)
    cohort_class_ids: list[str] = Field(default_factory=list, max_length=200)
    group_id: str | None = Field(default=None, max_length=36)
    semester_id: str | None = Field(default=None, max_length=36)
    program_id: str | None = Field(default=None, max_length=36)
    school_id: str | None = Field(default=None, max_length=36)
    venue: str | None = Field(default=None, max_length=100)
    location: str | None = Field(default=None, max_length=200)
    teaching_mode: TeachingMode | None = None
    headcount: int = Field(default=1, ge=1)
    lecturer: str | None = Field(default=None, max_length=100)


class BookingUpdate(BaseModel):
    day: str | None = None
    date: dt.date | None = None
    start_time: str | None = None
    end_time: str | None = None
    venue: str | None = Field(default=None, max_length=100)
    location: str | None = Field(default=None, max_length=200)
    teaching_mode: TeachingMode | None = None
    headcount: int | None = Field(default=None, ge=1)
    lecturer: str | None = Field(default=None, max_length=100)
    group_id: str | None = Field(default=None, max_length=36)

    @field_validator("day")
    @classmethod
    def validate_day(cls, value: str | None) -> str | None:
        if value is None:
            return value
        return normalize_day(value)

    @field_validator("start_time", "end_time")
    @classmethod
    def validate_time_format(cls, value: str | None) -> str | None:
        if value is None:
            return value
        return validate_time(value)


class BookingOut(BaseModel):
    id: str
    kind: BookingKind
    unit_id: str
    class_id: str | None
    cohort_class_ids: list[str]
    group_id: str | None
    semester_id: str | None
    program_id: str | None
    school_id: str | None
    day: str
    date: dt.date | None
    start_time: str
    end_time: str
    venue: str
    location: str | None
    teaching_mode: TeachingMode | None
    headcount: int
    lecturer: str | None
    created_at: dt.datetime | None = None

    model_config = {"from_attributes": True}


class ClassSessionRequest(BaseModel):
    unit_id: str = Field(min_length=1, max_length=36)
    class_id: str = Field(min_length=1, max_length=36)
    group_id: str | None = Field(default=None, max_length=36)
    semester_id: str | None = Field(default=None, max_length=36)
    program_id: str | None = Field(default=None, max_length=36)
    school_id: str | None = Field(default=None, max_length=36)
    lecturer: str = Field(min_length=1, max_length=100)
    duration_hours: int = Field(default=2, ge=1, le=8)
    teaching_mode: TeachingMode | None = None
    day: str | None = None
    headcount: int = Field(default=1, ge=1)

    @field_validator("day")
    @classmethod
    def validate_day(cls, value: str | None) -> str | None:
        if value is None:
            return value
        return normalize_day(value)


class CreditSessionRequest(BaseModel):
    unit_id: str = Field(min_length=1, max_length=36)
    class_id: str = Field(min_length=1, max_length=36)
    group_id: str | None = Field(default=None, max_length=36)
    semester_id: str | None = Field(default=None, max_length=36)
    program_id: str | None = Field(default=None, max_length=36)
    school_id: str | None = Field(default=None, max_length=36)
    lecturer: str = Field(min_length=1, max_length=100)
    credit_hours: int | None = Field(default=None, ge=1, le=12)
    headcount: int = Field(default=1, ge=1)


class SessionError(BaseModel):
    duration_hours: int
    teaching_mode: TeachingMode
    message: str


class CreditSessionResult(BaseModel):
    created: list[BookingOut]
    errors: list[SessionError]
