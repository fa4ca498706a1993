import uuid
import datetime as dt
from enum import Enum

from sqlalchemy import Date, DateTime, Enum as SAEnum, Index, Integer, JSON, String
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.sql import func

from timetabling.db.base import Base


class BookingKind(str, Enum):
    class_session = "class_session"
    exam_sitting = "exam_sitting"


class TeachingMode(str, Enum):
    physical = "physical"
    online = "online"


class Booking(Base):
    __tablename__ = "bookings"
    __table_args__ = (
        Index("ix_bookings_kind_day", "kind", "day"),
        Index("ix_bookings_kind_date", "kind", "date"),
        Index("ix_bookings_venue_day", "venue", "day"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    kind: Mapped[BookingKind] = mapped_column(SAEnum(BookingKind, name="booking_kind"), nullable=False)
    unit_id: Mapped[str] = mapped_column(String(36), nullable=False, index=True)
    class_id: Mapped[str | None] = mapped_column(String(36), nullable=True, index=True)
    cohort_class_ids: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)
    group_id: Mapped[str | None] = mapped_column(String(36), nullable=True, index=True)
    semester_id: Mapped[str | None] = mapped_column(String(36), nullable=True, index=True)
    program_id: Mapped[str | None] = mapped_column(String(36), nullable=True)
    school_id: Mapped[str | None] = mapped_column(String(36), nullable=True)
    day: Mapped[str] = mapped_column(String(20), nullable=False)
    date: Mapped[dt.date | None] = mapped_column(Date, nullable=True)
    start_time: Mapped[str] = mapped_column(String(5), nullable=False)
    end_time: Mapped[str] = mapped_column(String(5), nullable=False)
    venue: Mapped[str] = mapped_column(String(100), nullable=False)
    location: Mapped[str | None] = mapped_column(String(200), nullable=True)
    teaching_mode: Mapped[TeachingMode | None] = mapped_column(
        SAEnum(TeachingMode, name="teaching_mode"),
        nullable=True,
    )
    headcount: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    lecturer: Mapped[str | None] = mapped_column(String(100), nullable=True, index=True)
    created_at: Mapped[dt.datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[dt.datetime | None] = mapped_column(DateTime(timezone=True), onupdate=func.now())

    @property
    def slot_key(self) -> str:
        """Day name for weekly class sessions, ISO date for exam sittings."""
        if self.kind == BookingKind.exam_sitting and self.date is not None:
            return self.date.isoformat()
        return self.day
