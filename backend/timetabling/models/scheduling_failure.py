import uuid
from datetime import datetime
from enum import Enum

from sqlalchemy import DateTime, Enum as SAEnum, Integer, JSON, String
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.sql import func

from timetabling.db.base import Base


class FailureCategory(str, Enum):
    capacity = "capacity"
    conflict = "conflict"
    no_date = "no_date"


class FailureStatus(str, Enum):
    pending = "pending"
    resolved = "resolved"


class SchedulingFailure(Base):
    __tablename__ = "scheduling_failures"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    batch_id: Mapped[str] = mapped_column(String(36), nullable=False, index=True)
    semester_id: Mapped[str | None] = mapped_column(String(36), nullable=True, index=True)
    program_id: Mapped[str | None] = mapped_column(String(36), nullable=True)
    unit_id: Mapped[str] = mapped_column(String(36), nullable=False)
    unit_code: Mapped[str] = mapped_column(String(50), nullable=False)
    class_ids: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)
    headcount: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    lecturer: Mapped[str | None] = mapped_column(String(100), nullable=True)
    attempted_dates: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)
    category: Mapped[FailureCategory] = mapped_column(
        SAEnum(FailureCategory, name="failure_category"),
        nullable=False,
    )
    reason: Mapped[str] = mapped_column(String(500), nullable=False)
    status: Mapped[FailureStatus] = mapped_column(
        SAEnum(FailureStatus, name="failure_status"),
        nullable=False,
        default=FailureStatus.pending,
        index=True,
    )
    resolution_note: Mapped[str | None] = mapped_column(String(500), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    resolved_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
