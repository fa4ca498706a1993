import uuid

from sqlalchemy import String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from timetabling.db.base import Base


class TimeSlot(Base):
    __tablename__ = "time_slots"
    __table_args__ = (UniqueConstraint("day", "start_time", "end_time", name="uq_time_slots_window"),)

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    day: Mapped[str] = mapped_column(String(20), nullable=False, index=True)
    start_time: Mapped[str] = mapped_column(String(5), nullable=False)
    end_time: Mapped[str] = mapped_column(String(5), nullable=False)

    @property
    def duration_hours(self) -> int:
        start_hours, start_minutes = (int(part) for part in self.start_time.split(":"))
        end_hours, end_minutes = (int(part) for part in self.end_time.split(":"))
        return ((end_hours * 60 + end_minutes) - (start_hours * 60 + start_minutes)) // 60
