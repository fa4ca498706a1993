import uuid
from datetime import datetime
from enum import Enum

from sqlalchemy import Boolean, DateTime, Enum as SAEnum, Integer, String
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.sql import func

from timetabling.db.base import Base

REMOTE_VENUE = "Remote"
ONLINE_LOCATION = "Online"


class RoomKind(str, Enum):
    classroom = "classroom"
    examroom = "examroom"


class Room(Base):
    __tablename__ = "rooms"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    name: Mapped[str] = mapped_column(String(100), unique=True, index=True, nullable=False)
    capacity: Mapped[int] = mapped_column(Integer, nullable=False, default=30)
    location: Mapped[str] = mapped_column(String(200), nullable=False, default="Main Campus")
    kind: Mapped[RoomKind] = mapped_column(SAEnum(RoomKind, name="room_kind"), nullable=False, index=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), onupdate=func.now())

    @property
    def is_remote(self) -> bool:
        return self.name.strip().lower() == REMOTE_VENUE.lower()
