from timetabling.models.academic import Enrollment, Lecturer, Unit, UnitAssignment  # noqa: F401
from timetabling.models.booking import Booking, BookingKind, TeachingMode  # noqa: F401
from timetabling.models.room import ONLINE_LOCATION, REMOTE_VENUE, Room, RoomKind  # noqa: F401
from timetabling.models.scheduling_failure import (  # noqa: F401
    FailureCategory,
    FailureStatus,
    SchedulingFailure,
)
from timetabling.models.time_slot import TimeSlot  # noqa: F401
