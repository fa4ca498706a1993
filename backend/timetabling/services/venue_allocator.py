from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass

from timetabling.models.booking import BookingKind, TeachingMode
from timetabling.models.room import ONLINE_LOCATION, REMOTE_VENUE, Room
from timetabling.services.occupancy import OccupancyLedger
from timetabling.services.policy import derive_venue_mode

logger = logging.getLogger(__name__)

INSUFFICIENT_CAPACITY = "insufficient capacity"
NO_TIME_COMPATIBLE_VENUE = "no time-compatible venue"


@dataclass(frozen=True)
class VenueResult:
    ok: bool
    venue: str | None = None
    location: str | None = None
    remaining_capacity: int | None = None
    reason: str | None = None

    @classmethod
    def remote(cls) -> "VenueResult":
        return cls(ok=True, venue=REMOTE_VENUE, location=ONLINE_LOCATION)

    @classmethod
    def failure(cls, reason: str) -> "VenueResult":
        return cls(ok=False, reason=reason)


class VenueAllocator:
    """Greedy first-fit over rooms ordered by ascending capacity.

    Rooms are shared: a physical room may host several overlapping bookings
    as long as their summed headcount stays within its capacity.
    """

    def __init__(self, rooms: Sequence[Room], ledger: OccupancyLedger):
        self.rooms = sorted((room for room in rooms if room.is_active), key=lambda room: (room.capacity, room.name))
        self.ledger = ledger

    def allocate(
        self,
        headcount: int,
        kind: BookingKind,
        slot_key: str,
        start_time: str,
        end_time: str,
        preferred_mode: TeachingMode | None = None,
        exclude_booking_id: str | None = None,
    ) -> VenueResult:
        if preferred_mode == TeachingMode.online:
            return VenueResult.remote()

        candidates = [room for room in self.rooms if room.capacity >= headcount]
        if preferred_mode is not None:
            matching = [room for room in candidates if derive_venue_mode(room.name) == preferred_mode]
            if matching:
                candidates = matching
        if not candidates:
            logger.info("No room seats %s students on %s", headcount, slot_key)
            return VenueResult.failure(INSUFFICIENT_CAPACITY)

        for room in candidates:
            if room.is_remote:
                return VenueResult.remote()
            occupied = self.ledger.venue_occupancy(
                kind,
                slot_key,
                room.name,
                start_time,
                end_time,
                exclude_booking_id=exclude_booking_id,
            )
            remaining = room.capacity - occupied
            logger.debug("Room %s on %s %s-%s: %s of %s free", room.name, slot_key, start_time, end_time, remaining, room.capacity)
            if remaining >= headcount:
                logger.info("Allocated %s for %s students on %s %s-%s", room.name, headcount, slot_key, start_time, end_time)
                return VenueResult(
                    ok=True,
                    venue=room.name,
                    location=room.location,
                    remaining_capacity=remaining - headcount,
                )

        logger.info("All %s large-enough rooms are occupied on %s %s-%s", len(candidates), slot_key, start_time, end_time)
        return VenueResult.failure(NO_TIME_COMPATIBLE_VENUE)

    @property
    def capacities(self) -> dict[str, int]:
        return {room.name: room.capacity for room in self.rooms}
