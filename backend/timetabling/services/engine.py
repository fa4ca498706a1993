from __future__ import annotations

import random
from collections.abc import Sequence
from dataclasses import dataclass

from sqlalchemy.orm import Session

from timetabling.models.booking import BookingKind
from timetabling.models.room import Room, RoomKind
from timetabling.services.catalog import SchedulingCatalog
from timetabling.services.constraints import ConstraintChecker
from timetabling.services.occupancy import OccupancyLedger
from timetabling.services.policy import SchedulingPolicy
from timetabling.services.slot_search import SlotSearch
from timetabling.services.venue_allocator import VenueAllocator


def rooms_for_kind(catalog: SchedulingCatalog, kind: BookingKind, names: Sequence[str] | None = None) -> list[Room]:
    """Rooms matching the booking kind, or every active room when none match."""
    if names is not None:
        return catalog.list_active_rooms(names=names)
    room_kind = RoomKind.examroom if kind == BookingKind.exam_sitting else RoomKind.classroom
    rooms = catalog.list_active_rooms(kind=room_kind)
    return rooms or catalog.list_active_rooms()


@dataclass
class SchedulingEngine:
    catalog: SchedulingCatalog
    ledger: OccupancyLedger
    checker: ConstraintChecker
    allocator: VenueAllocator
    search: SlotSearch
    policy: SchedulingPolicy

    @classmethod
    def load(
        cls,
        db: Session,
        policy: SchedulingPolicy,
        rng: random.Random,
        kind: BookingKind = BookingKind.class_session,
        *,
        room_names: Sequence[str] | None = None,
        lock_rooms: bool = False,
    ) -> "SchedulingEngine":
        catalog = SchedulingCatalog(db)
        if lock_rooms:
            catalog.lock_rooms(room_names)
        rooms = rooms_for_kind(catalog, kind, room_names)
        ledger = OccupancyLedger.from_bookings(catalog.list_bookings(kind=kind))
        # All active rooms, not only those matching the booking kind.
        capacities = {room.name: room.capacity for room in catalog.list_active_rooms()}
        checker = ConstraintChecker(ledger, capacities, policy)
        allocator = VenueAllocator(rooms, ledger)
        slots = catalog.list_time_slots() if kind == BookingKind.class_session else []
        search = SlotSearch(slots, ledger, checker, policy, rng)
        return cls(
            catalog=catalog,
            ledger=ledger,
            checker=checker,
            allocator=allocator,
            search=search,
            policy=policy,
        )
