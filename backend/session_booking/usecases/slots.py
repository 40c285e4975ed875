from datetime import date
from zoneinfo import ZoneInfo

from ..domain.catalog import ResourceCatalog
from ..domain.errors import InvalidDateError
from ..domain.repositories import ReservationRepository
from ..domain.services import BookedInterval, OperatingHours, TimeSlot, build_slots, candidate_slot_starts
from ..utils.time import Clock, local_day_bounds


async def generate_slots(
    res_repo: ReservationRepository,
    catalog: ResourceCatalog,
    clock: Clock,
    *,
    resource_type_id: str,
    day: date,
    hours: OperatingHours,
    tz: ZoneInfo,
    allow_past: bool = True,
) -> list[TimeSlot]:
    """Chronological slots of ``day`` for one resource type, tagged with availability."""
    resource = catalog.get(resource_type_id)
    if not allow_past and day < clock.now().astimezone(tz).date():
        raise InvalidDateError(f"{day.isoformat()} is in the past")

    candidates = candidate_slot_starts(day, tz, hours)
    day_start, day_end = local_day_bounds(day, tz)
    reservations = await res_repo.list_starting_between(resource_type_id, day_start, day_end)
    booked = [BookedInterval(start=r.start_time, end=r.end_time, unit_number=r.unit_number) for r in reservations]
    return build_slots(candidates, booked, unit_count=resource.unit_count)
