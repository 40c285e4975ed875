import asyncio
from datetime import time, timedelta

import pytest
from session_booking.domain.catalog import default_catalog
from session_booking.domain.errors import (
    InvalidStateTransitionError,
    ReservationNotFoundError,
    SlotUnavailableError,
    UnknownAddonError,
    UnknownResourceError,
    UnsupportedDurationError,
    ValidationError,
)
from session_booking.models import Reservation, ReservationStatus
from session_booking.usecases import reservations as uc
from session_booking.utils.auth import CurrentUser

OWNER = CurrentUser(id="user-1", role="user")
STRANGER = CurrentUser(id="user-2", role="user")
ADMIN = CurrentUser(id="admin-1", role="admin")


async def _book(repo, catalog, clock, hours, tz, day, **overrides) -> Reservation:
    params = dict(
        owner_id=OWNER.id,
        resource_type_id="ps5",
        day=day,
        start=time(18, 0),
        duration_minutes=60,
        player_count=1,
        extra_ids=[],
        hours=hours,
        tz=tz,
        extra_player_fee=500,
    )
    params.update(overrides)
    return await uc.create_booking(repo, catalog, clock, **params)


@pytest.mark.asyncio
async def test_booking_on_empty_calendar(repo_factory, clock, hours, tz, tomorrow, at) -> None:
    repo = repo_factory()
    reservation = await _book(repo, default_catalog(), clock, hours, tz, tomorrow, resource_type_id="xbox", start=time(16, 0))

    assert reservation.status == ReservationStatus.BOOKED
    assert reservation.total_price == 2000
    assert reservation.start_time == at(tomorrow, 16)
    assert reservation.end_time == at(tomorrow, 17)
    assert reservation.duration_minutes == 60
    assert reservation.unit_number == 1
    assert reservation.created_at == clock.now().replace(tzinfo=None)
    assert reservation.updated_at is None
    assert repo.locked == ["xbox"]


@pytest.mark.asyncio
async def test_booking_prices_players_and_extras(repo_factory, clock, hours, tz, tomorrow) -> None:
    reservation = await _book(
        repo_factory(),
        default_catalog(),
        clock,
        hours,
        tz,
        tomorrow,
        duration_minutes=120,
        player_count=2,
        extra_ids=["snacks"],
    )
    assert reservation.total_price == 6500
    assert reservation.extras == ["snacks"]


@pytest.mark.asyncio
async def test_overlapping_booking_on_single_unit_is_rejected(
    repo_factory, reservation_factory, single_unit_catalog, clock, hours, tz, tomorrow, at
) -> None:
    existing = reservation_factory(start=at(tomorrow, 18), minutes=60)
    repo = repo_factory([existing])

    with pytest.raises(SlotUnavailableError):
        await _book(repo, single_unit_catalog, clock, hours, tz, tomorrow, start=time(17, 30), duration_minutes=90)

    assert len(repo.rows) == 1
    assert existing.status == ReservationStatus.BOOKED
    assert existing.end_time == at(tomorrow, 19)


@pytest.mark.asyncio
async def test_back_to_back_bookings_do_not_overlap(
    repo_factory, reservation_factory, single_unit_catalog, clock, hours, tz, tomorrow, at
) -> None:
    repo = repo_factory([reservation_factory(start=at(tomorrow, 17), minutes=60)])
    reservation = await _book(repo, single_unit_catalog, clock, hours, tz, tomorrow, start=time(18, 0))
    assert reservation.unit_number == 1


@pytest.mark.asyncio
async def test_multi_unit_resource_assigns_next_unit(
    repo_factory, reservation_factory, clock, hours, tz, tomorrow, at
) -> None:
    repo = repo_factory([reservation_factory(resource_type_id="vr", start=at(tomorrow, 18))])
    reservation = await _book(repo, default_catalog(), clock, hours, tz, tomorrow, resource_type_id="vr")
    assert reservation.unit_number == 2

    with pytest.raises(SlotUnavailableError):
        await _book(repo, default_catalog(), clock, hours, tz, tomorrow, resource_type_id="vr")


@pytest.mark.asyncio
async def test_concurrent_bookings_for_same_slot_yield_one_winner(
    repo_factory, single_unit_catalog, clock, hours, tz, tomorrow
) -> None:
    # Reads yield to the event loop, so both requests pass the availability check
    # before either inserts; the store's uniqueness rule has to pick the winner.
    repo = repo_factory(yield_on_read=True)
    results = await asyncio.gather(
        _book(repo, single_unit_catalog, clock, hours, tz, tomorrow),
        _book(repo, single_unit_catalog, clock, hours, tz, tomorrow, owner_id="user-2"),
        return_exceptions=True,
    )

    booked = [r for r in results if isinstance(r, Reservation)]
    rejected = [r for r in results if isinstance(r, SlotUnavailableError)]
    assert len(booked) == 1
    assert len(rejected) == 1
    assert len(repo.rows) == 1


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "overrides,error,field",
    [
        ({"resource_type_id": "switch"}, UnknownResourceError, "resource_type_id"),
        ({"duration_minutes": 45}, UnsupportedDurationError, "duration_minutes"),
        ({"extra_ids": ["pizza"]}, UnknownAddonError, "extras"),
        ({"player_count": 0}, ValidationError, "player_count"),
        ({"player_count": 5}, ValidationError, "player_count"),
        ({"owner_id": ""}, ValidationError, "owner_id"),
        ({"start": time(9, 0)}, ValidationError, "time"),
        ({"start": time(21, 30)}, ValidationError, "time"),
    ],
)
async def test_invalid_requests_fail_before_touching_the_store(
    repo_factory, clock, hours, tz, tomorrow, overrides, error, field
) -> None:
    repo = repo_factory()
    with pytest.raises(error) as excinfo:
        await _book(repo, default_catalog(), clock, hours, tz, tomorrow, **overrides)
    assert isinstance(excinfo.value, ValidationError)
    assert excinfo.value.field == field
    assert repo.locked == []
    assert repo.rows == []


@pytest.mark.asyncio
async def test_booking_in_the_past_is_rejected(repo_factory, clock, hours, tz) -> None:
    today = clock.now().date()
    with pytest.raises(ValidationError) as excinfo:
        await _book(repo_factory(), default_catalog(), clock, hours, tz, today - timedelta(days=1))
    assert excinfo.value.field == "time"


@pytest.mark.asyncio
async def test_cancel_before_start_is_terminal(
    repo_factory, reservation_factory, clock, tomorrow, at
) -> None:
    reservation = reservation_factory(start=at(tomorrow, 18))
    repo = repo_factory([reservation])

    updated, previous = await uc.cancel_reservation(repo, clock, reservation_id=reservation.id, actor=OWNER)
    assert previous == ReservationStatus.BOOKED
    assert updated.status == ReservationStatus.CANCELLED
    assert updated.updated_at == clock.now().replace(tzinfo=None)
    assert repo.saved == [reservation]

    with pytest.raises(InvalidStateTransitionError):
        await uc.cancel_reservation(repo, clock, reservation_id=reservation.id, actor=OWNER)
    with pytest.raises(InvalidStateTransitionError):
        await uc.complete_reservation(repo, clock, reservation_id=reservation.id, actor=ADMIN)


@pytest.mark.asyncio
async def test_cancel_after_start_is_rejected(repo_factory, reservation_factory, clock, tomorrow, at) -> None:
    reservation = reservation_factory(start=at(tomorrow, 18))
    repo = repo_factory([reservation])
    clock.advance(timedelta(days=1, hours=10))  # tomorrow 19:00
    with pytest.raises(InvalidStateTransitionError):
        await uc.cancel_reservation(repo, clock, reservation_id=reservation.id, actor=OWNER)
    assert reservation.status == ReservationStatus.BOOKED


@pytest.mark.asyncio
async def test_complete_after_end(repo_factory, reservation_factory, clock, tomorrow, at) -> None:
    reservation = reservation_factory(start=at(tomorrow, 18))
    repo = repo_factory([reservation])

    with pytest.raises(InvalidStateTransitionError):
        await uc.complete_reservation(repo, clock, reservation_id=reservation.id, actor=ADMIN)

    clock.advance(timedelta(days=1, hours=10))
    updated, _ = await uc.complete_reservation(repo, clock, reservation_id=reservation.id, actor=ADMIN)
    assert updated.status == ReservationStatus.COMPLETED


@pytest.mark.asyncio
async def test_other_users_cannot_cancel(repo_factory, reservation_factory, clock, tomorrow, at) -> None:
    reservation = reservation_factory(start=at(tomorrow, 18))
    repo = repo_factory([reservation])
    with pytest.raises(ReservationNotFoundError):
        await uc.cancel_reservation(repo, clock, reservation_id=reservation.id, actor=STRANGER)

    updated, _ = await uc.cancel_reservation(repo, clock, reservation_id=reservation.id, actor=ADMIN)
    assert updated.status == ReservationStatus.CANCELLED


@pytest.mark.asyncio
async def test_cancelled_slot_can_be_booked_again(
    repo_factory, reservation_factory, single_unit_catalog, clock, hours, tz, tomorrow, at
) -> None:
    repo = repo_factory([reservation_factory(start=at(tomorrow, 18), status=ReservationStatus.CANCELLED)])
    reservation = await _book(repo, single_unit_catalog, clock, hours, tz, tomorrow)
    assert reservation.status == ReservationStatus.BOOKED


@pytest.mark.asyncio
async def test_owner_queries(repo_factory, reservation_factory, tz, tomorrow, at) -> None:
    mine = reservation_factory(reservation_id=1, start=at(tomorrow, 12))
    theirs = reservation_factory(reservation_id=2, owner_id="user-2", start=at(tomorrow, 14))
    repo = repo_factory([mine, theirs])

    assert await uc.list_owner_reservations(repo, owner_id="user-1") == [mine]
    assert await uc.get_owner_reservation(repo, reservation_id=1, owner_id="user-1") is mine
    assert await uc.get_owner_reservation(repo, reservation_id=2, owner_id="user-1") is None
    assert await uc.list_day_reservations(repo, day=tomorrow, tz=tz) == [mine, theirs]
    assert await uc.list_day_reservations(repo, day=tomorrow, tz=tz, resource_type_id="xbox") == []


def test_quote_matches_booking_price() -> None:
    total = uc.quote_booking(
        default_catalog(),
        resource_type_id="ps5",
        duration_minutes=120,
        player_count=2,
        extra_ids=["snacks"],
        extra_player_fee=500,
    )
    assert total == 6500


def test_quote_requires_a_player() -> None:
    with pytest.raises(ValidationError):
        uc.quote_booking(
            default_catalog(),
            resource_type_id="ps5",
            duration_minutes=60,
            player_count=0,
            extra_ids=[],
            extra_player_fee=500,
        )


@pytest.mark.asyncio
async def test_full_table_of_four_players_is_accepted(repo_factory, clock, hours, tz, tomorrow) -> None:
    reservation = await _book(repo_factory(), default_catalog(), clock, hours, tz, tomorrow, player_count=4)
    assert reservation.player_count == 4
    assert reservation.total_price == 2000 + 3 * 500


def test_quote_rejects_more_players_than_a_session_allows() -> None:
    with pytest.raises(ValidationError) as excinfo:
        uc.quote_booking(
            default_catalog(),
            resource_type_id="vr",
            duration_minutes=60,
            player_count=50,
            extra_ids=[],
            extra_player_fee=500,
        )
    assert excinfo.value.field == "player_count"
