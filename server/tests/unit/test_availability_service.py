"""Unit tests for availability checks."""

from datetime import date, timedelta

import pytest

from hotel_booking.core.exceptions import ValidationError
from hotel_booking.schemas.reservation import CreateReservationRequest, RoomRequest
from hotel_booking.services.availability_service import AvailabilityService, stays_overlap
from hotel_booking.services.booking_service import BookingService
from hotel_booking.services.lifecycle_service import LifecycleService


def test_stays_overlap_half_open():
    """Checking out on the day another stay checks in is not an overlap."""
    d = date(2030, 6, 10)

    assert stays_overlap(d, d + timedelta(days=2), d + timedelta(days=1), d + timedelta(days=3))
    assert not stays_overlap(d, d + timedelta(days=2), d + timedelta(days=2), d + timedelta(days=4))
    assert not stays_overlap(d + timedelta(days=2), d + timedelta(days=4), d, d + timedelta(days=2))
    assert stays_overlap(d, d + timedelta(days=10), d + timedelta(days=3), d + timedelta(days=4))


async def _book(session, caller, hotel_id, room_type_id, check_in, check_out, quantity=1):
    return await BookingService(session).create_reservation(
        caller,
        CreateReservationRequest(
            hotel_id=hotel_id,
            check_in_date=check_in,
            check_out_date=check_out,
            rooms=[RoomRequest(room_type_id=room_type_id, quantity=quantity)],
        ),
    )


@pytest.mark.asyncio
async def test_all_rooms_free_initially(test_session, seeded_hotel, stay_dates):
    service = AvailabilityService(test_session)
    check_in, check_out = stay_dates()

    rooms = await service.find_available_rooms(
        seeded_hotel["hotel_id"], seeded_hotel["standard_id"], check_in, check_out
    )

    assert [room.room_number for room in rooms] == ["101", "102"]


@pytest.mark.asyncio
async def test_needed_quantity_limits_result(test_session, seeded_hotel, stay_dates):
    service = AvailabilityService(test_session)
    check_in, check_out = stay_dates()

    rooms = await service.find_available_rooms(
        seeded_hotel["hotel_id"], seeded_hotel["standard_id"], check_in, check_out, needed_quantity=1
    )

    assert len(rooms) == 1
    assert rooms[0].room_number == "101"


@pytest.mark.asyncio
async def test_blocking_reservation_hides_room(test_session, seeded_hotel, client_caller, stay_dates):
    hotel_id = seeded_hotel["hotel_id"]
    standard_id = seeded_hotel["standard_id"]
    check_in, check_out = stay_dates()
    await _book(test_session, client_caller, hotel_id, standard_id, check_in, check_out)

    service = AvailabilityService(test_session)

    assert await service.count_available_rooms(hotel_id, standard_id, check_in, check_out) == 1
    # Back-to-back stays share no night
    assert await service.count_available_rooms(
        hotel_id, standard_id, check_out, check_out + timedelta(days=2)
    ) == 2
    assert await service.count_available_rooms(
        hotel_id, standard_id, check_in - timedelta(days=1), check_in + timedelta(days=1)
    ) == 1


@pytest.mark.asyncio
async def test_cancelled_reservation_frees_room(
    test_session, seeded_hotel, client_caller, stay_dates
):
    hotel_id = seeded_hotel["hotel_id"]
    standard_id = seeded_hotel["standard_id"]
    check_in, check_out = stay_dates()
    reservation = await _book(test_session, client_caller, hotel_id, standard_id, check_in, check_out, quantity=2)

    service = AvailabilityService(test_session)
    assert await service.count_available_rooms(hotel_id, standard_id, check_in, check_out) == 0

    await LifecycleService(test_session).cancel(reservation.id, client_caller)

    assert await service.count_available_rooms(hotel_id, standard_id, check_in, check_out) == 2


@pytest.mark.asyncio
async def test_out_of_service_room_not_offered(test_session, seeded_hotel, stay_dates):
    hotel_id = seeded_hotel["hotel_id"]
    standard_id = seeded_hotel["standard_id"]
    room = seeded_hotel["rooms"][0]
    room.is_available = False
    await test_session.commit()

    service = AvailabilityService(test_session)
    check_in, check_out = stay_dates()

    rooms = await service.find_available_rooms(hotel_id, standard_id, check_in, check_out)
    assert [r.room_number for r in rooms] == ["102"]
    assert not await service.is_room_free(room, check_in, check_out)
    assert await service.is_room_free(room, check_in, check_out, require_in_service=False)


@pytest.mark.asyncio
async def test_is_room_free_excluding_own_reservation(
    test_session, seeded_hotel, client_caller, stay_dates
):
    hotel_id = seeded_hotel["hotel_id"]
    standard_id = seeded_hotel["standard_id"]
    check_in, check_out = stay_dates()
    reservation = await _book(test_session, client_caller, hotel_id, standard_id, check_in, check_out)
    room = reservation.rooms[0].room

    service = AvailabilityService(test_session)

    assert not await service.is_room_free(room, check_in, check_out)
    assert await service.is_room_free(room, check_in, check_out, exclude_reservation_id=reservation.id)


@pytest.mark.asyncio
async def test_invalid_range_rejected(test_session, seeded_hotel, stay_dates):
    service = AvailabilityService(test_session)
    check_in, _ = stay_dates()

    with pytest.raises(ValidationError):
        await service.find_available_rooms(
            seeded_hotel["hotel_id"], seeded_hotel["standard_id"], check_in, check_in
        )
