"""Unit tests for the booking service."""

from datetime import date, timedelta
from decimal import Decimal

import pytest
from sqlalchemy import func, select

from hotel_booking.core.exceptions import (
    AuthorizationError,
    ConflictError,
    InsufficientInventoryError,
    NotFoundError,
    ValidationError,
)
from hotel_booking.models import Reservation, ReservationRoom, ReservationStatus
from hotel_booking.schemas.reservation import (
    AgentCreateReservationRequest,
    CreateReservationRequest,
    RoomRequest,
)
from hotel_booking.services.booking_service import REFERENCE_ATTEMPTS, BookingService, generate_reference_number
from hotel_booking.services.lifecycle_service import LifecycleService


def _request(hotel_id, check_in, check_out, rooms, special_requests=()):
    return CreateReservationRequest(
        hotel_id=hotel_id,
        check_in_date=check_in,
        check_out_date=check_out,
        rooms=[RoomRequest(room_type_id=room_type_id, quantity=qty) for room_type_id, qty in rooms],
        special_requests=list(special_requests),
    )


def test_reference_number_format():
    reference = generate_reference_number("HTL")

    assert reference.startswith("HTL")
    assert len(reference) == 3 + 13 + 4
    assert reference[3:16].isdigit()
    assert reference[16:].isalnum() and reference[16:].upper() == reference[16:]


@pytest.mark.asyncio
async def test_create_reservation(test_session, seeded_hotel, client_caller, notifier, stay_dates):
    """Two standard rooms at 100.00 for two nights cost 400.00."""
    service = BookingService(test_session, notifier)
    hotel_id = seeded_hotel["hotel_id"]
    standard_id = seeded_hotel["standard_id"]
    check_in, check_out = stay_dates(nights=2)

    reservation = await service.create_reservation(
        client_caller,
        _request(hotel_id, check_in, check_out, [(standard_id, 2)], special_requests=["  Late arrival ", ""]),
    )

    assert reservation.id is not None
    assert reservation.reference_number.startswith("HTL")
    assert ReservationStatus(reservation.status) == ReservationStatus.CONFIRMED
    assert reservation.client_id == client_caller.user_id
    assert reservation.created_by_user_id is None
    assert reservation.total_amount == Decimal("400.00")
    assert sorted(entry.room.room_number for entry in reservation.rooms) == ["101", "102"]
    assert all(entry.rate_per_night == Decimal("100.00") for entry in reservation.rooms)
    assert [request.request_text for request in reservation.special_requests] == ["Late arrival"]

    assert len(notifier.sent) == 1
    assert notifier.sent[0]["to"] == client_caller.email
    assert reservation.reference_number in notifier.sent[0]["subject"]


@pytest.mark.asyncio
async def test_second_booking_rejected_until_cancel(
    test_session, seeded_hotel, client_caller, other_client_caller, stay_dates
):
    """Client B is refused while A holds both rooms and succeeds once A cancels."""
    service = BookingService(test_session)
    hotel_id = seeded_hotel["hotel_id"]
    standard_id = seeded_hotel["standard_id"]
    check_in, check_out = stay_dates()

    first = await service.create_reservation(
        client_caller, _request(hotel_id, check_in, check_out, [(standard_id, 2)])
    )
    first_id = first.id

    with pytest.raises(InsufficientInventoryError) as exc_info:
        await service.create_reservation(
            other_client_caller, _request(hotel_id, check_in, check_out, [(standard_id, 1)])
        )
    assert exc_info.value.problem_details["conflicting_resource"]["available"] == 0

    await LifecycleService(test_session).cancel(first_id, client_caller)

    second = await service.create_reservation(
        other_client_caller, _request(hotel_id, check_in, check_out, [(standard_id, 1)])
    )
    assert second.client_id == other_client_caller.user_id
    assert len(second.rooms) == 1


@pytest.mark.asyncio
async def test_multi_type_booking_is_atomic(
    test_session, seeded_hotel, client_caller, stay_dates
):
    """If one room type cannot be served nothing at all is stored."""
    service = BookingService(test_session)
    hotel_id = seeded_hotel["hotel_id"]
    check_in, check_out = stay_dates()

    with pytest.raises(InsufficientInventoryError):
        await service.create_reservation(
            client_caller,
            _request(hotel_id, check_in, check_out, [
                (seeded_hotel["standard_id"], 1),
                (seeded_hotel["suite_id"], 2),
            ]),
        )

    reservations = (await test_session.execute(select(func.count(Reservation.id)))).scalar_one()
    allocations = (await test_session.execute(select(func.count(ReservationRoom.id)))).scalar_one()
    assert reservations == 0
    assert allocations == 0


def _references(monkeypatch, service, *references):
    """Hand out fixed reference numbers, as if another booking grabbed them first."""
    pending = iter(references)

    async def next_reference():
        return next(pending)

    monkeypatch.setattr(service, "_new_reference_number", next_reference)


@pytest.mark.asyncio
async def test_reference_number_collision_retried(
    monkeypatch, test_session, seeded_hotel, client_caller, other_client_caller, stay_dates
):
    """A reference stored concurrently is replaced by a fresh one."""
    service = BookingService(test_session)
    hotel_id = seeded_hotel["hotel_id"]
    check_in, check_out = stay_dates()
    taken = await service.create_reservation(
        client_caller, _request(hotel_id, check_in, check_out, [(seeded_hotel["suite_id"], 1)])
    )
    taken_reference = taken.reference_number

    _references(monkeypatch, service, taken_reference, "HTL1700000000000FRSH")
    reservation = await service.create_reservation(
        other_client_caller, _request(hotel_id, check_in, check_out, [(seeded_hotel["standard_id"], 1)])
    )

    assert reservation.reference_number == "HTL1700000000000FRSH"
    assert reservation.client_id == other_client_caller.user_id
    reservations = (await test_session.execute(select(func.count(Reservation.id)))).scalar_one()
    assert reservations == 2


@pytest.mark.asyncio
async def test_reference_number_collisions_exhausted(
    monkeypatch, test_session, seeded_hotel, client_caller, other_client_caller, stay_dates
):
    service = BookingService(test_session)
    hotel_id = seeded_hotel["hotel_id"]
    check_in, check_out = stay_dates()
    taken = await service.create_reservation(
        client_caller, _request(hotel_id, check_in, check_out, [(seeded_hotel["suite_id"], 1)])
    )
    taken_reference = taken.reference_number

    _references(monkeypatch, service, *[taken_reference] * REFERENCE_ATTEMPTS)
    with pytest.raises(ConflictError) as exc_info:
        await service.create_reservation(
            other_client_caller, _request(hotel_id, check_in, check_out, [(seeded_hotel["standard_id"], 1)])
        )

    assert exc_info.value.status_code == 409
    allocations = (await test_session.execute(select(func.count(ReservationRoom.id)))).scalar_one()
    assert allocations == 1


@pytest.mark.asyncio
async def test_multi_type_booking_totals(test_session, seeded_hotel, client_caller, stay_dates):
    service = BookingService(test_session)
    hotel_id = seeded_hotel["hotel_id"]
    check_in, check_out = stay_dates(nights=3)

    reservation = await service.create_reservation(
        client_caller,
        _request(hotel_id, check_in, check_out, [
            (seeded_hotel["standard_id"], 1),
            (seeded_hotel["suite_id"], 1),
        ]),
    )

    # (100 + 250) * 3 nights
    assert reservation.total_amount == Decimal("1050.00")
    assert len(reservation.rooms) == 2


@pytest.mark.asyncio
async def test_default_rate_when_no_rate_row(test_session, seeded_hotel, client_caller, stay_dates):
    from hotel_booking.models import Room, RoomType

    hotel_id = seeded_hotel["hotel_id"]
    loft = RoomType(hotel_id=hotel_id, name="Loft", capacity=2)
    test_session.add(loft)
    await test_session.flush()
    test_session.add(Room(hotel_id=hotel_id, room_type_id=loft.id, room_number="401", is_available=True))
    await test_session.commit()

    check_in, check_out = stay_dates(nights=1)
    reservation = await BookingService(test_session).create_reservation(
        client_caller, _request(hotel_id, check_in, check_out, [(loft.id, 1)])
    )

    assert reservation.total_amount == Decimal("100.00")


@pytest.mark.asyncio
async def test_create_reservation_invalid_dates(test_session, seeded_hotel, client_caller):
    service = BookingService(test_session)
    check_in = date.today() + timedelta(days=10)

    with pytest.raises(ValidationError):
        await service.create_reservation(
            client_caller,
            _request(seeded_hotel["hotel_id"], check_in, check_in, [(seeded_hotel["standard_id"], 1)]),
        )


@pytest.mark.asyncio
async def test_create_reservation_in_the_past(test_session, seeded_hotel, client_caller):
    service = BookingService(test_session)
    check_in = date.today() - timedelta(days=1)

    with pytest.raises(ValidationError):
        await service.create_reservation(
            client_caller,
            _request(
                seeded_hotel["hotel_id"], check_in, check_in + timedelta(days=2),
                [(seeded_hotel["standard_id"], 1)],
            ),
        )


@pytest.mark.asyncio
async def test_create_reservation_duplicate_room_type(test_session, seeded_hotel, client_caller, stay_dates):
    service = BookingService(test_session)
    standard_id = seeded_hotel["standard_id"]
    check_in, check_out = stay_dates()

    with pytest.raises(ValidationError):
        await service.create_reservation(
            client_caller,
            _request(seeded_hotel["hotel_id"], check_in, check_out, [(standard_id, 1), (standard_id, 1)]),
        )


@pytest.mark.asyncio
async def test_create_reservation_unknown_hotel(test_session, seeded_hotel, client_caller, stay_dates):
    service = BookingService(test_session)
    check_in, check_out = stay_dates()

    with pytest.raises(NotFoundError):
        await service.create_reservation(
            client_caller, _request(9999, check_in, check_out, [(seeded_hotel["standard_id"], 1)])
        )


@pytest.mark.asyncio
async def test_create_reservation_room_type_of_other_hotel(
    test_session, seeded_hotel, client_caller, stay_dates
):
    from hotel_booking.models import Hotel, RoomType

    other = Hotel(name="Mountain Lodge")
    test_session.add(other)
    await test_session.flush()
    foreign_type = RoomType(hotel_id=other.id, name="Cabin", capacity=2)
    test_session.add(foreign_type)
    await test_session.commit()

    check_in, check_out = stay_dates()
    with pytest.raises(NotFoundError):
        await BookingService(test_session).create_reservation(
            client_caller, _request(seeded_hotel["hotel_id"], check_in, check_out, [(foreign_type.id, 1)])
        )


@pytest.mark.asyncio
async def test_agent_booking_for_client(
    test_session, seeded_hotel, reception_caller, notifier, stay_dates
):
    service = BookingService(test_session, notifier)
    check_in, check_out = stay_dates()

    reservation = await service.create_reservation_for_client(
        reception_caller,
        AgentCreateReservationRequest(
            hotel_id=seeded_hotel["hotel_id"],
            check_in_date=check_in,
            check_out_date=check_out,
            rooms=[RoomRequest(room_type_id=seeded_hotel["suite_id"], quantity=1)],
            client_id=4242,
            client_email="walk.in@example.com",
        ),
    )

    assert reservation.client_id == 4242
    assert reservation.created_by_user_id == reception_caller.user_id
    assert notifier.sent[0]["to"] == "walk.in@example.com"


@pytest.mark.asyncio
async def test_agent_booking_requires_staff(test_session, seeded_hotel, client_caller, stay_dates):
    check_in, check_out = stay_dates()

    with pytest.raises(AuthorizationError):
        await BookingService(test_session).create_reservation_for_client(
            client_caller,
            AgentCreateReservationRequest(
                hotel_id=seeded_hotel["hotel_id"],
                check_in_date=check_in,
                check_out_date=check_out,
                rooms=[RoomRequest(room_type_id=seeded_hotel["suite_id"], quantity=1)],
                client_id=4242,
            ),
        )


@pytest.mark.asyncio
async def test_notification_failure_does_not_fail_booking(
    test_session, seeded_hotel, client_caller, failing_notifier, stay_dates
):
    service = BookingService(test_session, failing_notifier)
    check_in, check_out = stay_dates()

    reservation = await service.create_reservation(
        client_caller, _request(seeded_hotel["hotel_id"], check_in, check_out, [(seeded_hotel["suite_id"], 1)])
    )

    assert reservation.id is not None
    stored = await service.get_reservation_by_id(reservation.id)
    assert stored is not None


@pytest.mark.asyncio
async def test_get_reservation_access(
    test_session, seeded_hotel, client_caller, other_client_caller, reception_caller, stay_dates
):
    service = BookingService(test_session)
    check_in, check_out = stay_dates()
    reservation = await service.create_reservation(
        client_caller, _request(seeded_hotel["hotel_id"], check_in, check_out, [(seeded_hotel["suite_id"], 1)])
    )

    assert (await service.get_reservation(reservation.id, client_caller)).id == reservation.id
    assert (await service.get_reservation(reservation.id, reception_caller)).id == reservation.id

    with pytest.raises(AuthorizationError):
        await service.get_reservation(reservation.id, other_client_caller)

    with pytest.raises(NotFoundError):
        await service.get_reservation(9999, reception_caller)


@pytest.mark.asyncio
async def test_list_reservations_filters(
    test_session, seeded_hotel, client_caller, other_client_caller, stay_dates
):
    service = BookingService(test_session)
    hotel_id = seeded_hotel["hotel_id"]
    standard_id = seeded_hotel["standard_id"]

    early_in, early_out = stay_dates(offset_days=20)
    late_in, late_out = stay_dates(offset_days=40)
    await service.create_reservation(client_caller, _request(hotel_id, early_in, early_out, [(standard_id, 1)]))
    await service.create_reservation(client_caller, _request(hotel_id, late_in, late_out, [(standard_id, 1)]))
    await service.create_reservation(other_client_caller, _request(hotel_id, late_in, late_out, [(standard_id, 1)]))

    items, total = await service.list_reservations(client_id=client_caller.user_id)
    assert total == 2

    items, total = await service.list_reservations(date_from=late_in, date_to=late_in)
    assert total == 2
    assert all(item.check_in_date == late_in for item in items)

    items, total = await service.list_reservations(status=ReservationStatus.CANCELLED)
    assert total == 0

    items, total = await service.list_reservations(page=2, limit=2)
    assert total == 3
    assert len(items) == 1

    mine = await service.list_client_reservations(other_client_caller.user_id)
    assert len(mine) == 1
