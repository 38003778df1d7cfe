"""Unit tests for the consumption ledger."""

from decimal import Decimal

import pytest

from hotel_booking.core.exceptions import AuthorizationError, NotFoundError
from hotel_booking.schemas.consumption import CreateConsumptionRequest
from hotel_booking.schemas.reservation import CreateReservationRequest, RoomRequest
from hotel_booking.services.booking_service import BookingService
from hotel_booking.services.consumption_service import ConsumptionService
from hotel_booking.services.lifecycle_service import LifecycleService


@pytest.fixture
def minibar_item():
    return CreateConsumptionRequest(
        item_name="Mineral water",
        description="Minibar",
        quantity=3,
        unit_price=Decimal("2.50"),
    )


async def _checked_in_reservation(session, seeded_hotel, caller, stay_dates, check_in_guest=True):
    check_in, check_out = stay_dates()
    reservation = await BookingService(session).create_reservation(
        caller,
        CreateReservationRequest(
            hotel_id=seeded_hotel["hotel_id"],
            check_in_date=check_in,
            check_out_date=check_out,
            rooms=[RoomRequest(room_type_id=seeded_hotel["suite_id"], quantity=1)],
        ),
    )
    if check_in_guest:
        await LifecycleService(session).check_in(reservation.id)
    return reservation.id


@pytest.mark.asyncio
async def test_add_consumption(test_session, seeded_hotel, client_caller, stay_dates, minibar_item):
    reservation_id = await _checked_in_reservation(test_session, seeded_hotel, client_caller, stay_dates)

    item = await ConsumptionService(test_session).add_consumption(reservation_id, minibar_item)

    assert item.id is not None
    assert item.reservation_id == reservation_id
    assert item.unit_price == Decimal("2.50")
    assert item.total_price == Decimal("7.50")
    assert item.consumed_at is not None


@pytest.mark.asyncio
async def test_add_consumption_requires_checked_in_guest(
    test_session, seeded_hotel, client_caller, stay_dates, minibar_item
):
    reservation_id = await _checked_in_reservation(
        test_session, seeded_hotel, client_caller, stay_dates, check_in_guest=False
    )

    with pytest.raises(AuthorizationError):
        await ConsumptionService(test_session).add_consumption(reservation_id, minibar_item)


@pytest.mark.asyncio
async def test_add_consumption_after_check_out_rejected(
    test_session, seeded_hotel, client_caller, stay_dates, minibar_item
):
    reservation_id = await _checked_in_reservation(test_session, seeded_hotel, client_caller, stay_dates)
    await LifecycleService(test_session).check_out(reservation_id)

    with pytest.raises(AuthorizationError):
        await ConsumptionService(test_session).add_consumption(reservation_id, minibar_item)


@pytest.mark.asyncio
async def test_add_consumption_unknown_reservation(test_session, minibar_item):
    with pytest.raises(NotFoundError):
        await ConsumptionService(test_session).add_consumption(9999, minibar_item)


@pytest.mark.asyncio
async def test_list_consumptions(
    test_session, seeded_hotel, client_caller, other_client_caller, reception_caller, stay_dates, minibar_item
):
    reservation_id = await _checked_in_reservation(test_session, seeded_hotel, client_caller, stay_dates)
    service = ConsumptionService(test_session)
    await service.add_consumption(reservation_id, minibar_item)
    await service.add_consumption(
        reservation_id,
        CreateConsumptionRequest(item_name="Room service dinner", quantity=1, unit_price=Decimal("38.00")),
    )

    items = await service.list_consumptions(reservation_id, client_caller)
    assert [item.item_name for item in items] == ["Mineral water", "Room service dinner"]

    assert len(await service.list_consumptions(reservation_id, reception_caller)) == 2

    with pytest.raises(AuthorizationError):
        await service.list_consumptions(reservation_id, other_client_caller)
