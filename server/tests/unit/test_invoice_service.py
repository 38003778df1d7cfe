"""Unit tests for invoice aggregation."""

from decimal import Decimal

import pytest

from hotel_booking.core.exceptions import AuthorizationError, InvalidStateError, NotFoundError, ValidationError
from hotel_booking.models import InvoiceItemType, InvoiceStatus
from hotel_booking.schemas.consumption import CreateConsumptionRequest
from hotel_booking.schemas.reservation import CreateReservationRequest, RoomRequest
from hotel_booking.services.booking_service import BookingService
from hotel_booking.services.consumption_service import ConsumptionService
from hotel_booking.services.invoice_service import InvoiceService, calculate_invoice_totals
from hotel_booking.services.lifecycle_service import LifecycleService


def test_calculate_invoice_totals():
    """One room at 100.00 for two nights plus 5.00 of extras at 10% tax."""
    totals = calculate_invoice_totals(
        2,
        [("Standard Double", Decimal("100.00"))],
        [("Mineral water", 2, Decimal("2.50"))],
        Decimal("0.10"),
    )

    assert totals.subtotal_room_charges == Decimal("200.00")
    assert totals.subtotal_consumption_charges == Decimal("5.00")
    assert totals.taxes_amount == Decimal("20.50")
    assert totals.total_amount_due == Decimal("225.50")
    assert [line.item_type for line in totals.lines] == [
        InvoiceItemType.ROOM,
        InvoiceItemType.CONSUMPTION,
        InvoiceItemType.TAX,
    ]
    assert totals.lines[-1].description == "Taxes (10%)"


def test_room_lines_grouped_by_type_and_rate():
    totals = calculate_invoice_totals(
        3,
        [
            ("Standard Double", Decimal("100.00")),
            ("Standard Double", Decimal("100.00")),
            ("Suite", Decimal("250.00")),
        ],
        [],
        Decimal("0"),
    )

    room_lines = [line for line in totals.lines if line.item_type == InvoiceItemType.ROOM]
    assert len(room_lines) == 2
    assert room_lines[0].quantity == 6
    assert room_lines[0].total_price == Decimal("600.00")
    assert room_lines[1].quantity == 3
    assert room_lines[1].total_price == Decimal("750.00")
    assert totals.subtotal_consumption_charges == Decimal("0.00")
    assert totals.total_amount_due == Decimal("1350.00")


async def _stay_with_extras(session, seeded_hotel, caller, stay_dates, check_in_guest=True):
    check_in, check_out = stay_dates(nights=2)
    reservation = await BookingService(session).create_reservation(
        caller,
        CreateReservationRequest(
            hotel_id=seeded_hotel["hotel_id"],
            check_in_date=check_in,
            check_out_date=check_out,
            rooms=[RoomRequest(room_type_id=seeded_hotel["standard_id"], quantity=1)],
        ),
    )
    reservation_id = reservation.id
    if check_in_guest:
        await LifecycleService(session).check_in(reservation_id)
        await ConsumptionService(session).add_consumption(
            reservation_id,
            CreateConsumptionRequest(item_name="Mineral water", quantity=2, unit_price=Decimal("2.50")),
        )
    return reservation_id


@pytest.mark.asyncio
async def test_generate_invoice(test_session, seeded_hotel, client_caller, stay_dates):
    reservation_id = await _stay_with_extras(test_session, seeded_hotel, client_caller, stay_dates)

    invoice, created = await InvoiceService(test_session).generate_or_get_invoice(reservation_id, client_caller)

    assert created is True
    assert invoice.invoice_number.startswith("INV")
    assert invoice.reservation_id == reservation_id
    assert invoice.client_id == client_caller.user_id
    assert InvoiceStatus(invoice.status) == InvoiceStatus.DRAFT
    assert invoice.subtotal_room_charges == Decimal("200.00")
    assert invoice.subtotal_consumption_charges == Decimal("5.00")
    assert invoice.taxes_amount == Decimal("20.50")
    assert invoice.total_amount_due == Decimal("225.50")
    assert [item.position for item in invoice.items] == [1, 2, 3]


@pytest.mark.asyncio
async def test_generate_invoice_is_idempotent(test_session, seeded_hotel, client_caller, stay_dates):
    reservation_id = await _stay_with_extras(test_session, seeded_hotel, client_caller, stay_dates)
    service = InvoiceService(test_session)

    first, first_created = await service.generate_or_get_invoice(reservation_id, client_caller)
    second, second_created = await service.generate_or_get_invoice(reservation_id, client_caller)

    assert first_created is True
    assert second_created is False
    assert second.id == first.id
    assert second.invoice_number == first.invoice_number


@pytest.mark.asyncio
async def test_invoice_requires_check_in(test_session, seeded_hotel, client_caller, stay_dates):
    reservation_id = await _stay_with_extras(
        test_session, seeded_hotel, client_caller, stay_dates, check_in_guest=False
    )

    with pytest.raises(InvalidStateError):
        await InvoiceService(test_session).generate_or_get_invoice(reservation_id, client_caller)


@pytest.mark.asyncio
async def test_invoice_of_other_client_forbidden(
    test_session, seeded_hotel, client_caller, other_client_caller, stay_dates
):
    reservation_id = await _stay_with_extras(test_session, seeded_hotel, client_caller, stay_dates)

    with pytest.raises(AuthorizationError):
        await InvoiceService(test_session).generate_or_get_invoice(reservation_id, other_client_caller)


@pytest.mark.asyncio
async def test_invoice_unknown_reservation(test_session, client_caller):
    with pytest.raises(NotFoundError):
        await InvoiceService(test_session).generate_or_get_invoice(9999, client_caller)


@pytest.mark.asyncio
async def test_invoice_status_moves_forward_only(test_session, seeded_hotel, client_caller, stay_dates):
    reservation_id = await _stay_with_extras(test_session, seeded_hotel, client_caller, stay_dates)
    service = InvoiceService(test_session)
    invoice, _ = await service.generate_or_get_invoice(reservation_id, client_caller)
    invoice_id = invoice.id

    invoice = await service.update_invoice_status(invoice_id, InvoiceStatus.ISSUED)
    assert InvoiceStatus(invoice.status) == InvoiceStatus.ISSUED

    with pytest.raises(InvalidStateError):
        await service.update_invoice_status(invoice_id, InvoiceStatus.DRAFT)

    invoice = await service.update_invoice_status(invoice_id, InvoiceStatus.PAID)
    assert InvoiceStatus(invoice.status) == InvoiceStatus.PAID

    with pytest.raises(InvalidStateError):
        await service.update_invoice_status(invoice_id, InvoiceStatus.PAID)


@pytest.mark.asyncio
async def test_list_invoices_scoped_to_client(
    test_session, seeded_hotel, client_caller, other_client_caller, reception_caller, stay_dates
):
    mine = await _stay_with_extras(test_session, seeded_hotel, client_caller, stay_dates)
    service = InvoiceService(test_session)
    invoice, _ = await service.generate_or_get_invoice(mine, client_caller)
    invoice_id = invoice.id

    # A client filter naming someone else is ignored for clients
    invoices, total = await service.list_invoices(other_client_caller, client_id=client_caller.user_id)
    assert total == 0
    assert invoices == []

    invoices, total = await service.list_invoices(client_caller)
    assert total == 1
    assert invoices[0].id == invoice_id

    invoices, total = await service.list_invoices(reception_caller, status=InvoiceStatus.PAID)
    assert total == 0

    with pytest.raises(AuthorizationError):
        await service.get_invoice(invoice_id, other_client_caller)
    assert (await service.get_invoice(invoice_id, reception_caller)).id == invoice_id


@pytest.mark.asyncio
async def test_send_invoice_email(
    test_session, seeded_hotel, client_caller, reception_caller, notifier, stay_dates
):
    reservation_id = await _stay_with_extras(test_session, seeded_hotel, client_caller, stay_dates)
    service = InvoiceService(test_session, notifier)
    invoice, _ = await service.generate_or_get_invoice(reservation_id, client_caller)

    recipient, sent = await service.send_invoice_email(invoice.id, reception_caller, "guest@example.com")

    assert recipient == "guest@example.com"
    assert sent is True
    assert notifier.sent[0]["to"] == "guest@example.com"
    assert "225.50" in notifier.sent[0]["body"]


@pytest.mark.asyncio
async def test_send_invoice_email_failure_reported(
    test_session, seeded_hotel, client_caller, reception_caller, failing_notifier, stay_dates
):
    reservation_id = await _stay_with_extras(test_session, seeded_hotel, client_caller, stay_dates)
    service = InvoiceService(test_session, failing_notifier)
    invoice, _ = await service.generate_or_get_invoice(reservation_id, client_caller)

    recipient, sent = await service.send_invoice_email(invoice.id, reception_caller)

    assert recipient == reception_caller.email
    assert sent is False


@pytest.mark.asyncio
async def test_send_invoice_email_needs_recipient(test_session, seeded_hotel, client_caller, stay_dates):
    from hotel_booking.core.identity import Caller, Role

    reservation_id = await _stay_with_extras(test_session, seeded_hotel, client_caller, stay_dates)
    service = InvoiceService(test_session)
    invoice, _ = await service.generate_or_get_invoice(reservation_id, client_caller)

    with pytest.raises(ValidationError):
        await service.send_invoice_email(invoice.id, Caller(user_id=2002, role=Role.RECEPTION))
