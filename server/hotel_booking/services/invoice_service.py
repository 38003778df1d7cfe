"""Invoice aggregation of room nights, consumptions and taxes."""

import logging
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from decimal import Decimal
from typing import Iterable

from sqlalchemy import and_, func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from ..core.config import settings
from ..core.exceptions import AuthorizationError, InvalidStateError, NotFoundError, ValidationError
from ..core.identity import Caller
from ..core.money import to_money
from ..core.observability import metrics_collector
from ..models.invoice import INVOICE_TRANSITIONS, Invoice, InvoiceItem, InvoiceItemType, InvoiceStatus
from ..models.reservation import Reservation, ReservationRoom, ReservationStatus
from .booking_service import generate_reference_number
from .notification_service import LoggingNotifier, Notifier, invoice_body, notify

logger = logging.getLogger(__name__)

INVOICEABLE_STATUSES = frozenset({ReservationStatus.CHECKED_IN, ReservationStatus.CHECKED_OUT})


@dataclass
class InvoiceLine:
    item_type: InvoiceItemType
    description: str
    quantity: int
    unit_price: Decimal
    total_price: Decimal


@dataclass
class InvoiceTotals:
    subtotal_room_charges: Decimal
    subtotal_consumption_charges: Decimal
    taxes_amount: Decimal
    total_amount_due: Decimal
    lines: list[InvoiceLine] = field(default_factory=list)


def calculate_invoice_totals(
    nights: int,
    rooms: Iterable[tuple[str, Decimal]],
    consumptions: Iterable[tuple[str, int, Decimal]],
    tax_rate: Decimal,
) -> InvoiceTotals:
    """
    Aggregate the charges of a stay.

    Args:
        nights: Nights of the stay
        rooms: (room type name, nightly rate) per allocated room
        consumptions: (item name, quantity, unit price) per consumption item
        tax_rate: Fraction applied to the sum of both subtotals

    Returns:
        Totals plus ordered lines: room groups, consumptions, then one tax line
    """
    groups: dict[tuple[str, Decimal], int] = {}
    for room_type_name, rate in rooms:
        key = (room_type_name, to_money(rate))
        groups[key] = groups.get(key, 0) + 1

    lines: list[InvoiceLine] = []
    room_subtotal = Decimal("0")
    for (room_type_name, rate), count in groups.items():
        quantity = count * nights
        total = to_money(rate * quantity)
        room_subtotal += total
        lines.append(InvoiceLine(
            item_type=InvoiceItemType.ROOM,
            description=f"{room_type_name} x{count} - {nights} night(s)",
            quantity=quantity,
            unit_price=rate,
            total_price=total,
        ))

    consumption_subtotal = Decimal("0")
    for item_name, quantity, unit_price in consumptions:
        total = to_money(to_money(unit_price) * quantity)
        consumption_subtotal += total
        lines.append(InvoiceLine(
            item_type=InvoiceItemType.CONSUMPTION,
            description=item_name,
            quantity=quantity,
            unit_price=to_money(unit_price),
            total_price=total,
        ))

    taxes = to_money((room_subtotal + consumption_subtotal) * Decimal(tax_rate))
    lines.append(InvoiceLine(
        item_type=InvoiceItemType.TAX,
        description=f"Taxes ({(Decimal(tax_rate) * 100).normalize():f}%)",
        quantity=1,
        unit_price=taxes,
        total_price=taxes,
    ))

    return InvoiceTotals(
        subtotal_room_charges=to_money(room_subtotal),
        subtotal_consumption_charges=to_money(consumption_subtotal),
        taxes_amount=taxes,
        total_amount_due=to_money(room_subtotal + consumption_subtotal + taxes),
        lines=lines,
    )


class InvoiceService:
    """Service for invoice generation and invoice reads."""

    def __init__(self, db: AsyncSession, notifier: Notifier | None = None):
        self.db = db
        self.notifier = notifier or LoggingNotifier()

    async def _get_billable_reservation(self, reservation_id: int) -> Reservation:
        stmt = (
            select(Reservation)
            .options(
                selectinload(Reservation.rooms).selectinload(ReservationRoom.room_type),
                selectinload(Reservation.consumptions),
            )
            .where(Reservation.id == reservation_id)
            .execution_options(populate_existing=True)
        )
        result = await self.db.execute(stmt)
        reservation = result.scalar_one_or_none()
        if not reservation:
            logger.warning("Reservation not found", extra={"reservation_id": reservation_id})
            raise NotFoundError(resource_type="reservation", resource_id=str(reservation_id))
        return reservation

    async def get_invoice_by_reservation(self, reservation_id: int) -> Invoice | None:
        stmt = (
            select(Invoice)
            .options(selectinload(Invoice.items))
            .where(Invoice.reservation_id == reservation_id)
            .execution_options(populate_existing=True)
        )
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    async def get_invoice_by_id(self, invoice_id: int) -> Invoice | None:
        stmt = (
            select(Invoice)
            .options(selectinload(Invoice.items))
            .where(Invoice.id == invoice_id)
            .execution_options(populate_existing=True)
        )
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    async def get_invoice_by_id_or_raise(self, invoice_id: int) -> Invoice:
        invoice = await self.get_invoice_by_id(invoice_id)
        if not invoice:
            logger.warning("Invoice not found", extra={"invoice_id": invoice_id})
            raise NotFoundError(resource_type="invoice", resource_id=str(invoice_id))
        return invoice

    async def _new_invoice_number(self) -> str:
        number = generate_reference_number(settings.invoice_prefix)
        while await self._invoice_number_exists(number):
            number = generate_reference_number(settings.invoice_prefix)
        return number

    async def _invoice_number_exists(self, number: str) -> bool:
        result = await self.db.execute(select(Invoice.id).where(Invoice.invoice_number == number))
        return result.scalar_one_or_none() is not None

    async def generate_or_get_invoice(self, reservation_id: int, caller: Caller) -> tuple[Invoice, bool]:
        """
        Return the invoice of a reservation, building it on first request.

        Returns:
            The invoice and whether it was created by this call

        Raises:
            NotFoundError: If the reservation does not exist
            AuthorizationError: If a client asks about someone else's reservation
            InvalidStateError: If the guest has not checked in yet
        """
        reservation = await self._get_billable_reservation(reservation_id)
        if not caller.can_access(reservation.client_id):
            raise AuthorizationError(detail="You can only request invoices for your own reservations")

        existing = await self.get_invoice_by_reservation(reservation.id)
        if existing:
            logger.info(
                "Returning existing invoice",
                extra={"invoice_id": existing.id, "reservation_id": reservation.id}
            )
            return existing, False

        if ReservationStatus(reservation.status) not in INVOICEABLE_STATUSES:
            raise InvalidStateError(
                "invoice", reservation.status, (status.value for status in INVOICEABLE_STATUSES)
            )

        totals = calculate_invoice_totals(
            reservation.nights,
            [(entry.room_type.name, entry.rate_per_night) for entry in reservation.rooms],
            [(item.item_name, item.quantity, item.unit_price) for item in reservation.consumptions],
            settings.tax_rate,
        )

        invoice = Invoice(
            invoice_number=await self._new_invoice_number(),
            reservation_id=reservation.id,
            client_id=reservation.client_id,
            hotel_id=reservation.hotel_id,
            subtotal_room_charges=totals.subtotal_room_charges,
            subtotal_consumption_charges=totals.subtotal_consumption_charges,
            taxes_amount=totals.taxes_amount,
            total_amount_due=totals.total_amount_due,
            status=InvoiceStatus.DRAFT.value,
            items=[
                InvoiceItem(
                    position=position,
                    item_type=line.item_type.value,
                    description=line.description,
                    quantity=line.quantity,
                    unit_price=line.unit_price,
                    total_price=line.total_price,
                )
                for position, line in enumerate(totals.lines, start=1)
            ],
        )

        try:
            self.db.add(invoice)
            await self.db.commit()
        except IntegrityError:
            # A concurrent request stored the invoice first
            await self.db.rollback()
            existing = await self.get_invoice_by_reservation(reservation_id)
            if existing is None:
                raise
            logger.info(
                "Invoice created concurrently, returning stored one",
                extra={"invoice_id": existing.id, "reservation_id": reservation_id}
            )
            return existing, False
        except Exception:
            await self.db.rollback()
            raise

        invoice = await self.get_invoice_by_id_or_raise(invoice.id)

        metrics_collector.record_invoice_generated()
        logger.info(
            "Invoice generated",
            extra={
                "invoice_id": invoice.id,
                "invoice_number": invoice.invoice_number,
                "reservation_id": reservation_id,
                "total_amount_due": str(invoice.total_amount_due),
            }
        )

        return invoice, True

    async def get_invoice(self, invoice_id: int, caller: Caller) -> Invoice:
        """
        Get an invoice with its lines.

        Raises:
            NotFoundError: If the invoice does not exist
            AuthorizationError: If a client asks for someone else's invoice
        """
        invoice = await self.get_invoice_by_id_or_raise(invoice_id)
        if not caller.can_access(invoice.client_id):
            raise AuthorizationError(detail="You can only view your own invoices")
        return invoice

    async def list_invoices(
        self,
        caller: Caller,
        client_id: int | None = None,
        status: InvoiceStatus | None = None,
        date_from: date | None = None,
        date_to: date | None = None,
        page: int = 1,
        limit: int | None = None,
    ) -> tuple[list[Invoice], int]:
        """
        Filtered, paginated invoice listing.

        Clients only ever see their own invoices, whatever ``client_id`` says.
        The date bounds apply to the generation day, both inclusive.
        """
        limit = min(limit or settings.default_page_size, settings.max_page_size)

        if not caller.is_staff:
            client_id = caller.user_id

        conditions = []
        if client_id is not None:
            conditions.append(Invoice.client_id == client_id)
        if status is not None:
            conditions.append(Invoice.status == InvoiceStatus(status).value)
        if date_from is not None:
            conditions.append(Invoice.generated_at >= datetime.combine(date_from, datetime.min.time()))
        if date_to is not None:
            # Include the entire day
            date_to_end = datetime.combine(date_to, datetime.min.time()) + timedelta(days=1)
            conditions.append(Invoice.generated_at < date_to_end)

        count_stmt = select(func.count(Invoice.id))
        stmt = select(Invoice)
        if conditions:
            count_stmt = count_stmt.where(and_(*conditions))
            stmt = stmt.where(and_(*conditions))

        total = (await self.db.execute(count_stmt)).scalar_one()

        stmt = stmt.order_by(Invoice.generated_at.desc(), Invoice.id.desc()).offset((page - 1) * limit).limit(limit)
        result = await self.db.execute(stmt)
        invoices = list(result.scalars())

        logger.info(
            "Invoice search completed",
            extra={"total_found": total, "page": page, "limit": limit, "client_id": client_id}
        )
        return invoices, total

    async def update_invoice_status(self, invoice_id: int, status: InvoiceStatus) -> Invoice:
        """
        Move an invoice forward: draft -> issued -> paid, or draft -> paid.

        Raises:
            NotFoundError: If the invoice does not exist
            InvalidStateError: If the move goes backwards or stays put
        """
        invoice = await self.get_invoice_by_id_or_raise(invoice_id)
        current = InvoiceStatus(invoice.status)
        target = InvoiceStatus(status)

        if target not in INVOICE_TRANSITIONS[current]:
            sources = [source.value for source, targets in INVOICE_TRANSITIONS.items() if target in targets]
            raise InvalidStateError(f"mark as {target.value}", current.value, sources, resource_type="invoice")

        invoice.status = target.value
        try:
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise

        logger.info(
            "Invoice status updated",
            extra={"invoice_id": invoice.id, "from_status": current.value, "to_status": target.value}
        )
        return await self.get_invoice_by_id_or_raise(invoice.id)

    async def send_invoice_email(self, invoice_id: int, caller: Caller, recipient: str | None = None) -> tuple[str, bool]:
        """
        Email an invoice, best effort.

        Returns:
            The recipient used and whether delivery succeeded

        Raises:
            NotFoundError: If the invoice does not exist
            ValidationError: If no recipient is given and the caller has no email
        """
        invoice = await self.get_invoice_by_id_or_raise(invoice_id)
        recipient = recipient or caller.email
        if not recipient:
            raise ValidationError(
                detail="No recipient email address given",
                errors={"recipient_email": "required"},
            )

        sent = await notify(
            self.notifier,
            "invoice",
            recipient,
            f"Invoice {invoice.invoice_number}",
            invoice_body(invoice),
        )
        logger.info(
            "Invoice email processed",
            extra={"invoice_id": invoice.id, "recipient": recipient, "sent": sent}
        )
        return recipient, sent
