"""Booking service allocating rooms to new reservations."""

import logging
import secrets
import string
import time
from datetime import date
from decimal import Decimal

from sqlalchemy import and_, func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from ..core.config import settings
from ..core.exceptions import (
    AuthorizationError,
    ConflictError,
    InsufficientInventoryError,
    NotFoundError,
    ValidationError,
)
from ..core.identity import Caller, Role
from ..core.locking import inventory_lock
from ..core.money import to_money
from ..core.observability import metrics_collector
from ..models.reservation import Reservation, ReservationRoom, ReservationStatus, SpecialRequest
from ..schemas.reservation import AgentCreateReservationRequest, CreateReservationRequest
from .availability_service import AvailabilityService, validate_stay_dates
from .catalog_service import CatalogService
from .notification_service import LoggingNotifier, Notifier, notify, reservation_confirmation_body
from .rate_service import RateService

logger = logging.getLogger(__name__)

REFERENCE_ALPHABET = string.digits + string.ascii_uppercase
REFERENCE_ATTEMPTS = 3


def generate_reference_number(prefix: str) -> str:
    """``<prefix><epoch milliseconds><4 random base36 characters>``."""
    suffix = "".join(secrets.choice(REFERENCE_ALPHABET) for _ in range(4))
    return f"{prefix}{int(time.time() * 1000)}{suffix}"


def reservation_load_options():
    """Eager loads needed to render a reservation outside the session."""
    return (
        selectinload(Reservation.rooms).selectinload(ReservationRoom.room),
        selectinload(Reservation.special_requests),
    )


class BookingService:
    """Service for creating and reading reservations."""

    def __init__(self, db: AsyncSession, notifier: Notifier | None = None):
        self.db = db
        self.notifier = notifier or LoggingNotifier()
        self.availability = AvailabilityService(db)
        self.rates = RateService(db)
        self.catalog = CatalogService(db)

    async def create_reservation(self, caller: Caller, request: CreateReservationRequest) -> Reservation:
        """
        Book rooms for the calling user.

        Args:
            caller: Authenticated user, who becomes the owning client
            request: Hotel, dates and rooms per room type

        Returns:
            The confirmed reservation with its allocated rooms

        Raises:
            ValidationError: If the dates are invalid or a room type repeats
            NotFoundError: If the hotel or a room type does not exist
            InsufficientInventoryError: If any room type cannot be fully served
            ConflictError: If no unique reference number could be stored
        """
        return await self._allocate(
            request,
            client_id=caller.user_id,
            created_by_user_id=None,
            notify_to=caller.email,
            channel=Role.CLIENT.value,
        )

    async def create_reservation_for_client(
        self,
        caller: Caller,
        request: AgentCreateReservationRequest,
    ) -> Reservation:
        """Book rooms on behalf of a client; staff only."""
        if not caller.is_staff:
            raise AuthorizationError(
                detail="Only hotel staff can book on behalf of a client",
                required_roles=[Role.RECEPTION.value, Role.ADMIN.value],
            )
        return await self._allocate(
            request,
            client_id=request.client_id,
            created_by_user_id=caller.user_id,
            notify_to=request.client_email,
            channel="agent",
        )

    def _validate_request(self, request: CreateReservationRequest) -> None:
        validate_stay_dates(request.check_in_date, request.check_out_date)

        if request.check_in_date < date.today():
            raise ValidationError(
                detail="check_in_date cannot be in the past",
                errors={"check_in_date": "must be today or later"},
            )

        room_type_ids = [room.room_type_id for room in request.rooms]
        if len(room_type_ids) != len(set(room_type_ids)):
            raise ValidationError(
                detail="Each room type may appear only once per request",
                errors={"rooms": "duplicate room_type_id"},
            )

    async def _allocate(
        self,
        request: CreateReservationRequest,
        client_id: int,
        created_by_user_id: int | None,
        notify_to: str | None,
        channel: str,
    ) -> Reservation:
        self._validate_request(request)

        await self.catalog.get_hotel_by_id_or_raise(request.hotel_id)
        for room_request in request.rooms:
            await self.catalog.get_room_type_or_raise(request.hotel_id, room_request.room_type_id)

        for attempt in range(1, REFERENCE_ATTEMPTS + 1):
            reference = await self._new_reference_number()
            try:
                reservation_id = await self._store_reservation(request, reference, client_id, created_by_user_id)
                break
            except IntegrityError:
                if not await self.reference_number_exists(reference):
                    raise
                logger.warning(
                    "Reference number taken concurrently, retrying",
                    extra={"reference_number": reference, "attempt": attempt}
                )
        else:
            raise ConflictError(
                detail="Could not assign a unique reference number, please retry",
                conflicting_resource={"reference_number": reference},
            )

        reservation = await self.get_reservation_by_id_or_raise(reservation_id)

        metrics_collector.record_reservation_created(reservation.hotel_id, channel)
        logger.info(
            "Reservation created successfully",
            extra={
                "reservation_id": reservation.id,
                "reference_number": reservation.reference_number,
                "client_id": reservation.client_id,
                "created_by_user_id": created_by_user_id,
                "hotel_id": reservation.hotel_id,
                "rooms": len(reservation.rooms),
                "total_amount": str(reservation.total_amount),
            }
        )

        await notify(
            self.notifier,
            "reservation_confirmation",
            notify_to,
            f"Reservation {reservation.reference_number} confirmed",
            reservation_confirmation_body(reservation),
        )

        return reservation

    async def _store_reservation(
        self,
        request: CreateReservationRequest,
        reference: str,
        client_id: int,
        created_by_user_id: int | None,
    ) -> int:
        """Allocate rooms and commit one reservation under the inventory lock."""
        nights = (request.check_out_date - request.check_in_date).days
        scopes = [(request.hotel_id, room.room_type_id) for room in request.rooms]

        try:
            async with inventory_lock(self.db, scopes):
                allocated: list[ReservationRoom] = []
                total = Decimal("0")

                for room_request in request.rooms:
                    rooms = await self.availability.find_available_rooms(
                        request.hotel_id,
                        room_request.room_type_id,
                        request.check_in_date,
                        request.check_out_date,
                        needed_quantity=room_request.quantity,
                    )
                    if len(rooms) < room_request.quantity:
                        metrics_collector.record_inventory_conflict(request.hotel_id, room_request.room_type_id)
                        logger.warning(
                            "Booking rejected - insufficient inventory",
                            extra={
                                "hotel_id": request.hotel_id,
                                "room_type_id": room_request.room_type_id,
                                "requested": room_request.quantity,
                                "available": len(rooms),
                            }
                        )
                        raise InsufficientInventoryError(
                            room_type_id=room_request.room_type_id,
                            requested=room_request.quantity,
                            available=len(rooms),
                        )

                    rate, _ = await self.rates.quote(
                        request.hotel_id, room_request.room_type_id, request.check_in_date
                    )
                    total += rate * len(rooms) * nights
                    allocated.extend(
                        ReservationRoom(room_id=room.id, room_type_id=room.room_type_id, rate_per_night=rate)
                        for room in rooms
                    )

                reservation = Reservation(
                    reference_number=reference,
                    client_id=client_id,
                    created_by_user_id=created_by_user_id,
                    hotel_id=request.hotel_id,
                    check_in_date=request.check_in_date,
                    check_out_date=request.check_out_date,
                    total_amount=to_money(total),
                    status=ReservationStatus.CONFIRMED.value,
                    rooms=allocated,
                    special_requests=[SpecialRequest(request_text=text) for text in request.special_requests],
                )
                self.db.add(reservation)
                await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise

        return reservation.id

    async def _new_reference_number(self) -> str:
        reference = generate_reference_number(settings.reference_prefix)
        while await self.reference_number_exists(reference):
            reference = generate_reference_number(settings.reference_prefix)
        return reference

    async def reference_number_exists(self, reference_number: str) -> bool:
        stmt = select(Reservation.id).where(Reservation.reference_number == reference_number)
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none() is not None

    async def get_reservation_by_id(self, reservation_id: int) -> Reservation | None:
        """Get a reservation with its rooms and special requests loaded."""
        stmt = (
            select(Reservation)
            .options(*reservation_load_options())
            .where(Reservation.id == reservation_id)
            .execution_options(populate_existing=True)
        )
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    async def get_reservation_by_id_or_raise(self, reservation_id: int) -> Reservation:
        reservation = await self.get_reservation_by_id(reservation_id)
        if not reservation:
            logger.warning("Reservation not found", extra={"reservation_id": reservation_id})
            raise NotFoundError(resource_type="reservation", resource_id=str(reservation_id))
        return reservation

    async def get_reservation(self, reservation_id: int, caller: Caller) -> Reservation:
        """
        Get a reservation visible to the caller.

        Raises:
            NotFoundError: If the reservation does not exist
            AuthorizationError: If a client asks for someone else's reservation
        """
        reservation = await self.get_reservation_by_id_or_raise(reservation_id)
        if not caller.can_access(reservation.client_id):
            logger.warning(
                "Reservation access denied",
                extra={"reservation_id": reservation_id, "user_id": caller.user_id}
            )
            raise AuthorizationError(detail="You can only view your own reservations")
        return reservation

    async def list_client_reservations(self, client_id: int) -> list[Reservation]:
        """All reservations of a client, most recent check-in first."""
        stmt = (
            select(Reservation)
            .options(*reservation_load_options())
            .where(Reservation.client_id == client_id)
            .order_by(Reservation.check_in_date.desc(), Reservation.id.desc())
        )
        result = await self.db.execute(stmt)
        return list(result.scalars())

    async def list_reservations(
        self,
        client_id: int | None = None,
        hotel_id: int | None = None,
        status: ReservationStatus | None = None,
        date_from: date | None = None,
        date_to: date | None = None,
        page: int = 1,
        limit: int | None = None,
    ) -> tuple[list[Reservation], int]:
        """
        Filtered, paginated reservation listing for staff.

        ``date_from`` and ``date_to`` bound the check-in date, both inclusive.

        Returns:
            The page of reservations and the total number of matches
        """
        limit = min(limit or settings.default_page_size, settings.max_page_size)

        conditions = []
        if client_id is not None:
            conditions.append(Reservation.client_id == client_id)
        if hotel_id is not None:
            conditions.append(Reservation.hotel_id == hotel_id)
        if status is not None:
            conditions.append(Reservation.status == ReservationStatus(status).value)
        if date_from is not None:
            conditions.append(Reservation.check_in_date >= date_from)
        if date_to is not None:
            conditions.append(Reservation.check_in_date <= date_to)

        count_stmt = select(func.count(Reservation.id))
        stmt = select(Reservation).options(*reservation_load_options())
        if conditions:
            count_stmt = count_stmt.where(and_(*conditions))
            stmt = stmt.where(and_(*conditions))

        total = (await self.db.execute(count_stmt)).scalar_one()

        stmt = (
            stmt.order_by(Reservation.created_at.desc(), Reservation.id.desc())
            .offset((page - 1) * limit)
            .limit(limit)
        )
        result = await self.db.execute(stmt)
        reservations = list(result.scalars())

        logger.info(
            "Reservation search completed",
            extra={
                "total_found": total,
                "page": page,
                "limit": limit,
                "filters": {
                    "client_id": client_id,
                    "hotel_id": hotel_id,
                    "status": status,
                    "date_from": date_from.isoformat() if date_from else None,
                    "date_to": date_to.isoformat() if date_to else None,
                }
            }
        )

        return reservations, total
