"""Reservation lifecycle: check-in, check-out, cancellation, reassignment and agent updates."""

import logging
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal

from sqlalchemy.ext.asyncio import AsyncSession

from ..core.config import settings
from ..core.exceptions import (
    AuthorizationError,
    InvalidStateError,
    NotFoundError,
    NotSupportedError,
    RoomTypeMismatchError,
    RoomUnavailableError,
    ValidationError,
)
from ..core.identity import Caller
from ..core.locking import inventory_lock
from ..core.money import to_money
from ..core.observability import metrics_collector
from ..models.reservation import (
    BLOCKING_STATUSES,
    Reservation,
    ReservationStatus,
    SpecialRequest,
    can_transition,
    sources_of,
)
from ..schemas.reservation import RoomAssignment, UpdateReservationRequest
from .availability_service import AvailabilityService, validate_stay_dates
from .booking_service import BookingService
from .catalog_service import CatalogService
from .notification_service import Notifier, notify, reservation_cancellation_body

logger = logging.getLogger(__name__)

DATE_CHANGE_STATUSES = frozenset({ReservationStatus.CONFIRMED, ReservationStatus.MODIFIED_BY_AGENT})

_TIMESTAMP_FIELDS = {
    ReservationStatus.CHECKED_IN: "actual_check_in_time",
    ReservationStatus.CHECKED_OUT: "actual_check_out_time",
    ReservationStatus.CANCELLED: "cancelled_at",
}


def apply_transition(reservation: Reservation, target: ReservationStatus, operation: str) -> None:
    """
    Move a reservation to ``target`` if the transition table allows it.

    Stamps the timestamp that belongs to the new status.

    Raises:
        InvalidStateError: If the transition is not allowed; the reservation is left unchanged
    """
    current = reservation.status
    if not can_transition(current, target):
        raise InvalidStateError(operation, current, (status.value for status in sources_of(target)))

    reservation.status = target.value
    field = _TIMESTAMP_FIELDS.get(target)
    if field:
        setattr(reservation, field, datetime.now(timezone.utc))

    metrics_collector.record_transition(current, target.value)


class LifecycleService:
    """Service for reservation state changes after booking."""

    def __init__(self, db: AsyncSession, notifier: Notifier | None = None):
        self.db = db
        self.bookings = BookingService(db, notifier)
        self.notifier = self.bookings.notifier
        self.availability = AvailabilityService(db)
        self.catalog = CatalogService(db)

    async def _save(self, reservation: Reservation) -> Reservation:
        try:
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise
        return await self.bookings.get_reservation_by_id_or_raise(reservation.id)

    async def check_in(self, reservation_id: int) -> Reservation:
        """
        Check a guest in.

        Raises:
            NotFoundError: If the reservation does not exist
            InvalidStateError: Unless the reservation is confirmed or modified by an agent
        """
        reservation = await self.bookings.get_reservation_by_id_or_raise(reservation_id)
        apply_transition(reservation, ReservationStatus.CHECKED_IN, "check in")

        if date.today() < reservation.check_in_date:
            logger.warning(
                "Early check-in before the scheduled date",
                extra={
                    "reservation_id": reservation.id,
                    "check_in_date": reservation.check_in_date.isoformat(),
                }
            )

        reservation = await self._save(reservation)
        logger.info("Reservation checked in", extra={"reservation_id": reservation.id})
        return reservation

    async def check_out(self, reservation_id: int) -> Reservation:
        """
        Check a guest out.

        Raises:
            NotFoundError: If the reservation does not exist
            InvalidStateError: Unless the reservation is checked in
        """
        reservation = await self.bookings.get_reservation_by_id_or_raise(reservation_id)
        apply_transition(reservation, ReservationStatus.CHECKED_OUT, "check out")

        reservation = await self._save(reservation)
        logger.info("Reservation checked out", extra={"reservation_id": reservation.id})
        return reservation

    async def cancel(self, reservation_id: int, caller: Caller) -> Reservation:
        """
        Cancel a confirmed reservation.

        Allocations are kept; their rooms become free because cancelled
        reservations no longer block availability. Clients cannot cancel
        inside the cancellation cutoff, staff can.

        Raises:
            NotFoundError: If the reservation does not exist
            AuthorizationError: If the caller neither owns the reservation nor is staff
            InvalidStateError: Unless the reservation is confirmed
            ValidationError: If a client cancels too close to check-in
        """
        reservation = await self.bookings.get_reservation_by_id_or_raise(reservation_id)

        if not caller.can_access(reservation.client_id):
            raise AuthorizationError(detail="You can only cancel your own reservations")

        if ReservationStatus(reservation.status) != ReservationStatus.CONFIRMED:
            raise InvalidStateError("cancel", reservation.status, [ReservationStatus.CONFIRMED.value])

        cutoff = reservation.check_in_date - timedelta(days=settings.cancellation_cutoff_days)
        if not caller.is_staff and date.today() >= cutoff:
            logger.info(
                "Cancellation rejected - too late",
                extra={"reservation_id": reservation.id, "check_in_date": reservation.check_in_date.isoformat()}
            )
            raise ValidationError(
                detail=(
                    f"Cancellation too late: reservations cannot be cancelled less than "
                    f"{settings.cancellation_cutoff_days} days before check-in"
                ),
                errors={"check_in_date": reservation.check_in_date.isoformat()},
            )

        apply_transition(reservation, ReservationStatus.CANCELLED, "cancel")
        reservation = await self._save(reservation)

        logger.info(
            "Reservation cancelled",
            extra={"reservation_id": reservation.id, "cancelled_by": caller.user_id}
        )

        if caller.owns(reservation.client_id):
            await notify(
                self.notifier,
                "reservation_cancellation",
                caller.email,
                f"Reservation {reservation.reference_number} cancelled",
                reservation_cancellation_body(reservation),
            )

        return reservation

    async def reassign_room(self, reservation_id: int, reservation_room_id: int, new_room_id: int) -> Reservation:
        """Move one allocated room to another room of the same type."""
        return await self.reassign_rooms(
            reservation_id,
            [RoomAssignment(reservation_room_id=reservation_room_id, new_room_id=new_room_id)],
        )

    async def reassign_rooms(self, reservation_id: int, assignments: list[RoomAssignment]) -> Reservation:
        """
        Apply a batch of room reassignments atomically.

        Raises:
            NotFoundError: If the reservation, an allocation entry or a room does not exist
            InvalidStateError: If the reservation no longer holds rooms
            RoomTypeMismatchError: If a replacement room has another room type
            RoomUnavailableError: If a replacement room is out of service or taken
        """
        reservation = await self.bookings.get_reservation_by_id_or_raise(reservation_id)

        if ReservationStatus(reservation.status) not in BLOCKING_STATUSES:
            raise InvalidStateError(
                "reassign rooms of", reservation.status, (status.value for status in BLOCKING_STATUSES)
            )

        entries = {entry.id: entry for entry in reservation.rooms}
        for assignment in assignments:
            if assignment.reservation_room_id not in entries:
                raise NotFoundError(
                    resource_type="reservation room",
                    resource_id=str(assignment.reservation_room_id),
                    detail=(
                        f"Allocation {assignment.reservation_room_id} does not belong to "
                        f"reservation {reservation.id}"
                    ),
                )

        final_rooms = {entry_id: entry.room_id for entry_id, entry in entries.items()}
        for assignment in assignments:
            final_rooms[assignment.reservation_room_id] = assignment.new_room_id

        scopes = {(reservation.hotel_id, entries[a.reservation_room_id].room_type_id) for a in assignments}
        changed = []

        try:
            async with inventory_lock(self.db, scopes):
                for assignment in assignments:
                    entry = entries[assignment.reservation_room_id]
                    if entry.room_id == assignment.new_room_id:
                        continue

                    room = await self.catalog.get_room_or_raise(reservation.hotel_id, assignment.new_room_id)
                    if room.room_type_id != entry.room_type_id:
                        raise RoomTypeMismatchError(room.id, entry.room_type_id, room.room_type_id)

                    if list(final_rooms.values()).count(room.id) > 1:
                        raise RoomUnavailableError(room.id, "already allocated to this reservation")

                    if not room.is_available:
                        raise RoomUnavailableError(room.id, "room is out of service")

                    if not await self.availability.is_room_free(
                        room,
                        reservation.check_in_date,
                        reservation.check_out_date,
                        exclude_reservation_id=reservation.id,
                    ):
                        raise RoomUnavailableError(room.id, "room is allocated to another reservation")

                    changed.append({"reservation_room_id": entry.id, "from": entry.room_id, "to": room.id})
                    entry.room_id = room.id
                    entry.room = room

                await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise

        logger.info(
            "Rooms reassigned",
            extra={"reservation_id": reservation.id, "changes": changed}
        )
        return await self.bookings.get_reservation_by_id_or_raise(reservation.id)

    async def update_reservation(self, reservation_id: int, patch: UpdateReservationRequest) -> Reservation:
        """
        Apply a staff update to dates, special requests or status.

        A date change re-checks every allocated room against other
        reservations, recomputes the total from the captured nightly rates
        and marks a confirmed reservation as modified by an agent.

        Raises:
            NotSupportedError: If the patch tries to change rooms
            ValidationError: If the new dates are invalid
            InvalidStateError: If dates change outside confirmed/modified, or a status move is not allowed
            RoomUnavailableError: If an allocated room is taken for the new dates
        """
        if patch.rooms is not None:
            raise NotSupportedError("Changing rooms or quantities of an existing reservation is not supported")

        reservation = await self.bookings.get_reservation_by_id_or_raise(reservation_id)
        original_status = reservation.status

        changes_dates = patch.check_in_date is not None or patch.check_out_date is not None
        scopes = {(reservation.hotel_id, entry.room_type_id) for entry in reservation.rooms} if changes_dates else set()

        try:
            async with inventory_lock(self.db, scopes):
                if changes_dates:
                    await self._change_dates(reservation, patch)

                if patch.special_requests is not None:
                    reservation.special_requests = [
                        SpecialRequest(request_text=text.strip())
                        for text in patch.special_requests
                        if text and text.strip()
                    ]

                if patch.status is not None and ReservationStatus(patch.status).value != reservation.status:
                    apply_transition(reservation, ReservationStatus(patch.status), "update")

                await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise

        logger.info(
            "Reservation updated by agent",
            extra={
                "reservation_id": reservation.id,
                "from_status": original_status,
                "to_status": reservation.status,
                "fields": sorted(patch.model_dump(exclude_none=True)),
            }
        )
        return await self.bookings.get_reservation_by_id_or_raise(reservation.id)

    async def _change_dates(self, reservation: Reservation, patch: UpdateReservationRequest) -> None:
        if ReservationStatus(reservation.status) not in DATE_CHANGE_STATUSES:
            raise InvalidStateError(
                "change dates of", reservation.status, (status.value for status in DATE_CHANGE_STATUSES)
            )

        new_check_in = patch.check_in_date or reservation.check_in_date
        new_check_out = patch.check_out_date or reservation.check_out_date
        validate_stay_dates(new_check_in, new_check_out)

        if patch.check_in_date is not None and new_check_in < date.today():
            raise ValidationError(
                detail="check_in_date cannot be in the past",
                errors={"check_in_date": "must be today or later"},
            )

        for entry in reservation.rooms:
            if not await self.availability.is_room_free(
                entry.room,
                new_check_in,
                new_check_out,
                exclude_reservation_id=reservation.id,
                require_in_service=False,
            ):
                raise RoomUnavailableError(entry.room_id, "room is allocated to another reservation")

        nights = (new_check_out - new_check_in).days
        reservation.check_in_date = new_check_in
        reservation.check_out_date = new_check_out
        reservation.total_amount = to_money(
            sum((entry.rate_per_night * nights for entry in reservation.rooms), Decimal("0"))
        )

        if ReservationStatus(reservation.status) == ReservationStatus.CONFIRMED:
            apply_transition(reservation, ReservationStatus.MODIFIED_BY_AGENT, "modify")
