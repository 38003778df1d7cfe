"""Availability service finding physical rooms free for a date range."""

import logging
from datetime import date

from sqlalchemy import Select, and_, func, not_, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.exceptions import ValidationError
from ..models.hotel import Room
from ..models.reservation import BLOCKING_STATUS_VALUES, Reservation, ReservationRoom

logger = logging.getLogger(__name__)


def stays_overlap(first_in: date, first_out: date, second_in: date, second_out: date) -> bool:
    """Half-open [check_in, check_out) intervals overlap unless one ends before the other starts."""
    return not (first_out <= second_in or first_in >= second_out)


def validate_stay_dates(check_in: date, check_out: date) -> None:
    if check_out <= check_in:
        raise ValidationError(
            detail="check_out_date must be after check_in_date",
            errors={"check_out_date": "must be after check_in_date"},
        )


class AvailabilityService:
    """Service answering which rooms can take a stay."""

    def __init__(self, db: AsyncSession):
        self.db = db

    @staticmethod
    def _occupied_room_ids(
        check_in: date,
        check_out: date,
        exclude_reservation_id: int | None = None,
    ) -> Select:
        """Rooms held by a blocking reservation whose stay overlaps the range."""
        conditions = [
            Reservation.status.in_(BLOCKING_STATUS_VALUES),
            not_(or_(
                Reservation.check_out_date <= check_in,
                Reservation.check_in_date >= check_out,
            )),
        ]
        if exclude_reservation_id is not None:
            conditions.append(Reservation.id != exclude_reservation_id)

        return (
            select(ReservationRoom.room_id)
            .join(Reservation, Reservation.id == ReservationRoom.reservation_id)
            .where(and_(*conditions))
        )

    def _free_rooms_stmt(
        self,
        hotel_id: int,
        room_type_id: int,
        check_in: date,
        check_out: date,
        exclude_reservation_id: int | None,
    ) -> Select:
        return select(Room).where(
            Room.hotel_id == hotel_id,
            Room.room_type_id == room_type_id,
            Room.is_available.is_(True),
            Room.id.not_in(self._occupied_room_ids(check_in, check_out, exclude_reservation_id)),
        )

    async def find_available_rooms(
        self,
        hotel_id: int,
        room_type_id: int,
        check_in: date,
        check_out: date,
        needed_quantity: int | None = None,
        exclude_reservation_id: int | None = None,
    ) -> list[Room]:
        """
        Find rooms of a type that are in service and not allocated for the range.

        Args:
            hotel_id: Hotel the rooms belong to
            room_type_id: Room type requested
            check_in: First night
            check_out: Departure day, exclusive
            needed_quantity: Upper bound on the rooms returned
            exclude_reservation_id: Reservation whose own allocations are ignored

        Returns:
            Free rooms ordered by id, at most ``needed_quantity`` of them

        Raises:
            ValidationError: If check_out is not after check_in
        """
        validate_stay_dates(check_in, check_out)

        stmt = self._free_rooms_stmt(
            hotel_id, room_type_id, check_in, check_out, exclude_reservation_id
        ).order_by(Room.id)
        if needed_quantity is not None:
            stmt = stmt.limit(needed_quantity)

        result = await self.db.execute(stmt)
        rooms = list(result.scalars())

        logger.debug(
            "Availability checked",
            extra={
                "hotel_id": hotel_id,
                "room_type_id": room_type_id,
                "check_in": check_in.isoformat(),
                "check_out": check_out.isoformat(),
                "needed_quantity": needed_quantity,
                "found": len(rooms),
            }
        )
        return rooms

    async def count_available_rooms(
        self,
        hotel_id: int,
        room_type_id: int,
        check_in: date,
        check_out: date,
    ) -> int:
        """Number of free rooms of a type for the range."""
        validate_stay_dates(check_in, check_out)
        subquery = self._free_rooms_stmt(hotel_id, room_type_id, check_in, check_out, None).subquery()
        result = await self.db.execute(select(func.count()).select_from(subquery))
        return result.scalar_one()

    async def is_room_free(
        self,
        room: Room,
        check_in: date,
        check_out: date,
        exclude_reservation_id: int | None = None,
        require_in_service: bool = True,
    ) -> bool:
        """Whether a single room is in service and has no overlapping allocation."""
        if require_in_service and not room.is_available:
            return False

        stmt = self._occupied_room_ids(check_in, check_out, exclude_reservation_id).where(
            ReservationRoom.room_id == room.id
        ).limit(1)
        result = await self.db.execute(stmt)
        return result.first() is None
