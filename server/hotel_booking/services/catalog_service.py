"""Lookups over hotels, room types and rooms."""

import logging

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.exceptions import NotFoundError
from ..models.hotel import Hotel, Room, RoomType

logger = logging.getLogger(__name__)


class CatalogService:
    """Read access to the property catalogue maintained by the hotel admin tools."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_hotel_by_id(self, hotel_id: int) -> Hotel | None:
        return await self.db.get(Hotel, hotel_id)

    async def get_hotel_by_id_or_raise(self, hotel_id: int) -> Hotel:
        hotel = await self.get_hotel_by_id(hotel_id)
        if not hotel:
            logger.warning("Hotel not found", extra={"hotel_id": hotel_id})
            raise NotFoundError(resource_type="hotel", resource_id=str(hotel_id))
        return hotel

    async def get_room_type_or_raise(self, hotel_id: int, room_type_id: int) -> RoomType:
        """
        Get a room type of the given hotel.

        Raises:
            NotFoundError: If the room type does not exist or belongs to another hotel
        """
        stmt = select(RoomType).where(
            RoomType.id == room_type_id,
            RoomType.hotel_id == hotel_id,
        )
        result = await self.db.execute(stmt)
        room_type = result.scalar_one_or_none()
        if not room_type:
            logger.warning(
                "Room type not found",
                extra={"hotel_id": hotel_id, "room_type_id": room_type_id}
            )
            raise NotFoundError(
                resource_type="room type",
                resource_id=str(room_type_id),
                detail=f"Room type {room_type_id} does not exist in hotel {hotel_id}",
            )
        return room_type

    async def get_room_or_raise(self, hotel_id: int, room_id: int) -> Room:
        """
        Get a room of the given hotel.

        Raises:
            NotFoundError: If the room does not exist or belongs to another hotel
        """
        room = await self.db.get(Room, room_id)
        if not room or room.hotel_id != hotel_id:
            logger.warning(
                "Room not found",
                extra={"hotel_id": hotel_id, "room_id": room_id}
            )
            raise NotFoundError(
                resource_type="room",
                resource_id=str(room_id),
                detail=f"Room {room_id} does not exist in hotel {hotel_id}",
            )
        return room
