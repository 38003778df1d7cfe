"""Rate service resolving nightly prices and maintaining room rates."""

import logging
from datetime import date
from decimal import Decimal
from typing import Iterable

from sqlalchemy import and_, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.config import settings
from ..core.exceptions import ValidationError
from ..core.locking import inventory_lock
from ..core.money import to_money
from ..models.rate import RoomRate
from ..schemas.rate import UpsertRateRequest
from .catalog_service import CatalogService

logger = logging.getLogger(__name__)

# date.weekday() of Friday and Saturday nights
WEEKEND_NIGHTS = frozenset({4, 5})


def price_for_night(rate: RoomRate, night: date, holidays: Iterable[date] = ()) -> Decimal:
    """
    Pick the tier price of ``rate`` for one night.

    Holiday beats weekend beats base; a tier without a price falls back to
    the base price.
    """
    if night in set(holidays):
        price = rate.holiday_price
    elif night.weekday() in WEEKEND_NIGHTS:
        price = rate.weekend_price
    else:
        price = None
    return to_money(price if price is not None else rate.base_price)


class RateService:
    """Service for nightly rate lookups and rate maintenance."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.catalog = CatalogService(db)

    async def find_rate(self, hotel_id: int, room_type_id: int, on_date: date) -> RoomRate | None:
        """
        Find the rate row that applies to a night.

        A dated rate whose window contains the night wins over the general
        rate; among dated rates the most recent start wins.
        """
        stmt = (
            select(RoomRate)
            .where(
                RoomRate.hotel_id == hotel_id,
                RoomRate.room_type_id == room_type_id,
                or_(
                    RoomRate.start_date.is_(None),
                    and_(RoomRate.start_date <= on_date, RoomRate.end_date >= on_date),
                ),
            )
            .order_by(
                RoomRate.start_date.is_(None),
                RoomRate.start_date.desc(),
                RoomRate.id.desc(),
            )
            .limit(1)
        )
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    async def resolve_nightly_rate(self, hotel_id: int, room_type_id: int, on_date: date) -> Decimal | None:
        """
        Resolve the nightly price of a room type.

        Returns:
            The tier price for the night, or None when no rate row applies
        """
        rate = await self.find_rate(hotel_id, room_type_id, on_date)
        if rate is None:
            return None
        return price_for_night(rate, on_date, settings.holidays)

    async def quote(self, hotel_id: int, room_type_id: int, on_date: date) -> tuple[Decimal, bool]:
        """Nightly price with the configured default applied; the flag tells whether it was used."""
        price = await self.resolve_nightly_rate(hotel_id, room_type_id, on_date)
        if price is None:
            logger.info(
                "No rate configured, using default nightly rate",
                extra={"hotel_id": hotel_id, "room_type_id": room_type_id, "date": on_date.isoformat()}
            )
            return to_money(settings.default_nightly_rate), True
        return price, False

    async def upsert_rate(self, request: UpsertRateRequest) -> tuple[RoomRate, bool]:
        """
        Create or update a room rate.

        The general rate (no dates) of a room type is updated in place;
        dated rates are always inserted.

        Returns:
            The stored rate and whether it was newly created

        Raises:
            NotFoundError: If the hotel or room type does not exist
            ValidationError: If the date window is incomplete or inverted
        """
        if request.start_date is not None or request.end_date is not None:
            if request.start_date is None or request.end_date is None:
                raise ValidationError(
                    detail="Seasonal rates need both start_date and end_date",
                    errors={"end_date": "required with start_date"},
                )
            if request.end_date <= request.start_date:
                raise ValidationError(
                    detail="end_date must be after start_date",
                    errors={"end_date": "must be after start_date"},
                )

        await self.catalog.get_hotel_by_id_or_raise(request.hotel_id)
        await self.catalog.get_room_type_or_raise(request.hotel_id, request.room_type_id)

        try:
            async with inventory_lock(self.db, [(request.hotel_id, request.room_type_id)]):
                rate = None
                if request.start_date is None:
                    stmt = select(RoomRate).where(
                        RoomRate.hotel_id == request.hotel_id,
                        RoomRate.room_type_id == request.room_type_id,
                        RoomRate.start_date.is_(None),
                    )
                    result = await self.db.execute(stmt)
                    rate = result.scalars().first()

                created = rate is None
                if created:
                    rate = RoomRate(
                        hotel_id=request.hotel_id,
                        room_type_id=request.room_type_id,
                        start_date=request.start_date,
                        end_date=request.end_date,
                    )
                    self.db.add(rate)

                rate.base_price = to_money(request.base_price)
                rate.weekend_price = to_money(request.weekend_price) if request.weekend_price is not None else None
                rate.holiday_price = to_money(request.holiday_price) if request.holiday_price is not None else None

                await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise

        await self.db.refresh(rate)

        logger.info(
            "Room rate saved",
            extra={
                "rate_id": rate.id,
                "hotel_id": rate.hotel_id,
                "room_type_id": rate.room_type_id,
                "created": created,
                "seasonal": rate.start_date is not None,
            }
        )

        return rate, created

    async def list_rates(self, hotel_id: int, room_type_id: int | None = None) -> list[RoomRate]:
        """List rates of a hotel, general rates first, then by window start."""
        conditions = [RoomRate.hotel_id == hotel_id]
        if room_type_id is not None:
            conditions.append(RoomRate.room_type_id == room_type_id)

        stmt = (
            select(RoomRate)
            .where(and_(*conditions))
            .order_by(
                RoomRate.room_type_id,
                RoomRate.start_date.is_not(None),
                RoomRate.start_date,
                RoomRate.id,
            )
        )
        result = await self.db.execute(stmt)
        return list(result.scalars())
