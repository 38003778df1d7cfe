"""Consumption ledger for items charged during a stay."""

import logging

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.exceptions import AuthorizationError, NotFoundError
from ..core.identity import Caller
from ..core.money import to_money
from ..core.observability import metrics_collector
from ..models.consumption import ConsumptionItem
from ..models.reservation import Reservation, ReservationStatus
from ..schemas.consumption import CreateConsumptionRequest

logger = logging.getLogger(__name__)


class ConsumptionService:
    """Service for recording and listing consumption items."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def _get_reservation_or_raise(self, reservation_id: int) -> Reservation:
        reservation = await self.db.get(Reservation, reservation_id)
        if not reservation:
            logger.warning("Reservation not found", extra={"reservation_id": reservation_id})
            raise NotFoundError(resource_type="reservation", resource_id=str(reservation_id))
        return reservation

    async def add_consumption(self, reservation_id: int, request: CreateConsumptionRequest) -> ConsumptionItem:
        """
        Record an item consumed by a checked-in guest.

        Args:
            reservation_id: Reservation to charge
            request: Item, quantity and unit price

        Returns:
            The stored consumption item

        Raises:
            NotFoundError: If the reservation does not exist
            AuthorizationError: Unless the guest is currently checked in
        """
        reservation = await self._get_reservation_or_raise(reservation_id)

        if ReservationStatus(reservation.status) != ReservationStatus.CHECKED_IN:
            logger.warning(
                "Consumption rejected - guest not checked in",
                extra={"reservation_id": reservation_id, "status": reservation.status}
            )
            raise AuthorizationError(
                detail=(
                    "Consumptions can only be recorded for checked-in reservations "
                    f"(current status: {reservation.status})"
                )
            )

        unit_price = to_money(request.unit_price)
        item = ConsumptionItem(
            reservation_id=reservation.id,
            item_name=request.item_name,
            description=request.description,
            quantity=request.quantity,
            unit_price=unit_price,
            total_price=to_money(unit_price * request.quantity),
        )

        try:
            self.db.add(item)
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise
        await self.db.refresh(item)

        metrics_collector.record_consumption()
        logger.info(
            "Consumption recorded",
            extra={
                "consumption_id": item.id,
                "reservation_id": reservation.id,
                "item_name": item.item_name,
                "total_price": str(item.total_price),
            }
        )

        return item

    async def list_consumptions(self, reservation_id: int, caller: Caller) -> list[ConsumptionItem]:
        """
        List the consumption items of a reservation.

        Raises:
            NotFoundError: If the reservation does not exist
            AuthorizationError: If a client asks about someone else's reservation
        """
        reservation = await self._get_reservation_or_raise(reservation_id)
        if not caller.can_access(reservation.client_id):
            raise AuthorizationError(detail="You can only view consumptions of your own reservations")

        stmt = (
            select(ConsumptionItem)
            .where(ConsumptionItem.reservation_id == reservation_id)
            .order_by(ConsumptionItem.consumed_at, ConsumptionItem.id)
        )
        result = await self.db.execute(stmt)
        return list(result.scalars())
