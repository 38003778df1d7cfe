"""Consumption item model definition."""

from datetime import datetime
from decimal import Decimal
from typing import TYPE_CHECKING

from sqlalchemy import CheckConstraint, DateTime, ForeignKey, Integer, Numeric, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ..core.database import Base

if TYPE_CHECKING:
    from .reservation import Reservation


class ConsumptionItem(Base):
    """Chargeable item consumed by a guest during a stay."""

    __tablename__ = "consumption_items"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    reservation_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("reservations.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    item_name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    unit_price: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    total_price: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    consumed_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now()
    )

    __table_args__ = (
        CheckConstraint("quantity > 0", name="ck_consumption_quantity_positive"),
        CheckConstraint("unit_price >= 0", name="ck_consumption_unit_price_non_negative"),
        CheckConstraint("length(item_name) > 0", name="ck_consumption_item_name_not_empty"),
    )

    reservation: Mapped["Reservation"] = relationship("Reservation", back_populates="consumptions")

    def __repr__(self) -> str:
        return (
            f"<ConsumptionItem(id={self.id}, reservation_id={self.reservation_id}, "
            f"item_name='{self.item_name}', quantity={self.quantity}, total_price={self.total_price})>"
        )
