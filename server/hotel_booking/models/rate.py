"""Room rate model definition."""

from datetime import date
from decimal import Decimal
from typing import TYPE_CHECKING

from sqlalchemy import CheckConstraint, Date, ForeignKey, Integer, Numeric
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ..core.database import Base

if TYPE_CHECKING:
    from .hotel import RoomType


class RoomRate(Base):
    """
    Nightly price of a room type.

    A row without dates is the general rate of the room type; rows with a
    [start_date, end_date] window override it for the nights they cover.
    """

    __tablename__ = "room_rates"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    hotel_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("hotels.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    room_type_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("room_types.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )

    base_price: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    weekend_price: Mapped[Decimal | None] = mapped_column(Numeric(10, 2), nullable=True)
    holiday_price: Mapped[Decimal | None] = mapped_column(Numeric(10, 2), nullable=True)

    start_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    end_date: Mapped[date | None] = mapped_column(Date, nullable=True)

    __table_args__ = (
        CheckConstraint("base_price >= 0", name="ck_rate_base_price_non_negative"),
        CheckConstraint(
            "start_date IS NULL OR end_date > start_date",
            name="ck_rate_window_ordered"
        ),
    )

    room_type: Mapped["RoomType"] = relationship("RoomType", back_populates="rates")

    @property
    def is_general(self) -> bool:
        return self.start_date is None

    def __repr__(self) -> str:
        return (
            f"<RoomRate(id={self.id}, room_type_id={self.room_type_id}, base_price={self.base_price}, "
            f"start_date={self.start_date}, end_date={self.end_date})>"
        )
