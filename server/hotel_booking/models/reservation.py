"""Reservation, allocated room and special request model definitions."""

from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import TYPE_CHECKING

from sqlalchemy import CheckConstraint, Date, DateTime, ForeignKey, Integer, Numeric, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ..core.database import Base

if TYPE_CHECKING:
    from .consumption import ConsumptionItem
    from .hotel import Hotel, Room, RoomType
    from .invoice import Invoice


class ReservationStatus(str, Enum):
    """Reservation status enumeration."""
    CONFIRMED = "confirmed"
    MODIFIED_BY_AGENT = "modified_by_agent"
    CHECKED_IN = "checked_in"
    CHECKED_OUT = "checked_out"
    CANCELLED = "cancelled"


# Every status change goes through this table
ALLOWED_TRANSITIONS: dict[ReservationStatus, frozenset[ReservationStatus]] = {
    ReservationStatus.CONFIRMED: frozenset({
        ReservationStatus.CHECKED_IN,
        ReservationStatus.MODIFIED_BY_AGENT,
        ReservationStatus.CANCELLED,
    }),
    ReservationStatus.MODIFIED_BY_AGENT: frozenset({
        ReservationStatus.CHECKED_IN,
        ReservationStatus.CANCELLED,
    }),
    ReservationStatus.CHECKED_IN: frozenset({ReservationStatus.CHECKED_OUT}),
    ReservationStatus.CHECKED_OUT: frozenset(),
    ReservationStatus.CANCELLED: frozenset(),
}

# Statuses whose allocations still occupy their rooms
BLOCKING_STATUSES: frozenset[ReservationStatus] = frozenset({
    ReservationStatus.CONFIRMED,
    ReservationStatus.CHECKED_IN,
    ReservationStatus.MODIFIED_BY_AGENT,
})

BLOCKING_STATUS_VALUES: tuple[str, ...] = tuple(sorted(status.value for status in BLOCKING_STATUSES))


def can_transition(current: str, target: str) -> bool:
    """Return True when the transition table allows ``current`` -> ``target``."""
    return ReservationStatus(target) in ALLOWED_TRANSITIONS[ReservationStatus(current)]


def sources_of(target: ReservationStatus) -> frozenset[ReservationStatus]:
    """Statuses from which ``target`` can be reached."""
    return frozenset(
        source for source, targets in ALLOWED_TRANSITIONS.items() if target in targets
    )


class Reservation(Base):
    """Reservation entity holding one or more allocated rooms for a date range."""

    __tablename__ = "reservations"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    reference_number: Mapped[str] = mapped_column(String(32), nullable=False, unique=True, index=True)

    # Users live in the identity service; only their ids are stored here
    client_id: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    created_by_user_id: Mapped[int | None] = mapped_column(Integer, nullable=True)

    hotel_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("hotels.id", ondelete="RESTRICT"),
        nullable=False,
        index=True
    )

    check_in_date: Mapped[date] = mapped_column(Date, nullable=False, index=True)
    check_out_date: Mapped[date] = mapped_column(Date, nullable=False, index=True)
    total_amount: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=ReservationStatus.CONFIRMED.value,
        index=True
    )

    actual_check_in_time: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    actual_check_out_time: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    cancelled_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        nullable=False,
        server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        nullable=False,
        server_default=func.now(),
        onupdate=func.now()
    )

    __table_args__ = (
        CheckConstraint("check_out_date > check_in_date", name="ck_reservation_dates_ordered"),
        CheckConstraint("total_amount >= 0", name="ck_reservation_total_non_negative"),
    )

    hotel: Mapped["Hotel"] = relationship("Hotel")
    rooms: Mapped[list["ReservationRoom"]] = relationship(
        "ReservationRoom",
        back_populates="reservation",
        cascade="all, delete-orphan",
        order_by="ReservationRoom.id"
    )
    special_requests: Mapped[list["SpecialRequest"]] = relationship(
        "SpecialRequest",
        back_populates="reservation",
        cascade="all, delete-orphan",
        order_by="SpecialRequest.id"
    )
    consumptions: Mapped[list["ConsumptionItem"]] = relationship(
        "ConsumptionItem",
        back_populates="reservation",
        cascade="all, delete-orphan",
        order_by="ConsumptionItem.id"
    )
    invoice: Mapped["Invoice | None"] = relationship(
        "Invoice",
        back_populates="reservation",
        uselist=False
    )

    @property
    def nights(self) -> int:
        return (self.check_out_date - self.check_in_date).days

    @property
    def is_blocking(self) -> bool:
        return ReservationStatus(self.status) in BLOCKING_STATUSES

    def __repr__(self) -> str:
        return (
            f"<Reservation(id={self.id}, reference_number='{self.reference_number}', "
            f"client_id={self.client_id}, status={self.status}, "
            f"check_in_date={self.check_in_date}, check_out_date={self.check_out_date})>"
        )


class ReservationRoom(Base):
    """A physical room allocated to a reservation at the rate captured at booking time."""

    __tablename__ = "reservation_rooms"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    reservation_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("reservations.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    room_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("rooms.id", ondelete="RESTRICT"),
        nullable=False,
        index=True
    )
    room_type_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("room_types.id", ondelete="RESTRICT"),
        nullable=False
    )
    rate_per_night: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)

    __table_args__ = (
        CheckConstraint("rate_per_night >= 0", name="ck_reservation_room_rate_non_negative"),
    )

    reservation: Mapped["Reservation"] = relationship("Reservation", back_populates="rooms")
    room: Mapped["Room"] = relationship("Room")
    room_type: Mapped["RoomType"] = relationship("RoomType")

    def __repr__(self) -> str:
        return (
            f"<ReservationRoom(id={self.id}, reservation_id={self.reservation_id}, "
            f"room_id={self.room_id}, rate_per_night={self.rate_per_night})>"
        )


class SpecialRequest(Base):
    """Free-text guest request attached to a reservation."""

    __tablename__ = "special_requests"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    reservation_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("reservations.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    request_text: Mapped[str] = mapped_column(Text, nullable=False)

    reservation: Mapped["Reservation"] = relationship("Reservation", back_populates="special_requests")

    def __repr__(self) -> str:
        return f"<SpecialRequest(id={self.id}, reservation_id={self.reservation_id})>"
