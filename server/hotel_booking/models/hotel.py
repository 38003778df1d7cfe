"""Hotel, room type and physical room model definitions."""

from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import Boolean, CheckConstraint, ForeignKey, Integer, String, UniqueConstraint, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ..core.database import Base

if TYPE_CHECKING:
    from .rate import RoomRate


class Hotel(Base):
    """Hotel entity owning room types and rooms."""

    __tablename__ = "hotels"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    city: Mapped[str | None] = mapped_column(String(128), nullable=True)
    email: Mapped[str | None] = mapped_column(String(255), nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        nullable=False,
        server_default=func.now()
    )

    __table_args__ = (
        CheckConstraint("length(name) > 0", name="ck_hotel_name_not_empty"),
    )

    room_types: Mapped[list["RoomType"]] = relationship(
        "RoomType",
        back_populates="hotel",
        cascade="all, delete-orphan"
    )
    rooms: Mapped[list["Room"]] = relationship(
        "Room",
        back_populates="hotel",
        cascade="all, delete-orphan"
    )

    def __repr__(self) -> str:
        return f"<Hotel(id={self.id}, name='{self.name}')>"


class RoomType(Base):
    """Sellable category of rooms within a hotel."""

    __tablename__ = "room_types"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    hotel_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("hotels.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    name: Mapped[str] = mapped_column(String(128), nullable=False)
    capacity: Mapped[int] = mapped_column(Integer, nullable=False, default=2)

    __table_args__ = (
        CheckConstraint("capacity > 0", name="ck_room_type_capacity_positive"),
    )

    hotel: Mapped["Hotel"] = relationship("Hotel", back_populates="room_types")
    rooms: Mapped[list["Room"]] = relationship("Room", back_populates="room_type")
    rates: Mapped[list["RoomRate"]] = relationship(
        "RoomRate",
        back_populates="room_type",
        cascade="all, delete-orphan"
    )

    def __repr__(self) -> str:
        return f"<RoomType(id={self.id}, hotel_id={self.hotel_id}, name='{self.name}')>"


class Room(Base):
    """Physical room, the unit of allocation."""

    __tablename__ = "rooms"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    hotel_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("hotels.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    room_type_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("room_types.id", ondelete="RESTRICT"),
        nullable=False,
        index=True
    )
    room_number: Mapped[str] = mapped_column(String(32), nullable=False)
    # False while under maintenance or otherwise out of service
    is_available: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    __table_args__ = (
        UniqueConstraint("hotel_id", "room_number", name="uq_room_hotel_number"),
    )

    hotel: Mapped["Hotel"] = relationship("Hotel", back_populates="rooms")
    room_type: Mapped["RoomType"] = relationship("RoomType", back_populates="rooms")

    def __repr__(self) -> str:
        return (
            f"<Room(id={self.id}, hotel_id={self.hotel_id}, room_type_id={self.room_type_id}, "
            f"room_number='{self.room_number}', is_available={self.is_available})>"
        )
