"""Reservation-related Pydantic schemas."""

from datetime import date, datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ..models.reservation import ReservationStatus
from .common import Pagination


class RoomRequest(BaseModel):
    """Quantity of rooms requested for one room type."""

    room_type_id: int = Field(..., ge=1, description="Room type to book")
    quantity: int = Field(..., ge=1, le=50, description="Number of rooms of this type")


class CreateReservationRequest(BaseModel):
    """Request schema for a client booking their own stay."""

    hotel_id: int = Field(..., ge=1, description="Hotel to book")
    check_in_date: date = Field(..., description="First night of the stay")
    check_out_date: date = Field(..., description="Departure day; the night before is the last one charged")
    rooms: List[RoomRequest] = Field(..., min_length=1, description="Rooms requested per room type")
    special_requests: List[str] = Field(default_factory=list, description="Free-text guest requests")

    @field_validator("special_requests")
    @classmethod
    def strip_blank_requests(cls, v: List[str]) -> List[str]:
        return [text.strip() for text in v if text and text.strip()]


class AgentCreateReservationRequest(CreateReservationRequest):
    """Request schema for staff booking on behalf of a client."""

    client_id: int = Field(..., ge=1, description="Client the reservation belongs to")
    client_email: Optional[str] = Field(
        None,
        max_length=255,
        pattern=r"^[^@\s]+@[^@\s]+\.[^@\s]+$",
        description="Where the confirmation email goes"
    )


class UpdateReservationRequest(BaseModel):
    """Partial update applied by staff."""

    check_in_date: Optional[date] = Field(None, description="New check-in date")
    check_out_date: Optional[date] = Field(None, description="New check-out date")
    special_requests: Optional[List[str]] = Field(None, description="Replacement list of special requests")
    status: Optional[ReservationStatus] = Field(None, description="Target status")
    rooms: Optional[List[RoomRequest]] = Field(None, description="Room changes are rejected")


class RoomAssignment(BaseModel):
    """Move one allocated room of a reservation to another physical room."""

    reservation_room_id: int = Field(..., ge=1, description="Allocation entry to change")
    new_room_id: int = Field(..., ge=1, description="Replacement room")


class AssignRoomsRequest(BaseModel):
    """Request schema for room reassignment."""

    assignments: List[RoomAssignment] = Field(..., min_length=1)


class ReservationRoom(BaseModel):
    """Allocated room response schema."""

    id: int = Field(..., description="Allocation entry ID")
    room_id: int = Field(..., description="Physical room ID")
    room_number: Optional[str] = Field(None, description="Room number")
    room_type_id: int = Field(..., description="Room type booked")
    rate_per_night: Decimal = Field(..., description="Nightly rate captured at booking time")

    model_config = ConfigDict(from_attributes=True)


class Reservation(BaseModel):
    """Reservation response schema."""

    id: int = Field(..., description="Unique reservation ID")
    reference_number: str = Field(..., description="Human-facing reservation reference")
    client_id: int = Field(..., description="Owning client")
    hotel_id: int = Field(..., description="Booked hotel")
    created_by_user_id: Optional[int] = Field(None, description="Staff member who booked for the client")
    check_in_date: date
    check_out_date: date
    nights: int = Field(..., ge=1)
    total_amount: Decimal = Field(..., description="Total room charges for the stay")
    status: ReservationStatus
    actual_check_in_time: Optional[datetime] = None
    actual_check_out_time: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    rooms: List[ReservationRoom] = Field(default_factory=list)
    special_requests: List[str] = Field(default_factory=list)


class ReservationCreated(BaseModel):
    """Response schema for a successful booking."""

    reservation_id: int
    reference_number: str
    total_amount: Decimal
    status: ReservationStatus


class ReservationList(BaseModel):
    """Paginated reservation listing."""

    items: List[Reservation]
    pagination: Pagination
