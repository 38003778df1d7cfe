"""Rate and availability Pydantic schemas."""

from datetime import date
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class UpsertRateRequest(BaseModel):
    """Request schema for creating or updating a room rate."""

    hotel_id: int = Field(..., ge=1)
    room_type_id: int = Field(..., ge=1)
    base_price: Decimal = Field(..., ge=0, max_digits=10, decimal_places=2)
    weekend_price: Optional[Decimal] = Field(None, ge=0, max_digits=10, decimal_places=2)
    holiday_price: Optional[Decimal] = Field(None, ge=0, max_digits=10, decimal_places=2)
    start_date: Optional[date] = Field(None, description="Start of a seasonal window; omit for the general rate")
    end_date: Optional[date] = Field(None, description="End of the seasonal window")


class RoomRate(BaseModel):
    """Room rate response schema."""

    id: int
    hotel_id: int
    room_type_id: int
    base_price: Decimal
    weekend_price: Optional[Decimal] = None
    holiday_price: Optional[Decimal] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None

    model_config = ConfigDict(from_attributes=True)


class RateQuote(BaseModel):
    """Nightly price resolved for one night."""

    hotel_id: int
    room_type_id: int
    stay_date: date = Field(..., description="Night being priced")
    nightly_rate: Decimal
    is_default: bool = Field(..., description="True when no rate row matched and the default price was used")


class Availability(BaseModel):
    """Read-only availability preview for a room type and date range."""

    hotel_id: int
    room_type_id: int
    check_in_date: date
    check_out_date: date
    available_count: int = Field(..., ge=0)
    room_ids: List[int] = Field(default_factory=list)
