"""Consumption-related Pydantic schemas."""

from datetime import datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class CreateConsumptionRequest(BaseModel):
    """Request schema for recording a consumed item."""

    item_name: str = Field(..., min_length=1, max_length=255, description="What was consumed")
    description: Optional[str] = Field(None, max_length=1000)
    quantity: int = Field(..., ge=1, description="Units consumed")
    unit_price: Decimal = Field(..., ge=0, max_digits=10, decimal_places=2, description="Price per unit")


class ConsumptionItem(BaseModel):
    """Consumption item response schema."""

    id: int
    reservation_id: int
    item_name: str
    description: Optional[str] = None
    quantity: int
    unit_price: Decimal
    total_price: Decimal
    consumed_at: datetime

    model_config = ConfigDict(from_attributes=True)
