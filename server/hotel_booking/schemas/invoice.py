"""Invoice-related Pydantic schemas."""

from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from ..models.invoice import InvoiceItemType, InvoiceStatus
from .common import Pagination


class InvoiceItem(BaseModel):
    """Invoice line response schema."""

    position: int
    item_type: InvoiceItemType
    description: str
    quantity: int
    unit_price: Decimal
    total_price: Decimal

    model_config = ConfigDict(from_attributes=True)


class InvoiceSummary(BaseModel):
    """Invoice header used in listings."""

    id: int
    invoice_number: str
    reservation_id: int
    client_id: int
    hotel_id: int
    subtotal_room_charges: Decimal
    subtotal_consumption_charges: Decimal
    taxes_amount: Decimal
    total_amount_due: Decimal
    status: InvoiceStatus
    generated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class Invoice(InvoiceSummary):
    """Invoice with its lines."""

    items: List[InvoiceItem] = Field(default_factory=list)


class InvoiceList(BaseModel):
    """Paginated invoice listing."""

    items: List[InvoiceSummary]
    pagination: Pagination


class UpdateInvoiceStatusRequest(BaseModel):
    """Request schema for moving an invoice forward."""

    status: InvoiceStatus


class SendInvoiceEmailRequest(BaseModel):
    """Request schema for emailing an invoice."""

    recipient_email: Optional[str] = Field(
        None,
        max_length=255,
        pattern=r"^[^@\s]+@[^@\s]+\.[^@\s]+$",
        description="Recipient address; the caller's own address when omitted"
    )


class SendInvoiceEmailResponse(BaseModel):
    """Outcome of a best-effort invoice email."""

    invoice_id: int
    recipient_email: str
    sent: bool
