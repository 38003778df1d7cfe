"""Models module exporting all database models."""

from .consumption import ConsumptionItem
from .hotel import Hotel, Room, RoomType
from .invoice import INVOICE_TRANSITIONS, Invoice, InvoiceItem, InvoiceItemType, InvoiceStatus
from .rate import RoomRate
from .reservation import (
    ALLOWED_TRANSITIONS,
    BLOCKING_STATUSES,
    Reservation,
    ReservationRoom,
    ReservationStatus,
    SpecialRequest,
)

__all__ = [
    # Property catalogue
    "Hotel",
    "RoomType",
    "Room",
    "RoomRate",

    # Reservation entities
    "Reservation",
    "ReservationRoom",
    "ReservationStatus",
    "SpecialRequest",
    "ALLOWED_TRANSITIONS",
    "BLOCKING_STATUSES",

    # Billing entities
    "ConsumptionItem",
    "Invoice",
    "InvoiceItem",
    "InvoiceItemType",
    "InvoiceStatus",
    "INVOICE_TRANSITIONS",
]
