"""Service layer package."""

from .availability_service import AvailabilityService
from .booking_service import BookingService
from .catalog_service import CatalogService
from .consumption_service import ConsumptionService
from .invoice_service import InvoiceService
from .lifecycle_service import LifecycleService
from .notification_service import LoggingNotifier, Notifier, SmtpNotifier
from .rate_service import RateService

__all__ = [
    "AvailabilityService",
    "BookingService",
    "CatalogService",
    "ConsumptionService",
    "InvoiceService",
    "LifecycleService",
    "LoggingNotifier",
    "Notifier",
    "RateService",
    "SmtpNotifier",
]
