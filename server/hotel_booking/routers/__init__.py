"""FastAPI routers package."""

from .health import router as health_router
from .invoices import router as invoices_router
from .metrics import router as metrics_router
from .rates import router as rates_router
from .reservations import router as reservations_router

__all__ = [
    "health_router",
    "invoices_router",
    "metrics_router",
    "rates_router",
    "reservations_router",
]
