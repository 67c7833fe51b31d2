"""FastAPI routers package."""

from .availability import router as availability_router
from .booking import router as booking_router
from .calendar import router as calendar_router
from .cohost import router as cohost_router
from .health import router as health_router
from .metrics import router as metrics_router
from .payment_plan import router as payment_plan_router
from .pricing import router as pricing_router
from .property import router as property_router

__all__ = [
    "availability_router",
    "booking_router",
    "calendar_router",
    "cohost_router",
    "health_router",
    "metrics_router",
    "payment_plan_router",
    "pricing_router",
    "property_router",
]
