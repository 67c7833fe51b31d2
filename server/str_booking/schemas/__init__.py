"""Pydantic schemas for request/response validation."""

from .availability import *  # noqa: F403
from .booking import *  # noqa: F403
from .calendar import *  # noqa: F403
from .cohost import *  # noqa: F403
from .common import *  # noqa: F403
from .health import *  # noqa: F403
from .payment_plan import *  # noqa: F403
from .pricing import *  # noqa: F403
from .property import *  # noqa: F403
