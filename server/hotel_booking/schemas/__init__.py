"""Pydantic schemas for request/response validation."""

from .common import *  # noqa: F403
from .consumption import *  # noqa: F403
from .health import *  # noqa: F403
from .invoice import *  # noqa: F403
from .rate import *  # noqa: F403
from .reservation import *  # noqa: F403
