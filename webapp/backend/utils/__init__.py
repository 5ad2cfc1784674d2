"""
Shared utility functions for the backend.
"""
from .rate_limiter import check_ip_rate_limit, RATE_LIMITS, clear_rate_limits
from .serializers import serialize_row, serialize_value

__all__ = [
    "check_ip_rate_limit",
    "RATE_LIMITS",
    "clear_rate_limits",
    "serialize_row",
    "serialize_value",
]
