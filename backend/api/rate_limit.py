"""
Rate limiter instance — shared across all routes to avoid circular imports.
"""

from slowapi import Limiter
from slowapi.util import get_remote_address

from domain.constants import RATE_LIMIT_DEFAULT

# Shared limiter instance used by main.py and route decorators
limiter = Limiter(key_func=get_remote_address, default_limits=[RATE_LIMIT_DEFAULT])
