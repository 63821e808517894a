"""
api/limiter.py -- Shared slowapi rate limiter instance.

Imported by api/main.py (mounted as middleware) and by the routers that apply
per-route limits with @limiter.limit(). A single shared instance means every
route shares one in-memory counter store; separate instances per module would
each keep their own counters and limits would never trigger.
"""

from slowapi import Limiter
from slowapi.util import get_remote_address

from core.config import get_settings

limiter = Limiter(key_func=get_remote_address, storage_uri="memory://")

# Applied to signup, login, refresh and project registration.
AUTH_RATE_LIMIT = get_settings().auth_rate_limit
