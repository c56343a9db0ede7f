"""
api/limiter.py -- Shared slowapi rate limiter for the auth envelope endpoint.

api/main.py mounts it as middleware; api/routes/v1/auth.py applies the
per-route limit. One shared instance means one counter store -- separate
instances per module would each count on their own and never trigger.

The limit string comes from AUTH_RATE_LIMIT and is resolved per request, so
tests can raise it through the environment before the app is imported.
"""

from slowapi import Limiter
from slowapi.util import get_remote_address

from core.config import get_settings

limiter = Limiter(key_func=get_remote_address, storage_uri="memory://")


def auth_rate_limit() -> str:
    return get_settings().auth_rate_limit
