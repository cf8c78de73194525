"""
api/limiter.py -- Shared slowapi rate limiter instance and the auth route limits.

Import this in api/main.py (to mount as middleware) and in route modules (to
apply per-route limits with @limiter.limit()).

Using a single shared instance ensures all routes share the same in-memory
counter store. If this were instantiated in each module separately, each
module would get its own isolated counter and rate limits would never trigger.

The login and TOTP limits are the brute-force brake on passwords and on the
one-million-value code space. They come from Settings (LOGIN_RATE_LIMIT,
TOTP_RATE_LIMIT) and are read once when the route modules are imported.
"""

from slowapi import Limiter
from slowapi.util import get_remote_address

from core.config import get_settings

limiter = Limiter(key_func=get_remote_address, storage_uri="memory://")

LOGIN_LIMIT = get_settings().login_rate_limit
TOTP_LIMIT = get_settings().totp_rate_limit
