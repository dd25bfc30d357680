"""
Shared slowapi limiter. Routes decorate with limiter.limit(...); the
application registers it on app.state so the middleware can find it.
"""
from __future__ import annotations

from slowapi import Limiter
from slowapi.util import get_remote_address

from colloquy.core.config import settings

limiter = Limiter(key_func=get_remote_address, enabled=settings.RATE_LIMIT_ENABLED)
