import logging
from typing import Optional

from limits import RateLimitItemPerMinute
from limits.storage import storage_from_string
from limits.strategies import MovingWindowRateLimiter
from slowapi import Limiter
from slowapi.util import get_remote_address

from .config import settings
from .exceptions import RateLimitError
from ..models.user import SystemRole

logger = logging.getLogger(__name__)

# Per-IP limiter for unauthenticated endpoints (webhooks)
limiter = Limiter(key_func=get_remote_address, storage_uri=settings.RATE_LIMIT_STORAGE_URL)

# Requests per minute by system role
RATE_LIMIT_TIERS = {
    SystemRole.ADMIN: 200,
    SystemRole.STAFF: 150,
    SystemRole.CONTRACTOR: 100,
    SystemRole.VIEWER: 50,
}


def get_rate_limit_tier(role: Optional[SystemRole]) -> int:
    """Requests per minute allowed for a system role; unknown roles get the VIEWER tier"""
    return RATE_LIMIT_TIERS.get(role, RATE_LIMIT_TIERS[SystemRole.VIEWER])


class UserRateLimiter:
    """Sliding-window limiter keyed by user id"""

    def __init__(self, storage_uri: str):
        self.storage = storage_from_string(storage_uri)
        self.strategy = MovingWindowRateLimiter(self.storage)

    def hit(self, user_id: str, role: Optional[SystemRole]) -> bool:
        item = RateLimitItemPerMinute(get_rate_limit_tier(role))
        try:
            return self.strategy.hit(item, "user", user_id)
        except Exception:
            # advisory only: a broken storage backend never blocks requests
            logger.exception("Rate limit storage unavailable")
            return True

    def reset(self) -> None:
        self.storage.reset()


user_rate_limiter = UserRateLimiter(settings.RATE_LIMIT_STORAGE_URL)


def check_user_rate_limit(user_id: str, role: Optional[SystemRole]) -> None:
    if not settings.RATE_LIMIT_ENABLED:
        return
    if not user_rate_limiter.hit(user_id, role):
        raise RateLimitError(
            "Too many requests",
            details={"limit_per_minute": get_rate_limit_tier(role)},
        )
