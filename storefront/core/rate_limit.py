from slowapi import Limiter
from slowapi.util import get_remote_address
from storefront.config import settings

# Shared so routers can decorate endpoints without importing the app
limiter = Limiter(
    key_func=get_remote_address,
    default_limits=[settings.RATE_LIMIT_PER_MINUTE],
    enabled=settings.RATE_LIMIT_ENABLED,
)
