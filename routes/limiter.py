from slowapi import Limiter
from slowapi.util import get_remote_address

import config

# Shared limiter for the route decorators; app.py registers it on app.state
limiter = Limiter(
    key_func=get_remote_address,
    default_limits=[config.RATE_LIMIT_DEFAULT],
    enabled=config.RATE_LIMIT_ENABLED
)
