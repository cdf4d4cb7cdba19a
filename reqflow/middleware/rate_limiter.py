"""
Rate limiting configuration.

Applies per-blueprint rate limits using Flask-Limiter.
The Limiter instance is created in reqflow/__init__.py with no default
limits; this module applies granular limits per route category.

Usage:
    from reqflow.middleware.rate_limiter import init_rate_limits
    init_rate_limits(app, limiter)
"""

import logging

logger = logging.getLogger(__name__)

# blueprint name → limit
BLUEPRINT_LIMITS = {
    "requests": "60/minute",
    "workflow": "60/minute",
    "department": "60/minute",
    "admin": "120/minute",
}


def init_rate_limits(app, limiter):
    """
    Apply rate limits to API blueprints.

    Limits (per remote IP):
        - Requester / workflow / department routes: 60/minute
        - Admin routes:                             120/minute (read-heavy listings)
        - Health check:                             exempt

    Rate limiting is disabled in testing mode or with RATELIMIT_ENABLED=false.
    """
    if app.config.get("TESTING") or not app.config.get("RATELIMIT_ENABLED", True):
        app.logger.info("Rate limiter disabled")
        return

    for bp_name, limit in BLUEPRINT_LIMITS.items():
        bp = app.blueprints.get(bp_name)
        if bp:
            limiter.limit(limit)(bp)

    bp = app.blueprints.get("health")
    if bp:
        limiter.exempt(bp)

    app.logger.info(
        "Rate limiter configured — %s",
        ", ".join(f"{name}: {limit}" for name, limit in BLUEPRINT_LIMITS.items()),
    )
