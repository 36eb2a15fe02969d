# =============================================================================
# app/routers/ - API Route Definitions
# =============================================================================
# This package contains FastAPI routers organized by feature:
# - health.py: Health check endpoint
# - weather.py: Weather forecast endpoint
#
# Each router is mounted in main.py.
# =============================================================================

from . import health
from . import weather

__all__ = [
    "health",
    "weather",
]
