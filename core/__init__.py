# =============================================================================
# core/ - Logging and Forecast Logic
# =============================================================================
# This package contains framework-agnostic logic:
# - models/: Pydantic schemas (log events, sink configuration, forecasts)
# - services/: log router, sinks, enrichment, producer front-ends, forecasts
# - errors.py: logging-layer errors
#
# Code in this package should NOT import from FastAPI.
# This keeps the logic testable and reusable.
# =============================================================================
