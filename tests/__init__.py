# =============================================================================
# tests/ - Test Suite
# =============================================================================
# This package contains all tests for the Forecast API:
# - test_models.py: Unit tests for Pydantic model validation
# - test_sinks.py: Console, debug and rolling file sinks
# - test_log_router.py: Filtering, enrichment, failure containment, shutdown
# - test_structured.py: structlog front-end, stdlib bridge, request context
# - test_fault_translator.py: Fault classification and the middleware
# - test_weather.py: API endpoints through the full application
# - test_config.py: Layered settings
# - test_server.py: Entry point exit codes
#
# Run tests with: pytest
# =============================================================================
