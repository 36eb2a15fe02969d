# =============================================================================
# app/ - FastAPI Application Package
# =============================================================================
# This package contains the FastAPI web application:
# - main.py: App factory, middleware setup, lifespan
# - server.py: Early-initialization entry point (forecast-api command)
# - config.py: Layered settings (files + environment)
# - middleware.py: Fault translator
# - exceptions.py: Fault classification table
# - routers/: API endpoint definitions
#
# The app layer is thin - it handles HTTP concerns and delegates
# logging and forecast logic to the core/ package.
# =============================================================================

__version__ = "1.0.0"
