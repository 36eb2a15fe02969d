# =============================================================================
# app/dependencies.py - Shared Dependencies
# =============================================================================
# FastAPI dependency injection for shared resources.
# These are injected into route handlers using Depends().
#
# The log router and settings are created once at the composition root
# (create_app) and stored on app.state; dependencies read them from there.
# =============================================================================

import random
from datetime import datetime
from typing import Annotated, Callable

from fastapi import Depends, Request

from app.config import Settings
from core.services.log_router import LogRouter


def get_log_router(request: Request) -> LogRouter:
    """
    Get the application's log router.

    Returns the single router created at startup.
    """
    return request.app.state.log_router


def get_app_settings(request: Request) -> Settings:
    """Get the settings the application was created with."""
    return request.app.state.settings


def get_forecast_rng(settings: Annotated[Settings, Depends(get_app_settings)]) -> random.Random:
    """
    Random generator for forecasts.

    Seeded from FORECAST_SEED when configured, so output is reproducible.
    """
    if settings.FORECAST_SEED is not None:
        return random.Random(settings.FORECAST_SEED)
    return random.Random()


def get_clock() -> Callable[[], datetime]:
    """Source of the current time."""
    return datetime.now


# Type aliases for dependency injection
LogRouterDep = Annotated[LogRouter, Depends(get_log_router)]
SettingsDep = Annotated[Settings, Depends(get_app_settings)]
RngDep = Annotated[random.Random, Depends(get_forecast_rng)]
ClockDep = Annotated[Callable[[], datetime], Depends(get_clock)]
