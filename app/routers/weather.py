# =============================================================================
# app/routers/weather.py - Weather Forecast Endpoint
# =============================================================================
# GET /weatherforecast returns five random forecasts.
#
# Each call logs one event at every severity, Trace through Critical, so the
# effect of the configured minimum levels is visible in each sink.
# =============================================================================

from fastapi import APIRouter

from app.dependencies import ClockDep, LogRouterDep, RngDep
from core.models.forecast import WeatherForecast
from core.services.forecast_service import generate_forecasts

router = APIRouter()

CATEGORY = "app.routers.weather.WeatherForecastController"


@router.get("/weatherforecast", response_model=list[WeatherForecast])
def get_weather_forecast(log_router: LogRouterDep, rng: RngDep, clock: ClockDep):
    """
    Five days of random weather, starting tomorrow.

    Temperatures are drawn uniformly from -20..54 °C and the summary from a
    fixed list of ten words.
    """
    log = log_router.get_logger(CATEGORY)
    log.trace("Get() was called! (trace)")
    log.debug("Get() was called! (debug)")
    log.info("Get() was called! (information)")
    log.warning("Get() was called! (warning)")
    log.error("Get() was called! (error)")
    log.critical("Get() was called! (critical)")

    forecasts = generate_forecasts(rng, clock())
    log.debug("Returning {count} forecasts", count=len(forecasts))
    return forecasts
