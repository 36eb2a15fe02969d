# =============================================================================
# core/services/forecast_service.py - Forecast Generation
# =============================================================================
# Produces the random weather records served by GET /weatherforecast.
# The random generator and the current time are passed in, so a seeded
# generator gives reproducible output.
# =============================================================================

import random
from datetime import datetime, timedelta

from core.models.forecast import WeatherForecast

SUMMARIES: tuple[str, ...] = (
    "Freezing", "Bracing", "Chilly", "Cool", "Mild",
    "Warm", "Balmy", "Hot", "Sweltering", "Scorching",
)

MIN_TEMPERATURE_C = -20
MAX_TEMPERATURE_C = 54


def generate_forecasts(
    rng: random.Random,
    now: datetime,
    days: int = 5,
) -> list[WeatherForecast]:
    """
    Generate one forecast per day, starting tomorrow.

    Args:
        rng: Random generator (seed it for reproducible output)
        now: Reference time; record i is dated now + i days
        days: Number of records

    Returns:
        Records dated now+1 day through now+days days, in order

    Raises:
        ValueError: If days is less than 1 (answered with 400 at the HTTP
            boundary)
    """
    if days < 1:
        raise ValueError(f"days must be at least 1, got {days}")

    return [
        WeatherForecast(
            date=now + timedelta(days=index),
            temperature_c=rng.randint(MIN_TEMPERATURE_C, MAX_TEMPERATURE_C),
            summary=rng.choice(SUMMARIES),
        )
        for index in range(1, days + 1)
    ]
