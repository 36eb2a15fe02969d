# =============================================================================
# core/models/forecast.py - Weather Forecast Schema
# =============================================================================
# The one record type returned by GET /weatherforecast.
#
# Fields serialize with camelCase aliases (temperatureC, temperatureF) so
# browser clients get the same shape as the original template API.
# =============================================================================

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, computed_field
from pydantic.alias_generators import to_camel


class WeatherForecast(BaseModel):
    """
    One day of (randomly generated) weather.

    Example:
        {
            "date": "2024-01-16T10:30:00.123456",
            "temperatureC": 21,
            "temperatureF": 69,
            "summary": "Mild"
        }
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    date: datetime = Field(
        ...,
        description="Day the forecast applies to"
    )

    temperature_c: int = Field(
        ...,
        ge=-20,
        le=54,
        description="Temperature in degrees Celsius"
    )

    summary: str = Field(
        ...,
        description="One-word description"
    )

    @computed_field(alias="temperatureF")
    @property
    def temperature_f(self) -> int:
        """Fahrenheit, using the same rounding as the original template."""
        return 32 + int(self.temperature_c / 0.5556)
