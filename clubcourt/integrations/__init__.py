"""External service integrations for the club court engine."""

from .weather import NullWeatherProvider, StaticWeatherProvider, WeatherProvider

__all__ = ["NullWeatherProvider", "StaticWeatherProvider", "WeatherProvider"]
