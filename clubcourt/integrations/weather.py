"""Weather provider seam for the schedule views."""

from __future__ import annotations

from datetime import date
import logging
from typing import Dict, Mapping, Optional, Protocol

from ..schemas.schedule import WeatherSnapshot

logger = logging.getLogger(__name__)


class WeatherProvider(Protocol):
    """Anything that can forecast the club's hourly slots for a day."""

    def forecast(self, target_date: date) -> Optional[Mapping[str, WeatherSnapshot]]:
        """Return snapshots keyed by slot label, or None when there is no data."""


class NullWeatherProvider:
    """Provider used when no forecast source is configured."""

    def forecast(self, target_date: date) -> Optional[Mapping[str, WeatherSnapshot]]:
        return None


class StaticWeatherProvider:
    """In-memory provider for local runs and tests."""

    def __init__(self, forecasts: Optional[Dict[date, Dict[str, WeatherSnapshot]]] = None) -> None:
        self._forecasts: Dict[date, Dict[str, WeatherSnapshot]] = dict(forecasts or {})
        self._logger = logging.getLogger(self.__class__.__name__)

    def set_forecast(self, target_date: date, slots: Dict[str, WeatherSnapshot]) -> None:
        self._forecasts[target_date] = dict(slots)

    def forecast(self, target_date: date) -> Optional[Mapping[str, WeatherSnapshot]]:
        slots = self._forecasts.get(target_date)
        self._logger.debug(
            "Static forecast lookup", extra={"date": str(target_date), "hit": slots is not None}
        )
        return slots
