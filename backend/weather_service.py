"""
Weather Service Module
Fetches current and forecast weather from Open-Meteo and provides
pre-defined scenarios for demos
"""

import logging
import threading
import time
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple

import requests
from pydantic import BaseModel

logger = logging.getLogger(__name__)


class WeatherUnavailableError(RuntimeError):
    """Weather provider could not be reached or returned unusable data."""


class WeatherData(BaseModel):
    """Weather data model"""
    temperature_c: float
    wind_speed_ms: float
    wind_direction_deg: float
    timestamp: str
    source: str  # "open-meteo", "scenario:<name>", "manual"
    location: Optional[str] = None
    description: Optional[str] = None


class TTLCache:
    """Small keyed cache with a fixed time-to-live, owned by one service."""

    def __init__(self, ttl_s: float, clock=time.monotonic):
        self.ttl_s = ttl_s
        self._clock = clock
        self._entries: Dict[str, Tuple[float, Any]] = {}
        self._lock = threading.Lock()

    def get(self, key: str) -> Optional[Any]:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            expires, value = entry
            if self._clock() >= expires:
                del self._entries[key]
                return None
            return value

    def set(self, key: str, value: Any) -> None:
        with self._lock:
            self._entries[key] = (self._clock() + self.ttl_s, value)

    def invalidate(self, key: Optional[str] = None) -> None:
        with self._lock:
            if key is None:
                self._entries.clear()
            else:
                self._entries.pop(key, None)


class WeatherService:
    """
    Provides weather data from multiple sources:
    1. Live API (Open-Meteo, no key required)
    2. Pre-defined scenarios (for demos)
    3. Manual input
    """

    OPEN_METEO_URL = "https://api.open-meteo.com/v1/forecast"

    # Honolulu, center of the 40-bus system
    DEFAULT_LOCATION = {
        "lat": 21.3069,
        "lon": -157.8583,
    }

    # Pre-defined demo scenarios
    SCENARIOS = {
        "extreme_heat": {
            "name": "Extreme Heat - Critical Conditions",
            "description": "Hot summer day, almost no wind - Expect critical overloads",
            "temperature_c": 42.0,
            "wind_speed_ms": 0.5,
            "wind_direction_deg": 90.0,
        },
        "hot_day": {
            "name": "Hot Day - Warning Conditions",
            "description": "Typical hot summer afternoon with light breeze",
            "temperature_c": 35.0,
            "wind_speed_ms": 1.5,
            "wind_direction_deg": 60.0,
        },
        "normal_summer": {
            "name": "Normal Summer - Moderate Conditions",
            "description": "Warm day with steady trade wind",
            "temperature_c": 30.0,
            "wind_speed_ms": 2.5,
            "wind_direction_deg": 60.0,
        },
        "optimal": {
            "name": "Optimal Conditions",
            "description": "Cool temperature with good wind - Maximum ampacity",
            "temperature_c": 20.0,
            "wind_speed_ms": 4.0,
            "wind_direction_deg": 45.0,
        },
        "windy_day": {
            "name": "Windy Day - High Cooling",
            "description": "Strong trade winds - Great for ampacity",
            "temperature_c": 28.0,
            "wind_speed_ms": 5.5,
            "wind_direction_deg": 70.0,
        },
        "kona_calm": {
            "name": "Kona Calm",
            "description": "Trade winds collapse, southerly light air",
            "temperature_c": 33.0,
            "wind_speed_ms": 0.8,
            "wind_direction_deg": 200.0,
        },
    }

    def __init__(
        self,
        base_url: Optional[str] = None,
        lat: Optional[float] = None,
        lon: Optional[float] = None,
        cache_ttl_s: float = 300.0,
        timeout: float = 10.0,
        session: Optional[requests.Session] = None,
    ):
        """
        Initialize weather service.

        Args:
            base_url: Open-Meteo forecast endpoint
            lat: Latitude (default: Honolulu)
            lon: Longitude (default: Honolulu)
            cache_ttl_s: How long fetched observations are reused
            timeout: HTTP timeout in seconds
            session: requests session (injectable for tests)
        """
        self.base_url = base_url or self.OPEN_METEO_URL
        self.lat = lat if lat is not None else self.DEFAULT_LOCATION["lat"]
        self.lon = lon if lon is not None else self.DEFAULT_LOCATION["lon"]
        self.timeout = timeout
        self.session = session or requests.Session()
        self.cache = TTLCache(cache_ttl_s)

    def _fetch(self, params: Dict[str, Any]) -> Dict:
        query = {"latitude": self.lat, "longitude": self.lon, **params}
        try:
            response = self.session.get(self.base_url, params=query, timeout=self.timeout)
            response.raise_for_status()
            return response.json()
        except (requests.RequestException, ValueError) as e:
            raise WeatherUnavailableError(f"Failed to fetch weather data: {e}") from e

    def get_current(self) -> WeatherData:
        """
        Fetch current conditions from Open-Meteo (cached).

        Raises:
            WeatherUnavailableError: when the provider fails
        """
        cached = self.cache.get("current")
        if cached is not None:
            logger.debug("Returning cached weather data")
            return cached

        logger.info("Fetching fresh weather data from Open-Meteo")
        data = self._fetch({
            "current": "temperature_2m,wind_speed_10m,wind_direction_10m",
            "temperature_unit": "celsius",
            "wind_speed_unit": "ms",
        })
        try:
            current = data["current"]
            weather = WeatherData(
                temperature_c=round(float(current["temperature_2m"]), 1),
                wind_speed_ms=round(float(current["wind_speed_10m"]), 1),
                wind_direction_deg=float(round(float(current["wind_direction_10m"]))),
                timestamp=current.get("time") or datetime.now(timezone.utc).isoformat(),
                source="open-meteo",
                location=f"{self.lat:.4f},{self.lon:.4f}",
            )
        except (KeyError, TypeError, ValueError) as e:
            raise WeatherUnavailableError(f"Unexpected Open-Meteo response: {e}") from e

        self.cache.set("current", weather)
        return weather

    def get_hourly_forecast(self, hours: int = 24, now: Optional[datetime] = None) -> List[WeatherData]:
        """
        Fetch the hourly forecast starting at the current hour (cached).

        Args:
            hours: Forecast horizon
            now: Reference time (UTC); defaults to the current time

        Raises:
            WeatherUnavailableError: when the provider fails
        """
        parsed = self.cache.get("hourly")
        if parsed is None:
            logger.info("Fetching hourly forecast from Open-Meteo")
            raw = self._fetch({
                "hourly": "temperature_2m,wind_speed_10m,wind_direction_10m",
                "forecast_days": 2,
                "timezone": "UTC",
                "wind_speed_unit": "ms",
            })
            # Only a response that parses is cached
            parsed = self._parse_hourly(raw)
            self.cache.set("hourly", parsed)

        now = now or datetime.now(timezone.utc)
        if now.tzinfo is None:
            now = now.replace(tzinfo=timezone.utc)
        current_hour = now.replace(minute=0, second=0, microsecond=0)

        # Hourly stamps mark the start of the hour
        start = next((i for i, (ts, _) in enumerate(parsed) if ts >= current_hour), len(parsed))
        return [weather for _, weather in parsed[start:start + hours] if weather is not None]

    def _parse_hourly(self, raw: Dict) -> List[Tuple[datetime, Optional[WeatherData]]]:
        """(hour start, weather) pairs; weather is None for hours with missing values"""
        try:
            hourly = raw["hourly"]
            times = hourly["time"]
            temps = hourly["temperature_2m"]
            winds = hourly["wind_speed_10m"]
            directions = hourly["wind_direction_10m"]
            if not len(times) == len(temps) == len(winds) == len(directions):
                raise ValueError("hourly series differ in length")

            parsed = []
            for i, t in enumerate(times):
                ts = datetime.fromisoformat(t)
                if ts.tzinfo is None:
                    ts = ts.replace(tzinfo=timezone.utc)
                if temps[i] is None or winds[i] is None or directions[i] is None:
                    logger.warning("Skipping forecast hour %s with missing values", t)
                    parsed.append((ts, None))
                    continue
                parsed.append((ts, WeatherData(
                    temperature_c=float(temps[i]),
                    wind_speed_ms=float(winds[i]),
                    wind_direction_deg=float(directions[i]),
                    timestamp=t,
                    source="open-meteo",
                    location=f"{self.lat:.4f},{self.lon:.4f}",
                )))
        except (KeyError, TypeError, ValueError, IndexError) as e:
            raise WeatherUnavailableError(f"Unexpected Open-Meteo response: {e}") from e
        return parsed

    def get_weather_scenario(self, scenario_name: str) -> WeatherData:
        """
        Get pre-defined weather scenario for demos.

        Raises:
            ValueError: for an unknown scenario name
        """
        if scenario_name not in self.SCENARIOS:
            available = ", ".join(self.SCENARIOS.keys())
            raise ValueError(
                f"Unknown scenario: {scenario_name}. "
                f"Available scenarios: {available}"
            )

        scenario = self.SCENARIOS[scenario_name]

        return WeatherData(
            temperature_c=scenario["temperature_c"],
            wind_speed_ms=scenario["wind_speed_ms"],
            wind_direction_deg=scenario["wind_direction_deg"],
            timestamp=datetime.now(timezone.utc).isoformat(),
            source=f"scenario:{scenario_name}",
            location="Demo Scenario",
            description=scenario["description"],
        )

    def get_weather_manual(
        self,
        temperature_c: float,
        wind_speed_ms: float,
        wind_direction_deg: float = 90.0,
    ) -> WeatherData:
        """Create weather data from manual inputs."""
        return WeatherData(
            temperature_c=temperature_c,
            wind_speed_ms=wind_speed_ms,
            wind_direction_deg=wind_direction_deg,
            timestamp=datetime.now(timezone.utc).isoformat(),
            source="manual",
            location="Manual Input",
            description="User-specified conditions",
        )

    def list_scenarios(self) -> Dict[str, Dict]:
        """List all available pre-defined scenarios."""
        return {
            name: {
                "name": scenario["name"],
                "description": scenario["description"],
                "temperature_c": scenario["temperature_c"],
                "wind_speed_ms": scenario["wind_speed_ms"],
                "wind_direction_deg": scenario["wind_direction_deg"],
            }
            for name, scenario in self.SCENARIOS.items()
        }
