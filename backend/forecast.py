"""
Forecast Stress Analysis
Runs the line stress evaluation for every hour of a weather forecast and
flags the hours where lines approach or exceed their rating
"""

import logging
from datetime import datetime, timezone
from typing import Dict, Iterable, List

from line_stress import Conditions, evaluate_line
from load_model import LoadScenario
from topology import Line
from weather_service import WeatherData

logger = logging.getLogger(__name__)

ALERT_THRESHOLD_PCT = 95.0
OVERLOAD_THRESHOLD_PCT = 100.0
TOP_LINES_PER_HOUR = 5


def analyze_hour(lines: List[Line], weather: WeatherData, scenario: LoadScenario = "nominal") -> Dict:
    """Stress snapshot of all lines for one forecast hour"""
    conditions = Conditions(
        ambient_temp_c=weather.temperature_c,
        wind_speed_ms=weather.wind_speed_ms,
        wind_direction_deg=weather.wind_direction_deg % 360,
        scenario=scenario,
    )
    results = [evaluate_line(line, conditions, with_overload_temp=False) for line in lines]
    stresses = [r.stress_pct for r in results]

    top = sorted(results, key=lambda r: (-r.stress_pct, r.id))[:TOP_LINES_PER_HOUR]

    return {
        "time": weather.timestamp,
        "tempC": round(weather.temperature_c, 1),
        "windMS": round(weather.wind_speed_ms, 1),
        "windDeg": round(weather.wind_direction_deg),
        "maxStress": round(max(stresses, default=0.0), 1),
        "countOver95": sum(1 for s in stresses if s >= ALERT_THRESHOLD_PCT),
        "countOver100": sum(1 for s in stresses if s >= OVERLOAD_THRESHOLD_PCT),
        "topLines": [
            {"id": r.id, "name": r.name, "stressPct": round(r.stress_pct, 1)} for r in top
        ],
    }


def analyze_forecast(
    lines: Iterable[Line],
    hourly_weather: List[WeatherData],
    scenario: LoadScenario = "nominal",
) -> Dict:
    """
    Evaluate line stress across a forecast horizon.

    The worst hour is the one with the highest max stress; ties go to the
    hour with more lines at or above 95 %, then to the earlier hour.

    Args:
        lines: Lines to evaluate
        hourly_weather: One observation per forecast hour
        scenario: Load scenario applied to every hour

    Returns:
        dict with asOf, horizonHours, hours and summary
    """
    lines = list(lines)
    hours = []
    for weather in hourly_weather:
        hours.append(analyze_hour(lines, weather, scenario))

    worst_index = 0
    for i, hour in enumerate(hours):
        worst = hours[worst_index]
        if hour["maxStress"] > worst["maxStress"] or (
            hour["maxStress"] == worst["maxStress"] and hour["countOver95"] > worst["countOver95"]
        ):
            worst_index = i

    summary = {
        "worstHourIndex": worst_index,
        "worstMaxStress": hours[worst_index]["maxStress"] if hours else 0.0,
        "totalHoursOver95": sum(1 for h in hours if h["countOver95"] > 0),
        "totalHoursOver100": sum(1 for h in hours if h["countOver100"] > 0),
    }
    logger.info(
        "Forecast analysis: %d hours, worst max stress %.1f%%",
        len(hours), summary["worstMaxStress"],
    )

    return {
        "asOf": datetime.now(timezone.utc).isoformat(),
        "horizonHours": len(hours),
        "scenario": scenario,
        "hours": hours,
        "summary": summary,
    }
