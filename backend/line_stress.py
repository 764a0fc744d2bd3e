"""
Line Stress Evaluation
Compares scenario line current against the weather-dependent IEEE 738 rating
"""

import math
from typing import Dict, Iterable, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from ieee738 import IEEE738Calculator, get_conductor
from load_model import LoadScenario, calculate_line_current, scenario_multiplier
from topology import Line

# Ambient temperature range searched for the overload crossing
OVERLOAD_SEARCH_MIN_C = 0.0
OVERLOAD_SEARCH_MAX_C = 60.0
OVERLOAD_SEARCH_ITERATIONS = 24


class Conditions(BaseModel):
    """Environmental input for one stress computation"""

    model_config = ConfigDict(frozen=True)

    ambient_temp_c: float = Field(25.0, ge=-50, le=60, description="Ambient temperature (°C)")
    wind_speed_ms: float = Field(2.0, ge=0, le=50, description="Wind speed (m/s)")
    wind_direction_deg: float = Field(
        90.0, ge=0, le=360, description="Direction the wind blows from (° compass)"
    )
    scenario: LoadScenario = Field("nominal", description="Load scenario: min, nominal or max")


class LineStress(BaseModel):
    """Stress result for one line under one set of conditions"""

    id: str
    name: str
    rating_a: float
    actual_a: float
    stress_pct: float
    overload_temp_c: Optional[float] = None
    conductor_recognized: bool = True

    def to_dict(self) -> Dict:
        """Serialize with display rounding (one decimal)"""
        return {
            "id": self.id,
            "name": self.name,
            "ratingA": round(self.rating_a, 1),
            "actualA": round(self.actual_a, 1),
            "stressPct": round(self.stress_pct, 1),
            "overloadTempC": (
                round(self.overload_temp_c, 1) if self.overload_temp_c is not None else None
            ),
            "conductorRecognized": self.conductor_recognized,
        }


def compute_stress_pct(actual_a: float, rating_a: float) -> float:
    """Stress as percentage of rating; 0 when the rating is unusable."""
    if not rating_a or rating_a <= 0 or not math.isfinite(rating_a):
        return 0.0
    stress = actual_a / rating_a * 100
    return stress if math.isfinite(stress) else 0.0


def solve_overload_temperature(
    line: Line,
    wind_speed_ms: float,
    wind_direction_deg: float,
    actual_a: float,
    calculator: Optional[IEEE738Calculator] = None,
) -> Optional[float]:
    """
    Find the ambient temperature at which the line rating equals its current.

    Bisection over [0, 60] °C; relies on the rating decreasing as ambient
    temperature rises.

    Returns:
        0.0 if already overloaded at 0 °C, None if still within rating at
        60 °C, otherwise the crossing temperature (°C)
    """
    if calculator is None:
        calculator = IEEE738Calculator.for_conductor_name(line.conductor)

    def rating_at(temp_c: float) -> float:
        return calculator.calculate_ampacity(
            temp_ambient_c=temp_c,
            wind_speed_ms=wind_speed_ms,
            wind_direction_deg=wind_direction_deg,
            line_azimuth_deg=line.azimuth_deg,
            temp_conductor_max_c=line.mot,
        )

    low, high = OVERLOAD_SEARCH_MIN_C, OVERLOAD_SEARCH_MAX_C
    if rating_at(low) < actual_a:
        return 0.0
    if rating_at(high) >= actual_a:
        return None

    for _ in range(OVERLOAD_SEARCH_ITERATIONS):
        mid = (low + high) / 2
        if rating_at(mid) < actual_a:
            high = mid
        else:
            low = mid

    return (low + high) / 2


def evaluate_line(
    line: Line,
    conditions: Conditions,
    flow_uplift: float = 0.0,
    with_overload_temp: bool = True,
) -> LineStress:
    """
    Compute rating, actual current, stress and overload temperature for a line.

    Args:
        line: Line to evaluate
        conditions: Weather and load scenario
        flow_uplift: Fractional increase of the line's flow (0.3 = +30 %)
        with_overload_temp: Skip the bisection when False

    Returns:
        LineStress
    """
    conductor, recognized = get_conductor(line.conductor)
    calculator = IEEE738Calculator(conductor)

    rating_a = calculator.calculate_ampacity(
        temp_ambient_c=conditions.ambient_temp_c,
        wind_speed_ms=conditions.wind_speed_ms,
        wind_direction_deg=conditions.wind_direction_deg,
        line_azimuth_deg=line.azimuth_deg,
        temp_conductor_max_c=line.mot,
    )
    multiplier = scenario_multiplier(conditions.scenario) * (1 + flow_uplift)
    actual_a = calculate_line_current(line.nominal_flow_mw, line.voltage_kv, multiplier)

    overload_temp_c = None
    if with_overload_temp:
        overload_temp_c = solve_overload_temperature(
            line,
            conditions.wind_speed_ms,
            conditions.wind_direction_deg,
            actual_a,
            calculator=calculator,
        )

    return LineStress(
        id=line.id,
        name=line.name,
        rating_a=rating_a,
        actual_a=actual_a,
        stress_pct=compute_stress_pct(actual_a, rating_a),
        overload_temp_c=overload_temp_c,
        conductor_recognized=recognized,
    )


def evaluate_lines(lines: Iterable[Line], conditions: Conditions) -> List[LineStress]:
    """Evaluate every line under the same conditions"""
    return [evaluate_line(line, conditions) for line in lines]
