"""
Rating Validation Sweep
Compares the dynamic IEEE 738 rating against the nameplate (s_nom) rating
for a sample of lines under reference conditions
"""

from typing import Dict, Iterable, Optional

import numpy as np

from ieee738 import IEEE738Calculator
from load_model import calculate_current_from_mva
from topology import Line

REFERENCE_CONDITIONS = {
    "temperature": 25.0,
    "windSpeed": 2.0,
    "attackAngle": 90.0,
}


def validate_ratings(
    lines: Iterable[Line],
    sample_size: int = 5,
    seed: Optional[int] = None,
) -> Dict:
    """
    Dynamic vs nameplate rating for a random sample of lines.

    Reference conditions: 25 °C, 2 m/s, wind perpendicular to the line.

    Args:
        lines: Candidate lines
        sample_size: Number of lines to sample (all lines if fewer)
        seed: Random seed for a reproducible sample

    Returns:
        dict with conditions, per-line results and mean/max absolute delta
    """
    candidates = [line for line in lines if line.s_nom > 0 and line.voltage_kv > 0]
    rng = np.random.default_rng(seed)
    if len(candidates) > sample_size:
        picks = rng.choice(len(candidates), size=sample_size, replace=False)
        candidates = [candidates[i] for i in sorted(picks)]

    results = []
    deltas = []
    for line in candidates:
        calculator = IEEE738Calculator.for_conductor_name(line.conductor)
        dynamic_a = calculator.calculate_ampacity(
            temp_ambient_c=REFERENCE_CONDITIONS["temperature"],
            wind_speed_ms=REFERENCE_CONDITIONS["windSpeed"],
            # wind along azimuth + 90° hits the conductor square on
            wind_direction_deg=(line.azimuth_deg + REFERENCE_CONDITIONS["attackAngle"]) % 360,
            line_azimuth_deg=line.azimuth_deg,
            temp_conductor_max_c=line.mot,
        )
        nameplate_a = calculate_current_from_mva(line.s_nom, line.voltage_kv)
        delta_pct = (dynamic_a - nameplate_a) / nameplate_a * 100

        results.append({
            "id": line.id,
            "kV": round(line.voltage_kv, 1),
            "s_nom": line.s_nom,
            "nameplateA": round(nameplate_a, 1),
            "dynamicA": round(dynamic_a, 1),
            "deltaPct": round(delta_pct, 1),
        })
        deltas.append(abs(delta_pct))

    return {
        "conditions": dict(REFERENCE_CONDITIONS),
        "lines": results,
        "summary": {
            "meanAbsDelta": round(float(np.mean(deltas)), 1) if deltas else 0.0,
            "maxAbsDelta": round(float(np.max(deltas)), 1) if deltas else 0.0,
        },
    }
