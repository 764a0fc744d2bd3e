"""
Load Scenario Module
Converts nominal line power flow into phase current for a load scenario
"""

from typing import Dict, Literal

import numpy as np

LoadScenario = Literal["min", "nominal", "max"]

# Scaling of the nominal (solved) power flow for each load scenario
SCENARIO_MULTIPLIERS: Dict[str, float] = {
    "min": 0.85,
    "nominal": 1.0,
    "max": 1.15,
}


def scenario_multiplier(scenario: str) -> float:
    """
    Get the flow multiplier for a load scenario.

    Raises:
        ValueError: for an unknown scenario name
    """
    try:
        return SCENARIO_MULTIPLIERS[scenario]
    except KeyError:
        available = ", ".join(SCENARIO_MULTIPLIERS)
        raise ValueError(
            f"Unknown load scenario: {scenario}. Available scenarios: {available}"
        ) from None


def calculate_line_current(
    power_mw: float,
    voltage_kv: float,
    multiplier: float = 1.0,
) -> float:
    """
    Calculate line current from power flow.

    I = |P| * m / (sqrt(3) * V)

    Balanced three-phase with unity power factor; the sign of the flow
    (direction) does not matter for heating.

    Args:
        power_mw: Active power in MW (signed)
        voltage_kv: Line voltage in kV
        multiplier: Load scenario multiplier

    Returns:
        Current in Amperes
    """
    if not voltage_kv or voltage_kv <= 0 or not np.isfinite(voltage_kv):
        return 0.0
    if not np.isfinite(power_mw):
        return 0.0

    return float(abs(power_mw) * multiplier * 1000 / (np.sqrt(3) * voltage_kv))


def calculate_mva_from_current(current_a: float, voltage_kv: float) -> float:
    """Convert current to MVA"""
    return float((np.sqrt(3) * voltage_kv * current_a) / 1000)


def calculate_current_from_mva(power_mva: float, voltage_kv: float) -> float:
    """Convert apparent power (MVA) to current (A)"""
    if voltage_kv <= 0:
        return 0.0
    return float(power_mva * 1000 / (np.sqrt(3) * voltage_kv))
