"""
IEEE 738 Dynamic Line Rating Calculator
Implements simplified thermal balance equation for transmission line ampacity
"""

import logging
import math
from typing import Dict, Optional, Tuple

import pandas as pd
from pydantic import BaseModel, ConfigDict

logger = logging.getLogger(__name__)


class Conductor(BaseModel):
    """Static physical parameters of a conductor type."""

    model_config = ConfigDict(frozen=True)

    name: str
    diameter_mm: float
    r25_ohm_per_km: float
    alpha: float = 0.00404  # per °C (aluminum)
    emissivity: float = 0.5
    absorptivity: float = 0.5

    @property
    def diameter_m(self) -> float:
        return self.diameter_mm / 1000

    @property
    def r25_ohm_per_m(self) -> float:
        return self.r25_ohm_per_km / 1000


# Lookup table for common ACSR conductors (diameter in mm, resistance in ohm/km at 25°C)
CONDUCTOR_DATABASE: Dict[str, Conductor] = {
    c.name: c
    for c in (
        Conductor(name="336.4 ACSR 30/7 ORIOLE", diameter_mm=17.90, r25_ohm_per_km=0.1723),
        Conductor(name="556.5 ACSR 26/7 DOVE", diameter_mm=23.01, r25_ohm_per_km=0.1039),
        Conductor(name="795 ACSR 26/7 DRAKE", diameter_mm=28.14, r25_ohm_per_km=0.0724),
        Conductor(name="954 ACSR 54/7 CARDINAL", diameter_mm=30.38, r25_ohm_per_km=0.0599),
        Conductor(name="1272 ACSR 45/7 BITTERN", diameter_mm=35.10, r25_ohm_per_km=0.04559),
        Conductor(name="1590 ACSR 54/19 FALCON", diameter_mm=39.24, r25_ohm_per_km=0.0365),
    )
}

DEFAULT_CONDUCTOR_NAME = "795 ACSR 26/7 DRAKE"

METERS_PER_MILE = 1609.344
MM_PER_INCH = 25.4

_warned_unknown = set()


def get_conductor(conductor_name: Optional[str]) -> Tuple[Conductor, bool]:
    """
    Get conductor parameters from name.

    Unknown names fall back to the default conductor (795 ACSR DRAKE).

    Args:
        conductor_name: Conductor type name (e.g., "795 ACSR 26/7 DRAKE")

    Returns:
        (conductor, recognized) where recognized is False when the default was used
    """
    conductor = CONDUCTOR_DATABASE.get(conductor_name or "")
    if conductor is not None:
        return conductor, True

    # Warn once per name; ratings are recomputed on every request
    if conductor_name not in _warned_unknown:
        _warned_unknown.add(conductor_name)
        logger.warning(
            "Unknown conductor %r, falling back to %s", conductor_name, DEFAULT_CONDUCTOR_NAME
        )
    return CONDUCTOR_DATABASE[DEFAULT_CONDUCTOR_NAME], False


def load_conductor_library(path: str) -> int:
    """
    Extend the conductor database from a conductor_library.csv file.

    Expected columns: ConductorName, RES_25C, RES_50C (ohm/mile), CDRAD_in (radius, inches).
    Rows with unparseable numbers are skipped.

    Returns:
        Number of conductors added or replaced
    """
    df = pd.read_csv(path)
    added = 0
    for _, row in df.iterrows():
        try:
            name = str(row["ConductorName"]).strip()
            r25 = float(row["RES_25C"])
            r50 = float(row["RES_50C"])
            radius_in = float(row["CDRAD_in"])
        except (KeyError, TypeError, ValueError) as e:
            logger.warning("Skipping conductor library row: %s", e)
            continue

        if not name or not all(math.isfinite(v) and v > 0 for v in (r25, r50, radius_in)):
            logger.warning("Skipping conductor library row %r: invalid values", name)
            continue

        # Temperature coefficient from the 25°C / 50°C resistance pair
        alpha = (r50 - r25) / (r25 * 25)
        CONDUCTOR_DATABASE[name] = Conductor(
            name=name,
            diameter_mm=2 * radius_in * MM_PER_INCH,
            r25_ohm_per_km=r25 / METERS_PER_MILE * 1000,
            alpha=alpha if alpha > 0 else 0.00404,
        )
        added += 1

    logger.info("Loaded %d conductors from %s", added, path)
    return added


def compute_attack_angle(wind_direction_deg: float, line_azimuth_deg: float) -> float:
    """
    Angle between the wind and the conductor axis, in [0, 90] degrees.

    A line has no direction, so azimuth 10° and 190° describe the same line;
    the smallest difference is folded onto [0, 90].
    """
    diff = abs((wind_direction_deg % 360) - (line_azimuth_deg % 360))
    diff = min(diff, 360 - diff)
    if diff > 90:
        diff = 180 - diff
    return min(max(diff, 0.0), 90.0)


class IEEE738Calculator:
    """
    Simplified IEEE 738 ampacity calculator using thermal balance equation:
    I²R(Tc) = Qc + Qr - Qs

    Where:
    - I = current (amperes)
    - R(Tc) = conductor resistance at temperature Tc
    - Qc = convective heat loss (cooling)
    - Qr = radiative heat loss (cooling)
    - Qs = solar heat gain, taken as zero so ratings are deterministic
    """

    # Physical constants
    STEFAN_BOLTZMANN = 5.67e-8  # W/(m²·K⁴)

    # Nusselt ~ C * Re^n, scaled down from the Hilpert cylinder correlation
    CONVECTION_COEFF = 0.0119
    CONVECTION_EXPONENT = 0.6

    MIN_WIND_SPEED_MS = 0.5  # natural convection floor
    MIN_AMPACITY_A = 100.0

    def __init__(self, conductor: Conductor):
        """
        Initialize IEEE 738 calculator with conductor parameters.

        Args:
            conductor: Conductor physical parameters
        """
        self.conductor = conductor
        self.diameter = conductor.diameter_m
        self.emissivity = conductor.emissivity
        self.R_25 = conductor.r25_ohm_per_m
        self.alpha = conductor.alpha

    @classmethod
    def for_conductor_name(cls, conductor_name: Optional[str]) -> "IEEE738Calculator":
        conductor, _ = get_conductor(conductor_name)
        return cls(conductor)

    def conductor_resistance(self, temp_c: float) -> float:
        """
        Calculate conductor resistance at given temperature.
        R(T) = R(25) * [1 + α(T - 25)]

        Returns:
            Resistance in ohm/meter
        """
        return self.R_25 * (1 + self.alpha * (temp_c - 25))

    def radiative_heat_loss(self, temp_conductor_c: float, temp_ambient_c: float) -> float:
        """
        Calculate radiative heat loss per meter (Qr).

        Qr = π * D * ε * σ * (Tc⁴ - Ta⁴)

        Returns:
            Radiative heat loss in W/m
        """
        Tc_K = temp_conductor_c + 273.15
        Ta_K = temp_ambient_c + 273.15

        return (
            math.pi * self.diameter * self.emissivity * self.STEFAN_BOLTZMANN
            * (Tc_K**4 - Ta_K**4)
        )

    def convective_heat_loss(
        self,
        temp_conductor_c: float,
        temp_ambient_c: float,
        wind_speed_ms: float,
        attack_angle_deg: float = 90,
    ) -> float:
        """
        Calculate forced convective heat loss per meter (Qc).

        Qc = π * Nu * k_air * (Tc - Ta) * sin(attack angle)

        Wind along the conductor (attack angle 0°) gives no forced cooling,
        perpendicular wind (90°) gives the full amount.

        Returns:
            Convective heat loss in W/m (never negative)
        """
        # Average film temperature
        T_film = (temp_conductor_c + temp_ambient_c) / 2 + 273.15  # Kelvin

        # Air properties at film temperature (simplified)
        k_air = 0.024 + 0.00007 * (T_film - 273.15)
        nu = 15e-6 * (T_film / 300) ** 1.5

        V_eff = max(wind_speed_ms, self.MIN_WIND_SPEED_MS)
        Re = V_eff * self.diameter / nu
        Nu = self.CONVECTION_COEFF * Re**self.CONVECTION_EXPONENT

        angle_factor = abs(math.sin(math.radians(attack_angle_deg)))
        delta_T = temp_conductor_c - temp_ambient_c
        Qc = math.pi * Nu * k_air * delta_T * angle_factor

        return max(Qc, 0.0)

    def calculate_ampacity_detailed(
        self,
        temp_ambient_c: float,
        wind_speed_ms: float,
        wind_direction_deg: float = 0.0,
        line_azimuth_deg: float = 90.0,
        temp_conductor_max_c: float = 75,
    ) -> Dict[str, float]:
        """
        Calculate ampacity with detailed breakdown of heat balance components.

        Args:
            temp_ambient_c: Ambient air temperature (°C)
            wind_speed_ms: Wind speed (m/s)
            wind_direction_deg: Compass direction the wind blows from (°)
            line_azimuth_deg: Compass bearing of the line (°)
            temp_conductor_max_c: Maximum operating temperature (°C)

        Returns:
            dict with ampacity (A), attack_angle_deg, Qc_convective, Qr_radiative,
            Qs_solar, Q_net (W/m) and R_conductor (ohm/m)
        """
        attack = compute_attack_angle(wind_direction_deg, line_azimuth_deg)

        Qc = self.convective_heat_loss(
            temp_conductor_max_c, temp_ambient_c, wind_speed_ms, attack
        )
        Qr = self.radiative_heat_loss(temp_conductor_max_c, temp_ambient_c)
        Qs = 0.0
        Q_net = Qc + Qr - Qs

        R_Tc = self.conductor_resistance(temp_conductor_max_c)

        if R_Tc > 0:
            I_max = math.sqrt(max(Q_net, 0.0) / R_Tc)
        else:
            I_max = 0.0
        if not math.isfinite(I_max):
            I_max = 0.0

        return {
            "ampacity": max(I_max, self.MIN_AMPACITY_A),
            "attack_angle_deg": attack,
            "Qc_convective": Qc,
            "Qr_radiative": Qr,
            "Qs_solar": Qs,
            "Q_net": Q_net,
            "R_conductor": R_Tc,
            "temp_conductor": temp_conductor_max_c,
            "temp_ambient": temp_ambient_c,
            "wind_speed": wind_speed_ms,
        }

    def calculate_ampacity(
        self,
        temp_ambient_c: float,
        wind_speed_ms: float,
        wind_direction_deg: float = 0.0,
        line_azimuth_deg: float = 90.0,
        temp_conductor_max_c: float = 75,
    ) -> float:
        """
        Calculate maximum steady-state current (ampacity) using thermal balance.

        I² * R(Tc_max) = Qc + Qr

        Returns:
            Maximum current in Amperes, never below MIN_AMPACITY_A
        """
        return self.calculate_ampacity_detailed(
            temp_ambient_c,
            wind_speed_ms,
            wind_direction_deg,
            line_azimuth_deg,
            temp_conductor_max_c,
        )["ampacity"]
