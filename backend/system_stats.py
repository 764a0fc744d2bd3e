"""
System Stress Statistics
Reduces per-line stress into band counts, mean/max stress and the
System Stress Index (SSI)
"""

import math
from typing import Dict, Iterable, Optional

import numpy as np
from pydantic import BaseModel, Field

# Band edges (% of rating)
MEDIUM_THRESHOLD = 70.0
HIGH_THRESHOLD = 90.0
OVERLOAD_THRESHOLD = 100.0


class StressBands(BaseModel):
    low: int = 0  # < 70 %
    medium: int = 0  # 70-90 %
    high: int = 0  # 90-100 %
    overload: int = 0  # >= 100 %


class SystemStats(BaseModel):
    """
    System-wide summary.

    SSI is the mean of squared normalized stress, mean((stress/100)^2), so
    heavily loaded lines weigh superlinearly. A grid with every line at its
    rating has SSI 1.0.
    """

    ssi: float = 0.0
    bands: StressBands = Field(default_factory=StressBands)
    avg_stress: float = 0.0
    max_stress: float = 0.0
    active_lines: int = 0

    def to_dict(self) -> Dict:
        return {
            "ssi": round(self.ssi, 4),
            "bands": self.bands.model_dump(),
            "avgStress": round(self.avg_stress, 1),
            "maxStress": round(self.max_stress, 1),
            "activeLines": self.active_lines,
        }


def classify_stress(stress_pct: float) -> str:
    """Band name for a stress value"""
    if stress_pct < MEDIUM_THRESHOLD:
        return "low"
    if stress_pct < HIGH_THRESHOLD:
        return "medium"
    if stress_pct < OVERLOAD_THRESHOLD:
        return "high"
    return "overload"


def compute_system_stats(stresses: Iterable[Optional[float]]) -> SystemStats:
    """
    Aggregate line stress values.

    None entries are lines out of service and are excluded entirely;
    non-finite values count as zero stress.

    Args:
        stresses: Stress percentages of all lines

    Returns:
        SystemStats (all zeros when no line is in service)
    """
    active = [
        s if math.isfinite(s) else 0.0
        for s in stresses
        if s is not None
    ]
    if not active:
        return SystemStats()

    values = np.asarray(active, dtype=float)
    bands = StressBands()
    for stress in active:
        band = classify_stress(stress)
        setattr(bands, band, getattr(bands, band) + 1)

    return SystemStats(
        ssi=float(np.mean((values / 100) ** 2)),
        bands=bands,
        avg_stress=float(values.mean()),
        max_stress=float(values.max()),
        active_lines=len(active),
    )
