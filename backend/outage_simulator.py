"""
Outage Simulator
Interactive "what-if" line cuts with a fixed stress redistribution heuristic
"""

import logging
from typing import Dict, Iterable, Mapping, Optional, Set

from system_stats import SystemStats, compute_system_stats
from topology import Line

logger = logging.getLogger(__name__)

STRESS_PER_INCIDENT_CUT = 0.30
MAX_STRESS_INCREASE = 0.60


class OutageSimulator:
    """
    Holds a set of manually cut lines and recomputes stress for the rest.

    Every in-service line gains 30 % stress per cut line that shares one of
    its buses, capped at +60 %. Adjusted values are always derived from the
    baseline stress, so any sequence of cuts and restores that ends with the
    same cut set gives the same result.
    """

    def __init__(self, lines: Iterable[Line], baseline_stress: Mapping[str, float]):
        """
        Args:
            lines: All lines in the system
            baseline_stress: Pre-outage stress (%) keyed by line id
        """
        self.lines: Dict[str, Line] = {line.id: line for line in lines}
        self.baseline_stress: Dict[str, float] = dict(baseline_stress)
        self.cut_lines: Set[str] = set()

        self._bus_to_lines: Dict[str, Set[str]] = {}
        for line in self.lines.values():
            self._bus_to_lines.setdefault(line.bus0, set()).add(line.id)
            self._bus_to_lines.setdefault(line.bus1, set()).add(line.id)

    # Cut set management

    def cut(self, line_ids: Iterable[str]) -> Set[str]:
        for line_id in line_ids:
            if line_id not in self.lines:
                raise KeyError(f"Line {line_id} not found")
            self.cut_lines.add(line_id)
        return set(self.cut_lines)

    def restore(self, line_ids: Iterable[str]) -> Set[str]:
        for line_id in line_ids:
            self.cut_lines.discard(line_id)
        return set(self.cut_lines)

    def toggle(self, line_id: str) -> bool:
        """Flip a line's state; returns True if it is now cut."""
        if line_id in self.cut_lines:
            self.restore([line_id])
            return False
        self.cut([line_id])
        return True

    def restore_all(self) -> None:
        self.cut_lines.clear()

    # Stress redistribution

    def incident_cuts(self, line_id: str, cut_line_ids: Set[str]) -> int:
        """Number of distinct other cut lines sharing a bus with this line"""
        line = self.lines[line_id]
        adjacent = self._bus_to_lines.get(line.bus0, set()) | self._bus_to_lines.get(line.bus1, set())
        return len((adjacent & cut_line_ids) - {line_id})

    def adjusted_stress(self, cut_line_ids: Optional[Iterable[str]] = None) -> Dict[str, Optional[float]]:
        """
        Calculate adjusted stress for all lines given a set of cut lines.

        Args:
            cut_line_ids: Cut set to evaluate; defaults to the simulator's own

        Returns:
            line id -> adjusted stress (%), or None for lines out of service
        """
        cut_set = set(self.cut_lines if cut_line_ids is None else cut_line_ids)

        adjusted: Dict[str, Optional[float]] = {}
        for line_id in self.lines:
            if line_id in cut_set:
                adjusted[line_id] = None
                continue

            baseline = self.baseline_stress.get(line_id, 0.0)
            n_cuts = self.incident_cuts(line_id, cut_set)
            if n_cuts == 0:
                adjusted[line_id] = baseline
            else:
                factor = 1 + min(n_cuts * STRESS_PER_INCIDENT_CUT, MAX_STRESS_INCREASE)
                adjusted[line_id] = baseline * factor

        return adjusted

    def system_stats(self, adjusted: Optional[Mapping[str, Optional[float]]] = None) -> SystemStats:
        """Recalculate system statistics excluding cut lines"""
        if adjusted is None:
            adjusted = self.adjusted_stress()
        return compute_system_stats(adjusted.get(line_id) for line_id in self.lines)
