"""
N-1 Contingency Analysis (topological heuristic)

For loss of each line, the lines sharing one of its endpoint buses are
assumed to pick up a fixed share of extra flow. This is a screening
heuristic, not a power flow solution.

Example:

    For loss of "ALOHA138 TO HONOLULU138 CKT 1"

    Ratings Issues:
    "ALOHA138 TO HONOLULU138 CKT 2" 95%
"""

import logging
from typing import Dict, List, Optional

from pydantic import BaseModel, Field

from line_stress import Conditions, evaluate_line
from topology import Topology, TopologyCache

logger = logging.getLogger(__name__)

STRESS_INCREASE_FACTOR = 0.30
ISSUE_THRESHOLD_PCT = 80.0
MAX_CONTINGENCIES = 10


class ContingencyIssue(BaseModel):
    line_id: str
    name: str
    stress_pct: float


class ContingencyResult(BaseModel):
    """Neighbors above the reporting threshold after one line outage"""

    outage_line_id: str
    outage_name: str
    issues: List[ContingencyIssue] = Field(default_factory=list)
    max_stress: float = 0.0

    def to_dict(self) -> Dict:
        return {
            "outageLineId": self.outage_line_id,
            "outage": self.outage_name,
            "issues": [
                {"lineId": i.line_id, "name": i.name, "stressPct": round(i.stress_pct, 1)}
                for i in self.issues
            ],
            "maxStress": round(self.max_stress, 1),
        }


class ContingencyReport(BaseModel):
    """Ranked contingencies plus how many outages were screened"""

    analyzed: int
    with_issues: int
    contingencies: List[ContingencyResult] = Field(default_factory=list)

    def to_dict(self) -> Dict:
        return {
            "analyzed": self.analyzed,
            "withIssues": self.with_issues,
            "contingencies": [c.to_dict() for c in self.contingencies],
        }


def analyze_line_outage(
    topology: Topology,
    outage_line_id: str,
    conditions: Conditions,
    stress_increase: float = STRESS_INCREASE_FACTOR,
    threshold_pct: float = ISSUE_THRESHOLD_PCT,
    uplifted_stress: Optional[Dict[str, float]] = None,
) -> Optional[ContingencyResult]:
    """
    Analyze the impact of a single line outage.

    Args:
        topology: Grid topology
        outage_line_id: Line taken out of service
        conditions: Weather and load scenario, held constant
        stress_increase: Fractional flow increase on each neighbor
        threshold_pct: Minimum post-outage stress reported as an issue

    Returns:
        ContingencyResult, or None when the line has no neighbors or no
        neighbor crosses the threshold
    """
    outage = topology.get_line(outage_line_id)
    neighbors = topology.neighbors(outage_line_id)
    if not neighbors:
        return None

    issues: List[ContingencyIssue] = []
    for neighbor_id in neighbors:
        if uplifted_stress is not None and neighbor_id in uplifted_stress:
            stress = uplifted_stress[neighbor_id]
        else:
            neighbor = topology.lines[neighbor_id]
            stress = evaluate_line(
                neighbor, conditions, flow_uplift=stress_increase, with_overload_temp=False
            ).stress_pct
            if uplifted_stress is not None:
                uplifted_stress[neighbor_id] = stress

        if stress > threshold_pct:
            issues.append(ContingencyIssue(
                line_id=neighbor_id,
                name=topology.lines[neighbor_id].name,
                stress_pct=stress,
            ))

    if not issues:
        return None

    issues.sort(key=lambda i: (-i.stress_pct, i.line_id))
    return ContingencyResult(
        outage_line_id=outage.id,
        outage_name=outage.name,
        issues=issues,
        max_stress=issues[0].stress_pct,
    )


def run_n1_analysis(
    topology: Topology,
    conditions: Conditions,
    top_n: int = MAX_CONTINGENCIES,
    stress_increase: float = STRESS_INCREASE_FACTOR,
    threshold_pct: float = ISSUE_THRESHOLD_PCT,
) -> ContingencyReport:
    """
    Screen every single-line outage and rank the worst ones.

    Contingencies without issues are left out; the rest are sorted by
    max_stress (descending, ties by outage line id) and truncated to top_n.
    """
    # A neighbor's uplifted stress does not depend on which line tripped
    uplifted: Dict[str, float] = {}
    results: List[ContingencyResult] = []

    for line_id in topology.lines:
        result = analyze_line_outage(
            topology, line_id, conditions, stress_increase, threshold_pct, uplifted_stress=uplifted
        )
        if result is not None:
            results.append(result)

    results.sort(key=lambda r: (-r.max_stress, r.outage_line_id))
    logger.info(
        "N-1 screening: %d outages analyzed, %d with issues, returning top %d",
        len(topology), len(results), min(top_n, len(results)),
    )

    return ContingencyReport(
        analyzed=len(topology),
        with_issues=len(results),
        contingencies=results[:top_n],
    )


class ContingencyAnalyzer:
    """
    Handles N-1 contingency analysis against the cached topology.

    Topology loading failures propagate as TopologyLoadError so callers can
    tell "analysis could not run" apart from "no critical contingencies".
    """

    def __init__(self, topology_cache: TopologyCache):
        self.topology_cache = topology_cache

    def run(self, conditions: Conditions, top_n: int = MAX_CONTINGENCIES) -> ContingencyReport:
        topology = self.topology_cache.get()
        return run_n1_analysis(topology, conditions, top_n=top_n)
