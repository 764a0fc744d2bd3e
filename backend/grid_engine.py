"""
Grid Stress Engine
Single entry point used by the API: ties topology, ratings, aggregate
statistics, outage simulation, contingency screening, forecast and
validation together
"""

import logging
from datetime import datetime, timezone
from typing import Dict, Iterable, List, Optional, Sequence

from contingency import MAX_CONTINGENCIES, ContingencyAnalyzer
from forecast import analyze_forecast
from ieee738 import IEEE738Calculator, get_conductor
from line_stress import Conditions, LineStress, evaluate_line, evaluate_lines, solve_overload_temperature
from load_model import LoadScenario, calculate_line_current, calculate_mva_from_current, scenario_multiplier
from outage_simulator import OutageSimulator
from regions import (
    DEFAULT_REGIONS,
    Region,
    assign_buses_to_regions,
    assign_lines_to_regions,
    calculate_centroid,
    calculate_region_stats,
    region_line_ids,
)
from system_stats import compute_system_stats
from topology import Topology, TopologyCache
from validation import validate_ratings
from weather_service import WeatherData

logger = logging.getLogger(__name__)


def _conditions_dict(conditions: Conditions) -> Dict:
    return {
        "ambientTempC": conditions.ambient_temp_c,
        "windSpeedMS": conditions.wind_speed_ms,
        "windDirectionDeg": conditions.wind_direction_deg,
        "scenario": conditions.scenario,
    }


class GridStressEngine:
    """
    Stateless computations over the cached topology.

    Every call reads the topology through the cache, so a TopologyLoadError
    from the loader surfaces to the caller unchanged.
    """

    def __init__(self, topology_cache: TopologyCache, regions: Optional[Sequence[Region]] = None):
        self.topology_cache = topology_cache
        self.regions: List[Region] = list(regions if regions is not None else DEFAULT_REGIONS)
        self.contingency = ContingencyAnalyzer(topology_cache)

    @property
    def topology(self) -> Topology:
        return self.topology_cache.get()

    def evaluate(self, conditions: Conditions, topology: Optional[Topology] = None) -> List[LineStress]:
        if topology is None:
            topology = self.topology
        return evaluate_lines(topology.lines.values(), conditions)

    def baseline_stress(self, conditions: Conditions, topology: Optional[Topology] = None) -> Dict[str, float]:
        """Line id -> stress (%) with every line in service"""
        if topology is None:
            topology = self.topology
        return {
            line.id: evaluate_line(line, conditions, with_overload_temp=False).stress_pct
            for line in topology.lines.values()
        }

    def compute_ratings(self, conditions: Conditions) -> Dict:
        """
        Rate every line and summarize the system.

        Returns:
            dict with lines, system summary and the echoed conditions
        """
        topology = self.topology
        results = self.evaluate(conditions, topology)
        stats = compute_system_stats(r.stress_pct for r in results)
        unrecognized = sorted({
            topology.lines[r.id].conductor for r in results if not r.conductor_recognized
        })
        if unrecognized:
            logger.info("Lines rated with the default conductor: %s", ", ".join(unrecognized))

        return {
            "lines": [r.to_dict() for r in results],
            "system": stats.to_dict(),
            "conditions": _conditions_dict(conditions),
            "computedAt": datetime.now(timezone.utc).isoformat(),
        }

    def line_detail(self, line_id: str, conditions: Conditions) -> Dict:
        """
        Heat balance breakdown and overload temperature for one line.

        Raises:
            KeyError: for an unknown line id
        """
        line = self.topology.get_line(line_id)
        conductor, recognized = get_conductor(line.conductor)
        calculator = IEEE738Calculator(conductor)

        detail = calculator.calculate_ampacity_detailed(
            temp_ambient_c=conditions.ambient_temp_c,
            wind_speed_ms=conditions.wind_speed_ms,
            wind_direction_deg=conditions.wind_direction_deg,
            line_azimuth_deg=line.azimuth_deg,
            temp_conductor_max_c=line.mot,
        )
        actual_a = calculate_line_current(
            line.nominal_flow_mw, line.voltage_kv, scenario_multiplier(conditions.scenario)
        )
        overload_temp_c = solve_overload_temperature(
            line, conditions.wind_speed_ms, conditions.wind_direction_deg, actual_a, calculator=calculator
        )
        stress = evaluate_line(line, conditions, with_overload_temp=False)

        return {
            "id": line.id,
            "name": line.name,
            "conductor": conductor.name,
            "conductorRecognized": recognized,
            "kV": line.voltage_kv,
            "mot": line.mot,
            "azimuthDeg": round(line.azimuth_deg, 1),
            "ratingA": round(stress.rating_a, 1),
            "ratingMVA": round(calculate_mva_from_current(stress.rating_a, line.voltage_kv), 1),
            "staticRatingMVA": line.s_nom,
            "actualA": round(actual_a, 1),
            "stressPct": round(stress.stress_pct, 1),
            "overloadTempC": round(overload_temp_c, 1) if overload_temp_c is not None else None,
            "heatBalance": {
                "attackAngleDeg": round(detail["attack_angle_deg"], 1),
                "convectiveWPerM": round(detail["Qc_convective"], 2),
                "radiativeWPerM": round(detail["Qr_radiative"], 2),
                "solarWPerM": detail["Qs_solar"],
                "resistanceOhmPerM": detail["R_conductor"],
            },
            "conditions": _conditions_dict(conditions),
        }

    # Regions

    def region_for_id(self, region_id: str) -> Region:
        for region in self.regions:
            if region.id == region_id:
                return region
        raise KeyError(f"Region {region_id} not found")

    def region_line_ids(
        self,
        region_ids: Iterable[str],
        include_interties: bool = False,
        topology: Optional[Topology] = None,
    ) -> set:
        """Expand region ids into the line ids they contain"""
        if topology is None:
            topology = self.topology
        bus_regions = assign_buses_to_regions(topology.buses.values(), self.regions)
        selected = set()
        for region_id in region_ids:
            self.region_for_id(region_id)
            selected |= region_line_ids(region_id, topology.lines.values(), bus_regions, include_interties)
        return selected

    def region_stats(self, conditions: Conditions, cut_line_ids: Iterable[str] = ()) -> Dict:
        """Per-region stress statistics, with an optional cut set applied"""
        topology = self.topology
        simulator = OutageSimulator(topology.lines.values(), self.baseline_stress(conditions, topology))
        stress = simulator.adjusted_stress(simulator.cut(cut_line_ids))

        bus_regions = assign_buses_to_regions(topology.buses.values(), self.regions)
        line_regions = assign_lines_to_regions(topology.lines.values(), bus_regions)

        regions = []
        for region in self.regions:
            lon, lat = calculate_centroid(region.outer_ring)
            regions.append({
                "id": region.id,
                "name": region.name,
                "centroid": {"lon": round(lon, 4), "lat": round(lat, 4)},
                "stats": calculate_region_stats(region.id, stress, line_regions),
            })
        return {"regions": regions, "conditions": _conditions_dict(conditions)}

    # Outages and contingencies

    def simulate_outage(
        self,
        conditions: Conditions,
        cut_line_ids: Iterable[str] = (),
        cut_regions: Iterable[str] = (),
        include_interties: bool = False,
    ) -> Dict:
        """
        Apply a cut set to the baseline stress and recompute system stats.

        Raises:
            KeyError: for an unknown line or region id
        """
        topology = self.topology
        simulator = OutageSimulator(topology.lines.values(), self.baseline_stress(conditions, topology))
        simulator.cut(cut_line_ids)
        cut_regions = list(cut_regions)
        if cut_regions:
            simulator.cut(self.region_line_ids(cut_regions, include_interties, topology))

        adjusted = simulator.adjusted_stress()
        stats = simulator.system_stats(adjusted)
        logger.info(
            "Outage simulation: %d lines cut, max stress %.1f%%",
            len(simulator.cut_lines), stats.max_stress,
        )

        return {
            "cutLineIds": sorted(simulator.cut_lines),
            "lines": [
                {
                    "id": line_id,
                    "name": topology.lines[line_id].name,
                    "stressPct": round(stress, 1) if stress is not None else None,
                    "cut": stress is None,
                }
                for line_id, stress in adjusted.items()
            ],
            "system": stats.to_dict(),
            "conditions": _conditions_dict(conditions),
        }

    def run_contingency(self, conditions: Conditions, top_n: int = MAX_CONTINGENCIES) -> Dict:
        report = self.contingency.run(conditions, top_n=top_n)
        result = report.to_dict()
        result["conditions"] = _conditions_dict(conditions)
        return result

    # Forecast, validation, buses

    def forecast(self, hourly_weather: List[WeatherData], scenario: LoadScenario = "nominal") -> Dict:
        return analyze_forecast(self.topology.lines.values(), hourly_weather, scenario)

    def validate(self, sample_size: int = 5, seed: Optional[int] = None) -> Dict:
        return validate_ratings(self.topology.lines.values(), sample_size=sample_size, seed=seed)

    def buses(self) -> List[Dict]:
        return [bus.model_dump() for bus in self.topology.buses.values()]
