"""Shared fixtures: a small six-bus grid built through the regular loader path."""

from __future__ import annotations

import pandas as pd
import pytest

from grid_engine import GridStressEngine
from line_stress import Conditions
from topology import Topology, TopologyCache, build_topology


# ======================================================================
# Grid data
# ======================================================================

@pytest.fixture
def buses_df() -> pd.DataFrame:
    # 1, 2 Central Honolulu; 3 Leeward; 4 Windward; 5, 6 North Shore
    return pd.DataFrame({
        "name": [1, 2, 3, 4, 5, 6],
        "BusName": ["ALOHA138", "HONOLULU138", "EWA138", "KAILUA69", "HALEIWA69", "WAIALUA69"],
        "v_nom": [138.0, 138.0, 138.0, 69.0, 69.0, 69.0],
        "x": [-157.90, -157.85, -158.05, -157.70, -158.00, -158.05],
        "y": [21.30, 21.32, 21.40, 21.35, 21.60, 21.62],
    })


@pytest.fixture
def lines_df() -> pd.DataFrame:
    return pd.DataFrame({
        "name": ["L0", "L1", "L2", "L3", "L4"],
        "bus0": [1, 2, 1, 2, 5],
        "bus1": [2, 3, 3, 4, 6],
        "branch_name": [
            "ALOHA138 TO HONOLULU138 CKT 1",
            "HONOLULU138 TO EWA138 CKT 1",
            "ALOHA138 TO EWA138 CKT 1",
            "HONOLULU138 TO KAILUA69 CKT 1",
            "HALEIWA69 TO WAIALUA69 CKT 1",
        ],
        "conductor": [
            "795 ACSR 26/7 DRAKE",
            "795 ACSR 26/7 DRAKE",
            "556.5 ACSR 26/7 DOVE",
            "336.4 ACSR 30/7 ORIOLE",
            "MYSTERY 1/0",
        ],
        "MOT": [75, 75, 75, 75, 75],
        "s_nom": [120.0, 120.0, 90.0, 60.0, 20.0],
    })


@pytest.fixture
def flows_df() -> pd.DataFrame:
    return pd.DataFrame({
        "name": ["L0", "L1", "L2", "L3", "L4"],
        "p0_nominal": [100.0, -110.0, 40.0, 30.0, 10.0],
    })


@pytest.fixture
def topology(lines_df, buses_df, flows_df) -> Topology:
    return build_topology(lines_df, buses_df, flows_df)


@pytest.fixture
def topology_cache(topology) -> TopologyCache:
    return TopologyCache("memory", ttl_s=0, loader=lambda source, timeout: topology)


@pytest.fixture
def engine(topology_cache) -> GridStressEngine:
    return GridStressEngine(topology_cache)


# ======================================================================
# Conditions
# ======================================================================

@pytest.fixture
def perpendicular_wind() -> Conditions:
    """25 °C, 2 m/s blowing square across the default east-west line bearing."""
    return Conditions(ambient_temp_c=25.0, wind_speed_ms=2.0, wind_direction_deg=0.0)
