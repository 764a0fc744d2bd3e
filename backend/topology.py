"""
Grid Topology Module
Loads transmission lines and buses of the Hawaii 40-bus model and derives
per-line orientation, voltage level and bus adjacency
"""

import json
import logging
import math
import os
import threading
import time
from typing import Any, Dict, Iterable, List, Optional, Set

import pandas as pd
import requests
from pydantic import BaseModel, ConfigDict

logger = logging.getLogger(__name__)

LINES_CSV = "csv/lines.csv"
BUSES_CSV = "csv/buses.csv"
FLOWS_CSV = "line_flows_nominal.csv"
LINES_GEOJSON = "gis/oneline_lines.geojson"

DEFAULT_AZIMUTH_DEG = 90.0


class TopologyLoadError(RuntimeError):
    """Grid topology could not be loaded; analysis cannot run."""


class Bus(BaseModel):
    """Substation bus"""

    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    lat: float
    lon: float
    voltage_kv: float
    degree: int = 0


class Line(BaseModel):
    """Transmission line with the static data the stress engine needs"""

    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    bus0: str
    bus1: str
    conductor: str
    s_nom: float
    mot: float
    nominal_flow_mw: float
    voltage_kv: float
    azimuth_deg: float = DEFAULT_AZIMUTH_DEG


class Topology:
    """Lines and buses keyed by id, with bus/line incidence lookups."""

    def __init__(self, lines: Iterable[Line], buses: Iterable[Bus] = ()):
        self.lines: Dict[str, Line] = {line.id: line for line in lines}
        self.buses: Dict[str, Bus] = {bus.id: bus for bus in buses}
        self.loaded_at = time.time()

        self._bus_to_lines: Dict[str, Set[str]] = {}
        for line in self.lines.values():
            self._bus_to_lines.setdefault(line.bus0, set()).add(line.id)
            self._bus_to_lines.setdefault(line.bus1, set()).add(line.id)

    def __len__(self) -> int:
        return len(self.lines)

    def get_line(self, line_id: str) -> Line:
        try:
            return self.lines[line_id]
        except KeyError:
            raise KeyError(f"Line {line_id} not found") from None

    def lines_at_bus(self, bus_id: str) -> Set[str]:
        return set(self._bus_to_lines.get(bus_id, ()))

    def neighbors(self, line_id: str) -> Set[str]:
        """Other lines sharing either endpoint bus with this line."""
        line = self.get_line(line_id)
        result = self.lines_at_bus(line.bus0) | self.lines_at_bus(line.bus1)
        result.discard(line_id)
        return result


def _normalize_id(value: Any) -> Optional[str]:
    """CSV ids may come back as int, float (1.0) or str; make them comparable."""
    if value is None:
        return None
    if isinstance(value, float):
        if math.isnan(value):
            return None
        if value.is_integer():
            return str(int(value))
    text = str(value).strip()
    return text or None


def _to_float(value: Any) -> float:
    """Parse a numeric cell; raises ValueError for blanks and non-finite values."""
    result = float(value)
    if not math.isfinite(result):
        raise ValueError(f"non-finite value {value!r}")
    return result


def line_azimuth(coordinates: List[List[float]]) -> float:
    """
    Compass bearing of a line from its first two (lon, lat) coordinates.

    Returns:
        Azimuth in degrees [0, 360), or the default when geometry is too short
    """
    if not coordinates or len(coordinates) < 2:
        return DEFAULT_AZIMUTH_DEG
    lon1, lat1 = coordinates[0][:2]
    lon2, lat2 = coordinates[1][:2]
    azimuth = math.degrees(math.atan2(lon2 - lon1, lat2 - lat1))
    return (azimuth + 360) % 360


def _geometry_index(geojson: Optional[Dict]) -> Dict[str, Dict]:
    """Map line id -> {azimuth, nomkv} from GeoJSON features"""
    index: Dict[str, Dict] = {}
    if not geojson:
        return index

    for feature in geojson.get("features", []):
        props = feature.get("properties") or {}
        line_id = _normalize_id(props.get("Name"))
        if not line_id:
            continue
        geometry = feature.get("geometry") or {}
        coords = geometry.get("coordinates") or []
        # MultiLineString: use the first part
        if coords and coords[0] and isinstance(coords[0][0], list):
            coords = coords[0]
        try:
            nomkv = _to_float(props.get("nomkv"))
        except (TypeError, ValueError):
            nomkv = None
        index[line_id] = {"azimuth": line_azimuth(coords), "nomkv": nomkv}
    return index


def build_topology(
    lines_df: pd.DataFrame,
    buses_df: pd.DataFrame,
    flows_df: Optional[pd.DataFrame] = None,
    geojson: Optional[Dict] = None,
) -> Topology:
    """
    Build a Topology from raw tables.

    Malformed bus or line rows are skipped with a warning; the remaining
    valid records are still returned.

    Args:
        lines_df: lines.csv (name, bus0, bus1, branch_name, conductor, MOT, s_nom)
        buses_df: buses.csv (name, v_nom, x, y, optional BusName)
        flows_df: line_flows_nominal.csv (name, p0_nominal)
        geojson: oneline_lines.geojson used for line azimuth and nomkv fallback

    Returns:
        Topology
    """
    # Buses
    raw_buses: Dict[str, Dict] = {}
    for idx, row in buses_df.iterrows():
        try:
            bus_id = _normalize_id(row["name"])
            if bus_id is None:
                raise ValueError("missing bus name")
            display = row.get("BusName")
            raw_buses[bus_id] = {
                "id": bus_id,
                "name": str(display).strip() if isinstance(display, str) and display.strip() else bus_id,
                "lat": _to_float(row["y"]),
                "lon": _to_float(row["x"]),
                "voltage_kv": _to_float(row["v_nom"]),
            }
        except (KeyError, TypeError, ValueError) as e:
            logger.warning("Skipping bus row %s: %s", idx, e)

    # Nominal flows
    flows: Dict[str, float] = {}
    if flows_df is not None:
        for _, row in flows_df.iterrows():
            flow_id = _normalize_id(row.get("name"))
            if not flow_id:
                continue
            try:
                flows[flow_id] = _to_float(row.get("p0_nominal"))
            except (TypeError, ValueError):
                flows[flow_id] = 0.0

    geometry = _geometry_index(geojson)

    # Lines
    lines: List[Line] = []
    for idx, row in lines_df.iterrows():
        try:
            line_id = _normalize_id(row["name"])
            bus0 = _normalize_id(row["bus0"])
            bus1 = _normalize_id(row["bus1"])
            if not line_id or not bus0 or not bus1:
                raise ValueError("missing line id or endpoint bus")

            kv_candidates = [
                raw_buses[b]["voltage_kv"] for b in (bus0, bus1) if b in raw_buses
            ]
            geo = geometry.get(line_id, {})
            if kv_candidates:
                voltage_kv = max(kv_candidates)
            elif geo.get("nomkv"):
                voltage_kv = geo["nomkv"]
            else:
                raise ValueError(f"no voltage level for buses {bus0}/{bus1}")

            branch_name = row.get("branch_name")
            lines.append(Line(
                id=line_id,
                name=str(branch_name).strip() if isinstance(branch_name, str) else line_id,
                bus0=bus0,
                bus1=bus1,
                conductor=str(row["conductor"]).strip(),
                s_nom=_to_float(row["s_nom"]),
                mot=_to_float(row["MOT"]),
                nominal_flow_mw=flows.get(line_id, 0.0),
                voltage_kv=voltage_kv,
                azimuth_deg=geo.get("azimuth", DEFAULT_AZIMUTH_DEG),
            ))
        except (KeyError, TypeError, ValueError) as e:
            logger.warning("Skipping line row %s: %s", idx, e)

    # Degree = number of line ends terminating at each bus
    degree: Dict[str, int] = {}
    for line in lines:
        degree[line.bus0] = degree.get(line.bus0, 0) + 1
        degree[line.bus1] = degree.get(line.bus1, 0) + 1

    buses = [Bus(**data, degree=degree.get(bus_id, 0)) for bus_id, data in raw_buses.items()]

    logger.info("Built topology with %d lines and %d buses", len(lines), len(buses))
    return Topology(lines, buses)


def _join(source: str, relative: str) -> str:
    if source.startswith(("http://", "https://")):
        return source.rstrip("/") + "/" + relative
    return os.path.join(source, relative)


def _read_geojson(location: str, timeout: float) -> Dict:
    if location.startswith(("http://", "https://")):
        response = requests.get(location, timeout=timeout)
        response.raise_for_status()
        return response.json()
    with open(location, encoding="utf-8") as f:
        return json.load(f)


def load_topology(source: str, timeout: float = 10.0) -> Topology:
    """
    Load topology from a local directory or a base URL laid out like hawaii40_osu/.

    Raises:
        TopologyLoadError: when any of the source files cannot be read
    """
    logger.info("Loading grid topology from %s", source)
    try:
        lines_df = pd.read_csv(_join(source, LINES_CSV))
        buses_df = pd.read_csv(_join(source, BUSES_CSV))
        flows_df = pd.read_csv(_join(source, FLOWS_CSV))
        geojson = _read_geojson(_join(source, LINES_GEOJSON), timeout)
    except (OSError, ValueError, requests.RequestException, pd.errors.ParserError) as e:
        raise TopologyLoadError(f"Failed to load grid data from {source}: {e}") from e

    return build_topology(lines_df, buses_df, flows_df, geojson)


class TopologyCache:
    """
    Owns the loaded topology for the lifetime of the service.

    The topology is reloaded when older than ttl_s seconds (ttl_s <= 0 never
    expires) or after invalidate().
    """

    def __init__(self, source: str, ttl_s: float = 3600.0, timeout: float = 10.0, loader=load_topology):
        self.source = source
        self.ttl_s = ttl_s
        self.timeout = timeout
        self._loader = loader
        self._topology: Optional[Topology] = None
        self._lock = threading.Lock()

    def _expired(self) -> bool:
        if self._topology is None:
            return True
        if self.ttl_s <= 0:
            return False
        return time.time() - self._topology.loaded_at > self.ttl_s

    def get(self) -> Topology:
        with self._lock:
            if self._expired():
                self._topology = self._loader(self.source, self.timeout)
            return self._topology

    def invalidate(self) -> None:
        with self._lock:
            self._topology = None

    @property
    def is_loaded(self) -> bool:
        return self._topology is not None
