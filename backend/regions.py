"""
Region Helpers
Assigns buses and lines to geographic regions and expands a region
selection into the line ids handed to the outage simulator
"""

import json
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Set, Tuple

import numpy as np
from pydantic import BaseModel

from topology import Bus, Line

INTERTIE = "INTERTIE"
UNKNOWN = "UNKNOWN"


class Region(BaseModel):
    """Named polygon; coordinates follow GeoJSON ([lon, lat] rings, outer ring first)"""

    id: str
    name: str
    geometry: Dict

    @property
    def outer_ring(self) -> List[List[float]]:
        coords = self.geometry.get("coordinates") or []
        if self.geometry.get("type") == "MultiPolygon":
            coords = coords[0] if coords else []
        return coords[0] if coords else []


def _box(west: float, south: float, east: float, north: float) -> Dict:
    return {
        "type": "Polygon",
        "coordinates": [[
            [west, south], [east, south], [east, north], [west, north], [west, south],
        ]],
    }


# Approximate Oʻahu service regions
DEFAULT_REGIONS: List[Region] = [
    Region(id="central_honolulu", name="Central Honolulu", geometry=_box(-157.95, 21.25, -157.78, 21.38)),
    Region(id="leeward", name="Leeward", geometry=_box(-158.22, 21.28, -157.95, 21.48)),
    Region(id="windward", name="Windward", geometry=_box(-157.78, 21.25, -157.65, 21.46)),
    Region(id="north_shore", name="North Shore", geometry=_box(-158.22, 21.53, -157.88, 21.68)),
    Region(id="central_uplands", name="Central Uplands", geometry=_box(-158.10, 21.46, -157.88, 21.58)),
]


def load_regions(path: str) -> List[Region]:
    """Read region polygons from a GeoJSON file"""
    with open(path, encoding="utf-8") as f:
        return regions_from_geojson(json.load(f))


def regions_from_geojson(feature_collection: Dict) -> List[Region]:
    """Parse a polygon FeatureCollection; feature properties need id or name"""
    regions = []
    for feature in feature_collection.get("features", []):
        props = feature.get("properties") or {}
        name = props.get("name") or props.get("id")
        if not name or not feature.get("geometry"):
            continue
        region_id = str(props.get("id") or name.lower().replace(" ", "_"))
        regions.append(Region(id=region_id, name=name, geometry=feature["geometry"]))
    return regions


def point_in_polygon(lon: float, lat: float, polygon: Sequence[Sequence[float]]) -> bool:
    """Ray casting test for a (lon, lat) point against a polygon ring"""
    inside = False
    n = len(polygon)
    j = n - 1
    for i in range(n):
        xi, yi = polygon[i][0], polygon[i][1]
        xj, yj = polygon[j][0], polygon[j][1]
        if (yi > lat) != (yj > lat) and lon < (xj - xi) * (lat - yi) / (yj - yi) + xi:
            inside = not inside
        j = i
    return inside


def assign_buses_to_regions(buses: Iterable[Bus], regions: Sequence[Region]) -> Dict[str, str]:
    """Bus id -> first region containing it; buses outside every region are left out"""
    result: Dict[str, str] = {}
    for bus in buses:
        for region in regions:
            if point_in_polygon(bus.lon, bus.lat, region.outer_ring):
                result[bus.id] = region.id
                break
    return result


def assign_lines_to_regions(lines: Iterable[Line], bus_regions: Mapping[str, str]) -> Dict[str, str]:
    """
    Line id -> region id.

    A line whose endpoints lie in different regions is an INTERTIE; one with
    an endpoint outside every region is UNKNOWN.
    """
    result: Dict[str, str] = {}
    for line in lines:
        region0 = bus_regions.get(line.bus0)
        region1 = bus_regions.get(line.bus1)
        if region0 is None or region1 is None:
            result[line.id] = UNKNOWN
        elif region0 == region1:
            result[line.id] = region0
        else:
            result[line.id] = INTERTIE
    return result


def region_line_ids(
    region_id: str,
    lines: Iterable[Line],
    bus_regions: Mapping[str, str],
    include_interties: bool = False,
) -> Set[str]:
    """
    Expand a region selection into line ids to cut.

    Args:
        region_id: Selected region
        lines: All lines
        bus_regions: Output of assign_buses_to_regions
        include_interties: Also cut lines with one endpoint in the region
    """
    selected: Set[str] = set()
    for line in lines:
        ends = (bus_regions.get(line.bus0), bus_regions.get(line.bus1))
        if ends[0] == region_id and ends[1] == region_id:
            selected.add(line.id)
        elif include_interties and region_id in ends:
            selected.add(line.id)
    return selected


def calculate_centroid(coordinates: Sequence[Sequence[float]]) -> Tuple[float, float]:
    """Vertex average of a ring, used for label placement"""
    if not coordinates:
        return (0.0, 0.0)
    # Closed rings repeat the first vertex
    if len(coordinates) > 1 and list(coordinates[0][:2]) == list(coordinates[-1][:2]):
        coordinates = coordinates[:-1]
    points = np.asarray([c[:2] for c in coordinates], dtype=float)
    lon, lat = points.mean(axis=0)
    return (float(lon), float(lat))


def calculate_region_stats(
    region_id: str,
    stress: Mapping[str, Optional[float]],
    line_regions: Mapping[str, str],
) -> Dict:
    """
    Stress statistics of the in-service lines of one region.

    Args:
        region_id: Region to summarize
        stress: line id -> stress (%), None for cut lines
        line_regions: Output of assign_lines_to_regions
    """
    values = [
        s for line_id, s in stress.items()
        if s is not None and line_regions.get(line_id) == region_id
    ]
    if not values:
        return {
            "maxStress": 0.0,
            "avgStress": 0.0,
            "activeLines": 0,
            "over95": 0,
            "over100": 0,
            "ssi": 0.0,
        }

    arr = np.asarray(values, dtype=float)
    return {
        "maxStress": round(float(arr.max()), 1),
        "avgStress": round(float(arr.mean()), 1),
        "activeLines": len(values),
        "over95": int((arr >= 95).sum()),
        "over100": int((arr >= 100).sum()),
        "ssi": round(float(np.mean((arr / 100) ** 2)), 4),
    }
