"""Tests for topology parsing, adjacency and the topology cache."""

from __future__ import annotations

import json

import pandas as pd
import pytest

from topology import (
    DEFAULT_AZIMUTH_DEG,
    TopologyCache,
    TopologyLoadError,
    build_topology,
    line_azimuth,
    load_topology,
)


def _feature(name, coordinates, nomkv=138):
    return {
        "type": "Feature",
        "properties": {"Name": name, "nomkv": nomkv},
        "geometry": {"type": "LineString", "coordinates": coordinates},
    }


class TestAzimuth:

    @pytest.mark.parametrize(
        "coords, expected",
        [
            ([[0, 0], [0, 1]], 0.0),
            ([[0, 0], [1, 0]], 90.0),
            ([[0, 0], [0, -1]], 180.0),
            ([[0, 0], [-1, 0]], 270.0),
            ([[0, 0], [1, 1]], 45.0),
        ],
    )
    def test_compass_bearing(self, coords, expected):
        assert line_azimuth(coords) == pytest.approx(expected)

    @pytest.mark.parametrize("coords", [[], [[0, 0]], None])
    def test_short_geometry_uses_default(self, coords):
        assert line_azimuth(coords) == DEFAULT_AZIMUTH_DEG


class TestBuildTopology:

    def test_lines_and_buses(self, topology):
        assert len(topology) == 5
        assert len(topology.buses) == 6
        line = topology.get_line("L1")
        assert (line.bus0, line.bus1) == ("2", "3")
        assert line.nominal_flow_mw == -110.0
        assert line.voltage_kv == 138.0
        assert line.azimuth_deg == DEFAULT_AZIMUTH_DEG

    def test_voltage_is_higher_terminal(self, topology):
        # HONOLULU138 to KAILUA69
        assert topology.get_line("L3").voltage_kv == 138.0

    def test_bus_degree(self, topology):
        degrees = {bus_id: bus.degree for bus_id, bus in topology.buses.items()}
        assert degrees == {"1": 2, "2": 3, "3": 2, "4": 1, "5": 1, "6": 1}

    def test_bus_display_name(self, topology):
        assert topology.buses["2"].name == "HONOLULU138"

    def test_neighbors_share_a_bus(self, topology):
        assert topology.neighbors("L0") == {"L1", "L2", "L3"}
        assert topology.neighbors("L4") == set()

    def test_unknown_line(self, topology):
        with pytest.raises(KeyError, match="L99"):
            topology.get_line("L99")

    def test_geojson_sets_azimuth(self, lines_df, buses_df, flows_df):
        geojson = {"features": [_feature("L0", [[-157.90, 21.30], [-157.85, 21.30]])]}
        topology = build_topology(lines_df, buses_df, flows_df, geojson)
        assert topology.get_line("L0").azimuth_deg == pytest.approx(90.0)

    def test_missing_flow_defaults_to_zero(self, lines_df, buses_df):
        topology = build_topology(lines_df, buses_df)
        assert topology.get_line("L0").nominal_flow_mw == 0.0

    def test_malformed_rows_skipped(self, lines_df, buses_df, flows_df, caplog):
        lines_df["s_nom"] = lines_df["s_nom"].astype(object)
        lines_df.loc[1, "s_nom"] = "n/a"
        lines_df.loc[2, "bus1"] = None
        topology = build_topology(lines_df, buses_df, flows_df)

        assert set(topology.lines) == {"L0", "L3", "L4"}
        assert "Skipping line row" in caplog.text

    def test_unknown_bus_voltage_falls_back_to_geojson(self, lines_df, buses_df, flows_df):
        lines_df.loc[4, ["bus0", "bus1"]] = [7, 8]
        geojson = {"features": [_feature("L4", [[0, 0], [0, 1]], nomkv=46)]}
        topology = build_topology(lines_df, buses_df, flows_df, geojson)
        assert topology.get_line("L4").voltage_kv == 46.0

    def test_line_without_any_voltage_skipped(self, lines_df, buses_df, flows_df):
        lines_df.loc[4, ["bus0", "bus1"]] = [7, 8]
        topology = build_topology(lines_df, buses_df, flows_df)
        assert "L4" not in topology.lines

    def test_missing_required_column_gives_empty_topology(self, lines_df, buses_df):
        topology = build_topology(lines_df.drop(columns=["conductor"]), buses_df)
        assert len(topology) == 0


class TestLoadTopology:

    def _write_dataset(self, root, lines_df, buses_df, flows_df):
        (root / "csv").mkdir()
        (root / "gis").mkdir()
        lines_df.to_csv(root / "csv" / "lines.csv", index=False)
        buses_df.to_csv(root / "csv" / "buses.csv", index=False)
        flows_df.to_csv(root / "line_flows_nominal.csv", index=False)
        geojson = {"features": [_feature("L0", [[-157.90, 21.30], [-157.90, 21.40]])]}
        (root / "gis" / "oneline_lines.geojson").write_text(json.dumps(geojson))

    def test_local_directory(self, tmp_path, lines_df, buses_df, flows_df):
        self._write_dataset(tmp_path, lines_df, buses_df, flows_df)
        topology = load_topology(str(tmp_path))
        assert len(topology) == 5
        assert topology.get_line("L0").azimuth_deg == pytest.approx(0.0)

    def test_missing_files_raise(self, tmp_path):
        with pytest.raises(TopologyLoadError):
            load_topology(str(tmp_path / "missing"))


class TestTopologyCache:

    def _counting_loader(self, topology):
        calls = []

        def loader(source, timeout):
            calls.append(source)
            return topology

        return loader, calls

    def test_loaded_once_within_ttl(self, topology):
        loader, calls = self._counting_loader(topology)
        cache = TopologyCache("grid", ttl_s=3600, loader=loader)
        assert not cache.is_loaded

        assert cache.get() is topology
        cache.get()
        assert calls == ["grid"]
        assert cache.is_loaded

    def test_invalidate_forces_reload(self, topology):
        loader, calls = self._counting_loader(topology)
        cache = TopologyCache("grid", loader=loader)
        cache.get()
        cache.invalidate()
        cache.get()
        assert len(calls) == 2

    def test_expired_entry_reloaded(self, topology, monkeypatch):
        loader, calls = self._counting_loader(topology)
        cache = TopologyCache("grid", ttl_s=10, loader=loader)
        cache.get()
        monkeypatch.setattr(topology, "loaded_at", topology.loaded_at - 60)
        cache.get()
        assert len(calls) == 2

    def test_failure_propagates_and_is_retried(self, topology):
        attempts = []

        def flaky(source, timeout):
            attempts.append(source)
            if len(attempts) == 1:
                raise TopologyLoadError("network down")
            return topology

        cache = TopologyCache("grid", loader=flaky)
        with pytest.raises(TopologyLoadError):
            cache.get()
        assert cache.get() is topology


def test_empty_frames_build_empty_topology():
    topology = build_topology(pd.DataFrame(columns=["name"]), pd.DataFrame(columns=["name"]))
    assert len(topology) == 0
    assert topology.buses == {}
