"""Tests for the what-if outage simulator."""

from __future__ import annotations

import pytest

from outage_simulator import OutageSimulator
from topology import Line


def _line(line_id: str, bus0: str, bus1: str) -> Line:
    return Line(
        id=line_id,
        name=f"{bus0} TO {bus1}",
        bus0=bus0,
        bus1=bus1,
        conductor="795 ACSR 26/7 DRAKE",
        s_nom=100.0,
        mot=75.0,
        nominal_flow_mw=50.0,
        voltage_kv=138.0,
    )


@pytest.fixture
def star() -> OutageSimulator:
    """A - B - C chain with D and E hanging off B, and F isolated."""
    lines = [
        _line("AB", "A", "B"),
        _line("BC", "B", "C"),
        _line("BD", "B", "D"),
        _line("BE", "B", "E"),
        _line("FG", "F", "G"),
    ]
    baseline = {"AB": 80.0, "BC": 50.0, "BD": 40.0, "BE": 30.0, "FG": 20.0}
    return OutageSimulator(lines, baseline)


class TestCutSet:

    def test_cut_and_restore(self, star):
        assert star.cut(["AB", "BC"]) == {"AB", "BC"}
        assert star.restore(["AB"]) == {"BC"}
        star.restore_all()
        assert star.cut_lines == set()

    def test_toggle(self, star):
        assert star.toggle("BD") is True
        assert star.toggle("BD") is False
        assert star.cut_lines == set()

    def test_unknown_line(self, star):
        with pytest.raises(KeyError):
            star.cut(["ZZ"])


class TestAdjustedStress:

    def test_no_cuts_returns_baseline(self, star):
        assert star.adjusted_stress() == star.baseline_stress

    def test_cut_lines_have_no_stress(self, star):
        adjusted = star.adjusted_stress({"BC"})
        assert adjusted["BC"] is None

    def test_one_incident_cut(self, star):
        adjusted = star.adjusted_stress({"BC"})
        assert adjusted["AB"] == pytest.approx(80.0 * 1.3)
        assert adjusted["FG"] == 20.0

    def test_two_incident_cuts(self, star):
        assert star.adjusted_stress({"BC", "BD"})["AB"] == pytest.approx(128.0)

    def test_increase_capped(self, star):
        assert star.adjusted_stress({"BC", "BD", "BE"})["AB"] == pytest.approx(128.0)

    def test_restore_returns_to_baseline(self, star):
        star.cut(["BC", "BD"])
        star.restore(["BC", "BD"])
        assert star.adjusted_stress() == star.baseline_stress

    def test_order_of_operations_does_not_matter(self, star):
        star.cut(["BC"])
        star.cut(["BE"])
        star.toggle("BD")
        star.toggle("BD")
        first = star.adjusted_stress()

        star.restore_all()
        star.cut(["BE", "BC"])
        assert star.adjusted_stress() == first

    def test_repeated_evaluation_does_not_compound(self, star):
        star.cut(["BC"])
        assert star.adjusted_stress() == star.adjusted_stress()

    def test_incident_cuts_count_distinct_lines(self, star):
        # AB and BC share bus B only once
        assert star.incident_cuts("AB", {"BC"}) == 1
        assert star.incident_cuts("AB", {"AB", "BC"}) == 1

    def test_parallel_circuit_counts_once(self):
        simulator = OutageSimulator(
            [_line("AB1", "A", "B"), _line("AB2", "A", "B")],
            {"AB1": 50.0, "AB2": 50.0},
        )
        assert simulator.incident_cuts("AB1", {"AB2"}) == 1
        assert simulator.adjusted_stress({"AB2"})["AB1"] == pytest.approx(65.0)


class TestSystemStats:

    def test_excludes_cut_lines(self, star):
        star.cut(["FG"])
        stats = star.system_stats()
        assert stats.active_lines == 4
        assert stats.max_stress == 80.0

    def test_overload_after_cuts(self, star):
        star.cut(["BC", "BD"])
        stats = star.system_stats()
        assert stats.bands.overload == 1
        assert stats.max_stress == pytest.approx(128.0)
