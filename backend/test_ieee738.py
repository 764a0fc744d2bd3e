"""Tests for the IEEE 738 heat balance and conductor lookup."""

from __future__ import annotations

import math

import pytest

from ieee738 import (
    CONDUCTOR_DATABASE,
    DEFAULT_CONDUCTOR_NAME,
    IEEE738Calculator,
    compute_attack_angle,
    get_conductor,
    load_conductor_library,
)

DRAKE = "795 ACSR 26/7 DRAKE"


@pytest.fixture
def drake() -> IEEE738Calculator:
    return IEEE738Calculator.for_conductor_name(DRAKE)


# ======================================================================
# Attack angle
# ======================================================================

class TestAttackAngle:

    @pytest.mark.parametrize(
        "wind, azimuth, expected",
        [
            (0, 90, 90),
            (90, 90, 0),
            (270, 90, 0),
            (45, 90, 45),
            (10, 190, 0),
            (350, 10, 20),
            (720, 0, 0),
            (-90, 0, 90),
        ],
    )
    def test_folded_into_quarter_turn(self, wind, azimuth, expected):
        assert compute_attack_angle(wind, azimuth) == pytest.approx(expected)

    def test_always_within_range(self):
        for wind in range(0, 361, 15):
            for azimuth in range(0, 361, 20):
                assert 0 <= compute_attack_angle(wind, azimuth) <= 90


# ======================================================================
# Ampacity
# ======================================================================

class TestAmpacity:

    def test_drake_reference_case_in_expected_band(self, drake):
        """25 °C, 5 m/s perpendicular, MOT 100 °C."""
        rating = drake.calculate_ampacity(25, 5, wind_direction_deg=0, line_azimuth_deg=90, temp_conductor_max_c=100)
        assert 400 <= rating <= 900

    def test_deterministic(self, drake):
        args = dict(temp_ambient_c=31.5, wind_speed_ms=3.2, wind_direction_deg=40, line_azimuth_deg=120)
        assert drake.calculate_ampacity(**args) == drake.calculate_ampacity(**args)

    def test_hotter_air_lowers_rating(self, drake):
        ratings = [drake.calculate_ampacity(t, 2, 0, 90) for t in (0, 15, 30, 45, 60)]
        assert ratings == sorted(ratings, reverse=True)

    def test_more_wind_raises_rating(self, drake):
        ratings = [drake.calculate_ampacity(25, v, 0, 90) for v in (0.5, 1, 2, 5, 10)]
        assert ratings == sorted(ratings)

    def test_perpendicular_wind_cools_more_than_parallel(self, drake):
        perpendicular = drake.calculate_ampacity(25, 3, wind_direction_deg=0, line_azimuth_deg=90)
        parallel = drake.calculate_ampacity(25, 3, wind_direction_deg=90, line_azimuth_deg=90)
        assert perpendicular > parallel

    def test_zero_wind_uses_natural_convection_floor(self, drake):
        still = drake.calculate_ampacity(25, 0, 0, 90)
        floor = drake.calculate_ampacity(25, IEEE738Calculator.MIN_WIND_SPEED_MS, 0, 90)
        assert still == pytest.approx(floor)

    def test_mot_below_ambient_returns_floor(self, drake):
        rating = drake.calculate_ampacity(60, 2, 0, 90, temp_conductor_max_c=50)
        assert rating == IEEE738Calculator.MIN_AMPACITY_A

    def test_never_below_floor(self, drake):
        assert drake.calculate_ampacity(60, 0, 90, 90, temp_conductor_max_c=61) >= 100

    def test_detailed_breakdown_matches_rating(self, drake):
        detail = drake.calculate_ampacity_detailed(25, 2, 0, 90, 75)
        assert detail["Qs_solar"] == 0.0
        assert detail["Q_net"] == pytest.approx(detail["Qc_convective"] + detail["Qr_radiative"])
        expected = math.sqrt(detail["Q_net"] / detail["R_conductor"])
        assert detail["ampacity"] == pytest.approx(expected)
        assert detail["attack_angle_deg"] == 90

    def test_resistance_rises_with_temperature(self, drake):
        assert drake.conductor_resistance(75) > drake.conductor_resistance(25)
        assert drake.conductor_resistance(25) == pytest.approx(CONDUCTOR_DATABASE[DRAKE].r25_ohm_per_m)


# ======================================================================
# Conductor lookup
# ======================================================================

class TestConductorLookup:

    def test_known_conductor(self):
        conductor, recognized = get_conductor("954 ACSR 54/7 CARDINAL")
        assert recognized
        assert conductor.diameter_mm == 30.38

    def test_unknown_conductor_falls_back_to_drake(self):
        conductor, recognized = get_conductor("NOT A CONDUCTOR")
        assert not recognized
        assert conductor.name == DEFAULT_CONDUCTOR_NAME

    def test_unknown_rating_equals_drake_rating(self):
        unknown = IEEE738Calculator.for_conductor_name("NOT A CONDUCTOR")
        drake = IEEE738Calculator.for_conductor_name(DRAKE)
        assert unknown.calculate_ampacity(30, 2, 0, 90) == drake.calculate_ampacity(30, 2, 0, 90)

    def test_none_name_falls_back(self):
        _, recognized = get_conductor(None)
        assert not recognized

    def test_load_conductor_library(self, tmp_path, monkeypatch):
        monkeypatch.setattr("ieee738.CONDUCTOR_DATABASE", dict(CONDUCTOR_DATABASE))
        path = tmp_path / "conductor_library.csv"
        path.write_text(
            "ConductorName,RES_25C,RES_50C,CDRAD_in\n"
            "TEST ACSR,0.1170,0.1288,0.5540\n"
            "BROKEN,abc,0.1,0.5\n"
        )

        added = load_conductor_library(str(path))

        assert added == 1
        conductor, recognized = get_conductor("TEST ACSR")
        assert recognized
        assert conductor.diameter_mm == pytest.approx(2 * 0.5540 * 25.4)
        assert conductor.alpha == pytest.approx((0.1288 - 0.1170) / (0.1170 * 25))
