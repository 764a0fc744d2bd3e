"""Tests for band classification and the System Stress Index."""

from __future__ import annotations

import pytest

from system_stats import classify_stress, compute_system_stats


class TestClassifyStress:

    @pytest.mark.parametrize(
        "stress, band",
        [
            (0.0, "low"),
            (69.99, "low"),
            (70.0, "medium"),
            (89.99, "medium"),
            (90.0, "high"),
            (99.99, "high"),
            (100.0, "overload"),
            (250.0, "overload"),
        ],
    )
    def test_band_edges(self, stress, band):
        assert classify_stress(stress) == band


class TestSystemStats:

    def test_empty_input_is_all_zero(self):
        stats = compute_system_stats([])
        assert stats.active_lines == 0
        assert stats.ssi == 0.0
        assert stats.avg_stress == 0.0
        assert stats.max_stress == 0.0
        assert stats.bands.model_dump() == {"low": 0, "medium": 0, "high": 0, "overload": 0}

    def test_all_cut_is_all_zero(self):
        assert compute_system_stats([None, None]).active_lines == 0

    def test_bands_and_moments(self):
        stats = compute_system_stats([50.0, 75.0, 95.0, 110.0])
        assert stats.bands.model_dump() == {"low": 1, "medium": 1, "high": 1, "overload": 1}
        assert stats.avg_stress == pytest.approx(82.5)
        assert stats.max_stress == 110.0
        assert stats.active_lines == 4

    def test_band_counts_sum_to_active_lines(self):
        stats = compute_system_stats([10, 20, 71, 91, 101, None, 150])
        assert sum(stats.bands.model_dump().values()) == stats.active_lines == 6

    def test_ssi_is_mean_squared_normalized_stress(self):
        stats = compute_system_stats([50.0, 100.0])
        assert stats.ssi == pytest.approx((0.25 + 1.0) / 2)

    def test_every_line_at_rating_gives_unit_ssi(self):
        assert compute_system_stats([100.0] * 7).ssi == pytest.approx(1.0)

    def test_cut_lines_excluded(self):
        stats = compute_system_stats([80.0, None, 40.0])
        assert stats.active_lines == 2
        assert stats.avg_stress == pytest.approx(60.0)

    def test_non_finite_counts_as_zero(self):
        stats = compute_system_stats([float("nan"), 60.0])
        assert stats.active_lines == 2
        assert stats.max_stress == 60.0
        assert stats.bands.low == 2

    def test_to_dict_rounding(self):
        data = compute_system_stats([33.333, 66.666]).to_dict()
        assert data["avgStress"] == 50.0
        assert data["maxStress"] == 66.7
        assert data["activeLines"] == 2
