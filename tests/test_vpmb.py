"""
Tests for the VPM-B bubble model.
"""

import logging

import pytest

from decomodels import InvalidParameterError, VpmbModel
from decomodels.vpmb import (
    CONSERVATISM_RADIUS_FACTORS,
    allowable_gradient,
    crushed_radius,
)


class TestBubbleMechanics:
    """Pure radius and gradient functions."""

    def test_no_crushing_keeps_radius(self):
        assert crushed_radius(0.55, 0.0) == pytest.approx(0.55)

    def test_crushing_shrinks_radius(self):
        assert crushed_radius(0.55, 3.0) < crushed_radius(0.55, 1.0) < 0.55

    def test_gradient_inverse_to_radius(self):
        assert allowable_gradient(0.5) == pytest.approx(2 * allowable_gradient(1.0))

    def test_gradient_value(self):
        """2 * 0.0179 * (0.257 - 0.0179) / (0.257 * 0.55e-6) Pa in bar."""
        expected = 2 * 0.0179 * (0.257 - 0.0179) / (0.257 * 0.55e-6) / 1e5
        assert allowable_gradient(0.55) == pytest.approx(expected)


class TestConservatism:
    """Integer levels 0-5, clamped with a warning."""

    def test_default_level_and_name(self):
        model = VpmbModel()
        assert model.get_conservatism() == 3
        assert model.get_model_name() == "VPM-B+3"

    def test_radius_scaled_by_level(self):
        model = VpmbModel(conservatism=3)
        assert model.get_critical_radius(1) == pytest.approx(0.55 * CONSERVATISM_RADIUS_FACTORS[3])

    def test_level_zero_uses_base_radius(self):
        assert VpmbModel(conservatism=0).get_critical_radius(16) == pytest.approx(0.55)

    def test_out_of_range_level_is_clamped(self, caplog):
        with caplog.at_level(logging.WARNING, logger="decomodels.vpmb"):
            model = VpmbModel(conservatism=9)
        assert model.get_conservatism() == 5
        assert "clamped" in caplog.text

    def test_set_conservatism_rescales_radii(self):
        model = VpmbModel(conservatism=3)
        model.set_conservatism(0)
        assert model.get_critical_radius(1) == pytest.approx(0.55)
        assert model.get_model_name() == "VPM-B+0"

    def test_higher_conservatism_deeper_ceiling(self, dive):
        low = dive(VpmbModel(conservatism=0), 45.0, 30.0)
        high = dive(VpmbModel(conservatism=5), 45.0, 30.0)
        assert high.calculate_ceiling() >= low.calculate_ceiling()

    @pytest.mark.parametrize("number", [0, 17])
    def test_reject_compartment_index(self, number):
        with pytest.raises(InvalidParameterError, match="between 1 and 16"):
            VpmbModel().get_critical_radius(number)


class TestBubbleState:
    """Crushing, gradients and bubble counts through a dive."""

    def test_descent_crushes_nuclei(self, dive):
        model = VpmbModel()
        before = model.get_critical_radius(1)
        dive(model, 30.0, 10.0)
        assert model.get_critical_radius(1) < before
        assert model.get_allowable_gradient(1) > allowable_gradient(before)

    def test_no_bubbles_before_supersaturation(self, dive):
        model = dive(VpmbModel(), 30.0, 10.0)
        assert model.calculate_bubble_count(1) == 0.0

    def test_bubbles_after_surfacing(self, dive):
        model = dive(VpmbModel(), 40.0, 25.0)
        dive(model, 0.0, 2.0)
        assert model.calculate_bubble_count(1) > 0.0

    def test_reset_clears_crushing(self, dive):
        model = dive(VpmbModel(), 40.0, 25.0)
        model.reset_to_surface()
        data = model.get_vpmb_compartment_data(1)
        assert data["max_crushing_pressure"] == 0.0
        assert data["critical_radius"] == pytest.approx(data["initial_critical_radius"])

    def test_compartment_data_fields(self):
        data = VpmbModel().get_vpmb_compartment_data(4)
        assert data["number"] == 4
        assert data["bubble_count"] == 0.0
        assert data["allowable_gradient"] > 0


class TestDecompression:
    """Ceilings by iterative search, stops by binary search."""

    def test_deep_dive_needs_stops(self, dive):
        model = dive(VpmbModel(), 45.0, 30.0)
        assert model.calculate_ceiling() > 0
        stops = model.calculate_decompression_stops()
        assert stops
        assert all(s.depth % 3 == 0 and s.time >= 1 for s in stops)

    def test_ceiling_on_search_grid(self, dive):
        model = dive(VpmbModel(), 45.0, 30.0)
        ceiling = model.calculate_ceiling()
        assert ceiling / 0.3 == pytest.approx(round(ceiling / 0.3))

    def test_zero_risk_at_surface(self):
        assert VpmbModel().calculate_dcs_risk() == 0.0

    def test_risk_after_direct_ascent(self, dive):
        model = dive(VpmbModel(), 45.0, 30.0)
        model.update_dive_state(depth=0.0)
        assert 0.0 < model.calculate_dcs_risk() <= 100.0
