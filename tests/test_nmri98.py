"""
Tests for the NMRI98 linear-exponential model and its gas kinetics.
"""

import logging

import numpy as np
import pytest

from decomodels import GasMix, InvalidParameterError, Nmri98Model
from decomodels.linear_exponential import linear_exponential_loading, linear_exponential_vec


class TestLinearExponentialKinetics:
    """Exponential uptake, linear elimination above the crossover."""

    def test_linear_elimination(self):
        """rate = 0.8 * (1.987 - 0.5) / 8 = 0.1487 bar/min."""
        result = linear_exponential_loading(3.0, 0.8, 1.013, 8.0, 0.5, 0.8, 1.0)
        assert result == pytest.approx(2.8513, abs=1e-4)

    def test_linear_elimination_floored_at_crossover(self):
        result = linear_exponential_loading(3.0, 0.8, 1.013, 8.0, 0.5, 0.8, 100.0)
        assert result == pytest.approx(1.513)

    def test_exponential_below_crossover(self):
        result = linear_exponential_loading(1.2, 0.8, 1.013, 8.0, 0.5, 0.8, 8.0)
        assert result == pytest.approx(1.0)

    def test_uptake_is_exponential(self):
        result = linear_exponential_loading(0.8, 2.4, 3.013, 8.0, 0.5, 0.8, 8.0)
        assert result == pytest.approx(1.6)

    def test_vectorized_matches_scalar(self):
        initial = np.array([3.0, 1.2, 0.8])
        half_times = np.array([8.0, 40.0, 120.0])
        crossovers = np.array([0.5, 0.3, 0.2])
        slopes = np.array([0.8, 0.5, 0.3])
        result = linear_exponential_vec(initial, 0.8, 1.013, half_times, crossovers, slopes, 2.0)
        expected = [
            linear_exponential_loading(p, 0.8, 1.013, h, x, s, 2.0)
            for p, h, x, s in zip(initial, half_times, crossovers, slopes)
        ]
        np.testing.assert_allclose(result, expected)


class TestParameters:
    """Out-of-range parameters are clamped with a warning."""

    def test_default_name(self):
        assert Nmri98Model().get_model_name() == "NMRI98 LEM (Conservatism: 3, Risk: 2%)"

    def test_three_compartments(self):
        assert Nmri98Model().num_compartments == 3

    def test_construction_clamps(self, caplog):
        with caplog.at_level(logging.WARNING, logger="decomodels.nmri98"):
            model = Nmri98Model(conservatism=9, max_dcs_risk=50.0, safety_factor=0.5)
        params = model.get_parameters()
        assert params.conservatism == 5
        assert params.max_dcs_risk == 10.0
        assert params.safety_factor == 1.0
        assert "clamped" in caplog.text

    def test_update_parameters_clamps(self):
        model = Nmri98Model()
        model.update_parameters(conservatism=-2, max_dcs_risk=1.0)
        assert model.get_parameters().conservatism == 0
        assert model.get_parameters().max_dcs_risk == 1.0

    def test_update_unknown_parameter(self):
        with pytest.raises(InvalidParameterError, match="Unknown NMRI98 parameters"):
            Nmri98Model().update_parameters(gradient_factor_low=0.3)

    def test_conservatism_shrinks_allowable(self):
        loose = Nmri98Model(conservatism=0).get_nmri98_compartment_data(1)
        strict = Nmri98Model(conservatism=5).get_nmri98_compartment_data(1)
        assert loose["allowable_supersaturation"] == pytest.approx(1.6 / 1.2)
        assert strict["allowable_supersaturation"] == pytest.approx(0.8 / 1.2)

    @pytest.mark.parametrize("number", [0, 4])
    def test_reject_compartment_index(self, number):
        with pytest.raises(InvalidParameterError, match="between 1 and 3"):
            Nmri98Model().get_nmri98_compartment_data(number)


class TestOxygenTracking:
    """Oxygen loading above threshold feeds the ceiling and the risk."""

    def test_no_excess_on_moderate_nitrox(self, dive):
        """25 m / 30 min on EAN32 keeps every compartment under its O2 threshold."""
        ean32 = GasMix(0.32)
        tracked = dive(Nmri98Model(enable_oxygen_tracking=True), 25.0, 30.0, gas_mix=ean32)
        untracked = dive(Nmri98Model(enable_oxygen_tracking=False), 25.0, 30.0, gas_mix=ean32)
        assert tracked.calculate_dcs_risk() == untracked.calculate_dcs_risk()

    def test_excess_raises_risk(self, dive):
        """EAN50 at 20 m for an hour pushes the intermediate compartment past 1.0 bar."""
        ean50 = GasMix(0.50)
        tracked = dive(Nmri98Model(enable_oxygen_tracking=True), 20.0, 60.0, gas_mix=ean50)
        untracked = dive(Nmri98Model(enable_oxygen_tracking=False), 20.0, 60.0, gas_mix=ean50)
        assert tracked.calculate_dcs_risk() > untracked.calculate_dcs_risk()
        assert tracked.get_nmri98_compartment_data(2)["oxygen_loading"] > 1.0

    def test_untracked_oxygen_stays_at_surface_value(self, dive):
        model = dive(Nmri98Model(enable_oxygen_tracking=False), 20.0, 30.0, gas_mix=GasMix(0.5))
        assert model.get_nmri98_compartment_data(1)["oxygen_loading"] == pytest.approx(0.21 * 1.013)

    def test_reset_restores_oxygen(self, dive):
        model = dive(Nmri98Model(), 20.0, 30.0, gas_mix=GasMix(0.5))
        model.reset_to_surface()
        assert model.get_nmri98_compartment_data(1)["oxygen_loading"] == pytest.approx(0.21 * 1.013)


class TestRisk:
    """Instantaneous and hazard-integral risk."""

    def test_hazard_accumulates_after_surfacing(self, dive):
        model = dive(Nmri98Model(), 40.0, 25.0)
        assert model.calculate_hazard_risk() == 0.0
        dive(model, 0.0, 2.0)
        assert model.get_nmri98_compartment_data(1)["accumulated_hazard"] > 0.0
        assert 0.0 < model.calculate_hazard_risk() <= 100.0

    def test_reset_clears_hazard(self, dive):
        model = dive(Nmri98Model(), 40.0, 25.0)
        dive(model, 0.0, 2.0)
        model.reset_to_surface()
        assert model.calculate_hazard_risk() == 0.0

    def test_deco_dive(self, dive):
        model = dive(Nmri98Model(), 40.0, 25.0)
        assert model.calculate_ceiling() > 0
        stops = model.calculate_decompression_stops()
        assert stops
        assert all(1 <= s.time <= 30 for s in stops)

    def test_model_status(self, dive):
        model = dive(Nmri98Model(), 30.0, 20.0)
        status = model.get_model_status()
        assert set(status) == {
            "model_name",
            "parameters",
            "dive_state",
            "ceiling",
            "can_ascend_directly",
            "dcs_risk",
            "hazard_risk",
            "compartments",
        }
        assert len(status["compartments"]) == 3
