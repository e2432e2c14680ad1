"""
Tests for the tissue-bubble diffusion model (TBDM).
"""

import pytest

from decomodels import InvalidParameterError, TbdmModel


class TestParameters:
    """Conservatism factor validated and raised on; thresholds follow it."""

    def test_defaults(self):
        model = TbdmModel()
        assert model.get_model_name() == "TBDM (Gernhardt-Lambertsen) CF:1"
        assert model.num_compartments == 16
        assert model.get_tbdm_compartment_data(1)["nucleation_threshold"] == 2.8

    @pytest.mark.parametrize("factor", [0.4, 2.5])
    def test_reject_conservatism_factor(self, factor):
        with pytest.raises(InvalidParameterError, match="between 0.5 and 2.0"):
            TbdmModel(conservatism_factor=factor)

    def test_invalid_update_leaves_parameters(self):
        model = TbdmModel()
        with pytest.raises(InvalidParameterError):
            model.update_parameters(conservatism_factor=3.0)
        assert model.get_parameters().conservatism_factor == 1.0
        assert model.get_tbdm_compartment_data(16)["nucleation_threshold"] == 1.15

    def test_reject_unknown_parameter(self):
        with pytest.raises(InvalidParameterError, match="Unknown TBDM parameters"):
            TbdmModel().update_parameters(atmospheric_pressure=0.9)

    def test_update_keeps_loadings(self, dive):
        model = dive(TbdmModel(), 30.0, 10.0)
        before = model.get_tbdm_compartment_data(1)["nitrogen_loading"]
        model.update_parameters(conservatism_factor=2.0)
        data = model.get_tbdm_compartment_data(1)
        assert data["nitrogen_loading"] == before
        assert data["nucleation_threshold"] == pytest.approx(1.4)

    @pytest.mark.parametrize("number", [0, 17])
    def test_reject_compartment_index(self, number):
        with pytest.raises(InvalidParameterError, match="between 1 and 16"):
            TbdmModel().get_tbdm_compartment_data(number)


class TestBubbleDynamics:
    """Nucleation above threshold, perfusion-driven elimination."""

    def test_no_bubbles_at_depth(self, dive):
        model = dive(TbdmModel(), 40.0, 25.0)
        assert model.calculate_bubble_risk() == 0.0

    def test_small_bubbles_dissolve_at_default_rate(self, dive):
        model = dive(TbdmModel(conservatism_factor=2.0), 40.0, 25.0)
        dive(model, 0.0, 1.0)
        assert model.calculate_bubble_risk() == 0.0

    def test_bubbles_form_above_threshold(self, dive):
        model = dive(TbdmModel(conservatism_factor=2.0, metabolic_bubble_rate=0.05), 40.0, 25.0)
        dive(model, 0.0, 1.0)
        assert model.get_tbdm_compartment_data(1)["bubble_volume_fraction"] > 0.001
        assert 0.0 < model.calculate_bubble_risk() <= 1.0

    def test_reset_clears_bubbles(self, dive):
        model = dive(TbdmModel(conservatism_factor=2.0, metabolic_bubble_rate=0.05), 40.0, 25.0)
        dive(model, 0.0, 1.0)
        model.reset_to_surface()
        assert model.calculate_bubble_risk() == 0.0


class TestDecompression:
    """Nucleation-threshold ceiling and off-gassing stop times."""

    def test_deco_dive_ceiling(self, dive):
        """Compartment 1 at 3.9188 bar minus its 2.8 bar threshold."""
        model = dive(TbdmModel(), 40.0, 25.0)
        assert model.calculate_ceiling() == pytest.approx(1.06, abs=0.02)
        assert not model.can_ascend_directly()

    def test_single_shallow_stop(self, dive):
        model = dive(TbdmModel(), 40.0, 25.0)
        stops = model.calculate_decompression_stops()
        assert [s.depth for s in stops] == [3.0]
        assert 21 <= stops[0].time <= 23

    def test_conservatism_deepens_ceiling_and_lengthens_stops(self, dive):
        base = dive(TbdmModel(), 40.0, 25.0)
        strict = dive(TbdmModel(conservatism_factor=2.0), 40.0, 25.0)
        assert strict.calculate_ceiling() > base.calculate_ceiling()
        strict_stops = strict.calculate_decompression_stops()
        assert strict_stops[-1].time >= base.calculate_decompression_stops()[-1].time
        assert all(1 <= s.time <= 30 for s in strict_stops)


class TestRisk:
    """Squared worst of nucleation and bubble-volume risk."""

    def test_zero_risk_when_fresh(self):
        assert TbdmModel().calculate_dcs_risk() == 0.0

    def test_risk_after_direct_ascent(self, dive):
        """(2.906 / 2.8 * 1.1) ** 2 * 45 from compartment 1."""
        model = dive(TbdmModel(), 40.0, 25.0)
        model.update_dive_state(depth=0.0)
        assert model.calculate_dcs_risk() == pytest.approx(58.6, abs=0.3)

    def test_warmer_body_raises_risk(self, dive):
        normal = dive(TbdmModel(), 30.0, 20.0)
        warm = dive(TbdmModel(body_temperature=39.0), 30.0, 20.0)
        normal.update_dive_state(depth=0.0)
        warm.update_dive_state(depth=0.0)
        assert warm.calculate_dcs_risk() > normal.calculate_dcs_risk()
