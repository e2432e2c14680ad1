"""
Tests for the folded RGBM model.
"""

import pytest

from decomodels import InvalidParameterError, RgbmFoldedModel
from decomodels.rgbm import compute_f_factor, repetitive_penalty


class TestSettings:
    """Conservatism is validated and raises; never clamped."""

    def test_defaults(self):
        model = RgbmFoldedModel()
        settings = model.get_rgbm_settings()
        assert settings.conservatism == 2
        assert settings.enable_repetitive_penalty
        assert model.get_model_name() == "RGBM (folded) - C2"

    @pytest.mark.parametrize("level", [-1, 6])
    def test_reject_conservatism(self, level):
        with pytest.raises(InvalidParameterError, match="RGBM conservatism must be between 0 and 5"):
            RgbmFoldedModel(conservatism=level)

    def test_invalid_update_leaves_settings(self):
        model = RgbmFoldedModel()
        with pytest.raises(InvalidParameterError):
            model.set_rgbm_settings(conservatism=7)
        assert model.get_rgbm_settings().conservatism == 2

    def test_reject_unknown_setting(self):
        with pytest.raises(InvalidParameterError, match="Unknown RGBM settings"):
            RgbmFoldedModel().set_rgbm_settings(gradient=3)

    def test_update_recomputes_f_factors(self):
        model = RgbmFoldedModel()
        model.set_rgbm_settings(conservatism=0)
        assert model.get_f_factor(1) == pytest.approx(1.0)

    @pytest.mark.parametrize("number", [0, 17])
    def test_reject_compartment_index(self, number):
        with pytest.raises(InvalidParameterError, match="between 1 and 16"):
            RgbmFoldedModel().get_f_factor(number)


class TestFFactor:
    """Microbubble reduction factor in [0.6, 1.0]."""

    def test_fresh_model(self):
        assert RgbmFoldedModel(conservatism=2).get_f_factor(1) == pytest.approx(0.9)

    def test_conservatism_scaling(self):
        assert compute_f_factor(5, 1000, 0) == pytest.approx(0.75)
        assert compute_f_factor(0, 1000, 0) == pytest.approx(1.0)

    def test_depth_scaling(self):
        assert compute_f_factor(0, 1000, 40) == pytest.approx(0.96)

    def test_clamped_to_minimum(self):
        assert compute_f_factor(5, 10000, 200) == pytest.approx(0.6)

    def test_max_depth_lowers_f_factor(self, dive):
        model = dive(RgbmFoldedModel(), 40.0, 10.0)
        assert model.get_f_factor(1) < 0.9


class TestRepetitivePenalty:
    """Dive count and surface interval penalty."""

    @pytest.mark.parametrize(
        "count,hours,expected",
        [(1, 0.0, 0.0), (2, 0.0, 0.1), (2, 3.0, 0.05), (5, 0.0, 0.3), (3, 6.0, 0.0)],
    )
    def test_penalty(self, count, hours, expected):
        assert repetitive_penalty(count, hours) == pytest.approx(expected)

    def test_model_penalty(self):
        model = RgbmFoldedModel()
        model.set_repetitive_dive_params(3, 1.0)
        assert model.get_repetitive_penalty() == pytest.approx(0.2 * (1 - 1 / 6))

    def test_disabled_penalty(self):
        model = RgbmFoldedModel(enable_repetitive_penalty=False)
        model.set_repetitive_dive_params(3, 1.0)
        assert model.get_repetitive_penalty() == 0.0

    def test_params_clamped(self):
        model = RgbmFoldedModel()
        model.set_repetitive_dive_params(0, -2.0)
        assert model.dive_count == 1
        assert model.surface_interval_hours == 0.0

    def test_penalty_raises_risk(self, dive):
        single = dive(RgbmFoldedModel(), 40.0, 25.0)
        repeat = RgbmFoldedModel()
        repeat.set_repetitive_dive_params(3, 0.5)
        dive(repeat, 40.0, 25.0)
        single.update_dive_state(depth=9.0)
        repeat.update_dive_state(depth=9.0)
        assert repeat.calculate_dcs_risk() > single.calculate_dcs_risk() > 0.0


class TestBubbleSeeds:
    """Seed growth while supersaturated and reset behavior."""

    def test_no_bubble_volume_when_fresh(self):
        assert RgbmFoldedModel().get_total_bubble_volume() == 0.0

    def test_seeds_grow_after_surfacing(self, dive):
        model = dive(RgbmFoldedModel(), 40.0, 25.0)
        dive(model, 0.0, 5.0)
        assert model.get_total_bubble_volume() > 0.0
        assert model.get_rgbm_compartment_data(1)["bubble_seed_count"] > 1000.0

    def test_reset_restores_seeds_keeps_repetitive_params(self, dive):
        model = RgbmFoldedModel()
        model.set_repetitive_dive_params(2, 1.0)
        dive(model, 40.0, 25.0)
        dive(model, 0.0, 5.0)
        model.reset_to_surface()

        assert model.get_total_bubble_volume() == 0.0
        assert model.get_f_factor(1) == pytest.approx(0.9)
        assert model.dive_count == 2

    def test_adjusted_m_value(self):
        data = RgbmFoldedModel().get_rgbm_compartment_data(1)
        assert data["adjusted_m_value"] == pytest.approx(data["m_value"] * 0.9)


class TestDecompression:
    """f-scaled M-value ceiling and bubble-extended stops."""

    def test_deco_dive(self, dive):
        model = dive(RgbmFoldedModel(), 40.0, 25.0)
        assert model.calculate_ceiling() > 0
        stops = model.calculate_decompression_stops()
        assert stops
        assert all(1 <= s.time <= 30 for s in stops)

    def test_more_conservative_deeper_ceiling(self, dive):
        liberal = dive(RgbmFoldedModel(conservatism=0), 40.0, 25.0)
        strict = dive(RgbmFoldedModel(conservatism=5), 40.0, 25.0)
        assert strict.calculate_ceiling() > liberal.calculate_ceiling()

    def test_ceiling_inverts_scaled_m_value(self):
        model = RgbmFoldedModel()
        c = model.compartments[0]
        c.nitrogen_loading = 2.5
        expected_pressure = (2.5 / c.f_factor - 0.5050) / 1.2599
        assert model.calculate_ceiling() == pytest.approx((expected_pressure - 1.013) * 10.0)

    def test_default_conservatism_short_dive_gets_shallow_stop(self, dive):
        """f = 0.9 * 0.98 puts compartment 1 just past its limit at 20 m / 5 min."""
        model = dive(RgbmFoldedModel(), 20.0, 5.0)
        assert model.calculate_ceiling() == pytest.approx(0.17, abs=0.02)
        assert [s.depth for s in model.calculate_decompression_stops()] == [3.0]

    def test_low_conservatism_short_dive_has_no_stops(self, dive):
        model = dive(RgbmFoldedModel(conservatism=1), 20.0, 5.0)
        assert model.calculate_ceiling() == 0.0
        assert model.calculate_decompression_stops() == []
