"""
Tests for the ZH-L16C constants and gradient factor helpers.

Tests validate real mathematical behavior against hand-computed values using
ZH-L16C constants and GF formulas.
"""

import pytest

from decomodels.buhlmann_constants import (
    GF_DEFAULT,
    NUM_COMPARTMENTS,
    ZH_L16_HE_A,
    ZH_L16_HE_HALFTIMES,
    ZH_L16_N2_A,
    ZH_L16_N2_B,
    ZH_L16_N2_HALFTIMES,
    GradientFactors,
    blend_coefficients,
    ceiling_pressure_gf,
    gf_coefficients,
    interpolate_gf,
    m_value,
    m_value_gf,
    round_up_to_stop,
)
from decomodels.errors import InvalidParameterError


class TestTables:
    """ZH-L16C table shape and spot values."""

    def test_table_lengths(self):
        for table in (ZH_L16_N2_HALFTIMES, ZH_L16_HE_HALFTIMES, ZH_L16_N2_A, ZH_L16_N2_B, ZH_L16_HE_A):
            assert len(table) == NUM_COMPARTMENTS

    def test_zhl16c_values(self):
        """Compartment 1 and the C-variant compartment 8 coefficient."""
        assert ZH_L16_N2_HALFTIMES[0] == 5.0
        assert ZH_L16_N2_A[0] == 1.2599
        assert ZH_L16_N2_B[0] == 0.5050
        assert ZH_L16_N2_A[7] == 0.4701

    def test_half_times_increase(self):
        assert list(ZH_L16_N2_HALFTIMES) == sorted(ZH_L16_N2_HALFTIMES)


class TestGradientFactorsValidation:
    """GradientFactors dataclass validation and properties."""

    def test_default_is_30_85(self):
        assert GF_DEFAULT == GradientFactors(low=30.0, high=85.0)
        assert not GF_DEFAULT.is_standard

    def test_standard_gf(self):
        assert GradientFactors(100, 100).is_standard

    def test_equal_low_and_high(self):
        gf = GradientFactors(85, 85)
        assert gf.low == gf.high

    def test_zero_low_is_valid(self):
        assert GradientFactors(0, 50).low == 0

    def test_reject_low_above_high(self):
        with pytest.raises(InvalidParameterError, match="cannot be greater"):
            GradientFactors(low=90, high=50)

    def test_reject_negative_low(self):
        with pytest.raises(InvalidParameterError, match="Gradient factor low must be between 0 and 100"):
            GradientFactors(low=-5, high=85)

    def test_reject_high_above_100(self):
        with pytest.raises(InvalidParameterError, match="Gradient factor high must be between 0 and 100"):
            GradientFactors(low=30, high=110)


class TestMValues:
    """M-value line M(P) = a*P + b and its GF-adjusted version."""

    def test_m_value_compartment_1_at_surface(self):
        assert m_value(1.2599, 0.5050, 1.013) == pytest.approx(1.2599 * 1.013 + 0.5050)

    def test_m_value_grows_with_pressure(self):
        assert m_value(0.5933, 0.8434, 4.0) > m_value(0.5933, 0.8434, 2.0)

    def test_gf_100_is_standard_m_value(self):
        assert m_value_gf(1.2599, 0.5050, 2.0, 1.0) == pytest.approx(m_value(1.2599, 0.5050, 2.0))

    def test_gf_0_is_ambient(self):
        assert m_value_gf(1.2599, 0.5050, 2.0, 0.0) == pytest.approx(2.0)

    def test_gf_85_at_surface(self):
        """1.013 + 0.85 * (1.78128 - 1.013) = 1.66604."""
        assert m_value_gf(1.2599, 0.5050, 1.013, 0.85) == pytest.approx(1.66604, abs=1e-4)

    def test_gf_never_exceeds_m_value(self):
        for gf in (0.3, 0.85, 1.0, 1.2):
            assert m_value_gf(0.2327, 0.9653, 1.013, gf) <= m_value(0.2327, 0.9653, 1.013) + 1e-12

    def test_gf_coefficients_match_m_value_gf(self):
        slope, intercept = gf_coefficients(0.7562, 0.7825, 0.6)
        assert slope * 3.0 + intercept == pytest.approx(m_value_gf(0.7562, 0.7825, 3.0, 0.6))

    def test_gf_coefficients_standard(self):
        slope, intercept = gf_coefficients(1.2599, 0.5050, 1.0)
        assert slope == pytest.approx(1.2599)
        assert intercept == pytest.approx(0.5050)


class TestCeilingPressure:
    """Inverting the GF-adjusted M-value line."""

    def test_standard_ceiling(self):
        """GF 100: P = (tissue - b) / a."""
        assert ceiling_pressure_gf(1.2599, 0.5050, 2.0, 1.0) == pytest.approx((2.0 - 0.5050) / 1.2599)

    def test_lower_gf_gives_deeper_ceiling(self):
        assert ceiling_pressure_gf(1.0, 0.6514, 3.6, 0.3) > ceiling_pressure_gf(1.0, 0.6514, 3.6, 0.85)

    def test_unloaded_tissue_gives_zero(self):
        assert ceiling_pressure_gf(1.2599, 0.5050, 0.3, 0.85) == 0.0

    def test_ceiling_solves_m_value_gf(self):
        p = ceiling_pressure_gf(1.0, 0.6514, 3.6, 0.3)
        assert m_value_gf(1.0, 0.6514, p, 0.3) == pytest.approx(3.6)


class TestInterpolationAndRounding:
    """GF interpolation between first stop and surface, stop-grid rounding."""

    def test_high_at_surface(self):
        assert interpolate_gf(GF_DEFAULT, 0.0, 9.0) == pytest.approx(85.0)

    def test_low_at_first_stop(self):
        assert interpolate_gf(GF_DEFAULT, 9.0, 9.0) == pytest.approx(30.0)

    def test_midpoint(self):
        assert interpolate_gf(GF_DEFAULT, 4.5, 9.0) == pytest.approx(57.5)

    def test_clamped_below_first_stop(self):
        assert interpolate_gf(GF_DEFAULT, 18.0, 9.0) == pytest.approx(30.0)

    def test_no_first_stop_uses_high(self):
        assert interpolate_gf(GF_DEFAULT, 12.0, 0.0) == pytest.approx(85.0)

    @pytest.mark.parametrize(
        "depth,expected",
        [(18.3, 21.0), (18.0, 18.0), (0.1, 3.0), (0.0, 0.0), (-2.0, 0.0)],
    )
    def test_round_up_to_stop(self, depth, expected):
        assert round_up_to_stop(depth) == expected

    def test_blend_equal_loadings_averages(self):
        a, b = blend_coefficients(1.0, 1.0, (1.0, 0.5), (2.0, 0.7))
        assert a == pytest.approx(1.5)
        assert b == pytest.approx(0.6)

    def test_blend_nothing_loaded_uses_nitrogen(self):
        assert blend_coefficients(0.0, 0.0, (1.0, 0.5), (2.0, 0.7)) == (1.0, 0.5)
