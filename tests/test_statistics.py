"""Tests for normal-distribution helpers, the z-test and sample sizing."""

import math

import pytest

from abplayground.statistics import (
    compute_power,
    compute_sample_size,
    compute_stats,
    inverse_normal_cdf,
    quantile,
    standard_normal_cdf,
    two_tailed_p,
)


class TestNormalFunctions:
    def test_cdf_at_zero(self):
        assert standard_normal_cdf(0.0) == pytest.approx(0.5, abs=1e-6)

    @pytest.mark.parametrize("x", [0.1, 0.5, 1.0, 1.96, 2.5, 4.0, 8.0])
    def test_cdf_symmetry(self, x):
        assert standard_normal_cdf(-x) + standard_normal_cdf(x) == pytest.approx(1.0, abs=1e-12)

    def test_cdf_known_values(self):
        assert standard_normal_cdf(1.96) == pytest.approx(0.975, abs=1e-4)
        assert standard_normal_cdf(-1.0) == pytest.approx(0.158655, abs=1e-5)

    def test_two_tailed_p(self):
        assert two_tailed_p(0.0) == pytest.approx(1.0, abs=1e-6)
        assert two_tailed_p(1.96) == pytest.approx(0.05, abs=1e-3)
        assert two_tailed_p(-1.96) == two_tailed_p(1.96)
        assert 0.0 < two_tailed_p(12.0) < 1e-6

    def test_two_tailed_p_never_reaches_zero(self):
        for z in (8.5, 12.0, 40.0, -40.0):
            p = two_tailed_p(z)
            assert p > 0.0
            assert p < 1e-12
        assert math.isnan(two_tailed_p(float("nan")))

    def test_quantile_regression(self):
        assert abs(quantile(0.975) - 1.95996) < 0.02
        assert inverse_normal_cdf(0.975) == pytest.approx(1.959964, abs=1e-4)

    def test_quantile_branches(self):
        assert quantile(0.01) == pytest.approx(-2.326348, abs=1e-4)
        assert quantile(0.5) == pytest.approx(0.0, abs=1e-9)
        assert quantile(0.99) == pytest.approx(2.326348, abs=1e-4)

    @pytest.mark.parametrize("p", [0.0, 1.0, -0.2, 1.5, float("nan")])
    def test_quantile_out_of_range_is_nan(self, p):
        assert math.isnan(quantile(p))


class TestComputeStats:
    def test_known_values(self):
        s = compute_stats(mu_c=2.0, lift_pct=0.1, n_c=10000, n_t=10000, var_boost=0.05)
        assert s.valid
        assert s.mu_experiment == pytest.approx(2.2)
        assert s.diff == pytest.approx(0.2)
        assert s.standard_error == pytest.approx(0.021)
        assert s.z_score == pytest.approx(0.2 / 0.021)
        assert s.confidence_interval.lower == pytest.approx(0.2 - 1.96 * 0.021)
        assert s.confidence_interval.upper == pytest.approx(0.2 + 1.96 * 0.021)
        assert s.relative_lift == pytest.approx(0.1)
        assert s.is_significant

    def test_ci_fixed_at_95_regardless_of_alpha(self):
        a = compute_stats(1.5, 0.02, 5000, 5000, alpha=0.05)
        b = compute_stats(1.5, 0.02, 5000, 5000, alpha=0.01)
        assert a.confidence_interval == b.confidence_interval

    def test_no_lift(self):
        s = compute_stats(3.0, 0.0, 1000, 1000)
        assert s.z_score == 0.0
        assert s.p_value == pytest.approx(1.0, abs=1e-6)
        assert not s.is_significant

    def test_large_effect_keeps_positive_p_value(self):
        s = compute_stats(2.0, 0.5, 1_000_000, 1_000_000)
        assert s.z_score > 100
        assert 0.0 < s.p_value < 1e-12
        assert s.is_significant

    @pytest.mark.parametrize("n_c,n_t", [(0, 100), (100, 0), (0, 0)])
    def test_empty_arm_is_undefined(self, n_c, n_t):
        s = compute_stats(2.0, 0.1, n_c, n_t)
        assert not s.valid
        assert math.isnan(s.p_value)
        assert math.isnan(s.z_score)
        assert math.isnan(s.confidence_interval.lower)
        assert s.diff == pytest.approx(0.2)

    def test_zero_control_mean_is_undefined(self):
        s = compute_stats(0.0, 0.1, 100, 100)
        assert not s.valid
        assert math.isnan(s.relative_lift)


class TestSampleSize:
    def test_worked_example(self):
        # 2 * (1.95996 + 0.84162)^2 * 105 / 10^2 = 16.48 per arm (34 users in total)
        assert compute_sample_size(sigma2=105, mde_abs=10, alpha=0.05, power=0.8) == 17

    def test_floor_of_two(self):
        assert compute_sample_size(sigma2=1.0, mde_abs=1000.0) == 2

    @pytest.mark.parametrize(
        "kwargs",
        [
            dict(sigma2=105, mde_abs=0),
            dict(sigma2=105, mde_abs=-1),
            dict(sigma2=0, mde_abs=10),
            dict(sigma2=105, mde_abs=10, alpha=0.0),
            dict(sigma2=105, mde_abs=10, power=1.0),
            dict(sigma2=105, mde_abs=10, power=0.0),
        ],
    )
    def test_undefined_inputs_give_nan(self, kwargs):
        assert math.isnan(compute_sample_size(**kwargs))

    def test_monotone_in_mde(self):
        ns = [compute_sample_size(2.3, mde) for mde in (0.05, 0.1, 0.2, 0.4, 0.8)]
        assert all(a >= b for a, b in zip(ns, ns[1:]))
        assert compute_sample_size(2.3, 0.2) <= compute_sample_size(2.3, 0.1)

    def test_monotone_in_power(self):
        ns = [compute_sample_size(2.3, 0.1, power=p) for p in (0.5, 0.7, 0.8, 0.9, 0.99)]
        assert all(a <= b for a, b in zip(ns, ns[1:]))

    def test_smaller_alpha_needs_more(self):
        assert compute_sample_size(2.3, 0.1, alpha=0.0125) > compute_sample_size(2.3, 0.1, alpha=0.05)


class TestPower:
    def test_power_at_recommended_n(self):
        n = compute_sample_size(105, 10)
        assert compute_power(105, 10, n) >= 0.8
        assert compute_power(105, 10, n - 1) < 0.8

    def test_power_grows_with_n(self):
        assert compute_power(2.0, 0.05, 20000) > compute_power(2.0, 0.05, 2000)

    def test_invalid_power_inputs(self):
        assert math.isnan(compute_power(105, 10, 0))
        assert math.isnan(compute_power(0, 10, 100))

    def test_nan_effect_gives_nan_power(self):
        assert math.isnan(compute_power(105, float("nan"), 17))
        assert math.isnan(compute_power(2.0, float("nan"), 20000, alpha=0.01))
