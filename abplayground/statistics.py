from __future__ import annotations

import math
import sys
from dataclasses import dataclass

import structlog

from .config import DEFAULT_VAR_BOOST, Z_CRITICAL_95

logger = structlog.get_logger()

NAN = float("nan")


@dataclass(frozen=True)
class ConfidenceInterval:
    lower: float
    upper: float


@dataclass(frozen=True)
class TestStatistics:
    __test__ = False  # keep pytest from collecting this as a test class

    mu_control: float
    mu_experiment: float
    diff: float
    standard_error: float
    z_score: float
    p_value: float
    confidence_interval: ConfidenceInterval
    relative_lift: float
    n_control: int
    n_experiment: int
    is_significant: bool
    valid: bool


def standard_normal_cdf(x: float) -> float:
    """Standard normal CDF (Abramowitz & Stegun 7.1.26 polynomial)."""
    t = 1.0 / (1.0 + 0.2316419 * abs(x))
    d = 0.3989423 * math.exp(-x * x / 2.0)
    prob = 1.0 - d * t * (
        0.319381530
        + t * (-0.356563782 + t * (1.781477937 + t * (-1.821255978 + t * 1.330274429)))
    )
    return prob if x >= 0 else 1.0 - prob


def two_tailed_p(z: float) -> float:
    """Two-sided p-value, floored at the smallest positive float so it never reads as exactly 0."""
    p = 2.0 * (1.0 - standard_normal_cdf(abs(z)))
    return max(p, sys.float_info.min)


def inverse_normal_cdf(p: float) -> float:
    """Inverse standard normal CDF (Peter J. Acklam's approximation).

    Returns NaN for p outside (0, 1), so sizing code can report "undefined"
    instead of failing.
    """
    if math.isnan(p) or p <= 0.0 or p >= 1.0:
        return NAN

    # Coefficients
    a1 = -39.69683028665376
    a2 = 220.9460984245205
    a3 = -275.9285104469687
    a4 = 138.3577518672690
    a5 = -30.66479806614716
    a6 = 2.506628277459239

    b1 = -54.47609879822406
    b2 = 161.5858368580409
    b3 = -155.6989798598866
    b4 = 66.80131188771972
    b5 = -13.28068155288572

    c1 = -0.007784894002430293
    c2 = -0.3223964580411365
    c3 = -2.400758277161838
    c4 = -2.549732539343734
    c5 = 4.374664141464968
    c6 = 2.938163982698783

    d1 = 0.007784695709041462
    d2 = 0.3224671290700398
    d3 = 2.445134137142996
    d4 = 3.754408661907416

    p_low = 0.02425
    p_high = 1 - p_low

    if p < p_low:
        q = math.sqrt(-2 * math.log(p))
        return (
            (((((c1 * q + c2) * q + c3) * q + c4) * q + c5) * q + c6)
            / ((((d1 * q + d2) * q + d3) * q + d4) * q + 1)
        )

    if p <= p_high:
        q = p - 0.5
        r = q * q
        return (
            ((((((a1 * r + a2) * r + a3) * r + a4) * r + a5) * r + a6) * q)
            / (((((b1 * r + b2) * r + b3) * r + b4) * r + b5) * r + 1)
        )

    # upper tail
    q = math.sqrt(-2 * math.log(1 - p))
    return -(
        (((((c1 * q + c2) * q + c3) * q + c4) * q + c5) * q + c6)
        / ((((d1 * q + d2) * q + d3) * q + d4) * q + 1)
    )


quantile = inverse_normal_cdf


def compute_stats(
    mu_c: float,
    lift_pct: float,
    n_c: int,
    n_t: int,
    var_boost: float = DEFAULT_VAR_BOOST,
    alpha: float = 0.05,
) -> TestStatistics:
    """Two-sample z-test on per-user means under quasi-Poisson variance.

    var = mean * (1 + var_boost) in each arm; the CI is always diff ± 1.96·SE
    regardless of ``alpha``, which only drives ``is_significant``.
    A zero-sized arm or zero SE yields NaN se/z/p/CI with ``valid=False``.
    """
    mu_t = mu_c * (1 + lift_pct)
    diff = mu_t - mu_c
    relative_lift = diff / mu_c if mu_c != 0 else NAN

    se = NAN
    if n_c > 0 and n_t > 0:
        var_c = mu_c * (1 + var_boost)
        var_t = mu_t * (1 + var_boost)
        se = math.sqrt(max(0.0, var_t / n_t + var_c / n_c))

    if math.isnan(se) or se == 0:
        logger.warning("stats_undefined", n_control=n_c, n_experiment=n_t, mu_control=mu_c)
        return TestStatistics(
            mu_control=mu_c,
            mu_experiment=mu_t,
            diff=diff,
            standard_error=NAN,
            z_score=NAN,
            p_value=NAN,
            confidence_interval=ConfidenceInterval(lower=NAN, upper=NAN),
            relative_lift=relative_lift,
            n_control=int(n_c),
            n_experiment=int(n_t),
            is_significant=False,
            valid=False,
        )

    z = diff / se
    p = two_tailed_p(z)
    moe = Z_CRITICAL_95 * se

    return TestStatistics(
        mu_control=mu_c,
        mu_experiment=mu_t,
        diff=diff,
        standard_error=se,
        z_score=z,
        p_value=p,
        confidence_interval=ConfidenceInterval(lower=diff - moe, upper=diff + moe),
        relative_lift=relative_lift,
        n_control=int(n_c),
        n_experiment=int(n_t),
        is_significant=p < alpha,
        valid=True,
    )


def compute_sample_size(
    sigma2: float,
    mde_abs: float,
    alpha: float = 0.05,
    power: float = 0.8,
) -> float:
    """Target n per arm for a two-sample difference in means (z-approx, equal n).

    n = 2 * (z_{1-α/2} + z_power)^2 * σ² / MDE², never below 2.
    Returns NaN when the inputs cannot be sized; callers show no recommendation.
    """
    z_alpha = inverse_normal_cdf(1 - alpha / 2)
    z_power = inverse_normal_cdf(power)
    if math.isnan(z_alpha) or math.isnan(z_power) or not mde_abs > 0 or not sigma2 > 0:
        logger.debug("sample_size_undefined", sigma2=sigma2, mde_abs=mde_abs, alpha=alpha, power=power)
        return NAN

    num = 2 * (z_alpha + z_power) ** 2 * sigma2
    n = math.ceil(num / (mde_abs * mde_abs))
    return max(2, n)


def compute_power(sigma2: float, mde_abs: float, n: int, alpha: float = 0.05) -> float:
    """Approximate two-sided power for detecting ``mde_abs`` with n per arm."""
    z_alpha = inverse_normal_cdf(1 - alpha / 2)
    if math.isnan(z_alpha) or math.isnan(mde_abs) or n <= 0 or not sigma2 > 0:
        return NAN

    se = math.sqrt(2 * sigma2 / n)
    lam = abs(mde_abs) / se
    pw = 1 - standard_normal_cdf(z_alpha - lam) + standard_normal_cdf(-z_alpha - lam)
    return max(0.0, min(1.0, pw))
