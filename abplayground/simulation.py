from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Dict, Optional, Tuple

import pandas as pd
import structlog

from .config import ACTIVITY_KEY, GOLDEN_GAMMA, METRIC_KEYS, SPLIT_CAP, SimulationConfig, is_guardrail
from .data_generator import round_half_up
from .random_utils import XorShift32, box_muller, hash_str, mix_seed

logger = structlog.get_logger()

LIFT_MEAN = 0.10
LIFT_SD = 0.10
LIFT_BOUNDS = (-0.5, 2.0)
MIN_VARIANCE = 1e-9


@dataclass(frozen=True)
class AggregateResult:
    mu_control: float
    mu_experiment: float
    lift_pct: float
    n_control: int
    n_experiment: int
    days_in_test: int
    start_index: int
    true_lift: float


@dataclass(frozen=True)
class SimulationResult:
    sim_data: pd.DataFrame
    aggregates: Dict[str, AggregateResult]
    start_index: int
    test_len: int


def clamp(x: float, lo: float, hi: float) -> float:
    return max(lo, min(hi, x))


def control_column(key: str) -> str:
    return f"{key}_Control"


def experiment_column(key: str) -> str:
    return f"{key}_Experiment"


def _rate(data: pd.DataFrame, key: str) -> Optional[float]:
    users = float(data[ACTIVITY_KEY].sum())
    if users <= 0:
        return None
    return float(data[key].sum()) / users


def base_per_user(key: str, data: pd.DataFrame) -> float:
    """All-time per-DAU rate of ``key``; 0 for an empty series."""
    if len(data) == 0:
        return 0.0
    rate = _rate(data, key)
    return rate if rate is not None else 0.0


def base_per_user_until(key: str, data: pd.DataFrame, end_index: int) -> float:
    """Per-DAU rate over days strictly before ``end_index``, else the all-time rate."""
    head = data.iloc[: max(0, end_index)]
    if len(head) == 0:
        return base_per_user(key, data)
    rate = _rate(head, key)
    return rate if rate is not None else base_per_user(key, data)


def derive_data_driven_lift(key: str, data: pd.DataFrame, seed: int) -> float:
    """Deterministic "true" lift for ``key`` driven by the seed and the series totals.

    Regenerating the same series gives the same lift; a different series
    (e.g. another day count) moves it.
    """
    total = int(data[key].sum()) if len(data) else 0
    rng = XorShift32(mix_seed(seed ^ GOLDEN_GAMMA, hash_str(key), total))
    lift = LIFT_MEAN + LIFT_SD * box_muller(rng)
    return clamp(lift, *LIFT_BOUNDS)


def simulate_ab(
    data: pd.DataFrame,
    seed: int,
    split_control: Optional[float] = None,
    split_experiment: Optional[float] = None,
    test_len: Optional[int] = None,
    enforce_no_decline: Optional[bool] = None,
    var_boost: Optional[float] = None,
    cfg: Optional[SimulationConfig] = None,
) -> SimulationResult:
    """Simulate a daily traffic-split A/B test over the trailing ``test_len`` days.

    Each day, control and experiment receive ``floor(DAU * split)`` users. DAU
    cohorts are the assignment itself; every other metric draws its arm totals
    from a Gaussian around the pre-period per-user rate (experiment scaled by
    the metric's lift) with quasi-Poisson variance ``rate * (1 + var_boost)``.
    Every (metric, day) pair has its own RNG stream seeded from
    ``seed ^ hash(metric) ^ day``.

    Cohort columns are ``<metric>_Control`` / ``<metric>_Experiment`` and hold
    ``<NA>`` outside the test window. Parameters left as None come from
    ``cfg`` (default ``SimulationConfig()``).
    """
    cfg = cfg or SimulationConfig()
    split_control = cfg.split_control if split_control is None else split_control
    split_experiment = cfg.split_experiment if split_experiment is None else split_experiment
    test_len = cfg.test_len if test_len is None else test_len
    enforce_no_decline = cfg.enforce_no_decline if enforce_no_decline is None else enforce_no_decline
    var_boost = cfg.var_boost if var_boost is None else var_boost

    n_days = len(data)
    split_c = clamp(float(split_control), 0.0, 1.0)
    split_t = clamp(float(split_experiment), 0.0, 1.0)
    test_len = int(clamp(int(test_len), 1, n_days)) if n_days else 1
    start_index = max(0, n_days - test_len)

    out = data.copy()
    dau = [int(v) for v in data[ACTIVITY_KEY].tolist()] if n_days else []
    aggregates: Dict[str, AggregateResult] = {}

    for key in METRIC_KEYS:
        mu_pre = base_per_user_until(key, data, start_index)
        lift = derive_data_driven_lift(key, data, seed)
        if enforce_no_decline and is_guardrail(key):
            lift = max(0.0, lift)
        logger.debug("lift_derived", metric=key, lift=lift, mu_pre=mu_pre)

        control: list = [pd.NA] * n_days
        experiment: list = [pd.NA] * n_days
        sum_c = sum_t = 0
        ntot_c = ntot_t = 0

        key_hash = hash_str(key)
        for i in range(start_index, n_days):
            n_c = max(0, math.floor(dau[i] * split_c))
            n_t = max(0, math.floor(dau[i] * split_t))
            ntot_c += n_c
            ntot_t += n_t

            if key == ACTIVITY_KEY:
                control[i], experiment[i] = n_c, n_t
                sum_c += n_c
                sum_t += n_t
                continue

            rng = XorShift32(mix_seed(seed, key_hash, i))
            rate_t = mu_pre * (1 + lift)
            sd_c = math.sqrt(max(MIN_VARIANCE, mu_pre * (1 + var_boost) * n_c))
            sd_t = math.sqrt(max(MIN_VARIANCE, rate_t * (1 + var_boost) * n_t))

            sample_c = max(0, round_half_up(mu_pre * n_c + sd_c * box_muller(rng)))
            sample_t = max(0, round_half_up(rate_t * n_t + sd_t * box_muller(rng)))

            control[i], experiment[i] = sample_c, sample_t
            sum_c += sample_c
            sum_t += sample_t

        out[control_column(key)] = pd.array(control, dtype="Int64")
        out[experiment_column(key)] = pd.array(experiment, dtype="Int64")

        mu_c = sum_c / ntot_c if ntot_c > 0 else 0.0
        mu_t = sum_t / ntot_t if ntot_t > 0 else 0.0
        if ntot_c == 0 or ntot_t == 0:
            logger.warning("empty_arm", metric=key, n_control=ntot_c, n_experiment=ntot_t)

        aggregates[key] = AggregateResult(
            mu_control=mu_c,
            mu_experiment=mu_t,
            lift_pct=(mu_t / mu_c - 1) if mu_c > 0 else 0.0,
            n_control=ntot_c,
            n_experiment=ntot_t,
            days_in_test=max(1, n_days - start_index),
            start_index=start_index,
            true_lift=lift,
        )

    logger.info(
        "ab_simulated",
        seed=seed,
        split_control=split_c,
        split_experiment=split_t,
        test_len=test_len,
        start_index=start_index,
        enforce_no_decline=enforce_no_decline,
    )
    return SimulationResult(sim_data=out, aggregates=aggregates, start_index=start_index, test_len=test_len)


def set_split_pair(control: float, experiment: float, cap: float = SPLIT_CAP) -> Tuple[float, float]:
    """Clamp both splits to [0, 1] and rescale so their sum never exceeds ``cap``."""
    c0 = 0.0 if control is None or math.isnan(control) else clamp(float(control), 0.0, 1.0)
    t0 = 0.0 if experiment is None or math.isnan(experiment) else clamp(float(experiment), 0.0, 1.0)
    total = c0 + t0
    if total > cap:
        c0 = c0 / total * cap
        t0 = t0 / total * cap
    return c0, t0


def window_population(sim: SimulationResult) -> int:
    """Total baseline DAU over the test window."""
    return int(sim.sim_data[ACTIVITY_KEY].iloc[sim.start_index :].sum())


def estimated_arm_sizes(population: int, split_control: float, split_experiment: float) -> Tuple[int, int]:
    return round_half_up(population * split_control), round_half_up(population * split_experiment)


def remainder_fraction(split_control: float, split_experiment: float) -> float:
    return max(0.0, 1 - split_control - split_experiment)


def split_from_sample_size(n: float, population: int, cap: float = SPLIT_CAP) -> Optional[float]:
    """Per-arm traffic share that reaches ``n`` users over the window, or None."""
    if n is None or not math.isfinite(n) or population <= 0:
        return None
    return clamp(n / population, 0.0, cap)


def apply_sample_size_to_split(
    n: float, population: int, cap: float = SPLIT_CAP
) -> Optional[Tuple[float, float]]:
    """Equal control/experiment shares that hit ``n`` per arm, capped like ``set_split_pair``."""
    frac = split_from_sample_size(n, population, cap)
    if frac is None:
        logger.warning("split_not_applied", n=n, population=population)
        return None
    return set_split_pair(frac, frac, cap)
