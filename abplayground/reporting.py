from __future__ import annotations

from typing import Dict, Mapping, Optional, Sequence

import pandas as pd
import structlog

from .config import DEFAULT_VAR_BOOST, GUARDRAIL_KEYS, METRIC_KEYS, METRIC_LABELS, SUCCESS_KEYS, is_guardrail
from .simulation import SimulationResult, base_per_user, derive_data_driven_lift
from .statistics import TestStatistics, compute_stats

logger = structlog.get_logger()


def compute_metric_stats(
    sim: SimulationResult,
    seed: int,
    keys: Optional[Sequence[str]] = None,
    var_boost: float = DEFAULT_VAR_BOOST,
    alpha: float = 0.05,
) -> Dict[str, TestStatistics]:
    """Per-metric z-test on the simulated aggregates.

    A metric without an aggregate falls back to its all-time base rate and its
    derived lift; missing arm sizes count as 1.
    """
    keys = list(keys) if keys is not None else list(METRIC_KEYS)
    data = sim.sim_data
    out: Dict[str, TestStatistics] = {}
    for key in keys:
        agg = sim.aggregates.get(key)
        if agg is not None:
            mu_c, mu_t = agg.mu_control, agg.mu_experiment
        else:
            mu_c = base_per_user(key, data)
            mu_t = mu_c * (1 + derive_data_driven_lift(key, data, seed))
        lift_pct = (mu_t / mu_c - 1) if mu_c > 0 else 0.0
        n_c = (agg.n_control if agg else 0) or 1
        n_t = (agg.n_experiment if agg else 0) or 1
        out[key] = compute_stats(mu_c, lift_pct, n_c, n_t, var_boost=var_boost, alpha=alpha)
    return out


def build_results_table(stats_by_metric: Mapping[str, TestStatistics]) -> pd.DataFrame:
    """Guardrail rows first, then success rows, in registry order."""
    ordered = [k for k in (*GUARDRAIL_KEYS, *SUCCESS_KEYS) if k in stats_by_metric]
    rows = []
    for key in ordered:
        s = stats_by_metric[key]
        rows.append(
            {
                "metric": METRIC_LABELS.get(key, key),
                "class": "guardrail" if is_guardrail(key) else "success",
                "control_mean": s.mu_control,
                "experiment_mean": s.mu_experiment,
                "lift": s.relative_lift,
                "ci_lower": s.confidence_interval.lower,
                "ci_upper": s.confidence_interval.upper,
                "p_value": s.p_value,
                "z_score": s.z_score,
                "significant": s.is_significant,
            }
        )
    return pd.DataFrame(rows)


def generate_recommendation(stats_by_metric: Mapping[str, TestStatistics], alpha: float = 0.05) -> str:
    declined = [
        k for k, s in stats_by_metric.items()
        if is_guardrail(k) and s.valid and s.p_value < alpha and s.diff < 0
    ]
    wins = [
        k for k, s in stats_by_metric.items()
        if not is_guardrail(k) and s.valid and s.p_value < alpha and s.diff > 0
    ]
    logger.debug("recommendation_inputs", declined=declined, wins=wins)

    if declined:
        names = ", ".join(METRIC_LABELS.get(k, k) for k in declined)
        return (
            "Do not ship the experiment. Guardrail metrics declined with statistical "
            f"significance (alpha = {alpha:g}): {names}."
        )

    if wins:
        names = ", ".join(
            f"{METRIC_LABELS.get(k, k)} ({stats_by_metric[k].relative_lift * 100:+.2f}%, "
            f"p = {stats_by_metric[k].p_value:.4f})"
            for k in wins
        )
        return f"Ship the experiment. Success metrics improved significantly with no guardrail regressions: {names}."

    return (
        "Not enough evidence to ship. No success metric reached statistical significance "
        f"(alpha = {alpha:g}) and no guardrail regressed."
    )
