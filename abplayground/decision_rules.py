"""Multi-metric decision rules and sample-size recommendations.

PRIMARY sizes a single metric at the requested alpha. CO_PRIMARY (AND: every
metric must be significant) and ANY_OF (OR: at least one must be) both apply a
Bonferroni alpha / k across the k candidate metrics; CO_PRIMARY recommends the
largest per-metric n and ANY_OF the smallest. The ANY_OF figure is a
conservative heuristic, not an exact size for the OR test.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import List, Optional, Sequence

import pandas as pd
import structlog

from .config import DECISION_RULES, METRIC_LABELS, SUCCESS_KEYS, SizingConfig, validate_metric_key
from .simulation import base_per_user
from .statistics import NAN, compute_sample_size

logger = structlog.get_logger()

MIN_VARIANCE_OVERRIDE = 1e-12


@dataclass(frozen=True)
class SizingRow:
    key: str
    label: str
    mu: float
    sigma2: float
    mde_abs: float
    alpha_used: float
    n: float


@dataclass(frozen=True)
class DecisionRuleResult:
    rule: str
    primary: str
    alpha: float
    power: float
    mde_pct: float
    rows: List[SizingRow]
    recommended_n: float

    @property
    def primary_row(self) -> SizingRow:
        return next((r for r in self.rows if r.key == self.primary), self.rows[0])

    def to_frame(self) -> pd.DataFrame:
        return pd.DataFrame([r.__dict__ for r in self.rows])


def _size_row(
    data: pd.DataFrame,
    key: str,
    alpha: float,
    power: float,
    mde_pct: float,
    var_boost: float,
    var_override: Optional[float] = None,
) -> SizingRow:
    mu = base_per_user(key, data)
    if var_override is None:
        sigma2 = mu * (1 + var_boost)
    else:
        sigma2 = max(MIN_VARIANCE_OVERRIDE, float(var_override))
    mde_abs = mu * max(0.0, mde_pct)
    n = compute_sample_size(sigma2, mde_abs, alpha=alpha, power=power)
    if math.isnan(n):
        logger.warning("sample_size_undefined", metric=key, sigma2=sigma2, mde_abs=mde_abs, alpha=alpha, power=power)
    else:
        logger.debug("metric_sized", metric=key, n=n, alpha_used=alpha)
    return SizingRow(
        key=key,
        label=METRIC_LABELS.get(key, key),
        mu=mu,
        sigma2=sigma2,
        mde_abs=mde_abs,
        alpha_used=alpha,
        n=n,
    )


def size_decision_rule(
    data: pd.DataFrame,
    rule: Optional[str] = None,
    candidates: Optional[Sequence[str]] = None,
    primary: Optional[str] = None,
    alpha: Optional[float] = None,
    power: Optional[float] = None,
    mde_pct: Optional[float] = None,
    var_boost: Optional[float] = None,
    cfg: Optional[SizingConfig] = None,
) -> DecisionRuleResult:
    """Recommend n per arm for ``rule`` over the candidate metrics.

    Parameters left as None come from ``cfg`` (default ``SizingConfig()``);
    an empty candidate set means the success metrics. A primary outside the
    candidate set falls back to the first candidate. Metrics whose n is
    undefined are skipped when taking the max / min; if none can be sized the
    recommendation is NaN.
    """
    cfg = cfg or SizingConfig()
    rule = cfg.rule if rule is None else rule
    candidates = cfg.candidates if candidates is None else candidates
    primary = cfg.primary if primary is None else primary
    alpha = cfg.alpha if alpha is None else alpha
    power = cfg.power if power is None else power
    mde_pct = cfg.mde_pct if mde_pct is None else mde_pct
    var_boost = cfg.var_boost if var_boost is None else var_boost

    if rule not in DECISION_RULES:
        raise ValueError(f"Unknown decision rule: {rule!r}. Expected one of {list(DECISION_RULES)}")

    keys = [validate_metric_key(k) for k in (candidates if candidates else SUCCESS_KEYS)]
    if primary not in keys:
        primary = keys[0]

    k = max(1, len(keys))
    alpha_used = alpha if rule == "PRIMARY" else alpha / k
    rows = [_size_row(data, key, alpha_used, power, mde_pct, var_boost) for key in keys]

    if rule == "PRIMARY":
        recommended = next(r.n for r in rows if r.key == primary)
    else:
        defined = [r.n for r in rows if not math.isnan(r.n)]
        if not defined:
            recommended = NAN
        elif rule == "CO_PRIMARY":
            recommended = max(defined)
        else:
            recommended = min(defined)

    logger.info("decision_rule_sized", rule=rule, k=k, alpha_used=alpha_used, recommended_n=recommended)
    return DecisionRuleResult(
        rule=rule,
        primary=primary,
        alpha=alpha,
        power=power,
        mde_pct=mde_pct,
        rows=rows,
        recommended_n=recommended,
    )


def size_single_metric(
    data: pd.DataFrame,
    metric: str,
    alpha: Optional[float] = None,
    power: Optional[float] = None,
    mde_pct: Optional[float] = None,
    var_override: Optional[float] = None,
    var_boost: Optional[float] = None,
    cfg: Optional[SizingConfig] = None,
) -> SizingRow:
    """Ad-hoc sizing for one metric, optionally with an explicit per-user variance."""
    cfg = cfg or SizingConfig()
    alpha = cfg.alpha if alpha is None else alpha
    power = cfg.power if power is None else power
    mde_pct = cfg.mde_pct if mde_pct is None else mde_pct
    var_boost = cfg.var_boost if var_boost is None else var_boost

    validate_metric_key(metric)
    return _size_row(data, metric, alpha, power, mde_pct, var_boost, var_override=var_override)
