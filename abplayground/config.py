"""Configuration for the social metrics A/B playground engine."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence

import structlog


@dataclass(frozen=True)
class MetricSpec:
    key: str
    label: str


METRICS: Sequence[MetricSpec] = (
    MetricSpec("DAU", "DAU"),
    MetricSpec("WAU", "WAU"),
    MetricSpec("Sessions", "Sessions"),
    MetricSpec("Logins", "Logins"),
    MetricSpec("Signups", "Signups"),
    MetricSpec("VideoViews", "Video Views"),
    MetricSpec("Shares", "Shares"),
    MetricSpec("Comments", "Comments"),
    MetricSpec("Likes", "Likes"),
)

METRIC_KEYS: Sequence[str] = tuple(m.key for m in METRICS)
METRIC_LABELS: Dict[str, str] = {m.key: m.label for m in METRICS}

GUARDRAIL_KEYS: Sequence[str] = ("DAU", "WAU", "Sessions", "Logins", "Signups")
SUCCESS_KEYS: Sequence[str] = ("VideoViews", "Shares", "Comments", "Likes")

# DAU is the assignment population; every per-user rate is relative to it.
ACTIVITY_KEY = "DAU"
WAU_KEY = "WAU"

# Control + experiment never take more than this share of daily traffic.
SPLIT_CAP = 0.98

# Reported confidence intervals are always two-sided 95%.
Z_CRITICAL_95 = 1.96

GOLDEN_GAMMA = 0x9E3779B9

DECISION_RULES: Sequence[str] = ("PRIMARY", "CO_PRIMARY", "ANY_OF")

DEFAULT_VAR_BOOST = 0.05     # inflates drift, seasonality and per-user noise


@dataclass
class GeneratorConfig:
    days: int = 90
    seed: int = 42
    var_boost: float = DEFAULT_VAR_BOOST


@dataclass
class SimulationConfig:
    split_control: float = 0.5
    split_experiment: float = 0.5
    test_len: int = 14
    enforce_no_decline: bool = True
    var_boost: float = DEFAULT_VAR_BOOST


@dataclass
class SizingConfig:
    alpha: float = 0.05
    power: float = 0.80
    mde_pct: float = 0.10       # MDE as a fraction of the control mean
    rule: str = "PRIMARY"
    candidates: List[str] = field(default_factory=lambda: list(SUCCESS_KEYS))
    primary: Optional[str] = None
    var_boost: float = DEFAULT_VAR_BOOST


def is_guardrail(key: str) -> bool:
    return key in GUARDRAIL_KEYS


def validate_metric_key(key: str) -> str:
    if key not in METRIC_KEYS:
        raise ValueError(f"Unknown metric key: {key!r}. Expected one of {list(METRIC_KEYS)}")
    return key


def configure_logging(level: int = 30) -> None:
    """Route structlog output to the console at ``level`` (30 = WARNING).

    The library never calls this itself; host applications and ad-hoc sessions do.
    """
    structlog.configure(
        processors=[structlog.processors.add_log_level, structlog.dev.ConsoleRenderer()],
        wrapper_class=structlog.make_filtering_bound_logger(level),
    )
