"""Deterministic social-metrics generator and A/B inference / sample-size engine."""

from .config import (
    GUARDRAIL_KEYS,
    METRIC_KEYS,
    METRICS,
    SUCCESS_KEYS,
    GeneratorConfig,
    SimulationConfig,
    SizingConfig,
    configure_logging,
)
from .random_utils import XorShift32, box_muller, generate_seed, hash_str, mix_seed
from .statistics import (
    TestStatistics,
    compute_power,
    compute_sample_size,
    compute_stats,
    inverse_normal_cdf,
    quantile,
    standard_normal_cdf,
    two_tailed_p,
)
from .data_generator import generate_data, export_to_csv
from .simulation import (
    AggregateResult,
    SimulationResult,
    apply_sample_size_to_split,
    base_per_user,
    base_per_user_until,
    derive_data_driven_lift,
    set_split_pair,
    simulate_ab,
    split_from_sample_size,
    window_population,
)
from .decision_rules import DecisionRuleResult, SizingRow, size_decision_rule, size_single_metric
from .reporting import build_results_table, compute_metric_stats, generate_recommendation
