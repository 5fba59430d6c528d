"""Tests for per-metric results and the ship recommendation."""

from dataclasses import fields
from datetime import date

from abplayground.config import (
    DEFAULT_VAR_BOOST,
    GUARDRAIL_KEYS,
    METRIC_KEYS,
    METRIC_LABELS,
    METRICS,
    SUCCESS_KEYS,
    GeneratorConfig,
    MetricSpec,
    SimulationConfig,
    SizingConfig,
    configure_logging,
)
from abplayground.data_generator import generate_data
from abplayground.reporting import build_results_table, compute_metric_stats, generate_recommendation
from abplayground.simulation import simulate_ab
from abplayground.statistics import compute_stats

END = date(2024, 3, 31)


class TestMetricStats:
    def setup_method(self):
        self.data = generate_data(days=90, seed=42, end_date=END)
        self.sim = simulate_ab(self.data, seed=42, test_len=14)

    def test_every_metric_reported(self):
        stats = compute_metric_stats(self.sim, seed=42)
        assert set(stats) == set(METRIC_KEYS)
        for key in METRIC_KEYS:
            if key != "DAU":
                assert stats[key].valid, key

    def test_uses_aggregates(self):
        stats = compute_metric_stats(self.sim, seed=42, keys=["Likes"])
        agg = self.sim.aggregates["Likes"]
        assert stats["Likes"].mu_control == agg.mu_control
        assert stats["Likes"].n_control == agg.n_control

    def test_empty_arm_defaults_to_one(self):
        sim = simulate_ab(self.data, seed=42, split_control=0.0, split_experiment=0.5)
        stats = compute_metric_stats(sim, seed=42, keys=["Likes"])
        assert stats["Likes"].n_control == 1

    def test_table_orders_guardrails_first(self):
        table = build_results_table(compute_metric_stats(self.sim, seed=42))
        assert len(table) == len(METRIC_KEYS)
        assert list(table["class"].iloc[: len(GUARDRAIL_KEYS)]) == ["guardrail"] * len(GUARDRAIL_KEYS)
        assert table["metric"].iloc[-1] == "Likes"

    def test_recommendation_is_text(self):
        text = generate_recommendation(compute_metric_stats(self.sim, seed=42))
        assert text.startswith(("Do not ship", "Ship", "Not enough evidence"))


class TestRecommendation:
    def test_guardrail_decline_blocks_ship(self):
        stats = {
            "Sessions": compute_stats(1.8, -0.2, 100000, 100000),
            "Likes": compute_stats(0.7, 0.2, 100000, 100000),
        }
        assert generate_recommendation(stats).startswith("Do not ship")

    def test_success_win_ships(self):
        stats = {
            "Sessions": compute_stats(1.8, 0.0, 100000, 100000),
            "Likes": compute_stats(0.7, 0.2, 100000, 100000),
        }
        text = generate_recommendation(stats)
        assert text.startswith("Ship")
        assert "Likes" in text

    def test_inconclusive(self):
        stats = {"Likes": compute_stats(0.7, 0.0, 1000, 1000)}
        assert generate_recommendation(stats).startswith("Not enough evidence")

    def test_undefined_stats_ignored(self):
        stats = {"Sessions": compute_stats(1.8, -0.5, 0, 100)}
        assert generate_recommendation(stats).startswith("Not enough evidence")


class TestConfig:
    def test_defaults(self):
        assert GeneratorConfig().days == 90
        assert GeneratorConfig().var_boost == DEFAULT_VAR_BOOST
        assert SimulationConfig().test_len == 14
        assert SimulationConfig().split_control + SimulationConfig().split_experiment == 1.0
        assert SizingConfig().rule == "PRIMARY"
        assert SizingConfig().candidates == list(SUCCESS_KEYS)

    def test_sizing_candidates_not_shared(self):
        a = SizingConfig()
        a.candidates.append("DAU")
        assert SizingConfig().candidates == list(SUCCESS_KEYS)

    def test_metric_spec_is_key_and_label(self):
        assert [f.name for f in fields(MetricSpec)] == ["key", "label"]
        assert [m.key for m in METRICS] == list(METRIC_KEYS)
        assert METRIC_LABELS["VideoViews"] == "Video Views"

    def test_configure_logging(self):
        configure_logging(10)
        configure_logging()
