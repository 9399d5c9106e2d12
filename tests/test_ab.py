"""Tests for variant assignment and experiment definitions."""

import random
import re

import pytest

from src.ab.assignment import (
    choose_variant,
    draw_percentage,
    generate_record_id,
    generate_session_id,
)
from src.ab.experiment import (
    DEFAULT_AB_TEST,
    ABTestConfig,
    landing_path,
    variant_for_path,
)


class TestExperimentDefinition:
    def test_default_experiment_is_even_split(self):
        assert DEFAULT_AB_TEST.enabled
        assert DEFAULT_AB_TEST.traffic_split == {"A": 50.0, "B": 50.0}

    def test_weights_need_not_sum_to_100(self):
        config = ABTestConfig(traffic_split={"A": 30, "B": 30})
        assert config.traffic_split["A"] == 30

    def test_negative_weights_rejected(self):
        with pytest.raises(ValueError, match="negative"):
            ABTestConfig(traffic_split={"A": -1, "B": 50})

    def test_missing_variant_rejected(self):
        with pytest.raises(ValueError, match="missing"):
            ABTestConfig(traffic_split={"A": 100})

    def test_pinned_config(self):
        assert ABTestConfig.pinned("A").traffic_split == {"A": 100.0, "B": 0.0}
        assert ABTestConfig.pinned("B").traffic_split == {"A": 0.0, "B": 100.0}
        with pytest.raises(ValueError):
            ABTestConfig.pinned("C")

    def test_landing_paths(self):
        assert landing_path("A") == "/landing-a"
        assert landing_path("B") == "/landing-b"
        assert variant_for_path("/landing-b") == "B"
        assert variant_for_path("/landing-a/") == "A"
        assert variant_for_path("/pricing") is None


class TestChooseVariant:
    def test_existing_variant_is_sticky(self):
        """Once a valid variant exists, no config or draw can change it."""
        for existing in ("A", "B"):
            for config in (DEFAULT_AB_TEST, ABTestConfig(enabled=False), ABTestConfig.pinned("A")):
                for draw in (0.0, 49.9, 50.0, 99.9):
                    assert choose_variant(existing, config, draw) == existing

    def test_malformed_existing_is_ignored(self):
        assert choose_variant("C", DEFAULT_AB_TEST, 10.0) == "A"
        assert choose_variant("", DEFAULT_AB_TEST, 90.0) == "B"
        assert choose_variant("a", DEFAULT_AB_TEST, 90.0) == "B"

    def test_threshold_is_half_open(self):
        config = ABTestConfig(traffic_split={"A": 30, "B": 70})
        assert choose_variant(None, config, 30.0) == "B"
        assert choose_variant(None, config, 29.999999) == "A"

    def test_disabled_always_a(self):
        config = ABTestConfig(enabled=False, traffic_split={"A": 0, "B": 100})
        for draw in (0.0, 50.0, 99.99):
            assert choose_variant(None, config, draw) == "A"

    def test_zero_weight_never_assigns_a(self):
        config = ABTestConfig(traffic_split={"A": 0, "B": 100})
        assert choose_variant(None, config, 0.0) == "B"

    def test_full_weight_always_assigns_a(self):
        config = ABTestConfig(traffic_split={"A": 100, "B": 0})
        assert choose_variant(None, config, 99.999) == "A"

    def test_roughly_even_split(self):
        rng = random.Random(7)
        assignments = [choose_variant(None, DEFAULT_AB_TEST, draw_percentage(rng)) for _ in range(10000)]
        assert 4500 <= assignments.count("A") <= 5500

    def test_uneven_split(self):
        """90/10 split should produce roughly 90% in the heavy variant."""
        rng = random.Random(7)
        config = ABTestConfig(traffic_split={"A": 90, "B": 10})
        assignments = [choose_variant(None, config, draw_percentage(rng)) for _ in range(10000)]
        assert 8500 <= assignments.count("A") <= 9500


class TestIdentifiers:
    def test_session_id_format(self):
        session_id = generate_session_id(1700000000000, random.Random(1))
        assert re.fullmatch(r"1700000000000-[0-9a-z]{9}", session_id)

    def test_session_ids_differ(self):
        rng = random.Random(1)
        ids = {generate_session_id(1700000000000, rng) for _ in range(1000)}
        assert len(ids) == 1000

    def test_record_id_prefix(self):
        assert re.fullmatch(r"evt_\d+_[0-9a-z]{9}", generate_record_id("evt"))
        assert generate_record_id("wl", 5, random.Random(2)).startswith("wl_5_")
