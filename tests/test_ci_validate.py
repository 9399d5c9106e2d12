"""Tests for CI analytics validation script and the metrics export."""

import json

import pytest

from ci.validate_analytics import validate
from src.analysis import export
from src.simulator.config import SimulationConfig
from src.simulator.engine import generate_traffic, load_traffic
from src.warehouse.store import EventStore


def _valid_data():
    """Return minimal valid dashboard data."""
    return {
        "metrics": {
            "A": {"variant": "A", "pageViews": 100, "signups": 20, "conversionRate": 20.0,
                  "lastUpdated": "2024-01-01T00:00:00Z"},
            "B": {"variant": "B", "pageViews": 80, "signups": 20, "conversionRate": 25.0,
                  "lastUpdated": "2024-01-01T00:00:00Z"},
        },
        "summary": {
            "totalEvents": 260,
            "totalWaitlistEntries": 40,
            "uniqueSessions": {"A": 60, "B": 40, "total": 100},
            "trafficSplit": {"A": 60.0, "B": 40.0},
        },
        "lastUpdated": "2024-01-01T00:00:00Z",
        "experiment": {
            "leadingVariant": "B",
            "conversionDifference": 5.0,
            "overallConversionRate": 40.0,
            "significance": "Collecting Data",
            "recommendations": [],
        },
    }


class TestValidate:
    def test_valid_data_passes(self):
        assert validate(_valid_data()) == []

    def test_missing_top_level_key(self):
        data = _valid_data()
        del data["summary"]
        errors = validate(data)
        assert any("summary" in e for e in errors)

    def test_missing_variant(self):
        data = _valid_data()
        del data["metrics"]["B"]
        assert any("variant B" in e for e in validate(data))

    def test_wrong_conversion_rate(self):
        data = _valid_data()
        data["metrics"]["A"]["conversionRate"] = 25.0
        assert any("conversionRate" in e for e in validate(data))

    def test_zero_page_views_means_zero_rate(self):
        data = _valid_data()
        data["metrics"]["A"].update(pageViews=0, signups=0, conversionRate=0.0)
        assert validate(data) == []

    def test_sessions_must_add_up(self):
        data = _valid_data()
        data["summary"]["uniqueSessions"]["total"] = 90
        assert any("uniqueSessions" in e for e in validate(data))

    def test_traffic_split_must_sum_to_100(self):
        data = _valid_data()
        data["summary"]["trafficSplit"]["B"] = 30.0
        assert any("trafficSplit" in e for e in validate(data))

    def test_total_events_too_small(self):
        data = _valid_data()
        data["summary"]["totalEvents"] = 10
        assert any("totalEvents" in e for e in validate(data))

    def test_invalid_significance_label(self):
        data = _valid_data()
        data["experiment"]["significance"] = "p<0.05"
        assert any("significance" in e for e in validate(data))

    def test_experiment_block_optional(self):
        data = _valid_data()
        del data["experiment"]
        assert validate(data) == []


class TestExport:
    def test_exported_payload_validates(self):
        store = EventStore()
        load_traffic(store, generate_traffic(SimulationConfig(num_visitors=200, seed=5)))
        assert validate(export.export_payload(store)) == []
        assert validate(export.export_payload(store, include_test=True)) == []

    def test_empty_store_validates(self):
        assert validate(export.export_payload(EventStore())) == []

    def test_cli_writes_file(self, tmp_path, capsys):
        out = tmp_path / "nested" / "metrics.json"
        export.main(["--out", str(out), "--visitors", "100"])
        data = json.loads(out.read_text())
        assert validate(data) == []
        assert "Wrote metrics" in capsys.readouterr().out


@pytest.mark.parametrize("key", ["metrics", "summary", "lastUpdated"])
def test_each_required_key_reported(key):
    data = _valid_data()
    del data[key]
    assert f"Missing top-level key: {key}" in validate(data)
