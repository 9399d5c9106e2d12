"""Export the dashboard payload for a simulated run as JSON.

The output feeds ``ci/validate_analytics.py``.

Usage:
    python -m src.analysis.export
    python -m src.analysis.export --out data/metrics.json --visitors 2000
"""

import argparse
import json
from pathlib import Path

from src.analysis.metrics import build_metrics_payload, summarize_experiment
from src.simulator.config import SimulationConfig
from src.simulator.engine import generate_traffic, load_traffic
from src.warehouse.store import EventStore


def export_payload(store: EventStore, include_test: bool = False) -> dict:
    payload = build_metrics_payload(store, include_test)
    data = payload.to_json_dict()
    data["experiment"] = summarize_experiment(payload).to_json_dict()
    return data


def main(args: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(description="Export dashboard metrics as JSON")
    parser.add_argument("--out", type=str, default="data/metrics.json", help="Output path")
    parser.add_argument("--visitors", type=int, default=500, help="Number of simulated visitors")
    parser.add_argument("--seed", type=int, default=42, help="Random seed")
    parser.add_argument("--include-test", action="store_true", help="Include test sessions")
    opts = parser.parse_args(args)

    store = EventStore()
    load_traffic(store, generate_traffic(SimulationConfig(num_visitors=opts.visitors, seed=opts.seed)))
    data = export_payload(store, opts.include_test)

    out = Path(opts.out)
    out.parent.mkdir(parents=True, exist_ok=True)
    out.write_text(json.dumps(data, indent=2))
    print(f"Wrote metrics for {data['summary']['uniqueSessions']['total']} sessions to {out}")


if __name__ == "__main__":
    main()
