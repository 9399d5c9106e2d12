"""CLI entrypoint: generate simulated landing-page traffic and summarize it.

Usage:
    python -m src.simulator.generate
    python -m src.simulator.generate --visitors 2000 --days 14
    python -m src.simulator.generate --split-a 70       # 70/30 traffic split
    python -m src.simulator.generate --seed-only        # fixed dev waitlist only
"""

import argparse

from src.ab.experiment import ABTestConfig
from src.analysis.metrics import build_metrics_payload, summarize_experiment
from src.simulator.config import SimulationConfig
from src.simulator.engine import generate_traffic, load_traffic, seed_waitlist
from src.warehouse.store import EventStore


def populate_store(opts: argparse.Namespace, store: EventStore) -> None:
    if opts.seed_only:
        added, skipped = seed_waitlist(store)
        print(f"Seeded waitlist: {added} added, {skipped} skipped (already exist)")
        return

    config = SimulationConfig(
        num_visitors=opts.visitors,
        days=opts.days,
        seed=opts.seed,
        test_session_share=opts.test_share,
    )
    ab_config = ABTestConfig(traffic_split={"A": opts.split_a, "B": 100 - opts.split_a})

    print(f"Generating traffic for {config.num_visitors} visitors over {config.days} days (seed={config.seed})...")
    traffic = generate_traffic(config, ab_config)
    print(f"Generated {len(traffic.events)} events, {len(traffic.waitlist)} waitlist entries")

    by_type: dict[str, int] = {}
    for e in traffic.events:
        by_type[e.type.value] = by_type.get(e.type.value, 0) + 1
    print("Event breakdown:")
    for etype, count in sorted(by_type.items()):
        print(f"  {etype}: {count}")

    added, skipped = load_traffic(store, traffic)
    print(f"Waitlist inserted: {added}, duplicates skipped: {skipped + traffic.duplicate_signups}")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Generate simulated landing-page traffic")
    parser.add_argument("--visitors", type=int, default=500, help="Number of visitors")
    parser.add_argument("--days", type=int, default=30, help="Simulation window in days")
    parser.add_argument("--seed", type=int, default=42, help="Random seed")
    parser.add_argument("--test-share", type=float, default=0.05, help="Share of test sessions")
    parser.add_argument("--split-a", type=float, default=50.0, help="Traffic percentage for variant A")
    parser.add_argument("--seed-only", action="store_true", help="Only add the fixed dev waitlist entries")
    return parser


def main(args: list[str] | None = None) -> None:
    opts = build_parser().parse_args(args)
    store = EventStore()
    populate_store(opts, store)

    payload = build_metrics_payload(store)
    summary = summarize_experiment(payload)
    print("\nConversion (test sessions excluded):")
    for variant, m in payload.metrics.items():
        print(f"  {variant}: {m.signups}/{m.page_views} = {m.conversion_rate:.2f}%")
    print(f"Unique sessions: {payload.summary.unique_sessions.total}")
    print(f"Leading variant: {summary.leading_variant or '-'} ({summary.significance})")
    print("Done.")


if __name__ == "__main__":
    main()
