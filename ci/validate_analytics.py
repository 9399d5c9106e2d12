"""CI validation: verify exported dashboard metrics are complete and sane.

This script is the final gate in CI. It reads the exported metrics JSON
and asserts structural and arithmetic invariants. If anything is wrong,
it exits non-zero and fails the build.

Usage:
    python ci/validate_analytics.py
    python ci/validate_analytics.py --data data/metrics.json
"""

import argparse
import json
import sys
from pathlib import Path

REQUIRED_TOP_KEYS = {"metrics", "summary", "lastUpdated"}
VARIANTS = ("A", "B")
METRIC_FIELDS = {"variant", "pageViews", "signups", "conversionRate", "lastUpdated"}
SUMMARY_FIELDS = {"totalEvents", "totalWaitlistEntries", "uniqueSessions", "trafficSplit"}
SIGNIFICANCE_LABELS = ("Significant", "Collecting Data")
TOLERANCE = 0.01


def validate(data: dict) -> list[str]:
    """Return a list of validation errors (empty = pass)."""
    errors = []

    # --- Top-level structure ---
    for key in sorted(REQUIRED_TOP_KEYS):
        if key not in data:
            errors.append(f"Missing top-level key: {key}")

    if errors:
        return errors  # Can't continue without structure

    # --- Per-variant metrics ---
    metrics = data["metrics"]
    for variant in VARIANTS:
        m = metrics.get(variant)
        if m is None:
            errors.append(f"metrics missing variant {variant}")
            continue

        missing = METRIC_FIELDS - set(m.keys())
        if missing:
            errors.append(f"metrics {variant} missing fields: {sorted(missing)}")
            continue

        if m["variant"] != variant:
            errors.append(f"metrics {variant} labelled as {m['variant']}")
        if m["pageViews"] < 0 or m["signups"] < 0:
            errors.append(f"metrics {variant} has negative counts")

        expected = (m["signups"] / m["pageViews"]) * 100 if m["pageViews"] > 0 else 0.0
        if abs(m["conversionRate"] - expected) > TOLERANCE:
            errors.append(
                f"metrics {variant} conversionRate {m['conversionRate']} != {expected:.4f}"
            )

    # --- Summary ---
    summary = data["summary"]
    missing = SUMMARY_FIELDS - set(summary.keys())
    if missing:
        errors.append(f"summary missing fields: {sorted(missing)}")
        return errors

    sessions = summary["uniqueSessions"]
    if sessions.get("A", 0) + sessions.get("B", 0) != sessions.get("total", 0):
        errors.append(
            f"uniqueSessions A+B ({sessions.get('A', 0)}+{sessions.get('B', 0)}) "
            f"!= total ({sessions.get('total', 0)})"
        )

    split = summary["trafficSplit"]
    split_total = split.get("A", 0) + split.get("B", 0)
    if sessions.get("total", 0) > 0 and abs(split_total - 100) > TOLERANCE:
        errors.append(f"trafficSplit sums to {split_total:.2f}, expected 100")
    if sessions.get("total", 0) == 0 and split_total != 0:
        errors.append("trafficSplit must be 0 when there are no sessions")

    counted = sum(metrics[v]["pageViews"] + metrics[v]["signups"] for v in VARIANTS if v in metrics)
    if summary["totalEvents"] < counted:
        errors.append(
            f"totalEvents {summary['totalEvents']} < page views + signups ({counted})"
        )

    # --- Experiment verdict (optional) ---
    experiment = data.get("experiment")
    if experiment is not None:
        if experiment.get("significance") not in SIGNIFICANCE_LABELS:
            errors.append(f"Invalid significance label: {experiment.get('significance')}")
        leading = experiment.get("leadingVariant")
        if leading is not None and leading not in VARIANTS:
            errors.append(f"Invalid leading variant: {leading}")

    return errors


def main() -> None:
    parser = argparse.ArgumentParser(description="Validate exported dashboard metrics")
    parser.add_argument(
        "--data",
        default="data/metrics.json",
        help="Path to exported metrics JSON",
    )
    opts = parser.parse_args()

    path = Path(opts.data)
    if not path.exists():
        print(f"FAIL: {opts.data} not found. Run 'python -m src.analysis.export' first.")
        sys.exit(1)

    data = json.loads(path.read_text())
    errors = validate(data)

    if errors:
        print(f"FAIL: {len(errors)} validation error(s):")
        for e in errors:
            print(f"  - {e}")
        sys.exit(1)

    # Print summary on success
    summary = data["summary"]
    print("PASS: Dashboard metrics validated")
    print(f"  Events: {summary['totalEvents']:,}")
    print(f"  Sessions: {summary['uniqueSessions']['total']:,}")
    for variant in VARIANTS:
        m = data["metrics"][variant]
        print(f"  Variant {variant}: {m['signups']}/{m['pageViews']} ({m['conversionRate']:.2f}%)")


if __name__ == "__main__":
    main()
