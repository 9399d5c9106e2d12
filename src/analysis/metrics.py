"""Conversion metrics derived from the raw event log.

Nothing here is cached: every call reduces the event list it is handed.
Filtering of test sessions happens before events reach these functions.

    pageViews       = count of page_view events for the variant
    signups         = count of signup_success events for the variant
    conversionRate  = 100 * signups / pageViews   (0 when pageViews == 0)
"""

from datetime import datetime, timezone
from typing import TYPE_CHECKING, Iterable

from src.ab.experiment import VARIANTS
from src.collector.schemas import (
    AnalyticsEvent,
    ConversionMetrics,
    EventType,
    ExperimentSummary,
    MetricsData,
    MetricsSummary,
    TrafficSplit,
    UniqueSessions,
)

if TYPE_CHECKING:
    from src.warehouse.store import EventStore

DEFAULT_SIGNIFICANCE_THRESHOLD = 100


def conversion_rate(signups: int, page_views: int) -> float:
    return (signups / page_views) * 100 if page_views > 0 else 0.0


def conversion_metrics(events: Iterable[AnalyticsEvent]) -> dict[str, ConversionMetrics]:
    page_views = {v: 0 for v in VARIANTS}
    signups = {v: 0 for v in VARIANTS}
    for event in events:
        if event.type == EventType.PAGE_VIEW:
            page_views[event.variant] += 1
        elif event.type == EventType.SIGNUP_SUCCESS:
            signups[event.variant] += 1

    now = datetime.now(timezone.utc)
    return {
        v: ConversionMetrics(
            variant=v,
            page_views=page_views[v],
            signups=signups[v],
            conversion_rate=conversion_rate(signups[v], page_views[v]),
            last_updated=now,
        )
        for v in VARIANTS
    }


def unique_sessions(events: Iterable[AnalyticsEvent], variant: str | None = None) -> int:
    return len({e.session_id for e in events if variant is None or e.variant == variant})


def build_metrics_payload(store: "EventStore", include_test: bool = False) -> MetricsData:
    """Assemble the dashboard payload from a single snapshot of the store."""
    events, waitlist = store.snapshot(include_test)

    per_variant = {v: unique_sessions(events, v) for v in VARIANTS}
    total = unique_sessions(events)
    split = {
        v: (per_variant[v] / total) * 100 if total > 0 else 0.0
        for v in VARIANTS
    }

    return MetricsData(
        metrics=conversion_metrics(events),
        summary=MetricsSummary(
            total_events=len(events),
            total_waitlist_entries=len(waitlist),
            unique_sessions=UniqueSessions(A=per_variant["A"], B=per_variant["B"], total=total),
            traffic_split=TrafficSplit(A=split["A"], B=split["B"]),
        ),
    )


def summarize_experiment(
    payload: MetricsData,
    threshold: int = DEFAULT_SIGNIFICANCE_THRESHOLD,
) -> ExperimentSummary:
    """Dashboard verdict for the experiment.

    This is a session-count heuristic, not a statistical test: the result
    is labelled "Significant" once more than ``threshold`` unique sessions
    have been seen.
    """
    rate_a = payload.metrics["A"].conversion_rate
    rate_b = payload.metrics["B"].conversion_rate
    difference = abs(rate_a - rate_b)

    if rate_a == rate_b:
        leading = None
    else:
        leading = "A" if rate_a > rate_b else "B"

    sessions = payload.summary.unique_sessions.total
    overall = (
        round((payload.summary.total_waitlist_entries / sessions) * 100, 2)
        if sessions > 0 else 0.0
    )
    significant = sessions > threshold

    recommendations = []
    if not significant:
        recommendations.append(
            f"Continue collecting data for statistical significance (need {threshold}+ sessions)"
        )
    if leading is not None and difference > 1:
        recommendations.append(
            f"Variant {leading} shows {difference:.1f}% higher conversion rate"
        )

    return ExperimentSummary(
        leading_variant=leading,
        conversion_difference=difference,
        overall_conversion_rate=overall,
        significance="Significant" if significant else "Collecting Data",
        recommendations=recommendations,
    )
