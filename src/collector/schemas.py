"""Record and response schemas for the landing-page collector.

Analytics events and waitlist entries share a common shape: a unique id,
a variant, a timestamp, optional client details, and a free-form
metadata bag. JSON uses camelCase names; Python attributes are snake_case.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from src.ab.assignment import generate_record_id

Variant = Literal["A", "B"]


class EventType(str, Enum):
    PAGE_VIEW = "page_view"
    SIGNUP_ATTEMPT = "signup_attempt"
    SIGNUP_SUCCESS = "signup_success"
    BUTTON_CLICK = "button_click"
    AB_TEST_ASSIGNMENT = "ab_test_assignment"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_json_dict(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class AnalyticsEvent(_CamelModel):
    """A single tracked interaction on a landing page."""

    id: str = Field(default_factory=lambda: generate_record_id("evt"))
    type: EventType
    variant: Variant
    timestamp: datetime = Field(default_factory=_utcnow)
    session_id: str
    user_agent: str | None = None
    referrer: str | None = None
    metadata: dict[str, Any] | None = None

    @property
    def is_test_session(self) -> bool:
        return bool(self.metadata and self.metadata.get("isTestSession"))


class WaitlistEntry(_CamelModel):
    """An email captured by the waitlist form. Emails are unique."""

    id: str = Field(default_factory=lambda: generate_record_id("wl"))
    email: str
    variant: Variant
    timestamp: datetime = Field(default_factory=_utcnow)
    user_agent: str | None = None
    referrer: str | None = None
    metadata: dict[str, Any] | None = None

    @property
    def session_id(self) -> str | None:
        if not self.metadata:
            return None
        return self.metadata.get("sessionId")

    @property
    def is_test_session(self) -> bool:
        return bool(self.metadata and self.metadata.get("isTestSession"))


class ConversionMetrics(_CamelModel):
    variant: Variant
    page_views: int
    signups: int
    conversion_rate: float
    last_updated: datetime = Field(default_factory=_utcnow)


class UniqueSessions(BaseModel):
    A: int = 0
    B: int = 0
    total: int = 0


class TrafficSplit(BaseModel):
    A: float = 0.0
    B: float = 0.0


class MetricsSummary(_CamelModel):
    total_events: int
    total_waitlist_entries: int
    unique_sessions: UniqueSessions
    traffic_split: TrafficSplit


class MetricsData(_CamelModel):
    """Payload behind the dashboard: per-variant metrics plus a summary."""

    metrics: dict[str, ConversionMetrics]
    summary: MetricsSummary
    last_updated: datetime = Field(default_factory=_utcnow)


class ExperimentSummary(_CamelModel):
    leading_variant: Variant | None
    conversion_difference: float
    overall_conversion_rate: float
    significance: Literal["Significant", "Collecting Data"]
    recommendations: list[str] = Field(default_factory=list)
