"""Simulation engine that generates realistic landing-page traffic.

Each simulated visitor progresses through the waitlist funnel:
  ab_test_assignment -> page_view(s) -> button_click -> signup_attempt -> signup_success

At each stage the visitor may drop off based on configured probabilities.
Assignment goes through the same decision function the site uses, and
successful signups also produce a waitlist entry. A small share of
visitors are test sessions, flagged the way direct-access traffic is.
All randomness is seeded for full reproducibility.
"""

import random
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone

from src.ab.assignment import choose_variant, draw_percentage, random_base36
from src.ab.experiment import DEFAULT_AB_TEST, ABTestConfig, landing_path
from src.collector.schemas import AnalyticsEvent, EventType, WaitlistEntry
from src.errors import DuplicateEmailError
from src.simulator.config import SEED_WAITLIST, SimulationConfig
from src.warehouse.store import EventStore


@dataclass
class SimulatedTraffic:
    events: list[AnalyticsEvent] = field(default_factory=list)
    waitlist: list[WaitlistEntry] = field(default_factory=list)
    # Signups that reused an email already on the waitlist
    duplicate_signups: int = 0


def generate_traffic(
    config: SimulationConfig | None = None,
    ab_config: ABTestConfig = DEFAULT_AB_TEST,
    end_time: datetime | None = None,
) -> SimulatedTraffic:
    """Generate events and waitlist entries for ``config.num_visitors`` visitors.

    Events are returned sorted by timestamp. Ids depend on the seed only;
    pass ``end_time`` to pin the timestamps as well.
    """
    if config is None:
        config = SimulationConfig()

    rng = random.Random(config.seed)
    traffic = SimulatedTraffic()
    seen_emails: set[str] = set()
    if end_time is None:
        # End the window an hour ago so in-session offsets stay in the past
        end_time = datetime.now(timezone.utc) - timedelta(hours=1)
    start_time = end_time - timedelta(days=config.days)

    for _ in range(config.num_visitors):
        _simulate_visitor(start_time, config, ab_config, rng, traffic, seen_emails)

    traffic.events.sort(key=lambda e: e.timestamp)
    return traffic


def _simulate_visitor(
    start_time: datetime,
    config: SimulationConfig,
    ab_config: ABTestConfig,
    rng: random.Random,
    traffic: SimulatedTraffic,
    seen_emails: set[str],
) -> None:
    current_time = start_time + timedelta(seconds=rng.randint(0, config.days * 86400))
    session_id = f"sim-{random_base36(12, rng)}"
    variant = choose_variant(None, ab_config, draw_percentage(rng))
    is_test = rng.random() < config.test_session_share
    user_agent = rng.choice(config.user_agents)
    referrer = rng.choice(config.referrers) or None

    def emit(event_type: EventType, **metadata) -> None:
        if is_test:
            metadata["isTestSession"] = True
        traffic.events.append(AnalyticsEvent(
            id=f"evt_sim_{random_base36(12, rng)}",
            type=event_type,
            variant=variant,
            timestamp=current_time,
            session_id=session_id,
            user_agent=user_agent,
            referrer=referrer,
            metadata=metadata or None,
        ))

    # --- Assignment ---
    emit(EventType.AB_TEST_ASSIGNMENT, assignment="ab_test_redirect")

    # --- Page views ---
    for _ in range(rng.randint(config.min_page_views, config.max_page_views)):
        current_time += timedelta(seconds=rng.randint(1, 20))
        emit(EventType.PAGE_VIEW, url=landing_path(variant))

    # --- Click (funnel gate) ---
    if rng.random() >= config.prob_click:
        return
    current_time += timedelta(seconds=rng.randint(5, 120))
    emit(EventType.BUTTON_CLICK, buttonId=rng.choice(config.click_targets))

    # --- Signup attempt (funnel gate) ---
    prob_attempt = config.prob_signup_attempt_a if variant == "A" else config.prob_signup_attempt_b
    if rng.random() >= prob_attempt:
        return
    email = _random_email(config, rng)
    current_time += timedelta(seconds=rng.randint(10, 90))
    emit(EventType.SIGNUP_ATTEMPT, email=email)

    # --- Signup success (funnel gate) ---
    if rng.random() >= config.prob_signup_success:
        return
    if email in seen_emails:
        traffic.duplicate_signups += 1
        return
    seen_emails.add(email)
    current_time += timedelta(seconds=rng.randint(1, 5))
    emit(EventType.SIGNUP_SUCCESS, email=email)

    metadata = {"sessionId": session_id}
    if is_test:
        metadata["isTestSession"] = True
    traffic.waitlist.append(WaitlistEntry(
        id=f"wl_sim_{random_base36(12, rng)}",
        email=email,
        variant=variant,
        timestamp=current_time,
        user_agent=user_agent,
        referrer=referrer,
        metadata=metadata,
    ))


def _random_email(config: SimulationConfig, rng: random.Random) -> str:
    first = rng.choice(config.first_names)
    last = rng.choice(config.last_names)
    domain = rng.choice(config.email_domains)
    return f"{first}.{last}@{domain}"


def load_traffic(store: EventStore, traffic: SimulatedTraffic) -> tuple[int, int]:
    """Write simulated traffic into a store. Returns (entries added, duplicates skipped)."""
    for event in traffic.events:
        store.store_event(event)
    added = skipped = 0
    for entry in traffic.waitlist:
        try:
            store.store_waitlist_entry(entry)
            added += 1
        except DuplicateEmailError:
            skipped += 1
    return added, skipped


def seed_waitlist(store: EventStore) -> tuple[int, int]:
    """Add the fixed development entries. Returns (added, skipped)."""
    added = skipped = 0
    for email, variant in SEED_WAITLIST:
        try:
            store.store_waitlist_entry(WaitlistEntry(
                email=email,
                variant=variant,
                user_agent="Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36",
                referrer="https://google.com",
            ))
            added += 1
        except DuplicateEmailError:
            skipped += 1
    return added, skipped
