"""Variant assignment and session identifiers.

Assignment is random but sticky: a visitor is drawn into a bucket once,
and the result is cached client-side in a cookie. The decision itself is
a pure function of (existing cookie value, config, draw), so it can be
verified without touching any storage:

- Stickiness: a valid existing value is always returned unchanged
- Kill switch: a disabled experiment always yields variant A
- Threshold: draw < traffic_split["A"] yields A, anything else yields B
"""

import random
import string
import time

from src.ab.experiment import ABTestConfig, is_valid_variant

BASE36_ALPHABET = string.digits + string.ascii_lowercase
SESSION_SUFFIX_LENGTH = 9


def choose_variant(existing: str | None, config: ABTestConfig, draw: float) -> str:
    """Pick the variant for a visitor.

    ``draw`` is a uniform value in [0, 100). The boundary is half-open,
    so a draw equal to A's weight falls into B.
    """
    if is_valid_variant(existing):
        return existing
    if not config.enabled:
        return "A"
    return "A" if draw < config.traffic_split["A"] else "B"


def draw_percentage(rng: random.Random | None = None) -> float:
    return (rng or random).random() * 100


def random_base36(length: int, rng: random.Random | None = None) -> str:
    rng = rng or random
    return "".join(rng.choice(BASE36_ALPHABET) for _ in range(length))


def now_millis() -> int:
    return int(time.time() * 1000)


def generate_session_id(now_ms: int | None = None, rng: random.Random | None = None) -> str:
    """Build a ``<epoch-millis>-<base36>`` session identifier."""
    if now_ms is None:
        now_ms = now_millis()
    return f"{now_ms}-{random_base36(SESSION_SUFFIX_LENGTH, rng)}"


def generate_record_id(prefix: str, now_ms: int | None = None, rng: random.Random | None = None) -> str:
    """Build ids like ``evt_1700000000000_k3j9x0a1b`` for events and waitlist rows."""
    if now_ms is None:
        now_ms = now_millis()
    return f"{prefix}_{now_ms}_{random_base36(SESSION_SUFFIX_LENGTH, rng)}"
