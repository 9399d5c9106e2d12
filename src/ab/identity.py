"""Visitor identity backed by cookies.

``CookieJar`` holds the cookies a request arrived with plus any writes
made while handling it; ``apply`` copies those writes onto the outgoing
response. ``VisitorIdentity`` layers the session and variant rules on top.
"""

import logging
import random
from dataclasses import dataclass
from typing import Mapping

from starlette.responses import Response

from src.ab.assignment import choose_variant, draw_percentage, generate_session_id
from src.ab.experiment import ABTestConfig, is_valid_variant

logger = logging.getLogger(__name__)

SESSION_COOKIE = "session_id"
VARIANT_COOKIE = "ab_test_variant"
TEST_SESSION_COOKIE = "test_session"

COOKIE_MAX_AGE = 30 * 24 * 60 * 60  # 30 days
TEST_SESSION_MAX_AGE = 24 * 60 * 60  # 1 day


@dataclass
class _CookieWrite:
    name: str
    value: str | None  # None means delete
    max_age: int = 0


class CookieJar:
    def __init__(self, incoming: Mapping[str, str] | None = None, secure: bool = False):
        self._values: dict[str, str] = dict(incoming or {})
        self._writes: list[_CookieWrite] = []
        self.secure = secure

    def get(self, name: str) -> str | None:
        return self._values.get(name)

    def set(self, name: str, value: str, max_age: int = COOKIE_MAX_AGE) -> None:
        self._values[name] = value
        self._writes.append(_CookieWrite(name, value, max_age))

    def delete(self, name: str) -> None:
        self._values.pop(name, None)
        self._writes.append(_CookieWrite(name, None))

    @property
    def pending(self) -> list[str]:
        return [w.name for w in self._writes]

    def apply(self, response: Response) -> Response:
        for write in self._writes:
            if write.value is None:
                response.delete_cookie(
                    write.name, path="/", secure=self.secure, samesite="strict",
                )
            else:
                response.set_cookie(
                    write.name,
                    write.value,
                    max_age=write.max_age,
                    path="/",
                    secure=self.secure,
                    samesite="strict",
                )
        return response


class VisitorIdentity:
    """Session id and experiment variant for one visitor."""

    def __init__(self, cookies: CookieJar, rng: random.Random | None = None):
        self.cookies = cookies
        self._rng = rng

    def get_or_create_session_id(self) -> str:
        session_id = self.cookies.get(SESSION_COOKIE)
        if session_id:
            return session_id
        session_id = generate_session_id(rng=self._rng)
        self.cookies.set(SESSION_COOKIE, session_id)
        logger.debug("Created session %s", session_id)
        return session_id

    def assign_variant(self, config: ABTestConfig) -> str:
        existing = self.get_current_variant()
        if existing is not None:
            return existing
        # Only draw when a fresh assignment is actually needed
        draw = draw_percentage(self._rng) if config.enabled else 0.0
        variant = choose_variant(None, config, draw)
        self.cookies.set(VARIANT_COOKIE, variant)
        logger.debug("Assigned variant %s (draw=%.3f)", variant, draw)
        return variant

    def get_current_variant(self) -> str | None:
        value = self.cookies.get(VARIANT_COOKIE)
        return value if is_valid_variant(value) else None

    def is_variant(self, variant: str) -> bool:
        return self.get_current_variant() == variant

    def is_test_session(self) -> bool:
        return self.cookies.get(TEST_SESSION_COOKIE) == "true"

    def mark_test_session(self) -> None:
        self.cookies.set(TEST_SESSION_COOKIE, "true", max_age=TEST_SESSION_MAX_AGE)

    def clear_all(self) -> None:
        self.cookies.delete(VARIANT_COOKIE)
        self.cookies.delete(SESSION_COOKIE)
