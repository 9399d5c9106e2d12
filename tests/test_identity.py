"""Tests for cookie-backed visitor identity."""

import random

from starlette.responses import Response

from src.ab.experiment import ABTestConfig, DEFAULT_AB_TEST
from src.ab.identity import (
    SESSION_COOKIE,
    TEST_SESSION_COOKIE,
    VARIANT_COOKIE,
    CookieJar,
    VisitorIdentity,
)


def _identity(cookies=None, seed=3):
    return VisitorIdentity(CookieJar(cookies), rng=random.Random(seed))


def _set_cookie_headers(response):
    return [v.decode() for k, v in response.raw_headers if k == b"set-cookie"]


class TestSessionId:
    def test_creates_and_persists(self):
        identity = _identity()
        session_id = identity.get_or_create_session_id()
        assert session_id
        assert identity.cookies.get(SESSION_COOKIE) == session_id
        assert identity.cookies.pending == [SESSION_COOKIE]

    def test_existing_session_never_regenerated(self):
        identity = _identity({SESSION_COOKIE: "123-abc"})
        assert identity.get_or_create_session_id() == "123-abc"
        assert identity.get_or_create_session_id() == "123-abc"
        assert identity.cookies.pending == []

    def test_repeat_calls_return_same_id(self):
        identity = _identity()
        assert identity.get_or_create_session_id() == identity.get_or_create_session_id()


class TestAssignVariant:
    def test_assignment_is_idempotent(self):
        identity = _identity()
        first = identity.assign_variant(DEFAULT_AB_TEST)
        for config in (ABTestConfig.pinned("A"), ABTestConfig.pinned("B"), ABTestConfig(enabled=False)):
            assert identity.assign_variant(config) == first

    def test_disabled_assigns_a(self):
        identity = _identity()
        assert identity.assign_variant(ABTestConfig(enabled=False, traffic_split={"A": 0, "B": 100})) == "A"
        assert identity.cookies.get(VARIANT_COOKIE) == "A"

    def test_pinned_config_is_deterministic(self):
        assert _identity().assign_variant(ABTestConfig.pinned("B")) == "B"
        assert _identity().assign_variant(ABTestConfig.pinned("A")) == "A"

    def test_malformed_cookie_triggers_fresh_assignment(self):
        identity = _identity({VARIANT_COOKIE: "Z"})
        assert identity.get_current_variant() is None
        assert identity.assign_variant(ABTestConfig.pinned("B")) == "B"
        assert identity.cookies.get(VARIANT_COOKIE) == "B"

    def test_existing_cookie_is_not_rewritten(self):
        identity = _identity({VARIANT_COOKIE: "B"})
        assert identity.assign_variant(ABTestConfig.pinned("A")) == "B"
        assert identity.cookies.pending == []


class TestCurrentVariant:
    def test_absent_is_none(self):
        identity = _identity()
        assert identity.get_current_variant() is None
        assert not identity.is_variant("A")
        assert not identity.is_variant("B")

    def test_is_variant(self):
        identity = _identity({VARIANT_COOKIE: "A"})
        assert identity.is_variant("A")
        assert not identity.is_variant("B")

    def test_clear_all_removes_both_cookies(self):
        identity = _identity({VARIANT_COOKIE: "A", SESSION_COOKIE: "1-x"})
        identity.clear_all()
        assert identity.get_current_variant() is None
        assert identity.cookies.get(SESSION_COOKIE) is None

    def test_test_session_flag(self):
        identity = _identity()
        assert not identity.is_test_session()
        identity.mark_test_session()
        assert identity.is_test_session()


class TestCookieJarApply:
    def test_written_cookies_carry_attributes(self):
        jar = CookieJar(secure=True)
        jar.set(VARIANT_COOKIE, "A")
        headers = _set_cookie_headers(jar.apply(Response()))
        assert len(headers) == 1
        cookie = headers[0]
        assert cookie.startswith("ab_test_variant=A")
        assert "Max-Age=2592000" in cookie
        assert "Path=/" in cookie
        assert "SameSite=strict" in cookie
        assert "Secure" in cookie

    def test_insecure_outside_production(self):
        jar = CookieJar(secure=False)
        jar.set(SESSION_COOKIE, "1-x")
        cookie = _set_cookie_headers(jar.apply(Response()))[0]
        assert "Secure" not in cookie

    def test_test_session_cookie_lasts_one_day(self):
        identity = _identity()
        identity.mark_test_session()
        cookie = _set_cookie_headers(identity.cookies.apply(Response()))[0]
        assert cookie.startswith(f"{TEST_SESSION_COOKIE}=true")
        assert "Max-Age=86400" in cookie

    def test_delete_expires_cookie(self):
        jar = CookieJar({SESSION_COOKIE: "1-x"})
        jar.delete(SESSION_COOKIE)
        cookie = _set_cookie_headers(jar.apply(Response()))[0]
        assert cookie.startswith('session_id=""')
        assert "Max-Age=0" in cookie
