"""Tests for the landing-page routing guard."""

from src.ab.routing import RoutingAction, route_landing


class TestRouteLanding:
    def test_first_visit_served(self):
        decision = route_landing("/landing-a", None, direct_access=False)
        assert decision.action == RoutingAction.SERVE
        assert decision.location == "/landing-a"
        assert not decision.set_test_session

    def test_matching_cookie_served(self):
        decision = route_landing("/landing-b", "B", direct_access=False)
        assert decision.action == RoutingAction.SERVE

    def test_mismatched_cookie_redirects(self):
        decision = route_landing("/landing-a", "B", direct_access=False)
        assert decision.action == RoutingAction.REDIRECT
        assert decision.location == "/landing-b"

        decision = route_landing("/landing-b", "A", direct_access=False)
        assert decision.location == "/landing-a"

    def test_direct_access_serves_as_test(self):
        decision = route_landing("/landing-a", "B", direct_access=True)
        assert decision.action == RoutingAction.SERVE_TEST
        assert decision.location == "/landing-a"
        assert decision.set_test_session

    def test_malformed_cookie_treated_as_absent(self):
        decision = route_landing("/landing-a", "Q", direct_access=False)
        assert decision.action == RoutingAction.SERVE

    def test_other_paths_untouched(self):
        for path in ("/", "/api/analytics", "/dashboard"):
            decision = route_landing(path, "B", direct_access=True)
            assert decision.action == RoutingAction.SERVE
            assert not decision.set_test_session
