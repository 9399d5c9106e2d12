"""Keeps visitors on the landing page they were assigned.

The variant cookie is authoritative and the URL is advisory: a visitor
assigned B who opens /landing-a is sent back to /landing-b. Adding
``direct_access`` to the query string bypasses the redirect and marks the
visit as a test session so it stays out of the default metrics.
"""

from dataclasses import dataclass
from enum import Enum

from src.ab.experiment import is_valid_variant, landing_path, variant_for_path

DIRECT_ACCESS_PARAM = "direct_access"


class RoutingAction(str, Enum):
    SERVE = "serve"
    REDIRECT = "redirect"
    SERVE_TEST = "serve_test"


@dataclass(frozen=True)
class RoutingDecision:
    action: RoutingAction
    location: str
    set_test_session: bool = False


def route_landing(path: str, variant_cookie: str | None, direct_access: bool) -> RoutingDecision:
    requested = variant_for_path(path)
    if requested is None:
        return RoutingDecision(RoutingAction.SERVE, path)

    if direct_access:
        return RoutingDecision(RoutingAction.SERVE_TEST, path, set_test_session=True)

    if is_valid_variant(variant_cookie) and variant_cookie != requested:
        return RoutingDecision(RoutingAction.REDIRECT, landing_path(variant_cookie))

    return RoutingDecision(RoutingAction.SERVE, path)
