"""HTTP boundary for the landing-page experiment.

The application factory owns the process-wide state (event store, rate
limiters, settings) and hangs it off ``app.state`` so handlers and tests
share one explicit composition root instead of module globals.

Usage:
    uvicorn src.collector.app:app
"""

import asyncio
import json
import logging
import random
import time
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any, Callable

from fastapi import FastAPI, Query, Request
from fastapi.responses import JSONResponse, RedirectResponse
from starlette.responses import Response

from src.ab.experiment import ABTestConfig, is_valid_variant, landing_path
from src.ab.identity import (
    SESSION_COOKIE,
    VARIANT_COOKIE,
    CookieJar,
    VisitorIdentity,
)
from src.ab.routing import DIRECT_ACCESS_PARAM, RoutingAction, route_landing
from src.analysis.metrics import build_metrics_payload, summarize_experiment
from src.collector.rate_limit import (
    RateLimiter,
    build_rate_limiters,
    get_client_ip,
    sweep_forever,
)
from src.collector.schemas import AnalyticsEvent, EventType, WaitlistEntry
from src.collector.validation import (
    sanitize_metadata,
    sanitize_string,
    validate_email,
    validate_payload_size,
    validate_referrer,
    validate_user_agent,
    validate_variant,
)
from src.config import Settings, get_settings
from src.errors import AnalyticsError, DuplicateEmailError, RateLimitExceeded, ValidationFailed
from src.warehouse.store import EventStore

logger = logging.getLogger("app")

EVENT_TYPES = {t.value for t in EventType}

DUPLICATE_EMAIL_MESSAGE = (
    "Good news! You're already on our waitlist. We'll notify you as soon as we launch!"
)


def configure_logging(level: str) -> None:
    # Messages are already JSON; one object per line
    if not logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter("%(message)s"))
        logger.addHandler(handler)
    logger.setLevel(level.upper())


def _log(level: int, **fields: Any) -> None:
    logger.log(level, json.dumps(fields, default=str))


def create_app(
    settings: Settings | None = None,
    store: EventStore | None = None,
    clock: Callable[[], float] = time.time,
    rng: random.Random | None = None,
) -> FastAPI:
    settings = settings or get_settings()
    store = store if store is not None else EventStore()
    limiters = build_rate_limiters(settings, clock)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        configure_logging(settings.log_level)
        sweeper = asyncio.create_task(
            sweep_forever(limiters, settings.rate_limit_sweep_seconds)
        )
        _log(logging.INFO, event="startup", environment=settings.environment,
             rate_limiting=settings.rate_limiting_active)
        try:
            yield
        finally:
            sweeper.cancel()
            try:
                await sweeper
            except asyncio.CancelledError:
                pass

    app = FastAPI(title="Landing Page A/B Collector", version="0.1.0", lifespan=lifespan)
    app.state.settings = settings
    app.state.store = store
    app.state.rate_limiters = limiters
    app.state.rng = rng or random.Random()

    # --- Helpers bound to this app's state ---

    def identity_for(request: Request) -> VisitorIdentity:
        jar = CookieJar(request.cookies, secure=settings.is_production)
        return VisitorIdentity(jar, rng=app.state.rng)

    def is_test_request(request: Request, identity: VisitorIdentity) -> bool:
        return DIRECT_ACCESS_PARAM in request.query_params or identity.is_test_session()

    async def read_json(request: Request) -> dict:
        try:
            payload = await request.json()
        except ValueError:
            raise ValidationFailed("invalid_json", "Request body must be valid JSON")
        if not isinstance(payload, dict):
            raise ValidationFailed("invalid_json", "Request body must be a JSON object")
        return payload

    def check_size(payload: dict) -> None:
        if not validate_payload_size(payload, settings.max_payload_kb):
            raise ValidationFailed(
                "payload_too_large",
                f"Payload exceeds {settings.max_payload_kb:g}KB",
                status_code=413,
            )

    def limited_response(
        body: dict, limiter: RateLimiter, client: str, status_code: int = 200,
    ) -> JSONResponse:
        return JSONResponse(body, status_code=status_code, headers=limiter.headers(client))

    # --- Error mapping ---

    @app.exception_handler(AnalyticsError)
    async def analytics_error_handler(request: Request, exc: AnalyticsError):
        message = DUPLICATE_EMAIL_MESSAGE if isinstance(exc, DuplicateEmailError) else exc.message
        body: dict[str, Any] = {"error": message, "reason": exc.reason}
        headers: dict[str, str] = {}
        if isinstance(exc, RateLimitExceeded):
            body["retryAfter"] = exc.retry_after
            headers = {
                "Retry-After": str(exc.retry_after),
                "X-RateLimit-Limit": str(exc.limit),
                "X-RateLimit-Remaining": str(exc.remaining),
                "X-RateLimit-Reset": str(int(exc.reset_time * 1000)),
            }
        _log(logging.WARNING, event="rejected", path=request.url.path,
             reason=exc.reason, status=exc.status_code)
        return JSONResponse(body, status_code=exc.status_code, headers=headers)

    @app.exception_handler(Exception)
    async def unexpected_error_handler(request: Request, exc: Exception):
        _log(logging.ERROR, event="error", path=request.url.path,
             type=exc.__class__.__name__, detail=str(exc))
        return JSONResponse({"error": "internal_error"}, status_code=500)

    # --- Routing consistency guard + request log ---

    @app.middleware("http")
    async def landing_guard(request: Request, call_next):
        start = time.time()
        decision = route_landing(
            request.url.path,
            request.cookies.get(VARIANT_COOKIE),
            DIRECT_ACCESS_PARAM in request.query_params,
        )
        if decision.action == RoutingAction.REDIRECT:
            response: Response = RedirectResponse(decision.location, status_code=307)
        else:
            response = await call_next(request)
            if decision.set_test_session:
                identity = identity_for(request)
                identity.mark_test_session()
                identity.cookies.apply(response)
        _log(logging.INFO, event="request", method=request.method, path=request.url.path,
             status=response.status_code, routing=decision.action.value,
             duration_ms=int((time.time() - start) * 1000))
        return response

    # --- Pages ---

    @app.get("/health")
    def health():
        events, waitlist = store.counts()
        return {"status": "ok", "events": events, "waitlistEntries": waitlist}

    @app.get("/")
    def root(request: Request):
        identity = identity_for(request)
        session_id = identity.get_or_create_session_id()
        already_assigned = identity.get_current_variant() is not None
        variant = identity.assign_variant(settings.ab_test_config())

        metadata: dict[str, Any] = {
            "url": str(request.url),
            "referrer": validate_referrer(request.headers.get("referer")).sanitized,
            "assignment": "ab_test_redirect",
        }
        if identity.is_test_session():
            metadata["isTestSession"] = True
        user_agent = validate_user_agent(request.headers.get("user-agent")).sanitized or None

        if not already_assigned:
            store.store_event(AnalyticsEvent(
                type=EventType.AB_TEST_ASSIGNMENT, variant=variant, session_id=session_id,
                user_agent=user_agent, metadata=dict(metadata),
            ))
        store.store_event(AnalyticsEvent(
            type=EventType.PAGE_VIEW, variant=variant, session_id=session_id,
            user_agent=user_agent, metadata=metadata,
        ))

        response = RedirectResponse(landing_path(variant), status_code=307)
        return identity.cookies.apply(response)

    def landing(request: Request, page_variant: str):
        identity = identity_for(request)
        session_id = identity.get_or_create_session_id()
        assigned = identity.assign_variant(ABTestConfig.pinned(page_variant))
        response = JSONResponse({
            "variant": page_variant,
            "assignedVariant": assigned,
            "sessionId": session_id,
            "testSession": is_test_request(request, identity),
        })
        return identity.cookies.apply(response)

    @app.get("/landing-a")
    def landing_a(request: Request):
        return landing(request, "A")

    @app.get("/landing-b")
    def landing_b(request: Request):
        return landing(request, "B")

    # --- Analytics ingestion and queries ---

    @app.post("/api/analytics")
    async def ingest_event(request: Request):
        limiter = limiters.analytics
        client = get_client_ip(request.headers)
        limiter.check(client)

        payload = await read_json(request)
        check_size(payload)

        session_id = sanitize_string(payload.get("sessionId"))
        if not payload.get("type") or not payload.get("variant") or not session_id:
            raise ValidationFailed("missing_fields", "Missing required fields")
        variant_check = validate_variant(payload["variant"])
        if not variant_check.is_valid:
            raise ValidationFailed("invalid_variant", variant_check.error)
        event_type = sanitize_string(payload["type"])
        if event_type not in EVENT_TYPES:
            raise ValidationFailed("invalid_type", f"Unknown event type: {event_type}")

        metadata = payload.get("metadata")
        metadata = sanitize_metadata(metadata) if isinstance(metadata, dict) else {}
        identity = identity_for(request)
        if is_test_request(request, identity):
            metadata["isTestSession"] = True

        fields: dict[str, Any] = {}
        client_id = sanitize_string(payload.get("id"))
        if client_id:
            fields["id"] = client_id
        event = AnalyticsEvent(
            type=event_type,
            variant=variant_check.sanitized,
            session_id=session_id,
            user_agent=validate_user_agent(payload.get("userAgent")).sanitized or None,
            referrer=validate_referrer(payload.get("referrer")).sanitized or None,
            metadata=metadata or None,
            **fields,
        )
        store.store_event(event)
        return limited_response({"success": True, "id": event.id}, limiter, client, 201)

    @app.get("/api/analytics")
    def query_events(
        variant: str | None = None,
        event_type: str | None = Query(None, alias="type"),
        include_test_sessions: bool = Query(False),
    ):
        if variant is not None and not is_valid_variant(variant):
            raise ValidationFailed("invalid_variant", "Invalid variant. Must be A or B")
        if event_type is not None and event_type not in EVENT_TYPES:
            raise ValidationFailed("invalid_type", f"Unknown event type: {event_type}")
        events = store.query_events(variant, event_type, include_test_sessions)
        return {"events": [e.to_json_dict() for e in events], "count": len(events)}

    @app.get("/api/analytics/metrics")
    def metrics(include_test_sessions: bool = Query(False)):
        return build_metrics_payload(store, include_test_sessions).to_json_dict()

    @app.delete("/api/analytics/metrics")
    def clear_metrics():
        store.clear_all()
        return {"success": True, "message": "All data cleared"}

    @app.get("/api/analytics/summary")
    def experiment_summary(include_test_sessions: bool = Query(False)):
        payload = build_metrics_payload(store, include_test_sessions)
        summary = summarize_experiment(payload, settings.significance_session_threshold)
        return summary.to_json_dict()

    # --- Waitlist ---

    @app.post("/api/waitlist")
    async def join_waitlist(request: Request):
        limiter = limiters.waitlist
        client = get_client_ip(request.headers)
        limiter.check(client)

        payload = await read_json(request)
        check_size(payload)

        if not payload.get("email") or not payload.get("variant"):
            raise ValidationFailed(
                "missing_fields",
                "Missing required information. Please provide your email address.",
            )
        email_check = validate_email(payload["email"])
        if not email_check.is_valid:
            raise ValidationFailed("invalid_email", email_check.error)
        variant_check = validate_variant(payload["variant"])
        if not variant_check.is_valid:
            raise ValidationFailed("invalid_variant", variant_check.error)

        identity = identity_for(request)
        metadata: dict[str, Any] = {}
        session_id = identity.cookies.get(SESSION_COOKIE) or sanitize_string(payload.get("sessionId"))
        if session_id:
            metadata["sessionId"] = session_id
        if is_test_request(request, identity):
            metadata["isTestSession"] = True

        entry = WaitlistEntry(
            email=email_check.sanitized,
            variant=variant_check.sanitized,
            user_agent=validate_user_agent(payload.get("userAgent")).sanitized or None,
            referrer=validate_referrer(payload.get("referrer")).sanitized or None,
            metadata=metadata or None,
        )
        store.store_waitlist_entry(entry)
        body = {
            "success": True,
            "entry": {
                "id": entry.id,
                "email": entry.email,
                "variant": entry.variant,
                "timestamp": entry.timestamp.isoformat(),
            },
        }
        return limited_response(body, limiter, client, 201)

    @app.get("/api/waitlist")
    def list_waitlist(variant: str | None = None):
        all_entries = store.get_waitlist_entries()
        entries = [e for e in all_entries if variant is None or e.variant == variant]
        # Emails stay private on the public listing
        return {
            "entries": [
                {"id": e.id, "variant": e.variant, "timestamp": e.timestamp.isoformat()}
                for e in entries
            ],
            "count": len(entries),
            "totalCount": len(all_entries),
        }

    @app.get("/api/admin/waitlist")
    def admin_waitlist(variant: str | None = None, include_test_sessions: bool = Query(False)):
        all_entries = store.get_waitlist_entries(include_test_sessions)
        # Newest first; later inserts win timestamp ties
        entries = sorted(
            reversed([e for e in all_entries if variant is None or e.variant == variant]),
            key=lambda e: e.timestamp,
            reverse=True,
        )
        return {
            "entries": [e.to_json_dict() for e in entries],
            "count": len(entries),
            "totalCount": len(all_entries),
            "variants": {
                "A": sum(1 for e in all_entries if e.variant == "A"),
                "B": sum(1 for e in all_entries if e.variant == "B"),
            },
            "lastUpdated": datetime.now(timezone.utc).isoformat(),
        }

    return app


app = create_app()
