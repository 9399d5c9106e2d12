"""Input validation and sanitization for the ingestion endpoints.

Everything here is pure: no I/O, no exceptions for bad input. Each check
returns a ``ValidationResult``; callers decide how to report failures.
Every externally supplied string is passed through ``sanitize_string``
before it is stored.
"""

import html
import json
import re
from dataclasses import dataclass
from typing import Any

from src.ab.experiment import VARIANTS

MAX_EMAIL_LENGTH = 254
MIN_EMAIL_LENGTH = 3
MAX_USER_AGENT_LENGTH = 500
MAX_REFERRER_LENGTH = 2048
DEFAULT_MAX_PAYLOAD_KB = 5

EMAIL_PATTERN = re.compile(
    r"^[a-zA-Z0-9.!#$%&'*+/=?^_`{|}~-]+"
    r"@[a-zA-Z0-9](?:[a-zA-Z0-9-]{0,61}[a-zA-Z0-9])?"
    r"(?:\.[a-zA-Z0-9](?:[a-zA-Z0-9-]{0,61}[a-zA-Z0-9])?)*$"
)

# Shapes the main pattern lets through but real addresses never have
SUSPICIOUS_EMAIL_PATTERNS = (
    re.compile(r"\.\."),
    re.compile(r"^\.|\.$"),
    re.compile(r"@\.|@$"),
    re.compile(r"\s"),
)


@dataclass(frozen=True)
class ValidationResult:
    is_valid: bool
    error: str | None = None
    sanitized: str = ""


def sanitize_string(value: Any) -> str:
    if not isinstance(value, str):
        return ""
    return html.escape(value.strip(), quote=True)


def sanitize_metadata(value: Any) -> Any:
    """Recursively sanitize string values inside a metadata structure."""
    if isinstance(value, str):
        return sanitize_string(value)
    if isinstance(value, dict):
        return {sanitize_string(str(k)): sanitize_metadata(v) for k, v in value.items()}
    if isinstance(value, list):
        return [sanitize_metadata(v) for v in value]
    return value


def validate_email(email: Any) -> ValidationResult:
    if not email or not isinstance(email, str):
        return ValidationResult(False, "Email is required")

    sanitized = sanitize_string(email)
    if len(sanitized) > MAX_EMAIL_LENGTH:
        return ValidationResult(False, "Email address is too long")
    if len(sanitized) < MIN_EMAIL_LENGTH:
        return ValidationResult(False, "Email address is too short")

    if not EMAIL_PATTERN.match(sanitized):
        return ValidationResult(False, "Please enter a valid email address")

    for pattern in SUSPICIOUS_EMAIL_PATTERNS:
        if pattern.search(sanitized):
            return ValidationResult(False, "Email format is invalid")

    return ValidationResult(True, sanitized=sanitized)


def validate_variant(variant: Any) -> ValidationResult:
    if not variant or not isinstance(variant, str):
        return ValidationResult(False, "Variant is required")
    sanitized = sanitize_string(variant)
    if sanitized not in VARIANTS:
        return ValidationResult(False, "Invalid variant. Must be A or B")
    return ValidationResult(True, sanitized=sanitized)


def _sanitize_truncated(value: Any, limit: int) -> ValidationResult:
    if not value or not isinstance(value, str):
        return ValidationResult(True, sanitized="")
    return ValidationResult(True, sanitized=sanitize_string(value)[:limit])


def validate_user_agent(user_agent: Any) -> ValidationResult:
    return _sanitize_truncated(user_agent, MAX_USER_AGENT_LENGTH)


def validate_referrer(referrer: Any) -> ValidationResult:
    return _sanitize_truncated(referrer, MAX_REFERRER_LENGTH)


def validate_payload_size(payload: Any, max_kb: float = DEFAULT_MAX_PAYLOAD_KB) -> bool:
    try:
        encoded = json.dumps(payload, separators=(",", ":"), ensure_ascii=False).encode("utf-8")
    except (TypeError, ValueError):
        return False
    return len(encoded) <= max_kb * 1024
