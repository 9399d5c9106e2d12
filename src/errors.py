"""Domain errors raised by the collector core and mapped to HTTP responses."""


class AnalyticsError(Exception):
    status_code = 500
    reason = "internal_error"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationFailed(AnalyticsError):
    """Bad shape, size or missing field. Always recoverable by the caller."""

    status_code = 400

    def __init__(self, reason: str, message: str, status_code: int = 400):
        super().__init__(message)
        self.reason = reason
        self.status_code = status_code


class DuplicateEmailError(AnalyticsError):
    status_code = 409
    reason = "duplicate_email"

    def __init__(self, email: str):
        super().__init__("Email already registered")
        self.email = email


class RateLimitExceeded(AnalyticsError):
    status_code = 429
    reason = "rate_limited"

    def __init__(self, retry_after: int, limit: int, remaining: int, reset_time: float):
        super().__init__("Too many requests. Please try again later.")
        self.retry_after = retry_after
        self.limit = limit
        self.remaining = remaining
        self.reset_time = reset_time
