"""Custom exception classes for notifeed."""


class NotifeedError(Exception):
    """Base exception for notifeed."""

    def __init__(self, code: str, message: str, details=None):
        self.code = code
        self.message = message
        self.details = details
        super().__init__(message)


class SlackApiError(NotifeedError):
    """Slack returned a non-success HTTP status or an ``ok: false`` envelope."""

    def __init__(self, status_code: int, message: str, code: str = "SLACK_API_ERROR", details=None):
        self.status_code = status_code
        super().__init__(code, message, details)


class RateLimitError(SlackApiError):
    """Slack kept answering 429 after every retry."""

    def __init__(self, message: str = "Max retries exceeded due to rate limiting", retry_after: float | None = None):
        super().__init__(429, message, code="RATE_LIMITED", details={"retry_after": retry_after})
        self.retry_after = retry_after


class SlackTransportError(SlackApiError):
    """The request never produced an HTTP response (DNS, connect, timeout)."""

    def __init__(self, message: str):
        super().__init__(0, message, code="TRANSPORT_ERROR")


class CredentialError(NotifeedError):
    """An access token could not be obtained for a provider."""

    def __init__(self, provider: str, message: str):
        self.provider = provider
        super().__init__("CREDENTIAL_ERROR", message, details={"provider": provider})
