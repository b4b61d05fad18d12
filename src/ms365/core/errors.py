"""Custom exception types for the ms365 client library.

Error messages follow a common shape:
- What failed (specific operation or resource)
- Why it failed (the specific condition)
- How to fix it (actionable guidance, where there is any)
"""


class Ms365Error(Exception):
    """Base exception for all ms365 errors."""

    pass


class ConfigValidationError(Ms365Error):
    """Raised when the config file fails Pydantic validation."""

    pass


class ConfigLoadError(Ms365Error):
    """Raised when the config file cannot be loaded (file not found, YAML parse error)."""

    pass


class ValidationError(Ms365Error):
    """Raised for malformed caller input, before any network call is made.

    The usual cause is supplying the wrong number of identifying arguments,
    e.g. both a team name and a team ID.
    """

    pass


class AuthenticationError(Ms365Error):
    """Raised when a full (interactive or device code) login fails."""

    pass


class NotFoundError(Ms365Error):
    """Raised when a required lookup matched nothing.

    Attributes:
        name: The requested name, ID or path that was not found
    """

    def __init__(self, message: str, name: str | None = None):
        super().__init__(message)
        self.name = name


class AmbiguousNameError(Ms365Error):
    """Raised when a name-based lookup matched more than one object.

    Display names are not unique server-side, so a name lookup can legitimately
    return several objects. Look the object up by ID or URL instead.

    Attributes:
        name: The requested display name
        count: Number of objects that matched
    """

    def __init__(self, message: str, name: str | None = None, count: int = 0):
        super().__init__(message)
        self.name = name
        self.count = count


class RemoteError(Ms365Error):
    """Raised when Microsoft Graph reports a failure other than not-found.

    Attributes:
        status_code: HTTP status code from the API (None for transport failures)
        error_code: Error code from the Graph error payload (if available)
    """

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        error_code: str | None = None,
    ):
        super().__init__(message)
        self.status_code = status_code
        self.error_code = error_code


class RateLimitExceeded(RemoteError):
    """Raised when Graph keeps answering 429 after all retries are spent."""

    def __init__(self, message: str, retry_after: str | None = None):
        super().__init__(message, status_code=429, error_code="TooManyRequests")
        self.retry_after = retry_after
