"""Domain errors raised by tracker services.

Every error carries the HTTP status the API layer answers with, so services
can raise them without knowing about FastAPI.
"""


class TrackerError(Exception):
    """Base class for tracker errors."""

    status_code = 500

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class ValidationError(TrackerError):
    """Caller supplied invalid input."""

    status_code = 400

    def __init__(self, message: str, errors: list[str] | None = None):
        self.errors = errors or []
        super().__init__(message)


class InvalidCronError(ValidationError):
    """Cron expression could not be parsed."""

    def __init__(self, expression: str, reason: str):
        self.expression = expression
        self.reason = reason
        super().__init__(f"Invalid cron expression '{expression}': {reason}")


class NotFoundError(TrackerError):
    status_code = 404


class ConflictError(TrackerError):
    status_code = 409


class RateLimitError(TrackerError):
    """Manual price check requested inside the cooldown window."""

    status_code = 429

    def __init__(self, message: str, retry_after_minutes: int):
        self.retry_after_minutes = retry_after_minutes
        super().__init__(message)


class ScrapeError(TrackerError):
    """Product page could not be scraped when a result was required."""

    status_code = 502


class JobHandlerNotFoundError(TrackerError):
    def __init__(self, job_type: str):
        self.job_type = job_type
        super().__init__(f"No handler found for job type: {job_type}")
