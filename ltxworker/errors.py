"""
Error taxonomy for the worker engine.

Transport errors (FetchError, ModelError) and format errors are recorded as job
failures. StoreError covers the persistence layer and is never fatal to the
worker process.
"""


class FetchError(ValueError):
    """Raised when a URL's content cannot be retrieved."""

    reason = "fetch failed"


class InvalidUrl(FetchError):
    reason = "invalid url"


class Unreachable(FetchError):
    reason = "unreachable"


class NonSuccessStatus(FetchError):
    reason = "non-success status"

    def __init__(self, status_code: int, url: str):
        self.status_code = status_code
        self.url = url
        super().__init__(f"non-success status ({status_code}): {url}")


class ModelError(Exception):
    """Transport or provider error from the language model backend."""
    pass


class StoreError(Exception):
    """Persistence layer unavailable or a constraint was violated."""
    pass


class StoreConflict(StoreError):
    """A guarded write lost a race or found the job in an unexpected state."""
    pass


class ConfigError(ValueError):
    """Invalid configuration value."""
    pass
