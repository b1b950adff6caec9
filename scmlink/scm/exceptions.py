"""Exceptions raised by SCM adapters."""

from scmlink.core.exceptions import ScmLinkError


class ScmAdapterError(ScmLinkError):
    """Base class for adapter failures; the sync engine catches these per repository."""

    status_code = 502


class BackendUnavailable(ScmAdapterError):
    """The backend could not be reached (network down, binary missing, timeout)."""

    status_code = 503


class BackendError(ScmAdapterError):
    """The backend answered a specific call with an error."""

    def __init__(
        self,
        message: str,
        backend_status: int | None = None,
        rate_limit_reset: int | None = None,
    ):
        self.backend_status = backend_status
        self.rate_limit_reset = rate_limit_reset  # Unix timestamp when a rate limit resets
        super().__init__(message)
