"""Error taxonomy shared by the domain layer, the adapters and the API.

Every error carries the HTTP status the API answers with; the exception
handler in `scmlink.main` turns them into `{"detail": ...}` responses.
"""


class ScmLinkError(Exception):
    """Base class for expected, user-facing failures."""

    status_code = 500

    def __init__(self, message: str, status_code: int | None = None):
        self.message = message
        if status_code is not None:
            self.status_code = status_code
        super().__init__(message)


class ValidationError(ScmLinkError):
    """Raised when repository configuration is invalid.

    `errors` maps each offending field to a message.
    """

    status_code = 400

    def __init__(self, errors: dict[str, str]):
        self.errors = errors
        summary = "; ".join(f"{field} {msg}" for field, msg in errors.items())
        super().__init__(f"Validation failed: {summary}")


class ConstraintViolation(ScmLinkError):
    """Raised when a uniqueness or default-repository invariant would break."""

    status_code = 409


class NotFoundError(ScmLinkError):
    """Raised when a requested resource, path or revision does not exist."""

    status_code = 404

    def __init__(self, resource: str):
        self.resource = resource
        super().__init__(f"{resource} not found")
