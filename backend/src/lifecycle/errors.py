"""Exception taxonomy for lifecycle operations.

Every error carries the HTTP status the API maps it to and the ``error_type``
tag used on the progress stream, so routes and the stream never need to
inspect exception classes themselves.
"""

from typing import Optional


class LifecycleError(Exception):
    """Base class for all lifecycle errors."""

    status_code = 500
    error_type = "LifecycleError"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict:
        return {"error": self.message, "errorType": self.error_type}


class ValidationError(LifecycleError):
    """Malformed identifier, placement or request field. No side effects happened."""

    status_code = 400
    error_type = "ValidationError"


class ConflictError(LifecycleError):
    """The requested identifier already exists somewhere."""

    status_code = 409
    error_type = "ConflictError"

    def __init__(self, message: str, kind: str):
        super().__init__(message)
        self.kind = kind

    def to_dict(self) -> dict:
        data = super().to_dict()
        data["conflictType"] = self.kind
        return data


class NotFoundError(LifecycleError):
    """No known project for the identifier."""

    status_code = 404
    error_type = "NotFoundError"


class MetadataError(LifecycleError):
    """A stored project record exists but cannot be read."""

    status_code = 500
    error_type = "MetadataError"


class ProvisioningError(LifecycleError):
    """A fatal provisioning step failed; the stream is aborted."""

    status_code = 500
    error_type = "ProvisioningError"

    def __init__(self, message: str, step: Optional[str] = None, resource: Optional[str] = None):
        super().__init__(message)
        self.step = step
        self.resource = resource


class ReadinessTimeoutError(ProvisioningError):
    """A workload never reached the running phase within the polling bound.

    Kept apart from apply failures so callers can tell "the cluster rejected
    it" from "the cluster never made it healthy".
    """

    error_type = "TimeoutError"

    def __init__(self, message: str, step: Optional[str] = None,
                 resource: Optional[str] = None, attempts: int = 0):
        super().__init__(message, step=step, resource=resource)
        self.attempts = attempts
