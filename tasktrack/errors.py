# tasktrack/errors.py
# Error taxonomy raised by the lifecycle manager and its collaborators.


class TaskTrackError(Exception):
    """Base class for every error the task tracker raises"""

    kind = "error"
    status_code = 500
    retryable = False

    def __init__(self, message: str = ""):
        super().__init__(message)
        self.message = message or self.__class__.__doc__ or self.kind

    def to_dict(self) -> dict:
        return {"detail": self.message, "kind": self.kind}


class ValidationError(TaskTrackError):
    """Malformed input"""

    kind = "validation_error"
    status_code = 400


class AuthorizationError(TaskTrackError):
    """Actor lacks the role or ownership for the operation"""

    kind = "authorization_error"
    status_code = 403


class AuthenticationError(AuthorizationError):
    """Missing, invalid or expired credentials"""

    kind = "authentication_error"
    status_code = 401


class NotFoundError(TaskTrackError):
    """Referenced task or profile does not exist"""

    kind = "not_found"
    status_code = 404


class InvalidTransitionError(TaskTrackError):
    """Requested status change is not permitted from the current state"""

    kind = "invalid_transition"
    status_code = 409


class ConflictError(TaskTrackError):
    """Concurrent modification detected"""

    kind = "conflict"
    status_code = 409


class TransientError(TaskTrackError):
    """Store or network failure, safe to retry"""

    kind = "transient_error"
    status_code = 503
    retryable = True
