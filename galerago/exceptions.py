"""Error taxonomy shared by the booking, review and package managers."""


class GaleraGoError(Exception):
    """Base exception for business-rule failures.

    Each subclass carries a stable ``kind`` that callers can switch on and the
    HTTP status the API layer answers with.
    """

    kind = "error"
    status_code = 400

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class ValidationError(GaleraGoError):
    """Missing or malformed input."""

    kind = "validation_error"
    status_code = 400


class AuthenticationError(GaleraGoError):
    """Missing, expired or unreadable bearer token."""

    kind = "authentication_error"
    status_code = 401


class AuthorizationError(GaleraGoError):
    """Caller lacks the role, ownership or active account required."""

    kind = "authorization_error"
    status_code = 403


class NotFoundError(GaleraGoError):
    """Referenced entity does not exist."""

    kind = "not_found"
    status_code = 404


class StateError(GaleraGoError):
    """Operation is invalid for the booking's current lifecycle state."""

    kind = "state_error"
    status_code = 409

    def __init__(self, message: str, current: str = None, target: str = None):
        self.current = current
        self.target = target
        super().__init__(message)


class ConflictError(GaleraGoError):
    """Uniqueness violation or a lost race on a conditional update."""

    kind = "conflict"
    status_code = 409


class CapacityError(GaleraGoError):
    """Business-rule limit exceeded."""

    kind = "capacity_exceeded"
    status_code = 422


class InternalError(GaleraGoError):
    """Unexpected persistence failure; the message never carries storage details."""

    kind = "internal_error"
    status_code = 500
