"""Error hierarchy for session and access-control failures.

Every error carries a stable ``code`` and the HTTP status it maps to. The
kind classes (``NotFound``, ``Forbidden`` ...) are what callers catch; the
leaf classes name the exact rule that failed.
"""


class SessionError(Exception):
    """Base exception for all collaborative session errors."""

    code = "session_error"
    http_status = 500
    default_message = "Session operation failed"

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)

    def to_response(self) -> dict[str, object]:
        """Return the JSON error envelope."""
        return {"source": "local", "error": self.code, "message": self.message}


class ValidationError(SessionError):
    """Missing or malformed input."""

    code = "validation_error"
    http_status = 400
    default_message = "Invalid input"


class NotFound(SessionError):
    """A referenced session, request, member or account does not exist."""

    code = "not_found"
    http_status = 404
    default_message = "Not found"


class Conflict(SessionError):
    """The operation conflicts with existing state."""

    code = "conflict"
    http_status = 409
    default_message = "Conflict"


class Forbidden(SessionError):
    """The acting account is not allowed to perform the operation."""

    code = "forbidden"
    http_status = 403
    default_message = "Not allowed"


class InvalidState(SessionError):
    """The target is not in a state that permits the operation."""

    code = "invalid_state"
    http_status = 409
    default_message = "Invalid state"


class NoActiveAccount(SessionError):
    """No acting account could be resolved."""

    code = "no_active_account"
    http_status = 400
    default_message = "No active account set"


class DelegationFailure(SessionError):
    """The remote authority answered with an error status."""

    code = "delegation_failure"
    default_message = "Control plane request failed"

    def __init__(
        self, status_code: int, body: object, message: str | None = None
    ) -> None:
        super().__init__(message or _remote_error_message(body))
        self.status_code = status_code
        self.http_status = status_code
        self.body = body

    def to_response(self) -> dict[str, object]:
        """Return the error envelope with the remote body attached."""
        return {
            "source": "cloud",
            "error": self.code,
            "message": self.message,
            "details": self.body,
        }


class DelegationUnavailable(SessionError):
    """The remote authority could not be reached or timed out."""

    code = "delegation_unavailable"
    http_status = 502
    default_message = "Control plane unavailable"

    def to_response(self) -> dict[str, object]:
        """Return the error envelope tagged with the remote source."""
        return {"source": "cloud", "error": self.code, "message": self.message}


class SessionNotFound(NotFound):
    code = "session_not_found"
    default_message = "Session not found"


class RequestNotFound(NotFound):
    code = "request_not_found"
    default_message = "Join request not found"


class MemberNotFound(NotFound):
    code = "member_not_found"
    default_message = "Member not found"


class AccountNotFound(NotFound):
    code = "account_not_found"
    default_message = "Account not found"


class AlreadyOwner(Conflict):
    code = "already_owner"
    default_message = "You already own this session"


class AlreadyMember(Conflict):
    code = "already_member"
    default_message = "Already joined"


class JoinCodeExhausted(Conflict):
    code = "join_code_exhausted"
    default_message = "Could not allocate a unique join code"


class JoinCodeTaken(Conflict):
    """An active session claimed the join code between check and write."""

    code = "join_code_taken"
    default_message = "Join code already in use"


class NotOwner(Forbidden):
    code = "not_owner"
    default_message = "Only the owner can perform this action"


class NotMember(Forbidden):
    code = "not_member"
    default_message = "Not a member of this session"


class CannotModifyOwner(Forbidden):
    code = "cannot_modify_owner"
    default_message = "Cannot modify owner permissions"


class OwnerCannotBeRemoved(Forbidden):
    code = "owner_cannot_be_removed"
    default_message = "Owner cannot be removed"


class OwnerMustEndSession(Forbidden):
    code = "owner_must_end_session"
    default_message = "Owner cannot leave their own session. End it instead."


class SessionNotActive(InvalidState):
    code = "session_not_active"
    default_message = "Session is not active"


class RequestAlreadyDecided(InvalidState):
    code = "request_already_decided"
    default_message = "Request already decided"


def _remote_error_message(body: object) -> str | None:
    if isinstance(body, dict):
        error = body.get("error")
        if isinstance(error, str) and error:
            return error
    return None
