# patra/errors.py

class PatraError(Exception):
    """Base class for every domain error. `code` is stable and wire-safe."""

    code = "PATRA_ERROR"

    def __init__(self, message: str = "", *, code: str | None = None):
        super().__init__(message or self.__class__.__name__)
        if code is not None:
            self.code = code


# ==================================================
# SESSION / ACCESS (forced sign-out, never recoverable in-view)
# ==================================================
class InvalidCredential(PatraError):
    code = "INVALID_CREDENTIAL"


class SessionExpired(PatraError):
    code = "SESSION_EXPIRED"


class RoleMismatch(PatraError):
    code = "ROLE_MISMATCH"


# ==================================================
# LIFECYCLE / ATTACHMENTS (rolled back at reconciliation)
# ==================================================
class PermissionDenied(PatraError):
    """Role is not authorized for the requested transition."""

    code = "PERMISSION_DENIED"


class InvalidTransition(PatraError):
    """Lifecycle guard failed for a reason other than role authority."""

    code = "INVALID_TRANSITION"


class AlreadyExists(PatraError):
    code = "ALREADY_EXISTS"


class SignedImmutable(PatraError):
    code = "SIGNED_IMMUTABLE"


class CaseClosed(PatraError):
    code = "CASE_CLOSED"


class UnsupportedType(PatraError):
    code = "UNSUPPORTED_TYPE"


class TooLarge(PatraError):
    code = "TOO_LARGE"


# ==================================================
# TRANSPORT / AUTHORITATIVE STORE
# ==================================================
class NetworkFailure(PatraError):
    code = "NETWORK_FAILURE"


class ServerRejected(PatraError):
    code = "SERVER_REJECTED"


SESSION_ERRORS = (InvalidCredential, SessionExpired, RoleMismatch)
