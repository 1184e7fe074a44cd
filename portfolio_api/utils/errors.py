from portfolio_api.utils.base.enums import BaseEnum


class ErrorKind(BaseEnum):
    """Failure kinds surfaced by account operations, valued by their stable code."""
    BAD_REQUEST = 400
    UNAUTHORIZED = 401
    FORBIDDEN = 403
    NOT_FOUND = 404
    CONFLICT = 409
    PRECONDITION_FAILED = 412
    DEPENDENCY_FAILURE = 502


class AccountError(Exception):
    kind: ErrorKind = ErrorKind.BAD_REQUEST
    default_message = "Something went wrong"

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message
        super().__init__(self.message)

    @property
    def status_code(self) -> int:
        return self.kind.value


class BadRequest(AccountError):
    kind = ErrorKind.BAD_REQUEST
    default_message = "Bad request"


class Unauthorized(AccountError):
    kind = ErrorKind.UNAUTHORIZED
    default_message = "Unauthorized request"


class InvalidOrExpiredToken(Unauthorized):
    default_message = "Token is invalid or has expired"


class InvalidSignatureOrExpired(Unauthorized):
    default_message = "Token signature is invalid or the token has expired"


class Forbidden(AccountError):
    kind = ErrorKind.FORBIDDEN
    default_message = "Forbidden"


class NotFound(AccountError):
    kind = ErrorKind.NOT_FOUND
    default_message = "User does not exist"


class Conflict(AccountError):
    kind = ErrorKind.CONFLICT
    default_message = "Resource already exists"


class PreconditionFailed(AccountError):
    kind = ErrorKind.PRECONDITION_FAILED
    default_message = "Precondition failed"


class DependencyFailure(AccountError):
    kind = ErrorKind.DEPENDENCY_FAILURE
    default_message = "Error sending email"
