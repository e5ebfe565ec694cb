"""Error definitions.

Every failure the bot can detect is an AppError carrying an ErrorCode. Codes
map to HTTP statuses for the webhook/health surface; the chat dispatcher maps
the same errors to user replies.

Error kinds:
    NotFound: an entity the operation depends on is missing
    Expired: a time-limited grant is past its expiry
    Malformed: input or persisted data could not be interpreted
    Unauthorized: the actor may not perform the operation
    StoreFailure: the database failed or timed out
    Transport: the chat platform rejected or did not answer a call
"""

from enum import Enum


class ErrorCode(str, Enum):
    """Standardized error codes.

    Format: E_CATEGORY_NAME
    """

    # Authentication / authorization (401, 403)
    E_UNAUTHENTICATED = "E_UNAUTHENTICATED"
    E_FORBIDDEN = "E_FORBIDDEN"
    E_WEBHOOK_FORBIDDEN = "E_WEBHOOK_FORBIDDEN"

    # Not found (404)
    E_NOT_FOUND = "E_NOT_FOUND"
    E_USER_NOT_FOUND = "E_USER_NOT_FOUND"
    E_LIBRARY_NOT_FOUND = "E_LIBRARY_NOT_FOUND"
    E_SOURCE_NOT_FOUND = "E_SOURCE_NOT_FOUND"
    E_TOKEN_NOT_FOUND = "E_TOKEN_NOT_FOUND"
    E_MIGRATION_STALE = "E_MIGRATION_STALE"

    # Expired (410)
    E_TOKEN_EXPIRED = "E_TOKEN_EXPIRED"

    # Malformed / validation (400)
    E_INVALID_REQUEST = "E_INVALID_REQUEST"
    E_STATE_MALFORMED = "E_STATE_MALFORMED"
    E_QUOTE_EMPTY = "E_QUOTE_EMPTY"
    E_SOURCE_EDIT_MALFORMED = "E_SOURCE_EDIT_MALFORMED"
    E_LIVED_IN_MALFORMED = "E_LIVED_IN_MALFORMED"
    E_SOURCE_FILTER_MALFORMED = "E_SOURCE_FILTER_MALFORMED"
    E_INVALID_SOURCE_KIND = "E_INVALID_SOURCE_KIND"
    E_INVALID_CALLBACK = "E_INVALID_CALLBACK"
    E_SAME_LIBRARY = "E_SAME_LIBRARY"
    E_SOURCE_NAME_TAKEN = "E_SOURCE_NAME_TAKEN"

    # Server errors
    E_STORE_FAILURE = "E_STORE_FAILURE"  # 500
    E_STORE_TIMEOUT = "E_STORE_TIMEOUT"  # 503
    E_TRANSPORT = "E_TRANSPORT"  # 502
    E_INTERNAL = "E_INTERNAL"  # 500


ERROR_CODE_TO_STATUS: dict[ErrorCode, int] = {
    ErrorCode.E_UNAUTHENTICATED: 401,
    ErrorCode.E_FORBIDDEN: 403,
    ErrorCode.E_WEBHOOK_FORBIDDEN: 403,
    ErrorCode.E_NOT_FOUND: 404,
    ErrorCode.E_USER_NOT_FOUND: 404,
    ErrorCode.E_LIBRARY_NOT_FOUND: 404,
    ErrorCode.E_SOURCE_NOT_FOUND: 404,
    ErrorCode.E_TOKEN_NOT_FOUND: 404,
    ErrorCode.E_MIGRATION_STALE: 409,
    ErrorCode.E_TOKEN_EXPIRED: 410,
    ErrorCode.E_INVALID_REQUEST: 400,
    ErrorCode.E_STATE_MALFORMED: 400,
    ErrorCode.E_QUOTE_EMPTY: 400,
    ErrorCode.E_SOURCE_EDIT_MALFORMED: 400,
    ErrorCode.E_LIVED_IN_MALFORMED: 400,
    ErrorCode.E_SOURCE_FILTER_MALFORMED: 400,
    ErrorCode.E_INVALID_SOURCE_KIND: 400,
    ErrorCode.E_INVALID_CALLBACK: 400,
    ErrorCode.E_SAME_LIBRARY: 400,
    ErrorCode.E_SOURCE_NAME_TAKEN: 409,
    ErrorCode.E_STORE_FAILURE: 500,
    ErrorCode.E_STORE_TIMEOUT: 503,
    ErrorCode.E_TRANSPORT: 502,
    ErrorCode.E_INTERNAL: 500,
}


class AppError(Exception):
    """Base exception for application errors.

    Attributes:
        code: The error code enum value
        message: Human-readable error message
        status_code: HTTP status code (derived from code)
    """

    def __init__(self, code: ErrorCode, message: str):
        self.code = code
        self.message = message
        self.status_code = ERROR_CODE_TO_STATUS.get(code, 500)
        super().__init__(message)


class NotFoundError(AppError):
    """Resource not found error."""

    def __init__(self, code: ErrorCode = ErrorCode.E_NOT_FOUND, message: str = "Not found"):
        super().__init__(code, message)


class LibraryNotFoundError(NotFoundError):
    def __init__(self, message: str = "Library no longer exists"):
        super().__init__(ErrorCode.E_LIBRARY_NOT_FOUND, message)


class SourceNotFoundError(NotFoundError):
    def __init__(self, message: str = "Source not found"):
        super().__init__(ErrorCode.E_SOURCE_NOT_FOUND, message)


class TokenNotFoundError(NotFoundError):
    def __init__(self, message: str = "No library exists with this token"):
        super().__init__(ErrorCode.E_TOKEN_NOT_FOUND, message)


class StaleMigrationError(NotFoundError):
    """The user no longer belongs to the library a migration was started from."""

    def __init__(self, message: str = "User is no longer a member of the source library"):
        super().__init__(ErrorCode.E_MIGRATION_STALE, message)


class ExpiredError(AppError):
    """A time-limited grant is past its expiry."""

    def __init__(self, code: ErrorCode = ErrorCode.E_TOKEN_EXPIRED, message: str = "Expired"):
        super().__init__(code, message)


class TokenExpiredError(ExpiredError):
    def __init__(self, message: str = "Library token is expired"):
        super().__init__(ErrorCode.E_TOKEN_EXPIRED, message)


class MalformedError(AppError):
    """Input or persisted data could not be interpreted."""

    def __init__(self, code: ErrorCode = ErrorCode.E_INVALID_REQUEST, message: str = "Malformed"):
        super().__init__(code, message)


class ForbiddenError(AppError):
    """Authorization failure error."""

    def __init__(self, code: ErrorCode = ErrorCode.E_FORBIDDEN, message: str = "Forbidden"):
        super().__init__(code, message)


class StoreFailureError(AppError):
    """The database failed or timed out. Always reported to the user as retryable."""

    def __init__(
        self, code: ErrorCode = ErrorCode.E_STORE_FAILURE, message: str = "Store failure"
    ):
        super().__init__(code, message)


class TransportError(AppError):
    """A chat platform call failed."""

    def __init__(self, message: str = "Chat transport failure"):
        super().__init__(ErrorCode.E_TRANSPORT, message)
