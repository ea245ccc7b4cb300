"""Typed failures raised by the auth core.

Only the HTTP layer turns these into status codes; ``detail`` is the text a
client is allowed to see, the exception message is for logs.
"""


class AuthError(Exception):
    status_code = 500
    detail = "Internal Server Error"

    def __init__(self, message: str | None = None):
        super().__init__(message or self.detail)


class AuthenticationError(AuthError):
    status_code = 401
    detail = "Invalid credentials"


class InvalidTokenError(AuthError):
    status_code = 401
    detail = "Invalid or expired token"


class NotFoundError(InvalidTokenError):
    """Refresh token is not present in the store."""


class RevokedError(InvalidTokenError):
    """Refresh token exists but was revoked."""


class ConflictError(AuthError):
    status_code = 409
    detail = "Email already registered"


class UserNotFoundError(AuthError):
    status_code = 404
    detail = "User not found"


class TooManyAttemptsError(AuthError):
    status_code = 429
    detail = "Too many authentication attempts, please try again later"

    def __init__(self, message: str | None = None, retry_after: int = 0):
        super().__init__(message)
        self.retry_after = retry_after


class PersistenceError(AuthError):
    status_code = 500
    detail = "Internal Server Error"


class SelfRoleChangeError(AuthError):
    status_code = 400
    detail = "You cannot change your own role"


class InvalidResetTokenError(AuthError):
    status_code = 400
    detail = "Invalid or expired reset token"
