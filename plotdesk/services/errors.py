"""Error taxonomy for the account and session services.

Every error carries the HTTP status the API layer answers with. Services
raise these; routes and dependencies convert them with ``to_http_exception``.
"""


class AuthError(Exception):
    """Base authentication error."""

    status_code = 500
    default_message = "Internal server error"

    def __init__(self, message: str | None = None):
        super().__init__(message or self.default_message)

    @property
    def message(self) -> str:
        return str(self)


class ValidationError(AuthError):
    """Malformed or missing input. The client has to fix the request."""

    status_code = 422
    default_message = "Invalid request"


class LogoutTokenError(ValidationError):
    """A token handed to logout has a bad signature or the wrong type."""

    default_message = "Invalid token"


class Unauthorized(AuthError):
    """No usable credential. The client should refresh, then log in again."""

    status_code = 401
    default_message = "Unauthorized"


class InvalidCredentialsError(Unauthorized):
    """Unknown account or wrong password (deliberately indistinguishable)."""

    default_message = "Account with that email and password does not exist"


class TokenError(Unauthorized):
    """JWT token error."""

    default_message = "Invalid token"


class TokenExpiredError(TokenError):
    """JWT token has expired."""

    default_message = "Token has expired"


class InvalidTokenError(TokenError):
    """JWT token is invalid."""


class TokenRevokedError(TokenError):
    """Token was revoked by logout before its natural expiry."""

    default_message = "Token has been revoked"


class PasswordResetLinkError(Unauthorized):
    """Reset link expired, already used, or never requested."""

    default_message = "Changing password link expired or user didn't request to change password"


class RefreshTokenExpiredError(Unauthorized):
    """Refresh token reached its expiry. Only a new login helps."""

    default_message = "Your refresh token session expired. Log in again."


class Forbidden(AuthError):
    """Authenticated but not allowed. Retrying will not help."""

    status_code = 403
    default_message = "Forbidden"


class RefreshTokenRejectedError(Forbidden):
    """Refresh token revoked, unknown, consumed, or issued for another role."""

    default_message = "Forbidden - refresh token is not valid"


class InsufficientPrivilegeError(Forbidden):
    """The observer account tried to modify protected content."""

    default_message = "Your account does not have sufficient privileges to perform this action"


class AccountNotFoundError(AuthError):
    """Account referenced by a valid token no longer exists."""

    status_code = 404
    default_message = "User profile not found"


class AccountExistsError(AuthError):
    """Registration or email change collides with an existing account."""

    status_code = 409
    default_message = "Account with that email already exists"


class InternalError(AuthError):
    """Hashing, signing, or storage failure. Logged, never detailed to clients."""


class MailDeliveryError(InternalError):
    """Outgoing mail could not be handed to the mail server."""

    default_message = "Could not send email"


class RevocationStoreError(InternalError):
    """The revocation store could not be read or written."""

    status_code = 503
    default_message = "Unable to verify token"
