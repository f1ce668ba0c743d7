"""Authentication error taxonomy.

Each error carries a stable ``code`` and a ``public_message`` that is safe to
show to end users. The constructor message is for logs only.
"""


class AuthError(Exception):
    """Base class for authentication errors."""

    code = "AUTH_ERROR"
    status_code = 400
    public_message = "Authentication failed"


class DuplicateEmail(AuthError):
    """Sign-up with an email that already belongs to a user."""

    code = "USER_ALREADY_EXISTS"
    status_code = 422
    public_message = "An account with this email already exists"


class InvalidCredentials(AuthError):
    """Password mismatch or passkey assertion/attestation failure."""

    code = "INVALID_CREDENTIALS"
    status_code = 401
    public_message = "Invalid email or password"


class InvalidPasskey(InvalidCredentials):
    """Passkey ceremony rejected (signature, origin or challenge mismatch)."""

    code = "INVALID_PASSKEY"
    public_message = "Passkey verification failed"


class ChallengeExpired(AuthError):
    """Ceremony completed after its challenge lapsed or was already used."""

    code = "CHALLENGE_EXPIRED"
    status_code = 400
    public_message = "This request has expired, please try again"


class SessionInvalid(AuthError):
    """Missing, unknown, revoked or expired session token."""

    code = "SESSION_INVALID"
    status_code = 401
    public_message = "Your session has expired, please sign in again"


class WeakPassword(AuthError):
    """Password outside the configured length bounds."""

    code = "INVALID_PASSWORD"
    status_code = 400
    public_message = "Password does not meet the length requirements"

    def __init__(self, message: str, public_message: str | None = None):
        super().__init__(message)
        if public_message:
            self.public_message = public_message


class StoreError(AuthError):
    """Integrity failure in the identity store not covered by a more specific error."""

    code = "STORE_ERROR"
    status_code = 409
    public_message = "The request conflicts with existing data"


class StoreUnavailable(AuthError):
    """Durable storage could not be reached."""

    code = "STORE_UNAVAILABLE"
    status_code = 503
    public_message = "The service is temporarily unavailable, please try again later"


class VerificationFailed(AuthError):
    """Email verification token is unknown or expired."""

    code = "INVALID_TOKEN"
    status_code = 400
    public_message = "This verification link is invalid or has expired"
