from __future__ import annotations

from typing import Optional


class ServiceError(Exception):
    """Base class for service-layer exceptions mapped to HTTP responses.

    Each subclass carries an HTTP ``status_code`` and a stable ``error_code``
    that clients can branch on:

    - validation_error (400)
    - token_not_found / token_expired / token_mismatch (400)
    - unauthorized (401)
    - forbidden / invalid_token (403)
    - not_found (404)
    - conflict (409)
    - server_error (500)
    """

    status_code: int = 400
    error_code: str = "validation_error"

    def __init__(
        self,
        message: str,
        *,
        status_code: Optional[int] = None,
        detail: Optional[dict] = None,
        error_code: Optional[str] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code
        if error_code is not None:
            self.error_code = error_code
        self.detail = detail or {}


class ValidationError(ServiceError):
    """Request validation failed (400)."""
    status_code = 400
    error_code = "validation_error"


class TokenNotFoundError(ValidationError):
    """No live one-time code or token exists for the email (400)."""
    error_code = "token_not_found"


class TokenExpiredError(ValidationError):
    """The one-time code or token outlived its TTL (400)."""
    error_code = "token_expired"


class TokenMismatchError(ValidationError):
    """The submitted code or token does not match the live one (400)."""
    error_code = "token_mismatch"


class AuthenticationError(ServiceError):
    """Authentication failed or missing (401)."""
    status_code = 401
    error_code = "unauthorized"


class InvalidCredentialsError(AuthenticationError):
    """Unknown login identifier or wrong password (401)."""
    pass


class ForbiddenError(ServiceError):
    """Access denied: insufficient role or restricted account (403)."""
    status_code = 403
    error_code = "forbidden"


class InvalidTokenError(ForbiddenError):
    """Bearer token failed signature, structure or expiry checks (403)."""
    error_code = "invalid_token"

    def __init__(self, message: str = "Invalid token.", *, reason: str = "invalid_signature") -> None:
        super().__init__(message, detail={"reason": reason})
        self.reason = reason


class NotFoundError(ServiceError):
    """Requested resource not found (404)."""
    status_code = 404
    error_code = "not_found"


class ConflictError(ServiceError):
    """Resource conflict, e.g., duplicate creation (409)."""
    status_code = 409
    error_code = "conflict"


class DuplicateEmailError(ConflictError):
    """An account with the email already exists (409)."""
    pass


class ServerError(ServiceError):
    """Internal server error (500)."""
    status_code = 500
    error_code = "server_error"


__all__ = [
    "ServiceError",
    "ValidationError",
    "TokenNotFoundError",
    "TokenExpiredError",
    "TokenMismatchError",
    "AuthenticationError",
    "InvalidCredentialsError",
    "ForbiddenError",
    "InvalidTokenError",
    "NotFoundError",
    "ConflictError",
    "DuplicateEmailError",
    "ServerError",
]
