from __future__ import annotations

import hmac
import re
from dataclasses import dataclass
from typing import Iterable, Optional, Tuple

from jobboard.config import ASSIGNABLE_ROLES, Settings
from jobboard.logging import email_hash, get_logger
from jobboard.service.credentials import CredentialStore
from jobboard.service.errors import (
    AuthenticationError,
    DuplicateEmailError,
    ForbiddenError,
    InvalidCredentialsError,
    NotFoundError,
    TokenExpiredError,
    TokenMismatchError,
    TokenNotFoundError,
    ValidationError,
)
from jobboard.service.ledger import LedgerFailure, LedgerResult, OneTimeTokenLedger
from jobboard.service.sessions import SessionIssuer
from jobboard.storage.models import User

logger = get_logger(__name__)

_VERIFICATION_MESSAGES = {
    LedgerFailure.NOT_FOUND: (
        TokenNotFoundError,
        "No verification code found. Please request a new code.",
    ),
    LedgerFailure.EXPIRED: (
        TokenExpiredError,
        "Verification code has expired. Please request a new code.",
    ),
    LedgerFailure.MISMATCH: (
        TokenMismatchError,
        "Invalid verification code. Please try again.",
    ),
}

_RESET_ERRORS = {
    LedgerFailure.NOT_FOUND: TokenNotFoundError,
    LedgerFailure.EXPIRED: TokenExpiredError,
    LedgerFailure.MISMATCH: TokenMismatchError,
}

INVALID_RESET_TOKEN = "Invalid or expired reset token. Please request a new password reset."
INVALID_LOGIN = "Invalid email/username or password"
PASSWORD_POLICY_MESSAGE = (
    "Password does not meet requirements. It must be at least 8 characters "
    "with uppercase, lowercase, number, and special character."
)


def password_policy_failures(password: str) -> list[str]:
    """Names of the password rules ``password`` breaks."""
    checks = {
        "length": len(password) >= 8,
        "upper": re.search(r"[A-Z]", password) is not None,
        "lower": re.search(r"[a-z]", password) is not None,
        "number": re.search(r"[0-9]", password) is not None,
        "special": re.search(r"[^A-Za-z0-9]", password) is not None,
    }
    return [name for name, ok in checks.items() if not ok]


def check_password_policy(password: str) -> None:
    failures = password_policy_failures(password)
    if failures:
        raise ValidationError(PASSWORD_POLICY_MESSAGE, detail={"failed": failures})


@dataclass
class AuthContext:
    user_id: str
    email: str
    role: str


class AuthService:
    """Account lifecycle and bearer-token authorization.

    Session tokens are stateless: neither a password reset nor a restriction
    revokes tokens that were already issued, they lapse at expiry.
    """

    def __init__(
        self,
        credentials: CredentialStore,
        sessions: SessionIssuer,
        verification_codes: OneTimeTokenLedger,
        reset_tokens: OneTimeTokenLedger,
        settings: Settings,
    ) -> None:
        self.credentials = credentials
        self.sessions = sessions
        self.verification_codes = verification_codes
        self.reset_tokens = reset_tokens
        self.settings = settings
        self.logger = logger

    def ensure_admin(self) -> User:
        """Create the administrator account unless it already exists."""
        existing = self.credentials.find_by_email(self.settings.admin_email)
        if existing:
            return existing
        try:
            user = self.credentials.create(
                self.settings.admin_email,
                self.settings.admin_password,
                "admin",
                self.settings.admin_name,
                added_by="system",
            )
        except DuplicateEmailError:
            # Lost a creation race; the winner's record is the admin account
            return self.credentials.find_by_email(self.settings.admin_email)
        self.logger.info("admin_account_created", user_id=user.id)
        return user

    # signup / verification ---------------------------------------------

    async def signup(
        self,
        *,
        email: str,
        password: str,
        name: str,
        role: str = "employee",
        designation: Optional[str] = None,
    ) -> Tuple[User, Optional[str], Optional[str]]:
        """Create an account.

        Returns ``(user, session_token, verification_code)``. Exactly one of the
        last two is set: a token when accounts start verified, otherwise the
        code that the caller must deliver to the user.
        """
        if role not in ASSIGNABLE_ROLES:
            raise ValidationError(
                "invalid role", detail={"role": role, "allowed": list(ASSIGNABLE_ROLES)}
            )
        require_verification = self.settings.require_email_verification
        user = self.credentials.create(
            email,
            password,
            role,
            name,
            designation=designation,
            is_verified=not require_verification,
        )
        self.logger.info("user_signed_up", user_id=user.id, role=user.role)
        if require_verification:
            code = self.verification_codes.issue(user.email)
            return user, None, code
        return user, self.sessions.issue(user), None

    async def request_email_verification(self, email: str) -> Tuple[User, Optional[str]]:
        """Issue a fresh verification code, or ``None`` when already verified."""
        user = self.credentials.find_by_email(email)
        if not user:
            raise NotFoundError("User not found")
        if user.is_verified:
            return user, None
        code = self.verification_codes.issue(user.email)
        self.logger.info("email_verification_requested", user_id=user.id)
        return user, code

    async def complete_email_verification(self, email: str, code: str) -> Tuple[User, str]:
        result = self.verification_codes.validate(email, code)
        if not result.valid:
            exc_cls, message = _VERIFICATION_MESSAGES[result.reason]
            raise exc_cls(message)
        user = self.credentials.find_by_email(email)
        if not user:
            raise NotFoundError("User not found")
        user = self.credentials.set_verified(user)
        self.logger.info("email_verified", user_id=user.id)
        if not user.is_active:
            raise ForbiddenError(
                "Your account has been restricted. Please contact admin."
            )
        return user, self.sessions.issue(user)

    # login -------------------------------------------------------------

    def _is_admin_bypass(self, identifier: str, password: str) -> bool:
        if "@" in identifier:
            return False
        if identifier.lower() != self.settings.admin_username.lower():
            return False
        return hmac.compare_digest(
            password.encode("utf-8"), self.settings.admin_password.encode("utf-8")
        )

    async def login(self, *, identifier: str, password: str) -> Tuple[User, str]:
        if self._is_admin_bypass(identifier, password):
            admin = self.ensure_admin()
            self.logger.info("admin_login", user_id=admin.id)
            return admin, self.sessions.issue(admin)

        if "@" in identifier:
            user = self.credentials.find_by_email(identifier)
        else:
            user = self.credentials.find_by_username(identifier)
        if not user:
            self.logger.warning("login_failed", reason="unknown_user")
            raise InvalidCredentialsError(INVALID_LOGIN)
        if not user.is_active:
            self.logger.warning("login_rejected", user_id=user.id, reason="restricted")
            raise ForbiddenError("Your account has been restricted. Please contact admin.")
        if not user.is_verified:
            self.logger.warning("login_rejected", user_id=user.id, reason="unverified")
            raise ForbiddenError(
                "Please verify your email before logging in.",
                detail={"requires_verification": True, "email": user.email},
            )
        if not self.credentials.verify_password(user, password):
            self.logger.warning("login_failed", user_id=user.id, reason="bad_password")
            raise InvalidCredentialsError(INVALID_LOGIN)
        self.logger.info("login_succeeded", user_id=user.id)
        return user, self.sessions.issue(user)

    # password reset ----------------------------------------------------

    async def initiate_password_reset(self, email: str) -> Optional[str]:
        """Issue a reset token for a known email.

        Returns ``None`` for unknown emails; callers must respond identically
        in both cases.
        """
        user = self.credentials.find_by_email(email)
        if not user:
            self.logger.info("password_reset_unknown_email", email_hash=email_hash(email))
            return None
        token = self.reset_tokens.issue(user.email)
        self.logger.info("password_reset_requested", email_hash=email_hash(email))
        return token

    def check_reset_token(self, email: str, token: str) -> LedgerResult:
        return self.reset_tokens.inspect(email, token)

    async def complete_password_reset(self, *, email: str, token: str, new_password: str) -> User:
        check_password_policy(new_password)
        result = self.reset_tokens.validate(email, token)
        if not result.valid:
            raise _RESET_ERRORS[result.reason](INVALID_RESET_TOKEN)
        user = self.credentials.find_by_email(email)
        if not user:
            self.logger.warning("password_reset_user_missing", email_hash=email_hash(email))
            raise NotFoundError("User not found")
        self.credentials.set_password(user, new_password)
        self.logger.info("password_reset_completed", user_id=user.id)
        return user

    # administration ----------------------------------------------------

    def list_users(self, roles: Iterable[str] = ("employee", "employer")) -> list[User]:
        return self.credentials.store.list_users(roles=roles)

    def get_managed_user(self, user_id: str) -> User:
        user = self.credentials.find_by_id(user_id)
        if not user:
            raise NotFoundError("Employee not found")
        return user

    async def admin_create_user(
        self,
        *,
        actor_id: str,
        email: str,
        password: str,
        name: str,
        role: str = "employee",
        designation: Optional[str] = None,
    ) -> User:
        if role not in ASSIGNABLE_ROLES:
            raise ValidationError(
                "invalid role", detail={"role": role, "allowed": list(ASSIGNABLE_ROLES)}
            )
        user = self.credentials.create(
            email, password, role, name, designation=designation, added_by=actor_id
        )
        self.logger.info("admin_user_created", user_id=user.id, actor_id=actor_id, role=role)
        return user

    def restrict_user(self, user_id: str, *, actor_id: str, reason: Optional[str] = None) -> User:
        user = self.get_managed_user(user_id)
        if user.role == "admin":
            raise ForbiddenError("Cannot restrict admin user")
        user = self.credentials.set_active(user, False, reason=reason, actor=actor_id)
        self.logger.info("user_restricted", user_id=user.id, actor_id=actor_id)
        return user

    def activate_user(self, user_id: str, *, actor_id: str) -> User:
        user = self.get_managed_user(user_id)
        user = self.credentials.set_active(user, True, actor=actor_id)
        self.logger.info("user_activated", user_id=user.id, actor_id=actor_id)
        return user

    def delete_user(self, user_id: str, *, actor_id: str) -> User:
        user = self.get_managed_user(user_id)
        if user.role == "admin":
            raise ForbiddenError("Cannot remove admin user")
        self.credentials.store.delete_user(user.id)
        self.verification_codes.discard(user.email)
        self.reset_tokens.discard(user.email)
        self.logger.info("user_deleted", user_id=user.id, actor_id=actor_id)
        return user

    # authorization gate ------------------------------------------------

    def _extract_bearer(self, header: Optional[str]) -> Optional[str]:
        if not header:
            return None
        lower = header.lower()
        if not lower.startswith("bearer "):
            return None
        token = header.split(" ", 1)[1].strip()
        return token or None

    async def authenticate(
        self,
        authorization: Optional[str],
        *,
        required_roles: Optional[Iterable[str]] = None,
    ) -> AuthContext:
        token = self._extract_bearer(authorization)
        if not token:
            raise AuthenticationError("Access denied. No token provided.")
        claims = self.sessions.verify(token)
        if required_roles is not None:
            allowed = tuple(required_roles)
            if claims.role not in allowed:
                self.logger.warning(
                    "role_forbidden", user_id=claims.id, role=claims.role, required=list(allowed)
                )
                raise ForbiddenError(
                    "Access denied. Insufficient permissions.",
                    detail={"required_roles": list(allowed)},
                )
        return AuthContext(user_id=claims.id, email=claims.email, role=claims.role)
