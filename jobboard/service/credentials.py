from __future__ import annotations

from datetime import datetime
from typing import Iterable, List, Optional, Protocol, Tuple

from argon2 import PasswordHasher, Type
from argon2.exceptions import InvalidHash, VerificationError, VerifyMismatchError

from jobboard.logging import get_logger
from jobboard.service.errors import DuplicateEmailError
from jobboard.storage.errors import ConstraintViolation
from jobboard.storage.models import User, utcnow

logger = get_logger(__name__)

PASSWORD_ALGO = "argon2id"


class UserStore(Protocol):
    def create_user(
        self,
        email: str,
        name: str,
        *,
        role: str = "employee",
        designation: Optional[str] = None,
        is_verified: bool = True,
        is_active: bool = True,
        added_by: Optional[str] = None,
        added_at: Optional[datetime] = None,
    ) -> User: ...

    def get_user(self, user_id: str) -> Optional[User]: ...

    def get_user_by_email(self, email: str) -> Optional[User]: ...

    def get_user_by_username(self, username: str) -> Optional[User]: ...

    def update_user(self, user_id: str, **changes) -> Optional[User]: ...

    def list_users(self, roles: Optional[Iterable[str]] = None) -> List[User]: ...

    def delete_user(self, user_id: str) -> bool: ...

    def save_password(
        self, user_id: str, password_hash: str, password_algo: str
    ) -> None: ...

    def get_password_record(self, user_id: str) -> Optional[Tuple[str, str]]: ...


class CredentialStore:
    """User identities and their argon2id password hashes."""

    def __init__(self, store: UserStore, hasher: Optional[PasswordHasher] = None) -> None:
        self.store = store
        self._pwd_hasher = hasher or PasswordHasher(type=Type.ID)

    def create(
        self,
        email: str,
        raw_password: str,
        role: str,
        name: str,
        *,
        designation: Optional[str] = None,
        is_verified: bool = True,
        added_by: Optional[str] = None,
    ) -> User:
        password_hash = self._pwd_hasher.hash(raw_password)
        try:
            user = self.store.create_user(
                email,
                name,
                role=role,
                designation=designation,
                is_verified=is_verified,
                added_by=added_by,
                added_at=utcnow() if added_by else None,
            )
        except ConstraintViolation as exc:
            raise DuplicateEmailError(
                "User already exists with this email", detail=exc.detail
            ) from exc
        self.store.save_password(user.id, password_hash, PASSWORD_ALGO)
        return user

    def find_by_email(self, email: str) -> Optional[User]:
        return self.store.get_user_by_email(email)

    def find_by_id(self, user_id: str) -> Optional[User]:
        return self.store.get_user(user_id)

    def find_by_username(self, username: str) -> Optional[User]:
        return self.store.get_user_by_username(username)

    def verify_password(self, user: User, raw_password: str) -> bool:
        record = self.store.get_password_record(user.id)
        if not record:
            logger.warning("password_record_missing", user_id=user.id)
            return False
        stored_hash, algo = record
        if algo != PASSWORD_ALGO:
            logger.warning("password_algo_mismatch", user_id=user.id, algo=algo)
            return False
        try:
            return self._pwd_hasher.verify(stored_hash, raw_password)
        except VerifyMismatchError:
            return False
        except (InvalidHash, VerificationError):
            logger.warning("password_verification_failed", user_id=user.id)
            return False

    def set_password(self, user: User, raw_password: str) -> None:
        self.store.save_password(user.id, self._pwd_hasher.hash(raw_password), PASSWORD_ALGO)

    def set_verified(self, user: User) -> User:
        return self.store.update_user(user.id, is_verified=True) or user

    def set_active(
        self,
        user: User,
        active: bool,
        *,
        reason: Optional[str] = None,
        actor: Optional[str] = None,
    ) -> User:
        if active:
            changes = {"is_active": True, "activated_at": utcnow(), "activated_by": actor}
        else:
            changes = {
                "is_active": False,
                "restricted_at": utcnow(),
                "restricted_by": actor,
                "restrict_reason": reason or "No reason provided",
            }
        return self.store.update_user(user.id, **changes) or user
