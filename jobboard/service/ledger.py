"""Single-use, time-boxed secrets keyed by email.

Two ledgers are used at runtime: 4-digit email verification codes and
64-hex-character password reset tokens. Both follow the same rules:

* issuing overwrites any live entry for the email;
* an expired entry is purged the first time it is looked at;
* a wrong candidate leaves the entry in place so the owner can retry;
* a matching candidate consumes the entry.
"""

from __future__ import annotations

import hmac
import secrets
import threading
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Callable, Dict, Optional

from jobboard.logging import email_hash, get_logger

logger = get_logger(__name__)


class LedgerFailure(str, Enum):
    NOT_FOUND = "not_found"
    EXPIRED = "expired"
    MISMATCH = "mismatch"


@dataclass(frozen=True)
class LedgerResult:
    valid: bool
    reason: Optional[LedgerFailure] = None


@dataclass(frozen=True)
class _Entry:
    secret: str
    expires_at: datetime


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def generate_verification_code() -> str:
    """Uniform 4-digit code in 1000-9999."""
    return str(1000 + secrets.randbelow(9000))


def generate_reset_token() -> str:
    """256 random bits, hex encoded."""
    return secrets.token_hex(32)


class OneTimeTokenLedger:
    def __init__(
        self,
        name: str,
        generator: Callable[[], str],
        ttl: timedelta,
        *,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self.name = name
        self.ttl = ttl
        self._generator = generator
        self._clock = clock
        self._lock = threading.Lock()
        self._entries: Dict[str, _Entry] = {}

    def issue(self, email: str) -> str:
        secret = self._generator()
        expires_at = self._clock() + self.ttl
        with self._lock:
            self._entries[email] = _Entry(secret=secret, expires_at=expires_at)
        logger.info(
            "ledger_secret_issued",
            ledger=self.name,
            email_hash=email_hash(email),
            expires_at=expires_at.isoformat(),
        )
        return secret

    def validate(self, email: str, candidate: str) -> LedgerResult:
        """Check ``candidate`` and consume the entry when it matches."""
        return self._check(email, candidate, consume=True)

    def inspect(self, email: str, candidate: str) -> LedgerResult:
        """Like :meth:`validate` but a match leaves the entry live."""
        return self._check(email, candidate, consume=False)

    def discard(self, email: str) -> None:
        with self._lock:
            self._entries.pop(email, None)

    def _check(self, email: str, candidate: str, *, consume: bool) -> LedgerResult:
        with self._lock:
            entry = self._entries.get(email)
            if entry is None:
                result = LedgerResult(False, LedgerFailure.NOT_FOUND)
            elif self._clock() > entry.expires_at:
                del self._entries[email]
                result = LedgerResult(False, LedgerFailure.EXPIRED)
            elif not hmac.compare_digest(
                entry.secret.encode("utf-8"), str(candidate).encode("utf-8")
            ):
                result = LedgerResult(False, LedgerFailure.MISMATCH)
            else:
                if consume:
                    del self._entries[email]
                result = LedgerResult(True)
        if not result.valid:
            logger.info(
                "ledger_check_failed",
                ledger=self.name,
                email_hash=email_hash(email),
                reason=result.reason.value,
            )
        return result


def verification_code_ledger(
    ttl: timedelta, *, clock: Callable[[], datetime] = _utcnow
) -> OneTimeTokenLedger:
    return OneTimeTokenLedger("email_verification", generate_verification_code, ttl, clock=clock)


def reset_token_ledger(
    ttl: timedelta, *, clock: Callable[[], datetime] = _utcnow
) -> OneTimeTokenLedger:
    return OneTimeTokenLedger("password_reset", generate_reset_token, ttl, clock=clock)
