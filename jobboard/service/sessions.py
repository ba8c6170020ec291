from __future__ import annotations

import base64
import hashlib
import hmac
import json
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Callable

from jobboard.logging import get_logger
from jobboard.service.errors import InvalidTokenError
from jobboard.storage.models import User

logger = get_logger(__name__)


@dataclass(frozen=True)
class SessionClaims:
    id: str
    email: str
    role: str
    issued_at: datetime
    expires_at: datetime


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class SessionIssuer:
    """Mint and verify stateless HS256 bearer tokens.

    Tokens carry ``{id, email, role, iat, exp, iss}``. Nothing is stored
    server-side, so a token stays valid until ``exp`` regardless of later
    changes to the account.
    """

    def __init__(
        self,
        secret: str,
        *,
        issuer: str,
        ttl: timedelta = timedelta(hours=24),
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        if not secret:
            raise ValueError("signing secret is required")
        self._secret = secret.encode("utf-8")
        self.issuer = issuer
        self.ttl = ttl
        self._clock = clock

    def issue(self, user: User) -> str:
        issued_at = int(self._clock().timestamp())
        payload = {
            "id": user.id,
            "email": user.email,
            "role": user.role,
            "iat": issued_at,
            "exp": issued_at + int(self.ttl.total_seconds()),
            "iss": self.issuer,
        }
        return self._encode_jwt(payload)

    def verify(self, token: str) -> SessionClaims:
        payload = self._decode_jwt(token)
        if payload.get("iss") != self.issuer:
            raise InvalidTokenError()
        try:
            exp = int(payload["exp"])
            iat = int(payload["iat"])
            claims = SessionClaims(
                id=str(payload["id"]),
                email=str(payload["email"]),
                role=str(payload["role"]),
                issued_at=datetime.fromtimestamp(iat, tz=timezone.utc),
                expires_at=datetime.fromtimestamp(exp, tz=timezone.utc),
            )
        except (KeyError, TypeError, ValueError, OverflowError, OSError):
            logger.warning("jwt_claims_malformed")
            raise InvalidTokenError()
        if claims.expires_at <= self._clock():
            raise InvalidTokenError("Token has expired.", reason="expired")
        return claims

    def _encode_segment(self, data: bytes) -> str:
        return base64.urlsafe_b64encode(data).decode("utf-8").rstrip("=")

    def _decode_segment(self, segment: str) -> bytes:
        padding = "=" * ((4 - len(segment) % 4) % 4)
        return base64.urlsafe_b64decode(segment + padding)

    def _sign(self, signing_input: str) -> str:
        digest = hmac.new(self._secret, signing_input.encode("utf-8"), hashlib.sha256).digest()
        return self._encode_segment(digest)

    def _encode_jwt(self, payload: dict[str, Any]) -> str:
        header = {"alg": "HS256", "typ": "JWT"}
        header_enc = self._encode_segment(
            json.dumps(header, separators=(",", ":")).encode()
        )
        payload_enc = self._encode_segment(
            json.dumps(payload, separators=(",", ":")).encode()
        )
        signing_input = f"{header_enc}.{payload_enc}"
        return f"{signing_input}.{self._sign(signing_input)}"

    def _decode_jwt(self, token: str) -> dict[str, Any]:
        if not token or not token.isascii():
            raise InvalidTokenError()
        try:
            header_b64, payload_b64, sig_b64 = token.split(".")
        except ValueError:
            raise InvalidTokenError()

        # Reject anything but HS256 to rule out algorithm confusion
        try:
            header = json.loads(self._decode_segment(header_b64))
        except (ValueError, TypeError):
            logger.warning("jwt_header_decode_failed")
            raise InvalidTokenError()
        if not isinstance(header, dict) or header.get("alg") != "HS256":
            logger.warning(
                "jwt_invalid_algorithm",
                alg=header.get("alg") if isinstance(header, dict) else None,
            )
            raise InvalidTokenError()

        expected_sig = self._sign(f"{header_b64}.{payload_b64}")
        if not hmac.compare_digest(expected_sig, sig_b64):
            raise InvalidTokenError()
        try:
            payload = json.loads(self._decode_segment(payload_b64))
        except (ValueError, TypeError) as exc:
            logger.warning("jwt_payload_decode_failed", error=str(exc))
            raise InvalidTokenError()
        if not isinstance(payload, dict):
            raise InvalidTokenError()
        return payload
