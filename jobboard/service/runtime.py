from __future__ import annotations

import threading
from datetime import timedelta
from pathlib import Path
from typing import Optional

from jobboard.config import get_settings, reset_settings_cache
from jobboard.logging import get_logger
from jobboard.service.assessment import AssessmentService
from jobboard.service.auth import AuthService
from jobboard.service.credentials import CredentialStore
from jobboard.service.email import EmailService
from jobboard.service.jobs import JobService
from jobboard.service.ledger import reset_token_ledger, verification_code_ledger
from jobboard.service.profiles import ProfileService
from jobboard.service.sessions import SessionIssuer
from jobboard.storage.memory import MemoryStore

logger = get_logger(__name__)


class Runtime:
    """Holds singleton service instances for the FastAPI app."""

    def __init__(self):
        self.settings = get_settings()
        logger.info("runtime_init_started", test_mode=self.settings.test_mode)

        self.store = MemoryStore()
        self.credentials = CredentialStore(self.store)
        self.sessions = SessionIssuer(
            self.settings.jwt_secret,
            issuer=self.settings.jwt_issuer,
            ttl=timedelta(minutes=self.settings.session_token_ttl_minutes),
        )
        self.verification_codes = verification_code_ledger(
            timedelta(minutes=self.settings.verification_code_ttl_minutes)
        )
        self.reset_tokens = reset_token_ledger(
            timedelta(minutes=self.settings.reset_token_ttl_minutes)
        )
        self.email = EmailService(
            from_email=self.settings.email_from_address,
            from_name=self.settings.email_from_name,
            base_url=self.settings.client_url,
            verification_ttl_minutes=self.settings.verification_code_ttl_minutes,
        )
        self.auth = AuthService(
            self.credentials,
            self.sessions,
            self.verification_codes,
            self.reset_tokens,
            self.settings,
        )
        self.jobs = JobService(self.store)
        self.profiles = ProfileService(
            self.store,
            uploads_dir=Path(self.settings.uploads_dir),
            max_cv_bytes=self.settings.max_cv_bytes,
        )
        self.assessment = AssessmentService()

        self.auth.ensure_admin()
        logger.info(
            "runtime_init_completed",
            require_email_verification=self.settings.require_email_verification,
        )


runtime: Optional[Runtime] = None
_runtime_lock = threading.Lock()


def get_runtime() -> Runtime:
    """Get or create the Runtime singleton in a thread-safe manner.

    Double-checked locking: the unlocked read is the fast path, the locked
    re-check prevents two threads from building competing runtimes.
    """
    global runtime
    if runtime is not None:
        return runtime
    with _runtime_lock:
        if runtime is None:
            runtime = Runtime()
        return runtime


def reset_runtime_for_tests() -> Runtime:
    """Reinitialize the runtime singleton for isolated test runs."""
    global runtime

    with _runtime_lock:
        reset_settings_cache()
        settings = get_settings()
        if not settings.test_mode:
            raise RuntimeError("runtime reset is only allowed in TEST_MODE")
        runtime = Runtime()
        return runtime
