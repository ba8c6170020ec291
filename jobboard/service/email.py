from __future__ import annotations

import threading
from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional
from urllib.parse import urlencode

from jobboard.logging import get_logger
from jobboard.storage.models import Application, Job, User, utcnow

logger = get_logger(__name__)

_SIGNATURE = "Best regards,\nJob Portal Team"

_STATUS_MESSAGES = {
    "interview": (
        "Congratulations! You have been selected for an interview. "
        "We will contact you shortly with the details."
    ),
    "accepted": (
        "Congratulations! Your application has been accepted. "
        "Our HR team will reach out to you soon."
    ),
    "rejected": (
        "Thank you for your interest. Unfortunately, we have decided to move forward "
        "with other candidates. We encourage you to apply for other positions that "
        "match your skills."
    ),
}


@dataclass(frozen=True)
class OutboundEmail:
    recipient: str
    subject: str
    body: str
    sent_at: datetime = field(default_factory=utcnow)


class EmailService:
    """Transactional notifications for the job board.

    Messages are rendered from fixed templates and handed to :meth:`notify`,
    which logs them and keeps a bounded in-memory outbox. There is no SMTP
    transport; the outbox is the delivery record.
    """

    def __init__(
        self,
        *,
        from_email: str = "noreply@jobportal.com",
        from_name: str = "Job Portal",
        base_url: Optional[str] = None,
        verification_ttl_minutes: int = 5,
        outbox_limit: int = 500,
    ) -> None:
        self.from_email = from_email
        self.from_name = from_name
        self.base_url = (base_url or "http://localhost:8000").rstrip("/")
        self.verification_ttl_minutes = verification_ttl_minutes
        self.outbox_limit = outbox_limit
        self._outbox: List[OutboundEmail] = []
        self._outbox_lock = threading.Lock()

    def _redact_email(self, email: str) -> str:
        """Redact an email address for logging to avoid PII leakage."""
        if "@" not in email:
            return "redacted"
        local, domain = email.split("@", 1)
        return f"{local[:2]}***@{domain}"

    def notify(self, recipient: str, subject: str, body: str) -> bool:
        if not recipient:
            logger.warning("email_missing_recipient", subject=subject)
            return False
        message = OutboundEmail(recipient=recipient, subject=subject, body=body)
        with self._outbox_lock:
            self._outbox.append(message)
            if len(self._outbox) > self.outbox_limit:
                del self._outbox[: len(self._outbox) - self.outbox_limit]
        logger.info(
            "email_dev_mode",
            to=self._redact_email(recipient),
            sender=f"{self.from_name} <{self.from_email}>",
            subject=subject,
            body_length=len(body),
        )
        return True

    def sent_to(self, recipient: str) -> List[OutboundEmail]:
        with self._outbox_lock:
            return [m for m in self._outbox if m.recipient == recipient]

    # templates ---------------------------------------------------------

    def send_verification_code(self, to_email: str, code: str) -> bool:
        body = (
            "Welcome to Job Portal!\n\n"
            f"Your email verification code is: {code}\n\n"
            f"This code will expire in {self.verification_ttl_minutes} minutes.\n\n"
            "If you didn't create an account, please ignore this email.\n\n"
            f"{_SIGNATURE}"
        )
        return self.notify(to_email, "Email Verification - Job Portal", body)

    def reset_link(self, to_email: str, token: str) -> str:
        query = urlencode({"token": token, "email": to_email})
        return f"{self.base_url}/reset-password.html?{query}"

    def send_password_reset(self, to_email: str, token: str) -> bool:
        body = (
            "You requested a password reset for your Job Portal account.\n\n"
            f"Reset your password here: {self.reset_link(to_email, token)}\n\n"
            "This link will expire in 24 hours. If you didn't request a reset, "
            "you can ignore this email.\n\n"
            f"{_SIGNATURE}"
        )
        return self.notify(to_email, "Password Reset - Job Portal", body)

    def send_application_received(self, job: Job, candidate: User) -> bool:
        body = (
            f"Dear {candidate.name or 'Candidate'},\n\n"
            f"Thank you for applying for the position of {job.title} at "
            f"{job.employer_name or 'our company'}.\n\n"
            "We have received your application and our team will review it shortly.\n\n"
            "Job Details:\n"
            f"- Position: {job.title}\n"
            f"- Location: {job.location or 'Not specified'}\n"
            f"- Applied Date: {utcnow().date().isoformat()}\n\n"
            f"{_SIGNATURE}"
        )
        return self.notify(candidate.email, "Application Received - Job Portal", body)

    def send_application_update(self, application: Application, job: Job, status: str) -> bool:
        label = status.capitalize()
        message = _STATUS_MESSAGES.get(status, "Your application is currently being reviewed.")
        body = (
            f"Dear {application.employee_name},\n\n"
            f"Your application for the position of {job.title} has been updated.\n\n"
            f"New Status: {label}\n\n"
            f"{message}\n\n"
            f"{_SIGNATURE}"
        )
        return self.notify(application.employee_email, f"Application Update: {label}", body)

    def send_job_posted(self, job: Job) -> bool:
        lines = [
            f"Dear {job.employer_name},",
            "",
            "Your job posting has been successfully created and is now live on Job Portal.",
            "",
            "Job Details:",
            f"- Position: {job.title}",
            f"- Category: {job.category or 'General'}",
            f"- Location: {job.location or 'Not specified'}",
            f"- Job Type: {job.job_type}",
        ]
        if job.salary:
            lines.append(f"- Salary: {job.salary}")
        lines += ["", "Candidates can now view and apply for this position.", "", _SIGNATURE]
        return self.notify(job.employer_email, "Job Posted Successfully - Job Portal", "\n".join(lines))

    def send_new_application(self, job: Job, application: Application, employer: User) -> bool:
        profile = application.employee_profile or {}
        lines = [
            f"Dear {job.employer_name},",
            "",
            f"You have received a new application for the position of {job.title}.",
            "",
            "Candidate Details:",
            f"- Name: {application.employee_name}",
            f"- Email: {application.employee_email}",
        ]
        if profile.get("skills"):
            lines.append(f"- Skills: {', '.join(profile['skills'])}")
        if profile.get("desired_job_title"):
            lines.append(f"- Desired Position: {profile['desired_job_title']}")
        lines += ["", "Log in to your employer dashboard to review the application.", "", _SIGNATURE]
        return self.notify(employer.email, f"New Application Received - {job.title}", "\n".join(lines))
