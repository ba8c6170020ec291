"""Tests for notification templates and the dev-mode outbox."""

from urllib.parse import parse_qs, urlparse

import pytest

from jobboard.service.email import EmailService
from jobboard.storage.models import Application, Job, User


@pytest.fixture
def email():
    return EmailService(base_url="http://jobs.test/", verification_ttl_minutes=5)


@pytest.fixture
def job():
    return Job(
        id="job-1",
        employer_id="emp-1",
        employer_name="Acme",
        employer_email="boss@acme.test",
        title="Backend Developer",
        description="APIs",
        location="Remote",
        salary="100k",
        category="IT",
    )


class TestOutbox:
    """Tests for delivery bookkeeping."""

    def test_notify_records_message(self, email):
        assert email.notify("a@example.com", "Hi", "Body") is True
        [message] = email.sent_to("a@example.com")
        assert message.subject == "Hi"
        assert message.body == "Body"

    def test_empty_recipient_is_skipped(self, email):
        assert email.notify("", "Hi", "Body") is False

    def test_outbox_is_bounded(self):
        service = EmailService(outbox_limit=3)
        for i in range(5):
            service.notify("a@example.com", f"n{i}", "b")
        assert [m.subject for m in service.sent_to("a@example.com")] == ["n2", "n3", "n4"]

    def test_redact_email(self, email):
        assert email._redact_email("jane@example.com") == "ja***@example.com"
        assert email._redact_email("nonsense") == "redacted"


class TestTemplates:
    """Tests for the rendered messages."""

    def test_verification_code(self, email):
        email.send_verification_code("a@example.com", "4321")
        [message] = email.sent_to("a@example.com")
        assert "4321" in message.body
        assert "5 minutes" in message.body

    def test_reset_link_shape(self, email):
        link = email.reset_link("a+b@example.com", "ab" * 32)
        parsed = urlparse(link)
        query = parse_qs(parsed.query)

        assert link.startswith("http://jobs.test/reset-password.html?")
        assert query["token"] == ["ab" * 32]
        assert query["email"] == ["a+b@example.com"]

    def test_password_reset_contains_link(self, email):
        email.send_password_reset("a@example.com", "f" * 64)
        [message] = email.sent_to("a@example.com")
        assert "reset-password.html?token=" + "f" * 64 in message.body

    def test_application_update_status_text(self, email, job):
        application = Application(
            id="app-1",
            job_id=job.id,
            employee_id="u-1",
            employee_name="Jane",
            employee_email="jane@example.com",
        )
        email.send_application_update(application, job, "interview")
        [message] = email.sent_to("jane@example.com")
        assert message.subject == "Application Update: Interview"
        assert "selected for an interview" in message.body

    def test_job_posted_goes_to_employer(self, email, job):
        email.send_job_posted(job)
        [message] = email.sent_to("boss@acme.test")
        assert "Backend Developer" in message.body
        assert "- Salary: 100k" in message.body

    def test_new_application_lists_skills(self, email, job):
        employer = User(id="emp-1", email="boss@acme.test", name="Boss", role="employer")
        application = Application(
            id="app-1",
            job_id=job.id,
            employee_id="u-1",
            employee_name="Jane",
            employee_email="jane@example.com",
            employee_profile={"skills": ["python", "sql"]},
        )
        email.send_new_application(job, application, employer)
        [message] = email.sent_to("boss@acme.test")
        assert "- Skills: python, sql" in message.body
