"""Unit tests for the in-memory store and credential store."""

import pytest

from jobboard.service.credentials import PASSWORD_ALGO, CredentialStore
from jobboard.service.errors import DuplicateEmailError
from jobboard.storage.errors import ConstraintViolation
from jobboard.storage.memory import MemoryStore


@pytest.fixture
def store():
    return MemoryStore()


@pytest.fixture
def credentials(store):
    return CredentialStore(store)


class TestUsers:
    """Tests for user records."""

    def test_create_and_lookup(self, store):
        user = store.create_user("jane@example.com", "Jane Doe", role="employer")

        assert store.get_user(user.id) is user
        assert store.get_user_by_email("jane@example.com") is user
        assert store.get_user_by_username("jane_doe") is user
        assert store.get_user_by_username("JANE_DOE") is user

    def test_email_is_unique(self, store):
        store.create_user("jane@example.com", "Jane")
        with pytest.raises(ConstraintViolation):
            store.create_user("jane@example.com", "Other")

    def test_emails_are_case_sensitive(self, store):
        store.create_user("jane@example.com", "Jane")
        assert store.get_user_by_email("Jane@example.com") is None

    def test_update_rejects_unknown_fields(self, store):
        user = store.create_user("jane@example.com", "Jane")
        with pytest.raises(ValueError):
            store.update_user(user.id, password="plaintext")

    def test_update_missing_user_returns_none(self, store):
        assert store.update_user("missing", name="x") is None

    def test_profile_merge(self, store):
        user = store.create_user("jane@example.com", "Jane")
        store.update_user_profile(user.id, {"phone": "123"})
        store.update_user_profile(user.id, {"bio": "hello"})
        assert user.profile == {"phone": "123", "bio": "hello"}

    def test_list_users_by_role(self, store):
        store.create_user("a@example.com", "A", role="employee")
        store.create_user("b@example.com", "B", role="employer")
        store.create_user("c@example.com", "C", role="admin")

        assert [u.email for u in store.list_users(roles=("employee", "employer"))] == [
            "a@example.com",
            "b@example.com",
        ]
        assert len(store.list_users()) == 3

    def test_delete_drops_credentials(self, store):
        user = store.create_user("jane@example.com", "Jane")
        store.save_password(user.id, "hash", "argon2id")

        assert store.delete_user(user.id) is True
        assert store.get_password_record(user.id) is None
        assert store.delete_user(user.id) is False

    def test_save_password_for_missing_user(self, store):
        with pytest.raises(ConstraintViolation):
            store.save_password("missing", "hash", "argon2id")


class TestUserStatus:
    """Tests for the derived status."""

    def test_status_transitions(self, store):
        user = store.create_user("jane@example.com", "Jane", is_verified=False)
        assert user.status == "unverified"
        store.update_user(user.id, is_verified=True)
        assert user.status == "active"
        store.update_user(user.id, is_active=False)
        assert user.status == "restricted"


class TestCredentialStore:
    """Tests for password hashing and verification."""

    def test_create_hashes_password(self, credentials, store):
        user = credentials.create("jane@example.com", "Secret123!", "employee", "Jane")
        password_hash, algo = store.get_password_record(user.id)

        assert algo == PASSWORD_ALGO
        assert password_hash.startswith("$argon2id$")

    def test_verify_password(self, credentials):
        user = credentials.create("jane@example.com", "Secret123!", "employee", "Jane")
        assert credentials.verify_password(user, "Secret123!") is True
        assert credentials.verify_password(user, "secret123!") is False

    def test_duplicate_maps_to_service_error(self, credentials):
        credentials.create("jane@example.com", "pw", "employee", "Jane")
        with pytest.raises(DuplicateEmailError) as excinfo:
            credentials.create("jane@example.com", "pw", "employee", "Jane")
        assert excinfo.value.message == "User already exists with this email"

    def test_corrupt_hash_fails_closed(self, credentials, store):
        user = credentials.create("jane@example.com", "pw", "employee", "Jane")
        store.save_password(user.id, "not-a-hash", PASSWORD_ALGO)
        assert credentials.verify_password(user, "pw") is False

    def test_foreign_algorithm_fails_closed(self, credentials, store):
        user = credentials.create("jane@example.com", "pw", "employee", "Jane")
        store.save_password(user.id, "$2b$10$abc", "bcrypt")
        assert credentials.verify_password(user, "pw") is False

    def test_set_password(self, credentials):
        user = credentials.create("jane@example.com", "old", "employee", "Jane")
        credentials.set_password(user, "new")
        assert credentials.verify_password(user, "new") is True
        assert credentials.verify_password(user, "old") is False


class TestJobsAndApplications:
    """Tests for job and application records."""

    def test_job_update_stamps_updated_at(self, store):
        employer = store.create_user("boss@example.com", "Boss", role="employer")
        job = store.create_job(employer, title="Dev", description="Write code")

        assert job.updated_at is None
        store.update_job(job.id, title="Senior Dev")
        assert job.title == "Senior Dev"
        assert job.updated_at is not None

    def test_duplicate_application_rejected(self, store):
        employer = store.create_user("boss@example.com", "Boss", role="employer")
        employee = store.create_user("dev@example.com", "Dev")
        job = store.create_job(employer, title="Dev", description="Write code")

        store.create_application(job, employee)
        with pytest.raises(ConstraintViolation):
            store.create_application(job, employee)

    def test_application_snapshots_profile(self, store):
        employer = store.create_user("boss@example.com", "Boss", role="employer")
        employee = store.create_user("dev@example.com", "Dev")
        store.update_user_profile(employee.id, {"skills": ["python"]})
        job = store.create_job(employer, title="Dev", description="Write code")

        application = store.create_application(job, employee)
        store.update_user_profile(employee.id, {"skills": ["go"]})

        assert application.employee_profile == {"skills": ["python"]}

    def test_list_applications_filters(self, store):
        employer = store.create_user("boss@example.com", "Boss", role="employer")
        a = store.create_user("a@example.com", "A")
        b = store.create_user("b@example.com", "B")
        job1 = store.create_job(employer, title="One", description="d")
        job2 = store.create_job(employer, title="Two", description="d")
        store.create_application(job1, a)
        store.create_application(job2, a)
        store.create_application(job1, b)

        assert len(store.list_applications(employee_id=a.id)) == 2
        assert len(store.list_applications(job_ids=[job1.id])) == 2
        assert store.list_applications(job_ids=[]) == []
