from __future__ import annotations

import threading
import uuid
from dataclasses import fields
from datetime import datetime
from typing import Dict, Iterable, List, Optional, Tuple

from jobboard.storage.errors import ConstraintViolation
from jobboard.storage.models import Application, Job, User, utcnow

_USER_FIELDS = frozenset(f.name for f in fields(User)) - {"id", "email", "created_at"}
_JOB_FIELDS = frozenset(f.name for f in fields(Job)) - {"id", "employer_id", "created_at"}
_APPLICATION_FIELDS = frozenset({"status", "progress", "notes", "updated_at"})


class MemoryStore:
    """Process-local store for users, credentials, jobs and applications.

    Collections are private; callers go through the methods below, which
    serialize every read-modify-write on a single re-entrant lock.
    """

    def __init__(self) -> None:
        self._data_lock = threading.RLock()
        self._users: Dict[str, User] = {}
        self._credentials: Dict[str, Tuple[str, str]] = {}
        self._jobs: Dict[str, Job] = {}
        self._applications: Dict[str, Application] = {}

    # users -------------------------------------------------------------

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
    ) -> User:
        with self._data_lock:
            if any(existing.email == email for existing in self._users.values()):
                raise ConstraintViolation("email already exists", {"field": "email"})
            user = User(
                id=uuid.uuid4().hex,
                email=email,
                name=name,
                role=role,
                designation=designation,
                is_verified=is_verified,
                is_active=is_active,
                added_by=added_by,
                added_at=added_at,
            )
            self._users[user.id] = user
            return user

    def get_user(self, user_id: str) -> Optional[User]:
        with self._data_lock:
            return self._users.get(user_id)

    def get_user_by_email(self, email: str) -> Optional[User]:
        with self._data_lock:
            return next((u for u in self._users.values() if u.email == email), None)

    def get_user_by_username(self, username: str) -> Optional[User]:
        target = username.lower()
        with self._data_lock:
            return next((u for u in self._users.values() if u.username == target), None)

    def list_users(self, roles: Optional[Iterable[str]] = None) -> List[User]:
        with self._data_lock:
            users = list(self._users.values())
        if roles is not None:
            allowed = set(roles)
            users = [u for u in users if u.role in allowed]
        return sorted(users, key=lambda u: u.created_at)

    def update_user(self, user_id: str, **changes) -> Optional[User]:
        unknown = set(changes) - _USER_FIELDS
        if unknown:
            raise ValueError(f"unknown user fields: {', '.join(sorted(unknown))}")
        with self._data_lock:
            user = self._users.get(user_id)
            if not user:
                return None
            for key, value in changes.items():
                setattr(user, key, value)
            return user

    def update_user_profile(self, user_id: str, changes: Dict) -> Optional[User]:
        """Merge ``changes`` into the user's profile dict."""
        with self._data_lock:
            user = self._users.get(user_id)
            if not user:
                return None
            user.profile = {**user.profile, **changes}
            return user

    def delete_user(self, user_id: str) -> bool:
        with self._data_lock:
            removed = self._users.pop(user_id, None)
            self._credentials.pop(user_id, None)
            return removed is not None

    def save_password(self, user_id: str, password_hash: str, password_algo: str) -> None:
        with self._data_lock:
            if user_id not in self._users:
                raise ConstraintViolation("user not found", {"field": "user_id"})
            self._credentials[user_id] = (password_hash, password_algo)

    def get_password_record(self, user_id: str) -> Optional[Tuple[str, str]]:
        with self._data_lock:
            return self._credentials.get(user_id)

    # jobs --------------------------------------------------------------

    def create_job(self, employer: User, **attrs) -> Job:
        with self._data_lock:
            job = Job(
                id=uuid.uuid4().hex,
                employer_id=employer.id,
                employer_name=employer.name,
                employer_email=employer.email,
                **attrs,
            )
            self._jobs[job.id] = job
            return job

    def get_job(self, job_id: str) -> Optional[Job]:
        with self._data_lock:
            return self._jobs.get(job_id)

    def list_jobs(self, *, employer_id: Optional[str] = None) -> List[Job]:
        with self._data_lock:
            jobs = list(self._jobs.values())
        if employer_id is not None:
            jobs = [j for j in jobs if j.employer_id == employer_id]
        return jobs

    def update_job(self, job_id: str, **changes) -> Optional[Job]:
        unknown = set(changes) - _JOB_FIELDS
        if unknown:
            raise ValueError(f"unknown job fields: {', '.join(sorted(unknown))}")
        with self._data_lock:
            job = self._jobs.get(job_id)
            if not job:
                return None
            for key, value in changes.items():
                setattr(job, key, value)
            job.updated_at = utcnow()
            return job

    def delete_job(self, job_id: str) -> bool:
        with self._data_lock:
            return self._jobs.pop(job_id, None) is not None

    # applications ------------------------------------------------------

    def create_application(self, job: Job, employee: User) -> Application:
        with self._data_lock:
            if any(
                a.job_id == job.id and a.employee_id == employee.id
                for a in self._applications.values()
            ):
                raise ConstraintViolation(
                    "application already exists", {"job_id": job.id}
                )
            application = Application(
                id=uuid.uuid4().hex,
                job_id=job.id,
                employee_id=employee.id,
                employee_name=employee.name,
                employee_email=employee.email,
                employee_profile=dict(employee.profile),
            )
            self._applications[application.id] = application
            return application

    def get_application(self, application_id: str) -> Optional[Application]:
        with self._data_lock:
            return self._applications.get(application_id)

    def list_applications(
        self,
        *,
        employee_id: Optional[str] = None,
        job_ids: Optional[Iterable[str]] = None,
    ) -> List[Application]:
        with self._data_lock:
            applications = list(self._applications.values())
        if employee_id is not None:
            applications = [a for a in applications if a.employee_id == employee_id]
        if job_ids is not None:
            wanted = set(job_ids)
            applications = [a for a in applications if a.job_id in wanted]
        return sorted(applications, key=lambda a: a.applied_at)

    def update_application(self, application_id: str, **changes) -> Optional[Application]:
        unknown = set(changes) - _APPLICATION_FIELDS
        if unknown:
            raise ValueError(f"unknown application fields: {', '.join(sorted(unknown))}")
        with self._data_lock:
            application = self._applications.get(application_id)
            if not application:
                return None
            for key, value in changes.items():
                setattr(application, key, value)
            application.updated_at = utcnow()
            return application
