from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, List, Optional, Sequence

from jobboard.logging import get_logger
from jobboard.service.auth import AuthContext
from jobboard.service.errors import ForbiddenError, NotFoundError, ValidationError
from jobboard.storage.errors import ConstraintViolation
from jobboard.storage.memory import MemoryStore
from jobboard.storage.models import Application, Job, User

logger = get_logger(__name__)

IN_PROGRESS_STATUSES = ("interview", "screening")


@dataclass
class ApplicationView:
    application: Application
    job: Optional[Job]


@dataclass
class Submission:
    """Everything the caller needs to notify both sides of a new application."""

    application: Application
    job: Job
    candidate: User
    employer: Optional[User]


@dataclass
class EmployeeSummary:
    user: User
    application_count: int


class JobService:
    """Job postings, applications and the reports built on them."""

    def __init__(self, store: MemoryStore) -> None:
        self.store = store

    def _require_user(self, ctx: AuthContext) -> User:
        user = self.store.get_user(ctx.user_id)
        if not user:
            raise NotFoundError("User not found")
        return user

    def _owned_job(self, ctx: AuthContext, job_id: str, action: str) -> Job:
        job = self.get_job(job_id)
        if job.employer_id != ctx.user_id:
            logger.warning("job_owner_mismatch", job_id=job_id, user_id=ctx.user_id, action=action)
            raise ForbiddenError(f"Not authorized to {action} this job")
        return job

    # postings ----------------------------------------------------------

    def create_job(
        self,
        ctx: AuthContext,
        *,
        title: str,
        description: str,
        requirements: Sequence[str] = (),
        location: Optional[str] = None,
        salary: Optional[str] = None,
        job_type: Optional[str] = None,
        category: Optional[str] = None,
    ) -> Job:
        employer = self._require_user(ctx)
        job = self.store.create_job(
            employer,
            title=title,
            description=description,
            requirements=list(requirements),
            location=location,
            salary=salary,
            job_type=job_type or "full-time",
            category=category,
        )
        logger.info("job_posted", job_id=job.id, employer_id=employer.id)
        return job

    def list_jobs(
        self,
        *,
        status: Optional[str] = None,
        category: Optional[str] = None,
        search: Optional[str] = None,
    ) -> List[Job]:
        jobs = self.store.list_jobs()
        # only the "active" filter is honoured; other status values list everything
        if status == "active":
            jobs = [j for j in jobs if j.status == "active"]
        if category:
            jobs = [j for j in jobs if j.category == category]
        if search:
            needle = search.lower()
            jobs = [
                j for j in jobs
                if needle in j.title.lower() or needle in j.description.lower()
            ]
        return sorted(jobs, key=lambda j: j.created_at, reverse=True)

    def get_job(self, job_id: str) -> Job:
        job = self.store.get_job(job_id)
        if not job:
            raise NotFoundError("Job not found")
        return job

    def update_job(self, ctx: AuthContext, job_id: str, **changes) -> Job:
        job = self._owned_job(ctx, job_id, "update")
        # empty values keep the current field
        updates = {key: value for key, value in changes.items() if value}
        updated = self.store.update_job(job.id, **updates) or job
        logger.info("job_updated", job_id=job.id, fields=sorted(updates))
        return updated

    def delete_job(self, ctx: AuthContext, job_id: str) -> None:
        job = self._owned_job(ctx, job_id, "delete")
        self.store.delete_job(job.id)
        logger.info("job_deleted", job_id=job.id)

    # applications ------------------------------------------------------

    def apply(self, ctx: AuthContext, job_id: str) -> Submission:
        job = self.get_job(job_id)
        candidate = self._require_user(ctx)
        if any(a.job_id == job.id for a in self.store.list_applications(employee_id=candidate.id)):
            raise ValidationError("You have already applied for this job")
        if not candidate.profile.get("cv"):
            raise ValidationError("Please upload your CV before applying")
        try:
            application = self.store.create_application(job, candidate)
        except ConstraintViolation as exc:
            raise ValidationError("You have already applied for this job") from exc
        logger.info("application_submitted", application_id=application.id, job_id=job.id)
        return Submission(
            application=application,
            job=job,
            candidate=candidate,
            employer=self.store.get_user(job.employer_id),
        )

    def _with_jobs(self, applications: Iterable[Application]) -> List[ApplicationView]:
        return [ApplicationView(a, self.store.get_job(a.job_id)) for a in applications]

    def list_applications(self, ctx: AuthContext) -> List[ApplicationView]:
        if ctx.role == "employee":
            applications = self.store.list_applications(employee_id=ctx.user_id)
        elif ctx.role == "employer":
            owned = [j.id for j in self.store.list_jobs(employer_id=ctx.user_id)]
            applications = self.store.list_applications(job_ids=owned)
        else:
            raise ForbiddenError("Access denied")
        return self._with_jobs(applications)

    def update_application(
        self,
        ctx: AuthContext,
        application_id: str,
        *,
        status: Optional[str] = None,
        progress: Optional[int] = None,
        notes: Optional[str] = None,
    ) -> tuple[Application, Job, bool]:
        """Apply an employer's review; returns ``(application, job, status_changed)``."""
        application = self.store.get_application(application_id)
        if not application:
            raise NotFoundError("Application not found")
        job = self.store.get_job(application.job_id)
        if not job or job.employer_id != ctx.user_id:
            raise ForbiddenError("Not authorized to update this application")
        if progress is not None and not 0 <= progress <= 100:
            raise ValidationError("progress must be between 0 and 100", detail={"progress": progress})

        status_changed = bool(status) and status != application.status
        changes = {}
        if status:
            changes["status"] = status
        if progress is not None:
            changes["progress"] = progress
        if notes is not None:
            changes["notes"] = notes
        updated = self.store.update_application(application.id, **changes) or application
        logger.info(
            "application_updated",
            application_id=application.id,
            status=updated.status,
            status_changed=status_changed,
        )
        return updated, job, status_changed

    def progress(self, ctx: AuthContext) -> dict:
        applications = self.store.list_applications(employee_id=ctx.user_id)

        def count(*statuses: str) -> int:
            return sum(1 for a in applications if a.status in statuses)

        average = 0
        if applications:
            average = round(sum(a.progress for a in applications) / len(applications))
        return {
            "total_applications": len(applications),
            "pending_applications": count("pending"),
            "in_progress_applications": count(*IN_PROGRESS_STATUSES),
            "accepted_applications": count("accepted"),
            "rejected_applications": count("rejected"),
            "average_progress": average,
            "applications": self._with_jobs(applications),
        }

    def search_employees(self, skills: Optional[str] = None) -> List[EmployeeSummary]:
        employees = self.store.list_users(roles=("employee",))
        if skills:
            wanted = [s.strip() for s in skills.lower().split(",") if s.strip()]
            employees = [
                u for u in employees
                if any(
                    term in str(skill).lower()
                    for skill in u.profile.get("skills") or []
                    for term in wanted
                )
            ]
        return [
            EmployeeSummary(u, len(self.store.list_applications(employee_id=u.id)))
            for u in employees
        ]
