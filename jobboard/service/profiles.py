from __future__ import annotations

import uuid
from pathlib import Path
from typing import Any, Dict, Optional

from jobboard.logging import get_logger
from jobboard.service.auth import AuthContext
from jobboard.service.errors import ForbiddenError, NotFoundError, ValidationError
from jobboard.service.fs import (
    PathTraversalError,
    public_upload_path,
    safe_join,
    upload_name_from_public,
)
from jobboard.storage.memory import MemoryStore
from jobboard.storage.models import User, utcnow

logger = get_logger(__name__)

CV_EXTENSIONS = (".pdf", ".doc", ".docx")
MANAGEMENT_ROLES = ("management", "admin")

# top-level profile keys a management update may overwrite
_MANAGEMENT_BASE_KEYS = ("phone", "cnic", "address", "photo", "bio")


class ProfileService:
    """Profile edits, CV storage and the onboarding questionnaire."""

    def __init__(self, store: MemoryStore, *, uploads_dir: Path, max_cv_bytes: int) -> None:
        self.store = store
        self.uploads_dir = Path(uploads_dir)
        self.max_cv_bytes = max_cv_bytes

    def get_user(self, user_id: str) -> User:
        user = self.store.get_user(user_id)
        if not user:
            raise NotFoundError("User not found")
        return user

    # profile -----------------------------------------------------------

    def update_profile(self, ctx: AuthContext, changes: Dict[str, Any]) -> Dict[str, Any]:
        self.get_user(ctx.user_id)
        user = self.store.update_user_profile(
            ctx.user_id, {**changes, "updated_at": utcnow().isoformat()}
        )
        logger.info("profile_updated", user_id=ctx.user_id, fields=sorted(changes))
        return user.profile

    def update_management_profile(
        self, ctx: AuthContext, changes: Dict[str, Any]
    ) -> Dict[str, Any]:
        if ctx.role not in MANAGEMENT_ROLES:
            raise ForbiddenError("Only management users can update management profile")
        user = self.get_user(ctx.user_id)
        fields = dict(changes)
        name = fields.pop("name", None)
        if name:
            self.store.update_user(user.id, name=name)

        base = {key: fields.pop(key) for key in _MANAGEMENT_BASE_KEYS if fields.get(key)}
        if "bio" in base:
            fields["bio"] = base["bio"]
        achievements = fields.get("achievements")
        if achievements:
            fields["bio"] = f"{base.get('bio') or ''}\n\nKey Achievements:\n{achievements}"

        now = utcnow().isoformat()
        management = {
            **(user.profile.get("management_profile") or {}),
            **fields,
            "is_management_profile": True,
            "profile_completed_at": now,
        }
        user = self.store.update_user_profile(
            user.id, {**base, "management_profile": management, "updated_at": now}
        )
        logger.info("management_profile_updated", user_id=user.id)
        return user.profile

    def store_cv(self, ctx: AuthContext, filename: str, content: bytes) -> str:
        """Save an uploaded CV and return its public ``/uploads/...`` path.

        The previous CV file, if any, is removed once the new one is written.
        """
        user = self.get_user(ctx.user_id)
        ext = Path(filename or "").suffix.lower()
        if ext not in CV_EXTENSIONS:
            raise ValidationError(
                "Only PDF, DOC, and DOCX files are allowed", detail={"extension": ext}
            )
        if len(content) > self.max_cv_bytes:
            raise ValidationError(
                "CV exceeds the maximum upload size",
                status_code=413,
                detail={"max_bytes": self.max_cv_bytes},
            )

        self.uploads_dir.mkdir(parents=True, exist_ok=True)
        stored_name = f"{uuid.uuid4()}{ext}"
        dest = safe_join(self.uploads_dir, stored_name)
        dest.write_bytes(content)

        previous = user.profile.get("cv")
        if previous:
            self._remove_upload(previous)

        cv = public_upload_path(stored_name)
        self.store.update_user_profile(
            user.id, {"cv": cv, "cv_uploaded_at": utcnow().isoformat()}
        )
        logger.info("cv_uploaded", user_id=user.id, size_bytes=len(content))
        return cv

    def _remove_upload(self, public_path: str) -> None:
        try:
            old = safe_join(self.uploads_dir, upload_name_from_public(public_path))
        except PathTraversalError:
            logger.warning("cv_previous_path_rejected")
            return
        if old.exists():
            old.unlink()

    # onboarding --------------------------------------------------------

    def set_user_type(self, ctx: AuthContext, user_type: str) -> str:
        self.get_user(ctx.user_id)
        step = "complete" if user_type == "employer" else "qualifications"
        self.store.update_user(ctx.user_id, user_type=user_type, onboarding_step=step)
        return step

    def save_qualifications(self, ctx: AuthContext, qualifications: Dict[str, Any]) -> str:
        self.get_user(ctx.user_id)
        record = {
            **qualifications,
            "certifications": qualifications.get("certifications") or [],
            "completed_at": utcnow().isoformat(),
        }
        self.store.update_user(ctx.user_id, qualifications=record, onboarding_step="experience")
        return "experience"

    def save_experience(self, ctx: AuthContext, experience: Dict[str, Any]) -> str:
        self.get_user(ctx.user_id)
        has_experience = bool(experience.get("has_experience"))
        record = {
            **experience,
            "years_of_experience": experience.get("years_of_experience") if has_experience else 0,
            "work_history": experience.get("work_history") or [],
            "completed_at": utcnow().isoformat(),
        }
        self.store.update_user(ctx.user_id, experience=record, onboarding_step="skills")
        return "skills"

    def save_skills(
        self,
        ctx: AuthContext,
        *,
        skills: Optional[list] = None,
        skill_level: Optional[str] = None,
        interested_fields: Optional[list] = None,
    ) -> str:
        self.get_user(ctx.user_id)
        self.store.update_user_profile(
            ctx.user_id,
            {
                "skills": skills or [],
                "skill_level": skill_level,
                "interested_fields": interested_fields or [],
            },
        )
        self.store.update_user(ctx.user_id, onboarding_step="assessment")
        return "assessment"

    def record_assessment(self, ctx: AuthContext, result: Dict[str, Any]) -> None:
        self.get_user(ctx.user_id)
        record = {**result, "completed_at": utcnow().isoformat()}
        self.store.update_user(ctx.user_id, assessment=record, onboarding_step="complete")
        logger.info("assessment_recorded", user_id=ctx.user_id, score=result.get("score"))

    def interested_field(self, ctx: AuthContext) -> Optional[str]:
        fields = self.get_user(ctx.user_id).profile.get("interested_fields") or []
        return fields[0] if fields else None

    def onboarding_status(self, ctx: AuthContext) -> Dict[str, Any]:
        user = self.get_user(ctx.user_id)
        step = user.onboarding_step or ("complete" if user.role == "employer" else "user_type")
        return {
            "user_type": user.user_type,
            "onboarding_step": step,
            "profile": user.profile,
            "qualifications": user.qualifications,
            "experience": user.experience,
            "assessment": user.assessment,
        }
