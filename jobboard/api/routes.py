from __future__ import annotations

import asyncio
from typing import Optional

from fastapi import APIRouter, Depends, File, Header, Query, UploadFile

from jobboard.api.schemas import (
    AdminCreateUserRequest,
    AdminCreateUserResponse,
    ApplicationMutationResponse,
    ApplicationResponse,
    ApplicationUpdateRequest,
    AssessmentQuestion,
    AssessmentQuestionsResponse,
    AssessmentResultResponse,
    AssessmentSubmitRequest,
    AuthResponse,
    CVUploadResponse,
    EmployeeSummaryResponse,
    Envelope,
    ExperienceRequest,
    ForgotPasswordRequest,
    JobCreateRequest,
    JobMutationResponse,
    JobResponse,
    JobUpdateRequest,
    LoginRequest,
    ManagedUserResponse,
    ManagementProfileRequest,
    MessageResponse,
    OnboardingStatusResponse,
    OnboardingStepResponse,
    ProfileResponse,
    ProfileUpdateRequest,
    ProgressResponse,
    QualificationsRequest,
    ResendVerificationRequest,
    ResetPasswordRequest,
    ResetTokenStatus,
    RestrictUserRequest,
    SignupRequest,
    SkillsRequest,
    UserResponse,
    UserStatusResponse,
    UserTypeRequest,
    VerifyEmailRequest,
    normalize_email,
)
from jobboard.logging import get_logger
from jobboard.service.auth import AuthContext
from jobboard.service.errors import NotFoundError
from jobboard.service.jobs import ApplicationView
from jobboard.service.ledger import LedgerFailure
from jobboard.service.runtime import get_runtime
from jobboard.storage.models import Application, Job, User

logger = get_logger(__name__)

router = APIRouter(prefix="/api")

_RESET_TOKEN_ERRORS = {
    LedgerFailure.NOT_FOUND: "Reset token not found or already used",
    LedgerFailure.EXPIRED: "Reset token has expired",
    LedgerFailure.MISMATCH: "Invalid reset token",
}


async def get_user(authorization: Optional[str] = Header(None)) -> AuthContext:
    runtime = get_runtime()
    return await runtime.auth.authenticate(authorization)


async def get_admin_user(authorization: Optional[str] = Header(None)) -> AuthContext:
    runtime = get_runtime()
    return await runtime.auth.authenticate(authorization, required_roles=("admin",))


def require_role(*roles: str):
    """Build a dependency admitting only bearers whose role is in ``roles``."""

    async def _dependency(authorization: Optional[str] = Header(None)) -> AuthContext:
        runtime = get_runtime()
        return await runtime.auth.authenticate(authorization, required_roles=roles)

    return _dependency


def _user_out(user: User) -> UserResponse:
    return UserResponse.model_validate(user)


def _job_out(job: Job) -> JobResponse:
    return JobResponse.model_validate(job)


def _application_out(application: Application, job: Optional[Job] = None) -> ApplicationResponse:
    out = ApplicationResponse.model_validate(application)
    if job is not None:
        out = out.model_copy(update={"job": _job_out(job)})
    return out


def _view_out(view: ApplicationView) -> ApplicationResponse:
    return _application_out(view.application, view.job)


# auth ------------------------------------------------------------------


@router.post("/auth/signup", response_model=Envelope, status_code=201, tags=["auth"])
async def signup(body: SignupRequest):
    """Create an account.

    Accounts start verified and receive a session token unless
    ``REQUIRE_EMAIL_VERIFICATION`` is set, in which case a verification code
    is emailed and no token is returned.

    Raises:
        400: Invalid role or malformed body
        409: Email already registered
    """
    runtime = get_runtime()
    user, token, code = await runtime.auth.signup(
        email=body.email,
        password=body.password,
        name=body.name,
        role=body.role,
        designation=body.designation,
    )
    if code:
        await asyncio.to_thread(runtime.email.send_verification_code, user.email, code)
        return Envelope(
            status="ok",
            data=AuthResponse(
                message="Account created. Please check your email for the verification code.",
                user=_user_out(user),
                requires_verification=True,
            ),
        )
    return Envelope(
        status="ok",
        data=AuthResponse(
            message="Account created successfully",
            token=token,
            token_type="bearer",
            user=_user_out(user),
        ),
    )


@router.post("/auth/verify-email", response_model=Envelope, tags=["auth"])
async def verify_email(body: VerifyEmailRequest):
    runtime = get_runtime()
    user, token = await runtime.auth.complete_email_verification(body.email, body.code)
    return Envelope(
        status="ok",
        data=AuthResponse(
            message="Email verified successfully",
            token=token,
            token_type="bearer",
            user=_user_out(user),
        ),
    )


@router.post("/auth/resend-verification", response_model=Envelope, tags=["auth"])
async def resend_verification(body: ResendVerificationRequest):
    runtime = get_runtime()
    user, code = await runtime.auth.request_email_verification(body.email)
    if code is None:
        return Envelope(status="ok", data=MessageResponse(message="Email is already verified"))
    await asyncio.to_thread(runtime.email.send_verification_code, user.email, code)
    return Envelope(
        status="ok",
        data=MessageResponse(
            message="Verification code sent successfully",
            expires_in=f"{runtime.settings.verification_code_ttl_minutes} minutes",
        ),
    )


@router.post("/auth/login", response_model=Envelope, tags=["auth"])
async def login(body: LoginRequest):
    """Authenticate with an email or username and a password.

    Raises:
        401: Unknown identifier or wrong password
        403: Account restricted or email not yet verified
    """
    runtime = get_runtime()
    user, token = await runtime.auth.login(identifier=body.identifier, password=body.password)
    return Envelope(
        status="ok",
        data=AuthResponse(
            message="Login successful",
            token=token,
            token_type="bearer",
            user=_user_out(user),
        ),
    )


@router.get("/auth/me", response_model=Envelope, tags=["auth"])
async def me(principal: AuthContext = Depends(get_user)):
    runtime = get_runtime()
    user = runtime.credentials.find_by_id(principal.user_id)
    if not user:
        raise NotFoundError("User not found")
    return Envelope(status="ok", data=_user_out(user))


@router.post("/auth/forgot-password", response_model=Envelope, tags=["auth"])
async def forgot_password(body: ForgotPasswordRequest):
    """Email a reset link when the address is registered.

    The response is identical whether or not the account exists.
    """
    runtime = get_runtime()
    token = await runtime.auth.initiate_password_reset(body.email)
    if token:
        await asyncio.to_thread(runtime.email.send_password_reset, body.email, token)
    return Envelope(
        status="ok",
        data=MessageResponse(
            message="If an account exists with this email, a password reset link has been sent"
        ),
    )


@router.post("/auth/reset-password", response_model=Envelope, tags=["auth"])
async def reset_password(body: ResetPasswordRequest):
    runtime = get_runtime()
    await runtime.auth.complete_password_reset(
        email=body.email, token=body.token, new_password=body.password
    )
    return Envelope(
        status="ok",
        data=MessageResponse(
            message="Password reset successful. Please login with your new password."
        ),
    )


@router.get("/auth/verify-reset-token", response_model=Envelope, tags=["auth"])
async def verify_reset_token(
    token: str = Query(..., min_length=1, max_length=256),
    email: str = Query(..., min_length=1, max_length=254),
):
    runtime = get_runtime()
    result = runtime.auth.check_reset_token(normalize_email(email), token)
    if result.valid:
        return Envelope(status="ok", data=ResetTokenStatus(valid=True))
    return Envelope(
        status="ok",
        data=ResetTokenStatus(valid=False, error=_RESET_TOKEN_ERRORS[result.reason]),
    )


# administration ----------------------------------------------------------


@router.get("/admin/employees", response_model=Envelope, tags=["admin"])
async def admin_list_employees(principal: AuthContext = Depends(get_admin_user)):
    runtime = get_runtime()
    return Envelope(status="ok", data=[_user_out(u) for u in runtime.auth.list_users()])


@router.get("/admin/employees/{user_id}", response_model=Envelope, tags=["admin"])
async def admin_get_employee(user_id: str, principal: AuthContext = Depends(get_admin_user)):
    runtime = get_runtime()
    user = runtime.auth.get_managed_user(user_id)
    applications = runtime.store.list_applications(employee_id=user.id)
    data = ManagedUserResponse(
        **_user_out(user).model_dump(),
        applications=[_application_out(a) for a in applications],
    )
    return Envelope(status="ok", data=data)


@router.post("/admin/employees", response_model=Envelope, status_code=201, tags=["admin"])
async def admin_create_employee(
    body: AdminCreateUserRequest, principal: AuthContext = Depends(get_admin_user)
):
    runtime = get_runtime()
    user = await runtime.auth.admin_create_user(
        actor_id=principal.user_id,
        email=body.email,
        password=body.password,
        name=body.name,
        role=body.role,
        designation=body.designation,
    )
    return Envelope(
        status="ok",
        data=AdminCreateUserResponse(message="Employee added successfully", user=_user_out(user)),
    )


@router.put("/admin/employees/{user_id}/restrict", response_model=Envelope, tags=["admin"])
async def admin_restrict_employee(
    user_id: str,
    body: Optional[RestrictUserRequest] = None,
    principal: AuthContext = Depends(get_admin_user),
):
    runtime = get_runtime()
    user = runtime.auth.restrict_user(
        user_id, actor_id=principal.user_id, reason=body.reason if body else None
    )
    return Envelope(
        status="ok",
        data=UserStatusResponse(
            message="Employee has been restricted", id=user.id, name=user.name, status=user.status
        ),
    )


@router.put("/admin/employees/{user_id}/activate", response_model=Envelope, tags=["admin"])
async def admin_activate_employee(user_id: str, principal: AuthContext = Depends(get_admin_user)):
    runtime = get_runtime()
    user = runtime.auth.activate_user(user_id, actor_id=principal.user_id)
    return Envelope(
        status="ok",
        data=UserStatusResponse(
            message="Employee has been activated", id=user.id, name=user.name, status=user.status
        ),
    )


@router.delete("/admin/employees/{user_id}", response_model=Envelope, tags=["admin"])
async def admin_delete_employee(user_id: str, principal: AuthContext = Depends(get_admin_user)):
    runtime = get_runtime()
    user = runtime.auth.delete_user(user_id, actor_id=principal.user_id)
    return Envelope(
        status="ok", data=MessageResponse(message=f"Employee {user.name} has been removed")
    )


# profile ---------------------------------------------------------------


@router.put("/profile", response_model=Envelope, tags=["profile"])
async def update_profile(body: ProfileUpdateRequest, principal: AuthContext = Depends(get_user)):
    runtime = get_runtime()
    profile = runtime.profiles.update_profile(principal, body.model_dump(exclude_unset=True))
    return Envelope(
        status="ok", data=ProfileResponse(message="Profile updated successfully", profile=profile)
    )


@router.put("/profile/management", response_model=Envelope, tags=["profile"])
async def update_management_profile(
    body: ManagementProfileRequest, principal: AuthContext = Depends(get_user)
):
    runtime = get_runtime()
    profile = runtime.profiles.update_management_profile(
        principal, body.model_dump(exclude_none=True)
    )
    return Envelope(
        status="ok",
        data=ProfileResponse(
            message="Management profile updated successfully",
            profile=profile,
            management_profile=profile.get("management_profile"),
        ),
    )


@router.post("/profile/cv", response_model=Envelope, tags=["profile"])
async def upload_cv(cv: UploadFile = File(...), principal: AuthContext = Depends(get_user)):
    runtime = get_runtime()
    max_bytes = max(1, runtime.settings.max_cv_bytes)
    contents = await cv.read(max_bytes + 1)
    path = runtime.profiles.store_cv(principal, cv.filename or "", contents)
    return Envelope(status="ok", data=CVUploadResponse(message="CV uploaded successfully", cv=path))


@router.get("/users/{user_id}", response_model=Envelope, tags=["profile"])
async def get_user_profile(user_id: str, principal: AuthContext = Depends(get_user)):
    runtime = get_runtime()
    return Envelope(status="ok", data=_user_out(runtime.profiles.get_user(user_id)))


# jobs ------------------------------------------------------------------


@router.post("/jobs", response_model=Envelope, status_code=201, tags=["jobs"])
async def create_job(
    body: JobCreateRequest, principal: AuthContext = Depends(require_role("employer"))
):
    runtime = get_runtime()
    job = runtime.jobs.create_job(principal, **body.model_dump())
    await asyncio.to_thread(runtime.email.send_job_posted, job)
    return Envelope(
        status="ok", data=JobMutationResponse(message="Job posted successfully", job=_job_out(job))
    )


@router.get("/jobs", response_model=Envelope, tags=["jobs"])
async def list_jobs(
    status: Optional[str] = Query(None, max_length=32),
    category: Optional[str] = Query(None, max_length=100),
    search: Optional[str] = Query(None, max_length=200),
    principal: AuthContext = Depends(get_user),
):
    runtime = get_runtime()
    jobs = runtime.jobs.list_jobs(status=status, category=category, search=search)
    return Envelope(status="ok", data=[_job_out(j) for j in jobs])


@router.get("/jobs/{job_id}", response_model=Envelope, tags=["jobs"])
async def get_job(job_id: str, principal: AuthContext = Depends(get_user)):
    runtime = get_runtime()
    return Envelope(status="ok", data=_job_out(runtime.jobs.get_job(job_id)))


@router.put("/jobs/{job_id}", response_model=Envelope, tags=["jobs"])
async def update_job(
    job_id: str, body: JobUpdateRequest, principal: AuthContext = Depends(get_user)
):
    runtime = get_runtime()
    job = runtime.jobs.update_job(principal, job_id, **body.model_dump(exclude_none=True))
    return Envelope(
        status="ok", data=JobMutationResponse(message="Job updated successfully", job=_job_out(job))
    )


@router.delete("/jobs/{job_id}", response_model=Envelope, tags=["jobs"])
async def delete_job(job_id: str, principal: AuthContext = Depends(get_user)):
    runtime = get_runtime()
    runtime.jobs.delete_job(principal, job_id)
    return Envelope(status="ok", data=MessageResponse(message="Job deleted successfully"))


@router.post("/jobs/{job_id}/apply", response_model=Envelope, status_code=201, tags=["applications"])
async def apply_for_job(job_id: str, principal: AuthContext = Depends(require_role("employee"))):
    runtime = get_runtime()
    submission = runtime.jobs.apply(principal, job_id)
    await asyncio.to_thread(
        runtime.email.send_application_received, submission.job, submission.candidate
    )
    if submission.employer:
        await asyncio.to_thread(
            runtime.email.send_new_application,
            submission.job,
            submission.application,
            submission.employer,
        )
    return Envelope(
        status="ok",
        data=ApplicationMutationResponse(
            message="Application submitted successfully",
            application=_application_out(submission.application),
        ),
    )


@router.get("/applications", response_model=Envelope, tags=["applications"])
async def list_applications(
    principal: AuthContext = Depends(require_role("employee", "employer")),
):
    runtime = get_runtime()
    views = runtime.jobs.list_applications(principal)
    return Envelope(status="ok", data=[_view_out(v) for v in views])


@router.put("/applications/{application_id}", response_model=Envelope, tags=["applications"])
async def update_application(
    application_id: str,
    body: ApplicationUpdateRequest,
    principal: AuthContext = Depends(get_user),
):
    runtime = get_runtime()
    application, job, status_changed = runtime.jobs.update_application(
        principal,
        application_id,
        status=body.status,
        progress=body.progress,
        notes=body.notes,
    )
    if status_changed:
        await asyncio.to_thread(
            runtime.email.send_application_update, application, job, application.status
        )
    return Envelope(
        status="ok",
        data=ApplicationMutationResponse(
            message="Application updated successfully",
            application=_application_out(application, job),
        ),
    )


@router.get("/progress", response_model=Envelope, tags=["applications"])
async def application_progress(principal: AuthContext = Depends(require_role("employee"))):
    runtime = get_runtime()
    stats = runtime.jobs.progress(principal)
    stats["applications"] = [_view_out(v) for v in stats["applications"]]
    return Envelope(status="ok", data=ProgressResponse(**stats))


@router.get("/employees", response_model=Envelope, tags=["applications"])
async def search_employees(
    skills: Optional[str] = Query(None, max_length=500),
    principal: AuthContext = Depends(require_role("employer")),
):
    runtime = get_runtime()
    data = [
        EmployeeSummaryResponse(
            **_user_out(summary.user).model_dump(), application_count=summary.application_count
        )
        for summary in runtime.jobs.search_employees(skills)
    ]
    return Envelope(status="ok", data=data)


# onboarding ------------------------------------------------------------


@router.put("/onboarding/user-type", response_model=Envelope, tags=["onboarding"])
async def onboarding_user_type(body: UserTypeRequest, principal: AuthContext = Depends(get_user)):
    runtime = get_runtime()
    step = runtime.profiles.set_user_type(principal, body.user_type)
    return Envelope(
        status="ok",
        data=OnboardingStepResponse(
            message="User type updated", user_type=body.user_type, onboarding_step=step
        ),
    )


@router.put("/onboarding/qualifications", response_model=Envelope, tags=["onboarding"])
async def onboarding_qualifications(
    body: QualificationsRequest, principal: AuthContext = Depends(get_user)
):
    runtime = get_runtime()
    step = runtime.profiles.save_qualifications(principal, body.model_dump())
    return Envelope(
        status="ok", data=OnboardingStepResponse(message="Qualifications saved", onboarding_step=step)
    )


@router.put("/onboarding/experience", response_model=Envelope, tags=["onboarding"])
async def onboarding_experience(
    body: ExperienceRequest, principal: AuthContext = Depends(get_user)
):
    runtime = get_runtime()
    step = runtime.profiles.save_experience(principal, body.model_dump())
    return Envelope(
        status="ok", data=OnboardingStepResponse(message="Experience saved", onboarding_step=step)
    )


@router.put("/onboarding/skills", response_model=Envelope, tags=["onboarding"])
async def onboarding_skills(body: SkillsRequest, principal: AuthContext = Depends(get_user)):
    runtime = get_runtime()
    step = runtime.profiles.save_skills(
        principal,
        skills=body.skills,
        skill_level=body.skill_level,
        interested_fields=body.interested_fields,
    )
    return Envelope(
        status="ok", data=OnboardingStepResponse(message="Skills saved", onboarding_step=step)
    )


@router.get("/onboarding/status", response_model=Envelope, tags=["onboarding"])
async def onboarding_status(principal: AuthContext = Depends(get_user)):
    runtime = get_runtime()
    return Envelope(
        status="ok", data=OnboardingStatusResponse(**runtime.profiles.onboarding_status(principal))
    )


@router.get("/assessment/questions", response_model=Envelope, tags=["onboarding"])
async def assessment_questions(principal: AuthContext = Depends(get_user)):
    runtime = get_runtime()
    field, questions = runtime.assessment.questions_for(runtime.profiles.interested_field(principal))
    return Envelope(
        status="ok",
        data=AssessmentQuestionsResponse(
            field=field,
            questions=[AssessmentQuestion(**q) for q in questions],
            total_questions=len(questions),
        ),
    )


@router.post("/assessment/submit", response_model=Envelope, tags=["onboarding"])
async def assessment_submit(
    body: AssessmentSubmitRequest, principal: AuthContext = Depends(get_user)
):
    runtime = get_runtime()
    # existence check before grading so a deleted account gets 404
    runtime.profiles.get_user(principal.user_id)
    result = runtime.assessment.grade(
        body.field, [(a.question_id, a.answer) for a in body.answers]
    )
    runtime.profiles.record_assessment(principal, result)
    logger.info("assessment_submitted", user_id=principal.user_id, field=result["field"])
    return Envelope(
        status="ok",
        data=AssessmentResultResponse(
            message="Assessment completed",
            field=result["field"],
            score=result["score"],
            correct_answers=result["correct_answers"],
            total_questions=result["total_questions"],
            skill_level=result["skill_level"],
        ),
    )
