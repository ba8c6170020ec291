from __future__ import annotations

import re
import unicodedata
from datetime import datetime
from typing import Any, Dict, List, Optional, Union
from uuid import uuid4

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

# Maximum nested JSON depth accepted in free-form profile fields
MAX_JSON_DEPTH = 20
MAX_ARRAY_ITEMS = 1000


def _validate_json_depth(obj: Any, max_depth: int = MAX_JSON_DEPTH, current_depth: int = 0) -> None:
    if current_depth > max_depth:
        raise ValueError(f"JSON nesting depth exceeds maximum of {max_depth}")
    if isinstance(obj, dict):
        for value in obj.values():
            _validate_json_depth(value, max_depth, current_depth + 1)
    elif isinstance(obj, list):
        if len(obj) > MAX_ARRAY_ITEMS:
            raise ValueError(f"Array length {len(obj)} exceeds maximum of {MAX_ARRAY_ITEMS}")
        for item in obj:
            _validate_json_depth(item, max_depth, current_depth + 1)


def _normalize_unicode(value: str) -> str:
    """Strip zero-width and bidi override characters, then apply NFKC."""
    zero_width = "\u200b\u200c\u200d\ufeff"
    bidi_overrides = set(chr(c) for c in range(0x202A, 0x202F))
    bidi_overrides.update(chr(c) for c in range(0x2066, 0x206A))
    cleaned = "".join(c for c in value if c not in zero_width and c not in bidi_overrides)
    return unicodedata.normalize("NFKC", cleaned)


def _split_list(value: Any) -> Any:
    """Accept either a list or a comma-separated string."""
    if isinstance(value, str):
        return [part.strip() for part in value.split(",") if part.strip()]
    return value


_VALID_ERROR_CODES = frozenset({
    "unauthorized",
    "forbidden",
    "invalid_token",
    "not_found",
    "validation_error",
    "token_not_found",
    "token_expired",
    "token_mismatch",
    "conflict",
    "server_error",
})


class ErrorBody(BaseModel):
    """Error envelope body with stable code values."""

    code: str = Field(..., description="Stable error code")
    message: str
    details: Optional[Any] = None  # object, array, or null

    @field_validator("code")
    @classmethod
    def _validate_error_code(cls, value: str) -> str:
        if value not in _VALID_ERROR_CODES:
            raise ValueError(
                f"Invalid error code '{value}'. Must be one of: {', '.join(sorted(_VALID_ERROR_CODES))}"
            )
        return value


class Envelope(BaseModel):
    """API envelope wrapping every response body."""

    status: str = Field(..., pattern="^(ok|error)$")
    data: Optional[Any] = None
    error: Optional[ErrorBody] = None
    request_id: str = Field(default_factory=lambda: str(uuid4()))


_EMAIL_LOCAL_PART = re.compile(r"^[a-zA-Z0-9.!#$%&'*+/=?^_`{|}~-]+$")
_EMAIL_DOMAIN_LABEL = re.compile(r"^[a-zA-Z0-9](?:[a-zA-Z0-9-]{0,61}[a-zA-Z0-9])?$")


def normalize_email(value: str) -> str:
    """Canonical form used as the account key; case is preserved."""
    return _normalize_unicode(value.strip())


def _normalize_name(value: str) -> str:
    normalized = _normalize_unicode(value).strip()
    if not normalized:
        raise ValueError("name must not be blank")
    return normalized


def _validate_email(value: str) -> str:
    normalized = normalize_email(value)
    if len(normalized) > 254:
        raise ValueError("email address too long")
    if len(normalized) < 3:
        raise ValueError("email address too short")
    local, sep, domain = normalized.rpartition("@")
    if not sep or not local or not domain:
        raise ValueError("invalid email address")
    if len(local) > 64:
        raise ValueError("email local part too long")
    if not _EMAIL_LOCAL_PART.match(local):
        raise ValueError("invalid email address format")
    domain_parts = domain.split(".")
    if len(domain_parts) < 2:
        raise ValueError("invalid email address format")
    for label in domain_parts:
        if len(label) > 63 or not _EMAIL_DOMAIN_LABEL.match(label):
            raise ValueError("invalid email address format")
    return normalized


class _EmailBody(BaseModel):
    email: str

    @field_validator("email")
    @classmethod
    def _validate_email_field(cls, value: str) -> str:
        return _validate_email(value)


# auth ------------------------------------------------------------------


class SignupRequest(_EmailBody):
    password: str = Field(..., min_length=1, max_length=128)
    name: str = Field(..., min_length=1, max_length=200)
    role: str = Field(default="employee", max_length=32)
    designation: Optional[str] = Field(default=None, max_length=200)

    @field_validator("name")
    @classmethod
    def _validate_name(cls, value: str) -> str:
        return _normalize_name(value)


class VerifyEmailRequest(_EmailBody):
    code: str = Field(..., min_length=1, max_length=16)


class ResendVerificationRequest(_EmailBody):
    pass


class LoginRequest(BaseModel):
    """Credentials; ``identifier`` is an email address or a username."""

    identifier: str = Field(
        ...,
        min_length=1,
        max_length=254,
        validation_alias=AliasChoices("identifier", "email"),
    )
    password: str = Field(..., min_length=1, max_length=128)

    @field_validator("identifier")
    @classmethod
    def _normalize_identifier(cls, value: str) -> str:
        # email identifiers must match the form stored at signup
        return normalize_email(value) if "@" in value else value


class ForgotPasswordRequest(_EmailBody):
    pass


class ResetPasswordRequest(_EmailBody):
    token: str = Field(..., min_length=1, max_length=256)
    password: str = Field(..., min_length=1, max_length=128)


class UserResponse(BaseModel):
    """A user record without its password hash."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    email: str
    name: str
    username: str
    role: str
    designation: Optional[str] = None
    status: str
    is_verified: bool
    is_active: bool
    created_at: datetime
    added_by: Optional[str] = None
    added_at: Optional[datetime] = None
    restricted_at: Optional[datetime] = None
    restricted_by: Optional[str] = None
    restrict_reason: Optional[str] = None
    activated_at: Optional[datetime] = None
    activated_by: Optional[str] = None
    profile: Dict[str, Any] = Field(default_factory=dict)
    user_type: Optional[str] = None
    onboarding_step: Optional[str] = None
    qualifications: Optional[Dict[str, Any]] = None
    experience: Optional[Dict[str, Any]] = None
    assessment: Optional[Dict[str, Any]] = None


class AuthResponse(BaseModel):
    message: str
    token: Optional[str] = None
    token_type: Optional[str] = None
    user: Optional[UserResponse] = None
    requires_verification: bool = False


class MessageResponse(BaseModel):
    message: str
    expires_in: Optional[str] = None


class ResetTokenStatus(BaseModel):
    valid: bool
    error: Optional[str] = None


# administration ----------------------------------------------------------


class AdminCreateUserRequest(_EmailBody):
    name: str = Field(..., min_length=1, max_length=200)
    password: str = Field(..., min_length=1, max_length=128)
    role: str = Field(default="employee", max_length=32)
    designation: Optional[str] = Field(default=None, max_length=200)

    @field_validator("name")
    @classmethod
    def _validate_name(cls, value: str) -> str:
        return _normalize_name(value)


class RestrictUserRequest(BaseModel):
    reason: Optional[str] = Field(
        default=None,
        max_length=1000,
        validation_alias=AliasChoices("reason", "restrict_reason"),
    )


class UserStatusResponse(BaseModel):
    message: str
    id: str
    name: str
    status: str


# profile ---------------------------------------------------------------


class ProfileUpdateRequest(BaseModel):
    model_config = ConfigDict(extra="ignore")

    phone: Optional[str] = Field(default=None, max_length=64)
    address: Optional[str] = Field(default=None, max_length=500)
    cnic: Optional[str] = Field(default=None, max_length=64)
    skills: Optional[List[str]] = None
    experience: Optional[Any] = None
    education: Optional[Any] = None
    bio: Optional[str] = Field(default=None, max_length=5000)
    desired_job_title: Optional[str] = Field(default=None, max_length=200)
    work_history: Optional[List[Any]] = None
    test_attempts: Optional[List[Any]] = None
    test_passed: Optional[bool] = None
    test_score: Optional[float] = None
    last_test_date: Optional[str] = None
    profile_score: Optional[float] = None

    @field_validator("skills", mode="before")
    @classmethod
    def _split_skills(cls, value: Any) -> Any:
        return _split_list(value)

    @field_validator("experience", "education", "work_history", "test_attempts")
    @classmethod
    def _validate_depth(cls, value: Any) -> Any:
        _validate_json_depth(value)
        return value


class ManagementProfileRequest(BaseModel):
    model_config = ConfigDict(extra="ignore")

    name: Optional[str] = Field(default=None, max_length=200)
    dob: Optional[str] = None
    phone: Optional[str] = Field(default=None, max_length=64)
    cnic: Optional[str] = Field(default=None, max_length=64)
    address: Optional[str] = Field(default=None, max_length=500)
    photo: Optional[str] = None
    company_name: Optional[str] = None
    company_reg_number: Optional[str] = None
    company_phone: Optional[str] = None
    company_email: Optional[str] = None
    company_address: Optional[str] = None
    industry: Optional[str] = None
    company_website: Optional[str] = None
    position_title: Optional[str] = None
    management_level: Optional[str] = None
    department: Optional[str] = None
    years_in_position: Optional[Union[int, str]] = None
    team_size: Optional[Union[int, str]] = None
    reports_to: Optional[str] = None
    budget_responsibility: Optional[str] = None
    branch_count: Optional[Union[int, str]] = None
    company_doc: Optional[str] = None
    id_card: Optional[str] = None
    appointment_letter: Optional[str] = None
    bio: Optional[str] = Field(default=None, max_length=5000)
    achievements: Optional[str] = Field(default=None, max_length=5000)


class ProfileResponse(BaseModel):
    message: str
    profile: Dict[str, Any]
    management_profile: Optional[Dict[str, Any]] = None


class CVUploadResponse(BaseModel):
    message: str
    cv: str


# jobs ------------------------------------------------------------------


class JobCreateRequest(BaseModel):
    title: str = Field(..., min_length=1, max_length=200)
    description: str = Field(..., min_length=1, max_length=20000)
    requirements: List[str] = Field(default_factory=list)
    location: Optional[str] = Field(default=None, max_length=200)
    salary: Optional[str] = Field(default=None, max_length=100)
    job_type: Optional[str] = Field(default=None, max_length=32)
    category: Optional[str] = Field(default=None, max_length=100)

    @field_validator("requirements", mode="before")
    @classmethod
    def _split_requirements(cls, value: Any) -> Any:
        return _split_list(value) if value is not None else []


class JobUpdateRequest(BaseModel):
    title: Optional[str] = Field(default=None, max_length=200)
    description: Optional[str] = Field(default=None, max_length=20000)
    requirements: Optional[List[str]] = None
    location: Optional[str] = Field(default=None, max_length=200)
    salary: Optional[str] = Field(default=None, max_length=100)
    job_type: Optional[str] = Field(default=None, max_length=32)
    category: Optional[str] = Field(default=None, max_length=100)
    status: Optional[str] = Field(default=None, max_length=32)

    @field_validator("requirements", mode="before")
    @classmethod
    def _split_requirements(cls, value: Any) -> Any:
        return _split_list(value)


class JobResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    employer_id: str
    employer_name: str
    employer_email: str
    title: str
    description: str
    requirements: List[str]
    location: Optional[str] = None
    salary: Optional[str] = None
    job_type: str
    category: Optional[str] = None
    status: str
    created_at: datetime
    updated_at: Optional[datetime] = None


class ApplicationUpdateRequest(BaseModel):
    status: Optional[str] = Field(default=None, max_length=32)
    progress: Optional[int] = Field(default=None, ge=0, le=100)
    notes: Optional[str] = Field(default=None, max_length=5000)


class ApplicationResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    job_id: str
    employee_id: str
    employee_name: str
    employee_email: str
    employee_profile: Dict[str, Any] = Field(default_factory=dict)
    status: str
    progress: int
    notes: str
    applied_at: datetime
    updated_at: Optional[datetime] = None
    job: Optional[JobResponse] = None


class ProgressResponse(BaseModel):
    total_applications: int
    pending_applications: int
    in_progress_applications: int
    accepted_applications: int
    rejected_applications: int
    average_progress: int
    applications: List[ApplicationResponse]


class EmployeeSummaryResponse(UserResponse):
    application_count: int = 0


class ManagedUserResponse(UserResponse):
    applications: List[ApplicationResponse] = Field(default_factory=list)


# onboarding / assessment -------------------------------------------------


class UserTypeRequest(BaseModel):
    user_type: str = Field(..., min_length=1, max_length=32)


class QualificationsRequest(BaseModel):
    highest_education: Optional[str] = Field(default=None, max_length=200)
    field_of_study: Optional[str] = Field(default=None, max_length=200)
    institution: Optional[str] = Field(default=None, max_length=200)
    graduation_year: Optional[Union[int, str]] = None
    certifications: Optional[List[Any]] = None


class ExperienceRequest(BaseModel):
    has_experience: bool = False
    experience_level: Optional[str] = Field(default=None, max_length=64)
    current_job_title: Optional[str] = Field(default=None, max_length=200)
    current_company: Optional[str] = Field(default=None, max_length=200)
    years_of_experience: Optional[float] = Field(default=None, ge=0)
    work_history: Optional[List[Any]] = None


class SkillsRequest(BaseModel):
    skills: Optional[List[str]] = None
    skill_level: Optional[str] = Field(default=None, max_length=64)
    interested_fields: Optional[List[str]] = None

    @field_validator("skills", "interested_fields", mode="before")
    @classmethod
    def _split(cls, value: Any) -> Any:
        return _split_list(value)


class OnboardingStepResponse(BaseModel):
    message: str
    onboarding_step: str
    user_type: Optional[str] = None


class OnboardingStatusResponse(BaseModel):
    user_type: Optional[str] = None
    onboarding_step: str
    profile: Dict[str, Any] = Field(default_factory=dict)
    qualifications: Optional[Dict[str, Any]] = None
    experience: Optional[Dict[str, Any]] = None
    assessment: Optional[Dict[str, Any]] = None


class AssessmentQuestion(BaseModel):
    id: int
    question: str
    options: List[str]


class AssessmentQuestionsResponse(BaseModel):
    field: str
    questions: List[AssessmentQuestion]
    total_questions: int


class AssessmentAnswer(BaseModel):
    question_id: int
    answer: int = Field(..., ge=0)


class AssessmentSubmitRequest(BaseModel):
    field: Optional[str] = Field(default=None, max_length=64)
    answers: List[AssessmentAnswer] = Field(default_factory=list, max_length=MAX_ARRAY_ITEMS)


class AssessmentResultResponse(BaseModel):
    message: str
    field: str
    score: int
    correct_answers: int
    total_questions: int
    skill_level: str


class AdminCreateUserResponse(BaseModel):
    message: str
    user: UserResponse


class JobMutationResponse(BaseModel):
    message: str
    job: JobResponse


class ApplicationMutationResponse(BaseModel):
    message: str
    application: ApplicationResponse
