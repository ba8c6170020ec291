from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict, List, Optional


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class User:
    id: str
    email: str
    name: str
    role: str = "employee"
    designation: Optional[str] = None
    created_at: datetime = field(default_factory=utcnow)
    is_verified: bool = True
    is_active: bool = True
    added_by: Optional[str] = None
    added_at: Optional[datetime] = None
    restricted_at: Optional[datetime] = None
    restricted_by: Optional[str] = None
    restrict_reason: Optional[str] = None
    activated_at: Optional[datetime] = None
    activated_by: Optional[str] = None
    profile: Dict = field(default_factory=dict)
    user_type: Optional[str] = None
    onboarding_step: Optional[str] = None
    qualifications: Optional[Dict] = None
    experience: Optional[Dict] = None
    assessment: Optional[Dict] = None

    @property
    def status(self) -> str:
        """Textual account state derived from the activity and verification flags."""
        if not self.is_active:
            return "restricted"
        if not self.is_verified:
            return "unverified"
        return "active"

    @property
    def username(self) -> str:
        """Login alias derived from the display name, e.g. ``"Jane Doe"`` -> ``"jane_doe"``."""
        return "_".join(self.name.lower().split())


@dataclass
class Job:
    id: str
    employer_id: str
    employer_name: str
    employer_email: str
    title: str
    description: str
    requirements: List[str] = field(default_factory=list)
    location: Optional[str] = None
    salary: Optional[str] = None
    job_type: str = "full-time"
    category: Optional[str] = None
    status: str = "active"
    created_at: datetime = field(default_factory=utcnow)
    updated_at: Optional[datetime] = None


@dataclass
class Application:
    id: str
    job_id: str
    employee_id: str
    employee_name: str
    employee_email: str
    employee_profile: Dict = field(default_factory=dict)
    status: str = "pending"
    progress: int = 0
    notes: str = ""
    applied_at: datetime = field(default_factory=utcnow)
    updated_at: Optional[datetime] = None
