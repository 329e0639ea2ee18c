"""
SitePortal — Data Models.

Plain records for the portal: team members, construction jobs with their
chat and site diary, and delegated tasks with their activity trail.
Records carry no behavior beyond small lookups; everything that derives a
view lives in siteportal.core.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from enum import Enum


def new_id() -> str:
    """Short random identifier for new records."""
    return uuid.uuid4().hex[:12]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ---------------------------------------------------------------------------
# Enumerations
# ---------------------------------------------------------------------------


class Role(str, Enum):
    ADMIN = "Admin"
    SITE_MANAGER = "Site Manager"
    BUILDER = "Builder"
    SURVEYOR = "Surveyor"
    ELECTRICIAN = "Electrician"
    PLUMBER = "Plumber"


class JobType(str, Enum):
    GARAGE_CONVERSION = "Garage Conversion"
    EXTENSION = "Extension"
    RENOVATION = "Renovation"
    ROOFING = "Roofing"
    GARDEN_ROOM = "Garden Room"


class JobStatus(str, Enum):
    """Informal job lifecycle labels. Unordered; any value may follow any other."""

    NEW_JOB = "New Job"
    SURVEY_BOOKED = "Survey Booked"
    QUOTED = "Quoted"
    SCHEDULED = "Scheduled"
    IN_PROGRESS = "In Progress"
    SNAGGING = "Snagging"
    COMPLETED = "Completed"
    INVOICED = "Invoiced"
    CANCELLED = "Cancelled"


JOB_STAGES: tuple[str, ...] = (
    "Start Date Agreed", "Foundations", "DPC", "Brickwork",
    "Roof", "Steels", "Glazing", "First Fix", "Plaster",
    "Second Fix", "Kitchen Installation", "Bathroom Installation",
    "Flooring Installation", "Snags", "Complete", "Inspection",
    "Ground floor", "Plumbing", "Painting",
)


class MessageType(str, Enum):
    TEXT = "text"
    IMAGE = "image"
    SYSTEM = "system"


class TaskPriority(str, Enum):
    LOW = "Low"
    MEDIUM = "Medium"
    HIGH = "High"
    URGENT = "Urgent"

    @property
    def weight(self) -> int:
        return _PRIORITY_WEIGHTS[self]


_PRIORITY_WEIGHTS = {
    TaskPriority.URGENT: 4,
    TaskPriority.HIGH: 3,
    TaskPriority.MEDIUM: 2,
    TaskPriority.LOW: 1,
}


class TaskStatus(str, Enum):
    PENDING = "Pending"
    IN_PROGRESS = "In Progress"
    COMPLETED = "Completed"


class ActivityType(str, Enum):
    CREATION = "creation"
    STATUS_CHANGE = "status_change"
    PRIORITY_CHANGE = "priority_change"
    UPDATE = "update"
    UPLOAD = "upload"
    COMMENT = "comment"


class AttachmentType(str, Enum):
    IMAGE = "image"
    VIDEO = "video"
    DOCUMENT = "document"


def can_transition(current: Enum, new: Enum) -> bool:
    """Status changes are free-form: every value is reachable from every other."""
    return type(current) is type(new)


# ---------------------------------------------------------------------------
# Records
# ---------------------------------------------------------------------------


@dataclass
class User:
    """A team member who can sign in to the portal."""

    id: str
    name: str
    email: str
    role: Role
    avatar: str = ""

    @property
    def first_name(self) -> str:
        return self.name.split(" ")[0] if self.name else ""


UNKNOWN_USER_NAME = "Unknown"


@dataclass
class Message:
    """One line of a job's internal chat. Never edited once posted."""

    id: str
    sender_id: str
    text: str
    timestamp: datetime
    type: MessageType = MessageType.TEXT
    image_url: str | None = None


@dataclass
class Note:
    """A site diary entry. Newest entries sit at the front of a job's diary."""

    id: str
    user_id: str
    content: str
    timestamp: datetime


@dataclass
class Job:
    """A construction project tracked by the office and site team."""

    id: str
    client_name: str
    address: str
    type: JobType
    status: JobStatus
    value: float = 0
    client_phone: str | None = None
    client_email: str | None = None
    description: str = ""
    next_action: str | None = None
    current_stage: str | None = None
    start_date: str | None = None            # ISO date YYYY-MM-DD
    finish_date: str | None = None           # ISO date YYYY-MM-DD
    assigned_team: list[str] = field(default_factory=list)   # user ids, may dangle
    messages: list[Message] = field(default_factory=list)    # oldest first
    site_notes: list[Note] = field(default_factory=list)     # newest first

    # Named trades (free text, not user ids)
    project_manager: str | None = None
    builder: str | None = None
    electrician: str | None = None
    plumber: str | None = None
    architect: str | None = None

    architect_plans: list[str] = field(default_factory=list)
    structural_calculations: list[str] = field(default_factory=list)
    building_control_ref: str | None = None
    agreed_extras: str | None = None

    photography_waiver: str | None = None
    liability_form: str | None = None
    point_count_form: str | None = None
    glazing_form: str | None = None

    gallery_images: list[str] = field(default_factory=list)


@dataclass
class TaskActivity:
    """One entry of a task's audit trail."""

    id: str
    user_id: str
    type: ActivityType
    details: str
    timestamp: datetime


@dataclass
class TaskAttachment:
    id: str
    name: str
    type: AttachmentType
    url: str
    uploaded_by: str
    uploaded_at: datetime


@dataclass
class Task:
    """A unit of work assigned by one user to another (or to themselves).

    ``project_id`` ties the task to a job; ``None`` marks a personal task.
    """

    id: str
    title: str
    assigned_to: str
    assigned_by: str
    due_date: date
    created_at: datetime
    status: TaskStatus = TaskStatus.PENDING
    priority: TaskPriority = TaskPriority.MEDIUM
    description: str | None = None
    project_id: str | None = None
    activity_log: list[TaskActivity] = field(default_factory=list)   # newest first
    attachments: list[TaskAttachment] = field(default_factory=list)  # newest first

    @property
    def is_personal(self) -> bool:
        return self.project_id is None

    @property
    def is_self_assigned(self) -> bool:
        return self.assigned_to == self.assigned_by

    @property
    def is_completed(self) -> bool:
        return self.status == TaskStatus.COMPLETED


# ---------------------------------------------------------------------------
# Lookups — ids may dangle, so nothing here raises
# ---------------------------------------------------------------------------


def find_user(users: list[User], user_id: str | None) -> User | None:
    """Return the user with this id, or None."""
    for user in users:
        if user.id == user_id:
            return user
    return None


def resolve_user(users: list[User], user_id: str | None) -> User:
    """Return the user with this id, or an "Unknown" placeholder."""
    user = find_user(users, user_id)
    if user is not None:
        return user
    return User(
        id=user_id or "",
        name=UNKNOWN_USER_NAME,
        email="",
        role=Role.BUILDER,
        avatar="",
    )


def find_job(jobs: list[Job], job_id: str | None) -> Job | None:
    for job in jobs:
        if job.id == job_id:
            return job
    return None


def find_task(tasks: list[Task], task_id: str | None) -> Task | None:
    for task in tasks:
        if task.id == task_id:
            return task
    return None


# ---------------------------------------------------------------------------
# Draft validation — an empty list means the draft may be saved
# ---------------------------------------------------------------------------


def _check_choice(problems: list[str], enum: type[Enum], value, label: str) -> None:
    if value is None:
        return
    try:
        enum(value)
    except ValueError:
        problems.append(f"unknown {label} {value!r}")


def parse_due_date(value: date | str | None) -> date | None:
    """Read a form due date. Blank means "not given" and comes back as None.

    Raises ValueError for text that is not an ISO date.
    """
    if value is None or isinstance(value, date):
        return value
    text = value.strip()
    if not text:
        return None
    return date.fromisoformat(text)


def validate_job_draft(
    client_name: str | None,
    address: str | None,
    type: str | JobType | None = None,
    status: str | JobStatus | None = None,
) -> list[str]:
    problems: list[str] = []
    if not (client_name or "").strip():
        problems.append("client name is required")
    if not (address or "").strip():
        problems.append("address is required")
    _check_choice(problems, JobType, type, "job type")
    _check_choice(problems, JobStatus, status, "job status")
    return problems


def validate_job_fields(fields: dict) -> list[str]:
    """Check the enum-valued fields of a partial job update."""
    problems: list[str] = []
    _check_choice(problems, JobType, fields.get("type"), "job type")
    _check_choice(problems, JobStatus, fields.get("status"), "job status")
    return problems


def validate_task_draft(
    title: str | None,
    assigned_to: str | None,
    priority: str | TaskPriority | None = None,
    due_date: date | str | None = None,
) -> list[str]:
    problems: list[str] = []
    if not (title or "").strip():
        problems.append("title is required")
    if not assigned_to:
        problems.append("assignee is required")
    _check_choice(problems, TaskPriority, priority, "priority")
    try:
        parse_due_date(due_date)
    except ValueError:
        problems.append(f"invalid due date {due_date!r}")
    return problems


def validate_member_draft(name: str | None, role: str | Role | None) -> list[str]:
    problems: list[str] = []
    if not (name or "").strip():
        problems.append("name is required")
    try:
        Role(role)
    except ValueError:
        problems.append(f"unknown role {role!r}")
    return problems
