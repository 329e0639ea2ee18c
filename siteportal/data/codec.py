"""
SitePortal — Persistence Codec.

The stored blobs have their own shape: camelCase keys and ISO strings for
every timestamp. These pydantic records describe that shape, and the
``*_to_record`` / ``*_from_record`` pairs are the only place where strings
become datetimes (and back).
"""

from __future__ import annotations

import json
import logging
from datetime import date, datetime, timezone

from pydantic import BaseModel, ConfigDict, TypeAdapter
from pydantic.alias_generators import to_camel

from siteportal.data.models import (
    ActivityType,
    AttachmentType,
    Job,
    JobStatus,
    JobType,
    Message,
    MessageType,
    Note,
    Role,
    Task,
    TaskActivity,
    TaskAttachment,
    TaskPriority,
    TaskStatus,
    User,
)

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Persisted shapes
# ---------------------------------------------------------------------------


class _Record(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class UserRecord(_Record):
    id: str
    name: str
    email: str
    role: str
    avatar: str = ""


class MessageRecord(_Record):
    id: str
    sender_id: str
    text: str
    timestamp: str
    type: str = "text"
    image_url: str | None = None


class NoteRecord(_Record):
    id: str
    user_id: str
    content: str
    timestamp: str


class JobRecord(_Record):
    id: str
    client_name: str
    address: str
    type: str
    status: str
    value: float = 0
    client_phone: str | None = None
    client_email: str | None = None
    description: str = ""
    next_action: str | None = None
    current_stage: str | None = None
    start_date: str | None = None
    finish_date: str | None = None
    assigned_team: list[str] = []
    messages: list[MessageRecord] = []
    site_notes: list[NoteRecord] = []
    project_manager: str | None = None
    builder: str | None = None
    electrician: str | None = None
    plumber: str | None = None
    architect: str | None = None
    architect_plans: list[str] = []
    structural_calculations: list[str] = []
    building_control_ref: str | None = None
    agreed_extras: str | None = None
    photography_waiver: str | None = None
    liability_form: str | None = None
    point_count_form: str | None = None
    glazing_form: str | None = None
    gallery_images: list[str] = []


class TaskActivityRecord(_Record):
    id: str
    user_id: str
    type: str
    details: str
    timestamp: str


class TaskAttachmentRecord(_Record):
    id: str
    name: str
    type: str
    url: str
    uploaded_by: str
    uploaded_at: str


class TaskRecord(_Record):
    id: str
    title: str
    assigned_to: str
    assigned_by: str
    due_date: str
    created_at: str
    status: str = TaskStatus.PENDING.value
    priority: str = TaskPriority.MEDIUM.value
    description: str | None = None
    project_id: str | None = None
    activity_log: list[TaskActivityRecord] = []
    attachments: list[TaskAttachmentRecord] = []


# ---------------------------------------------------------------------------
# Timestamp boundary
# ---------------------------------------------------------------------------


def format_timestamp(value: datetime) -> str:
    """Serialize a datetime as ISO-8601; naive values are taken as UTC."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.isoformat()


def parse_timestamp(raw: str) -> datetime:
    """Parse an ISO-8601 timestamp (``Z`` suffix accepted) into an aware datetime.

    Raises ValueError on malformed input.
    """
    text = raw.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    value = datetime.fromisoformat(text)
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value


def parse_due_date(raw: str) -> date:
    """Due dates are calendar dates; tolerate a full timestamp by keeping its date part."""
    return date.fromisoformat(raw.strip()[:10])


# ---------------------------------------------------------------------------
# Live <-> persisted conversions
# ---------------------------------------------------------------------------


def user_to_record(user: User) -> UserRecord:
    return UserRecord(
        id=user.id, name=user.name, email=user.email,
        role=user.role.value, avatar=user.avatar,
    )


def user_from_record(rec: UserRecord) -> User:
    return User(
        id=rec.id, name=rec.name, email=rec.email,
        role=Role(rec.role), avatar=rec.avatar,
    )


def message_to_record(msg: Message) -> MessageRecord:
    return MessageRecord(
        id=msg.id,
        sender_id=msg.sender_id,
        text=msg.text,
        timestamp=format_timestamp(msg.timestamp),
        type=msg.type.value,
        image_url=msg.image_url,
    )


def message_from_record(rec: MessageRecord) -> Message:
    return Message(
        id=rec.id,
        sender_id=rec.sender_id,
        text=rec.text,
        timestamp=parse_timestamp(rec.timestamp),
        type=MessageType(rec.type),
        image_url=rec.image_url,
    )


def note_to_record(note: Note) -> NoteRecord:
    return NoteRecord(
        id=note.id, user_id=note.user_id, content=note.content,
        timestamp=format_timestamp(note.timestamp),
    )


def note_from_record(rec: NoteRecord) -> Note:
    return Note(
        id=rec.id, user_id=rec.user_id, content=rec.content,
        timestamp=parse_timestamp(rec.timestamp),
    )


_JOB_PLAIN_FIELDS = (
    "id", "client_name", "address", "value", "client_phone", "client_email",
    "description", "next_action", "current_stage", "start_date", "finish_date",
    "project_manager", "builder", "electrician", "plumber", "architect",
    "building_control_ref", "agreed_extras", "photography_waiver",
    "liability_form", "point_count_form", "glazing_form",
)
_JOB_LIST_FIELDS = (
    "assigned_team", "architect_plans", "structural_calculations", "gallery_images",
)


def job_to_record(job: Job) -> JobRecord:
    data = {name: getattr(job, name) for name in _JOB_PLAIN_FIELDS}
    data.update({name: list(getattr(job, name)) for name in _JOB_LIST_FIELDS})
    return JobRecord(
        **data,
        type=job.type.value,
        status=job.status.value,
        messages=[message_to_record(m) for m in job.messages],
        site_notes=[note_to_record(n) for n in job.site_notes],
    )


def job_from_record(rec: JobRecord) -> Job:
    data = {name: getattr(rec, name) for name in _JOB_PLAIN_FIELDS}
    data.update({name: list(getattr(rec, name)) for name in _JOB_LIST_FIELDS})
    return Job(
        **data,
        type=JobType(rec.type),
        status=JobStatus(rec.status),
        messages=[message_from_record(m) for m in rec.messages],
        site_notes=[note_from_record(n) for n in rec.site_notes],
    )


def activity_to_record(entry: TaskActivity) -> TaskActivityRecord:
    return TaskActivityRecord(
        id=entry.id, user_id=entry.user_id, type=entry.type.value,
        details=entry.details, timestamp=format_timestamp(entry.timestamp),
    )


def activity_from_record(rec: TaskActivityRecord) -> TaskActivity:
    return TaskActivity(
        id=rec.id, user_id=rec.user_id, type=ActivityType(rec.type),
        details=rec.details, timestamp=parse_timestamp(rec.timestamp),
    )


def attachment_to_record(att: TaskAttachment) -> TaskAttachmentRecord:
    return TaskAttachmentRecord(
        id=att.id, name=att.name, type=att.type.value, url=att.url,
        uploaded_by=att.uploaded_by, uploaded_at=format_timestamp(att.uploaded_at),
    )


def attachment_from_record(rec: TaskAttachmentRecord) -> TaskAttachment:
    return TaskAttachment(
        id=rec.id, name=rec.name, type=AttachmentType(rec.type), url=rec.url,
        uploaded_by=rec.uploaded_by, uploaded_at=parse_timestamp(rec.uploaded_at),
    )


def task_to_record(task: Task) -> TaskRecord:
    return TaskRecord(
        id=task.id,
        title=task.title,
        assigned_to=task.assigned_to,
        assigned_by=task.assigned_by,
        due_date=task.due_date.isoformat(),
        created_at=format_timestamp(task.created_at),
        status=task.status.value,
        priority=task.priority.value,
        description=task.description,
        project_id=task.project_id,
        activity_log=[activity_to_record(a) for a in task.activity_log],
        attachments=[attachment_to_record(a) for a in task.attachments],
    )


def task_from_record(rec: TaskRecord) -> Task:
    return Task(
        id=rec.id,
        title=rec.title,
        assigned_to=rec.assigned_to,
        assigned_by=rec.assigned_by,
        due_date=parse_due_date(rec.due_date),
        created_at=parse_timestamp(rec.created_at),
        status=TaskStatus(rec.status),
        priority=TaskPriority(rec.priority),
        description=rec.description,
        project_id=rec.project_id,
        activity_log=[activity_from_record(a) for a in rec.activity_log],
        attachments=[attachment_from_record(a) for a in rec.attachments],
    )


# ---------------------------------------------------------------------------
# Whole-collection JSON blobs
# ---------------------------------------------------------------------------

_USERS = TypeAdapter(list[UserRecord])
_JOBS = TypeAdapter(list[JobRecord])
_TASKS = TypeAdapter(list[TaskRecord])


def _dump(records: list[_Record]) -> str:
    return json.dumps([r.model_dump(by_alias=True) for r in records])


def dump_user(user: User) -> str:
    return user_to_record(user).model_dump_json(by_alias=True)


def load_user(blob: str) -> User:
    return user_from_record(UserRecord.model_validate_json(blob))


def dump_users(users: list[User]) -> str:
    return _dump([user_to_record(u) for u in users])


def load_users(blob: str) -> list[User]:
    return [user_from_record(r) for r in _USERS.validate_json(blob)]


def dump_jobs(jobs: list[Job]) -> str:
    return _dump([job_to_record(j) for j in jobs])


def load_jobs(blob: str) -> list[Job]:
    return [job_from_record(r) for r in _JOBS.validate_json(blob)]


def dump_tasks(tasks: list[Task]) -> str:
    return _dump([task_to_record(t) for t in tasks])


def load_tasks(blob: str) -> list[Task]:
    return [task_from_record(r) for r in _TASKS.validate_json(blob)]
