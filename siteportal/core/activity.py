"""
SitePortal — Task activity trail.

Every significant change to a task adds exactly one TaskActivity to the
front of its log, authored by whoever made the change. Entries are never
edited, merged or removed.

Logged: creation, status changes, priority changes, reassignment, due-date
changes, uploads, comments. Title and description edits are not logged.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable

from siteportal.data.models import (
    ActivityType,
    AttachmentType,
    Task,
    TaskActivity,
    TaskAttachment,
    TaskPriority,
    TaskStatus,
    new_id,
    parse_due_date,
    utcnow,
)

logger = logging.getLogger(__name__)

_UNSET = object()


def new_activity(
    actor_id: str,
    kind: ActivityType,
    details: str,
    now: datetime | None = None,
) -> TaskActivity:
    return TaskActivity(
        id=new_id(),
        user_id=actor_id,
        type=kind,
        details=details,
        timestamp=now or utcnow(),
    )


def record(task: Task, entry: TaskActivity) -> Task:
    """Prepend one entry to the task's log."""
    task.activity_log.insert(0, entry)
    logger.debug("Task %s activity: %s — %s", task.id, entry.type.value, entry.details)
    return task


def sorted_log(task: Task) -> list[TaskActivity]:
    """The log newest-first by timestamp, for display. The stored log is untouched."""
    return sorted(task.activity_log, key=lambda a: a.timestamp, reverse=True)


def creation_entry(actor_id: str, now: datetime | None = None) -> TaskActivity:
    return new_activity(actor_id, ActivityType.CREATION, "Task created", now)


def toggle_status(task: Task, actor_id: str, now: datetime | None = None) -> Task:
    """Flip between Completed and Pending, logging the new status."""
    new_status = (
        TaskStatus.PENDING if task.status == TaskStatus.COMPLETED else TaskStatus.COMPLETED
    )
    return set_status(task, new_status, actor_id, now)


def set_status(
    task: Task, status: TaskStatus, actor_id: str, now: datetime | None = None,
) -> Task:
    """Write any status value. Any status may follow any other."""
    status = TaskStatus(status)
    task.status = status
    return record(
        task,
        new_activity(actor_id, ActivityType.STATUS_CHANGE, f"Marked as {status.value}", now),
    )


@dataclass
class TaskEdit:
    """Outcome of applying a form edit to a task."""

    task: Task
    entries: list[TaskActivity] = field(default_factory=list)

    @property
    def changed(self) -> bool:
        return bool(self.entries)


def apply_edit(
    task: Task,
    actor_id: str,
    *,
    title=_UNSET,
    description=_UNSET,
    priority=_UNSET,
    assigned_to=_UNSET,
    due_date=_UNSET,
    project_id=_UNSET,
    name_of: Callable[[str], str] | None = None,
    now: datetime | None = None,
) -> TaskEdit:
    """Apply field edits and log one entry per significant changed field.

    Priority -> priority_change; assignee and due date -> one update each.
    Title, description and project changes are written but not logged.
    An empty title or due date keeps the existing value.

    Every value is parsed before any field is written, so a ValueError
    leaves the task untouched.
    """
    now = now or utcnow()
    if priority is not _UNSET:
        priority = TaskPriority(priority)
    if due_date is not _UNSET:
        due_date = parse_due_date(due_date)

    entries: list[TaskActivity] = []

    if priority is not _UNSET and priority != task.priority:
        entries.append(new_activity(
            actor_id, ActivityType.PRIORITY_CHANGE,
            f"Priority changed to {priority.value}", now,
        ))
        task.priority = priority

    if assigned_to is not _UNSET and assigned_to != task.assigned_to:
        assignee_name = name_of(assigned_to) if name_of else assigned_to
        entries.append(new_activity(
            actor_id, ActivityType.UPDATE, f"Reassigned to {assignee_name}", now,
        ))
        task.assigned_to = assigned_to

    if due_date is not _UNSET and due_date is not None and due_date != task.due_date:
        entries.append(new_activity(
            actor_id, ActivityType.UPDATE,
            f"Due date changed to {due_date.isoformat()}", now,
        ))
        task.due_date = due_date

    if title is not _UNSET and title:
        task.title = title
    if description is not _UNSET:
        task.description = description
    if project_id is not _UNSET:
        task.project_id = project_id

    # Newest first: entries created in one edit keep their field order at the front
    task.activity_log[0:0] = entries
    if entries:
        logger.info("Task %s edited by %s: %d logged change(s)", task.id, actor_id, len(entries))
    return TaskEdit(task=task, entries=entries)


def classify_media_type(media_type: str | None) -> AttachmentType:
    """image/* -> image, video/* -> video, anything else -> document."""
    media_type = (media_type or "").lower()
    if media_type.startswith("image/"):
        return AttachmentType.IMAGE
    if media_type.startswith("video/"):
        return AttachmentType.VIDEO
    return AttachmentType.DOCUMENT


def attach_file(
    task: Task,
    actor_id: str,
    name: str,
    media_type: str | None,
    url: str,
    now: datetime | None = None,
) -> TaskAttachment:
    """Add an attachment to the front of the list and log the upload."""
    now = now or utcnow()
    attachment = TaskAttachment(
        id=new_id(),
        name=name,
        type=classify_media_type(media_type),
        url=url,
        uploaded_by=actor_id,
        uploaded_at=now,
    )
    task.attachments.insert(0, attachment)
    record(task, new_activity(actor_id, ActivityType.UPLOAD, f"Uploaded {name}", now))
    return attachment


def add_comment(task: Task, actor_id: str, text: str, now: datetime | None = None) -> Task:
    return record(task, new_activity(actor_id, ActivityType.COMMENT, text, now))

