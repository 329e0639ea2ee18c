"""
SitePortal — Task board derivation.

Turns the flat task collection into what a user's board shows: their own
tasks bucketed by due date and sorted by priority, plus the tasks they
have delegated to others. Everything here is recomputed from scratch on
each call; nothing is cached on the Task.

No I/O: this module only transforms data.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date, timedelta

from siteportal.core import permissions
from siteportal.data.models import Job, Task, TaskPriority, TaskStatus, User, find_job, find_user

logger = logging.getLogger(__name__)

ALL = "all"
STATUS_PENDING = "pending"       # anything not completed
STATUS_COMPLETED = "completed"

ASSIGN_SELF = "self"
ASSIGN_INDIVIDUAL = "individual"
ASSIGN_PROJECT = "project"


@dataclass
class TaskFilters:
    """Board filters. All three must pass for a task to show."""

    search: str = ""
    priority: str = ALL          # "all" or a TaskPriority value
    status: str = ALL            # "all" | "pending" | "completed"


@dataclass
class TaskGroups:
    overdue: list[Task] = field(default_factory=list)
    today: list[Task] = field(default_factory=list)
    tomorrow: list[Task] = field(default_factory=list)
    upcoming: list[Task] = field(default_factory=list)
    completed: list[Task] = field(default_factory=list)

    def as_dict(self) -> dict[str, list[Task]]:
        return {
            "overdue": self.overdue,
            "today": self.today,
            "tomorrow": self.tomorrow,
            "upcoming": self.upcoming,
            "completed": self.completed,
        }

    def __len__(self) -> int:
        return sum(len(bucket) for bucket in self.as_dict().values())


def priority_weight(priority: TaskPriority) -> int:
    """Urgent=4, High=3, Medium=2, Low=1."""
    return TaskPriority(priority).weight


def is_overdue(task: Task, today: date | None = None) -> bool:
    """A task is overdue when its due date has passed and it is not completed."""
    if task.status == TaskStatus.COMPLETED:
        return False
    return task.due_date < (today or _today())


def matches_filters(task: Task, filters: TaskFilters | None = None) -> bool:
    filters = filters or TaskFilters()

    query = filters.search.lower()
    matches_search = query in task.title.lower() or (
        task.description is not None and query in task.description.lower()
    )
    matches_priority = filters.priority == ALL or task.priority == filters.priority

    if filters.status == ALL:
        matches_status = True
    elif filters.status == STATUS_PENDING:
        matches_status = task.status != TaskStatus.COMPLETED
    else:
        matches_status = task.status == TaskStatus.COMPLETED

    return matches_search and matches_priority and matches_status


def my_tasks(
    tasks: list[Task], viewing_user_id: str, filters: TaskFilters | None = None,
) -> list[Task]:
    """Tasks assigned to the viewing user that pass the filters, in input order."""
    return [
        t for t in tasks
        if t.assigned_to == viewing_user_id and matches_filters(t, filters)
    ]


def delegated_tasks(
    tasks: list[Task], viewing_user_id: str, filters: TaskFilters | None = None,
) -> list[Task]:
    """Tasks the viewing user handed to someone else. Self-assigned tasks never appear."""
    return [
        t for t in tasks
        if t.assigned_by == viewing_user_id
        and t.assigned_to != viewing_user_id
        and matches_filters(t, filters)
    ]


def group_tasks(tasks: list[Task], today: date | None = None) -> TaskGroups:
    """Partition tasks into completed / overdue / today / tomorrow / upcoming.

    Completion wins over any date bucket. Date buckets up to tomorrow are
    sorted by descending priority; upcoming is sorted by due date. Both
    sorts are stable, and completed keeps the input order.
    """
    today = today or _today()
    tomorrow = today + timedelta(days=1)
    groups = TaskGroups()

    for task in tasks:
        if task.status == TaskStatus.COMPLETED:
            groups.completed.append(task)
        elif task.due_date < today:
            groups.overdue.append(task)
        elif task.due_date == today:
            groups.today.append(task)
        elif task.due_date == tomorrow:
            groups.tomorrow.append(task)
        else:
            groups.upcoming.append(task)

    def by_priority(t: Task) -> int:
        return -priority_weight(t.priority)

    groups.overdue.sort(key=by_priority)
    groups.today.sort(key=by_priority)
    groups.tomorrow.sort(key=by_priority)
    groups.upcoming.sort(key=lambda t: t.due_date)
    return groups


def group_my_tasks(
    tasks: list[Task],
    viewing_user_id: str,
    filters: TaskFilters | None = None,
    today: date | None = None,
) -> TaskGroups:
    """The "My Tasks" board for a viewing user."""
    return group_tasks(my_tasks(tasks, viewing_user_id, filters), today)


def board_owner(viewer: User, users: list[User], requested_id: str | None = None) -> User:
    """Resolve whose board is shown.

    Admins may look at anyone's board; everyone else always gets their own.
    An id that no longer matches a user falls back to the viewer.
    """
    if not requested_id or not permissions.can_view_board(viewer, requested_id):
        return viewer
    owner = find_user(users, requested_id)
    if owner is None:
        logger.warning("Board requested for unknown user %s", requested_id)
        return viewer
    return owner


def assignable_users(
    users: list[User], jobs: list[Job], mode: str, project_id: str | None = None,
) -> list[User]:
    """Who a new task may be assigned to.

    individual: anyone. project: the job's team plus Admins.
    self: nobody to choose, the creator is the assignee.
    """
    if mode == ASSIGN_INDIVIDUAL:
        return list(users)
    if mode == ASSIGN_PROJECT and project_id:
        job = find_job(jobs, project_id)
        if job is None:
            return []
        return [
            u for u in users
            if u.id in job.assigned_team or permissions.is_admin(u)
        ]
    return []


def _today() -> date:
    from siteportal.config import local_today

    return local_today()
