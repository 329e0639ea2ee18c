"""Two-tier permission checks: Admins manage everything, everyone else sees
only the jobs they are assigned to. Role equality is the only test."""

from __future__ import annotations

from siteportal.data.models import Job, Role, Task, User


def is_admin(user: User | None) -> bool:
    return user is not None and user.role == Role.ADMIN


def can_manage_users(user: User | None) -> bool:
    return is_admin(user)


def can_see_job(viewer: User | None, job: Job) -> bool:
    if viewer is None:
        return False
    return is_admin(viewer) or viewer.id in job.assigned_team


def can_view_board(viewer: User | None, owner_id: str) -> bool:
    """Admins may open any user's task board; others only their own."""
    if viewer is None:
        return False
    return is_admin(viewer) or viewer.id == owner_id


def can_delete_job(user: User | None) -> bool:
    return is_admin(user)


def can_delete_task(user: User | None, task: Task) -> bool:
    if user is None:
        return False
    return is_admin(user) or task.assigned_by == user.id
