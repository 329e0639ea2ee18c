"""
SitePortal — Cross-job views.

Visibility-scoped job lists, the unified chat feed, diary and chat search,
and the completed-jobs report behind the dashboard. Visibility is worked
out again on every call: Admins see every job, everyone else only the jobs
whose team includes them.
"""

from __future__ import annotations

import calendar
import logging
from dataclasses import dataclass, field
from datetime import date, datetime, time, timezone

from siteportal.core import permissions
from siteportal.data.models import Job, JobStatus, Message, Note, User, resolve_user

logger = logging.getLogger(__name__)

SORT_NEWEST = "date-newest"
SORT_OLDEST = "date-oldest"
ALL_STATUSES = "All"


@dataclass
class FeedItem:
    """A chat message tagged with the job it was posted on."""

    job: Job
    message: Message


@dataclass
class CompletedJobsReport:
    start: str
    end: str
    jobs: list[Job] = field(default_factory=list)

    @property
    def count(self) -> int:
        return len(self.jobs)

    @property
    def total_value(self) -> float:
        return sum(j.value for j in self.jobs)


@dataclass
class DashboardStats:
    active: int
    new: int
    completed_this_month: int


def visible_jobs(jobs: list[Job], viewer: User | None) -> list[Job]:
    """Jobs the viewer may see, in collection order."""
    if viewer is None:
        return []
    if permissions.is_admin(viewer):
        return list(jobs)
    return [job for job in jobs if viewer.id in job.assigned_team]


def chat_feed(jobs: list[Job], viewer: User | None) -> list[FeedItem]:
    """Every visible message across jobs, newest first.

    Equal timestamps keep job order, then per-job insertion order.
    """
    items = [
        FeedItem(job=job, message=msg)
        for job in visible_jobs(jobs, viewer)
        for msg in job.messages
    ]
    items.sort(key=lambda item: item.message.timestamp, reverse=True)
    return items


def search_diary(job: Job, users: list[User], query: str) -> list[Note]:
    """Notes whose content or author name contains the query (case-insensitive)."""
    needle = query.lower()
    return [
        note for note in job.site_notes
        if needle in note.content.lower()
        or needle in resolve_user(users, note.user_id).name.lower()
    ]


def search_chat(job: Job, users: list[User], query: str) -> list[Message]:
    """Messages whose text or sender name contains the query (case-insensitive)."""
    needle = query.lower()
    return [
        msg for msg in job.messages
        if needle in msg.text.lower()
        or needle in resolve_user(users, msg.sender_id).name.lower()
    ]


def completed_jobs_in_range(
    jobs: list[Job], viewer: User | None, start: str, end: str,
) -> CompletedJobsReport:
    """Completed visible jobs whose finish date falls in [start, end].

    Dates are fixed-width ISO strings, so string comparison orders them.
    """
    selected = [
        job for job in visible_jobs(jobs, viewer)
        if job.status == JobStatus.COMPLETED
        and job.finish_date
        and start <= job.finish_date <= end
    ]
    report = CompletedJobsReport(start=start, end=end, jobs=selected)
    logger.debug(
        "Completed jobs %s..%s: %d worth %.2f", start, end, report.count, report.total_value,
    )
    return report


def current_month_range(today: date) -> tuple[str, str]:
    """First and last ISO date of today's month."""
    last_day = calendar.monthrange(today.year, today.month)[1]
    return (
        today.replace(day=1).isoformat(),
        today.replace(day=last_day).isoformat(),
    )


def dashboard_stats(jobs: list[Job], today: date) -> DashboardStats:
    """Headline counts: active (in progress or scheduled), new, completed this month."""
    active = sum(
        1 for j in jobs if j.status in (JobStatus.IN_PROGRESS, JobStatus.SCHEDULED)
    )
    new = sum(1 for j in jobs if j.status == JobStatus.NEW_JOB)
    month_prefix = today.strftime("%Y-%m")
    completed = sum(
        1 for j in jobs
        if j.status == JobStatus.COMPLETED
        and j.finish_date
        and j.finish_date[:7] == month_prefix
    )
    return DashboardStats(active=active, new=new, completed_this_month=completed)


def _board_sort_key(job: Job) -> float:
    # Milliseconds since epoch; jobs without a start date fall back to their
    # id, which is a creation timestamp for jobs added through the portal
    if job.start_date:
        start = datetime.combine(date.fromisoformat(job.start_date), time(), tzinfo=timezone.utc)
        return start.timestamp() * 1000
    try:
        return int(job.id)
    except ValueError:
        return 0


def filter_job_board(
    jobs: list[Job],
    status: str = ALL_STATUSES,
    search: str = "",
    sort: str = SORT_NEWEST,
) -> list[Job]:
    """The job board list: status filter, address/client search, start-date sort."""
    needle = search.lower()
    selected = [
        job for job in jobs
        if (status == ALL_STATUSES or job.status == status)
        and (needle in job.address.lower() or needle in job.client_name.lower())
    ]
    if sort == SORT_NEWEST:
        selected.sort(key=_board_sort_key, reverse=True)
    elif sort == SORT_OLDEST:
        selected.sort(key=_board_sort_key)
    return selected
