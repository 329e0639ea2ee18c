"""
SitePortal — Application shell.

Owns the authoritative collections (users, jobs, tasks), the signed-in
user and the currently selected job. Every user action goes through one
of the methods below, which mutate the in-memory collection and then
immediately rewrite the whole collection to storage.

Invalid actions are declined rather than raised: the method logs a
warning, changes nothing, and returns None (or False).
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime
from typing import Callable
from zoneinfo import ZoneInfo

from siteportal.config import settings
from siteportal.core import activity, aggregator, assistant, permissions, task_engine
from siteportal.core.auth import authenticate
from siteportal.data import codec, seed
from siteportal.data.models import (
    Job,
    JobStatus,
    JobType,
    Message,
    MessageType,
    Note,
    Role,
    Task,
    TaskAttachment,
    TaskPriority,
    TaskStatus,
    User,
    find_job,
    find_task,
    find_user,
    new_id,
    parse_due_date,
    resolve_user,
    utcnow,
    validate_job_draft,
    validate_job_fields,
    validate_member_draft,
    validate_task_draft,
)
from siteportal.ports.storage_port import StoragePort

logger = logging.getLogger(__name__)

KEY_CURRENT_USER = "currentUser"
KEY_JOBS = "jobs"
KEY_TASKS = "tasks"
KEY_USERS = "users"

DOCUMENT_FIELDS = ("architect_plans", "structural_calculations")
FORM_FIELDS = ("photography_waiver", "liability_form", "point_count_form", "glazing_form")

_EDITABLE_JOB_FIELDS = frozenset({
    "client_name", "client_phone", "client_email", "address", "type", "status",
    "value", "description", "next_action", "current_stage", "start_date",
    "finish_date", "assigned_team", "project_manager", "builder", "electrician",
    "plumber", "architect", "architect_plans", "structural_calculations",
    "building_control_ref", "agreed_extras", "photography_waiver",
    "liability_form", "point_count_form", "glazing_form", "gallery_images",
})
_EDITABLE_TASK_FIELDS = frozenset({
    "title", "description", "priority", "assigned_to", "due_date", "project_id",
})


@dataclass
class TaskBoard:
    """Everything the task page shows for one board owner."""

    owner: User
    groups: task_engine.TaskGroups
    delegated: list[Task]


class Portal:
    """The single owner of portal state."""

    def __init__(
        self,
        store: StoragePort,
        users: list[User],
        jobs: list[Job],
        tasks: list[Task],
        current_user: User | None = None,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._store = store
        self._users = users
        self._jobs = jobs
        self._tasks = tasks
        self._current_user = current_user
        self._selected_job_id: str | None = None
        self._clock = clock

    # ------------------------------------------------------------------
    # Loading & persistence
    # ------------------------------------------------------------------

    @classmethod
    def load(
        cls, store: StoragePort, clock: Callable[[], datetime] = utcnow,
    ) -> Portal:
        """Restore state from the store, seeding any collection never saved before."""
        now = clock()

        users = cls._load_key(store, KEY_USERS, codec.load_users, seed.seed_users)
        jobs = cls._load_key(store, KEY_JOBS, codec.load_jobs, lambda: seed.seed_jobs(now))
        tasks = cls._load_key(store, KEY_TASKS, codec.load_tasks, lambda: seed.seed_tasks(now))

        portal = cls(store, users, jobs, tasks, clock=clock)
        portal._restore_session()
        logger.info(
            "Portal loaded: %d users, %d jobs, %d tasks", len(users), len(jobs), len(tasks),
        )
        return portal

    @staticmethod
    def _load_key(store: StoragePort, name: str, loader, seeder) -> list:
        key = settings.STORAGE_PREFIX + name
        blob = store.get(key)
        if blob is not None:
            try:
                return loader(blob)
            except ValueError as exc:
                logger.error("Stored %s is unreadable, reseeding: %s", key, exc)
        items = seeder()
        store.set(key, Portal._dumper(name)(items))
        logger.info("Seeded %s with %d records", key, len(items))
        return items

    @staticmethod
    def _dumper(name: str):
        return {
            KEY_USERS: codec.dump_users,
            KEY_JOBS: codec.dump_jobs,
            KEY_TASKS: codec.dump_tasks,
        }[name]

    def _restore_session(self) -> None:
        blob = self._store.get(settings.STORAGE_PREFIX + KEY_CURRENT_USER)
        if blob is None:
            return
        try:
            stored = codec.load_user(blob)
        except ValueError as exc:
            logger.error("Stored session is unreadable, signing out: %s", exc)
            self._store.delete(settings.STORAGE_PREFIX + KEY_CURRENT_USER)
            return
        # Prefer the live record so role/email edits apply to the session
        self._current_user = find_user(self._users, stored.id) or stored

    def _save(self, name: str) -> None:
        collection = {KEY_USERS: self._users, KEY_JOBS: self._jobs, KEY_TASKS: self._tasks}[name]
        self._store.set(settings.STORAGE_PREFIX + name, self._dumper(name)(collection))

    def _save_session(self) -> None:
        key = settings.STORAGE_PREFIX + KEY_CURRENT_USER
        if self._current_user is None:
            self._store.delete(key)
        else:
            self._store.set(key, codec.dump_user(self._current_user))

    # ------------------------------------------------------------------
    # Read-only state
    # ------------------------------------------------------------------

    @property
    def current_user(self) -> User | None:
        return self._current_user

    @property
    def users(self) -> list[User]:
        return list(self._users)

    @property
    def jobs(self) -> list[Job]:
        return list(self._jobs)

    @property
    def tasks(self) -> list[Task]:
        return list(self._tasks)

    @property
    def selected_job(self) -> Job | None:
        return find_job(self._jobs, self._selected_job_id)

    def today(self) -> date:
        return self._clock().astimezone(ZoneInfo(settings.TIMEZONE)).date()

    def user_name(self, user_id: str) -> str:
        return resolve_user(self._users, user_id).name

    def _actor(self, action: str) -> User | None:
        if self._current_user is None:
            logger.warning("Declined %s: nobody is signed in", action)
        return self._current_user

    def _admin(self, action: str) -> User | None:
        actor = self._actor(action)
        if actor is not None and not permissions.is_admin(actor):
            logger.warning("Declined %s: %s is not an Admin", action, actor.id)
            return None
        return actor

    # ------------------------------------------------------------------
    # Session
    # ------------------------------------------------------------------

    def login(self, email: str, password: str) -> User:
        """Sign in. Raises AuthenticationError on failure."""
        self._current_user = authenticate(self._users, email, password)
        self._save_session()
        return self._current_user

    def sign_out(self) -> None:
        if self._current_user is not None:
            logger.info("User %s signed out", self._current_user.id)
        self._current_user = None
        self._selected_job_id = None
        self._save_session()

    # ------------------------------------------------------------------
    # Jobs
    # ------------------------------------------------------------------

    def _visible_job(self, job_id: str, action: str) -> Job | None:
        actor = self._actor(action)
        if actor is None:
            return None
        job = find_job(self._jobs, job_id)
        if job is None or not permissions.can_see_job(actor, job):
            logger.warning("Declined %s: job %s not found or not visible", action, job_id)
            return None
        return job

    def add_job(
        self,
        client_name: str,
        address: str,
        type: JobType | str = JobType.RENOVATION,
        value: float = 0,
        description: str = "",
        client_phone: str | None = None,
        client_email: str | None = None,
    ) -> Job | None:
        """Create a New Job at the top of the list."""
        if self._actor("add_job") is None:
            return None
        problems = validate_job_draft(client_name, address, type=type)
        if problems:
            logger.warning("Declined add_job: %s", "; ".join(problems))
            return None

        # Creation timestamp as id keeps the job board's fallback ordering meaningful
        job_id = int(self._clock().timestamp() * 1000)
        while find_job(self._jobs, str(job_id)) is not None:
            job_id += 1
        job = Job(
            id=str(job_id),
            client_name=client_name.strip(),
            address=address.strip(),
            type=JobType(type),
            status=JobStatus.NEW_JOB,
            value=float(value or 0),
            description=description,
            client_phone=client_phone,
            client_email=client_email,
            current_stage="Start Date Agreed",
            next_action="Initial Setup",
        )
        self._jobs.insert(0, job)
        self._save(KEY_JOBS)
        logger.info("Job added: %s '%s'", job.id, job.address)
        return job

    def update_job(self, job_id: str, **fields) -> Job | None:
        """Write one or more job fields. Any status may follow any other."""
        job = self._visible_job(job_id, "update_job")
        if job is None:
            return None
        unknown = set(fields) - _EDITABLE_JOB_FIELDS
        if unknown:
            logger.warning("Declined update_job: unknown field(s) %s", ", ".join(sorted(unknown)))
            return None

        problems = validate_job_fields(fields)
        if problems:
            logger.warning("Declined update_job: %s", "; ".join(problems))
            return None

        if "status" in fields:
            fields["status"] = JobStatus(fields["status"])
        if "type" in fields:
            fields["type"] = JobType(fields["type"])
        if "assigned_team" in fields:
            fields["assigned_team"] = list(dict.fromkeys(fields["assigned_team"]))

        for name, value in fields.items():
            setattr(job, name, value)
        self._save(KEY_JOBS)
        logger.info("Job %s updated: %s", job.id, ", ".join(sorted(fields)))
        return job

    def set_job_status(self, job_id: str, status: JobStatus | str) -> Job | None:
        return self.update_job(job_id, status=status)

    def assign_team(self, job_id: str, user_ids: list[str]) -> Job | None:
        return self.update_job(job_id, assigned_team=user_ids)

    def post_message(
        self,
        job_id: str,
        text: str,
        type: MessageType = MessageType.TEXT,
        image_url: str | None = None,
    ) -> Message | None:
        """Append a chat message from the signed-in user."""
        job = self._visible_job(job_id, "post_message")
        if job is None or not text.strip():
            return None
        message = Message(
            id=new_id(),
            sender_id=self._current_user.id,
            text=text,
            timestamp=self._clock(),
            type=MessageType(type),
            image_url=image_url,
        )
        job.messages.append(message)
        self._save(KEY_JOBS)
        return message

    def upload_photo(self, job_id: str, filename: str) -> Message | None:
        return self.post_message(job_id, f"Uploaded photo: {filename}")

    def add_note(self, job_id: str, content: str) -> Note | None:
        """Put a new diary entry at the top of the job's site diary."""
        job = self._visible_job(job_id, "add_note")
        if job is None or not content.strip():
            return None
        note = Note(
            id=new_id(),
            user_id=self._current_user.id,
            content=content,
            timestamp=self._clock(),
        )
        job.site_notes.insert(0, note)
        self._save(KEY_JOBS)
        return note

    def add_document(self, job_id: str, field: str, filename: str) -> Job | None:
        if field not in DOCUMENT_FIELDS:
            logger.warning("Declined add_document: %r is not a document list", field)
            return None
        job = self._visible_job(job_id, "add_document")
        if job is None:
            return None
        return self.update_job(job_id, **{field: [*getattr(job, field), filename]})

    def remove_document(self, job_id: str, field: str, index: int) -> Job | None:
        if field not in DOCUMENT_FIELDS:
            logger.warning("Declined remove_document: %r is not a document list", field)
            return None
        job = self._visible_job(job_id, "remove_document")
        if job is None:
            return None
        docs = getattr(job, field)
        return self.update_job(job_id, **{field: [d for i, d in enumerate(docs) if i != index]})

    def attach_form(self, job_id: str, field: str, filename: str) -> Job | None:
        if field not in FORM_FIELDS:
            logger.warning("Declined attach_form: %r is not a form field", field)
            return None
        return self.update_job(job_id, **{field: filename})

    def add_gallery_image(self, job_id: str, url: str) -> Job | None:
        job = self._visible_job(job_id, "add_gallery_image")
        if job is None:
            return None
        return self.update_job(job_id, gallery_images=[*job.gallery_images, url])

    def delete_job(self, job_id: str) -> bool:
        """Admin only. Tasks pointing at the job keep their dangling project id."""
        if self._admin("delete_job") is None:
            return False
        job = find_job(self._jobs, job_id)
        if job is None:
            logger.warning("Declined delete_job: job %s not found", job_id)
            return False
        self._jobs.remove(job)
        self._selected_job_id = None
        self._save(KEY_JOBS)
        logger.info("Job deleted: %s", job_id)
        return True

    def select_job(self, job_id: str | None) -> Job | None:
        if job_id is None:
            self._selected_job_id = None
            return None
        job = self._visible_job(job_id, "select_job")
        self._selected_job_id = job.id if job else None
        return job

    # ------------------------------------------------------------------
    # Tasks
    # ------------------------------------------------------------------

    def _task(self, task_id: str, action: str) -> Task | None:
        if self._actor(action) is None:
            return None
        task = find_task(self._tasks, task_id)
        if task is None:
            logger.warning("Declined %s: task %s not found", action, task_id)
        return task

    def _assignee_allowed(self, assignee_id: str, project_id: str | None) -> bool:
        if project_id is None:
            return True
        allowed = task_engine.assignable_users(
            self._users, self._jobs, task_engine.ASSIGN_PROJECT, project_id,
        )
        return any(u.id == assignee_id for u in allowed)

    def add_task(
        self,
        title: str,
        mode: str = task_engine.ASSIGN_SELF,
        assignee_id: str | None = None,
        project_id: str | None = None,
        description: str | None = None,
        priority: TaskPriority | str = TaskPriority.MEDIUM,
        due_date: date | str | None = None,
    ) -> Task | None:
        """Create a task for yourself, for another user, or on a job.

        Job tasks may only go to the job's team or to an Admin.
        """
        actor = self._actor("add_task")
        if actor is None:
            return None

        if mode == task_engine.ASSIGN_SELF:
            assigned_to, project_id = actor.id, None
        elif mode == task_engine.ASSIGN_INDIVIDUAL:
            assigned_to, project_id = assignee_id, None
        elif mode == task_engine.ASSIGN_PROJECT:
            if not project_id or find_job(self._jobs, project_id) is None:
                logger.warning("Declined add_task: job %s not found", project_id)
                return None
            assigned_to = assignee_id
        else:
            logger.warning("Declined add_task: unknown mode %r", mode)
            return None

        problems = validate_task_draft(title, assigned_to, priority=priority, due_date=due_date)
        if problems:
            logger.warning("Declined add_task: %s", "; ".join(problems))
            return None
        if not self._assignee_allowed(assigned_to, project_id):
            logger.warning(
                "Declined add_task: %s is not on job %s's team", assigned_to, project_id,
            )
            return None

        now = self._clock()
        task = Task(
            id=new_id(),
            title=title.strip(),
            description=description,
            assigned_to=assigned_to,
            assigned_by=actor.id,
            project_id=project_id,
            status=TaskStatus.PENDING,
            priority=TaskPriority(priority),
            due_date=parse_due_date(due_date) or self.today(),
            created_at=now,
            activity_log=[activity.creation_entry(actor.id, now)],
        )
        self._tasks.insert(0, task)
        self._save(KEY_TASKS)
        logger.info("Task added: %s '%s' for %s", task.id, task.title, task.assigned_to)
        return task

    def edit_task(self, task_id: str, **changes) -> activity.TaskEdit | None:
        """Apply a task form edit, logging priority, assignee and due-date changes."""
        task = self._task(task_id, "edit_task")
        if task is None:
            return None
        unknown = set(changes) - _EDITABLE_TASK_FIELDS
        if unknown:
            logger.warning("Declined edit_task: unknown field(s) %s", ", ".join(sorted(unknown)))
            return None
        if "title" in changes and not (changes["title"] or "").strip():
            logger.warning("Declined edit_task: title is required")
            return None

        assignee = changes.get("assigned_to", task.assigned_to)
        project_id = changes.get("project_id", task.project_id)
        if not assignee:
            logger.warning("Declined edit_task: assignee is required")
            return None
        # Team membership only gates a change of assignee or job
        reassigned = assignee != task.assigned_to or project_id != task.project_id
        if reassigned and not self._assignee_allowed(assignee, project_id):
            logger.warning("Declined edit_task: %s cannot take job %s tasks", assignee, project_id)
            return None

        try:
            edit = activity.apply_edit(
                task,
                self._current_user.id,
                name_of=self.user_name,
                now=self._clock(),
                **changes,
            )
        except ValueError as exc:
            logger.warning("Declined edit_task: %s", exc)
            return None
        self._save(KEY_TASKS)
        return edit

    def toggle_task_status(self, task_id: str) -> Task | None:
        """Completed <-> Pending."""
        task = self._task(task_id, "toggle_task_status")
        if task is None:
            return None
        activity.toggle_status(task, self._current_user.id, self._clock())
        self._save(KEY_TASKS)
        return task

    def set_task_status(self, task_id: str, status: TaskStatus | str) -> Task | None:
        task = self._task(task_id, "set_task_status")
        if task is None:
            return None
        try:
            status = TaskStatus(status)
        except ValueError:
            logger.warning("Declined set_task_status: unknown status %r", status)
            return None
        activity.set_status(task, status, self._current_user.id, self._clock())
        self._save(KEY_TASKS)
        return task

    def upload_task_attachment(
        self, task_id: str, name: str, media_type: str | None, url: str,
    ) -> TaskAttachment | None:
        task = self._task(task_id, "upload_task_attachment")
        if task is None or not name:
            return None
        attachment = activity.attach_file(
            task, self._current_user.id, name, media_type, url, self._clock(),
        )
        self._save(KEY_TASKS)
        return attachment

    def comment_on_task(self, task_id: str, text: str) -> Task | None:
        task = self._task(task_id, "comment_on_task")
        if task is None or not text.strip():
            return None
        activity.add_comment(task, self._current_user.id, text.strip(), self._clock())
        self._save(KEY_TASKS)
        return task

    def delete_task(self, task_id: str) -> bool:
        """Admins, or whoever assigned the task, may delete it."""
        task = self._task(task_id, "delete_task")
        if task is None:
            return False
        if not permissions.can_delete_task(self._current_user, task):
            logger.warning("Declined delete_task: %s may not delete %s", self._current_user.id, task_id)
            return False
        self._tasks.remove(task)
        self._save(KEY_TASKS)
        logger.info("Task deleted: %s", task_id)
        return True

    # ------------------------------------------------------------------
    # Team members (Admin only)
    # ------------------------------------------------------------------

    def add_member(
        self, name: str, role: Role | str = Role.BUILDER, email: str | None = None,
    ) -> User | None:
        if self._admin("add_member") is None:
            return None
        problems = validate_member_draft(name, role)
        if problems:
            logger.warning("Declined add_member: %s", "; ".join(problems))
            return None

        user_id = f"u{new_id()}"
        name = name.strip()
        user = User(
            id=user_id,
            name=name,
            email=email or f"{'.'.join(name.lower().split())}@wmhi.co.uk",
            role=Role(role),
            avatar=f"https://i.pravatar.cc/150?u={user_id}",
        )
        self._users.append(user)
        self._save(KEY_USERS)
        logger.info("Member added: %s '%s' (%s)", user.id, user.name, user.role.value)
        return user

    def update_member(
        self, user_id: str, role: Role | str | None = None, email: str | None = None,
    ) -> User | None:
        if self._admin("update_member") is None:
            return None
        user = find_user(self._users, user_id)
        if user is None:
            logger.warning("Declined update_member: user %s not found", user_id)
            return None
        if role is not None:
            user.role = Role(role)
        if email:
            user.email = email.strip()
        self._save(KEY_USERS)
        if self._current_user is not None and self._current_user.id == user.id:
            self._current_user = user
            self._save_session()
        logger.info("Member updated: %s", user.id)
        return user

    def remove_member(self, user_id: str) -> bool:
        """Remove a user. Jobs, tasks and messages keep their (now dangling) ids."""
        admin = self._admin("remove_member")
        if admin is None:
            return False
        if admin.id == user_id:
            logger.warning("Declined remove_member: admins cannot remove themselves")
            return False
        user = find_user(self._users, user_id)
        if user is None:
            logger.warning("Declined remove_member: user %s not found", user_id)
            return False
        self._users.remove(user)
        self._save(KEY_USERS)
        logger.info("Member removed: %s '%s'", user.id, user.name)
        return True

    def reset_password(self, user_id: str, new_password: str) -> bool:
        """Confirm a password reset. Passwords are not stored anywhere."""
        if self._admin("reset_password") is None:
            return False
        user = find_user(self._users, user_id)
        if user is None or not new_password:
            logger.warning("Declined reset_password for %s", user_id)
            return False
        logger.info("Password reset for %s", user.id)
        return True

    # ------------------------------------------------------------------
    # Views
    # ------------------------------------------------------------------

    def visible_jobs(self) -> list[Job]:
        return aggregator.visible_jobs(self._jobs, self._current_user)

    def job_board(
        self, status: str = aggregator.ALL_STATUSES, search: str = "",
        sort: str = aggregator.SORT_NEWEST,
    ) -> list[Job]:
        return aggregator.filter_job_board(self.visible_jobs(), status, search, sort)

    def task_board(
        self,
        viewing_user_id: str | None = None,
        filters: task_engine.TaskFilters | None = None,
    ) -> TaskBoard | None:
        """My Tasks and Delegated for the viewer, or for another user when an Admin asks."""
        viewer = self._actor("task_board")
        if viewer is None:
            return None
        owner = task_engine.board_owner(viewer, self._users, viewing_user_id)
        return TaskBoard(
            owner=owner,
            groups=task_engine.group_my_tasks(self._tasks, owner.id, filters, self.today()),
            delegated=task_engine.delegated_tasks(self._tasks, owner.id, filters),
        )

    def assignable_users(self, mode: str, project_id: str | None = None) -> list[User]:
        return task_engine.assignable_users(self._users, self._jobs, mode, project_id)

    def chat_feed(self) -> list[aggregator.FeedItem]:
        return aggregator.chat_feed(self._jobs, self._current_user)

    def search_diary(self, job_id: str, query: str) -> list[Note]:
        job = self._visible_job(job_id, "search_diary")
        return aggregator.search_diary(job, self._users, query) if job else []

    def search_chat(self, job_id: str, query: str) -> list[Message]:
        job = self._visible_job(job_id, "search_chat")
        return aggregator.search_chat(job, self._users, query) if job else []

    def completed_report(
        self, start: str | None = None, end: str | None = None,
    ) -> aggregator.CompletedJobsReport:
        """Completed jobs finished in [start, end]; defaults to the current month."""
        month_start, month_end = aggregator.current_month_range(self.today())
        return aggregator.completed_jobs_in_range(
            self._jobs, self._current_user, start or month_start, end or month_end,
        )

    def dashboard(self) -> aggregator.DashboardStats:
        return aggregator.dashboard_stats(self.visible_jobs(), self.today())

    # ------------------------------------------------------------------
    # AI assistant
    # ------------------------------------------------------------------

    async def summarize_chat(self, job_id: str) -> str | None:
        job = self._visible_job(job_id, "summarize_chat")
        if job is None:
            return None
        return await assistant.summarize_job_chat(job, self._users)

    async def draft_update(self, job_id: str) -> str | None:
        job = self._visible_job(job_id, "draft_update")
        if job is None:
            return None
        return await assistant.draft_client_update(job)
