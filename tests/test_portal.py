"""Integration tests for siteportal.core.portal — the application shell."""

from datetime import date, timedelta

import pytest
from unittest.mock import AsyncMock, patch

from siteportal.core.assistant import SUMMARY_ERROR
from siteportal.core.auth import AuthenticationError
from siteportal.core.portal import Portal
from siteportal.core.task_engine import (
    ASSIGN_INDIVIDUAL,
    ASSIGN_PROJECT,
    ASSIGN_SELF,
    TaskFilters,
)
from siteportal.data import codec
from siteportal.data.models import (
    ActivityType,
    JobStatus,
    Role,
    TaskPriority,
    TaskStatus,
)


def _reload(portal):
    return Portal.load(portal._store, clock=portal._clock)


# ---------------------------------------------------------------------------
# Loading, seeding and persistence
# ---------------------------------------------------------------------------


class TestLoad:
    def test_first_run_seeds_and_saves(self, memory_store, now):
        portal = Portal.load(memory_store, clock=lambda: now)
        assert len(portal.users) == 6
        assert len(portal.jobs) == 5
        assert len(portal.tasks) == 3
        assert memory_store.keys() == ["wmhi_jobs", "wmhi_tasks", "wmhi_users"]
        assert portal.current_user is None

    def test_stored_collections_are_not_reseeded(self, memory_store, now):
        memory_store.set("wmhi_tasks", "[]")
        portal = Portal.load(memory_store, clock=lambda: now)
        assert portal.tasks == []
        assert len(portal.jobs) == 5

    def test_unreadable_collection_reseeds(self, memory_store, now):
        memory_store.set("wmhi_jobs", "{broken")
        portal = Portal.load(memory_store, clock=lambda: now)
        assert len(portal.jobs) == 5
        assert codec.load_jobs(memory_store.get("wmhi_jobs"))

    def test_timestamps_rehydrate_after_reload(self, admin_portal, now):
        admin_portal.post_message("j1", "Skip collected")
        restored = _reload(admin_portal)
        message = restored.jobs[0].messages[-1]
        assert message.text == "Skip collected"
        assert message.timestamp == now
        assert restored.jobs[0].messages[0].timestamp == now - timedelta(days=2)

    def test_sqlite_round_trip(self, sqlite_store, now):
        portal = Portal.load(sqlite_store, clock=lambda: now)
        portal.login("sarah@wmhi.co.uk", "pw")
        task = portal.add_task("Chase invoice", priority=TaskPriority.HIGH)
        restored = Portal.load(sqlite_store, clock=lambda: now)
        assert restored.tasks[0] == task
        assert restored.current_user.id == "u1"


class TestSession:
    def test_login_persists_session(self, portal):
        portal.login("mike@wmhi.co.uk", "pw")
        assert _reload(portal).current_user.id == "u2"

    def test_failed_login_raises(self, portal):
        with pytest.raises(AuthenticationError):
            portal.login("ghost@wmhi.co.uk", "pw")
        assert portal.current_user is None

    def test_sign_out_clears_session_and_selection(self, admin_portal):
        admin_portal.select_job("j1")
        admin_portal.sign_out()
        assert admin_portal.current_user is None
        assert admin_portal.selected_job is None
        assert admin_portal._store.get("wmhi_currentUser") is None
        assert _reload(admin_portal).current_user is None

    def test_session_prefers_live_user_record(self, admin_portal):
        admin_portal.update_member("u1", email="sarah.h@wmhi.co.uk")
        assert _reload(admin_portal).current_user.email == "sarah.h@wmhi.co.uk"

    def test_everything_declined_when_signed_out(self, portal):
        assert portal.add_job("A", "B") is None
        assert portal.add_task("x") is None
        assert portal.post_message("j1", "hi") is None
        assert portal.visible_jobs() == []
        assert portal.task_board() is None


# ---------------------------------------------------------------------------
# Jobs
# ---------------------------------------------------------------------------


class TestJobs:
    def test_add_job_goes_to_top_as_new(self, admin_portal, now):
        job = admin_portal.add_job("Ann Lee", "3 Elm Rd", type="Extension", value="9000")
        assert admin_portal.jobs[0] is job
        assert job.status == JobStatus.NEW_JOB
        assert job.value == 9000
        assert job.assigned_team == []
        assert job.id == str(int(now.timestamp() * 1000))

    def test_add_job_ids_unique_under_fixed_clock(self, admin_portal):
        a = admin_portal.add_job("A", "1 Road")
        b = admin_portal.add_job("B", "2 Road")
        assert a.id != b.id

    def test_add_job_requires_client_and_address(self, admin_portal):
        assert admin_portal.add_job("", "3 Elm Rd") is None
        assert len(admin_portal.jobs) == 5

    def test_any_status_change_allowed(self, admin_portal):
        admin_portal.set_job_status("j4", "New Job")
        assert admin_portal.jobs[3].status == JobStatus.NEW_JOB
        admin_portal.set_job_status("j4", JobStatus.COMPLETED)
        assert admin_portal.jobs[3].status == JobStatus.COMPLETED

    def test_update_job_rejects_unknown_field(self, admin_portal):
        assert admin_portal.update_job("j1", id="hijack") is None
        assert admin_portal.jobs[0].id == "j1"

    def test_assign_team_deduplicates(self, admin_portal):
        job = admin_portal.assign_team("j3", ["u3", "u5", "u3"])
        assert job.assigned_team == ["u3", "u5"]

    def test_team_member_cannot_touch_other_jobs(self, site_manager_portal):
        assert site_manager_portal.post_message("j4", "hello") is None
        assert site_manager_portal.select_job("j4") is None

    def test_post_message_and_photo(self, site_manager_portal):
        msg = site_manager_portal.post_message("j1", "Plaster booked")
        assert msg.sender_id == "u2"
        photo = site_manager_portal.upload_photo("j1", "wall.jpg")
        assert photo.text == "Uploaded photo: wall.jpg"
        assert site_manager_portal.jobs[0].messages[-2:] == [msg, photo]

    def test_note_goes_to_top_of_diary(self, site_manager_portal):
        note = site_manager_portal.add_note("j1", "Second fix started")
        assert site_manager_portal.jobs[0].site_notes[0] is note

    def test_documents_and_forms(self, admin_portal):
        admin_portal.add_document("j1", "architect_plans", "Roof.pdf")
        assert admin_portal.jobs[0].architect_plans[-1] == "Roof.pdf"
        admin_portal.remove_document("j1", "architect_plans", 0)
        assert admin_portal.jobs[0].architect_plans == ["Electrical_Layout.pdf", "Roof.pdf"]
        admin_portal.attach_form("j1", "liability_form", "liability.pdf")
        assert admin_portal.jobs[0].liability_form == "liability.pdf"
        assert admin_portal.attach_form("j1", "client_name", "x") is None

    def test_delete_job_admin_only_and_clears_selection(self, admin_portal):
        admin_portal.select_job("j2")
        assert admin_portal.delete_job("j5")
        assert admin_portal.selected_job is None
        assert all(j.id != "j5" for j in admin_portal.jobs)

    def test_non_admin_cannot_delete_job(self, site_manager_portal):
        assert not site_manager_portal.delete_job("j1")
        assert len(site_manager_portal.jobs) == 5

    def test_deleted_job_leaves_task_project_dangling(self, admin_portal):
        admin_portal.delete_job("j1")
        assert admin_portal.tasks[0].project_id == "j1"

    def test_unknown_job_type_declined(self, admin_portal):
        assert admin_portal.add_job("C", "A", type="Loft") is None
        assert len(admin_portal.jobs) == 5

    def test_unknown_job_status_declined(self, admin_portal):
        stored = admin_portal._store.get("wmhi_jobs")
        assert admin_portal.update_job("j1", status="Done") is None
        assert admin_portal.set_job_status("j1", "Done") is None
        assert admin_portal.jobs[0].status == JobStatus.IN_PROGRESS
        assert admin_portal._store.get("wmhi_jobs") == stored


# ---------------------------------------------------------------------------
# Tasks
# ---------------------------------------------------------------------------


class TestTasks:
    def test_self_task_defaults(self, admin_portal):
        task = admin_portal.add_task("Renew insurance")
        assert task.assigned_to == task.assigned_by == "u1"
        assert task.project_id is None
        assert task.due_date == date(2023, 11, 15)
        assert task.activity_log[0].type == ActivityType.CREATION
        assert admin_portal.tasks[0] is task

    def test_individual_task(self, admin_portal):
        task = admin_portal.add_task("Quote loft", mode=ASSIGN_INDIVIDUAL, assignee_id="u4",
                                     due_date="2023-11-20")
        assert task.assigned_to == "u4"
        assert task.due_date == date(2023, 11, 20)

    def test_project_task_requires_team_member_or_admin(self, site_manager_portal):
        portal = site_manager_portal
        assert portal.add_task("Fit sockets", mode=ASSIGN_PROJECT, assignee_id="u5", project_id="j1") is None
        assert portal.add_task("Fit sockets", mode=ASSIGN_PROJECT, assignee_id="u3", project_id="j1")
        assert portal.add_task("Approve spend", mode=ASSIGN_PROJECT, assignee_id="u1", project_id="j1")

    def test_project_task_unknown_job(self, admin_portal):
        assert admin_portal.add_task("x", mode=ASSIGN_PROJECT, assignee_id="u1", project_id="nope") is None

    def test_task_requires_title(self, admin_portal):
        assert admin_portal.add_task("   ") is None

    def test_blank_due_date_defaults_to_today(self, admin_portal):
        task = admin_portal.add_task("Renew insurance", due_date="")
        assert task.due_date == date(2023, 11, 15)

    def test_malformed_due_date_or_priority_declined(self, admin_portal):
        assert admin_portal.add_task("Renew insurance", due_date="tomorrow") is None
        assert admin_portal.add_task("Renew insurance", priority="Critical") is None
        assert len(admin_portal.tasks) == 3

    def test_edit_with_blank_due_date_keeps_date_and_logs_priority(self, admin_portal):
        task = admin_portal.tasks[0]
        due, before = task.due_date, len(task.activity_log)
        edit = admin_portal.edit_task("t1", priority="Urgent", due_date="")
        assert edit is not None
        assert task.priority == TaskPriority.URGENT
        assert task.due_date == due
        assert len(task.activity_log) == before + 1
        assert task.activity_log[0].type == ActivityType.PRIORITY_CHANGE
        assert _reload(admin_portal).tasks[0].priority == TaskPriority.URGENT

    def test_edit_with_bad_values_declined_without_changes(self, admin_portal):
        task = admin_portal.tasks[0]
        before = len(task.activity_log)
        assert admin_portal.edit_task("t1", priority="Urgent", due_date="soon") is None
        assert admin_portal.edit_task("t1", priority="Critical") is None
        assert task.priority == TaskPriority.HIGH
        assert len(task.activity_log) == before
        assert _reload(admin_portal).tasks[0].priority == TaskPriority.HIGH

    def test_task_on_deleted_job_stays_editable(self, admin_portal):
        task = admin_portal.add_task("Order oak", mode=ASSIGN_PROJECT, assignee_id="u2", project_id="j1")
        admin_portal.delete_job("j1")
        edit = admin_portal.edit_task(task.id, description="now with oak", priority="Low")
        assert edit is not None
        assert task.description == "now with oak"
        assert task.priority == TaskPriority.LOW
        assert task.project_id == "j1"

    def test_assignee_who_left_team_keeps_task_editable(self, admin_portal):
        admin_portal.assign_team("j2", [])
        assert admin_portal.edit_task("t3", description="Inspector moved to Wednesday")
        assert admin_portal.edit_task("t3", assigned_to="u3") is None

    def test_unknown_task_status_declined(self, admin_portal):
        assert admin_portal.set_task_status("t1", "Blocked") is None
        assert admin_portal.tasks[0].status == TaskStatus.PENDING

    def test_edit_priority_logs_one_entry_by_session_user(self, site_manager_portal):
        before = len(site_manager_portal.tasks[2].activity_log)
        edit = site_manager_portal.edit_task("t3", priority="Medium")
        task = site_manager_portal.tasks[2]
        assert len(edit.entries) == 1
        assert len(task.activity_log) == before + 1
        assert task.activity_log[0].type == ActivityType.PRIORITY_CHANGE
        assert task.activity_log[0].user_id == "u2"

    def test_edit_description_only_logs_nothing(self, admin_portal):
        before = len(admin_portal.tasks[0].activity_log)
        edit = admin_portal.edit_task("t1", description="Three skips")
        assert not edit.changed
        assert len(admin_portal.tasks[0].activity_log) == before

    def test_edit_declines_empty_title_and_outsider(self, admin_portal):
        assert admin_portal.edit_task("t1", title="") is None
        assert admin_portal.edit_task("t1", assigned_to="u6") is None
        assert admin_portal.tasks[0].assigned_to == "u1"

    def test_reassignment_logs_name(self, admin_portal):
        admin_portal.edit_task("t1", assigned_to="u3")
        assert admin_portal.tasks[0].activity_log[0].details == "Reassigned to Dave (Builder)"

    def test_overdue_task_completed_moves_bucket(self, admin_portal):
        task = admin_portal.add_task("Late invoice", priority=TaskPriority.HIGH,
                                     due_date=date(2023, 11, 14))
        assert task in admin_portal.task_board().groups.overdue

        admin_portal.toggle_task_status(task.id)
        board = admin_portal.task_board()
        assert task not in board.groups.overdue
        assert task in board.groups.completed
        assert task.activity_log[0].details == "Marked as Completed"

    def test_seed_board_for_admin(self, admin_portal):
        board = admin_portal.task_board()
        assert board.owner.id == "u1"
        assert [t.id for t in board.groups.upcoming] == ["t1", "t2"]
        assert [t.id for t in board.delegated] == ["t3"]

    def test_admin_views_other_board(self, admin_portal):
        board = admin_portal.task_board("u2")
        assert board.owner.id == "u2"
        assert [t.id for t in board.groups.tomorrow] == ["t3"]

    def test_non_admin_cannot_view_other_board(self, site_manager_portal):
        assert site_manager_portal.task_board("u1").owner.id == "u2"

    def test_board_filters(self, admin_portal):
        board = admin_portal.task_board(filters=TaskFilters(search="risk"))
        assert [t.id for t in board.groups.upcoming] == ["t2"]

    def test_set_status_comment_and_attachment(self, admin_portal):
        admin_portal.set_task_status("t1", TaskStatus.IN_PROGRESS)
        admin_portal.comment_on_task("t1", "Skips booked")
        admin_portal.upload_task_attachment("t1", "quote.pdf", "application/pdf", "blob:q")
        log = admin_portal.tasks[0].activity_log
        assert [e.type for e in log[:3]] == [
            ActivityType.UPLOAD, ActivityType.COMMENT, ActivityType.STATUS_CHANGE,
        ]
        assert _reload(admin_portal).tasks[0].attachments[0].name == "quote.pdf"

    def test_delete_task_rights(self, site_manager_portal):
        portal = site_manager_portal
        assert not portal.delete_task("t3")     # assigned by Sarah
        assert portal.delete_task("t1")         # assigned by Mike
        assert [t.id for t in portal.tasks] == ["t2", "t3"]

    def test_unknown_task_declined(self, admin_portal):
        assert admin_portal.toggle_task_status("t404") is None
        assert admin_portal.edit_task("t404", title="x") is None


# ---------------------------------------------------------------------------
# Members
# ---------------------------------------------------------------------------


class TestMembers:
    def test_add_member(self, admin_portal):
        user = admin_portal.add_member("Jo Bloggs", Role.SURVEYOR)
        assert user.email == "jo.bloggs@wmhi.co.uk"
        assert user.role == Role.SURVEYOR
        assert _reload(admin_portal).users[-1].id == user.id

    def test_non_admin_cannot_manage(self, site_manager_portal):
        assert site_manager_portal.add_member("Jo", Role.BUILDER) is None
        assert not site_manager_portal.remove_member("u3")
        assert not site_manager_portal.reset_password("u3", "new")

    def test_admin_cannot_remove_self(self, admin_portal):
        assert not admin_portal.remove_member("u1")

    def test_removed_member_leaves_dangling_references(self, admin_portal):
        assert admin_portal.remove_member("u3")
        job = next(j for j in admin_portal.jobs if j.id == "j1")
        assert "u3" in job.assigned_team
        assert job in admin_portal.visible_jobs()
        assert admin_portal.user_name("u3") == "Unknown"

    def test_reset_password(self, admin_portal):
        assert admin_portal.reset_password("u3", "hunter2")
        assert not admin_portal.reset_password("u3", "")


# ---------------------------------------------------------------------------
# Views
# ---------------------------------------------------------------------------


class TestViews:
    def test_builder_visibility(self, portal):
        portal.login("dave@wmhi.co.uk", "pw")
        assert [j.id for j in portal.visible_jobs()] == ["j1", "j4"]
        assert {item.job.id for item in portal.chat_feed()} == {"j1", "j4"}

    def test_dashboard_and_report(self, admin_portal):
        stats = admin_portal.dashboard()
        assert (stats.active, stats.new, stats.completed_this_month) == (2, 1, 1)
        report = admin_portal.completed_report()
        assert report.start == "2023-11-01"
        assert report.end == "2023-11-30"
        assert [j.id for j in report.jobs] == ["j4"]
        assert report.total_value == 18000

    def test_report_custom_range(self, admin_portal):
        admin_portal.update_job("j1", status=JobStatus.COMPLETED)
        report = admin_portal.completed_report("2023-11-01", "2023-11-30")
        assert report.count == 2
        assert report.total_value == 30500

    def test_search_on_invisible_job_is_empty(self, site_manager_portal):
        assert site_manager_portal.search_diary("j4", "cedar") == []
        assert len(site_manager_portal.search_chat("j1", "damp")) == 2

    def test_assignable_users(self, admin_portal):
        ids = [u.id for u in admin_portal.assignable_users(ASSIGN_PROJECT, "j2")]
        assert ids == ["u1", "u2"]
        assert admin_portal.assignable_users(ASSIGN_SELF) == []


# ---------------------------------------------------------------------------
# AI assistant
# ---------------------------------------------------------------------------


class TestAssistant:
    @pytest.mark.asyncio
    async def test_summarize_visible_job(self, site_manager_portal):
        with patch("siteportal.core.assistant.complete", AsyncMock(return_value="• ok")):
            assert await site_manager_portal.summarize_chat("j1") == "• ok"

    @pytest.mark.asyncio
    async def test_summarize_invisible_job_declined(self, site_manager_portal):
        mock = AsyncMock(return_value="• ok")
        with patch("siteportal.core.assistant.complete", mock):
            assert await site_manager_portal.summarize_chat("j4") is None
        mock.assert_not_called()

    @pytest.mark.asyncio
    async def test_summarize_failure_string(self, admin_portal):
        with patch("siteportal.core.assistant.complete", AsyncMock(side_effect=RuntimeError("down"))):
            assert await admin_portal.summarize_chat("j1") == SUMMARY_ERROR

    @pytest.mark.asyncio
    async def test_draft_update(self, admin_portal):
        with patch("siteportal.core.assistant.complete", AsyncMock(return_value="Hi!")):
            assert await admin_portal.draft_update("j4") == "Hi!"

