"""
SitePortal — Built-in seed dataset.

Loaded on first run for any collection that has nothing stored yet.
Timestamps are relative to ``now`` so the demo data always looks recent:
one job finished today, tasks due tomorrow and later this week.
"""

from __future__ import annotations

from datetime import datetime, timedelta

from siteportal.data.models import (
    ActivityType,
    Job,
    JobStatus,
    JobType,
    Message,
    MessageType,
    Note,
    Role,
    Task,
    TaskActivity,
    TaskPriority,
    TaskStatus,
    User,
)

_DAY = timedelta(days=1)
_HOUR = timedelta(hours=1)


def seed_users() -> list[User]:
    return [
        User("u1", "Sarah (Office)", "sarah@wmhi.co.uk", Role.ADMIN, "https://i.pravatar.cc/150?u=sarah"),
        User("u2", "Mike (Site Mgr)", "mike@wmhi.co.uk", Role.SITE_MANAGER, "https://i.pravatar.cc/150?u=mike"),
        User("u3", "Dave (Builder)", "dave@wmhi.co.uk", Role.BUILDER, "https://i.pravatar.cc/150?u=dave"),
        User("u4", "Tom (Surveyor)", "tom@wmhi.co.uk", Role.SURVEYOR, "https://i.pravatar.cc/150?u=tom"),
        User("u5", "Steve (Sparks)", "steve@wmhi.co.uk", Role.ELECTRICIAN, "https://i.pravatar.cc/150?u=steve"),
        User("u6", "Pete (Plumber)", "pete@wmhi.co.uk", Role.PLUMBER, "https://i.pravatar.cc/150?u=pete"),
    ]


def seed_jobs(now: datetime) -> list[Job]:
    today = now.date()
    return [
        Job(
            id="j1",
            client_name="Mr. & Mrs. Thompson",
            client_phone="07700 900123",
            client_email="thompson@example.com",
            address="14 Oak Avenue, Solihull",
            type=JobType.GARAGE_CONVERSION,
            status=JobStatus.IN_PROGRESS,
            current_stage="First Fix",
            value=12500,
            start_date="2023-10-15",
            finish_date="2023-11-20",
            assigned_team=["u2", "u3"],
            project_manager="Mike (Site Mgr)",
            builder="Dave (Builder)",
            electrician="Steve (Sparks)",
            plumber="Pete (Plumber)",
            architect="PlanRight Design",
            architect_plans=["GroundFloor_v2.pdf", "Electrical_Layout.pdf"],
            structural_calculations=["Steel_Beam_Calcs.pdf"],
            building_control_ref="BIRM-23-445",
            site_notes=[
                Note("n1", "u2", "Day 12: First fix electrics mostly done. Waiting on inspector.", now - _DAY),
            ],
            agreed_extras="Extra double socket in utility room (£150).",
            description="Single garage conversion to home office with utility room.",
            next_action="First fix electrics inspection",
            gallery_images=[
                "https://images.unsplash.com/photo-1503387762-592deb58ef4e?auto=format&fit=crop&q=80&w=300&h=200",
                "https://images.unsplash.com/photo-1541888946425-d81bb19240f5?auto=format&fit=crop&q=80&w=300&h=200",
            ],
            messages=[
                Message("m1", "u1", "Job started correctly? Client asked about skip placement.", now - 2 * _DAY),
                Message("m2", "u2", "All good. Skip is on the drive. Strip out complete.", now - 1.8 * _DAY),
                Message("m3", "u2", "Found some damp in the rear wall, taking a photo now.", now - _HOUR),
                Message("m4", "u2", "Need to order extra damp proof membrane.", now - timedelta(seconds=3500)),
            ],
        ),
        Job(
            id="j2",
            client_name="Dr. Arshad",
            client_phone="07700 900456",
            client_email="arshad@example.com",
            address="55 Kings Heath Rd, Birmingham",
            type=JobType.EXTENSION,
            status=JobStatus.SCHEDULED,
            current_stage="Start Date Agreed",
            value=45000,
            start_date="2023-11-01",
            assigned_team=["u2"],
            project_manager="Mike (Site Mgr)",
            architect="Urban Extensions Ltd",
            architect_plans=["Full_Set_A1.pdf"],
            description="Rear single-storey extension with bi-fold doors.",
            next_action="Confirm brick match",
            messages=[
                Message("m1", "u1", "Planning permission finally approved! Docs uploaded.", now - 5 * _DAY, MessageType.SYSTEM),
                Message("m2", "u1", "Mike, can you check the brick samples on Monday?", now - 4 * _DAY),
            ],
        ),
        Job(
            id="j3",
            client_name="Helen Smith",
            client_phone="07700 900789",
            client_email="h.smith@example.com",
            address="88 High St, Sutton Coldfield",
            type=JobType.RENOVATION,
            status=JobStatus.NEW_JOB,
            value=22000,
            description="Full kitchen renovation and knock-through.",
            next_action="Book initial survey",
        ),
        Job(
            id="j4",
            client_name="James West",
            client_phone="07700 900321",
            address="22b Warwick Rd, Coventry",
            type=JobType.GARDEN_ROOM,
            status=JobStatus.COMPLETED,
            current_stage="Complete",
            value=18000,
            start_date="2023-09-01",
            # Finished today so it shows in the current month's dashboard figures
            finish_date=today.isoformat(),
            assigned_team=["u3"],
            builder="Dave (Builder)",
            description="Insulated garden room 4x3m.",
            next_action="Final invoice pending",
            gallery_images=[
                "https://images.unsplash.com/photo-1494526585095-c41746248156?auto=format&fit=crop&q=80&w=300&h=200",
            ],
            site_notes=[
                Note("n1", "u3", "Client extremely happy with the cedar cladding finish.", now - 10 * _DAY),
            ],
            messages=[
                Message("m1", "u3", "Keys handed over. Customer happy.", now - 10 * _DAY),
            ],
        ),
        Job(
            id="j5",
            client_name="Cancelled Client",
            client_phone="07700 000000",
            address="99 Null Avenue, Dudley",
            type=JobType.RENOVATION,
            status=JobStatus.CANCELLED,
            value=5000,
            description="Cancelled due to budget constraints.",
        ),
    ]


def seed_tasks(now: datetime) -> list[Task]:
    today = now.date()
    return [
        Task(
            id="t1",
            title="Order Skips",
            description="Need two 8-yard skips for the Solihull job.",
            assigned_to="u1",
            assigned_by="u2",
            project_id="j1",
            status=TaskStatus.PENDING,
            priority=TaskPriority.HIGH,
            due_date=today + 2 * _DAY,
            created_at=now,
            activity_log=[
                TaskActivity("al1", "u2", ActivityType.CREATION, "Task created", now - _DAY),
            ],
        ),
        Task(
            id="t2",
            title="Update Risk Assessment",
            description="Annual review of site safety docs.",
            assigned_to="u1",
            assigned_by="u1",
            status=TaskStatus.IN_PROGRESS,
            priority=TaskPriority.MEDIUM,
            due_date=today + 5 * _DAY,
            created_at=now,
            activity_log=[
                TaskActivity("al2", "u1", ActivityType.STATUS_CHANGE, "Changed status to In Progress", now - _DAY),
                TaskActivity("al1", "u1", ActivityType.CREATION, "Task created", now - 2 * _DAY),
            ],
        ),
        Task(
            id="t3",
            title="Check Foundations",
            description="Inspector coming Tuesday at 10am.",
            assigned_to="u2",
            assigned_by="u1",
            project_id="j2",
            status=TaskStatus.PENDING,
            priority=TaskPriority.URGENT,
            due_date=today + _DAY,
            created_at=now,
            activity_log=[
                TaskActivity("al1", "u1", ActivityType.CREATION, "Task created", now - 12 * _HOUR),
            ],
        ),
    ]
