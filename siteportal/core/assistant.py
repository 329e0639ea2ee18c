"""
SitePortal — AI job assistant.

Two requests to the text-generation provider: a bullet-point status
summary of a job's internal chat, and a short client-facing SMS draft
built from recent site diary notes.

Neither function raises. Provider or configuration failures come back as
fixed, human-readable error strings the UI can show as-is.
"""

from __future__ import annotations

import logging

from siteportal.config import settings
from siteportal.core import permissions
from siteportal.core.llm import complete
from siteportal.data.models import Job, User, find_user

logger = logging.getLogger(__name__)

SUMMARY_ERROR = "Error generating summary. Please check API configuration."
SUMMARY_EMPTY = "Could not generate summary."
DRAFT_ERROR = "Error generating draft."
DRAFT_EMPTY = "Could not generate draft."
NO_RECENT_NOTES = "No recent site notes recorded."

_SUMMARY_SYSTEM = """\
You are a construction project assistant for {company}.
You read internal chat transcripts between the office and the site team.
"""

_SUMMARY_PROMPT = """\
Read the following internal chat transcript for a job at {address}.

Transcript:
{transcript}

Provide a concise 3-bullet point summary of the current status and any issues.
Format as a plain text list using "• " for bullets.
"""

_DRAFT_SYSTEM = """\
You are an office manager for {company}.
You write short, professional SMS updates to clients.
"""

_DRAFT_PROMPT = """\
Draft a professional, friendly SMS update to the client ({client}).

Context: The job is a {job_type} at {address}.
Internal Site Notes: "{notes}"

The tone should be reassuring and professional. Keep it under 160 characters if possible, or very short.
Do not include placeholders like [Your Name]. Sign off as "{signoff}".
"""


def _sender_label(users: list[User], sender_id: str) -> str:
    """Admins speak for the office; everyone else is the site team."""
    sender = find_user(users, sender_id)
    return "Office" if permissions.is_admin(sender) else "Site Team"


def build_transcript(job: Job, users: list[User]) -> str:
    return "\n".join(
        f"{_sender_label(users, m.sender_id)}: {m.text}" for m in job.messages
    )


def recent_notes_text(job: Job, limit: int = 5) -> str:
    """The newest diary notes, one per line."""
    recent = job.site_notes[:limit]
    if not recent:
        return NO_RECENT_NOTES
    return "\n".join(n.content for n in recent)


async def summarize_job_chat(job: Job, users: list[User]) -> str:
    """Return a short bullet summary of a job's chat, or a fixed error string."""
    try:
        text = await complete(
            system=_SUMMARY_SYSTEM.format(company=settings.COMPANY_NAME),
            user_message=_SUMMARY_PROMPT.format(
                address=job.address,
                transcript=build_transcript(job, users),
            ),
            max_tokens=400,
        )
    except Exception as exc:
        logger.error("Chat summary failed for job %s: %s", job.id, exc)
        return SUMMARY_ERROR

    text = (text or "").strip()
    if not text:
        return SUMMARY_EMPTY
    logger.info("Chat summary generated for job %s (%d chars)", job.id, len(text))
    return text


async def draft_client_update(job: Job, notes: str | None = None) -> str:
    """Return a client SMS draft for a job, or a fixed error string.

    ``notes`` defaults to the job's five most recent diary entries.
    """
    if notes is None:
        notes = recent_notes_text(job)

    try:
        text = await complete(
            system=_DRAFT_SYSTEM.format(company=settings.COMPANY_NAME),
            user_message=_DRAFT_PROMPT.format(
                client=job.client_name,
                job_type=job.type.value,
                address=job.address,
                notes=notes,
                signoff=settings.COMPANY_SIGNOFF,
            ),
            max_tokens=200,
        )
    except Exception as exc:
        logger.error("Client update draft failed for job %s: %s", job.id, exc)
        return DRAFT_ERROR

    text = (text or "").strip()
    if not text:
        return DRAFT_EMPTY
    logger.info("Client update drafted for job %s", job.id)
    return text
