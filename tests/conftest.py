"""Shared test fixtures and configuration.

Sets up fake environment variables before any siteportal import, and
provides stores, a fixed clock and a seeded portal.
"""

import os

# Patch env vars BEFORE any siteportal imports
os.environ.setdefault("LLM_API_KEY", "fake-llm-key-for-tests")
os.environ.setdefault("LLM_PROVIDER", "gemini")
os.environ.setdefault("DATABASE_PATH", ":memory:")
os.environ.setdefault("STORAGE_PREFIX", "wmhi_")
os.environ["TIMEZONE"] = "UTC"

from datetime import date, datetime, timezone

import pytest

FIXED_NOW = datetime(2023, 11, 15, 10, 0, tzinfo=timezone.utc)
FIXED_TODAY = date(2023, 11, 15)


@pytest.fixture
def now():
    return FIXED_NOW


@pytest.fixture
def today():
    return FIXED_TODAY


@pytest.fixture
def memory_store():
    from siteportal.adapters.memory_store import MemoryStore
    return MemoryStore()


@pytest.fixture
def sqlite_store(tmp_path):
    """Return a SQLiteStore backed by a temp file."""
    from siteportal.adapters.sqlite_store import SQLiteStore
    return SQLiteStore(db_path=str(tmp_path / "test_portal.db"))


@pytest.fixture
def portal(memory_store):
    """A seeded portal with nobody signed in."""
    from siteportal.core.portal import Portal
    return Portal.load(memory_store, clock=lambda: FIXED_NOW)


@pytest.fixture
def admin_portal(portal):
    """Seeded portal with Sarah (Admin, u1) signed in."""
    portal.login("sarah@wmhi.co.uk", "secret")
    return portal


@pytest.fixture
def site_manager_portal(portal):
    """Seeded portal with Mike (Site Manager, u2) signed in."""
    portal.login("mike@wmhi.co.uk", "secret")
    return portal
