"""Shared fixtures for tests."""

from __future__ import annotations

import os
import tempfile
from datetime import date
from pathlib import Path
from typing import Generator

import pytest

# Set up test database before importing storage
_test_db_fd, _test_db_path = tempfile.mkstemp(suffix=".db")
os.environ["DAILYPROD_DB"] = _test_db_path


@pytest.fixture(scope="session", autouse=True)
def setup_test_db() -> Generator[Path, None, None]:
    """Set up a test database for the entire test session."""
    import storage

    # Reinitialise storage module with test db path
    storage.DB_PATH = Path(_test_db_path)
    storage.init_db()

    yield Path(_test_db_path)

    # Cleanup
    os.close(_test_db_fd)
    os.unlink(_test_db_path)


class FakeGateway:
    """In-memory stand-in for SyncGateway that records every call."""

    def __init__(self, roster=None, entries=None, current_user=None):
        self.roster = list(roster or [])
        self.entries = list(entries or [])
        self.current_user = current_user
        self.calls: list[tuple] = []
        self.fail_roster = False
        self.fail_entries = False
        self.fail_mutations = False
        # Optional hook run inside a mutation, before it succeeds or fails
        self.during_mutation = None

    async def fetch_roster(self):
        from gateway import FetchFailure

        self.calls.append(("fetch_roster",))
        if self.fail_roster:
            raise FetchFailure("roster down")
        return list(self.roster)

    async def fetch_entries(self, month, year):
        from gateway import FetchFailure

        self.calls.append(("fetch_entries", month, year))
        if self.fail_entries:
            raise FetchFailure("entries down")
        return list(self.entries)

    async def fetch_current_user(self):
        from gateway import FetchFailure

        if self.current_user is None:
            raise FetchFailure("no user")
        return self.current_user

    async def _mutate(self, *call):
        from gateway import MutationFailure

        self.calls.append(call)
        if self.during_mutation:
            self.during_mutation()
        if self.fail_mutations:
            raise MutationFailure(f"{call[0]} rejected")

    async def patch_cell(self, user_id, day, value):
        await self._mutate("patch_cell", user_id, day, value)

    async def patch_status(self, user_id, day, label):
        await self._mutate("patch_status", user_id, day, label)

    async def delete_status(self, user_id, day):
        await self._mutate("delete_status", user_id, day)

    async def delete_entry(self, user_id, day):
        await self._mutate("delete_entry", user_id, day)

    def mutations(self) -> list[tuple]:
        return [c for c in self.calls if not c[0].startswith("fetch_")]


@pytest.fixture
def roster():
    """Two eligible team members."""
    from models import User

    return [
        User(id=1, name="Alice", email="alice@example.com", role="junior"),
        User(id=2, name="Bob", email="bob@example.com", role="leader"),
    ]


@pytest.fixture
def sample_entry():
    """An auto-mapped day for Alice."""
    from models import RawEntry

    return RawEntry(
        user_id=1,
        date=date(2024, 2, 5),
        accepted=3,
        dismissed=2,
        mapping_type="auto",
    )


@pytest.fixture
def leader():
    from models import User

    return User(id=2, name="Bob", role="leader")


@pytest.fixture
def fake_gateway(roster, sample_entry) -> FakeGateway:
    return FakeGateway(roster=roster, entries=[sample_entry])


@pytest.fixture
def sample_config():
    """Create a sample Config for testing."""
    from models import Config

    return Config(
        api_base_url="https://prod.example.com",
        request_timeout=10.0,
        last_month=2,
        last_year=2024,
    )


@pytest.fixture
def gateway_factory():
    """Build a FakeGateway with custom data."""
    return FakeGateway
