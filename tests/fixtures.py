"""Shared helpers for the test suites."""

import gc
import os
import shutil
import tempfile
import unittest
from datetime import datetime, timedelta, timezone

from agendabot.services.database_service import DatabaseService


class FakeClock:
    """Controllable replacement for utc_now."""

    def __init__(self, start: datetime = None):
        self.now = start or datetime(2025, 3, 3, 9, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, minutes: float = 0, seconds: float = 0) -> None:
        self.now += timedelta(minutes=minutes, seconds=seconds)


class DatabaseTestCase(unittest.TestCase):
    """Base class giving each test a fresh database file and a fake clock."""

    ROOM = "room-abc"

    def setUp(self):
        """Create a temporary database for each test."""
        self.tmpdir = tempfile.mkdtemp()
        self.db_path = os.path.join(self.tmpdir, "test.db")
        self.db = DatabaseService(self.db_path)
        self.clock = FakeClock()

    def tearDown(self):
        """Clean up temporary files (ignore Windows file locking errors)."""
        gc.collect()  # Help release SQLite connections
        shutil.rmtree(self.tmpdir, ignore_errors=True)

    def positions(self, room_id: str = None):
        return [item.position for item in self.db.get_agenda_items(room_id or self.ROOM)]

    def titles(self, room_id: str = None):
        return [item.title for item in self.db.get_agenda_items(room_id or self.ROOM)]

    def active_items(self, room_id: str = None):
        return [item for item in self.db.get_agenda_items(room_id or self.ROOM) if item.is_active]
