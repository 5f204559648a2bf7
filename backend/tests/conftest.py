import asyncio
from datetime import datetime, timedelta
from typing import Dict, Optional

import pytest
from mongomock_motor import AsyncMongoMockClient

from clinicqueue.client.cache import LocalQueueCache
from clinicqueue.client.coordinator import QueueCoordinator
from clinicqueue.client.errors import ApiError
from clinicqueue.config import Settings
from clinicqueue.database import Database
from clinicqueue.models.queue import QueueEntry, QueueListing, QueueStatus
from clinicqueue.ordering import compute_stats


class FakeQueueApi:
    """In-memory queue API.

    ``fail`` holds method names that raise ``ApiError`` and ``crash`` those
    that raise an unexpected error; ``gates`` maps a method name to an event
    the call waits on before answering.
    """

    def __init__(self):
        self.entries: Dict[str, QueueEntry] = {}
        self.ticket = 0
        self.source: Optional[str] = "live"
        self.calls = []
        self.fail = set()
        self.crash = set()
        self.gates: Dict[str, asyncio.Event] = {}
        self.reorders = []

    def seed(self, entry_id, ticket, status=QueueStatus.WAITING, patient=None, appointment=None):
        entry = QueueEntry(
            _id=entry_id,
            ticket_number=ticket,
            patient_id=patient or {"_id": f"p-{entry_id}", "name": f"Patient {entry_id}", "phone": "0550000000"},
            appointment_id=appointment,
            is_walk_in=appointment is None,
            status=status,
            check_in_time=datetime.utcnow() - timedelta(minutes=ticket)
        )
        self.entries[entry_id] = entry
        self.ticket = max(self.ticket, ticket)
        return entry

    async def _hook(self, name):
        self.calls.append(name)
        gate = self.gates.get(name)
        if gate is not None:
            await gate.wait()
        if name in self.fail:
            raise ApiError(f"{name} failed")
        if name in self.crash:
            raise RuntimeError(f"{name} crashed")

    async def list_entries(self):
        entries, source = list(self.entries.values()), self.source
        await self._hook("list_entries")
        return QueueListing(source=source, entries=entries)

    async def get_stats(self):
        await self._hook("get_stats")
        return compute_stats(self.entries.values(), self.ticket + 1)

    async def add_entry(self, data):
        await self._hook("add_entry")
        self.ticket += 1
        entry = QueueEntry(
            _id=f"e{self.ticket}",
            ticket_number=self.ticket,
            patient_id=data.patient_id,
            appointment_id=data.appointment_id,
            is_walk_in=data.is_walk_in,
            check_in_time=datetime.utcnow(),
            notes=data.notes
        )
        self.entries[entry.id] = entry
        return entry

    async def update_entry(self, entry_id, data):
        await self._hook("update_entry")
        entry = self.entries[entry_id].model_copy(update={"status": data.status})
        self.entries[entry_id] = entry
        return entry

    async def remove_entry(self, entry_id):
        await self._hook("remove_entry")
        self.entries.pop(entry_id, None)

    async def reorder(self, order):
        await self._hook("reorder")
        self.reorders.append([(item.id, item.position) for item in order])
        for item in order:
            self.entries[item.id] = self.entries[item.id].model_copy(update={"queue_position": item.position})

    async def clear_completed(self):
        await self._hook("clear_completed")
        self.entries = {
            k: e for k, e in self.entries.items() if e.status != QueueStatus.COMPLETED
        }


async def settle(rounds: int = 10):
    """Let scheduled tasks run up to their next await."""
    for _ in range(rounds):
        await asyncio.sleep(0)


@pytest.fixture
def settings():
    return Settings(
        POLL_INTERVAL_SECONDS=0.01,
        RECONCILE_DELAY_SECONDS=0,
        QUEUE_CACHE_FILE=""
    )


@pytest.fixture
def api():
    return FakeQueueApi()


@pytest.fixture
def cache():
    return LocalQueueCache()


@pytest.fixture
async def coordinator(api, cache, settings):
    coordinator = QueueCoordinator(api, cache=cache, settings=settings)
    yield coordinator
    await coordinator.stop()


@pytest.fixture
def mongo():
    Database.db = AsyncMongoMockClient()["clinicqueue_test"]
    yield Database.db
    Database.db = None
