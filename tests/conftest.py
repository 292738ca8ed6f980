"""Test fixtures for memsync-cli."""

import os
import threading
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Callable, Iterator, Optional

import pytest

from memsync_cli.db import reset_database
from memsync_cli.errors import RemoteStoreError
from memsync_cli.manager import MemoryManager
from memsync_cli.models import Memory
from memsync_cli.remote import InMemoryRemoteStore, RemoteRecord
from memsync_cli.slots import MemorySlot


T0 = datetime(2025, 6, 29, 10, 0, tzinfo=timezone.utc)


class FakeClock:
    """Clock that moves one second forward every time it is read."""

    def __init__(self, start: datetime = T0, step: timedelta = timedelta(seconds=1)) -> None:
        self.now = start
        self.step = step
        self._lock = threading.Lock()

    def __call__(self) -> datetime:
        with self._lock:
            self.now += self.step
            return self.now

    def advance(self, seconds: float) -> None:
        with self._lock:
            self.now += timedelta(seconds=seconds)


class FailingRemoteStore:
    """Remote store whose every call fails."""

    def __init__(self) -> None:
        self.calls = 0

    def _fail(self, *args: object) -> None:
        self.calls += 1
        raise RemoteStoreError("remote unavailable")

    upsert = touch = delete = delete_all_for = _fail

    def fetch_all_for(self, owner_id: str) -> list[RemoteRecord]:
        self._fail()
        return []


class BlockingRemoteStore(InMemoryRemoteStore):
    """In-memory remote store whose calls wait until ``release`` is set."""

    def __init__(self) -> None:
        super().__init__()
        self.release = threading.Event()

    def _block(self) -> None:
        self.release.wait(timeout=10)

    def upsert(self, record: Memory) -> None:
        self._block()
        super().upsert(record)

    def touch(self, record_id: str, owner_id: str, at: datetime) -> None:
        self._block()
        super().touch(record_id, owner_id, at)

    def fetch_all_for(self, owner_id: str) -> list[RemoteRecord]:
        self._block()
        return super().fetch_all_for(owner_id)

    def delete(self, record_id: str, owner_id: str) -> None:
        self._block()
        super().delete(record_id, owner_id)

    def delete_all_for(self, owner_id: str) -> None:
        self._block()
        super().delete_all_for(owner_id)


@pytest.fixture(autouse=True)
def clean_env() -> Iterator[None]:
    """Keep the developer's MEMSYNC_* settings out of the tests."""
    saved = {k: v for k, v in os.environ.items() if k.startswith("MEMSYNC_")}
    for key in saved:
        del os.environ[key]
    yield
    reset_database()
    for key in [k for k in os.environ if k.startswith("MEMSYNC_")]:
        del os.environ[key]
    os.environ.update(saved)


@pytest.fixture
def temp_db_path(tmp_path: Path) -> str:
    """Return just the path string for --db flag testing."""
    db_path = tmp_path / "test_memory.db"
    return str(db_path)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def remote() -> InMemoryRemoteStore:
    return InMemoryRemoteStore()


@pytest.fixture
def make_manager(clock: FakeClock) -> Iterator[Callable[..., MemoryManager]]:
    """Build managers on in-memory slots; all of them are closed after the test."""
    managers: list[MemoryManager] = []

    def factory(
        remote: Optional[object] = None,
        actor: Optional[str] = None,
        slot: Optional[MemorySlot] = None,
        **sync_options: object,
    ) -> MemoryManager:
        sync_options.setdefault("pull_interval", 0.0)
        manager = MemoryManager.create(
            slot if slot is not None else MemorySlot(),
            remote,
            actor=actor,
            clock=clock,
            **sync_options,
        )
        managers.append(manager)
        return manager

    yield factory

    for manager in managers:
        manager.close(wait=False)


def make_memory(
    memory_id: str = "memory_1_abc",
    owner_id: str = "local",
    touched: Optional[datetime] = None,
    **fields: object,
) -> Memory:
    """Build a Memory with sensible defaults for tests."""
    fields.setdefault("source_ref", "https://github.com/acme/widgets")
    fields.setdefault("display_name", "widgets")
    return Memory(
        id=memory_id,
        owner_id=owner_id,
        created_at=T0,
        last_touched_at=touched or T0,
        **fields,
    )
