"""Remote store interface and an in-memory implementation."""

import threading
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Optional, Protocol

from .errors import RemoteStoreError
from .models import Memory, as_utc


@dataclass(frozen=True)
class RemoteRecord:
    """A record as held by the remote store.

    ``updated_at`` is the remote side's last-write instant, the value the merge
    compares against the local ``last_touched_at``.
    """

    memory: Memory
    updated_at: datetime


class RemoteStore(Protocol):
    def upsert(self, record: Memory) -> None:
        """Store the full current state of ``record``."""
        ...

    def touch(self, record_id: str, owner_id: str, at: datetime) -> None:
        """Advance the remote last-touched instant of one record."""
        ...

    def fetch_all_for(self, owner_id: str) -> list[RemoteRecord]:
        ...

    def delete(self, record_id: str, owner_id: str) -> None:
        """Delete one record, only if it belongs to ``owner_id``."""
        ...

    def delete_all_for(self, owner_id: str) -> None:
        ...


class InMemoryRemoteStore:
    """Thread-safe RemoteStore kept in process memory.

    Args:
        clock: Source of ``updated_at`` for writes. When omitted, a write is
            stamped with the record's own ``last_touched_at``.
    """

    def __init__(self, clock: Optional[Callable[[], datetime]] = None) -> None:
        self._clock = clock
        self._records: dict[str, RemoteRecord] = {}
        self._lock = threading.Lock()

    def _stamp(self, fallback: datetime) -> datetime:
        return as_utc(self._clock()) if self._clock is not None else fallback

    def seed(self, record: Memory, updated_at: Optional[datetime] = None) -> None:
        """Place a record directly, as if another device had written it."""
        with self._lock:
            self._records[record.id] = RemoteRecord(
                memory=record.model_copy(deep=True),
                updated_at=as_utc(updated_at) if updated_at else record.touched_at,
            )

    def get(self, record_id: str) -> Optional[RemoteRecord]:
        with self._lock:
            return self._records.get(record_id)

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)

    def upsert(self, record: Memory) -> None:
        with self._lock:
            self._records[record.id] = RemoteRecord(
                memory=record.model_copy(deep=True),
                updated_at=self._stamp(record.touched_at),
            )

    def touch(self, record_id: str, owner_id: str, at: datetime) -> None:
        with self._lock:
            current = self._records.get(record_id)
            if current is None or current.memory.owner_id != owner_id:
                raise RemoteStoreError(f"no remote record {record_id} for {owner_id}")
            memory = current.memory.model_copy(deep=True)
            memory.touch(at)
            self._records[record_id] = RemoteRecord(memory=memory, updated_at=self._stamp(memory.touched_at))

    def fetch_all_for(self, owner_id: str) -> list[RemoteRecord]:
        with self._lock:
            return [
                RemoteRecord(memory=r.memory.model_copy(deep=True), updated_at=r.updated_at)
                for r in self._records.values()
                if r.memory.owner_id == owner_id
            ]

    def delete(self, record_id: str, owner_id: str) -> None:
        with self._lock:
            current = self._records.get(record_id)
            if current is not None and current.memory.owner_id == owner_id:
                del self._records[record_id]

    def delete_all_for(self, owner_id: str) -> None:
        with self._lock:
            for rid in [rid for rid, r in self._records.items() if r.memory.owner_id == owner_id]:
                del self._records[rid]
