"""In-process store of Memory records, persisted wholesale to a slot.

Every mutation is applied to the in-memory map and then persisted before the
call returns. A failed persist is logged and swallowed: the in-memory state
stays authoritative for the rest of the process.
"""

import json
import threading
from typing import Callable, Iterable, Optional

from loguru import logger
from pydantic import TypeAdapter, ValidationError

from .models import Memory
from .slots import PersistenceSlot


STORE_FORMAT_VERSION = 1

_records_adapter = TypeAdapter(list[Memory])


class LocalStore:
    """Keyed collection of Memory records behind a single mutation lock.

    Records are copied on the way in and on the way out, so callers never share
    a live object with the store and a concurrent reader never sees a record
    half-way through a change.
    """

    def __init__(self, slot: PersistenceSlot) -> None:
        self._slot = slot
        self._records: dict[str, Memory] = {}
        self._lock = threading.RLock()
        self.last_persist_error: Optional[Exception] = None

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)

    def __contains__(self, record_id: object) -> bool:
        with self._lock:
            return record_id in self._records

    def put(self, record: Memory) -> None:
        """Insert or fully replace the record with ``record.id``."""
        with self._lock:
            self._records[record.id] = record.model_copy(deep=True)
            self._persist_locked()

    def get(self, record_id: str) -> Optional[Memory]:
        with self._lock:
            record = self._records.get(record_id)
            return record.model_copy(deep=True) if record is not None else None

    def list_all(self) -> list[Memory]:
        """Snapshot of every record. No particular order."""
        with self._lock:
            return [record.model_copy(deep=True) for record in self._records.values()]

    def remove(self, record_id: str) -> bool:
        """Remove one record. Returns False if it was not there."""
        with self._lock:
            if self._records.pop(record_id, None) is None:
                return False
            self._persist_locked()
            return True

    def remove_all_where(self, predicate: Callable[[Memory], bool]) -> list[str]:
        """Remove every record matching ``predicate``. Returns the removed ids."""
        with self._lock:
            doomed = [rid for rid, record in self._records.items() if predicate(record)]
            for rid in doomed:
                del self._records[rid]
            if doomed:
                self._persist_locked()
            return doomed

    def update(self, record_id: str, mutator: Callable[[Memory], None]) -> Optional[Memory]:
        """Atomically apply ``mutator`` to a copy of the record and store it.

        Returns:
            A copy of the updated record, or None if the id is absent
        """
        with self._lock:
            current = self._records.get(record_id)
            if current is None:
                return None
            updated = current.model_copy(deep=True)
            mutator(updated)
            self._records[record_id] = updated
            self._persist_locked()
            return updated.model_copy(deep=True)

    def reconcile(
        self,
        incoming: Iterable[Memory],
        accept: Callable[[Optional[Memory], Memory], bool],
    ) -> tuple[list[str], list[str]]:
        """Conditionally insert or replace a batch of records.

        ``accept(local, candidate)`` is evaluated under the lock for each
        candidate, with ``local`` None when the id is unknown. Accepted
        candidates replace the local record wholesale. The batch is persisted
        once.

        Returns:
            (inserted ids, replaced ids)
        """
        inserted: list[str] = []
        replaced: list[str] = []
        with self._lock:
            for candidate in incoming:
                local = self._records.get(candidate.id)
                if not accept(local, candidate):
                    continue
                self._records[candidate.id] = candidate.model_copy(deep=True)
                (inserted if local is None else replaced).append(candidate.id)
            if inserted or replaced:
                self._persist_locked()
        return inserted, replaced

    def serialize(self) -> bytes:
        with self._lock:
            records = _records_adapter.dump_python(list(self._records.values()), mode="json")
        return json.dumps({"version": STORE_FORMAT_VERSION, "records": records}).encode("utf-8")

    def persist(self) -> bool:
        """Write the whole store to the slot. Failures are logged, not raised."""
        with self._lock:
            return self._persist_locked()

    def _persist_locked(self) -> bool:
        try:
            self._slot.write_blob(self.serialize())
        except Exception as e:
            self.last_persist_error = e
            logger.warning(f"Local persist failed ({len(self._records)} records kept in memory): {e}")
            return False
        self.last_persist_error = None
        return True

    def restore(self) -> int:
        """Load the store from the slot, replacing the in-memory map.

        Unreadable or corrupt data is logged and leaves the store empty.

        Returns:
            Number of records loaded
        """
        try:
            blob = self._slot.read_blob()
        except Exception as e:
            logger.error(f"Failed to read local store: {e}")
            blob = None

        records: list[Memory] = []
        if blob:
            try:
                data = json.loads(blob.decode("utf-8"))
                records = _records_adapter.validate_python(data.get("records", []))
            except (UnicodeDecodeError, ValueError, AttributeError, ValidationError) as e:
                logger.error(f"Local store is corrupt, starting empty: {e}")
                records = []

        with self._lock:
            self._records = {record.id: record for record in records}
            count = len(self._records)
        logger.debug(f"Restored {count} records from local store")
        return count
