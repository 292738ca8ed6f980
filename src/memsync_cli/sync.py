"""Background reconciliation between the Local Store and the remote store.

Local writes never wait on the network. Each mutation hands a task to a
small worker pool owned by the engine; the task snapshots what it needs,
talks to the remote store without holding the store lock, and re-enters the
store only briefly to apply results.

Merge rule (pull): a remote record replaces the local one wholesale when its
``updated_at`` is strictly newer than the local ``last_touched_at``; unknown
ids are inserted; everything else is kept. Nested conversations and artifacts
are not merged element-wise, so children appended locally and not yet pushed
are lost when the remote side wins.
"""

import threading
import time
from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor
from concurrent.futures import wait as wait_for_futures
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Optional

from loguru import logger

from .models import ANONYMOUS_OWNER, Memory, utcnow
from .remote import RemoteStore
from .scope import OwnershipScope
from .store import LocalStore


DEGRADED_AFTER_FAILURES = 3


@dataclass(frozen=True)
class MergeReport:
    """Outcome of one pull-and-merge pass."""

    owner_id: str
    fetched: int = 0
    inserted: tuple[str, ...] = ()
    replaced: tuple[str, ...] = ()
    kept: int = 0
    discarded: bool = False


@dataclass(frozen=True)
class SyncHealth:
    """Snapshot of how background sync has been going."""

    online: bool
    last_success_at: Optional[datetime] = None
    last_failure_at: Optional[datetime] = None
    last_error: Optional[str] = None
    consecutive_failures: int = 0
    dropped_tasks: int = 0
    in_flight: int = 0

    @property
    def degraded(self) -> bool:
        return self.consecutive_failures >= DEGRADED_AFTER_FAILURES


class SyncEngine:
    """Owns the worker pool that mirrors local mutations to a RemoteStore.

    Args:
        store: Local Store to merge pulled records into
        scope: Ownership Scope deciding who we sync for
        remote: Remote store, or None to run offline
        max_workers: Worker threads talking to the remote store
        max_pending: Queued-or-running tasks allowed before new ones are dropped
        pull_interval: Minimum seconds between two unforced pulls
        clock: Wall clock for health timestamps
        monotonic: Clock for pull debouncing
    """

    def __init__(
        self,
        store: LocalStore,
        scope: OwnershipScope,
        remote: Optional[RemoteStore] = None,
        *,
        max_workers: int = 4,
        max_pending: int = 64,
        pull_interval: float = 30.0,
        clock: Callable[[], datetime] = utcnow,
        monotonic: Callable[[], float] = time.monotonic,
    ) -> None:
        self.store = store
        self.scope = scope
        self.remote = remote
        self.max_pending = max_pending
        self.pull_interval = pull_interval
        self._clock = clock
        self._monotonic = monotonic

        self._executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="memsync-sync")
        self._pending: set[Future] = set()
        self._lock = threading.Lock()
        self._closed = False

        self._last_pull_started: Optional[float] = None
        self._pull_in_flight = False
        self._pull_again = False

        self._last_success_at: Optional[datetime] = None
        self._last_failure_at: Optional[datetime] = None
        self._last_error: Optional[str] = None
        self._consecutive_failures = 0
        self._dropped_tasks = 0

    @property
    def enabled(self) -> bool:
        """True when there is a remote store and an authenticated actor."""
        return self.remote is not None and self.scope.is_authenticated and not self._closed

    # -- task supervision -------------------------------------------------

    def _submit(self, name: str, fn: Callable[[], object]) -> Optional[Future]:
        with self._lock:
            if self._closed:
                logger.debug(f"Sync engine closed, skipping {name}")
                return None
            if len(self._pending) >= self.max_pending:
                self._dropped_tasks += 1
                logger.warning(f"Sync queue full ({self.max_pending} pending), dropping {name}")
                return None
            future = self._executor.submit(self._run, name, fn)
            self._pending.add(future)
        future.add_done_callback(self._forget)
        return future

    def _forget(self, future: Future) -> None:
        with self._lock:
            self._pending.discard(future)

    def _run(self, name: str, fn: Callable[[], object]) -> None:
        try:
            fn()
        except Exception as e:
            self._record_failure(e)
            logger.warning(f"Background {name} failed: {e}")
        else:
            self._record_success()
            logger.debug(f"Background {name} done")

    def _record_success(self) -> None:
        with self._lock:
            self._last_success_at = self._clock()
            self._consecutive_failures = 0

    def _record_failure(self, error: Exception) -> None:
        with self._lock:
            self._last_failure_at = self._clock()
            self._last_error = f"{type(error).__name__}: {error}"
            self._consecutive_failures += 1

    @property
    def health(self) -> SyncHealth:
        with self._lock:
            return SyncHealth(
                online=self.remote is not None,
                last_success_at=self._last_success_at,
                last_failure_at=self._last_failure_at,
                last_error=self._last_error,
                consecutive_failures=self._consecutive_failures,
                dropped_tasks=self._dropped_tasks,
                in_flight=sum(1 for f in self._pending if not f.done()),
            )

    def drain(self, timeout: Optional[float] = None) -> bool:
        """Wait for queued tasks, including ones they schedule.

        Returns:
            True if nothing is pending any more, False on timeout
        """
        deadline = None if timeout is None else time.monotonic() + timeout
        while True:
            with self._lock:
                pending = {f for f in self._pending if not f.done()}
            if not pending:
                return True
            remaining = None if deadline is None else deadline - time.monotonic()
            if remaining is not None and remaining <= 0:
                return False
            wait_for_futures(pending, timeout=remaining, return_when=FIRST_COMPLETED)

    def close(self, wait: bool = True, timeout: Optional[float] = None) -> bool:
        """Stop accepting tasks and shut the pool down.

        With ``wait`` the queue is drained first (bounded by ``timeout``).
        Tasks still queued after that are cancelled; tasks already talking to
        the remote store finish on their own, and whatever they apply to the
        store is applied atomically.

        Returns:
            True if every task finished before shutdown
        """
        drained = self.drain(timeout) if wait else False
        with self._lock:
            self._closed = True
            abandoned = sum(1 for f in self._pending if not f.done())
        if abandoned:
            logger.warning(f"Abandoning {abandoned} background sync task(s)")
        self._executor.shutdown(wait=False, cancel_futures=True)
        return drained or abandoned == 0

    # -- push ---------------------------------------------------------------

    def _owned_by_actor(self, record: Memory) -> bool:
        return record.owner_id == self.scope.actor

    def propagate(self, record: Memory) -> Optional[Future]:
        """Push the full current state of ``record`` in the background.

        No-op offline, when anonymous, or for records the actor does not own.
        """
        if not self.enabled or not self._owned_by_actor(record):
            return None
        snapshot = record.model_copy(deep=True)
        return self._submit(f"propagate {record.id}", lambda: self.remote.upsert(snapshot))

    def touch(self, record: Memory, at: datetime) -> Optional[Future]:
        """Push only a new last-touched instant for ``record``."""
        if not self.enabled or not self._owned_by_actor(record):
            return None
        record_id, owner_id = record.id, record.owner_id
        return self._submit(f"touch {record_id}", lambda: self.remote.touch(record_id, owner_id, at))

    def remove(self, record: Memory) -> Optional[Future]:
        """Delete ``record`` remotely in the background."""
        if not self.enabled or not self._owned_by_actor(record):
            return None
        record_id, owner_id = record.id, record.owner_id
        return self._submit(f"delete {record_id}", lambda: self.remote.delete(record_id, owner_id))

    def remove_all(self, owner_id: str) -> Optional[Future]:
        """Delete every remote record of ``owner_id`` in the background."""
        if not self.enabled or owner_id != self.scope.actor:
            return None
        return self._submit(f"clear {owner_id}", lambda: self.remote.delete_all_for(owner_id))

    # -- pull ---------------------------------------------------------------

    def request_pull(self, force: bool = False) -> Optional[Future]:
        """Schedule a background pull-and-merge.

        Unforced requests are debounced to one per ``pull_interval``. Only one
        pull runs at a time; a forced request that arrives while one is running
        is queued to run right after it.
        """
        if not self.enabled:
            return None
        with self._lock:
            if self._pull_in_flight:
                if force:
                    self._pull_again = True
                return None
            now = self._monotonic()
            if (
                not force
                and self._last_pull_started is not None
                and now - self._last_pull_started < self.pull_interval
            ):
                return None
            self._last_pull_started = now
            self._pull_in_flight = True

        future = self._submit("pull", self._background_pull)
        if future is None:
            with self._lock:
                self._pull_in_flight = False
        return future

    def _background_pull(self) -> None:
        try:
            self.pull_and_merge()
        finally:
            with self._lock:
                self._pull_in_flight = False
                again, self._pull_again = self._pull_again, False
            if again:
                self.request_pull(force=True)

    def pull_now(self) -> MergeReport:
        """Run a pull-and-merge in the caller's thread, recording health.

        Raises:
            RemoteStoreError: If the remote store cannot be read
        """
        try:
            report = self.pull_and_merge()
        except Exception as e:
            self._record_failure(e)
            raise
        self._record_success()
        return report

    def pull_and_merge(self) -> MergeReport:
        """Fetch the actor's remote records and merge them by timestamp dominance.

        The fetch happens without the store lock. If the actor changes while it
        is in flight, the results are discarded.
        """
        owner = self.scope.actor
        if self.remote is None or owner == ANONYMOUS_OWNER:
            return MergeReport(owner_id=owner)

        remote_records = self.remote.fetch_all_for(owner)

        if self.scope.actor != owner:
            logger.info(f"Actor changed during pull for {owner}, discarding {len(remote_records)} records")
            return MergeReport(owner_id=owner, fetched=len(remote_records), discarded=True)

        candidates = [r for r in remote_records if r.memory.owner_id in (owner, ANONYMOUS_OWNER)]
        remote_updated = {r.memory.id: r.updated_at for r in candidates}

        def accept(local: Optional[Memory], candidate: Memory) -> bool:
            return local is None or remote_updated[candidate.id] > local.touched_at

        inserted, replaced = self.store.reconcile([r.memory for r in candidates], accept)
        report = MergeReport(
            owner_id=owner,
            fetched=len(remote_records),
            inserted=tuple(inserted),
            replaced=tuple(replaced),
            kept=len(candidates) - len(inserted) - len(replaced),
        )
        logger.debug(
            f"Merged remote records for {owner}: {len(inserted)} inserted, "
            f"{len(replaced)} replaced, {report.kept} kept"
        )
        return report
