"""The operations callers use: save, read, list, search, annotate, delete.

Every operation works against the Local Store and returns as soon as the
local change is persisted. Anything that has to reach the remote store is
handed to the SyncEngine and runs in the background.

Ids that do not exist, or that belong to another actor, are treated as
absent: operations return None / False / 0 instead of raising.
"""

from datetime import datetime, timedelta
from typing import Any, Callable, Iterable, Optional, Union

from .models import (
    ArchitectureDiagram,
    Conversation,
    ConversationContext,
    ConversationKind,
    DocumentationArtifact,
    DocumentationKind,
    Memory,
    MemoryDraft,
    TestArtifact,
    derive_tags,
    new_child_id,
    new_memory_id,
    utcnow,
)
from .remote import RemoteStore
from .scope import OwnershipScope
from .slots import PersistenceSlot
from .store import LocalStore
from .sync import MergeReport, SyncEngine, SyncHealth


def _by_recency(records: Iterable[Memory]) -> list[Memory]:
    return sorted(records, key=lambda r: r.touched_at, reverse=True)


def _default_name(source_ref: str) -> str:
    return source_ref.rstrip("/").rsplit("/", 1)[-1] or source_ref


class MemoryManager:
    """Local-first access to analysis memories for the current actor."""

    def __init__(
        self,
        store: LocalStore,
        scope: OwnershipScope,
        sync: SyncEngine,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.store = store
        self.scope = scope
        self.sync = sync
        self._clock = clock
        scope.subscribe(self._on_actor_change)

    @classmethod
    def create(
        cls,
        slot: PersistenceSlot,
        remote: Optional[RemoteStore] = None,
        actor: Optional[str] = None,
        *,
        clock: Callable[[], datetime] = utcnow,
        **sync_options: Any,
    ) -> "MemoryManager":
        """Restore a store from ``slot`` and wire scope and sync around it.

        ``sync_options`` are passed to SyncEngine (max_workers, pull_interval...).
        """
        store = LocalStore(slot)
        store.restore()
        scope = OwnershipScope(actor)
        sync = SyncEngine(store, scope, remote, clock=clock, **sync_options)
        manager = cls(store, scope, sync, clock=clock)
        if scope.is_authenticated:
            sync.request_pull(force=True)
        return manager

    def __enter__(self) -> "MemoryManager":
        return self

    def __exit__(self, *exc: object) -> None:
        self.close()

    def close(self, wait: bool = True, timeout: Optional[float] = 5.0) -> bool:
        """Let queued sync tasks finish (bounded by ``timeout``), then stop."""
        return self.sync.close(wait=wait, timeout=timeout)

    # -- actor --------------------------------------------------------------

    @property
    def actor(self) -> str:
        return self.scope.actor

    def set_actor(self, owner_id: Optional[str]) -> bool:
        """Switch actor. Logging in schedules a pull of the actor's remote records."""
        return self.scope.set_actor(owner_id)

    def _on_actor_change(self, previous: Optional[str], current: str) -> None:
        self.sync.request_pull(force=True)

    # -- helpers ------------------------------------------------------------

    def _now(self) -> datetime:
        return self._clock()

    def _visible(self, memory_id: str) -> Optional[Memory]:
        record = self.store.get(memory_id)
        if record is None or not self.scope.can_see(record):
            return None
        return record

    def _unique_id(self, source_ref: str, at: datetime) -> str:
        candidate_at = at
        memory_id = new_memory_id(source_ref, candidate_at)
        while memory_id in self.store:
            candidate_at += timedelta(milliseconds=1)
            memory_id = new_memory_id(source_ref, candidate_at)
        return memory_id

    def _mutate(self, memory_id: str, mutator: Callable[[Memory], None]) -> Optional[Memory]:
        if self._visible(memory_id) is None:
            return None
        now = self._now()

        def apply(record: Memory) -> None:
            mutator(record)
            record.touch(now)

        updated = self.store.update(memory_id, apply)
        if updated is not None:
            self.sync.propagate(updated)
        return updated

    # -- create / read --------------------------------------------------------

    def save(self, draft: Union[MemoryDraft, dict[str, Any]]) -> str:
        """Create a Memory owned by the current actor and return its id."""
        if not isinstance(draft, MemoryDraft):
            draft = MemoryDraft.model_validate(draft)
        now = self._now()
        record = Memory(
            id=self._unique_id(draft.source_ref, now),
            owner_id=self.scope.actor,
            source_ref=draft.source_ref,
            display_name=draft.display_name or _default_name(draft.source_ref),
            source_owner=draft.source_owner,
            description=draft.description,
            tech_tags=derive_tags(draft.tech_stack, draft.tech_profile),
            tech_profile=draft.tech_profile,
            analysis=draft.analysis,
            notes=draft.notes,
            created_at=now,
            last_touched_at=now,
        )
        self.store.put(record)
        self.sync.propagate(record)
        return record.id

    def import_records(self, records: Iterable[Memory]) -> int:
        """Restore exported records as they are. Records the actor cannot see are skipped."""
        count = 0
        for record in records:
            if not self.scope.can_see(record):
                continue
            self.store.put(record)
            self.sync.propagate(record)
            count += 1
        return count

    def get(self, memory_id: str) -> Optional[Memory]:
        """Read a record and mark it as accessed."""
        if self._visible(memory_id) is None:
            return None
        now = self._now()
        updated = self.store.update(memory_id, lambda record: record.touch(now))
        if updated is not None:
            self.sync.touch(updated, updated.touched_at)
        return updated

    def list_all(self) -> list[Memory]:
        """Visible records, most recently touched first.

        Also schedules a (debounced) background pull; the result reflects local
        state as it is now, before that pull lands.
        """
        self.sync.request_pull()
        return _by_recency(self.scope.visible(self.store.list_all()))

    def search(self, query: str) -> list[Memory]:
        """Case-insensitive substring search over visible records. Local only."""
        return _by_recency(r for r in self.scope.visible(self.store.list_all()) if r.matches(query))

    def find_by_source(self, source_ref: str) -> Optional[Memory]:
        """The most recently touched visible record for ``source_ref``, if any."""
        matches = [r for r in self.scope.visible(self.store.list_all()) if r.source_ref == source_ref]
        return _by_recency(matches)[0] if matches else None

    # -- updates ------------------------------------------------------------

    def toggle_favorite(self, memory_id: str) -> Optional[bool]:
        """Flip the favorite flag. Returns the new value."""

        def flip(record: Memory) -> None:
            record.is_favorite = not record.is_favorite

        updated = self._mutate(memory_id, flip)
        return updated.is_favorite if updated is not None else None

    def update_notes(self, memory_id: str, notes: str) -> Optional[Memory]:
        def replace(record: Memory) -> None:
            record.notes = notes

        return self._mutate(memory_id, replace)

    def append_conversation(
        self,
        memory_id: str,
        kind: ConversationKind,
        prompt: str,
        response: str,
        context: Union[ConversationContext, dict[str, Any], None] = None,
    ) -> Optional[Conversation]:
        now = self._now()
        conversation = Conversation(
            id=new_child_id(now),
            created_at=now,
            kind=kind,
            prompt=prompt,
            response=response,
            context=context,
        )
        updated = self._mutate(memory_id, lambda record: record.conversations.append(conversation))
        return conversation if updated is not None else None

    def append_test_artifact(
        self,
        memory_id: str,
        target_file: str,
        target_function: str,
        framework: str,
        body: str,
    ) -> Optional[TestArtifact]:
        now = self._now()
        artifact = TestArtifact(
            id=new_child_id(now),
            target_file=target_file,
            target_function=target_function,
            framework=framework,
            body=body,
            created_at=now,
        )
        updated = self._mutate(memory_id, lambda record: record.test_artifacts.append(artifact))
        return artifact if updated is not None else None

    def append_doc_artifact(
        self,
        memory_id: str,
        kind: DocumentationKind,
        body: str,
    ) -> Optional[DocumentationArtifact]:
        now = self._now()
        artifact = DocumentationArtifact(id=new_child_id(now), kind=kind, body=body, created_at=now)
        updated = self._mutate(memory_id, lambda record: record.doc_artifacts.append(artifact))
        return artifact if updated is not None else None

    def set_architecture_diagram(
        self,
        memory_id: str,
        mermaid: str,
        components: Iterable[str] = (),
        architecture: str = "",
    ) -> Optional[ArchitectureDiagram]:
        diagram = ArchitectureDiagram(mermaid=mermaid, components=list(components), architecture=architecture)

        def replace(record: Memory) -> None:
            record.architecture_diagram = diagram

        updated = self._mutate(memory_id, replace)
        return diagram if updated is not None else None

    # -- removal ------------------------------------------------------------

    def delete(self, memory_id: str) -> bool:
        record = self._visible(memory_id)
        if record is None or not self.store.remove(memory_id):
            return False
        self.sync.remove(record)
        return True

    def clear(self) -> int:
        """Remove every record visible to the current actor.

        Returns:
            Number of local records removed
        """
        actor = self.scope.actor
        removed = self.store.remove_all_where(self.scope.can_see)
        self.sync.remove_all(actor)
        return len(removed)

    # -- sync ---------------------------------------------------------------

    @property
    def health(self) -> SyncHealth:
        return self.sync.health

    def sync_now(self) -> MergeReport:
        """Pull and merge in the foreground. Raises RemoteStoreError on failure."""
        return self.sync.pull_now()
