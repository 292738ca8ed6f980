"""Record model for memsync-cli.

A Memory is one analysed repository session plus everything generated for it
(conversations, tests, docs, an architecture diagram). Nested artifacts are
immutable once created; the Memory itself only changes through whole-field
replacement or appends.
"""

import base64
import re
import secrets
import string
from datetime import datetime, timezone
from typing import Any, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


ANONYMOUS_OWNER = "local"

MAX_DERIVED_TAGS = 10

ConversationKind = Literal["question", "file_analysis", "test_generation", "architecture"]
DocumentationKind = Literal["readme", "onboarding", "api"]

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)
_NON_ALNUM = re.compile(r"[^a-zA-Z0-9]")
_BASE36 = string.digits + string.ascii_lowercase


def utcnow() -> datetime:
    """Current instant as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    """Normalize a datetime to aware UTC. Naive values are taken as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _epoch_ms(at: datetime) -> int:
    return int(as_utc(at).timestamp() * 1000)


def new_memory_id(source_ref: str, at: datetime) -> str:
    """Build a memory id from the source reference and creation instant.

    Format: ``memory_<epoch-ms>_<first 8 alphanumerics of base64(source_ref)>``.
    """
    encoded = base64.b64encode(source_ref.encode("utf-8")).decode("ascii")
    return f"memory_{_epoch_ms(at)}_{_NON_ALNUM.sub('', encoded)[:8]}"


def new_child_id(at: datetime) -> str:
    """Build an id for a conversation or artifact: ``<epoch-ms>_<7 base36 chars>``."""
    suffix = "".join(secrets.choice(_BASE36) for _ in range(7))
    return f"{_epoch_ms(at)}_{suffix}"


def derive_tags(tech_stack: list[str], tech_profile: Optional[dict[str, Any]] = None) -> list[str]:
    """Derive searchable tags from a tech stack and a detected tech profile.

    Lower-cases every entry, adds the profile's architecture, project type and
    language, drops duplicates and caps the result at ``MAX_DERIVED_TAGS``.
    """
    tags: list[str] = []
    candidates = list(tech_stack)
    profile = tech_profile or {}
    for key in ("architecture", "project_type", "language"):
        value = profile.get(key)
        if isinstance(value, str):
            candidates.append(value)

    for candidate in candidates:
        if not isinstance(candidate, str) or not candidate.strip():
            continue
        tag = candidate.strip().lower()
        if tag not in tags:
            tags.append(tag)
    return tags[:MAX_DERIVED_TAGS]


class _Timestamped(BaseModel):
    @field_validator("created_at", check_fields=False)
    @classmethod
    def _created_at_is_valid(cls, value: datetime) -> datetime:
        value = as_utc(value)
        if value < _EPOCH:
            raise ValueError("created_at must not be before the epoch")
        return value


class ConversationContext(BaseModel):
    """Cross-references attached to a conversation entry."""

    model_config = ConfigDict(frozen=True)

    file_name: Optional[str] = None
    function_name: Optional[str] = None
    related_files: list[str] = []


class Conversation(_Timestamped):
    """One prompt/response exchange about the repository."""

    model_config = ConfigDict(frozen=True)

    id: str
    created_at: datetime
    kind: ConversationKind
    prompt: str
    response: str
    context: Optional[ConversationContext] = None


class TestArtifact(_Timestamped):
    """Generated test cases for one function."""

    __test__ = False

    model_config = ConfigDict(frozen=True)

    id: str
    target_file: str
    target_function: str
    framework: str
    body: str
    created_at: datetime


class DocumentationArtifact(_Timestamped):
    model_config = ConfigDict(frozen=True)

    id: str
    kind: DocumentationKind
    body: str
    created_at: datetime


class ArchitectureDiagram(BaseModel):
    model_config = ConfigDict(frozen=True)

    mermaid: str
    components: list[str] = []
    architecture: str = ""


class AnalysisSummary(BaseModel):
    """Explanations of the repository at two levels of detail."""

    beginner: str = ""
    expert: str = ""


class Memory(_Timestamped):
    """A stored repository analysis and everything generated for it."""

    model_config = ConfigDict(validate_assignment=True)

    id: str = Field(min_length=1)
    owner_id: str = ANONYMOUS_OWNER
    source_ref: str
    display_name: str = ""
    source_owner: str = ""
    description: str = ""
    tech_tags: list[str] = []
    tech_profile: dict[str, Any] = {}
    analysis: AnalysisSummary = Field(default_factory=AnalysisSummary)

    created_at: datetime
    last_touched_at: Optional[datetime] = None

    is_favorite: bool = False
    notes: str = ""

    conversations: list[Conversation] = []
    test_artifacts: list[TestArtifact] = []
    doc_artifacts: list[DocumentationArtifact] = []
    architecture_diagram: Optional[ArchitectureDiagram] = None

    @field_validator("tech_tags")
    @classmethod
    def _tags_are_a_set(cls, value: list[str]) -> list[str]:
        return list(dict.fromkeys(value))

    @field_validator("last_touched_at")
    @classmethod
    def _touched_is_utc(cls, value: Optional[datetime]) -> Optional[datetime]:
        return as_utc(value) if value is not None else None

    @model_validator(mode="after")
    def _touched_not_before_created(self) -> "Memory":
        if self.last_touched_at is None:
            # Bypass validate_assignment to avoid re-entering this validator.
            object.__setattr__(self, "last_touched_at", self.created_at)
        elif self.last_touched_at < self.created_at:
            raise ValueError("last_touched_at must not be before created_at")
        return self

    @property
    def touched_at(self) -> datetime:
        """``last_touched_at`` with the default already applied."""
        return self.last_touched_at or self.created_at

    def touch(self, at: datetime) -> None:
        """Advance ``last_touched_at`` to ``at``. Never moves it backwards."""
        at = as_utc(at)
        if at > self.touched_at:
            self.last_touched_at = at

    def matches(self, query: str) -> bool:
        """Case-insensitive substring match over name, description, tags and conversations."""
        needle = query.lower()
        if needle in self.display_name.lower() or needle in self.description.lower():
            return True
        if any(needle in tag.lower() for tag in self.tech_tags):
            return True
        return any(
            needle in conv.prompt.lower() or needle in conv.response.lower()
            for conv in self.conversations
        )


class MemoryDraft(BaseModel):
    """Caller-supplied data for a new Memory."""

    source_ref: str = Field(min_length=1)
    display_name: str = ""
    source_owner: str = ""
    description: str = ""
    tech_stack: list[str] = []
    tech_profile: dict[str, Any] = {}
    analysis: AnalysisSummary = Field(default_factory=AnalysisSummary)
    notes: str = ""
