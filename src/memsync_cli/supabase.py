"""RemoteStore backed by Supabase's PostgREST API.

Tables (one row per memory plus one row per nested child):
    analysis_memories, conversations, test_artifacts, documentation_artifacts

Child rows are written with ``resolution=ignore-duplicates``, so pushing the
same record again only adds children the remote side has not seen yet.
"""

from datetime import datetime
from typing import Any, Optional

import httpx
from loguru import logger
from pydantic import TypeAdapter, ValidationError

from .errors import RemoteStoreError
from .models import Memory, as_utc
from .remote import RemoteRecord


MEMORIES_TABLE = "analysis_memories"
CONVERSATIONS_TABLE = "conversations"
TESTS_TABLE = "test_artifacts"
DOCS_TABLE = "documentation_artifacts"

CLIENT_INFO = "memsync-cli"

_datetime_adapter = TypeAdapter(datetime)


def memory_to_row(record: Memory) -> dict[str, Any]:
    """Map a Memory to an ``analysis_memories`` row."""
    return {
        "id": record.id,
        "user_id": record.owner_id,
        "repo_url": record.source_ref,
        "repo_name": record.display_name,
        "repo_owner": record.source_owner,
        "description": record.description,
        "analyzed_at": record.created_at.isoformat(),
        "last_accessed_at": record.touched_at.isoformat(),
        "is_favorite": record.is_favorite,
        "tech_stack": list(record.tech_tags),
        "tech_stack_detailed": record.tech_profile,
        "analysis": record.analysis.model_dump(),
        "architecture_diagram": (
            {
                "mermaidCode": record.architecture_diagram.mermaid,
                "components": record.architecture_diagram.components,
                "architecture": record.architecture_diagram.architecture,
            }
            if record.architecture_diagram
            else None
        ),
        "tags": list(record.tech_tags),
        "notes": record.notes,
    }


def child_rows(record: Memory) -> dict[str, list[dict[str, Any]]]:
    """Map the nested children of a Memory to rows, keyed by table."""
    common = {"memory_id": record.id, "user_id": record.owner_id}
    return {
        CONVERSATIONS_TABLE: [
            {
                **common,
                "id": conv.id,
                "type": conv.kind,
                "question": conv.prompt,
                "answer": conv.response,
                "context": (
                    {
                        "fileName": conv.context.file_name,
                        "functionName": conv.context.function_name,
                        "relatedFiles": conv.context.related_files,
                    }
                    if conv.context
                    else None
                ),
                "created_at": conv.created_at.isoformat(),
            }
            for conv in record.conversations
        ],
        TESTS_TABLE: [
            {
                **common,
                "id": test.id,
                "file_name": test.target_file,
                "function_name": test.target_function,
                "test_framework": test.framework,
                "test_cases": test.body,
                "created_at": test.created_at.isoformat(),
            }
            for test in record.test_artifacts
        ],
        DOCS_TABLE: [
            {
                **common,
                "id": doc.id,
                "type": doc.kind,
                "content": doc.body,
                "created_at": doc.created_at.isoformat(),
            }
            for doc in record.doc_artifacts
        ],
    }


def _by_created(rows: Optional[list[dict[str, Any]]]) -> list[dict[str, Any]]:
    return sorted(rows or [], key=lambda row: row.get("created_at") or "")


def _context_from_row(ctx: Optional[dict[str, Any]]) -> Optional[dict[str, Any]]:
    if not ctx:
        return None
    return {
        "file_name": ctx.get("fileName"),
        "function_name": ctx.get("functionName"),
        "related_files": ctx.get("relatedFiles") or [],
    }


def row_to_remote_record(row: dict[str, Any]) -> RemoteRecord:
    """Map an ``analysis_memories`` row (with embedded children) to a RemoteRecord.

    Raises:
        RemoteStoreError: If the row does not describe a valid Memory
    """
    diagram = row.get("architecture_diagram")
    try:
        memory = Memory(
            id=row["id"],
            owner_id=row["user_id"],
            source_ref=row.get("repo_url") or "",
            display_name=row.get("repo_name") or "",
            source_owner=row.get("repo_owner") or "",
            description=row.get("description") or "",
            tech_tags=row.get("tags") or row.get("tech_stack") or [],
            tech_profile=row.get("tech_stack_detailed") or {},
            analysis=row.get("analysis") or {},
            created_at=row["analyzed_at"],
            last_touched_at=row.get("last_accessed_at") or row["analyzed_at"],
            is_favorite=bool(row.get("is_favorite")),
            notes=row.get("notes") or "",
            conversations=[
                {
                    "id": c["id"],
                    "created_at": c["created_at"],
                    "kind": c["type"],
                    "prompt": c["question"],
                    "response": c["answer"],
                    "context": _context_from_row(c.get("context")),
                }
                for c in _by_created(row.get(CONVERSATIONS_TABLE))
            ],
            test_artifacts=[
                {
                    "id": t["id"],
                    "target_file": t["file_name"],
                    "target_function": t["function_name"],
                    "framework": t["test_framework"],
                    "body": t["test_cases"],
                    "created_at": t["created_at"],
                }
                for t in _by_created(row.get(TESTS_TABLE))
            ],
            doc_artifacts=[
                {"id": d["id"], "kind": d["type"], "body": d["content"], "created_at": d["created_at"]}
                for d in _by_created(row.get(DOCS_TABLE))
            ],
            architecture_diagram=(
                {
                    "mermaid": diagram.get("mermaidCode", ""),
                    "components": diagram.get("components") or [],
                    "architecture": diagram.get("architecture", ""),
                }
                if diagram
                else None
            ),
        )
        updated_at = as_utc(_datetime_adapter.validate_python(row.get("updated_at") or row["last_accessed_at"]))
    except (KeyError, ValidationError) as e:
        raise RemoteStoreError(f"malformed remote row {row.get('id')!r}: {e}") from e
    return RemoteRecord(memory=memory, updated_at=updated_at)


class SupabaseRemoteStore:
    """RemoteStore talking to a Supabase project over HTTP.

    Args:
        url: Project URL, e.g. https://abc.supabase.co
        api_key: Project anon/service key
        access_token: User JWT; defaults to the api key
        timeout: Seconds before any single request is abandoned
        client: Pre-built httpx client (tests pass one with a MockTransport)
    """

    def __init__(
        self,
        url: str,
        api_key: str,
        access_token: Optional[str] = None,
        timeout: float = 10.0,
        client: Optional[httpx.Client] = None,
    ) -> None:
        self.base_url = url.rstrip("/") + "/rest/v1"
        headers = {
            "apikey": api_key,
            "Authorization": f"Bearer {access_token or api_key}",
            "Content-Type": "application/json",
            "X-Client-Info": CLIENT_INFO,
        }
        if client is None:
            client = httpx.Client(base_url=self.base_url, headers=headers, timeout=timeout)
        else:
            client.base_url = self.base_url
            client.headers.update(headers)
        self._client = client

    def close(self) -> None:
        self._client.close()

    def _request(
        self,
        method: str,
        table: str,
        *,
        params: Optional[dict[str, str]] = None,
        json: Any = None,
        prefer: Optional[str] = None,
    ) -> httpx.Response:
        headers = {"Prefer": prefer} if prefer else None
        try:
            response = self._client.request(method, f"/{table}", params=params, json=json, headers=headers)
            response.raise_for_status()
        except httpx.TimeoutException as e:
            raise RemoteStoreError(f"{method} {table} timed out") from e
        except httpx.HTTPStatusError as e:
            raise RemoteStoreError(
                f"{method} {table} failed with {e.response.status_code}: {e.response.text[:200]}"
            ) from e
        except httpx.HTTPError as e:
            raise RemoteStoreError(f"{method} {table} failed: {e}") from e
        return response

    def upsert(self, record: Memory) -> None:
        self._request(
            "POST",
            MEMORIES_TABLE,
            params={"on_conflict": "id"},
            json=memory_to_row(record),
            prefer="resolution=merge-duplicates,return=minimal",
        )
        for table, rows in child_rows(record).items():
            if not rows:
                continue
            self._request(
                "POST",
                table,
                params={"on_conflict": "id"},
                json=rows,
                prefer="resolution=ignore-duplicates,return=minimal",
            )
        logger.debug(f"Upserted {record.id} to {MEMORIES_TABLE}")

    def touch(self, record_id: str, owner_id: str, at: datetime) -> None:
        self._request(
            "PATCH",
            MEMORIES_TABLE,
            params={"id": f"eq.{record_id}", "user_id": f"eq.{owner_id}"},
            json={"last_accessed_at": at.isoformat()},
            prefer="return=minimal",
        )

    def fetch_all_for(self, owner_id: str) -> list[RemoteRecord]:
        response = self._request(
            "GET",
            MEMORIES_TABLE,
            params={
                "select": f"*,{CONVERSATIONS_TABLE}(*),{TESTS_TABLE}(*),{DOCS_TABLE}(*)",
                "user_id": f"eq.{owner_id}",
                "order": "last_accessed_at.desc",
            },
        )
        try:
            rows = response.json()
        except ValueError as e:
            raise RemoteStoreError(f"GET {MEMORIES_TABLE} returned invalid JSON") from e
        if not isinstance(rows, list):
            raise RemoteStoreError(f"GET {MEMORIES_TABLE} returned {type(rows).__name__}, expected a list")
        return [row_to_remote_record(row) for row in rows]

    def delete(self, record_id: str, owner_id: str) -> None:
        self._request(
            "DELETE",
            MEMORIES_TABLE,
            params={"id": f"eq.{record_id}", "user_id": f"eq.{owner_id}"},
            prefer="return=minimal",
        )

    def delete_all_for(self, owner_id: str) -> None:
        self._request("DELETE", MEMORIES_TABLE, params={"user_id": f"eq.{owner_id}"}, prefer="return=minimal")
