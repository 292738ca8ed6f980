"""CLI for memsync-cli.

Local-first memory of analysed repositories. Every command answers from the
local database straight away; when you are logged in and a remote store is
configured, changes are mirrored in the background.
"""

import json
import sys
from pathlib import Path
from typing import Annotated, Any, Optional

import typer
from rich.console import Console
from rich.table import Table

from .config import get_db_path, load_actor, load_settings, save_actor
from .db import SqlerSlot
from .errors import ConfigError, RemoteStoreError
from .log import configure_logging
from .manager import MemoryManager
from .models import Memory, MemoryDraft
from .supabase import SupabaseRemoteStore


MAIN_HELP = """
Local-first memory for repository analyses. Writes are instant; remote sync
happens in the background once you log in.

QUICK START:
  memsync save https://github.com/acme/widgets --tech python     Remember a repo
  memsync list                                                   Browse memories
  memsync search widgets                                         Search locally
  memsync add conversation ID "What is it?" "A widget factory"   Log a Q&A
  memsync favorite ID                                            Toggle favorite
  memsync login user-42                                          Start syncing
  memsync sync                                                   Pull remote now

OUTPUT FORMATS:
  Default    Human-readable tables
  --json     JSON for parsing
  --quiet    Just IDs (for scripting)

DATABASE:
  Default location: .memsync/memory.db
  Override with: --db PATH or MEMSYNC_DB env var

REMOTE SYNC:
  Set MEMSYNC_SUPABASE_URL and MEMSYNC_SUPABASE_KEY (and optionally
  MEMSYNC_ACCESS_TOKEN). Without them memsync works offline.
"""

app = typer.Typer(
    name="memsync",
    help=MAIN_HELP,
    no_args_is_help=True,
    rich_markup_mode="markdown",
)

ADD_HELP = """
Append generated content to a memory.

COMMANDS:
  memsync add conversation ID PROMPT RESPONSE
  memsync add test ID BODY --file F --function FN --framework pytest
  memsync add doc ID KIND BODY
  memsync add diagram ID MERMAID --component api --component db
"""
add_app = typer.Typer(help=ADD_HELP)
app.add_typer(add_app, name="add")

console = Console()

DbOption = Annotated[
    Optional[str],
    typer.Option(
        "--db",
        help="Database path. Overrides all other resolution.",
        envvar="MEMSYNC_DB",
    ),
]
GlobalOption = Annotated[
    bool,
    typer.Option(
        "--global", "-g",
        help="Use global database (~/.memsync/) even if local .memsync/ exists.",
    ),
]
JsonOption = Annotated[
    bool,
    typer.Option(
        "--json", "-j",
        help="Output as JSON. Use this for programmatic access.",
    ),
]
QuietOption = Annotated[
    bool,
    typer.Option(
        "--quiet", "-q",
        help="Minimal output: just IDs for scripting.",
    ),
]
MemoryIdArgument = Annotated[str, typer.Argument(help="ID of the memory.")]


@app.callback()
def main_callback(
    verbose: Annotated[
        bool,
        typer.Option("--verbose", "-v", help="Log sync activity to stderr."),
    ] = False,
) -> None:
    """Configure logging before any command runs."""
    level = "DEBUG"
    if not verbose:
        try:
            level = load_settings().log_level
        except ConfigError:
            level = "WARNING"
    configure_logging(level)


def _open_manager(db_path: Optional[str], use_global: bool = False) -> MemoryManager:
    """Open the manager for the resolved database, with remote sync if configured."""
    try:
        settings = load_settings()
    except ConfigError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1)

    remote = None
    if settings.remote_enabled:
        remote = SupabaseRemoteStore(
            settings.supabase_url,
            settings.supabase_key,
            access_token=settings.access_token,
            timeout=settings.remote_timeout,
        )

    path = get_db_path(db_path, use_global=use_global)
    return MemoryManager.create(
        SqlerSlot.open(db_path, use_global=use_global),
        remote,
        actor=load_actor(path),
        max_workers=settings.max_workers,
        max_pending=settings.max_pending,
        pull_interval=settings.pull_interval,
    )


def _not_found(memory_id: str) -> typer.Exit:
    typer.echo(f"Error: Memory {memory_id} not found", err=True)
    return typer.Exit(1)


def _read_text(value: Optional[str], file: Optional[Path], what: str) -> str:
    """Take text from an argument, a file, or stdin, in that order."""
    if file:
        if not file.exists():
            typer.echo(f"Error: File not found: {file}", err=True)
            raise typer.Exit(1)
        return file.read_text()
    if value is not None:
        return value
    if not sys.stdin.isatty():
        text = sys.stdin.read().strip()
        if text:
            return text
    typer.echo(f"Error: No {what} provided", err=True)
    raise typer.Exit(1)


def _summary(m: Memory) -> dict[str, Any]:
    return {
        "id": m.id,
        "owner_id": m.owner_id,
        "source_ref": m.source_ref,
        "display_name": m.display_name,
        "description": m.description,
        "tech_tags": m.tech_tags,
        "is_favorite": m.is_favorite,
        "notes": m.notes,
        "conversation_count": len(m.conversations),
        "test_count": len(m.test_artifacts),
        "doc_count": len(m.doc_artifacts),
        "has_diagram": m.architecture_diagram is not None,
        "created_at": m.created_at.isoformat(),
        "last_touched_at": m.touched_at.isoformat(),
    }


def _output_memories(memories: list[Memory], as_json: bool = False, quiet: bool = False) -> None:
    """Output memories in the requested format."""
    if quiet:
        for m in memories:
            typer.echo(m.id)
        return

    if as_json:
        typer.echo(json.dumps([_summary(m) for m in memories], indent=2))
        return

    if not memories:
        typer.echo("No memories found.")
        return

    table = Table(show_header=True, header_style="bold")
    table.add_column("ID", style="dim", no_wrap=True)
    table.add_column("Name", max_width=30)
    table.add_column("Tags", style="cyan")
    table.add_column("★", width=1)
    table.add_column("Chats", justify="right")
    table.add_column("Touched", style="green")

    for m in memories:
        tags = ", ".join(m.tech_tags) if m.tech_tags else "-"
        table.add_row(
            m.id,
            m.display_name,
            tags,
            "★" if m.is_favorite else "",
            str(len(m.conversations)),
            m.touched_at.strftime("%Y-%m-%d %H:%M"),
        )

    console.print(table)


SAVE_HELP = """
Remember an analysed repository.

EXAMPLES:
  memsync save https://github.com/acme/widgets
  memsync save https://github.com/acme/widgets --name widgets --owner acme
  memsync save ./repo --tech python --tech fastapi --language python
  memsync save https://github.com/acme/api --description "REST API" --json

OUTPUT:
  Default:   "Saved (id=memory_...)"
  --json:    {"id": "...", "tech_tags": [...]}
  --quiet:   memory_...
"""


@app.command(help=SAVE_HELP)
def save(
    source_ref: Annotated[
        str,
        typer.Argument(help="Repository URL or path that was analysed."),
    ],
    name: Annotated[
        Optional[str],
        typer.Option("--name", "-n", help="Display name. Defaults to the last path segment."),
    ] = None,
    owner: Annotated[
        str,
        typer.Option("--owner", help="Owner of the repository (not of the memory)."),
    ] = "",
    description: Annotated[
        str,
        typer.Option("--description", "-d", help="What the repository is."),
    ] = "",
    tech: Annotated[
        Optional[list[str]],
        typer.Option("--tech", "-t", help="Technology in the stack. Repeatable."),
    ] = None,
    language: Annotated[
        Optional[str],
        typer.Option("--language", help="Primary language. Added as a tag."),
    ] = None,
    architecture: Annotated[
        Optional[str],
        typer.Option("--architecture", help="Architecture style, e.g. monolith. Added as a tag."),
    ] = None,
    project_type: Annotated[
        Optional[str],
        typer.Option("--project-type", help="Project type, e.g. library. Added as a tag."),
    ] = None,
    notes: Annotated[
        str,
        typer.Option("--notes", help="Initial notes."),
    ] = "",
    db: DbOption = None,
    use_global: GlobalOption = False,
    output_json: JsonOption = False,
    quiet: QuietOption = False,
) -> None:
    """Remember an analysed repository."""
    profile = {
        key: value
        for key, value in (
            ("language", language),
            ("architecture", architecture),
            ("project_type", project_type),
        )
        if value
    }
    draft = MemoryDraft(
        source_ref=source_ref,
        display_name=name or "",
        source_owner=owner,
        description=description,
        tech_stack=list(tech or []),
        tech_profile=profile,
        notes=notes,
    )

    with _open_manager(db, use_global) as manager:
        previous = manager.find_by_source(source_ref)
        memory_id = manager.save(draft)
        memory = manager.store.get(memory_id)

    if quiet:
        typer.echo(memory_id)
    elif output_json:
        typer.echo(json.dumps({"id": memory_id, "tech_tags": memory.tech_tags if memory else []}))
    else:
        typer.echo(f"Saved (id={memory_id})")
        if previous is not None:
            typer.echo(f"Previously analysed as {previous.id} ({previous.display_name})")


@app.command(help="Show one memory in full, marking it as accessed.")
def show(
    memory_id: MemoryIdArgument,
    db: DbOption = None,
    use_global: GlobalOption = False,
    output_json: JsonOption = False,
) -> None:
    """Show one memory."""
    with _open_manager(db, use_global) as manager:
        memory = manager.get(memory_id)
    if memory is None:
        raise _not_found(memory_id)

    if output_json:
        typer.echo(json.dumps(memory.model_dump(mode="json"), indent=2))
        return

    favorite = " ★" if memory.is_favorite else ""
    typer.echo(f"{memory.display_name}{favorite}  [{memory.id}]")
    typer.echo(f"Source: {memory.source_ref}")
    if memory.description:
        typer.echo(f"Description: {memory.description}")
    if memory.tech_tags:
        typer.echo(f"Tags: {', '.join(memory.tech_tags)}")
    typer.echo(f"Owner: {memory.owner_id}")
    typer.echo(f"Created: {memory.created_at:%Y-%m-%d %H:%M}  Touched: {memory.touched_at:%Y-%m-%d %H:%M}")
    if memory.notes:
        typer.echo(f"Notes: {memory.notes}")
    for conv in memory.conversations:
        typer.echo(f"- [{conv.kind}] {conv.prompt}")
        typer.echo(f"    {conv.response}")
    if memory.test_artifacts:
        typer.echo(f"Tests: {len(memory.test_artifacts)}")
    if memory.doc_artifacts:
        typer.echo(f"Docs: {', '.join(d.kind for d in memory.doc_artifacts)}")
    if memory.architecture_diagram:
        typer.echo(f"Architecture: {memory.architecture_diagram.architecture or 'diagram'}")


LIST_HELP = """
List memories visible to the current actor, most recently touched first.

When logged in, this also starts a background pull from the remote store;
the output is what is local right now.

EXAMPLES:
  memsync list
  memsync list --favorites
  memsync list --limit 10 --json
"""


@app.command("list", help=LIST_HELP)
def list_memories(
    favorites: Annotated[
        bool,
        typer.Option("--favorites", "-f", help="Only favorites."),
    ] = False,
    limit: Annotated[
        int,
        typer.Option("--limit", "-n", help="Maximum number of results."),
    ] = 50,
    db: DbOption = None,
    use_global: GlobalOption = False,
    output_json: JsonOption = False,
    quiet: QuietOption = False,
) -> None:
    """List memories."""
    with _open_manager(db, use_global) as manager:
        memories = manager.list_all()

    if favorites:
        memories = [m for m in memories if m.is_favorite]

    _output_memories(memories[:limit], output_json, quiet)


SEARCH_HELP = """
Search memories. Case-insensitive substring match over name, description,
tags and conversation text. Never touches the network.

EXAMPLES:
  memsync search react
  memsync search "auth flow" --json
"""


@app.command(help=SEARCH_HELP)
def search(
    query: Annotated[str, typer.Argument(help="Text to look for.")],
    limit: Annotated[
        int,
        typer.Option("--limit", "-n", help="Maximum number of results."),
    ] = 20,
    db: DbOption = None,
    use_global: GlobalOption = False,
    output_json: JsonOption = False,
    quiet: QuietOption = False,
) -> None:
    """Search memories."""
    with _open_manager(db, use_global) as manager:
        memories = manager.search(query)
    _output_memories(memories[:limit], output_json, quiet)


@app.command(help="Toggle the favorite flag of a memory.")
def favorite(
    memory_id: MemoryIdArgument,
    db: DbOption = None,
    use_global: GlobalOption = False,
    quiet: QuietOption = False,
) -> None:
    """Toggle favorite."""
    with _open_manager(db, use_global) as manager:
        is_favorite = manager.toggle_favorite(memory_id)
    if is_favorite is None:
        raise _not_found(memory_id)
    if not quiet:
        typer.echo(f"{'Favorited' if is_favorite else 'Unfavorited'} {memory_id}")


@app.command(help="Replace the notes of a memory.")
def note(
    memory_id: MemoryIdArgument,
    text: Annotated[
        Optional[str],
        typer.Argument(help="New notes. Omit to read from --file or stdin."),
    ] = None,
    file: Annotated[
        Optional[Path],
        typer.Option("--file", "-f", help="Read notes from file."),
    ] = None,
    db: DbOption = None,
    use_global: GlobalOption = False,
    quiet: QuietOption = False,
) -> None:
    """Replace notes."""
    notes = _read_text(text, file, "notes")
    with _open_manager(db, use_global) as manager:
        updated = manager.update_notes(memory_id, notes)
    if updated is None:
        raise _not_found(memory_id)
    if not quiet:
        typer.echo(f"Updated notes for {memory_id}")


@add_app.command("conversation")
def add_conversation(
    memory_id: MemoryIdArgument,
    prompt: Annotated[str, typer.Argument(help="The question that was asked.")],
    response: Annotated[str, typer.Argument(help="The answer that was given.")],
    kind: Annotated[
        str,
        typer.Option("--kind", "-k", help="question, file_analysis, test_generation or architecture."),
    ] = "question",
    file_name: Annotated[
        Optional[str],
        typer.Option("--file-name", help="File the conversation was about."),
    ] = None,
    function_name: Annotated[
        Optional[str],
        typer.Option("--function", help="Function the conversation was about."),
    ] = None,
    related: Annotated[
        Optional[list[str]],
        typer.Option("--related", help="Related file. Repeatable."),
    ] = None,
    db: DbOption = None,
    use_global: GlobalOption = False,
    quiet: QuietOption = False,
) -> None:
    """Append a conversation entry."""
    context = None
    if file_name or function_name or related:
        context = {"file_name": file_name, "function_name": function_name, "related_files": list(related or [])}

    try:
        with _open_manager(db, use_global) as manager:
            conversation = manager.append_conversation(memory_id, kind, prompt, response, context)
    except ValueError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1)
    if conversation is None:
        raise _not_found(memory_id)
    typer.echo(conversation.id if quiet else f"Added conversation {conversation.id} to {memory_id}")


@add_app.command("test")
def add_test(
    memory_id: MemoryIdArgument,
    body: Annotated[
        Optional[str],
        typer.Argument(help="Test source. Omit to read from --body-file or stdin."),
    ] = None,
    target_file: Annotated[str, typer.Option("--file", help="File under test.")] = "",
    target_function: Annotated[str, typer.Option("--function", help="Function under test.")] = "",
    framework: Annotated[str, typer.Option("--framework", help="Test framework.")] = "pytest",
    body_file: Annotated[
        Optional[Path],
        typer.Option("--body-file", help="Read test source from file."),
    ] = None,
    db: DbOption = None,
    use_global: GlobalOption = False,
    quiet: QuietOption = False,
) -> None:
    """Append a generated test artifact."""
    text = _read_text(body, body_file, "test body")
    with _open_manager(db, use_global) as manager:
        artifact = manager.append_test_artifact(memory_id, target_file, target_function, framework, text)
    if artifact is None:
        raise _not_found(memory_id)
    typer.echo(artifact.id if quiet else f"Added test {artifact.id} to {memory_id}")


@add_app.command("doc")
def add_doc(
    memory_id: MemoryIdArgument,
    kind: Annotated[str, typer.Argument(help="readme, onboarding or api.")],
    body: Annotated[
        Optional[str],
        typer.Argument(help="Document text. Omit to read from --body-file or stdin."),
    ] = None,
    body_file: Annotated[
        Optional[Path],
        typer.Option("--body-file", help="Read document from file."),
    ] = None,
    db: DbOption = None,
    use_global: GlobalOption = False,
    quiet: QuietOption = False,
) -> None:
    """Append a generated documentation artifact."""
    text = _read_text(body, body_file, "document body")
    try:
        with _open_manager(db, use_global) as manager:
            artifact = manager.append_doc_artifact(memory_id, kind, text)
    except ValueError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1)
    if artifact is None:
        raise _not_found(memory_id)
    typer.echo(artifact.id if quiet else f"Added {kind} doc {artifact.id} to {memory_id}")


@add_app.command("diagram")
def add_diagram(
    memory_id: MemoryIdArgument,
    mermaid: Annotated[
        Optional[str],
        typer.Argument(help="Mermaid source. Omit to read from --mermaid-file or stdin."),
    ] = None,
    component: Annotated[
        Optional[list[str]],
        typer.Option("--component", "-c", help="Component name. Repeatable."),
    ] = None,
    architecture: Annotated[
        str,
        typer.Option("--architecture", "-a", help="Architecture summary."),
    ] = "",
    mermaid_file: Annotated[
        Optional[Path],
        typer.Option("--mermaid-file", help="Read Mermaid source from file."),
    ] = None,
    db: DbOption = None,
    use_global: GlobalOption = False,
    quiet: QuietOption = False,
) -> None:
    """Set (replace) the architecture diagram."""
    source = _read_text(mermaid, mermaid_file, "diagram")
    with _open_manager(db, use_global) as manager:
        diagram = manager.set_architecture_diagram(memory_id, source, component or [], architecture)
    if diagram is None:
        raise _not_found(memory_id)
    if not quiet:
        typer.echo(f"Set architecture diagram for {memory_id}")


@app.command(help="Delete one memory, locally now and remotely in the background.")
def delete(
    memory_id: MemoryIdArgument,
    db: DbOption = None,
    use_global: GlobalOption = False,
    quiet: QuietOption = False,
) -> None:
    """Delete a memory."""
    with _open_manager(db, use_global) as manager:
        deleted = manager.delete(memory_id)
    if not deleted:
        raise _not_found(memory_id)
    if not quiet:
        typer.echo(f"Deleted {memory_id}")


CLEAR_HELP = """
Delete every memory visible to the current actor (including anonymous ones).

SAFETY:
  Asks for confirmation unless --yes/-y is given.
"""


@app.command(help=CLEAR_HELP)
def clear(
    yes: Annotated[
        bool,
        typer.Option("--yes", "-y", help="Skip confirmation prompt."),
    ] = False,
    db: DbOption = None,
    use_global: GlobalOption = False,
    quiet: QuietOption = False,
) -> None:
    """Delete all visible memories."""
    if not yes and not typer.confirm("Delete all memories?", default=False):
        typer.echo("Aborted.")
        raise typer.Exit(1)
    with _open_manager(db, use_global) as manager:
        count = manager.clear()
    if not quiet:
        typer.echo(f"Deleted {count} memories")


@app.command(help="Act as USER_ID: your memories sync to the remote store from now on.")
def login(
    user_id: Annotated[str, typer.Argument(help="Authenticated user id.")],
    db: DbOption = None,
    use_global: GlobalOption = False,
) -> None:
    """Set the current actor."""
    path = get_db_path(db, use_global=use_global)
    save_actor(path, user_id)
    # Opening the manager as the new actor schedules the first pull.
    with _open_manager(db, use_global):
        pass
    typer.echo(f"Logged in as {user_id}")


@app.command(help="Go back to anonymous, local-only use.")
def logout(
    db: DbOption = None,
    use_global: GlobalOption = False,
) -> None:
    """Clear the current actor."""
    save_actor(get_db_path(db, use_global=use_global), None)
    typer.echo("Logged out")


@app.command(help="Show the current actor.")
def whoami(
    db: DbOption = None,
    use_global: GlobalOption = False,
) -> None:
    """Print the current actor."""
    actor = load_actor(get_db_path(db, use_global=use_global))
    typer.echo(actor or "anonymous")


@app.command("sync", help="Pull remote memories and merge them now (foreground).")
def sync_command(
    db: DbOption = None,
    use_global: GlobalOption = False,
    output_json: JsonOption = False,
) -> None:
    """Run one pull-and-merge pass."""
    with _open_manager(db, use_global) as manager:
        if manager.sync.remote is None:
            typer.echo("Error: No remote store configured (set MEMSYNC_SUPABASE_URL and MEMSYNC_SUPABASE_KEY)", err=True)
            raise typer.Exit(1)
        if not manager.scope.is_authenticated:
            typer.echo("Error: Not logged in. Run 'memsync login USER_ID' first.", err=True)
            raise typer.Exit(1)
        try:
            report = manager.sync_now()
        except RemoteStoreError as e:
            typer.echo(f"Error: Sync failed: {e}", err=True)
            raise typer.Exit(1)

    if output_json:
        typer.echo(json.dumps({
            "owner_id": report.owner_id,
            "fetched": report.fetched,
            "inserted": list(report.inserted),
            "replaced": list(report.replaced),
            "kept": report.kept,
        }))
        return
    typer.echo(
        f"Fetched {report.fetched}: {len(report.inserted)} new, "
        f"{len(report.replaced)} updated, {report.kept} kept"
    )


@app.command(help="Show local store and sync status.")
def status(
    db: DbOption = None,
    use_global: GlobalOption = False,
    output_json: JsonOption = False,
) -> None:
    """Show status."""
    path = get_db_path(db, use_global=use_global)
    with _open_manager(db, use_global) as manager:
        visible = manager.scope.visible(manager.store.list_all())
        health = manager.health
        status_data = {
            "db_path": str(path),
            "actor": manager.actor,
            "authenticated": manager.scope.is_authenticated,
            "remote_configured": health.online,
            "memory_count": len(visible),
            "total_records": len(manager.store),
            "last_persist_error": str(manager.store.last_persist_error) if manager.store.last_persist_error else None,
            "degraded": health.degraded,
            "last_sync_error": health.last_error,
        }

    if output_json:
        typer.echo(json.dumps(status_data, indent=2))
        return

    typer.echo(f"Database: {path}")
    typer.echo(f"Actor: {status_data['actor']}")
    typer.echo(f"Memories: {status_data['memory_count']}")
    typer.echo(f"Remote: {'configured' if health.online else 'offline'}")
    if health.last_error:
        typer.echo(f"Last sync error: {health.last_error}")


@app.command("export", help="Export visible memories (in full) to a JSON file.")
def export_memories(
    output_file: Annotated[
        Path,
        typer.Argument(help="Path to write JSON export."),
    ],
    db: DbOption = None,
    use_global: GlobalOption = False,
) -> None:
    """Export memories to JSON."""
    with _open_manager(db, use_global) as manager:
        memories = manager.scope.visible(manager.store.list_all())
    data = [m.model_dump(mode="json") for m in memories]
    output_file.write_text(json.dumps(data, indent=2))
    typer.echo(f"Exported {len(memories)} memories to {output_file}")


IMPORT_HELP = """
Import memories from a JSON file written by 'memsync export'.

Records keep their ids and timestamps. An existing record with the same id
is replaced. Records owned by someone other than the current actor are
skipped.

EXAMPLE:
  memsync import backup.json
  memsync import backup.json --db ./other/.memsync/memory.db
"""


@app.command("import", help=IMPORT_HELP)
def import_memories(
    input_file: Annotated[
        Path,
        typer.Argument(help="Path to JSON file to import."),
    ],
    db: DbOption = None,
    use_global: GlobalOption = False,
    quiet: QuietOption = False,
) -> None:
    """Import memories from JSON."""
    if not input_file.exists():
        typer.echo(f"Error: File not found: {input_file}", err=True)
        raise typer.Exit(1)

    try:
        data = json.loads(input_file.read_text())
        if not isinstance(data, list):
            raise ValueError("expected a JSON array of memories")
        records = [Memory.model_validate(item) for item in data]
    except ValueError as e:
        # pydantic's ValidationError and json's JSONDecodeError are both ValueErrors
        typer.echo(f"Error: Invalid export file {input_file}: {e}", err=True)
        raise typer.Exit(1)

    with _open_manager(db, use_global) as manager:
        count = manager.import_records(records)

    if not quiet:
        skipped = len(records) - count
        suffix = f" ({skipped} skipped)" if skipped else ""
        typer.echo(f"Imported {count} memories from {input_file}{suffix}")


def main() -> None:
    """Entry point for the CLI."""
    app()


if __name__ == "__main__":
    main()
