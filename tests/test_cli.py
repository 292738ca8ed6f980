"""CLI integration tests for memsync-cli.

These tests verify actual behavior, not just "something happened".
Every test must be able to FAIL for a specific reason.
"""

import json
from pathlib import Path

import pytest
from typer.testing import CliRunner

from memsync_cli.cli import app

from conftest import make_memory


runner = CliRunner()


def save_quiet(db: str, *args: str) -> str:
    """Save a memory and return its id."""
    result = runner.invoke(app, ["save", *args, "--quiet", "--db", db])
    assert result.exit_code == 0, result.output
    return result.stdout.strip()


def list_json(db: str, *args: str) -> list[dict]:
    result = runner.invoke(app, ["list", "--json", *args, "--db", db])
    assert result.exit_code == 0, result.output
    return json.loads(result.stdout)


class TestSave:
    """Tests for the save command."""

    def test_saves_and_lists_with_derived_tags(self, temp_db_path: str) -> None:
        result = runner.invoke(app, [
            "save", "https://github.com/acme/widgets",
            "--tech", "React",
            "--tech", "Vite",
            "--language", "TypeScript",
            "--description", "Widget factory",
            "--db", temp_db_path,
        ])
        assert result.exit_code == 0
        assert "Saved (id=memory_" in result.stdout

        memories = list_json(temp_db_path)
        assert len(memories) == 1
        memory = memories[0]
        assert memory["display_name"] == "widgets"
        assert memory["tech_tags"] == ["react", "vite", "typescript"]
        assert memory["description"] == "Widget factory"
        assert memory["is_favorite"] is False
        assert memory["conversation_count"] == 0
        assert memory["owner_id"] == "local"

    def test_json_output_returns_id(self, temp_db_path: str) -> None:
        result = runner.invoke(app, ["save", "repoX", "--name", "Repo X", "--json", "--db", temp_db_path])
        assert result.exit_code == 0

        data = json.loads(result.stdout)
        assert data["id"].startswith("memory_")
        assert list_json(temp_db_path)[0]["id"] == data["id"]

    def test_mentions_previous_analysis_of_same_source(self, temp_db_path: str) -> None:
        first = save_quiet(temp_db_path, "repoX")
        result = runner.invoke(app, ["save", "repoX", "--db", temp_db_path])

        assert result.exit_code == 0
        assert f"Previously analysed as {first}" in result.stdout
        assert len(list_json(temp_db_path)) == 2

    def test_survives_separate_invocations(self, temp_db_path: str) -> None:
        memory_id = save_quiet(temp_db_path, "repoX", "--notes", "keep me")

        result = runner.invoke(app, ["show", memory_id, "--json", "--db", temp_db_path])

        assert result.exit_code == 0
        assert json.loads(result.stdout)["notes"] == "keep me"


class TestShow:
    def test_show_marks_accessed(self, temp_db_path: str) -> None:
        memory_id = save_quiet(temp_db_path, "repoX")
        before = list_json(temp_db_path)[0]["last_touched_at"]

        result = runner.invoke(app, ["show", memory_id, "--json", "--db", temp_db_path])
        assert json.loads(result.stdout)["id"] == memory_id

        after = list_json(temp_db_path)[0]["last_touched_at"]
        assert after > before

    def test_human_output(self, temp_db_path: str) -> None:
        memory_id = save_quiet(temp_db_path, "https://github.com/acme/widgets", "--tech", "python")
        result = runner.invoke(app, ["show", memory_id, "--db", temp_db_path])

        assert result.exit_code == 0
        assert "widgets" in result.stdout
        assert "Tags: python" in result.stdout

    def test_unknown_id(self, temp_db_path: str) -> None:
        result = runner.invoke(app, ["show", "memory_0_nope", "--db", temp_db_path])
        assert result.exit_code == 1
        assert "not found" in result.output.lower()


class TestListAndSearch:
    @pytest.fixture
    def seeded_db(self, temp_db_path: str) -> str:
        """Three memories, the middle one a favorite."""
        save_quiet(temp_db_path, "repo-auth", "--description", "JWT auth service", "--tech", "fastapi")
        fav = save_quiet(temp_db_path, "repo-ui", "--description", "React dashboard", "--tech", "react")
        save_quiet(temp_db_path, "repo-etl", "--description", "Nightly batch jobs")
        runner.invoke(app, ["favorite", fav, "--db", temp_db_path])
        return temp_db_path

    def test_list_most_recent_first(self, seeded_db: str) -> None:
        names = [m["display_name"] for m in list_json(seeded_db)]
        assert names == ["repo-ui", "repo-etl", "repo-auth"]

    def test_list_favorites_and_limit(self, seeded_db: str) -> None:
        assert [m["display_name"] for m in list_json(seeded_db, "--favorites")] == ["repo-ui"]
        assert len(list_json(seeded_db, "--limit", "2")) == 2

    def test_list_table_output(self, seeded_db: str) -> None:
        result = runner.invoke(app, ["list", "--db", seeded_db])
        assert result.exit_code == 0
        assert "No memories found." not in result.stdout
        assert "★" in result.stdout

    def test_list_empty(self, temp_db_path: str) -> None:
        result = runner.invoke(app, ["list", "--db", temp_db_path])
        assert result.exit_code == 0
        assert "No memories found." in result.stdout

    def test_search_is_case_insensitive(self, seeded_db: str) -> None:
        result = runner.invoke(app, ["search", "jwt", "--json", "--db", seeded_db])
        assert result.exit_code == 0
        assert [m["display_name"] for m in json.loads(result.stdout)] == ["repo-auth"]

    def test_search_matches_tags(self, seeded_db: str) -> None:
        result = runner.invoke(app, ["search", "REACT", "--quiet", "--db", seeded_db])
        assert len(result.stdout.split()) == 1

    def test_search_no_results(self, seeded_db: str) -> None:
        result = runner.invoke(app, ["search", "kubernetes", "--json", "--db", seeded_db])
        assert json.loads(result.stdout) == []


class TestUpdates:
    def test_favorite_toggles(self, temp_db_path: str) -> None:
        memory_id = save_quiet(temp_db_path, "repoX")

        first = runner.invoke(app, ["favorite", memory_id, "--db", temp_db_path])
        assert first.stdout.startswith("Favorited")
        assert list_json(temp_db_path)[0]["is_favorite"] is True

        second = runner.invoke(app, ["favorite", memory_id, "--db", temp_db_path])
        assert second.stdout.startswith("Unfavorited")
        assert list_json(temp_db_path)[0]["is_favorite"] is False

    def test_note_from_argument_and_file(self, temp_db_path: str, tmp_path: Path) -> None:
        memory_id = save_quiet(temp_db_path, "repoX")

        runner.invoke(app, ["note", memory_id, "first", "--db", temp_db_path])
        assert list_json(temp_db_path)[0]["notes"] == "first"

        notes_file = tmp_path / "notes.md"
        notes_file.write_text("from a file\nline 2")
        result = runner.invoke(app, ["note", memory_id, "--file", str(notes_file), "--db", temp_db_path])
        assert result.exit_code == 0
        assert list_json(temp_db_path)[0]["notes"] == "from a file\nline 2"

    def test_note_missing_file(self, temp_db_path: str) -> None:
        memory_id = save_quiet(temp_db_path, "repoX")
        result = runner.invoke(app, ["note", memory_id, "--file", "/nonexistent/notes.md", "--db", temp_db_path])
        assert result.exit_code == 1
        assert "not found" in result.output.lower()

    def test_favorite_unknown_id(self, temp_db_path: str) -> None:
        result = runner.invoke(app, ["favorite", "memory_0_nope", "--db", temp_db_path])
        assert result.exit_code == 1


class TestAdd:
    """Tests for appending generated content."""

    def test_conversations_append_in_order(self, temp_db_path: str) -> None:
        memory_id = save_quiet(temp_db_path, "repoX")
        for i in range(3):
            result = runner.invoke(app, [
                "add", "conversation", memory_id, f"question {i}", f"answer {i}",
                "--file-name", "app.py",
                "--db", temp_db_path,
            ])
            assert result.exit_code == 0

        shown = json.loads(runner.invoke(app, ["show", memory_id, "--json", "--db", temp_db_path]).stdout)
        assert [c["prompt"] for c in shown["conversations"]] == ["question 0", "question 1", "question 2"]
        assert shown["conversations"][0]["context"]["file_name"] == "app.py"

    def test_invalid_conversation_kind(self, temp_db_path: str) -> None:
        memory_id = save_quiet(temp_db_path, "repoX")
        result = runner.invoke(app, [
            "add", "conversation", memory_id, "q", "a", "--kind", "gossip", "--db", temp_db_path,
        ])
        assert result.exit_code == 1

    def test_test_doc_and_diagram(self, temp_db_path: str) -> None:
        memory_id = save_quiet(temp_db_path, "repoX")

        assert runner.invoke(app, [
            "add", "test", memory_id, "def test_main(): assert main()",
            "--file", "app.py", "--function", "main",
            "--db", temp_db_path,
        ]).exit_code == 0
        assert runner.invoke(app, ["add", "doc", memory_id, "readme", "# Repo X", "--db", temp_db_path]).exit_code == 0
        assert runner.invoke(app, [
            "add", "diagram", memory_id, "graph TD; api-->db",
            "--component", "api", "--component", "db",
            "--architecture", "layered",
            "--db", temp_db_path,
        ]).exit_code == 0

        shown = json.loads(runner.invoke(app, ["show", memory_id, "--json", "--db", temp_db_path]).stdout)
        assert shown["test_artifacts"][0]["framework"] == "pytest"
        assert shown["test_artifacts"][0]["target_function"] == "main"
        assert shown["doc_artifacts"][0]["kind"] == "readme"
        assert shown["architecture_diagram"]["components"] == ["api", "db"]

    def test_add_to_unknown_id(self, temp_db_path: str) -> None:
        result = runner.invoke(app, ["add", "doc", "memory_0_nope", "readme", "x", "--db", temp_db_path])
        assert result.exit_code == 1
        assert "not found" in result.output.lower()


class TestDelete:
    def test_delete_one(self, temp_db_path: str) -> None:
        keep = save_quiet(temp_db_path, "keep")
        drop = save_quiet(temp_db_path, "drop")

        result = runner.invoke(app, ["delete", drop, "--db", temp_db_path])

        assert result.exit_code == 0
        assert f"Deleted {drop}" in result.stdout
        assert [m["id"] for m in list_json(temp_db_path)] == [keep]

    def test_delete_unknown(self, temp_db_path: str) -> None:
        result = runner.invoke(app, ["delete", "memory_0_nope", "--db", temp_db_path])
        assert result.exit_code == 1

    def test_clear_requires_confirmation(self, temp_db_path: str) -> None:
        save_quiet(temp_db_path, "repoX")
        result = runner.invoke(app, ["clear", "--db", temp_db_path], input="n\n")
        assert result.exit_code == 1
        assert len(list_json(temp_db_path)) == 1

    def test_clear_twice(self, temp_db_path: str) -> None:
        save_quiet(temp_db_path, "one")
        save_quiet(temp_db_path, "two")

        first = runner.invoke(app, ["clear", "--yes", "--db", temp_db_path])
        assert "Deleted 2 memories" in first.stdout
        second = runner.invoke(app, ["clear", "--yes", "--db", temp_db_path])
        assert "Deleted 0 memories" in second.stdout
        assert list_json(temp_db_path) == []


class TestSession:
    """login / logout / whoami and scoping across invocations."""

    def test_whoami_defaults_to_anonymous(self, temp_db_path: str) -> None:
        result = runner.invoke(app, ["whoami", "--db", temp_db_path])
        assert result.stdout.strip() == "anonymous"

    def test_login_logout(self, temp_db_path: str) -> None:
        assert runner.invoke(app, ["login", "user-42", "--db", temp_db_path]).exit_code == 0
        assert runner.invoke(app, ["whoami", "--db", temp_db_path]).stdout.strip() == "user-42"

        assert runner.invoke(app, ["logout", "--db", temp_db_path]).exit_code == 0
        assert runner.invoke(app, ["whoami", "--db", temp_db_path]).stdout.strip() == "anonymous"

    def test_records_are_scoped_to_the_actor(self, temp_db_path: str) -> None:
        anonymous = save_quiet(temp_db_path, "shared")
        runner.invoke(app, ["login", "alice", "--db", temp_db_path])
        alices = save_quiet(temp_db_path, "alices")

        runner.invoke(app, ["login", "bob", "--db", temp_db_path])
        assert [m["id"] for m in list_json(temp_db_path)] == [anonymous]
        result = runner.invoke(app, ["show", alices, "--db", temp_db_path])
        assert result.exit_code == 1

        runner.invoke(app, ["login", "alice", "--db", temp_db_path])
        ids = {m["id"] for m in list_json(temp_db_path)}
        assert ids == {anonymous, alices}


class TestSyncAndStatus:
    def test_sync_without_remote(self, temp_db_path: str) -> None:
        runner.invoke(app, ["login", "user-42", "--db", temp_db_path])
        result = runner.invoke(app, ["sync", "--db", temp_db_path])
        assert result.exit_code == 1
        assert "no remote store configured" in result.output.lower()

    def test_sync_requires_login(self, temp_db_path: str, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("MEMSYNC_SUPABASE_URL", "https://demo.supabase.co")
        monkeypatch.setenv("MEMSYNC_SUPABASE_KEY", "anon")
        result = runner.invoke(app, ["sync", "--db", temp_db_path])
        assert result.exit_code == 1
        assert "not logged in" in result.output.lower()

    def test_bad_setting_is_reported(self, temp_db_path: str, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("MEMSYNC_MAX_WORKERS", "lots")
        result = runner.invoke(app, ["list", "--db", temp_db_path])
        assert result.exit_code == 1
        assert "MEMSYNC_MAX_WORKERS" in result.output

    def test_status_json(self, temp_db_path: str) -> None:
        save_quiet(temp_db_path, "repoX")
        result = runner.invoke(app, ["status", "--json", "--db", temp_db_path])
        assert result.exit_code == 0

        status = json.loads(result.stdout)
        assert status["memory_count"] == 1
        assert status["actor"] == "local"
        assert status["authenticated"] is False
        assert status["remote_configured"] is False
        assert status["last_persist_error"] is None


class TestExportImport:
    def test_export_writes_full_records(self, temp_db_path: str, tmp_path: Path) -> None:
        memory_id = save_quiet(temp_db_path, "repoX")
        runner.invoke(app, ["add", "conversation", memory_id, "q", "a", "--db", temp_db_path])
        out = tmp_path / "export.json"

        result = runner.invoke(app, ["export", str(out), "--db", temp_db_path])

        assert result.exit_code == 0
        data = json.loads(out.read_text())
        assert data[0]["id"] == memory_id
        assert data[0]["conversations"][0]["response"] == "a"

    def test_import_restores_an_export_into_another_db(self, temp_db_path: str, tmp_path: Path) -> None:
        memory_id = save_quiet(temp_db_path, "repoX", "--notes", "keep me")
        out = tmp_path / "export.json"
        runner.invoke(app, ["export", str(out), "--db", temp_db_path])
        other_db = str(tmp_path / "other.db")

        result = runner.invoke(app, ["import", str(out), "--db", other_db])

        assert result.exit_code == 0, result.output
        assert "Imported 1 memories" in result.stdout
        memories = list_json(other_db)
        assert [m["id"] for m in memories] == [memory_id]
        shown = runner.invoke(app, ["show", memory_id, "--json", "--db", other_db])
        assert json.loads(shown.stdout)["notes"] == "keep me"

    def test_import_skips_records_of_other_owners(self, temp_db_path: str, tmp_path: Path) -> None:
        src = tmp_path / "export.json"
        src.write_text(json.dumps([
            make_memory("mine").model_dump(mode="json"),
            make_memory("theirs", owner_id="bob").model_dump(mode="json"),
        ]))

        result = runner.invoke(app, ["import", str(src), "--db", temp_db_path])

        assert result.exit_code == 0, result.output
        assert "Imported 1 memories" in result.stdout
        assert "1 skipped" in result.stdout
        assert [m["id"] for m in list_json(temp_db_path)] == ["mine"]

    def test_import_missing_file(self, temp_db_path: str, tmp_path: Path) -> None:
        result = runner.invoke(app, ["import", str(tmp_path / "nope.json"), "--db", temp_db_path])
        assert result.exit_code == 1
        assert "not found" in result.output.lower()

    @pytest.mark.parametrize("body", ["{not json", '{"id": "m1"}', '[{"id": "m1"}]'])
    def test_import_rejects_malformed_files(self, temp_db_path: str, tmp_path: Path, body: str) -> None:
        src = tmp_path / "bad.json"
        src.write_text(body)
        result = runner.invoke(app, ["import", str(src), "--db", temp_db_path])
        assert result.exit_code == 1
        assert "invalid export file" in result.output.lower()
        assert list_json(temp_db_path) == []
