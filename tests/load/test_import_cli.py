"""Tests for the import command line."""

from unittest.mock import Mock

import pytest

import load.cli
from enrich.clients.base import CatalogClient, CatalogSearchResult
from load.db import SQLiteAdapter
from load.models import ImportStatus
from load.store import ReadingStore


@pytest.fixture
def run_cli(monkeypatch, tmp_path):
    """Run the CLI against a database in tmp_path with the catalog offline."""
    client = Mock(spec=CatalogClient)
    client.name = "fake"
    client.search.return_value = CatalogSearchResult.unavailable("fake", "offline")
    monkeypatch.setattr("enrich.resolver.create_catalog_client", lambda: client)
    monkeypatch.setattr(load.cli, "setup_logging", lambda level, log_file=None: None)
    db_path = tmp_path / "reading.db"

    def run(*argv):
        monkeypatch.setattr("sys.argv", ["clippings-import", "--database", str(db_path), *argv])
        return load.cli.main()

    run.db_path = db_path
    return run


def sessions_in(db_path):
    with ReadingStore(SQLiteAdapter(db_path)) as store:
        return store.list_sessions()


class TestImportCommand:
    def test_import_file(self, run_cli, tmp_path, sample_export):
        """Test importing a clippings file."""
        export = tmp_path / "My Clippings.txt"
        export.write_text(sample_export, encoding="utf-8")

        assert run_cli("import", str(export)) == 0

        [session] = sessions_in(run_cli.db_path)
        assert session.status == ImportStatus.COMPLETED
        assert session.stats.notes_added == 3

    def test_missing_file(self, run_cli, tmp_path):
        """Test importing a missing file."""
        assert run_cli("import", str(tmp_path / "nope.txt")) == 1

    def test_not_a_clippings_file(self, run_cli, tmp_path):
        """Test importing a file that is not an export."""
        export = tmp_path / "notes.txt"
        export.write_text("shopping list", encoding="utf-8")

        assert run_cli("import", str(export)) == 1
        assert sessions_in(run_cli.db_path)[0].status == ImportStatus.FAILED


class TestSessionCommands:
    def test_sessions_and_rollback(self, run_cli, tmp_path, sample_export):
        """Test listing sessions and rolling one back."""
        export = tmp_path / "My Clippings.txt"
        export.write_text(sample_export, encoding="utf-8")
        run_cli("import", str(export))
        session_id = sessions_in(run_cli.db_path)[0].id

        assert run_cli("sessions", "--status", "completed") == 0
        assert run_cli("rollback", session_id) == 0
        assert sessions_in(run_cli.db_path)[0].status == ImportStatus.ROLLED_BACK
        assert run_cli("rollback", session_id) == 1

    def test_rollback_unknown_session(self, run_cli):
        """Test rolling back an unknown session."""
        assert run_cli("rollback", "missing") == 1

    def test_reviews_empty(self, run_cli):
        """Test listing reviews when there are none."""
        assert run_cli("reviews") == 0

    def test_resolve_unknown_review(self, run_cli):
        """Test resolving an unknown review item."""
        assert run_cli("resolve-review", "missing", "--action", "replace") == 1

    def test_reviews_print_brackets_as_written(self, run_cli, tmp_path, capsys):
        """Square brackets in titles and text are not read as console markup."""
        block = "Notes [draft] (A)\n- Your Highlight on location 15-16\n\n{}\n==========\n"
        first = tmp_path / "first.txt"
        first.write_text(block.format("[/x] one two three four five six seven eight nine"), encoding="utf-8")
        second = tmp_path / "second.txt"
        second.write_text(block.format("[/x] one two three four five six seven eight ten"), encoding="utf-8")
        run_cli("import", str(first))
        run_cli("import", str(second))
        capsys.readouterr()

        assert run_cli("reviews") == 0

        output = capsys.readouterr().out
        assert "Notes [draft]" in output
        assert "new: [/x] one two" in output
