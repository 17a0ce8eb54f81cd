"""Tests for logger setup and the console helpers used by the CLIs."""

import logging

import pytest
from rich.console import Console
from rich.logging import RichHandler

from common import logger as logger_module
from common.logger import get_logger, print_counts, setup_logging


@pytest.fixture
def recorded_console(monkeypatch):
    console = Console(record=True, width=80)
    monkeypatch.setattr(logger_module, "console", console)
    return console


@pytest.fixture
def restore_root():
    root = logging.getLogger()
    saved_handlers, saved_level = root.handlers[:], root.level
    yield root
    for handler in root.handlers[:]:
        if handler not in saved_handlers:
            root.removeHandler(handler)
            handler.close()
    root.setLevel(saved_level)


class TestGetLogger:
    def test_named_logger_with_one_rich_handler(self):
        """Test a named logger gets exactly one rich handler."""
        first = get_logger("clippings.test.handler")
        second = get_logger("clippings.test.handler")

        assert first is second
        assert first.name == "clippings.test.handler"
        assert len(first.handlers) == 1
        assert isinstance(first.handlers[0], RichHandler)
        assert first.propagate

    def test_explicit_level_beats_env(self, monkeypatch):
        """Test an explicit level wins over LOG_LEVEL."""
        monkeypatch.setenv("LOG_LEVEL", "ERROR")
        assert get_logger("clippings.test.explicit", level="debug").level == logging.DEBUG

    def test_env_level(self, monkeypatch):
        """Test the level comes from LOG_LEVEL."""
        monkeypatch.setenv("LOG_LEVEL", "warning")
        assert get_logger("clippings.test.env_level").level == logging.WARNING

    def test_default_info(self, monkeypatch):
        """Test the level defaults to INFO."""
        monkeypatch.delenv("LOG_LEVEL", raising=False)
        assert get_logger("clippings.test.default").level == logging.INFO

    def test_records_reach_caplog(self, caplog):
        """Test records propagate to caplog."""
        log = get_logger("clippings.test.caplog", level="INFO")

        with caplog.at_level(logging.DEBUG):
            log.debug("dedup index built")
            log.info("Parsed 3 entries")

        assert "Parsed 3 entries" in caplog.text
        assert "dedup index built" not in caplog.text


class TestSetupLogging:
    def test_rich_and_file_handlers(self, monkeypatch, tmp_path, restore_root):
        """Test setup with console and file handlers."""
        monkeypatch.delenv("LOG_LEVEL", raising=False)
        log_file = tmp_path / "import.log"

        setup_logging("DEBUG", log_file=str(log_file))

        assert restore_root.level == logging.DEBUG
        assert [type(h) for h in restore_root.handlers] == [RichHandler, logging.FileHandler]
        logging.getLogger("clippings.test.file").warning("Import session failed")
        for handler in restore_root.handlers:
            handler.flush()
        line = log_file.read_text(encoding="utf-8").strip()
        assert line.endswith("clippings.test.file - WARNING - Import session failed")

    def test_env_overrides_argument(self, monkeypatch, restore_root):
        """Test LOG_LEVEL overrides the level argument."""
        monkeypatch.setenv("LOG_LEVEL", "error")
        setup_logging("DEBUG")
        assert restore_root.level == logging.ERROR

    def test_quiets_http_libraries(self, monkeypatch, restore_root):
        """Test HTTP library loggers are quietened."""
        monkeypatch.delenv("LOG_LEVEL", raising=False)
        setup_logging("DEBUG")
        assert logging.getLogger("urllib3").level == logging.WARNING


class TestConsoleHelpers:
    def test_print_counts(self, recorded_console):
        """Test printing a table of counts."""
        print_counts("Import", {"notes_added": 3, "notes_skipped": 1})

        output = recorded_console.export_text()
        assert "Import" in output
        assert "notes added" in output
        assert "notes skipped" in output
        assert "3" in output

    def test_success_and_warning(self, recorded_console):
        """Test success and warning lines."""
        logger_module.success("Import complete")
        logger_module.warning("2 entries need review")

        output = recorded_console.export_text()
        assert "✓ Import complete" in output
        assert "⚠ 2 entries need review" in output

    def test_error_goes_to_stderr(self, capsys):
        """Test errors are printed to stderr."""
        logger_module.error("File not found: x.txt")

        captured = capsys.readouterr()
        assert "File not found: x.txt" in captured.err
        assert captured.out == ""

    def test_bracketed_text_is_printed_as_is(self, recorded_console):
        """Square brackets in book titles are text, not console markup."""
        logger_module.warning("Foo [z-lib.org] [/x] needs review")
        print_counts("Import of [bold]x[/bold].txt", {"notes_added": "[red]3"})

        output = recorded_console.export_text()
        assert "Foo [z-lib.org] [/x] needs review" in output
        assert "[bold]x[/bold].txt" in output
        assert "[red]3" in output
