"""Tests for output formatting module."""

import json
from pathlib import Path

from rich.console import Console

from obs_plugin_manager.cli.output import (
    Column,
    format_file_size,
    print_json,
    print_result,
    print_table,
)


def make_console() -> Console:
    return Console(record=True, width=120, force_terminal=False)


class TestPrintJson:
    """Test print_json."""

    def test_paths_are_stringified(self) -> None:
        console = make_console()
        print_json({"path": Path("/tmp/backup.zip"), "count": 2}, console_instance=console)

        data = json.loads(console.export_text())
        assert data == {"path": "/tmp/backup.zip", "count": 2}


class TestPrintTable:
    """Test print_table."""

    def test_rows_and_booleans(self) -> None:
        console = make_console()
        print_table(
            [{"id": "obs-websocket", "valid": True, "note": None}],
            [Column("id", "ID", "cyan"), Column("valid", "Valid"), Column("note", "Note")],
            title="Plugins",
            console_instance=console,
        )

        text = console.export_text()
        assert "Plugins" in text
        assert "obs-websocket" in text
        assert "ID" in text
        assert "yes" in text

    def test_missing_key_is_blank(self) -> None:
        console = make_console()
        print_table([{"id": "a"}], [Column("id", "ID"), Column("size", "Size", justify="right")], console_instance=console)
        assert "None" not in console.export_text()


class TestPrintResult:
    """Test print_result."""

    def test_success_with_details(self) -> None:
        console = make_console()
        print_result(True, "Installed", {"Backup": "/b.zip", "Release": None}, console_instance=console)

        text = console.export_text()
        assert "✓ Installed" in text
        assert "/b.zip" in text
        assert "Release" not in text

    def test_failure(self) -> None:
        console = make_console()
        print_result(False, "Failed", console_instance=console)
        assert "✗ Failed" in console.export_text()


class TestFormatFileSize:
    """Test format_file_size."""

    def test_bytes(self) -> None:
        assert format_file_size(512) == "512 B"

    def test_kilobytes(self) -> None:
        assert format_file_size(1024) == "1.00 KB"

    def test_megabytes(self) -> None:
        assert format_file_size(5 * 1024 * 1024) == "5.00 MB"

    def test_gigabytes(self) -> None:
        assert format_file_size(2 * 1024 ** 3) == "2.00 GB"
