"""Tests for t3_viewer.py::main() and logging setup."""

from __future__ import annotations

import logging
from pathlib import Path
from unittest.mock import patch

import pytest

from helpers import export_bytes, make_export, thread_record
from t3_viewer import configure_logging as real_configure_logging

MODULE = "t3_viewer"


@pytest.fixture(autouse=True)
def _no_logging_setup():
    with patch(f"{MODULE}.configure_logging") as mock_config:
        yield mock_config


class TestMainErrorHandling:
    """Verify main() exits with code 1 on file-related errors."""

    def test_missing_file_exits_1(self, tmp_path: Path, capsys):
        from t3_viewer import main

        with pytest.raises(SystemExit) as exc_info:
            main([str(tmp_path / "nonexistent.json")])
        assert exc_info.value.code == 1
        assert "File not found" in capsys.readouterr().err

    def test_invalid_export_exits_1(self, tmp_path: Path, capsys):
        from t3_viewer import main

        path = tmp_path / "corrupt.json"
        path.write_text("{not json", encoding="utf-8")
        with pytest.raises(SystemExit) as exc_info:
            main([str(path)])
        assert exc_info.value.code == 1
        assert "not a valid t3.chat export" in capsys.readouterr().err

    def test_unknown_view_rejected(self, export_file: Path):
        from t3_viewer import main

        with pytest.raises(SystemExit) as exc_info:
            main([str(export_file), "--view", "weekly"])
        assert exc_info.value.code == 2


class TestMainSuccessfulRun:
    def test_prints_all_views(self, export_file: Path, capsys):
        from t3_viewer import main

        main([str(export_file)])
        out = capsys.readouterr().out
        assert "Showing: Message Volume by Day of Week" in out
        assert "Showing: Message Volume Last 30 Days" in out
        assert "Showing: Message Volume Last 12 Months" in out
        assert "Showing: Message Volume by Time of Day" in out
        assert "No data available for this chart type." in out

    def test_single_view(self, export_file: Path, capsys):
        from t3_viewer import main

        main([str(export_file), "--view", "time-of-day"])
        out = capsys.readouterr().out
        assert "Time of Day" in out
        assert "Day of Week" not in out
        assert "10:00" in out

    def test_threads_listed(self, tmp_path: Path, capsys):
        from t3_viewer import main

        path = tmp_path / "export.json"
        path.write_bytes(export_bytes(make_export(threads=[thread_record(title="Planning trip")])))
        main([str(path), "--threads", "--view", "day-of-week"])
        out = capsys.readouterr().out
        assert "Threads (1)" in out
        assert "Planning trip" in out

    def test_saves_pngs(self, export_file: Path, tmp_path: Path):
        from t3_viewer import main

        out_dir = tmp_path / "charts"
        main([str(export_file), "--output-dir", str(out_dir)])
        saved = sorted(p.name for p in out_dir.glob("*.png"))
        assert saved == [
            "day-of-week.png", "last-12-months.png", "last-30-days.png", "time-of-day.png",
        ]

    def test_log_level_passed_through(self, export_file: Path, _no_logging_setup):
        from t3_viewer import main

        main([str(export_file), "--view", "day-of-week", "--log-level", "debug"])
        _no_logging_setup.assert_called_once_with("debug")


class TestConfigureLogging:
    def test_explicit_level(self):
        with patch.object(logging, "basicConfig") as basic:
            real_configure_logging("warning")
        assert basic.call_args.kwargs["level"] == logging.WARNING
        assert basic.call_args.kwargs["force"] is True

    def test_env_level(self, monkeypatch):
        monkeypatch.setenv("T3_VIEWER_LOG_LEVEL", "debug")
        with patch.object(logging, "basicConfig") as basic:
            real_configure_logging()
        assert basic.call_args.kwargs["level"] == logging.DEBUG

    def test_default_and_unknown_level(self, monkeypatch):
        monkeypatch.delenv("T3_VIEWER_LOG_LEVEL", raising=False)
        with patch.object(logging, "basicConfig") as basic:
            real_configure_logging()
            real_configure_logging("chatty")
        assert [c.kwargs["level"] for c in basic.call_args_list] == [logging.INFO, logging.INFO]

    def test_format_has_file_and_line(self):
        with patch.object(logging, "basicConfig") as basic:
            real_configure_logging("info")
        fmt = basic.call_args.kwargs["format"]
        assert "%(filename)s" in fmt
        assert "%(lineno)d" in fmt
        assert "%(asctime)s" not in fmt
