"""Tests for the activity log sinks (log file + console)."""

from __future__ import annotations

import datetime as dt
import io
import logging
from pathlib import Path

from replica_sync import (
    Ansi,
    ColorizingFormatter,
    LoggedEvents,
    Operation,
    SyncEvent,
    log_issue,
    setup_activity_log,
)

WHEN = dt.datetime(2026, 3, 4, 5, 6, 7)


def _event(operation: Operation, path: str, is_dir: bool = False) -> SyncEvent:
    return SyncEvent(operation, Path(path), WHEN, is_dir)


class TestEventLine:
    def test_line_format(self) -> None:
        assert _event(Operation.COPY, "/src/a.txt").line() == "Copy of /src/a.txt 2026-03-04 05:06:07"
        assert _event(Operation.REMOVE, "/dst/a.txt").line().startswith("Removal of ")
        assert _event(Operation.CREATE, "/dst/sub", is_dir=True).line().startswith("Creation of ")


class TestSinks:
    def test_events_go_to_file_and_console(self, tmp_path: Path) -> None:
        log_path = tmp_path / "logs" / "sync.txt"
        console = io.StringIO()
        logger = setup_activity_log(log_path, stream=console)

        LoggedEvents(logger).extend([_event(Operation.COPY, "/src/a.txt"), _event(Operation.REMOVE, "/dst/b.txt")])

        lines = log_path.read_text(encoding="utf-8").splitlines()
        assert lines == [
            "Copy of /src/a.txt 2026-03-04 05:06:07",
            "Removal of /dst/b.txt 2026-03-04 05:06:07",
        ]
        assert "Copy of /src/a.txt 2026-03-04 05:06:07" in console.getvalue()

    def test_status_messages_stay_on_console(self, tmp_path: Path) -> None:
        log_path = tmp_path / "sync.txt"
        console = io.StringIO()
        logger = setup_activity_log(log_path, stream=console)

        logger.info("Pass done (bootstrap): %d change(s)", 0)

        assert log_path.read_text(encoding="utf-8") == ""
        assert "Logging to:" in console.getvalue()
        assert "Pass done" in console.getvalue()

    def test_warnings_are_persisted(self, tmp_path: Path) -> None:
        log_path = tmp_path / "sync.txt"
        logger = setup_activity_log(log_path, stream=io.StringIO())

        log_issue(logger, "Could not delete the file", path=Path("/dst/x"))
        log_issue(logger, "Could not copy", level=logging.ERROR)

        lines = log_path.read_text(encoding="utf-8").splitlines()
        assert lines[0].startswith("WARNING! Could not delete the file ")
        assert lines[1].startswith("ERROR! Could not copy ")

    def test_appends_across_restarts(self, tmp_path: Path) -> None:
        log_path = tmp_path / "sync.txt"
        log_path.write_text("Copy of /old 2020-01-01 00:00:00\n", encoding="utf-8")

        logger = setup_activity_log(log_path, stream=io.StringIO())
        LoggedEvents(logger).append(_event(Operation.COPY, "/src/a.txt"))
        setup_activity_log(log_path, stream=io.StringIO())

        assert len(log_path.read_text(encoding="utf-8").splitlines()) == 2

    def test_events_are_written_as_they_are_recorded(self, tmp_path: Path) -> None:
        log_path = tmp_path / "sync.txt"
        logger = setup_activity_log(log_path, stream=io.StringIO())
        events = LoggedEvents(logger)

        events.append(_event(Operation.COPY, "/src/a.txt"))
        written = log_path.read_text(encoding="utf-8").splitlines()

        assert written == ["Copy of /src/a.txt 2026-03-04 05:06:07"]
        assert list(events) == [_event(Operation.COPY, "/src/a.txt")]

    def test_warning_lands_between_surrounding_events(self, tmp_path: Path) -> None:
        log_path = tmp_path / "sync.txt"
        logger = setup_activity_log(log_path, stream=io.StringIO())
        events = LoggedEvents(logger)

        events.append(_event(Operation.REMOVE, "/dst/a.txt"))
        log_issue(logger, "Could not delete the file", path=Path("/dst/b.txt"))
        events.append(_event(Operation.COPY, "/src/c.txt"))

        lines = log_path.read_text(encoding="utf-8").splitlines()
        assert lines[0].startswith("Removal of /dst/a.txt")
        assert lines[1].startswith("WARNING! Could not delete the file")
        assert lines[2].startswith("Copy of /src/c.txt")

    def test_plain_console_when_not_a_tty(self, tmp_path: Path) -> None:
        console = io.StringIO()
        logger = setup_activity_log(tmp_path / "sync.txt", stream=console)

        LoggedEvents(logger).append(_event(Operation.COPY, "/src/a.txt"))

        assert "\x1b[" not in console.getvalue()


class TestColorizingFormatter:
    def _record(self, msg: str, level: int = logging.INFO, **extra) -> logging.LogRecord:
        record = logging.LogRecord("replica_sync", level, __file__, 1, msg, None, None)
        for key, value in extra.items():
            setattr(record, key, value)
        return record

    def test_operation_and_path_colored(self) -> None:
        fmt = ColorizingFormatter(use_color=True)
        record = self._record("Copy of /src/a.txt t", operation="Copy", path_text="/src/a.txt", is_dir=False)

        out = fmt.format(record)

        assert out.startswith(f"{Ansi.GREEN}Copy{Ansi.RESET}")
        assert f"{Ansi.WHITE}/src/a.txt{Ansi.RESET}" in out

    def test_directories_use_folder_color(self) -> None:
        fmt = ColorizingFormatter(use_color=True)
        record = self._record("Creation of /dst/sub t", operation="Creation", path_text="/dst/sub", is_dir=True)
        assert f"{Ansi.LIGHT_BROWN}/dst/sub{Ansi.RESET}" in fmt.format(record)

    def test_errors_are_red(self) -> None:
        fmt = ColorizingFormatter(use_color=True)
        out = fmt.format(self._record("boom", level=logging.ERROR))
        assert out.startswith(Ansi.RED) and out.endswith(Ansi.RESET)
        assert "ERROR! boom" in out
