# /replica_sync.py
"""
Replica Sync (no UI)
- Periodically mirrors a source folder into a replica folder (one-way, source wins).
- Full mirror on startup, then incremental passes at a fixed interval (HH:MM:SS).
- Change detection by modification time since the last pass; opt-in MD5 checksum mode.
- Every Creation / Copy / Removal is appended to a plain .txt log and echoed to the console:
  - Creation light brown
  - Copy green
  - Removal orange
  - warnings orange, errors red
- Collisions during the startup mirror follow --on-collision (prompt, overwrite, keep).
- Delete failures (permissions / locks) are warned about and left in place.
- Copy / create failures follow --on-copy-error (skip, abort-pass, exit).
- Remembers last inputs across restarts via ~/.replica_sync/config.json
- Optional gitignore-style exclusions (--exclude, repeatable).

Usage
  pip install pathspec colorama
  python replica_sync.py
  python replica_sync.py "/src" "/dst" sync_log.txt 00:05:00
  python replica_sync.py "/src" "/dst" sync_log.txt 00:00:30 --on-collision overwrite --exclude "*.tmp"
"""

from __future__ import annotations

import argparse
import dataclasses
import datetime as dt
import enum
import errno
import hashlib
import json
import logging
import os
import re
import shutil
import sys
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Optional, Sequence

from colorama import just_fix_windows_console
from pathspec import PathSpec

APP_DIR = Path.home() / ".replica_sync"
CONFIG_PATH = APP_DIR / "config.json"

LOGGER_NAME = "replica_sync"
TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"
INTERVAL_PATTERN = re.compile(r"^\d{2}:\d{2}:\d{2}$")
LOG_SUFFIX = ".txt"

if os.name == "nt":
    INVALID_PATH_CHARS = frozenset('<>"|?*') | frozenset(chr(c) for c in range(32))
else:
    INVALID_PATH_CHARS = frozenset("\x00")


class Operation(enum.Enum):
    CREATE = "Creation"
    COPY = "Copy"
    REMOVE = "Removal"


class CollisionPolicy(enum.Enum):
    PROMPT = "prompt"
    OVERWRITE = "overwrite"
    KEEP = "keep"


class CopyErrorPolicy(enum.Enum):
    SKIP = "skip"
    ABORT_PASS = "abort-pass"
    EXIT = "exit"


class ChangeDetection(enum.Enum):
    MTIME = "mtime"
    CHECKSUM = "checksum"


@dataclass(frozen=True)
class SyncEvent:
    operation: Operation
    path: Path
    timestamp: dt.datetime
    is_dir: bool = False

    def line(self) -> str:
        return f"{self.operation.value} of {self.path} {self.timestamp.strftime(TIMESTAMP_FORMAT)}"


class PassAborted(Exception):
    """
    Raised when a copy or create fails and the error policy stops the pass.
    `events` holds the mutations that were already applied before the failure.
    """

    def __init__(self, path: Path, error: BaseException):
        super().__init__(f"{path} | {error}")
        self.path = path
        self.error = error
        self.events: list[SyncEvent] = []


# -------------------------
# Console styling
# -------------------------

class Ansi:
    RESET = "\x1b[0m"
    RED = "\x1b[31m"
    GREEN = "\x1b[32m"
    ORANGE = "\x1b[38;5;208m"
    WHITE = "\x1b[97m"
    LIGHT_BROWN = "\x1b[33m"


OPERATION_COLORS = {
    Operation.CREATE.value: Ansi.LIGHT_BROWN,
    Operation.COPY.value: Ansi.GREEN,
    Operation.REMOVE.value: Ansi.ORANGE,
}


def _supports_color(stream) -> bool:
    try:
        return hasattr(stream, "isatty") and stream.isatty()
    except Exception:
        return False


class ActivityFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        message = record.getMessage()
        if getattr(record, "operation", None):
            return message
        if record.levelno >= logging.WARNING:
            return f"{record.levelname}! {message} {self.formatTime(record, self.datefmt)}"
        return message


class ColorizingFormatter(ActivityFormatter):
    def __init__(self, use_color: bool, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.use_color = use_color

    def format(self, record: logging.LogRecord) -> str:
        base = super().format(record)
        if not self.use_color:
            return base

        if record.levelno >= logging.ERROR:
            return f"{Ansi.RED}{base}{Ansi.RESET}"
        if record.levelno >= logging.WARNING:
            return f"{Ansi.ORANGE}{base}{Ansi.RESET}"

        operation = getattr(record, "operation", None)
        path_text = getattr(record, "path_text", None)

        if operation:
            color = OPERATION_COLORS.get(operation, "")
            base = base.replace(operation, f"{color}{operation}{Ansi.RESET}", 1)

        if path_text and path_text in base:
            pcolor = Ansi.LIGHT_BROWN if getattr(record, "is_dir", False) else Ansi.WHITE
            base = base.replace(path_text, f"{pcolor}{path_text}{Ansi.RESET}")

        return base


class ActivityFilter(logging.Filter):
    """Only sync events, warnings and errors reach the log file."""

    def filter(self, record: logging.LogRecord) -> bool:
        return bool(getattr(record, "operation", None)) or record.levelno >= logging.WARNING


def setup_activity_log(log_path: Path, stream=None) -> logging.Logger:
    log_path.parent.mkdir(parents=True, exist_ok=True)
    stream = stream if stream is not None else sys.stdout

    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(logging.INFO)
    logger.propagate = False

    # reconfiguring replaces the previous sinks
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    just_fix_windows_console()

    fh = logging.FileHandler(log_path, mode="a", encoding="utf-8")
    fh.setFormatter(ActivityFormatter(datefmt=TIMESTAMP_FORMAT))
    fh.addFilter(ActivityFilter())
    fh.setLevel(logging.INFO)

    ch = logging.StreamHandler(stream)
    ch.setLevel(logging.INFO)
    ch.setFormatter(ColorizingFormatter(use_color=_supports_color(stream), datefmt=TIMESTAMP_FORMAT))

    logger.addHandler(fh)
    logger.addHandler(ch)

    logger.info("Logging to: %s", log_path)
    return logger


def log_event(logger: logging.Logger, event: SyncEvent) -> None:
    extra = {
        "operation": event.operation.value,
        "path_text": str(event.path),
        "is_dir": event.is_dir,
    }
    logger.info(event.line(), extra=extra)


class LoggedEvents(list):
    """Event list that writes each event to the activity log as soon as it is recorded."""

    def __init__(self, logger: logging.Logger):
        super().__init__()
        self.logger = logger

    def append(self, event: SyncEvent) -> None:
        super().append(event)
        log_event(self.logger, event)

    def extend(self, events) -> None:
        for event in events:
            self.append(event)


def log_issue(
    logger: logging.Logger,
    message: str,
    path: Optional[Path] = None,
    is_dir: bool = False,
    level: int = logging.WARNING,
) -> None:
    extra = {}
    if path is not None:
        extra["path_text"] = str(path)
        extra["is_dir"] = is_dir
    logger.log(level, message, extra=extra)


def _is_permission_error(exc: Exception) -> bool:
    winerror = getattr(exc, "winerror", None)
    if winerror == 32:  # ERROR_SHARING_VIOLATION
        return True
    err = getattr(exc, "errno", None)
    return err in {errno.EACCES, errno.EPERM}


# -------------------------
# Clock / filesystem
# -------------------------

class SystemClock:
    def now(self) -> dt.datetime:
        return dt.datetime.now()

    def sleep(self, seconds: float) -> None:
        time.sleep(seconds)


def md5_file(path: Path, chunk_size: int = 1024 * 1024) -> str:
    h = hashlib.md5()
    with path.open("rb") as f:
        while True:
            b = f.read(chunk_size)
            if not b:
                break
            h.update(b)
    return h.hexdigest()


class LocalFileSystem:
    """Every filesystem call the engine makes goes through here."""

    def list_files(self, directory: Path) -> list[Path]:
        return sorted(p for p in directory.iterdir() if p.is_file())

    def list_dirs(self, directory: Path) -> list[Path]:
        return sorted(p for p in directory.iterdir() if p.is_dir())

    def exists(self, path: Path) -> bool:
        return path.exists()

    def is_dir(self, path: Path) -> bool:
        return path.is_dir()

    def is_file(self, path: Path) -> bool:
        return path.is_file()

    def modified_time(self, path: Path) -> dt.datetime:
        return dt.datetime.fromtimestamp(path.stat().st_mtime)

    def checksum(self, path: Path) -> str:
        return md5_file(path)

    def copy_file(self, src: Path, dst: Path) -> None:
        shutil.copy2(src, dst)

    def delete_file(self, path: Path) -> None:
        path.unlink()

    def delete_tree(self, path: Path) -> None:
        shutil.rmtree(path)

    def make_dir(self, path: Path) -> None:
        path.mkdir(parents=True, exist_ok=True)


class IgnoreMatcher:
    def __init__(self, source_root: Path, patterns: Sequence[str]):
        self.source_root = source_root
        self.spec = PathSpec.from_lines("gitwildmatch", patterns)

    def is_ignored(self, path: Path, is_dir: bool = False) -> bool:
        try:
            rel = path.relative_to(self.source_root)
        except ValueError:
            return False
        rel_posix = rel.as_posix()
        if is_dir and not rel_posix.endswith("/"):
            rel_posix += "/"
        return self.spec.match_file(rel_posix)


# -------------------------
# Config
# -------------------------

@dataclass(frozen=True)
class SyncConfig:
    source_dir: Path
    replica_dir: Path
    log_path: Path
    interval_sec: int
    on_collision: CollisionPolicy = CollisionPolicy.PROMPT
    on_copy_error: CopyErrorPolicy = CopyErrorPolicy.ABORT_PASS
    change_detection: ChangeDetection = ChangeDetection.MTIME
    exclude: tuple[str, ...] = ()


def prompt_replace(path: Path, is_dir: bool) -> bool:
    kind = "directory" if is_dir else "file"
    while True:
        print(f'\nA {kind} with the name "{path.as_posix()}" already exists in the destination folder.')
        resp = input("Do you want to replace it? (y/n) ").strip().lower()
        if resp in ("y", "n"):
            return resp == "y"


# -------------------------
# Synchronization engine
# -------------------------

class Synchronizer:
    """
    Computes and applies the filesystem operations that bring the replica tree
    in line with the source tree.

    Both `mirror` and `reconcile` return the applied operations as a list of
    SyncEvent, in the order they happened; writing them out is up to the caller.
    Delete failures are logged as warnings and the entry is left stale.
    Copy/create failures follow `on_copy_error`.
    """

    def __init__(
        self,
        source_root: Path,
        replica_root: Path,
        fs: Optional[LocalFileSystem] = None,
        clock: Optional[SystemClock] = None,
        logger: Optional[logging.Logger] = None,
        on_collision: CollisionPolicy = CollisionPolicy.PROMPT,
        prompt: Callable[[Path, bool], bool] = prompt_replace,
        on_copy_error: CopyErrorPolicy = CopyErrorPolicy.ABORT_PASS,
        change_detection: ChangeDetection = ChangeDetection.MTIME,
        exclude: Sequence[str] = (),
    ):
        self.source_root = source_root
        self.replica_root = replica_root
        self.fs = fs or LocalFileSystem()
        self.clock = clock or SystemClock()
        self.logger = logger or logging.getLogger(LOGGER_NAME)
        self.on_collision = on_collision
        self.prompt = prompt
        self.on_copy_error = on_copy_error
        self.change_detection = change_detection
        self.ignore = IgnoreMatcher(source_root, list(exclude))

    @classmethod
    def from_config(cls, config: SyncConfig, **kwargs) -> "Synchronizer":
        return cls(
            config.source_dir,
            config.replica_dir,
            on_collision=config.on_collision,
            on_copy_error=config.on_copy_error,
            change_detection=config.change_detection,
            exclude=config.exclude,
            **kwargs,
        )

    def replica_for(self, src: Path) -> Path:
        return self.replica_root / src.relative_to(self.source_root)

    # --- public passes ---

    def mirror(
        self, source_dir: Path, replica_dir: Path, events: Optional[list[SyncEvent]] = None
    ) -> list[SyncEvent]:
        events = [] if events is None else events
        try:
            if not self.fs.is_dir(replica_dir) and not self._make_dir(replica_dir, events):
                return events
            self._mirror_dir(source_dir, replica_dir, events)
        except PassAborted as exc:
            exc.events = events
            raise
        return events

    def reconcile(
        self, source_dir: Path, last_sync: Optional[dt.datetime], events: Optional[list[SyncEvent]] = None
    ) -> list[SyncEvent]:
        events = [] if events is None else events
        try:
            replica_dir = self.replica_for(source_dir)
            if self.fs.is_dir(replica_dir):
                self._reconcile_dir(source_dir, last_sync, events)
            elif self._make_dir(replica_dir, events):
                self._mirror_dir(source_dir, replica_dir, events)
        except PassAborted as exc:
            exc.events = events
            raise
        return events

    # --- initial mirror ---

    def _mirror_dir(self, src_dir: Path, dst_dir: Path, events: list[SyncEvent]) -> None:
        listing = self._list_source(src_dir)
        if listing is None:
            return
        files, dirs = listing

        for src in files:
            dst = dst_dir / src.name
            if self.fs.exists(dst):
                if not self._should_replace(dst, is_dir=False):
                    continue
                if not self._remove_entry(dst, events):
                    continue
            self._copy(src, dst, events)

        for src in dirs:
            dst = dst_dir / src.name
            if self.fs.exists(dst):
                if not self._should_replace(dst, is_dir=True):
                    continue
                if not self._remove_entry(dst, events):
                    continue
            if self._make_dir(dst, events):
                self._mirror_dir(src, dst, events)

    def _should_replace(self, dst: Path, is_dir: bool) -> bool:
        if self.on_collision is CollisionPolicy.OVERWRITE:
            return True
        if self.on_collision is CollisionPolicy.KEEP:
            return False
        try:
            shown = dst.relative_to(self.replica_root)
        except ValueError:
            shown = dst
        return self.prompt(shown, is_dir)

    # --- incremental reconcile ---

    def _reconcile_dir(self, src_dir: Path, last_sync: Optional[dt.datetime], events: list[SyncEvent]) -> None:
        listing = self._list_source(src_dir)
        if listing is None:
            return
        files, dirs = listing
        replica_dir = self.replica_for(src_dir)

        self._prune_files(files, replica_dir, events)
        self._prune_dirs(dirs, replica_dir, events)

        for src in self._changed_files(files, last_sync):
            self._update_file(src, events)

        for src in dirs:
            dst = self.replica_for(src)
            if self.fs.is_dir(dst):
                self._reconcile_dir(src, last_sync, events)
            elif not self.fs.exists(dst):
                # nothing under a new directory has been seen before
                if self._make_dir(dst, events):
                    self._mirror_dir(src, dst, events)

    def _prune_files(self, source_files: list[Path], replica_dir: Path, events: list[SyncEvent]) -> None:
        if not self.fs.is_dir(replica_dir):
            return
        source_names = {p.name for p in source_files}
        for path in self.fs.list_files(replica_dir):
            if path.name not in source_names:
                self._remove_entry(path, events)

    def _prune_dirs(self, source_dirs: list[Path], replica_dir: Path, events: list[SyncEvent]) -> None:
        if not self.fs.is_dir(replica_dir):
            return
        source_names = {p.name for p in source_dirs}
        for path in self.fs.list_dirs(replica_dir):
            if path.name not in source_names:
                self._remove_tree(path, events)

    def _changed_files(self, source_files: list[Path], last_sync: Optional[dt.datetime]) -> list[Path]:
        changed = []
        for src in source_files:
            try:
                if last_sync is None or self.fs.modified_time(src) > last_sync:
                    changed.append(src)
                elif self.change_detection is ChangeDetection.CHECKSUM and self._content_differs(src):
                    changed.append(src)
            except FileNotFoundError:
                # removed from source after the listing; the next pass prunes it
                continue
            except OSError as e:
                self._copy_failed(f"Could not read {src}", src, e)
        return changed

    def _content_differs(self, src: Path) -> bool:
        dst = self.replica_for(src)
        if not self.fs.is_file(dst):
            return True
        return self.fs.checksum(src) != self.fs.checksum(dst)

    def _update_file(self, src: Path, events: list[SyncEvent]) -> None:
        dst = self.replica_for(src)
        if self.fs.exists(dst) and not self._remove_entry(dst, events):
            return
        self._copy(src, dst, events)

    # --- source listing ---

    def _list_source(self, directory: Path) -> Optional[tuple[list[Path], list[Path]]]:
        """
        Files and subdirectories directly under a source folder, minus exclusions.
        None when the folder vanished or could not be read; that level is skipped.
        """
        try:
            files = self.fs.list_files(directory)
            dirs = self.fs.list_dirs(directory)
        except FileNotFoundError:
            return None
        except OSError as e:
            self._copy_failed(f"Could not read folder {directory}", directory, e)
            return None
        return (
            [p for p in files if not self.ignore.is_ignored(p, is_dir=False)],
            [p for p in dirs if not self.ignore.is_ignored(p, is_dir=True)],
        )

    # --- mutations ---

    def _record(self, events: list[SyncEvent], operation: Operation, path: Path, is_dir: bool = False) -> None:
        events.append(SyncEvent(operation, path.absolute(), self.clock.now(), is_dir))

    def _copy(self, src: Path, dst: Path, events: list[SyncEvent]) -> bool:
        try:
            self.fs.copy_file(src, dst)
        except OSError as e:
            if isinstance(e, FileNotFoundError) and not self.fs.exists(src):
                return False
            return self._copy_failed(f"Could not copy {src} -> {dst}", dst, e)
        self._record(events, Operation.COPY, src)
        return True

    def _make_dir(self, path: Path, events: list[SyncEvent]) -> bool:
        try:
            self.fs.make_dir(path)
        except OSError as e:
            return self._copy_failed(f"Could not create folder {path}", path, e)
        self._record(events, Operation.CREATE, path, is_dir=True)
        return True

    def _copy_failed(self, message: str, path: Path, error: OSError) -> bool:
        if self.on_copy_error is CopyErrorPolicy.SKIP:
            log_issue(self.logger, f"{message} | {error}", path=path, level=logging.ERROR)
            return False
        raise PassAborted(path, error) from error

    def _remove_entry(self, path: Path, events: list[SyncEvent]) -> bool:
        if self.fs.is_dir(path):
            return self._remove_tree(path, events)
        try:
            self.fs.delete_file(path)
        except OSError as e:
            self._warn_delete(path, e, is_dir=False)
            return False
        self._record(events, Operation.REMOVE, path)
        return True

    def _remove_tree(self, path: Path, events: list[SyncEvent]) -> bool:
        try:
            removed = self._subtree_removals(path)
            self.fs.delete_tree(path)
        except OSError as e:
            self._warn_delete(path, e, is_dir=True)
            return False
        events.extend(removed)
        self._record(events, Operation.REMOVE, path, is_dir=True)
        return True

    def _subtree_removals(self, directory: Path) -> list[SyncEvent]:
        removed: list[SyncEvent] = []
        for path in self.fs.list_files(directory):
            self._record(removed, Operation.REMOVE, path)
        for sub in self.fs.list_dirs(directory):
            removed.extend(self._subtree_removals(sub))
            self._record(removed, Operation.REMOVE, sub, is_dir=True)
        return removed

    def _warn_delete(self, path: Path, error: OSError, is_dir: bool) -> None:
        kind = "folder" if is_dir else "file"
        if _is_permission_error(error):
            message = (
                f'The program doesn\'t have permission to delete the {kind} "{path}". '
                f"Please change the permission of the {kind} and try again."
            )
        else:
            message = f'Could not delete the {kind} "{path}" | {error}'
        log_issue(self.logger, message, path=path, is_dir=is_dir)


# -------------------------
# Synchronization loop
# -------------------------

def sleep_duration(interval_sec: float, elapsed_sec: float) -> float:
    return max(0.0, interval_sec - elapsed_sec)


class SyncLoop:
    """
    Bootstrap (full mirror) once, then incremental passes forever.
    `last_sync` only moves forward after a pass finished its filesystem work.
    """

    def __init__(
        self,
        synchronizer: Synchronizer,
        interval_sec: float,
        logger: logging.Logger,
        clock: Optional[SystemClock] = None,
        on_copy_error: CopyErrorPolicy = CopyErrorPolicy.ABORT_PASS,
    ):
        self.synchronizer = synchronizer
        self.interval_sec = interval_sec
        self.logger = logger
        self.clock = clock or SystemClock()
        self.on_copy_error = on_copy_error
        self.last_sync: Optional[dt.datetime] = None
        self.bootstrapped = False

    def run_pass(self) -> list[SyncEvent]:
        sync = self.synchronizer
        events = LoggedEvents(self.logger)
        try:
            if self.bootstrapped:
                sync.reconcile(sync.source_root, self.last_sync, events)
            else:
                sync.mirror(sync.source_root, sync.replica_root, events)
        except PassAborted as exc:
            log_issue(self.logger, f"Pass aborted: {exc}", path=exc.path, level=logging.ERROR)
            raise

        self.last_sync = self.clock.now()
        self.bootstrapped = True
        return list(events)

    def run(self, max_passes: Optional[int] = None) -> None:
        completed = 0
        while max_passes is None or completed < max_passes:
            started = self.clock.now()
            kind = "incremental" if self.bootstrapped else "bootstrap"
            try:
                events = self.run_pass()
                self.logger.info("Pass done (%s): %d change(s)", kind, len(events))
            except PassAborted:
                if self.on_copy_error is CopyErrorPolicy.EXIT:
                    raise
            completed += 1

            elapsed = (self.clock.now() - started).total_seconds()
            self.clock.sleep(sleep_duration(self.interval_sec, elapsed))


# -------------------------
# CLI / validation
# -------------------------

def parse_args(argv: list[str]) -> argparse.Namespace:
    p = argparse.ArgumentParser(description="Periodically mirror a source folder into a replica folder.")
    p.add_argument("source", nargs="?", default=None, help="Folder to mirror (must exist).")
    p.add_argument("replica", nargs="?", default=None, help="Replica folder (created if missing).")
    p.add_argument("log", nargs="?", default=None, help="Log file path, .txt (created if missing).")
    p.add_argument("interval", nargs="?", default=None, help="Time between passes as HH:MM:SS.")
    p.add_argument(
        "--on-collision",
        choices=[c.value for c in CollisionPolicy],
        default=CollisionPolicy.PROMPT.value,
        help="What the startup mirror does with entries already in the replica.",
    )
    p.add_argument(
        "--on-copy-error",
        choices=[c.value for c in CopyErrorPolicy],
        default=CopyErrorPolicy.ABORT_PASS.value,
        help="What a failed copy/create does: skip the entry, abort the pass, or exit.",
    )
    p.add_argument(
        "--detect",
        choices=[c.value for c in ChangeDetection],
        default=ChangeDetection.MTIME.value,
        help="Change detection: modification time only, or also MD5 against the replica.",
    )
    p.add_argument("--exclude", action="append", default=None, metavar="PATTERN", help="gitignore-style pattern to skip.")
    p.add_argument("--no-save", action="store_true", help="Do not remember these inputs.")
    return p.parse_args(argv)


def parse_interval(text: str) -> int:
    text = text.strip()
    if not INTERVAL_PATTERN.match(text):
        raise ValueError(
            "The inserted synchronization interval doesn't follow the required format.\n"
            "Follow the example: 3 minutes - 00:03:00"
        )
    hours, minutes, seconds = (int(part) for part in text.split(":"))
    return hours * 3600 + minutes * 60 + seconds


def format_interval(seconds: int) -> str:
    return f"{seconds // 3600:02d}:{seconds % 3600 // 60:02d}:{seconds % 60:02d}"


def _has_invalid_chars(text: str) -> bool:
    return any(ch in INVALID_PATH_CHARS for ch in text)


def validate_source(text: str) -> Path:
    if _has_invalid_chars(text):
        raise ValueError("The folder path has invalid characters.")
    path = Path(text).expanduser()
    if not path.is_dir():
        raise ValueError("The source folder's path doesn't exist.")
    return path.resolve()


def validate_replica(text: str) -> Path:
    if _has_invalid_chars(text):
        raise ValueError("The folder path has invalid characters.")
    return Path(text).expanduser().resolve()


def validate_log_path(text: str) -> Path:
    if _has_invalid_chars(text):
        raise ValueError("The file path has invalid characters.")
    path = Path(text).expanduser()
    if path.suffix != LOG_SUFFIX:
        raise ValueError("The file isn't a text file.")
    path = path.resolve()
    if path.is_dir():
        raise ValueError("The log path is a folder, not a file.")
    path.parent.mkdir(parents=True, exist_ok=True)
    path.touch(exist_ok=True)
    return path


def _is_subpath(child: Path, parent: Path) -> bool:
    try:
        child.resolve().relative_to(parent.resolve())
        return True
    except ValueError:
        return False


def validate_roots(source: Path, replica: Path) -> tuple[Path, Path]:
    source = source.expanduser().resolve()
    replica = replica.expanduser().resolve()

    if source == replica:
        raise ValueError("Source and replica folders must be different.")
    if _is_subpath(replica, source):
        raise ValueError("Replica folder must NOT be inside source folder (would cause loops).")
    if _is_subpath(source, replica):
        raise ValueError("Source folder must NOT be inside replica folder (would be pruned).")

    replica.mkdir(parents=True, exist_ok=True)
    return source, replica


def validate_log_location(log_path: Path, source: Path, replica: Path) -> None:
    if _is_subpath(log_path, replica):
        raise ValueError("Log file must NOT be inside replica folder (would be pruned).")
    if _is_subpath(log_path, source):
        raise ValueError("Log file must NOT be inside source folder (would be copied on every pass).")


def ask_until_valid(label: str, raw: Optional[str], validate: Callable[[str], object], default: Optional[str] = None):
    while True:
        if raw:
            try:
                return validate(raw)
            except ValueError as e:
                print(f"{e}\nPlease try again.")
        hint = f" [{default}]" if default else ""
        raw = input(f"{label}{hint}: ").strip().strip('"')
        if not raw and default:
            raw = default
        elif not raw:
            print("Please enter a non-empty value.")


def load_config_file() -> dict:
    try:
        if CONFIG_PATH.exists():
            return json.loads(CONFIG_PATH.read_text(encoding="utf-8"))
    except (OSError, ValueError):
        pass
    return {}


def save_config_file(config: SyncConfig) -> None:
    CONFIG_PATH.parent.mkdir(parents=True, exist_ok=True)
    payload = {
        "source": str(config.source_dir),
        "replica": str(config.replica_dir),
        "log": str(config.log_path),
        "interval": format_interval(config.interval_sec),
    }
    CONFIG_PATH.write_text(json.dumps(payload, indent=2), encoding="utf-8")


def build_effective_config(args: argparse.Namespace) -> SyncConfig:
    saved = load_config_file()

    source = ask_until_valid("Source folder", args.source or saved.get("source"), validate_source, saved.get("source"))
    replica = ask_until_valid("Replica folder", args.replica or saved.get("replica"), validate_replica, saved.get("replica"))
    log_path = ask_until_valid("Log file (.txt)", args.log or saved.get("log"), validate_log_path, saved.get("log"))
    interval = ask_until_valid(
        "Sync interval (HH:MM:SS)", args.interval or saved.get("interval"), parse_interval, saved.get("interval")
    )

    return SyncConfig(
        source_dir=source,
        replica_dir=replica,
        log_path=log_path,
        interval_sec=interval,
        on_collision=CollisionPolicy(args.on_collision),
        on_copy_error=CopyErrorPolicy(args.on_copy_error),
        change_detection=ChangeDetection(args.detect),
        exclude=tuple(args.exclude or ()),
    )


# -------------------------
# Main
# -------------------------

def main(argv: Optional[list[str]] = None) -> int:
    args = parse_args(sys.argv[1:] if argv is None else argv)
    cfg = build_effective_config(args)

    logger = setup_activity_log(cfg.log_path)

    try:
        source, replica = validate_roots(cfg.source_dir, cfg.replica_dir)
        validate_log_location(cfg.log_path, source, replica)
    except ValueError as e:
        logger.error("Config error: %s", e)
        return 2
    cfg = dataclasses.replace(cfg, source_dir=source, replica_dir=replica)
    logger.info("Source : %s", source)
    logger.info("Replica: %s", replica)

    if not args.no_save:
        try:
            save_config_file(cfg)
            logger.info("Saved config: %s", CONFIG_PATH)
        except OSError as e:
            logger.error("Could not save config: %s", e)

    synchronizer = Synchronizer.from_config(cfg, logger=logger)
    loop = SyncLoop(synchronizer, cfg.interval_sec, logger, on_copy_error=cfg.on_copy_error)

    logger.info("Synchronizing every %s... (Ctrl+C to stop)", format_interval(cfg.interval_sec))
    try:
        loop.run()
    except KeyboardInterrupt:
        logger.info("Stopping...")
    except PassAborted as e:
        logger.error("Stopped after failed copy: %s", e)
        return 1
    logger.info("Stopped.")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
