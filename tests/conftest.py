from __future__ import annotations

import datetime as dt
import errno
import logging
import os
from pathlib import Path

import pytest

import replica_sync
from replica_sync import CollisionPolicy, LocalFileSystem, Operation, Synchronizer


class FakeClock:
    def __init__(self, start: dt.datetime | None = None) -> None:
        self.current = start or dt.datetime(2026, 1, 1, 12, 0, 0)
        self.sleeps: list[float] = []

    def now(self) -> dt.datetime:
        return self.current

    def advance(self, seconds: float) -> None:
        self.current += dt.timedelta(seconds=seconds)

    def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.advance(seconds)


class DenyDeleteFS(LocalFileSystem):
    """Refuses to delete the given names, the way a locked or read-only entry would."""

    def __init__(self, *names: str) -> None:
        self.names = set(names)

    def delete_file(self, path: Path) -> None:
        if path.name in self.names:
            raise PermissionError(errno.EACCES, "Permission denied", str(path))
        super().delete_file(path)

    def delete_tree(self, path: Path) -> None:
        if path.name in self.names:
            raise PermissionError(errno.EACCES, "Permission denied", str(path))
        super().delete_tree(path)


class FailingCopyFS(LocalFileSystem):
    def __init__(self, *names: str) -> None:
        self.names = set(names)

    def copy_file(self, src: Path, dst: Path) -> None:
        if src.name in self.names:
            raise OSError(errno.ENOSPC, "No space left on device", str(dst))
        super().copy_file(src, dst)


def write(path: Path, content: str = "", mtime: dt.datetime | None = None) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content, encoding="utf-8")
    if mtime is not None:
        set_mtime(path, mtime)
    return path


def set_mtime(path: Path, when: dt.datetime) -> None:
    ts = when.timestamp()
    os.utime(path, (ts, ts))


def rel_paths(root: Path) -> set[str]:
    return {p.relative_to(root).as_posix() for p in root.rglob("*")}


def ops(events) -> list[tuple[Operation, str]]:
    return [(e.operation, e.path.name) for e in events]


@pytest.fixture
def source(tmp_path: Path) -> Path:
    path = tmp_path / "source"
    path.mkdir()
    return path


@pytest.fixture
def replica(tmp_path: Path) -> Path:
    path = tmp_path / "replica"
    path.mkdir()
    return path


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock(dt.datetime.now())


@pytest.fixture
def logger() -> logging.Logger:
    return logging.getLogger("tests.replica_sync")


@pytest.fixture
def make_sync(source: Path, replica: Path, clock: FakeClock, logger: logging.Logger):
    def factory(**kwargs) -> Synchronizer:
        kwargs.setdefault("clock", clock)
        kwargs.setdefault("logger", logger)
        kwargs.setdefault("on_collision", CollisionPolicy.OVERWRITE)
        return Synchronizer(source, replica, **kwargs)

    return factory


@pytest.fixture(autouse=True)
def reset_activity_logger():
    yield
    activity = logging.getLogger(replica_sync.LOGGER_NAME)
    for handler in list(activity.handlers):
        activity.removeHandler(handler)
        handler.close()
    activity.propagate = True
