"""Process-wide single-instance guard for report runs."""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path

import filelock

from makoreport.config import DEFAULT_LOCK_FILE
from makoreport.errors import AlreadyRunning


@contextmanager
def single_instance(lock_path: Path = DEFAULT_LOCK_FILE) -> Iterator[filelock.FileLock]:
    """Hold an advisory lock for the duration of the block.

    Raises ``AlreadyRunning`` immediately, without waiting, when another
    process holds the lock.  The lock is released on every exit path.
    """
    lock_path.parent.mkdir(parents=True, exist_ok=True)
    lock = filelock.FileLock(str(lock_path), timeout=0)
    try:
        lock.acquire()
    except filelock.Timeout as exc:
        raise AlreadyRunning(str(lock_path)) from exc
    try:
        yield lock
    finally:
        lock.release()
