from __future__ import annotations

import os
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator

from trimcheck.core.errors import ApplyInProgressError


LOCK_FILENAME = ".trimcheck-apply.lock"


@contextmanager
def apply_lock(src: Path) -> Iterator[Path]:
    """Hold the per-project apply lock for the duration of the block.

    Stale locks (left by a killed process) are not reclaimed; remove the file by hand.
    """

    lock_path = src / LOCK_FILENAME
    try:
        fd = os.open(lock_path, os.O_CREAT | os.O_EXCL | os.O_WRONLY, 0o644)
    except FileExistsError:
        holder = ""
        try:
            holder = lock_path.read_text(encoding="utf-8", errors="replace").strip()
        except OSError:
            pass
        suffix = f" (held by pid {holder})" if holder else ""
        raise ApplyInProgressError(f"another apply job holds {lock_path}{suffix}") from None

    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(f"{os.getpid()}\n")
        yield lock_path
    finally:
        try:
            lock_path.unlink()
        except FileNotFoundError:
            pass
