from __future__ import annotations

import shlex
from dataclasses import dataclass
from typing import Any

from trimcheck.core.time import FIXED_TIMESTAMP_UTC_Z, parse_rfc3339


@dataclass(frozen=True)
class CommandRecord:
    """Structured record of one executed tool command."""

    argv: list[str]
    exit_code: int
    started_at: str  # RFC3339
    finished_at: str  # RFC3339


def format_command_string(argv: list[str]) -> str:
    """Format argv as a shell-quoted command string for diagnostics."""

    if not argv:
        return ""
    return shlex.join(argv)


def make_command_record(
    argv: list[str],
    exit_code: int,
    *,
    started_at: str = FIXED_TIMESTAMP_UTC_Z,
    finished_at: str | None = None,
) -> CommandRecord:
    """Create a CommandRecord.

    For deterministic runs, use the default fixed timestamp.
    For real runs, pass actual timestamps.
    """

    parse_rfc3339(started_at)
    finished = started_at if finished_at is None else finished_at
    parse_rfc3339(finished)
    return CommandRecord(
        argv=list(argv),
        exit_code=exit_code,
        started_at=started_at,
        finished_at=finished,
    )


def command_record_to_dict(record: CommandRecord) -> dict[str, Any]:
    """Convert CommandRecord to dict for JSON serialization."""

    return {
        "argv": list(record.argv),
        "exit_code": record.exit_code,
        "started_at": record.started_at,
        "finished_at": record.finished_at,
    }


def is_command_record_dict(entry: Any) -> bool:
    if not isinstance(entry, dict):
        return False
    if not all(k in entry for k in ("argv", "exit_code", "started_at", "finished_at")):
        return False
    argv = entry["argv"]
    if not isinstance(argv, list) or not argv or not all(isinstance(x, str) and x for x in argv):
        return False
    exit_code = entry["exit_code"]
    return isinstance(exit_code, int) and not isinstance(exit_code, bool)
