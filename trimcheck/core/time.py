from __future__ import annotations

import re
from datetime import datetime, timezone


FIXED_TIMESTAMP_UTC_Z = "1970-01-01T00:00:00Z"

_RFC3339_RE = re.compile(
    r"^\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2}(\.\d+)?(Z|[+-]\d{2}:\d{2})$"
)


def utc_timestamp_iso_z(*, deterministic: bool) -> str:
    if deterministic:
        return FIXED_TIMESTAMP_UTC_Z
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


def parse_rfc3339(s: str) -> datetime:
    if not isinstance(s, str) or not _RFC3339_RE.match(s):
        raise ValueError(f"invalid RFC3339 timestamp: {s!r}")
    return datetime.fromisoformat(s.replace("Z", "+00:00"))
