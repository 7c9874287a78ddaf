"""Lowest-level trimcheck utilities.

Dependency direction rules:
- trimcheck.core must not import trimcheck.builder, trimcheck.checker or trimcheck.commands
  (type-only imports excepted)
"""

from trimcheck.core.errors import (
    ApplyInProgressError,
    AttestationError,
    BuildContextError,
    ToolExitError,
    ToolInvocationError,
    TrimCheckError,
)
from trimcheck.core.hash import is_hex_sha256, sha256_bytes
from trimcheck.core.jail import (
    ensure_within_root,
    normalize_repo_rel,
    resolve_repo_rel_path,
)
from trimcheck.core.json_canon import canonical_json_bytes, parse_json_bytes
from trimcheck.core.time import parse_rfc3339, utc_timestamp_iso_z

__all__ = [
    "ApplyInProgressError",
    "AttestationError",
    "BuildContextError",
    "ToolExitError",
    "ToolInvocationError",
    "TrimCheckError",
    "canonical_json_bytes",
    "ensure_within_root",
    "is_hex_sha256",
    "normalize_repo_rel",
    "parse_json_bytes",
    "parse_rfc3339",
    "resolve_repo_rel_path",
    "sha256_bytes",
    "utc_timestamp_iso_z",
]
