from __future__ import annotations

from pathlib import Path


def normalize_repo_rel(rel: str, *, allow_backslashes: bool) -> str:
    """Normalize a project-relative path to POSIX separators and reject escapes.
    """

    if not isinstance(rel, str) or not rel:
        raise ValueError("path missing/empty")
    if "\x00" in rel:
        raise ValueError("path contains NUL")

    s = str(rel)
    if "\\" in s:
        if not allow_backslashes:
            raise ValueError("path must use '/' separators")
        s = s.replace("\\", "/")

    if s.startswith("/"):
        raise ValueError("absolute paths are not allowed")
    if len(s) >= 2 and s[1] == ":":
        raise ValueError("drive-qualified paths are not allowed")
    if ":" in s:
        raise ValueError("path must not contain ':'")

    parts = [p for p in s.split("/") if p and p != "."]
    if not parts:
        raise ValueError("empty path not allowed")
    if any(p == ".." for p in parts):
        raise ValueError("path must not contain '..' segments")
    return "/".join(parts)


def ensure_within_root(root: Path, target: Path) -> None:
    root_resolved = root.resolve()
    target_resolved = target.resolve()
    if root_resolved not in target_resolved.parents and root_resolved != target_resolved:
        raise ValueError("Resolved path escapes project root")


def _is_symlink_or_has_symlink_parent(p: Path, *, stop_at: Path | None) -> bool:
    try:
        if p.is_symlink():
            return True
    except OSError:
        return True

    stop = stop_at.resolve() if stop_at is not None else None
    for parent in p.parents:
        if stop is not None and parent.resolve() == stop:
            break
        try:
            if parent.is_symlink():
                return True
        except OSError:
            return True
    return False


def resolve_repo_rel_path(
    root: Path,
    rel: str,
    *,
    must_exist: bool,
    must_be_file: bool | None = None,
    allow_backslashes: bool = False,
    forbid_symlinks: bool = True,
) -> Path:
    """Resolve a project-relative path within root.

    Apply rewrites the resolved file in place, so a symlink pointing out of the
    project tree is rejected the same way a '..' escape is.
    """

    rel_posix = normalize_repo_rel(rel, allow_backslashes=allow_backslashes)
    candidate = root / rel_posix

    if forbid_symlinks and _is_symlink_or_has_symlink_parent(candidate, stop_at=root):
        raise ValueError(f"symlink not allowed in scope: {rel_posix}")

    resolved = candidate.resolve()
    try:
        resolved.relative_to(root.resolve())
    except ValueError as e:
        raise ValueError(f"scope escape: {rel_posix}") from e

    if must_exist:
        if not resolved.exists():
            raise ValueError(f"missing path in scope: {rel_posix}")
        if must_be_file is True and resolved.is_dir():
            raise ValueError(f"expected file but found directory: {rel_posix}")
        if must_be_file is False and not resolved.is_dir():
            raise ValueError(f"expected directory but found file: {rel_posix}")

    return resolved
