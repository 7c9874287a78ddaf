"""Tests for project-root jail, hashing and command records.

These tests verify:
- Path validation rejects escapes, symlinks, absolute paths, NUL bytes, traversal
- Command records are structured and carry valid timestamps
"""

from __future__ import annotations

import os
import sys
from pathlib import Path

import pytest

from trimcheck.checker.lock import LOCK_FILENAME, apply_lock
from trimcheck.core.command_log import (
    CommandRecord,
    command_record_to_dict,
    format_command_string,
    is_command_record_dict,
    make_command_record,
)
from trimcheck.core.errors import ApplyInProgressError
from trimcheck.core.hash import is_hex_sha256, sha256_bytes
from trimcheck.core.jail import (
    ensure_within_root,
    normalize_repo_rel,
    resolve_repo_rel_path,
)
from trimcheck.core.json_canon import canonical_json_bytes, parse_json_bytes


# ---------------------------------------------------------------------------
# Path jail tests
# ---------------------------------------------------------------------------

class TestNormalizeRepoRel:
    """Tests for normalize_repo_rel path validation."""

    def test_valid_simple_path(self) -> None:
        assert normalize_repo_rel("Cargo.toml", allow_backslashes=False) == "Cargo.toml"

    def test_leading_dot_segment_dropped(self) -> None:
        assert normalize_repo_rel("./crates/a/Cargo.toml", allow_backslashes=False) == "crates/a/Cargo.toml"

    def test_backslash_rejected_when_not_allowed(self) -> None:
        with pytest.raises(ValueError, match="separators"):
            normalize_repo_rel("crates\\a\\Cargo.toml", allow_backslashes=False)

    def test_backslash_converted_when_allowed(self) -> None:
        assert normalize_repo_rel("crates\\Cargo.toml", allow_backslashes=True) == "crates/Cargo.toml"

    def test_absolute_path_rejected(self) -> None:
        with pytest.raises(ValueError, match="absolute"):
            normalize_repo_rel("/etc/passwd", allow_backslashes=False)

    def test_drive_path_rejected(self) -> None:
        with pytest.raises(ValueError, match="drive"):
            normalize_repo_rel("C:\\Windows", allow_backslashes=True)

    def test_traversal_rejected(self) -> None:
        with pytest.raises(ValueError, match="\\.\\."):
            normalize_repo_rel("crates/../../Cargo.toml", allow_backslashes=False)

    def test_nul_byte_rejected(self) -> None:
        with pytest.raises(ValueError, match="NUL"):
            normalize_repo_rel("Cargo\x00.toml", allow_backslashes=False)

    def test_empty_path_rejected(self) -> None:
        with pytest.raises(ValueError, match="empty"):
            normalize_repo_rel("", allow_backslashes=False)

    def test_dot_only_rejected(self) -> None:
        with pytest.raises(ValueError, match="empty"):
            normalize_repo_rel("./", allow_backslashes=False)

    def test_scheme_rejected(self) -> None:
        with pytest.raises(ValueError, match=":"):
            normalize_repo_rel("file:///etc/passwd", allow_backslashes=False)


class TestResolveRepoRelPath:
    """Tests for resolve_repo_rel_path with symlink hardening."""

    def test_valid_path_resolves(self, tmp_path: Path) -> None:
        (tmp_path / "Cargo.toml").write_text("[package]\n")
        result = resolve_repo_rel_path(tmp_path, "Cargo.toml", must_exist=True, must_be_file=True)
        assert result == (tmp_path / "Cargo.toml").resolve()

    def test_missing_path_fails_when_required(self, tmp_path: Path) -> None:
        with pytest.raises(ValueError, match="missing"):
            resolve_repo_rel_path(tmp_path, "Cargo.toml", must_exist=True, must_be_file=True)

    def test_missing_path_ok_when_not_required(self, tmp_path: Path) -> None:
        result = resolve_repo_rel_path(tmp_path, "later/Cargo.toml", must_exist=False)
        assert result.name == "Cargo.toml"

    def test_directory_rejected_when_file_expected(self, tmp_path: Path) -> None:
        (tmp_path / "Cargo.toml").mkdir()
        with pytest.raises(ValueError, match="expected file"):
            resolve_repo_rel_path(tmp_path, "Cargo.toml", must_exist=True, must_be_file=True)

    @pytest.mark.skipif(sys.platform == "win32", reason="symlinks need privileges on Windows")
    def test_symlinked_manifest_rejected(self, tmp_path: Path) -> None:
        outside = tmp_path / "outside.toml"
        outside.write_text("[package]\n")
        root = tmp_path / "crate"
        root.mkdir()
        os.symlink(outside, root / "Cargo.toml")
        with pytest.raises(ValueError, match="symlink"):
            resolve_repo_rel_path(root, "Cargo.toml", must_exist=True, must_be_file=True)

    @pytest.mark.skipif(sys.platform == "win32", reason="symlinks need privileges on Windows")
    def test_symlinked_parent_rejected(self, tmp_path: Path) -> None:
        real = tmp_path / "real"
        real.mkdir()
        (real / "Cargo.toml").write_text("[package]\n")
        root = tmp_path / "crate"
        root.mkdir()
        os.symlink(real, root / "member")
        with pytest.raises(ValueError, match="symlink"):
            resolve_repo_rel_path(root, "member/Cargo.toml", must_exist=True, must_be_file=True)


class TestEnsureWithinRoot:
    def test_child_is_within(self, tmp_path: Path) -> None:
        ensure_within_root(tmp_path, tmp_path / "a" / "b")

    def test_root_itself_is_within(self, tmp_path: Path) -> None:
        ensure_within_root(tmp_path, tmp_path)

    def test_sibling_escapes(self, tmp_path: Path) -> None:
        with pytest.raises(ValueError, match="escapes"):
            ensure_within_root(tmp_path / "a", tmp_path / "b")


# ---------------------------------------------------------------------------
# Hash / canonical JSON
# ---------------------------------------------------------------------------

def test_sha256_hex_validation() -> None:
    assert is_hex_sha256(sha256_bytes(b"diet"))
    assert not is_hex_sha256("zz" * 32)
    assert not is_hex_sha256("ab")


def test_canonical_json_sorted_compact_lf() -> None:
    assert canonical_json_bytes({"b": 1, "a": [1, "é"]}) == '{"a":[1,"é"],"b":1}\n'.encode("utf-8")


def test_canonical_json_rejects_non_finite_numbers() -> None:
    with pytest.raises(ValueError):
        canonical_json_bytes({"x": float("nan")})


def test_parse_json_bytes_is_strict() -> None:
    assert parse_json_bytes(b'{"a":1}\n') == {"a": 1}
    with pytest.raises(ValueError, match="duplicate key"):
        parse_json_bytes(b'{"a":1,"a":2}')
    with pytest.raises(ValueError, match="non-finite"):
        parse_json_bytes(b'{"a":NaN}')
    with pytest.raises(ValueError, match="UTF-8"):
        parse_json_bytes(b'{"a":"\xff"}')


# ---------------------------------------------------------------------------
# Command record tests
# ---------------------------------------------------------------------------

class TestCommandRecord:
    def test_default_timestamps_are_fixed(self) -> None:
        rec = make_command_record(["cargo", "diet"], 0)
        assert rec == CommandRecord(
            argv=["cargo", "diet"],
            exit_code=0,
            started_at="1970-01-01T00:00:00Z",
            finished_at="1970-01-01T00:00:00Z",
        )

    def test_explicit_timestamps(self) -> None:
        rec = make_command_record(
            ["cargo", "diet", "--dry-run"],
            1,
            started_at="2024-05-01T10:00:00Z",
            finished_at="2024-05-01T10:00:03Z",
        )
        d = command_record_to_dict(rec)
        assert d["finished_at"] == "2024-05-01T10:00:03Z"
        assert is_command_record_dict(d)

    def test_invalid_timestamp_rejected(self) -> None:
        with pytest.raises(ValueError, match="RFC3339"):
            make_command_record(["cargo"], 0, started_at="yesterday")

    def test_record_dict_rejects_bool_exit_code(self) -> None:
        d = command_record_to_dict(make_command_record(["cargo"], 0))
        d["exit_code"] = False
        assert not is_command_record_dict(d)
        assert not is_command_record_dict({"argv": ["cargo"]})

    def test_format_command_string_quotes(self) -> None:
        assert format_command_string(["cargo", "diet", "--dry-run"]) == "cargo diet --dry-run"
        assert format_command_string(["cargo", "a b"]) == "cargo 'a b'"
        assert format_command_string([]) == ""


# ---------------------------------------------------------------------------
# Apply lock
# ---------------------------------------------------------------------------

def test_apply_lock_is_exclusive_and_released(tmp_path: Path) -> None:
    with apply_lock(tmp_path) as lock:
        assert lock == tmp_path / LOCK_FILENAME
        assert lock.read_text().strip() == str(os.getpid())
        with pytest.raises(ApplyInProgressError):
            with apply_lock(tmp_path):
                pass
    assert not (tmp_path / LOCK_FILENAME).exists()


def test_apply_lock_released_on_error(tmp_path: Path) -> None:
    with pytest.raises(RuntimeError):
        with apply_lock(tmp_path):
            raise RuntimeError("tool crashed")
    assert not (tmp_path / LOCK_FILENAME).exists()
