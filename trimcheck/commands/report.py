from __future__ import annotations

from pathlib import Path
from typing import Any

from trimcheck.builder.context import BuildContext
from trimcheck.checker.runner import JobResult
from trimcheck.core.command_log import command_record_to_dict, is_command_record_dict, make_command_record
from trimcheck.core.hash import is_hex_sha256
from trimcheck.core.json_canon import canonical_json_bytes, parse_json_bytes
from trimcheck.core.time import parse_rfc3339, utc_timestamp_iso_z


REPORT_SCHEMA_VERSION = "1.0.0"
REPORT_TYPE = "dependency_trim"

_REQUIRED_KEYS: dict[str, type | tuple[type, ...]] = {
    "schema_version": str,
    "report_type": str,
    "job": str,
    "mode": str,
    "pname": str,
    "version": str,
    "passed": bool,
    "exit_code": int,
    "manifest": dict,
    "commands_executed": list,
    "output": dict,
    "generated_at": str,
}


def build_job_report(result: JobResult, *, context: BuildContext, deterministic: bool) -> dict[str, Any]:
    record = make_command_record(
        result.argv,
        result.exit_code,
        started_at=result.started_at,
        finished_at=result.finished_at,
    )
    payload: dict[str, Any] = {
        "schema_version": REPORT_SCHEMA_VERSION,
        "report_type": REPORT_TYPE,
        "job": result.job,
        "mode": result.mode.value,
        "pname": context.pname,
        "version": context.version,
        "passed": result.passed,
        "exit_code": result.exit_code,
        "manifest": {
            "path": result.manifest_path,
            "sha256_before": result.manifest_sha256_before,
            "sha256_after": result.manifest_sha256_after,
            "changed": result.manifest_changed,
        },
        "commands_executed": [command_record_to_dict(record)],
        "output": {
            "stdout": result.stdout,
            "stderr": result.stderr,
        },
        "generated_at": utc_timestamp_iso_z(deterministic=deterministic),
    }
    errs = validate_job_report(payload)
    if errs:
        raise ValueError(f"job report invalid: {errs[0]}")
    return payload


def validate_job_report(payload: Any) -> list[str]:
    """Return a list of problems (empty when valid)."""

    if not isinstance(payload, dict):
        return ["report must be a JSON object"]

    errs: list[str] = []
    for key, typ in _REQUIRED_KEYS.items():
        if key not in payload:
            errs.append(f"missing key: {key}")
            continue
        value = payload[key]
        if typ is int and isinstance(value, bool):
            errs.append(f"{key} must be an integer")
        elif not isinstance(value, typ):
            errs.append(f"{key} has wrong type")
    if errs:
        return errs

    if payload["report_type"] != REPORT_TYPE:
        errs.append(f"report_type must be {REPORT_TYPE!r}")
    if payload["mode"] not in ("dry-run", "apply"):
        errs.append("mode must be 'dry-run' or 'apply'")
    if payload["passed"] != (payload["exit_code"] == 0):
        errs.append("passed disagrees with exit_code")
    try:
        parse_rfc3339(payload["generated_at"])
    except ValueError as e:
        errs.append(f"generated_at: {e}")

    manifest = payload["manifest"]
    for k in ("sha256_before", "sha256_after"):
        if not is_hex_sha256(manifest.get(k, "")):
            errs.append(f"manifest.{k} must be a sha256 hex digest")
    if not isinstance(manifest.get("path"), str) or not manifest.get("path"):
        errs.append("manifest.path missing/empty")
    if manifest.get("changed") is not (manifest.get("sha256_before") != manifest.get("sha256_after")):
        errs.append("manifest.changed disagrees with digests")

    cmds = payload["commands_executed"]
    if not cmds or not all(is_command_record_dict(c) for c in cmds):
        errs.append("commands_executed must hold at least one structured command record")

    output = payload["output"]
    if not isinstance(output.get("stdout"), str) or not isinstance(output.get("stderr"), str):
        errs.append("output.stdout/output.stderr must be strings")
    return errs


def write_job_report(out_path: Path, payload: dict[str, Any]) -> bytes:
    if not isinstance(out_path, Path):
        raise TypeError("out_path must be pathlib.Path")
    if out_path.exists():
        if out_path.is_symlink() or not out_path.is_file():
            raise ValueError(f"invalid output path: {out_path}")
    out_path.parent.mkdir(parents=True, exist_ok=True)
    data = canonical_json_bytes(payload)
    out_path.write_bytes(data)
    return data


def load_job_report(path: Path) -> tuple[dict[str, Any], bytes]:
    data = path.read_bytes()
    try:
        payload = parse_json_bytes(data)
    except ValueError as e:
        raise ValueError(f"report is not valid JSON: {path}: {e}") from e
    errs = validate_job_report(payload)
    if errs:
        raise ValueError(f"report invalid: {path}: {errs[0]}")
    return payload, data
