from __future__ import annotations

import os
import shutil
import subprocess
import tempfile
from contextlib import ExitStack
from dataclasses import dataclass
from pathlib import Path

from trimcheck.builder.context import BuildContext
from trimcheck.checker.diff import DiffLine, line_diff
from trimcheck.checker.job import CheckerJob, Mode, make_job
from trimcheck.checker.lock import LOCK_FILENAME, apply_lock
from trimcheck.core.command_log import format_command_string
from trimcheck.core.errors import BuildContextError, ToolExitError, ToolInvocationError
from trimcheck.core.hash import sha256_bytes
from trimcheck.core.jail import ensure_within_root
from trimcheck.core.time import utc_timestamp_iso_z


# Top-level entries never copied into a dry-run staging tree.
STAGE_EXCLUDES = frozenset({"target", ".git", LOCK_FILENAME})


@dataclass(frozen=True)
class JobResult:
    job: str
    mode: Mode
    argv: list[str]
    exit_code: int
    stdout: str
    stderr: str
    manifest_path: str
    manifest_sha256_before: str
    manifest_sha256_after: str
    manifest_diff: list[DiffLine] | None
    started_at: str
    finished_at: str

    @property
    def passed(self) -> bool:
        return self.exit_code == 0

    @property
    def manifest_changed(self) -> bool:
        return self.manifest_sha256_before != self.manifest_sha256_after


def validate_context(context: BuildContext) -> None:
    """Fail fast on a context no job can run against."""

    if context.cargo_artifacts is None:
        raise BuildContextError("build context has no cargo artifacts reference")
    if not context.cargo_artifacts.is_dir():
        raise BuildContextError(f"cargo artifacts directory does not exist: {context.cargo_artifacts}")
    if not context.src.is_dir():
        raise BuildContextError(f"source directory does not exist: {context.src}")
    manifest = context.manifest_file
    try:
        ensure_within_root(context.src, manifest)
    except ValueError as e:
        raise BuildContextError(f"manifest escapes source tree: {context.manifest_path}") from e
    if not manifest.is_file():
        raise BuildContextError(f"manifest file missing: {context.manifest_path}")


def search_path(job: CheckerJob) -> str:
    dirs = [str(p) for p in job.native_build_inputs]
    if job.context.inherit_path:
        inherited = os.environ.get("PATH", "")
        if inherited:
            dirs.append(inherited)
    return os.pathsep.join(dirs)


def resolve_tools(job: CheckerJob, path: str) -> dict[str, str]:
    """Resolve the command driver and the injected tool to absolute executables."""

    argv = job.argv
    if not argv:
        raise ToolInvocationError(f"unable to parse command {job.command!r}")

    resolved: dict[str, str] = {}
    for name in (argv[0], job.tool):
        found = shutil.which(name, path=path)
        if found is None:
            raise ToolInvocationError(
                f"{name} not found in resolved dependency set (native build inputs: "
                f"{', '.join(str(p) for p in job.native_build_inputs) or 'none'}"
                f"{'; caller PATH' if job.context.inherit_path else ''})"
            )
        resolved[name] = found
    return resolved


def _stage_ignore(root: Path):
    root_s = str(root)

    def ignore(directory: str, names: list[str]) -> set[str]:
        if os.path.normpath(directory) != os.path.normpath(root_s):
            return set()
        return {n for n in names if n in STAGE_EXCLUDES}

    return ignore


def stage_source(src: Path, dest: Path) -> Path:
    """Copy the project tree into `dest` so a dry-run cannot touch the original."""

    try:
        shutil.copytree(src, dest, symlinks=True, ignore=_stage_ignore(src))
    except OSError as e:
        # shutil.Error (special files such as FIFOs or sockets) is an OSError.
        raise BuildContextError(f"unable to stage source tree {src}: {e}") from e
    return dest


def stage_artifacts(artifacts: Path, dest: Path) -> Path:
    """Give the job a private copy of the shared artifacts; the original stays read-only."""

    try:
        shutil.copytree(artifacts, dest, symlinks=True)
    except OSError as e:
        raise BuildContextError(f"unable to stage cargo artifacts {artifacts}: {e}") from e
    return dest


def job_env(job: CheckerJob, *, path: str, target_dir: Path, scratch: Path) -> dict[str, str]:
    if job.context.inherit_path:
        env = dict(os.environ)
    else:
        home = scratch / "home"
        home.mkdir(exist_ok=True)
        env = {
            "HOME": str(home),
            "TMPDIR": str(scratch),
            "LANG": "C",
            "LC_ALL": "C",
        }
    env.update(job.context.env)
    env["PATH"] = path
    env["CARGO_TARGET_DIR"] = str(target_dir)
    return env


def _read_manifest(path: Path) -> bytes:
    try:
        return path.read_bytes()
    except OSError as e:
        raise BuildContextError(f"unable to read manifest {path}: {e}") from e


def execute(job: CheckerJob, *, deterministic: bool = False) -> JobResult:
    """Run one job to completion.

    Returns the JobResult on exit 0; raises ToolExitError (carrying the result)
    otherwise. Nothing is retried.
    """

    context = job.context
    validate_context(context)
    path = search_path(job)
    tools = resolve_tools(job, path)
    argv = job.argv
    manifest_file = context.manifest_file
    manifest_rel_dir = Path(context.manifest_path).parent

    with ExitStack() as stack:
        scratch = Path(stack.enter_context(tempfile.TemporaryDirectory(prefix=f"trimcheck-{job.name}-")))
        target_dir = stage_artifacts(context.cargo_artifacts, scratch / "target")

        if job.mutates_source:
            stack.enter_context(apply_lock(context.src))
            workdir = context.src / manifest_rel_dir
        else:
            workdir = stage_source(context.src, scratch / "src") / manifest_rel_dir

        env = job_env(job, path=path, target_dir=target_dir, scratch=scratch)
        before = _read_manifest(manifest_file)
        started_at = utc_timestamp_iso_z(deterministic=deterministic)
        try:
            cp = subprocess.run(
                [tools[argv[0]], *argv[1:]],
                cwd=str(workdir),
                env=env,
                stdin=subprocess.DEVNULL,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                check=False,
            )
        except OSError as e:
            raise ToolInvocationError(f"unable to run command {format_command_string(argv)}: {e}") from e
        finished_at = utc_timestamp_iso_z(deterministic=deterministic)
        after = _read_manifest(manifest_file)

    diff = None
    if before != after:
        diff = line_diff(
            before.decode("utf-8", errors="replace"),
            after.decode("utf-8", errors="replace"),
        )

    result = JobResult(
        job=job.name,
        mode=job.mode,
        argv=list(argv),
        exit_code=cp.returncode,
        stdout=cp.stdout.decode("utf-8", errors="replace"),
        stderr=cp.stderr.decode("utf-8", errors="replace"),
        manifest_path=context.manifest_path,
        manifest_sha256_before=sha256_bytes(before),
        manifest_sha256_after=sha256_bytes(after),
        manifest_diff=diff,
        started_at=started_at,
        finished_at=finished_at,
    )
    if cp.returncode != 0:
        raise ToolExitError(cp.returncode, stdout=result.stdout, stderr=result.stderr, result=result)
    return result


def run(context: BuildContext, mode: Mode) -> int:
    """Run the trim tool in `mode` against `context` and return its exit status."""

    return execute(make_job(context, mode)).exit_code
