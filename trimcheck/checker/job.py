from __future__ import annotations

import enum
import shlex
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, Sequence

from trimcheck.builder.context import BuildContext
from trimcheck.core.errors import BuildContextError


class Mode(enum.Enum):
    DRY_RUN = "dry-run"
    APPLY = "apply"


# Fixed command strings; the mode is the only thing that differs between jobs.
COMMANDS: dict[Mode, str] = {
    Mode.DRY_RUN: "cargo diet --dry-run",
    Mode.APPLY: "cargo diet",
}

PNAME_SUFFIXES: dict[Mode, str] = {
    Mode.DRY_RUN: "-diet-check",
    Mode.APPLY: "-diet",
}

TOOL_DEPENDENCY = "cargo-diet"


@dataclass(frozen=True)
class CheckerJob:
    mode: Mode
    command: str
    context: BuildContext
    tool: str
    native_build_inputs: tuple[Path, ...]

    @property
    def name(self) -> str:
        return f"{self.context.pname}{PNAME_SUFFIXES[self.mode]}"

    @property
    def argv(self) -> list[str]:
        return shlex.split(self.command)

    @property
    def mutates_source(self) -> bool:
        return self.mode is Mode.APPLY


def parse_mode(raw: str) -> Mode:
    s = str(raw or "").strip().lower().replace("_", "-")
    for m in Mode:
        if m.value == s:
            return m
    raise ValueError(f"unknown mode: {raw!r} (expected one of: {', '.join(m.value for m in Mode)})")


def make_job(
    context: BuildContext,
    mode: Mode,
    *,
    extra_native_build_inputs: Iterable[Path] = (),
) -> CheckerJob:
    """Derive a job from the shared context; the trimming tool rides along as a native build input."""

    if not isinstance(context, BuildContext):
        raise BuildContextError("context must be a BuildContext")
    if not isinstance(mode, Mode):
        raise ValueError(f"mode must be a Mode, got {mode!r}")

    return CheckerJob(
        mode=mode,
        command=COMMANDS[mode],
        context=context,
        tool=TOOL_DEPENDENCY,
        native_build_inputs=tuple(context.native_build_inputs) + tuple(Path(p) for p in extra_native_build_inputs),
    )


def make_jobs(
    context: BuildContext,
    modes: Sequence[Mode] = (Mode.DRY_RUN, Mode.APPLY),
    *,
    extra_native_build_inputs: Iterable[Path] = (),
) -> list[CheckerJob]:
    extra = tuple(extra_native_build_inputs)
    jobs = [make_job(context, m, extra_native_build_inputs=extra) for m in modes]
    assert_shared_context(jobs)
    return jobs


def assert_shared_context(jobs: Sequence[CheckerJob]) -> None:
    """Every job of a session must read the same BuildContext instance.

    Equal-but-distinct contexts are rejected too: only identity guarantees the
    check and the fix ran against one artifact set.
    """

    if not jobs:
        return
    first = jobs[0].context
    for job in jobs[1:]:
        if job.context is not first:
            raise BuildContextError(
                f"job {job.name} does not share the session BuildContext (artifact sets may diverge)"
            )
