from __future__ import annotations

import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Sequence

from trimcheck.builder.context import BuildContext
from trimcheck.checker.job import Mode, make_jobs
from trimcheck.checker.runner import JobResult, execute
from trimcheck.commands.report import build_job_report, write_job_report
from trimcheck.core.errors import ToolExitError


# Exit code when a clean dry-run was followed by a mutating apply in one session.
EXIT_INCONSISTENT = 1


@dataclass
class PipelineOutcome:
    exit_code: int
    results: list[JobResult] = field(default_factory=list)
    failed_job: str | None = None
    message: str = ""


def run_pipeline(
    context: BuildContext,
    modes: Sequence[Mode] = (Mode.DRY_RUN,),
    *,
    report_dir: Path | None = None,
    deterministic: bool = False,
) -> PipelineOutcome:
    """Run the session's jobs in order and reduce them to one gate verdict.

    Stops at the first failing job. ToolInvocationError and BuildContextError
    are not caught here; the caller maps them to its own exit code.
    """

    jobs = make_jobs(context, modes)
    outcome = PipelineOutcome(exit_code=0)
    dry_run_clean = False

    for job in jobs:
        print(f"[trimcheck ci] running {job.name}: {job.command}", file=sys.stderr)
        try:
            result = execute(job, deterministic=deterministic)
        except ToolExitError as e:
            if report_dir is not None and e.result is not None:
                write_job_report(
                    report_dir / f"{job.name}.json",
                    build_job_report(e.result, context=context, deterministic=deterministic),
                )
            if e.result is not None:
                outcome.results.append(e.result)
            outcome.exit_code = e.exit_code
            outcome.failed_job = job.name
            outcome.message = f"{job.name} exited with code {e.exit_code}"
            return outcome

        outcome.results.append(result)
        if report_dir is not None:
            write_job_report(
                report_dir / f"{job.name}.json",
                build_job_report(result, context=context, deterministic=deterministic),
            )

        if job.mode is Mode.DRY_RUN:
            dry_run_clean = True
        elif job.mode is Mode.APPLY and dry_run_clean and result.manifest_changed:
            outcome.exit_code = EXIT_INCONSISTENT
            outcome.failed_job = job.name
            outcome.message = f"{job.name} rewrote {result.manifest_path} after a clean dry-run"
            return outcome

    outcome.message = f"{len(jobs)} job(s) passed"
    return outcome
