"""Dependency-trim checker: one job shape, two modes, one shared build context."""

from __future__ import annotations

from trimcheck.checker.job import COMMANDS, CheckerJob, Mode, assert_shared_context, make_job, make_jobs, parse_mode
from trimcheck.checker.runner import JobResult, execute, run

__all__ = [
    "COMMANDS",
    "CheckerJob",
    "JobResult",
    "Mode",
    "assert_shared_context",
    "execute",
    "make_job",
    "make_jobs",
    "parse_mode",
    "run",
]
