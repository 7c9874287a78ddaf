from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from trimcheck.checker.runner import JobResult


class TrimCheckError(Exception):
    """Base class for every failure the checker surfaces to its caller."""


class BuildContextError(TrimCheckError):
    """The shared build context is malformed (no artifact reference, missing source, ...)."""


class ToolInvocationError(TrimCheckError):
    """The trimming tool could not be resolved or launched."""


class ToolExitError(TrimCheckError):
    """The trimming tool ran and exited non-zero.

    The exit code is carried unchanged so callers can propagate it as-is.
    """

    def __init__(
        self,
        exit_code: int,
        *,
        stdout: str = "",
        stderr: str = "",
        result: JobResult | None = None,
    ) -> None:
        super().__init__(f"tool exited with code {exit_code}")
        self.exit_code = exit_code
        self.stdout = stdout
        self.stderr = stderr
        self.result = result


class ApplyInProgressError(TrimCheckError):
    """Another Apply job holds the lock on the same project tree."""


class AttestationError(TrimCheckError):
    """A report signature or key could not be produced or verified."""
