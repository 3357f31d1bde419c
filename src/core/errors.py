# src/core/errors.py — v1
"""Error taxonomy shared by the job pool, the step orchestrator and operations.

InvalidInput, IO and Parse errors are raised before any work starts and are
never retried. OperationError is isolated per job in the pool but terminal for
a workflow run. Cancellation has its own branch so callers can tell "some
inputs failed" apart from "the whole run was aborted".
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from docflow.batch.models import BatchSummary
    from docflow.workflow.models import ExecutionReport


class DocflowError(Exception):
    """Base class for all docflow errors."""


class InvalidInputError(DocflowError, ValueError):
    """Input rejected before any work began (empty job list, bad step fields)."""


class WorkflowIOError(DocflowError, OSError):
    """A definition file could not be read or an output could not be written."""


class WorkflowParseError(DocflowError):
    """A definition file is malformed (bad JSON/YAML or wrong top-level shape)."""


class OperationError(DocflowError):
    """An invoked operation failed or does not exist."""

    def __init__(self, operation: str, message: str) -> None:
        super().__init__(f"{operation}: {message}")
        self.operation = operation
        self.message = message


class StepFailedError(OperationError):
    """A workflow step failed; remaining steps were not executed.

    Attributes:
        step_name: Name of the failing step.
        report: Execution report accumulated up to and including the failure.
    """

    def __init__(
        self,
        step_name: str,
        operation: str,
        message: str,
        report: ExecutionReport | None = None,
    ) -> None:
        OperationError.__init__(self, operation, message)
        self.args = (f"step '{step_name}' ({operation}) failed: {message}",)
        self.step_name = step_name
        self.report = report


class OperationCancelledError(DocflowError):
    """The shared cancellation signal fired before the work completed."""


class BatchCancelledError(OperationCancelledError):
    """A batch was cancelled; jobs that had not finished are dropped.

    Attributes:
        partial: Summary of the jobs that finished before cancellation.
        submitted: Number of jobs originally submitted.
    """

    def __init__(
        self,
        message: str,
        partial: BatchSummary | None = None,
        submitted: int = 0,
    ) -> None:
        super().__init__(message)
        self.partial = partial
        self.submitted = submitted


class RunCancelledError(OperationCancelledError):
    """A workflow run was cancelled between or during steps."""

    def __init__(self, message: str, report: ExecutionReport | None = None) -> None:
        super().__init__(message)
        self.report = report


class RunFailedError(DocflowError):
    """A workflow run failed after its steps, while writing combined outputs.

    Attributes:
        report: Execution report with every step's outputs and the error.
    """

    def __init__(self, message: str, report: ExecutionReport | None = None) -> None:
        super().__init__(message)
        self.report = report
