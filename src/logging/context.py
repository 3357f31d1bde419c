# src/logging/context.py — v2
"""Contextual logging support — attach run_id, workflow, step and job to log records.

Context variables are copied into every asyncio task, so a job task can set
its own job id without leaking it into sibling jobs.
"""

from __future__ import annotations

import contextvars
from dataclasses import dataclass
from typing import Any

_run_id: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "run_id", default=None
)
_workflow: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "workflow", default=None
)
_step: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "step", default=None
)
_job: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "job", default=None
)


@dataclass
class LogContext:
    """Immutable snapshot of current logging context."""

    run_id: str | None = None
    workflow: str | None = None
    step: str | None = None
    job: str | None = None

    def as_dict(self) -> dict[str, Any]:
        """Return non-None fields as dict for JSON log injection."""
        return {k: v for k, v in self.__dict__.items() if v is not None}


def get_context() -> LogContext:
    """Snapshot current context variables."""
    return LogContext(
        run_id=_run_id.get(),
        workflow=_workflow.get(),
        step=_step.get(),
        job=_job.get(),
    )


def set_run_context(run_id: str, workflow: str | None = None) -> None:
    """Set run-level context (called once per orchestration run)."""
    _run_id.set(run_id)
    _workflow.set(workflow)


def set_step_context(step: str | None) -> None:
    """Set step-level context (called per workflow step)."""
    _step.set(step)


def set_job_context(job: str | None) -> None:
    """Set job-level context (called inside each job task)."""
    _job.set(job)


def clear_context() -> None:
    """Reset all context variables."""
    _run_id.set(None)
    _workflow.set(None)
    _step.set(None)
    _job.set(None)
