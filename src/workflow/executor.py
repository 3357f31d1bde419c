# src/workflow/executor.py — v1
"""Workflow executor — run steps in declaration order, fail-fast.

Walks the Workflow one step at a time, normalizing each enabled step's
parameters, calling the bound operation invoker, recording the primary output
on the ExecutionReport and persisting it through the WritePolicy when the
step declares an ``output_file_path`` parameter. After the loop the combine
post-pass writes composite artifacts.

Steps only communicate through files. The first failing step aborts the run:
the error carries the report accumulated so far.
"""

from __future__ import annotations

import asyncio
import logging
import time
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import TYPE_CHECKING

from docflow.core.errors import (
    OperationCancelledError,
    RunCancelledError,
    RunFailedError,
    StepFailedError,
    WorkflowIOError,
)
from docflow.logging.context import set_run_context, set_step_context
from docflow.operations.registry import Invoker, OperationContext
from docflow.workflow.combiner import combine_outputs
from docflow.workflow.loader import load_workflow
from docflow.workflow.models import ExecutionReport, Step, StepOutput, StepReport, Workflow
from docflow.workflow.params import display_path, normalize_params
from docflow.workflow.write_policy import IdempotentWritePolicy, WritePolicy, create_write_policy

if TYPE_CHECKING:
    from docflow.config.settings import Settings
    from docflow.core.models import OperationResult
    from docflow.operations.registry import OperationRegistry

logger = logging.getLogger(__name__)


class WorkflowExecutor:
    """Execute a Workflow against an operation invoker.

    Args:
        write_policy: Policy for step output files (default: idempotent).
        combine: Run the composite-output post-pass after the last step.
    """

    def __init__(
        self,
        write_policy: WritePolicy | None = None,
        combine: bool = True,
    ) -> None:
        self._policy = write_policy or IdempotentWritePolicy()
        self._combine = combine

    @property
    def write_policy(self) -> WritePolicy:
        return self._policy

    async def run(
        self,
        workflow: Workflow,
        invoke: Invoker,
        cancel_event: asyncio.Event | None = None,
        run_id: str | None = None,
    ) -> ExecutionReport:
        """Execute every enabled step in order.

        Args:
            workflow: Loaded workflow.
            invoke: ``await invoke(op_name, params) -> OperationResult``.
            cancel_event: Optional shared cancellation signal, checked before
                each step and honoured by cancellation-aware operations.
            run_id: Identifier for logs and the report (generated if omitted).

        Returns:
            The finalized ExecutionReport.

        Raises:
            StepFailedError: A step failed; later steps were not invoked.
            RunCancelledError: The run was cancelled.
            RunFailedError: The combine post-pass could not write a file;
                chained from the underlying WorkflowIOError.
        """
        run_id = run_id or _new_run_id()
        set_run_context(run_id, workflow.source_path.name)
        report = ExecutionReport.for_workflow(workflow, run_id=run_id)
        start_ns = time.monotonic_ns()

        logger.info(
            "Running workflow %s (%d steps)", workflow.source_path, len(workflow.steps),
        )
        try:
            for index, step in enumerate(workflow.steps):
                entry = report.steps[index]
                set_step_context(step.name)

                if not step.enabled:
                    entry.status = "disabled"
                    logger.info("Step %d/%d '%s' disabled, skipping",
                                index + 1, len(workflow.steps), step.name)
                    continue

                if cancel_event is not None and cancel_event.is_set():
                    report.error = f"run cancelled before step '{step.name}'"
                    logger.warning("Cancelled before step '%s'", step.name)
                    raise RunCancelledError(report.error, report=report)

                await self._run_step(workflow, step, entry, report, invoke, index)

            set_step_context(None)
            if self._combine:
                try:
                    combine_outputs(workflow, report, self._policy)
                except WorkflowIOError as exc:
                    report.error = f"cannot write combined output: {exc}"
                    logger.error("%s", report.error)
                    raise RunFailedError(report.error, report=report) from exc
        finally:
            set_step_context(None)

        logger.info(
            "Workflow complete: %d steps, %d files written, %dms",
            len(workflow.steps), len(report.files_written),
            (time.monotonic_ns() - start_ns) // 1_000_000,
        )
        return report

    async def _run_step(
        self,
        workflow: Workflow,
        step: Step,
        entry: StepReport,
        report: ExecutionReport,
        invoke: Invoker,
        index: int,
    ) -> None:
        params = normalize_params(step.params, workflow.base_dir)
        logger.info("Step %d/%d '%s': invoking %s",
                    index + 1, len(workflow.steps), step.name, step.type)
        step_start_ns = time.monotonic_ns()

        try:
            result = await invoke(step.type, params)
        except OperationCancelledError as exc:
            self._fail(entry, report, f"cancelled: {exc}")
            raise RunCancelledError(report.error or str(exc), report=report) from exc
        except asyncio.CancelledError:
            self._fail(entry, report, "cancelled")
            raise
        except Exception as exc:
            message = str(exc) or type(exc).__name__
            self._fail(entry, report, message)
            logger.error("Step '%s' failed, aborting remaining steps: %s", step.name, message)
            raise StepFailedError(step.name, step.type, message, report=report) from exc

        self._record(step, entry, result)

        destination = params.get("output_file_path")
        if isinstance(destination, str) and destination.strip():
            try:
                path = Path(destination)
                if self._policy.write(path, result.as_text(), result.has_structured):
                    report.record_file(display_path(path, workflow.base_dir))
            except WorkflowIOError as exc:
                self._fail(entry, report, str(exc))
                raise StepFailedError(
                    step.name, step.type, f"cannot write output: {exc}", report=report,
                ) from exc

        logger.info("Step '%s' completed in %dms",
                    step.name, (time.monotonic_ns() - step_start_ns) // 1_000_000)

    @staticmethod
    def _record(step: Step, entry: StepReport, result: OperationResult) -> None:
        fmt = step.output_format or ("json" if result.has_structured else "text")
        key = step.output_key
        entry.outputs[key] = StepOutput(key=key, value=result.as_text(), format=fmt)
        entry.status = "completed"

    @staticmethod
    def _fail(entry: StepReport, report: ExecutionReport, message: str) -> None:
        entry.status = "failed"
        entry.error = message
        report.error = f"step '{entry.name}' failed: {message}"


async def run_workflow_file(
    path: str | Path,
    registry: OperationRegistry,
    settings: Settings | None = None,
    cancel_event: asyncio.Event | None = None,
    write_policy: WritePolicy | None = None,
) -> ExecutionReport:
    """Load a definition file and execute it against a registry.

    Args:
        path: Workflow definition (JSON or YAML).
        registry: Operations available to the steps.
        settings: Optional settings (write policy, batch defaults).
        cancel_event: Optional shared cancellation signal.
        write_policy: Overrides the policy selected by settings.

    Returns:
        The finalized ExecutionReport.
    """
    workflow = load_workflow(path)
    context = OperationContext(
        registry=registry,
        cancel_event=cancel_event,
        base_dir=workflow.base_dir,
        settings=settings,
    )
    executor = WorkflowExecutor(write_policy or create_write_policy(settings))
    return await executor.run(workflow, registry.bind(context), cancel_event=cancel_event)


def _new_run_id() -> str:
    """Generate a sortable run id, e.g. '20260207_161502_b3c8d'."""
    stamp = datetime.now(timezone.utc).strftime("%Y%m%d_%H%M%S")
    return f"{stamp}_{uuid.uuid4().hex[:5]}"
