# src/render/renderer.py — v1
"""Single entry point rendering either a BatchSummary or an ExecutionReport."""

from __future__ import annotations

from docflow.batch.models import BatchSummary
from docflow.core.errors import InvalidInputError
from docflow.render.batch_renderer import render_batch_summary
from docflow.render.report_renderer import render_report
from docflow.workflow.models import ExecutionReport


def render(obj: BatchSummary | ExecutionReport, fmt: str) -> str:
    """Render a summary or report in the requested format.

    Raises:
        InvalidInputError: Unsupported object type or format.
    """
    if isinstance(obj, BatchSummary):
        return render_batch_summary(obj, fmt)
    if isinstance(obj, ExecutionReport):
        return render_report(obj, fmt)
    raise InvalidInputError(f"Cannot render object of type {type(obj).__name__}")
