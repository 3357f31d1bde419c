# src/render/report_renderer.py — v1
"""ExecutionReport renderings: markdown and json.

Markdown renders one section per step in declaration order with output keys
sorted, so rendering the same report twice yields identical bytes. The JSON
form decodes back into an ExecutionReport.
"""

from __future__ import annotations

import re

from docflow.core.errors import InvalidInputError
from docflow.workflow.models import ExecutionReport, StepReport

REPORT_FORMATS: tuple[str, ...] = ("markdown", "json")

_BACKTICK_RUN = re.compile(r"`+")


def render_report(report: ExecutionReport, fmt: str = "markdown") -> str:
    """Render an ExecutionReport.

    Args:
        report: Report to render (complete or partial).
        fmt: ``markdown`` or ``json`` (case-insensitive).

    Returns:
        The rendered document.

    Raises:
        InvalidInputError: If the format is not supported.
    """
    fmt = fmt.lower()
    if fmt == "markdown":
        return _as_markdown(report)
    if fmt == "json":
        return report.model_dump_json(indent=2)
    raise InvalidInputError(f"Unsupported report format: {fmt!r}")


def _as_markdown(report: ExecutionReport) -> str:
    lines = [
        "# Workflow Execution Report",
        "",
        f"- **Workflow**: `{report.source_path}`",
    ]
    if report.run_id:
        lines.append(f"- **Run ID**: `{report.run_id}`")
    lines.append(f"- **Status**: {'succeeded' if report.succeeded else 'failed'}")
    lines += ["", "## Steps"]

    for index, step in enumerate(report.steps, start=1):
        lines += ["", *_step_section(index, step)]

    if report.files_written:
        lines += ["", "## Files Written", ""]
        lines += [f"- `{path}`" for path in report.files_written]

    if report.error:
        lines += ["", "## Error", "", report.error]

    return "\n".join(lines) + "\n"


def _step_section(index: int, step: StepReport) -> list[str]:
    lines = [f"### {index}. {step.name} [{step.status}]", "", f"Operation: `{step.type}`"]

    if not step.enabled:
        lines += ["", "_Step is disabled and was not executed._"]
        return lines
    if step.error:
        lines += ["", f"**Error**: {step.error}"]

    for key in sorted(step.outputs):
        output = step.outputs[key]
        fence = _fence_for(output.value)
        lines += [
            "",
            f"#### {key}",
            "",
            f"{fence}{output.format}",
            output.value.rstrip("\n"),
            fence,
        ]
    return lines


def _fence_for(value: str) -> str:
    longest = max((len(m.group(0)) for m in _BACKTICK_RUN.finditer(value)), default=0)
    return "`" * max(3, longest + 1)
