# src/render/batch_renderer.py — v1
"""BatchSummary renderings: text, json, csv, html, markdown.

Every format exposes the same six summary fields (total, successful, failed,
total duration, average duration, errors) and the same per-job fields (id,
success, error, duration). Results are always rendered sorted by job id so
output is deterministic regardless of arrival order. Only the JSON form
round-trips back into a BatchSummary.
"""

from __future__ import annotations

import csv
import io
import logging

from jinja2 import BaseLoader, Environment

from docflow.batch.models import BatchSummary
from docflow.core.errors import InvalidInputError

logger = logging.getLogger(__name__)

BATCH_FORMATS: tuple[str, ...] = ("text", "json", "csv", "html", "markdown")

_HTML_TEMPLATE = """\
<!DOCTYPE html>
<html>
<head>
    <meta charset="utf-8">
    <title>Batch Analysis Summary</title>
    <style>
        body { font-family: Arial, sans-serif; margin: 20px; }
        .summary { background: #f0f0f0; padding: 10px; border-radius: 5px; }
        .ok { color: #2d7a2d; }
        .fail { color: #b22222; }
        table { border-collapse: collapse; width: 100%; }
        th, td { border: 1px solid #ddd; padding: 8px; text-align: left; }
        th { background-color: #f2f2f2; }
    </style>
</head>
<body>
    <h1>Batch Analysis Summary</h1>
    <div class="summary">
        <h2>Overview</h2>
        <p>Total: {{ summary.total }}</p>
        <p>Successful: <span class="ok">{{ summary.successful }}</span></p>
        <p>Failed: <span class="fail">{{ summary.failed }}</span></p>
        <p>Total Duration: {{ summary.total_duration_ms | duration }}</p>
        <p>Average Duration: {{ summary.average_duration_ms | duration }}</p>
    </div>
{% if summary.errors %}
    <h2>Errors</h2>
    <ul>
{% for error in summary.errors %}
        <li>{{ error }}</li>
{% endfor %}
    </ul>
{% endif %}
    <h2>Details</h2>
    <table>
        <tr>
            <th>ID</th>
            <th>Status</th>
            <th>Duration</th>
            <th>Error</th>
        </tr>
{% for result in summary.results %}
        <tr>
            <td>{{ result.id }}</td>
{% if result.success %}
            <td class="ok">OK</td>
{% else %}
            <td class="fail">FAIL</td>
{% endif %}
            <td>{{ result.duration_ms | duration }}</td>
            <td>{{ result.error or "" }}</td>
        </tr>
{% endfor %}
    </table>
</body>
</html>
"""


def format_duration(ms: float) -> str:
    """Format a millisecond duration for humans, e.g. '12.500ms'."""
    return f"{ms:.3f}ms"


_env = Environment(
    loader=BaseLoader(),
    autoescape=True,
    trim_blocks=True,
    lstrip_blocks=True,
)
_env.filters["duration"] = format_duration


def render_batch_summary(summary: BatchSummary, fmt: str = "text") -> str:
    """Render a BatchSummary.

    Args:
        summary: Summary to render (results in any order).
        fmt: One of BATCH_FORMATS (case-insensitive).

    Returns:
        The rendered document.

    Raises:
        InvalidInputError: If the format is not supported.
    """
    fmt = fmt.lower()
    ordered = summary.sorted_by_id()
    if fmt == "text":
        return _as_text(ordered)
    if fmt == "json":
        return ordered.model_dump_json(indent=2)
    if fmt == "csv":
        return _as_csv(ordered)
    if fmt == "html":
        return _env.from_string(_HTML_TEMPLATE).render(summary=ordered)
    if fmt == "markdown":
        return _as_markdown(ordered)
    raise InvalidInputError(f"Unsupported batch summary format: {fmt!r}")


def _as_text(summary: BatchSummary) -> str:
    lines = [
        "Batch Analysis Summary",
        "======================",
        "",
        f"Total: {summary.total}",
        f"Successful: {summary.successful}",
        f"Failed: {summary.failed}",
        f"Total Duration: {format_duration(summary.total_duration_ms)}",
        f"Average Duration: {format_duration(summary.average_duration_ms)}",
    ]
    if summary.errors:
        lines += ["", "Errors:"]
        lines += [f"- {error}" for error in summary.errors]

    lines += ["", "Details:"]
    for result in summary.results:
        status = "[OK]" if result.success else "[FAIL]"
        lines.append(f"{status} {result.id} ({format_duration(result.duration_ms)})")
        if not result.success:
            lines.append(f"  Error: {result.error}")
    return "\n".join(lines) + "\n"


def _as_csv(summary: BatchSummary) -> str:
    buf = io.StringIO()
    writer = csv.writer(buf, lineterminator="\n")

    writer.writerow(["Summary"])
    writer.writerow(["Total", "Successful", "Failed", "Total Duration (ms)", "Average Duration (ms)"])
    writer.writerow([
        summary.total, summary.successful, summary.failed,
        f"{summary.total_duration_ms:.3f}", f"{summary.average_duration_ms:.3f}",
    ])
    writer.writerow([])

    if summary.errors:
        writer.writerow(["Errors"])
        for error in summary.errors:
            writer.writerow([error])
        writer.writerow([])

    writer.writerow(["Details"])
    writer.writerow(["ID", "Success", "Error", "Duration (ms)"])
    for result in summary.results:
        writer.writerow([
            result.id, str(result.success).lower(), result.error or "",
            f"{result.duration_ms:.3f}",
        ])
    return buf.getvalue()


def _as_markdown(summary: BatchSummary) -> str:
    lines = [
        "# Batch Analysis Summary",
        "",
        "## Overview",
        "",
        f"- **Total**: {summary.total}",
        f"- **Successful**: {summary.successful}",
        f"- **Failed**: {summary.failed}",
        f"- **Total Duration**: {format_duration(summary.total_duration_ms)}",
        f"- **Average Duration**: {format_duration(summary.average_duration_ms)}",
    ]
    if summary.errors:
        lines += ["", "## Errors", ""]
        lines += [f"- {error}" for error in summary.errors]

    lines += [
        "",
        "## Details",
        "",
        "| ID | Status | Duration | Error |",
        "|----|--------|----------|-------|",
    ]
    for result in summary.results:
        status = "OK" if result.success else "FAIL"
        lines.append(
            f"| {_cell(result.id)} | {status} | {format_duration(result.duration_ms)} "
            f"| {_cell(result.error or '')} |"
        )
    return "\n".join(lines) + "\n"


def _cell(value: str) -> str:
    # keep table rows on one line
    return value.replace("|", "\\|").replace("\n", " ")
