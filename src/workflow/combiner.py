# src/workflow/combiner.py — v1
"""Post-pass that combines step outputs into composite artifacts.

Runs once after the main step loop. Two kinds of destinations:

  - a step-level ``output_file_path``: the step's declared output, where a
    JSON-format output is parsed as one or more concatenated JSON values and
    wrapped as ``{"data": [...]}``
  - a workflow-level ``combine`` entry: several steps' outputs concatenated
    (text) or merged into one ``{"data": [...]}`` document (json)

Writes go through the same WritePolicy as per-step outputs.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

from docflow.core.models import dump_json
from docflow.workflow.models import CompositeOutput, ExecutionReport, StepOutput, Workflow
from docflow.workflow.params import display_path, resolve_relative_path
from docflow.workflow.write_policy import WritePolicy

logger = logging.getLogger(__name__)


def combine_outputs(
    workflow: Workflow, report: ExecutionReport, policy: WritePolicy,
) -> list[str]:
    """Write every step-level and composite destination.

    Args:
        workflow: Loaded workflow.
        report: Report holding the outputs of the completed steps.
        policy: Write policy deciding whether existing files are replaced.

    Returns:
        Display paths of the files written (also recorded on the report).
    """
    written: list[str] = []

    for step in workflow.steps:
        if not (step.output_file_path or "").strip():
            continue
        entry = report.step(step.name)
        if entry is None:
            continue
        output = entry.outputs.get(step.output_key)
        if output is None or not output.value.strip():
            continue

        destination = Path(resolve_relative_path(workflow.base_dir, step.output_file_path))
        if _is_json(step.output_format) or _is_json(output.format):
            content, structured = _json_document([output])
        else:
            content, structured = output.value, False

        if policy.write(destination, content + "\n", structured):
            written.append(_record(report, destination, workflow))

    for composite in workflow.composites:
        outputs = _collect_sources(composite, report)
        if not outputs:
            logger.warning("Composite %s has no available sources, skipping", composite.path)
            continue

        destination = Path(resolve_relative_path(workflow.base_dir, composite.path))
        if composite.format == "json":
            content, structured = _json_document(outputs)
        else:
            content = composite.separator.join(o.value for o in outputs)
            structured = False

        if policy.write(destination, content + "\n", structured):
            written.append(_record(report, destination, workflow))

    if written:
        logger.info("Post-pass wrote %d combined files", len(written))
    return written


def parse_json_values(text: str) -> list[Any] | None:
    """Decode one or more concatenated top-level JSON values.

    Returns:
        The decoded values, or None if the text is not entirely JSON.
    """
    decoder = json.JSONDecoder()
    values: list[Any] = []
    idx = 0
    length = len(text)
    while True:
        while idx < length and text[idx].isspace():
            idx += 1
        if idx >= length:
            break
        try:
            value, idx = decoder.raw_decode(text, idx)
        except json.JSONDecodeError:
            return None
        values.append(value)
    return values or None


def _json_document(outputs: list[StepOutput]) -> tuple[str, bool]:
    """Merge outputs into ``{"data": [...]}``; fall back to text if not JSON."""
    items: list[Any] = []
    for output in outputs:
        values = parse_json_values(output.value)
        if values is None:
            if len(outputs) == 1:
                return output.value, False
            items.append(output.value)
            continue
        items.extend(_flatten(values))
    return dump_json({"data": [_with_package(item) for item in items]}), True


def _flatten(values: list[Any]) -> list[Any]:
    # a single array is unwrapped; several values become the array
    if len(values) == 1 and isinstance(values[0], list):
        return list(values[0])
    return list(values)


def _with_package(item: Any) -> Any:
    """Add a ``package`` field (file stem) to objects carrying a ``file``."""
    if isinstance(item, dict):
        file_value = item.get("file")
        if isinstance(file_value, str) and file_value:
            item = {**item, "package": Path(file_value).stem}
    return item


def _collect_sources(composite: CompositeOutput, report: ExecutionReport) -> list[StepOutput]:
    outputs: list[StepOutput] = []
    for source in composite.sources:
        output = _lookup(report, source)
        if output is None:
            logger.warning("Composite %s: source '%s' produced no output", composite.path, source)
            continue
        outputs.append(output)
    return outputs


def _lookup(report: ExecutionReport, source: str) -> StepOutput | None:
    """Resolve 'step' (first output of the step) or 'step.key'."""
    entry = report.step(source)
    if entry is not None:
        return next(iter(entry.outputs.values()), None)
    step_name, _, key = source.rpartition(".")
    entry = report.step(step_name) if step_name else None
    if entry is None:
        return None
    return entry.outputs.get(key)


def _is_json(fmt: str | None) -> bool:
    return bool(fmt) and fmt.lower() == "json"


def _record(report: ExecutionReport, destination: Path, workflow: Workflow) -> str:
    display = display_path(destination, workflow.base_dir)
    report.record_file(display)
    return display
