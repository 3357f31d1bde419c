# src/workflow/loader.py — v1
"""Workflow loader — read a JSON or YAML definition file into a Workflow.

Accepted shapes:
    - a top-level list of step objects
    - a mapping with a ``steps`` list and an optional ``combine`` list

Step keys are matched case-insensitively (``Name``/``name``,
``Parameters``/``params`` ...). Parameter keys are passed through untouched.
"""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from docflow.core.errors import InvalidInputError, WorkflowIOError, WorkflowParseError
from docflow.workflow.models import Workflow

logger = logging.getLogger(__name__)

_STEP_KEY_ALIASES: dict[str, str] = {
    "name": "name",
    "type": "type",
    "enabled": "enabled",
    "params": "params",
    "parameters": "params",
    "output": "output",
    "output_file_path": "output_file_path",
}

_COMPOSITE_KEY_ALIASES: dict[str, str] = {
    "path": "path",
    "output_file_path": "path",
    "sources": "sources",
    "format": "format",
    "separator": "separator",
}


def load_workflow(path: str | Path) -> Workflow:
    """Load and validate a workflow definition.

    Args:
        path: Definition file (.json, .yaml, .yml; other suffixes try both).

    Returns:
        Immutable Workflow whose base_dir is the file's directory.

    Raises:
        WorkflowIOError: Path missing, unreadable, or a directory.
        WorkflowParseError: Content is not valid JSON/YAML or has the wrong shape.
        InvalidInputError: Required step fields missing, duplicate names, no steps.
    """
    source = Path(os.path.abspath(Path(path).expanduser()))
    if source.is_dir():
        raise WorkflowIOError(f"Workflow path is a directory: {source}")
    try:
        text = source.read_text(encoding="utf-8")
    except OSError as exc:
        raise WorkflowIOError(f"Cannot read workflow {source}: {exc}") from exc

    raw = _parse(text, source)
    steps_raw, composites_raw = _split_document(raw, source)

    try:
        workflow = Workflow(
            source_path=source,
            steps=tuple(_normalize_step(s, i) for i, s in enumerate(steps_raw)),
            composites=tuple(_normalize_composite(c, i) for i, c in enumerate(composites_raw)),
        )
    except ValidationError as exc:
        raise InvalidInputError(f"Invalid workflow {source}: {_describe(exc)}") from exc

    logger.info(
        "Loaded workflow %s: %d steps (%d enabled), %d composite outputs",
        source.name, len(workflow.steps), len(workflow.enabled_steps),
        len(workflow.composites),
    )
    return workflow


def _parse(text: str, source: Path) -> Any:
    suffix = source.suffix.lower()
    if suffix == ".json":
        return _parse_json(text, source)
    if suffix in (".yaml", ".yml"):
        return _parse_yaml(text, source)

    try:
        return json.loads(text)
    except json.JSONDecodeError as json_exc:
        try:
            return yaml.safe_load(text)
        except yaml.YAMLError as yaml_exc:
            raise WorkflowParseError(
                f"Failed to parse workflow {source}: {json_exc}; {yaml_exc}"
            ) from yaml_exc


def _parse_json(text: str, source: Path) -> Any:
    try:
        return json.loads(text)
    except json.JSONDecodeError as exc:
        raise WorkflowParseError(f"Invalid JSON in workflow {source}: {exc}") from exc


def _parse_yaml(text: str, source: Path) -> Any:
    try:
        return yaml.safe_load(text)
    except yaml.YAMLError as exc:
        raise WorkflowParseError(f"Invalid YAML in workflow {source}: {exc}") from exc


def _split_document(raw: Any, source: Path) -> tuple[list[Any], list[Any]]:
    """Return (steps, composites) from either accepted top-level shape."""
    if isinstance(raw, list):
        return raw, []
    if isinstance(raw, dict):
        lowered = {str(k).lower(): v for k, v in raw.items()}
        steps = lowered.get("steps")
        if steps is None:
            raise InvalidInputError(f"Workflow {source} has no 'steps' list")
        if not isinstance(steps, list):
            raise WorkflowParseError(f"Workflow {source}: 'steps' must be a list")
        composites = lowered.get("combine") or []
        if not isinstance(composites, list):
            raise WorkflowParseError(f"Workflow {source}: 'combine' must be a list")
        return steps, composites
    raise WorkflowParseError(
        f"Workflow {source} must be a list of steps or a mapping with 'steps'"
    )


def _normalize_step(raw: Any, index: int) -> dict[str, Any]:
    if not isinstance(raw, dict):
        raise WorkflowParseError(f"step {index} must be a mapping, got {type(raw).__name__}")

    step: dict[str, Any] = {}
    for key, value in raw.items():
        target = _STEP_KEY_ALIASES.get(str(key).lower())
        if target is None:
            logger.debug("Ignoring unknown key '%s' on step %d", key, index)
            continue
        step[target] = value

    for required in ("name", "type"):
        if not isinstance(step.get(required), str) or not step[required].strip():
            raise InvalidInputError(f"step {index} is missing a {required.capitalize()}")

    if step.get("params") is None:
        step["params"] = {}
    if step.get("enabled") is None:
        step.pop("enabled", None)

    output = step.get("output")
    if isinstance(output, dict):
        step["output"] = {str(k).lower(): v for k, v in output.items()}
    elif isinstance(output, str):
        step["output"] = {"name": output}

    return step


def _normalize_composite(raw: Any, index: int) -> dict[str, Any]:
    if not isinstance(raw, dict):
        raise WorkflowParseError(f"combine entry {index} must be a mapping")
    composite: dict[str, Any] = {}
    for key, value in raw.items():
        target = _COMPOSITE_KEY_ALIASES.get(str(key).lower())
        if target is not None:
            composite[target] = value
    if isinstance(composite.get("sources"), str):
        composite["sources"] = [composite["sources"]]
    if isinstance(composite.get("format"), str):
        composite["format"] = composite["format"].lower()
    return composite


def _describe(exc: ValidationError) -> str:
    parts = []
    for err in exc.errors():
        loc = ".".join(str(p) for p in err.get("loc", ()))
        parts.append(f"{loc}: {err.get('msg')}" if loc else str(err.get("msg")))
    return "; ".join(parts)
