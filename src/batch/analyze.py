# src/batch/analyze.py — v1
"""batch_analyze operation — the job pool exposed as a registry operation.

Fans one per-file operation out over a list of files with bounded
concurrency and renders the aggregated BatchSummary. The file list comes
either inline (``file_paths``) or from a JSON file written by an earlier
workflow step (``json_file_path``).
"""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import TYPE_CHECKING, Any

from docflow.batch.models import BatchSummary, JobDescriptor
from docflow.batch.pool import DEFAULT_MAX_CONCURRENCY, JobPool
from docflow.core.errors import InvalidInputError, WorkflowIOError
from docflow.core.models import OperationResult
from docflow.render.batch_renderer import BATCH_FORMATS, render_batch_summary

if TYPE_CHECKING:
    from docflow.operations.registry import OperationContext

logger = logging.getLogger(__name__)

# Array fields searched, in order, when json_file_path holds an object
LIST_FIELDS: tuple[str, ...] = ("packages_absolute", "packages", "items", "files")

DEFAULT_OPERATION = "file_info"


async def batch_analyze(params: dict[str, Any], context: OperationContext) -> OperationResult:
    """Run a per-file operation over many files concurrently.

    Args:
        params: ``file_paths`` or ``json_file_path``; optional ``operation``,
            ``max_concurrent``, ``format``, ``timeout``, ``package_directory``.
        context: Operation context; its registry runs the per-file operation.

    Returns:
        OperationResult whose text is the rendered summary. For the json
        format the summary dict is also the structured payload.

    Raises:
        InvalidInputError: No usable file paths, unknown format or operation.
        BatchCancelledError: The cancel signal fired or the timeout expired.
    """
    settings = context.settings

    paths = _collect_paths(params)
    if not paths:
        raise InvalidInputError("batch_analyze: no valid file paths provided")

    package_dir = params.get("package_directory")
    base = (
        Path(package_dir).expanduser()
        if isinstance(package_dir, str) and package_dir.strip()
        else (settings.package_directory_path if settings is not None else None)
    )
    if base is not None:
        paths = [_under(base, p) for p in paths]

    operation = params.get("operation") or (
        settings.batch_default_operation if settings is not None else DEFAULT_OPERATION
    )
    if operation == "batch_analyze":
        raise InvalidInputError("batch_analyze: per-file operation cannot be batch_analyze")
    if operation not in context.registry:
        raise InvalidInputError(f"batch_analyze: unknown operation '{operation}'")

    fmt = str(params.get("format") or (
        settings.batch_default_format if settings is not None else "text"
    )).lower()
    if fmt not in BATCH_FORMATS:
        raise InvalidInputError(
            f"batch_analyze: unsupported format '{fmt}' (expected one of {', '.join(BATCH_FORMATS)})"
        )

    max_concurrent = _as_int(params.get("max_concurrent")) or (
        settings.batch_max_concurrency if settings is not None else DEFAULT_MAX_CONCURRENCY
    )
    timeout = _as_float(params.get("timeout"))
    if timeout is None and settings is not None:
        timeout = settings.batch_timeout_seconds

    summary = await run_file_batch(
        paths, operation, context, max_concurrency=max_concurrent, timeout=timeout,
    )

    text = render_batch_summary(summary, fmt)
    if fmt == "json":
        return OperationResult(
            text=text, structured=summary.sorted_by_id().model_dump(mode="json"),
        )
    return OperationResult(text=text)


async def run_file_batch(
    paths: list[str],
    operation: str,
    context: OperationContext,
    max_concurrency: int = DEFAULT_MAX_CONCURRENCY,
    timeout: float | None = None,
) -> BatchSummary:
    """Invoke ``operation`` once per file through the job pool.

    Each file path is both the job id and the ``file_path`` parameter. A job's
    output is the operation's structured payload, or ``{"text": ...}``.

    Raises:
        InvalidInputError: ``paths`` is empty.
        BatchCancelledError: The cancel signal fired or the timeout expired.
    """

    async def work(job: JobDescriptor) -> dict[str, Any]:
        result = await context.registry.invoke(operation, {"file_path": job.id}, context)
        if isinstance(result.structured, dict):
            return result.structured
        if result.structured is not None:
            return {"result": result.structured}
        return {"text": result.text}

    logger.info(
        "Batch over %d files through '%s' (max_concurrency=%d)",
        len(paths), operation, max_concurrency,
    )
    pool = JobPool(max_concurrency=max_concurrency)
    return await pool.run(
        [JobDescriptor(id=p) for p in paths],
        work,
        cancel_event=context.cancel_event,
        timeout=timeout,
    )


def _collect_paths(params: dict[str, Any]) -> list[str]:
    raw = params.get("file_paths")
    if raw is None and params.get("json_file_path"):
        raw = _read_path_list(str(params["json_file_path"]))
    if raw is None:
        raise InvalidInputError(
            "batch_analyze: 'file_paths' (array) or 'json_file_path' is required"
        )
    if isinstance(raw, str):
        raw = [raw]
    if not isinstance(raw, (list, tuple)):
        raise InvalidInputError("batch_analyze: 'file_paths' must be an array")
    return [p for p in raw if isinstance(p, str) and p.strip()]


def _read_path_list(json_file_path: str) -> list[Any]:
    """Load the file list written by an earlier step."""
    path = Path(json_file_path).expanduser()
    try:
        document = json.loads(path.read_text(encoding="utf-8"))
    except OSError as exc:
        raise WorkflowIOError(f"Cannot read {path}: {exc}") from exc
    except json.JSONDecodeError as exc:
        raise InvalidInputError(f"batch_analyze: {path} is not valid JSON: {exc}") from exc

    if isinstance(document, list):
        return document
    if isinstance(document, dict):
        for key in LIST_FIELDS:
            value = document.get(key)
            if isinstance(value, list):
                return value
        raise InvalidInputError(
            f"batch_analyze: {path} has none of the array fields {', '.join(LIST_FIELDS)}"
        )
    if isinstance(document, str):
        return [document]
    raise InvalidInputError(f"batch_analyze: {path} does not hold a list of paths")


def _under(base: Path, path: str) -> str:
    expanded = os.path.expanduser(path)
    if os.path.isabs(expanded):
        return os.path.normpath(expanded)
    return os.path.normpath(os.path.join(base, expanded))


def _as_int(value: Any) -> int | None:
    if value is None or isinstance(value, bool):
        return None
    try:
        number = int(value)
    except (TypeError, ValueError):
        return None
    return number if number > 0 else None


def _as_float(value: Any) -> float | None:
    if value is None or isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    return number if number > 0 else None
