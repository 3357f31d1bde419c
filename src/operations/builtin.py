# src/operations/builtin.py — v1
"""Built-in operations available to every workflow.

list_files and file_info are small filesystem operations; they are what a
workflow uses to discover inputs and what batch_analyze fans out by default.
Every operation takes ``(params, context)`` and path parameters arrive already
resolved against the definition file's directory.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import TYPE_CHECKING, Any

from docflow.batch.analyze import batch_analyze
from docflow.core.errors import InvalidInputError

if TYPE_CHECKING:
    from docflow.operations.registry import OperationContext, OperationRegistry

logger = logging.getLogger(__name__)


def list_files(params: dict[str, Any], context: OperationContext) -> dict[str, Any]:
    """List files under a directory matching a glob pattern.

    Args:
        params: ``directory`` (required), ``pattern`` (default ``*``),
            ``recursive`` (default True).
        context: Operation context (unused).

    Returns:
        ``{"directory", "count", "files"}`` with absolute, sorted file paths.

    Raises:
        InvalidInputError: Directory missing or not a directory.
    """
    directory = _require(params, "directory", "list_files")
    root = Path(directory).expanduser()
    if not root.is_dir():
        raise InvalidInputError(f"list_files: not a directory: {root}")

    pattern = str(params.get("pattern") or "*")
    recursive = _as_bool(params.get("recursive", True))

    pattern_fn = root.rglob if recursive else root.glob
    files = sorted(str(p.absolute()) for p in pattern_fn(pattern) if p.is_file())

    logger.info(
        "Listed %s: %d files matching %r (recursive=%s)",
        root, len(files), pattern, recursive,
    )
    return {"directory": str(root), "count": len(files), "files": files}


def file_info(params: dict[str, Any], context: OperationContext) -> dict[str, Any]:
    """Describe one file: name, format, size and line count."""
    file_path = Path(_require(params, "file_path", "file_info")).expanduser()
    if not file_path.is_file():
        raise FileNotFoundError(f"file not found: {file_path}")

    data = file_path.read_bytes()
    return {
        "file_path": str(file_path),
        "file_name": file_path.name,
        "format": file_path.suffix.lower().lstrip("."),
        "size_bytes": len(data),
        "line_count": _count_lines(data),
    }


def register_builtin_operations(registry: OperationRegistry) -> OperationRegistry:
    """Register list_files, file_info and batch_analyze on ``registry``."""
    registry.register("list_files", list_files)
    registry.register("file_info", file_info)
    registry.register("batch_analyze", batch_analyze)
    return registry


def _require(params: dict[str, Any], key: str, operation: str) -> str:
    value = params.get(key)
    if not isinstance(value, str) or not value.strip():
        raise InvalidInputError(f"{operation}: missing required parameter '{key}'")
    return value


def _as_bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() not in ("false", "0", "no", "off", "")
    return bool(value)


def _count_lines(data: bytes) -> int:
    if not data:
        return 0
    count = data.count(b"\n")
    return count if data.endswith(b"\n") else count + 1
