# src/workflow/params.py — v1
"""Parameter normalization for workflow steps.

Path-valued parameters are resolved against the directory that contains the
definition file, never the process working directory, so a definition and
its artifacts can be moved together as a unit.
"""

from __future__ import annotations

import copy
import os
from collections.abc import Mapping
from pathlib import Path
from typing import Any

# Scalar parameters holding one path
PATH_PARAM_KEYS: frozenset[str] = frozenset({
    "file_path",
    "output_file_path",
    "template_file_path",
    "json_file_path",
    "directory",
})

# Parameters holding a list of paths
PATH_ARRAY_PARAM_KEYS: frozenset[str] = frozenset({"file_paths"})


def resolve_relative_path(base_dir: Path | str | None, value: str) -> str:
    """Resolve ``value`` against ``base_dir`` unless it is already absolute.

    Args:
        base_dir: Directory relative paths are anchored to (None = leave as is).
        value: Path string from the definition.

    Returns:
        Normalized path string.
    """
    expanded = os.path.expanduser(value)
    if os.path.isabs(expanded):
        return os.path.normpath(expanded)
    if base_dir is None:
        return value
    return os.path.normpath(os.path.join(os.fspath(base_dir), expanded))


def normalize_params(
    params: Mapping[str, Any], base_dir: Path | str | None,
) -> dict[str, Any]:
    """Return a deep copy of ``params`` with path values resolved.

    Key order is preserved. Empty and non-string values under path keys are
    left untouched; nested mappings are normalized recursively.
    """
    normalized: dict[str, Any] = {}
    for key, value in params.items():
        if key in PATH_PARAM_KEYS and isinstance(value, str) and value:
            normalized[key] = resolve_relative_path(base_dir, value)
        elif key in PATH_ARRAY_PARAM_KEYS and isinstance(value, (list, tuple)):
            normalized[key] = [
                resolve_relative_path(base_dir, item)
                if isinstance(item, str) and item else copy.deepcopy(item)
                for item in value
            ]
        elif isinstance(value, Mapping):
            normalized[key] = normalize_params(value, base_dir)
        else:
            normalized[key] = copy.deepcopy(value)
    return normalized


def display_path(path: Path | str, base_dir: Path | str | None) -> str:
    """Express ``path`` relative to ``base_dir`` when it lies inside it."""
    abs_path = os.path.abspath(os.fspath(path))
    if base_dir is None:
        return abs_path
    try:
        rel = os.path.relpath(abs_path, os.path.abspath(os.fspath(base_dir)))
    except ValueError:
        # different drives
        return abs_path
    if rel == os.pardir or rel.startswith(os.pardir + os.sep):
        return abs_path
    return rel
