# src/core/models.py — v2
"""Shared result model returned by every operation.

An operation produces free text, an optional structured payload, or both.
The orchestrator and the job pool only ever see OperationResult.
"""

from __future__ import annotations

import json
from collections.abc import Mapping
from typing import Any

from pydantic import BaseModel


class OperationResult(BaseModel):
    """Outcome of one operation invocation."""

    text: str = ""
    structured: Any = None

    @property
    def has_structured(self) -> bool:
        return self.structured is not None

    def as_text(self) -> str:
        """Return the structured payload as pretty JSON, else the text."""
        if self.structured is not None:
            return dump_json(self.structured)
        return self.text


def dump_json(value: Any) -> str:
    """Serialize a payload the way every docflow output file is written."""
    return json.dumps(value, indent=2, ensure_ascii=False, default=str)


def coerce_result(value: Any) -> OperationResult:
    """Normalize an operation's raw return value.

    Args:
        value: OperationResult, str, mapping, list/tuple, or None.

    Returns:
        OperationResult wrapping the value.
    """
    if isinstance(value, OperationResult):
        return value
    if value is None:
        return OperationResult()
    if isinstance(value, str):
        return OperationResult(text=value)
    if isinstance(value, Mapping):
        return OperationResult(structured=dict(value))
    if isinstance(value, (list, tuple)):
        return OperationResult(structured=list(value))
    return OperationResult(text=str(value))
