# tests/conftest.py — v2
"""Shared test fixtures for all unit tests.

Provides a populated operation registry, isolated settings, workflow
definition writers and fake operations. All I/O stays under tmp_path.
"""

from __future__ import annotations

import json
from collections.abc import Callable
from pathlib import Path
from typing import Any

import pytest
import yaml

from docflow.batch.models import BatchSummary, JobResult
from docflow.config.settings import Settings
from docflow.logging.context import clear_context
from docflow.operations.builtin import register_builtin_operations
from docflow.operations.registry import OperationContext, OperationRegistry


# === FIXTURES: Environment ===


@pytest.fixture(autouse=True)
def _reset_log_context():
    clear_context()
    yield
    clear_context()


@pytest.fixture
def settings() -> Settings:
    """Settings isolated from any local .env file."""
    return Settings(_env_file=None)


# === FIXTURES: Operations ===


@pytest.fixture
def registry() -> OperationRegistry:
    """Registry with the built-in operations."""
    return register_builtin_operations(OperationRegistry())


@pytest.fixture
def context(registry: OperationRegistry, settings: Settings) -> OperationContext:
    return OperationContext(registry=registry, settings=settings)


class CallRecorder:
    """Fake operations that record every invocation in order."""

    def __init__(self) -> None:
        self.calls: list[tuple[str, dict[str, Any]]] = []

    def text(self, value: str) -> Callable[..., str]:
        def _op(params: dict[str, Any], context: OperationContext) -> str:
            self.calls.append(("text", dict(params)))
            return value
        return _op

    def structured(self, value: Any) -> Callable[..., Any]:
        def _op(params: dict[str, Any], context: OperationContext) -> Any:
            self.calls.append(("structured", dict(params)))
            return value
        return _op

    def failing(self, message: str) -> Callable[..., Any]:
        def _op(params: dict[str, Any], context: OperationContext) -> Any:
            self.calls.append(("failing", dict(params)))
            raise RuntimeError(message)
        return _op


@pytest.fixture
def recorder() -> CallRecorder:
    return CallRecorder()


# === FIXTURES: Workflow definitions ===


@pytest.fixture
def write_definition(tmp_path: Path) -> Callable[..., Path]:
    """Write a workflow definition file and return its path.

    Usage: write_definition(steps_or_document, name="wf.yaml")
    """

    def _write(document: Any, name: str = "wf.yaml", directory: Path | None = None) -> Path:
        target_dir = directory or tmp_path
        target_dir.mkdir(parents=True, exist_ok=True)
        path = target_dir / name
        if path.suffix == ".json":
            path.write_text(json.dumps(document, indent=2), encoding="utf-8")
        else:
            path.write_text(yaml.safe_dump(document, sort_keys=False), encoding="utf-8")
        return path

    return _write


@pytest.fixture
def sample_files(tmp_path: Path) -> list[Path]:
    """Three small text files under tmp_path/docs."""
    docs = tmp_path / "docs"
    docs.mkdir()
    paths = []
    for name, body in (("a.txt", "one\n"), ("b.txt", "one\ntwo\n"), ("c.md", "# title\nbody")):
        p = docs / name
        p.write_text(body, encoding="utf-8")
        paths.append(p)
    return paths


# === FIXTURES: Batch summaries ===


@pytest.fixture
def mixed_summary() -> BatchSummary:
    """Summary with results out of id order and one failure."""
    results = [
        JobResult(id="p3", success=True, output={"n": 3}, duration_ms=30.0),
        JobResult(id="p1", success=True, output={"n": 1}, duration_ms=10.0),
        JobResult(id="p2", success=False, error="parse failed", duration_ms=20.0),
    ]
    return BatchSummary.from_results(results, total_duration_ms=60.0)
