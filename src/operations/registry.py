# src/operations/registry.py — v2
"""Operation registry — name → invocation function, populated once at startup.

The orchestrator and the job pool never dispatch on operation names
themselves; they receive an ``invoke(op_name, params)`` callable bound from
this registry. Operations are plain callables taking ``(params, context)``,
sync or async, returning an OperationResult, a string, a mapping/list, or None.
"""

from __future__ import annotations

import asyncio
import importlib
import inspect
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, Any

from docflow.core.errors import DocflowError, OperationCancelledError, OperationError
from docflow.core.models import OperationResult, coerce_result

if TYPE_CHECKING:
    from docflow.config.settings import Settings

logger = logging.getLogger(__name__)

OperationFn = Callable[[dict[str, Any], "OperationContext"], Any]
Invoker = Callable[[str, dict[str, Any]], Awaitable[OperationResult]]


class RegistryError(Exception):
    """Raised when operation loading or lookup fails."""


@dataclass
class OperationContext:
    """Ambient state handed to every operation call.

    Attributes:
        registry: Registry the operation was dispatched from (lets an
            operation such as batch_analyze invoke other operations).
        cancel_event: Shared cancellation signal for the current run.
        base_dir: Directory relative paths were resolved against, if any.
        settings: Application settings, if loaded.
    """

    registry: OperationRegistry
    cancel_event: asyncio.Event | None = None
    base_dir: Path | None = None
    settings: Settings | None = None


@dataclass
class _Entry:
    fn: OperationFn
    description: str = ""


class OperationRegistry:
    """Registry of all invocable operations."""

    def __init__(self) -> None:
        self._operations: dict[str, _Entry] = {}

    @property
    def names(self) -> list[str]:
        """Return sorted list of registered operation names."""
        return sorted(self._operations)

    @property
    def descriptions(self) -> dict[str, str]:
        """Return operation name → description, sorted by name."""
        return {name: self._operations[name].description for name in self.names}

    def __contains__(self, name: object) -> bool:
        return name in self._operations

    def __len__(self) -> int:
        return len(self._operations)

    def register(self, name: str, fn: OperationFn, description: str = "") -> None:
        """Register an operation under a name."""
        if not name or not name.strip():
            raise RegistryError("Operation name must not be empty")
        if not callable(fn):
            raise RegistryError(f"Operation '{name}' is not callable")
        if name in self._operations:
            logger.warning("Overwriting existing operation: %s", name)
        if not description:
            description = (inspect.getdoc(fn) or "").split("\n", 1)[0]
        self._operations[name] = _Entry(fn=fn, description=description)

    def get(self, name: str) -> OperationFn | None:
        """Get operation by name, or None if not registered."""
        entry = self._operations.get(name)
        return entry.fn if entry else None

    def get_or_raise(self, name: str) -> OperationFn:
        """Get operation by name, raise if not found."""
        fn = self.get(name)
        if fn is None:
            raise RegistryError(f"Operation '{name}' not found in registry")
        return fn

    def load_from_paths(self, paths: list[str]) -> None:
        """Import and register operations from dotted paths.

        Args:
            paths: Entries of the form 'module.attr' (registered as 'attr')
                or 'name=module.attr'.
        """
        for spec in paths:
            name, _, target = spec.rpartition("=")
            fn = _import_operation(target.strip())
            op_name = name.strip() or target.rsplit(".", 1)[-1]
            self.register(op_name, fn)
            logger.debug("Loaded operation '%s' from %s", op_name, target)

        logger.info("Registry holds %d operations", len(self._operations))

    async def invoke(
        self,
        name: str,
        params: dict[str, Any],
        context: OperationContext | None = None,
    ) -> OperationResult:
        """Invoke a registered operation.

        Args:
            name: Operation name.
            params: Operation parameters.
            context: Operation context (a default one is created if omitted).

        Returns:
            Normalized OperationResult.

        Raises:
            OperationError: Unknown operation, or the operation raised.
            OperationCancelledError: The operation observed cancellation.
        """
        fn = self.get(name)
        if fn is None:
            raise OperationError(name, "unknown operation")
        if context is None:
            context = OperationContext(registry=self)

        logger.debug("Invoking operation '%s'", name)
        try:
            if inspect.iscoroutinefunction(fn):
                raw = await fn(params, context)
            else:
                raw = await asyncio.to_thread(fn, params, context)
                if inspect.isawaitable(raw):
                    raw = await raw
        except (OperationError, OperationCancelledError):
            raise
        except DocflowError as exc:
            raise OperationError(name, str(exc)) from exc
        except Exception as exc:
            raise OperationError(name, str(exc) or type(exc).__name__) from exc

        return coerce_result(raw)

    def bind(self, context: OperationContext) -> Invoker:
        """Return an ``invoke(op_name, params)`` callable using ``context``."""

        async def _invoke(name: str, params: dict[str, Any]) -> OperationResult:
            return await self.invoke(name, params, context)

        return _invoke


def _import_operation(path: str) -> OperationFn:
    """Import a callable from a dotted path.

    Args:
        path: e.g. 'mypackage.operations.analyze_document'

    Returns:
        The imported callable.
    """
    module_path, _, attr = path.rpartition(".")
    if not module_path or not attr:
        raise RegistryError(f"Invalid operation path: {path}")

    try:
        module = importlib.import_module(module_path)
    except ImportError as exc:
        raise RegistryError(f"Cannot import module {module_path}: {exc}") from exc

    fn = getattr(module, attr, None)
    if fn is None:
        raise RegistryError(f"Operation {attr} not found in {module_path}")
    if not callable(fn):
        raise RegistryError(f"{path} is not callable")
    return fn
