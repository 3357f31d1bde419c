# src/workflow/write_policy.py — v1
"""Output write policies for step results and composite artifacts.

The executor never decides on its own whether a destination gets written; it
asks the policy. IdempotentWritePolicy is the default:

  - structured results are always written (the destination reflects the
    latest run)
  - free text is written only when the destination is missing or empty, so a
    file another collaborator already populated is never clobbered

OverwritePolicy always writes.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import TYPE_CHECKING

from docflow.core.errors import WorkflowIOError

if TYPE_CHECKING:
    from docflow.config.settings import Settings

logger = logging.getLogger(__name__)


class WritePolicy(ABC):
    """Decides whether, and performs, an output write."""

    name: str = "base"

    @abstractmethod
    def should_write(self, path: Path, structured: bool) -> bool:
        """Return True if ``path`` should receive new content."""

    def write(self, path: Path | str, content: str, structured: bool) -> bool:
        """Write ``content`` to ``path`` if the policy allows it.

        Args:
            path: Destination file.
            content: Serialized output.
            structured: True if content is a serialized structured payload.

        Returns:
            True if the file was written, False if the policy skipped it.

        Raises:
            WorkflowIOError: Destination is a directory, or the parent
                directory / file cannot be created.
        """
        path = Path(path)
        if path.is_dir():
            raise WorkflowIOError(f"Output path is a directory: {path}")
        if not self.should_write(path, structured):
            logger.info("Keeping existing content of %s (%s policy)", path, self.name)
            return False

        try:
            path.parent.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise WorkflowIOError(
                f"Failed to create output directory {path.parent}: {exc}"
            ) from exc
        try:
            path.write_text(content, encoding="utf-8")
        except OSError as exc:
            raise WorkflowIOError(f"Failed to write output {path}: {exc}") from exc

        logger.debug("Wrote %d chars to %s", len(content), path)
        return True


class IdempotentWritePolicy(WritePolicy):
    """Always write structured data; write text only into missing/empty files."""

    name = "idempotent"

    def should_write(self, path: Path, structured: bool) -> bool:
        if structured:
            return True
        try:
            return not path.exists() or path.stat().st_size == 0
        except OSError as exc:
            raise WorkflowIOError(f"Cannot inspect output {path}: {exc}") from exc


class OverwritePolicy(WritePolicy):
    """Always write."""

    name = "overwrite"

    def should_write(self, path: Path, structured: bool) -> bool:
        return True


def create_write_policy(settings: Settings | None = None) -> WritePolicy:
    """Create the write policy selected by settings (default: idempotent).

    Raises:
        ValueError: If the policy name is not supported.
    """
    policy = settings.write_policy if settings is not None else "idempotent"
    if policy == "idempotent":
        return IdempotentWritePolicy()
    if policy == "overwrite":
        return OverwritePolicy()
    raise ValueError(f"Unsupported write policy: {policy!r}")
