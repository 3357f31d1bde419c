# src/batch/models.py — v2
"""Batch processing models: JobDescriptor, JobResult, BatchSummary."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field, model_validator


class JobDescriptor(BaseModel):
    """One independent unit of fan-out work (typically a document path)."""

    id: str
    params: dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def coerce(cls, value: JobDescriptor | str) -> JobDescriptor:
        """Accept a bare identifier as shorthand for a descriptor."""
        if isinstance(value, JobDescriptor):
            return value
        return cls(id=str(value))


class JobResult(BaseModel):
    """Outcome of a single job, success or failure."""

    id: str
    success: bool
    error: str | None = None
    output: dict[str, Any] = Field(default_factory=dict)
    duration_ms: float = 0.0


class BatchSummary(BaseModel):
    """Aggregate over every job result of one pool invocation.

    Results are kept in arrival order; renderers sort by id.
    """

    total: int
    successful: int
    failed: int
    total_duration_ms: float
    average_duration_ms: float
    errors: list[str] = Field(default_factory=list)
    results: list[JobResult] = Field(default_factory=list)

    @model_validator(mode="after")
    def validate_counts(self) -> BatchSummary:
        if self.successful + self.failed != self.total:
            raise ValueError(
                f"successful ({self.successful}) + failed ({self.failed}) "
                f"!= total ({self.total})"
            )
        if len(self.results) != self.total:
            raise ValueError(
                f"total ({self.total}) != number of results ({len(self.results)})"
            )
        return self

    @classmethod
    def from_results(
        cls, results: list[JobResult], total_duration_ms: float,
    ) -> BatchSummary:
        """Aggregate job results into a summary.

        Args:
            results: Job results in arrival order.
            total_duration_ms: Wall-clock duration of the whole batch.

        Returns:
            BatchSummary with counts, errors and average duration.
        """
        successful = sum(1 for r in results if r.success)
        errors = [f"{r.id}: {r.error}" for r in results if not r.success]
        total = len(results)
        total_duration_ms = round(total_duration_ms, 3)
        average = round(total_duration_ms / total, 3) if total else 0.0
        return cls(
            total=total,
            successful=successful,
            failed=total - successful,
            total_duration_ms=total_duration_ms,
            average_duration_ms=average,
            errors=errors,
            results=list(results),
        )

    def sorted_by_id(self) -> BatchSummary:
        """Return a copy with results (and errors) ordered by job id."""
        ordered = sorted(self.results, key=lambda r: r.id)
        return self.model_copy(
            update={
                "results": ordered,
                "errors": [f"{r.id}: {r.error}" for r in ordered if not r.success],
            }
        )
