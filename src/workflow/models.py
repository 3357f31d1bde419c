# src/workflow/models.py — v1
"""Workflow models: Step, Workflow, CompositeOutput, StepOutput, ExecutionReport.

A Workflow is immutable once loaded and lives for one orchestration run.
The ExecutionReport is built incrementally while steps run.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

DEFAULT_OUTPUT_KEY = "Result"

StepStatus = Literal["pending", "completed", "failed", "disabled"]


class StepOutputSpec(BaseModel):
    """Declared name and format of a step's primary output."""

    model_config = ConfigDict(frozen=True)

    name: str = DEFAULT_OUTPUT_KEY
    format: str = ""


class Step(BaseModel):
    """One named, typed, enable/disable-able unit of work."""

    model_config = ConfigDict(frozen=True)

    name: str
    type: str
    enabled: bool = True
    params: dict[str, Any] = Field(default_factory=dict)
    output: StepOutputSpec | None = None
    # Composite destination written by the post-pass, not by the step itself
    output_file_path: str | None = None

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("step name must not be blank")
        return v

    @field_validator("type")
    @classmethod
    def validate_type(cls, v: str) -> str:
        v = v.strip().lstrip("#")
        if not v:
            raise ValueError("step type must not be blank")
        return v

    @property
    def output_key(self) -> str:
        if self.output is not None and self.output.name.strip():
            return self.output.name
        return DEFAULT_OUTPUT_KEY

    @property
    def output_format(self) -> str:
        return self.output.format if self.output is not None else ""


class CompositeOutput(BaseModel):
    """An artifact assembled from several steps' outputs after the main loop.

    Sources are 'step' (its declared output) or 'step.key'.
    """

    model_config = ConfigDict(frozen=True)

    path: str
    sources: list[str] = Field(min_length=1)
    format: Literal["text", "json"] = "text"
    separator: str = "\n\n"


class Workflow(BaseModel):
    """Ordered, immutable sequence of steps loaded from a definition file."""

    model_config = ConfigDict(frozen=True)

    source_path: Path
    steps: tuple[Step, ...]
    composites: tuple[CompositeOutput, ...] = ()

    @model_validator(mode="after")
    def validate_steps(self) -> Workflow:
        if not self.steps:
            raise ValueError("workflow contains no steps")
        seen: set[str] = set()
        for step in self.steps:
            if step.name in seen:
                raise ValueError(f"duplicate step name detected: {step.name}")
            seen.add(step.name)
        return self

    @property
    def base_dir(self) -> Path:
        """Directory relative paths in the definition are anchored to."""
        return self.source_path.parent

    @property
    def enabled_steps(self) -> list[Step]:
        return [s for s in self.steps if s.enabled]


class StepOutput(BaseModel):
    """A named artifact produced by a step."""

    key: str
    value: str
    format: str = "text"


class StepReport(BaseModel):
    """Per-step entry of the execution report."""

    name: str
    type: str
    enabled: bool
    status: StepStatus = "pending"
    outputs: dict[str, StepOutput] = Field(default_factory=dict)
    error: str | None = None


class ExecutionReport(BaseModel):
    """Record of one orchestration run."""

    source_path: str
    run_id: str = ""
    steps: list[StepReport] = Field(default_factory=list)
    files_written: list[str] = Field(default_factory=list)
    error: str | None = None

    @classmethod
    def for_workflow(cls, workflow: Workflow, run_id: str = "") -> ExecutionReport:
        """Create a report with one pending entry per declared step."""
        return cls(
            source_path=str(workflow.source_path),
            run_id=run_id,
            steps=[
                StepReport(name=s.name, type=s.type, enabled=s.enabled)
                for s in workflow.steps
            ],
        )

    @property
    def succeeded(self) -> bool:
        return self.error is None and not any(s.status == "failed" for s in self.steps)

    def step(self, name: str) -> StepReport | None:
        for entry in self.steps:
            if entry.name == name:
                return entry
        return None

    def record_file(self, display: str) -> None:
        """Add a written file once, keeping first-write order."""
        if display not in self.files_written:
            self.files_written.append(display)
