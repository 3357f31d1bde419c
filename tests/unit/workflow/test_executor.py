# tests/unit/workflow/test_executor.py — v1
"""Tests for workflow/executor.py — ordered execution, fail-fast, output persistence."""

from __future__ import annotations

import asyncio
import json
import os

import pytest

from docflow.core.errors import (
    OperationError,
    RunCancelledError,
    RunFailedError,
    StepFailedError,
    WorkflowIOError,
)
from docflow.logging.context import get_context
from docflow.operations.registry import OperationContext, OperationRegistry
from docflow.workflow.executor import WorkflowExecutor, run_workflow_file
from docflow.workflow.loader import load_workflow
from docflow.workflow.write_policy import OverwritePolicy


def _invoker(registry: OperationRegistry):
    return registry.bind(OperationContext(registry=registry))


class TestOrderedExecution:
    @pytest.mark.asyncio
    async def test_steps_run_in_order_with_normalized_params(self, write_definition, recorder):
        reg = OperationRegistry()
        reg.register("first", recorder.text("one"))
        reg.register("second", recorder.structured({"k": "v"}))
        path = write_definition([
            {"name": "s1", "type": "first", "params": {"file_path": "in.txt", "mode": "x"}},
            {"name": "s2", "type": "second", "params": {"file_paths": ["a", "b"]}},
        ])
        wf = load_workflow(path)

        report = await WorkflowExecutor().run(wf, _invoker(reg))

        base = str(path.parent)
        assert recorder.calls == [
            ("text", {"file_path": os.path.join(base, "in.txt"), "mode": "x"}),
            ("structured", {"file_paths": [os.path.join(base, "a"), os.path.join(base, "b")]}),
        ]
        assert report.succeeded
        assert report.error is None
        s1, s2 = report.steps
        assert s1.status == "completed"
        assert s1.outputs["Result"].value == "one"
        assert s1.outputs["Result"].format == "text"
        assert s2.outputs["Result"].value == json.dumps({"k": "v"}, indent=2)
        assert s2.outputs["Result"].format == "json"

    @pytest.mark.asyncio
    async def test_disabled_step_recorded_and_skipped(self, write_definition, recorder):
        reg = OperationRegistry()
        reg.register("op", recorder.text("ran"))
        wf = load_workflow(write_definition([
            {"name": "off", "type": "op", "enabled": False},
            {"name": "on", "type": "op"},
        ]))

        report = await WorkflowExecutor().run(wf, _invoker(reg))

        assert len(recorder.calls) == 1
        off, on = report.steps
        assert off.status == "disabled"
        assert off.enabled is False
        assert off.outputs == {}
        assert on.status == "completed"

    @pytest.mark.asyncio
    async def test_declared_output_name_and_format(self, write_definition, recorder):
        reg = OperationRegistry()
        reg.register("op", recorder.text("# Title"))
        wf = load_workflow(write_definition([
            {"name": "s", "type": "op", "output": {"name": "Summary", "format": "markdown"}},
        ]))
        report = await WorkflowExecutor().run(wf, _invoker(reg))
        output = report.steps[0].outputs["Summary"]
        assert output.key == "Summary"
        assert output.format == "markdown"

    @pytest.mark.asyncio
    async def test_run_id_and_log_context(self, write_definition):
        seen = {}

        def op(params, context):
            return "x"

        async def capture(params, context):
            seen.update(get_context().as_dict())

        reg = OperationRegistry()
        reg.register("op", op)
        reg.register("capture", capture)
        wf = load_workflow(write_definition([
            {"name": "a", "type": "op"}, {"name": "b", "type": "capture"},
        ]))
        report = await WorkflowExecutor().run(wf, _invoker(reg), run_id="run-42")
        assert report.run_id == "run-42"
        assert seen == {"run_id": "run-42", "workflow": "wf.yaml", "step": "b"}
        assert get_context().step is None

    @pytest.mark.asyncio
    async def test_generated_run_id(self, write_definition, recorder):
        reg = OperationRegistry()
        reg.register("op", recorder.text("x"))
        wf = load_workflow(write_definition([{"name": "s", "type": "op"}]))
        report = await WorkflowExecutor().run(wf, _invoker(reg))
        stamp, _, suffix = report.run_id.rpartition("_")
        assert len(stamp) == len("20260101_120000")
        assert len(suffix) == 5


class TestFailFast:
    @pytest.mark.asyncio
    async def test_second_step_failure_aborts_third(self, write_definition, recorder):
        reg = OperationRegistry()
        reg.register("ok", recorder.text("step one output"))
        reg.register("bad", recorder.failing("parser exploded"))
        reg.register("never", recorder.text("should not run"))
        wf = load_workflow(write_definition([
            {"name": "one", "type": "ok"},
            {"name": "two", "type": "bad"},
            {"name": "three", "type": "never"},
        ]))

        with pytest.raises(StepFailedError) as exc_info:
            await WorkflowExecutor().run(wf, _invoker(reg))

        exc = exc_info.value
        assert exc.step_name == "two"
        assert isinstance(exc.__cause__, OperationError)
        assert [name for name, _ in recorder.calls] == ["text", "failing"]

        report = exc.report
        assert report is not None
        one, two, three = report.steps
        assert one.status == "completed"
        assert one.outputs["Result"].value == "step one output"
        assert two.status == "failed"
        assert two.outputs == {}
        assert "parser exploded" in two.error
        assert three.status == "pending"
        assert three.outputs == {}
        assert report.error is not None
        assert report.succeeded is False

    @pytest.mark.asyncio
    async def test_unknown_operation_is_step_failure(self, write_definition):
        wf = load_workflow(write_definition([{"name": "s", "type": "missing_op"}]))
        with pytest.raises(StepFailedError, match="unknown operation"):
            await WorkflowExecutor().run(wf, _invoker(OperationRegistry()))

    @pytest.mark.asyncio
    async def test_output_write_failure_is_step_failure(self, write_definition, tmp_path, recorder):
        (tmp_path / "blocker").write_text("file", encoding="utf-8")
        reg = OperationRegistry()
        reg.register("op", recorder.structured({"a": 1}))
        wf = load_workflow(write_definition([
            {"name": "s", "type": "op", "params": {"output_file_path": "blocker/sub/out.json"}},
        ]))
        with pytest.raises(StepFailedError, match="cannot write output") as exc_info:
            await WorkflowExecutor().run(wf, _invoker(reg))
        assert exc_info.value.report.steps[0].status == "failed"


class TestIdempotentWrites:
    @pytest.mark.asyncio
    async def test_text_destination_kept_on_second_run(self, write_definition, recorder):
        reg = OperationRegistry()
        reg.register("op", recorder.text("generated text"))
        path = write_definition([
            {"name": "s", "type": "op", "params": {"output_file_path": "out/result.txt"}},
        ])
        dest = path.parent / "out" / "result.txt"
        executor = WorkflowExecutor()

        first = await executor.run(load_workflow(path), _invoker(reg))
        assert dest.read_text(encoding="utf-8") == "generated text"
        assert first.files_written == [os.path.join("out", "result.txt")]

        dest.write_text("edited by a collaborator", encoding="utf-8")
        second = await executor.run(load_workflow(path), _invoker(reg))
        assert dest.read_text(encoding="utf-8") == "edited by a collaborator"
        assert second.files_written == []

    @pytest.mark.asyncio
    async def test_structured_destination_overwritten_each_run(self, write_definition):
        counter = {"n": 0}

        def op(params, context):
            counter["n"] += 1
            return {"run": counter["n"]}

        reg = OperationRegistry()
        reg.register("op", op)
        path = write_definition([
            {"name": "s", "type": "op", "params": {"output_file_path": "result.json"}},
        ])
        dest = path.parent / "result.json"
        dest.write_text("pre-existing", encoding="utf-8")

        for expected in (1, 2):
            report = await WorkflowExecutor().run(load_workflow(path), _invoker(reg))
            assert json.loads(dest.read_text(encoding="utf-8")) == {"run": expected}
            assert report.files_written == ["result.json"]

    @pytest.mark.asyncio
    async def test_overwrite_policy(self, write_definition, recorder):
        reg = OperationRegistry()
        reg.register("op", recorder.text("fresh"))
        path = write_definition([
            {"name": "s", "type": "op", "params": {"output_file_path": "r.txt"}},
        ])
        (path.parent / "r.txt").write_text("stale", encoding="utf-8")
        await WorkflowExecutor(OverwritePolicy()).run(load_workflow(path), _invoker(reg))
        assert (path.parent / "r.txt").read_text(encoding="utf-8") == "fresh"

    @pytest.mark.asyncio
    async def test_output_outside_definition_dir_is_absolute(self, write_definition, tmp_path, recorder):
        reg = OperationRegistry()
        reg.register("op", recorder.text("x"))
        outside = tmp_path / "elsewhere" / "r.txt"
        path = write_definition(
            [{"name": "s", "type": "op", "params": {"output_file_path": str(outside)}}],
            directory=tmp_path / "wf",
        )
        report = await WorkflowExecutor().run(load_workflow(path), _invoker(reg))
        assert report.files_written == [str(outside)]


class TestCombinePass:
    @pytest.mark.asyncio
    async def test_composite_written_after_steps(self, write_definition, recorder):
        reg = OperationRegistry()
        reg.register("a", recorder.text("alpha"))
        reg.register("b", recorder.text("beta"))
        path = write_definition({
            "steps": [{"name": "A", "type": "a"}, {"name": "B", "type": "b"}],
            "combine": [{"path": "report.md", "sources": ["A", "B"]}],
        })
        report = await WorkflowExecutor().run(load_workflow(path), _invoker(reg))
        assert (path.parent / "report.md").read_text(encoding="utf-8") == "alpha\n\nbeta\n"
        assert report.files_written == ["report.md"]

    @pytest.mark.asyncio
    async def test_combine_disabled(self, write_definition, recorder):
        reg = OperationRegistry()
        reg.register("a", recorder.text("alpha"))
        path = write_definition({
            "steps": [{"name": "A", "type": "a"}],
            "combine": [{"path": "report.md", "sources": ["A"]}],
        })
        await WorkflowExecutor(combine=False).run(load_workflow(path), _invoker(reg))
        assert not (path.parent / "report.md").exists()

    @pytest.mark.asyncio
    async def test_composite_write_failure_keeps_report(self, write_definition, tmp_path, recorder):
        (tmp_path / "blocker").write_text("file", encoding="utf-8")
        reg = OperationRegistry()
        reg.register("a", recorder.text("alpha"))
        path = write_definition({
            "steps": [{"name": "A", "type": "a"}],
            "combine": [{"path": "blocker/out.txt", "sources": ["A"]}],
        })
        with pytest.raises(RunFailedError, match="cannot write combined output") as exc_info:
            await WorkflowExecutor().run(load_workflow(path), _invoker(reg))
        report = exc_info.value.report
        assert isinstance(exc_info.value.__cause__, WorkflowIOError)
        assert report.steps[0].status == "completed"
        assert report.steps[0].outputs["Result"].value == "alpha"
        assert report.error.startswith("cannot write combined output")
        assert not report.succeeded


class TestCancellation:
    @pytest.mark.asyncio
    async def test_cancel_before_step(self, write_definition, recorder):
        reg = OperationRegistry()
        reg.register("op", recorder.text("x"))
        wf = load_workflow(write_definition([{"name": "s", "type": "op"}]))
        cancel = asyncio.Event()
        cancel.set()
        with pytest.raises(RunCancelledError) as exc_info:
            await WorkflowExecutor().run(wf, _invoker(reg), cancel_event=cancel)
        assert recorder.calls == []
        assert exc_info.value.report.steps[0].status == "pending"

    @pytest.mark.asyncio
    async def test_cancelled_batch_step_aborts_run(self, write_definition, sample_files):
        from docflow.operations.builtin import register_builtin_operations

        async def hang(params, context):
            context.cancel_event.set()
            await asyncio.sleep(10)

        reg = register_builtin_operations(OperationRegistry())
        reg.register("hang", hang)
        cancel = asyncio.Event()
        path = write_definition([
            {"name": "batch", "type": "batch_analyze",
             "params": {"file_paths": [str(p) for p in sample_files], "operation": "hang"}},
            {"name": "after", "type": "file_info", "params": {"file_path": str(sample_files[0])}},
        ])
        wf = load_workflow(path)
        invoke = reg.bind(OperationContext(registry=reg, cancel_event=cancel))

        with pytest.raises(RunCancelledError) as exc_info:
            await WorkflowExecutor().run(wf, invoke, cancel_event=cancel)
        batch, after = exc_info.value.report.steps
        assert batch.status == "failed"
        assert after.status == "pending"


class TestRunWorkflowFile:
    @pytest.mark.asyncio
    async def test_list_then_batch_through_files(self, registry, settings, sample_files, write_definition):
        docs = sample_files[0].parent
        path = write_definition(
            [
                {"name": "list", "type": "list_files",
                 "params": {"directory": "docs", "pattern": "*.txt",
                            "output_file_path": "work/listing.json"}},
                {"name": "analyze", "type": "batch_analyze",
                 "params": {"json_file_path": "work/listing.json", "format": "json",
                            "output_file_path": "work/summary.json"}},
            ],
            directory=docs.parent,
        )

        report = await run_workflow_file(path, registry, settings=settings)

        assert report.succeeded
        assert report.files_written == [
            os.path.join("work", "listing.json"), os.path.join("work", "summary.json"),
        ]
        summary = json.loads((docs.parent / "work" / "summary.json").read_text(encoding="utf-8"))
        assert summary["total"] == 2
        assert summary["successful"] == 2
        assert [r["id"] for r in summary["results"]] == [str(docs / "a.txt"), str(docs / "b.txt")]
