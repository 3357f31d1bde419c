# tests/unit/workflow/test_combiner.py — v1
"""Tests for workflow/combiner.py — step-level and composite output post-pass."""

from __future__ import annotations

import json
from pathlib import Path

from docflow.workflow.combiner import combine_outputs, parse_json_values
from docflow.workflow.loader import load_workflow
from docflow.workflow.models import ExecutionReport, StepOutput
from docflow.workflow.write_policy import IdempotentWritePolicy


def _report_with(wf, outputs: dict[str, list[StepOutput]]) -> ExecutionReport:
    report = ExecutionReport.for_workflow(wf)
    for entry in report.steps:
        for output in outputs.get(entry.name, []):
            entry.outputs[output.key] = output
        entry.status = "completed"
    return report


class TestParseJsonValues:
    def test_single_value(self):
        assert parse_json_values('{"a": 1}') == [{"a": 1}]

    def test_concatenated_values(self):
        assert parse_json_values('{"a": 1}\n{"b": 2}\n[3]') == [{"a": 1}, {"b": 2}, [3]]

    def test_not_json(self):
        assert parse_json_values("plain text") is None
        assert parse_json_values('{"a": 1} trailing') is None

    def test_blank(self):
        assert parse_json_values("   ") is None


class TestStepLevelOutput:
    def test_json_output_wrapped_with_package(self, write_definition):
        path = write_definition([
            {"name": "scan", "type": "t", "output": {"name": "Result", "format": "json"},
             "output_file_path": "out/scan.json"},
        ])
        wf = load_workflow(path)
        value = json.dumps([{"file": "/pkgs/Load.dtsx", "ok": True}, {"other": 1}])
        report = _report_with(wf, {"scan": [StepOutput(key="Result", value=value, format="json")]})

        written = combine_outputs(wf, report, IdempotentWritePolicy())

        assert written == [str(Path("out") / "scan.json")]
        data = json.loads((path.parent / "out" / "scan.json").read_text(encoding="utf-8"))
        assert data == {"data": [
            {"file": "/pkgs/Load.dtsx", "ok": True, "package": "Load"},
            {"other": 1},
        ]}
        assert report.files_written == written

    def test_text_output(self, write_definition):
        path = write_definition([
            {"name": "s", "type": "t", "output_file_path": "s.txt"},
        ])
        wf = load_workflow(path)
        report = _report_with(wf, {"s": [StepOutput(key="Result", value="hello")]})
        combine_outputs(wf, report, IdempotentWritePolicy())
        assert (path.parent / "s.txt").read_text(encoding="utf-8") == "hello\n"

    def test_text_output_not_clobbered(self, write_definition):
        path = write_definition([{"name": "s", "type": "t", "output_file_path": "s.txt"}])
        (path.parent / "s.txt").write_text("existing", encoding="utf-8")
        wf = load_workflow(path)
        report = _report_with(wf, {"s": [StepOutput(key="Result", value="hello")]})
        assert combine_outputs(wf, report, IdempotentWritePolicy()) == []
        assert (path.parent / "s.txt").read_text(encoding="utf-8") == "existing"
        assert report.files_written == []

    def test_step_without_output_skipped(self, write_definition):
        path = write_definition([{"name": "s", "type": "t", "output_file_path": "s.txt"}])
        wf = load_workflow(path)
        report = _report_with(wf, {})
        assert combine_outputs(wf, report, IdempotentWritePolicy()) == []
        assert not (path.parent / "s.txt").exists()


class TestComposites:
    def test_text_composite(self, write_definition):
        path = write_definition({
            "steps": [{"name": "a", "type": "t"}, {"name": "b", "type": "t"}],
            "combine": [{"path": "all.md", "sources": ["a", "b.Extra"], "separator": "\n---\n"}],
        })
        wf = load_workflow(path)
        report = _report_with(wf, {
            "a": [StepOutput(key="Result", value="alpha")],
            "b": [StepOutput(key="Result", value="unused"), StepOutput(key="Extra", value="beta")],
        })
        combine_outputs(wf, report, IdempotentWritePolicy())
        assert (path.parent / "all.md").read_text(encoding="utf-8") == "alpha\n---\nbeta\n"

    def test_json_composite_merges(self, write_definition):
        path = write_definition({
            "steps": [{"name": "a", "type": "t"}, {"name": "b", "type": "t"}],
            "combine": [{"path": "all.json", "sources": ["a", "b"], "format": "JSON"}],
        })
        wf = load_workflow(path)
        report = _report_with(wf, {
            "a": [StepOutput(key="Result", value='{"file": "x/a.txt"}', format="json")],
            "b": [StepOutput(key="Result", value='[{"n": 1}, {"n": 2}]', format="json")],
        })
        combine_outputs(wf, report, IdempotentWritePolicy())
        data = json.loads((path.parent / "all.json").read_text(encoding="utf-8"))
        assert data == {"data": [{"file": "x/a.txt", "package": "a"}, {"n": 1}, {"n": 2}]}

    def test_missing_sources_skipped(self, write_definition, caplog):
        path = write_definition({
            "steps": [{"name": "a", "type": "t"}],
            "combine": [{"path": "none.txt", "sources": ["ghost", "a.Missing"]}],
        })
        wf = load_workflow(path)
        report = _report_with(wf, {"a": [StepOutput(key="Result", value="alpha")]})
        with caplog.at_level("WARNING"):
            assert combine_outputs(wf, report, IdempotentWritePolicy()) == []
        assert not (path.parent / "none.txt").exists()
        assert "no available sources" in caplog.text
