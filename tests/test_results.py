"""Unit tests for run outcome models (scaffolding.results)."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from scaffolding.errors import AcquisitionError, HookFailedError, TemplateError
from scaffolding.results import (
    FailureRecord,
    FileRecord,
    FileStatus,
    RunState,
    RunSummary,
    UnitOutcome,
)


def _unit(name: str, *statuses: FileStatus) -> UnitOutcome:
    return UnitOutcome(
        name=name,
        repo=".",
        files=[FileRecord(source=f"s{i}", status=s) for i, s in enumerate(statuses)],
    )


class TestFailureRecord:
    @pytest.mark.unit
    def test_from_error_with_path(self):
        record = FailureRecord.from_error(HookFailedError("/src/pre.sh", 2))
        assert record.kind == "hook"
        assert record.path == "/src/pre.sh"
        assert "exited with status 2" in record.message

    @pytest.mark.unit
    def test_from_error_without_path(self):
        record = FailureRecord.from_error(TemplateError("boom"))
        assert record.kind == "template"
        assert record.path is None


class TestUnitOutcome:
    @pytest.mark.unit
    def test_counts(self):
        unit = _unit("u", FileStatus.WRITTEN, FileStatus.WRITTEN, FileStatus.SKIPPED, FileStatus.FAILED)
        assert (unit.written, unit.skipped, unit.failed) == (2, 1, 1)

    @pytest.mark.unit
    def test_ok_until_failure_recorded(self):
        unit = _unit("u", FileStatus.WRITTEN)
        assert unit.ok
        unit.record_failure(AcquisitionError("x", "gone"))
        assert not unit.ok
        assert unit.failures[0].kind == "acquisition"

    @pytest.mark.unit
    def test_aborted_is_not_ok(self):
        assert not UnitOutcome(name="u", repo=".", aborted=True).ok

    @pytest.mark.unit
    def test_default_hooks_not_configured(self):
        unit = UnitOutcome(name="u", repo=".")
        assert unit.pre_hook.stage == "pre"
        assert unit.post_hook.stage == "post"
        assert unit.pre_hook.status.value == "not_configured"


class TestRunSummary:
    @pytest.mark.unit
    def test_aggregates(self):
        summary = RunSummary(
            project_name="P",
            output_dir="out",
            state=RunState.COMPLETED,
            units=[
                _unit("a", FileStatus.WRITTEN, FileStatus.SKIPPED),
                _unit("b", FileStatus.WRITTEN, FileStatus.WRITTEN),
            ],
        )
        assert summary.files_written == 3
        assert summary.files_skipped == 1
        assert summary.failure_count == 0
        assert summary.success
        assert summary.exit_code == 0

    @pytest.mark.unit
    def test_unit_failure_fails_run(self):
        failing = _unit("a")
        failing.record_failure(TemplateError("bad", "x.j2"))
        summary = RunSummary(project_name="P", output_dir="out", state=RunState.COMPLETED, units=[failing])
        assert summary.failure_count == 1
        assert not summary.success
        assert summary.exit_code == 1

    @pytest.mark.unit
    @pytest.mark.parametrize("state", [RunState.NOT_STARTED, RunState.RUNNING, RunState.ABORTED])
    def test_incomplete_run_is_failure(self, state):
        summary = RunSummary(project_name="P", output_dir="out", state=state)
        assert summary.exit_code == 1

    @pytest.mark.unit
    def test_save(self, tmp_path: Path):
        summary = RunSummary(
            project_name="P", output_dir="out", state=RunState.COMPLETED, units=[_unit("a", FileStatus.WRITTEN)]
        )
        path = summary.save(tmp_path / "reports" / "summary.json")
        data = json.loads(path.read_text())
        assert data["state"] == "completed"
        assert data["files_written"] == 1
        assert data["success"] is True
        assert data["units"][0]["name"] == "a"
