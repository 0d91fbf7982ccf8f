"""Outcome models for a scaffolding run.

Provides Pydantic v2 models for every level of the run: individual files,
hook invocations, per-unit outcomes, and the run-wide summary returned by
the pipeline.  The summary is a plain value; nothing here is global state.
"""

from __future__ import annotations

from enum import Enum
from pathlib import Path

from pydantic import BaseModel, Field, computed_field

from scaffolding.errors import ScaffoldError


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------

class FileStatus(str, Enum):
    WRITTEN = "written"
    SKIPPED = "skipped"
    FAILED = "failed"


class RenderMode(str, Enum):
    RENDER = "render"
    COPY = "copy"


class HookStatus(str, Enum):
    NOT_CONFIGURED = "not_configured"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    NOT_RUN = "not_run"


class RunState(str, Enum):
    NOT_STARTED = "not_started"
    RUNNING = "running"
    COMPLETED = "completed"
    ABORTED = "aborted"


# ---------------------------------------------------------------------------
# File and hook records
# ---------------------------------------------------------------------------

class FileRecord(BaseModel):
    """What happened to a single resolved source file."""

    source: str = Field(..., description="Absolute source path")
    destination: str = Field(default="", description="Absolute destination path, if resolved")
    status: FileStatus = Field(default=FileStatus.WRITTEN)
    mode: RenderMode | None = Field(default=None, description="Render or copy, if determined")
    error: str | None = Field(default=None, description="Failure message for failed files")


class HookOutcome(BaseModel):
    """Result of a pre- or post-hook invocation."""

    stage: str = Field(..., description="'pre' or 'post'")
    path: str | None = Field(default=None, description="Resolved hook script path")
    status: HookStatus = Field(default=HookStatus.NOT_CONFIGURED)
    exit_code: int | None = Field(default=None)
    error: str | None = Field(default=None)


class FailureRecord(BaseModel):
    """A recorded failure with its taxonomy label."""

    kind: str = Field(..., description="'acquisition', 'not_found', 'template', 'io', or 'hook'")
    message: str
    path: str | None = None

    @classmethod
    def from_error(cls, exc: ScaffoldError) -> "FailureRecord":
        path = getattr(exc, "path", None)
        return cls(kind=exc.kind, message=str(exc), path=str(path) if path is not None else None)


# ---------------------------------------------------------------------------
# Per-unit outcome
# ---------------------------------------------------------------------------

class UnitOutcome(BaseModel):
    """Everything recorded while processing one scaffold unit."""

    name: str
    repo: str
    source_root: str | None = None
    files: list[FileRecord] = Field(default_factory=list)
    pre_hook: HookOutcome = Field(default_factory=lambda: HookOutcome(stage="pre"))
    post_hook: HookOutcome = Field(default_factory=lambda: HookOutcome(stage="post"))
    failures: list[FailureRecord] = Field(default_factory=list)
    aborted: bool = Field(default=False, description="True when a unit-level failure stopped the unit")

    def record_failure(self, exc: ScaffoldError) -> FailureRecord:
        failure = FailureRecord.from_error(exc)
        self.failures.append(failure)
        return failure

    @computed_field  # type: ignore[misc]
    @property
    def written(self) -> int:
        return sum(1 for f in self.files if f.status is FileStatus.WRITTEN)

    @computed_field  # type: ignore[misc]
    @property
    def skipped(self) -> int:
        return sum(1 for f in self.files if f.status is FileStatus.SKIPPED)

    @computed_field  # type: ignore[misc]
    @property
    def failed(self) -> int:
        return sum(1 for f in self.files if f.status is FileStatus.FAILED)

    @computed_field  # type: ignore[misc]
    @property
    def ok(self) -> bool:
        """True when nothing in this unit failed."""
        return not self.failures and not self.aborted


# ---------------------------------------------------------------------------
# Run summary
# ---------------------------------------------------------------------------

class RunSummary(BaseModel):
    """Aggregated outcome of a whole run, returned by the pipeline."""

    project_name: str
    output_dir: str
    state: RunState = Field(default=RunState.NOT_STARTED)
    units: list[UnitOutcome] = Field(default_factory=list)
    started_at: str | None = None
    finished_at: str | None = None
    duration_seconds: float = Field(default=0.0, ge=0.0)

    @computed_field  # type: ignore[misc]
    @property
    def files_written(self) -> int:
        return sum(u.written for u in self.units)

    @computed_field  # type: ignore[misc]
    @property
    def files_skipped(self) -> int:
        return sum(u.skipped for u in self.units)

    @computed_field  # type: ignore[misc]
    @property
    def failure_count(self) -> int:
        return sum(len(u.failures) for u in self.units)

    @computed_field  # type: ignore[misc]
    @property
    def success(self) -> bool:
        """True when the run completed and no unit recorded a failure."""
        return self.state is RunState.COMPLETED and all(u.ok for u in self.units)

    @computed_field  # type: ignore[misc]
    @property
    def exit_code(self) -> int:
        return 0 if self.success else 1

    def save(self, path: str | Path) -> Path:
        """Persist the summary as JSON and return the written path."""
        target = Path(path)
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(self.model_dump_json(indent=2), encoding="utf-8")
        return target
