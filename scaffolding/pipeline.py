"""Scaffolding pipeline orchestrator.

Processes the configured scaffold units strictly in order.  For each unit:

1. ACQUIRE  -- resolve the source (local path, git clone, or archive).
2. CONTEXT  -- merge unit variables with the reserved ``project_name``.
3. PRE-HOOK -- run the optional pre-hook; a failure aborts the unit.
4. FILES    -- expand each file entry and render/copy every file.
5. POST-HOOK -- run the optional post-hook unless the unit was aborted.

Failures are recorded and the run keeps going so that one pass reports
everything that went wrong.  The result is a :class:`RunSummary` value.

Usage::

    python -m scaffolding.pipeline -c scaffolding.toml -p MyProject -o ./out
    python -m scaffolding.pipeline --overwrite --fail-fast
"""

from __future__ import annotations

import asyncio
import sys
import time
from datetime import datetime, timezone
from pathlib import Path

from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from scaffolding.config import Config, RunOptions, RunSettings, ScaffoldUnit, load_config
from scaffolding.engine.context import build_context
from scaffolding.engine.hooks import HookRunner
from scaffolding.engine.materializer import FileMaterializer
from scaffolding.engine.paths import resolve_entry
from scaffolding.engine.templates import TemplateRenderer
from scaffolding.errors import (
    AcquisitionError,
    ConfigError,
    FileIOError,
    HookFailedError,
    NotFoundError,
    ScaffoldError,
    TemplateError,
)
from scaffolding.results import (
    FileRecord,
    FileStatus,
    HookOutcome,
    HookStatus,
    RunState,
    RunSummary,
    UnitOutcome,
)
from scaffolding.sources import SourceResolver
from scaffolding.utils import (
    console,
    format_duration,
    print_error,
    print_info,
    print_success,
    print_unit_header,
    print_warning,
)

_STATUS_MARKERS: dict[FileStatus, str] = {
    FileStatus.WRITTEN: "[green]+[/green]",
    FileStatus.SKIPPED: "[yellow]=[/yellow]",
    FileStatus.FAILED: "[red]x[/red]",
}


# ---------------------------------------------------------------------------
# Pipeline Orchestrator
# ---------------------------------------------------------------------------


class ScaffoldPipeline:
    """Drives a scaffolding run over every unit in a config.

    Collaborators are injectable so tests can swap in fakes (for example a
    ``HookRunner`` built on a fake process executor).

    Attributes:
        config: Parsed configuration; never mutated.
        settings: Effective run settings after precedence.
        state: Run state machine position.
        current_unit: Index of the unit being processed, if any.
    """

    def __init__(
        self,
        config: Config,
        settings: RunSettings,
        *,
        sources: SourceResolver | None = None,
        hook_runner: HookRunner | None = None,
        materializer: FileMaterializer | None = None,
    ) -> None:
        self.config = config
        self.settings = settings
        self.sources = sources or SourceResolver(base_dir=settings.base_dir)
        self.hook_runner = hook_runner or HookRunner(timeout=settings.hook_timeout)
        self.materializer = materializer or FileMaterializer(
            TemplateRenderer(), template_suffix=settings.template_suffix
        )
        self.state = RunState.NOT_STARTED
        self.current_unit: int | None = None

    @property
    def output_root(self) -> Path:
        return self.settings.output_dir

    # ------------------------------------------------------------------
    # Run
    # ------------------------------------------------------------------

    async def run(self) -> RunSummary:
        """Process every scaffold unit and return the run summary."""
        run_start = time.monotonic()
        summary = RunSummary(
            project_name=self.settings.project_name,
            output_dir=str(self.output_root.resolve()),
            started_at=datetime.now(timezone.utc).isoformat(),
        )

        console.print(
            Panel(
                f"[bold bright_cyan]Scaffolding[/bold bright_cyan]\n"
                f"Project   : {escape(self.settings.project_name)}\n"
                f"Output    : {escape(str(self.output_root.resolve()))}\n"
                f"Scaffolds : {len(self.config.scaffolds)}\n"
                f"Overwrite : {'yes' if self.settings.overwrite else 'no'}",
                title="[bold]Run Start[/bold]",
                border_style="bright_cyan",
            )
        )

        self.state = RunState.RUNNING
        try:
            self.output_root.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            print_error(f"Cannot create output directory {self.output_root}: {exc}")
            self.state = RunState.ABORTED
        else:
            try:
                await self._run_units(summary)
            finally:
                self.sources.cleanup()

        summary.state = self.state
        summary.finished_at = datetime.now(timezone.utc).isoformat()
        summary.duration_seconds = time.monotonic() - run_start
        self.current_unit = None

        print_run_summary(summary)
        return summary

    async def _run_units(self, summary: RunSummary) -> None:
        total = len(self.config.scaffolds)
        for index, unit in enumerate(self.config.scaffolds):
            self.current_unit = index
            print_unit_header(index + 1, total, unit.label)

            outcome = await self.run_unit(unit)
            summary.units.append(outcome)

            remaining = total - index - 1
            if self.settings.fail_fast and not outcome.ok and remaining:
                print_warning(
                    f"Fail-fast: stopping after scaffold '{unit.label}' "
                    f"({remaining} remaining not run)"
                )
                self.state = RunState.ABORTED
                return

        self.state = RunState.COMPLETED

    # ------------------------------------------------------------------
    # Single unit
    # ------------------------------------------------------------------

    async def run_unit(self, unit: ScaffoldUnit) -> UnitOutcome:
        """Process one scaffold unit, recording every failure in the outcome."""
        outcome = UnitOutcome(name=unit.label, repo=unit.repo)

        # 1. Acquire the source and locate the template root.
        try:
            source_root = await self.sources.resolve(unit)
            template_root = source_root / unit.template_dir
            if not _is_directory(template_root):
                raise AcquisitionError(
                    unit.repo,
                    f"template directory '{unit.template_dir}' not found in {source_root}",
                )
        except AcquisitionError as exc:
            self._abort_unit(outcome, unit, exc)
            return outcome

        outcome.source_root = str(source_root)
        print_info(f"  Rendering templates from {template_root}")

        # 2. Context.
        context = build_context(self.settings.project_name, unit)
        for key, value in context.items():
            print_info(f"  Setting variable: {key} = {value!r}")

        # 3. Pre-hook.
        try:
            outcome.pre_hook = await self.hook_runner.run(
                "pre", unit.hooks.pre, source_root, self.output_root, context
            )
        except (HookFailedError, NotFoundError) as exc:
            outcome.pre_hook = _failed_hook("pre", exc)
            self._abort_unit(outcome, unit, exc)
            return outcome

        # 4. Files.
        for entry in unit.files:
            try:
                resolved_files = resolve_entry(template_root, entry)
            except NotFoundError as exc:
                outcome.record_failure(exc)
                print_error(f"  {exc}")
                continue

            if not resolved_files:
                print_warning(f"  '{entry.src}' contains no regular files")

            for resolved in resolved_files:
                try:
                    record = await self.materializer.materialize(
                        resolved, context, self.output_root, self.settings.overwrite
                    )
                except (TemplateError, FileIOError) as exc:
                    outcome.record_failure(exc)
                    record = FileRecord(
                        source=str(resolved.source),
                        destination=resolved.destination,
                        status=FileStatus.FAILED,
                        error=str(exc),
                    )
                outcome.files.append(record)
                _print_file_record(record)

        # 5. Post-hook.
        try:
            outcome.post_hook = await self.hook_runner.run(
                "post", unit.hooks.post, source_root, self.output_root, context
            )
        except (HookFailedError, NotFoundError) as exc:
            outcome.post_hook = _failed_hook("post", exc)
            outcome.record_failure(exc)
            print_error(f"  {exc}")

        if outcome.ok:
            print_success(
                f"  Scaffold '{unit.label}': {outcome.written} written, {outcome.skipped} skipped"
            )
        return outcome

    def _abort_unit(self, outcome: UnitOutcome, unit: ScaffoldUnit, exc: ScaffoldError) -> None:
        """Record a unit-level failure and mark any hooks that will not run."""
        outcome.record_failure(exc)
        outcome.aborted = True
        if unit.hooks.pre and outcome.pre_hook.status is HookStatus.NOT_CONFIGURED:
            outcome.pre_hook = HookOutcome(stage="pre", path=unit.hooks.pre, status=HookStatus.NOT_RUN)
        if unit.hooks.post:
            outcome.post_hook = HookOutcome(
                stage="post", path=unit.hooks.post, status=HookStatus.NOT_RUN
            )
        print_error(f"  Scaffold '{unit.label}' aborted: {exc}")


# ---------------------------------------------------------------------------
# Reporting
# ---------------------------------------------------------------------------


def _is_directory(path: Path) -> bool:
    try:
        return path.is_dir()
    except OSError:
        return False


def _failed_hook(stage: str, exc: HookFailedError | NotFoundError) -> HookOutcome:
    return HookOutcome(
        stage=stage,
        path=str(exc.path),
        status=HookStatus.FAILED,
        exit_code=getattr(exc, "status", None),
        error=str(exc),
    )


def _print_file_record(record: FileRecord) -> None:
    marker = _STATUS_MARKERS[record.status]
    line = f"  {marker} {escape(record.destination)}"
    if record.status is FileStatus.SKIPPED:
        line += " [dim](exists)[/dim]"
    elif record.status is FileStatus.FAILED and record.error:
        line += f" [dim]({escape(record.error)})[/dim]"
    console.print(line)


def _hook_cell(hook: HookOutcome) -> str:
    if hook.status is HookStatus.NOT_CONFIGURED:
        return "-"
    if hook.exit_code is not None:
        return f"{hook.status.value} ({hook.exit_code})"
    return hook.status.value


def print_run_summary(summary: RunSummary) -> None:
    """Print the per-unit table, the failure list, and the final panel."""
    table = Table(title="Scaffold Results", show_header=True, header_style="bold cyan")
    table.add_column("Scaffold", no_wrap=True)
    table.add_column("Written", justify="right")
    table.add_column("Skipped", justify="right")
    table.add_column("Failed", justify="right")
    table.add_column("Pre-hook")
    table.add_column("Post-hook")
    table.add_column("Status")

    for unit in summary.units:
        if unit.aborted:
            status = "[red]aborted[/red]"
        elif unit.ok:
            status = "[green]ok[/green]"
        else:
            status = "[red]failed[/red]"
        table.add_row(
            escape(unit.name),
            str(unit.written),
            str(unit.skipped),
            str(len(unit.failures)),
            _hook_cell(unit.pre_hook),
            _hook_cell(unit.post_hook),
            status,
        )

    console.print()
    console.print(table)

    for unit in summary.units:
        for failure in unit.failures:
            console.print(
                f"  [red]{escape(unit.name)}[/red] [dim]{failure.kind}[/dim]: "
                f"{escape(failure.message)}"
            )

    if summary.success:
        border_style = "bold green"
        status_text = "[bold green]SCAFFOLDING SUCCEEDED[/bold green]"
    else:
        border_style = "bold red"
        status_text = "[bold red]SCAFFOLDING FAILED[/bold red]"

    console.print()
    console.print(
        Panel(
            "\n".join([
                status_text,
                "",
                f"Project  : {escape(summary.project_name)}",
                f"Output   : {escape(summary.output_dir)}",
                f"State    : {summary.state.value}",
                f"Written  : {summary.files_written}",
                f"Skipped  : {summary.files_skipped}",
                f"Failures : {summary.failure_count}",
                f"Duration : {format_duration(summary.duration_seconds)}",
            ]),
            title="[bold]Run Complete[/bold]",
            border_style=border_style,
        )
    )


# ---------------------------------------------------------------------------
# Entry points
# ---------------------------------------------------------------------------


async def run_scaffolding(options: RunOptions) -> RunSummary:
    """Load the config named by *options* and run the pipeline.

    Raises:
        ConfigError: If the config cannot be loaded; nothing has been written.
    """
    config = load_config(options.config_path)
    settings = RunSettings.resolve(config, options)
    pipeline = ScaffoldPipeline(config, settings)
    return await pipeline.run()


def main(argv: list[str] | None = None) -> None:
    """CLI entry point for ``scaffold`` / ``python -m scaffolding.pipeline``."""
    import argparse

    parser = argparse.ArgumentParser(
        prog="scaffold",
        description="Render and copy project scaffolds described by a config file",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=(
            "Examples:\n"
            "  scaffold\n"
            "  scaffold -c scaffolding.toml -p my-app -o ./my-app\n"
            "  scaffold --overwrite --fail-fast\n"
        ),
    )
    parser.add_argument(
        "-p", "--project-name",
        default=None,
        help="Project name exposed to templates as project_name",
    )
    parser.add_argument(
        "-o", "--output",
        default=None,
        help="Output directory (default: project.output, else ./generated)",
    )
    parser.add_argument(
        "-c", "--config",
        default=None,
        help="Configuration file (default: scaffolding.toml)",
    )
    parser.add_argument(
        "--overwrite",
        action=argparse.BooleanOptionalAction,
        default=None,
        help="Replace files that already exist in the output directory",
    )
    parser.add_argument(
        "--fail-fast",
        action="store_true",
        default=None,
        help="Stop after the first scaffold that records a failure",
    )
    parser.add_argument(
        "--hook-timeout",
        type=float,
        default=None,
        metavar="SECONDS",
        help="Kill hooks that run longer than this",
    )
    parser.add_argument(
        "--summary-json",
        default=None,
        metavar="PATH",
        help="Also write the run summary as JSON to PATH",
    )

    args = parser.parse_args(argv)

    cli_values = {
        "project_name": args.project_name,
        "output": args.output,
        "config_path": Path(args.config) if args.config else None,
        "overwrite": args.overwrite,
        "fail_fast": args.fail_fast,
        "hook_timeout": args.hook_timeout,
    }
    try:
        options = RunOptions.from_env().merged_with(
            RunOptions(**{k: v for k, v in cli_values.items() if v is not None})
        )
    except ValueError as exc:
        console.print(f"[bold red]Error:[/bold red] invalid option: {escape(str(exc))}")
        sys.exit(2)

    print_info(f"Loading configuration from: {options.config_path}")
    try:
        summary = asyncio.run(run_scaffolding(options))
    except ConfigError as exc:
        console.print(f"[bold red]Error:[/bold red] {escape(str(exc))}")
        sys.exit(2)

    if args.summary_json:
        written = summary.save(args.summary_json)
        print_info(f"Summary written to {written}")

    sys.exit(summary.exit_code)


if __name__ == "__main__":
    main()
