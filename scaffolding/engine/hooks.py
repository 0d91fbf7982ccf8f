"""Pre/post hook execution for scaffold units.

The runner decides *when* and *with what* a hook is invoked; spawning the
process is delegated to a :class:`ProcessExecutor` so tests can substitute a
fake and assert on the calls.  Hooks run with the output root as their
working directory and receive the render context as environment variables.
"""

from __future__ import annotations

import asyncio
import os
from pathlib import Path
from typing import Any, Protocol

from scaffolding.errors import HookFailedError, NotFoundError
from scaffolding.results import HookOutcome, HookStatus
from scaffolding.utils import env_var_name, env_var_value, print_info


class ProcessExecutor(Protocol):
    """Capability for running an external program to completion."""

    async def execute(
        self,
        path: Path,
        cwd: Path,
        env: dict[str, str],
        timeout: float | None = None,
    ) -> int:
        """Run *path* and return its exit status."""
        ...


class SubprocessExecutor:
    """Runs hooks as child processes that inherit stdout/stderr.

    Scripts without the executable bit are run through ``sh``.
    """

    async def execute(
        self,
        path: Path,
        cwd: Path,
        env: dict[str, str],
        timeout: float | None = None,
    ) -> int:
        argv = [str(path)] if os.access(path, os.X_OK) else ["sh", str(path)]
        try:
            process = await asyncio.create_subprocess_exec(
                *argv,
                cwd=str(cwd),
                env={**os.environ, **env},
            )
        except OSError as exc:
            raise HookFailedError(path, None, f"cannot start: {exc}") from exc

        try:
            return await asyncio.wait_for(process.wait(), timeout=timeout)
        except asyncio.TimeoutError:
            process.kill()
            await process.wait()
            raise HookFailedError(path, None, f"timed out after {timeout}s")


def hook_environment(context: dict[str, Any]) -> dict[str, str]:
    """Expose each context key as an upper-cased environment variable."""
    return {env_var_name(key): env_var_value(value) for key, value in context.items()}


class HookRunner:
    """Resolves and runs a unit's hook scripts.

    Args:
        executor: Process capability; defaults to :class:`SubprocessExecutor`.
        timeout: Seconds before a hook is killed, or ``None`` to wait.
    """

    def __init__(
        self,
        executor: ProcessExecutor | None = None,
        timeout: float | None = None,
    ) -> None:
        self.executor = executor or SubprocessExecutor()
        self.timeout = timeout

    async def run(
        self,
        stage: str,
        hook_path: str | None,
        source_root: Path,
        output_root: Path,
        context: dict[str, Any],
    ) -> HookOutcome:
        """Run one hook and return its outcome.

        Returns a ``not_configured`` outcome when *hook_path* is unset.

        Raises:
            NotFoundError: If the script does not exist under *source_root*.
            HookFailedError: If the script exits non-zero, cannot start, or
                times out.
        """
        if not hook_path:
            return HookOutcome(stage=stage, status=HookStatus.NOT_CONFIGURED)

        script = source_root / hook_path
        try:
            found = script.is_file()
        except OSError as exc:
            raise NotFoundError(script, f"{stage}-hook script cannot be inspected: {exc}") from exc
        if not found:
            raise NotFoundError(script, f"{stage}-hook script not found")

        print_info(f"  Running {stage}-hook: {script}")
        status = await self.executor.execute(
            script, output_root, hook_environment(context), self.timeout
        )
        if status != 0:
            raise HookFailedError(script, status)

        return HookOutcome(
            stage=stage,
            path=str(script),
            status=HookStatus.SUCCEEDED,
            exit_code=status,
        )
