"""Shared utility functions for the scaffolding engine.

Provides async command execution, name sanitising, environment variable
mapping, duration formatting, and Rich-based console reporting used across
the pipeline.
"""

from __future__ import annotations

import asyncio
import re
from typing import Any

from rich.console import Console
from rich.markup import escape
from rich.rule import Rule

console = Console()

# ---------------------------------------------------------------------------
# Async command execution
# ---------------------------------------------------------------------------


async def run_command(cmd: list[str], timeout: float | None = 120) -> tuple[int, str, str]:
    """Run a command asynchronously.

    Args:
        cmd: Program and arguments.
        timeout: Maximum wall-clock seconds before the process is killed, or
            ``None`` to wait indefinitely.

    Returns:
        A ``(returncode, stdout, stderr)`` tuple.  A timed-out command
        returns ``-1`` with an explanatory stderr string.

    Raises:
        OSError: If the program cannot be started.
    """
    process = await asyncio.create_subprocess_exec(
        *cmd,
        stdout=asyncio.subprocess.PIPE,
        stderr=asyncio.subprocess.PIPE,
    )

    try:
        stdout_bytes, stderr_bytes = await asyncio.wait_for(
            process.communicate(), timeout=timeout
        )
    except asyncio.TimeoutError:
        process.kill()
        await process.wait()
        return (-1, "", f"Command timed out after {timeout}s: {' '.join(cmd)}")

    stdout_str = (stdout_bytes or b"").decode("utf-8", errors="replace").strip()
    stderr_str = (stderr_bytes or b"").decode("utf-8", errors="replace").strip()
    return (process.returncode or 0, stdout_str, stderr_str)


# ---------------------------------------------------------------------------
# String / name helpers
# ---------------------------------------------------------------------------


def sanitize_name(name: str) -> str:
    """Convert an arbitrary label to a safe directory name.

    Examples::

        sanitize_name("Kind Cluster") -> "kind-cluster"
        sanitize_name("  Docs (v2)  ") -> "docs-v2"
    """
    result = re.sub(r"[^a-zA-Z0-9_-]", "-", name.strip().lower())
    result = re.sub(r"-+", "-", result)
    return result.strip("-")


def env_var_name(key: str) -> str:
    """Map a context key to an environment variable name.

    Upper-cases the key and replaces anything outside ``[A-Z0-9_]`` with an
    underscore; a leading digit gets an underscore prefix.
    """
    name = re.sub(r"[^A-Z0-9_]", "_", key.upper())
    if name and name[0].isdigit():
        name = f"_{name}"
    return name


def env_var_value(value: Any) -> str:
    """Stringify a context value for the process environment."""
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


# ---------------------------------------------------------------------------
# Formatting helpers
# ---------------------------------------------------------------------------


def format_duration(seconds: float) -> str:
    """Format a duration in seconds to a human-readable string.

    Examples::

        format_duration(3.7)    -> "3.7s"
        format_duration(65.2)   -> "1m 5s"
        format_duration(3661.0) -> "1h 1m 1s"
    """
    if seconds < 0:
        return "0.0s"

    hours = int(seconds // 3600)
    minutes = int((seconds % 3600) // 60)
    secs = seconds % 60

    parts: list[str] = []
    if hours > 0:
        parts.append(f"{hours}h")
    if minutes > 0:
        parts.append(f"{minutes}m")

    if hours > 0 or minutes > 0:
        parts.append(f"{int(secs)}s")
    else:
        parts.append(f"{secs:.1f}s")

    return " ".join(parts)


# ---------------------------------------------------------------------------
# Rich output helpers
# ---------------------------------------------------------------------------


def print_unit_header(index: int, total: int, label: str) -> None:
    """Print a full-width rule announcing a scaffold unit."""
    console.print()
    console.print(
        Rule(f"[bold bright_cyan] Scaffold {index}/{total}: {escape(label)} [/bold bright_cyan]",
             style="bright_cyan")
    )


def print_success(message: str) -> None:
    """Print a green success message."""
    console.print(f"[bold green]{escape(message)}[/bold green]")


def print_error(message: str) -> None:
    """Print a red error message."""
    console.print(f"[bold red]{escape(message)}[/bold red]")


def print_warning(message: str) -> None:
    """Print a yellow warning message."""
    console.print(f"[bold yellow]{escape(message)}[/bold yellow]")


def print_info(message: str) -> None:
    """Print a dimmed informational line."""
    console.print(f"[dim]{escape(message)}[/dim]")
