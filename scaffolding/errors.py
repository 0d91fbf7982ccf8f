"""Error taxonomy for the scaffolding engine.

Every failure the pipeline can record derives from :class:`ScaffoldError`
and carries a short ``kind`` label used in the run summary.  Failures below
the unit level (entries, files) are recorded and skipped past; acquisition
and pre-hook failures abort only their unit; :class:`ConfigError` aborts the
run before anything is written.
"""

from __future__ import annotations

from pathlib import Path


class ScaffoldError(Exception):
    """Base class for all scaffolding failures."""

    kind: str = "error"


class ConfigError(ScaffoldError):
    """Raised when the configuration file is missing, malformed, or invalid."""

    kind = "config"

    def __init__(self, message: str, path: str | Path | None = None) -> None:
        self.path = Path(path) if path is not None else None
        if self.path is not None:
            message = f"{self.path}: {message}"
        super().__init__(message)


class AcquisitionError(ScaffoldError):
    """Raised when a scaffold unit's source cannot be obtained."""

    kind = "acquisition"

    def __init__(self, repo: str, message: str) -> None:
        self.repo = repo
        super().__init__(f"Cannot acquire '{repo}': {message}")


class NotFoundError(ScaffoldError):
    """Raised when a template source or hook script does not exist."""

    kind = "not_found"

    def __init__(self, path: str | Path, message: str = "not found") -> None:
        self.path = Path(path)
        super().__init__(f"{self.path}: {message}")


class TemplateError(ScaffoldError):
    """Raised when a file body or destination path fails to render."""

    kind = "template"

    def __init__(self, reason: str, source: str = "") -> None:
        self.reason = reason
        self.source = source
        if source:
            super().__init__(f"Template error in {source}: {reason}")
        else:
            super().__init__(f"Template error: {reason}")


class FileIOError(ScaffoldError):
    """Raised when reading, writing, or creating a directory fails."""

    kind = "io"

    def __init__(self, path: str | Path, cause: str) -> None:
        self.path = Path(path)
        self.cause = cause
        super().__init__(f"I/O error at {self.path}: {cause}")


class HookFailedError(ScaffoldError):
    """Raised when a hook script exits non-zero or cannot be started.

    ``status`` is the exit code, or ``None`` when the process never ran
    to completion (spawn failure or timeout).
    """

    kind = "hook"

    def __init__(self, path: str | Path, status: int | None, reason: str = "") -> None:
        self.path = Path(path)
        self.status = status
        self.reason = reason
        if status is None:
            message = f"Hook {self.path} failed: {reason or 'did not complete'}"
        else:
            message = f"Hook {self.path} exited with status {status}"
            if reason:
                message += f" ({reason})"
        super().__init__(message)
