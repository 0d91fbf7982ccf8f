"""Producing destination files from resolved sources.

For each :class:`~scaffolding.engine.paths.ResolvedFile` the materializer
renders the destination path, picks render-vs-copy from the source filename
suffix, applies the overwrite policy, and writes the output atomically.
Blocking filesystem work runs in a worker thread so the pipeline stays
async end to end.
"""

from __future__ import annotations

import asyncio
import os
import stat
import tempfile
from pathlib import Path, PurePosixPath
from typing import Any

from scaffolding.config import DEFAULT_TEMPLATE_SUFFIX
from scaffolding.errors import FileIOError
from scaffolding.results import FileRecord, FileStatus, RenderMode

from .paths import ResolvedFile
from .templates import TemplateRenderer


class FileMaterializer:
    """Writes rendered or copied files under an output root.

    Args:
        renderer: Renderer used for both destination paths and file bodies.
        template_suffix: Source filename suffix that selects render mode.
    """

    def __init__(
        self,
        renderer: TemplateRenderer | None = None,
        template_suffix: str = DEFAULT_TEMPLATE_SUFFIX,
    ) -> None:
        self.renderer = renderer or TemplateRenderer()
        self.template_suffix = template_suffix

    # -- Mode / destination ------------------------------------------------

    def mode_for(self, source: Path) -> RenderMode:
        """Return RENDER when *source* carries the template suffix."""
        if self.template_suffix and source.name.endswith(self.template_suffix):
            return RenderMode.RENDER
        return RenderMode.COPY

    def destination_for(
        self,
        resolved: ResolvedFile,
        context: dict[str, Any],
        output_root: Path,
    ) -> tuple[Path, RenderMode]:
        """Render the destination path and resolve it under *output_root*.

        In render mode the template suffix is stripped from the final
        filename when that filename still ends with it.

        Raises:
            TemplateError: If the destination fails to render.
            FileIOError: If the rendered destination is empty, absolute, or
                escapes the output root.
        """
        mode = self.mode_for(resolved.source)
        rendered = self.renderer.render_string(
            resolved.destination, context, source=f"destination '{resolved.destination}'"
        )

        rel = PurePosixPath(rendered.strip())
        if mode is RenderMode.RENDER and self._has_strippable_suffix(rel.name):
            rel = rel.with_name(rel.name[: -len(self.template_suffix)])

        if not rel.parts or rel.name in ("", "."):
            raise FileIOError(output_root, f"destination '{rendered}' is empty")
        if rel.is_absolute():
            raise FileIOError(rel, "destination must be relative to the output root")

        root = Path(os.path.normpath(output_root.absolute()))
        target = Path(os.path.normpath(root.joinpath(*rel.parts)))
        if target == root or root not in target.parents:
            raise FileIOError(target, "destination escapes the output root")
        return target, mode

    def _has_strippable_suffix(self, name: str) -> bool:
        return bool(self.template_suffix) and name.endswith(self.template_suffix) and (
            len(name) > len(self.template_suffix)
        )

    # -- Materialize -------------------------------------------------------

    async def materialize(
        self,
        resolved: ResolvedFile,
        context: dict[str, Any],
        output_root: Path,
        overwrite: bool,
    ) -> FileRecord:
        """Produce one destination file.

        Returns a ``FileRecord`` with status ``written`` or ``skipped``.
        An existing destination with ``overwrite=False`` is skipped, which
        is not an error.

        Raises:
            TemplateError: If the destination path or file body fails to render.
            FileIOError: On any read, write, or directory-creation failure.
        """
        target, mode = self.destination_for(resolved, context, output_root)
        record = FileRecord(
            source=str(resolved.source),
            destination=str(target),
            mode=mode,
            status=FileStatus.WRITTEN,
        )

        try:
            exists = target.exists() or target.is_symlink()
            is_dir = exists and target.is_dir()
        except OSError as exc:
            raise FileIOError(target, str(exc)) from exc

        if exists:
            if is_dir:
                raise FileIOError(target, "destination exists and is a directory")
            if not overwrite:
                record.status = FileStatus.SKIPPED
                return record

        try:
            source_mode = stat.S_IMODE(resolved.source.stat().st_mode)
        except OSError as exc:
            raise FileIOError(resolved.source, str(exc)) from exc

        if mode is RenderMode.RENDER:
            content = await asyncio.to_thread(self.renderer.render_file, resolved.source, context)
            data = content.encode("utf-8")
        else:
            data = await asyncio.to_thread(_read_bytes, resolved.source)

        await asyncio.to_thread(atomic_write_bytes, target, data, source_mode)
        return record


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------

def _read_bytes(path: Path) -> bytes:
    try:
        return path.read_bytes()
    except OSError as exc:
        raise FileIOError(path, str(exc)) from exc


def atomic_write_bytes(path: Path, data: bytes, mode: int = 0o644) -> None:
    """Write *data* to *path* through a temporary file and ``os.replace``.

    Parent directories are created first.  *mode* is applied to the final
    file.

    Raises:
        FileIOError: If any step fails; the temporary file is removed.
    """
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        raise FileIOError(path.parent, str(exc)) from exc

    tmp_name: str | None = None
    try:
        fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", dir=str(path.parent))
        with os.fdopen(fd, "wb") as tmp:
            tmp.write(data)
            tmp.flush()
            os.fsync(tmp.fileno())
        os.replace(tmp_name, path)
        tmp_name = None
        os.chmod(path, mode)
    except OSError as exc:
        raise FileIOError(path, str(exc)) from exc
    finally:
        if tmp_name is not None and os.path.exists(tmp_name):
            os.remove(tmp_name)
