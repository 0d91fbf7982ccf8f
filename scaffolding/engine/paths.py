"""Expansion of file entries into concrete source/destination pairs.

A ``FileEntry`` may name a single file or a whole directory.  Directories
are walked with an explicit stack, in lexicographic order of their relative
POSIX paths, so the resulting list is deterministic.  Symbolic links are
never followed or emitted.

Destinations returned here are still *unrendered*: expansion decides which
files exist, rendering (in the materializer) decides their final names.
"""

from __future__ import annotations

import stat
from dataclasses import dataclass
from pathlib import Path, PurePosixPath

from scaffolding.config import FileEntry
from scaffolding.errors import NotFoundError


@dataclass(frozen=True)
class ResolvedFile:
    """One regular source file and its (unrendered) relative destination."""

    source: Path
    destination: str


def walk_files(root: Path) -> list[PurePosixPath]:
    """Return every regular file under *root* as a relative POSIX path.

    Uses a worklist instead of recursion.  Symlinks (to files or
    directories) and other non-regular entries are skipped.
    """
    found: list[PurePosixPath] = []
    stack: list[PurePosixPath] = [PurePosixPath()]
    while stack:
        rel_dir = stack.pop()
        for child in (root / rel_dir).iterdir():
            rel = rel_dir / child.name
            mode = child.lstat().st_mode
            if stat.S_ISLNK(mode):
                continue
            if stat.S_ISDIR(mode):
                stack.append(rel)
            elif stat.S_ISREG(mode):
                found.append(rel)
    return sorted(found, key=lambda p: p.parts)


def _join_dest(dest: str, rel: PurePosixPath | str) -> str:
    base = dest.rstrip("/")
    if base in ("", "."):
        return str(rel)
    return f"{base}/{rel}"


def _is_within(path: Path, root: Path) -> bool:
    try:
        path.relative_to(root)
    except ValueError:
        return False
    return True


def resolve_entry(template_root: Path, entry: FileEntry) -> list[ResolvedFile]:
    """Expand *entry* into ordered ``ResolvedFile`` pairs.

    * A regular file yields exactly one pair.  When ``dest`` is empty,
      ``"."``, or ends with ``/`` the source filename is appended to it.
    * A directory yields one pair per regular file beneath it, with the
      file's path relative to ``src`` appended to ``dest``.

    Raises:
        NotFoundError: If ``src`` is neither a file nor a directory, is a
            symlink, or points outside the template root.
    """
    root = template_root.resolve()
    source = root / entry.src

    try:
        within = _is_within(source.resolve(), root)
        is_link = source.is_symlink()
        is_file = source.is_file()
        is_dir = source.is_dir()
    except OSError as exc:
        raise NotFoundError(source, f"cannot inspect source: {exc}") from exc

    if not within:
        raise NotFoundError(source, "source escapes the template root")
    if is_link:
        raise NotFoundError(source, "symbolic links are not followed")

    if is_file:
        dest = entry.dest
        if dest.strip() in ("", ".") or dest.endswith("/"):
            dest = _join_dest(dest, source.name)
        return [ResolvedFile(source=source, destination=dest)]

    if is_dir:
        try:
            relatives = walk_files(source)
        except OSError as exc:
            raise NotFoundError(source, f"cannot list directory: {exc}") from exc
        return [
            ResolvedFile(source=source.joinpath(*rel.parts), destination=_join_dest(entry.dest, rel))
            for rel in relatives
        ]

    raise NotFoundError(source, "no such file or directory in template root")
