"""Acquisition of scaffold sources.

Turns a unit's ``repo`` string into a local directory:

* local paths are resolved against the config file's directory;
* ``http(s)`` URLs ending in ``.zip``, ``.tar.gz``, ``.tgz`` or ``.tar`` are
  downloaded with httpx and extracted;
* any other remote URL is shallow-cloned with ``git`` (an optional
  ``#ref`` suffix selects a branch or tag).

Remote sources are fetched once per run and cached by their ``repo``
string; :meth:`SourceResolver.cleanup` removes every temporary directory.
"""

from __future__ import annotations

import asyncio
import re
import shutil
import tarfile
import tempfile
import zipfile
from pathlib import Path
from urllib.parse import urlparse

import httpx

from scaffolding.config import ScaffoldUnit
from scaffolding.errors import AcquisitionError
from scaffolding.utils import print_info, print_warning, run_command, sanitize_name

REMOTE_PREFIXES = ("http://", "https://", "git://", "ssh://", "file://")
ARCHIVE_SUFFIXES = (".zip", ".tar.gz", ".tgz", ".tar")

# user@host:path, the scp-like syntax git accepts for SSH remotes.
_SCP_LIKE = re.compile(r"^[\w.-]+@[\w.-]+:")


def is_remote(repo: str) -> bool:
    """Return ``True`` when *repo* names a remote source rather than a local path."""
    return repo.startswith(REMOTE_PREFIXES) or bool(_SCP_LIKE.match(repo))


def is_archive_url(repo: str) -> bool:
    """Return ``True`` for an http(s) URL pointing at a supported archive."""
    parsed = urlparse(repo)
    if parsed.scheme not in ("http", "https"):
        return False
    return parsed.path.lower().endswith(ARCHIVE_SUFFIXES)


def split_ref(repo: str) -> tuple[str, str | None]:
    """Split ``url#ref`` into ``(url, ref)``."""
    if "#" in repo:
        url, ref = repo.rsplit("#", 1)
        return url, ref or None
    return repo, None


class SourceResolver:
    """Resolves scaffold sources to local directories for one run.

    Args:
        base_dir: Directory relative local paths are resolved against.
        timeout: Seconds allowed for each clone or download.
    """

    def __init__(self, base_dir: Path | None = None, timeout: float = 300) -> None:
        self.base_dir = base_dir or Path.cwd()
        self.timeout = timeout
        self._cache: dict[str, Path] = {}
        self._temp_dirs: list[Path] = []

    async def resolve(self, unit: ScaffoldUnit) -> Path:
        """Return the local root directory for *unit*'s source.

        Raises:
            AcquisitionError: If the path does not exist or the fetch fails.
        """
        repo = unit.repo.strip()
        if not repo:
            raise AcquisitionError(unit.repo, "repo is empty")

        cached = self._cache.get(repo)
        if cached is not None:
            print_info(f"  Reusing source {repo} ({cached})")
            return cached

        if not is_remote(repo):
            root = self._resolve_local(repo)
        else:
            workdir = Path(tempfile.mkdtemp(prefix="scaffold-"))
            self._temp_dirs.append(workdir)
            target = workdir / (sanitize_name(unit.label) or "source")
            if is_archive_url(repo):
                root = await self._download(repo, target)
            else:
                root = await self._clone(repo, target)

        self._cache[repo] = root
        return root

    def _resolve_local(self, repo: str) -> Path:
        path = Path(repo).expanduser()
        if not path.is_absolute():
            path = self.base_dir / path
        try:
            path = path.resolve()
            is_dir = path.is_dir()
        except OSError as exc:
            raise AcquisitionError(repo, f"cannot inspect local path {path}: {exc}") from exc
        if not is_dir:
            raise AcquisitionError(repo, f"local path {path} is not a directory")
        print_info(f"  Using local source at {path}")
        return path

    async def _clone(self, repo: str, target: Path) -> Path:
        url, ref = split_ref(repo)
        cmd = ["git", "clone", "--depth", "1"]
        if ref:
            cmd += ["--branch", ref]
        cmd += [url, str(target)]

        print_info(f"  Cloning {repo}")
        try:
            returncode, _, stderr = await run_command(cmd, timeout=self.timeout)
        except OSError as exc:
            raise AcquisitionError(repo, f"cannot run git: {exc}") from exc
        if returncode != 0:
            raise AcquisitionError(repo, stderr or f"git clone exited with {returncode}")
        return target

    async def _download(self, url: str, target: Path) -> Path:
        print_info(f"  Downloading {url}")
        archive = target.parent / f"{target.name}.download"
        try:
            async with httpx.AsyncClient(
                follow_redirects=True,
                timeout=httpx.Timeout(self.timeout, connect=10.0),
            ) as client:
                response = await client.get(url)
                response.raise_for_status()
                await asyncio.to_thread(archive.write_bytes, response.content)
        except httpx.HTTPError as exc:
            raise AcquisitionError(url, f"download failed: {exc}") from exc

        try:
            await asyncio.to_thread(extract_archive, archive, target, urlparse(url).path)
        except (zipfile.BadZipFile, tarfile.TarError, OSError) as exc:
            raise AcquisitionError(url, f"cannot extract archive: {exc}") from exc
        finally:
            archive.unlink(missing_ok=True)
        return unwrap_single_directory(target)

    def cleanup(self) -> None:
        """Delete every temporary directory created during this run."""
        for workdir in self._temp_dirs:
            print_info(f"Cleaning up temporary source at {workdir}")
            try:
                shutil.rmtree(workdir)
            except OSError as exc:
                print_warning(f"  Could not remove {workdir}: {exc}")
        self._temp_dirs.clear()
        self._cache.clear()


# ---------------------------------------------------------------------------
# Archive helpers
# ---------------------------------------------------------------------------

def extract_archive(archive: Path, target: Path, name: str) -> None:
    """Extract a zip or tar archive into *target*.

    *name* (the URL path) decides the format.  Tar members are filtered
    with the ``data`` filter, which rejects absolute paths and links that
    point outside *target*.
    """
    target.mkdir(parents=True, exist_ok=True)
    if name.lower().endswith(".zip"):
        with zipfile.ZipFile(archive) as zf:
            zf.extractall(target)
    else:
        with tarfile.open(archive) as tf:
            tf.extractall(target, filter="data")


def unwrap_single_directory(root: Path) -> Path:
    """Return the only child of *root* when it is a lone directory.

    Release archives usually wrap their contents in ``name-version/``.
    """
    children = list(root.iterdir())
    if len(children) == 1 and children[0].is_dir():
        return children[0]
    return root
