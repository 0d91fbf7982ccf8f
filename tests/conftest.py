"""Shared pytest fixtures for the scaffolding test suite.

Provides reusable fixtures for:
- Building template source trees on disk
- Writing config files
- A fake process executor for hook tests
- Mock asyncio subprocesses
"""

from __future__ import annotations

import textwrap
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable
from unittest.mock import AsyncMock, MagicMock

import pytest

from scaffolding.config import Config, RunSettings


# ---------------------------------------------------------------------------
# Source trees
# ---------------------------------------------------------------------------

def write_tree(root: Path, files: dict[str, str | bytes]) -> Path:
    """Create *files* (relative path -> content) under *root*."""
    for rel, content in files.items():
        path = root / rel
        path.parent.mkdir(parents=True, exist_ok=True)
        if isinstance(content, bytes):
            path.write_bytes(content)
        else:
            path.write_text(content, encoding="utf-8")
    return root


@pytest.fixture
def make_tree() -> Callable[[Path, dict[str, str | bytes]], Path]:
    """Factory fixture wrapping :func:`write_tree`."""
    return write_tree


@pytest.fixture
def template_repo(tmp_path: Path) -> Path:
    """A local scaffold source with a ``templates/`` directory and hook scripts.

    Layout::

        source/
          templates/
            greeting.txt.j2        rendered
            static.txt             copied verbatim (contains {{ }})
            logo.bin               binary, copied
            docs/index.md.j2
            docs/guide/intro.md
          scripts/pre.sh
          scripts/post.sh
    """
    repo = tmp_path / "source"
    write_tree(repo, {
        "templates/greeting.txt.j2": "Hello, {{ project_name }}! Workers: {{ workers }}\n",
        "templates/static.txt": "Literal {{ project_name }} stays\n",
        "templates/logo.bin": bytes(range(256)),
        "templates/docs/index.md.j2": "# {{ project_name }}\n",
        "templates/docs/guide/intro.md": "Intro\n",
        "scripts/pre.sh": "#!/bin/sh\necho pre\n",
        "scripts/post.sh": "#!/bin/sh\necho post\n",
    })
    for script in ("pre.sh", "post.sh"):
        (repo / "scripts" / script).chmod(0o755)
    return repo


@pytest.fixture
def output_dir(tmp_path: Path) -> Path:
    """Output root for generated files (created lazily by the pipeline)."""
    return tmp_path / "generated"


# ---------------------------------------------------------------------------
# Config helpers
# ---------------------------------------------------------------------------

@pytest.fixture
def write_config(tmp_path: Path) -> Callable[[str, str], Path]:
    """Write a dedented config body and return its path.

    Usage:
        path = write_config('''
            [[scaffolds]]
            repo = "source"
        ''')
    """
    def factory(body: str, name: str = "scaffolding.toml") -> Path:
        path = tmp_path / name
        path.write_text(textwrap.dedent(body), encoding="utf-8")
        return path

    return factory


@pytest.fixture
def make_settings(output_dir: Path, tmp_path: Path) -> Callable[..., RunSettings]:
    """Factory for ``RunSettings`` with test-friendly defaults."""
    def factory(**overrides) -> RunSettings:
        values = {
            "project_name": "TestProject",
            "output_dir": output_dir,
            "overwrite": False,
            "template_suffix": ".j2",
            "base_dir": tmp_path,
        }
        values.update(overrides)
        return RunSettings(**values)

    return factory


@pytest.fixture
def single_unit_config(template_repo: Path) -> Config:
    """Config with one unit covering a file, a directory, and a binary."""
    return Config.model_validate({
        "scaffolds": [
            {
                "name": "Local",
                "repo": str(template_repo),
                "template": {
                    "files": [
                        {"src": "greeting.txt.j2", "dest": "greeting.txt"},
                        {"src": "static.txt", "dest": "static.txt"},
                        {"src": "logo.bin", "dest": "assets/logo.bin"},
                        {"src": "docs", "dest": "{{ project_name }}/docs"},
                    ],
                },
                "variables": {"workers": 3},
            },
        ],
    })


# ---------------------------------------------------------------------------
# Process execution
# ---------------------------------------------------------------------------

@dataclass
class ExecutorCall:
    path: Path
    cwd: Path
    env: dict[str, str]
    timeout: float | None


@dataclass
class FakeExecutor:
    """Records hook invocations instead of spawning processes.

    ``statuses`` maps a script filename to the exit status it returns
    (default 0).
    """

    statuses: dict[str, int] = field(default_factory=dict)
    calls: list[ExecutorCall] = field(default_factory=list)

    async def execute(
        self,
        path: Path,
        cwd: Path,
        env: dict[str, str],
        timeout: float | None = None,
    ) -> int:
        self.calls.append(ExecutorCall(path=path, cwd=cwd, env=env, timeout=timeout))
        return self.statuses.get(path.name, 0)

    @property
    def scripts(self) -> list[str]:
        return [call.path.name for call in self.calls]


@pytest.fixture
def fake_executor() -> FakeExecutor:
    """A fresh :class:`FakeExecutor`."""
    return FakeExecutor()


@pytest.fixture
def mock_subprocess():
    """Mock asyncio subprocess for testing command execution.

    Returns a factory that creates mock subprocess instances with configurable
    stdout, stderr, and return codes.

    Usage:
        def test_command(mock_subprocess):
            proc = mock_subprocess(stdout="output", returncode=0)
            with patch("asyncio.create_subprocess_exec", return_value=proc):
                ...
    """
    def factory(
        stdout: str = "",
        stderr: str = "",
        returncode: int = 0,
    ) -> AsyncMock:
        mock_proc = AsyncMock()
        mock_proc.communicate = AsyncMock(
            return_value=(stdout.encode("utf-8"), stderr.encode("utf-8"))
        )
        mock_proc.returncode = returncode
        mock_proc.pid = 99999
        mock_proc.kill = MagicMock()
        mock_proc.wait = AsyncMock(return_value=returncode)
        return mock_proc

    return factory
