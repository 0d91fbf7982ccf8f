"""End-to-end scaffolding tests.

These tests run the real pipeline with real hook processes (``sh``) and,
when ``git`` is installed, a real clone from a local ``file://`` remote.
No network access is required.
"""

from __future__ import annotations

import shutil
import subprocess
from pathlib import Path

import pytest

from scaffolding.config import RunOptions
from scaffolding.pipeline import main, run_scaffolding
from scaffolding.results import HookStatus

requires_git = pytest.mark.skipif(shutil.which("git") is None, reason="git is not installed")


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def hook_source(tmp_path: Path, make_tree) -> Path:
    """A scaffold source whose hooks leave evidence in the output root."""
    repo = make_tree(tmp_path / "hooked", {
        "templates/greeting.txt.j2": "Hello, {{ project_name }}!\n",
        "templates/run.sh": "#!/bin/sh\necho run\n",
        "scripts/pre.sh": 'echo "pre $PROJECT_NAME" > pre.txt\n',
        "scripts/post.sh": 'test -f greeting.txt && echo "post $PROJECT_NAME $WORKERS" > post.txt\n',
        "scripts/fail.sh": "exit 3\n",
    })
    (repo / "templates" / "run.sh").chmod(0o755)
    return repo


@pytest.fixture
def git_remote(tmp_path: Path, make_tree) -> Path:
    """A git repository with a tagged commit, usable as a ``file://`` remote."""
    repo = make_tree(tmp_path / "remote", {
        "templates/app/config.yaml.j2": "name: {{ project_name }}\nreplicas: {{ replicas }}\n",
        "templates/app/LICENSE": "MIT\n",
    })

    def git(*args: str) -> None:
        subprocess.run(["git", *args], cwd=repo, check=True, capture_output=True)

    git("init")
    git("config", "user.email", "test@scaffolding.local")
    git("config", "user.name", "Scaffolding Test")
    git("config", "commit.gpgsign", "false")
    git("add", ".")
    git("commit", "-m", "Initial templates")
    git("tag", "v1")
    return repo


# ---------------------------------------------------------------------------
# Tests
# ---------------------------------------------------------------------------

@pytest.mark.integration
class TestRealHooks:
    async def test_hooks_run_in_output_root(self, hook_source, write_config, tmp_path):
        output = tmp_path / "out"
        config_path = write_config(f"""
            [[scaffolds]]
            name = "hooked"
            repo = "{hook_source}"

            [scaffolds.template]
            files = [
                {{ src = "greeting.txt.j2", dest = "greeting.txt" }},
                {{ src = "run.sh", dest = "bin/" }},
            ]

            [scaffolds.hooks]
            pre = "scripts/pre.sh"
            post = "scripts/post.sh"

            [scaffolds.variables]
            workers = 4
        """)
        summary = await run_scaffolding(
            RunOptions(project_name="Demo", output=str(output), config_path=config_path)
        )

        assert summary.success, summary.model_dump()
        assert (output / "pre.txt").read_text() == "pre Demo\n"
        assert (output / "post.txt").read_text() == "post Demo 4\n"
        assert (output / "greeting.txt").read_text() == "Hello, Demo!\n"
        assert (output / "bin" / "run.sh").stat().st_mode & 0o111

    async def test_failing_pre_hook(self, hook_source, write_config, tmp_path):
        output = tmp_path / "out"
        config_path = write_config(f"""
            [[scaffolds]]
            repo = "{hook_source}"

            [scaffolds.template]
            files = [{{ src = "greeting.txt.j2", dest = "greeting.txt" }}]

            [scaffolds.hooks]
            pre = "scripts/fail.sh"
            post = "scripts/post.sh"
        """)
        summary = await run_scaffolding(RunOptions(output=str(output), config_path=config_path))

        unit = summary.units[0]
        assert unit.aborted
        assert unit.pre_hook.exit_code == 3
        assert unit.post_hook.status is HookStatus.NOT_RUN
        assert not (output / "greeting.txt").exists()
        assert summary.exit_code == 1

    async def test_hook_timeout(self, tmp_path, make_tree, write_config):
        repo = make_tree(tmp_path / "slow", {
            "templates/a.txt": "a\n",
            "scripts/slow.sh": "sleep 30\n",
        })
        config_path = write_config(f"""
            [[scaffolds]]
            repo = "{repo}"

            [scaffolds.hooks]
            post = "scripts/slow.sh"
        """)
        summary = await run_scaffolding(RunOptions(
            output=str(tmp_path / "out"), config_path=config_path, hook_timeout=0.5
        ))
        unit = summary.units[0]
        assert unit.post_hook.status is HookStatus.FAILED
        assert "timed out" in (unit.post_hook.error or "")


@pytest.mark.integration
@requires_git
class TestGitSource:
    async def test_clone_tagged_ref(self, git_remote, write_config, tmp_path):
        output = tmp_path / "out"
        config_path = write_config(f"""
            [[scaffolds]]
            name = "Remote App"
            repo = "file://{git_remote}#v1"

            [scaffolds.template]
            files = [{{ src = "app", dest = "deploy/{{{{ project_name }}}}" }}]

            [scaffolds.variables]
            replicas = 2
        """)
        summary = await run_scaffolding(
            RunOptions(project_name="web", output=str(output), config_path=config_path)
        )

        assert summary.success, summary.model_dump()
        assert (output / "deploy" / "web" / "config.yaml").read_text() == "name: web\nreplicas: 2\n"
        assert (output / "deploy" / "web" / "LICENSE").read_text() == "MIT\n"
        # The temporary clone is removed at the end of the run.
        assert not Path(summary.units[0].source_root).exists()

    async def test_unknown_ref(self, git_remote, write_config, tmp_path):
        config_path = write_config(f"""
            [[scaffolds]]
            repo = "file://{git_remote}#no-such-tag"
        """)
        summary = await run_scaffolding(
            RunOptions(output=str(tmp_path / "out"), config_path=config_path)
        )
        assert summary.units[0].failures[0].kind == "acquisition"


@pytest.mark.integration
class TestCli:
    def test_cli_run_twice(self, hook_source, write_config, tmp_path, monkeypatch):
        for name in ("SCAFFOLD_PROJECT_NAME", "SCAFFOLD_OUTPUT", "SCAFFOLD_CONFIG", "SCAFFOLD_OVERWRITE"):
            monkeypatch.delenv(name, raising=False)
        output = tmp_path / "out"
        config_path = write_config(f"""
            [project]
            name = "FromConfig"

            [[scaffolds]]
            repo = "{hook_source}"

            [scaffolds.template]
            files = [{{ src = "greeting.txt.j2", dest = "greeting.txt" }}]
        """)
        argv = ["-c", str(config_path), "-o", str(output)]

        with pytest.raises(SystemExit) as first:
            main(argv)
        assert first.value.code == 0
        (output / "greeting.txt").write_text("edited\n")

        with pytest.raises(SystemExit) as second:
            main(argv)
        assert second.value.code == 0
        assert (output / "greeting.txt").read_text() == "edited\n"

        with pytest.raises(SystemExit) as third:
            main([*argv, "--overwrite"])
        assert third.value.code == 0
        assert (output / "greeting.txt").read_text() == "Hello, FromConfig!\n"
