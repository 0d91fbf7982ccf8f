"""Config-driven project scaffolding.

Copies and renders files from one or more scaffold sources (local
directories, git repositories, or archives) into an output directory,
with pre/post hooks and Jinja2 variables in both file bodies and
destination paths.

Quick usage::

    from scaffolding import RunOptions, run_scaffolding

    summary = await run_scaffolding(
        RunOptions(config_path=Path("scaffolding.toml"), project_name="my-app")
    )
    if not summary.success:
        ...
"""

from scaffolding.config import Config, RunOptions, RunSettings, ScaffoldUnit, load_config
from scaffolding.pipeline import ScaffoldPipeline, run_scaffolding
from scaffolding.results import RunSummary, UnitOutcome

__all__ = [
    "Config",
    "RunOptions",
    "RunSettings",
    "RunSummary",
    "ScaffoldPipeline",
    "ScaffoldUnit",
    "UnitOutcome",
    "load_config",
    "run_scaffolding",
]
