"""Scaffolding configuration.

Typed models for the scaffolding config file (``scaffolding.toml`` by
default) and for the run options supplied by the CLI.  All models use
Pydantic v2 so a malformed file is rejected before any unit runs.

Precedence for every overridable setting is::

    run option (CLI flag, then environment) > config file > built-in default
"""

from __future__ import annotations

import json
import os
import tomllib
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field, ValidationError

from scaffolding.errors import ConfigError

# ---------------------------------------------------------------------------
# Built-in defaults
# ---------------------------------------------------------------------------

DEFAULT_PROJECT_NAME = "MyExampleProject"
DEFAULT_OUTPUT_DIR = "generated"
DEFAULT_CONFIG_PATH = "scaffolding.toml"
DEFAULT_TEMPLATE_DIR = "templates"
DEFAULT_TEMPLATE_SUFFIX = ".j2"

RESERVED_PROJECT_NAME_KEY = "project_name"

Scalar = bool | int | float | str


# ---------------------------------------------------------------------------
# Config file models
# ---------------------------------------------------------------------------


class ProjectSettings(BaseModel):
    """The optional ``[project]`` table."""

    name: str | None = Field(default=None, description="Project name exposed as `project_name`")
    output: str | None = Field(default=None, description="Output root directory")
    overwrite: bool | None = Field(default=None, description="Replace existing destination files")
    template_suffix: str | None = Field(
        default=None, description="Filename suffix that marks a file for rendering"
    )


class FileEntry(BaseModel):
    """A single ``src -> dest`` mapping inside a scaffold unit."""

    src: str = Field(..., description="File or directory relative to the template root")
    dest: str = Field(..., description="Destination relative to the output root (templated)")


class TemplateConfig(BaseModel):
    """The ``[scaffolds.template]`` table."""

    files: list[FileEntry] = Field(default_factory=list)


class HooksConfig(BaseModel):
    """Optional pre/post hook scripts, relative to the unit's source root."""

    pre: str | None = None
    post: str | None = None


class ScaffoldUnit(BaseModel):
    """One ``[[scaffolds]]`` declaration."""

    name: str = Field(default="", description="Label used in output only")
    repo: str = Field(..., description="Local path or remote URL of the scaffold source")
    template_dir: str = Field(
        default=DEFAULT_TEMPLATE_DIR,
        description='Directory inside the source holding templates ("." for the root)',
    )
    template: TemplateConfig = Field(default_factory=TemplateConfig)
    hooks: HooksConfig = Field(default_factory=HooksConfig)
    variables: dict[str, Scalar] = Field(default_factory=dict)

    @property
    def label(self) -> str:
        return self.name or "unnamed"

    @property
    def files(self) -> list[FileEntry]:
        return self.template.files


class Config(BaseModel):
    """Root of a parsed scaffolding config file."""

    project: ProjectSettings | None = None
    scaffolds: list[ScaffoldUnit] = Field(default_factory=list)

    @classmethod
    def from_dict(cls, data: dict[str, Any], path: Path | None = None) -> "Config":
        """Validate a raw mapping, converting validation failures to ``ConfigError``."""
        try:
            return cls.model_validate(data)
        except ValidationError as exc:
            problems = "; ".join(
                f"{'.'.join(str(part) for part in err['loc'])}: {err['msg']}"
                for err in exc.errors()
            )
            raise ConfigError(f"invalid configuration: {problems}", path) from exc


# ---------------------------------------------------------------------------
# Loading
# ---------------------------------------------------------------------------


def _parse_text(text: str, suffix: str) -> Any:
    if suffix in (".yaml", ".yml"):
        return yaml.safe_load(text)
    if suffix == ".json":
        return json.loads(text)
    return tomllib.loads(text)


def load_config(path: str | Path) -> Config:
    """Read and validate a config file.

    The format is chosen by suffix: ``.yaml``/``.yml`` and ``.json`` are
    accepted alongside TOML, which is used for any other suffix.

    Raises:
        ConfigError: If the file is missing, unparseable, or fails validation.
    """
    config_path = Path(path)
    if not config_path.is_file():
        raise ConfigError("configuration file not found", config_path)

    try:
        text = config_path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        raise ConfigError(f"cannot read configuration: {exc}", config_path) from exc

    try:
        data = _parse_text(text, config_path.suffix.lower())
    except (tomllib.TOMLDecodeError, yaml.YAMLError, json.JSONDecodeError) as exc:
        raise ConfigError(f"cannot parse configuration: {exc}", config_path) from exc

    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ConfigError("top level must be a table/mapping", config_path)

    return Config.from_dict(data, config_path)


# ---------------------------------------------------------------------------
# Run options and resolved settings
# ---------------------------------------------------------------------------


def _env_bool(value: str) -> bool:
    return value.strip().lower() in ("1", "true", "yes", "on")


class RunOptions(BaseModel):
    """Options supplied by the caller (normally the CLI) for one run."""

    project_name: str | None = None
    output: str | None = None
    config_path: Path = Field(default=Path(DEFAULT_CONFIG_PATH))
    overwrite: bool | None = None
    template_suffix: str | None = None
    fail_fast: bool = Field(default=False, description="Stop after the first unit that fails")
    hook_timeout: float | None = Field(
        default=None, gt=0, description="Seconds before a hook is killed (None waits forever)"
    )

    @classmethod
    def from_env(cls) -> "RunOptions":
        """Build ``RunOptions`` from environment variables.

        Recognised variables (all optional):
            SCAFFOLD_PROJECT_NAME, SCAFFOLD_OUTPUT, SCAFFOLD_CONFIG,
            SCAFFOLD_OVERWRITE, SCAFFOLD_FAIL_FAST, SCAFFOLD_HOOK_TIMEOUT.
        """
        kwargs: dict[str, Any] = {}
        if os.environ.get("SCAFFOLD_PROJECT_NAME"):
            kwargs["project_name"] = os.environ["SCAFFOLD_PROJECT_NAME"]
        if os.environ.get("SCAFFOLD_OUTPUT"):
            kwargs["output"] = os.environ["SCAFFOLD_OUTPUT"]
        if os.environ.get("SCAFFOLD_CONFIG"):
            kwargs["config_path"] = Path(os.environ["SCAFFOLD_CONFIG"])
        if os.environ.get("SCAFFOLD_OVERWRITE"):
            kwargs["overwrite"] = _env_bool(os.environ["SCAFFOLD_OVERWRITE"])
        if os.environ.get("SCAFFOLD_FAIL_FAST"):
            kwargs["fail_fast"] = _env_bool(os.environ["SCAFFOLD_FAIL_FAST"])
        if os.environ.get("SCAFFOLD_HOOK_TIMEOUT"):
            kwargs["hook_timeout"] = float(os.environ["SCAFFOLD_HOOK_TIMEOUT"])
        return cls(**kwargs)

    def merged_with(self, other: "RunOptions") -> "RunOptions":
        """Return a copy where explicitly-set fields of *other* win."""
        return self.model_copy(update=other.model_dump(exclude_unset=True))


class RunSettings(BaseModel):
    """Effective settings for a run after applying precedence."""

    project_name: str
    output_dir: Path
    overwrite: bool
    template_suffix: str
    fail_fast: bool = False
    hook_timeout: float | None = None
    base_dir: Path = Field(
        default_factory=Path.cwd, description="Directory local repo paths are relative to"
    )

    @classmethod
    def resolve(cls, config: Config, options: RunOptions) -> "RunSettings":
        """Apply ``run option > config > default`` to every overridable setting."""
        project = config.project or ProjectSettings()

        def pick(option: Any, configured: Any, default: Any) -> Any:
            if option is not None:
                return option
            if configured is not None:
                return configured
            return default

        return cls(
            project_name=pick(options.project_name, project.name, DEFAULT_PROJECT_NAME),
            output_dir=Path(pick(options.output, project.output, DEFAULT_OUTPUT_DIR)),
            overwrite=pick(options.overwrite, project.overwrite, False),
            template_suffix=pick(
                options.template_suffix, project.template_suffix, DEFAULT_TEMPLATE_SUFFIX
            ),
            fail_fast=options.fail_fast,
            hook_timeout=options.hook_timeout,
            base_dir=options.config_path.resolve().parent,
        )
