"""Scaffolding engine -- the per-unit resolution and rendering steps.

Key pieces:
    build_context     - Merge unit variables with the reserved project name
    resolve_entry     - Expand a file entry into source/destination pairs
    TemplateRenderer  - Jinja2 rendering with strict undefined handling
    FileMaterializer  - Render or copy one file under the output root
    HookRunner        - Run pre/post hook scripts through a process executor
"""

from .context import build_context
from .hooks import HookRunner, ProcessExecutor, SubprocessExecutor, hook_environment
from .materializer import FileMaterializer, atomic_write_bytes
from .paths import ResolvedFile, resolve_entry, walk_files
from .templates import TemplateRenderer

__all__ = [
    # Context
    "build_context",
    # Paths
    "ResolvedFile",
    "resolve_entry",
    "walk_files",
    # Rendering
    "TemplateRenderer",
    # Materializing
    "FileMaterializer",
    "atomic_write_bytes",
    # Hooks
    "HookRunner",
    "ProcessExecutor",
    "SubprocessExecutor",
    "hook_environment",
]
