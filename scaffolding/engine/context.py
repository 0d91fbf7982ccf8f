"""Render context assembly for a scaffold unit."""

from __future__ import annotations

from typing import Any

from scaffolding.config import RESERVED_PROJECT_NAME_KEY, ScaffoldUnit
from scaffolding.utils import print_warning


def build_context(project_name: str, unit: ScaffoldUnit) -> dict[str, Any]:
    """Merge a unit's variables with the reserved ``project_name`` key.

    The globally resolved project name always wins: a unit variable called
    ``project_name`` is ignored with a warning.
    """
    context: dict[str, Any] = dict(unit.variables)
    shadowed = context.get(RESERVED_PROJECT_NAME_KEY)
    if shadowed is not None and shadowed != project_name:
        print_warning(
            f"  Scaffold '{unit.label}' sets reserved variable "
            f"'{RESERVED_PROJECT_NAME_KEY}' = {shadowed!r}; using {project_name!r}"
        )
    context[RESERVED_PROJECT_NAME_KEY] = project_name
    return context
