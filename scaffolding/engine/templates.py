"""Jinja2 rendering for scaffold contents and destination paths.

Provides the TemplateRenderer class which renders template strings and
template files against a scaffold unit's context.  Undefined variables are
errors rather than empty strings so a typo in a destination path can never
silently produce a corrupted output location.
"""

from __future__ import annotations

import re
from pathlib import Path
from typing import Any

from jinja2 import Environment, StrictUndefined
from jinja2 import TemplateError as JinjaTemplateError

from scaffolding.errors import FileIOError, TemplateError

# Any of the three Jinja2 opening delimiters.
_DELIMITERS = ("{{", "{%", "{#")


# ---------------------------------------------------------------------------
# TemplateRenderer
# ---------------------------------------------------------------------------


class TemplateRenderer:
    """Renders Jinja2 template text with a context mapping.

    Templates are compiled from strings rather than looked up through a
    loader, since each scaffold unit brings its own source tree.
    """

    def __init__(self) -> None:
        self.env = Environment(
            undefined=StrictUndefined,
            autoescape=False,
            keep_trailing_newline=True,
            trim_blocks=True,
            lstrip_blocks=True,
        )
        # Register custom filters
        self.env.filters["slugify"] = _slugify_filter
        self.env.filters["pascal_case"] = _pascal_case_filter
        self.env.filters["snake_case"] = _snake_case_filter
        self.env.filters["camel_case"] = _camel_case_filter

    def render_string(self, text: str, context: dict[str, Any], source: str = "") -> str:
        """Render an inline template string with the provided context.

        Text without any Jinja2 delimiter is returned unchanged.

        Raises:
            TemplateError: On syntax errors, undefined variables, or any
                exception raised while evaluating an expression.
        """
        if not any(delim in text for delim in _DELIMITERS):
            return text
        try:
            template = self.env.from_string(text)
            return template.render(**context)
        except JinjaTemplateError as exc:
            raise TemplateError(_describe(exc), source or text) from exc
        except Exception as exc:
            # Expression evaluation errors (TypeError, ZeroDivisionError, ...)
            raise TemplateError(f"{type(exc).__name__}: {exc}", source or text) from exc

    def render_file(self, path: Path, context: dict[str, Any]) -> str:
        """Read *path* as UTF-8 and render it.

        Raises:
            FileIOError: If the file cannot be read or is not valid UTF-8.
            TemplateError: If rendering fails.
        """
        try:
            text = path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as exc:
            raise FileIOError(path, str(exc)) from exc
        return self.render_string(text, context, source=str(path))


def _describe(exc: JinjaTemplateError) -> str:
    lineno = getattr(exc, "lineno", None)
    message = exc.message or exc.__class__.__name__
    if lineno:
        return f"{message} (line {lineno})"
    return message


# ---------------------------------------------------------------------------
# Jinja2 custom filters
# ---------------------------------------------------------------------------

def _slugify_filter(value: str) -> str:
    """Convert a string to a URL/filename-safe slug."""
    slug = re.sub(r"[^a-z0-9]+", "-", value.lower().strip())
    return slug.strip("-")


def _pascal_case_filter(value: str) -> str:
    """Convert ``some-thing`` or ``some_thing`` to ``SomeThing``."""
    parts = re.split(r"[-_\s]+", value)
    return "".join(word.capitalize() for word in parts if word)


def _snake_case_filter(value: str) -> str:
    """Convert ``SomeThing`` or ``some-thing`` to ``some_thing``."""
    s1 = re.sub(r"(.)([A-Z][a-z]+)", r"\1_\2", value)
    s2 = re.sub(r"([a-z0-9])([A-Z])", r"\1_\2", s1)
    return re.sub(r"[-\s]+", "_", s2).lower()


def _camel_case_filter(value: str) -> str:
    """Convert ``some-thing`` or ``some_thing`` to ``someThing``."""
    pascal = _pascal_case_filter(value)
    if pascal:
        return pascal[0].lower() + pascal[1:]
    return ""
