"""Project scaffolding for ``toolsmith new``.

Renders a ready-to-run tool project from the Jinja2 templates shipped in
``toolsmith/cli/templates``: packaging, a tool module built with the field
builders, a pytest module and an example environment file.
"""

from __future__ import annotations

import re
from pathlib import Path

from jinja2 import Environment, PackageLoader, StrictUndefined

import toolsmith

_SLUG_RE = re.compile(r"[a-z][a-z0-9-]*")


class ScaffoldError(Exception):
    """Raised when a project cannot be scaffolded."""


_TEMPLATES = Environment(
    loader=PackageLoader("toolsmith.cli", "templates"),
    autoescape=False,
    keep_trailing_newline=True,
    undefined=StrictUndefined,
)

# output path -> template name; paths are relative to the project root
PROJECT_FILES = {
    "pyproject.toml": "pyproject.toml.j2",
    "{package}/__init__.py": None,
    "{package}/tool.py": "tool.py.j2",
    "tests/__init__.py": None,
    "tests/test_tool.py": "test_tool.py.j2",
    ".env.example": "env.example.j2",
    "README.md": "README.md.j2",
}


def package_name(name: str) -> str:
    return name.replace("-", "_")


def render_project(name: str, description: str) -> dict[str, str]:
    """Return the project files as ``relative path -> content``.

    Raises:
        ScaffoldError: If ``name`` is not a lowercase slug
    """
    if not _SLUG_RE.fullmatch(name):
        raise ScaffoldError(
            f"Invalid tool name {name!r}: use lowercase letters, digits and '-', "
            "starting with a letter"
        )
    package = package_name(name)
    values = {
        "name": name,
        "package": package,
        "description": description.replace('"', "'"),
        "env_prefix": package.upper(),
        "toolsmith_version": toolsmith.__version__,
    }
    return {
        path.format(package=package): (
            _TEMPLATES.get_template(template).render(values) if template else ""
        )
        for path, template in PROJECT_FILES.items()
    }


def scaffold_project(
    name: str,
    directory: Path,
    description: str,
    *,
    force: bool = False,
) -> list[Path]:
    """Write a new tool project into ``directory``.

    Args:
        name: Tool name (lowercase slug)
        directory: Target directory; created when missing
        description: One-line tool description
        force: Write into a non-empty directory, overwriting files

    Returns:
        Paths written, in creation order

    Raises:
        ScaffoldError: If the name is invalid or the directory is not empty
    """
    files = render_project(name, description)
    if directory.exists() and any(directory.iterdir()) and not force:
        raise ScaffoldError(f"Directory {directory} is not empty (use --force to overwrite)")

    written = []
    for relative, content in files.items():
        path = directory / relative
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content, encoding="utf-8")
        written.append(path)
    return written
