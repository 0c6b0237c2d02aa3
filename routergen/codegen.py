"""Render templates and write the generated package.

Takes the context from context_builder, renders every artifact in memory
and only then replaces the output directory.
"""

from __future__ import annotations

import logging
import shutil
import tempfile
from pathlib import Path
from typing import Any

import jinja2

from .python_types import escape_docstring

logger = logging.getLogger(__name__)

TEMPLATE_DIR = Path(__file__).parent / "templates"

# Artifact path -> template rendering it with the full context
_PACKAGE_TEMPLATES = {
    "__init__.py": "package_init.py.j2",
    "client.py": "client.py.j2",
    "schemas.py": "schemas.py.j2",
    "context.py": "context.py.j2",
    "procedures.py": "procedures.py.j2",
    "routers/__init__.py": "routers_init.py.j2",
    "routers/_app.py": "app.py.j2",
}


def create_environment() -> jinja2.Environment:
    env = jinja2.Environment(
        loader=jinja2.FileSystemLoader(str(TEMPLATE_DIR)),
        keep_trailing_newline=True,
        trim_blocks=True,
        lstrip_blocks=True,
    )
    env.filters["doc"] = escape_docstring
    return env


def render_package(context: dict[str, Any]) -> dict[str, str]:
    """Render every artifact; returns relative path -> source text."""
    env = create_environment()
    files = {
        path: env.get_template(name).render(**context)
        for path, name in _PACKAGE_TEMPLATES.items()
    }
    router_template = env.get_template("router.py.j2")
    for router in context["routers"]:
        files[f"routers/{router['module']}.py"] = router_template.render(router=router, **context)
    return files


def write_package(files: dict[str, str], output_dir: Path) -> None:
    """Write files under output_dir, replacing its previous contents.

    Files are staged in a sibling directory first, so a failed write
    leaves the old output in place.
    """
    output_dir = Path(output_dir)
    output_dir.parent.mkdir(parents=True, exist_ok=True)
    staging = Path(tempfile.mkdtemp(prefix=f".{output_dir.name}-", dir=output_dir.parent))
    try:
        for relpath, text in files.items():
            target = staging / relpath
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_text(text)

        backup = None
        if output_dir.exists():
            backup = output_dir.with_name(f"{staging.name}.old")
            output_dir.rename(backup)
        try:
            staging.rename(output_dir)
        except OSError:
            if backup is not None:
                backup.rename(output_dir)
            raise
    except BaseException:
        shutil.rmtree(staging, ignore_errors=True)
        raise
    if backup is not None:
        shutil.rmtree(backup, ignore_errors=True)
    logger.debug("Wrote %d files to %s", len(files), output_dir)


def generate(context: dict[str, Any], output_dir: Path) -> None:
    """Render the package and write it to output_dir."""
    files = render_package(context)
    write_package(files, output_dir)

    print(
        f"Generated {output_dir} ({context['router_count']} routers,"
        f" {context['procedure_count']} procedures)"
    )
