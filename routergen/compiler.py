"""Run the two compilation passes and drive a full generation.

Pass 1 resolves every component schema into the schema table. Pass 2
walks the operations in document order, turning each into a route
descriptor with its forwarding call and reducing it into the router
registry. Nothing is written until both passes and rendering succeed.
"""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Any

import httpx

from . import codegen
from .config import DEFAULT_TIMEOUT, Config
from .context_builder import aggregate, build_context
from .errors import GenerationFailed
from .loader import fetch_document, iter_operations, validate_source_url
from .routes import bind_call, extract_route
from .schema_parser import build_schema_table

logger = logging.getLogger(__name__)


def compile_document(
    spec: dict[str, Any],
    overrides: dict[str, tuple[dict[str, str], ...]] | None = None,
) -> tuple[dict[str, dict[str, Any]], dict[str, dict[str, Any]]]:
    """Compile a normalised document into (router registry, schema table)."""
    table = build_schema_table(spec)

    registry: dict[str, dict[str, Any]] = {}
    for method, path, operation, path_item in iter_operations(spec):
        descriptor = extract_route(spec, method, path, operation, table, path_item)
        if descriptor is None:
            continue
        descriptor["call"] = bind_call(descriptor, overrides)
        aggregate(registry, descriptor)

    logger.debug(
        "Compiled %d routes into %d routers",
        sum(len(r["routes"]) for r in registry.values()), len(registry),
    )
    return registry, table


def _title(spec: dict[str, Any]) -> str:
    info = spec.get("info")
    if isinstance(info, dict) and isinstance(info.get("title"), str):
        return info["title"]
    return ""


async def generate_server(
    output_dir: Path | str,
    api_name: str,
    source_url: str,
    *,
    timeout: float = DEFAULT_TIMEOUT,
    overrides: dict[str, tuple[dict[str, str], ...]] | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
) -> dict[str, Any]:
    """Generate the router package for the document at source_url.

    InvalidSourceURL is raised as is, before any I/O. Any later failure
    is raised as GenerationFailed with the original error as its cause,
    and leaves output_dir untouched. Returns the template context.
    """
    validate_source_url(source_url)
    print(f"Generating routers from: {source_url}")

    try:
        spec = await fetch_document(source_url, timeout=timeout, transport=transport)
        registry, table = compile_document(spec, overrides)
        context = build_context(registry, table, api_name, source_url, _title(spec))
        codegen.generate(context, Path(output_dir))
    except Exception as exc:
        logger.debug("Generation failed", exc_info=True)
        raise GenerationFailed(exc) from exc
    return context


def run(config: Config) -> dict[str, Any]:
    """Synchronous entry point for a Config."""
    return asyncio.run(generate_server(
        config.output_dir,
        config.api_name,
        config.source_url,
        timeout=config.timeout,
    ))
