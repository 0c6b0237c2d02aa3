"""Load and normalise the OpenAPI document.

Validates the source URL before any I/O, fetches the document with httpx
(or reads a file:// URL), parses JSON or YAML, and rewrites Swagger 2.0
documents into the components/requestBody layout the compiler reads.
"""

from __future__ import annotations

import asyncio
import copy
import json
import logging
from pathlib import Path
from typing import Any, Iterator
from urllib.parse import urlsplit
from urllib.request import url2pathname

import httpx
import yaml

from .config import DEFAULT_TIMEOUT
from .errors import InvalidSourceURL, SourceRetrievalError

logger = logging.getLogger(__name__)

SPEC_PATH = Path(__file__).parent.parent / "spec" / "openapi.json"

HTTP_METHODS = ("get", "put", "post", "delete", "patch", "options", "head", "trace")


def validate_source_url(url: str) -> str:
    """Check that url is an absolute http(s) or file URL."""
    if not isinstance(url, str) or not url.strip():
        raise InvalidSourceURL(str(url))
    try:
        parts = urlsplit(url)
    except ValueError as exc:
        raise InvalidSourceURL(url) from exc
    if parts.scheme in ("http", "https") and parts.netloc:
        return url
    if parts.scheme == "file" and parts.path:
        return url
    raise InvalidSourceURL(url)


def parse_document(text: str, source: str = "<document>") -> dict[str, Any]:
    """Parse a JSON or YAML document into a dict."""
    try:
        document = json.loads(text)
    except ValueError:
        try:
            document = yaml.safe_load(text)
        except yaml.YAMLError as exc:
            raise SourceRetrievalError(source, f"not valid JSON or YAML ({exc})") from exc
    if not isinstance(document, dict):
        raise SourceRetrievalError(source, "document is not a mapping")
    return document


def load_spec(path: Path | None = None) -> dict[str, Any]:
    """Load an OpenAPI document from disk."""
    spec_file = path or SPEC_PATH
    with open(spec_file) as f:
        return normalize_document(parse_document(f.read(), str(spec_file)))


async def _get(url: str, timeout: float, transport: httpx.AsyncBaseTransport | None) -> str:
    async with httpx.AsyncClient(
        timeout=timeout, transport=transport, follow_redirects=True,
    ) as client:
        response = await client.get(url, headers={"Accept": "application/json, application/yaml"})
        response.raise_for_status()
        return response.text


async def fetch_document(
    url: str,
    timeout: float = DEFAULT_TIMEOUT,
    transport: httpx.AsyncBaseTransport | None = None,
) -> dict[str, Any]:
    """Fetch, parse and normalise the document at url.

    The whole retrieval is bounded by timeout; expiry is reported as a
    SourceRetrievalError like any other transport failure.
    """
    validate_source_url(url)
    parts = urlsplit(url)

    if parts.scheme == "file":
        try:
            text = Path(url2pathname(parts.path)).read_text()
        except OSError as exc:
            raise SourceRetrievalError(url, str(exc)) from exc
        return normalize_document(parse_document(text, url))

    logger.debug("Fetching %s (timeout %.1fs)", url, timeout)
    try:
        text = await asyncio.wait_for(_get(url, timeout, transport), timeout)
    except (asyncio.TimeoutError, httpx.TimeoutException) as exc:
        raise SourceRetrievalError(url, f"timed out after {timeout:g}s") from exc
    except httpx.HTTPStatusError as exc:
        raise SourceRetrievalError(url, f"HTTP {exc.response.status_code}") from exc
    except httpx.HTTPError as exc:
        raise SourceRetrievalError(url, str(exc) or type(exc).__name__) from exc
    return normalize_document(parse_document(text, url))


def get_paths(spec: dict[str, Any]) -> dict[str, Any]:
    """Extract paths from the spec."""
    paths = spec.get("paths")
    return paths if isinstance(paths, dict) else {}


def get_schemas(spec: dict[str, Any]) -> dict[str, Any]:
    """Extract component schemas, or Swagger 2 definitions."""
    components = spec.get("components")
    if isinstance(components, dict) and isinstance(components.get("schemas"), dict):
        return components["schemas"]
    definitions = spec.get("definitions")
    return definitions if isinstance(definitions, dict) else {}


def resolve_ref(spec: dict[str, Any], ref: str) -> dict[str, Any]:
    """Resolve a local $ref pointer in the spec.

    Raises KeyError when the pointer does not lead anywhere.
    """
    if not ref.startswith("#/"):
        raise KeyError(ref)
    node: Any = spec
    for part in ref[2:].split("/"):
        part = part.replace("~1", "/").replace("~0", "~")
        if not isinstance(node, dict) or part not in node:
            raise KeyError(ref)
        node = node[part]
    return node


def iter_operations(spec: dict[str, Any]) -> Iterator[tuple[str, str, dict[str, Any], dict[str, Any]]]:
    """Yield (method, path, operation, path_item) in document order."""
    for path, path_item in get_paths(spec).items():
        if not isinstance(path_item, dict):
            continue
        for method, operation in path_item.items():
            if method in HTTP_METHODS and isinstance(operation, dict):
                yield method, path, operation, path_item


def _json_content(schema: Any) -> dict[str, Any]:
    return {"application/json": {"schema": schema}}


def _convert_parameters(parameters: Any) -> tuple[list[Any], dict[str, Any] | None]:
    """Split Swagger 2.0 parameters into OpenAPI 3 parameters and a request body."""
    params: list[Any] = []
    body = None
    if not isinstance(parameters, list):
        return params, body
    for param in parameters:
        if isinstance(param, dict) and param.get("in") == "body":
            body = {
                "required": param.get("required", False),
                "content": _json_content(param.get("schema", {})),
            }
        elif isinstance(param, dict) and param.get("in") == "formData":
            continue
        else:
            if isinstance(param, dict) and "schema" not in param and "type" in param:
                param = dict(param)
                param["schema"] = {
                    k: param.pop(k) for k in ("type", "format", "items", "enum") if k in param
                }
            params.append(param)
    return params, body


def _normalize_swagger2_operation(operation: dict[str, Any], shared_body: dict[str, Any] | None) -> None:
    params, body = _convert_parameters(operation.get("parameters"))
    if "parameters" in operation:
        operation["parameters"] = params
    body = body or shared_body
    if body is not None and "requestBody" not in operation:
        operation["requestBody"] = copy.deepcopy(body)

    responses = operation.get("responses")
    if not isinstance(responses, dict):
        return
    for response in responses.values():
        if isinstance(response, dict) and "schema" in response and "content" not in response:
            response["content"] = _json_content(response.pop("schema"))


def normalize_document(spec: dict[str, Any]) -> dict[str, Any]:
    """Return spec in OpenAPI 3 layout; Swagger 2.0 input is rewritten."""
    if not str(spec.get("swagger", "")).startswith("2"):
        return spec

    logger.debug("Normalising Swagger %s document", spec["swagger"])
    spec = copy.deepcopy(spec)
    spec.setdefault("components", {})["schemas"] = spec.get("definitions", {})
    for path_item in get_paths(spec).values():
        if not isinstance(path_item, dict):
            continue
        # A body declared on the path item applies to every operation below it
        params, shared_body = _convert_parameters(path_item.get("parameters"))
        if "parameters" in path_item:
            path_item["parameters"] = params
        for method, operation in path_item.items():
            if method in HTTP_METHODS and isinstance(operation, dict):
                _normalize_swagger2_operation(operation, shared_body)
    return spec
