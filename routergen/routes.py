"""Build route descriptors from operations and bind their forwarding calls.

A descriptor carries everything the emitter needs for one procedure:
path/query/body schemas, the response schema, the access level and the
call into the generated REST client.
"""

from __future__ import annotations

import logging
import re
from typing import Any

from .loader import resolve_ref
from .naming import (
    PATH_PARAM,
    build_route_name,
    operation_name,
    path_params,
    path_segments,
    python_identifier,
    snake_identifier,
)
from .schema_parser import number_schema, object_schema, resolve, string_schema, unknown_schema

logger = logging.getLogger(__name__)

# Input field and client keyword that carry the request body. The input
# field takes a trailing underscore when a parameter already uses the name.
BODY_KEY = "data"
# Client keyword that carries the query parameters
QUERY_KEY = "query"

ARGUMENT_KINDS = ("path", "query", "body")

# Operations whose forwarding call does not follow the generic
# path -> query -> body order. Key: operation name -> call arguments, used as is.
CALL_OVERRIDES: dict[str, tuple[dict[str, str], ...]] = {
    # Listing endpoint: filters and pagination travel in the body.
    "listCreate": ({"kind": "body", "key": BODY_KEY},),
    # Terminates every session of the caller; the body is ignored upstream.
    "terminateAllCreate": (),
}

# Attribute names the generated client keeps for itself
_CLIENT_RESERVED = frozenset({"aclose", "request"})

# Names a router module already binds; procedure functions must not shadow them
_FUNCTION_RESERVED = frozenset({
    "router", "schemas", "datetime", "create_context", "public_procedure",
    "protected_procedure", "query_input",
})

_PUBLIC_METHODS = {"get"}


def _strip_html(text: str) -> str:
    """Strip HTML tags and collapse whitespace."""
    text = re.sub(r"<[^>]+>", "", text)
    return re.sub(r"\s+", " ", text).strip()


def resource_for_path(path: str) -> str | None:
    """First path segment, or None when the path has none.

    A templated segment yields the parameter name: "/{tenant}/info" -> "tenant".
    """
    if len(path.split("/")) < 2:
        return None
    segments = path_segments(path)
    if not segments:
        return None
    return PATH_PARAM.sub(lambda m: m.group(1), segments[0])


def resource_namespace(resource: str) -> str:
    """Attribute name of a resource on the generated client."""
    return python_identifier(snake_identifier(resource), _CLIENT_RESERVED)


def method_name(name: str) -> str:
    """Function name of a procedure, also its method name on the client."""
    return python_identifier(snake_identifier(name), _FUNCTION_RESERVED)


def _deref(spec: dict[str, Any], node: Any) -> Any:
    """Follow a $ref'd parameter, request body or response; None if dangling."""
    seen: set[str] = set()
    while isinstance(node, dict) and isinstance(node.get("$ref"), str):
        ref = node["$ref"]
        if ref in seen:
            return None
        seen.add(ref)
        try:
            node = resolve_ref(spec, ref)
        except KeyError:
            logger.debug("Dangling reference %s", ref)
            return None
    return node


def _collect_parameters(
    spec: dict[str, Any], operation: dict[str, Any], path_item: dict[str, Any],
) -> dict[tuple[str, str], dict[str, Any]]:
    """Path-item parameters overlaid with operation parameters."""
    merged: dict[tuple[str, str], dict[str, Any]] = {}
    for source in (path_item.get("parameters"), operation.get("parameters")):
        if not isinstance(source, list):
            continue
        for param in source:
            param = _deref(spec, param)
            if not isinstance(param, dict) or not isinstance(param.get("name"), str):
                continue
            merged[(param["name"], param.get("in", "query"))] = param
    return merged


def _has_declared_type(schema: Any) -> bool:
    return isinstance(schema, dict) and any(k in schema for k in ("type", "$ref", "enum"))


def path_param_schema(
    name: str, declared: Any = None, table: dict[str, Any] | None = None,
) -> dict[str, Any]:
    """Schema of a path parameter.

    The declared schema wins; without one, names containing "id" are
    taken as integers and everything else as strings.
    """
    if _has_declared_type(declared):
        return resolve(declared, table)
    if "id" in name.lower():
        return number_schema(integer=True)
    return string_schema()


def _json_schema(spec: dict[str, Any], container: Any) -> dict[str, Any] | None:
    """The application/json schema of a request body or response."""
    container = _deref(spec, container)
    if not isinstance(container, dict):
        return None
    content = container.get("content")
    if not isinstance(content, dict):
        return None
    media = content.get("application/json")
    if not isinstance(media, dict):
        return None
    schema = media.get("schema")
    return schema if isinstance(schema, dict) else None


def _success_response(responses: Any) -> Any:
    if not isinstance(responses, dict):
        return None
    # YAML documents may key responses by int
    for code in ("200", 200, "201", 201):
        if code in responses:
            return responses[code]
    return None


def _make_description(method: str, path: str, operation: dict[str, Any]) -> str:
    for key in ("summary", "description"):
        text = operation.get(key)
        if isinstance(text, str) and text.strip():
            return _strip_html(text)
    return f"{method.upper()} {path}"


def extract_route(
    spec: dict[str, Any],
    method: str,
    path: str,
    operation: dict[str, Any],
    table: dict[str, Any],
    path_item: dict[str, Any] | None = None,
) -> dict[str, Any] | None:
    """Build the route descriptor for one operation.

    Returns None when the path yields no resource.
    """
    resource = resource_for_path(path)
    if resource is None:
        logger.warning("Skipping %s %s: no resource segment", method.upper(), path)
        return None

    method = method.lower()
    params = _collect_parameters(spec, operation, path_item or {})

    path_schemas: dict[str, dict[str, Any]] = {}
    for name in path_params(path):
        declared = params.get((name, "path"), {}).get("schema")
        path_schemas[name] = path_param_schema(name, declared, table)

    query_schemas: dict[str, dict[str, Any]] = {}
    for (name, location), param in params.items():
        if location != "query":
            continue
        query_schemas[name] = {
            "schema": resolve(param.get("schema") or {"type": "string"}, table),
            "required": param.get("required") is True,
        }

    body_key = BODY_KEY
    while body_key in path_schemas or body_key in query_schemas:
        body_key += "_"

    body = None
    body_required = False
    request_body = _deref(spec, operation.get("requestBody"))
    body_node = _json_schema(spec, request_body)
    if body_node is not None:
        body = resolve(body_node, table)
        body_required = request_body.get("required", True) is not False

    response_node = _json_schema(spec, _success_response(operation.get("responses")))
    response = resolve(response_node, table) if response_node is not None else unknown_schema()

    operation_id = operation.get("operationId")
    if isinstance(operation_id, str) and operation_id.strip():
        name = operation_name(operation_id.strip())
    else:
        name = build_route_name(method, path)

    return {
        "name": name,
        "operation_id": name,
        "method": method,
        "path": path,
        "resource": resource,
        "description": _make_description(method, path, operation),
        "access": "public" if method in _PUBLIC_METHODS else "protected",
        "kind": "query" if method == "get" else "mutation",
        "path_params": path_schemas,
        "query_params": query_schemas,
        "body": body,
        "body_required": body_required,
        "body_key": body_key,
        "response": response,
    }


def bind_call(
    descriptor: dict[str, Any],
    overrides: dict[str, tuple[dict[str, str], ...]] | None = None,
) -> dict[str, Any]:
    """Derive the forwarding call for a route.

    An override for the operation replaces the generic order entirely; it
    must still pass every path parameter.
    """
    table = {**CALL_OVERRIDES, **(overrides or {})}
    operation_id = descriptor["operation_id"]

    if operation_id in table:
        arguments = [dict(arg) for arg in table[operation_id]]
        for arg in arguments:
            kind = arg.get("kind")
            if (
                kind not in ARGUMENT_KINDS
                or not arg.get("key")
                or (kind == "path" and arg["key"] not in descriptor["path_params"])
                or (kind == "body" and descriptor["body"] is None)
            ):
                raise ValueError(f"Invalid call override for {operation_id}: {arg!r}")
        missing = [
            name for name in descriptor["path_params"]
            if not any(arg["kind"] == "path" and arg["key"] == name for arg in arguments)
        ]
        if missing:
            raise ValueError(
                f"Call override for {operation_id} leaves out path parameters: {', '.join(missing)}"
            )
    else:
        arguments = [{"kind": "path", "key": name} for name in descriptor["path_params"]]
        if descriptor["query_params"]:
            arguments.append({"kind": "query", "key": QUERY_KEY})
        if descriptor["body"] is not None:
            arguments.append({"kind": "body", "key": descriptor["body_key"]})

    return {
        "resource_namespace": resource_namespace(descriptor["resource"]),
        "operation_id": operation_id,
        "method_name": method_name(operation_id),
        "arguments": arguments,
    }


def input_schema(descriptor: dict[str, Any]) -> dict[str, Any]:
    """The procedure's input object: path params, query params, then data."""
    properties: dict[str, tuple[dict[str, Any], bool]] = {}
    for name, schema in descriptor["path_params"].items():
        properties[name] = (schema, True)
    for name, query in descriptor["query_params"].items():
        if name in properties:
            logger.warning(
                "%s: query parameter %r collides with another input field, skipped",
                descriptor["name"], name,
            )
            continue
        properties[name] = (query["schema"], query["required"])
    if descriptor["body"] is not None:
        properties[descriptor["body_key"]] = (descriptor["body"], descriptor["body_required"])
    return object_schema(properties)
