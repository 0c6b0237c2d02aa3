"""Aggregate route descriptors into routers and build the template context.

Routers are keyed by resource and kept in first-seen order. Each router
owns its local schemas (one input object per procedure) and its routes
in discovery order. build_context() turns the finished registry into
the render-ready dict the templates consume.
"""

from __future__ import annotations

import logging
from typing import Any

from .naming import python_identifier, snake_identifier, to_pascal
from .python_types import MODULE_NAMES, TypeRenderer, escape_docstring
from .routes import input_schema, method_name, resource_namespace

logger = logging.getLogger(__name__)

# Names a router module imports; models and fields must not shadow them
_ROUTER_MODULE_NAMES = frozenset({
    "APIRouter", "Depends", "Context", "NotFoundError", "BadRequestError", "schemas",
})

# Client method parameters besides the path parameters
_CLIENT_PARAMS = frozenset({"self", "query", "data"})

_ERROR_CLASSES = {"query": "NotFoundError", "mutation": "BadRequestError"}


def _assign_names(router: dict[str, Any], descriptor: dict[str, Any]) -> None:
    """Make the procedure name unique within its router."""
    taken_names = {r["name"] for r in router["routes"]}
    taken_functions = {r["function"] for r in router["routes"]}

    def taken(candidate: str) -> bool:
        return candidate in taken_names or method_name(candidate) in taken_functions

    name = descriptor["name"]
    if taken(name):
        name = f"{name}{descriptor['method'].capitalize()}"
    base, counter = name, 2
    while taken(name):
        name = f"{base}{counter}"
        counter += 1

    descriptor["name"] = name
    descriptor["function"] = method_name(name)
    descriptor["input_model"] = f"{to_pascal(name)}Input"


def _merge_schemas(router: dict[str, Any], contribution: dict[str, Any]) -> None:
    """Merge local schemas; the most recent contribution wins."""
    existing = router["schemas"]
    for name, schema in contribution.items():
        if name in existing and existing[name] != schema:
            logger.warning(
                "Router %s: local schema %s redefined, keeping the latest", router["name"], name,
            )
        existing[name] = schema


def _new_router(registry: dict[str, dict[str, Any]], resource: str) -> dict[str, Any]:
    taken = {r["namespace"] for r in registry.values()}
    namespace = base = resource_namespace(resource)
    counter = 2
    while namespace in taken:
        namespace = f"{base}_{counter}"
        counter += 1
    return {"name": resource, "namespace": namespace, "schemas": {}, "routes": []}


def aggregate(registry: dict[str, dict[str, Any]], descriptor: dict[str, Any]) -> dict[str, Any]:
    """Add a route descriptor to the router for its resource.

    Creates the router on first sight of the resource. Must be called
    from a single writer.
    """
    resource = descriptor["resource"]
    router = registry.get(resource)
    if router is None:
        router = registry[resource] = _new_router(registry, resource)

    _assign_names(router, descriptor)
    if "call" in descriptor:
        descriptor["call"]["resource_namespace"] = router["namespace"]
        descriptor["call"]["method_name"] = descriptor["function"]
    _merge_schemas(router, {descriptor["input_model"]: input_schema(descriptor)})
    router["routes"].append(descriptor)
    return router


def _call_expression(route: dict[str, Any], fields: dict[str, str], client_params: dict[str, str]) -> str:
    """Render the forwarding call for a procedure."""
    args: list[str] = []
    keyword = False
    for arg in route["call"]["arguments"]:
        if arg["kind"] == "path":
            value = f"input.{fields[arg['key']]}"
            args.append(f"{client_params[arg['key']]}={value}" if keyword else value)
        elif arg["kind"] == "query":
            items = ", ".join(
                f"{name!r}: input.{fields[name]}"
                for name in route["query_params"]
                if name in fields and name not in route["path_params"]
            )
            args.append(f"query={{{items}}}")
            keyword = True
        else:
            args.append(f"data=input.{fields[route['body_key']]}")
            keyword = True
    namespace = route["call"]["resource_namespace"]
    return f"ctx.api.{namespace}.{route['call']['method_name']}({', '.join(args)})"


def _client_params(route: dict[str, Any]) -> dict[str, str]:
    """Path parameter name -> client method parameter name."""
    params: dict[str, str] = {}
    for name in route["path_params"]:
        params[name] = python_identifier(
            snake_identifier(name), _CLIENT_PARAMS | set(params.values()),
        )
    return params


def _router_context(router: dict[str, Any], class_names: dict[str, str]) -> dict[str, Any]:
    renderer = TypeRenderer(
        lambda name: f"schemas.{class_names[name]}" if name in class_names else None,
        reserved=_ROUTER_MODULE_NAMES,
    )
    inputs = {name: renderer.hoist(schema, name) for name, schema in router["schemas"].items()}

    procedures = []
    methods = []
    for route in router["routes"]:
        response = renderer.render(route["response"], f"{to_pascal(route['name'])}Response")
        input_model = inputs[route["input_model"]]
        fields = next(m for m in renderer.models if m["name"] == input_model)["field_map"]
        client_params = _client_params(route)

        decorator = f"@{route['access']}_procedure.{route['kind']}(router, {route['name']!r}"
        if response != "Any":
            decorator += f", response_model={response}"
        decorator += ")"

        if route["kind"] == "query":
            input_param = f"input: {input_model} = Depends(query_input({input_model}))"
        else:
            input_param = f"input: {input_model}"

        procedures.append({
            "name": route["name"],
            "function": route["function"],
            "kind": route["kind"],
            "access": route["access"],
            "decorator": decorator,
            "input_model": input_model,
            "input_param": input_param,
            "response_model": None if response == "Any" else response,
            "call": _call_expression(route, fields, client_params),
            "error_class": _ERROR_CLASSES[route["kind"]],
            "error_message": f"Failed to {route['method']} {route['path']}",
            "docstring": escape_docstring(route["description"]),
        })
        methods.append({
            "function": route["function"],
            "http_method": route["method"].upper(),
            "path": route["path"],
            "path_params": list(client_params.items()),
            "docstring": escape_docstring(route["description"]),
        })

    return {
        "name": router["name"],
        "module": router["namespace"],
        "namespace": router["namespace"],
        "class_name": f"_{to_pascal(router['namespace'])}Resource",
        "models": renderer.models,
        "procedures": procedures,
        "methods": methods,
    }


def component_class_names(table: dict[str, Any]) -> dict[str, str]:
    """Component name -> class or alias name in the generated schemas module."""
    taken = set(MODULE_NAMES)
    names: dict[str, str] = {}
    for component in table:
        base = python_identifier(to_pascal(component) or "Schema")
        name, counter = base, 2
        while name in taken:
            name = f"{base}{counter}"
            counter += 1
        taken.add(name)
        names[component] = name
    return names


def _alias_refs(schema: dict[str, Any]) -> list[str]:
    """Refs an alias needs defined before it (hoisted models resolve lazily)."""
    if schema["kind"] == "ref":
        return [schema["name"]]
    if schema["kind"] == "array":
        return _alias_refs(schema["items"])
    return []


def _schemas_context(table: dict[str, Any], class_names: dict[str, str]) -> dict[str, Any]:
    classes = [c for c, s in table.items() if s["kind"] == "object" and s["properties"]]
    class_set = set(classes)

    # Aliases are evaluated at import: order them so dependencies come first.
    order: list[str] = []
    state: dict[str, str] = {}

    def visit(name: str) -> None:
        if name in state:
            return
        state[name] = "visiting"
        for dep in _alias_refs(table[name]):
            if dep in table and dep not in class_set:
                visit(dep)
        state[name] = "done"
        order.append(name)

    for name in table:
        if name not in class_set:
            visit(name)

    emitted: set[str] = set()
    renderer: TypeRenderer

    def ref_format(name: str) -> str | None:
        if name not in class_names:
            return None
        if name in class_set or name in emitted or renderer.in_model:
            return class_names[name]
        # Alias cycle: the target is not defined yet.
        return None

    renderer = TypeRenderer(ref_format, reserved=set(class_names.values()))
    for name in classes:
        renderer.hoist(table[name], class_names[name], claimed=True)

    aliases = []
    for name in order:
        annotation = renderer.render(table[name], class_names[name])
        emitted.add(name)
        aliases.append({"name": class_names[name], "annotation": annotation})

    return {"models": renderer.models, "aliases": aliases}


def build_context(
    registry: dict[str, dict[str, Any]],
    table: dict[str, Any],
    api_name: str,
    source_url: str = "",
    title: str = "",
) -> dict[str, Any]:
    """Build the full template context from the routers and the schema table."""
    class_names = component_class_names(table)
    routers = [_router_context(router, class_names) for router in registry.values()]

    return {
        "api_name": python_identifier(to_pascal(api_name) or "Api"),
        "title": title or api_name,
        "source_url": source_url,
        "schemas": _schemas_context(table, class_names),
        "routers": routers,
        "router_count": len(routers),
        "procedure_count": sum(len(r["procedures"]) for r in routers),
    }
