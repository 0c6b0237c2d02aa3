"""Convert OpenAPI schema nodes into the schema IR.

IR nodes are plain dicts tagged by "kind":

- string   (min_length, max_length, pattern, format="date-time")
- number   (integer, minimum, maximum, exclusive_minimum, exclusive_maximum)
- boolean
- enum     (values, in document order)
- array    (items)
- object   (properties: name -> {"schema", "required"})
- ref      (name of a component, looked up when rendering)
- unknown

Every node carries a "nullable" flag. Nothing here raises on odd input:
unrecognised or malformed nodes become "unknown".

Handles:
- $ref to components (last pointer segment is the name)
- OAS 3.0 nullable, OAS 3.1 type lists, Swagger x-nullable
- length/pattern constraints on strings, range constraints on numbers
"""

from __future__ import annotations

import logging
import re
from typing import Any

from .loader import get_schemas

logger = logging.getLogger(__name__)

_LITERAL_TYPES = (str, int, float, bool)


def make_schema(kind: str, nullable: bool = False, **attrs: Any) -> dict[str, Any]:
    """Build an IR node of the given kind."""
    schema: dict[str, Any] = {"kind": kind, "nullable": nullable}
    schema.update(attrs)
    return schema


def unknown_schema(nullable: bool = False) -> dict[str, Any]:
    return make_schema("unknown", nullable)


def ref_schema(name: str, nullable: bool = False) -> dict[str, Any]:
    return make_schema("ref", nullable, name=name)


def string_schema(nullable: bool = False, **constraints: Any) -> dict[str, Any]:
    return make_schema("string", nullable, **constraints)


def number_schema(integer: bool = False, nullable: bool = False, **constraints: Any) -> dict[str, Any]:
    return make_schema("number", nullable, integer=integer, **constraints)


def boolean_schema(nullable: bool = False) -> dict[str, Any]:
    return make_schema("boolean", nullable)


def enum_schema(values: list[Any], nullable: bool = False) -> dict[str, Any]:
    return make_schema("enum", nullable, values=list(values))


def array_schema(items: dict[str, Any], nullable: bool = False) -> dict[str, Any]:
    return make_schema("array", nullable, items=items)


def object_schema(
    properties: dict[str, tuple[dict[str, Any], bool]] | None = None,
    nullable: bool = False,
) -> dict[str, Any]:
    """Build an object node from name -> (schema, required) pairs."""
    props = {
        name: {"schema": schema, "required": required}
        for name, (schema, required) in (properties or {}).items()
    }
    return make_schema("object", nullable, properties=props)


def ref_name(ref: str) -> str:
    """'#/components/schemas/Vehicle' -> 'Vehicle'."""
    return ref.rsplit("/", 1)[-1].replace("~1", "/").replace("~0", "~")


def _number(value: Any) -> int | float | None:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    return value


def _length(value: Any) -> int | None:
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        return None
    return value


def _declared_type(node: dict[str, Any]) -> tuple[str | None, bool]:
    """Return (type, nullable-from-type) for a node's "type" keyword."""
    declared = node.get("type")
    if isinstance(declared, list):
        types = [t for t in declared if isinstance(t, str) and t != "null"]
        return (types[0] if types else None), "null" in declared
    if isinstance(declared, str):
        return declared, False
    return None, False


def _number_constraints(node: dict[str, Any]) -> dict[str, Any]:
    constraints: dict[str, Any] = {}
    for key, attr in (("minimum", "minimum"), ("maximum", "maximum")):
        value = _number(node.get(key))
        if value is not None:
            constraints[attr] = value

    # OAS 3.0 uses booleans next to minimum/maximum, OAS 3.1 uses numbers.
    for key, bound, attr in (
        ("exclusiveMinimum", "minimum", "exclusive_minimum"),
        ("exclusiveMaximum", "maximum", "exclusive_maximum"),
    ):
        value = node.get(key)
        if value is True and bound in constraints:
            constraints[attr] = constraints.pop(bound)
        elif _number(value) is not None:
            constraints[attr] = value
    return constraints


def _string_constraints(node: dict[str, Any]) -> dict[str, Any]:
    constraints: dict[str, Any] = {}
    for key, attr in (("minLength", "min_length"), ("maxLength", "max_length")):
        value = _length(node.get(key))
        if value is not None:
            constraints[attr] = value
    pattern = node.get("pattern")
    if isinstance(pattern, str):
        try:
            re.compile(pattern)
        except re.error:
            logger.debug("Dropping pattern %r: not a Python regular expression", pattern)
        else:
            constraints["pattern"] = pattern
    if node.get("format") == "date-time":
        constraints["format"] = "date-time"
    return constraints


def resolve(node: Any, table: dict[str, Any] | None = None) -> dict[str, Any]:
    """Convert one OpenAPI schema node into an IR node.

    When a table is given, references to names missing from it resolve to
    "unknown". Without one (while the table itself is being built), every
    reference is kept as a "ref" node.
    """
    if not isinstance(node, dict):
        return unknown_schema()

    declared, nullable = _declared_type(node)
    nullable = nullable or node.get("nullable") is True or node.get("x-nullable") is True

    if "$ref" in node:
        ref = node["$ref"]
        if not isinstance(ref, str) or not ref:
            return unknown_schema(nullable)
        name = ref_name(ref)
        if table is not None and name not in table:
            logger.debug("Unresolved reference %s, using unknown", ref)
            return unknown_schema(nullable)
        return ref_schema(name, nullable)

    if "enum" in node:
        values = node["enum"]
        if not isinstance(values, list):
            return unknown_schema(nullable)
        literals = [v for v in values if isinstance(v, _LITERAL_TYPES)]
        nullable = nullable or None in values
        if not literals:
            return unknown_schema(nullable)
        return enum_schema(literals, nullable)

    if declared == "array":
        return array_schema(resolve(node.get("items"), table), nullable)

    if declared == "object" or "properties" in node:
        properties = node.get("properties")
        if not isinstance(properties, dict):
            properties = {}
        required = node.get("required")
        required_names = set(r for r in required if isinstance(r, str)) if isinstance(required, list) else set()
        return object_schema(
            {
                str(name): (resolve(prop, table), name in required_names)
                for name, prop in properties.items()
            },
            nullable,
        )

    if declared == "string":
        return string_schema(nullable, **_string_constraints(node))
    if declared in ("number", "integer"):
        return number_schema(declared == "integer", nullable, **_number_constraints(node))
    if declared == "boolean":
        return boolean_schema(nullable)
    return unknown_schema(nullable)


def deref(schema: dict[str, Any], table: dict[str, Any]) -> dict[str, Any]:
    """Follow ref nodes to the table entry they name ("unknown" if missing)."""
    seen: set[str] = set()
    while schema["kind"] == "ref":
        name = schema["name"]
        if name in seen or name not in table:
            return unknown_schema(schema["nullable"])
        seen.add(name)
        schema = table[name]
    return schema


def build_schema_table(spec: dict[str, Any]) -> dict[str, dict[str, Any]]:
    """Pass 1: resolve every component schema into a name -> IR table."""
    table: dict[str, dict[str, Any]] = {}
    for name, node in get_schemas(spec).items():
        table[str(name)] = resolve(node)
    logger.debug("Collected %d component schemas", len(table))
    return table
