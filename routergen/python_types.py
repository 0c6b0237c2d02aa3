"""Render schema IR as Python annotations for the generated package.

Objects with properties are hoisted into pydantic models; everything else
becomes an inline annotation:

  string    -> str, or Annotated[str, Field(...)] with constraints;
               patterns are kept on model fields only
  date-time -> datetime
  number    -> float / int
  boolean   -> bool
  enum      -> Literal[...]
  array     -> list[...]
  object    -> hoisted model, or dict[str, Any] without properties
  ref       -> the component's class or alias (Any when it does not exist)
  unknown   -> Any
  nullable  -> Optional[...]
"""

from __future__ import annotations

from typing import Any, Callable

from .naming import python_identifier, snake_identifier, to_pascal

# Names the annotations of a generated module refer to
MODULE_NAMES = frozenset({
    "Annotated", "Any", "Literal", "Optional", "BaseModel", "ConfigDict",
    "Field", "datetime", "str", "int", "float", "bool", "list", "dict",
})

# Field names that clash with pydantic's BaseModel API
_BASE_MODEL_ATTRS = frozenset({
    "copy", "dict", "json", "schema", "schema_json", "construct", "validate",
    "parse_obj", "parse_raw", "parse_file", "from_orm", "update_forward_refs",
    "fields",
})

_STRING_CONSTRAINTS = ("min_length", "max_length", "pattern")
_NUMBER_CONSTRAINTS = (
    ("minimum", "ge"), ("maximum", "le"),
    ("exclusive_minimum", "gt"), ("exclusive_maximum", "lt"),
)


def field_names(
    properties: dict[str, Any], reserved: frozenset[str] | set[str] = frozenset(),
) -> dict[str, str]:
    """Map property names to model field names, unique within the model.

    Names listed in reserved (module-level names the annotations use) get
    a trailing underscore and keep the property name as alias.
    """
    names: dict[str, str] = {}
    taken: set[str] = set(reserved)
    for prop in properties:
        if (
            prop.isidentifier()
            and not prop.startswith("_")
            and not prop.startswith("model_")
            and prop not in _BASE_MODEL_ATTRS
        ):
            name = python_identifier(prop, taken)
        else:
            name = snake_identifier(prop).lstrip("_") or "field"
            if name.startswith("model_") or name[0].isdigit():
                name = f"field_{name}"
            name = python_identifier(name, taken | _BASE_MODEL_ATTRS)
        taken.add(name)
        names[prop] = name
    return names


def escape_docstring(text: str) -> str:
    """Make text safe inside a triple-quoted docstring."""
    return text.replace("\\", "\\\\").replace('"', '\\"')


def _optional(annotation: str) -> str:
    if annotation == "Any" or annotation.startswith("Optional["):
        return annotation
    return f"Optional[{annotation}]"


def _field_call(constraints: list[str]) -> str:
    return f"Field({', '.join(constraints)})"


class TypeRenderer:
    """Render IR nodes for one generated module.

    ``ref_format`` maps a component name to the expression naming it in
    this module, or None when the component cannot be referenced (which
    renders as Any). Hoisted models are collected in ``models`` in
    dependency order: nested models come before the model using them.
    """

    def __init__(
        self,
        ref_format: Callable[[str], str | None],
        reserved: frozenset[str] | set[str] = frozenset(),
    ) -> None:
        self.ref_format = ref_format
        self.models: list[dict[str, Any]] = []
        self.taken: set[str] = set(MODULE_NAMES) | set(reserved)
        self.in_model = False

    def claim(self, name: str) -> str:
        """Reserve a unique class name in this module."""
        base = python_identifier(to_pascal(name) or "Model")
        candidate = base
        counter = 2
        while candidate in self.taken:
            candidate = f"{base}{counter}"
            counter += 1
        self.taken.add(candidate)
        return candidate

    def render(self, schema: dict[str, Any], hint: str) -> str:
        """Return the annotation for schema; hint names hoisted models."""
        annotation = self._render_kind(schema, hint)
        if schema.get("nullable"):
            annotation = _optional(annotation)
        return annotation

    def _render_kind(self, schema: dict[str, Any], hint: str) -> str:
        kind = schema["kind"]

        if kind == "string":
            if schema.get("format") == "date-time":
                return "datetime"
            # Patterns need the python-re engine, which only a model config selects
            keys = [k for k in _STRING_CONSTRAINTS if k in schema and (k != "pattern" or self.in_model)]
            constraints = [f"{k}={schema[k]!r}" for k in keys]
            if constraints:
                return f"Annotated[str, {_field_call(constraints)}]"
            return "str"

        if kind == "number":
            base = "int" if schema.get("integer") else "float"
            constraints = [f"{arg}={schema[k]!r}" for k, arg in _NUMBER_CONSTRAINTS if k in schema]
            if constraints:
                return f"Annotated[{base}, {_field_call(constraints)}]"
            return base

        if kind == "boolean":
            return "bool"

        if kind == "enum":
            return f"Literal[{', '.join(repr(v) for v in schema['values'])}]"

        if kind == "array":
            return f"list[{self.render(schema['items'], f'{hint}Item')}]"

        if kind == "object":
            if not schema["properties"]:
                return "dict[str, Any]"
            return self.hoist(schema, hint)

        if kind == "ref":
            return self.ref_format(schema["name"]) or "Any"

        return "Any"

    def hoist(self, schema: dict[str, Any], name: str, claimed: bool = False) -> str:
        """Emit schema as a model class and return its name.

        An object without properties still becomes an (empty) model here.
        """
        class_name = name if claimed else self.claim(name)
        properties = schema.get("properties", {})
        names = field_names(properties, self.taken)

        outer, self.in_model = self.in_model, True
        fields = []
        try:
            for prop, spec in properties.items():
                field_name = names[prop]
                annotation = self.render(spec["schema"], f"{class_name}{to_pascal(prop)}")
                alias = prop if field_name != prop else None
                if spec["required"]:
                    default = f"Field(alias={alias!r})" if alias else None
                else:
                    annotation = _optional(annotation)
                    default = f"Field(default=None, alias={alias!r})" if alias else "None"
                line = f"{field_name}: {annotation}"
                if default:
                    line += f" = {default}"
                fields.append({
                    "name": field_name,
                    "property": prop,
                    "annotation": annotation,
                    "default": default,
                    "required": spec["required"],
                    "line": line,
                })
        finally:
            self.in_model = outer

        self.models.append({
            "name": class_name,
            "fields": fields,
            "field_map": names,
            "has_aliases": any(f["name"] != f["property"] for f in fields),
        })
        return class_name
