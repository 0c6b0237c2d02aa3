"""Names for procedures, modules, classes and fields.

Procedure names follow the operationId when the document declares one.
Otherwise they are built from the path segments after the resource plus
a method suffix:

  GET    /categories                      -> categoriesList
  GET    /vehicles/count                  -> countList
  GET    /vehicles/{id}                   -> vehiclesDetail
  POST   /auth/login/verify               -> loginVerifyCreate
  PUT    /vehicles/bulk-edit              -> bulkEditUpdate
  PATCH  /users/{id}                      -> usersPartialUpdate
  DELETE /vehicles/treatments/{treatment_id} -> treatmentsDelete
"""

from __future__ import annotations

import keyword
import re

# {name} templates anywhere in a path, also inside a segment ("{name}.json")
PATH_PARAM = re.compile(r"\{([^}]+)\}")

# HTTP method to procedure-name suffix
_METHOD_SUFFIXES: dict[str, str] = {
    "post": "Create",
    "put": "Update",
    "patch": "PartialUpdate",
    "delete": "Delete",
}


def camel_to_snake(name: str) -> str:
    """Convert camelCase or PascalCase to snake_case."""
    s1 = re.sub(r"([A-Z]+)([A-Z][a-z])", r"\1_\2", name)
    return re.sub(r"([a-z\d])([A-Z])", r"\1_\2", s1).lower()


def _words(text: str) -> list[str]:
    """Split text on anything that is not a letter or digit."""
    return [w for w in re.split(r"[^A-Za-z0-9]+", text) if w]


def _camel_join(words: list[str]) -> str:
    if not words:
        return ""
    head = words[0][0].lower() + words[0][1:]
    return head + "".join(w[0].upper() + w[1:] for w in words[1:])


def to_camel(text: str) -> str:
    """Convert 'bulk-edit' or 'get_vehicle' into 'bulkEdit' / 'getVehicle'."""
    return _camel_join(_words(text))


def to_pascal(text: str) -> str:
    """Convert 'dto.Vehicle' or 'vehiclesDetail' into 'DtoVehicle' / 'VehiclesDetail'."""
    return "".join(w[0].upper() + w[1:] for w in _words(text))


def snake_identifier(text: str) -> str:
    """Sanitize arbitrary text into a snake_case identifier."""
    name = camel_to_snake(text)
    name = re.sub(r"[^a-z0-9_]", "_", name)
    name = re.sub(r"_+", "_", name).strip("_")
    return name or "_"


def python_identifier(name: str, reserved: frozenset[str] | set[str] = frozenset()) -> str:
    """Make name a usable identifier: no keyword, no leading digit, not reserved."""
    name = re.sub(r"\W", "_", name)
    if not name:
        name = "_"
    if name[0].isdigit():
        name = f"_{name}"
    while keyword.iskeyword(name) or name in reserved:
        name = f"{name}_"
    return name


def path_segments(path: str) -> list[str]:
    """Non-empty segments of a path template."""
    return [p for p in path.split("/") if p]


def is_path_param(segment: str) -> bool:
    return segment.startswith("{") and segment.endswith("}")


def path_params(path: str) -> list[str]:
    """Names of {param} templates in path order, each listed once."""
    return list(dict.fromkeys(PATH_PARAM.findall(path)))


def build_route_name(method: str, path: str) -> str:
    """Build a procedure name from HTTP method and path."""
    method_lower = method.lower()
    segments = path_segments(path)
    words = [w for s in segments[1:] for w in _words(PATH_PARAM.sub("", s))]
    if not words:
        words = _words(segments[0]) if segments else ["root"]

    if method_lower == "get":
        suffix = "Detail" if segments and is_path_param(segments[-1]) else "List"
    else:
        suffix = _METHOD_SUFFIXES.get(method_lower, method_lower.capitalize())

    return _camel_join(words) + suffix


def operation_name(operation_id: str) -> str:
    """Keep an operationId that is already an identifier; camelCase it otherwise."""
    if operation_id.isidentifier() and not keyword.iskeyword(operation_id):
        return operation_id
    return python_identifier(to_camel(operation_id))
