"""Tests for the schema_parser module."""

import logging

from routergen.schema_parser import (
    array_schema,
    build_schema_table,
    deref,
    number_schema,
    object_schema,
    ref_name,
    ref_schema,
    resolve,
    string_schema,
    unknown_schema,
)


# Minimal table for $ref resolution
_TABLE: dict = {
    "Vehicle": object_schema({"id": (number_schema(integer=True), True)}),
    "VehicleStatus": resolve({"type": "string", "enum": ["active", "inactive"]}),
}


class TestResolvePrimitives:
    """Test OpenAPI schema node -> IR conversion."""

    def test_string(self):
        assert resolve({"type": "string"}) == string_schema()

    def test_integer(self):
        assert resolve({"type": "integer"}) == number_schema(integer=True)

    def test_number(self):
        assert resolve({"type": "number"}) == number_schema()

    def test_boolean(self):
        assert resolve({"type": "boolean"})["kind"] == "boolean"

    def test_missing_type(self):
        assert resolve({"description": "anything"}) == unknown_schema()

    def test_not_a_mapping(self):
        assert resolve("string") == unknown_schema()
        assert resolve(None) == unknown_schema()

    def test_date_time(self):
        assert resolve({"type": "string", "format": "date-time"})["format"] == "date-time"

    def test_other_formats_ignored(self):
        assert resolve({"type": "string", "format": "uuid"}) == string_schema()


class TestConstraints:
    def test_string_lengths_and_pattern(self):
        schema = resolve({"type": "string", "minLength": 1, "maxLength": 16, "pattern": "^[A-Z]+$"})
        assert schema["min_length"] == 1
        assert schema["max_length"] == 16
        assert schema["pattern"] == "^[A-Z]+$"

    def test_lookahead_pattern_kept(self):
        assert resolve({"type": "string", "pattern": "^(?=.*[0-9]).{8,}$"})["pattern"] == "^(?=.*[0-9]).{8,}$"

    def test_invalid_pattern_dropped(self):
        assert "pattern" not in resolve({"type": "string", "pattern": "\\p{L}+"})

    def test_negative_length_dropped(self):
        assert "min_length" not in resolve({"type": "string", "minLength": -1})

    def test_number_range(self):
        schema = resolve({"type": "integer", "minimum": 0, "maximum": 100})
        assert schema["minimum"] == 0
        assert schema["maximum"] == 100

    def test_exclusive_boolean_form(self):
        """OAS 3.0: exclusiveMinimum: true turns minimum exclusive."""
        schema = resolve({"type": "number", "minimum": 0, "exclusiveMinimum": True})
        assert schema["exclusive_minimum"] == 0
        assert "minimum" not in schema

    def test_exclusive_numeric_form(self):
        """OAS 3.1: exclusiveMaximum carries the bound itself."""
        schema = resolve({"type": "number", "exclusiveMaximum": 10})
        assert schema["exclusive_maximum"] == 10

    def test_boolean_minimum_ignored(self):
        assert "minimum" not in resolve({"type": "number", "minimum": True})


class TestNullable:
    def test_oas30_nullable(self):
        assert resolve({"type": "string", "nullable": True})["nullable"] is True

    def test_oas31_type_list(self):
        schema = resolve({"type": ["integer", "null"]})
        assert schema["kind"] == "number"
        assert schema["integer"] is True
        assert schema["nullable"] is True

    def test_swagger_extension(self):
        assert resolve({"type": "boolean", "x-nullable": True})["nullable"] is True

    def test_default_not_nullable(self):
        assert resolve({"type": "string"})["nullable"] is False


class TestEnum:
    def test_values_in_order(self):
        schema = resolve({"type": "string", "enum": ["b", "a", "c"]})
        assert schema["kind"] == "enum"
        assert schema["values"] == ["b", "a", "c"]

    def test_null_member(self):
        schema = resolve({"enum": [1, 2, None]})
        assert schema["values"] == [1, 2]
        assert schema["nullable"] is True

    def test_enum_wins_over_type(self):
        assert resolve({"type": "integer", "enum": [1, 2]})["kind"] == "enum"

    def test_malformed(self):
        assert resolve({"enum": "active"}) == unknown_schema()


class TestComposite:
    def test_array(self):
        assert resolve({"type": "array", "items": {"type": "string"}}) == array_schema(string_schema())

    def test_array_without_items(self):
        assert resolve({"type": "array"}) == array_schema(unknown_schema())

    def test_object_required(self):
        schema = resolve({
            "type": "object",
            "required": ["plate"],
            "properties": {"plate": {"type": "string"}, "mileage": {"type": "number"}},
        })
        assert schema["properties"]["plate"] == {"schema": string_schema(), "required": True}
        assert schema["properties"]["mileage"]["required"] is False

    def test_properties_imply_object(self):
        schema = resolve({"properties": {"name": {"type": "string"}}})
        assert schema["kind"] == "object"

    def test_property_order_kept(self):
        schema = resolve({"type": "object", "properties": {"z": {}, "a": {}, "m": {}}})
        assert list(schema["properties"]) == ["z", "a", "m"]

    def test_free_form_object(self):
        assert resolve({"type": "object"}) == object_schema()


class TestReferences:
    def test_ref_name(self):
        assert ref_name("#/components/schemas/Vehicle") == "Vehicle"
        assert ref_name("#/definitions/dto.Vehicle") == "dto.Vehicle"

    def test_ref_kept(self):
        assert resolve({"$ref": "#/components/schemas/Vehicle"}, _TABLE) == ref_schema("Vehicle")

    def test_ref_wins_over_siblings(self):
        node = {"$ref": "#/components/schemas/Vehicle", "type": "string"}
        assert resolve(node, _TABLE) == ref_schema("Vehicle")

    def test_dangling_ref_is_unknown(self, caplog):
        with caplog.at_level(logging.DEBUG, logger="routergen.schema_parser"):
            schema = resolve({"$ref": "#/components/schemas/Missing"}, _TABLE)
        assert schema == unknown_schema()
        assert "Missing" in caplog.text

    def test_ref_without_table_kept(self):
        assert resolve({"$ref": "#/components/schemas/Missing"}) == ref_schema("Missing")

    def test_nested_dangling_ref(self):
        schema = resolve({"type": "array", "items": {"$ref": "#/x/Missing"}}, _TABLE)
        assert schema == array_schema(unknown_schema())

    def test_idempotent(self):
        node = {
            "type": "object",
            "properties": {"status": {"$ref": "#/components/schemas/VehicleStatus"}},
        }
        assert resolve(node, _TABLE) == resolve(node, _TABLE)


class TestDeref:
    def test_follows_chain(self):
        table = {"A": ref_schema("B"), "B": string_schema()}
        assert deref(ref_schema("A"), table) == string_schema()

    def test_cycle(self):
        table = {"A": ref_schema("B"), "B": ref_schema("A")}
        assert deref(ref_schema("A"), table)["kind"] == "unknown"

    def test_non_ref_returned(self):
        assert deref(string_schema(), {}) == string_schema()


class TestBuildSchemaTable:
    def test_sample_components(self, sample_spec):
        table = build_schema_table(sample_spec)
        assert "Vehicle" in table
        assert table["VehicleStatus"]["kind"] == "enum"
        assert table["VehicleList"] == array_schema(ref_schema("Vehicle"))

    def test_swagger2_definitions(self):
        table = build_schema_table({"definitions": {"dto.Item": {"type": "string"}}})
        assert table == {"dto.Item": string_schema()}

    def test_no_components(self):
        assert build_schema_table({"openapi": "3.0.0"}) == {}
