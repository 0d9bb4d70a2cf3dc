"""Tests del modelo de variables, valores tipados y el archivo baseline."""
import json

import pytest

from conftest import RED, alias, make_record, make_variable
from src.model import (
    AliasValue,
    BooleanValue,
    ColorValue,
    NumberValue,
    StringValue,
    UnknownValue,
    VariableType,
    coerce_value,
    derive_collections,
    dump_baseline,
    load_baseline,
    parse_hex_color,
    parse_value,
    value_to_raw,
)
from src.model.variable import Variable


# ---------------------------------------------------------------------------
# Valores
# ---------------------------------------------------------------------------


class TestParseValue:

    def test_alias_payload_wins_over_declared_type(self):
        assert parse_value(alias("v1"), VariableType.COLOR) == AliasValue("v1")

    def test_color_defaults_alpha(self):
        assert parse_value({"r": 1, "g": 0.5, "b": 0}, VariableType.COLOR) == ColorValue(1.0, 0.5, 0.0, 1.0)

    def test_number_rejects_bool(self):
        assert isinstance(parse_value(True, VariableType.NUMBER), UnknownValue)

    def test_mismatched_payload_is_unknown(self):
        value = parse_value("16px", VariableType.NUMBER)
        assert isinstance(value, UnknownValue)
        assert value.raw == "16px"

    def test_raw_round_trip_for_scalars(self):
        assert value_to_raw(NumberValue(4)) == 4
        assert value_to_raw(StringValue("Inter")) == "Inter"
        assert value_to_raw(AliasValue("v9")) == alias("v9")


class TestTypeToken:

    def test_float_is_number(self):
        assert VariableType.from_token("FLOAT") is VariableType.NUMBER
        assert VariableType.from_token("float") is VariableType.NUMBER

    def test_unknown_token(self):
        assert VariableType.from_token("GRADIENT") is None
        assert VariableType.from_token(None) is None


class TestColors:

    @pytest.mark.parametrize("text,expected", [
        ("#ff0000", ColorValue(1.0, 0.0, 0.0, 1.0)),
        ("f00", ColorValue(1.0, 0.0, 0.0, 1.0)),
        ("#00000000", ColorValue(0.0, 0.0, 0.0, 0.0)),
        ("rgba(255, 0, 0, 0.5)", ColorValue(1.0, 0.0, 0.0, 0.5)),
        ("rgb(0,0,255)", ColorValue(0.0, 0.0, 1.0, 1.0)),
    ])
    def test_parse_hex_color(self, text, expected):
        assert parse_hex_color(text) == expected

    @pytest.mark.parametrize("text", ["#ggg", "red", "rgba(300,0,0,1)", "rgba(0,0,0,2)"])
    def test_invalid_colors(self, text):
        with pytest.raises(ValueError):
            parse_hex_color(text)


class TestCoerceValue:

    def test_number_from_text(self):
        assert coerce_value("24", VariableType.NUMBER) == NumberValue(24)
        assert coerce_value("1.5", VariableType.NUMBER) == NumberValue(1.5)

    def test_boolean_from_text(self):
        assert coerce_value("TRUE", VariableType.BOOLEAN) == BooleanValue(True)

    def test_alias_shorthand(self):
        assert coerce_value({"alias": "v1"}, VariableType.COLOR) == AliasValue("v1")

    def test_rejects_incompatible(self):
        with pytest.raises(ValueError):
            coerce_value("grande", VariableType.NUMBER)
        with pytest.raises(ValueError):
            coerce_value(1, VariableType.BOOLEAN)


# ---------------------------------------------------------------------------
# Variable
# ---------------------------------------------------------------------------


class TestVariable:

    def test_from_dict(self):
        variable = make_variable("v1", "primary", {"m1": RED})
        assert variable.type is VariableType.COLOR
        assert variable.identity == "v1"
        assert variable.qualified_name == "Brand/primary"
        assert variable.value_for("m1") == ColorValue(1.0, 0.0, 0.0, 1.0)

    def test_identity_falls_back_to_collection_and_name(self):
        variable = make_variable("", "primary", {"m1": RED})
        assert variable.identity == "c1/primary"

    @pytest.mark.parametrize("record", [
        "no es un objeto",
        make_record("", "", {"m1": RED}),
        make_record("v1", "x", {"m1": RED}, var_type="GRADIENT"),
        make_record("v1", "x", {"m1": RED}, collection_id="", collection_name=""),
        make_record("v1", "x", {}),
    ])
    def test_invalid_records(self, record):
        with pytest.raises(ValueError):
            Variable.from_dict(record)

    def test_with_value_does_not_mutate(self):
        variable = make_variable("v1", "primary", {"m1": RED})
        updated = variable.with_value("m1", AliasValue("v2"))
        assert variable.value_for("m1") == ColorValue(1.0, 0.0, 0.0, 1.0)
        assert updated.value_for("m1") == AliasValue("v2")

    def test_float_token_preserved(self):
        variable = make_variable("v3", "gap", {"s1": 8}, var_type="FLOAT")
        assert variable.type is VariableType.NUMBER
        assert variable.to_dict()["type"] == "FLOAT"

    def test_derive_collections(self, variables):
        derived = derive_collections(variables)
        assert [c.id for c in derived] == ["c1", "c2"]
        assert derived[0].mode_ids() == ["m1", "m2"]
        assert derived[0].mode_name("m1") == "m1"


# ---------------------------------------------------------------------------
# Baseline
# ---------------------------------------------------------------------------


class TestBaseline:

    def test_empty_text_is_empty_baseline(self):
        assert load_baseline("") == ([], [])
        assert load_baseline("   \n") == ([], [])

    def test_invalid_json_is_empty_with_warning(self):
        variables, warnings = load_baseline('[{"id": "v1",')
        assert variables == []
        assert len(warnings) == 1
        assert "JSON inválido" in warnings[0]

    def test_not_an_array_is_empty_with_warning(self):
        variables, warnings = load_baseline('{"foo": 1}')
        assert variables == []
        assert len(warnings) == 1


    def test_document_export_shape_accepted(self):
        text = json.dumps({"variables": [make_record("v1", "primary", {"m1": RED})]})
        variables, warnings = load_baseline(text)
        assert [v.id for v in variables] == ["v1"]
        assert warnings == []

    def test_malformed_records_dropped_with_warning(self):
        text = json.dumps([make_record("v1", "primary", {"m1": RED}), {"id": "x"}])
        variables, warnings = load_baseline(text)
        assert len(variables) == 1
        assert len(warnings) == 1
        assert "Registro 1" in warnings[0]

    def test_dump_is_deterministic_and_round_trips(self, variables):
        text = dump_baseline(reversed(variables))
        assert text == dump_baseline(variables)
        reloaded, warnings = load_baseline(text)
        assert warnings == []
        assert {v.id: v for v in reloaded} == {v.id: v for v in variables}
