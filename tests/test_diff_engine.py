"""Tests del comparador de valores y del motor de diff."""
import json

from conftest import BLUE, RED, alias, make_variable
from src.diff import DiffEngine, diff_variables, has_drift, values_equal
from src.model.values import (
    AliasValue,
    BooleanValue,
    ColorValue,
    NumberValue,
    StringValue,
    UnknownValue,
)


def identities(variables):
    return sorted(v.identity for v in variables)


# ---------------------------------------------------------------------------
# Comparador
# ---------------------------------------------------------------------------


class TestValuesEqual:

    def test_same_scalars(self):
        assert values_equal(NumberValue(4), NumberValue(4.0))
        assert values_equal(StringValue("a"), StringValue("a"))
        assert values_equal(ColorValue(1, 0, 0), ColorValue(1.0, 0.0, 0.0, 1.0))

    def test_color_channels_compared_exactly(self):
        assert not values_equal(ColorValue(1, 0, 0), ColorValue(0.9995, 0, 0))

    def test_alias_never_equals_scalar(self):
        assert not values_equal(AliasValue("v2"), ColorValue(1, 0, 0))
        assert values_equal(AliasValue("v2"), AliasValue("v2"))
        assert not values_equal(AliasValue("v2"), AliasValue("v3"))

    def test_different_kinds(self):
        assert not values_equal(NumberValue(1), BooleanValue(True))

    def test_missing_modes(self):
        assert values_equal(None, None)
        assert not values_equal(None, NumberValue(1))

    def test_unknown_payloads(self):
        assert values_equal(UnknownValue({"x": 1}), UnknownValue({"x": 1}))
        assert not values_equal(UnknownValue({"x": 1}), UnknownValue({"x": 2}))
        assert not values_equal(UnknownValue(1), UnknownValue(True))

    def test_unrecognised_objects_are_unequal(self):
        assert not values_equal(object(), object())


# ---------------------------------------------------------------------------
# Diff
# ---------------------------------------------------------------------------


class TestDiff:

    def test_same_snapshot_is_empty(self, variables):
        result = diff_variables(variables, variables)
        assert result.is_empty
        assert result.counts() == {"added": 0, "removed": 0, "changed": 0}

    def test_same_snapshot_with_unknown_payloads_is_empty(self):
        snapshot = [make_variable("v1", "gradient", {"m1": "#000000"})]
        assert diff_variables(snapshot, snapshot).is_empty

    def test_added_and_removed(self, variables):
        extra = make_variable("v9", "accent", {"m1": RED, "m2": RED})
        result = diff_variables(variables[:2], variables[1:] + [extra])
        assert identities(result.added) == ["v3", "v9"]
        assert identities(result.removed) == ["v1"]
        assert result.changed == ()

    def test_swapping_sides_is_symmetric(self, variables):
        old = variables[:2]
        new = [
            variables[0].with_value("m1", ColorValue(0, 1, 0)),
            variables[2],
        ]
        forward = diff_variables(old, new)
        backward = diff_variables(new, old)

        assert identities(forward.added) == identities(backward.removed)
        assert identities(forward.removed) == identities(backward.added)
        assert [c.swapped() for c in forward.changed] == list(backward.changed)

    def test_added_mode_only_is_changed(self):
        old = [make_variable("v1", "bg", {"light": "#000000"})]
        new = [make_variable("v1", "bg", {"light": "#000000", "dark": "#FFFFFF"})]
        result = diff_variables(old, new)
        assert result.added == ()
        assert result.removed == ()
        assert len(result.changed) == 1
        assert result.changed[0].old is old[0]
        assert result.changed[0].new is new[0]
        assert result.changed[0].changed_modes() == ["dark"]

    def test_alias_to_scalar_with_same_color_is_changed(self):
        target = make_variable("v2", "blue", {"m1": {"r": 0x11 / 255, "g": 0x22 / 255, "b": 0x33 / 255}})
        old = [make_variable("v1", "bg", {"m1": alias("v2")}), target]
        new = [make_variable("v1", "bg", {"m1": dict(target.to_dict()["valuesByMode"]["m1"])}), target]
        result = diff_variables(old, new)
        assert [c.identity for c in result.changed] == ["v1"]

    def test_rename_with_same_id_is_changed(self):
        old = [make_variable("v1", "primary", {"m1": RED})]
        new = [make_variable("v1", "brand/primary", {"m1": RED})]
        result = diff_variables(old, new)
        assert result.added == () and result.removed == ()
        assert result.changed[0].renamed

    def test_type_and_collection_changes(self):
        old = [make_variable("v1", "size", {"m1": 4}, var_type="FLOAT")]
        retyped = [make_variable("v1", "size", {"m1": "4"}, var_type="STRING")]
        moved = [make_variable("v1", "size", {"m1": 4}, var_type="FLOAT", collection_id="c9")]
        assert diff_variables(old, retyped).changed[0].type_changed
        assert diff_variables(old, moved).changed[0].collection_changed

    def test_description_change_is_changed(self):
        old = [make_variable("v1", "primary", {"m1": RED})]
        new = [make_variable("v1", "primary", {"m1": RED}, description="Color principal")]
        assert len(diff_variables(old, new).changed) == 1

    def test_matches_by_collection_and_name_without_ids(self):
        old = [make_variable("", "primary", {"m1": RED})]
        new = [make_variable("", "primary", {"m1": BLUE})]
        result = diff_variables(old, new)
        assert len(result.changed) == 1
        assert result.added == () and result.removed == ()

    def test_name_fallback_ignores_record_claimed_by_another_id(self):
        old = [make_variable("v1", "primary", {"m1": RED})]
        new = [
            make_variable("v1", "renamed", {"m1": RED}),
            make_variable("v2", "primary", {"m1": RED}),
        ]
        result = diff_variables(old, new)
        assert identities(result.added) == ["v2"]
        assert [c.identity for c in result.changed] == ["v1"]

    def test_recreated_variable_with_new_id_is_removed_and_added(self):
        old = [make_variable("v1", "primary", {"m1": RED})]
        same_value = [make_variable("v2", "primary", {"m1": RED})]
        new_value = [make_variable("v2", "primary", {"m1": BLUE})]

        for new in (same_value, new_value):
            result = diff_variables(old, new)
            assert identities(result.added) == ["v2"]
            assert identities(result.removed) == ["v1"]
            assert result.changed == ()

        assert has_drift(old, same_value)

    def test_name_fallback_when_one_side_lacks_id(self):
        old = [make_variable("", "primary", {"m1": RED})]
        new = [make_variable("v1", "primary", {"m1": BLUE})]
        result = diff_variables(old, new)
        assert len(result.changed) == 1
        assert result.added == () and result.removed == ()

    def test_duplicate_identity_last_wins(self):
        old = [make_variable("v1", "primary", {"m1": RED})]
        new = [
            make_variable("v1", "primary", {"m1": BLUE}),
            make_variable("v1", "primary", {"m1": RED}),
        ]
        assert diff_variables(old, new).is_empty

    def test_deterministic_output(self, variables):
        new = [variables[0].with_value("m2", ColorValue(0, 1, 0)), variables[2]]
        first = json.dumps(DiffEngine().diff(variables, new).to_dict(), sort_keys=True)
        second = json.dumps(DiffEngine().diff(variables, new).to_dict(), sort_keys=True)
        assert first == second

    def test_inputs_not_mutated(self, variables):
        before = [v.to_dict() for v in variables]
        diff_variables(variables, list(reversed(variables)))
        assert [v.to_dict() for v in variables] == before


class TestDrift:

    def test_no_drift(self, variables):
        assert not has_drift(variables, list(variables))

    def test_drift(self, variables):
        assert has_drift(variables, variables[:1])
