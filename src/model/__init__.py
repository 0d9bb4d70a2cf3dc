"""
Modelo tipado de variables de diseño.
"""
from .values import (
    AliasValue,
    BooleanValue,
    ColorValue,
    NumberValue,
    StringValue,
    UnknownValue,
    Value,
    VariableType,
    coerce_value,
    parse_hex_color,
    parse_value,
    value_to_raw,
)
from .variable import Collection, Mode, Variable, derive_collections
from .baseline import (
    dump_baseline,
    load_baseline,
    load_baseline_file,
    load_collections,
    parse_variables,
)

__all__ = [
    "AliasValue",
    "BooleanValue",
    "ColorValue",
    "NumberValue",
    "StringValue",
    "UnknownValue",
    "Value",
    "VariableType",
    "coerce_value",
    "parse_hex_color",
    "parse_value",
    "value_to_raw",
    "Collection",
    "Mode",
    "Variable",
    "derive_collections",
    "dump_baseline",
    "load_baseline",
    "load_baseline_file",
    "load_collections",
    "parse_variables",
]
