"""
Formato legible de valores de variables para diseñadores.
"""
from typing import Dict, Iterable, Optional

from ..model.values import (
    AliasValue,
    BooleanValue,
    ColorValue,
    NumberValue,
    StringValue,
    UnknownValue,
    Value,
)
from ..model.variable import Variable

MISSING = "—"


def color_to_hex(color: ColorValue) -> str:
    """#rrggbb, con la opacidad en porcentaje si alpha < 1."""
    hex_value = "#" + "".join(
        f"{round(channel * 255):02x}" for channel in (color.r, color.g, color.b)
    )
    if color.a < 1:
        return f"{hex_value} {round(color.a * 100)}%"
    return hex_value


def _format_number(number) -> str:
    if isinstance(number, float) and number.is_integer():
        return str(int(number))
    return str(number)


def format_value(value: Optional[Value], names: Dict[str, str] = None) -> str:
    """
    Formatea un valor para resúmenes y reportes.

    Los alias se muestran a un solo salto: {Colección/nombre} si el destino
    es conocido, {alias: <id>} si no. No se sigue la cadena completa.

    Args:
        value: Valor tipado (None si el modo no existe)
        names: Mapa id de variable -> nombre cualificado

    Returns:
        Texto legible
    """
    if value is None:
        return MISSING
    if isinstance(value, AliasValue):
        name = (names or {}).get(value.target_id)
        return f"{{{name}}}" if name else f"{{alias: {value.target_id}}}"
    if isinstance(value, ColorValue):
        return color_to_hex(value)
    if isinstance(value, BooleanValue):
        return "true" if value.value else "false"
    if isinstance(value, NumberValue):
        return _format_number(value.value)
    if isinstance(value, StringValue):
        return value.value
    if isinstance(value, UnknownValue):
        return str(value.raw)
    return str(value)


def build_variable_name_map(*snapshots: Iterable[Variable]) -> Dict[str, str]:
    """
    Mapa id -> Colección/nombre a partir de uno o más snapshots.

    Args:
        snapshots: Colecciones de variables (p.ej. old y new)

    Returns:
        Diccionario de nombres; los últimos snapshots tienen prioridad
    """
    names = {}
    for snapshot in snapshots:
        for variable in snapshot:
            if variable.id:
                names[variable.id] = variable.qualified_name
    return names
