"""
Comparador estructural de valores de variables.
"""
from typing import Any, Optional

from ..model.values import (
    AliasValue,
    BooleanValue,
    ColorValue,
    NumberValue,
    StringValue,
    UnknownValue,
)

# Tolerancia por canal para colores: comparación exacta
COLOR_TOLERANCE = 0.0

COLOR_CHANNELS = ("r", "g", "b", "a")


def _colors_equal(a: ColorValue, b: ColorValue) -> bool:
    return all(
        abs(getattr(a, channel) - getattr(b, channel)) <= COLOR_TOLERANCE
        for channel in COLOR_CHANNELS
    )


def values_equal(a: Optional[Any], b: Optional[Any]) -> bool:
    """
    Igualdad estructural entre dos valores tipados.

    Un alias nunca es igual a un escalar aunque resuelva al mismo valor:
    re-enlazar un alias es un cambio en sí mismo. La función es total:
    formas no reconocidas comparan como distintas en lugar de lanzar.

    Args:
        a: Primer valor (o None si el modo no existe)
        b: Segundo valor (o None si el modo no existe)

    Returns:
        True si ambos valores son iguales
    """
    try:
        if a is None or b is None:
            return a is None and b is None

        if type(a) is not type(b):
            return False

        if isinstance(a, AliasValue):
            return a.target_id == b.target_id
        if isinstance(a, ColorValue):
            return _colors_equal(a, b)
        if isinstance(a, NumberValue):
            return a.value == b.value
        if isinstance(a, (StringValue, BooleanValue)):
            return a.value == b.value
        if isinstance(a, UnknownValue):
            # Payloads opacos idénticos (mismo JSON) no son un cambio
            return type(a.raw) is type(b.raw) and a.raw == b.raw
    except Exception:
        return False

    return False
