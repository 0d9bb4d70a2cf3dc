"""
Valores tipados de variables: unión etiquetada Scalar | Alias.

Los payloads llegan del documento como JSON sin tipo; aquí se convierten a
dataclasses inmutables para que el comparador y el builder puedan hacer
pattern matching exhaustivo en lugar de duck typing.
"""
import math
import re
from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional, Union

ALIAS_TYPE = "VARIABLE_ALIAS"

HEX_COLOR_RE = re.compile(r"^#?([0-9a-fA-F]{3}|[0-9a-fA-F]{6}|[0-9a-fA-F]{8})$")
RGBA_COLOR_RE = re.compile(
    r"^rgba?\(\s*(\d{1,3})\s*,\s*(\d{1,3})\s*,\s*(\d{1,3})\s*(?:,\s*([0-9.]+)\s*)?\)$", re.IGNORECASE
)


class VariableType(str, Enum):
    """Tipos resueltos de variable."""

    COLOR = "COLOR"
    NUMBER = "NUMBER"
    STRING = "STRING"
    BOOLEAN = "BOOLEAN"

    @classmethod
    def from_token(cls, token: Any) -> Optional["VariableType"]:
        """
        Interpreta el token de tipo del documento.

        El documento usa FLOAT para los numéricos; se acepta como NUMBER.

        Args:
            token: Texto del tipo (p.ej. "COLOR", "FLOAT")

        Returns:
            VariableType o None si no se reconoce
        """
        if not isinstance(token, str):
            return None
        token = token.strip().upper()
        if token == "FLOAT":
            return cls.NUMBER
        try:
            return cls(token)
        except ValueError:
            return None


@dataclass(frozen=True)
class ColorValue:
    """Color RGBA con canales en el rango 0..1."""

    r: float
    g: float
    b: float
    a: float = 1.0


@dataclass(frozen=True)
class NumberValue:
    value: float


@dataclass(frozen=True)
class StringValue:
    value: str


@dataclass(frozen=True)
class BooleanValue:
    value: bool


@dataclass(frozen=True)
class AliasValue:
    """Referencia a otra variable por id."""

    target_id: str


@dataclass(frozen=True, eq=False)
class UnknownValue:
    """Payload con forma no reconocida (esquema externo parcialmente conocido)."""

    raw: Any


ScalarValue = Union[ColorValue, NumberValue, StringValue, BooleanValue]
Value = Union[ScalarValue, AliasValue, UnknownValue]


def _is_number(raw: Any) -> bool:
    return isinstance(raw, (int, float)) and not isinstance(raw, bool)


def _is_alias_payload(raw: Any) -> bool:
    return (
        isinstance(raw, dict)
        and raw.get("type") == ALIAS_TYPE
        and isinstance(raw.get("id"), str)
    )


def parse_value(raw: Any, var_type: Optional[VariableType]) -> Value:
    """
    Convierte un payload JSON del documento en un valor tipado.

    Nunca lanza: lo que no encaja con el tipo declarado queda como
    UnknownValue, que compara como distinto de cualquier otro valor.

    Args:
        raw: Payload tal como aparece en valuesByMode
        var_type: Tipo declarado de la variable

    Returns:
        Valor tipado
    """
    if _is_alias_payload(raw):
        return AliasValue(raw["id"])

    if var_type == VariableType.COLOR and isinstance(raw, dict):
        channels = [raw.get(key) for key in ("r", "g", "b")]
        alpha = raw.get("a", 1.0)
        if all(_is_number(c) for c in channels) and _is_number(alpha):
            return ColorValue(*(float(c) for c in channels), a=float(alpha))
    elif var_type == VariableType.NUMBER and _is_number(raw):
        if math.isfinite(raw):
            return NumberValue(raw)
    elif var_type == VariableType.STRING and isinstance(raw, str):
        return StringValue(raw)
    elif var_type == VariableType.BOOLEAN and isinstance(raw, bool):
        return BooleanValue(raw)

    return UnknownValue(raw)


def value_to_raw(value: Value) -> Any:
    """
    Convierte un valor tipado al payload JSON del documento.

    Args:
        value: Valor tipado

    Returns:
        Payload JSON-serializable
    """
    if isinstance(value, AliasValue):
        return {"type": ALIAS_TYPE, "id": value.target_id}
    if isinstance(value, ColorValue):
        return {"r": value.r, "g": value.g, "b": value.b, "a": value.a}
    if isinstance(value, (NumberValue, StringValue, BooleanValue)):
        return value.value
    return value.raw


def parse_hex_color(text: str) -> ColorValue:
    """
    Convierte #RGB, #RRGGBB, #RRGGBBAA o rgba(r, g, b, a) a ColorValue.

    Args:
        text: Color hexadecimal (el # es opcional) o rgb/rgba en 0..255

    Returns:
        ColorValue

    Raises:
        ValueError: Si el texto no es un color hexadecimal válido
    """
    rgba = RGBA_COLOR_RE.match(text.strip())
    if rgba:
        channels = [int(c) for c in rgba.group(1, 2, 3)]
        if any(c > 255 for c in channels):
            raise ValueError(f"Color rgba fuera de rango: {text!r}")
        alpha = float(rgba.group(4)) if rgba.group(4) is not None else 1.0
        if alpha > 1:
            raise ValueError(f"Alpha fuera de rango: {text!r}")
        return ColorValue(*(c / 255 for c in channels), a=alpha)

    match = HEX_COLOR_RE.match(text.strip())
    if not match:
        raise ValueError(f"Color hexadecimal inválido: {text!r}")

    digits = match.group(1)
    if len(digits) == 3:
        digits = "".join(ch * 2 for ch in digits)

    channels = [int(digits[i:i + 2], 16) / 255 for i in range(0, len(digits), 2)]
    if len(channels) == 3:
        channels.append(1.0)
    return ColorValue(*channels)


def coerce_value(raw: Any, var_type: VariableType) -> Value:
    """
    Convierte valores propuestos por un operador o por la IA a un valor tipado.

    Acepta formas más laxas que parse_value: colores hex, números como texto,
    "true"/"false" y alias como {"alias": id}.

    Args:
        raw: Valor propuesto
        var_type: Tipo de destino

    Returns:
        Valor tipado

    Raises:
        ValueError: Si el valor no se puede convertir al tipo
    """
    if _is_alias_payload(raw):
        return AliasValue(raw["id"])
    if isinstance(raw, dict) and isinstance(raw.get("alias"), str):
        return AliasValue(raw["alias"])

    if var_type == VariableType.COLOR:
        if isinstance(raw, str):
            return parse_hex_color(raw)
        parsed = parse_value(raw, var_type)
        if isinstance(parsed, ColorValue):
            return parsed
    elif var_type == VariableType.NUMBER:
        if _is_number(raw) and math.isfinite(raw):
            return NumberValue(raw)
        if isinstance(raw, str):
            try:
                number = float(raw.strip())
            except ValueError:
                pass
            else:
                if math.isfinite(number):
                    return NumberValue(int(number) if number.is_integer() else number)
    elif var_type == VariableType.STRING:
        if isinstance(raw, (str, int, float)) and not isinstance(raw, bool):
            return StringValue(str(raw))
    elif var_type == VariableType.BOOLEAN:
        if isinstance(raw, bool):
            return BooleanValue(raw)
        if isinstance(raw, str) and raw.strip().lower() in ("true", "false"):
            return BooleanValue(raw.strip().lower() == "true")

    raise ValueError(f"Valor {raw!r} no compatible con el tipo {var_type.value}")
