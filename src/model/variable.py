"""
Modelo de variables, colecciones y modos.
"""
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Tuple

from .values import Value, VariableType, parse_value, value_to_raw


@dataclass(frozen=True)
class Mode:
    """Modo de una colección (p.ej. light/dark, marca A/B)."""

    mode_id: str
    name: str

    def to_dict(self) -> Dict:
        return {"modeId": self.mode_id, "name": self.name}


@dataclass(frozen=True)
class Collection:
    """Colección de variables; dueña del vocabulario de modos."""

    id: str
    name: str
    modes: Tuple[Mode, ...] = ()

    def mode_ids(self) -> List[str]:
        return [mode.mode_id for mode in self.modes]

    def has_mode(self, mode_id: str) -> bool:
        return any(mode.mode_id == mode_id for mode in self.modes)

    def mode_name(self, mode_id: str) -> str:
        """Nombre legible del modo, o el propio id si no se conoce."""
        for mode in self.modes:
            if mode.mode_id == mode_id:
                return mode.name
        return mode_id

    @classmethod
    def from_dict(cls, data: Dict) -> "Collection":
        """
        Crea una colección desde el formato collectionsInfo del documento.

        Args:
            data: Diccionario con id, name y modes

        Returns:
            Collection
        """
        modes = tuple(
            Mode(mode_id=str(m.get("modeId")), name=str(m.get("name", m.get("modeId"))))
            for m in data.get("modes", [])
            if isinstance(m, dict) and m.get("modeId")
        )
        return cls(id=str(data["id"]), name=str(data.get("name", "")), modes=modes)

    def to_dict(self) -> Dict:
        return {
            "id": self.id,
            "name": self.name,
            "modes": [mode.to_dict() for mode in self.modes],
        }


@dataclass(frozen=True)
class Variable:
    """
    Variable de diseño tipada, con un valor por modo.

    La identidad es el id cuando existe; si no, colección + nombre. Los
    snapshots son inmutables: el motor nunca modifica una Variable.
    """

    id: str
    name: str
    type: VariableType
    collection_id: str
    collection_name: str
    values_by_mode: Dict[str, Value] = field(default_factory=dict)
    description: str = ""
    # Token de tipo tal como vino del documento (FLOAT vs NUMBER)
    type_token: Optional[str] = field(default=None, compare=False)

    def __hash__(self):
        return hash((self.identity, self.type))

    @property
    def identity(self) -> str:
        """Clave de identidad: id si se conoce, si no colección/nombre."""
        if self.id:
            return self.id
        return self.name_key

    @property
    def name_key(self) -> str:
        """Clave de respaldo para sistemas que no comparten ids."""
        return f"{self.collection_id or self.collection_name}/{self.name}"

    @property
    def qualified_name(self) -> str:
        """Nombre legible con su colección (Colección/nombre)."""
        if self.collection_name:
            return f"{self.collection_name}/{self.name}"
        return self.name

    def mode_ids(self) -> List[str]:
        return list(self.values_by_mode.keys())

    def value_for(self, mode_id: str) -> Optional[Value]:
        return self.values_by_mode.get(mode_id)

    def first_value(self) -> Optional[Value]:
        """Valor del primer modo (el que muestran los resúmenes)."""
        for value in self.values_by_mode.values():
            return value
        return None

    def with_value(self, mode_id: str, value: Value) -> "Variable":
        """
        Devuelve una copia con el valor de un modo reemplazado.

        Args:
            mode_id: Modo a modificar
            value: Nuevo valor

        Returns:
            Nueva Variable (la original no cambia)
        """
        values = dict(self.values_by_mode)
        values[mode_id] = value
        return Variable(
            id=self.id,
            name=self.name,
            type=self.type,
            collection_id=self.collection_id,
            collection_name=self.collection_name,
            values_by_mode=values,
            description=self.description,
            type_token=self.type_token,
        )

    @classmethod
    def from_dict(cls, data: Dict) -> "Variable":
        """
        Crea una variable desde un registro del baseline o del documento.

        Args:
            data: Registro con id, name, type, collectionId, collectionName
                y valuesByMode

        Returns:
            Variable

        Raises:
            ValueError: Si el registro no cumple las invariantes mínimas
        """
        if not isinstance(data, dict):
            raise ValueError("el registro no es un objeto")

        var_id = data.get("id") or ""
        name = data.get("name") or ""
        if not var_id and not name:
            raise ValueError("registro sin id ni nombre")

        type_token = data.get("type", data.get("resolvedType"))
        var_type = VariableType.from_token(type_token)
        if var_type is None:
            raise ValueError(f"tipo desconocido {type_token!r} en {name or var_id}")

        collection_id = data.get("collectionId") or data.get("variableCollectionId") or ""
        collection_name = data.get("collectionName") or ""
        if not collection_id and not collection_name:
            raise ValueError(f"{name or var_id} no pertenece a ninguna colección")

        raw_values = data.get("valuesByMode")
        if not isinstance(raw_values, dict) or not raw_values:
            raise ValueError(f"{name or var_id} no tiene valores por modo")

        return cls(
            id=str(var_id),
            name=str(name),
            type=var_type,
            collection_id=str(collection_id),
            collection_name=str(collection_name),
            values_by_mode={
                str(mode_id): parse_value(raw, var_type)
                for mode_id, raw in raw_values.items()
            },
            description=str(data.get("description") or ""),
            type_token=str(type_token).upper(),
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convierte al formato de registro del baseline."""
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "type": self.type_token or self.type.value,
            "collectionId": self.collection_id,
            "collectionName": self.collection_name,
            "valuesByMode": {
                mode_id: value_to_raw(value)
                for mode_id, value in self.values_by_mode.items()
            },
        }


def derive_collections(variables: Iterable[Variable]) -> List[Collection]:
    """
    Reconstruye colecciones a partir de las variables cuando no hay
    collectionsInfo disponible (p.ej. un baseline leído de GitHub).

    Los nombres de modo se desconocen, así que se usa el propio id.

    Args:
        variables: Variables a agrupar

    Returns:
        Colecciones ordenadas por aparición
    """
    modes_by_collection: Dict[str, Dict[str, None]] = {}
    names: Dict[str, str] = {}

    for variable in variables:
        key = variable.collection_id or variable.collection_name
        names.setdefault(key, variable.collection_name)
        modes = modes_by_collection.setdefault(key, {})
        for mode_id in variable.values_by_mode:
            modes.setdefault(mode_id, None)

    return [
        Collection(
            id=key,
            name=names[key],
            modes=tuple(Mode(mode_id=m, name=m) for m in modes),
        )
        for key, modes in modes_by_collection.items()
    ]
