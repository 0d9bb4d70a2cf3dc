"""
Tipos del change-set: ediciones propuestas y operaciones validadas.
"""
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from ..model.values import Value, VariableType, value_to_raw

UPDATE = "update"
CREATE = "create"


@dataclass(frozen=True)
class ProposedEdit:
    """
    Edición propuesta sin validar (operador, diff aceptado o IA).

    El valor se mantiene en bruto hasta que el builder lo convierte al tipo.
    """

    kind: str
    mode_id: str
    value: Any
    type: Optional[str] = None
    variable_id: Optional[str] = None
    variable_name: Optional[str] = None
    collection_id: Optional[str] = None
    remap_from_variable_id: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict) -> "ProposedEdit":
        """
        Crea una edición desde JSON (acepta claves camelCase).

        El tipo de edición se toma de "kind"/"action"; si falta, una edición
        con variableId es un update y una con collectionId es un create.

        Args:
            data: Registro de la propuesta

        Returns:
            ProposedEdit

        Raises:
            ValueError: Si el registro no es un objeto o le falta el modo
        """
        if not isinstance(data, dict):
            raise ValueError("la edición no es un objeto")

        kind = str(data.get("kind") or data.get("action") or "").lower()
        if kind not in (UPDATE, CREATE):
            kind = UPDATE if data.get("variableId") else CREATE if data.get("collectionId") else UPDATE

        mode_id = data.get("modeId", data.get("mode_id"))
        if not mode_id:
            raise ValueError("la edición no indica modeId")

        return cls(
            kind=kind,
            mode_id=str(mode_id),
            value=data.get("value"),
            type=data.get("type"),
            variable_id=data.get("variableId", data.get("variable_id")),
            variable_name=data.get("variableName", data.get("variable_name")),
            collection_id=data.get("collectionId", data.get("collection_id")),
            remap_from_variable_id=data.get("remapFromVariableId"),
        )

    def to_dict(self) -> Dict:
        """Registro camelCase (el mismo formato que acepta from_dict)."""
        data = {
            "kind": self.kind,
            "modeId": self.mode_id,
            "value": self.value,
            "type": self.type,
            "variableId": self.variable_id,
            "variableName": self.variable_name,
            "collectionId": self.collection_id,
            "remapFromVariableId": self.remap_from_variable_id,
        }
        return {key: value for key, value in data.items() if value is not None}

    @property
    def label(self) -> str:
        """Nombre para mensajes de advertencia."""
        return self.variable_name or self.variable_id or "(sin nombre)"


@dataclass(frozen=True)
class VariableUpdate:
    variable_id: str
    mode_id: str
    type: VariableType
    value: Value
    variable_name: Optional[str] = None

    def to_payload(self) -> Dict:
        return {
            "variableId": self.variable_id,
            "variableName": self.variable_name,
            "modeId": self.mode_id,
            "type": self.type.value,
            "value": value_to_raw(self.value),
        }


@dataclass(frozen=True)
class VariableCreate:
    variable_name: str
    collection_id: str
    mode_id: str
    type: VariableType
    value: Value
    remap_from_variable_id: Optional[str] = None

    def to_payload(self) -> Dict:
        payload = {
            "variableName": self.variable_name,
            "collectionId": self.collection_id,
            "modeId": self.mode_id,
            "type": self.type.value,
            "value": value_to_raw(self.value),
        }
        if self.remap_from_variable_id:
            payload["remapFromVariableId"] = self.remap_from_variable_id
        return payload


@dataclass(frozen=True)
class ChangeSet:
    """
    Lote validado listo para aplicar.

    Se construye una vez y se consume una vez; si el operador edita la
    propuesta se construye un ChangeSet nuevo en lugar de mutar este.
    """

    updates: Tuple[VariableUpdate, ...] = ()
    creates: Tuple[VariableCreate, ...] = ()

    @property
    def is_empty(self) -> bool:
        return not (self.updates or self.creates)

    def __len__(self) -> int:
        return len(self.updates) + len(self.creates)

    def to_payload(self) -> Dict[str, List[Dict]]:
        return {
            "updates": [u.to_payload() for u in self.updates],
            "creates": [c.to_payload() for c in self.creates],
        }


@dataclass(frozen=True)
class BuildResult:
    """Resultado del builder: change-set validado y advertencias."""

    change_set: ChangeSet
    warnings: List[str] = field(default_factory=list)


def parse_proposal(data: Any) -> Tuple[List[ProposedEdit], List[str]]:
    """
    Convierte una propuesta JSON en ediciones sin validar.

    Acepta {"updates": [...], "creates": [...]} (el formato que producen la
    IA y el documento) o una lista plana de ediciones con "kind". Las
    entradas malformadas se descartan con advertencia.

    Args:
        data: Propuesta ya decodificada

    Returns:
        Tupla (ediciones, advertencias)

    Raises:
        ValueError: Si la propuesta no es un objeto ni una lista
    """
    if isinstance(data, dict):
        tagged = [(UPDATE, item) for item in data.get("updates") or []]
        tagged += [(CREATE, item) for item in data.get("creates") or []]
    elif isinstance(data, list):
        tagged = [(None, item) for item in data]
    else:
        raise ValueError("la propuesta no es un objeto ni una lista")

    edits: List[ProposedEdit] = []
    warnings: List[str] = []
    for position, (kind, item) in enumerate(tagged):
        if kind and isinstance(item, dict) and not item.get("kind"):
            item = dict(item, kind=kind)
        try:
            edits.append(ProposedEdit.from_dict(item))
        except ValueError as e:
            warnings.append(f"Edición {position} descartada: {e}")

    return edits, warnings
