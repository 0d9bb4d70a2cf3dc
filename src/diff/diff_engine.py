"""
Motor de diff entre dos snapshots de variables.
"""
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Tuple

from ..model.variable import Variable
from ..utils.logger import setup_logger
from .comparator import values_equal

logger = setup_logger(__name__)


@dataclass(frozen=True)
class VariableChange:
    """Par old/new de una variable que cambió (registros completos)."""

    old: Variable
    new: Variable

    @property
    def identity(self) -> str:
        return self.new.identity

    @property
    def type_changed(self) -> bool:
        return self.old.type != self.new.type

    @property
    def collection_changed(self) -> bool:
        return self.old.collection_id != self.new.collection_id

    @property
    def renamed(self) -> bool:
        return self.old.name != self.new.name

    def changed_modes(self) -> List[str]:
        """
        Modos cuyo valor difiere o que existen solo en un lado.

        Returns:
            Lista ordenada de ids de modo
        """
        mode_ids = set(self.old.values_by_mode) | set(self.new.values_by_mode)
        return sorted(
            mode_id
            for mode_id in mode_ids
            if not values_equal(self.old.value_for(mode_id), self.new.value_for(mode_id))
        )

    def swapped(self) -> "VariableChange":
        return VariableChange(old=self.new, new=self.old)


@dataclass(frozen=True)
class DiffResult:
    """Clasificación de variables en añadidas, eliminadas y cambiadas."""

    added: Tuple[Variable, ...] = ()
    removed: Tuple[Variable, ...] = ()
    changed: Tuple[VariableChange, ...] = field(default_factory=tuple)

    @property
    def is_empty(self) -> bool:
        return not (self.added or self.removed or self.changed)

    def counts(self) -> Dict[str, int]:
        return {
            "added": len(self.added),
            "removed": len(self.removed),
            "changed": len(self.changed),
        }

    def to_dict(self) -> Dict:
        """Convierte el diff a diccionario JSON-serializable."""
        return {
            "added": [v.to_dict() for v in self.added],
            "removed": [v.to_dict() for v in self.removed],
            "changed": [
                {"old": c.old.to_dict(), "new": c.new.to_dict()}
                for c in self.changed
            ],
        }


def _name_keys(variable: Variable) -> List[str]:
    """Claves de respaldo por nombre: id de colección y nombre de colección."""
    keys = []
    if variable.collection_id:
        keys.append(f"id:{variable.collection_id}/{variable.name}")
    if variable.collection_name:
        keys.append(f"name:{variable.collection_name}/{variable.name}")
    return keys


def _dedupe(variables: Iterable[Variable], side: str) -> List[Variable]:
    """
    Elimina identidades repetidas dentro de un snapshot (gana la última).

    Args:
        variables: Variables del snapshot
        side: Etiqueta para el log ("old"/"new")

    Returns:
        Variables únicas en orden de aparición de la última ocurrencia
    """
    unique: Dict[str, Variable] = {}
    for variable in variables:
        if variable.identity in unique:
            logger.warning(f"Identidad duplicada en snapshot {side}: {variable.identity}")
            del unique[variable.identity]
        unique[variable.identity] = variable
    return list(unique.values())


def _has_changed(old: Variable, new: Variable, matched_by_id: bool) -> bool:
    if old.type != new.type or old.name != new.name:
        return True
    if old.description != new.description:
        return True

    if matched_by_id:
        if old.collection_id != new.collection_id:
            return True
    elif old.collection_name != new.collection_name:
        return True

    # Un modo ganado o perdido es un cambio estructural
    if set(old.values_by_mode) != set(new.values_by_mode):
        return True

    return any(
        not values_equal(old.values_by_mode[mode_id], new.values_by_mode[mode_id])
        for mode_id in old.values_by_mode
    )


class DiffEngine:
    """Compara dos snapshots de variables sin modificar sus entradas."""

    def diff(self, old: Iterable[Variable], new: Iterable[Variable]) -> DiffResult:
        """
        Clasifica las variables en Added / Removed / Changed.

        El id es la identidad autoritativa: si cambia el nombre pero no el id,
        la variable es Changed. Solo cuando a uno de los dos lados le falta el
        id se recurre a colección + nombre, y nunca contra un registro cuyo id
        reclama otra variable del snapshot nuevo.

        Args:
            old: Snapshot anterior (p.ej. baseline versionado)
            new: Snapshot nuevo (p.ej. documento vivo)

        Returns:
            DiffResult con listas disjuntas
        """
        old_vars = _dedupe(old, "old")
        new_vars = _dedupe(new, "new")

        old_by_id: Dict[str, Variable] = {v.id: v for v in old_vars if v.id}
        old_by_name: Dict[str, Variable] = {}
        for variable in old_vars:
            for key in _name_keys(variable):
                old_by_name.setdefault(key, variable)

        new_ids = {v.id for v in new_vars if v.id}

        matched: Dict[str, Variable] = {}  # identidad old -> variable new
        added: List[Variable] = []
        changed: List[VariableChange] = []

        for new_var in new_vars:
            old_var, by_id = self._probe(new_var, old_by_id, old_by_name, new_ids, matched)

            if old_var is None:
                added.append(new_var)
                continue

            matched[old_var.identity] = new_var
            if _has_changed(old_var, new_var, by_id):
                changed.append(VariableChange(old=old_var, new=new_var))

        removed = [v for v in old_vars if v.identity not in matched]

        logger.info(
            f"Diff: {len(added)} añadidas, {len(removed)} eliminadas, "
            f"{len(changed)} cambiadas"
        )

        return DiffResult(added=tuple(added), removed=tuple(removed), changed=tuple(changed))

    def _probe(
        self,
        new_var: Variable,
        old_by_id: Dict[str, Variable],
        old_by_name: Dict[str, Variable],
        new_ids: set,
        matched: Dict[str, Variable],
    ) -> Tuple[Optional[Variable], bool]:
        """
        Busca la contraparte old de una variable nueva.

        Returns:
            Tupla (variable old o None, True si emparejó por id)
        """
        if new_var.id and new_var.id in old_by_id:
            return old_by_id[new_var.id], True

        for key in _name_keys(new_var):
            candidate = old_by_name.get(key)
            if candidate is None or candidate.identity in matched:
                continue
            # Dos ids conocidos y distintos son variables distintas
            if new_var.id and candidate.id:
                continue
            # El id del candidato pertenece a otra variable nueva
            if candidate.id and candidate.id in new_ids:
                continue
            return candidate, False

        return None, False


def diff_variables(old: Iterable[Variable], new: Iterable[Variable]) -> DiffResult:
    """Atajo funcional de DiffEngine().diff."""
    return DiffEngine().diff(old, new)


def has_drift(baseline: Iterable[Variable], live: Iterable[Variable]) -> bool:
    """
    Indica si el documento vivo se desvió del baseline versionado.

    Args:
        baseline: Variables del baseline
        live: Variables extraídas del documento

    Returns:
        True si hay cualquier diferencia
    """
    return not diff_variables(baseline, live).is_empty
