"""
Construcción y validación de change-sets.

El builder es una función pura sobre snapshots en memoria: nunca habla con
el documento vivo, así que se puede probar sin conexión.
"""
from typing import Dict, Iterable, List, Optional, Tuple, Union

from ..diff.diff_engine import DiffResult
from ..model.values import AliasValue, VariableType, coerce_value, value_to_raw
from ..model.variable import Collection, Variable, derive_collections
from ..utils.logger import setup_logger
from .change_set import (
    CREATE,
    UPDATE,
    BuildResult,
    ChangeSet,
    ProposedEdit,
    VariableCreate,
    VariableUpdate,
)

logger = setup_logger(__name__)

EditLike = Union[ProposedEdit, Dict]


class ChangeSetBuilder:
    """
    Valida una lista de ediciones contra las variables conocidas.

    Cada ítem inválido se descarta con una advertencia; el lote nunca se
    aborta por un ítem. Para updates duplicados sobre el mismo
    (variableId, modeId) gana el último enviado.
    """

    def __init__(
        self,
        known_variables: Iterable[Variable],
        collections: Iterable[Collection] = None,
    ):
        """
        Args:
            known_variables: Variables actuales del documento
            collections: Colecciones del documento (se derivan de las
                variables si no se indican)
        """
        self.known_variables = list(known_variables)
        self.by_id: Dict[str, Variable] = {v.id: v for v in self.known_variables if v.id}

        collections = list(collections) if collections is not None else []
        derived = derive_collections(self.known_variables)
        self.collections: Dict[str, Collection] = {c.id: c for c in derived}
        # Las colecciones explícitas mandan sobre las derivadas
        self.collections.update({c.id: c for c in collections})

        self.warnings: List[str] = []

    def _warn(self, message: str):
        self.warnings.append(message)
        logger.warning(message)

    def _resolve_variable(self, edit: ProposedEdit) -> Optional[Variable]:
        if edit.variable_id:
            return self.by_id.get(edit.variable_id)

        if not edit.variable_name:
            return None

        candidates = [
            v for v in self.known_variables
            if v.name == edit.variable_name
            and (not edit.collection_id or v.collection_id == edit.collection_id)
        ]
        if len(candidates) > 1:
            self._warn(f"Nombre ambiguo '{edit.variable_name}': {len(candidates)} variables coinciden")
            return None
        return candidates[0] if candidates else None

    def _collection_modes(self, variable: Variable) -> List[str]:
        collection = self.collections.get(variable.collection_id)
        if collection is not None and collection.modes:
            return collection.mode_ids()
        return variable.mode_ids()

    def _coerce(self, edit: ProposedEdit, var_type: VariableType):
        try:
            value = coerce_value(edit.value, var_type)
        except ValueError as e:
            self._warn(f"Edición de '{edit.label}' descartada: {e}")
            return None

        if isinstance(value, AliasValue):
            target = self.by_id.get(value.target_id)
            if target is None:
                self._warn(
                    f"Edición de '{edit.label}' descartada: alias a variable desconocida "
                    f"{value.target_id}"
                )
                return None
            if target.type != var_type:
                self._warn(
                    f"Edición de '{edit.label}' descartada: alias a {target.name} "
                    f"de tipo {target.type.value}, se esperaba {var_type.value}"
                )
                return None
        return value

    def _validate_update(self, edit: ProposedEdit) -> Optional[VariableUpdate]:
        variable = self._resolve_variable(edit)
        if variable is None:
            self._warn(
                f"Update descartado: variable desconocida "
                f"{edit.variable_id or edit.variable_name!r}"
            )
            return None

        if edit.mode_id not in self._collection_modes(variable):
            self._warn(
                f"Update de '{variable.name}' descartado: el modo {edit.mode_id} "
                f"no existe en la colección {variable.collection_name or variable.collection_id}"
            )
            return None

        if edit.type is not None:
            declared = VariableType.from_token(edit.type)
            if declared is None:
                self._warn(f"Update de '{variable.name}' descartado: tipo desconocido {edit.type!r}")
                return None
            if declared != variable.type:
                self._warn(
                    f"Update de '{variable.name}' descartado: tipo {declared.value} "
                    f"distinto de {variable.type.value}"
                )
                return None

        value = self._coerce(edit, variable.type)
        if value is None:
            return None

        return VariableUpdate(
            variable_id=variable.id,
            mode_id=edit.mode_id,
            type=variable.type,
            value=value,
            variable_name=variable.name,
        )

    def _validate_create(self, edit: ProposedEdit) -> Optional[VariableCreate]:
        if not edit.variable_name:
            self._warn("Create descartado: falta el nombre de la variable")
            return None

        collection = self.collections.get(edit.collection_id or "")
        if collection is None:
            self._warn(
                f"Create de '{edit.variable_name}' descartado: colección desconocida "
                f"{edit.collection_id!r}"
            )
            return None

        if collection.modes and not collection.has_mode(edit.mode_id):
            self._warn(
                f"Create de '{edit.variable_name}' descartado: el modo {edit.mode_id} "
                f"no existe en la colección {collection.name}"
            )
            return None

        var_type = VariableType.from_token(edit.type)
        if var_type is None:
            self._warn(f"Create de '{edit.variable_name}' descartado: tipo desconocido {edit.type!r}")
            return None

        value = self._coerce(edit, var_type)
        if value is None:
            return None

        remap_from = edit.remap_from_variable_id
        if remap_from and remap_from not in self.by_id:
            self._warn(
                f"Create de '{edit.variable_name}': se ignora el remapeo desde "
                f"variable desconocida {remap_from}"
            )
            remap_from = None

        return VariableCreate(
            variable_name=edit.variable_name,
            collection_id=collection.id,
            mode_id=edit.mode_id,
            type=var_type,
            value=value,
            remap_from_variable_id=remap_from,
        )

    def build(self, proposal: Iterable[EditLike]) -> BuildResult:
        """
        Convierte una propuesta en un ChangeSet validado.

        Args:
            proposal: Ediciones (ProposedEdit o diccionarios JSON)

        Returns:
            BuildResult con el change-set y las advertencias
        """
        self.warnings = []
        updates: Dict[Tuple[str, str], VariableUpdate] = {}
        creates: Dict[Tuple[str, str, str], VariableCreate] = {}

        for position, item in enumerate(proposal or []):
            if isinstance(item, ProposedEdit):
                edit = item
            else:
                try:
                    edit = ProposedEdit.from_dict(item)
                except ValueError as e:
                    self._warn(f"Edición {position} descartada: {e}")
                    continue

            if edit.kind == UPDATE:
                update = self._validate_update(edit)
                if update is None:
                    continue
                key = (update.variable_id, update.mode_id)
                if key in updates:
                    self._warn(
                        f"Update duplicado para '{update.variable_name}' en modo "
                        f"{update.mode_id}: se descarta el anterior"
                    )
                    # El superviviente ocupa la posición del último envío
                    del updates[key]
                updates[key] = update

            elif edit.kind == CREATE:
                create = self._validate_create(edit)
                if create is None:
                    continue
                key = (create.collection_id, create.variable_name, create.mode_id)
                if key in creates:
                    self._warn(
                        f"Create duplicado para '{create.variable_name}' en modo "
                        f"{create.mode_id}: se descarta el anterior"
                    )
                    del creates[key]
                creates[key] = create

        change_set = ChangeSet(updates=tuple(updates.values()), creates=tuple(creates.values()))
        logger.info(
            f"Change-set: {len(change_set.updates)} updates, {len(change_set.creates)} creates, "
            f"{len(self.warnings)} advertencias"
        )
        return BuildResult(change_set=change_set, warnings=list(self.warnings))


def build_change_set(
    proposal: Iterable[EditLike],
    known_variables: Iterable[Variable],
    collections: Iterable[Collection] = None,
) -> BuildResult:
    """
    Valida una propuesta de ediciones y construye el change-set.

    Args:
        proposal: Ediciones propuestas
        known_variables: Variables actuales del documento
        collections: Colecciones del documento (opcional)

    Returns:
        BuildResult (nunca lanza por ítems inválidos)
    """
    return ChangeSetBuilder(known_variables, collections).build(proposal)


def proposals_from_diff(diff: DiffResult) -> Tuple[List[ProposedEdit], List[str]]:
    """
    Convierte un diff aceptado en ediciones.

    El lado old es el documento vivo y el lado new el estado objetivo: cada
    modo que difiere genera un update y cada variable añadida un create por
    modo. Las eliminaciones no tienen operación en el change-set.

    Args:
        diff: Diff aceptado por el operador

    Returns:
        Tupla (ediciones, advertencias)
    """
    edits: List[ProposedEdit] = []
    warnings: List[str] = []

    for change in diff.changed:
        old, new = change.old, change.new
        if change.type_changed:
            warnings.append(
                f"'{new.name}' cambió de tipo ({old.type.value} -> {new.type.value}); "
                f"no se puede aplicar como update"
            )
            continue
        for mode_id in change.changed_modes():
            value = new.value_for(mode_id)
            if value is None:
                warnings.append(f"'{new.name}' perdió el modo {mode_id}; no se elimina del documento")
                continue
            edits.append(ProposedEdit(
                kind=UPDATE,
                variable_id=old.id,
                variable_name=old.name,
                mode_id=mode_id,
                type=new.type.value,
                value=value_to_raw(value),
            ))

    for variable in diff.added:
        for mode_id, value in variable.values_by_mode.items():
            edits.append(ProposedEdit(
                kind=CREATE,
                variable_name=variable.name,
                collection_id=variable.collection_id,
                mode_id=mode_id,
                type=variable.type.value,
                value=value_to_raw(value),
            ))

    for variable in diff.removed:
        warnings.append(f"'{variable.qualified_name}' eliminada: el change-set no borra variables")

    return edits, warnings


def build_change_set_from_diff(
    diff: DiffResult,
    known_variables: Iterable[Variable],
    collections: Iterable[Collection] = None,
) -> BuildResult:
    """
    Atajo: diff aceptado -> ediciones -> change-set validado.

    Args:
        diff: Diff aceptado (old = documento vivo)
        known_variables: Variables actuales del documento
        collections: Colecciones del documento

    Returns:
        BuildResult con las advertencias de ambas fases
    """
    edits, warnings = proposals_from_diff(diff)
    result = build_change_set(edits, known_variables, collections)
    return BuildResult(change_set=result.change_set, warnings=warnings + result.warnings)
