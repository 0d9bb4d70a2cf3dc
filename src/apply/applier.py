"""
Aplicación de change-sets sobre el documento vivo.

No hay rollback global: cada ítem se intenta por separado y los fallos se
acumulan en el resultado junto con la cantidad de ítems aplicados. Solo la
caída del canal aborta la llamada completa.
"""
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Tuple

import networkx as nx

from ..changeset.change_set import ChangeSet, VariableCreate, VariableUpdate
from ..model.values import AliasValue
from ..model.variable import Variable
from ..usage.usage_index import UsageIndex
from ..utils.errors import ChannelUnavailableError, ProtocolError
from ..utils.logger import setup_logger

logger = setup_logger(__name__)


@dataclass
class ApplyResult:
    """Resultado de aplicar un change-set (éxito parcial como dato, no excepción)."""

    applied: int = 0
    remapped: int = 0
    errors: List[str] = field(default_factory=list)
    created_ids: Dict[str, str] = field(default_factory=dict)

    @property
    def failed(self) -> int:
        return len(self.errors)

    def to_dict(self) -> Dict:
        return {
            "applied": self.applied,
            "remapped": self.remapped,
            "errors": list(self.errors),
        }


def build_alias_graph(variables: Dict[str, Variable]) -> nx.DiGraph:
    """
    Grafo dirigido variable -> destino de alias (todas las referencias de
    todos los modos).

    Los destinos que no existen aparecen como nodos sin atributo "variable".
    """
    graph = nx.DiGraph()
    for variable in variables.values():
        graph.add_node(variable.id, variable=variable)
        for value in variable.values_by_mode.values():
            if isinstance(value, AliasValue):
                graph.add_edge(variable.id, value.target_id)
    return graph


def is_dangling(graph: nx.DiGraph, variable_id: str) -> bool:
    """
    Indica si la cadena de alias de una variable está rota: destino
    inexistente, ciclo o destino de otro tipo.
    """
    if variable_id not in graph or "variable" not in graph.nodes[variable_id]:
        return True

    reachable = nx.descendants(graph, variable_id) | {variable_id}
    if any("variable" not in graph.nodes[node] for node in reachable):
        return True

    subgraph = graph.subgraph(reachable)
    if not nx.is_directed_acyclic_graph(subgraph):
        return True

    for source, target in subgraph.edges():
        if graph.nodes[source]["variable"].type != graph.nodes[target]["variable"].type:
            return True
    return False


def alias_chain(variables: Dict[str, Variable], variable_id: str) -> List[str]:
    """
    Cadena de alias de una variable, siguiendo el primer alias de cada
    eslabón, sin incluir la propia variable. Se corta en ciclos.
    """
    chain: List[str] = []
    seen = {variable_id}
    current = variables.get(variable_id)

    while current is not None:
        target = next(
            (v.target_id for v in current.values_by_mode.values() if isinstance(v, AliasValue)),
            None,
        )
        if target is None or target in seen:
            break
        chain.append(target)
        seen.add(target)
        current = variables.get(target)

    return chain


class Applier:
    """
    Ejecuta un change-set a través del cliente del documento.

    Orden: updates en orden de envío, remapeo de alias colgantes, y luego
    creates en orden de envío. Nunca reordena dentro de cada fase.
    """

    def __init__(
        self,
        client,
        known_variables: Iterable[Variable] = (),
        usage_index: UsageIndex = None,
    ):
        """
        Args:
            client: DocumentClient (o cualquier objeto con la misma interfaz)
            known_variables: Variables del documento antes de aplicar
            usage_index: Índice de uso; sin él no se remapean bindings
        """
        self.client = client
        self.known: Dict[str, Variable] = {v.id: v for v in known_variables if v.id}
        self.usage_index = usage_index

    async def apply(self, change_set: ChangeSet) -> ApplyResult:
        """
        Aplica el change-set.

        Args:
            change_set: Change-set validado

        Returns:
            ApplyResult; si el canal cae, un único error y ningún aplicado
        """
        result = ApplyResult()
        current = dict(self.known)

        try:
            for update in change_set.updates:
                await self._apply_update(update, current, result)

            if change_set.updates:
                await self._remap_dangling(current, result)

            created: Dict[Tuple[str, str], Optional[str]] = {}
            for create in change_set.creates:
                await self._apply_create(create, created, result)

        except ChannelUnavailableError as e:
            logger.error(f"Canal del documento no disponible, se aborta la aplicación: {e}")
            return ApplyResult(errors=[f"Canal del documento no disponible: {e}"])

        logger.info(
            f"Aplicados {result.applied}, remapeados {result.remapped}, "
            f"errores {len(result.errors)}"
        )
        return result

    def _fail(self, result: ApplyResult, message: str):
        result.errors.append(message)
        logger.error(message)

    async def _apply_update(
        self, update: VariableUpdate, current: Dict[str, Variable], result: ApplyResult
    ):
        name = update.variable_name or update.variable_id
        try:
            await self.client.set_variable_value(update)
        except ChannelUnavailableError:
            raise
        except ProtocolError as e:
            self._fail(result, f"Error al actualizar '{name}' (modo {update.mode_id}): {e}")
            return

        result.applied += 1
        variable = current.get(update.variable_id)
        if variable is not None:
            current[update.variable_id] = variable.with_value(update.mode_id, update.value)

    async def _apply_create(
        self,
        create: VariableCreate,
        created: Dict[Tuple[str, str], Optional[str]],
        result: ApplyResult,
    ):
        key = (create.collection_id, create.variable_name)

        if key not in created:
            try:
                created[key] = await self.client.create_variable(create)
            except ChannelUnavailableError:
                raise
            except ProtocolError as e:
                created[key] = None
                self._fail(result, f"Error al crear '{create.variable_name}': {e}")
                return

            result.created_ids[create.variable_name] = created[key]

            if create.remap_from_variable_id:
                await self._rebind(create.remap_from_variable_id, created[key], None, result)

        variable_id = created[key]
        if variable_id is None:
            self._fail(
                result,
                f"Se omite el modo {create.mode_id} de '{create.variable_name}': "
                f"la variable no pudo crearse",
            )
            return

        try:
            await self.client.set_created_value(variable_id, create)
        except ChannelUnavailableError:
            raise
        except ProtocolError as e:
            self._fail(
                result,
                f"Error al asignar '{create.variable_name}' (modo {create.mode_id}): {e}",
            )
            return

        result.applied += 1

    async def _rebind(
        self, from_id: str, to_id: str, node_ids: Optional[List[str]], result: ApplyResult
    ):
        name = self.known[from_id].name if from_id in self.known else from_id
        try:
            result.remapped += await self.client.rebind_nodes(from_id, to_id, node_ids)
        except ChannelUnavailableError:
            raise
        except ProtocolError as e:
            self._fail(result, f"Error al re-enlazar nodos de '{name}': {e}")

    async def _remap_dangling(self, current: Dict[str, Variable], result: ApplyResult):
        """
        Re-enlaza los nodos de variables cuya cadena de alias quedó rota tras
        los updates al ancestro válido más cercano de su cadena previa.
        """
        if self.usage_index is None:
            return

        before = build_alias_graph(self.known)
        after = build_alias_graph(current)

        for variable_id in self.usage_index.identities():
            variable = self.known.get(variable_id)
            if variable is None:
                continue
            # Solo cuenta lo que rompieron estos updates
            if is_dangling(before, variable_id) or not is_dangling(after, variable_id):
                continue

            target_id = next(
                (
                    candidate
                    for candidate in alias_chain(self.known, variable_id)
                    if candidate in current
                    and current[candidate].type == variable.type
                    and not is_dangling(after, candidate)
                ),
                None,
            )
            if target_id is None:
                logger.warning(
                    f"'{variable.name}' quedó con un alias colgante y no hay ancestro válido"
                )
                continue

            node_ids = self.usage_index.node_ids(variable_id)
            logger.info(
                f"Re-enlazando {len(node_ids)} nodos de '{variable.name}' a "
                f"'{current[target_id].name}'"
            )
            await self._rebind(variable_id, target_id, node_ids, result)
