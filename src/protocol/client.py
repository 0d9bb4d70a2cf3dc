"""
Fachada tipada sobre el canal de mensajes del documento.
"""
from dataclasses import dataclass, field
from typing import Iterable, List, Optional

from ..apply.applier import Applier, ApplyResult
from ..changeset.change_set import ChangeSet, VariableCreate, VariableUpdate
from ..model.baseline import load_collections, parse_variables
from ..model.values import value_to_raw
from ..model.variable import Collection, Variable, derive_collections
from ..usage.usage_index import (
    CancelCheck,
    ProgressCallback,
    UsageIndex,
    bindings_from_records,
)
from ..utils.errors import ProtocolError
from ..utils.logger import setup_logger
from .channel import DocumentChannel
from .messages import MessageType, PageScope

logger = setup_logger(__name__)


@dataclass
class ExtractResult:
    """Variables y colecciones extraídas del documento vivo."""

    variables: List[Variable] = field(default_factory=list)
    collections: List[Collection] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)


class DocumentClient:
    """Operaciones del protocolo del documento con tipos del modelo."""

    def __init__(self, channel: DocumentChannel):
        self.channel = channel

    async def close(self):
        await self.channel.close()

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    async def extract_variables(self) -> ExtractResult:
        """
        ExtractVariables: variables locales y sus colecciones.

        Los registros malformados se descartan con advertencia.

        Returns:
            ExtractResult
        """
        response = await self.channel.request(MessageType.EXTRACT_VARIABLES, {})

        variables, warnings = parse_variables(response.get("variables", []) or [])
        collections, collection_warnings = load_collections(response.get("collectionsInfo", []) or [])
        warnings.extend(collection_warnings)

        if not collections:
            collections = derive_collections(variables)

        logger.info(f"Extraídas {len(variables)} variables en {len(collections)} colecciones")
        return ExtractResult(variables=variables, collections=collections, warnings=warnings)

    async def scan_usage(
        self,
        query: str = None,
        page_scope: PageScope = PageScope.ALL_PAGES,
        chunk_size: int = None,
        on_progress: ProgressCallback = None,
        should_cancel: CancelCheck = None,
    ) -> Optional[UsageIndex]:
        """
        ScanUsage: escanea bindings y construye el índice de uso.

        Args:
            query: Filtro opcional por nombre de variable
            page_scope: Página actual o todas
            chunk_size: Tamaño de chunk para la construcción del índice
            on_progress: Callback de progreso (procesados, total)
            should_cancel: Consultado entre chunks

        Returns:
            UsageIndex nuevo, o None si se canceló
        """
        payload = {"pageScope": page_scope.value}
        if query:
            payload["query"] = query

        response = await self.channel.request(MessageType.SCAN_USAGE, payload)

        records = list(response.get("variables", []) or [])
        records.extend(response.get("textStyles", []) or [])

        return await UsageIndex.build_async(
            bindings_from_records(records),
            chunk_size=chunk_size,
            on_progress=on_progress,
            should_cancel=should_cancel,
        )

    async def set_variable_value(self, update: VariableUpdate) -> dict:
        return await self.channel.request(MessageType.SET_VARIABLE_VALUE, {
            "variableId": update.variable_id,
            "modeId": update.mode_id,
            "type": update.type.value,
            "value": value_to_raw(update.value),
        })

    async def create_variable(self, create: VariableCreate) -> str:
        """
        Crea la variable (sin valores) y devuelve su id.

        Raises:
            ProtocolError: Si la respuesta no incluye el id creado
        """
        response = await self.channel.request(MessageType.CREATE_VARIABLE, {
            "variableName": create.variable_name,
            "collectionId": create.collection_id,
            "type": create.type.value,
        })
        variable_id = response.get("variableId")
        if not variable_id:
            raise ProtocolError(f"El documento no devolvió id para {create.variable_name}")
        return variable_id

    async def set_created_value(self, variable_id: str, create: VariableCreate) -> dict:
        return await self.channel.request(MessageType.SET_VARIABLE_VALUE, {
            "variableId": variable_id,
            "modeId": create.mode_id,
            "type": create.type.value,
            "value": value_to_raw(create.value),
        })

    async def rebind_nodes(
        self, from_variable_id: str, to_variable_id: str, node_ids: Iterable[str] = None
    ) -> int:
        """
        Re-enlaza nodos de una variable a otra.

        Returns:
            Cantidad de bindings re-enlazados
        """
        payload = {"fromVariableId": from_variable_id, "toVariableId": to_variable_id}
        if node_ids is not None:
            payload["nodeIds"] = list(node_ids)
        response = await self.channel.request(MessageType.REBIND_NODES, payload)
        remapped = response.get("remapped")
        if isinstance(remapped, int):
            return remapped
        return len(payload.get("nodeIds", []))

    async def select_nodes(self, node_ids: Iterable[str]):
        """SelectNodes: resalta nodos impactados (fire-and-forget)."""
        await self.channel.notify(MessageType.SELECT_NODES, {"ids": list(node_ids)})

    async def apply_changes(
        self,
        change_set: ChangeSet,
        known_variables: Iterable[Variable] = (),
        usage_index: UsageIndex = None,
    ) -> ApplyResult:
        """
        ApplyChanges: aplica un change-set validado.

        Args:
            change_set: Change-set del builder
            known_variables: Variables del documento antes de aplicar
            usage_index: Índice de uso para remapear alias colgantes

        Returns:
            ApplyResult con aplicados, remapeados y errores
        """
        applier = Applier(self, known_variables=known_variables, usage_index=usage_index)
        return await applier.apply(change_set)
