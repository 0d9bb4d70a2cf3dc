"""
Índice inverso de uso: variable -> componentes/nodos que la consumen.
"""
import asyncio
from dataclasses import dataclass, field
from typing import Callable, Dict, Iterable, List, Optional, Sequence, Set

import networkx as nx

from config import Config
from ..utils.logger import setup_logger

logger = setup_logger(__name__)

ProgressCallback = Callable[[int, int], None]
CancelCheck = Callable[[], bool]


@dataclass(frozen=True)
class NodeBinding:
    """Un enlace nodo -> variable (o estilo) observado en el documento."""

    variable_id: Optional[str]
    component_name: Optional[str]
    node_ids: Sequence[str] = ()
    style_id: Optional[str] = None
    variable_name: Optional[str] = None

    @property
    def identity(self) -> Optional[str]:
        return self.variable_id or self.style_id

    @classmethod
    def from_dict(cls, data: Dict) -> "NodeBinding":
        """
        Acepta la forma compacta del escaneo ({variable, component, nodes})
        y la del documento ({variableId, componentName, nodeIds}).

        Args:
            data: Registro de binding

        Returns:
            NodeBinding
        """
        nodes = data.get("nodeIds", data.get("nodes", []))
        if isinstance(nodes, str):
            nodes = [nodes]
        return cls(
            variable_id=data.get("variableId", data.get("variable")),
            component_name=data.get("componentName", data.get("component")),
            node_ids=tuple(str(n) for n in nodes or []),
            style_id=data.get("styleId", data.get("style")),
            variable_name=data.get("variableName"),
        )


@dataclass
class UsageEntry:
    """Uso de una variable (o estilo) por un componente."""

    component_name: str
    node_ids: List[str] = field(default_factory=list)
    variable_id: Optional[str] = None
    style_id: Optional[str] = None
    _seen: Set[str] = field(default_factory=set, init=False, repr=False, compare=False)

    def __post_init__(self):
        self.node_ids = list(dict.fromkeys(self.node_ids))
        self._seen = set(self.node_ids)

    def add_nodes(self, node_ids: Iterable[str]):
        """Agrega nodos conservando el orden de aparición y sin repetir."""
        for node_id in node_ids:
            if node_id not in self._seen:
                self._seen.add(node_id)
                self.node_ids.append(node_id)

    @property
    def identity(self) -> Optional[str]:
        return self.variable_id or self.style_id

    @property
    def is_unbound(self) -> bool:
        return self.component_name == Config.UNBOUND_COMPONENT

    def to_dict(self) -> Dict:
        data = {"componentName": self.component_name, "nodeIds": list(self.node_ids)}
        if self.variable_id:
            data["variableId"] = self.variable_id
        if self.style_id:
            data["styleId"] = self.style_id
        return data


class UsageIndex:
    """
    Mapa identidad -> [UsageEntry], agrupado por componente.

    Se reconstruye en cada escaneo y no es autoritativo tras editar el
    documento. No debe reconstruirse mientras un resolve_impact lo usa.
    """

    def __init__(self, unbound_label: str = None):
        self.unbound_label = unbound_label or Config.UNBOUND_COMPONENT
        self._entries: Dict[str, Dict[str, UsageEntry]] = {}
        self.variable_names: Dict[str, str] = {}

    def add(self, binding: NodeBinding):
        """
        Incorpora un binding, fusionando nodos del mismo par
        (variable, componente) en lugar de duplicar entradas.

        Args:
            binding: Binding observado
        """
        identity = binding.identity
        if not identity:
            return

        component = binding.component_name or self.unbound_label
        by_component = self._entries.setdefault(identity, {})
        entry = by_component.get(component)
        if entry is None:
            entry = UsageEntry(
                component_name=component,
                variable_id=binding.variable_id,
                style_id=None if binding.variable_id else binding.style_id,
            )
            by_component[component] = entry

        entry.add_nodes(binding.node_ids)

        if binding.variable_name and binding.variable_id:
            self.variable_names.setdefault(binding.variable_id, binding.variable_name)

    # ------------------------------------------------------------------
    # Construcción
    # ------------------------------------------------------------------

    @classmethod
    def build(
        cls,
        bindings: Sequence[NodeBinding],
        chunk_size: int = None,
        on_progress: ProgressCallback = None,
        should_cancel: CancelCheck = None,
        unbound_label: str = None,
    ) -> Optional["UsageIndex"]:
        """
        Construye el índice por chunks, reportando progreso.

        Args:
            bindings: Bindings del escaneo del documento
            chunk_size: Tamaño de chunk (Config.SCAN_CHUNK_SIZE por defecto)
            on_progress: Callback (procesados, total) tras cada chunk
            should_cancel: Se consulta entre chunks; True abandona el escaneo
            unbound_label: Etiqueta para nodos sin componente

        Returns:
            UsageIndex, o None si se canceló (el índice parcial se descarta)
        """
        index = cls(unbound_label=unbound_label)
        chunk_size = max(1, chunk_size or Config.SCAN_CHUNK_SIZE)
        total = len(bindings)

        for start in range(0, total, chunk_size):
            if should_cancel and should_cancel():
                logger.info(f"Escaneo cancelado tras {start}/{total} bindings")
                return None

            for binding in bindings[start:start + chunk_size]:
                index.add(binding)

            if on_progress:
                on_progress(min(start + chunk_size, total), total)

        logger.info(f"Índice de uso: {len(index)} identidades, {total} bindings")
        return index

    @classmethod
    async def build_async(
        cls,
        bindings: Sequence[NodeBinding],
        chunk_size: int = None,
        on_progress: ProgressCallback = None,
        should_cancel: CancelCheck = None,
    ) -> Optional["UsageIndex"]:
        """
        Variante cooperativa de build: cede el control al event loop entre
        chunks para no bloquear otras tareas durante escaneos grandes.
        """
        index = cls()
        chunk_size = max(1, chunk_size or Config.SCAN_CHUNK_SIZE)
        total = len(bindings)

        for start in range(0, total, chunk_size):
            if should_cancel and should_cancel():
                return None
            for binding in bindings[start:start + chunk_size]:
                index.add(binding)
            if on_progress:
                on_progress(min(start + chunk_size, total), total)
            await asyncio.sleep(0)

        return index

    @classmethod
    def from_records(cls, records: Iterable[Dict], **kwargs) -> Optional["UsageIndex"]:
        """Construye el índice desde registros JSON de bindings."""
        return cls.build(bindings_from_records(records), **kwargs)

    # ------------------------------------------------------------------
    # Consultas
    # ------------------------------------------------------------------

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, identity: str) -> bool:
        return identity in self._entries

    def identities(self) -> List[str]:
        return list(self._entries.keys())

    def entries_for(self, identity: str) -> List[UsageEntry]:
        return list(self._entries.get(identity, {}).values())

    def named_entries(self, identity: str) -> List[UsageEntry]:
        return [e for e in self.entries_for(identity) if e.component_name != self.unbound_label]

    def unbound_entries(self, identity: str) -> List[UsageEntry]:
        return [e for e in self.entries_for(identity) if e.component_name == self.unbound_label]

    def components(self) -> List[str]:
        """Componentes distintos presentes en el índice (orden alfabético)."""
        names = set()
        for by_component in self._entries.values():
            names.update(by_component.keys())
        return sorted(names)

    def node_ids(self, identity: str) -> List[str]:
        """Nodos distintos que consumen una identidad, en cualquier componente."""
        seen: Dict[str, None] = {}
        for entry in self.entries_for(identity):
            seen.update(dict.fromkeys(entry.node_ids))
        return list(seen)

    def total_nodes(self, identity: str) -> int:
        return len(self.node_ids(identity))

    def to_dict(self) -> Dict[str, List[Dict]]:
        return {
            identity: [entry.to_dict() for entry in by_component.values()]
            for identity, by_component in self._entries.items()
        }

    def to_graph(self) -> nx.DiGraph:
        """
        Exporta el índice como grafo dirigido variable -> componente.

        Returns:
            DiGraph con atributos node_ids y node_count en las aristas
        """
        graph = nx.DiGraph()
        for identity, by_component in self._entries.items():
            graph.add_node(
                identity,
                kind="variable",
                label=self.variable_names.get(identity, identity),
            )
            for component, entry in by_component.items():
                component_key = f"component:{component}"
                graph.add_node(
                    component_key,
                    kind="component",
                    label=component,
                    unbound=component == self.unbound_label,
                )
                graph.add_edge(
                    identity,
                    component_key,
                    node_ids=list(entry.node_ids),
                    node_count=len(entry.node_ids),
                )
        return graph


def bindings_from_records(records: Iterable[Dict]) -> List[NodeBinding]:
    """
    Normaliza registros de uso al formato NodeBinding.

    Acepta entradas planas ({variable, component, nodes}) y agrupadas
    ({variableId, components: [{componentName, nodeIds}]}). Los registros
    sin identidad se ignoran.

    Args:
        records: Registros JSON

    Returns:
        Lista de bindings
    """
    bindings = []
    for record in records or []:
        if not isinstance(record, dict):
            continue

        if isinstance(record.get("components"), list):
            for component in record["components"]:
                if not isinstance(component, dict):
                    continue
                merged = dict(component)
                for key in ("variableId", "variableName", "styleId"):
                    if key in record:
                        merged.setdefault(key, record[key])
                binding = NodeBinding.from_dict(merged)
                if binding.identity:
                    bindings.append(binding)
            continue

        binding = NodeBinding.from_dict(record)
        if binding.identity:
            bindings.append(binding)

    return bindings


def build_index(bindings: Iterable, **kwargs) -> Optional[UsageIndex]:
    """
    Construye un UsageIndex desde bindings o registros JSON.

    Args:
        bindings: NodeBinding o diccionarios de binding

    Returns:
        UsageIndex (None si se canceló)
    """
    normalized = []
    raw_records = []
    for item in bindings:
        if isinstance(item, NodeBinding):
            normalized.append(item)
        else:
            raw_records.append(item)
    normalized.extend(bindings_from_records(raw_records))
    return UsageIndex.build(normalized, **kwargs)


def index_from_scan_response(payload: Dict, **kwargs) -> Optional[UsageIndex]:
    """
    Construye el índice desde la respuesta de ScanUsage
    ({variables: [...], textStyles: [...]}).

    Args:
        payload: Respuesta del protocolo de documento

    Returns:
        UsageIndex (None si se canceló)
    """
    records = list(payload.get("variables", []) or [])
    records.extend(payload.get("textStyles", []) or [])
    return UsageIndex.from_records(records, **kwargs)
