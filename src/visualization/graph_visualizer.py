"""
Visualizador de impacto usando pyvis y networkx.
"""
from pathlib import Path
from typing import List

import networkx as nx
from pyvis.network import Network

from ..impact.impact_resolver import ComponentImpact, ImpactLevel
from ..usage.usage_index import UsageIndex
from ..utils.logger import setup_logger

logger = setup_logger(__name__)

LEVEL_COLORS = {
    ImpactLevel.HIGH: "#ff6b6b",
    ImpactLevel.MEDIUM: "#ffa94d",
    ImpactLevel.LOW: "#69db7c",
}
UNBOUND_COLOR = "#adb5bd"
VARIABLE_COLOR = "#4dabf7"
REMOVED_COLOR = "#868e96"

NETWORK_OPTIONS = """
{
    "nodes": {
        "font": {"size": 16}
    },
    "edges": {
        "arrows": {"to": {"enabled": true}},
        "smooth": {"type": "continuous"}
    },
    "physics": {
        "enabled": true,
        "stabilization": {"iterations": 100}
    }
}
"""


def impact_graph(impacts: List[ComponentImpact]) -> nx.DiGraph:
    """
    Grafo variable -> componente a partir del impacto resuelto.

    Args:
        impacts: Salida de resolve_impact

    Returns:
        DiGraph con atributos kind, label, level y category
    """
    graph = nx.DiGraph()
    for impact in impacts:
        component_key = f"component:{impact.component_name}"
        graph.add_node(
            component_key,
            kind="component",
            label=impact.component_name,
            node_count=impact.node_count,
            level=impact.level.value,
            unbound=impact.is_unbound,
        )
        for change in impact.changes:
            graph.add_node(
                change.variable_id,
                kind="variable",
                label=change.variable_name,
                category=change.category.value,
                change_type=change.change_type,
            )
            graph.add_edge(
                change.variable_id,
                component_key,
                old_value=change.old_value,
                new_value=change.new_value or "",
            )
    return graph


class GraphVisualizer:
    """Renderiza el impacto de un diff como red HTML interactiva."""

    def __init__(self, height: str = "800px", width: str = "100%"):
        self.height = height
        self.width = width

    def render_impact(self, impacts: List[ComponentImpact], output_file: Path) -> Path:
        """
        Genera un HTML con variables impactadas -> componentes, coloreando los
        componentes por nivel de impacto.

        Args:
            impacts: Salida de resolve_impact
            output_file: Ruta del archivo HTML de salida

        Returns:
            Ruta del archivo generado
        """
        graph = impact_graph(impacts)

        net = Network(
            height=self.height, width=self.width, directed=True, notebook=False, cdn_resources="remote"
        )
        net.toggle_physics(True)
        net.set_options(NETWORK_OPTIONS)

        for node, attrs in graph.nodes(data=True):
            if attrs["kind"] == "component":
                color = UNBOUND_COLOR if attrs["unbound"] else LEVEL_COLORS[ImpactLevel(attrs["level"])]
                net.add_node(
                    node,
                    label=f"{attrs['label']}\n({attrs['node_count']} nodos)",
                    color=color,
                    shape="box",
                    title=f"Componente: {attrs['label']}\nImpacto: {attrs['level']}",
                )
            else:
                removed = attrs["change_type"] == "removed"
                net.add_node(
                    node,
                    label=attrs["label"],
                    color=REMOVED_COLOR if removed else VARIABLE_COLOR,
                    title=f"Variable: {attrs['label']}\nCategoría: {attrs['category']}",
                )

        for source, target, attrs in graph.edges(data=True):
            net.add_edge(source, target, title=f"{attrs['old_value']} → {attrs['new_value']}")

        output_file = Path(output_file)
        net.save_graph(str(output_file))
        logger.info(f"Visualización guardada en: {output_file}")
        return output_file

    def export_graphml(self, index: UsageIndex, output_file: Path) -> Path:
        """
        Exporta el índice de uso a GraphML.

        GraphML no admite listas, así que los ids de nodo se unen con comas.

        Args:
            index: Índice de uso
            output_file: Ruta del archivo de salida

        Returns:
            Ruta del archivo generado
        """
        graph = index.to_graph()
        for _, _, attrs in graph.edges(data=True):
            attrs["node_ids"] = ",".join(attrs.get("node_ids", []))

        output_file = Path(output_file)
        nx.write_graphml(graph, str(output_file))
        logger.info(f"Grafo exportado a GraphML: {output_file}")
        return output_file

