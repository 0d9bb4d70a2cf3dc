"""
Visualización del impacto de cambios de variables.
"""
from .graph_visualizer import GraphVisualizer, impact_graph

__all__ = ["GraphVisualizer", "impact_graph"]
