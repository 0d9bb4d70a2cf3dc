"""
Análisis de impacto de cambios de variables sobre componentes.
"""
from .formatting import build_variable_name_map, color_to_hex, format_value
from .impact_resolver import (
    CATEGORY_LABELS,
    ChangeCategory,
    ComponentImpact,
    ImpactChange,
    ImpactLevel,
    categorize,
    impact_level,
    resolve_impact,
    total_impacted_nodes,
)
from .summary import mode_breakdown, render_markdown_summary

__all__ = [
    "build_variable_name_map",
    "color_to_hex",
    "format_value",
    "CATEGORY_LABELS",
    "ChangeCategory",
    "ComponentImpact",
    "ImpactChange",
    "ImpactLevel",
    "categorize",
    "impact_level",
    "resolve_impact",
    "total_impacted_nodes",
    "mode_breakdown",
    "render_markdown_summary",
]
