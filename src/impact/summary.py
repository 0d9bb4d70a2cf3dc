"""
Resúmenes legibles del diff y su impacto (cuerpo del PR, reporte exportado).
"""
from datetime import datetime, timezone
from typing import Dict, Iterable, List

from ..diff.diff_engine import DiffResult
from ..model.variable import Collection
from .impact_resolver import CATEGORY_LABELS, CATEGORY_ORDER, ComponentImpact


def mode_breakdown(diff: DiffResult, collections: Iterable[Collection] = ()) -> Dict[str, int]:
    """
    Cuenta valores cambiados por modo.

    Args:
        diff: Resultado del diff
        collections: Colecciones para traducir ids de modo a nombres

    Returns:
        Diccionario "Colección / modo" -> cantidad de valores cambiados
    """
    by_id = {collection.id: collection for collection in collections}
    counts: Dict[str, int] = {}

    for change in diff.changed:
        collection = by_id.get(change.new.collection_id)
        for mode_id in change.changed_modes():
            mode_name = collection.mode_name(mode_id) if collection else mode_id
            label = f"{change.new.collection_name} / {mode_name}"
            counts[label] = counts.get(label, 0) + 1

    return dict(sorted(counts.items()))


def render_markdown_summary(
    diff: DiffResult,
    impacts: List[ComponentImpact] = (),
    collections: Iterable[Collection] = (),
    title: str = "Design Token Changes",
    generated_at: datetime = None,
) -> str:
    """
    Genera el resumen markdown usado como cuerpo del PR.

    Incluye conteos added/removed/changed, desglose por modo e impacto por
    componente agrupado por categoría.

    Args:
        diff: Resultado del diff
        impacts: Salida de resolve_impact
        collections: Colecciones para nombres de modo
        title: Título del documento
        generated_at: Marca de tiempo (ahora por defecto)

    Returns:
        Texto markdown
    """
    generated_at = generated_at or datetime.now(timezone.utc)
    counts = diff.counts()

    lines = [
        f"# {title}",
        "",
        f"Generated: {generated_at.isoformat(timespec='seconds')}",
        "",
        "## Overview",
        "",
        f"- Added: {counts['added']}",
        f"- Removed: {counts['removed']}",
        f"- Changed: {counts['changed']}",
        "",
    ]

    breakdown = mode_breakdown(diff, collections)
    if breakdown:
        lines.extend(["## Changes per mode", ""])
        for label, count in breakdown.items():
            lines.append(f"- {label}: {count}")
        lines.append("")

    if diff.added:
        lines.extend(["## Added variables", ""])
        lines.extend(f"- `{v.qualified_name}` ({v.type.value})" for v in diff.added)
        lines.append("")

    if diff.removed:
        lines.extend(["## Removed variables", ""])
        lines.extend(f"- `{v.qualified_name}` ({v.type.value})" for v in diff.removed)
        lines.append("")

    if impacts:
        lines.extend(["## Components affected", ""])
        for impact in impacts:
            lines.append(
                f"### {impact.component_name} ({impact.node_count} nodes, "
                f"{impact.level.value} impact)"
            )
            lines.append("")
            grouped = impact.changes_by_category()
            for category in CATEGORY_ORDER:
                changes = grouped[category]
                if not changes:
                    continue
                lines.append(f"**{CATEGORY_LABELS[category]}**")
                for change in changes:
                    if change.change_type == "removed":
                        lines.append(f"- **{change.variable_name}** (removed): {change.old_value}")
                    else:
                        lines.append(
                            f"- **{change.variable_name}**: {change.old_value} → {change.new_value}"
                        )
                lines.append("")
            lines.append("---")
            lines.append("")

    return "\n".join(lines).rstrip() + "\n"
