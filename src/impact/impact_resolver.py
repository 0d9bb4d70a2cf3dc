"""
Resolución de impacto: qué componentes se ven afectados por un diff.
"""
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Iterable, List, Optional, Set, Tuple

from config import Config
from ..diff.diff_engine import DiffResult, VariableChange
from ..model.values import VariableType
from ..model.variable import Variable
from ..usage.usage_index import UsageIndex
from ..utils.logger import setup_logger
from .formatting import build_variable_name_map, format_value

logger = setup_logger(__name__)

TYPOGRAPHY_HINTS = ("font", "typography", "text", "line-height", "lineheight", "letter")
SPACING_HINTS = ("spacing", "space", "gap", "padding", "margin", "size", "radius", "border")


class ChangeCategory(str, Enum):
    """Categoría del cambio; solo agrupa el resumen, no afecta la corrección."""

    COLOR = "color"
    TYPOGRAPHY = "typography"
    SPACING = "spacing"
    OTHER = "other"


CATEGORY_ORDER = (
    ChangeCategory.COLOR,
    ChangeCategory.TYPOGRAPHY,
    ChangeCategory.SPACING,
    ChangeCategory.OTHER,
)

CATEGORY_LABELS = {
    ChangeCategory.COLOR: "Colors",
    ChangeCategory.TYPOGRAPHY: "Typography",
    ChangeCategory.SPACING: "Spacing & Layout",
    ChangeCategory.OTHER: "Other",
}


class ImpactLevel(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


def categorize(variable: Variable) -> ChangeCategory:
    """
    Deriva la categoría a partir del tipo y de los nombres de variable y
    colección (font-size cae en tipografía antes que en espaciado).

    Args:
        variable: Variable afectada

    Returns:
        ChangeCategory
    """
    if variable.type == VariableType.COLOR:
        return ChangeCategory.COLOR

    haystack = f"{variable.collection_name} {variable.name}".lower()

    if variable.type in (VariableType.NUMBER, VariableType.STRING):
        if any(hint in haystack for hint in TYPOGRAPHY_HINTS):
            return ChangeCategory.TYPOGRAPHY
    if variable.type == VariableType.NUMBER:
        if any(hint in haystack for hint in SPACING_HINTS):
            return ChangeCategory.SPACING

    return ChangeCategory.OTHER


def impact_level(node_count: int) -> ImpactLevel:
    """
    Nivel de impacto según la cantidad de nodos distintos.

    Args:
        node_count: Nodos distintos afectados

    Returns:
        ImpactLevel (umbrales de política en Config)
    """
    if node_count >= Config.IMPACT_HIGH_THRESHOLD:
        return ImpactLevel.HIGH
    if node_count >= Config.IMPACT_MEDIUM_THRESHOLD:
        return ImpactLevel.MEDIUM
    return ImpactLevel.LOW


@dataclass
class ImpactChange:
    """Registro de cambio de una variable dentro de un componente."""

    variable_id: str
    variable_name: str
    collection_name: str
    change_type: str  # "modified" | "removed"
    var_type: str
    category: ChangeCategory
    old_value: str
    new_value: Optional[str] = None
    # modo -> (old, new) formateados, solo para los modos que difieren
    mode_values: Dict[str, Tuple[str, str]] = field(default_factory=dict)

    def to_dict(self) -> Dict:
        return {
            "variableId": self.variable_id,
            "variableName": self.variable_name,
            "collectionName": self.collection_name,
            "changeType": self.change_type,
            "varType": self.var_type,
            "category": self.category.value,
            "oldValue": self.old_value,
            "newValue": self.new_value,
            "modeValues": {m: list(pair) for m, pair in self.mode_values.items()},
        }


@dataclass
class ComponentImpact:
    """Impacto agregado sobre un componente."""

    component_name: str
    node_ids: List[str] = field(default_factory=list)
    changes: List[ImpactChange] = field(default_factory=list)
    is_unbound: bool = False
    _seen_nodes: Set[str] = field(default_factory=set, init=False, repr=False, compare=False)
    _seen_variables: Set[str] = field(default_factory=set, init=False, repr=False, compare=False)

    def __post_init__(self):
        self._seen_nodes = set(self.node_ids)
        self._seen_variables = {change.variable_id for change in self.changes}

    def add_nodes(self, node_ids: Iterable[str]):
        for node_id in node_ids:
            if node_id not in self._seen_nodes:
                self._seen_nodes.add(node_id)
                self.node_ids.append(node_id)

    def add_change(self, change: ImpactChange):
        """Un registro por variable; las repeticiones se ignoran."""
        if change.variable_id not in self._seen_variables:
            self._seen_variables.add(change.variable_id)
            self.changes.append(change)

    @property
    def node_count(self) -> int:
        return len(self.node_ids)

    @property
    def level(self) -> ImpactLevel:
        return impact_level(self.node_count)

    def changes_by_category(self) -> Dict[ChangeCategory, List[ImpactChange]]:
        groups = {category: [] for category in CATEGORY_ORDER}
        for change in self.changes:
            groups[change.category].append(change)
        return groups

    def to_dict(self) -> Dict:
        return {
            "componentName": self.component_name,
            "nodeCount": self.node_count,
            "nodeIds": list(self.node_ids),
            "impactLevel": self.level.value,
            "unbound": self.is_unbound,
            "changes": [change.to_dict() for change in self.changes],
        }


def _build_change(
    old: Variable, new: Optional[Variable], names: Dict[str, str]
) -> ImpactChange:
    mode_values = {}
    if new is not None:
        for mode_id in VariableChange(old=old, new=new).changed_modes():
            mode_values[mode_id] = (
                format_value(old.value_for(mode_id), names),
                format_value(new.value_for(mode_id), names),
            )

    if mode_values:
        old_text, new_text = next(iter(mode_values.values()))
    else:
        old_text = format_value(old.first_value(), names)
        new_text = format_value(new.first_value(), names) if new is not None else None

    return ImpactChange(
        variable_id=old.identity,
        variable_name=(new or old).name,
        collection_name=(new or old).collection_name,
        change_type="modified" if new is not None else "removed",
        var_type=old.type.value,
        category=categorize(new or old),
        old_value=old_text,
        new_value=new_text if new is not None else None,
        mode_values=mode_values,
    )


def resolve_impact(
    diff: DiffResult,
    index: UsageIndex,
    names: Dict[str, str] = None,
) -> List[ComponentImpact]:
    """
    Cruza el diff con el índice de uso y agrupa los cambios por componente.

    Solo participan variables Changed y Removed: nada puede depender aún
    de una variable añadida. Los componentes sin registros se descartan.

    Args:
        diff: Resultado del DiffEngine
        index: Índice de uso del documento
        names: Mapa id -> nombre para formatear alias (se deriva del diff
            si no se indica)

    Returns:
        Lista de ComponentImpact ordenada por nodos (desc) y nombre
    """
    if names is None:
        names = build_variable_name_map(
            diff.removed,
            [c.old for c in diff.changed],
            [c.new for c in diff.changed],
            diff.added,
        )

    affected: List[Tuple[Variable, Optional[Variable]]] = [
        (change.old, change.new) for change in diff.changed
    ]
    affected.extend((variable, None) for variable in diff.removed)

    impacts: Dict[str, ComponentImpact] = {}

    for old, new in affected:
        entries = index.entries_for(old.identity)
        if not entries and new is not None and new.identity != old.identity:
            entries = index.entries_for(new.identity)
        if not entries:
            continue

        record = _build_change(old, new, names)

        for entry in entries:
            impact = impacts.get(entry.component_name)
            if impact is None:
                impact = ComponentImpact(
                    component_name=entry.component_name,
                    is_unbound=entry.component_name == index.unbound_label,
                )
                impacts[entry.component_name] = impact

            impact.add_nodes(entry.node_ids)
            impact.add_change(record)

    result = [impact for impact in impacts.values() if impact.changes]
    result.sort(key=lambda impact: (-impact.node_count, impact.component_name))

    logger.info(f"Impacto: {len(result)} componentes afectados")
    return result


def total_impacted_nodes(impacts: List[ComponentImpact]) -> int:
    """Nodos distintos afectados en todos los componentes."""
    nodes = set()
    for impact in impacts:
        nodes.update(impact.node_ids)
    return len(nodes)

