"""
Aplicación de change-sets sobre el documento vivo.
"""
from .applier import (
    Applier,
    ApplyResult,
    alias_chain,
    build_alias_graph,
    is_dangling,
)

__all__ = [
    "Applier",
    "ApplyResult",
    "alias_chain",
    "build_alias_graph",
    "is_dangling",
]
