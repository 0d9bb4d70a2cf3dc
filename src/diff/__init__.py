"""
Comparación de snapshots de variables.
"""
from .comparator import values_equal
from .diff_engine import DiffEngine, DiffResult, VariableChange, diff_variables, has_drift

__all__ = [
    "values_equal",
    "DiffEngine",
    "DiffResult",
    "VariableChange",
    "diff_variables",
    "has_drift",
]
