"""
Índice de uso de variables en el documento.
"""
from .usage_index import (
    NodeBinding,
    UsageEntry,
    UsageIndex,
    bindings_from_records,
    build_index,
    index_from_scan_response,
)

__all__ = [
    "NodeBinding",
    "UsageEntry",
    "UsageIndex",
    "bindings_from_records",
    "build_index",
    "index_from_scan_response",
]
