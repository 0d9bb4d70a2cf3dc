"""
Tipos de mensaje del protocolo con el documento.
"""
from enum import Enum


class MessageType(str, Enum):
    """Pares request/response que entiende el bridge del documento."""

    # {} -> {variables, collectionsInfo}
    EXTRACT_VARIABLES = "async/extract-variables"
    # {query?, pageScope} -> {variables: [UsageEntry], textStyles: [UsageEntry]}
    SCAN_USAGE = "async/scan-usage"
    # {variableId, modeId, type, value} -> {variableId, name}
    SET_VARIABLE_VALUE = "async/set-variable-value"
    # {variableName, collectionId, type} -> {variableId}
    CREATE_VARIABLE = "async/create-variable"
    # {fromVariableId, toVariableId, nodeIds?} -> {remapped}
    REBIND_NODES = "async/rebind-nodes"
    # {ids} (fire-and-forget)
    SELECT_NODES = "async/select-nodes"


class PageScope(str, Enum):
    CURRENT_PAGE = "current"
    ALL_PAGES = "all"
