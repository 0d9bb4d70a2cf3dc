"""
Utilidades de serialización: JSON canónico para baselines y valores
compatibles con Neo4j.
"""
import json
from typing import Any, Dict, List


def canonical_json(data: Any) -> str:
    """
    Serializa a JSON determinista (claves ordenadas, indentación fija).

    Dos llamadas con la misma estructura producen exactamente los mismos bytes,
    lo que mantiene limpios los diffs del baseline en control de versiones.

    Args:
        data: Estructura JSON-serializable

    Returns:
        Texto JSON terminado en salto de línea
    """
    return json.dumps(data, indent=2, sort_keys=True, ensure_ascii=False) + "\n"


def serialize_for_neo4j(value: Any) -> Any:
    """
    Convierte valores de Python a tipos compatibles con Neo4j.

    Neo4j no puede almacenar mapas anidados, así que se convierten a JSON.
    Las listas de primitivos se mantienen como listas.

    Args:
        value: Valor Python a convertir

    Returns:
        Valor compatible con Neo4j
    """
    if value is None:
        return None
    elif isinstance(value, dict):
        return json.dumps(value, sort_keys=True)
    elif isinstance(value, (list, tuple)):
        if all(isinstance(item, (str, int, float, bool)) for item in value):
            return list(value)
        return json.dumps(list(value), sort_keys=True)
    elif isinstance(value, (bool, int, float, str)):
        return value
    else:
        return str(value)


def prepare_batch_for_neo4j(items: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """
    Prepara un batch de items para inserción en Neo4j.

    Args:
        items: Lista de diccionarios con datos

    Returns:
        Lista de diccionarios con valores serializados
    """
    return [
        {key: serialize_for_neo4j(value) for key, value in item.items()}
        for item in items
    ]
