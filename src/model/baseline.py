"""
Lectura y escritura del archivo baseline (array JSON de variables).
"""
import json
from pathlib import Path
from typing import Any, Iterable, List, Tuple

from ..utils.logger import setup_logger
from ..utils.serialization import canonical_json
from .variable import Collection, Variable

logger = setup_logger(__name__)


def parse_variables(records: Iterable[Any]) -> Tuple[List[Variable], List[str]]:
    """
    Convierte registros JSON en variables, descartando los inválidos.

    Args:
        records: Registros tal como vienen del baseline o del documento

    Returns:
        Tupla (variables válidas, advertencias por registro descartado)
    """
    variables = []
    warnings = []

    for position, record in enumerate(records):
        try:
            variables.append(Variable.from_dict(record))
        except (ValueError, TypeError, KeyError) as e:
            message = f"Registro {position} descartado: {e}"
            warnings.append(message)
            logger.warning(message)

    return variables, warnings


def load_baseline(text: str) -> Tuple[List[Variable], List[str]]:
    """
    Parsea el contenido de un archivo baseline.

    Un texto vacío es un baseline vacío (primer commit de la rama). Un texto
    que no es JSON, o que no es un array de variables, también se trata como
    baseline vacío y se reporta como advertencia.

    Args:
        text: Contenido del archivo

    Returns:
        Tupla (variables, advertencias)
    """
    if not text or not text.strip():
        return [], []

    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        return _unusable_baseline(f"Baseline con JSON inválido, se usa vacío: {e}")

    # El documento también exporta {variables, collectionsInfo}
    if isinstance(data, dict) and isinstance(data.get("variables"), list):
        data = data["variables"]

    if not isinstance(data, list):
        return _unusable_baseline("El baseline no es un array JSON de variables, se usa vacío")

    return parse_variables(data)


def _unusable_baseline(message: str) -> Tuple[List[Variable], List[str]]:
    logger.warning(message)
    return [], [message]



def load_baseline_file(path: Path) -> Tuple[List[Variable], List[str]]:
    """
    Lee un baseline desde disco.

    Args:
        path: Ruta al archivo JSON

    Returns:
        Tupla (variables, advertencias)
    """
    return load_baseline(Path(path).read_text(encoding="utf-8"))


def dump_baseline(variables: Iterable[Variable]) -> str:
    """
    Serializa variables al formato baseline de forma determinista.

    Args:
        variables: Variables a serializar

    Returns:
        Texto JSON (orden estable por colección, nombre e id)
    """
    ordered = sorted(
        variables,
        key=lambda v: (v.collection_name, v.name, v.id),
    )
    return canonical_json([variable.to_dict() for variable in ordered])


def load_collections(records: Any) -> Tuple[List[Collection], List[str]]:
    """
    Parsea el bloque collectionsInfo del documento.

    Args:
        records: Lista de colecciones en formato JSON

    Returns:
        Tupla (colecciones, advertencias)
    """
    collections = []
    warnings = []

    if not isinstance(records, list):
        return collections, ["collectionsInfo no es una lista"]

    for position, record in enumerate(records):
        if not isinstance(record, dict) or not record.get("id"):
            message = f"Colección {position} descartada: falta el id"
            warnings.append(message)
            logger.warning(message)
            continue
        collections.append(Collection.from_dict(record))

    return collections, warnings
