"""
Logging estructurado para el motor de variables.

Los módulos del motor escriben en stderr para no mezclarse con la salida
de la CLI (tablas rich o JSON en stdout).
"""
import logging
import sys
from pathlib import Path

LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# Loggers creados con setup_logger, para poder cambiar su nivel en bloque
_registered = set()


def setup_logger(
    name: str,
    level: int = logging.WARNING,
    log_file: Path = None
) -> logging.Logger:
    """
    Configura un logger con formato estructurado.

    Args:
        name: Nombre del logger (normalmente __name__ del módulo)
        level: Nivel de logging (WARNING por defecto para no interferir con rich)
        log_file: Ruta opcional al archivo de log

    Returns:
        Logger configurado
    """
    logger = logging.getLogger(name)
    _registered.add(name)

    # Evitar duplicar handlers si ya existe
    if logger.handlers:
        return logger

    logger.setLevel(level)
    formatter = logging.Formatter(fmt=LOG_FORMAT, datefmt=DATE_FORMAT)

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    if log_file:
        file_handler = logging.FileHandler(log_file)
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    return logger


def set_global_level(level: int):
    """
    Cambia el nivel de todos los loggers registrados (p.ej. con --verbose).

    Args:
        level: Nuevo nivel de logging
    """
    for name in _registered:
        logging.getLogger(name).setLevel(level)
