"""Tests de configuración y logging."""
import logging
import sys

from config import Config
from src.utils.logger import set_global_level, setup_logger
from src.utils.serialization import canonical_json


def test_policy_thresholds():
    assert Config.IMPACT_HIGH_THRESHOLD == 10
    assert Config.IMPACT_MEDIUM_THRESHOLD == 3
    assert Config.IMPACT_MEDIUM_THRESHOLD < Config.IMPACT_HIGH_THRESHOLD


def test_logger_writes_to_stderr_once():
    logger = setup_logger("tests.logger")
    again = setup_logger("tests.logger")
    assert logger is again
    assert len(logger.handlers) == 1
    assert isinstance(logger.handlers[0], logging.StreamHandler)
    assert logger.handlers[0].stream is not sys.stdout
    assert logger.level == logging.WARNING


def test_global_level_applies_to_registered_loggers():
    logger = setup_logger("tests.verbose")
    set_global_level(logging.INFO)
    try:
        assert logger.level == logging.INFO
    finally:
        set_global_level(logging.WARNING)


def test_canonical_json_is_stable():
    assert canonical_json({"b": 1, "a": [2]}) == canonical_json({"a": [2], "b": 1})
    assert canonical_json({}).endswith("\n")
