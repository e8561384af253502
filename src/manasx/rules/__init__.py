"""Organizational rule engine."""

from . import builtin  # noqa: F401  registers the built-in evaluators
from .defaults import VALID_CATEGORIES, default_configuration, initial_configuration
from .engine import (
    DEFAULT_RULES_FILE,
    RuleEngine,
    file_matches,
    find_config_file,
    validate_configuration,
)
from .registry import RuleEvaluator, RuleRegistry, default_registry, register

__all__ = [
    "DEFAULT_RULES_FILE",
    "RuleEngine",
    "RuleEvaluator",
    "RuleRegistry",
    "VALID_CATEGORIES",
    "default_configuration",
    "default_registry",
    "file_matches",
    "find_config_file",
    "initial_configuration",
    "register",
    "validate_configuration",
]
