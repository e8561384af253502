"""Rule engine: load organizational rules and apply them to file content."""

import json
import logging
import os
from datetime import datetime
from pathlib import Path
from typing import Any, Optional

from pydantic import ValidationError

from ..errors import ConfigurationError
from ..models import (
    CANONICAL_RULE_SEVERITIES,
    PatternProfile,
    Rule,
    RuleConfig,
    RuleException,
    Violation,
)
from .defaults import VALID_CATEGORIES, default_configuration, initial_configuration
from .registry import RuleRegistry, default_registry

logger = logging.getLogger(__name__)

DEFAULT_RULES_FILE = "manasx-rules.json"


def find_config_file(file_name: str, start_dir: Optional[str | Path] = None) -> Optional[Path]:
    """Locate ``file_name`` in ``start_dir`` or any of its ancestors.

    Absolute paths are checked directly. The filesystem root is included in
    the search.
    """
    candidate = Path(file_name)
    if candidate.is_absolute():
        return candidate if candidate.is_file() else None

    current = Path(start_dir or os.getcwd()).resolve()
    while True:
        path = current / file_name
        if path.is_file():
            return path
        if current.parent == current:
            return None
        current = current.parent


def validate_configuration(data: Any) -> RuleConfig:
    """Check required sections and build a :class:`RuleConfig`.

    Raises:
        ConfigurationError: If a required section or metadata field is missing
    """
    if not isinstance(data, dict):
        raise ConfigurationError("Rule configuration must be a JSON object")

    for section in ("metadata", "rules"):
        if not data.get(section):
            raise ConfigurationError(f"Missing required section: {section}")
    if not isinstance(data["metadata"], dict) or not isinstance(data["rules"], dict):
        raise ConfigurationError("Sections 'metadata' and 'rules' must be objects")

    for field in ("version", "name"):
        if not data["metadata"].get(field):
            raise ConfigurationError(f"Missing required metadata field: {field}")

    for category in data["rules"]:
        if category not in VALID_CATEGORIES:
            logger.warning(f"Unknown rule category: {category}")

    try:
        return RuleConfig.model_validate(data)
    except ValidationError as e:
        raise ConfigurationError(f"Invalid rule configuration: {e}") from e


def file_matches(pattern: Optional[str], file_path: str) -> bool:
    """Exception file matching: ``*``, exact text, or a ``dir/*`` prefix."""
    if pattern is None or pattern == "*" or pattern == file_path:
        return True
    if pattern.endswith("/*"):
        return file_path.startswith(pattern[:-1])
    return False


def rule_matches(pattern: Optional[str], rule_id: str) -> bool:
    return pattern is None or pattern == "*" or pattern == rule_id


class RuleEngine:
    """Loads a rule configuration and evaluates its enabled rules."""

    def __init__(
        self,
        registry: Optional[RuleRegistry] = None,
        root_dir: Optional[str | Path] = None,
    ):
        self.registry = registry if registry is not None else default_registry
        self.root_dir = Path(root_dir) if root_dir else Path(os.getcwd())
        self.config: Optional[RuleConfig] = None
        self.config_path: Optional[Path] = None
        self.rules: dict[str, Rule] = {}
        self.exceptions: list[RuleException] = []
        self.history: list[dict[str, Any]] = []
        self._declared_severities: dict[str, Any] = {}

    def load(
        self,
        config_path: str | Path = DEFAULT_RULES_FILE,
        start_dir: Optional[str | Path] = None,
    ) -> RuleConfig:
        """Load rules from ``config_path``, searching upward from ``start_dir``.

        Args:
            config_path: File name or absolute path of the rule configuration
            start_dir: Directory the upward search starts from (default cwd)

        Returns:
            The active configuration; the built-in default when no file is found

        Raises:
            ConfigurationError: If a file is found but cannot be parsed or validated
        """
        resolved = find_config_file(str(config_path), start_dir)
        if resolved is None:
            logger.warning(f"No rule configuration found at {config_path}. Using default rules.")
            config = default_configuration()
            self.config_path = None
        else:
            try:
                with open(resolved, encoding="utf-8") as f:
                    data = json.load(f)
            except (OSError, json.JSONDecodeError) as e:
                raise ConfigurationError(f"Cannot read rule configuration {resolved}: {e}") from e
            config = validate_configuration(data)
            self.config_path = resolved
            logger.info(f"Rules loaded from {resolved}")

        self.apply_config(config)
        return config

    def apply_config(self, config: RuleConfig) -> None:
        """Replace the active rules with those resolved from ``config``."""
        self.config = config
        self.rules = {}
        self._declared_severities = {}
        global_severity = config.global_settings.severity or "medium"

        for category, category_config in config.rules.items():
            if not category_config.enabled:
                logger.info(f"Category {category} is disabled")
                continue

            for rule_id, definition in category_config.rules.items():
                full_id = f"{category}/{rule_id}"
                declared = definition.severity or global_severity
                self._declared_severities[full_id] = declared
                self.rules[full_id] = Rule(
                    id=full_id,
                    category=category,
                    name=definition.name or rule_id,
                    description=definition.description,
                    severity=declared,
                    enabled=definition.enabled,
                    parameters=definition.parameters,
                    message=definition.message,
                )
                if full_id not in self.registry:
                    logger.warning(f"No evaluator registered for rule {full_id}; it will not run")

        self.exceptions = list(config.exceptions)
        self.history.append(
            {
                "timestamp": datetime.now().isoformat(),
                "version": config.metadata.version,
                "rulesCount": len(self.rules),
            }
        )

    def create_initial_config(
        self, path: str | Path = DEFAULT_RULES_FILE, author: Optional[str] = None
    ) -> RuleConfig:
        """Write the starter configuration to ``path``, overwriting it.

        Args:
            path: Destination file
            author: Recorded author, defaults to ``$USER``

        Returns:
            The configuration that was written
        """
        config = initial_configuration(author)
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w", encoding="utf-8") as f:
            json.dump(config.to_json_dict(exclude_none=True), f, indent=2)
        logger.info(f"Initial configuration created at {path}")
        return config

    def validate_rules(self) -> dict[str, list[str]]:
        """Report rule definitions that are incomplete or malformed."""
        errors: list[str] = []
        warnings: list[str] = []

        for rule_id, rule in self.rules.items():
            if not rule.name or not rule.description:
                warnings.append(f"Rule {rule_id} is missing name or description")

            declared = self._declared_severities.get(rule_id, rule.severity.value)
            if declared not in CANONICAL_RULE_SEVERITIES:
                errors.append(f"Rule {rule_id} has invalid severity: {declared}")

        return {"errors": errors, "warnings": warnings}

    def get_rule(self, rule_id: str) -> Optional[Rule]:
        return self.rules.get(rule_id)

    def get_rules_by_category(self, category: str) -> list[Rule]:
        return [rule for rule in self.rules.values() if rule.category == category]

    def is_rule_enabled(self, rule_id: str) -> bool:
        rule = self.rules.get(rule_id)
        return bool(rule and rule.enabled)

    def relative_path(self, file_path: str | Path) -> str:
        """Path used for reporting and exception matching, with forward slashes."""
        path = Path(file_path)
        if path.is_absolute():
            return Path(os.path.relpath(path, self.root_dir)).as_posix()
        return path.as_posix()

    def has_exception(self, file_path: str, rule_id: str) -> bool:
        return any(
            file_matches(exception.file, file_path) and rule_matches(exception.rule, rule_id)
            for exception in self.exceptions
        )

    def apply_rules(
        self,
        file_path: str | Path,
        content: str,
        profile: Optional[PatternProfile] = None,
    ) -> list[Violation]:
        """Run every enabled, non-excepted rule against ``content``.

        A failing evaluator is logged and skipped; the remaining rules still run.
        """
        relative = self.relative_path(file_path)
        violations: list[Violation] = []

        for rule_id, rule in self.rules.items():
            if not rule.enabled or self.has_exception(relative, rule_id):
                continue

            evaluator = self.registry.get(rule_id)
            if evaluator is None:
                continue

            try:
                violations.extend(evaluator(content, relative, rule, profile))
            except Exception as e:
                logger.warning(f"Error executing rule {rule_id} on {relative}: {e}", exc_info=True)

        return violations
