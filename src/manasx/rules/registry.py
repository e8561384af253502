"""Registry mapping full rule ids to evaluator functions.

Evaluators are pure functions ``(content, file_path, rule, profile) -> list[Violation]``.
New rules are added by decorating a function with :func:`register`; nothing
else in the engine has to change.
"""

import logging
from collections.abc import Callable, Iterator
from typing import Optional

from ..models import PatternProfile, Rule, Violation

logger = logging.getLogger(__name__)

RuleEvaluator = Callable[[str, str, Rule, Optional[PatternProfile]], list[Violation]]


class RuleRegistry:
    """Maps ``category/ruleId`` to the evaluator that implements it."""

    def __init__(self, evaluators: Optional[dict[str, RuleEvaluator]] = None):
        self._evaluators: dict[str, RuleEvaluator] = dict(evaluators or {})

    def register(self, rule_id: str, evaluator: RuleEvaluator) -> None:
        """Register an evaluator, replacing any previous one for ``rule_id``."""
        if rule_id in self._evaluators:
            logger.debug(f"Replacing evaluator for rule: {rule_id}")
        self._evaluators[rule_id] = evaluator
        logger.debug(f"Registered evaluator for rule: {rule_id}")

    def unregister(self, rule_id: str) -> bool:
        return self._evaluators.pop(rule_id, None) is not None

    def get(self, rule_id: str) -> Optional[RuleEvaluator]:
        return self._evaluators.get(rule_id)

    def rule_ids(self) -> list[str]:
        return list(self._evaluators)

    def copy(self) -> "RuleRegistry":
        return RuleRegistry(self._evaluators)

    def __contains__(self, rule_id: object) -> bool:
        return rule_id in self._evaluators

    def __iter__(self) -> Iterator[str]:
        return iter(self._evaluators)

    def __len__(self) -> int:
        return len(self._evaluators)


default_registry = RuleRegistry()


def register(*rule_ids: str, registry: Optional[RuleRegistry] = None):
    """Decorator registering an evaluator under one or more rule ids.

    Example:
        @register("security/no-eval")
        def no_eval(content, file_path, rule, profile):
            ...
    """
    target = registry if registry is not None else default_registry

    def decorator(func: RuleEvaluator) -> RuleEvaluator:
        for rule_id in rule_ids:
            target.register(rule_id, func)
        return func

    return decorator
