"""
Rule Executor

Runs selected rules against a card and aggregates the failures into a
Verdict. Every rule runs; users get the full list in one notification.
"""

import logging
from dataclasses import dataclass, field
from typing import List, Optional, Sequence

from ..common.schemas.card import Card
from ..common.schemas.templates import RULE_ERROR_MESSAGE
from .rules import RULES, RuleContext, RuleName, RuleResult, RuleSettings

logger = logging.getLogger("cardwatch.validator.executor")


@dataclass
class Verdict:
    """Aggregated outcome; valid iff nothing failed"""
    failures: List[RuleResult] = field(default_factory=list)
    evaluated: List[RuleName] = field(default_factory=list)

    @property
    def valid(self) -> bool:
        return not self.failures

    @property
    def messages(self) -> List[str]:
        return [result.message for result in self.failures]


class RuleExecutor:
    """
    Executes rules from the static RULES table.

    A rule that raises is a defect: it is logged with its traceback and
    counted as a failure with a generic message, so the verdict still
    reflects every other rule.
    """

    def __init__(self, settings: Optional[RuleSettings] = None):
        self._settings = settings or RuleSettings()

    @property
    def settings(self) -> RuleSettings:
        return self._settings

    def execute(
        self,
        card: Card,
        rules: Sequence[RuleName],
        context: Optional[RuleContext] = None,
    ) -> Verdict:
        """
        Run rules in order and collect failures.

        Args:
            card: Card snapshot
            rules: Rule names in selection order
            context: Event data for context-dependent rules

        Returns:
            Verdict with failures in selection order
        """
        context = context or RuleContext()
        verdict = Verdict()

        for rule in rules:
            verdict.evaluated.append(rule)
            try:
                result = RULES[rule](card, context, self._settings)
            except Exception:
                logger.exception("Rule %s raised for card %s", rule.value, card.id)
                result = RuleResult(
                    rule=rule,
                    passed=False,
                    message=RULE_ERROR_MESSAGE.format(rule=rule.value),
                )

            if not result.passed:
                verdict.failures.append(result)

        logger.debug(
            "Card %s: %d/%d rules failed",
            card.id, len(verdict.failures), len(verdict.evaluated),
        )
        return verdict
