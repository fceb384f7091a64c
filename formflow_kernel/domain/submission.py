"""
Submission validation for one stage of an entry.

Validation walks every visible field of the acting stage (a section or field
whose visibility condition is false is skipped entirely) and, for each of the
field's rules in order whose ``rule_condition`` holds, runs the rule's
constraint.  One violation is collected per failing rule; nothing stops at
the first error.  The transition's own guard condition is checked last.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import Any

from formflow_kernel.domain.conditions import ConditionEvaluator
from formflow_kernel.domain.dtos import FieldRuleViolation, StageView, TransitionView
from formflow_kernel.domain.input_rules import (
    InputRuleRegistry,
    default_input_rule_registry,
    normalize_props,
)
from formflow_kernel.logging_config import get_logger

logger = get_logger("domain.submission")

TRANSITION_CONDITION_RULE = "transition_condition"
NO_ELIGIBLE_TRANSITION_RULE = "no_eligible_transition"


class SubmissionValidator:
    """Collects rule violations for a stage submission."""

    def __init__(
        self,
        evaluator: ConditionEvaluator | None = None,
        rules: InputRuleRegistry | None = None,
    ):
        self._evaluator = evaluator or ConditionEvaluator()
        self._rules = rules or default_input_rule_registry()

    def visible_field_ids(self, stage: StageView, values: Mapping[str, Any]) -> set[str]:
        visible: set[str] = set()
        for section in stage.sections:
            if not self._evaluator.evaluate(section.visibility_condition, values):
                continue
            for f in section.fields:
                if self._evaluator.evaluate(f.visibility_condition, values):
                    visible.add(str(f.id))
        return visible

    def validate(
        self,
        stage: StageView,
        values: Mapping[str, Any],
        transition: TransitionView | None = None,
    ) -> list[FieldRuleViolation]:
        """
        Validate ``values`` (the entry's merged values, keyed by field id
        text) for ``stage`` and, if given, the transition being taken.
        """
        violations: list[FieldRuleViolation] = []
        visible = self.visible_field_ids(stage, values)

        for f in stage.fields:
            if str(f.id) not in visible:
                continue
            value = values.get(str(f.id))
            for rule in f.rules:
                if not self._evaluator.evaluate(rule.rule_condition, values):
                    continue
                check = self._rules.get(rule.input_rule_code)
                if check is None:
                    logger.warning(
                        "input_rule_no_validator",
                        extra={"rule_code": rule.input_rule_code, "field_id": str(f.id)},
                    )
                    continue
                message = check(value, normalize_props(rule.rule_props))
                if message is not None:
                    violations.append(
                        FieldRuleViolation(
                            field_id=f.id,
                            rule_code=rule.input_rule_code,
                            message=message,
                        )
                    )

        if transition is not None and not self._evaluator.evaluate(transition.condition, values):
            violations.append(
                FieldRuleViolation(
                    field_id=None,
                    rule_code=TRANSITION_CONDITION_RULE,
                    message=f"The conditions for '{transition.label}' are not met.",
                )
            )
        return violations

    def select_transition(
        self,
        transitions: Sequence[TransitionView],
        values: Mapping[str, Any],
    ) -> TransitionView | None:
        """First transition, in declared order, whose condition holds."""
        for transition in transitions:
            if self._evaluator.evaluate(transition.condition, values):
                return transition
        return None
