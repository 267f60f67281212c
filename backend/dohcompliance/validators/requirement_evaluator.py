"""Requirement Evaluator — runs one requirement's rules against form data.

A requirement passes only if every one of its rules passes. Scoring is
all-or-nothing: full marks or zero, never partial credit.
"""

from typing import Any, Mapping, Optional, Union

import structlog

from dohcompliance.standards.models import Requirement
from dohcompliance.standards.reference_data import REQUIREMENT_MAX_SCORE
from dohcompliance.validators.models import RequirementCheckResult
from dohcompliance.validators.rules import FormSnapshot, RuleRegistry

logger = structlog.get_logger()


class RequirementEvaluator:
    """Evaluates requirements rule by rule, in the order the catalog lists them."""

    def __init__(self, registry: Optional[RuleRegistry] = None, max_score: int = REQUIREMENT_MAX_SCORE):
        self.registry = registry or RuleRegistry()
        self.max_score = max_score

    def evaluate(
        self,
        requirement: Requirement,
        form_data: Union[FormSnapshot, Mapping[str, Any], None],
    ) -> RequirementCheckResult:
        """Evaluate a requirement.

        Args:
            requirement: Requirement from the standards catalog
            form_data: Submitted form data (raw mapping or a FormSnapshot)

        Returns:
            RequirementCheckResult with pass/fail, score, evidence and remediation
        """
        form = form_data if isinstance(form_data, FormSnapshot) else FormSnapshot(form_data)

        passed = True
        evidence: list[str] = []
        recommendations: list[str] = []

        for rule_name in requirement.validation_rules:
            rule = self.registry.get(rule_name)
            try:
                outcome = rule.check(form)
            except Exception as e:
                # Malformed data in one field must not abort the run
                logger.warning(
                    "rule_evaluation_failed",
                    rule=rule_name,
                    requirement_id=requirement.id,
                    error=str(e),
                )
                passed = False
                recommendations.append(f"Rule {rule_name} could not be evaluated: {e}")
                continue

            if not outcome.passed:
                passed = False
            evidence.extend(outcome.evidence)
            recommendations.extend(outcome.recommendations)

        return RequirementCheckResult(
            requirement_id=requirement.id,
            check_name=requirement.title,
            description=requirement.description,
            required=requirement.mandatory,
            passed=passed,
            score=self.max_score if passed else 0,
            max_score=self.max_score,
            evidence=evidence,
            recommendations=recommendations,
        )
