"""Domain Scorer — rolls requirement checks up into a DomainValidation.

Every failed mandatory requirement becomes a CriticalFinding carrying its
regulatory implications and a default corrective action due within 24 hours.
"""

import math
from datetime import datetime, timedelta, timezone
from typing import Any, Mapping, Optional, Union

from dohcompliance.standards.models import ComplianceThresholds, Requirement
from dohcompliance.standards.reference_data import (
    CORRECTIVE_ACTION_DUE_HOURS,
    CRITICAL_FINDING_IMMEDIATE_ACTIONS,
    CRITICAL_FINDING_PREVENTIVE_MEASURES,
    DOMAIN_EXCELLENCE_TARGET,
)
from dohcompliance.validators.models import (
    ComplianceStatus,
    CorrectiveAction,
    CriticalFinding,
    DomainValidation,
    RegulatoryImplications,
)
from dohcompliance.validators.requirement_evaluator import RequirementEvaluator
from dohcompliance.validators.rules import FormSnapshot


def percentage_of(score: float, max_score: float) -> int:
    """Integer percentage, halves rounded up; 0 when there is nothing to score."""
    if max_score <= 0:
        return 0
    return int(math.floor(score / max_score * 100 + 0.5))


def domain_display_name(domain_key: str) -> str:
    """'documentation_standards' → 'Documentation Standards'."""
    return " ".join(word[:1].upper() + word[1:] for word in domain_key.split("_") if word)


def build_critical_finding(domain_key: str, requirement: Requirement, now: datetime) -> CriticalFinding:
    """Finding for a mandatory requirement that did not pass."""
    detected_at = now.isoformat()
    return CriticalFinding(
        finding_id=f"{requirement.id}_CRITICAL",
        domain=domain_key,
        title=f"Critical Requirement Not Met: {requirement.title}",
        description=requirement.description,
        impact="Non-compliance with mandatory DOH requirement",
        immediate_actions=list(CRITICAL_FINDING_IMMEDIATE_ACTIONS),
        corrective_actions=[
            CorrectiveAction(
                action_id=f"{requirement.id}_ACTION",
                description=f"Complete {requirement.title}",
                due_date=(now + timedelta(hours=CORRECTIVE_ACTION_DUE_HOURS)).isoformat(),
            )
        ],
        regulatory_implications=RegulatoryImplications(),
        evidence=sorted(requirement.evidence_required),
        preventive_measures=list(CRITICAL_FINDING_PREVENTIVE_MEASURES),
        detected_at=detected_at,
    )


class DomainScorer:
    """Scores one domain at a time."""

    def __init__(
        self,
        evaluator: Optional[RequirementEvaluator] = None,
        thresholds: Optional[ComplianceThresholds] = None,
    ):
        self.evaluator = evaluator or RequirementEvaluator()
        self.thresholds = thresholds or ComplianceThresholds()

    def score_domain(
        self,
        domain_key: str,
        requirements: list[Requirement],
        form_data: Union[FormSnapshot, Mapping[str, Any], None],
        now: Optional[datetime] = None,
    ) -> DomainValidation:
        """Evaluate every requirement of a domain and derive its status.

        Args:
            domain_key: Catalog domain key (e.g. "clinical_care")
            requirements: The domain's requirements, in catalog order
            form_data: Submitted form data
            now: Timestamp to stamp findings with (defaults to current UTC time)

        Returns:
            DomainValidation with score, percentage, status, checks and findings
        """
        now = now or datetime.now(timezone.utc)
        form = form_data if isinstance(form_data, FormSnapshot) else FormSnapshot(form_data)
        domain_name = domain_display_name(domain_key)

        domain_score = 0
        max_domain_score = 0
        checks = []
        critical_findings: list[CriticalFinding] = []

        for requirement in requirements:
            check = self.evaluator.evaluate(requirement, form)
            checks.append(check)
            domain_score += check.score
            max_domain_score += check.max_score
            if not check.passed and requirement.mandatory:
                critical_findings.append(build_critical_finding(domain_key, requirement, now))

        percentage = percentage_of(domain_score, max_domain_score)

        if critical_findings:
            status = ComplianceStatus.NON_COMPLIANT
        elif percentage < self.thresholds.satisfactory:
            status = ComplianceStatus.PARTIAL
        else:
            status = ComplianceStatus.COMPLIANT

        recommendations: list[str] = []
        if percentage < DOMAIN_EXCELLENCE_TARGET:
            recommendations.append(f"Improve {domain_name} compliance to achieve excellence")
        if critical_findings:
            recommendations.append(f"Address critical findings in {domain_name} immediately")

        return DomainValidation(
            domain=domain_key,
            domain_name=domain_name,
            score=domain_score,
            max_score=max_domain_score,
            percentage=percentage,
            status=status,
            validation_checks=checks,
            critical_findings=critical_findings,
            recommendations=recommendations,
            last_validated=now.isoformat(),
        )
