"""DOH compliance validator — deterministic rules engine over clinical form data.

Usage:
    from dohcompliance.validators import ComplianceValidationEngine

    result = ComplianceValidationEngine().validate(form_data, "fall_risk_assessment")
    if result.overall_status == "non_compliant":
        # Escalate result.critical_findings
"""

from dohcompliance.validators.domain_scorer import DomainScorer, domain_display_name, percentage_of
from dohcompliance.validators.engine import (
    ComplianceValidationEngine,
    RunState,
    ValidationCancelledError,
    ValidationRun,
    compliance_grade,
)
from dohcompliance.validators.history import ValidationHistory, ValidationMetrics
from dohcompliance.validators.models import (
    ComplianceStatus,
    CriticalFinding,
    DomainValidation,
    RequirementCheckResult,
    Severity,
    ValidationResult,
)
from dohcompliance.validators.requirement_evaluator import RequirementEvaluator
from dohcompliance.validators.rules import BaseRule, FormSnapshot, RuleRegistry

__all__ = [
    "ComplianceValidationEngine",
    "RunState",
    "ValidationRun",
    "ValidationCancelledError",
    "compliance_grade",
    "DomainScorer",
    "domain_display_name",
    "percentage_of",
    "RequirementEvaluator",
    "RuleRegistry",
    "BaseRule",
    "FormSnapshot",
    "ValidationHistory",
    "ValidationMetrics",
    "ValidationResult",
    "DomainValidation",
    "CriticalFinding",
    "RequirementCheckResult",
    "ComplianceStatus",
    "Severity",
]
