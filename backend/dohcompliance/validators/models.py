"""Validation models — statuses, findings, domain scores and the full result.

Everything here serializes to the camelCase JSON the UI consumes. A
ValidationResult is frozen once built; the engine assembles it in one go.
"""

from enum import Enum
from typing import Any, Literal, Optional

from pydantic import Field

from dohcompliance.models.base import CamelModel


class ComplianceStatus(str, Enum):
    """Overall or per-domain compliance status."""

    COMPLIANT = "compliant"
    PARTIAL = "partial"
    NON_COMPLIANT = "non_compliant"
    NOT_APPLICABLE = "not_applicable"


class Severity(str, Enum):
    """Issue severity levels."""

    CRITICAL = "critical"  # Mandatory DOH requirement not met
    HIGH = "high"
    MEDIUM = "medium"      # Optional requirement not met
    LOW = "low"


class TrendDirection(str, Enum):
    UP = "up"
    DOWN = "down"
    STABLE = "stable"


Grade = Literal["A", "B", "C", "D", "F"]


class RequirementCheckResult(CamelModel):
    """Outcome of evaluating one requirement's rules against form data."""

    requirement_id: str
    check_name: str = ""
    description: str = ""
    required: bool = False
    passed: bool
    score: int
    max_score: int = 20
    evidence: list[str] = Field(default_factory=list)
    recommendations: list[str] = Field(default_factory=list)


class CorrectiveAction(CamelModel):
    action_id: str
    description: str
    responsible: str = "assigned_clinician"
    due_date: str
    status: Literal["pending", "in_progress", "completed", "overdue"] = "pending"
    priority: Literal["immediate", "high", "medium", "low"] = "immediate"


class RegulatoryImplications(CamelModel):
    doh_reportable: bool = True
    jawda_impact: bool = True
    license_risk: bool = True
    accreditation_risk: bool = True


class CriticalFinding(CamelModel):
    """Raised exactly when a mandatory requirement fails."""

    finding_id: str
    finding_type: Literal["regulatory"] = "regulatory"
    severity: Literal["critical"] = "critical"
    domain: str
    title: str
    description: str
    impact: str
    risk_level: Literal["critical"] = "critical"
    immediate_actions: list[str] = Field(default_factory=list)
    corrective_actions: list[CorrectiveAction] = Field(default_factory=list)
    regulatory_implications: RegulatoryImplications = Field(default_factory=RegulatoryImplications)
    evidence: list[str] = Field(default_factory=list)
    preventive_measures: list[str] = Field(default_factory=list)
    detected_at: str
    detected_by: str = "validation_engine"


class DomainValidation(CamelModel):
    """Score, status and findings for one domain in one run."""

    domain: str
    domain_name: str
    score: int
    max_score: int
    percentage: int = Field(ge=0, le=100)
    status: ComplianceStatus
    validation_checks: list[RequirementCheckResult] = Field(default_factory=list)
    critical_findings: list[CriticalFinding] = Field(default_factory=list)
    recommendations: list[str] = Field(default_factory=list)
    last_validated: str
    validated_by: str = "validation_engine"


class ValidationIssue(CamelModel):
    """An error or warning the form component can show next to the form."""

    issue_id: str
    requirement_id: str
    domain: str
    severity: Severity
    message: str
    description: str = ""
    recommendations: list[str] = Field(default_factory=list)


class ComplianceScore(CamelModel):
    total: int
    max_total: int
    percentage: int = Field(ge=0, le=100)
    grade: Grade


class Recommendations(CamelModel):
    immediate: list[str] = Field(default_factory=list)
    short_term: list[str] = Field(default_factory=list)
    long_term: list[str] = Field(default_factory=list)
    best_practices: list[str] = Field(default_factory=list)


class AuditEntry(CamelModel):
    action: str
    performed_by: str
    timestamp: str
    details: dict[str, Any] = Field(default_factory=dict)


class NextValidation(CamelModel):
    scheduled_date: str
    type: str = "routine"
    scope: str = "single_form"


class ValidationMetadata(CamelModel):
    standard_version: str
    validation_rules: list[str] = Field(default_factory=list)
    automated_checks: int = 0
    manual_checks: int = 0
    total_checks: int = 0
    processing_time: float = 0.0
    data_quality: Literal["high", "medium", "low"] = "high"
    completeness: int = 100


class ComplianceTracking(CamelModel):
    trend_direction: TrendDirection = TrendDirection.STABLE
    consecutive_compliant_validations: int = 0


class ValidationResult(CamelModel):
    """Complete validation result — the unit returned, cached and kept in history."""

    validation_id: str
    validation_type: str = "clinical_form"
    validation_scope: str = "single_form"
    validation_date: str
    validated_by: str
    validator_role: str
    form_type: str = ""
    patient_id: Optional[str] = None
    episode_id: Optional[str] = None
    form_id: Optional[str] = None
    overall_status: ComplianceStatus
    compliance_score: ComplianceScore
    domain_validations: list[DomainValidation] = Field(default_factory=list)
    errors: list[ValidationIssue] = Field(default_factory=list)
    warnings: list[ValidationIssue] = Field(default_factory=list)
    critical_findings: list[CriticalFinding] = Field(default_factory=list)
    action_items: list[CorrectiveAction] = Field(default_factory=list)
    validation_metadata: ValidationMetadata
    compliance_tracking: ComplianceTracking = Field(default_factory=ComplianceTracking)
    recommendations: Recommendations = Field(default_factory=Recommendations)
    audit_trail: list[AuditEntry] = Field(default_factory=list)
    next_validation: NextValidation
    created_at: str
    updated_at: str
    status: Literal["completed"] = "completed"

    model_config = {"frozen": True}

    @property
    def is_valid(self) -> bool:
        """What the form component treats as "no blocking errors"."""
        return not self.errors

    def error_messages(self) -> list[str]:
        return [e.message for e in self.errors]

    def warning_messages(self) -> list[str]:
        return [w.message for w in self.warnings]
