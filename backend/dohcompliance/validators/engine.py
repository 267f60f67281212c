"""Compliance Validation Engine — scores every domain and assembles the result.

This is the in-process entry point for DOH compliance validation. It runs the
domain scorer over every catalog domain, in catalog order, and rolls the
domain scores into one ValidationResult with grade, status and prioritized
recommendations.

Usage:
    engine = ComplianceValidationEngine(standards_registry)
    result = engine.validate(form_data, "fall_risk_assessment")
    if result.overall_status == "non_compliant":
        # Show result.critical_findings
"""

import copy
import time
import uuid
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any, Mapping, Optional

import structlog

from dohcompliance.errors import ComplianceValidationError, InputValidationError
from dohcompliance.standards.loader import StandardsRegistry, standards_registry
from dohcompliance.standards.models import ComplianceThresholds, StandardsCatalog
from dohcompliance.standards.reference_data import BEST_PRACTICES, DOMAIN_SHORT_TERM_TARGET
from dohcompliance.validators.domain_scorer import DomainScorer, percentage_of
from dohcompliance.validators.history import ValidationHistory
from dohcompliance.validators.models import (
    AuditEntry,
    ComplianceScore,
    ComplianceStatus,
    ComplianceTracking,
    CorrectiveAction,
    CriticalFinding,
    DomainValidation,
    Grade,
    NextValidation,
    Recommendations,
    Severity,
    ValidationIssue,
    ValidationMetadata,
    ValidationResult,
)
from dohcompliance.validators.requirement_evaluator import RequirementEvaluator
from dohcompliance.validators.rules import FormSnapshot, RuleRegistry

logger = structlog.get_logger()

AGGREGATION_METHODS = ("sum", "weighted_average")


class RunState(str, Enum):
    """Lifecycle of a single validation run."""

    NOT_STARTED = "not_started"
    LOADING = "loading"
    EVALUATING = "evaluating"
    AGGREGATING = "aggregating"
    COMPLETE = "complete"
    FAILED = "failed"


class ValidationCancelledError(ComplianceValidationError):
    """The caller abandoned the run before it completed."""

    code = "validation_cancelled"


class ValidationRun:
    """Tracks where one run is in its lifecycle. Can be cancelled from outside."""

    def __init__(self, run_id: Optional[str] = None):
        self.run_id = run_id or f"val_{int(time.time() * 1000)}_{uuid.uuid4().hex[:9]}"
        self.state = RunState.NOT_STARTED
        self.domain_index = 0
        self.domain_count = 0
        self.error: Optional[str] = None
        self._cancelled = False

    def cancel(self) -> None:
        self._cancelled = True

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def advance(self, state: RunState) -> None:
        if self._cancelled and state is not RunState.FAILED:
            raise ValidationCancelledError(f"Validation run {self.run_id} was cancelled")
        self.state = state
        logger.debug("validation_run_state", run_id=self.run_id, state=state.value,
                     domain_index=self.domain_index, domain_count=self.domain_count)


def compliance_grade(percentage: int, thresholds: Optional[ComplianceThresholds] = None) -> Grade:
    """Letter grade: A ≥ 95, B ≥ 85, C ≥ 75, D ≥ 60, F below."""
    t = thresholds or ComplianceThresholds()
    if percentage >= t.excellent:
        return "A"
    if percentage >= t.good:
        return "B"
    if percentage >= t.satisfactory:
        return "C"
    if percentage >= t.needs_improvement:
        return "D"
    return "F"


def overall_status(
    percentage: int,
    has_critical_findings: bool,
    has_errors: bool,
    thresholds: Optional[ComplianceThresholds] = None,
) -> ComplianceStatus:
    t = thresholds or ComplianceThresholds()
    if has_critical_findings or percentage < t.critical:
        return ComplianceStatus.NON_COMPLIANT
    if has_errors or percentage < t.satisfactory:
        return ComplianceStatus.PARTIAL
    return ComplianceStatus.COMPLIANT


def generate_recommendations(
    domain_validations: list[DomainValidation],
    overall_percentage: int,
    thresholds: Optional[ComplianceThresholds] = None,
) -> Recommendations:
    """Derive prioritized recommendations from domain scores."""
    t = thresholds or ComplianceThresholds()
    immediate: list[str] = []
    short_term: list[str] = []

    for domain in domain_validations:
        if domain.critical_findings:
            immediate.append(f"Address critical findings in {domain.domain_name}")
        if domain.percentage < t.critical:
            immediate.append(f"Urgent improvement needed in {domain.domain_name}")
        elif domain.percentage < DOMAIN_SHORT_TERM_TARGET:
            short_term.append(f"Enhance {domain.domain_name} compliance")

    if overall_percentage < t.satisfactory:
        immediate.append("Implement comprehensive compliance improvement plan")
        short_term.append("Conduct staff training on DOH standards")

    return Recommendations(
        immediate=immediate,
        short_term=short_term,
        long_term=[],
        best_practices=list(BEST_PRACTICES),
    )


def weighted_percentage(domain_validations: list[DomainValidation], catalog: StandardsCatalog) -> int:
    """Weight-averaged domain percentage over domains that have something to score."""
    weight_sum = 0.0
    weighted = 0.0
    for domain in domain_validations:
        if domain.max_score <= 0:
            continue
        weight = catalog.get_domain_weight(domain.domain)
        weight_sum += weight
        weighted += weight * domain.percentage
    # Float noise in the weights must not flip a .5 rounding
    return percentage_of(round(weighted, 6), round(weight_sum * 100, 6))


class ComplianceValidationEngine:
    """Runs the full catalog against form data and produces a ValidationResult.

    Design principles:
        - Deterministic: same input and catalog → same output (ids and timestamps aside)
        - Isolated: every run works on its own deep copy of the form data
        - Sequential: domains are scored in catalog order
    """

    def __init__(
        self,
        standards: Optional[StandardsRegistry] = None,
        rules: Optional[RuleRegistry] = None,
        history: Optional[ValidationHistory] = None,
        aggregation_method: str = "sum",
        validated_by: str = "current_user",
        validator_role: str = "clinical_staff",
        next_validation_days: int = 30,
    ):
        if aggregation_method not in AGGREGATION_METHODS:
            raise ValueError(f"Aggregation method must be one of {AGGREGATION_METHODS}, got '{aggregation_method}'")
        self.standards = standards or standards_registry
        self.rules = rules or RuleRegistry()
        self.evaluator = RequirementEvaluator(self.rules)
        self.history = history if history is not None else ValidationHistory()
        self.aggregation_method = aggregation_method
        self.validated_by = validated_by
        self.validator_role = validator_role
        self.next_validation_days = next_validation_days

    def validate(
        self,
        form_data: Optional[Mapping[str, Any]],
        form_type: str,
        validation_scope: str = "single_form",
        **context: Any,
    ) -> ValidationResult:
        """Run a validation and record it in the engine's history."""
        result = self.run(form_data, form_type, validation_scope, **context)
        self.history.record(result)
        return result

    def run(
        self,
        form_data: Optional[Mapping[str, Any]],
        form_type: str,
        validation_scope: str = "single_form",
        validation_type: str = "clinical_form",
        patient_id: Optional[str] = None,
        episode_id: Optional[str] = None,
        form_id: Optional[str] = None,
        validated_by: Optional[str] = None,
        validator_role: Optional[str] = None,
        run: Optional[ValidationRun] = None,
    ) -> ValidationResult:
        """Score every domain and assemble the result, without recording it.

        Args:
            form_data: Submitted form data (any mapping; copied before use)
            form_type: Form type identifier, e.g. "fall_risk_assessment"
            validation_scope: Scope label carried into the result
            validation_type: Type label carried into the result
            patient_id, episode_id, form_id: Optional context identifiers
            validated_by, validator_role: Override the engine's defaults
            run: Optional run tracker; cancelling it aborts between domains

        Returns:
            Complete, frozen ValidationResult

        Raises:
            InputValidationError: form data or form type missing
            StandardsNotReadyError: catalog not loaded yet
            ValidationCancelledError: the run was cancelled
        """
        if form_data is None or not form_type:
            raise InputValidationError("Form data and type are required for validation")

        run = run or ValidationRun()
        start_time = time.perf_counter()
        now = datetime.now(timezone.utc)
        validation_date = now.isoformat()
        performed_by = validated_by or self.validated_by

        try:
            run.advance(RunState.LOADING)
            catalog = self.standards.get()
            domains = catalog.get_domains()
            thresholds = catalog.get_thresholds()
            scorer = DomainScorer(self.evaluator, thresholds)

            form = FormSnapshot(copy.deepcopy(dict(form_data)) if isinstance(form_data, Mapping) else None)

            run.domain_count = len(domains)
            domain_validations: list[DomainValidation] = []
            critical_findings: list[CriticalFinding] = []
            total_score = 0
            max_total_score = 0
            has_errors = False

            for index, (domain_key, requirements) in enumerate(domains.items()):
                run.domain_index = index + 1
                run.advance(RunState.EVALUATING)
                domain = scorer.score_domain(domain_key, requirements, form, now=now)
                domain_validations.append(domain)
                total_score += domain.score
                max_total_score += domain.max_score
                if domain.status == ComplianceStatus.NON_COMPLIANT:
                    has_errors = True
                critical_findings.extend(domain.critical_findings)

            run.advance(RunState.AGGREGATING)
            if self.aggregation_method == "weighted_average":
                percentage = weighted_percentage(domain_validations, catalog)
            else:
                percentage = percentage_of(total_score, max_total_score)

            status = overall_status(percentage, bool(critical_findings), has_errors, thresholds)
            errors, warnings = self._collect_issues(domains, domain_validations)
            metadata = self._build_metadata(catalog, domain_validations, form, start_time)

            result = ValidationResult(
                validation_id=run.run_id,
                validation_type=validation_type,
                validation_scope=validation_scope,
                validation_date=validation_date,
                validated_by=performed_by,
                validator_role=validator_role or self.validator_role,
                form_type=form_type,
                patient_id=patient_id,
                episode_id=episode_id,
                form_id=form_id,
                overall_status=status,
                compliance_score=ComplianceScore(
                    total=total_score,
                    max_total=max_total_score,
                    percentage=percentage,
                    grade=compliance_grade(percentage, thresholds),
                ),
                domain_validations=domain_validations,
                errors=errors,
                warnings=warnings,
                critical_findings=critical_findings,
                action_items=self._collect_action_items(critical_findings),
                validation_metadata=metadata,
                # Rolling trend and streak live in history metrics; a result describes only itself
                compliance_tracking=ComplianceTracking(
                    consecutive_compliant_validations=1 if status == ComplianceStatus.COMPLIANT else 0,
                ),
                recommendations=generate_recommendations(domain_validations, percentage, thresholds),
                audit_trail=[
                    AuditEntry(
                        action="validation_started",
                        performed_by=performed_by,
                        timestamp=validation_date,
                        details={
                            "formType": form_type,
                            "validationEngine": catalog.validation_engine.engine_version,
                        },
                    ),
                    AuditEntry(
                        action="validation_completed",
                        performed_by=performed_by,
                        timestamp=datetime.now(timezone.utc).isoformat(),
                        details={
                            "overallStatus": status.value,
                            "percentage": percentage,
                            "criticalFindings": len(critical_findings),
                            "aggregationMethod": self.aggregation_method,
                        },
                    ),
                ],
                next_validation=NextValidation(
                    scheduled_date=(now + timedelta(days=self.next_validation_days)).isoformat(),
                    type="routine",
                    scope=validation_scope,
                ),
                created_at=validation_date,
                updated_at=validation_date,
            )
            run.advance(RunState.COMPLETE)
        except Exception as e:
            run.error = str(e)
            run.advance(RunState.FAILED)
            raise

        logger.info(
            "validation_complete",
            validation_id=result.validation_id,
            form_type=form_type,
            overall_status=result.overall_status,
            percentage=percentage,
            grade=result.compliance_score.grade,
            critical_findings=len(critical_findings),
            standard_version=catalog.version,
            duration_ms=metadata.processing_time,
        )
        return result

    # ── Helpers ──

    def _collect_issues(
        self,
        domains: dict,
        domain_validations: list[DomainValidation],
    ) -> tuple[list[ValidationIssue], list[ValidationIssue]]:
        """Failed mandatory requirements become errors, failed optional ones warnings."""
        errors: list[ValidationIssue] = []
        warnings: list[ValidationIssue] = []
        for domain in domain_validations:
            by_id = {req.id: req for req in domains[domain.domain]}
            for check in domain.validation_checks:
                if check.passed:
                    continue
                requirement = by_id[check.requirement_id]
                if requirement.mandatory:
                    errors.append(ValidationIssue(
                        issue_id=f"{check.requirement_id}_ERROR",
                        requirement_id=check.requirement_id,
                        domain=domain.domain,
                        severity=Severity.CRITICAL,
                        message=f"{requirement.title} requirement not met",
                        description=requirement.description,
                        recommendations=list(check.recommendations),
                    ))
                else:
                    warnings.append(ValidationIssue(
                        issue_id=f"{check.requirement_id}_WARNING",
                        requirement_id=check.requirement_id,
                        domain=domain.domain,
                        severity=Severity.MEDIUM,
                        message=f"{requirement.title} not fully documented",
                        description=requirement.description,
                        recommendations=list(check.recommendations),
                    ))
        return errors, warnings

    @staticmethod
    def _collect_action_items(critical_findings: list[CriticalFinding]) -> list[CorrectiveAction]:
        return [action for finding in critical_findings for action in finding.corrective_actions]

    def _build_metadata(
        self,
        catalog: StandardsCatalog,
        domain_validations: list[DomainValidation],
        form: FormSnapshot,
        start_time: float,
    ) -> ValidationMetadata:
        rule_names: list[str] = []
        for requirements in catalog.domains.values():
            for req in requirements:
                rule_names.extend(req.validation_rules)

        manual = set(catalog.validation_engine.manual_checks)
        automated_checks = sum(1 for name in rule_names if self.rules.is_known(name))
        manual_checks = sum(1 for name in rule_names if name in manual)

        watched_fields: list[str] = []
        for name in self.rules.names:
            for field_name in self.rules.get(name).fields:
                if field_name not in watched_fields:
                    watched_fields.append(field_name)
        present = len(watched_fields) - len(form.missing(watched_fields))
        completeness = percentage_of(present, len(watched_fields)) if watched_fields else 100

        if completeness >= 90:
            data_quality = "high"
        elif completeness >= 60:
            data_quality = "medium"
        else:
            data_quality = "low"

        return ValidationMetadata(
            standard_version=catalog.version,
            validation_rules=sorted(set(rule_names)),
            automated_checks=automated_checks,
            manual_checks=manual_checks,
            total_checks=sum(len(d.validation_checks) for d in domain_validations),
            processing_time=round((time.perf_counter() - start_time) * 1000, 2),
            data_quality=data_quality,
            completeness=completeness,
        )
