"""Standards catalog models: domains, requirements, thresholds and weights."""

from enum import Enum
from typing import Optional

from pydantic import Field, model_validator

from dohcompliance.models.base import CamelModel


class DohDomain(str, Enum):
    """The nine fixed DOH compliance domains, in catalog order."""

    CLINICAL_CARE = "clinical_care"
    PATIENT_SAFETY = "patient_safety"
    INFECTION_CONTROL = "infection_control"
    MEDICATION_MANAGEMENT = "medication_management"
    DOCUMENTATION_STANDARDS = "documentation_standards"
    CONTINUITY_OF_CARE = "continuity_of_care"
    PATIENT_RIGHTS = "patient_rights"
    QUALITY_IMPROVEMENT = "quality_improvement"
    PROFESSIONAL_DEVELOPMENT = "professional_development"


class Requirement(CamelModel):
    """A single requirement inside a domain."""

    id: str = Field(pattern=r"^[A-Z]+-\d+$")
    title: str
    description: str = ""
    mandatory: bool = False
    validation_rules: list[str] = Field(default_factory=list)
    evidence_required: set[str] = Field(default_factory=set)


class ComplianceThresholds(CamelModel):
    """Percentage cutoffs. `critical` is exclusive: below it is critical."""

    excellent: int = 95
    good: int = 85
    satisfactory: int = 75
    needs_improvement: int = 60
    critical: int = 60

    @model_validator(mode="after")
    def _check_order(self) -> "ComplianceThresholds":
        ordered = [self.excellent, self.good, self.satisfactory, self.needs_improvement]
        if ordered != sorted(ordered, reverse=True):
            raise ValueError("Compliance thresholds must be in descending order")
        return self


class EngineDescriptor(CamelModel):
    """Which checks the engine runs automatically and which need a human."""

    engine_version: str = "2.1.0"
    rules_engine: str = "DOH-Compliance-Engine"
    automated_checks: list[str] = Field(default_factory=list)
    manual_checks: list[str] = Field(default_factory=list)


class StandardsCatalog(CamelModel):
    """Versioned, read-only definition of what compliance means.

    `domains` preserves insertion order; that order is the order of
    `domainValidations` in every result.
    """

    standard_id: str
    version: str
    effective_date: str
    domains: dict[str, list[Requirement]]
    compliance_thresholds: ComplianceThresholds = Field(default_factory=ComplianceThresholds)
    domain_weights: dict[str, float] = Field(default_factory=dict)
    validation_engine: EngineDescriptor = Field(default_factory=EngineDescriptor)

    model_config = {"frozen": True}

    @model_validator(mode="after")
    def _check_catalog(self) -> "StandardsCatalog":
        known = {d.value for d in DohDomain}
        unknown = [key for key in self.domains if key not in known]
        if unknown:
            raise ValueError(f"Unknown domain(s) in catalog: {', '.join(unknown)}")

        seen: set[str] = set()
        for requirements in self.domains.values():
            for req in requirements:
                if req.id in seen:
                    raise ValueError(f"Duplicate requirement id: {req.id}")
                seen.add(req.id)

        if self.domain_weights:
            stray = set(self.domain_weights) - set(self.domains)
            if stray:
                raise ValueError(f"Weights given for unknown domain(s): {', '.join(sorted(stray))}")
            total = sum(self.domain_weights.values())
            if abs(total - 1.0) > 1e-6:
                raise ValueError(f"Domain weights must sum to 1.0, got {total:.4f}")
        return self

    # ── Accessors ──

    def get_domains(self) -> dict[str, list[Requirement]]:
        """Ordered mapping of domain key to its requirements."""
        return dict(self.domains)

    def get_domain_weight(self, domain: str) -> float:
        if domain not in self.domains:
            raise KeyError(f"Domain '{domain}' is not in catalog {self.standard_id}")
        return self.domain_weights.get(domain, 0.0)

    def get_thresholds(self) -> ComplianceThresholds:
        return self.compliance_thresholds

    def find_requirement(self, requirement_id: str) -> Optional[Requirement]:
        for requirements in self.domains.values():
            for req in requirements:
                if req.id == requirement_id:
                    return req
        return None

    @property
    def requirement_count(self) -> int:
        return sum(len(reqs) for reqs in self.domains.values())
