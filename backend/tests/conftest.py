"""Shared fixtures for compliance validator tests."""

import pytest

from dohcompliance.services.event_bus import EventBus
from dohcompliance.services.result_cache import ResultCache
from dohcompliance.services.validation_service import ComplianceValidationService
from dohcompliance.standards.loader import StandardsRegistry, build_reference_catalog
from dohcompliance.standards.models import StandardsCatalog
from dohcompliance.validators.engine import ComplianceValidationEngine
from dohcompliance.validators.history import ValidationHistory
from dohcompliance.validators.rules import RuleRegistry


@pytest.fixture
def catalog() -> StandardsCatalog:
    return build_reference_catalog()


@pytest.fixture
def registry(catalog) -> StandardsRegistry:
    """A private registry loaded with the reference catalog."""
    reg = StandardsRegistry()
    reg.replace(catalog)
    return reg


@pytest.fixture
def engine(registry) -> ComplianceValidationEngine:
    return ComplianceValidationEngine(standards=registry, history=ValidationHistory())


@pytest.fixture
def strict_engine(registry) -> ComplianceValidationEngine:
    """Engine whose unknown rules fail closed."""
    return ComplianceValidationEngine(
        standards=registry,
        rules=RuleRegistry(unknown_rule_policy="fail"),
        history=ValidationHistory(),
    )


@pytest.fixture
def service(engine) -> ComplianceValidationService:
    return ComplianceValidationService(engine=engine, cache=ResultCache(), event_bus=EventBus())


@pytest.fixture
def complete_form() -> dict:
    """Form data that satisfies every implemented rule."""
    return {
        "patientId": "P1",
        "assessmentDate": "2024-01-01",
        "clinicalFindings": "ok",
        "timestamp": "t",
        "completedAt": "t2",
    }


@pytest.fixture
def two_domain_catalog_data() -> dict:
    """Small catalog used to exercise weighting and edge cases."""
    return {
        "standardId": "DOH-TEST",
        "version": "T1",
        "effectiveDate": "2024-01-01",
        "domains": {
            "clinical_care": [
                {
                    "id": "CC-001",
                    "title": "Patient Assessment Documentation",
                    "description": "Complete assessment",
                    "mandatory": True,
                    "validationRules": ["required_field", "completeness_check"],
                    "evidenceRequired": ["assessment_form"],
                },
            ],
            "patient_safety": [
                {
                    "id": "PS-001",
                    "title": "Safety Checklist",
                    "description": "Checklist completed",
                    "mandatory": False,
                    "validationRules": ["timestamp_validation"],
                    "evidenceRequired": [],
                },
            ],
        },
        "domainWeights": {"clinical_care": 0.75, "patient_safety": 0.25},
    }
