"""DOH standards catalog — domains, requirements, thresholds and weights."""

from dohcompliance.standards.loader import (
    StandardsRegistry,
    build_reference_catalog,
    load_catalog_file,
    standards_registry,
)
from dohcompliance.standards.models import (
    ComplianceThresholds,
    DohDomain,
    Requirement,
    StandardsCatalog,
)

__all__ = [
    "StandardsRegistry",
    "standards_registry",
    "build_reference_catalog",
    "load_catalog_file",
    "StandardsCatalog",
    "Requirement",
    "ComplianceThresholds",
    "DohDomain",
]
