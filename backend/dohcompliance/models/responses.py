"""API response models."""

from typing import Any, Literal, Optional

from pydantic import Field

from dohcompliance.models.base import CamelModel
from dohcompliance.validators.models import ValidationResult

ItemStatus = Literal["pending", "processing", "completed", "failed", "cancelled", "expired"]
BatchStatus = Literal["queued", "processing", "completed", "cancelled", "expired"]


class BatchItemOutcome(CamelModel):
    """State of one batch entry."""

    item_id: str
    form_type: str
    priority: str = "medium"
    status: ItemStatus = "pending"
    result: Optional[ValidationResult] = None
    error: Optional[dict] = None


class BatchStatusResponse(CamelModel):
    """Totals and per-item outcomes of a batch."""

    batch_id: str
    status: BatchStatus
    total: int
    successful: int = 0
    failed: int = 0
    pending: int = 0
    items: list[BatchItemOutcome] = Field(default_factory=list)
    created_at: str
    completed_at: Optional[str] = None


class BatchAcceptedResponse(CamelModel):
    """Response after queueing a background batch."""

    batch_id: str
    status: BatchStatus = "queued"
    total: int
    status_url: str
    max_wait_seconds: float


class HealthDependency(CamelModel):
    """Health status of a single dependency."""

    status: Literal["healthy", "unhealthy", "degraded", "disabled"]
    latency_ms: Optional[float] = None
    message: Optional[str] = None


class HealthResponse(CamelModel):
    """System health check response."""

    status: Literal["healthy", "unhealthy", "degraded"]
    version: str = "1.0.0"
    uptime_seconds: float
    dependencies: dict[str, HealthDependency]


class StandardsResponse(CamelModel):
    """Summary of the active standards catalog."""

    standard_id: str
    version: str
    effective_date: str
    domains: dict[str, list[str]]
    domain_weights: dict[str, float]
    compliance_thresholds: dict[str, int]
    requirement_count: int
    engine_version: str


class HistoryResponse(CamelModel):
    """Most recent validations, newest first."""

    max_size: int
    entries: list[ValidationResult] = Field(default_factory=list)


class MetricsResponse(CamelModel):
    total_validations: int
    average_score: float
    trend_direction: str
    consecutive_compliant_validations: int
    cache: dict[str, Any] = Field(default_factory=dict)


class ComplianceStatusResponse(CamelModel):
    """Compliance status from the external API, or derived from local metrics."""

    source: Literal["external", "local"]
    data: dict[str, Any] = Field(default_factory=dict)


class CacheClearResponse(CamelModel):
    removed: int
    external_cleared: bool = False
