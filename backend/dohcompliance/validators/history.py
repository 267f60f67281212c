"""Validation history — bounded, newest-first record of completed runs.

Also keeps the running metrics the dashboard shows: total validations,
average score and whether the average is trending up or down. History and
metrics change together under one lock, so readers never see one updated
without the other.
"""

import threading
from collections import deque
from typing import Optional

from pydantic import BaseModel

from dohcompliance.validators.models import (
    ComplianceStatus,
    TrendDirection,
    ValidationResult,
)


class ValidationMetrics(BaseModel):
    """Snapshot of the running validation metrics."""

    total_validations: int = 0
    average_score: float = 0.0
    trend_direction: TrendDirection = TrendDirection.STABLE
    consecutive_compliant_validations: int = 0

    class Config:
        use_enum_values = True


def _next_average(metrics: ValidationMetrics, percentage: int) -> tuple[float, TrendDirection]:
    total = metrics.total_validations + 1
    new_average = (metrics.average_score * metrics.total_validations + percentage) / total
    if new_average > metrics.average_score:
        trend = TrendDirection.UP
    elif new_average < metrics.average_score:
        trend = TrendDirection.DOWN
    else:
        trend = TrendDirection.STABLE
    return new_average, trend


class ValidationHistory:
    """Most recent N results, newest first, plus running metrics."""

    def __init__(self, max_size: int = 5):
        if max_size < 1:
            raise ValueError("History size must be at least 1")
        self.max_size = max_size
        self._results: deque[ValidationResult] = deque(maxlen=max_size)
        self._metrics = ValidationMetrics()
        self._lock = threading.Lock()

    def record(self, result: ValidationResult) -> ValidationMetrics:
        """Add a completed result; the oldest entry is evicted past max_size."""
        with self._lock:
            percentage = result.compliance_score.percentage
            new_average, trend = _next_average(self._metrics, percentage)
            if result.overall_status == ComplianceStatus.COMPLIANT:
                consecutive = self._metrics.consecutive_compliant_validations + 1
            else:
                consecutive = 0

            self._results.appendleft(result)
            self._metrics = ValidationMetrics(
                total_validations=self._metrics.total_validations + 1,
                average_score=round(new_average, 1),
                trend_direction=trend,
                consecutive_compliant_validations=consecutive,
            )
            return self._metrics

    def entries(self) -> list[ValidationResult]:
        """Newest first."""
        with self._lock:
            return list(self._results)

    def latest(self) -> Optional[ValidationResult]:
        with self._lock:
            return self._results[0] if self._results else None

    @property
    def metrics(self) -> ValidationMetrics:
        with self._lock:
            return self._metrics

    def clear(self) -> None:
        with self._lock:
            self._results.clear()
            self._metrics = ValidationMetrics()

    def __len__(self) -> int:
        with self._lock:
            return len(self._results)
