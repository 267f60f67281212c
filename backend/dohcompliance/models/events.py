"""Validation lifecycle event models published on the event bus."""

from datetime import datetime, timezone
from typing import Literal, Optional

from pydantic import BaseModel


class BaseEvent(BaseModel):
    """Base event model for all validation events."""

    type: str
    timestamp: datetime = None

    def model_post_init(self, __context):
        if self.timestamp is None:
            self.timestamp = datetime.now(timezone.utc)

    def model_dump(self, **kwargs):
        """Always serialize datetimes as ISO strings for JSON safety."""
        kwargs.setdefault("mode", "json")
        return super().model_dump(**kwargs)


class ValidationStartedEvent(BaseEvent):
    """Emitted when a run is issued for a form."""

    type: Literal["validation_started"] = "validation_started"
    run_id: str
    form_key: str
    form_type: str
    sequence: int


class ValidationCompletedEvent(BaseEvent):
    """Emitted when the latest run for a form finishes."""

    type: Literal["validation_completed"] = "validation_completed"
    run_id: str
    form_key: str
    overall_status: str
    percentage: int
    grade: str
    critical_findings: int
    source: Literal["local", "external", "cache"]


class ValidationSupersededEvent(BaseEvent):
    """Emitted when a run finishes after a newer run was issued for the same form."""

    type: Literal["validation_superseded"] = "validation_superseded"
    run_id: str
    form_key: str
    sequence: int


class ValidationFailedEvent(BaseEvent):
    """Emitted when a run cannot produce a result."""

    type: Literal["validation_failed"] = "validation_failed"
    run_id: str
    form_key: str
    error: str
    message: str
    retryable: bool = False


class BatchProgressEvent(BaseEvent):
    """Emitted as each batch item reaches a terminal state."""

    type: Literal["batch_progress"] = "batch_progress"
    batch_id: str
    item_id: str
    item_status: str
    completed: int
    total: int


class BatchCompletedEvent(BaseEvent):
    """Emitted when every item of a batch is terminal."""

    type: Literal["batch_completed"] = "batch_completed"
    batch_id: str
    status: str
    total: int
    successful: int
    failed: int
    error: Optional[str] = None
