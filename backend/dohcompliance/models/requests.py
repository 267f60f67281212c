"""API request models."""

from typing import Any, Literal, Optional

from pydantic import Field

from dohcompliance.models.base import CamelModel

Priority = Literal["low", "medium", "high", "critical"]

PRIORITY_RANK = {"critical": 0, "high": 1, "medium": 2, "low": 3}


class ValidationRequest(CamelModel):
    """One form to validate."""

    form_data: Optional[dict[str, Any]] = Field(
        ...,
        description="Submitted clinical form data",
        examples=[{
            "patientId": "P-1001",
            "assessmentDate": "2024-05-01",
            "clinicalFindings": "Stable gait, no falls in 6 months",
            "timestamp": "2024-05-01T09:30:00Z",
            "completedAt": "2024-05-01T09:45:00Z",
        }],
    )
    form_type: str = Field(..., description="Form type identifier", examples=["fall_risk_assessment"])
    validation_type: str = "clinical_form"
    validation_scope: str = "single_form"
    patient_id: Optional[str] = None
    episode_id: Optional[str] = None
    form_id: Optional[str] = None
    use_cache: bool = True

    @property
    def form_key(self) -> Optional[str]:
        """Identity of the form for run sequencing; None for one-off requests."""
        if self.form_id:
            return self.form_id
        if self.patient_id:
            return f"{self.patient_id}:{self.form_type}"
        return None


class BatchItem(ValidationRequest):
    """One entry of a batch, with its queue priority."""

    item_id: Optional[str] = None
    priority: Priority = "medium"

    @property
    def form_key(self) -> Optional[str]:
        # Items of one batch never supersede each other unless they share a form id
        return self.form_id or (f"item:{self.item_id}" if self.item_id else super().form_key)


class BatchValidationRequest(CamelModel):
    """A batch of forms to validate together."""

    items: list[BatchItem] = Field(..., min_length=1, max_length=500)
    max_concurrency: int = Field(default=5, ge=1, le=50)
    background: bool = False
