"""Validations API — run validations, batches, history, metrics and compliance status."""

from typing import Optional

from fastapi import APIRouter, Body, HTTPException, Query, Request
from fastapi.responses import JSONResponse

from dohcompliance.models.requests import BatchValidationRequest, ValidationRequest
from dohcompliance.models.responses import (
    BatchAcceptedResponse,
    BatchStatusResponse,
    CacheClearResponse,
    ComplianceStatusResponse,
    HistoryResponse,
    MetricsResponse,
)
from dohcompliance.validators.models import ValidationResult

router = APIRouter()


def _service(request: Request):
    return request.app.state.service


# ─── Validations ───


@router.post("/validations", response_model=ValidationResult)
async def create_validation(body: ValidationRequest, request: Request):
    """Validate one clinical form against the active DOH standards."""
    return await _service(request).validate(body)


@router.post("/validations/realtime", status_code=202)
async def submit_realtime_validation(body: ValidationRequest, request: Request):
    """Queue a debounced validation for a form being edited.

    The result is published on the form's event topic and served from
    /validations/latest/{form_key} once the debounce window closes.
    """
    form_key = body.form_key
    if form_key is None:
        raise HTTPException(status_code=422, detail="Real-time validation needs a formId or patientId")
    realtime = request.app.state.realtime
    realtime.submit(body)
    return {"formKey": form_key, "debounceSeconds": realtime.debounce_seconds}


@router.get("/validations/latest/{form_key}", response_model=ValidationResult)
async def get_latest_validation(form_key: str, request: Request):
    """Newest published result for a form."""
    result = _service(request).latest_result(form_key)
    if result is None:
        raise HTTPException(status_code=404, detail=f"No validation recorded for {form_key}")
    return result


@router.post("/validations/queue/process", response_model=ComplianceStatusResponse)
async def process_validation_queue(request: Request, batch_size: int = Query(default=10, ge=1, le=100)):
    """Drain the external validation queue, or report local background batches."""
    return await _service(request).process_validation_queue(batch_size)


@router.post("/validations/batch")
async def create_batch(body: BatchValidationRequest, request: Request):
    """Validate several forms.

    Foreground batches return the full outcome. Background batches return 202
    with a status URL to poll.
    """
    service = _service(request)
    if body.background:
        handle = await service.enqueue_batch(body)
        accepted = BatchAcceptedResponse(
            batch_id=handle.batch_id,
            total=len(handle.items),
            status_url=f"/api/v1/validations/batch/{handle.batch_id}",
            max_wait_seconds=service.queue_max_wait_seconds,
        )
        return JSONResponse(status_code=202, content=accepted.to_json_dict())

    summary = await service.run_batch(body)
    return summary.to_json_dict()


@router.get("/validations/batch/{batch_id}", response_model=BatchStatusResponse)
async def get_batch(batch_id: str, request: Request):
    handle = _service(request).get_batch(batch_id)
    if handle is None:
        raise HTTPException(status_code=404, detail=f"Batch {batch_id} not found")
    return handle.snapshot()


@router.post("/validations/batch/{batch_id}/cancel", response_model=BatchStatusResponse)
async def cancel_batch(batch_id: str, request: Request):
    handle = _service(request).get_batch(batch_id)
    if handle is None:
        raise HTTPException(status_code=404, detail=f"Batch {batch_id} not found")
    if handle.done:
        raise HTTPException(status_code=409, detail=f"Batch is already {handle.status}")
    handle.cancel()
    return handle.snapshot()


@router.get("/validations/history", response_model=HistoryResponse)
async def get_history(request: Request):
    """Most recent validations, newest first."""
    history = _service(request).history
    return HistoryResponse(max_size=history.max_size, entries=history.entries())


@router.get("/validations/metrics", response_model=MetricsResponse)
async def get_metrics(request: Request):
    service = _service(request)
    metrics = service.metrics
    return MetricsResponse(
        total_validations=metrics.total_validations,
        average_score=metrics.average_score,
        trend_direction=metrics.trend_direction,
        consecutive_compliant_validations=metrics.consecutive_compliant_validations,
        cache=await service.cache.stats(),
    )


@router.delete("/validations/cache", response_model=CacheClearResponse)
async def clear_cache(request: Request):
    """Drop expired cache entries."""
    return await _service(request).clear_expired_cache()


# ─── Compliance status ───


@router.get("/compliance/status", response_model=ComplianceStatusResponse)
async def get_compliance_status(
    request: Request,
    patient_id: Optional[str] = None,
    episode_id: Optional[str] = None,
):
    """Compliance status from the validation API, or from local metrics when it is unavailable."""
    scope = {k: v for k, v in {"patientId": patient_id, "episodeId": episode_id}.items() if v}
    return await _service(request).get_compliance_status(scope)


@router.get("/compliance/analytics", response_model=ComplianceStatusResponse)
async def get_compliance_analytics(request: Request):
    return await _service(request).generate_compliance_analytics()


@router.post("/compliance/reports", response_model=ComplianceStatusResponse)
async def create_compliance_report(request: Request, report_config: Optional[dict] = Body(default=None)):
    return await _service(request).generate_compliance_report(report_config)
