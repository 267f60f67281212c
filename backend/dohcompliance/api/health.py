"""Health check endpoint."""

import time

from fastapi import APIRouter, Request

from dohcompliance.models.responses import HealthDependency, HealthResponse

router = APIRouter()

_start_time = time.time()


@router.get("/health", response_model=HealthResponse)
async def health_check(request: Request):
    """System health check with dependency status."""
    dependencies = {}

    # Standards catalog
    standards = request.app.state.service.engine.standards
    if standards.is_loaded:
        catalog = standards.get()
        dependencies["standards"] = HealthDependency(status="healthy", message=f"{catalog.standard_id} {catalog.version}")
    else:
        dependencies["standards"] = HealthDependency(status="unhealthy", message="Standards catalog not loaded")

    # Redis (only when configured)
    redis = getattr(request.app.state, "redis", None)
    if redis is None:
        dependencies["redis"] = HealthDependency(status="disabled")
    else:
        try:
            start = time.time()
            await redis.ping()
            latency = (time.time() - start) * 1000
            dependencies["redis"] = HealthDependency(status="healthy", latency_ms=round(latency, 2))
        except Exception as e:
            dependencies["redis"] = HealthDependency(status="unhealthy", message=str(e))

    checked = [d for d in dependencies.values() if d.status != "disabled"]
    if dependencies["standards"].status == "unhealthy":
        status = "unhealthy"
    elif any(d.status != "healthy" for d in checked):
        status = "degraded"
    else:
        status = "healthy"

    return HealthResponse(
        status=status,
        uptime_seconds=round(time.time() - _start_time, 2),
        dependencies=dependencies,
    )
