"""Standards API — summary of the active catalog."""

from fastapi import APIRouter, Request

from dohcompliance.models.responses import StandardsResponse

router = APIRouter()


@router.get("/standards", response_model=StandardsResponse)
async def get_standards(request: Request):
    """Active DOH standards catalog: domains, requirement ids, weights and thresholds."""
    catalog = request.app.state.service.engine.standards.get()
    return StandardsResponse(
        standard_id=catalog.standard_id,
        version=catalog.version,
        effective_date=catalog.effective_date,
        domains={key: [req.id for req in reqs] for key, reqs in catalog.get_domains().items()},
        domain_weights=dict(catalog.domain_weights),
        compliance_thresholds=catalog.get_thresholds().model_dump(by_alias=True),
        requirement_count=catalog.requirement_count,
        engine_version=catalog.validation_engine.engine_version,
    )
