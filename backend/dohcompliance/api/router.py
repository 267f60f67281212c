"""Main API router — combines all endpoint routers."""

from fastapi import APIRouter

from dohcompliance.api.health import router as health_router
from dohcompliance.api.standards import router as standards_router
from dohcompliance.api.validations import router as validations_router

api_router = APIRouter()

api_router.include_router(health_router, tags=["Health"])
api_router.include_router(standards_router, tags=["Standards"])
api_router.include_router(validations_router, tags=["Validations"])
