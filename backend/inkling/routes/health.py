"""
Inkling: Health and Banner Routes
=================================

GET /health answers without touching the provider: a hosted model probe would
cost quota on every load-balancer check. The engine's circuit breaker state is
reported instead, which reflects the outcome of real traffic. ?deep=true adds
a free provider reachability probe for humans debugging a deployment.
"""

from fastapi import APIRouter, Query

from inkling import __version__
from inkling.config import settings
from inkling.schemas.ocr import HealthResponse, ServerInfoResponse
from inkling.services.transcription_service import transcription_service

router = APIRouter(tags=["Health"])


@router.get(
    "/health",
    response_model=HealthResponse,
    response_model_exclude_none=True,
    summary="Service health check",
)
async def health_check(
    deep: bool = Query(default=False, description="Also probe the provider API"),
) -> HealthResponse:
    upstream = None
    if deep:
        upstream = await transcription_service.engine.health_check()
    return HealthResponse(
        status="ok",
        engine=settings.ocr_engine,
        circuit=transcription_service.circuit_state,
        upstream=upstream,
    )


@router.get("/", response_model=ServerInfoResponse, summary="Server banner")
async def server_info() -> ServerInfoResponse:
    return ServerInfoResponse(version=__version__)
