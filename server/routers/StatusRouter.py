from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from server.dependencies.auth import verify_api_key
from server.models.responses import HealthResponse, ProfileItem, ProfilesResponse, WatcherStatus

router = APIRouter(tags=["status"])


@router.get("/health")
async def health(request: Request) -> JSONResponse:
    """Report whether the sync runtime is running and every watcher is connected.

    Unauthenticated so container probes can reach it. Answers 503 when unhealthy.

    Args:
        request (Request): FastAPI request (provides app.state.vector_sync).

    Returns:
        JSONResponse: HealthResponse payload.
    """
    service = request.app.state.vector_sync
    body = HealthResponse(
        healthy=service.is_healthy(),
        running=service.is_running,
        watchers={name: WatcherStatus(**status) for name, status in service.get_watch_status().items()},
    )
    return JSONResponse(content=body.model_dump(mode="json"), status_code=200 if body.healthy else 503)


@router.get("/metrics")
async def metrics(request: Request, _: None = Depends(verify_api_key)) -> dict:
    """Return the current pipeline counters.

    Args:
        request (Request): FastAPI request (provides app.state.vector_sync).
        _ (None): Auth dependency result (unused).

    Returns:
        dict: MetricsSnapshot payload.
    """
    return request.app.state.vector_sync.get_metrics().model_dump(mode="json")


@router.get("/profiles")
async def profiles(request: Request, _: None = Depends(verify_api_key)) -> dict:
    """List the discovered document type profiles."""
    items = [ProfileItem(**profile.model_dump()) for profile in request.app.state.vector_sync.list_profiles()]
    return ProfilesResponse(profiles=items, total=len(items)).model_dump(mode="json")
