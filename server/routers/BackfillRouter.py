from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Request

from server.dependencies.auth import verify_api_key
from server.models.requests import BackfillRequest
from server.models.responses import BackfillAccepted
from shared.models.embedding import BackfillOptions

router = APIRouter(prefix="/backfill", tags=["backfill"])


async def _run_backfill(request: Request, body: BackfillRequest) -> None:
    state = request.app.state
    options = BackfillOptions(
        force=body.force,
        dry_run=body.dry_run,
        tenant_id=body.tenant_id,
        document_type=body.document_type,
        batch_size=body.batch_size,
    )
    try:
        await state.vector_sync.do_generate(options, collections=body.collections)
    except Exception as exc:
        state.logging.error("Backfill run failed: %s", exc)
    finally:
        state.backfill_running = False


@router.post("", status_code=202)
async def start_backfill(
    request: Request,
    body: BackfillRequest,
    background_tasks: BackgroundTasks,
    _: None = Depends(verify_api_key),
) -> dict:
    """Start a backfill run in the background.

    Only one run at a time; live updates keep flowing through the shared
    worker pool while it runs.

    Args:
        request (Request): FastAPI request (provides app.state.vector_sync).
        body (BackfillRequest): Filters and flags of the run.
        background_tasks (BackgroundTasks): FastAPI background task queue.
        _ (None): Auth dependency result (unused).

    Returns:
        dict: Acknowledgement with the currently known profile keys.

    Raises:
        HTTPException: 409 if a backfill is already running.
    """
    state = request.app.state
    if getattr(state, "backfill_running", False):
        raise HTTPException(status_code=409, detail="A backfill run is already in progress")
    state.backfill_running = True
    background_tasks.add_task(_run_backfill, request, body)
    profile_keys = [profile.get_key() for profile in state.vector_sync.list_profiles()]
    return BackfillAccepted(status="accepted", profiles=profile_keys).model_dump()
