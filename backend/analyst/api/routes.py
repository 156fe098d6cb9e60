"""
HTTP API routes for the analysis pipeline.

Provides endpoints for:
- Starting an analysis run
- Querying run state, result and raw model output
- Cancelling the active run
"""

import logging
from pathlib import Path

from fastapi import APIRouter, HTTPException

from analyst.models.schemas import (
    AnalysisResult,
    AnalyzeRequest,
    PipelineState,
    RawResponse,
)
from analyst.services.run_manager import RunInProgressError, get_run_manager

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api", tags=["analysis"])


@router.post("/analysis", response_model=PipelineState, status_code=202)
async def start_analysis(request: AnalyzeRequest) -> PipelineState:
    """
    Start an analysis run for a local media file.

    Use WebSocket /ws/analysis to receive real-time state updates.

    Args:
        request: AnalyzeRequest with media_path

    Returns:
        PipelineState of the new run

    Raises:
        404: Media file not found
        409: Another run is in progress
    """
    media_path = Path(request.media_path).expanduser()

    if not media_path.is_file():
        raise HTTPException(
            status_code=404,
            detail=f"Media file not found: {request.media_path}",
        )

    manager = get_run_manager()
    try:
        state = await manager.start(media_path)
    except RunInProgressError as e:
        raise HTTPException(status_code=409, detail=str(e)) from e

    logger.info(f"Started analysis run {state.run_id}: {media_path.name}")
    return state


@router.get("/analysis", response_model=PipelineState)
async def get_analysis_state() -> PipelineState:
    """
    Get state of the current (or last) run.

    Returns:
        PipelineState with stage, progress, retry count and failure
    """
    return get_run_manager().state


@router.get("/analysis/result", response_model=AnalysisResult)
async def get_analysis_result() -> AnalysisResult:
    """
    Get the structured result of the last successful run.

    Raises:
        404: No successful run yet
    """
    result = get_run_manager().orchestrator.result
    if result is None:
        raise HTTPException(status_code=404, detail="No analysis result available")
    return result


@router.get("/analysis/raw", response_model=RawResponse)
async def get_raw_response() -> RawResponse:
    """
    Get the raw model output of the last run, for diagnostics.

    Raises:
        404: Last run produced no model output
    """
    raw = get_run_manager().orchestrator.raw_response
    if not raw:
        raise HTTPException(status_code=404, detail="No raw output available")
    return RawResponse(raw_response=raw)


@router.delete("/analysis", response_model=PipelineState)
async def cancel_analysis() -> PipelineState:
    """
    Cancel the active run.

    Raises:
        409: No run in progress
    """
    manager = get_run_manager()
    if not await manager.cancel():
        raise HTTPException(status_code=409, detail="No analysis run in progress")
    return manager.state
