"""
WebSocket handler for real-time run state updates.
"""

import asyncio
import logging

from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from analyst.models.schemas import PipelineStage
from analyst.services.run_manager import get_run_manager

logger = logging.getLogger(__name__)
router = APIRouter(tags=["websocket"])

TERMINAL_STAGES = (PipelineStage.SUCCEEDED.value, PipelineStage.FAILED.value)


@router.websocket("/ws/analysis")
async def analysis_state_websocket(websocket: WebSocket) -> None:
    """
    WebSocket endpoint streaming PipelineState snapshots.

    The current state is sent on connect. If no run is active the
    connection closes right after; otherwise it closes once the run
    reaches succeeded or failed.

    Example client (Python):
        async with websockets.connect("ws://localhost:8802/ws/analysis") as ws:
            async for message in ws:
                data = json.loads(message)
                print(f"{data['stage']}: {data['progress']}% - {data['message']}")
    """
    manager = get_run_manager()

    await websocket.accept()

    # Subscribe before the snapshot so no update between the two is lost
    queue = manager.subscribe()
    logger.info("WebSocket connected for run updates")

    try:
        await websocket.send_json(manager.state.model_dump(mode="json"))

        if not manager.is_running and queue.empty():
            await websocket.close()
            return

        while True:
            try:
                message = await asyncio.wait_for(queue.get(), timeout=30.0)
                await websocket.send_json(message)

                if message.get("stage") in TERMINAL_STAGES:
                    break

            except asyncio.TimeoutError:
                # Heartbeat keeps idle proxies from dropping the connection
                await websocket.send_json({"type": "heartbeat"})

        await websocket.close()

    except WebSocketDisconnect:
        logger.info("WebSocket disconnected")
    finally:
        manager.unsubscribe(queue)
        logger.info("WebSocket closed")
