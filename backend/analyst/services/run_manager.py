"""
Run manager for analysis runs.

Holds the single orchestrator of this process, enforces one active run
at a time and broadcasts state changes to WebSocket subscribers.
"""

import asyncio
import logging
from pathlib import Path

from analyst.models.schemas import PipelineState
from analyst.services.pipeline import PipelineOrchestrator

logger = logging.getLogger(__name__)


class RunInProgressError(Exception):
    """Raised when a run is started while another one is active."""

    pass


class RunManager:
    """
    Single-flight runner with state broadcasting.

    Example:
        manager = RunManager()
        state = await manager.start(Path("inbox/match.mp4"))

        # Subscribe to updates
        queue = manager.subscribe()
        message = await queue.get()  # PipelineState as JSON dict
    """

    def __init__(self, orchestrator: PipelineOrchestrator | None = None):
        """
        Initialize run manager.

        Args:
            orchestrator: Orchestrator to drive (created from settings if None)
        """
        self.orchestrator = orchestrator or PipelineOrchestrator()
        self.orchestrator.listener = self._broadcast
        self._task: asyncio.Task | None = None
        self._subscribers: list[asyncio.Queue] = []

    @property
    def is_running(self) -> bool:
        """True while a run task is in flight."""
        return self._task is not None and not self._task.done()

    @property
    def state(self) -> PipelineState:
        """Current run state."""
        return self.orchestrator.state

    async def start(self, media_path: Path) -> PipelineState:
        """
        Start a run in the background.

        Args:
            media_path: Path to local media file

        Returns:
            State right after the run has started

        Raises:
            RunInProgressError: Another run is active
        """
        if self.is_running:
            raise RunInProgressError(
                f"Run {self.orchestrator.state.run_id} is still in progress"
            )

        self._task = asyncio.create_task(self._run(media_path))

        # Let the run reach its first suspension point so the returned
        # state already belongs to it
        await asyncio.sleep(0)
        return self.orchestrator.state

    async def cancel(self) -> bool:
        """
        Cancel the active run.

        Returns:
            True if a run was cancelled, False if none was active
        """
        if not self.is_running:
            return False

        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        logger.info(f"Run {self.orchestrator.state.run_id} cancelled")
        return True

    async def _run(self, media_path: Path) -> None:
        state = await self.orchestrator.run(media_path)
        logger.info(f"Run {state.run_id} finished: {state.stage.value}")

    def subscribe(self) -> asyncio.Queue:
        """
        Subscribe to run state updates.

        Returns:
            Queue that will receive state messages
        """
        queue: asyncio.Queue = asyncio.Queue()
        self._subscribers.append(queue)
        logger.debug("Client subscribed to run updates")
        return queue

    def unsubscribe(self, queue: asyncio.Queue) -> None:
        """
        Unsubscribe from run state updates.

        Args:
            queue: Queue to remove
        """
        try:
            self._subscribers.remove(queue)
            logger.debug("Client unsubscribed from run updates")
        except ValueError:
            pass

    async def _broadcast(self, state: PipelineState) -> None:
        """Send a state snapshot to all subscribers."""
        message = state.model_dump(mode="json")
        for queue in self._subscribers:
            await queue.put(message)


_run_manager: RunManager | None = None


def get_run_manager() -> RunManager:
    """Get the process-wide run manager, creating it on first use."""
    global _run_manager
    if _run_manager is None:
        _run_manager = RunManager()
    return _run_manager
