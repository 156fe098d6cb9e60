"""
Progress management for analysis runs.

Progress is cosmetic: it eases toward a cap while the run is in flight
and only a successful terminal stage sets it to 100. Nothing gates on it.
"""

import asyncio
import logging
from typing import Awaitable, Callable

from analyst.models.schemas import PipelineStage

logger = logging.getLogger(__name__)

# Signature: () -> None, called on every tick
TickCallback = Callable[[], Awaitable[None]]


class ProgressManager:
    """
    Calculates eased progress values for a run.

    Example:
        manager = ProgressManager()
        progress = manager.next_tick(0)                         # 2.5
        progress = manager.enter_stage(progress, PipelineStage.ANALYZING)  # 40
    """

    # Progress is capped here until the run succeeds
    PROGRESS_CAP = 90.0

    # Minimum progress when a stage starts
    STAGE_FLOORS = {
        PipelineStage.PREPARING: 0,
        PipelineStage.UPLOADING: 5,
        PipelineStage.PROCESSING_REMOTE: 25,
        PipelineStage.ANALYZING: 40,
        PipelineStage.RETRYING: PROGRESS_CAP,
    }

    def next_tick(self, current: float) -> float:
        """
        Advance progress by one tick.

        Steps shrink as progress grows: 2.5 below 30%, 1.5 below 60%,
        0.5 above, never past PROGRESS_CAP.
        """
        if current >= self.PROGRESS_CAP:
            return current
        if current < 30:
            increment = 2.5
        elif current < 60:
            increment = 1.5
        else:
            increment = 0.5
        return min(current + increment, self.PROGRESS_CAP)

    def enter_stage(self, current: float, stage: PipelineStage) -> float:
        """Raise progress to the stage floor (never lowers it)."""
        return max(current, float(self.STAGE_FLOORS.get(stage, 0)))


class ProgressTicker:
    """
    Periodic tick task scoped to one run.

    The task starts on enter and is cancelled and awaited on exit, so no
    timer outlives the run that owns it.

    Example:
        async with ProgressTicker(orchestrator_tick, interval=0.4):
            await do_work()
    """

    def __init__(self, on_tick: TickCallback, interval: float = 0.4):
        """
        Initialize ticker.

        Args:
            on_tick: Async callback run every interval
            interval: Seconds between ticks
        """
        self.on_tick = on_tick
        self.interval = interval
        self._task: asyncio.Task | None = None

    async def __aenter__(self) -> "ProgressTicker":
        self._task = asyncio.create_task(self._loop())
        logger.debug(f"Started progress ticker (interval={self.interval}s)")
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.stop()

    async def stop(self) -> None:
        """Cancel the tick task and wait for it to finish."""
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        logger.debug("Stopped progress ticker")

    async def _loop(self) -> None:
        while True:
            await asyncio.sleep(self.interval)
            try:
                await self.on_tick()
            except Exception as e:
                # Never fail the run due to a cosmetic update
                logger.warning(f"Ticker callback error: {e}")
