"""
Readiness polling for uploaded assets.

Uploaded video is processed server-side before it can be referenced by
an inference call. The poller checks the asset state at a fixed interval
until it becomes ACTIVE or fails.
"""

import asyncio
import logging
import math
from typing import Awaitable, Callable

from analyst.models.schemas import AssetState, RemoteAssetHandle
from analyst.services.ai_clients import BaseAIClient
from analyst.services.errors import RemoteProcessingError

logger = logging.getLogger(__name__)

# States that keep the poll loop going. UNKNOWN marks a failed status check.
NON_TERMINAL_STATES = frozenset({
    AssetState.PROCESSING.value,
    AssetState.UNKNOWN.value,
    AssetState.STATE_UNSPECIFIED.value,
})

SleepFunc = Callable[[float], Awaitable[None]]


class AssetReadinessPoller:
    """
    Waits for an uploaded asset to leave PROCESSING.

    The state is checked first, then again after each interval. Polls
    are strictly sequential.

    Example:
        poller = AssetReadinessPoller(client, interval=2.0, timeout=900.0)
        ready = await poller.await_ready(handle)
    """

    def __init__(
        self,
        client: BaseAIClient,
        interval: float = 2.0,
        timeout: float | None = 900.0,
        sleep: SleepFunc = asyncio.sleep,
    ):
        """
        Initialize poller.

        Args:
            client: Client used for status checks
            interval: Seconds between status checks
            timeout: Give up after this many seconds of waiting (None = never)
            sleep: Awaitable sleep (injectable for tests)
        """
        self.client = client
        self.interval = interval
        self.max_sleeps = (
            math.ceil(timeout / interval) if timeout is not None and interval > 0 else None
        )
        self._sleep = sleep

    async def await_ready(self, handle: RemoteAssetHandle) -> RemoteAssetHandle:
        """
        Poll until the asset is ACTIVE.

        Args:
            handle: Asset returned by the upload transport

        Returns:
            Copy of the handle with state ACTIVE

        Raises:
            RemoteProcessingError: Asset FAILED, reached an unexpected
                state, or stayed non-terminal past the timeout
        """
        sleeps = 0

        while True:
            state = await self.client.get_file_state(handle.name)
            logger.debug(f"Asset {handle.name} state: {state} (poll #{sleeps + 1})")

            if state == AssetState.ACTIVE.value:
                logger.info(f"Asset {handle.name} is ACTIVE after {sleeps} wait(s)")
                return handle.model_copy(update={"state": state})

            if state == AssetState.FAILED.value:
                raise RemoteProcessingError(
                    "Video processing failed on server",
                    state=state,
                    detail=f"asset={handle.name}",
                )

            if state not in NON_TERMINAL_STATES:
                raise RemoteProcessingError(
                    f"File state is {state}",
                    state=state,
                    detail=f"asset={handle.name}",
                )

            if self.max_sleeps is not None and sleeps >= self.max_sleeps:
                raise RemoteProcessingError(
                    f"Asset processing timed out after {sleeps * self.interval:.0f}s",
                    state=state,
                    detail=f"asset={handle.name}",
                )

            await self._sleep(self.interval)
            sleeps += 1
