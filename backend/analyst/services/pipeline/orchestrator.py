"""
Pipeline orchestrator for match video analysis.

Drives one run through its stages:

    idle -> preparing -> (uploading -> processing_remote)? -> analyzing
         -> (retrying)* -> succeeded | failed

and owns the only mutable run state (PipelineState, result, raw text).
"""

import asyncio
import logging
from datetime import datetime
from pathlib import Path
from typing import Any, AsyncContextManager, Awaitable, Callable

from analyst.config import Settings, get_settings, load_model_config, load_prompt
from analyst.models.schemas import (
    AnalysisResult,
    FailureInfo,
    IngestionStrategy,
    MediaAsset,
    PipelineStage,
    PipelineState,
    RemoteAssetHandle,
)
from analyst.services.ai_clients import (
    AIClientError,
    GeminiClient,
    InferenceRequest,
)
from analyst.services.asset_poller import AssetReadinessPoller
from analyst.services.errors import AnalysisError, MalformedResponseError, ValidationError
from analyst.services.inference_executor import InferenceAttempt, InferenceRetryExecutor
from analyst.services.ingestion_strategy import (
    build_content_part,
    select_strategy,
    validate_asset,
)
from analyst.services.response_extractor import extract_structured
from analyst.services.upload_transport import ChunkedUploadTransport

from .progress_manager import ProgressManager, ProgressTicker

logger = logging.getLogger(__name__)

# Signature: (state) -> None, called on every state change
StateListener = Callable[[PipelineState], Awaitable[None]]
ClientFactory = Callable[[], AsyncContextManager[Any]]
SleepFunc = Callable[[float], Awaitable[None]]


class PipelineOrchestrator:
    """
    Runs ingestion and analysis for one media file at a time.

    State is exposed read-only through state/result/raw_response and
    pushed to an optional listener on every change.

    Example:
        orchestrator = PipelineOrchestrator(settings, listener=broadcast)
        state = await orchestrator.run(Path("inbox/match.mp4"))
        if state.stage == PipelineStage.SUCCEEDED:
            print(orchestrator.result.match_context)
    """

    def __init__(
        self,
        settings: Settings | None = None,
        client_factory: ClientFactory | None = None,
        listener: StateListener | None = None,
        sleep: SleepFunc = asyncio.sleep,
    ):
        """
        Initialize orchestrator.

        Args:
            settings: Application settings (uses defaults if None)
            client_factory: Returns an async context manager yielding a client
                (GeminiClient.from_settings by default)
            listener: Async callback receiving state snapshots
            sleep: Awaitable sleep for poll/backoff delays (injectable for tests)
        """
        self.settings = settings or get_settings()
        self.progress_manager = ProgressManager()
        self.listener = listener
        self._client_factory = client_factory or (
            lambda: GeminiClient.from_settings(self.settings)
        )
        self._sleep = sleep

        self._run_id = 0
        self._state = PipelineState()
        self._result: AnalysisResult | None = None
        self._raw_response = ""
        self.attempts: list[InferenceAttempt] = []

    # ═══════════════════════════════════════════════════════════════════════════
    # Read-only view
    # ═══════════════════════════════════════════════════════════════════════════

    @property
    def state(self) -> PipelineState:
        """Snapshot of the current run state."""
        return self._state.model_copy()

    @property
    def result(self) -> AnalysisResult | None:
        """Analysis result, only once the run has succeeded."""
        if self._state.stage != PipelineStage.SUCCEEDED:
            return None
        return self._result

    @property
    def raw_response(self) -> str:
        """Raw model output of the current run (for diagnostics)."""
        return self._raw_response

    @property
    def is_running(self) -> bool:
        """True while a run is in a non-terminal stage."""
        return self._state.stage.is_active

    # ═══════════════════════════════════════════════════════════════════════════
    # Full run
    # ═══════════════════════════════════════════════════════════════════════════

    async def run(self, media_path: Path | str) -> PipelineState:
        """
        Run ingestion and analysis for a media file.

        Never raises for pipeline failures: they end in the FAILED stage
        with a FailureInfo. Cancellation is recorded and re-raised.

        Args:
            media_path: Path to local media file

        Returns:
            Final PipelineState of this run
        """
        self._run_id += 1
        run_id = self._run_id
        media_path = Path(media_path)

        # Reset all run-scoped state
        self._result = None
        self._raw_response = ""
        self.attempts = []
        self._state = PipelineState(
            run_id=run_id,
            stage=PipelineStage.PREPARING,
            message="Preparing video...",
            media_name=media_path.name,
            started_at=datetime.now(),
        )
        await self._publish(run_id)
        logger.info(f"Run {run_id} started: {media_path.name}")

        try:
            async with ProgressTicker(
                lambda: self._tick(run_id),
                interval=self.settings.progress_interval,
            ):
                result = await self._execute(run_id, media_path)

        except AnalysisError as e:
            if isinstance(e, MalformedResponseError) and self._is_current(run_id):
                self._raw_response = e.raw_text
            await self._fail(run_id, e.reason, e.message, e.detail or "")

        except AIClientError as e:
            await self._fail(run_id, "inference", "Analysis Failed", str(e))

        except asyncio.CancelledError:
            await self._fail(run_id, "cancelled", "Run was cancelled")
            raise

        except Exception as e:
            logger.exception(f"Run {run_id} crashed")
            await self._fail(run_id, "internal", "Analysis Failed", f"{type(e).__name__}: {e}")

        else:
            await self._succeed(run_id, result)

        return self.state

    async def _execute(self, run_id: int, media_path: Path) -> AnalysisResult:
        """Run all stages and return the extracted result."""
        settings = self.settings

        if not settings.gemini_api_key:
            raise ValidationError("API Key Missing", detail="GEMINI_API_KEY is not set.")

        try:
            asset = MediaAsset.from_path(media_path)
        except FileNotFoundError as e:
            raise ValidationError("Media file not found", detail=str(media_path)) from e

        validate_asset(asset, settings.max_file_size_bytes)
        strategy = select_strategy(asset, settings.inline_limit_bytes)
        await self._update(run_id, strategy=strategy)
        logger.info(f"Run {run_id}: {asset.display_name} ({asset.size_mb} MB) -> {strategy.value}")

        prompt = load_prompt("analysis", "instructions", settings.analysis_model, settings)
        generation = load_model_config(settings.analysis_model, "analysis", settings)

        async with self._client_factory() as client:
            handle = None
            if strategy == IngestionStrategy.REMOTE:
                handle = await self._ingest_remote(run_id, client, asset)
            else:
                await self._update(run_id, message="Encoding video (inline)...")

            content_part = await build_content_part(asset, strategy, handle)

            request = InferenceRequest(
                model=settings.analysis_model,
                content_part=content_part,
                prompt=prompt,
                max_output_tokens=generation.get("max_output_tokens", 12000),
                thinking_budget=generation.get("thinking_budget"),
            )

            await self._set_stage(run_id, PipelineStage.ANALYZING, "Analyzing movements & structure...")

            executor = InferenceRetryExecutor(
                client,
                max_attempts=settings.retry_max_attempts,
                base_delay=settings.retry_base_delay,
                sleep=self._sleep,
            )
            try:
                raw_text = await executor.invoke_with_retry(
                    request,
                    on_retry=lambda n, total: self._on_retry(run_id, n, total),
                )
            finally:
                if self._is_current(run_id):
                    self.attempts = executor.attempts

        if self._is_current(run_id):
            self._raw_response = raw_text
            await self._update(run_id, has_raw_response=bool(raw_text))

        return extract_structured(raw_text)

    async def _ingest_remote(
        self,
        run_id: int,
        client: GeminiClient,
        asset: MediaAsset,
    ) -> RemoteAssetHandle:
        """Upload the asset and wait until it is ACTIVE."""
        await self._set_stage(run_id, PipelineStage.UPLOADING, "Uploading to secure storage...")
        transport = ChunkedUploadTransport(client)
        handle = await transport.upload(asset)

        await self._set_stage(
            run_id, PipelineStage.PROCESSING_REMOTE, "Processing video content..."
        )
        poller = AssetReadinessPoller(
            client,
            interval=self.settings.poll_interval,
            timeout=self.settings.poll_timeout,
            sleep=self._sleep,
        )
        return await poller.await_ready(handle)

    # ═══════════════════════════════════════════════════════════════════════════
    # State transitions
    # ═══════════════════════════════════════════════════════════════════════════

    def _is_current(self, run_id: int) -> bool:
        return run_id == self._run_id

    async def _update(self, run_id: int, **changes) -> None:
        """Apply changes to the state of the current run and publish them."""
        if not self._is_current(run_id):
            logger.debug(f"Dropping update from superseded run {run_id}")
            return
        self._state = self._state.model_copy(update=changes)
        await self._publish(run_id)

    async def _set_stage(self, run_id: int, stage: PipelineStage, message: str) -> None:
        progress = self.progress_manager.enter_stage(self._state.progress, stage)
        logger.info(f"Run {run_id}: {stage.value} - {message}")
        await self._update(run_id, stage=stage, message=message, progress=progress)

    async def _on_retry(self, run_id: int, retry_number: int, max_attempts: int) -> None:
        progress = self.progress_manager.enter_stage(self._state.progress, PipelineStage.RETRYING)
        await self._update(
            run_id,
            stage=PipelineStage.RETRYING,
            retry_count=retry_number,
            progress=progress,
            message=f"Retrying analysis (attempt {retry_number + 1}/{max_attempts})...",
        )

    async def _tick(self, run_id: int) -> None:
        if not self._is_current(run_id) or not self._state.stage.is_active:
            return
        progress = self.progress_manager.next_tick(self._state.progress)
        if progress != self._state.progress:
            await self._update(run_id, progress=progress)

    async def _succeed(self, run_id: int, result: AnalysisResult) -> None:
        if not self._is_current(run_id):
            return
        self._result = result
        await self._update(
            run_id,
            stage=PipelineStage.SUCCEEDED,
            progress=100.0,
            message="Analysis complete",
            finished_at=datetime.now(),
        )
        logger.info(
            f"Run {run_id} succeeded: {len(result.events)} events, "
            f"{len(result.tactical_insights)} insights, "
            f"{len(result.player_analysis)} player observations"
        )

    async def _fail(
        self,
        run_id: int,
        reason: str,
        message: str,
        detail: str = "",
    ) -> None:
        if not self._is_current(run_id):
            return
        logger.error(f"Run {run_id} failed [{reason}]: {message} {detail}".rstrip())
        await self._update(
            run_id,
            stage=PipelineStage.FAILED,
            message=message,
            failure=FailureInfo(reason=reason, message=message, detail=detail),
            has_raw_response=bool(self._raw_response),
            finished_at=datetime.now(),
        )

    async def _publish(self, run_id: int) -> None:
        """Push the current state to the listener."""
        if self.listener is None or not self._is_current(run_id):
            return
        try:
            await self.listener(self.state)
        except Exception as e:
            # Never fail due to listener error
            logger.warning(f"State listener error: {e}")
