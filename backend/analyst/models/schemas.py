"""
Pydantic models for the match analysis pipeline.
"""

from datetime import datetime
from enum import Enum
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field, computed_field

from analyst.utils.media_utils import guess_mime_type


class PipelineStage(str, Enum):
    """Stage of an analysis run."""
    IDLE = "idle"
    PREPARING = "preparing"
    UPLOADING = "uploading"
    PROCESSING_REMOTE = "processing_remote"
    ANALYZING = "analyzing"
    RETRYING = "retrying"
    SUCCEEDED = "succeeded"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        """True for stages that end a run."""
        return self in (PipelineStage.SUCCEEDED, PipelineStage.FAILED)

    @property
    def is_active(self) -> bool:
        """True while a run is in flight."""
        return not self.is_terminal and self != PipelineStage.IDLE


class IngestionStrategy(str, Enum):
    """How media bytes reach the inference call.

    - inline: base64 payload embedded in the request
    - remote: resumable upload, then referenced by URI
    """
    INLINE = "inline"
    REMOTE = "remote"


class AssetState(str, Enum):
    """Known lifecycle states of an uploaded asset."""
    STATE_UNSPECIFIED = "STATE_UNSPECIFIED"
    PROCESSING = "PROCESSING"
    ACTIVE = "ACTIVE"
    FAILED = "FAILED"
    UNKNOWN = "UNKNOWN"  # Local marker for a failed status check


# ═══════════════════════════════════════════════════════════════════════════
# Ingestion Models
# ═══════════════════════════════════════════════════════════════════════════


class MediaAsset(BaseModel):
    """Local media file selected for analysis. Replaced, never mutated."""

    model_config = ConfigDict(frozen=True)

    path: Path
    size_bytes: int = Field(ge=0)
    mime_type: str
    display_name: str

    @classmethod
    def from_path(cls, path: Path, mime_type: str | None = None) -> "MediaAsset":
        """
        Build an asset from a file on disk.

        Args:
            path: Path to media file
            mime_type: Declared content type (guessed from extension if None)

        Returns:
            MediaAsset snapshot of the file

        Raises:
            FileNotFoundError: If the file doesn't exist
        """
        path = Path(path)
        if not path.is_file():
            raise FileNotFoundError(f"Media file not found: {path}")

        if mime_type is None:
            mime_type = guess_mime_type(path)

        return cls(
            path=path,
            size_bytes=path.stat().st_size,
            mime_type=mime_type or "",
            display_name=path.name,
        )

    @computed_field
    @property
    def size_mb(self) -> float:
        """Size in MiB, for logs and messages."""
        return round(self.size_bytes / 1024 / 1024, 1)


class RemoteAssetHandle(BaseModel):
    """Server-side asset created by the upload protocol."""

    model_config = ConfigDict(frozen=True)

    name: str  # e.g. "files/abc123"
    uri: str
    mime_type: str = ""
    state: str = AssetState.PROCESSING.value


# ═══════════════════════════════════════════════════════════════════════════
# Analysis Result Models
# ═══════════════════════════════════════════════════════════════════════════


class Formations(BaseModel):
    """Formations of both teams ("Dynamic/Unclear" when not visible)."""

    model_config = ConfigDict(frozen=True)

    team_a: str = "Unknown"
    team_b: str = "Unknown"


class MatchEvent(BaseModel):
    """Timestamped match event.

    type is one of Goal, Shot, Pass, Defense, Tactical, Mistake, Transition
    in practice, but any label the model returns is kept.
    """

    model_config = ConfigDict(frozen=True)

    timestamp: str
    seconds: float = 0
    type: str
    team: str = ""
    description: str = ""


class PlayerObservation(BaseModel):
    """Off-ball movement or action of a single player."""

    model_config = ConfigDict(frozen=True)

    player: str
    action_type: str
    description: str = ""
    impact: str = ""
    time_start: str | None = None
    time_end: str | None = None


class TacticalInsight(BaseModel):
    """Tactical observation with a coaching point and optional drill."""

    model_config = ConfigDict(frozen=True)

    title: str
    phase: str = ""
    observation: str = ""
    breakdown: tuple[str, ...] | None = None
    improvement: str = ""
    drill_name: str | None = None
    drill_setup: str | None = None
    visual_cue: str = ""
    key_moment_timestamp: str | None = None
    key_moment_seconds: float | None = None


class AnalysisResult(BaseModel):
    """Structured analysis of one clip. Produced once per successful run."""

    model_config = ConfigDict(frozen=True)

    match_context: str = "Unknown"
    formations: Formations = Field(default_factory=Formations)
    events: tuple[MatchEvent, ...] = ()
    player_analysis: tuple[PlayerObservation, ...] = ()
    tactical_insights: tuple[TacticalInsight, ...] = ()

    @computed_field
    @property
    def primary_section(self) -> str:
        """Section to show first: players, then tactics, then events."""
        if self.player_analysis:
            return "players"
        if self.tactical_insights:
            return "tactics"
        return "events"


# ═══════════════════════════════════════════════════════════════════════════
# Run State Models
# ═══════════════════════════════════════════════════════════════════════════


class FailureInfo(BaseModel):
    """Classified failure shown to the user."""

    reason: str  # e.g. "validation", "upload_protocol", "inference_exhausted"
    message: str
    detail: str = ""


class PipelineState(BaseModel):
    """Observable state of the current (or last) analysis run."""

    run_id: int = 0
    stage: PipelineStage = PipelineStage.IDLE
    retry_count: int = 0
    progress: float = Field(ge=0, le=100, default=0)
    message: str = ""
    strategy: IngestionStrategy | None = None
    media_name: str | None = None
    failure: FailureInfo | None = None
    has_raw_response: bool = False  # "View raw output" is offered when True
    started_at: datetime | None = None
    finished_at: datetime | None = None


# ═══════════════════════════════════════════════════════════════════════════
# API Request/Response Models
# ═══════════════════════════════════════════════════════════════════════════


class AnalyzeRequest(BaseModel):
    """Request to start an analysis run."""

    media_path: str = Field(
        ...,
        description="Path to a local media file",
        examples=["/data/inbox/derby_second_half.mp4"],
    )


class RawResponse(BaseModel):
    """Raw model output of the last run."""

    raw_response: str
