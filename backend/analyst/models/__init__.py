"""
Pydantic models for the match analysis pipeline.

Exports:
    - Ingestion models (MediaAsset, RemoteAssetHandle, etc.)
    - Analysis result models (AnalysisResult, TacticalInsight, etc.)
    - Run state models (PipelineState, PipelineStage, FailureInfo)
"""

from analyst.models.schemas import (
    AnalysisResult,
    AnalyzeRequest,
    AssetState,
    FailureInfo,
    Formations,
    IngestionStrategy,
    MatchEvent,
    MediaAsset,
    PipelineStage,
    PipelineState,
    PlayerObservation,
    RawResponse,
    RemoteAssetHandle,
    TacticalInsight,
)

__all__ = [
    # Ingestion
    "AssetState",
    "IngestionStrategy",
    "MediaAsset",
    "RemoteAssetHandle",
    # Analysis result
    "AnalysisResult",
    "Formations",
    "MatchEvent",
    "PlayerObservation",
    "TacticalInsight",
    # Run state
    "FailureInfo",
    "PipelineStage",
    "PipelineState",
    # API
    "AnalyzeRequest",
    "RawResponse",
]
