"""
Pipeline module for match video analysis.

- orchestrator: Run state machine (ingestion, inference, extraction)
- progress_manager: Eased progress values and the run-scoped ticker

Example:
    from analyst.services.pipeline import PipelineOrchestrator

    orchestrator = PipelineOrchestrator()
    state = await orchestrator.run(media_path)
"""

from .orchestrator import PipelineOrchestrator, StateListener
from .progress_manager import ProgressManager, ProgressTicker

__all__ = [
    "PipelineOrchestrator",
    "StateListener",
    "ProgressManager",
    "ProgressTicker",
]
