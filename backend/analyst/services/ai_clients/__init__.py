"""
AI Clients package for inference providers.

- GeminiClient: Gemini REST API (generateContent + Files API)

Usage:
    from analyst.services.ai_clients import GeminiClient, BaseAIClient

    async with GeminiClient.from_settings(settings) as client:
        text = await client.generate_content(request)
"""

from analyst.services.ai_clients.base import (
    AIClientConfig,
    AIClientConnectionError,
    AIClientError,
    AIClientResponseError,
    AIClientTimeoutError,
    BaseAIClient,
    InferenceRequest,
)
from analyst.services.ai_clients.gemini_client import GeminiClient

__all__ = [
    # Protocol and config
    "BaseAIClient",
    "AIClientConfig",
    "InferenceRequest",
    # Errors
    "AIClientError",
    "AIClientTimeoutError",
    "AIClientConnectionError",
    "AIClientResponseError",
    # Implementations
    "GeminiClient",
]
