"""
Base AI client protocol for inference providers.

Defines the interface the pipeline relies on, so the HTTP client can be
swapped for a fake in tests or for another provider later.
"""

from dataclasses import dataclass, field
from typing import Any, Protocol, runtime_checkable


@dataclass
class AIClientConfig:
    """
    Configuration for AI client instances.

    Attributes:
        base_url: API endpoint URL
        api_key: API key for the inference service
        timeout: Request timeout in seconds (status checks, inference)
        upload_timeout: Timeout for byte transfers in seconds
    """

    base_url: str
    api_key: str | None = None
    timeout: float = 300.0
    upload_timeout: float = 3600.0


@dataclass
class InferenceRequest:
    """
    A single analysis request.

    Attributes:
        model: Model name to use
        content_part: Media part ({"inlineData": ...} or {"fileData": ...})
        prompt: Instruction text sent after the media part
        max_output_tokens: Output size ceiling
        thinking_budget: Reasoning token budget (None = model default)
    """

    model: str
    content_part: dict[str, Any]
    prompt: str
    max_output_tokens: int = 12000
    thinking_budget: int | None = None
    extra_config: dict[str, Any] = field(default_factory=dict)


@runtime_checkable
class BaseAIClient(Protocol):
    """
    Protocol defining the interface for inference clients.

    Example:
        async def analyze(client: BaseAIClient, request: InferenceRequest) -> str:
            return await client.generate_content(request)
    """

    async def generate_content(self, request: InferenceRequest) -> str:
        """
        Run one inference call.

        Returns:
            Raw model output text

        Raises:
            AIClientError: If the call fails
        """
        ...

    async def get_file_state(self, name: str) -> str:
        """Return the lifecycle state of an uploaded asset ("UNKNOWN" on error)."""
        ...

    async def close(self) -> None:
        """Close the client and release resources."""
        ...


class AIClientError(Exception):
    """
    Base exception for AI client errors.

    Attributes:
        message: Error description
        provider: AI provider name
        model: Model that caused the error
        original_error: Underlying exception if available
    """

    def __init__(
        self,
        message: str,
        provider: str | None = None,
        model: str | None = None,
        original_error: Exception | None = None,
    ):
        self.message = message
        self.provider = provider
        self.model = model
        self.original_error = original_error
        super().__init__(message)

    def __str__(self) -> str:
        parts = [self.message]
        if self.provider:
            parts.append(f"provider={self.provider}")
        if self.model:
            parts.append(f"model={self.model}")
        return " | ".join(parts)


class AIClientTimeoutError(AIClientError):
    """Raised when a request times out."""

    pass


class AIClientConnectionError(AIClientError):
    """Raised when connection to AI service fails."""

    pass


class AIClientResponseError(AIClientError):
    """
    Raised when AI service returns an error response.

    Attributes:
        status_code: HTTP status code if available
        response_body: Response body if available
    """

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        response_body: str | None = None,
        **kwargs,
    ):
        super().__init__(message, **kwargs)
        self.status_code = status_code
        self.response_body = response_body
