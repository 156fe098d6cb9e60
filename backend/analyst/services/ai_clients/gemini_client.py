"""
Gemini REST client implementation.

Provides async HTTP client for the Gemini generateContent and Files APIs.
Calls are made once; transient failures surface as typed errors and
are retried by InferenceRetryExecutor.
"""

import logging
from typing import Any

import httpx

from analyst.config import Settings
from analyst.models.schemas import AssetState
from analyst.services.ai_clients.base import (
    AIClientConfig,
    AIClientConnectionError,
    AIClientResponseError,
    AIClientTimeoutError,
    InferenceRequest,
)

logger = logging.getLogger(__name__)

PROVIDER = "gemini"
API_VERSION = "v1beta"


class GeminiClient:
    """
    Async HTTP client for the Gemini API.

    Owns a single httpx.AsyncClient shared by the upload transport,
    the readiness poller and the inference executor of one run.

    Example:
        async with GeminiClient.from_settings(settings) as client:
            state = await client.get_file_state("files/abc")
            text = await client.generate_content(request)
    """

    def __init__(
        self,
        config: AIClientConfig,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        """
        Initialize Gemini client.

        Args:
            config: AI client configuration with base URL and API key
            transport: Optional httpx transport (tests use httpx.MockTransport)
        """
        self.config = config
        headers = {"x-goog-api-key": config.api_key} if config.api_key else {}

        # No global timeout - each request sets its own timeout explicitly
        self.http_client = httpx.AsyncClient(
            timeout=None,
            headers=headers,
            transport=transport,
        )

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> "GeminiClient":
        """
        Create GeminiClient from application settings.

        Args:
            settings: Application settings
            transport: Optional httpx transport override

        Returns:
            Configured GeminiClient instance
        """
        config = AIClientConfig(
            base_url=settings.gemini_base_url.rstrip("/"),
            api_key=settings.gemini_api_key,
            timeout=settings.llm_timeout,
            upload_timeout=settings.upload_timeout,
        )
        return cls(config=config, transport=transport)

    async def __aenter__(self) -> "GeminiClient":
        """Async context manager entry."""
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        """Async context manager exit."""
        await self.close()

    async def close(self) -> None:
        """Close the HTTP client."""
        await self.http_client.aclose()

    @property
    def upload_url(self) -> str:
        """Endpoint that starts resumable upload sessions."""
        return f"{self.config.base_url}/upload/{API_VERSION}/files"

    def file_url(self, name: str) -> str:
        """Resource URL of an uploaded asset ("files/abc")."""
        return f"{self.config.base_url}/{API_VERSION}/{name}"

    def model_url(self, model: str) -> str:
        """generateContent endpoint of a model."""
        return f"{self.config.base_url}/{API_VERSION}/models/{model}:generateContent"

    async def check_services(self) -> dict:
        """
        Check availability of the Gemini API.

        Returns:
            Dict with service status: {"gemini": bool}
        """
        try:
            response = await self.http_client.get(
                f"{self.config.base_url}/{API_VERSION}/models",
                params={"pageSize": 1},
                timeout=5.0,
            )
            if response.status_code == 200:
                logger.debug("Gemini available")
                return {"gemini": True}
            logger.debug(f"Gemini check returned HTTP {response.status_code}")
        except httpx.HTTPError as e:
            logger.debug(f"Gemini not available: {e}")
        return {"gemini": False}

    async def get_file_state(self, name: str) -> str:
        """
        Query the processing state of an uploaded asset.

        A failed or malformed status check is reported as UNKNOWN so that
        readiness polling keeps going.

        Args:
            name: Asset resource name ("files/abc")

        Returns:
            State literal from the server, or "UNKNOWN"
        """
        try:
            response = await self.http_client.get(
                self.file_url(name),
                timeout=self.config.timeout,
            )
        except httpx.HTTPError as e:
            logger.warning(f"Status check for {name} failed: {type(e).__name__}: {e}")
            return AssetState.UNKNOWN.value

        if response.status_code != 200:
            logger.warning(f"Status check for {name} returned HTTP {response.status_code}")
            return AssetState.UNKNOWN.value

        try:
            state = response.json().get("state")
        except (ValueError, AttributeError):
            logger.warning(f"Status check for {name} returned a non-JSON body")
            return AssetState.UNKNOWN.value

        if not isinstance(state, str) or not state:
            return AssetState.UNKNOWN.value
        return state

    async def generate_content(self, request: InferenceRequest) -> str:
        """
        Run one generateContent call.

        Args:
            request: Inference request with media part and prompt

        Returns:
            Concatenated model output text (may be empty)

        Raises:
            AIClientTimeoutError: Request timed out
            AIClientResponseError: Non-2xx response
            AIClientConnectionError: Transport failure
        """
        generation_config: dict[str, Any] = {
            "maxOutputTokens": request.max_output_tokens,
            **request.extra_config,
        }
        if request.thinking_budget is not None:
            generation_config["thinkingConfig"] = {
                "thinkingBudget": request.thinking_budget,
            }

        body = {
            "contents": [
                {"parts": [request.content_part, {"text": request.prompt}]},
            ],
            "generationConfig": generation_config,
        }

        logger.debug(
            f"generateContent: model={request.model}, "
            f"part={next(iter(request.content_part), '?')}, "
            f"max_output_tokens={request.max_output_tokens}"
        )

        try:
            response = await self.http_client.post(
                self.model_url(request.model),
                json=body,
                timeout=self.config.timeout,
            )
            response.raise_for_status()
            payload = response.json()

        except httpx.TimeoutException as e:
            logger.error(f"Generation timeout with {request.model}: {e}")
            raise AIClientTimeoutError(
                "Generation timeout",
                provider=PROVIDER,
                model=request.model,
                original_error=e,
            ) from e

        except httpx.HTTPStatusError as e:
            logger.error(f"Generation HTTP error: {e.response.status_code}")
            raise AIClientResponseError(
                f"Generation failed: HTTP {e.response.status_code}",
                provider=PROVIDER,
                model=request.model,
                status_code=e.response.status_code,
                response_body=e.response.text[:500],
                original_error=e,
            ) from e

        except httpx.TransportError as e:
            logger.error(f"Cannot reach Gemini: {type(e).__name__}: {e}")
            raise AIClientConnectionError(
                f"Network failure: failed to fetch {self.config.base_url}",
                provider=PROVIDER,
                model=request.model,
                original_error=e,
            ) from e

        except ValueError as e:
            raise AIClientResponseError(
                "Generation returned a non-JSON body",
                provider=PROVIDER,
                model=request.model,
                status_code=response.status_code,
                response_body=response.text[:500],
                original_error=e,
            ) from e

        text = collect_text(payload)
        if not text.strip():
            feedback = payload.get("promptFeedback") or {}
            logger.error(
                f"Empty response from {request.model}! "
                f"blockReason={feedback.get('blockReason')}"
            )
        else:
            logger.debug(f"Generated {len(text)} chars")

        return text


def collect_text(payload: dict[str, Any]) -> str:
    """
    Join the text parts of the first candidate, skipping thought parts.

    Args:
        payload: generateContent response JSON

    Returns:
        Model output text ("" if there is none)
    """
    candidates = payload.get("candidates") or []
    if not candidates:
        return ""

    parts = (candidates[0].get("content") or {}).get("parts") or []
    texts = [
        part["text"]
        for part in parts
        if isinstance(part, dict)
        and isinstance(part.get("text"), str)
        and not part.get("thought")
    ]
    return "".join(texts)
