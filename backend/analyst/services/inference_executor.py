"""
Inference call with retry on transient failures.

Retry policy:
- at most max_attempts calls (1 initial + retries)
- retried only on HTTP 429/503, transport failures, or an overload /
  network marker in the error message
- delay before retry k (1-based) is 2**k * base_delay (4s, 8s by default)
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable

from tenacity import (
    AsyncRetrying,
    RetryCallState,
    RetryError,
    retry_if_exception_type,
    stop_after_attempt,
)

from analyst.services.ai_clients import (
    AIClientConnectionError,
    AIClientError,
    AIClientTimeoutError,
    BaseAIClient,
    InferenceRequest,
)
from analyst.services.errors import InferenceExhaustedError, InferenceTransientError

logger = logging.getLogger(__name__)

TRANSIENT_STATUS_CODES = frozenset({429, 503})
TRANSIENT_MESSAGE_MARKERS = ("overloaded", "fetch", "network", "connection")

# Signature: (retry_number, max_attempts) -> None
RetryCallback = Callable[[int, int], Awaitable[None]]
SleepFunc = Callable[[float], Awaitable[None]]


@dataclass
class InferenceAttempt:
    """
    Record of one inference call.

    Attributes:
        number: 0-based attempt ordinal
        delay_before: Seconds waited before the call
        succeeded: Whether the call returned text
        error: Error summary for failed attempts
    """

    number: int
    delay_before: float = 0.0
    succeeded: bool = False
    error: str | None = None


def is_transient(error: Exception) -> bool:
    """
    Decide whether a failed inference call may be retried.

    Args:
        error: Exception raised by the client

    Returns:
        True for 429/503, transport failures and overload/network messages
    """
    if isinstance(error, (AIClientTimeoutError, AIClientConnectionError)):
        return True

    if getattr(error, "status_code", None) in TRANSIENT_STATUS_CODES:
        return True

    text = " ".join(
        part for part in (str(error), getattr(error, "response_body", None)) if part
    ).lower()
    return any(marker in text for marker in TRANSIENT_MESSAGE_MARKERS)


class InferenceRetryExecutor:
    """
    Issues the analysis request with exponential backoff.

    Example:
        executor = InferenceRetryExecutor(client)
        text = await executor.invoke_with_retry(request, on_retry=show_retry)
        print(len(executor.attempts))
    """

    def __init__(
        self,
        client: BaseAIClient,
        max_attempts: int = 3,
        base_delay: float = 2.0,
        sleep: SleepFunc = asyncio.sleep,
    ):
        """
        Initialize executor.

        Args:
            client: Inference client
            max_attempts: Total attempts including the first one
            base_delay: Backoff base in seconds
            sleep: Awaitable sleep (injectable for tests)
        """
        self.client = client
        self.max_attempts = max_attempts
        self.base_delay = base_delay
        self._sleep = sleep
        self.attempts: list[InferenceAttempt] = []

    def backoff_delay(self, retry_number: int) -> float:
        """Delay in seconds before retry number k (1-based)."""
        return (2 ** retry_number) * self.base_delay

    def _wait(self, retry_state: RetryCallState) -> float:
        # attempt_number of the failed call equals the upcoming retry number
        return self.backoff_delay(retry_state.attempt_number)

    def _log_retry(self, retry_state: RetryCallState) -> None:
        error = retry_state.outcome.exception() if retry_state.outcome else None
        logger.warning(
            f"Attempt {retry_state.attempt_number}/{self.max_attempts} failed: {error}. "
            f"Retrying in {self._wait(retry_state):.0f}s"
        )

    async def invoke_with_retry(
        self,
        request: InferenceRequest,
        on_retry: RetryCallback | None = None,
    ) -> str:
        """
        Run the inference call, retrying transient failures.

        Args:
            request: Inference request
            on_retry: Awaited before each retried call with (n, max_attempts)

        Returns:
            Raw model output text of the successful attempt

        Raises:
            InferenceExhaustedError: All attempts failed transiently
            AIClientError: Non-retryable failure (raised immediately)
        """
        self.attempts = []
        text = ""

        retrying = AsyncRetrying(
            stop=stop_after_attempt(self.max_attempts),
            wait=self._wait,
            retry=retry_if_exception_type(InferenceTransientError),
            before_sleep=self._log_retry,
            sleep=self._sleep,
        )

        try:
            async for attempt in retrying:
                with attempt:
                    number = attempt.retry_state.attempt_number - 1
                    if number > 0 and on_retry is not None:
                        await on_retry(number, self.max_attempts)
                    text = await self._attempt(request, number)

        except RetryError as e:
            last_error = e.last_attempt.exception()
            logger.error(f"Inference exhausted after {len(self.attempts)} attempts: {last_error}")
            raise InferenceExhaustedError(
                f"Analysis failed after {len(self.attempts)} attempts",
                attempts=len(self.attempts),
                detail=str(last_error),
            ) from last_error

        return text

    async def _attempt(self, request: InferenceRequest, number: int) -> str:
        """Run one call and classify its failure."""
        record = InferenceAttempt(
            number=number,
            delay_before=self.backoff_delay(number) if number else 0.0,
        )
        self.attempts.append(record)

        try:
            text = await self.client.generate_content(request)
        except AIClientError as e:
            record.error = str(e)
            if not is_transient(e):
                logger.error(f"Non-retryable inference failure: {e}")
                raise

            raise InferenceTransientError(
                e.message,
                detail=getattr(e, "response_body", None) or str(e),
                status_code=getattr(e, "status_code", None),
            ) from e

        record.succeeded = True
        logger.info(f"Inference succeeded on attempt {number + 1}: {len(text)} chars")
        return text
