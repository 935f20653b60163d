"""JSON POST caller with exponential backoff on rate limiting and network failure."""

import asyncio
import json
import logging
from typing import Any, Awaitable, Callable, Optional

import httpx
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    RetryError,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
    wait_random,
)

from battle_master.llm.base import (
    CallError,
    HttpError,
    MalformedResponse,
    NetworkFailure,
    RateLimited,
    RetriesExhausted,
)
from battle_master.observability import get_observability_logger

logger = logging.getLogger(__name__)

MAX_RETRIES = 5

SleepFn = Callable[[float], Awaitable[None]]


class ResilientCaller:
    """POST JSON bodies and retry transient failures.

    Only HTTP 429 and transport-level failures are retried. The n-th retry
    (n starting at 0) waits ``2**n`` seconds plus up to one second of jitter.
    Every other non-2xx status fails on the first attempt.
    """

    def __init__(
        self,
        client: Optional[httpx.AsyncClient] = None,
        *,
        timeout: float = 60.0,
        max_retries: int = MAX_RETRIES,
        sleep: SleepFn = asyncio.sleep,
    ):
        """Initialize caller.

        Args:
            client: Shared httpx client (created and owned here when omitted)
            timeout: Per-attempt timeout in seconds
            max_retries: Retries after the first attempt
            sleep: Coroutine used to wait between attempts
        """
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=httpx.Timeout(timeout, connect=10.0))
        self.max_retries = max_retries
        self._sleep = sleep

    @property
    def max_attempts(self) -> int:
        return self.max_retries + 1

    async def call(self, url: str, body: dict[str, Any]) -> dict[str, Any]:
        """POST ``body`` to ``url`` and return the decoded JSON response.

        Raises:
            HttpError: Non-429 error status (never retried)
            MalformedResponse: 2xx response whose body is not a JSON object
            RetriesExhausted: Every attempt was rate limited or failed in transport
        """
        retrying = AsyncRetrying(
            retry=retry_if_exception_type((NetworkFailure, RateLimited)),
            stop=stop_after_attempt(self.max_attempts),
            wait=wait_exponential(multiplier=1, exp_base=2) + wait_random(0, 1),
            sleep=self._sleep,
            before_sleep=self._before_sleep(url),
            reraise=False,
        )

        payload: dict[str, Any] = {}
        try:
            async for attempt in retrying:
                with attempt:
                    payload = await self._post_once(
                        url, body, attempt.retry_state.attempt_number
                    )
        except RetryError as exc:
            last = exc.last_attempt.exception()
            attempts = exc.last_attempt.attempt_number
            logger.error(f"Giving up on {_redact(url)} after {attempts} attempts: {last}")
            if isinstance(last, CallError):
                raise RetriesExhausted(last, attempts=attempts) from last
            raise
        return payload

    async def _post_once(self, url: str, body: dict[str, Any], attempt: int) -> dict[str, Any]:
        try:
            response = await self._client.post(url, json=body)
        except httpx.TransportError as e:
            raise NetworkFailure(
                f"Network error calling {_redact(url)}: {e}", attempts=attempt
            ) from e

        if response.status_code == 429:
            raise RateLimited("API call failed with status: 429", status=429, attempts=attempt)
        if not response.is_success:
            logger.error(f"API error {response.status_code} from {_redact(url)}")
            raise HttpError(
                f"API call failed with status: {response.status_code}",
                status=response.status_code,
                attempts=attempt,
            )

        try:
            data = response.json()
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            raise MalformedResponse(f"Response body is not valid JSON: {e}") from e
        if not isinstance(data, dict):
            raise MalformedResponse("Response body is not a JSON object")
        return data

    def _before_sleep(self, url: str) -> Callable[[RetryCallState], None]:
        def log_retry(retry_state: RetryCallState) -> None:
            error = retry_state.outcome.exception() if retry_state.outcome else None
            delay = retry_state.next_action.sleep if retry_state.next_action else 0.0
            reason = "Rate limit exceeded" if isinstance(error, RateLimited) else "Fetch error"
            logger.warning(
                f"{reason} (attempt {retry_state.attempt_number}/{self.max_attempts}). "
                f"Retrying in {round(delay)}s..."
            )
            get_observability_logger().log_retry(
                url=url,
                attempt=retry_state.attempt_number,
                delay_seconds=delay,
                reason=type(error).__name__ if error else "unknown",
                status=getattr(error, "status", None),
            )

        return log_retry

    async def aclose(self) -> None:
        """Close the underlying client if this caller created it."""
        if self._owns_client:
            await self._client.aclose()

    async def __aenter__(self) -> "ResilientCaller":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()


def _redact(url: str) -> str:
    """Drop the query string (which carries the API key) for logging."""
    return url.split("?", 1)[0]
