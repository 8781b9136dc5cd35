"""
Resilient HTTP fetch utility with bounded retries.

All consensus and execution endpoint calls go through a single pooled
``httpx.AsyncClient`` wrapped by ``ResilientFetchClient``. Retry timing is
described by ``BackoffPolicy``, which has a constant preset (block queries)
and an exponential preset (height queries).
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any, TypeVar

import httpx

from ..errors import ExporterError, InvalidBlockError, NetworkError

logger = logging.getLogger(__name__)

T = TypeVar("T")

RETRYABLE_STATUS_CODES: frozenset[int] = frozenset({429})


@dataclass(frozen=True, slots=True)
class BackoffPolicy:
    """Retry bound and delay schedule for an upstream call.

    Attributes:
        max_attempts: Total number of attempts, including the first
        base_delay: Delay in seconds (constant) or the multiplier (exponential)
        exponential: Whether the delay doubles after every attempt
    """

    max_attempts: int
    base_delay: float
    exponential: bool = False

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError(f"max_attempts must be at least 1, got {self.max_attempts}")
        if self.base_delay < 0:
            raise ValueError(f"base_delay must be non-negative, got {self.base_delay}")

    def delay_for(self, attempt: int) -> float:
        """Seconds to wait after the given zero-based attempt failed."""
        if self.exponential:
            return self.base_delay * (2 ** attempt)
        return self.base_delay

    @classmethod
    def constant(cls, max_attempts: int = 6, delay: float = 2.0) -> "BackoffPolicy":
        """Fixed delay between attempts (2s, six attempts by default)."""
        return cls(max_attempts=max_attempts, base_delay=delay)

    @classmethod
    def exponential_backoff(cls, max_attempts: int = 4, base_delay: float = 1.0) -> "BackoffPolicy":
        """Delay of ``base_delay * 2**attempt`` seconds (1s, 2s, 4s by default)."""
        return cls(max_attempts=max_attempts, base_delay=base_delay, exponential=True)


async def with_retries(
    operation: Callable[[], Awaitable[T]],
    policy: BackoffPolicy,
    retry_on: tuple[type[ExporterError], ...],
    description: str,
) -> T:
    """
    Run an async operation until it succeeds or the policy is exhausted.

    Only exceptions listed in ``retry_on`` are retried; anything else
    propagates immediately. When every attempt fails the last error is
    re-raised unchanged.

    :param operation: Zero-argument coroutine factory
    :param policy: Retry bound and delay schedule
    :param retry_on: Exception types that trigger another attempt
    :param description: Short label used in log lines
    :return: The operation's result
    """
    for attempt in range(policy.max_attempts):
        try:
            return await operation()
        except retry_on as e:
            if attempt == policy.max_attempts - 1:
                logger.warning(f"{description} failed after {policy.max_attempts} attempts: {e}")
                raise
            delay = policy.delay_for(attempt)
            logger.debug(
                f"{description} failed (attempt {attempt + 1}/{policy.max_attempts}): {e}; "
                f"retrying in {delay}s"
            )
            await asyncio.sleep(delay)

    raise ValueError(f"{description}: retry policy allows no attempts")


class _NonRetryableError(ExporterError):
    """Carries an error that must skip the retry loop."""

    def __init__(self, error: ExporterError) -> None:
        super().__init__(str(error))
        self.error = error


class ResilientFetchClient:
    """
    HTTP client with bounded retry for upstream JSON endpoints.

    One instance is shared by every component so connections are pooled.
    """

    def __init__(
        self,
        timeout: float = 10.0,
        client: httpx.AsyncClient | None = None,
        default_policy: BackoffPolicy | None = None,
    ) -> None:
        """
        Initialize the fetch client.

        Args:
            timeout: Per-request timeout in seconds (ignored when client is given)
            client: Pre-built httpx client, mainly for tests
            default_policy: Policy used when a call does not pass one
        """
        self._client: httpx.AsyncClient = client or httpx.AsyncClient(timeout=timeout)
        self.default_policy: BackoffPolicy = default_policy or BackoffPolicy.exponential_backoff()

    async def request(
        self,
        method: str,
        url: str,
        *,
        policy: BackoffPolicy | None = None,
        min_body_size: int = 0,
        validator: Callable[[httpx.Response], Any] | None = None,
        **kwargs: Any,
    ) -> Any:
        """
        Send a request, retrying transient failures.

        Request errors (transport, decoding), 5xx and 429 responses,
        bodies shorter than ``min_body_size`` and ``InvalidBlockError``
        raised by ``validator`` are retried. Other 4xx responses and any other validator error
        propagate at once.

        Args:
            method: HTTP method
            url: Absolute URL
            policy: Retry policy (defaults to the client's default policy)
            min_body_size: Bodies shorter than this are treated as suspicious
            validator: Optional callable turning the response into a result
            **kwargs: Passed through to ``httpx.AsyncClient.request``

        Returns:
            The validator's result, or the ``httpx.Response`` when no
            validator is given

        Raises:
            NetworkError: On transport or HTTP status failure
            InvalidBlockError: If the body never passes the sanity checks
        """

        async def attempt() -> Any:
            try:
                response = await self._client.request(method, url, **kwargs)
            except httpx.RequestError as e:
                raise NetworkError(f"{method} {url} failed: {e}") from e

            status = response.status_code
            if status >= 500 or status in RETRYABLE_STATUS_CODES:
                raise NetworkError(f"{method} {url} returned HTTP {status}")
            if status >= 400:
                raise _NonRetryableError(NetworkError(f"{method} {url} returned HTTP {status}"))

            if len(response.content) < min_body_size:
                raise InvalidBlockError(f"received suspicious response: {response.text!r}")

            if validator is None:
                return response
            return validator(response)

        try:
            return await with_retries(
                attempt,
                policy or self.default_policy,
                retry_on=(NetworkError, InvalidBlockError),
                description=f"{method} {url}",
            )
        except _NonRetryableError as e:
            raise e.error from None

    async def aclose(self) -> None:
        """Close the underlying connection pool."""
        await self._client.aclose()
