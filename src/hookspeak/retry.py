"""Bounded retry with jittered exponential backoff for provider calls."""

import asyncio
import logging
import random
from collections.abc import Awaitable, Callable, Iterator
from dataclasses import dataclass, field

import httpx

from .config import RetryConfig
from .errors import TransientProviderError
from .models import SpeakRequest
from .providers.base import TTSProvider

logger = logging.getLogger(__name__)

RETRYABLE_ERRORS: tuple[type[BaseException], ...] = (
    TransientProviderError,
    TimeoutError,
    ConnectionError,
    httpx.TransportError,
)

TRANSIENT = "transient"
FATAL = "fatal"


@dataclass(frozen=True)
class RetryPolicy:
    """Retry policy for a single provider.

    The backoff schedule is a plain iterator of delays (see delays()), so the
    decision "wait this long, or stop" can be tested without sleeping. The
    sleep function and random source are injectable for the same reason.

    Args:
        max_retries: Retries after the first attempt
        base_delay: Delay before the first retry, in seconds
        max_delay: Ceiling for a single un-jittered delay, in seconds
        jitter: Relative jitter; 0.2 scales each delay by a factor in [0.8, 1.2]
    """

    max_retries: int = 3
    base_delay: float = 1.0
    max_delay: float = 8.0
    jitter: float = 0.2
    rng: random.Random = field(default_factory=random.Random, repr=False)
    sleep: Callable[[float], Awaitable[None]] = field(default=asyncio.sleep, repr=False)

    def __post_init__(self) -> None:
        """Validate retry settings."""
        if self.max_retries < 0:
            raise ValueError("max_retries cannot be negative")
        if self.base_delay < 0 or self.max_delay < 0:
            raise ValueError("delays cannot be negative")
        if not 0.0 <= self.jitter < 1.0:
            raise ValueError("jitter must be between 0.0 and 1.0")

    @classmethod
    def from_config(cls, config: RetryConfig, **kwargs) -> "RetryPolicy":
        return cls(
            max_retries=config.max_retries,
            base_delay=config.base_delay,
            max_delay=config.max_delay,
            **kwargs,
        )

    def delays(self) -> Iterator[float]:
        """Yield the delay before each retry; exhaustion means stop.

        The n-th delay (from 0) is ``min(base_delay * 2**n, max_delay)``
        scaled by a uniform factor in ``[1 - jitter, 1 + jitter]``.
        """
        for attempt in range(self.max_retries):
            delay = min(self.base_delay * 2**attempt, self.max_delay)
            yield delay * (1 + self.rng.uniform(-self.jitter, self.jitter))

    @staticmethod
    def is_retryable(error: BaseException) -> bool:
        """Classify an error: True for transient failures, False for fatal ones."""
        return isinstance(error, RETRYABLE_ERRORS)

    @classmethod
    def classify(cls, error: BaseException) -> str:
        """Return "transient" or "fatal" for an error."""
        return TRANSIENT if cls.is_retryable(error) else FATAL

    async def execute(self, provider: TTSProvider, request: SpeakRequest) -> bytes:
        """Invoke provider.synthesize with retries on transient failures.

        Fatal errors are re-raised immediately without any retry, so the
        caller can move on to the next provider.

        Args:
            provider: Adapter to invoke
            request: Speech request

        Returns:
            Raw audio bytes from the provider

        Raises:
            Exception: The fatal error, or the last transient error once
                the retries are used up
        """
        delays = self.delays()
        attempt = 0
        while True:
            attempt += 1
            try:
                return await provider.synthesize(request)
            except Exception as e:
                if not self.is_retryable(e):
                    logger.warning(f"{provider.name} failed with non-retryable error: {e}")
                    raise

                delay = next(delays, None)
                if delay is None:
                    logger.warning(
                        f"{provider.name} failed after {attempt} attempts: {e}"
                    )
                    raise

                logger.warning(
                    f"{provider.name} attempt {attempt} failed ({e}), "
                    f"retrying in {delay:.2f}s"
                )
                await self.sleep(delay)
