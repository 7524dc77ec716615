"""Resilience patterns for unreliable dependencies (strategy chains, circuit breaker, retry)."""

import asyncio
import logging
import time
from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass, field
from enum import Enum
from typing import ParamSpec, TypeVar

from sqlalchemy.exc import DBAPIError
from tenacity import (
    AsyncRetrying,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

logger = logging.getLogger(__name__)

P = ParamSpec("P")
T = TypeVar("T")


# Exceptions that should trigger retry
RETRYABLE_EXCEPTIONS = (
    TimeoutError,
    ConnectionError,
    OSError,
)


class CircuitState(Enum):
    """Circuit breaker states."""

    CLOSED = "closed"  # Normal operation
    OPEN = "open"  # Failing, reject requests
    HALF_OPEN = "half_open"  # Testing if service recovered


class CircuitOpenError(Exception):
    """Raised when circuit breaker is open."""

    pass


@dataclass
class CircuitBreaker:
    """Simple circuit breaker implementation.

    - CLOSED: Normal operation, requests pass through
    - OPEN: Service is failing, reject requests immediately
    - HALF_OPEN: Testing if service recovered, allow limited requests
    """

    name: str
    failure_threshold: int = 5  # Failures before opening
    recovery_timeout: float = 30.0  # Seconds before trying again
    half_open_max_calls: int = 1  # Successful calls needed to close again
    clock: Callable[[], float] = time.monotonic
    # Errors for which this returns False pass through without counting
    is_failure: Callable[[Exception], bool] = lambda error: True

    state: CircuitState = field(default=CircuitState.CLOSED, init=False)
    failure_count: int = field(default=0, init=False)
    last_failure_time: float = field(default=0.0, init=False)
    half_open_calls: int = field(default=0, init=False)
    _lock: asyncio.Lock = field(default_factory=asyncio.Lock, init=False)

    async def call(
        self,
        func: Callable[P, Awaitable[T]],
        *args: P.args,
        **kwargs: P.kwargs,
    ) -> T:
        """Execute function with circuit breaker protection."""
        async with self._lock:
            self._check_state()

            if self.state == CircuitState.OPEN:
                raise CircuitOpenError(f"Circuit breaker '{self.name}' is open")

        try:
            result = await func(*args, **kwargs)
        except Exception as e:
            if self.is_failure(e):
                await self._on_failure(e)
            else:
                await self._on_success()
            raise
        await self._on_success()
        return result

    def _check_state(self) -> None:
        """Check if circuit should transition states."""
        if (
            self.state == CircuitState.OPEN
            and self.clock() - self.last_failure_time >= self.recovery_timeout
        ):
            logger.info(f"Circuit '{self.name}' transitioning to half-open")
            self.state = CircuitState.HALF_OPEN
            self.half_open_calls = 0

    async def _on_success(self) -> None:
        """Handle successful call."""
        async with self._lock:
            if self.state == CircuitState.HALF_OPEN:
                self.half_open_calls += 1
                if self.half_open_calls >= self.half_open_max_calls:
                    logger.info(f"Circuit '{self.name}' recovered, closing")
                    self.state = CircuitState.CLOSED
                    self.failure_count = 0
            elif self.state == CircuitState.CLOSED:
                self.failure_count = 0

    async def _on_failure(self, error: Exception) -> None:
        """Handle failed call."""
        async with self._lock:
            self.failure_count += 1
            self.last_failure_time = self.clock()

            if self.state == CircuitState.HALF_OPEN:
                logger.warning(f"Circuit '{self.name}' failed in half-open, reopening")
                self.state = CircuitState.OPEN
            elif self.state == CircuitState.CLOSED and self.failure_count >= self.failure_threshold:
                logger.warning(
                    f"Circuit '{self.name}' opened after {self.failure_count} failures: {error!r}"
                )
                self.state = CircuitState.OPEN

    def reset(self) -> None:
        """Manually reset the circuit breaker."""
        self.state = CircuitState.CLOSED
        self.failure_count = 0
        self.half_open_calls = 0


class Strategy[I, O](ABC):
    """One attempt in an ordered fallback chain.

    Subclasses raise on any failure; returning means the result is usable.
    """

    name: str = "strategy"
    timeout: float | None = None
    circuit: CircuitBreaker | None = None

    @abstractmethod
    async def attempt(self, value: I) -> O:
        """Produce a result for ``value`` or raise."""


@dataclass
class StrategyFailure:
    """A single failed attempt, kept for diagnostics."""

    index: int
    name: str
    error: Exception


@dataclass
class ChainResult[O]:
    """Value produced by the first successful strategy."""

    value: O
    strategy: str
    index: int


class StrategyChainError(Exception):
    """Raised when every strategy in a chain failed."""

    def __init__(self, label: str, failures: list[StrategyFailure]) -> None:
        self.label = label
        self.failures = failures
        summary = "; ".join(f"{f.index}:{f.name}={f.error!r}" for f in failures)
        super().__init__(f"All strategies failed for {label}: {summary}")


class StrategyChain[I, O]:
    """Runs strategies strictly in order; the first success wins.

    Each strategy gets its own timeout and, optionally, its own circuit breaker.
    Failures are logged and collected, never raised mid-chain.
    """

    def __init__(self, label: str, strategies: Sequence[Strategy[I, O]]) -> None:
        self.label = label
        self.strategies = list(strategies)

    async def run(self, value: I) -> ChainResult[O]:
        failures: list[StrategyFailure] = []

        for index, strategy in enumerate(self.strategies, start=1):
            try:
                result = await self._attempt(strategy, value)
            except TimeoutError as e:
                logger.warning(
                    f"{self.label}: strategy {index} ({strategy.name}) timed out "
                    f"after {strategy.timeout}s for {value!r}"
                )
                failures.append(StrategyFailure(index, strategy.name, e))
                continue
            except Exception as e:
                logger.warning(f"{self.label}: strategy {index} ({strategy.name}) failed for {value!r}: {e!r}")
                failures.append(StrategyFailure(index, strategy.name, e))
                continue

            logger.debug(f"{self.label}: strategy {index} ({strategy.name}) succeeded for {value!r}")
            return ChainResult(value=result, strategy=strategy.name, index=index)

        raise StrategyChainError(self.label, failures)

    async def _attempt(self, strategy: Strategy[I, O], value: I) -> O:
        async def bounded() -> O:
            if strategy.timeout is None:
                return await strategy.attempt(value)
            return await asyncio.wait_for(strategy.attempt(value), timeout=strategy.timeout)

        if strategy.circuit is not None:
            return await strategy.circuit.call(bounded)
        return await bounded()


def is_transient_error(error: BaseException) -> bool:
    """Connection-level failures worth retrying."""
    if isinstance(error, DBAPIError):
        return bool(error.connection_invalidated)
    return isinstance(error, RETRYABLE_EXCEPTIONS)


async def with_retry(
    func: Callable[P, Awaitable[T]],
    *args: P.args,
    max_attempts: int = 3,
    min_wait: float = 0.5,
    max_wait: float = 5.0,
    **kwargs: P.kwargs,
) -> T:  # type: ignore[return-value]
    """Execute an async function with exponential backoff retry on transient errors.

    Args:
        func: Async function to execute
        *args: Positional arguments for func
        max_attempts: Maximum attempts, including the first
        min_wait: Minimum wait between retries (seconds)
        max_wait: Maximum wait between retries (seconds)
        **kwargs: Keyword arguments for func

    Returns:
        Result from func

    Raises:
        The last exception if all attempts fail, or the first non-transient one
    """
    async for attempt in AsyncRetrying(
        stop=stop_after_attempt(max_attempts),
        wait=wait_exponential(multiplier=min_wait, min=min_wait, max=max_wait),
        retry=retry_if_exception(is_transient_error),
        reraise=True,
    ):
        with attempt:
            return await func(*args, **kwargs)
