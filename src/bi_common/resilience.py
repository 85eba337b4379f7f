"""Circuit breaker + time limiter guard for async operations.

Every guarded call goes through ResilienceRegistry.call():

    1. The breaker registered under the operation name decides whether the
       call may proceed. If not, the fallback runs immediately with a
       CallNotPermittedError.
    2. The call is awaited under asyncio.wait_for(). A timeout or any raised
       exception is recorded as a failure and the fallback runs instead.
       Callers that wrap an already guarded call (the HTTP layer around the
       service) pass the longer outer_timeout_seconds, so the inner limit
       always fires first and the inner breaker sees the timeout.
    3. AppError (business errors) propagate unchanged and are not recorded.

Breaker states:
  CLOSED    — calls pass; outcomes go into a count-based sliding window.
              Opens when the window holds >= minimum_number_of_calls outcomes
              and the failure rate is >= failure_rate_threshold.
  OPEN      — calls short-circuit to the fallback. After
              wait_duration_in_open_state seconds the next access sees
              HALF_OPEN.
  HALF_OPEN — permitted_calls_in_half_open_state trial calls pass. Any trial
              failure reopens; all trials succeeding closes.
"""

import asyncio
import functools
import inspect
import logging
import time
from collections import deque
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from enum import Enum
from typing import Any, TypeVar

from config.settings import Settings
from src.bi_common.errors import AppError

logger = logging.getLogger("bi.resilience")

T = TypeVar("T")


class CircuitState(str, Enum):
    CLOSED = "CLOSED"
    OPEN = "OPEN"
    HALF_OPEN = "HALF_OPEN"


class CallNotPermittedError(Exception):
    """Raised (and handed to the fallback) when a breaker rejects a call."""

    def __init__(self, name: str, state: CircuitState) -> None:
        self.name = name
        self.state = state
        super().__init__(f"Circuit breaker '{name}' is {state.value}; call not permitted")


@dataclass(frozen=True)
class CircuitBreakerConfig:
    failure_rate_threshold: float = 50.0  # percent
    sliding_window_size: int = 10
    minimum_number_of_calls: int = 5
    wait_duration_in_open_state: float = 10.0  # seconds
    permitted_calls_in_half_open_state: int = 1

    @classmethod
    def from_settings(cls, settings: Settings) -> "CircuitBreakerConfig":
        return cls(
            failure_rate_threshold=settings.CB_FAILURE_RATE_THRESHOLD,
            sliding_window_size=settings.CB_SLIDING_WINDOW_SIZE,
            minimum_number_of_calls=settings.CB_MINIMUM_NUMBER_OF_CALLS,
            wait_duration_in_open_state=settings.CB_WAIT_DURATION_IN_OPEN_STATE,
            permitted_calls_in_half_open_state=settings.CB_PERMITTED_CALLS_IN_HALF_OPEN_STATE,
        )


class CircuitBreaker:
    """Failure-rate circuit breaker for a single named operation.

    Not thread-safe: all bookkeeping happens between awaits on one event loop.
    """

    def __init__(
        self,
        name: str,
        config: CircuitBreakerConfig | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.name = name
        self.config = config or CircuitBreakerConfig()
        self._clock = clock

        self._state = CircuitState.CLOSED
        # True = failure, False = success
        self._window: deque[bool] = deque(maxlen=self.config.sliding_window_size)
        self._opened_at: float | None = None
        self._half_open_permits = 0
        self._half_open_successes = 0

    @property
    def state(self) -> CircuitState:
        if self._state == CircuitState.OPEN and self._opened_at is not None:
            if self._clock() - self._opened_at >= self.config.wait_duration_in_open_state:
                self._transition(CircuitState.HALF_OPEN)
        return self._state

    @property
    def failure_rate(self) -> float:
        """Failure percentage over the buffered window, 0.0 when empty."""
        if not self._window:
            return 0.0
        return 100.0 * sum(self._window) / len(self._window)

    @property
    def buffered_calls(self) -> int:
        return len(self._window)

    def try_acquire(self) -> bool:
        """Return True if a call may proceed, reserving a trial slot when half-open."""
        state = self.state
        if state == CircuitState.CLOSED:
            return True
        if state == CircuitState.OPEN:
            return False
        if self._half_open_permits < self.config.permitted_calls_in_half_open_state:
            self._half_open_permits += 1
            return True
        return False

    def on_success(self) -> None:
        if self._state == CircuitState.HALF_OPEN:
            self._half_open_successes += 1
            if self._half_open_successes >= self.config.permitted_calls_in_half_open_state:
                self._transition(CircuitState.CLOSED)
            return
        if self._state == CircuitState.CLOSED:
            self._window.append(False)

    def on_failure(self) -> None:
        if self._state == CircuitState.HALF_OPEN:
            self._transition(CircuitState.OPEN)
            return
        if self._state == CircuitState.CLOSED:
            self._window.append(True)
            if (
                len(self._window) >= self.config.minimum_number_of_calls
                and self.failure_rate >= self.config.failure_rate_threshold
            ):
                self._transition(CircuitState.OPEN)

    def release(self) -> None:
        """Give back a half-open permit for a call that ended without an outcome."""
        if self._state == CircuitState.HALF_OPEN and self._half_open_permits > 0:
            self._half_open_permits -= 1

    def reset(self) -> None:
        self._transition(CircuitState.CLOSED)

    def snapshot(self) -> dict[str, Any]:
        return {
            "state": self.state.value,
            "failure_rate": round(self.failure_rate, 2),
            "buffered_calls": self.buffered_calls,
        }

    def _transition(self, new_state: CircuitState) -> None:
        old_state = self._state
        self._state = new_state
        self._half_open_permits = 0
        self._half_open_successes = 0
        if new_state == CircuitState.OPEN:
            self._opened_at = self._clock()
        else:
            self._opened_at = None
        if new_state == CircuitState.CLOSED:
            self._window.clear()

        if old_state == new_state:
            return
        if new_state == CircuitState.OPEN:
            logger.warning(
                "Circuit breaker '%s' %s → OPEN (failure rate %.1f%%)",
                self.name,
                old_state.value,
                self.failure_rate,
            )
        else:
            logger.info("Circuit breaker '%s' %s → %s", self.name, old_state.value, new_state.value)


class ResilienceRegistry:
    """Owns one breaker per operation name plus the inner and outer time limits.

    Built once at startup and passed to whoever guards calls.
    """

    def __init__(
        self,
        breaker_config: CircuitBreakerConfig | None = None,
        timeout_seconds: float = 2.0,
        outer_timeout_seconds: float | None = None,
        clock: Callable[[], float] = time.monotonic,
        ignore_exceptions: tuple[type[BaseException], ...] = (AppError,),
    ) -> None:
        self._breaker_config = breaker_config or CircuitBreakerConfig()
        self._timeout_seconds = timeout_seconds
        self._outer_timeout_seconds = outer_timeout_seconds or timeout_seconds * 2
        if self._outer_timeout_seconds <= timeout_seconds:
            raise ValueError("outer_timeout_seconds must exceed timeout_seconds")
        self._clock = clock
        self._ignore_exceptions = ignore_exceptions
        self._breakers: dict[str, CircuitBreaker] = {}

    @classmethod
    def from_settings(cls, settings: Settings) -> "ResilienceRegistry":
        return cls(
            breaker_config=CircuitBreakerConfig.from_settings(settings),
            timeout_seconds=settings.TIME_LIMITER_TIMEOUT_SECONDS,
            outer_timeout_seconds=settings.API_TIME_LIMITER_TIMEOUT_SECONDS,
        )

    @property
    def timeout_seconds(self) -> float:
        return self._timeout_seconds

    @property
    def outer_timeout_seconds(self) -> float:
        return self._outer_timeout_seconds

    def breaker(self, name: str) -> CircuitBreaker:
        """Get or create the breaker for an operation name."""
        if name not in self._breakers:
            self._breakers[name] = CircuitBreaker(name, self._breaker_config, self._clock)
        return self._breakers[name]

    def snapshot(self) -> dict[str, dict[str, Any]]:
        return {name: cb.snapshot() for name, cb in self._breakers.items()}

    def reset_all(self) -> None:
        for cb in self._breakers.values():
            cb.reset()

    async def call(
        self,
        name: str,
        func: Callable[..., Awaitable[T]],
        *args: Any,
        fallback: Callable[..., Any],
        timeout: float | None = None,
        **kwargs: Any,
    ) -> T:
        limit = timeout or self._timeout_seconds
        breaker = self.breaker(name)
        if not breaker.try_acquire():
            error = CallNotPermittedError(name, breaker.state)
            logger.warning("%s short-circuited: %s", name, error)
            return await _run_fallback(fallback, args, kwargs, error)

        try:
            result = await asyncio.wait_for(func(*args, **kwargs), timeout=limit)
        except self._ignore_exceptions:
            breaker.release()
            raise
        except asyncio.CancelledError:
            breaker.release()
            raise
        except asyncio.TimeoutError as exc:
            breaker.on_failure()
            logger.warning("%s timed out after %.2fs; using fallback", name, limit)
            return await _run_fallback(fallback, args, kwargs, exc)
        except Exception as exc:
            breaker.on_failure()
            logger.warning("%s failed (%s: %s); using fallback", name, type(exc).__name__, exc)
            return await _run_fallback(fallback, args, kwargs, exc)

        breaker.on_success()
        return result


async def _run_fallback(
    fallback: Callable[..., Any],
    args: tuple[Any, ...],
    kwargs: dict[str, Any],
    error: BaseException,
) -> Any:
    result = fallback(*args, error, **kwargs)
    if inspect.isawaitable(result):
        result = await result
    return result


def resilient(
    name: str, fallback: Callable[..., Any]
) -> Callable[[Callable[..., Awaitable[T]]], Callable[..., Awaitable[T]]]:
    """Method decorator: guard an async method with the instance's registry.

    The owning instance must expose its ResilienceRegistry as `self._resilience`.
    The fallback receives (self, *args, error, **kwargs).
    """

    def decorator(method: Callable[..., Awaitable[T]]) -> Callable[..., Awaitable[T]]:
        @functools.wraps(method)
        async def wrapper(self: Any, *args: Any, **kwargs: Any) -> T:
            registry: ResilienceRegistry = self._resilience
            return await registry.call(name, method, self, *args, fallback=fallback, **kwargs)

        return wrapper

    return decorator


# ---------------------------------------------------------------------------
# Fallbacks shared by service and router
# ---------------------------------------------------------------------------


def absent(*args: Any, **kwargs: Any) -> None:
    return None


def empty_list(*args: Any, **kwargs: Any) -> list[Any]:
    return []
