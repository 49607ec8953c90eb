"""Retry/backoff engine.

One reusable attempt loop parameterized by a RetryPolicy. Each call walks
the host candidates round-robin, classifies every failure and decides
between backing off and giving up. Per-call progress is tracked by a small
state machine:

    PENDING -> ATTEMPTING -> BACKING_OFF -> ATTEMPTING ... -> SUCCEEDED
                                                           -> ABORTED
                                                           -> EXHAUSTED
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Awaitable, Sequence
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, TypeVar

from kcgallery.config.models.retry_settings import BackoffPolicy, RetryPolicy
from kcgallery.services.error_classifier import classify
from kcgallery.shared.errors import FetchError
from kcgallery.shared.logging import (
    log_operation_error,
    log_operation_success,
    log_retry_attempt,
)
from kcgallery.shared.models import ContentSource

logger = logging.getLogger(__name__)

V = TypeVar("V")

Sleep = Callable[[float], Awaitable[None]]
RetryCallback = Callable[[FetchError], None]


class AttemptState(Enum):
    """States of a single ``execute`` call."""

    PENDING = "pending"
    ATTEMPTING = "attempting"
    BACKING_OFF = "backing_off"
    SUCCEEDED = "succeeded"
    ABORTED = "aborted"
    EXHAUSTED = "exhausted"

    @property
    def is_terminal(self) -> bool:
        return self in _TERMINAL_STATES


_TERMINAL_STATES = frozenset(
    {AttemptState.SUCCEEDED, AttemptState.ABORTED, AttemptState.EXHAUSTED},
)

_ALLOWED_TRANSITIONS: dict[AttemptState, frozenset[AttemptState]] = {
    AttemptState.PENDING: frozenset({AttemptState.ATTEMPTING, AttemptState.ABORTED}),
    AttemptState.ATTEMPTING: frozenset(
        {
            AttemptState.BACKING_OFF,
            AttemptState.SUCCEEDED,
            AttemptState.ABORTED,
            AttemptState.EXHAUSTED,
        },
    ),
    AttemptState.BACKING_OFF: frozenset({AttemptState.ATTEMPTING, AttemptState.ABORTED}),
}


@dataclass
class RetryAttempt:
    """Progress tracker for one ``execute`` call.

    Attributes:
        max_attempts: Attempt budget of the policy in force
        state: Current state
        attempt: 1-based number of the current (or last) attempt
        last_error: Most recent classified failure
        delays: Backoff delays applied so far, in order
    """

    max_attempts: int
    state: AttemptState = AttemptState.PENDING
    attempt: int = 0
    last_error: FetchError | None = None
    delays: list[float] = field(default_factory=list)

    def _transition(self, target: AttemptState) -> None:
        allowed = _ALLOWED_TRANSITIONS.get(self.state, frozenset())
        if target not in allowed:
            msg = f"Invalid retry state transition {self.state.value} -> {target.value}"
            raise RuntimeError(msg)
        self.state = target

    def begin(self) -> int:
        """Start the next attempt and return its number."""
        self._transition(AttemptState.ATTEMPTING)
        self.attempt += 1
        return self.attempt

    def back_off(self, error: FetchError, delay: float) -> None:
        self.last_error = error
        self.delays.append(delay)
        self._transition(AttemptState.BACKING_OFF)

    def succeed(self) -> None:
        self._transition(AttemptState.SUCCEEDED)

    def give_up(self, error: FetchError) -> None:
        """Enter ABORTED (non-retryable) or EXHAUSTED (budget spent)."""
        self.last_error = error
        if error.retryable and self.attempt >= self.max_attempts:
            self._transition(AttemptState.EXHAUSTED)
        else:
            self._transition(AttemptState.ABORTED)

    def cancel(self) -> None:
        if not self.state.is_terminal:
            self.state = AttemptState.ABORTED


@dataclass
class RetryStats:
    """Counters accumulated across ``execute`` calls.

    ``backoff_seconds`` sums every delay slept. ``last_error_kind`` is the
    kind of the most recent classified failure, retried or final.
    """

    calls: int = 0
    attempts: int = 0
    retries: int = 0
    successes: int = 0
    failures: int = 0
    backoff_seconds: float = 0.0
    last_error_kind: str | None = None

    def record(self, tracker: RetryAttempt) -> None:
        """Fold a finished call's tracker into the totals."""
        self.backoff_seconds += sum(tracker.delays)
        if tracker.last_error is not None:
            self.last_error_kind = tracker.last_error.kind.value


class RetryEngine:
    """Runs an async operation under a RetryPolicy.

    The engine keeps no per-call state between calls; only aggregate
    counters are kept for diagnostics.

    Args:
        sleep: Awaitable sleep used for backoff delays (injectable for tests)
    """

    def __init__(self, sleep: Sleep = asyncio.sleep) -> None:
        self._sleep = sleep
        self.stats = RetryStats()

    async def execute(
        self,
        op: Callable[[str], Awaitable[V]],
        policy: RetryPolicy,
        hosts: Sequence[str],
        *,
        source: ContentSource,
        operation: str | None = None,
        on_retry: RetryCallback | None = None,
    ) -> V:
        """Run ``op`` against the host candidates until it succeeds or gives up.

        Attempt ``n`` calls ``op(hosts[(n - 1) % len(hosts)])``.

        Args:
            op: Operation taking a host and returning the decoded result
            policy: Attempt budget and backoff curve
            hosts: Ordered host candidates (at least one)
            source: Source being queried (drives retryability)
            operation: Operation name for logs and error context
            on_retry: Called with the classified error before each backoff

        Returns:
            The operation result

        Raises:
            FetchError: Last classified failure, stamped with its attempt
                number, once the error is non-retryable or the budget is spent
            asyncio.CancelledError: Propagated untouched, never retried
        """
        if not hosts:
            msg = "at least one host candidate is required"
            raise ValueError(msg)

        tracker = RetryAttempt(max_attempts=policy.max_attempts)
        self.stats.calls += 1
        start = time.perf_counter()

        try:
            while True:
                attempt = tracker.begin()
                host = hosts[(attempt - 1) % len(hosts)]
                self.stats.attempts += 1
                try:
                    result = await op(host)
                except asyncio.CancelledError:
                    tracker.cancel()
                    raise
                except Exception as raw:  # noqa: BLE001
                    error = classify(raw, source=source, operation=operation).with_attempt(
                        attempt,
                        policy.max_attempts,
                    )
                    if error.gave_up:
                        tracker.give_up(error)
                        self.stats.failures += 1
                        log_operation_error(
                            logger,
                            error,
                            operation=operation,
                            additional_context={
                                "host": host,
                                "state": tracker.state.value,
                            },
                        )
                        raise error from raw

                    delay = policy.delay_for(attempt)
                    tracker.back_off(error, delay)
                    self.stats.retries += 1
                    log_retry_attempt(logger, error, delay, operation)
                    if on_retry is not None:
                        on_retry(error)
                    try:
                        await self._sleep(delay)
                    except asyncio.CancelledError:
                        tracker.cancel()
                        raise
                else:
                    tracker.succeed()
                    self.stats.successes += 1
                    log_operation_success(
                        logger,
                        operation or "fetch",
                        (time.perf_counter() - start) * 1000,
                        result_info={
                            "attempts": attempt,
                            "host": host,
                            "backoff_s": sum(tracker.delays),
                        },
                    )
                    return result
        finally:
            self.stats.record(tracker)


__all__ = [
    "AttemptState",
    "BackoffPolicy",
    "RetryAttempt",
    "RetryCallback",
    "RetryEngine",
    "RetryPolicy",
    "RetryStats",
]
