"""Tests for the retry/backoff engine."""

from __future__ import annotations

import asyncio

import pytest

from kcgallery.config.models.retry_settings import BackoffPolicy, RetryPolicy
from kcgallery.services.retry_engine import AttemptState, RetryAttempt, RetryEngine
from kcgallery.shared.error_messages import user_message
from kcgallery.shared.errors import ErrorKind, FetchError, TransportError
from kcgallery.shared.models import ContentSource

PRIMARY = ContentSource.PRIMARY
SECONDARY = ContentSource.SECONDARY


class ScriptedOp:
    """Operation failing with the scripted exceptions, then succeeding."""

    def __init__(self, *failures: BaseException, result: object = "ok") -> None:
        self.failures = list(failures)
        self.result = result
        self.hosts: list[str] = []

    async def __call__(self, host: str) -> object:
        self.hosts.append(host)
        if self.failures:
            raise self.failures.pop(0)
        return self.result


def _unavailable() -> TransportError:
    return TransportError("HTTP 503", status_code=503)


@pytest.fixture
def engine(sleep) -> RetryEngine:
    return RetryEngine(sleep=sleep)


@pytest.fixture
def secondary_policy() -> RetryPolicy:
    return RetryPolicy(max_attempts=6, backoff=BackoffPolicy(kind="exponential", base=1.0, cap=10.0))


@pytest.fixture
def primary_policy() -> RetryPolicy:
    return RetryPolicy(max_attempts=3, backoff=BackoffPolicy(kind="linear", base=0.5, cap=10.0))


class TestExecute:
    """Attempt loop behaviour."""

    @pytest.mark.asyncio
    async def test_success_first_try(self, engine, primary_policy, sleep) -> None:
        op = ScriptedOp()

        assert await engine.execute(op, primary_policy, ["h1"], source=PRIMARY) == "ok"
        assert sleep.delays == []
        assert engine.stats.successes == 1

    @pytest.mark.asyncio
    async def test_recovers_after_transient_failures(self, engine, primary_policy, sleep) -> None:
        op = ScriptedOp(_unavailable(), asyncio.TimeoutError())

        result = await engine.execute(op, primary_policy, ["h1"], source=PRIMARY)

        assert result == "ok"
        assert sleep.delays == [0.5, 1.0]
        assert engine.stats.retries == 2

    @pytest.mark.asyncio
    async def test_stats_track_backoff_and_last_error(self, engine, primary_policy) -> None:
        op = ScriptedOp(_unavailable(), asyncio.TimeoutError())
        await engine.execute(op, primary_policy, ["h1"], source=PRIMARY)

        assert engine.stats.backoff_seconds == 1.5
        assert engine.stats.last_error_kind == ErrorKind.TIMEOUT.value

        with pytest.raises(FetchError):
            await engine.execute(
                ScriptedOp(TransportError("HTTP 404", status_code=404)),
                primary_policy,
                ["h1"],
                source=PRIMARY,
            )

        assert engine.stats.backoff_seconds == 1.5
        assert engine.stats.last_error_kind == ErrorKind.NOT_FOUND.value
        assert (engine.stats.calls, engine.stats.failures) == (2, 1)

    @pytest.mark.asyncio
    async def test_hosts_rotate_round_robin(self, engine, secondary_policy) -> None:
        op = ScriptedOp(_unavailable(), _unavailable(), _unavailable())

        await engine.execute(op, secondary_policy, ["a", "b"], source=SECONDARY)

        assert op.hosts == ["a", "b", "a", "b"]

    @pytest.mark.asyncio
    async def test_secondary_gives_up_after_six_server_errors(self, engine, secondary_policy, sleep) -> None:
        """Six ServerUnavailable failures, delays doubling from 1s capped at 10s."""
        op = ScriptedOp(*[_unavailable() for _ in range(6)])
        retries: list[FetchError] = []

        with pytest.raises(FetchError) as exc_info:
            await engine.execute(
                op,
                secondary_policy,
                ["a", "b"],
                source=SECONDARY,
                operation="get_creator",
                on_retry=retries.append,
            )

        error = exc_info.value
        assert len(op.hosts) == 6
        assert sleep.delays == [1.0, 2.0, 4.0, 8.0, 10.0]
        assert error.kind is ErrorKind.SERVER_UNAVAILABLE
        assert (error.attempt, error.max_attempts) == (6, 6)
        assert error.gave_up
        assert user_message(error).endswith("Gave up after 6 attempts")
        assert [e.attempt for e in retries] == [1, 2, 3, 4, 5]
        assert all("Auto-retrying" in user_message(e) for e in retries)

    @pytest.mark.asyncio
    @pytest.mark.parametrize("status", [404, 429])
    async def test_never_retries_not_found_or_rate_limited(self, engine, secondary_policy, sleep, status) -> None:
        op = ScriptedOp(TransportError(f"HTTP {status}", status_code=status))

        with pytest.raises(FetchError) as exc_info:
            await engine.execute(op, secondary_policy, ["a"], source=SECONDARY)

        assert len(op.hosts) == 1
        assert sleep.delays == []
        assert not exc_info.value.retryable

    @pytest.mark.asyncio
    async def test_parse_error_aborts_on_primary(self, engine, primary_policy) -> None:
        op = ScriptedOp(ValueError("Unexpected JSON payload"))

        with pytest.raises(FetchError) as exc_info:
            await engine.execute(op, primary_policy, ["a"], source=PRIMARY)

        assert exc_info.value.kind is ErrorKind.PARSE_ERROR
        assert len(op.hosts) == 1

    @pytest.mark.asyncio
    async def test_html_page_retried_on_secondary(self, engine, secondary_policy) -> None:
        op = ScriptedOp(TransportError("HTML", status_code=200, looks_like_html=True))

        assert await engine.execute(op, secondary_policy, ["a"], source=SECONDARY) == "ok"
        assert len(op.hosts) == 2

    @pytest.mark.asyncio
    async def test_error_is_chained_to_raw_failure(self, engine, primary_policy) -> None:
        raw = TransportError("HTTP 404", status_code=404)

        with pytest.raises(FetchError) as exc_info:
            await engine.execute(ScriptedOp(raw), primary_policy, ["a"], source=PRIMARY)

        assert exc_info.value.__cause__ is raw

    @pytest.mark.asyncio
    async def test_attempts_never_exceed_budget(self, engine, sleep) -> None:
        for budget in range(1, 5):
            policy = RetryPolicy(max_attempts=budget)
            op = ScriptedOp(*[_unavailable() for _ in range(10)])

            with pytest.raises(FetchError):
                await engine.execute(op, policy, ["a"], source=PRIMARY)

            assert len(op.hosts) == budget

    @pytest.mark.asyncio
    async def test_cancellation_is_not_retried(self, engine, primary_policy) -> None:
        op = ScriptedOp(asyncio.CancelledError())

        with pytest.raises(asyncio.CancelledError):
            await engine.execute(op, primary_policy, ["a"], source=PRIMARY)

        assert len(op.hosts) == 1

    @pytest.mark.asyncio
    async def test_requires_hosts(self, engine, primary_policy) -> None:
        with pytest.raises(ValueError, match="host"):
            await engine.execute(ScriptedOp(), primary_policy, [], source=PRIMARY)


class TestRetryAttempt:
    """State machine transitions."""

    def _error(self, retryable: bool = True) -> FetchError:
        return FetchError(ErrorKind.TIMEOUT, "slow", retryable=retryable)

    def test_success_path(self) -> None:
        tracker = RetryAttempt(max_attempts=3)

        assert tracker.begin() == 1
        tracker.back_off(self._error(), 0.5)
        assert tracker.state is AttemptState.BACKING_OFF
        assert tracker.begin() == 2
        tracker.succeed()

        assert tracker.state is AttemptState.SUCCEEDED
        assert tracker.delays == [0.5]

    def test_exhausted_when_budget_spent(self) -> None:
        tracker = RetryAttempt(max_attempts=1)
        tracker.begin()

        tracker.give_up(self._error())

        assert tracker.state is AttemptState.EXHAUSTED

    def test_aborted_when_not_retryable(self) -> None:
        tracker = RetryAttempt(max_attempts=3)
        tracker.begin()

        tracker.give_up(self._error(retryable=False))

        assert tracker.state is AttemptState.ABORTED

    def test_invalid_transition(self) -> None:
        tracker = RetryAttempt(max_attempts=3)

        with pytest.raises(RuntimeError, match="Invalid retry state transition"):
            tracker.succeed()

    def test_cancel_keeps_terminal_state(self) -> None:
        tracker = RetryAttempt(max_attempts=3)
        tracker.begin()
        tracker.succeed()

        tracker.cancel()

        assert tracker.state is AttemptState.SUCCEEDED
